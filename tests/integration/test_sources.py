from datetime import datetime

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from tripqa.common.errors import SourceError
from tripqa.sources.trips import check_trip_file, find_trip_files, iter_trip_rows
from tripqa.sources.zone_geometry import read_zone_geometry
from tripqa.sources.zone_lookup import read_zone_lookup_csv


@pytest.mark.integration
def test_shapefile_rows_carry_bbox_centroids(tmp_path, shapefile_writer):
    dbf = shapefile_writer(tmp_path / "taxi_zones", [(1, "Newark Airport", "EWR"), (2, "Jamaica Bay", "Queens")])

    rows = read_zone_geometry(dbf)

    assert [row["LocationID"] for row in rows] == [1, 2]
    assert rows[0]["zone"] == "Newark Airport"
    assert (rows[0]["centroid_x"], rows[0]["centroid_y"]) == (5.0, 5.0)
    assert (rows[1]["centroid_x"], rows[1]["centroid_y"]) == (15.0, 5.0)


@pytest.mark.integration
def test_dbf_alone_is_enough_for_metadata(tmp_path, shapefile_writer):
    dbf = shapefile_writer(tmp_path / "taxi_zones", [(7, "Astoria", "Queens")])
    dbf.with_suffix(".shp").unlink()
    dbf.with_suffix(".shx").unlink()

    rows = read_zone_geometry(dbf)

    assert len(rows) == 1
    assert rows[0]["LocationID"] == 7
    assert "centroid_x" not in rows[0]


@pytest.mark.integration
def test_missing_reference_files_raise_source_error(tmp_path):
    with pytest.raises(SourceError):
        read_zone_geometry(tmp_path / "nope.dbf")
    with pytest.raises(SourceError):
        read_zone_lookup_csv(tmp_path / "nope.csv")
    with pytest.raises(SourceError):
        find_trip_files(tmp_path / "missing", ["*.csv"])


@pytest.mark.integration
def test_lookup_csv_rows_are_returned_raw(tmp_path, csv_writer):
    path = csv_writer(
        tmp_path / "taxi_zone_lookup.csv",
        ["LocationID", "Borough", "Zone", "service_zone"],
        [{"LocationID": " 4 ", "Borough": "Manhattan", "Zone": "Alphabet City", "service_zone": "Yellow Zone"}],
    )
    assert read_zone_lookup_csv(path) == [
        {"LocationID": " 4 ", "Borough": "Manhattan", "Zone": "Alphabet City", "service_zone": "Yellow Zone"}
    ]


@pytest.mark.integration
def test_trip_file_discovery_and_checks(tmp_path):
    (tmp_path / "2019").mkdir()
    (tmp_path / "2019" / "yellow_tripdata_2019-01.csv").write_text("VendorID\n1\n", encoding="utf-8")
    (tmp_path / "fhv_tripdata_2019-01.csv").write_text("", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")

    found = find_trip_files(tmp_path, ["**/*tripdata*.csv", "**/*tripdata*.parquet"])

    assert [path.relative_to(tmp_path).as_posix() for path in found] == [
        "2019/yellow_tripdata_2019-01.csv",
        "fhv_tripdata_2019-01.csv",
    ]
    check_trip_file(found[0])
    with pytest.raises(SourceError, match="no header"):
        check_trip_file(found[1])


@pytest.mark.integration
def test_parquet_rows_stream_in_file_order(tmp_path):
    path = tmp_path / "green_tripdata_2019-02.parquet"
    table = pa.table(
        {
            "VendorID": [2, 1],
            "lpep_pickup_datetime": [datetime(2019, 2, 1, 7, 0), datetime(2019, 2, 1, 9, 30)],
            "PULocationID": [1, 2],
            "trip_distance": [1.2, 3.4],
        }
    )
    pq.write_table(table, path)

    check_trip_file(path)
    rows = list(iter_trip_rows(path))

    assert [row["VendorID"] for row in rows] == [2, 1]
    assert rows[1]["lpep_pickup_datetime"] == datetime(2019, 2, 1, 9, 30)


@pytest.mark.integration
def test_corrupt_parquet_is_a_source_error(tmp_path):
    path = tmp_path / "yellow_tripdata_2019-03.parquet"
    path.write_bytes(b"definitely not parquet")
    with pytest.raises(SourceError):
        check_trip_file(path)
    with pytest.raises(SourceError):
        list(iter_trip_rows(path))


@pytest.mark.integration
def test_undecodable_csv_bytes_are_replaced(tmp_path):
    path = tmp_path / "yellow_tripdata_2019-04.csv"
    path.write_bytes(b"VendorID,store_and_fwd_flag\n1,N\n2,\xe9\n3,Y\n")

    rows = list(iter_trip_rows(path))

    assert [row["VendorID"] for row in rows] == ["1", "2", "3"]
    assert rows[1]["store_and_fwd_flag"] == "�"


@pytest.mark.integration
def test_unreadable_trip_path_while_streaming_is_a_source_error(tmp_path):
    path = tmp_path / "yellow_tripdata_2019-05.csv"
    path.mkdir()
    with pytest.raises(SourceError):
        list(iter_trip_rows(path))
