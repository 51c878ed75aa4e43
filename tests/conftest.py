import csv
from pathlib import Path

import pytest
import shapefile

from tripqa.common.models import ZoneRecord

REPO_ROOT = Path(__file__).resolve().parents[1]

TRIP_HEADER = [
    "VendorID",
    "tpep_pickup_datetime",
    "tpep_dropoff_datetime",
    "passenger_count",
    "trip_distance",
    "RatecodeID",
    "store_and_fwd_flag",
    "PULocationID",
    "DOLocationID",
    "payment_type",
    "fare_amount",
    "extra",
    "mta_tax",
    "tip_amount",
    "tolls_amount",
    "improvement_surcharge",
    "total_amount",
    "congestion_surcharge",
]


def make_trip(**overrides) -> dict:
    row = {
        "VendorID": "1",
        "tpep_pickup_datetime": "2019-01-01 08:00:00",
        "tpep_dropoff_datetime": "2019-01-01 08:20:00",
        "passenger_count": "1",
        "trip_distance": "4.0",
        "RatecodeID": "1",
        "store_and_fwd_flag": "n",
        "PULocationID": "1",
        "DOLocationID": "2",
        "payment_type": "1",
        "fare_amount": "16.0",
        "extra": "0.5",
        "mta_tax": "0.5",
        "tip_amount": "3.0",
        "tolls_amount": "0",
        "improvement_surcharge": "0.3",
        "total_amount": "20.3",
        "congestion_surcharge": "",
    }
    row.update(overrides)
    return row


@pytest.fixture
def trip_factory():
    return make_trip


@pytest.fixture
def zone_index() -> dict[int, ZoneRecord]:
    zones = [
        ZoneRecord(1, "EWR", "Newark Airport", "EWR", True, 1, "mappable"),
        ZoneRecord(2, "Queens", "Jamaica Bay", "Boro Zone", True, 1, "mappable"),
        ZoneRecord(132, "Queens", "JFK Airport", "Airports", False, 0, "missing_geometry"),
    ]
    return {zone.location_id: zone for zone in zones}


@pytest.fixture
def config_dir() -> Path:
    return REPO_ROOT / "config"


def write_csv_rows(path: Path, header: list[str], rows: list[dict]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=header)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    return path


def write_zone_shapefile(base: Path, zones: list[tuple[int, str, str]]) -> Path:
    """Write a polygon shapefile bundle; returns the ``.dbf`` path."""
    base.parent.mkdir(parents=True, exist_ok=True)
    writer = shapefile.Writer(str(base), shapeType=shapefile.POLYGON)
    writer.field("LocationID", "N", 4, 0)
    writer.field("zone", "C", 40)
    writer.field("borough", "C", 20)
    for idx, (location_id, zone, borough) in enumerate(zones):
        x0 = float(idx * 10)
        writer.poly([[[x0, 0.0], [x0, 10.0], [x0 + 10.0, 10.0], [x0 + 10.0, 0.0], [x0, 0.0]]])
        writer.record(location_id, zone, borough)
    writer.close()
    return base.with_suffix(".dbf")


def write_datasets(datasets_dir: Path, trips: list[dict]) -> Path:
    write_csv_rows(
        datasets_dir / "taxi_zone_lookup.csv",
        ["LocationID", "Borough", "Zone", "service_zone"],
        [
            {"LocationID": "1", "Borough": "EWR", "Zone": "Newark Airport", "service_zone": "EWR"},
            {"LocationID": "2", "Borough": "Queens", "Zone": "Jamaica Bay", "service_zone": "Boro Zone"},
            {"LocationID": "3", "Borough": "Bronx", "Zone": "Allerton/Pelham Gardens", "service_zone": "Boro Zone"},
            {"LocationID": "3", "Borough": "Bronx", "Zone": "Duplicate", "service_zone": "Boro Zone"},
            {"LocationID": "abc", "Borough": "Bronx", "Zone": "Bad", "service_zone": "Boro Zone"},
        ],
    )
    write_zone_shapefile(
        datasets_dir / "taxi_zones" / "taxi_zones",
        [(1, "Newark Airport", "EWR"), (2, "Jamaica Bay", "Queens"), (2, "Jamaica Bay", "Queens")],
    )
    write_csv_rows(datasets_dir / "yellow_tripdata_2019-01.csv", TRIP_HEADER, trips)
    return datasets_dir


@pytest.fixture
def datasets_writer():
    return write_datasets


@pytest.fixture
def shapefile_writer():
    return write_zone_shapefile


@pytest.fixture
def csv_writer():
    return write_csv_rows
