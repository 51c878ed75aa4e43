"""Read zone geometry metadata from the TLC shapefile bundle."""

from __future__ import annotations

from pathlib import Path

import shapefile

from tripqa.common.errors import SourceError


def _bbox_centre(bbox) -> tuple[float | None, float | None]:
    if not bbox or len(bbox) != 4:
        return None, None
    xmin, ymin, xmax, ymax = bbox
    return (xmin + xmax) / 2.0, (ymin + ymax) / 2.0


def read_zone_geometry(path: Path) -> list[dict]:
    """Return one dict per DBF record.

    When the sibling ``.shp``/``.shx`` files are present each row also gets
    ``centroid_x``/``centroid_y``: the centre of the shape's bounding box in
    the shapefile's own CRS.
    """
    if not path.exists():
        raise SourceError(f"Missing zone geometry file: {path}")

    shp_path = path.with_suffix(".shp")
    shx_path = path.with_suffix(".shx")
    dbf_path = path.with_suffix(".dbf")

    try:
        if shp_path.exists() and shx_path.exists() and dbf_path.exists():
            with shapefile.Reader(str(path.with_suffix(""))) as reader:
                field_names = [f[0] for f in reader.fields[1:]]
                rows = []
                for shape_record in reader.iterShapeRecords():
                    row = dict(zip(field_names, shape_record.record))
                    row["centroid_x"], row["centroid_y"] = _bbox_centre(getattr(shape_record.shape, "bbox", None))
                    rows.append(row)
                return rows

        with dbf_path.open("rb") as dbf, shapefile.Reader(dbf=dbf) as reader:
            field_names = [f[0] for f in reader.fields[1:]]
            return [dict(zip(field_names, record)) for record in reader.iterRecords()]
    except (OSError, shapefile.ShapefileException) as exc:
        raise SourceError(f"Unreadable zone geometry file {path}: {exc}") from exc
