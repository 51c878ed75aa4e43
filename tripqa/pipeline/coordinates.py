"""Zone centroid projection to WGS84."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from pyproj import CRS, Transformer

from tripqa.common.values import safe_float

WGS84_EPSG = 4326


@lru_cache(maxsize=8)
def _transformer(source_epsg: int) -> Transformer:
    return Transformer.from_crs(CRS.from_epsg(source_epsg), CRS.from_epsg(WGS84_EPSG), always_xy=True)


def _valid_lat_lon(lat: float | None, lon: float | None) -> bool:
    if lat is None or lon is None:
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def to_wgs84(x: Any, y: Any, source_epsg: int) -> tuple[float, float] | None:
    """Project an (x, y) pair to (lat, lon); None when it cannot be placed."""
    x_val = safe_float(x)
    y_val = safe_float(y)
    if x_val is None or y_val is None:
        return None
    if source_epsg == WGS84_EPSG:
        lat, lon = y_val, x_val
    else:
        try:
            lon, lat = _transformer(int(source_epsg)).transform(x_val, y_val)
        except Exception:
            return None
    if not _valid_lat_lon(lat, lon):
        return None
    return round(lat, 6), round(lon, 6)


def resolve_zone_centroid(geometry_rows: list[dict], source_epsg: int) -> tuple[float | None, float | None]:
    for row in geometry_rows:
        projected = to_wgs84(row.get("centroid_x"), row.get("centroid_y"), source_epsg)
        if projected is not None:
            return projected
    return None, None
