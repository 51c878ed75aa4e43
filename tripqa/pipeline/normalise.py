"""Resolve raw trip columns across file vintages into one typed row."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from tripqa.common.models import NormalisedTrip
from tripqa.common.time_utils import parse_timestamp
from tripqa.common.values import clean_upper_text, is_blank, pick_by_alias, safe_float, safe_int

# Ordered alias lists, checked case-insensitively. The first present column
# wins even if its value is blank.
TRIP_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "vendor_id": ("VendorID", "vendor_id", "vendorId"),
    "pickup_ts": ("tpep_pickup_datetime", "lpep_pickup_datetime", "pickup_datetime", "pickupTs"),
    "dropoff_ts": ("tpep_dropoff_datetime", "lpep_dropoff_datetime", "dropoff_datetime", "dropoffTs"),
    "passenger_count": ("passenger_count", "passengerCount"),
    "trip_distance": ("trip_distance", "tripDistance"),
    "ratecode_id": ("RatecodeID", "rate_code", "rateCodeId"),
    "store_and_fwd_flag": ("store_and_fwd_flag", "storeAndFwdFlag"),
    "pu_location_id": ("PULocationID", "pu_location_id", "puLocationId"),
    "do_location_id": ("DOLocationID", "do_location_id", "doLocationId"),
    "payment_type": ("payment_type", "paymentType"),
    "fare_amount": ("fare_amount", "fareAmount"),
    "extra": ("extra",),
    "mta_tax": ("mta_tax", "mtaTax"),
    "tip_amount": ("tip_amount", "tipAmount"),
    "tolls_amount": ("tolls_amount", "tollsAmount"),
    "improvement_surcharge": ("improvement_surcharge", "improvementSurcharge"),
    "total_amount": ("total_amount", "totalAmount"),
    "congestion_surcharge": ("congestion_surcharge", "congestionSurcharge"),
}

_PARSERS: dict[str, Callable[[Any], Any]] = {
    "vendor_id": safe_int,
    "pickup_ts": parse_timestamp,
    "dropoff_ts": parse_timestamp,
    "passenger_count": safe_int,
    "trip_distance": safe_float,
    "ratecode_id": safe_int,
    "store_and_fwd_flag": clean_upper_text,
    "pu_location_id": safe_int,
    "do_location_id": safe_int,
    "payment_type": safe_int,
    "fare_amount": safe_float,
    "extra": safe_float,
    "mta_tax": safe_float,
    "tip_amount": safe_float,
    "tolls_amount": safe_float,
    "improvement_surcharge": safe_float,
    "total_amount": safe_float,
    "congestion_surcharge": safe_float,
}

# Stand-in for bytes the CSV reader could not decode.
REPLACEMENT_CHAR = "\ufffd"


def normalise_trip(raw_row: Mapping[str, Any], source_file: str, source_row_num: int) -> NormalisedTrip:
    """Parse one raw row. Never raises for a single bad field.

    A value that is present but cannot be parsed becomes None and is listed
    in ``field_issues`` so the caller can log it.
    """
    values: dict[str, Any] = {}
    issues: list[tuple[str, str]] = []

    for name, aliases in TRIP_FIELD_ALIASES.items():
        _column, raw_value = pick_by_alias(raw_row, aliases)
        if isinstance(raw_value, str) and REPLACEMENT_CHAR in raw_value:
            parsed = None
        else:
            parsed = _PARSERS[name](raw_value)
        if parsed is None and not is_blank(raw_value):
            issues.append((name, str(raw_value)))
        values[name] = parsed

    return NormalisedTrip(
        source_file=source_file,
        source_row_num=source_row_num,
        field_issues=tuple(issues),
        **values,
    )
