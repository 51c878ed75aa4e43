"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any

from tripqa.common.time_utils import format_timestamp


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class ZoneRecord:
    location_id: int
    borough: str
    zone: str
    service_zone: str
    has_geometry: bool
    geometry_record_count: int
    map_status: str
    centroid_lat: float | None = None
    centroid_lng: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BoroughRecord:
    borough: str
    borough_group: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class QualityLogEntry:
    dataset: str
    record_key: str
    issue_type: str
    action: str
    details: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NormalisedTrip:
    source_file: str
    source_row_num: int
    vendor_id: int | None = None
    pickup_ts: datetime | None = None
    dropoff_ts: datetime | None = None
    passenger_count: int | None = None
    trip_distance: float | None = None
    ratecode_id: int | None = None
    store_and_fwd_flag: str | None = None
    pu_location_id: int | None = None
    do_location_id: int | None = None
    payment_type: int | None = None
    fare_amount: float | None = None
    extra: float | None = None
    mta_tax: float | None = None
    tip_amount: float | None = None
    tolls_amount: float | None = None
    improvement_surcharge: float | None = None
    total_amount: float | None = None
    congestion_surcharge: float | None = None
    # (field name, raw value) pairs that were present but failed to parse
    field_issues: tuple[tuple[str, str], ...] = ()

    @property
    def record_key(self) -> str:
        return f"{self.source_file}:{self.source_row_num}"

    def natural_key(self) -> tuple:
        return (
            self.pickup_ts,
            self.dropoff_ts,
            self.pu_location_id,
            self.do_location_id,
            self.passenger_count,
            self.trip_distance,
            self.fare_amount,
            self.tip_amount,
            self.total_amount,
        )


@dataclass(frozen=True)
class CleanedTripRecord:
    source_file: str
    source_row_num: int
    vendor_id: int | None
    pickup_ts: datetime
    dropoff_ts: datetime
    passenger_count: int | None
    trip_distance: float
    ratecode_id: int | None
    store_and_fwd_flag: str | None
    pu_location_id: int
    do_location_id: int
    payment_type: int | None
    payment_type_group: str
    fare_amount: float
    extra: float | None
    mta_tax: float | None
    tip_amount: float | None
    tolls_amount: float | None
    improvement_surcharge: float | None
    total_amount: float
    congestion_surcharge: float | None
    duration_min: float
    revenue_per_minute: float | None
    fare_per_mile: float | None
    avg_speed_mph: float | None
    tip_percentage: float | None
    pickup_hour: int
    pickup_date: date
    time_bucket: str
    pickup_borough: str | None = None
    pickup_zone: str | None = None
    pickup_service_zone: str | None = None
    dropoff_borough: str | None = None
    dropoff_zone: str | None = None
    dropoff_service_zone: str | None = None

    @property
    def record_key(self) -> str:
        return f"{self.source_file}:{self.source_row_num}"

    def to_dict(self) -> dict[str, Any]:
        return {key: _jsonable(value) for key, value in asdict(self).items()}


@dataclass(frozen=True)
class FlaggedTripRecord:
    source_file: str
    source_row_num: int
    anomaly_type: str
    severity: str
    detail: dict[str, Any] = field(default_factory=dict)

    @property
    def record_key(self) -> str:
        return f"{self.source_file}:{self.source_row_num}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RunCounters:
    total_raw: int = 0
    excluded: int = 0
    duplicates: int = 0
    flagged: int = 0
    clean: int = 0
    flag_count: int = 0
    field_issues: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)
