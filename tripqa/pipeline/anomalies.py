"""Config-driven soft-flag rules for cleaned trips."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Callable

from tripqa.common.constants import SEVERITY_SUSPICIOUS
from tripqa.common.models import CleanedTripRecord, FlaggedTripRecord


@dataclass(frozen=True)
class QualityThresholds:
    max_speed_mph: float = 80.0
    min_speed_mph: float = 1.0
    speed_min_distance_miles: float = 0.5
    max_fare_per_mile: float = 50.0
    min_fare_per_mile: float = 1.0
    max_tip_fraction: float = 0.5
    conflict_max_duration_min: float = 1.0
    conflict_min_distance_miles: float = 2.0


@dataclass(frozen=True)
class TimeBuckets:
    morning_rush: tuple[int, int] = (7, 9)
    evening_rush: tuple[int, int] = (16, 18)

    def bucket_for(self, hour: int) -> str:
        if self.morning_rush[0] <= hour <= self.morning_rush[1]:
            return "morning_rush"
        if self.evening_rush[0] <= hour <= self.evening_rush[1]:
            return "evening_rush"
        return "off_peak"


@dataclass(frozen=True)
class QualityRules:
    thresholds: QualityThresholds = field(default_factory=QualityThresholds)
    time_buckets: TimeBuckets = field(default_factory=TimeBuckets)

    @classmethod
    def from_config(cls, quality_rules: dict) -> "QualityRules":
        # Overlays may carry extra keys when unknown keys are allowed.
        known = {f.name for f in fields(QualityThresholds)}
        thresholds = QualityThresholds(
            **{k: float(v) for k, v in quality_rules["thresholds"].items() if k in known}
        )
        buckets = quality_rules["time_buckets"]
        return cls(
            thresholds=thresholds,
            time_buckets=TimeBuckets(
                morning_rush=tuple(buckets["morning_rush"]),
                evening_rush=tuple(buckets["evening_rush"]),
            ),
        )


def _speed_out_of_range(trip: CleanedTripRecord, t: QualityThresholds) -> bool:
    speed = trip.avg_speed_mph
    if speed is None or trip.trip_distance <= t.speed_min_distance_miles:
        return False
    return speed > t.max_speed_mph or speed < t.min_speed_mph


def _fare_per_mile_out_of_range(trip: CleanedTripRecord, t: QualityThresholds) -> bool:
    fare_per_mile = trip.fare_per_mile
    if fare_per_mile is None or trip.trip_distance <= 0:
        return False
    return fare_per_mile > t.max_fare_per_mile or fare_per_mile < t.min_fare_per_mile


def _duration_distance_conflict(trip: CleanedTripRecord, t: QualityThresholds) -> bool:
    return trip.duration_min < t.conflict_max_duration_min and trip.trip_distance > t.conflict_min_distance_miles


def _tip_over_limit(trip: CleanedTripRecord, t: QualityThresholds) -> bool:
    tip = trip.tip_amount or 0.0
    return trip.fare_amount > 0 and tip > t.max_tip_fraction * trip.fare_amount


# Evaluated independently; a trip gets one flag per matching rule.
SOFT_FLAG_RULES: tuple[tuple[str, Callable[[CleanedTripRecord, QualityThresholds], bool]], ...] = (
    ("SPEED_OUT_OF_RANGE", _speed_out_of_range),
    ("FARE_PER_MILE_OUT_OF_RANGE", _fare_per_mile_out_of_range),
    ("DURATION_DISTANCE_CONFLICT", _duration_distance_conflict),
    ("TIP_OVER_50_PERCENT", _tip_over_limit),
)


def _detail(trip: CleanedTripRecord) -> dict:
    return {
        "trip_distance": trip.trip_distance,
        "duration_min": trip.duration_min,
        "avg_speed_mph": trip.avg_speed_mph,
        "fare_per_mile": trip.fare_per_mile,
        "fare_amount": trip.fare_amount,
        "tip_amount": trip.tip_amount,
        "tip_percentage": trip.tip_percentage,
    }


def detect_anomalies(trip: CleanedTripRecord, thresholds: QualityThresholds) -> list[FlaggedTripRecord]:
    flags: list[FlaggedTripRecord] = []
    for anomaly_type, check in SOFT_FLAG_RULES:
        if check(trip, thresholds):
            flags.append(
                FlaggedTripRecord(
                    source_file=trip.source_file,
                    source_row_num=trip.source_row_num,
                    anomaly_type=anomaly_type,
                    severity=SEVERITY_SUSPICIOUS,
                    detail=_detail(trip),
                )
            )
    return flags
