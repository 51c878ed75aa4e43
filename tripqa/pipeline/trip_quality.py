"""Per-trip quality pipeline: dedupe, hard exclusion, features, soft flags.

Every raw row goes through the same ordered steps:

1. field normalisation (``tripqa.pipeline.normalise``),
2. natural-key duplicate detection against the run's ``RunContext``,
3. hard-exclusion checks,
4. derived feature computation and zone label lookup,
5. soft-flag rules (``tripqa.pipeline.anomalies``).

Per-row problems become ``QualityLogEntry`` rows and never abort the run.
"""

from __future__ import annotations

import hashlib
import math
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping

from tripqa.common.constants import ACTION_EXCLUDED, ACTION_RETAINED, PAYMENT_TYPE_GROUPS
from tripqa.common.errors import IntegrityError, RangeWarning, RowError, ValidationError
from tripqa.common.models import (
    CleanedTripRecord,
    FlaggedTripRecord,
    NormalisedTrip,
    QualityLogEntry,
    RunCounters,
    ZoneRecord,
)
from tripqa.common.time_utils import format_timestamp
from tripqa.pipeline.anomalies import QualityRules, detect_anomalies
from tripqa.pipeline.normalise import normalise_trip

STATUS_CLEAN = "clean"
STATUS_DUPLICATE = "duplicate"
STATUS_EXCLUDED = "excluded"


def shard_for_key(natural_key: tuple, shard_count: int) -> int:
    """Stable shard index for a natural key, independent of hash seeding."""
    if shard_count <= 1:
        return 0
    encoded = "|".join("" if part is None else str(part) for part in natural_key).encode("utf-8")
    return int.from_bytes(hashlib.sha1(encoded).digest()[:8], "big") % shard_count


class RunContext:
    """State owned by exactly one ingestion run.

    Holds the seen natural-key table for the whole run. Claims go through a
    lock so shards sharing one context still agree on which row came first.
    """

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        self._first_seen: dict[tuple, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._first_seen)

    def claim(self, natural_key: tuple, record_key: str) -> str | None:
        """Register ``natural_key``; return the earlier record key if taken."""
        with self._lock:
            first = self._first_seen.get(natural_key)
            if first is not None:
                return first
            self._first_seen[natural_key] = record_key
            return None


@dataclass
class TripOutcome:
    status: str
    record_key: str
    cleaned: CleanedTripRecord | None = None
    flags: list[FlaggedTripRecord] = field(default_factory=list)
    log_entries: list[QualityLogEntry] = field(default_factory=list)


def exclusion_reasons(trip: NormalisedTrip) -> list[str]:
    reasons: list[str] = []
    if trip.pickup_ts is None:
        reasons.append("MISSING_PICKUP_TS")
    if trip.dropoff_ts is None:
        reasons.append("MISSING_DROPOFF_TS")
    if trip.pu_location_id is None:
        reasons.append("MISSING_PU_LOCATION")
    if trip.do_location_id is None:
        reasons.append("MISSING_DO_LOCATION")
    if trip.trip_distance is None:
        reasons.append("MISSING_TRIP_DISTANCE")
    elif trip.trip_distance < 0:
        reasons.append("NEGATIVE_TRIP_DISTANCE")
    if trip.fare_amount is None:
        reasons.append("MISSING_FARE_AMOUNT")
    elif trip.fare_amount < 0:
        reasons.append("NEGATIVE_FARE_AMOUNT")
    if trip.total_amount is None:
        reasons.append("MISSING_TOTAL_AMOUNT")
    elif trip.total_amount < 0:
        reasons.append("NEGATIVE_TOTAL_AMOUNT")
    if trip.pickup_ts is not None and trip.dropoff_ts is not None:
        if (trip.dropoff_ts - trip.pickup_ts).total_seconds() <= 0:
            reasons.append("NON_POSITIVE_DURATION")
    return reasons


def _ratio(numerator: float | None, denominator: float | None) -> float | None:
    if numerator is None or denominator is None or denominator <= 0:
        return None
    quotient = numerator / denominator
    return quotient if math.isfinite(quotient) else None


def payment_type_group(payment_type: int | None) -> str:
    return PAYMENT_TYPE_GROUPS.get(payment_type, "other")


def build_cleaned_record(
    trip: NormalisedTrip,
    zones: Mapping[int, ZoneRecord],
    rules: QualityRules,
) -> CleanedTripRecord:
    """Compute derived features for a trip that passed hard exclusion."""
    duration_min = (trip.dropoff_ts - trip.pickup_ts).total_seconds() / 60.0
    tip_amount = trip.tip_amount if trip.tip_amount is not None else 0.0

    tip_ratio = _ratio(tip_amount, trip.fare_amount)
    tip_percentage = None if tip_ratio is None else 100.0 * tip_ratio
    if tip_percentage is not None and not math.isfinite(tip_percentage):
        tip_percentage = None
    pickup_zone = zones.get(trip.pu_location_id)
    dropoff_zone = zones.get(trip.do_location_id)

    return CleanedTripRecord(
        source_file=trip.source_file,
        source_row_num=trip.source_row_num,
        vendor_id=trip.vendor_id,
        pickup_ts=trip.pickup_ts,
        dropoff_ts=trip.dropoff_ts,
        passenger_count=trip.passenger_count,
        trip_distance=trip.trip_distance,
        ratecode_id=trip.ratecode_id,
        store_and_fwd_flag=trip.store_and_fwd_flag,
        pu_location_id=trip.pu_location_id,
        do_location_id=trip.do_location_id,
        payment_type=trip.payment_type,
        payment_type_group=payment_type_group(trip.payment_type),
        fare_amount=trip.fare_amount,
        extra=trip.extra,
        mta_tax=trip.mta_tax,
        tip_amount=trip.tip_amount,
        tolls_amount=trip.tolls_amount,
        improvement_surcharge=trip.improvement_surcharge,
        total_amount=trip.total_amount,
        congestion_surcharge=trip.congestion_surcharge,
        duration_min=duration_min,
        revenue_per_minute=_ratio(trip.total_amount, duration_min),
        fare_per_mile=_ratio(trip.total_amount, trip.trip_distance),
        avg_speed_mph=_ratio(trip.trip_distance, duration_min / 60.0),
        tip_percentage=tip_percentage,
        pickup_hour=trip.pickup_ts.hour,
        pickup_date=trip.pickup_ts.date(),
        time_bucket=rules.time_buckets.bucket_for(trip.pickup_ts.hour),
        pickup_borough=pickup_zone.borough if pickup_zone else None,
        pickup_zone=pickup_zone.zone if pickup_zone else None,
        pickup_service_zone=pickup_zone.service_zone if pickup_zone else None,
        dropoff_borough=dropoff_zone.borough if dropoff_zone else None,
        dropoff_zone=dropoff_zone.zone if dropoff_zone else None,
        dropoff_service_zone=dropoff_zone.service_zone if dropoff_zone else None,
    )


class TripQualityEngine:
    """Run raw trip rows one at a time through the quality pipeline."""

    def __init__(
        self,
        zones: Mapping[int, ZoneRecord],
        context: RunContext,
        rules: QualityRules | None = None,
    ) -> None:
        self.zones = zones
        self.context = context
        self.rules = rules or QualityRules()
        self.counters = RunCounters()

    def process(self, raw_row: Mapping[str, Any], source_file: str, source_row_num: int) -> TripOutcome:
        self.counters.total_raw += 1
        record_key = f"{source_file}:{source_row_num}"
        try:
            outcome = self._process(raw_row, source_file, source_row_num)
        except Exception as exc:
            outcome = self._excluded(source_file, record_key, RowError.issue_type, f"{type(exc).__name__}: {exc}")

        if outcome.status == STATUS_CLEAN:
            self.counters.clean += 1
            if outcome.flags:
                self.counters.flagged += 1
                self.counters.flag_count += len(outcome.flags)
        elif outcome.status == STATUS_DUPLICATE:
            self.counters.duplicates += 1
            self.counters.excluded += 1
        else:
            self.counters.excluded += 1
        return outcome

    def _excluded(self, dataset: str, record_key: str, issue_type: str, details: str) -> TripOutcome:
        entry = QualityLogEntry(
            dataset=dataset,
            record_key=record_key,
            issue_type=issue_type,
            action=ACTION_EXCLUDED,
            details=details,
        )
        return TripOutcome(status=STATUS_EXCLUDED, record_key=record_key, log_entries=[entry])

    def _process(self, raw_row: Mapping[str, Any], source_file: str, source_row_num: int) -> TripOutcome:
        trip = normalise_trip(raw_row, source_file, source_row_num)
        record_key = trip.record_key

        first_seen = self.context.claim(trip.natural_key(), record_key)
        if first_seen is not None:
            duplicate = IntegrityError(f"Duplicate natural-key trip, first seen at {first_seen}")
            entry = QualityLogEntry(
                dataset=source_file,
                record_key=record_key,
                issue_type=duplicate.issue_type,
                action=duplicate.action,
                details=str(duplicate),
            )
            return TripOutcome(status=STATUS_DUPLICATE, record_key=record_key, log_entries=[entry])

        reasons = exclusion_reasons(trip)
        if reasons:
            details = ";".join(reasons)
            if trip.field_issues:
                details += " (unparseable: " + ", ".join(name for name, _raw in trip.field_issues) + ")"
            return self._excluded(source_file, record_key, "TRIP_EXCLUDED", details)

        log_entries: list[QualityLogEntry] = []
        for name, raw_value in trip.field_issues:
            issue = ValidationError(f"{name}={raw_value!r} could not be parsed, stored as null")
            log_entries.append(
                QualityLogEntry(
                    dataset=source_file,
                    record_key=record_key,
                    issue_type=issue.issue_type,
                    action=issue.action,
                    details=str(issue),
                )
            )
        self.counters.field_issues += len(trip.field_issues)

        cleaned = build_cleaned_record(trip, self.zones, self.rules)

        for side, location_id in (("pickup", cleaned.pu_location_id), ("dropoff", cleaned.do_location_id)):
            if location_id not in self.zones:
                log_entries.append(
                    QualityLogEntry(
                        dataset=source_file,
                        record_key=record_key,
                        issue_type="UNKNOWN_LOCATION_ID",
                        action=ACTION_RETAINED,
                        details=f"{side} location id {location_id} not in zone dimension",
                    )
                )

        flags = detect_anomalies(cleaned, self.rules.thresholds)
        for flag in flags:
            warning = RangeWarning(_flag_details(cleaned))
            log_entries.append(
                QualityLogEntry(
                    dataset=source_file,
                    record_key=record_key,
                    issue_type=flag.anomaly_type,
                    action=warning.action,
                    details=str(warning),
                )
            )

        return TripOutcome(
            status=STATUS_CLEAN,
            record_key=record_key,
            cleaned=cleaned,
            flags=flags,
            log_entries=log_entries,
        )


def _fmt(value: float | None) -> str:
    return "null" if value is None else f"{value:.2f}"


def _flag_details(trip: CleanedTripRecord) -> str:
    return (
        f"pickup={format_timestamp(trip.pickup_ts)} distance={_fmt(trip.trip_distance)} "
        f"duration_min={_fmt(trip.duration_min)} speed_mph={_fmt(trip.avg_speed_mph)} "
        f"fare_per_mile={_fmt(trip.fare_per_mile)} tip_pct={_fmt(trip.tip_percentage)}"
    )
