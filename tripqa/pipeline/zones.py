"""Reconcile the zone lookup and zone geometry metadata into one dimension."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from tripqa.common.constants import (
    ACTION_EXCLUDED,
    ACTION_RETAINED,
    ACTION_RETAINED_NON_MAPPABLE,
    GEOMETRY_DATASET,
    LOOKUP_DATASET,
    MAPPABLE,
    MISSING_GEOMETRY,
    SPECIAL_BOROUGHS,
)
from tripqa.common.models import BoroughRecord, QualityLogEntry, ZoneRecord
from tripqa.common.values import clean_text, parse_location_id, pick_by_alias
from tripqa.pipeline.coordinates import resolve_zone_centroid

LOCATION_ID_ALIASES = ("LocationID", "location_id", "locationid")
LOOKUP_FIELD_ALIASES = {
    "borough": ("Borough", "borough"),
    "zone": ("Zone", "zone"),
    "service_zone": ("service_zone", "ServiceZone"),
}


@dataclass
class ZoneReconciliation:
    zones: list[ZoneRecord]
    issues: list[QualityLogEntry]
    summary: dict[str, Any] = field(default_factory=dict)

    def zone_index(self) -> dict[int, ZoneRecord]:
        return {zone.location_id: zone for zone in self.zones}


def _trim_row(row: Mapping[str, Any]) -> tuple[dict[str, Any], bool]:
    trimmed: dict[str, Any] = {}
    changed = False
    for key, value in row.items():
        if isinstance(value, str):
            stripped = value.strip()
            if stripped != value:
                changed = True
            trimmed[key] = stripped
        else:
            trimmed[key] = value
    return trimmed, changed


def _issue(dataset: str, record_key: str, issue_type: str, action: str, details: str) -> QualityLogEntry:
    return QualityLogEntry(
        dataset=dataset,
        record_key=record_key,
        issue_type=issue_type,
        action=action,
        details=details,
    )


def _clean_lookup_rows(lookup_rows: Iterable[Mapping[str, Any]], issues: list[QualityLogEntry]) -> tuple[list[dict], int]:
    seen_ids: set[int] = set()
    kept: list[dict] = []
    total = 0

    for idx, raw in enumerate(lookup_rows, start=1):
        total += 1
        row, _changed = _trim_row(raw)
        record_key = f"row:{idx}"

        _key, id_value = pick_by_alias(row, LOCATION_ID_ALIASES)
        location_id = parse_location_id(id_value)
        if location_id is None:
            issues.append(
                _issue(LOOKUP_DATASET, record_key, "INVALID_LOCATION_ID", ACTION_EXCLUDED, f"LocationID '{id_value}' is not a positive integer")
            )
            continue

        values = {name: clean_text(pick_by_alias(row, aliases)[1]) for name, aliases in LOOKUP_FIELD_ALIASES.items()}
        blank = sorted(name for name, value in values.items() if value is None)
        if blank:
            issues.append(
                _issue(LOOKUP_DATASET, record_key, "BLANK_TEXT_VALUE", ACTION_EXCLUDED, f"Blank required column(s): {', '.join(blank)}")
            )
            continue

        if location_id in seen_ids:
            issues.append(
                _issue(
                    LOOKUP_DATASET,
                    str(location_id),
                    "DUPLICATE_LOCATION_ID",
                    ACTION_EXCLUDED,
                    f"Duplicate location id at {record_key}, first row kept",
                )
            )
            continue

        seen_ids.add(location_id)
        kept.append({"location_id": location_id, **values})

    return kept, total


def _clean_geometry_rows(
    geometry_rows: Iterable[Mapping[str, Any]], issues: list[QualityLogEntry]
) -> tuple[dict[int, list[dict]], int]:
    by_id: dict[int, list[dict]] = defaultdict(list)
    total = 0

    for idx, raw in enumerate(geometry_rows, start=1):
        total += 1
        row, changed = _trim_row(raw)
        record_key = f"row:{idx}"

        if changed:
            issues.append(
                _issue(GEOMETRY_DATASET, record_key, "FIXED_WIDTH_PADDING", ACTION_RETAINED, "Trimmed fixed-width whitespace")
            )

        _key, id_value = pick_by_alias(row, LOCATION_ID_ALIASES)
        location_id = parse_location_id(id_value)
        if location_id is None:
            issues.append(
                _issue(GEOMETRY_DATASET, record_key, "INVALID_LOCATION_ID", ACTION_EXCLUDED, f"LocationID '{id_value}' is not a positive integer")
            )
            continue

        by_id[location_id].append(row)

    return by_id, total


def reconcile_zones(
    lookup_rows: Iterable[Mapping[str, Any]],
    geometry_rows: Iterable[Mapping[str, Any]],
    *,
    geometry_epsg: int = 2263,
) -> ZoneReconciliation:
    issues: list[QualityLogEntry] = []

    lookup, lookup_total = _clean_lookup_rows(lookup_rows, issues)
    geometry_by_id, geometry_total = _clean_geometry_rows(geometry_rows, issues)
    geometry_counts = Counter({location_id: len(rows) for location_id, rows in geometry_by_id.items()})

    duplicates_removed = 0
    for location_id in sorted(geometry_counts):
        count = geometry_counts[location_id]
        if count > 1:
            removed = count - 1
            duplicates_removed += removed
            issues.append(
                _issue(
                    GEOMETRY_DATASET,
                    str(location_id),
                    "DUPLICATE_SHAPE_METADATA",
                    ACTION_EXCLUDED,
                    f"Removed {removed} duplicate record(s), kept one",
                )
            )

    lookup_ids = {row["location_id"] for row in lookup}
    zones: list[ZoneRecord] = []
    missing_geometry_ids: list[int] = []

    for row in sorted(lookup, key=lambda r: r["location_id"]):
        location_id = row["location_id"]
        count = geometry_counts.get(location_id, 0)
        has_geometry = count > 0
        centroid_lat, centroid_lng = (None, None)
        if has_geometry:
            centroid_lat, centroid_lng = resolve_zone_centroid(geometry_by_id[location_id], geometry_epsg)
        else:
            missing_geometry_ids.append(location_id)
            issues.append(
                _issue(
                    GEOMETRY_DATASET,
                    str(location_id),
                    "MISSING_GEOMETRY",
                    ACTION_RETAINED_NON_MAPPABLE,
                    "Lookup id exists but has no geometry metadata",
                )
            )

        zones.append(
            ZoneRecord(
                location_id=location_id,
                borough=row["borough"],
                zone=row["zone"],
                service_zone=row["service_zone"],
                has_geometry=has_geometry,
                geometry_record_count=count,
                map_status=MAPPABLE if has_geometry else MISSING_GEOMETRY,
                centroid_lat=centroid_lat,
                centroid_lng=centroid_lng,
            )
        )

    orphan_ids = sorted(set(geometry_counts) - lookup_ids)
    for location_id in orphan_ids:
        issues.append(
            _issue(
                GEOMETRY_DATASET,
                str(location_id),
                "ORPHAN_GEOMETRY",
                ACTION_EXCLUDED,
                "Geometry metadata has no matching lookup row",
            )
        )

    summary = {
        "lookup_rows_input": lookup_total,
        "lookup_rows_retained": len(lookup),
        "geometry_rows_input": geometry_total,
        "geometry_unique_location_ids": len(geometry_counts),
        "geometry_duplicate_records_removed": duplicates_removed,
        "missing_geometry_ids": missing_geometry_ids,
        "orphan_geometry_ids": orphan_ids,
        "zones_output": len(zones),
    }
    return ZoneReconciliation(zones=zones, issues=issues, summary=summary)


def build_borough_dimension(zones: Iterable[ZoneRecord]) -> list[BoroughRecord]:
    boroughs = sorted({zone.borough for zone in zones})
    return [
        BoroughRecord(
            borough=borough,
            borough_group="special" if borough in SPECIAL_BOROUGHS else "nyc_borough",
        )
        for borough in boroughs
    ]
