"""Zone ranking: per-zone candidate rows and bounded top-k selection."""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Any, Iterable, Mapping

from tripqa.common.topk import BoundedTopKSelector

# Public metric name -> column on a candidate row.
METRIC_COLUMNS = {
    "revenue_per_minute": "revenue_per_minute",
    "fare_per_mile": "fare_per_mile",
    "tip_percentage": "avg_tip_pct",
    "avg_speed_mph": "avg_speed_mph",
    "trip_count": "trip_count",
}

_AVERAGED = (
    ("revenue_per_minute", "revenue_per_minute"),
    ("fare_per_mile", "fare_per_mile"),
    ("tip_percentage", "avg_tip_pct"),
    ("avg_speed_mph", "avg_speed_mph"),
)


def metric_column(metric: str) -> str:
    try:
        return METRIC_COLUMNS[metric]
    except KeyError:
        known = ", ".join(sorted(METRIC_COLUMNS))
        raise ValueError(f"Unknown ranking metric {metric!r}; expected one of: {known}") from None


def top_k(candidate_rows: Iterable[Mapping[str, Any]], metric: str, k: int, *, max_k: int | None = None) -> list:
    """Return the ``k`` rows with the highest ``metric``, best first."""
    column = metric_column(metric)
    if max_k is not None:
        k = min(k, max_k)
    scored = (row for row in candidate_rows if row.get(column) is not None)
    selector = BoundedTopKSelector.from_iterable(scored, k, lambda row: row.get(column))
    return selector.get_descending()


def _get(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def aggregate_zone_metrics(cleaned_rows: Iterable[Any]) -> list[dict]:
    """Build one candidate row per pickup zone from cleaned trips.

    Accepts ``CleanedTripRecord`` objects or their dict form. Averages skip
    null values; a zone with no usable values for a metric gets None.
    """
    totals: dict[Any, dict[str, Any]] = defaultdict(
        lambda: {"trip_count": 0, **{f"{col}_sum": 0.0 for _src, col in _AVERAGED}, **{f"{col}_n": 0 for _src, col in _AVERAGED}}
    )
    labels: dict[Any, tuple[Any, Any]] = {}

    for row in cleaned_rows:
        location_id = _get(row, "pu_location_id")
        bucket = totals[location_id]
        bucket["trip_count"] += 1
        labels.setdefault(location_id, (_get(row, "pickup_borough"), _get(row, "pickup_zone")))
        for source, column in _AVERAGED:
            value = _get(row, source)
            if value is None:
                continue
            bucket[f"{column}_sum"] += float(value)
            bucket[f"{column}_n"] += 1

    candidates = []
    for location_id in sorted(totals, key=lambda v: (v is None, v)):
        bucket = totals[location_id]
        borough, zone = labels[location_id]
        candidate = {
            "location_id": location_id,
            "borough": borough,
            "zone": zone,
            "trip_count": bucket["trip_count"],
        }
        for _source, column in _AVERAGED:
            count = bucket[f"{column}_n"]
            average = None if count == 0 else bucket[f"{column}_sum"] / count
            candidate[column] = average if average is not None and math.isfinite(average) else None
        candidates.append(candidate)
    return candidates
