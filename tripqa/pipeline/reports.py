"""Run report aggregation."""

from __future__ import annotations

from pathlib import Path

from tripqa.common.fs import write_json
from tripqa.common.models import RunCounters


def _status(counters: RunCounters) -> str:
    if counters.total_raw == 0:
        return "empty"
    if counters.clean == 0:
        return "error"
    if counters.excluded > 0 or counters.flagged > 0:
        return "partial"
    return "success"


def build_run_summary(
    *,
    run_id: str,
    zone_summary: dict,
    counters: RunCounters,
    trip_files: list[dict],
    batches_written: int,
    chunk_size: int,
) -> dict:
    return {
        "run_id": run_id,
        "status": _status(counters),
        "zones": zone_summary,
        "trips": {
            "total_raw": counters.total_raw,
            "excluded": counters.excluded,
            "duplicates": counters.duplicates,
            "flagged": counters.flagged,
            "clean": counters.clean,
        },
        "diagnostics": {
            "flag_count": counters.flag_count,
            "field_issues": counters.field_issues,
            "excluded_non_duplicate": counters.excluded - counters.duplicates,
        },
        "trip_files": trip_files,
        "batches_written": batches_written,
        "chunk_size": chunk_size,
    }


def write_run_summary(data_dir: Path, payload: dict) -> Path:
    summary_path = data_dir / "out" / "reports" / "run_summary.json"
    write_json(summary_path, payload)
    return summary_path


def write_top_zones_report(data_dir: Path, *, run_id: str, metric: str, k: int, rows: list[dict]) -> Path:
    report_path = data_dir / "out" / "reports" / f"top_zones_{metric}.json"
    write_json(
        report_path,
        {
            "run_id": run_id,
            "metric": metric,
            "k": k,
            "rows": rows,
        },
    )
    return report_path
