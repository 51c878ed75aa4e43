"""Run orchestration: zones, then trips, then batches, then the summary."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from tripqa.common.config_loader import ConfigBundle
from tripqa.common.constants import ACTION_RETAINED
from tripqa.common.logging import log_event
from tripqa.common.models import QualityLogEntry
from tripqa.pipeline.anomalies import QualityRules
from tripqa.pipeline.batching import BatchWriter, FileBatchSink, RetryConfig
from tripqa.pipeline.ranking import aggregate_zone_metrics, top_k
from tripqa.pipeline.reports import build_run_summary, write_run_summary, write_top_zones_report
from tripqa.pipeline.trip_quality import RunContext, TripQualityEngine
from tripqa.pipeline.zones import ZoneReconciliation, build_borough_dimension, reconcile_zones
from tripqa.sources.trips import check_trip_file, find_trip_files, iter_trip_rows
from tripqa.sources.zone_geometry import read_zone_geometry
from tripqa.sources.zone_lookup import read_zone_lookup_csv


@dataclass(frozen=True)
class RunPaths:
    datasets_dir: Path
    data_dir: Path

    @property
    def out_dir(self) -> Path:
        return self.data_dir / "out"


def sink_for(paths: RunPaths) -> FileBatchSink:
    return FileBatchSink(paths.out_dir)


def load_zone_dimension(bundle: ConfigBundle, paths: RunPaths) -> ZoneReconciliation:
    sources = bundle.pipeline["sources"]
    lookup_rows = read_zone_lookup_csv(paths.datasets_dir / sources["zone_lookup"])
    geometry_rows = read_zone_geometry(paths.datasets_dir / sources["zone_geometry"])
    return reconcile_zones(
        lookup_rows,
        geometry_rows,
        geometry_epsg=int(bundle.pipeline["zones"]["geometry_epsg"]),
    )


def run_zones(bundle: ConfigBundle, paths: RunPaths, run_id: str, logger: logging.Logger) -> ZoneReconciliation:
    reconciliation = load_zone_dimension(bundle, paths)
    sink_for(paths).write_zones(
        reconciliation.zones,
        build_borough_dimension(reconciliation.zones),
        reconciliation.issues,
    )
    log_event(
        logger,
        "zone dimension written",
        run_id=run_id,
        stage="zones",
        event="ZONES_WRITTEN",
        status="ok",
        rows_in=reconciliation.summary["lookup_rows_input"],
        rows_out=reconciliation.summary["zones_output"],
    )
    return reconciliation


def _process_trips(
    bundle: ConfigBundle,
    paths: RunPaths,
    run_id: str,
    logger: logging.Logger,
    sink: FileBatchSink,
    reconciliation: ZoneReconciliation,
    trip_files: list[Path],
) -> tuple[TripQualityEngine, BatchWriter, list[dict]]:
    ingest_cfg = bundle.pipeline["ingest"]
    sink.write_zones(
        reconciliation.zones,
        build_borough_dimension(reconciliation.zones),
        reconciliation.issues,
    )

    context = RunContext(run_id)
    engine = TripQualityEngine(
        reconciliation.zone_index(),
        context,
        QualityRules.from_config(bundle.quality_rules),
    )
    writer = BatchWriter(
        sink,
        int(ingest_cfg["chunk_size"]),
        retry_config=RetryConfig(max_attempts=int(ingest_cfg["flush_max_attempts"])),
        logger=logger,
        run_id=run_id,
    )

    file_stats: list[dict] = []
    if not trip_files:
        writer.add_log_entries(
            [
                QualityLogEntry(
                    dataset="trips",
                    record_key=str(paths.datasets_dir),
                    issue_type="NO_TRIP_FILES",
                    action=ACTION_RETAINED,
                    details="No trip files matched the configured globs",
                )
            ]
        )

    for path in trip_files:
        source_file = path.relative_to(paths.datasets_dir).as_posix()
        started = time.monotonic()
        rows = 0
        for rows, raw_row in enumerate(iter_trip_rows(path), start=1):
            writer.add(engine.process(raw_row, source_file, rows))
        file_stats.append({"source_file": source_file, "rows": rows})
        log_event(
            logger,
            f"processed {source_file}",
            run_id=run_id,
            stage="ingest",
            dataset=source_file,
            event="FILE_DONE",
            status="ok",
            rows_in=rows,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    writer.close()
    return engine, writer, file_stats


def run_ingest(bundle: ConfigBundle, paths: RunPaths, run_id: str, logger: logging.Logger) -> dict:
    """Reconcile zones and run every trip file through the quality engine.

    All reference data and trip files are read or opened before the first
    write, so a missing or unreadable input leaves previous outputs intact.
    Units are staged for the whole run and only replace the previous outputs
    once every trip file has been processed and flushed.
    """
    reconciliation = load_zone_dimension(bundle, paths)
    trip_files = find_trip_files(paths.datasets_dir, bundle.pipeline["sources"]["trip_globs"])
    for path in trip_files:
        check_trip_file(path)

    sink = sink_for(paths)
    sink.begin_run()
    try:
        engine, writer, file_stats = _process_trips(bundle, paths, run_id, logger, sink, reconciliation, trip_files)
    except BaseException:
        sink.abort()
        raise
    sink.commit()

    summary = build_run_summary(
        run_id=run_id,
        zone_summary=reconciliation.summary,
        counters=engine.counters,
        trip_files=file_stats,
        batches_written=writer.batches_written,
        chunk_size=writer.chunk_size,
    )
    write_run_summary(paths.data_dir, summary)
    log_event(
        logger,
        "ingest complete",
        run_id=run_id,
        stage="ingest",
        event="RUN_COUNTS",
        status=summary["status"],
        rows_in=engine.counters.total_raw,
        rows_out=engine.counters.clean,
    )
    return summary


def run_top_zones(
    bundle: ConfigBundle,
    paths: RunPaths,
    run_id: str,
    logger: logging.Logger,
    *,
    metric: str,
    k: int | None = None,
) -> list[dict]:
    ranking_cfg = bundle.pipeline["ranking"]
    limit = min(int(k if k is not None else ranking_cfg["default_k"]), int(ranking_cfg["max_k"]))
    sink = sink_for(paths)
    candidates = aggregate_zone_metrics(sink.iter_rows("cleaned"))
    rows = top_k(candidates, metric, limit)
    write_top_zones_report(paths.data_dir, run_id=run_id, metric=metric, k=limit, rows=rows)
    log_event(
        logger,
        f"top zones by {metric}",
        run_id=run_id,
        stage="top-zones",
        event="TOP_ZONES",
        status="ok",
        rows_in=len(candidates),
        rows_out=len(rows),
    )
    return rows
