"""CLI entrypoint for the NYC trip quality pipeline."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from tripqa.common.config_loader import apply_cli_overrides, load_all_configs
from tripqa.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS, STAGES
from tripqa.common.errors import PipelineError
from tripqa.common.ids import generate_run_id
from tripqa.common.logging import build_logger, close_logger, log_event
from tripqa.pipeline.ingest import RunPaths, run_ingest, run_top_zones, run_zones
from tripqa.pipeline.ranking import METRIC_COLUMNS


def _positive_int(value: str) -> int:
    parsed = int(value)
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return parsed


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=[*STAGES, "all"])
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--datasets-dir", default="./datasets")
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--chunk-size", type=_positive_int, default=None)
    parser.add_argument("--metric", default="revenue_per_minute", choices=sorted(METRIC_COLUMNS))
    parser.add_argument("--k", type=_positive_int, default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    return parser.parse_args(argv)


def execute_stage(stage: str, bundle, paths: RunPaths, run_id: str, logger, args: argparse.Namespace) -> str:
    if stage == "zones":
        run_zones(bundle, paths, run_id, logger)
        return "success"
    if stage == "ingest":
        summary = run_ingest(bundle, paths, run_id, logger)
        return summary["status"]
    if stage == "top-zones":
        run_top_zones(bundle, paths, run_id, logger, metric=args.metric, k=args.k)
        return "success"
    raise ValueError(f"Unknown stage: {stage}")


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    data_dir = Path(args.data_dir)
    paths = RunPaths(datasets_dir=Path(args.datasets_dir), data_dir=data_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    try:
        bundle = load_all_configs(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
        bundle = apply_cli_overrides(bundle, chunk_size=args.chunk_size)
    except PipelineError as exc:
        log_event(logger, f"config failed: {exc}", run_id=run_id, event="CONFIG_FAIL", status="error", error_code=exc.error_code)
        close_logger(logger)
        return EXIT_HARD_FAIL

    # "all" runs ingest (which reconciles zones itself) and then ranking.
    stages = ("ingest", "top-zones") if args.command == "all" else (args.command,)
    had_partial = False

    try:
        for stage in stages:
            log_event(logger, "stage start", run_id=run_id, stage=stage, event="STAGE_START", status="ok")
            try:
                status = execute_stage(stage, bundle, paths, run_id, logger, args)
            except PipelineError as exc:
                log_event(
                    logger,
                    f"stage failed: {exc}",
                    run_id=run_id,
                    stage=stage,
                    event="STAGE_FAIL",
                    status="error",
                    error_code=exc.error_code,
                )
                return EXIT_HARD_FAIL
            except Exception as exc:
                log_event(
                    logger,
                    f"unexpected failure: {type(exc).__name__}: {exc}",
                    run_id=run_id,
                    stage=stage,
                    event="STAGE_FAIL",
                    status="error",
                    error_code="UNEXPECTED_ERROR",
                )
                return EXIT_HARD_FAIL
            if status in ("error", "empty"):
                had_partial = True
            log_event(logger, "stage end", run_id=run_id, stage=stage, event="STAGE_END", status=status)
    finally:
        close_logger(logger)

    if had_partial:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        return run_command(args)
    except PipelineError:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
