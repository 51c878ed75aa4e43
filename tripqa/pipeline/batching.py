"""Chunked, atomic persistence of pipeline outputs."""

from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Protocol

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from tripqa.common.errors import FlushError
from tripqa.common.fs import ensure_dir, publish_dir, read_jsonl, write_jsonl
from tripqa.common.ids import batch_name
from tripqa.common.logging import log_event
from tripqa.common.models import (
    BoroughRecord,
    CleanedTripRecord,
    FlaggedTripRecord,
    QualityLogEntry,
    ZoneRecord,
)
from tripqa.pipeline.trip_quality import TripOutcome


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    multiplier: float = 0.2
    max_wait: float = 5.0


class BatchSink(Protocol):
    def write_zones(
        self,
        zones: list[ZoneRecord],
        boroughs: list[BoroughRecord],
        issues: list[QualityLogEntry],
    ) -> None: ...

    def write_batch(
        self,
        batch_no: int,
        cleaned: list[CleanedTripRecord],
        flagged: list[FlaggedTripRecord],
        log_entries: list[QualityLogEntry],
    ) -> None: ...


class FileBatchSink:
    """Writes each unit into a staging directory and renames it into place.

    A reader never sees half a batch: either the batch directory exists with
    all three files, or it does not exist.

    Between ``begin_run`` and ``commit`` every unit lands in a run directory
    under ``.staging``. ``commit`` swaps it in for the previous run's outputs;
    ``abort`` discards it and leaves those outputs untouched.
    """

    def __init__(self, out_dir: Path) -> None:
        self.out_dir = out_dir
        self.zones_dir = out_dir / "zones"
        self.batches_dir = out_dir / "batches"
        self.staging_dir = out_dir / ".staging"
        self._run_dir: Path | None = None

    def _target(self, name: str) -> Path:
        return (self._run_dir or self.out_dir) / name

    def begin_run(self) -> None:
        self.abort()
        self._run_dir = self.staging_dir / f"run-{uuid.uuid4().hex}"
        ensure_dir(self._run_dir)

    def commit(self) -> None:
        if self._run_dir is None:
            return
        for name in ("zones", "batches"):
            staged = self._run_dir / name
            final = self.out_dir / name
            if staged.exists():
                publish_dir(staged, final)
            elif final.exists():
                shutil.rmtree(final)
        self.abort()

    def abort(self) -> None:
        if self._run_dir is not None:
            shutil.rmtree(self._run_dir, ignore_errors=True)
        self._run_dir = None

    def _stage(self) -> Path:
        staging = self.staging_dir / uuid.uuid4().hex
        ensure_dir(staging)
        return staging

    def write_zones(
        self,
        zones: list[ZoneRecord],
        boroughs: list[BoroughRecord],
        issues: list[QualityLogEntry],
    ) -> None:
        staging = self._stage()
        try:
            write_jsonl(staging / "zones.jsonl", (zone.to_dict() for zone in zones))
            write_jsonl(staging / "boroughs.jsonl", (borough.to_dict() for borough in boroughs))
            write_jsonl(staging / "quality_log.jsonl", (issue.to_dict() for issue in issues))
            publish_dir(staging, self._target("zones"))
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def write_batch(
        self,
        batch_no: int,
        cleaned: list[CleanedTripRecord],
        flagged: list[FlaggedTripRecord],
        log_entries: list[QualityLogEntry],
    ) -> None:
        staging = self._stage()
        try:
            write_jsonl(staging / "cleaned.jsonl", (row.to_dict() for row in cleaned))
            write_jsonl(staging / "flagged.jsonl", (row.to_dict() for row in flagged))
            write_jsonl(staging / "quality_log.jsonl", (row.to_dict() for row in log_entries))
            publish_dir(staging, self._target("batches") / batch_name(batch_no))
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def batch_dirs(self) -> list[Path]:
        if not self.batches_dir.exists():
            return []
        return sorted(path for path in self.batches_dir.iterdir() if path.is_dir())

    def iter_rows(self, kind: str) -> Iterator[dict]:
        for path in self.batch_dirs():
            yield from read_jsonl(path / f"{kind}.jsonl")

    def read_zones(self) -> list[dict]:
        path = self.zones_dir / "zones.jsonl"
        return read_jsonl(path) if path.exists() else []


class BatchWriter:
    """Accumulate per-row outcomes and flush every ``chunk_size`` rows."""

    def __init__(
        self,
        sink: BatchSink,
        chunk_size: int,
        *,
        retry_config: RetryConfig | None = None,
        logger: logging.Logger | None = None,
        run_id: str | None = None,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be a positive integer")
        self.sink = sink
        self.chunk_size = chunk_size
        self.retry_config = retry_config or RetryConfig()
        self.logger = logger
        self.run_id = run_id
        self.batches_written = 0
        self._pending_rows = 0
        self._cleaned: list[CleanedTripRecord] = []
        self._flagged: list[FlaggedTripRecord] = []
        self._log: list[QualityLogEntry] = []

    @property
    def pending_rows(self) -> int:
        return self._pending_rows

    def add(self, outcome: TripOutcome) -> None:
        if outcome.cleaned is not None:
            self._cleaned.append(outcome.cleaned)
        self._flagged.extend(outcome.flags)
        self._log.extend(outcome.log_entries)
        self._pending_rows += 1
        if self._pending_rows >= self.chunk_size:
            self.flush()

    def add_log_entries(self, entries: Iterable[QualityLogEntry]) -> None:
        self._log.extend(entries)

    def flush(self) -> None:
        if not (self._pending_rows or self._cleaned or self._flagged or self._log):
            return

        batch_no = self.batches_written + 1
        cfg = self.retry_config

        @retry(
            stop=stop_after_attempt(cfg.max_attempts),
            wait=wait_exponential_jitter(initial=cfg.multiplier, max=cfg.max_wait, jitter=cfg.multiplier),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )
        def _write() -> None:
            self.sink.write_batch(batch_no, self._cleaned, self._flagged, self._log)

        try:
            _write()
        except OSError as exc:
            raise FlushError(f"Batch {batch_no} could not be persisted: {exc}") from exc

        if self.logger is not None:
            log_event(
                self.logger,
                f"flushed batch {batch_no}",
                run_id=self.run_id,
                stage="ingest",
                event="BATCH_FLUSH",
                status="ok",
                batch=batch_no,
                rows_in=self._pending_rows,
                rows_out=len(self._cleaned),
            )

        self.batches_written = batch_no
        self._pending_rows = 0
        self._cleaned = []
        self._flagged = []
        self._log = []

    def close(self) -> None:
        self.flush()
