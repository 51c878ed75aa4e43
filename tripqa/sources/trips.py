"""Locate and stream raw trip files (CSV or Parquet)."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterator

import pyarrow as pa
import pyarrow.parquet as pq

from tripqa.common.errors import SourceError

PARQUET_READ_BATCH_ROWS = 10_000


def find_trip_files(datasets_dir: Path, globs: list[str]) -> list[Path]:
    if not datasets_dir.exists():
        raise SourceError(f"Missing datasets directory: {datasets_dir}")
    found: set[Path] = set()
    for pattern in globs:
        found.update(path for path in datasets_dir.glob(pattern) if path.is_file())
    return sorted(found, key=lambda p: p.as_posix())


def check_trip_file(path: Path) -> None:
    """Fail before any write if a trip file cannot be opened."""
    if not path.exists():
        raise SourceError(f"Missing trip file: {path}")
    try:
        if path.suffix.lower() == ".parquet":
            pq.ParquetFile(path).metadata
        else:
            with path.open("r", encoding="utf-8-sig", newline="") as f:
                header = next(csv.reader(f), None)
            if not header:
                raise SourceError(f"Trip file has no header: {path}")
    except SourceError:
        raise
    except Exception as exc:
        raise SourceError(f"Unreadable trip file {path}: {exc}") from exc


def iter_trip_rows(path: Path) -> Iterator[dict]:
    """Yield raw rows one at a time, in file order.

    Undecodable bytes in a CSV become U+FFFD so the row reaches the quality
    engine as an unparseable field. Read failures past the header surface as
    ``SourceError``.
    """
    try:
        if path.suffix.lower() == ".parquet":
            parquet_file = pq.ParquetFile(path)
            for batch in parquet_file.iter_batches(batch_size=PARQUET_READ_BATCH_ROWS):
                yield from batch.to_pylist()
            return

        with path.open("r", encoding="utf-8-sig", errors="replace", newline="") as f:
            yield from csv.DictReader(f)
    except (OSError, ValueError, csv.Error, pa.ArrowException) as exc:
        raise SourceError(f"Failed reading trip file {path}: {exc}") from exc
