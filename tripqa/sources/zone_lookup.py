"""Read the TLC zone lookup CSV."""

from __future__ import annotations

import csv
from pathlib import Path

from tripqa.common.errors import SourceError


def read_zone_lookup_csv(path: Path) -> list[dict]:
    if not path.exists():
        raise SourceError(f"Missing zone lookup file: {path}")
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as f:
            reader = csv.DictReader(f)
            if not reader.fieldnames:
                raise SourceError(f"Zone lookup file has no header: {path}")
            return [dict(row) for row in reader]
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise SourceError(f"Unreadable zone lookup file {path}: {exc}") from exc
