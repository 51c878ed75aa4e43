"""Run and batch identifier helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def generate_run_id() -> str:
    now = datetime.now(tz=timezone.utc)
    return now.strftime("run-%Y%m%dT%H%M%S%fZ")


def batch_name(batch_no: int) -> str:
    # Zero padded so lexical order matches flush order.
    return f"batch-{batch_no:06d}"
