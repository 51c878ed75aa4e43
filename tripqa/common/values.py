"""Tolerant value readers shared by the zone and trip stages."""

from __future__ import annotations

import math
import re
from typing import Any, Mapping, Sequence

_DIGITS_RE = re.compile(r"^\d+$")


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def safe_float(value: Any) -> float | None:
    if is_blank(value):
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def safe_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    number = safe_float(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def clean_upper_text(value: Any) -> str | None:
    text = clean_text(value)
    return text.upper() if text else None


def parse_location_id(value: Any) -> int | None:
    """Location ids are positive integers written as plain digits."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value if value > 0 else None
    text = clean_text(value)
    if text is None or not _DIGITS_RE.match(text):
        return None
    parsed = int(text)
    return parsed if parsed > 0 else None


def pick_by_alias(row: Mapping[str, Any], aliases: Sequence[str]) -> tuple[str | None, Any]:
    """Return the first column present in ``row`` for the ordered aliases.

    Matching is case-insensitive. Returns ``(None, None)`` when no alias is
    present.
    """
    lowered = {str(key).strip().lower(): key for key in row}
    for alias in aliases:
        key = lowered.get(alias.lower())
        if key is not None:
            return key, row[key]
    return None, None
