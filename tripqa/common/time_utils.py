"""UTC-focused helpers for run metadata and trip timestamps."""

from __future__ import annotations

from datetime import datetime, timezone

CANONICAL_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Tried in order after ISO parsing fails.
ACCEPTED_TIMESTAMP_FORMATS = (
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%Y/%m/%d %H:%M:%S",
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits.
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S.%f",
)


def utc_timestamp_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


def _canonical(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0)


def parse_timestamp(value) -> datetime | None:
    """Parse a trip timestamp into a naive UTC datetime at whole seconds.

    Returns None for anything that cannot be read; callers decide whether a
    missing timestamp is fatal for the row.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _canonical(value)

    text = str(value).strip()
    if not text:
        return None

    iso_text = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return _canonical(datetime.fromisoformat(iso_text))
    except ValueError:
        pass

    for fmt in ACCEPTED_TIMESTAMP_FORMATS:
        try:
            return _canonical(datetime.strptime(text, fmt))
        except ValueError:
            continue
    return None


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.strftime(CANONICAL_TIMESTAMP_FORMAT)
