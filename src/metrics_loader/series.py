"""Text format helpers for persisted clone metric series.

This module provides utilities for:
- Rendering the fixed header row and one row per ``MetricRecord``.
- Formatting and parsing the watermark stored in object metadata.
- Validating records before they are merged.
- Re-deriving the effective watermark from persisted content.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import date, datetime
from typing import Iterable, List, Optional

from .errors import MalformedRecordError
from .models import MetricRecord

logger = logging.getLogger(__name__)

HEADER_COLUMNS = ("Date", "Total clones", "Total unique clones")


def _write_rows(rows: Iterable[Iterable[object]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def render_header() -> str:
    """Return the newline-terminated header row, e.g. ``"Date","Total clones",...``."""
    return _write_rows([HEADER_COLUMNS])


def render_row(record: MetricRecord) -> str:
    """Render one record as a newline-terminated row: quoted date, total, unique."""
    return _write_rows([(record.date.isoformat(), record.total_count, record.unique_count)])


def render_rows(records: Iterable[MetricRecord]) -> str:
    """Render records in the given order, one row per record."""
    return "".join(render_row(record) for record in records)


def format_watermark(value: date) -> str:
    """Format a watermark date for object metadata (ISO-8601, sortable)."""
    return value.isoformat()


def parse_watermark(value: Optional[str]) -> Optional[date]:
    """Parse a watermark from object metadata.

    Returns ``None`` for missing or unparseable values so callers fall back to
    re-deriving the watermark from the series content.
    """
    if not value:
        return None

    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        logger.warning("Ignoring unparseable watermark metadata value %r", value)
        return None


def parse_record_date(value: object) -> date:
    """Parse an ISO-8601 date or timestamp string, truncating it to a calendar day.

    Raises:
        MalformedRecordError: If ``value`` is not a parseable ISO-8601 string.
    """
    if not isinstance(value, str) or not value.strip():
        raise MalformedRecordError(f"Invalid metric date: {value!r}")

    text = value.strip()
    normalized = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return datetime.fromisoformat(normalized).date()
    except ValueError as exc:
        raise MalformedRecordError(f"Invalid metric date: {value!r}") from exc


def _is_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_record(record: MetricRecord) -> MetricRecord:
    """Check a record's date type and count ranges.

    Raises:
        MalformedRecordError: If the date is not a ``date`` or a count is not a
            non-negative integer.
    """
    if not isinstance(record.date, date) or isinstance(record.date, datetime):
        raise MalformedRecordError(f"Invalid metric date: {record.date!r}")
    if not _is_count(record.total_count):
        raise MalformedRecordError(
            f"Invalid total count {record.total_count!r} for {record.date}"
        )
    if not _is_count(record.unique_count):
        raise MalformedRecordError(
            f"Invalid unique count {record.unique_count!r} for {record.date}"
        )
    return record


def parse_series_dates(content: str) -> List[date]:
    """Return the dates of all data rows in persisted series content.

    The header row and rows whose first cell is not a date are skipped.
    """
    dates: List[date] = []
    for row in csv.reader(io.StringIO(content)):
        if not row:
            continue
        try:
            dates.append(date.fromisoformat(row[0].strip()[:10]))
        except ValueError:
            continue
    return dates


def reconcile_watermark(content: str, watermark: Optional[date]) -> Optional[date]:
    """Return the effective watermark for an existing series.

    The newest row date in the content is authoritative. Metadata that is
    missing or behind the content would append rows twice; metadata ahead of
    the content would skip the days in between for good. Both are replaced.
    Content without data rows has no watermark.
    """
    content_dates = parse_series_dates(content)
    newest_row = max(content_dates) if content_dates else None

    if newest_row != watermark:
        logger.warning(
            "Re-deriving watermark from series content",
            extra={"metadata_watermark": watermark, "content_watermark": newest_row},
        )

    return newest_row
