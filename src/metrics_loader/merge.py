"""Incremental merge of freshly fetched clone metrics into a persisted series.

The GitHub traffic API returns a rolling window of daily records, so every
fetch overlaps with what is already stored. This module turns such a batch
into the rows that still need appending:

- Records dated on or before the stored watermark are dropped.
- Duplicate dates within the batch keep the last occurrence.
- Remaining records are appended in ascending date order.

Existing content is never re-parsed or rewritten. The merge is pure; all I/O
is left to the caller.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Optional, Sequence

from .models import MergeMode, MergeResult, MetricRecord
from .series import render_header, render_rows, validate_record

logger = logging.getLogger(__name__)


def select_new_records(
    fresh_batch: Sequence[MetricRecord],
    watermark: Optional[date],
) -> List[MetricRecord]:
    """Return records strictly newer than ``watermark``, deduplicated and sorted.

    When a date occurs more than once, the record that appears last in
    ``fresh_batch`` is kept.
    """
    latest_by_date: Dict[date, MetricRecord] = {}
    for record in fresh_batch:
        if watermark is not None and record.date <= watermark:
            continue
        latest_by_date[record.date] = record

    return [latest_by_date[day] for day in sorted(latest_by_date)]


def merge_series(
    existing_content: Optional[str],
    existing_watermark: Optional[date],
    fresh_batch: Sequence[MetricRecord],
) -> MergeResult:
    """Merge a fresh batch into an existing series.

    Args:
        existing_content: Persisted series text, or ``None`` if no series exists.
        existing_watermark: Newest date already persisted, or ``None``.
        fresh_batch: Records returned by one fetch, in any order.

    Returns:
        A ``MergeResult``. ``NOOP`` means nothing must be written. ``CREATED``
        carries header plus rows, and ``UPDATED`` carries the existing content
        with the new rows appended.

    Raises:
        MalformedRecordError: If any record in ``fresh_batch`` is invalid. No
            partial result is produced in that case.
    """
    if not fresh_batch:
        return MergeResult.noop()

    for record in fresh_batch:
        validate_record(record)

    new_records = select_new_records(fresh_batch, existing_watermark)
    if not new_records:
        logger.debug(
            "No records newer than watermark",
            extra={"watermark": existing_watermark, "batch_size": len(fresh_batch)},
        )
        return MergeResult.noop()

    new_watermark = new_records[-1].date
    appended = render_rows(new_records)

    if existing_content is None:
        content = render_header() + appended
        mode = MergeMode.CREATED
    elif not existing_content:
        # An existing but empty object still needs its header.
        content = render_header() + appended
        mode = MergeMode.UPDATED
    else:
        separator = "" if existing_content.endswith("\n") else "\n"
        content = existing_content + separator + appended
        mode = MergeMode.UPDATED

    logger.debug(
        "Merged fresh batch",
        extra={
            "mode": mode.value,
            "batch_size": len(fresh_batch),
            "rows_appended": len(new_records),
            "old_watermark": existing_watermark,
            "new_watermark": new_watermark,
        },
    )

    return MergeResult(
        mode=mode,
        content=content,
        watermark=new_watermark,
        rows_appended=len(new_records),
    )
