"""Calendar date parsing: strict ISO first, then a lenient fallback."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

INVALID_DATE_LABEL = "Invalid Date"


def parse_iso_date(value: str | None) -> Optional[date]:
    """Strict stage: ``YYYY-MM-DD`` or a full ISO 8601 datetime.

    A datetime keeps its calendar date as written; no timezone shift is
    applied, so ``2024-07-01T23:30:00-05:00`` stays on the 1st.
    """
    if not value:
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        # fromisoformat only accepts a trailing "Z" from 3.11 on
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def parse_lenient_date(value: str | None) -> Optional[date]:
    """Lenient stage: anything ``dateutil`` understands (``July 1, 2024``, ``01/07/24``...)."""
    if not value or not value.strip():
        return None
    try:
        return dateutil_parser.parse(value.strip()).date()
    except (ValueError, OverflowError, TypeError):
        return None


def parse_calendar_date(value: str | None) -> Optional[date]:
    """Run both stages in order and log each fall-through."""
    parsed = parse_iso_date(value)
    if parsed is not None:
        return parsed
    logger.debug("Strict ISO parse failed for %r, trying lenient parse", value)

    parsed = parse_lenient_date(value)
    if parsed is None:
        logger.debug("Lenient parse failed for %r", value)
    return parsed


def format_display_date(value: str | None) -> str:
    """Render a stored date as ``Jul 1, 2024`` or ``Invalid Date``."""
    parsed = parse_calendar_date(value)
    if parsed is None:
        return INVALID_DATE_LABEL
    return f"{parsed:%b} {parsed.day}, {parsed.year}"
