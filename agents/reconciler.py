"""Field Reconciler — turn untrusted extraction output into form state.

Never raises. Each field resolves to a typed ``FieldValue`` or to a
``FieldUnset`` carrying the warning shown to the user. Resolved values still go
through ``InvoiceDraft`` validation when the form is submitted; in particular a
negative amount is populated here and rejected there.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Optional

from invoices.dates import parse_iso_date, parse_lenient_date
from invoices.errors import DateParseWarning, FieldNeedsInputWarning
from invoices.models import FieldResult, FieldUnset, FieldValue, RawExtraction, RawField, ReconciledForm

logger = logging.getLogger(__name__)

# Currency symbols, codes, spaces and thousands separators
_AMOUNT_NOISE = re.compile(r"[^\d.\-]")


def reconcile_text(name: str, field: RawField) -> FieldResult:
    value = (field.raw or "").strip()
    if not value:
        return FieldUnset(FieldNeedsInputWarning(name, field.raw))
    return FieldValue(value)


def coerce_amount(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    text = _AMOUNT_NOISE.sub("", raw.strip())
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def reconcile_amount(field: RawField) -> FieldResult:
    value = coerce_amount(field.raw)
    if value is None:
        return FieldUnset(FieldNeedsInputWarning("amount", field.raw))
    return FieldValue(value)


def reconcile_date(field: RawField) -> FieldResult:
    """Strict ISO parse, then lenient parse, then unset with a DateParseWarning."""
    raw = field.raw
    parsed = parse_iso_date(raw)
    if parsed is not None:
        return FieldValue(parsed)

    logger.info("Date %r is not ISO 8601, trying lenient parse", raw)
    parsed = parse_lenient_date(raw)
    if parsed is not None:
        return FieldValue(parsed)

    logger.warning("AI returned an invalid or unparseable date: %r", raw)
    return FieldUnset(DateParseWarning(raw))


def reconcile(raw: RawExtraction) -> ReconciledForm:
    form = ReconciledForm(
        ticket_number=reconcile_text("ticket_number", raw.ticket_number),
        booking_reference=reconcile_text("booking_reference", raw.booking_reference),
        agent_id=reconcile_text("agent_id", raw.agent_id),
        amount=reconcile_amount(raw.amount),
        date=reconcile_date(raw.date),
    )
    form.warnings = [
        result.warning
        for result in (form.ticket_number, form.booking_reference, form.agent_id, form.amount, form.date)
        if isinstance(result, FieldUnset)
    ]
    return form
