"""Shared state definition for the LangGraph extraction workflow."""

from __future__ import annotations

from typing import Optional

from typing_extensions import TypedDict

from invoices.models import RawExtraction, ReconciledForm


class ExtractionState(TypedDict, total=False):
    """Complete state passed through the decode → extract → reconcile graph."""
    # Input
    document_bytes: bytes
    mime_type: str

    # Decode
    image_uris: list[str]   # data:<mime>;base64,... one per page

    # Extract
    raw_extraction: Optional[RawExtraction]

    # Reconcile
    reconciled: Optional[ReconciledForm]

    # Overall
    status: str   # pending | decoded | extracted | reconciled | error
    errors: list[str]
