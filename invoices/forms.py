"""Agent-view invoice form: manual entry plus document upload."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from .errors import DateParseWarning, ExtractionError
from .models import FORM_FIELDS, InvoiceDraft, ReconciledForm
from .mutations import Mutation, MutationOrchestrator, validation_messages
from .notices import Notifier

logger = logging.getLogger(__name__)


class DocumentExtractor(Protocol):
    async def run(self, document_bytes: bytes, mime_type: str) -> ReconciledForm: ...


def empty_values() -> dict[str, Any]:
    return {name: None for name in FORM_FIELDS}


class InvoiceForm:
    """Form state for one agent session.

    Values are only cleared after a successful save, so a failed submit can be
    retried as is. The exception is a failed extraction: a half machine-filled
    form is not trusted and is wiped.
    """

    def __init__(self, orchestrator: MutationOrchestrator, extractor: Optional[DocumentExtractor] = None):
        self._orchestrator = orchestrator
        self._extractor = extractor
        self.values: dict[str, Any] = empty_values()
        self.errors: dict[str, str] = {}
        self.file_name: Optional[str] = None
        self.is_extracting = False
        self.is_submitting = False

    @property
    def notifier(self) -> Notifier:
        return self._orchestrator.notifier

    def set_values(self, **values: Any) -> None:
        unknown = set(values) - set(FORM_FIELDS)
        if unknown:
            raise KeyError(f"Unknown form fields: {sorted(unknown)}")
        self.values.update(values)

    def clear(self) -> None:
        self.values = empty_values()
        self.errors = {}
        self.file_name = None

    def validate(self) -> Optional[InvoiceDraft]:
        try:
            draft = InvoiceDraft.model_validate(self.values)
        except ValidationError as e:
            self.errors = validation_messages(e)
            return None
        self.errors = {}
        return draft

    async def submit(self) -> Optional[Mutation]:
        """validate -> store -> refetch -> notify; returns None on invalid input."""
        draft = self.validate()
        if draft is None:
            return None

        self.is_submitting = True
        try:
            mutation = await self._orchestrator.create(draft)
        finally:
            self.is_submitting = False

        if mutation.succeeded:
            self.clear()
        return mutation

    async def upload(self, document_bytes: bytes, file_name: str, mime_type: str) -> Optional[ReconciledForm]:
        """Run the extraction pipeline and merge its output into the form."""
        if self.is_extracting:
            logger.info("Ignoring upload of %s: extraction already running", file_name)
            return None
        if self._extractor is None:
            self.notifier.error("Extraction Unavailable", "Smart invoice reading is not configured.")
            return None

        self.is_extracting = True
        self.file_name = file_name
        try:
            reconciled = await self._extractor.run(document_bytes, mime_type)
        except ExtractionError as e:
            logger.warning("Extraction of %s failed: %s", file_name, e)
            self.clear()
            self.notifier.error(
                "Extraction Failed",
                "Could not extract data from the file. Please enter manually.",
            )
            return None
        finally:
            self.is_extracting = False

        self.values = reconciled.values()
        self.errors = {}
        for warning in reconciled.warnings:
            if isinstance(warning, DateParseWarning):
                self.notifier.info(
                    "Date Warning",
                    "Could not parse the date from the invoice. Please select it manually.",
                )
        self.notifier.info("Extraction Successful", "Invoice data extracted. Please review and submit.")
        return reconciled
