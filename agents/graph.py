"""LangGraph workflow — orchestrates decode → extract → reconcile."""

from __future__ import annotations

import logging
from typing import Any

from langgraph.graph import END, StateGraph

from invoices.errors import ExtractionError
from invoices.models import ReconciledForm

from .extraction_agent import ExtractionClient, decode_document
from .reconciler import reconcile
from .state import ExtractionState

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

def decode_node(state: ExtractionState) -> dict[str, Any]:
    """Encode the uploaded document as image data URIs."""
    errors: list[str] = list(state.get("errors", []))
    try:
        uris = decode_document(state.get("document_bytes", b""), state.get("mime_type", ""))
    except ExtractionError as e:
        errors.append(str(e))
        return {"status": "error", "errors": errors}
    return {"image_uris": uris, "status": "decoded", "errors": errors}


def make_extract_node(client: ExtractionClient):
    async def extract_node(state: ExtractionState) -> dict[str, Any]:
        """Single call to the extraction model."""
        errors: list[str] = list(state.get("errors", []))
        try:
            raw = await client.extract_images(state["image_uris"])
        except ExtractionError as e:
            errors.append(str(e))
            return {"status": "error", "errors": errors}
        return {"raw_extraction": raw, "status": "extracted", "errors": errors}

    return extract_node


def reconcile_node(state: ExtractionState) -> dict[str, Any]:
    return {"reconciled": reconcile(state["raw_extraction"]), "status": "reconciled"}


def error_node(state: ExtractionState) -> dict[str, Any]:
    """Terminal node for failed extractions."""
    errors = state.get("errors", [])
    logger.error("Extraction ended with errors: %s", errors)
    return {"status": "error", "reconciled": None}


# ---------------------------------------------------------------------------
# Conditional routing
# ---------------------------------------------------------------------------

def _continue_or_fail(next_node: str):
    def route(state: ExtractionState) -> str:
        if state.get("status") == "error":
            return "error_end"
        return next_node

    return route


# ---------------------------------------------------------------------------
# Build the graph
# ---------------------------------------------------------------------------

def build_extraction_graph(client: ExtractionClient):
    """Construct and compile the extraction workflow.

    Flow:
        decode → [error? → error_end] → extract → [error? → error_end] → reconcile
    """
    workflow = StateGraph(ExtractionState)

    workflow.add_node("decode", decode_node)
    workflow.add_node("extract", make_extract_node(client))
    workflow.add_node("reconcile", reconcile_node)
    workflow.add_node("error_end", error_node)

    workflow.set_entry_point("decode")

    workflow.add_conditional_edges(
        "decode",
        _continue_or_fail("extract"),
        {"extract": "extract", "error_end": "error_end"},
    )
    workflow.add_conditional_edges(
        "extract",
        _continue_or_fail("reconcile"),
        {"reconcile": "reconcile", "error_end": "error_end"},
    )

    workflow.add_edge("reconcile", END)
    workflow.add_edge("error_end", END)

    return workflow.compile()


# ---------------------------------------------------------------------------
# Convenience runner
# ---------------------------------------------------------------------------

class ExtractionPipeline:
    """Upload-to-form pipeline used by the agent form."""

    def __init__(self, client: ExtractionClient | None = None):
        self.client = client or ExtractionClient()
        self._graph = build_extraction_graph(self.client)

    @property
    def is_configured(self) -> bool:
        return self.client.is_configured

    async def run(self, document_bytes: bytes, mime_type: str) -> ReconciledForm:
        """Raises ``ExtractionError`` if any stage fails; never returns partial fields."""
        initial_state: ExtractionState = {
            "document_bytes": document_bytes,
            "mime_type": mime_type,
            "status": "pending",
            "errors": [],
        }

        logger.info("Starting extraction for %s document (%d bytes)", mime_type, len(document_bytes))
        result = await self._graph.ainvoke(initial_state)
        logger.info("Extraction complete: status=%s", result.get("status"))

        if result.get("status") != "reconciled" or result.get("reconciled") is None:
            raise ExtractionError("; ".join(result.get("errors", [])) or "Extraction failed")
        return result["reconciled"]
