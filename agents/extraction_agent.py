"""Extraction Agent — vision LLM extraction of travel invoice fields."""

from __future__ import annotations

import base64
import json
import logging
import os
from typing import Any, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from invoices.errors import ExtractionError
from invoices.models import RawExtraction

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


# ---------------------------------------------------------------------------
# LLM configuration
# ---------------------------------------------------------------------------

def _provider() -> str:
    return os.getenv("LLM_PROVIDER", "ollama").lower()


def credentials_present() -> bool:
    """Ollama runs locally without a key; every other provider needs OPENAI_API_KEY."""
    if _provider() == "ollama":
        return True
    return bool(os.getenv("OPENAI_API_KEY"))


def _get_llm() -> ChatOpenAI:
    provider = _provider()

    if provider == "ollama":
        # Use LangChain's ChatOpenAI but point it to Ollama's local OpenAI-compatible endpoint
        return ChatOpenAI(
            model=os.getenv("LLM_MODEL", "llama3.2-vision"),
            base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/v1"),
            api_key="ollama",  # API key is required by the client but ignored by Ollama
            temperature=0,
        )
    else:
        # Standard OpenAI client
        return ChatOpenAI(
            model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
            temperature=0,
        )


# ---------------------------------------------------------------------------
# Decode: turn the uploaded document into image data URIs
# ---------------------------------------------------------------------------

def to_data_uri(data: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def _max_pdf_pages() -> int:
    return int(os.getenv("EXTRACTION_MAX_PDF_PAGES", "3"))


def _pdf_to_data_uris(data: bytes, max_pages: int) -> list[str]:
    """Rasterise the first pages of a PDF; vision models take images, not PDFs."""
    import fitz  # PyMuPDF

    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            page_count = min(doc.page_count, max_pages)
            uris = []
            for index in range(page_count):
                pixmap = doc[index].get_pixmap(dpi=150)
                uris.append(to_data_uri(pixmap.tobytes("png"), "image/png"))
    except Exception as e:
        raise ExtractionError(f"Could not read PDF document: {e}") from e

    if not uris:
        raise ExtractionError("PDF document has no pages")
    return uris


def decode_document(data: bytes, mime_type: str, max_pages: Optional[int] = None) -> list[str]:
    """Return one image data URI per page to send to the model."""
    if not data:
        raise ExtractionError("Uploaded document is empty")

    mime_type = (mime_type or "").split(";")[0].strip().lower()
    if mime_type.startswith("image/"):
        return [to_data_uri(data, mime_type)]
    if mime_type == PDF_MIME_TYPE:
        return _pdf_to_data_uris(data, max_pages or _max_pdf_pages())
    raise ExtractionError(f"Unsupported document type: {mime_type or 'unknown'}. Upload an image or a PDF.")


# ---------------------------------------------------------------------------
# LLM Extraction prompt
# ---------------------------------------------------------------------------

_EXTRACTION_SYSTEM_PROMPT = """You are an expert data extraction AI, specialized in extracting information from travel agency invoices.
You receive one or more images of a single invoice and must extract structured data.

Return a JSON object with EXACTLY these fields (use null if not found):
{
    "ticketNumber": "string",
    "bookingReference": "string",
    "agentId": "string",
    "amount": number,
    "date": "string (the invoice date, preferably YYYY-MM-DD)"
}

Return ONLY the JSON object, no markdown fences or additional text."""


def _message_text(content: Any) -> str:
    """Chat content is either a string or a list of content blocks."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def parse_model_json(content: Any) -> dict[str, Any]:
    text = _message_text(content).strip()

    # Clean up potential markdown fences
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
    if text.endswith("```"):
        text = text.rsplit("```", 1)[0]
    text = text.strip()
    if text.startswith("json"):
        text = text[4:].strip()

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Failed to parse LLM extraction output: {e}") from e
    if not isinstance(payload, dict):
        raise ExtractionError("LLM extraction output is not a JSON object")
    return payload


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ExtractionClient:
    """Single blocking call to the extraction model; all-or-nothing per call."""

    def __init__(self, llm: Optional[BaseChatModel] = None):
        self._llm = llm

    @property
    def is_configured(self) -> bool:
        return self._llm is not None or credentials_present()

    def _client(self) -> BaseChatModel:
        if self._llm is None:
            if not credentials_present():
                raise ExtractionError(
                    "Extraction is not configured: set OPENAI_API_KEY or use LLM_PROVIDER=ollama"
                )
            self._llm = _get_llm()
        return self._llm

    async def extract(self, document_bytes: bytes, mime_type: str) -> RawExtraction:
        return await self.extract_images(decode_document(document_bytes, mime_type))

    async def extract_images(self, image_uris: list[str]) -> RawExtraction:
        llm = self._client()
        content: list[dict[str, Any]] = [
            {"type": "text", "text": "Extract the invoice data from the following document."}
        ]
        content.extend({"type": "image_url", "image_url": {"url": uri}} for uri in image_uris)
        messages = [
            SystemMessage(content=_EXTRACTION_SYSTEM_PROMPT),
            HumanMessage(content=content),
        ]

        logger.info("Sending %d page(s) to the extraction model", len(image_uris))
        try:
            response = await llm.ainvoke(messages)
        except Exception as e:
            raise ExtractionError(f"Extraction request failed: {e}") from e

        raw = RawExtraction.from_payload(parse_model_json(response.content))
        logger.info(
            "Extracted invoice fields: ticket=%s, agent=%s",
            raw.ticket_number.raw, raw.agent_id.raw,
        )
        return raw
