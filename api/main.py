"""FastAPI application — invoice entry, extraction, admin dashboard and login."""

from __future__ import annotations

import logging
import os
import secrets
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from agents.graph import ExtractionPipeline
from api.schemas import (
    ExtractionResponse,
    HealthResponse,
    InvoiceFormRequest,
    InvoiceListResponse,
    LoginRequest,
    MutationResponse,
    NoticeResponse,
    SessionResponse,
)
from api.store import InvoiceStore
from invoices.collection import InvoiceCollection
from invoices.errors import NotFound, StoreUnavailable
from invoices.forms import InvoiceForm
from invoices.listing import (
    AgentFilter,
    SortDirection,
    SortKey,
    SortState,
    derive_admin_view,
    derive_agent_view,
)
from invoices.models import Invoice
from invoices.mutations import Mutation, MutationKind, MutationOrchestrator, MutationState
from invoices.notices import STORE_UNAVAILABLE_TITLE, Notice, Notifier
from invoices.session import LOGIN_VIEW, SessionGate

# Load environment
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-30s | %(levelname)-7s | %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_notifier() -> Notifier:
    return Notifier()


def get_collection(request: Request) -> InvoiceCollection:
    return request.app.state.collection


def get_orchestrator(
    request: Request,
    notifier: Notifier = Depends(get_notifier),
) -> MutationOrchestrator:
    return MutationOrchestrator(request.app.state.store, request.app.state.collection, notifier)


def get_gate(request: Request) -> SessionGate:
    return SessionGate(request.session, delay=request.app.state.login_delay)


def require_admin(gate: SessionGate = Depends(get_gate)) -> SessionGate:
    """Send unauthenticated visitors of admin routes to the login view."""
    if gate.guard("admin") == LOGIN_VIEW:
        raise HTTPException(status_code=303, headers={"Location": "/login"})
    return gate


def _notices(notifier: Notifier) -> list[NoticeResponse]:
    return [NoticeResponse.from_notice(n) for n in notifier.drain()]


def _sort_state(sort: SortKey, direction: SortDirection, toggle: Optional[SortKey]) -> SortState:
    state = SortState(sort, direction)
    return state.toggle(toggle) if toggle is not None else state


def _mutation_response(mutation: Optional[Mutation], notifier: Notifier, errors: Optional[dict] = None) -> JSONResponse:
    if mutation is None:
        body = MutationResponse(state="invalid", errors=errors or {}, notices=_notices(notifier))
        return JSONResponse(status_code=422, content=body.model_dump(mode="json"))

    if mutation.state == MutationState.SUCCEEDED:
        status_code = 201 if mutation.kind == MutationKind.CREATE else 200
    elif isinstance(mutation.error, NotFound):
        status_code = 404
    elif isinstance(mutation.error, StoreUnavailable):
        status_code = 503
    elif mutation.state == MutationState.IN_FLIGHT:
        status_code = 409
    else:
        status_code = 502

    body = MutationResponse(
        state=mutation.state.value,
        invoice=mutation.result.model_dump() if mutation.result else None,
        notices=_notices(notifier),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _find_or_stub(collection: InvoiceCollection, invoice_id: str) -> Invoice:
    """The cached record, or an id-only stand-in so the store decides NotFound."""
    for invoice in collection.snapshot():
        if invoice.id == invoice_id:
            return invoice
    return Invoice.model_construct(
        id=invoice_id, ticket_number="", booking_reference="", agent_id="", amount=0.0, date=""
    )


# ---------------------------------------------------------------------------
# Agent routes
# ---------------------------------------------------------------------------

agent_router = APIRouter(prefix="/api/invoices", tags=["agent"])


@agent_router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    agent_id: str = "",
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    sort: SortKey = SortKey.DATE,
    direction: SortDirection = SortDirection.DESC,
    toggle: Optional[SortKey] = None,
    collection: InvoiceCollection = Depends(get_collection),
    notifier: Notifier = Depends(get_notifier),
):
    """Agent view: filter by agent id and inclusive date range, then sort."""
    await collection.load(notifier)
    view = derive_agent_view(
        collection.snapshot(),
        AgentFilter(agent_id=agent_id, date_from=date_from, date_to=date_to),
        _sort_state(sort, direction, toggle),
    )
    return InvoiceListResponse.from_view(view, notifier.drain())


@agent_router.post("")
async def create_invoice(
    body: InvoiceFormRequest,
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
):
    """Manual entry: validate, store, refetch."""
    form = InvoiceForm(orchestrator)
    form.set_values(**body.model_dump())
    mutation = await form.submit()
    return _mutation_response(mutation, orchestrator.notifier, form.errors)


@agent_router.post("/extract", response_model=ExtractionResponse)
async def extract_invoice(
    request: Request,
    file: UploadFile = File(...),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
):
    """Smart invoice reader: upload an image or PDF and get pre-filled form values."""
    form = InvoiceForm(orchestrator, request.app.state.extractor)
    data = await file.read()
    reconciled = await form.upload(data, file.filename or "upload", file.content_type or "")

    return ExtractionResponse(
        success=reconciled is not None,
        file_name=form.file_name,
        values=form.values,
        unset_fields=reconciled.unset_fields() if reconciled else [],
        warnings=[str(w) for w in reconciled.warnings] if reconciled else [],
        notices=_notices(orchestrator.notifier),
    )


# ---------------------------------------------------------------------------
# Session routes
# ---------------------------------------------------------------------------

session_router = APIRouter(tags=["session"])


@session_router.get("/login", response_model=SessionResponse)
async def login_view(gate: SessionGate = Depends(get_gate)):
    return SessionResponse(authenticated=gate.is_authenticated)


@session_router.post("/login", response_model=SessionResponse)
async def login(body: LoginRequest, gate: SessionGate = Depends(get_gate)):
    if await gate.login(body.username, body.password):
        notice = Notice("Login Successful", "Redirecting to admin dashboard...")
        return SessionResponse(authenticated=True, notices=[NoticeResponse.from_notice(notice)])

    notifier = Notifier()
    notifier.error("Login Failed", "Invalid username or password.")
    rejected = SessionResponse(authenticated=False, notices=_notices(notifier))
    return JSONResponse(status_code=401, content=rejected.model_dump(mode="json"))


@session_router.post("/logout", response_model=SessionResponse)
async def logout(gate: SessionGate = Depends(get_gate)):
    gate.logout()
    notice = Notice("Logged Out", "You have been successfully logged out.")
    return SessionResponse(authenticated=False, notices=[NoticeResponse.from_notice(notice)])


# ---------------------------------------------------------------------------
# Admin routes
# ---------------------------------------------------------------------------

admin_router = APIRouter(prefix="/admin/invoices", tags=["admin"], dependencies=[Depends(require_admin)])


@admin_router.get("", response_model=InvoiceListResponse)
async def admin_list_invoices(
    q: str = "",
    sort: SortKey = SortKey.DATE,
    direction: SortDirection = SortDirection.DESC,
    toggle: Optional[SortKey] = None,
    collection: InvoiceCollection = Depends(get_collection),
    notifier: Notifier = Depends(get_notifier),
):
    """Admin view: free-text search across every column, then sort."""
    await collection.load(notifier)
    view = derive_admin_view(collection.snapshot(), q, _sort_state(sort, direction, toggle))
    return InvoiceListResponse.from_view(view, notifier.drain())


@admin_router.put("/{invoice_id}")
async def admin_update_invoice(
    invoice_id: str,
    body: InvoiceFormRequest,
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
    collection: InvoiceCollection = Depends(get_collection),
):
    """Edit dialog save: full replace of every field but the id."""
    if not collection.loaded:
        await collection.load(orchestrator.notifier)
    orchestrator.begin_edit(_find_or_stub(collection, invoice_id))
    mutation = await orchestrator.save_edit(body.model_dump(exclude_unset=True))
    errors = orchestrator.edit.errors if orchestrator.edit else {}
    return _mutation_response(mutation, orchestrator.notifier, errors)


@admin_router.delete("/{invoice_id}")
async def admin_delete_invoice(
    invoice_id: str,
    confirm: bool = False,
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
    collection: InvoiceCollection = Depends(get_collection),
):
    """Two-step delete: without ``confirm=true`` the prompt is cancelled and nothing is sent."""
    orchestrator.request_delete(_find_or_stub(collection, invoice_id))
    if not confirm:
        orchestrator.cancel_delete()
        body = MutationResponse(state=MutationState.IDLE.value, notices=_notices(orchestrator.notifier))
        return JSONResponse(status_code=200, content=body.model_dump(mode="json"))

    mutation = await orchestrator.confirm_delete()
    return _mutation_response(mutation, orchestrator.notifier)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    store: Optional[InvoiceStore] = None,
    extractor: Optional[ExtractionPipeline] = None,
    session_secret: Optional[str] = None,
    login_delay: Optional[float] = None,
) -> FastAPI:
    store = store or InvoiceStore()
    extractor = extractor or ExtractionPipeline()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not store.is_configured:
            logger.error("DATABASE_URL is not set: every invoice operation will fail until it is configured")
        else:
            try:
                await store.init()
                logger.info("Database initialized")
            except StoreUnavailable as e:
                logger.error("Database initialization failed: %s", e)
        if not extractor.is_configured:
            logger.warning(
                "Extraction credentials missing (OPENAI_API_KEY). "
                "Smart invoice reading will fail until they are set."
            )
        yield
        await store.close()

    app = FastAPI(
        title="Travel Invoice Desk",
        description=(
            "Travel agency invoice capture with AI-assisted document extraction "
            "and a gated admin dashboard."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.extractor = extractor
    app.state.collection = InvoiceCollection(store)
    app.state.login_delay = login_delay

    secret = session_secret or os.getenv("SESSION_SECRET")
    if not secret:
        logger.warning("SESSION_SECRET is not set; sessions will not survive a restart")
        secret = secrets.token_hex(32)
    # max_age=None keeps the cookie for the browser session only
    app.add_middleware(SessionMiddleware, secret_key=secret, session_cookie="invoice_desk_session", max_age=None)

    app.include_router(agent_router)
    app.include_router(session_router)
    app.include_router(admin_router)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        notifier = Notifier()
        if not store.is_configured:
            notifier.banner(STORE_UNAVAILABLE_TITLE, "DATABASE_URL is not set.")
        if not extractor.is_configured:
            notifier.banner("Extraction unavailable", "Extraction credentials are not set.")
        return HealthResponse(
            status="ok",
            service="travel-invoice-desk",
            store_configured=store.is_configured,
            extraction_configured=extractor.is_configured,
            banners=_notices(notifier),
        )

    return app


app = create_app()
