"""
FastAPI Application
===================
Backend-for-frontend of the campus support portal.

Owns the per-session ticket drafts (with live crisis detection), the
client-side caches and the typed clients for the support backend.

  • GET    /health
  • POST   /drafts  (open a draft)
  • GET    /drafts/{id}
  • PATCH  /drafts/{id}  (edit fields, re-runs crisis detection)
  • POST   /drafts/{id}/attachments  (add files, held until submit)
  • DELETE /drafts/{id}/attachments/{index}
  • POST   /drafts/{id}/banner/acknowledge
  • POST   /drafts/{id}/validate
  • POST   /drafts/{id}/reset
  • POST   /drafts/{id}/submit  (create ticket, then upload attachments)
  • DELETE /drafts/{id}
  • POST   /auth/login, /auth/demo-login, /auth/refresh, /auth/logout
  • GET    /auth/user
  • POST   /crisis/scan
  • GET    /categories
  • GET    /tickets, /tickets/stats, /tickets/options, /tickets/{id}
  • PATCH  /tickets/{id}, DELETE /tickets/{id}
  • POST   /tickets/{id}/assign, /tickets/{id}/responses
  • GET    /tickets/attachments/{id}/download
  • GET    /notifications, /notifications/unread-count
  • POST   /notifications/{id}/read, /notifications/read-all
  • DELETE /notifications/{id}
  • GET    /resources, /resources/categories, /resources/bookmarks, /resources/{id}
  • POST   /resources/{id}/bookmark, /resources/{id}/access, /resources/{id}/feedback
  • GET    /faqs, /faqs/{id}, /help/categories
  • POST   /faqs/{id}/feedback, /help/suggestions
  • GET    /permissions/{role}
  • /admin/...  (users, categories, crisis keywords, broadcasts, resources, FAQs)

Start via:  uvicorn campus_support.main:app --host 0.0.0.0 --port 8080
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from campus_support.admin import router as admin_router
from campus_support.api_client import ApiClient
from campus_support.config import settings
from campus_support.crisis import CrisisDetector
from campus_support.drafts import DraftRegistry
from campus_support.exceptions import (
    ApiError,
    DraftNotFound,
    DraftValidationError,
    SubmissionFailed,
    SubmissionInProgress,
)
from campus_support.permissions import default_view, page_info, permissions_for
from campus_support.schemas import (
    FAQ,
    AssignRequest,
    AuthSession,
    Category,
    ContentSuggestion,
    DemoLoginRequest,
    DraftUpdate,
    DraftView,
    FaqFeedback,
    HealthResponse,
    HelpCategory,
    LoginRequest,
    Notification,
    ReplyPayload,
    Resource,
    ResourceCategory,
    ResourceFeedback,
    ResourceType,
    Role,
    ScanRequest,
    ScanResponse,
    SubmissionResponse,
    Ticket,
    TicketPage,
    TicketUpdatePayload,
    User,
)
from campus_support.services.auth import AuthService
from campus_support.services.categories import CategoryService
from campus_support.services.crisis_keywords import CrisisKeywordService, sync_detector
from campus_support.services.help import HelpService
from campus_support.services.notifications import NotificationService
from campus_support.services.resources import ResourceService
from campus_support.services.tickets import TicketService
from campus_support.services.users import UserService
from campus_support.stores import (
    CategoryStore,
    FaqStore,
    NotificationStore,
    ResourceStore,
    TicketStore,
)
from campus_support.submission import TicketSubmitter
from campus_support.ticket_views import (
    apply_filters,
    calculate_stats,
    filter_by_view,
    paginate,
    sort_tickets,
)
from campus_support.validation import AttachmentFile

logger = logging.getLogger(__name__)


# ─── Wiring ───────────────────────────────────────────────────────────────────

def init_state(app: FastAPI, client: ApiClient) -> None:
    """Build every service, store and the draft registry onto `app.state`."""
    detector = CrisisDetector(settings.CRISIS_KEYWORDS)

    ticket_service   = TicketService(client)
    category_service = CategoryService(client)

    app.state.api_client      = client
    app.state.auth            = AuthService(client)
    app.state.users           = UserService(client)
    app.state.detector        = detector
    app.state.keyword_service = CrisisKeywordService(client)
    app.state.tickets         = TicketStore(ticket_service)
    app.state.categories      = CategoryStore(category_service)
    app.state.notifications   = NotificationStore(NotificationService(client))
    app.state.resources       = ResourceStore(ResourceService(client))
    app.state.faqs            = FaqStore(HelpService(client))
    app.state.drafts          = DraftRegistry(detector)
    app.state.submitter       = TicketSubmitter(ticket_service, app.state.tickets)


# ─── Lifespan ─────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s v%s …", settings.APP_NAME, settings.APP_VERSION)

    client = ApiClient()
    init_state(app, client)

    if settings.SYNC_CRISIS_KEYWORDS:
        await sync_detector(app.state.keyword_service, app.state.detector)

    logger.info("✓ Server ready, backend at %s", settings.API_BASE_URL)
    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Shutting down …")
    await client.aclose()
    logger.info("Bye.")


# ─── App ──────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Campus support portal.\n\n"
        "**Ticket drafts** run crisis-keyword detection on every edit and force "
        "Urgent priority while crisis language is present."
    ),
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

allowed_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
allowed_origins.extend(o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(admin_router)


# ─── Error mapping ────────────────────────────────────────────────────────────

@app.exception_handler(DraftNotFound)
async def draft_not_found(request: Request, exc: DraftNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(DraftValidationError)
async def draft_invalid(request: Request, exc: DraftValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": "Please fix the highlighted fields.", "errors": exc.errors},
    )


@app.exception_handler(SubmissionInProgress)
async def submission_in_progress(request: Request, exc: SubmissionInProgress):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(SubmissionFailed)
async def submission_failed(request: Request, exc: SubmissionFailed):
    return JSONResponse(status_code=502, content={"detail": exc.message, "retryable": True})


@app.exception_handler(ApiError)
async def backend_error(request: Request, exc: ApiError):
    # pass auth / not-found answers through; everything else is a bad gateway
    status = exc.status_code if exc.status_code in (401, 403, 404) else 502
    return JSONResponse(
        status_code=status,
        content={"detail": exc.message, "errors": exc.errors, "retryable": status == 502},
    )


# ─── Health ───────────────────────────────────────────────────────────────────

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    try:
        await app.state.api_client.get("/health", fresh=True)
        backend = "connected"
    except ApiError:
        backend = "unreachable"

    return HealthResponse(
        status="ok" if backend == "connected" else "degraded",
        backend=backend,
        app_version=settings.APP_VERSION,
        drafts_open=len(app.state.drafts),
        crisis_keywords=len(app.state.detector.keywords),
    )


# ─── Auth ─────────────────────────────────────────────────────────────────────
# The session token lives on the shared ApiClient; every later call uses it.

@app.post("/auth/login", response_model=AuthSession, tags=["Auth"])
async def login(body: LoginRequest):
    return await app.state.auth.login(body.email, body.password)


@app.post("/auth/demo-login", response_model=AuthSession, tags=["Auth"])
async def demo_login(body: DemoLoginRequest):
    return await app.state.auth.demo_login(body.role)


@app.post("/auth/refresh", response_model=AuthSession, tags=["Auth"])
async def refresh_session():
    return await app.state.auth.refresh_token()


@app.get("/auth/user", response_model=User, tags=["Auth"])
async def current_user():
    return await app.state.auth.current_user()


@app.post("/auth/logout", status_code=204, tags=["Auth"])
async def logout():
    await app.state.auth.logout()
    # cached lists belong to the previous session
    for store in (app.state.tickets, app.state.notifications, app.state.resources):
        store.invalidate()
    return Response(status_code=204)


# ─── Drafts ───────────────────────────────────────────────────────────────────

async def _fresh_categories() -> List[Category]:
    store: CategoryStore = app.state.categories
    await store.load()
    return store.active()


@app.post("/drafts", response_model=DraftView, status_code=201, tags=["Drafts"])
async def open_draft():
    draft_id, form = app.state.drafts.create(await _fresh_categories())
    return form.to_view(draft_id)


@app.get("/drafts/{draft_id}", response_model=DraftView, tags=["Drafts"])
async def get_draft(draft_id: str):
    return app.state.drafts.get(draft_id).to_view(draft_id)


@app.patch("/drafts/{draft_id}", response_model=DraftView, tags=["Drafts"])
async def update_draft(draft_id: str, update: DraftUpdate):
    """
    Apply the fields present in the body, in this order:
    subject, category, description (crisis detection), priority.
    A priority downgrade while crisis language is present is ignored.
    """
    form = app.state.drafts.get(draft_id)
    fields = update.model_fields_set

    if "subject" in fields:
        form.set_subject(update.subject)
    if "category_id" in fields:
        form.set_category(update.category_id)
    if "description" in fields:
        form.set_description(update.description)
    if "priority" in fields and update.priority is not None:
        form.set_priority(update.priority)

    return form.to_view(draft_id)


@app.post("/drafts/{draft_id}/attachments", response_model=DraftView, tags=["Drafts"])
async def add_attachments(draft_id: str, files: List[UploadFile] = File(...)):
    form = app.state.drafts.get(draft_id)
    errors: List[str] = []
    for upload in files:
        attachment = AttachmentFile(
            filename=upload.filename or "attachment",
            content_type=upload.content_type or "application/octet-stream",
            content=await upload.read(),
        )
        errors += form.add_attachment(attachment)
    return form.to_view(draft_id, errors=errors)


@app.delete("/drafts/{draft_id}/attachments/{index}", response_model=DraftView, tags=["Drafts"])
async def remove_attachment(draft_id: str, index: int):
    form = app.state.drafts.get(draft_id)
    try:
        form.remove_attachment(index)
    except IndexError:
        raise HTTPException(status_code=404, detail=f"No attachment at position {index}")
    return form.to_view(draft_id)


@app.post("/drafts/{draft_id}/banner/acknowledge", response_model=DraftView, tags=["Drafts"])
async def acknowledge_banner(draft_id: str):
    form = app.state.drafts.get(draft_id)
    form.acknowledge_banner()
    return form.to_view(draft_id)


@app.post("/drafts/{draft_id}/validate", response_model=DraftView, tags=["Drafts"])
async def validate_draft(draft_id: str):
    form = app.state.drafts.get(draft_id)
    return form.to_view(draft_id, errors=form.validate())


@app.post("/drafts/{draft_id}/reset", response_model=DraftView, tags=["Drafts"])
async def reset_draft(draft_id: str):
    form = app.state.drafts.get(draft_id)
    form.reset()
    return form.to_view(draft_id)


@app.post("/drafts/{draft_id}/submit", response_model=SubmissionResponse, status_code=201, tags=["Drafts"])
async def submit_draft(draft_id: str):
    form = app.state.drafts.get(draft_id)
    if form.submitting:
        raise SubmissionInProgress("This ticket is already being submitted.")
    # validate against the newest category list, not the one the draft opened with
    form.set_categories(await _fresh_categories())
    result = await app.state.submitter.submit(form)
    return result.to_response()


@app.delete("/drafts/{draft_id}", status_code=204, tags=["Drafts"])
async def discard_draft(draft_id: str):
    if not app.state.drafts.discard(draft_id):
        raise DraftNotFound(f"Draft {draft_id} not found or expired")
    return Response(status_code=204)


# ─── Crisis preview ───────────────────────────────────────────────────────────

@app.post("/crisis/scan", response_model=ScanResponse, tags=["Crisis"])
async def scan_text(body: ScanRequest):
    scan = app.state.detector.scan(body.text)
    return ScanResponse(crisis_detected=scan.detected, matched=scan.matched)


# ─── Read views ───────────────────────────────────────────────────────────────

@app.get("/categories", response_model=List[Category], tags=["Categories"])
async def list_categories(refresh: bool = False):
    store: CategoryStore = app.state.categories
    await store.load(force=refresh)
    categories = store.active()
    app.state.drafts.refresh_categories(categories)
    return categories


@app.get("/tickets", response_model=TicketPage, tags=["Tickets"])
async def list_tickets(
    view:           str = "all",
    search:         str = "",
    status:         Optional[str] = None,
    category_id:    Optional[int] = None,
    priority:       Optional[str] = None,
    assigned:       Optional[str] = None,
    crisis_flag:    Optional[str] = None,
    overdue:        Optional[str] = None,
    sort_by:        str = "updated_at",
    sort_direction: str = "desc",
    page:           int = 1,
    per_page:       int = 20,
    user_id:        Optional[int] = None,
    refresh:        bool = False,
):
    store: TicketStore = app.state.tickets
    tickets = await store.load(force=refresh)

    filters: Dict[str, Any] = {
        "status":      status,
        "category_id": category_id,
        "priority":    priority,
        "assigned":    assigned,
        "crisis_flag": crisis_flag,
        "overdue":     overdue,
    }
    try:
        selected = filter_by_view(tickets, view, current_user_id=user_id)
        selected = apply_filters(selected, search, filters, current_user_id=user_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    selected = sort_tickets(selected, sort_by, sort_direction)
    items, last_page = paginate(selected, page, per_page)
    return TicketPage(
        items=items,
        total=len(selected),
        page=min(max(1, page), last_page),
        per_page=per_page,
        last_page=last_page,
    )


@app.get("/tickets/stats", tags=["Tickets"])
async def ticket_stats(user_id: Optional[int] = None, refresh: bool = False):
    tickets = await app.state.tickets.load(force=refresh)
    return calculate_stats(tickets, current_user_id=user_id)


@app.get("/tickets/options", tags=["Tickets"])
async def ticket_options():
    return await app.state.tickets.service.options()


@app.get("/tickets/attachments/{attachment_id}/download", tags=["Tickets"])
async def download_attachment(attachment_id: int):
    content = await app.state.tickets.service.download_attachment(attachment_id)
    return Response(content=content, media_type="application/octet-stream")


@app.get("/tickets/{ticket_id}", response_model=Ticket, tags=["Tickets"])
async def get_ticket(ticket_id: int):
    store: TicketStore = app.state.tickets
    cached = store.get(ticket_id)
    return cached if cached is not None else await store.service.get_ticket(ticket_id)


@app.patch("/tickets/{ticket_id}", response_model=Ticket, tags=["Tickets"])
async def update_ticket(ticket_id: int, payload: TicketUpdatePayload):
    return await app.state.tickets.update(ticket_id, payload)


@app.delete("/tickets/{ticket_id}", status_code=204, tags=["Tickets"])
async def delete_ticket(ticket_id: int):
    await app.state.tickets.delete(ticket_id)
    return Response(status_code=204)


@app.post("/tickets/{ticket_id}/assign", response_model=Ticket, tags=["Tickets"])
async def assign_ticket(ticket_id: int, body: AssignRequest):
    return await app.state.tickets.assign(ticket_id, body.assigned_to, body.reason)


@app.post("/tickets/{ticket_id}/responses", response_model=Ticket, tags=["Tickets"])
async def respond_to_ticket(ticket_id: int, payload: ReplyPayload):
    """Post a reply; returns the ticket as refetched after the reply."""
    return await app.state.tickets.add_response(ticket_id, payload)


@app.get("/notifications", response_model=List[Notification], tags=["Notifications"])
async def list_notifications(unread_only: bool = False, refresh: bool = False):
    store: NotificationStore = app.state.notifications
    items = await store.load(force=refresh)
    if unread_only:
        items = [n for n in items if not n.read]
    return items


@app.get("/notifications/unread-count", tags=["Notifications"])
async def unread_notification_count():
    return {"unread_count": await app.state.notifications.refresh_unread()}


@app.post("/notifications/{notification_id}/read", tags=["Notifications"])
async def read_notification(notification_id: int):
    store: NotificationStore = app.state.notifications
    await store.mark_read(notification_id)
    return {"unread_count": store.unread_count}


@app.post("/notifications/{notification_id}/unread", tags=["Notifications"])
async def unread_notification(notification_id: int):
    store: NotificationStore = app.state.notifications
    await store.mark_unread(notification_id)
    return {"unread_count": store.unread_count}


@app.delete("/notifications/{notification_id}", tags=["Notifications"])
async def delete_notification(notification_id: int):
    store: NotificationStore = app.state.notifications
    await store.delete(notification_id)
    return {"unread_count": store.unread_count}


@app.post("/notifications/read-all", tags=["Notifications"])
async def read_all_notifications():
    store: NotificationStore = app.state.notifications
    await store.mark_all_read()
    return {"unread_count": store.unread_count}


@app.get("/resources", response_model=List[Resource], tags=["Resources"])
async def list_resources(
    type:     Optional[str] = None,
    search:   str = "",
    featured: bool = False,
    refresh:  bool = False,
):
    store: ResourceStore = app.state.resources
    items = await store.load(force=refresh)
    if featured:
        items = store.featured()
    if type:
        wanted = ResourceType(type)
        items = [r for r in items if r.type is wanted]
    needle = search.strip().casefold()
    if needle:
        items = [r for r in items if needle in r.title.casefold() or needle in r.description.casefold()]
    return items


@app.get("/resources/categories", response_model=List[ResourceCategory], tags=["Resources"])
async def resource_categories():
    return await app.state.resources.service.categories()


@app.get("/resources/bookmarks", response_model=List[Resource], tags=["Resources"])
async def bookmarked_resources():
    return await app.state.resources.service.bookmarks()


@app.get("/resources/{resource_id}", response_model=Resource, tags=["Resources"])
async def get_resource(resource_id: int):
    store: ResourceStore = app.state.resources
    cached = store.get(resource_id)
    return cached if cached is not None else await store.service.get_resource(resource_id)


@app.post("/resources/{resource_id}/bookmark", tags=["Resources"])
async def toggle_bookmark(resource_id: int):
    return {"bookmarked": await app.state.resources.toggle_bookmark(resource_id)}


@app.post("/resources/{resource_id}/access", tags=["Resources"])
async def access_resource(resource_id: int):
    return await app.state.resources.service.access(resource_id)


@app.post("/resources/{resource_id}/feedback", tags=["Resources"])
async def resource_feedback(resource_id: int, feedback: ResourceFeedback):
    return await app.state.resources.service.feedback(resource_id, feedback)


@app.get("/faqs", response_model=List[FAQ], tags=["Help"])
async def list_faqs(search: str = "", refresh: bool = False):
    store: FaqStore = app.state.faqs
    await store.load(force=refresh)
    return store.search(search)


@app.get("/faqs/{faq_id}", response_model=FAQ, tags=["Help"])
async def get_faq(faq_id: int):
    store: FaqStore = app.state.faqs
    cached = store.get(faq_id)
    return cached if cached is not None else await store.service.faq(faq_id)


@app.post("/faqs/{faq_id}/feedback", response_model=FAQ, tags=["Help"])
async def faq_feedback(faq_id: int, feedback: FaqFeedback):
    """Record helpful / not helpful; returns the FAQ with updated counts."""
    store: FaqStore = app.state.faqs
    await store.load()
    await store.feedback(faq_id, feedback)
    return await get_faq(faq_id)


@app.get("/help/categories", response_model=List[HelpCategory], tags=["Help"])
async def help_categories():
    return await app.state.faqs.service.categories()


@app.post("/help/suggestions", tags=["Help"])
async def suggest_content(suggestion: ContentSuggestion):
    return await app.state.faqs.service.suggest_content(suggestion)


@app.get("/permissions/{role}", tags=["Users"])
async def role_permissions(role: str):
    resolved = Role(role)
    return {
        "role":         resolved.value,
        "permissions":  permissions_for(resolved),
        "page":         page_info(resolved),
        "default_view": default_view(resolved),
    }
