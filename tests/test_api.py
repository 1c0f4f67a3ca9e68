"""
Portal API tests: the FastAPI app wired to a fake support backend.
"""

import httpx
import pytest
from httpx import ASGITransport

from campus_support.main import app, init_state

from conftest import body_of, category_dict, ticket_dict

CRISIS_TEXT = "Lately I feel hopeless and keep thinking about ending it all."
PLAIN_TEXT  = "I cannot register for my statistics course this term."


@pytest.fixture
def portal(backend, make_client):
    backend.on("GET", "/health", body={"success": True})
    backend.on("GET", "/ticket-categories", body={"success": True, "data": {"categories": [
        category_dict(1, "Academic Support"),
        category_dict(2, "Technical Help"),
        category_dict(3, "Mental Health & Wellness"),
        category_dict(4, "Crisis Support", crisis=True),
    ]}})
    init_state(app, make_client())
    return httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def open_draft(portal, **fields):
    resp = await portal.post("/drafts")
    assert resp.status_code == 201
    draft_id = resp.json()["draft_id"]
    if fields:
        resp = await portal.patch(f"/drafts/{draft_id}", json=fields)
        assert resp.status_code == 200
    return draft_id, resp.json()


# ─── System ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_health(portal):
    resp = await portal.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["backend"] == "connected"
    assert data["crisis_keywords"] > 0


@pytest.mark.asyncio
async def test_health_degraded_when_backend_down(portal, backend):
    backend.on("GET", "/health", status=503, body={"message": "maintenance"})
    data = (await portal.get("/health")).json()
    assert data["status"] == "degraded"
    assert data["backend"] == "unreachable"


@pytest.mark.asyncio
async def test_crisis_scan(portal):
    data = (await portal.post("/crisis/scan", json={"text": CRISIS_TEXT})).json()
    assert data["crisis_detected"] is True
    assert set(data["matched"]) == {"hopeless", "ending it all"}


# ─── Drafts ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_new_draft_is_normal(portal):
    _, draft = await open_draft(portal)
    assert draft["state"] == "NORMAL"
    assert draft["priority"] == "Medium"
    assert draft["priority_locked"] is False
    assert draft["banner"] is None


@pytest.mark.asyncio
async def test_crisis_text_escalates_draft(portal):
    _, draft = await open_draft(portal, subject="Help", category_id=1, description=CRISIS_TEXT)
    assert draft["state"] == "CRISIS_FLAGGED"
    assert draft["priority"] == "Urgent"
    assert draft["priority_locked"] is True
    assert draft["category_id"] == 4
    assert draft["banner"]["visible"] is True
    assert draft["banner"]["emergency_action"] == "tel:911"
    assert draft["banner"]["hotline"]


@pytest.mark.asyncio
async def test_priority_downgrade_ignored_while_flagged(portal):
    draft_id, _ = await open_draft(portal, description=CRISIS_TEXT)
    draft = (await portal.patch(f"/drafts/{draft_id}", json={"priority": "Low"})).json()
    assert draft["priority"] == "Urgent"


@pytest.mark.asyncio
async def test_clearing_text_unlocks_but_keeps_urgent(portal):
    draft_id, _ = await open_draft(portal, description=CRISIS_TEXT)
    draft = (await portal.patch(f"/drafts/{draft_id}", json={"description": PLAIN_TEXT})).json()
    assert draft["state"] == "NORMAL"
    assert draft["priority_locked"] is False
    assert draft["priority"] == "Urgent"
    assert draft["category_id"] == 4

    draft = (await portal.patch(f"/drafts/{draft_id}", json={"priority": "Low"})).json()
    assert draft["priority"] == "Low"


@pytest.mark.asyncio
async def test_acknowledged_banner_hides(portal):
    draft_id, _ = await open_draft(portal, description=CRISIS_TEXT)
    draft = (await portal.post(f"/drafts/{draft_id}/banner/acknowledge")).json()
    assert draft["banner"]["visible"] is False
    assert draft["state"] == "CRISIS_FLAGGED"


@pytest.mark.asyncio
async def test_reset_returns_to_normal(portal):
    draft_id, _ = await open_draft(portal, subject="Help", description=CRISIS_TEXT)
    draft = (await portal.post(f"/drafts/{draft_id}/reset")).json()
    assert draft["state"] == "NORMAL"
    assert draft["subject"] == ""
    assert draft["priority"] == "Medium"


@pytest.mark.asyncio
async def test_validate_lists_errors(portal):
    draft_id, _ = await open_draft(portal, subject="Hi", description="too short")
    data = (await portal.post(f"/drafts/{draft_id}/validate")).json()
    assert ("Description must be at least 20 characters long, "
            "not counting leading or trailing spaces") in data["errors"]
    assert "Category is required" in data["errors"]


@pytest.mark.asyncio
async def test_attachment_limits(portal):
    draft_id, _ = await open_draft(portal)
    files = [("files", (f"f{i}.txt", b"notes", "text/plain")) for i in range(6)]
    draft = (await portal.post(f"/drafts/{draft_id}/attachments", files=files)).json()
    assert len(draft["attachments"]) == 5
    assert draft["errors"] == ["Maximum 5 files allowed"]

    draft = (await portal.delete(f"/drafts/{draft_id}/attachments/0")).json()
    assert [a["filename"] for a in draft["attachments"]] == ["f1.txt", "f2.txt", "f3.txt", "f4.txt"]


@pytest.mark.asyncio
async def test_bad_attachment_type_rejected(portal):
    draft_id, _ = await open_draft(portal)
    files = [("files", ("run.exe", b"MZ", "application/x-msdownload"))]
    draft = (await portal.post(f"/drafts/{draft_id}/attachments", files=files)).json()
    assert draft["attachments"] == []
    assert "invalid type" in draft["errors"][0]


@pytest.mark.asyncio
async def test_unknown_draft_is_404(portal):
    assert (await portal.get("/drafts/nope")).status_code == 404
    assert (await portal.delete("/drafts/nope")).status_code == 404


# ─── Submit ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_submit_creates_then_uploads(portal, backend):
    backend.on("POST", "/tickets", status=201,
               body={"success": True, "data": {"ticket": ticket_dict(101, priority="Urgent", category_id=4)}})

    def upload(request):
        if b'filename="b.txt"' in request.content:
            return httpx.Response(413, json={"success": False, "message": "File too large"})
        return httpx.Response(200, json={"success": True, "data": {}})

    backend.on("POST", "/tickets/101/attachments", handler=upload)

    draft_id, _ = await open_draft(portal, subject="Need help", category_id=1, description=CRISIS_TEXT)
    files = [("files", (name, b"notes", "text/plain")) for name in ("a.txt", "b.txt", "c.txt")]
    await portal.post(f"/drafts/{draft_id}/attachments", files=files)

    resp = await portal.post(f"/drafts/{draft_id}/submit")
    assert resp.status_code == 201
    data = resp.json()
    assert data["ticket"]["id"] == 101
    assert [a["uploaded"] for a in data["attachments"]] == [True, False, True]
    assert len(data["warnings"]) == 1

    assert body_of(backend.calls("POST", "/tickets")[0]) == {
        "subject":     "Need help",
        "description": CRISIS_TEXT,
        "category_id": 4,
        "priority":    "Urgent",
    }
    order = [r.url.path for r in backend.requests if r.method == "POST"]
    assert order == ["/api/tickets"] + ["/api/tickets/101/attachments"] * 3

    draft = (await portal.get(f"/drafts/{draft_id}")).json()
    assert draft["subject"] == "" and draft["state"] == "NORMAL"


@pytest.mark.asyncio
async def test_submit_invalid_draft_is_422(portal, backend):
    draft_id, _ = await open_draft(portal, subject="", description="short")
    resp = await portal.post(f"/drafts/{draft_id}/submit")
    assert resp.status_code == 422
    assert "Subject is required" in resp.json()["errors"]
    assert backend.calls("POST", "/tickets") == []


@pytest.mark.asyncio
async def test_submit_backend_failure_keeps_draft(portal, backend):
    backend.on("POST", "/tickets", status=500, body={"success": False, "message": "Server error"})
    draft_id, _ = await open_draft(portal, subject="Need help", category_id=2, description=PLAIN_TEXT)

    resp = await portal.post(f"/drafts/{draft_id}/submit")
    assert resp.status_code == 502
    assert resp.json()["retryable"] is True
    assert len(backend.calls("POST", "/tickets")) == 1

    draft = (await portal.get(f"/drafts/{draft_id}")).json()
    assert draft["subject"] == "Need help"
    assert draft["submitting"] is False


# ─── Read views ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_categories_are_cached(portal, backend):
    await portal.get("/categories")
    await portal.get("/categories")
    assert len(backend.calls("GET", "/ticket-categories")) == 1
    await portal.get("/categories", params={"refresh": "true"})
    assert len(backend.calls("GET", "/ticket-categories")) == 2


@pytest.mark.asyncio
async def test_ticket_views(portal, backend):
    backend.on("GET", "/tickets", body={"success": True, "data": {"tickets": [
        ticket_dict(1, priority="Low"),
        ticket_dict(2, priority="Urgent", crisis_flag=True),
        ticket_dict(3, priority="High", assigned_to=50),
    ]}})
    data = (await portal.get("/tickets", params={"view": "crisis"})).json()
    assert [t["id"] for t in data["items"]] == [2]

    data = (await portal.get("/tickets", params={"sort_by": "priority", "sort_direction": "asc"})).json()
    assert [t["id"] for t in data["items"]] == [2, 3, 1]
    assert data["total"] == 3 and data["last_page"] == 1

    resp = await portal.get("/tickets", params={"priority": "Whenever"})
    assert resp.status_code == 422

    stats = (await portal.get("/tickets/stats")).json()
    assert stats["crisis"] == 1 and stats["unassigned"] == 2


@pytest.mark.asyncio
async def test_backend_auth_error_passes_through(portal, backend):
    backend.on("GET", "/notifications", status=401, body={"success": False, "message": "Unauthenticated."})
    resp = await portal.get("/notifications")
    assert resp.status_code == 401
    assert resp.json()["retryable"] is False


@pytest.mark.asyncio
async def test_permissions_fall_back_to_student(portal):
    data = (await portal.get("/permissions/janitor")).json()
    assert data["role"] == "student"
    assert data["permissions"]["can_create"] is True
    assert data["default_view"] == "my_tickets"


@pytest.mark.asyncio
async def test_submit_unparseable_ticket_keeps_draft(portal, backend):
    backend.on("POST", "/tickets", status=201, body={"success": True, "data": {"ticket": {"id": 9}}})
    draft_id, _ = await open_draft(portal, subject="Need help", category_id=2, description=PLAIN_TEXT)

    resp = await portal.post(f"/drafts/{draft_id}/submit")
    assert resp.status_code == 502
    assert resp.json()["retryable"] is True

    draft = (await portal.get(f"/drafts/{draft_id}")).json()
    assert draft["subject"] == "Need help"
    assert draft["submitting"] is False


# ─── Auth ─────────────────────────────────────────────────────────────────────

def session_body(token: str, role: str = "student"):
    return {"success": True, "data": {
        "token": token,
        "user": {"id": 7, "name": "Jane", "email": "jane@campus.edu", "role": role},
    }}


@pytest.mark.asyncio
async def test_login_then_logout_swaps_token(portal, backend):
    backend.on("POST", "/auth/login", body=session_body("fresh-token"))
    backend.on("POST", "/auth/logout", body={"success": True})
    backend.on("GET", "/notifications", body={"success": True, "data": {"notifications": []}})

    resp = await portal.post("/auth/login", json={"email": "jane@campus.edu", "password": "secret"})
    assert resp.status_code == 200
    assert resp.json()["user"]["role"] == "student"
    assert body_of(backend.calls("POST", "/auth/login")[0]) == {
        "email": "jane@campus.edu", "password": "secret",
    }

    await portal.get("/notifications")
    assert backend.calls("GET", "/notifications")[-1].headers["Authorization"] == "Bearer fresh-token"

    assert (await portal.post("/auth/logout")).status_code == 204
    await portal.get("/notifications")
    assert "Authorization" not in backend.calls("GET", "/notifications")[-1].headers


@pytest.mark.asyncio
async def test_logout_clears_token_when_backend_fails(portal, backend):
    backend.on("POST", "/auth/demo-login", body=session_body("demo-token", role="counselor"))
    backend.on("POST", "/auth/logout", status=500, body={"success": False})
    backend.on("GET", "/auth/user", status=401, body={"success": False, "message": "Unauthenticated."})

    data = (await portal.post("/auth/demo-login", json={"role": "counselor"})).json()
    assert data["user"]["role"] == "counselor"

    assert (await portal.post("/auth/logout")).status_code == 204
    resp = await portal.get("/auth/user")
    assert resp.status_code == 401
    assert "Authorization" not in backend.calls("GET", "/auth/user")[-1].headers


# ─── Ticket actions ───────────────────────────────────────────────────────────

@pytest.fixture
def ticket_backend(backend):
    backend.on("GET", "/tickets", body={"success": True, "data": {"tickets": [
        ticket_dict(1), ticket_dict(2, priority="High"),
    ]}})
    return backend


@pytest.mark.asyncio
async def test_update_ticket_replaces_cached_copy(portal, ticket_backend):
    ticket_backend.on("PATCH", "/tickets/1", body={"success": True, "data": {
        "ticket": ticket_dict(1, status="In Progress"),
    }})
    await portal.get("/tickets")

    resp = await portal.patch("/tickets/1", json={"status": "In Progress"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "In Progress"
    assert body_of(ticket_backend.calls("PATCH", "/tickets/1")[0]) == {"status": "In Progress"}

    data = (await portal.get("/tickets", params={"status": "In Progress"})).json()
    assert [t["id"] for t in data["items"]] == [1]
    assert len(ticket_backend.calls("GET", "/tickets")) == 1


@pytest.mark.asyncio
async def test_assign_and_respond(portal, ticket_backend):
    ticket_backend.on("POST", "/tickets/2/assign", body={"success": True, "data": {
        "ticket": ticket_dict(2, priority="High", assigned_to=50),
    }})
    ticket_backend.on("POST", "/tickets/2/responses", status=201, body={"success": True, "data": {
        "response": {"id": 5, "ticket_id": 2, "user_id": 50, "message": "On it."},
    }})
    ticket_backend.on("GET", "/tickets/2", body={"success": True, "data": {
        "ticket": ticket_dict(2, priority="High", assigned_to=50, status="In Progress"),
    }})
    await portal.get("/tickets")

    data = (await portal.post("/tickets/2/assign", json={"assigned_to": 50, "reason": "caseload"})).json()
    assert data["assigned_to"] == 50
    assert body_of(ticket_backend.calls("POST", "/tickets/2/assign")[0]) == {
        "assigned_to": 50, "reason": "caseload",
    }

    data = (await portal.post("/tickets/2/responses", json={"message": "On it."})).json()
    assert data["status"] == "In Progress"

    stats = (await portal.get("/tickets/stats")).json()
    assert stats["unassigned"] == 1


@pytest.mark.asyncio
async def test_delete_ticket_drops_it_from_list(portal, ticket_backend):
    ticket_backend.on("DELETE", "/tickets/1", body={"success": True})
    await portal.get("/tickets")

    assert (await portal.delete("/tickets/1")).status_code == 204
    data = (await portal.get("/tickets")).json()
    assert [t["id"] for t in data["items"]] == [2]
    assert data["total"] == 1


@pytest.mark.asyncio
async def test_ticket_stats_route_is_not_a_ticket_id(portal, ticket_backend):
    assert (await portal.get("/tickets/stats")).status_code == 200
    assert ticket_backend.calls("GET", "/tickets/stats") == []


# ─── Notifications, resources, FAQs ───────────────────────────────────────────

@pytest.mark.asyncio
async def test_delete_unread_notification_lowers_count(portal, backend):
    backend.on("GET", "/notifications", body={"success": True, "data": {"notifications": [
        {"id": 1, "user_id": 7, "title": "Reply", "message": "New reply", "read": False},
        {"id": 2, "user_id": 7, "title": "Update", "message": "Status changed", "read": True},
    ]}})
    backend.on("DELETE", "/notifications/1", body={"success": True})
    backend.on("GET", "/notifications/unread-count", body={"success": True, "data": {"unread_count": 4}})
    await portal.get("/notifications")

    data = (await portal.delete("/notifications/1")).json()
    assert data["unread_count"] == 0
    assert [n["id"] for n in (await portal.get("/notifications")).json()] == [2]

    data = (await portal.get("/notifications/unread-count")).json()
    assert data["unread_count"] == 4


@pytest.mark.asyncio
async def test_bookmark_toggle(portal, backend):
    backend.on("GET", "/resources", body={"success": True, "data": {"resources": [
        {"id": 3, "category_id": 1, "title": "Breathing exercises", "is_featured": True},
        {"id": 4, "category_id": 1, "title": "Study planner"},
    ]}})
    backend.on("POST", "/resources/4/bookmark", body={"success": True, "data": {"bookmarked": True}})
    await portal.get("/resources")

    data = (await portal.post("/resources/4/bookmark")).json()
    assert data == {"bookmarked": True}
    assert (await portal.get("/resources/4")).json()["is_bookmarked"] is True

    featured = (await portal.get("/resources", params={"featured": "true"})).json()
    assert [r["id"] for r in featured] == [3]


@pytest.mark.asyncio
async def test_faq_feedback_counts(portal, backend):
    backend.on("GET", "/help/faqs", body={"success": True, "data": {"faqs": [
        {"id": 8, "category_id": 1, "question": "How do I reset my password?",
         "answer": "Use the account page.", "helpful_count": 2},
    ]}})
    backend.on("POST", "/help/faqs/8/feedback", body={"success": True})

    resp = await portal.post("/faqs/8/feedback", json={"is_helpful": True})
    assert resp.status_code == 200
    assert resp.json()["helpful_count"] == 3
    assert body_of(backend.calls("POST", "/help/faqs/8/feedback")[0])["is_helpful"] is True


# ─── Admin ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_admin_users(portal, backend):
    backend.on("GET", "/admin/users", body={"success": True, "data": {
        "users": [{"id": 7, "name": "Jane", "role": "student"}],
        "pagination": {"current_page": 1, "last_page": 1, "per_page": 20, "total": 1},
    }})
    backend.on("GET", "/admin/users/stats", body={"success": True, "data": {"total": 1}})

    data = (await portal.get("/admin/users", params={"status": "active"})).json()
    assert [u["id"] for u in data["users"]] == [7]
    assert data["pagination"]["total"] == 1
    assert backend.calls("GET", "/admin/users")[0].url.params["status"] == "active"

    assert (await portal.get("/admin/users/stats")).json() == {"total": 1}


@pytest.mark.asyncio
async def test_admin_category_change_refreshes_category_list(portal, backend):
    backend.on("POST", "/admin/ticket-categories", status=201, body={"success": True, "data": {
        "category": category_dict(5, "Housing"),
    }})
    await portal.get("/categories")

    resp = await portal.post("/admin/categories", json={"name": "Housing"})
    assert resp.status_code == 201

    await portal.get("/categories")
    assert len(backend.calls("GET", "/ticket-categories")) == 2


@pytest.mark.asyncio
async def test_admin_keyword_bulk_action_rejects_unknown_action(portal, backend):
    resp = await portal.post("/admin/crisis-keywords/bulk-action", json={"action": "explode", "ids": [1]})
    assert resp.status_code == 422
    assert backend.calls("POST", "/admin/crisis-keywords/bulk-action") == []


@pytest.mark.asyncio
async def test_admin_keyword_sync_replaces_detector_phrases(portal, backend):
    backend.on("GET", "/admin/crisis-keywords", body={"success": True, "data": {"keywords": [
        {"id": 1, "keyword": "no way out", "is_active": True},
    ]}})
    data = (await portal.post("/admin/crisis-keywords/sync")).json()
    assert data == {"synced": 1, "active_phrases": 1}

    scan = (await portal.post("/crisis/scan", json={"text": "I see no way out"})).json()
    assert scan["crisis_detected"] is True


@pytest.mark.asyncio
async def test_admin_keyword_sync_keeps_phrases_on_malformed_record(portal, backend):
    backend.on("GET", "/admin/crisis-keywords", body={"success": True, "data": {"keywords": [
        {"keyword": "no way out"},
    ]}})
    before = len(app.state.detector.keywords)

    resp = await portal.post("/admin/crisis-keywords/sync")
    assert resp.status_code == 200
    assert resp.json() == {"synced": 0, "active_phrases": before}

    scan = (await portal.post("/crisis/scan", json={"text": CRISIS_TEXT})).json()
    assert scan["crisis_detected"] is True
