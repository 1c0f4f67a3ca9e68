"""
Admin Routes
============
Management endpoints mounted under /admin: users, ticket categories,
crisis keywords, notification broadcasts, resources and FAQs.

Every call is forwarded with the session token on the shared ApiClient;
the backend enforces the admin role.  Mutations of cached lists
invalidate the matching store so the next read refetches.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import Response

from campus_support.crisis import CrisisDetector
from campus_support.schemas import (
    FAQ,
    BulkActionRequest,
    Category,
    CategoryPayload,
    CrisisKeyword,
    CrisisKeywordPayload,
    FaqPayload,
    NotificationPayload,
    ReorderRequest,
    Resource,
    ResourcePayload,
    ScanRequest,
    User,
    UserPayload,
)
from campus_support.services.crisis_keywords import (
    CrisisKeywordService,
    score_text,
    sync_detector,
)
from campus_support.services.users import UserService
from campus_support.stores import CategoryStore, FaqStore, NotificationStore, ResourceStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ─── Dependencies ─────────────────────────────────────────────────────────────

def get_users(request: Request) -> UserService:
    return request.app.state.users


def get_categories(request: Request) -> CategoryStore:
    return request.app.state.categories


def get_keywords(request: Request) -> CrisisKeywordService:
    return request.app.state.keyword_service


def get_detector(request: Request) -> CrisisDetector:
    return request.app.state.detector


def get_notifications(request: Request) -> NotificationStore:
    return request.app.state.notifications


def get_resources(request: Request) -> ResourceStore:
    return request.app.state.resources


def get_faqs(request: Request) -> FaqStore:
    return request.app.state.faqs


# ─── Users ────────────────────────────────────────────────────────────────────

@router.get("/users")
async def list_users(
    role:     Optional[str] = None,
    status_:  Optional[str] = Query(default=None, alias="status"),
    search:   Optional[str] = None,
    page:     int = 1,
    per_page: int = 20,
    users:    UserService = Depends(get_users),
):
    filters = {"role": role, "status": status_, "search": search, "page": page, "per_page": per_page}
    items, pagination = await users.list_users({k: v for k, v in filters.items() if v is not None})
    return {"users": items, "pagination": pagination}


# literal path, declared before /users/{user_id}
@router.get("/users/stats")
async def user_stats(users: UserService = Depends(get_users)):
    return await users.stats()


@router.get("/users/{user_id}", response_model=User)
async def get_user(user_id: int, users: UserService = Depends(get_users)):
    return await users.get_user(user_id)


@router.post("/users", response_model=User, status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserPayload, users: UserService = Depends(get_users)):
    user = await users.create_user(payload)
    logger.info("Admin created user %d (%s)", user.id, user.role.value)
    return user


@router.put("/users/{user_id}", response_model=User)
async def update_user(user_id: int, payload: UserPayload, users: UserService = Depends(get_users)):
    return await users.update_user(user_id, payload)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: int, users: UserService = Depends(get_users)):
    await users.delete_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/users/{user_id}/toggle-status", response_model=User)
async def toggle_user_status(user_id: int, users: UserService = Depends(get_users)):
    return await users.toggle_status(user_id)


@router.post("/users/{user_id}/reset-password")
async def reset_user_password(user_id: int, users: UserService = Depends(get_users)):
    return await users.reset_password(user_id)


# ─── Ticket categories ────────────────────────────────────────────────────────

@router.get("/categories", response_model=List[Category])
async def list_all_categories(store: CategoryStore = Depends(get_categories)):
    return await store.service.list_categories(include_inactive=True)


@router.get("/categories/stats")
async def category_stats(store: CategoryStore = Depends(get_categories)):
    return await store.service.stats()


@router.post("/categories/reorder", status_code=status.HTTP_204_NO_CONTENT)
async def reorder_categories(body: ReorderRequest, store: CategoryStore = Depends(get_categories)):
    await store.service.reorder(body.ordered_ids)
    store.invalidate()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/categories/{category_id}", response_model=Category)
async def get_category(category_id: int, store: CategoryStore = Depends(get_categories)):
    return await store.service.get_category(category_id)


@router.post("/categories", response_model=Category, status_code=status.HTTP_201_CREATED)
async def create_category(payload: CategoryPayload, store: CategoryStore = Depends(get_categories)):
    category = await store.service.create_category(payload)
    store.invalidate()
    return category


@router.put("/categories/{category_id}", response_model=Category)
async def update_category(
    category_id: int,
    payload:     CategoryPayload,
    store:       CategoryStore = Depends(get_categories),
):
    category = await store.service.update_category(category_id, payload)
    store.invalidate()
    return category


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(category_id: int, store: CategoryStore = Depends(get_categories)):
    await store.service.delete_category(category_id)
    store.invalidate()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ─── Crisis keywords ──────────────────────────────────────────────────────────

@router.get("/crisis-keywords", response_model=List[CrisisKeyword])
async def list_keywords(
    active_only: bool = False,
    keywords:    CrisisKeywordService = Depends(get_keywords),
):
    if active_only:
        return await keywords.active_keywords()
    return await keywords.list_keywords()


@router.get("/crisis-keywords/stats")
async def keyword_stats(keywords: CrisisKeywordService = Depends(get_keywords)):
    return await keywords.stats()


@router.post("/crisis-keywords/sync")
async def sync_keywords(
    keywords: CrisisKeywordService = Depends(get_keywords),
    detector: CrisisDetector = Depends(get_detector),
):
    """Reload the live detector from the backend's active keywords."""
    synced = await sync_detector(keywords, detector)
    return {"synced": synced, "active_phrases": len(detector.keywords)}


@router.post("/crisis-keywords/test-detection")
async def test_detection(body: ScanRequest, keywords: CrisisKeywordService = Depends(get_keywords)):
    return await keywords.test_detection(body.text)


@router.post("/crisis-keywords/preview")
async def preview_detection(body: ScanRequest, keywords: CrisisKeywordService = Depends(get_keywords)):
    """Weighted score of `text` against the active keywords, computed locally."""
    return score_text(body.text, await keywords.active_keywords())


@router.post("/crisis-keywords/bulk-action")
async def bulk_keyword_action(body: BulkActionRequest, keywords: CrisisKeywordService = Depends(get_keywords)):
    try:
        return await keywords.bulk_action(body.action, body.ids)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.post("/crisis-keywords", response_model=CrisisKeyword, status_code=status.HTTP_201_CREATED)
async def create_keyword(payload: CrisisKeywordPayload, keywords: CrisisKeywordService = Depends(get_keywords)):
    return await keywords.create_keyword(payload)


@router.put("/crisis-keywords/{keyword_id}", response_model=CrisisKeyword)
async def update_keyword(
    keyword_id: int,
    payload:    CrisisKeywordPayload,
    keywords:   CrisisKeywordService = Depends(get_keywords),
):
    return await keywords.update_keyword(keyword_id, payload)


@router.delete("/crisis-keywords/{keyword_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_keyword(keyword_id: int, keywords: CrisisKeywordService = Depends(get_keywords)):
    await keywords.delete_keyword(keyword_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ─── Notifications ────────────────────────────────────────────────────────────

@router.post("/notifications", status_code=status.HTTP_201_CREATED)
async def send_notification(payload: NotificationPayload, store: NotificationStore = Depends(get_notifications)):
    result = await store.service.create(payload)
    store.invalidate()
    return result


@router.get("/notifications/stats")
async def notification_stats(store: NotificationStore = Depends(get_notifications)):
    return await store.service.stats()


@router.post("/notifications/bulk-action")
async def bulk_notification_action(body: BulkActionRequest, store: NotificationStore = Depends(get_notifications)):
    try:
        result = await store.service.bulk_action(body.action, body.ids)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    store.invalidate()
    return result


# ─── Resources ────────────────────────────────────────────────────────────────

@router.get("/resources/stats")
async def resource_stats(store: ResourceStore = Depends(get_resources)):
    return await store.service.stats()


@router.post("/resources", response_model=Resource, status_code=status.HTTP_201_CREATED)
async def create_resource(payload: ResourcePayload, store: ResourceStore = Depends(get_resources)):
    resource = await store.service.create_resource(payload)
    store.invalidate()
    return resource


@router.put("/resources/{resource_id}", response_model=Resource)
async def update_resource(
    resource_id: int,
    payload:     ResourcePayload,
    store:       ResourceStore = Depends(get_resources),
):
    resource = await store.service.update_resource(resource_id, payload)
    store.invalidate()
    return resource


@router.delete("/resources/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_resource(resource_id: int, store: ResourceStore = Depends(get_resources)):
    await store.service.delete_resource(resource_id)
    store.invalidate()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ─── FAQs ─────────────────────────────────────────────────────────────────────

@router.get("/faqs/stats")
async def faq_stats(store: FaqStore = Depends(get_faqs)):
    return await store.service.stats()


@router.post("/faqs", response_model=FAQ, status_code=status.HTTP_201_CREATED)
async def create_faq(payload: FaqPayload, store: FaqStore = Depends(get_faqs)):
    faq = await store.service.create_faq(payload)
    store.invalidate()
    return faq


@router.put("/faqs/{faq_id}", response_model=FAQ)
async def update_faq(faq_id: int, payload: FaqPayload, store: FaqStore = Depends(get_faqs)):
    faq = await store.service.update_faq(faq_id, payload)
    store.invalidate()
    return faq


@router.delete("/faqs/{faq_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_faq(faq_id: int, store: FaqStore = Depends(get_faqs)):
    await store.service.delete_faq(faq_id)
    store.invalidate()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
