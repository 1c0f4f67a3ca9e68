"""
Stores
======
Owned, in-memory caches of the lists the portal shows.

Each store keeps one `CacheState` whose data is an immutable `Collection`.
`load()` only goes to the backend when `should_refetch` says so; local
mutations go through the service first and then apply a collection command,
producing a new snapshot (readers holding the old one are unaffected).
"""

import asyncio
import logging
from typing import Any, Dict, Generic, List, Optional, TypeVar

from campus_support.cache import CacheState, Clock, default_clock, should_refetch
from campus_support.collection import Collection, Insert, Remove, Replace
from campus_support.config import settings
from campus_support.schemas import (
    FAQ,
    Category,
    FaqFeedback,
    Notification,
    Pagination,
    ReplyPayload,
    Resource,
    Ticket,
    TicketUpdatePayload,
)
from campus_support.services.categories import CategoryService
from campus_support.services.help import HelpService
from campus_support.services.notifications import NotificationService
from campus_support.services.resources import ResourceService
from campus_support.services.tickets import TicketService

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TICKET_FILTERS: Dict[str, Any] = {
    "page":           1,
    "per_page":       20,
    "sort_by":        "updated_at",
    "sort_direction": "desc",
}


# ─── Base ─────────────────────────────────────────────────────────────────────

class CollectionStore(Generic[T]):
    name = "records"

    def __init__(self, ttl: Optional[float] = None, clock: Clock = default_clock):
        self.ttl    = settings.CACHE_TTL_SECS if ttl is None else ttl
        self._clock = clock
        self._state: CacheState = CacheState()
        self._lock  = asyncio.Lock()

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def collection(self) -> Collection:
        return self._state.data if self._state.data is not None else Collection()

    @property
    def items(self) -> List[T]:
        return self.collection.to_list()

    def get(self, item_id) -> Optional[T]:
        return self.collection.get(item_id)

    # ── Fetch ─────────────────────────────────────────────────────────────────

    async def _fetch(self) -> List[T]:
        raise NotImplementedError

    async def load(self, force: bool = False) -> List[T]:
        async with self._lock:
            if not force and not should_refetch(self._state, self._clock(), self.ttl):
                return self.items

            self._state = self._state.loading()
            try:
                fetched = await self._fetch()
                self._state = self._state.loaded(Collection.of(fetched), self._clock())
            except Exception as exc:
                self._state = self._state.failed(str(exc))
                logger.warning("[%s] Load failed: %s", self.name, exc)
                raise
            finally:
                # cancelled mid-fetch: the next load() must be allowed to retry
                if self._state.is_loading:
                    self._state = self._state.failed("Load cancelled")

            logger.debug("[%s] Loaded %d item(s)", self.name, len(fetched))
            return self.items

    def invalidate(self) -> None:
        self._state = self._state.invalidated()

    # ── Local mutation ────────────────────────────────────────────────────────

    def apply(self, command) -> Collection:
        updated = self.collection.apply(command)
        self._state = self._state.with_data(updated)
        return updated


# ─── Tickets ──────────────────────────────────────────────────────────────────

class TicketStore(CollectionStore[Ticket]):
    name = "tickets"

    def __init__(self, service: TicketService, **kwargs):
        super().__init__(**kwargs)
        self.service    = service
        self.filters:    Dict[str, Any] = dict(DEFAULT_TICKET_FILTERS)
        self.pagination: Pagination = Pagination()

    def set_filters(self, **changes) -> bool:
        """Merge filter changes; returns True (and invalidates) when they differ."""
        merged = dict(self.filters)
        for key, value in changes.items():
            if value is None or value == "all":
                merged.pop(key, None)
            else:
                merged[key] = value
        if "page" not in changes and merged != self.filters:
            merged["page"] = 1
        if merged == self.filters:
            return False
        self.filters = merged
        self.invalidate()
        return True

    def reset_filters(self) -> None:
        self.filters = dict(DEFAULT_TICKET_FILTERS)
        self.invalidate()

    async def _fetch(self) -> List[Ticket]:
        tickets, self.pagination = await self.service.list_tickets(self.filters, fresh=True)
        return tickets

    def add(self, ticket: Ticket) -> None:
        self.apply(Insert(ticket))
        self.pagination = self.pagination.model_copy(update={"total": self.pagination.total + 1})

    async def update(self, ticket_id: int, payload: TicketUpdatePayload) -> Ticket:
        ticket = await self.service.update_ticket(ticket_id, payload)
        self.apply(Replace(ticket))
        return ticket

    async def delete(self, ticket_id: int) -> None:
        await self.service.delete_ticket(ticket_id)
        self.apply(Remove(ticket_id))
        self.pagination = self.pagination.model_copy(
            update={"total": max(0, self.pagination.total - 1)},
        )

    async def assign(self, ticket_id: int, assigned_to: Optional[int], reason: str = "") -> Ticket:
        ticket = await self.service.assign_ticket(ticket_id, assigned_to, reason)
        self.apply(Replace(ticket))
        return ticket

    async def add_response(self, ticket_id: int, payload: ReplyPayload) -> Ticket:
        await self.service.add_response(ticket_id, payload)
        ticket = await self.service.get_ticket(ticket_id)
        self.apply(Replace(ticket))
        return ticket


# ─── Categories ───────────────────────────────────────────────────────────────

class CategoryStore(CollectionStore[Category]):
    name = "categories"

    def __init__(self, service: CategoryService, **kwargs):
        super().__init__(**kwargs)
        self.service = service

    async def _fetch(self) -> List[Category]:
        return await self.service.list_categories(force=True)

    def active(self) -> List[Category]:
        return [c for c in self.items if c.is_active]


# ─── Notifications ────────────────────────────────────────────────────────────

class NotificationStore(CollectionStore[Notification]):
    name = "notifications"

    def __init__(self, service: NotificationService, **kwargs):
        super().__init__(**kwargs)
        self.service      = service
        self.unread_count = 0

    async def _fetch(self) -> List[Notification]:
        notifications, _ = await self.service.list_notifications({"per_page": 50}, fresh=True)
        self.unread_count = sum(1 for n in notifications if not n.read)
        return notifications

    async def refresh_unread(self) -> int:
        self.unread_count = await self.service.unread_count()
        return self.unread_count

    async def mark_read(self, notification_id: int) -> None:
        await self.service.mark_read(notification_id)
        current = self.get(notification_id)
        if current is not None and not current.read:
            self.apply(Replace(current.model_copy(update={"read": True})))
            self.unread_count = max(0, self.unread_count - 1)

    async def mark_unread(self, notification_id: int) -> None:
        await self.service.mark_unread(notification_id)
        current = self.get(notification_id)
        if current is not None and current.read:
            self.apply(Replace(current.model_copy(update={"read": False})))
            self.unread_count += 1

    async def mark_all_read(self) -> None:
        await self.service.mark_all_read()
        for n in self.items:
            if not n.read:
                self.apply(Replace(n.model_copy(update={"read": True})))
        self.unread_count = 0

    async def delete(self, notification_id: int) -> None:
        await self.service.delete(notification_id)
        current = self.get(notification_id)
        self.apply(Remove(notification_id))
        if current is not None and not current.read:
            self.unread_count = max(0, self.unread_count - 1)


# ─── Resources ────────────────────────────────────────────────────────────────

class ResourceStore(CollectionStore[Resource]):
    name = "resources"

    def __init__(self, service: ResourceService, **kwargs):
        super().__init__(**kwargs)
        self.service = service

    async def _fetch(self) -> List[Resource]:
        resources, _ = await self.service.list_resources({"per_page": 100}, fresh=True)
        return resources

    def featured(self) -> List[Resource]:
        return [r for r in self.items if r.is_featured]

    async def toggle_bookmark(self, resource_id: int) -> bool:
        bookmarked = await self.service.toggle_bookmark(resource_id)
        current = self.get(resource_id)
        if current is not None:
            self.apply(Replace(current.model_copy(update={"is_bookmarked": bookmarked})))
        return bookmarked


# ─── FAQs ─────────────────────────────────────────────────────────────────────

class FaqStore(CollectionStore[FAQ]):
    name = "faqs"

    def __init__(self, service: HelpService, **kwargs):
        super().__init__(**kwargs)
        self.service = service

    async def _fetch(self) -> List[FAQ]:
        return await self.service.faqs({"per_page": 100}, fresh=True)

    def search(self, term: str) -> List[FAQ]:
        needle = (term or "").strip().casefold()
        if not needle:
            return self.items
        return [
            f for f in self.items
            if needle in f.question.casefold() or needle in f.answer.casefold()
            or any(needle in t.casefold() for t in f.tags)
        ]

    async def feedback(self, faq_id: int, feedback: FaqFeedback) -> None:
        await self.service.feedback(faq_id, feedback)
        current = self.get(faq_id)
        if current is None:
            return
        field = "helpful_count" if feedback.is_helpful else "not_helpful_count"
        self.apply(Replace(current.model_copy(update={field: getattr(current, field) + 1})))
