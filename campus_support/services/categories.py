"""
Ticket Category Service
=======================
Category reads are cached for CACHE_TTL_SECS (5 minutes by default);
every admin mutation invalidates the cache.
"""

import logging
from typing import Any, Dict, List, Optional

from campus_support.api_client import ApiClient
from campus_support.cache import CacheState, Clock, default_clock, should_refetch
from campus_support.config import settings
from campus_support.schemas import Category, CategoryPayload
from campus_support.services.base import BaseService, parse_list, parse_one

logger = logging.getLogger(__name__)


class CategoryService(BaseService):
    def __init__(
        self,
        client: ApiClient,
        ttl:    Optional[float] = None,
        clock:  Clock = default_clock,
    ):
        super().__init__(client)
        self.ttl    = settings.CACHE_TTL_SECS if ttl is None else ttl
        self._clock = clock
        self._cache: Dict[bool, CacheState] = {}

    def invalidate(self) -> None:
        self._cache.clear()

    async def list_categories(self, include_inactive: bool = False, force: bool = False) -> List[Category]:
        state = self._cache.get(include_inactive, CacheState())
        if not force and not should_refetch(state, self._clock(), self.ttl):
            return list(state.data)

        params = {"include_inactive": include_inactive} if include_inactive else None
        response = await self.client.get("/ticket-categories", params=params, fresh=force)
        categories = sorted(parse_list(Category, response, "categories"),
                            key=lambda c: (c.sort_order, c.name.casefold()))
        self._cache[include_inactive] = state.loaded(categories, self._clock())
        logger.info("Loaded %d ticket categories", len(categories))
        return list(categories)

    async def get_category(self, category_id: int) -> Category:
        response = await self.client.get(f"/admin/ticket-categories/{category_id}")
        return parse_one(Category, response, "category")

    # ── Admin mutations ───────────────────────────────────────────────────────

    async def create_category(self, payload: CategoryPayload) -> Category:
        response = await self.client.post("/admin/ticket-categories", json=payload.model_dump(mode="json"))
        self.invalidate()
        return parse_one(Category, response, "category")

    async def update_category(self, category_id: int, payload: CategoryPayload) -> Category:
        response = await self.client.put(
            f"/admin/ticket-categories/{category_id}", json=payload.model_dump(mode="json"),
        )
        self.invalidate()
        return parse_one(Category, response, "category")

    async def delete_category(self, category_id: int) -> None:
        await self.client.delete(f"/admin/ticket-categories/{category_id}")
        self.invalidate()

    async def reorder(self, ordered_ids: List[int]) -> None:
        body = {"categories": [{"id": cid, "sort_order": i} for i, cid in enumerate(ordered_ids, start=1)]}
        await self.client.post("/admin/ticket-categories/reorder", json=body)
        self.invalidate()

    async def stats(self) -> Dict[str, Any]:
        response = await self.client.get("/admin/ticket-categories/stats/overview")
        return response.data or {}
