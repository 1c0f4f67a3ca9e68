"""Resource Library Service."""

from typing import Any, Dict, List, Optional, Tuple

from campus_support.schemas import (
    Pagination,
    Resource,
    ResourceCategory,
    ResourceFeedback,
    ResourcePayload,
)
from campus_support.services.base import BaseService, parse_list, parse_one, parse_page, unwrap


class ResourceService(BaseService):

    async def list_resources(
        self,
        filters: Optional[Dict[str, Any]] = None,
        fresh:   bool = False,
    ) -> Tuple[List[Resource], Pagination]:
        response = await self.client.get("/resources", params=filters, fresh=fresh)
        return parse_page(Resource, response, "resources")

    async def categories(self) -> List[ResourceCategory]:
        response = await self.client.get("/resources/categories")
        return parse_list(ResourceCategory, response, "categories")

    async def get_resource(self, resource_id: int) -> Resource:
        response = await self.client.get(f"/resources/{resource_id}")
        return parse_one(Resource, response, "resource")

    async def access(self, resource_id: int) -> Dict[str, Any]:
        """Record a view/download; returns `{url, action}`."""
        response = await self.client.get(f"/resources/{resource_id}/access", fresh=True)
        return response.data or {}

    async def feedback(self, resource_id: int, feedback: ResourceFeedback) -> Dict[str, Any]:
        response = await self.client.post(
            f"/resources/{resource_id}/feedback", json=feedback.model_dump(mode="json"),
        )
        return response.data or {}

    async def toggle_bookmark(self, resource_id: int) -> bool:
        response = await self.client.post(f"/resources/{resource_id}/bookmark")
        return bool(unwrap(response, "bookmarked"))

    async def bookmarks(self) -> List[Resource]:
        response = await self.client.get("/resources/user/bookmarks", fresh=True)
        return parse_list(Resource, response, "bookmarks")

    async def stats(self) -> Dict[str, Any]:
        response = await self.client.get("/resources/stats")
        return response.data or {}

    # ── Admin ─────────────────────────────────────────────────────────────────

    async def create_resource(self, payload: ResourcePayload) -> Resource:
        response = await self.client.post("/admin/resources", json=payload.model_dump(mode="json"))
        return parse_one(Resource, response, "resource")

    async def update_resource(self, resource_id: int, payload: ResourcePayload) -> Resource:
        response = await self.client.put(
            f"/admin/resources/{resource_id}", json=payload.model_dump(mode="json"),
        )
        return parse_one(Resource, response, "resource")

    async def delete_resource(self, resource_id: int) -> None:
        await self.client.delete(f"/admin/resources/{resource_id}")
