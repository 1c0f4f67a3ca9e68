"""Notification Service."""

from typing import Any, Dict, List, Optional, Tuple

from campus_support.schemas import Notification, NotificationPayload, Pagination
from campus_support.services.base import BaseService, parse_page, unwrap

BULK_ACTIONS = ("mark_read", "mark_unread", "delete")


class NotificationService(BaseService):

    async def list_notifications(
        self,
        filters: Optional[Dict[str, Any]] = None,
        fresh:   bool = False,
    ) -> Tuple[List[Notification], Pagination]:
        response = await self.client.get("/notifications", params=filters, fresh=fresh)
        return parse_page(Notification, response, "notifications")

    async def unread_count(self) -> int:
        response = await self.client.get("/notifications/unread-count", fresh=True)
        return int(unwrap(response, "unread_count") or 0)

    async def mark_read(self, notification_id: int) -> None:
        await self.client.patch(f"/notifications/{notification_id}/read")

    async def mark_unread(self, notification_id: int) -> None:
        await self.client.patch(f"/notifications/{notification_id}/unread")

    async def mark_all_read(self) -> int:
        response = await self.client.post("/notifications/mark-all-read")
        return int(unwrap(response, "updated_count") or 0)

    async def delete(self, notification_id: int) -> None:
        await self.client.delete(f"/notifications/{notification_id}")

    async def bulk_action(self, action: str, notification_ids: List[int]) -> Dict[str, Any]:
        if action not in BULK_ACTIONS:
            raise ValueError(f"Unknown bulk action {action!r}; expected one of {BULK_ACTIONS}")
        response = await self.client.post(
            "/notifications/bulk-action",
            json={"action": action, "notification_ids": notification_ids},
        )
        return response.data or {}

    async def create(self, payload: NotificationPayload) -> Dict[str, Any]:
        response = await self.client.post("/notifications", json=payload.model_dump(mode="json"))
        return response.data or {}

    async def stats(self) -> Dict[str, Any]:
        response = await self.client.get("/notifications/stats")
        return response.data or {}
