"""User Management Service (admin)."""

from typing import Any, Dict, List, Optional, Tuple

from campus_support.schemas import Pagination, User, UserPayload
from campus_support.services.base import BaseService, parse_one, parse_page


class UserService(BaseService):

    async def list_users(
        self,
        filters: Optional[Dict[str, Any]] = None,
        fresh:   bool = False,
    ) -> Tuple[List[User], Pagination]:
        response = await self.client.get("/admin/users", params=filters, fresh=fresh)
        return parse_page(User, response, "users")

    async def get_user(self, user_id: int) -> User:
        response = await self.client.get(f"/admin/users/{user_id}")
        return parse_one(User, response, "user")

    async def create_user(self, payload: UserPayload) -> User:
        response = await self.client.post("/admin/users", json=payload.model_dump(mode="json", exclude_none=True))
        return parse_one(User, response, "user")

    async def update_user(self, user_id: int, payload: UserPayload) -> User:
        response = await self.client.put(
            f"/admin/users/{user_id}", json=payload.model_dump(mode="json", exclude_none=True),
        )
        return parse_one(User, response, "user")

    async def delete_user(self, user_id: int) -> None:
        await self.client.delete(f"/admin/users/{user_id}")

    async def toggle_status(self, user_id: int) -> User:
        response = await self.client.post(f"/admin/users/{user_id}/toggle-status")
        return parse_one(User, response, "user")

    async def reset_password(self, user_id: int) -> Dict[str, Any]:
        response = await self.client.post(f"/admin/users/{user_id}/reset-password")
        return response.data or {}

    async def stats(self) -> Dict[str, Any]:
        response = await self.client.get("/admin/users/stats")
        return response.data or {}
