"""
Auth Service
============
Login stores the bearer token on the shared ApiClient so every later
service call is authenticated; logout clears it even if the backend call
fails.
"""

import logging

from campus_support.exceptions import ApiError
from campus_support.schemas import ApiResponse, AuthSession, Role, User
from campus_support.services.base import BaseService, parse_model, parse_one

logger = logging.getLogger(__name__)


class AuthService(BaseService):

    async def login(self, email: str, password: str) -> AuthSession:
        response = await self.client.post("/auth/login", json={"email": email, "password": password})
        return self._start_session(response)

    async def demo_login(self, role: Role) -> AuthSession:
        response = await self.client.post("/auth/demo-login", json={"role": Role(role).value})
        return self._start_session(response)

    async def current_user(self) -> User:
        response = await self.client.get("/auth/user", fresh=True)
        return parse_one(User, response, "user")

    async def refresh_token(self) -> AuthSession:
        response = await self.client.post("/auth/refresh")
        return self._start_session(response)

    async def logout(self) -> None:
        try:
            await self.client.post("/auth/logout")
        except ApiError as exc:
            logger.warning("Logout request failed, clearing local session anyway: %s", exc)
        finally:
            self.client.set_token(None)

    def _start_session(self, response: ApiResponse) -> AuthSession:
        session = parse_model(AuthSession, response.data, response.status_code)
        self.client.set_token(session.token)
        logger.info("Signed in as %s (%s)", session.user.email, session.user.role.value)
        return session
