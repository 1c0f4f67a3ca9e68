import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from campus_support.api_client import ApiClient
from campus_support.crisis import CrisisDetector
from campus_support.schemas import Category, Ticket

KEYWORDS = ["suicide", "kill myself", "self harm", "want to die", "ending it all", "hopeless"]


def category_dict(id: int, name: str, crisis: bool = False, **extra) -> Dict[str, Any]:
    data = {
        "id": id,
        "name": name,
        "description": f"{name} support",
        "color": "#3B82F6",
        "sla_response_hours": 4 if crisis else 24,
        "crisis_detection_enabled": crisis,
        "auto_assign": True,
    }
    data.update(extra)
    return data


def ticket_dict(id: int, **extra) -> Dict[str, Any]:
    data = {
        "id": id,
        "ticket_number": f"T-{id:05d}",
        "user_id": 7,
        "subject": f"Ticket {id}",
        "description": "Need some help with my course registration please.",
        "category_id": 1,
        "priority": "Medium",
        "status": "Open",
        "crisis_flag": False,
        "assigned_to": None,
        "created_at": f"2026-01-{id % 28 + 1:02d}T10:00:00Z",
        "updated_at": f"2026-02-{id % 28 + 1:02d}T10:00:00Z",
    }
    data.update(extra)
    return data


def make_ticket(id: int, **extra) -> Ticket:
    return Ticket.model_validate(ticket_dict(id, **extra))


@pytest.fixture
def categories() -> List[Category]:
    return [
        Category.model_validate(category_dict(1, "Academic Support")),
        Category.model_validate(category_dict(2, "Technical Help")),
        Category.model_validate(category_dict(3, "Mental Health & Wellness")),
        Category.model_validate(category_dict(4, "Crisis Support", crisis=True)),
    ]


@pytest.fixture
def detector() -> CrisisDetector:
    return CrisisDetector(KEYWORDS)


class FakeBackend:
    """Routes `METHOD /path` to canned handlers and records every request."""

    def __init__(self):
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, status: int = 200, body: Any = None, handler=None):
        if handler is None:
            def handler(request, _status=status, _body=body):
                return httpx.Response(_status, json=_body)
        self.routes[f"{method.upper()} {path}"] = handler

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper() and r.url.path == "/api" + path
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len("/api"):]
        handler = self.routes.get(f"{request.method} {path}")
        if handler is None:
            return httpx.Response(404, json={"success": False, "message": f"No route {path}"})
        return handler(request)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_client(backend):
    def factory(**kwargs) -> ApiClient:
        kwargs.setdefault("base_delay", 0)
        kwargs.setdefault("dedupe_window", 0)
        return ApiClient(
            base_url="http://backend.test/api",
            token="test-token",
            transport=httpx.MockTransport(backend),
            **kwargs,
        )
    return factory


def body_of(request: httpx.Request) -> Dict[str, Any]:
    return json.loads(request.content.decode("utf-8"))
