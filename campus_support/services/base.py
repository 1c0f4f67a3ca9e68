"""
Service helpers
===============
The backend wraps every payload as `data.{key}`: `data.ticket`,
`data.tickets` + `data.pagination`, `data.categories`, ...  These helpers
unwrap and parse those shapes into schema models.

A record that does not match its schema is reported as an ApiError, the
same as any other unusable backend answer.
"""

import logging
from typing import Any, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from campus_support.api_client import ApiClient
from campus_support.exceptions import ApiError
from campus_support.schemas import ApiResponse, Pagination

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

UNEXPECTED_RESPONSE_MESSAGE = "Unexpected response from the support server. Please try again."


class BaseService:
    def __init__(self, client: ApiClient):
        self.client = client


def unwrap(response: ApiResponse, key: str) -> Any:
    data = response.data
    if isinstance(data, dict) and key in data:
        return data[key]
    return data


def parse_model(model: Type[M], raw: Any, status_code: Optional[int] = None) -> M:
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Malformed %s record from backend (%d error(s)): %s",
                       model.__name__, exc.error_count(), exc)
        raise ApiError(UNEXPECTED_RESPONSE_MESSAGE, status_code) from exc


def parse_one(model: Type[M], response: ApiResponse, key: str) -> M:
    return parse_model(model, unwrap(response, key), response.status_code)


def parse_list(model: Type[M], response: ApiResponse, key: str) -> List[M]:
    items = unwrap(response, key) or []
    # Laravel-style paginator: {"data": [...], "current_page": ...}
    if isinstance(items, dict):
        items = items.get("data", [])
    return [parse_model(model, it, response.status_code) for it in items]


def parse_page(model: Type[M], response: ApiResponse, key: str) -> Tuple[List[M], Pagination]:
    items = parse_list(model, response, key)
    raw = response.data.get("pagination") if isinstance(response.data, dict) else None
    if raw:
        page = parse_model(Pagination, raw, response.status_code)
    else:
        page = Pagination(current_page=1, last_page=1, per_page=max(len(items), 1), total=len(items))
    return items, page
