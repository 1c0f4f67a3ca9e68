"""
Crisis Keyword Service (admin)
==============================
CRUD over the weighted crisis keywords plus the backend's detection test.
`active_keywords()` feeds the live CrisisDetector.
"""

import logging
from typing import Any, Dict, List, Optional

from campus_support.crisis import (
    CrisisDetector,
    calculate_crisis_score,
    crisis_score_status,
    matching_keywords,
)
from campus_support.exceptions import ApiError
from campus_support.schemas import CrisisKeyword, CrisisKeywordPayload
from campus_support.services.base import BaseService, parse_list, parse_one

logger = logging.getLogger(__name__)

BULK_ACTIONS = ("activate", "deactivate", "delete")


class CrisisKeywordService(BaseService):

    async def list_keywords(self, filters: Optional[Dict[str, Any]] = None) -> List[CrisisKeyword]:
        response = await self.client.get("/admin/crisis-keywords", params=filters)
        return parse_list(CrisisKeyword, response, "keywords")

    async def active_keywords(self) -> List[CrisisKeyword]:
        return [k for k in await self.list_keywords({"is_active": True}) if k.is_active]

    async def create_keyword(self, payload: CrisisKeywordPayload) -> CrisisKeyword:
        response = await self.client.post("/admin/crisis-keywords", json=payload.model_dump(mode="json"))
        return parse_one(CrisisKeyword, response, "keyword")

    async def update_keyword(self, keyword_id: int, payload: CrisisKeywordPayload) -> CrisisKeyword:
        response = await self.client.put(
            f"/admin/crisis-keywords/{keyword_id}", json=payload.model_dump(mode="json"),
        )
        return parse_one(CrisisKeyword, response, "keyword")

    async def delete_keyword(self, keyword_id: int) -> None:
        await self.client.delete(f"/admin/crisis-keywords/{keyword_id}")

    async def bulk_action(self, action: str, keyword_ids: List[int]) -> Dict[str, Any]:
        if action not in BULK_ACTIONS:
            raise ValueError(f"Unknown bulk action {action!r}; expected one of {BULK_ACTIONS}")
        if not keyword_ids:
            raise ValueError("No keywords selected")
        response = await self.client.post(
            "/admin/crisis-keywords/bulk-action",
            json={"action": action, "keyword_ids": keyword_ids},
        )
        return response.data or {}

    async def test_detection(self, text: str) -> Dict[str, Any]:
        response = await self.client.post("/admin/crisis-keywords/test-detection", json={"text": text})
        return response.data or {}

    async def stats(self) -> Dict[str, Any]:
        response = await self.client.get("/admin/crisis-keywords/stats")
        return response.data or {}

    async def refresh_detector(self, detector: CrisisDetector) -> int:
        """
        Load the active keywords into `detector`; returns the phrase count.
        An empty backend list leaves the detector's current phrases in place
        and returns 0.
        """
        records = await self.active_keywords()
        if not any(r.keyword.strip() for r in records):
            logger.warning(
                "Backend has no active crisis keywords; keeping the current %d phrases",
                len(detector.keywords),
            )
            return 0
        return detector.load_active(records)


async def sync_detector(service: CrisisKeywordService, detector: CrisisDetector) -> int:
    """Best-effort refresh; a backend failure keeps the detector's current phrases."""
    try:
        count = await service.refresh_detector(detector)
    except ApiError as exc:
        logger.warning("Crisis keyword sync failed, keeping %d current phrases: %s",
                       len(detector.keywords), exc)
        return 0
    if count:
        logger.info("✓ Crisis keywords synced from backend (%d phrases)", count)
    return count


def score_text(text: str, records: List[CrisisKeyword]) -> Dict[str, Any]:
    """Local preview of the admin test-detection result."""
    hits = matching_keywords(text, records)
    score = calculate_crisis_score(hits)
    return {
        "crisis_detected": bool(hits),
        "matched":         [k.keyword for k in hits],
        "score":           score,
        "status":          crisis_score_status(score),
    }
