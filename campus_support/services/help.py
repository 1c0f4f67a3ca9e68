"""Help Center / FAQ Service."""

from typing import Any, Dict, List, Optional

from campus_support.schemas import (
    FAQ,
    ContentSuggestion,
    FaqFeedback,
    FaqPayload,
    HelpCategory,
)
from campus_support.services.base import BaseService, parse_list, parse_one


class HelpService(BaseService):

    async def categories(self) -> List[HelpCategory]:
        response = await self.client.get("/help/categories")
        return parse_list(HelpCategory, response, "categories")

    async def faqs(self, filters: Optional[Dict[str, Any]] = None, fresh: bool = False) -> List[FAQ]:
        response = await self.client.get("/help/faqs", params=filters, fresh=fresh)
        return parse_list(FAQ, response, "faqs")

    async def faq(self, faq_id: int) -> FAQ:
        response = await self.client.get(f"/help/faqs/{faq_id}")
        return parse_one(FAQ, response, "faq")

    async def feedback(self, faq_id: int, feedback: FaqFeedback) -> Dict[str, Any]:
        response = await self.client.post(
            f"/help/faqs/{faq_id}/feedback", json=feedback.model_dump(mode="json"),
        )
        return response.data or {}

    async def suggest_content(self, suggestion: ContentSuggestion) -> Dict[str, Any]:
        response = await self.client.post("/help/suggest-content", json=suggestion.model_dump(mode="json"))
        return response.data or {}

    async def stats(self) -> Dict[str, Any]:
        response = await self.client.get("/help/stats")
        return response.data or {}

    # ── Admin ─────────────────────────────────────────────────────────────────

    async def create_faq(self, payload: FaqPayload) -> FAQ:
        response = await self.client.post("/admin/help/faqs", json=payload.model_dump(mode="json"))
        return parse_one(FAQ, response, "faq")

    async def update_faq(self, faq_id: int, payload: FaqPayload) -> FAQ:
        response = await self.client.put(f"/admin/help/faqs/{faq_id}", json=payload.model_dump(mode="json"))
        return parse_one(FAQ, response, "faq")

    async def delete_faq(self, faq_id: int) -> None:
        await self.client.delete(f"/admin/help/faqs/{faq_id}")
