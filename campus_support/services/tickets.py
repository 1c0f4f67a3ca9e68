"""
Ticket Service
==============
Ticket creation is a flat JSON request; attachments follow as one
multipart request per file against the created ticket.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from campus_support.schemas import (
    Pagination,
    ReplyPayload,
    Ticket,
    TicketAttachment,
    TicketCreatePayload,
    TicketReply,
    TicketUpdatePayload,
)
from campus_support.services.base import BaseService, parse_model, parse_one, parse_page
from campus_support.validation import AttachmentFile

logger = logging.getLogger(__name__)

ATTACHMENT_FIELD = "attachment"


class TicketService(BaseService):

    async def list_tickets(
        self,
        filters: Optional[Dict[str, Any]] = None,
        fresh:   bool = False,
    ) -> Tuple[List[Ticket], Pagination]:
        response = await self.client.get("/tickets", params=filters, fresh=fresh)
        return parse_page(Ticket, response, "tickets")

    async def get_ticket(self, ticket_id: int) -> Ticket:
        response = await self.client.get(f"/tickets/{ticket_id}")
        return parse_one(Ticket, response, "ticket")

    async def create_ticket(self, payload: TicketCreatePayload) -> Ticket:
        response = await self.client.post("/tickets", json=payload.model_dump(mode="json"))
        ticket = parse_one(Ticket, response, "ticket")
        logger.info("Ticket %s created (id=%d, priority=%s)",
                    ticket.ticket_number, ticket.id, ticket.priority.value)
        return ticket

    async def upload_attachment(self, ticket_id: int, file: AttachmentFile) -> Optional[TicketAttachment]:
        response = await self.client.upload(
            f"/tickets/{ticket_id}/attachments",
            files={ATTACHMENT_FIELD: (file.filename, file.content, file.content_type)},
        )
        # some deployments answer with an empty body
        data = response.data
        if isinstance(data, dict) and "attachment" in data:
            return parse_model(TicketAttachment, data["attachment"], response.status_code)
        return None

    async def update_ticket(self, ticket_id: int, payload: TicketUpdatePayload) -> Ticket:
        body = payload.model_dump(mode="json", exclude_none=True)
        response = await self.client.patch(f"/tickets/{ticket_id}", json=body)
        return parse_one(Ticket, response, "ticket")

    async def delete_ticket(self, ticket_id: int) -> None:
        await self.client.delete(f"/tickets/{ticket_id}")

    async def add_response(self, ticket_id: int, payload: ReplyPayload) -> TicketReply:
        response = await self.client.post(
            f"/tickets/{ticket_id}/responses", json=payload.model_dump(mode="json"),
        )
        return parse_one(TicketReply, response, "response")

    async def assign_ticket(self, ticket_id: int, assigned_to: Optional[int], reason: str = "") -> Ticket:
        response = await self.client.post(
            f"/tickets/{ticket_id}/assign",
            json={"assigned_to": assigned_to, "reason": reason},
        )
        return parse_one(Ticket, response, "ticket")

    async def download_attachment(self, attachment_id: int) -> bytes:
        return await self.client.download(f"/tickets/attachments/{attachment_id}/download")

    async def options(self) -> Dict[str, Any]:
        response = await self.client.get("/tickets/options")
        return response.data or {}
