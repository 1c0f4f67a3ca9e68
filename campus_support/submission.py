"""
TicketSubmitter
===============
Glue that turns a validated draft into a backend ticket:

  1. Guard       → reject a second submit while one is in flight
  2. Validate    → client-side checks; nothing is sent on failure
  3. Create      → one flat JSON request (never multipart)
  4. Attach      → one multipart upload per file, in order, each best-effort
  5. Finish      → add the ticket to the store, reset the draft

A failed attachment never fails the submission: the ticket exists, the
failure is logged and returned as a warning.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from campus_support.exceptions import (
    ApiError,
    DraftValidationError,
    SubmissionFailed,
    SubmissionInProgress,
)
from campus_support.schemas import AttachmentOutcome, SubmissionResponse, Ticket
from campus_support.services.tickets import TicketService
from campus_support.stores import TicketStore
from campus_support.ticket_form import TicketForm

logger = logging.getLogger(__name__)

CREATE_FAILED_MESSAGE = (
    "We couldn't submit your ticket right now. Your answers are saved; please try again."
)


@dataclass
class SubmissionResult:
    ticket:   Ticket
    outcomes: List[AttachmentOutcome] = field(default_factory=list)

    @property
    def uploaded(self) -> List[str]:
        return [o.filename for o in self.outcomes if o.uploaded]

    @property
    def failed_uploads(self) -> List[AttachmentOutcome]:
        return [o for o in self.outcomes if not o.uploaded]

    @property
    def warnings(self) -> List[str]:
        return [
            f'Attachment "{o.filename}" could not be uploaded: {o.error}'
            for o in self.failed_uploads
        ]

    def to_response(self) -> SubmissionResponse:
        message = "Ticket created."
        if self.failed_uploads:
            message = (
                f"Ticket created, but {len(self.failed_uploads)} attachment(s) "
                "could not be uploaded."
            )
        return SubmissionResponse(
            ticket=self.ticket,
            attachments=list(self.outcomes),
            warnings=self.warnings,
            message=message,
        )


class TicketSubmitter:
    """
    Parameters
    ----------
    service : TicketService
    store   : TicketStore, optional; receives the created ticket
    """

    def __init__(self, service: TicketService, store: Optional[TicketStore] = None):
        self.service = service
        self.store   = store

    async def submit(self, form: TicketForm) -> SubmissionResult:
        # ── Step 1: Guard ─────────────────────────────────────────────────────
        if form.submitting:
            raise SubmissionInProgress("This ticket is already being submitted.")

        # ── Step 2: Validate ──────────────────────────────────────────────────
        errors = form.validate()
        if errors:
            logger.info("[Submitter] Draft rejected: %s", "; ".join(errors))
            raise DraftValidationError(errors)

        payload     = form.to_payload()
        attachments = form.attachments
        form.submitting = True
        try:
            # ── Step 3: Create ────────────────────────────────────────────────
            try:
                ticket = await self.service.create_ticket(payload)
            except ApiError as exc:
                logger.error("[Submitter] Ticket creation failed: %s", exc)
                raise SubmissionFailed(CREATE_FAILED_MESSAGE, cause=exc) from exc

            # ── Step 4: Attach ────────────────────────────────────────────────
            outcomes: List[AttachmentOutcome] = []
            for file in attachments:
                try:
                    await self.service.upload_attachment(ticket.id, file)
                    outcomes.append(AttachmentOutcome(filename=file.filename, uploaded=True))
                except ApiError as exc:
                    logger.warning(
                        "[Submitter] Attachment %s for ticket %s failed: %s",
                        file.filename, ticket.ticket_number, exc,
                    )
                    outcomes.append(
                        AttachmentOutcome(filename=file.filename, uploaded=False, error=exc.message)
                    )
        finally:
            form.submitting = False

        # ── Step 5: Finish ────────────────────────────────────────────────────
        if self.store is not None:
            self.store.add(ticket)
        form.reset()

        result = SubmissionResult(ticket=ticket, outcomes=outcomes)
        logger.info(
            "[Submitter] ✓ Ticket %s submitted (priority=%s, attachments %d/%d)",
            ticket.ticket_number, ticket.priority.value,
            len(result.uploaded), len(attachments),
        )
        return result
