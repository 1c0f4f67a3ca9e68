"""
TicketForm
==========
In-memory draft of a ticket plus the crisis-aware two-state machine
that runs on every description edit.

States
------
  NORMAL          : no crisis phrase in the description.  Priority is freely
                    selectable (default Medium).

  CRISIS_FLAGGED  : the description contains at least one crisis phrase.
                    • priority is forced to Urgent and locked
                    • a crisis category is nudged in if the current one has no
                      crisis handling (first category named "crisis"/"mental"
                      or with crisis detection enabled; otherwise untouched)
                    • the crisis banner is shown until acknowledged

Transitions
-----------
  NORMAL → CRISIS_FLAGGED   edit introduces a match
  CRISIS_FLAGGED → NORMAL   edit removes every match; priority is unlocked but
                            neither priority nor category is reverted
  any → NORMAL              reset()

A draft belongs to exactly one editing session, so no locking is done here.
"""

import logging
from enum import Enum
from typing import List, Optional, Sequence

from campus_support.config import settings
from campus_support.crisis import CrisisDetector
from campus_support.schemas import (
    AttachmentView,
    Category,
    CrisisBanner,
    DraftView,
    Priority,
    TicketCreatePayload,
)
from campus_support.validation import (
    AttachmentFile,
    validate_attachments,
    validate_category,
    validate_description,
    validate_subject,
)

logger = logging.getLogger(__name__)

CRISIS_CATEGORY_HINTS = ("crisis", "mental")

BANNER_MESSAGE = (
    "We noticed language that suggests you may be in crisis. "
    "Your ticket has been marked Urgent. If you are in immediate danger, "
    "call emergency services now or reach the campus crisis hotline."
)


# ─── State Enum ───────────────────────────────────────────────────────────────

class FormState(str, Enum):
    NORMAL         = "NORMAL"
    CRISIS_FLAGGED = "CRISIS_FLAGGED"


# ─── TicketForm ───────────────────────────────────────────────────────────────

class TicketForm:
    """
    Usage:
        form = TicketForm(detector, categories)
        form.set_description("I keep thinking about ending it all")
        form.state            # FormState.CRISIS_FLAGGED
        form.priority         # Priority.URGENT
        form.set_priority(Priority.LOW)   # False, ignored while flagged
    """

    def __init__(
        self,
        detector:        CrisisDetector,
        categories:      Sequence[Category] = (),
        hotline:         Optional[str] = None,
        emergency_phone: Optional[str] = None,
        max_attachments: Optional[int] = None,
    ):
        self.detector        = detector
        self.hotline         = hotline or settings.CRISIS_HOTLINE
        self.emergency_phone = emergency_phone or settings.EMERGENCY_PHONE
        self.max_attachments = (
            settings.MAX_ATTACHMENTS if max_attachments is None else max_attachments
        )
        self._categories: List[Category] = list(categories)
        self.reset()

    def reset(self) -> None:
        """Discard every field and return to NORMAL."""
        self.subject:     str = ""
        self.description: str = ""
        self.category_id: Optional[int] = None
        self.submitting:  bool = False

        self._priority:            Priority = Priority.MEDIUM
        self._state:               FormState = FormState.NORMAL
        self._matched:             List[str] = []
        self._banner_acknowledged: bool = False
        self._attachments:         List[AttachmentFile] = []

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def state(self) -> FormState:
        return self._state

    @property
    def crisis_detected(self) -> bool:
        return self._state is FormState.CRISIS_FLAGGED

    @property
    def priority(self) -> Priority:
        return self._priority

    @property
    def priority_locked(self) -> bool:
        return self.crisis_detected

    @property
    def banner_visible(self) -> bool:
        return self.crisis_detected and not self._banner_acknowledged

    @property
    def matched_keywords(self) -> List[str]:
        return list(self._matched)

    @property
    def attachments(self) -> List[AttachmentFile]:
        return list(self._attachments)

    @property
    def categories(self) -> List[Category]:
        return list(self._categories)

    @property
    def selected_category(self) -> Optional[Category]:
        for c in self._categories:
            if c.id == self.category_id:
                return c
        return None

    @property
    def emergency_action(self) -> str:
        digits = "".join(ch for ch in self.emergency_phone if ch.isdigit() or ch == "+")
        return f"tel:{digits}"

    # ── Field edits ───────────────────────────────────────────────────────────

    def set_subject(self, subject: str) -> None:
        self.subject = subject or ""

    def set_description(self, description: str) -> FormState:
        """Store the new text and re-run crisis detection on all of it."""
        self.description = description or ""
        scan = self.detector.scan(self.description)
        self._matched = scan.matched

        if scan.detected and self._state is FormState.NORMAL:
            self._escalate()
        elif not scan.detected and self._state is FormState.CRISIS_FLAGGED:
            self._clear()
        return self._state

    def set_priority(self, priority) -> bool:
        """Returns False (and changes nothing) for a downgrade while flagged."""
        priority = Priority(priority)
        if self.priority_locked and priority is not Priority.URGENT:
            logger.info(
                "[TicketForm] Ignored priority change to %s while crisis flagged",
                priority.value,
            )
            return False
        self._priority = priority
        return True

    def set_category(self, category_id: Optional[int]) -> None:
        self.category_id = category_id or None

    def set_categories(self, categories: Sequence[Category]) -> None:
        """Replace the loaded category list (used by validation and auto-select)."""
        self._categories = list(categories)

    def acknowledge_banner(self) -> None:
        self._banner_acknowledged = True

    # ── Attachments ───────────────────────────────────────────────────────────

    def add_attachment(self, file: AttachmentFile) -> List[str]:
        """Append `file` unless it is rejected; returns the rejection reasons."""
        if len(self._attachments) >= self.max_attachments:
            return [f"Maximum {self.max_attachments} files allowed"]
        errors = validate_attachments([file], max_files=self.max_attachments)
        if errors:
            return errors
        self._attachments.append(file)
        return []

    def remove_attachment(self, index: int) -> AttachmentFile:
        return self._attachments.pop(index)

    # ── Submission support ────────────────────────────────────────────────────

    def validate(self) -> List[str]:
        errors: List[str] = []
        errors += validate_subject(self.subject)
        errors += validate_description(self.description)
        errors += validate_category(self.category_id, self._categories)
        errors += validate_attachments(self._attachments, max_files=self.max_attachments)
        return errors

    def to_payload(self) -> TicketCreatePayload:
        return TicketCreatePayload(
            subject=self.subject.strip(),
            description=self.description.strip(),
            category_id=int(self.category_id),
            priority=self._priority,
        )

    def banner(self) -> Optional[CrisisBanner]:
        if not self.crisis_detected:
            return None
        return CrisisBanner(
            visible=self.banner_visible,
            message=BANNER_MESSAGE,
            hotline=self.hotline,
            emergency_action=self.emergency_action,
        )

    def to_view(self, draft_id: str, errors: Optional[List[str]] = None) -> DraftView:
        return DraftView(
            draft_id=draft_id,
            subject=self.subject,
            description=self.description,
            category_id=self.category_id,
            priority=self._priority,
            state=self._state.value,
            crisis_detected=self.crisis_detected,
            priority_locked=self.priority_locked,
            banner=self.banner(),
            attachments=[
                AttachmentView(index=i, filename=f.filename, content_type=f.content_type, size=f.size)
                for i, f in enumerate(self._attachments)
            ],
            errors=errors or [],
            submitting=self.submitting,
        )

    # ── Internals ─────────────────────────────────────────────────────────────

    def _escalate(self) -> None:
        self._state = FormState.CRISIS_FLAGGED
        self._banner_acknowledged = False
        previous = self._priority
        self._priority = Priority.URGENT
        chosen = self._select_crisis_category()

        logger.warning(
            "[TicketForm] Crisis language detected (%d phrase(s)); priority %s → Urgent%s",
            len(self._matched),
            previous.value,
            f", category → {chosen.name}" if chosen else "",
        )

    def _clear(self) -> None:
        self._state = FormState.NORMAL
        logger.info(
            "[TicketForm] Crisis language removed; priority unlocked (stays %s)",
            self._priority.value,
        )

    def _select_crisis_category(self) -> Optional[Category]:
        current = self.selected_category
        if current is not None and current.crisis_detection_enabled:
            return None
        for c in self._categories:
            name = c.name.casefold()
            if c.crisis_detection_enabled or any(h in name for h in CRISIS_CATEGORY_HINTS):
                self.category_id = c.id
                return c
        return None
