"""
DraftRegistry
=============
Holds the open ticket drafts of the portal, one TicketForm per editing
session, keyed by an opaque id.  Drafts idle for longer than
DRAFT_TTL_SECS are purged on access.

Nothing is persisted: a restart or an expired draft simply means the
student starts over, same as navigating away in the browser.
"""

import logging
import threading
import time
import uuid
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from campus_support.config import settings
from campus_support.crisis import CrisisDetector
from campus_support.exceptions import DraftNotFound
from campus_support.schemas import Category
from campus_support.ticket_form import TicketForm

logger = logging.getLogger(__name__)


class DraftRegistry:
    def __init__(
        self,
        detector: CrisisDetector,
        ttl_secs: Optional[int] = None,
        clock:    Callable[[], float] = time.monotonic,
    ):
        self.detector = detector
        self.ttl_secs = ttl_secs or settings.DRAFT_TTL_SECS
        self._clock   = clock
        self._drafts: Dict[str, Tuple[TicketForm, float]] = {}
        self._lock:   threading.Lock = threading.Lock()

    def create(self, categories: Sequence[Category] = ()) -> Tuple[str, TicketForm]:
        draft_id = uuid.uuid4().hex
        form = TicketForm(self.detector, categories)
        with self._lock:
            self._purge_locked()
            self._drafts[draft_id] = (form, self._clock())
        logger.debug("[Drafts] Opened draft %s", draft_id)
        return draft_id, form

    def get(self, draft_id: str) -> TicketForm:
        with self._lock:
            self._purge_locked()
            entry = self._drafts.get(draft_id)
            if entry is None:
                raise DraftNotFound(f"Draft {draft_id} not found or expired")
            form = entry[0]
            self._drafts[draft_id] = (form, self._clock())
            return form

    def discard(self, draft_id: str) -> bool:
        with self._lock:
            return self._drafts.pop(draft_id, None) is not None

    def refresh_categories(self, categories: Sequence[Category]) -> None:
        """Push a newly fetched category list into every open draft."""
        with self._lock:
            forms: List[TicketForm] = [form for form, _ in self._drafts.values()]
        for form in forms:
            form.set_categories(categories)

    def __len__(self) -> int:
        with self._lock:
            return len(self._drafts)

    def _purge_locked(self) -> None:
        cutoff = self._clock() - self.ttl_secs
        expired = [k for k, (_, touched) in self._drafts.items() if touched < cutoff]
        for k in expired:
            del self._drafts[k]
        if expired:
            logger.info("[Drafts] Purged %d idle draft(s)", len(expired))
