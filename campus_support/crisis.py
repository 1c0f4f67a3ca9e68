"""
Crisis Keyword Detection
========================
Flags free-text ticket descriptions that contain high-risk phrases.

Matching rules
--------------
  • case-insensitive (str.casefold on both sides)
  • plain substring containment: "ending it all" matches inside
    "I keep thinking about ending it all lately"
  • no stemming, no fuzzy matching, no whole-word requirement
  • one hit is enough; there is no scoring on the detection path

The detector never raises.  Any internal failure is logged and the text is
treated as non-crisis so the student is never blocked from submitting.

The admin scoring helpers (calculate_crisis_score / crisis_score_status)
work on the weighted keyword records managed through the keyword service.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from campus_support.schemas import CrisisKeyword

logger = logging.getLogger(__name__)


# ─── Scan Result ──────────────────────────────────────────────────────────────

@dataclass
class CrisisScan:
    detected: bool
    matched:  List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"crisis_detected": self.detected, "matched": list(self.matched)}


NO_CRISIS = CrisisScan(detected=False)


# ─── Detector ─────────────────────────────────────────────────────────────────

class CrisisDetector:
    """
    Keyword/phrase detector shared by every draft.

    The keyword list can be swapped at runtime (e.g. after an admin edits the
    active keywords); scans always see either the old or the new list.
    """

    def __init__(self, keywords: Iterable[str] = ()):
        self._lock: threading.Lock = threading.Lock()
        self._keywords: tuple = ()
        self.set_keywords(keywords)

    @property
    def keywords(self) -> List[str]:
        return list(self._keywords)

    def set_keywords(self, keywords: Iterable[str]) -> int:
        """Replace the phrase list.  Blank entries and duplicates are dropped."""
        normalised: List[str] = []
        for kw in keywords:
            phrase = (kw or "").strip().casefold()
            if phrase and phrase not in normalised:
                normalised.append(phrase)
        with self._lock:
            self._keywords = tuple(normalised)
        logger.info("[CrisisDetector] Loaded %d crisis phrases", len(normalised))
        return len(normalised)

    def load_active(self, records: Sequence[CrisisKeyword]) -> int:
        """Use the active keywords from the admin keyword list."""
        return self.set_keywords(r.keyword for r in records if r.is_active)

    def scan(self, text: Optional[str]) -> CrisisScan:
        try:
            haystack = (text or "").casefold()
            if not haystack:
                return NO_CRISIS
            keywords = self._keywords
            matched = [kw for kw in keywords if kw in haystack]
            return CrisisScan(detected=bool(matched), matched=matched)
        except Exception as exc:
            logger.warning("[CrisisDetector] Scan failed, treating as non-crisis: %s", exc)
            return NO_CRISIS

    def is_crisis(self, text: Optional[str]) -> bool:
        return self.scan(text).detected


# ─── Admin scoring ────────────────────────────────────────────────────────────

SCORE_CAP = 100

# (minimum score, label), checked top-down
SCORE_STATUS_BANDS = (
    (80, "Critical"),
    (60, "High Risk"),
    (40, "Moderate"),
    (20, "Low"),
)


def matching_keywords(text: str, records: Sequence[CrisisKeyword]) -> List[CrisisKeyword]:
    """Active keyword records whose phrase occurs in `text`."""
    haystack = (text or "").casefold()
    return [
        r for r in records
        if r.is_active and r.keyword.strip() and r.keyword.strip().casefold() in haystack
    ]


def calculate_crisis_score(records: Sequence[CrisisKeyword]) -> int:
    """Sum of severity weights, capped at 100."""
    return min(SCORE_CAP, sum(r.severity_weight for r in records))


def crisis_score_status(score: int) -> str:
    for threshold, label in SCORE_STATUS_BANDS:
        if score >= threshold:
            return label
    return "Minimal"
