"""
Draft Validation
================
Client-side checks run before anything is sent to the backend.
Every function returns a list of human-readable errors; an empty list
means the input is acceptable.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from campus_support.config import settings
from campus_support.schemas import Category

SUBJECT_MAX_LENGTH     = 255
DESCRIPTION_MIN_LENGTH = 20
DESCRIPTION_MAX_LENGTH = 5000

ALLOWED_CONTENT_TYPES = frozenset({
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/gif",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
})


@dataclass(frozen=True)
class AttachmentFile:
    """A file held in memory until the ticket exists and it can be uploaded."""

    filename:     str
    content_type: str
    content:      bytes

    @property
    def size(self) -> int:
        return len(self.content)


def validate_subject(subject: str) -> List[str]:
    if not (subject or "").strip():
        return ["Subject is required"]
    if len(subject) > SUBJECT_MAX_LENGTH:
        return [f"Subject cannot exceed {SUBJECT_MAX_LENGTH} characters"]
    return []


def validate_description(description: str) -> List[str]:
    if not (description or "").strip():
        return ["Description is required"]
    # payload is sent stripped, so the minimum applies to the stripped text
    if len(description.strip()) < DESCRIPTION_MIN_LENGTH:
        return [f"Description must be at least {DESCRIPTION_MIN_LENGTH} characters long, "
                "not counting leading or trailing spaces"]
    if len(description) > DESCRIPTION_MAX_LENGTH:
        return [f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters"]
    return []


def validate_category(category_id: Optional[int], categories: Sequence[Category]) -> List[str]:
    if not category_id:
        return ["Category is required"]
    if not any(c.id == category_id for c in categories):
        return ["Selected category is no longer available. Please choose another category"]
    return []


def validate_attachments(
    files: Sequence[AttachmentFile],
    max_files: Optional[int] = None,
    max_bytes: Optional[int] = None,
) -> List[str]:
    max_files = settings.MAX_ATTACHMENTS if max_files is None else max_files
    max_bytes = settings.MAX_ATTACHMENT_BYTES if max_bytes is None else max_bytes

    errors: List[str] = []
    if len(files) > max_files:
        errors.append(f"Maximum {max_files} files allowed")

    limit_mb = max_bytes // (1024 * 1024)
    for f in files:
        if f.size > max_bytes:
            errors.append(f'File "{f.filename}" is too large. Maximum size is {limit_mb}MB')
        if f.content_type.lower() not in ALLOWED_CONTENT_TYPES:
            errors.append(f'File "{f.filename}" has an invalid type. Allowed: PDF, images, Word documents, text files')
    return errors
