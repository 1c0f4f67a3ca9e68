"""
Error Taxonomy
==============
  PortalError
  ├── ApiError               backend answered with a failure envelope or was unreachable
  ├── DraftValidationError   draft fails client-side checks; nothing is sent
  ├── SubmissionInProgress   submit pressed while the same draft is in flight
  ├── SubmissionFailed       ticket creation failed; the draft is kept for a retry
  └── DraftNotFound          unknown or expired draft id

Attachment upload failures are not exceptions: they are recorded on the
SubmissionResult as soft warnings.  Crisis detector failures never escape
the detector.
"""

from typing import Any, Dict, List, Optional


class PortalError(Exception):
    """Base class for every error raised by campus_support."""


class ApiError(PortalError):
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message     = message
        self.status_code = status_code
        self.errors      = errors or {}

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (HTTP {self.status_code})"


class DraftValidationError(PortalError):
    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = list(errors)


class SubmissionInProgress(PortalError):
    pass


class SubmissionFailed(PortalError):
    """Creation request failed.  `cause` keeps the underlying ApiError."""

    def __init__(self, message: str, cause: Optional[ApiError] = None):
        super().__init__(message)
        self.message = message
        self.cause   = cause


class DraftNotFound(PortalError):
    pass
