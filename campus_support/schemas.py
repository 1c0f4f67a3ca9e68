"""
Pydantic Schemas
================
Records exchanged with the support backend plus the request/response
bodies of the portal API.

Type tags coming from the backend (notification type, resource type, role)
are closed enums with an explicit fallback member: an unknown tag maps to
the fallback instead of failing the whole payload.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ─── Enums ────────────────────────────────────────────────────────────────────

class Priority(str, Enum):
    LOW    = "Low"
    MEDIUM = "Medium"
    HIGH   = "High"
    URGENT = "Urgent"

    @property
    def rank(self) -> int:
        """Sort rank, most urgent first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.URGENT: 1,
    Priority.HIGH:   2,
    Priority.MEDIUM: 3,
    Priority.LOW:    4,
}


class TicketStatus(str, Enum):
    OPEN        = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED    = "Resolved"
    CLOSED      = "Closed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_active(self) -> bool:
        return self in (TicketStatus.OPEN, TicketStatus.IN_PROGRESS)


_STATUS_RANK = {
    TicketStatus.OPEN:        1,
    TicketStatus.IN_PROGRESS: 2,
    TicketStatus.RESOLVED:    3,
    TicketStatus.CLOSED:      4,
}


class FallbackEnum(str, Enum):
    """str Enum that resolves unknown (or differently cased) tags to its fallback member."""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls[cls._fallback_name()]

    @classmethod
    def _fallback_name(cls) -> str:
        raise NotImplementedError


class Role(FallbackEnum):
    STUDENT   = "student"
    COUNSELOR = "counselor"
    ADVISOR   = "advisor"
    ADMIN     = "admin"

    @classmethod
    def _fallback_name(cls) -> str:
        # least privilege
        return "STUDENT"


class NotificationType(FallbackEnum):
    APPOINTMENT = "appointment"
    TICKET      = "ticket"
    SYSTEM      = "system"
    REMINDER    = "reminder"

    @classmethod
    def _fallback_name(cls) -> str:
        return "SYSTEM"


class NotificationPriority(FallbackEnum):
    LOW    = "low"
    MEDIUM = "medium"
    HIGH   = "high"

    @classmethod
    def _fallback_name(cls) -> str:
        return "MEDIUM"


class ResourceType(FallbackEnum):
    ARTICLE   = "article"
    VIDEO     = "video"
    AUDIO     = "audio"
    EXERCISE  = "exercise"
    TOOL      = "tool"
    WORKSHEET = "worksheet"

    @classmethod
    def _fallback_name(cls) -> str:
        return "ARTICLE"


class Difficulty(FallbackEnum):
    BEGINNER     = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED     = "advanced"

    @classmethod
    def _fallback_name(cls) -> str:
        return "BEGINNER"


class CrisisSeverity(FallbackEnum):
    LOW      = "low"
    MEDIUM   = "medium"
    HIGH     = "high"
    CRITICAL = "critical"

    @classmethod
    def _fallback_name(cls) -> str:
        return "MEDIUM"


# ─── Backend envelope ─────────────────────────────────────────────────────────

class ApiResponse(BaseModel):
    """Normalised `{success, message, data, errors}` envelope."""

    success:     bool
    status_code: int
    message:     str = ""
    data:        Any = None
    errors:      Optional[Dict[str, Any]] = None


class Pagination(BaseModel):
    current_page: int = 1
    last_page:    int = 1
    per_page:     int = 20
    total:        int = 0


# ─── Users ────────────────────────────────────────────────────────────────────

class UserSummary(BaseModel):
    id:    int
    name:  str
    email: Optional[str] = None
    role:  Role = Role.STUDENT


class User(UserSummary):
    status:          str = "active"
    phone:           Optional[str] = None
    student_id:      Optional[str] = None
    employee_id:     Optional[str] = None
    specializations: List[str] = Field(default_factory=list)
    last_login_at:   Optional[datetime] = None
    created_at:      Optional[datetime] = None


class UserPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255, examples=["jane@campus.edu"])
    role: Role = Role.STUDENT
    password: Optional[str] = Field(default=None, min_length=8)
    status: str = Field(default="active", pattern=r"^(active|inactive|suspended)$")
    phone: Optional[str] = None
    student_id: Optional[str] = None
    employee_id: Optional[str] = None
    specializations: List[str] = Field(default_factory=list)


class AuthSession(BaseModel):
    token:      str
    user:       User
    expires_at: Optional[datetime] = None


# ─── Categories ───────────────────────────────────────────────────────────────

class Category(BaseModel):
    """Ticket category as owned by the backend."""

    id:                       int
    name:                     str
    description:              Optional[str] = ""
    color:                    Optional[str] = None
    sla_response_hours:       int = 24
    crisis_detection_enabled: bool = False
    auto_assign:              bool = False
    slug:                     Optional[str] = None
    icon:                     Optional[str] = None
    is_active:                bool = True
    sort_order:               int = 0
    tickets_count:            Optional[int] = None


class CategoryPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["Mental Health Crisis"])
    description: Optional[str] = Field(default=None, max_length=1000)
    color: str = Field(default="#3B82F6", pattern=r"^#[0-9A-Fa-f]{6}$")
    icon: Optional[str] = None
    sla_response_hours: int = Field(default=24, ge=1, le=168)
    crisis_detection_enabled: bool = False
    auto_assign: bool = True
    is_active: bool = True
    sort_order: int = 0


# ─── Tickets ──────────────────────────────────────────────────────────────────

class TicketAttachment(BaseModel):
    id:            int
    ticket_id:     int
    response_id:   Optional[int] = None
    original_name: str
    file_path:     Optional[str] = None
    file_type:     Optional[str] = None
    file_size:     int = 0
    created_at:    Optional[datetime] = None


class TicketReply(BaseModel):
    id:          int
    ticket_id:   int
    user_id:     int
    message:     str
    is_internal: bool = False
    visibility:  str = "all"
    is_urgent:   bool = False
    created_at:  Optional[datetime] = None
    user:        Optional[UserSummary] = None


class Ticket(BaseModel):
    """Persisted ticket as returned by the backend."""

    model_config = ConfigDict(populate_by_name=True)

    id:              int
    ticket_number:   str
    user_id:         int
    subject:         str
    description:     str
    category_id:     Optional[int] = None
    category:        Optional[Category] = None
    priority:        Priority = Priority.MEDIUM
    status:          TicketStatus = TicketStatus.OPEN
    crisis_flag:     bool = False
    assigned_to:     Optional[int] = None
    auto_assigned:   str = "no"          # yes | no | manual
    is_overdue:      bool = False
    tags:            List[str] = Field(default_factory=list)
    resolved_at:     Optional[datetime] = None
    created_at:      datetime
    updated_at:      datetime
    user:            Optional[UserSummary] = None
    assigned_user:   Optional[UserSummary] = Field(default=None, alias="assignedTo")
    responses:       List[TicketReply] = Field(default_factory=list)
    attachments:     List[TicketAttachment] = Field(default_factory=list)


class TicketCreatePayload(BaseModel):
    """Flat JSON body of the ticket creation request.  Never multipart."""

    subject: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Short ticket subject line",
        examples=["Struggling with exam stress"],
    )
    description: str = Field(
        ...,
        min_length=20,
        max_length=5000,
        description="Full ticket description",
        examples=["I have been feeling overwhelmed with coursework for weeks."],
    )
    category_id: int = Field(..., gt=0, description="Id of a loaded category")
    priority: Priority = Field(default=Priority.MEDIUM)


class TicketUpdatePayload(BaseModel):
    status:      Optional[TicketStatus] = None
    priority:    Optional[Priority] = None
    assigned_to: Optional[int] = None
    crisis_flag: Optional[bool] = None
    tags:        Optional[List[str]] = None
    subject:     Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)


class ReplyPayload(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)
    is_internal: bool = False
    visibility: str = Field(default="all", pattern=r"^(all|counselors|admins)$")
    is_urgent: bool = False


# ─── Crisis keywords ──────────────────────────────────────────────────────────

class CrisisKeyword(BaseModel):
    id:              int
    keyword:         str
    severity_level:  CrisisSeverity = CrisisSeverity.MEDIUM
    severity_weight: int = 50
    is_active:       bool = True
    category_ids:    List[int] = Field(default_factory=list)
    trigger_count:   int = 0
    last_triggered_at: Optional[datetime] = None
    created_at:      Optional[datetime] = None


class CrisisKeywordPayload(BaseModel):
    keyword: str = Field(
        ...,
        min_length=2,
        max_length=100,
        examples=["want to die"],
    )
    severity_level: CrisisSeverity = CrisisSeverity.MEDIUM
    severity_weight: int = Field(default=50, ge=1, le=100)
    is_active: bool = True
    category_ids: List[int] = Field(default_factory=list)


# ─── Notifications ────────────────────────────────────────────────────────────

class Notification(BaseModel):
    id:         int
    user_id:    int
    type:       NotificationType = NotificationType.SYSTEM
    title:      str
    message:    str
    priority:   NotificationPriority = NotificationPriority.MEDIUM
    read:       bool = False
    read_at:    Optional[datetime] = None
    data:       Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class NotificationPayload(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)
    type: NotificationType = NotificationType.SYSTEM
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=1000)
    priority: NotificationPriority = NotificationPriority.MEDIUM
    data: Dict[str, Any] = Field(default_factory=dict)


# ─── Resources ────────────────────────────────────────────────────────────────

class ResourceCategory(BaseModel):
    id:              int
    name:            str
    slug:            Optional[str] = None
    description:     Optional[str] = None
    color:           Optional[str] = None
    icon:            Optional[str] = None
    resources_count: int = 0


class Resource(BaseModel):
    id:             int
    category_id:    int
    title:          str
    description:    str = ""
    type:           ResourceType = ResourceType.ARTICLE
    subcategory:    Optional[str] = None
    difficulty:     Difficulty = Difficulty.BEGINNER
    duration:       Optional[str] = None
    external_url:   Optional[str] = None
    download_url:   Optional[str] = None
    author_name:    Optional[str] = None
    rating:         float = 0.0
    view_count:     int = 0
    download_count: int = 0
    is_featured:    bool = False
    is_published:   bool = True
    is_bookmarked:  bool = False
    tags:           List[str] = Field(default_factory=list)
    created_at:     Optional[datetime] = None


class ResourcePayload(BaseModel):
    category_id: int = Field(..., gt=0)
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=2000)
    type: ResourceType = ResourceType.ARTICLE
    subcategory: Optional[str] = None
    difficulty: Difficulty = Difficulty.BEGINNER
    duration: Optional[str] = None
    external_url: Optional[str] = None
    download_url: Optional[str] = None
    author_name: Optional[str] = None
    is_featured: bool = False
    is_published: bool = True
    tags: List[str] = Field(default_factory=list)


class ResourceFeedback(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)
    is_recommended: bool = True


# ─── Help / FAQ ───────────────────────────────────────────────────────────────

class HelpCategory(BaseModel):
    id:          int
    name:        str
    slug:        Optional[str] = None
    description: Optional[str] = None
    icon:        Optional[str] = None
    color:       Optional[str] = None
    faqs_count:  int = 0


class FAQ(BaseModel):
    id:                int
    category_id:       int
    question:          str
    answer:            str
    helpful_count:     int = 0
    not_helpful_count: int = 0
    view_count:        int = 0
    is_featured:       bool = False
    is_published:      bool = True
    tags:              List[str] = Field(default_factory=list)
    created_at:        Optional[datetime] = None

    @property
    def helpfulness_rate(self) -> float:
        votes = self.helpful_count + self.not_helpful_count
        if votes == 0:
            return 0.0
        return round(self.helpful_count / votes * 100, 1)


class FaqPayload(BaseModel):
    category_id: int = Field(..., gt=0)
    question: str = Field(..., min_length=10, max_length=500)
    answer: str = Field(..., min_length=20, max_length=5000)
    is_featured: bool = False
    is_published: bool = True
    tags: List[str] = Field(default_factory=list)


class FaqFeedback(BaseModel):
    is_helpful: bool
    comment: Optional[str] = Field(default=None, max_length=500)


class ContentSuggestion(BaseModel):
    category_id: int = Field(..., gt=0)
    question: str = Field(..., min_length=10, max_length=500)
    answer: Optional[str] = Field(default=None, max_length=5000)
    tags: List[str] = Field(default_factory=list)


# ─── Portal API: drafts ───────────────────────────────────────────────────────

class DraftUpdate(BaseModel):
    """Partial edit of a draft.  Only the fields that are set are applied."""

    subject:     Optional[str] = Field(default=None, max_length=1000)
    description: Optional[str] = Field(default=None, max_length=20000)
    category_id: Optional[int] = None
    priority:    Optional[Priority] = None


class CrisisBanner(BaseModel):
    visible:          bool
    message:          str
    hotline:          str
    emergency_action: str = Field(..., examples=["tel:911"])


class AttachmentView(BaseModel):
    index:        int
    filename:     str
    content_type: str
    size:         int


class DraftView(BaseModel):
    draft_id:        str
    subject:         str
    description:     str
    category_id:     Optional[int]
    priority:        Priority
    state:           str
    crisis_detected: bool
    priority_locked: bool
    banner:          Optional[CrisisBanner] = None
    attachments:     List[AttachmentView] = Field(default_factory=list)
    errors:          List[str] = Field(default_factory=list)
    submitting:      bool = False


class AttachmentOutcome(BaseModel):
    filename: str
    uploaded: bool
    error:    Optional[str] = None


class SubmissionResponse(BaseModel):
    ticket:      Ticket
    attachments: List[AttachmentOutcome] = Field(default_factory=list)
    warnings:    List[str] = Field(default_factory=list)
    message:     str = "Ticket created."


# ─── Portal API: misc ─────────────────────────────────────────────────────────

class ScanRequest(BaseModel):
    text: str = Field(..., max_length=20000)


class ScanResponse(BaseModel):
    crisis_detected: bool
    matched:         List[str] = Field(default_factory=list)


class TicketPage(BaseModel):
    items:     List[Ticket]
    total:     int
    page:      int
    per_page:  int
    last_page: int


class HealthResponse(BaseModel):
    status:          str
    backend:         str
    app_version:     str
    drafts_open:     int = 0
    crisis_keywords: int = 0


# ─── Portal API: requests ─────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, examples=["jane@campus.edu"])
    password: str = Field(..., min_length=1)


class DemoLoginRequest(BaseModel):
    role: Role = Role.STUDENT


class AssignRequest(BaseModel):
    assigned_to: Optional[int] = Field(default=None, gt=0)
    reason: str = Field(default="", max_length=500)


class BulkActionRequest(BaseModel):
    action: str = Field(..., examples=["deactivate"])
    ids: List[int] = Field(default_factory=list)


class ReorderRequest(BaseModel):
    ordered_ids: List[int] = Field(..., min_length=1)
