"""
Ticket Views
============
Client-side slicing of an already-fetched ticket list: dashboard tabs,
filter selectors, sorting, pagination and summary statistics.
All functions are pure and return new lists.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from campus_support.schemas import FallbackEnum, Priority, Ticket, TicketStatus


class TicketView(FallbackEnum):
    ALL           = "all"
    OPEN          = "open"
    ACTIVE        = "active"
    CLOSED        = "closed"
    CRISIS        = "crisis"
    UNASSIGNED    = "unassigned"
    MY_ASSIGNED   = "my_assigned"
    MY_CASES      = "my_cases"
    MY_TICKETS    = "my_tickets"
    OVERDUE       = "overdue"
    AUTO_ASSIGNED = "auto_assigned"
    HIGH_PRIORITY = "high_priority"

    @classmethod
    def _fallback_name(cls) -> str:
        return "ALL"


SORT_KEYS = ("created_at", "updated_at", "subject", "status", "priority")

_HIGH = (Priority.HIGH, Priority.URGENT)


def is_crisis(ticket: Ticket) -> bool:
    return ticket.crisis_flag or ticket.priority is Priority.URGENT


# ─── Views ────────────────────────────────────────────────────────────────────

def filter_by_view(
    tickets:         Sequence[Ticket],
    view,
    current_user_id: Optional[int] = None,
) -> List[Ticket]:
    view = TicketView(view)

    if view in (TicketView.OPEN, TicketView.ACTIVE):
        return [t for t in tickets if t.status.is_active]
    if view is TicketView.CLOSED:
        return [t for t in tickets if not t.status.is_active]
    if view is TicketView.CRISIS:
        return [t for t in tickets if is_crisis(t)]
    if view is TicketView.UNASSIGNED:
        return [t for t in tickets if not t.assigned_to]
    if view in (TicketView.MY_ASSIGNED, TicketView.MY_CASES):
        if not current_user_id:
            return []
        return [t for t in tickets if t.assigned_to == current_user_id]
    if view is TicketView.MY_TICKETS:
        if not current_user_id:
            return []
        return [t for t in tickets if t.user_id == current_user_id]
    if view is TicketView.OVERDUE:
        return [t for t in tickets if t.is_overdue]
    if view is TicketView.AUTO_ASSIGNED:
        return [t for t in tickets if t.auto_assigned == "yes"]
    if view is TicketView.HIGH_PRIORITY:
        return [t for t in tickets if t.priority in _HIGH]
    return list(tickets)


# ─── Filters ──────────────────────────────────────────────────────────────────

def _is_set(value) -> bool:
    return value is not None and value != "" and value != "all"


def _truthy(value) -> bool:
    return value is True or str(value).lower() == "true"


def _searchable(ticket: Ticket) -> str:
    parts = [ticket.subject, ticket.description, ticket.ticket_number]
    if ticket.user:
        parts += [ticket.user.name, ticket.user.email or ""]
    if ticket.assigned_user:
        parts.append(ticket.assigned_user.name)
    if ticket.category:
        parts.append(ticket.category.name)
    parts += ticket.tags
    return " ".join(parts).casefold()


def apply_filters(
    tickets:         Sequence[Ticket],
    search:          str = "",
    filters:         Optional[Dict[str, Any]] = None,
    current_user_id: Optional[int] = None,
) -> List[Ticket]:
    filters  = filters or {}
    filtered = list(tickets)

    needle = (search or "").strip().casefold()
    if needle:
        filtered = [t for t in filtered if needle in _searchable(t)]

    if _is_set(filters.get("status")):
        status = TicketStatus(filters["status"])
        filtered = [t for t in filtered if t.status is status]

    if _is_set(filters.get("category_id")):
        category_id = int(filters["category_id"])
        filtered = [t for t in filtered if t.category_id == category_id]

    if _is_set(filters.get("priority")):
        priority = Priority(filters["priority"])
        filtered = [t for t in filtered if t.priority is priority]

    assigned = filters.get("assigned")
    if assigned == "assigned":
        filtered = [t for t in filtered if t.assigned_to]
    elif assigned == "unassigned":
        filtered = [t for t in filtered if not t.assigned_to]
    elif assigned in ("me", "my-assigned") and current_user_id:
        filtered = [t for t in filtered if t.assigned_to == current_user_id]

    if _is_set(filters.get("crisis_flag")):
        wanted = _truthy(filters["crisis_flag"])
        filtered = [t for t in filtered if t.crisis_flag == wanted]

    if _is_set(filters.get("auto_assigned")):
        filtered = [t for t in filtered if t.auto_assigned == filters["auto_assigned"]]

    if _is_set(filters.get("overdue")):
        wanted = _truthy(filters["overdue"])
        filtered = [t for t in filtered if t.is_overdue == wanted]

    return filtered


def has_active_filters(filters: Dict[str, Any]) -> bool:
    ignored = {"view", "page", "per_page", "sort_by", "sort_direction"}
    return any(
        _is_set(v) and v != []
        for k, v in filters.items() if k not in ignored
    )


def filter_summary(filters: Dict[str, Any], category_names: Optional[Dict[int, str]] = None) -> List[str]:
    category_names = category_names or {}
    summary: List[str] = []
    if _is_set(filters.get("status")):
        summary.append(f"Status: {filters['status']}")
    if _is_set(filters.get("category_id")):
        cid = int(filters["category_id"])
        summary.append(f"Category: {category_names.get(cid, cid)}")
    if _is_set(filters.get("priority")):
        summary.append(f"Priority: {filters['priority']}")
    if _is_set(filters.get("assigned")):
        summary.append(f"Assignment: {filters['assigned']}")
    if _is_set(filters.get("crisis_flag")) and _truthy(filters["crisis_flag"]):
        summary.append("Crisis cases only")
    if _is_set(filters.get("overdue")) and _truthy(filters["overdue"]):
        summary.append("Overdue only")
    return summary


# ─── Sorting / paging ─────────────────────────────────────────────────────────

def _sort_value(ticket: Ticket, sort_by: str):
    if sort_by == "created_at":
        return ticket.created_at.timestamp()
    if sort_by == "subject":
        return ticket.subject.casefold()
    if sort_by == "status":
        return ticket.status.rank
    if sort_by == "priority":
        return ticket.priority.rank
    return ticket.updated_at.timestamp()


def sort_tickets(
    tickets:        Sequence[Ticket],
    sort_by:        str = "updated_at",
    sort_direction: str = "desc",
) -> List[Ticket]:
    """Sort by one key; crisis tickets always come first regardless of direction."""
    ordered = sorted(
        tickets,
        key=lambda t: _sort_value(t, sort_by),
        reverse=(sort_direction == "desc"),
    )
    # stable: keeps the order above within each group
    return sorted(ordered, key=lambda t: 0 if is_crisis(t) else 1)


def paginate(items: Sequence[Any], page: int = 1, per_page: int = 20) -> Tuple[List[Any], int]:
    """Returns (page items, last page number)."""
    per_page  = max(1, per_page)
    last_page = max(1, -(-len(items) // per_page))
    page      = min(max(1, page), last_page)
    start     = (page - 1) * per_page
    return list(items[start:start + per_page]), last_page


# ─── Stats ────────────────────────────────────────────────────────────────────

def _rate(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


def calculate_stats(tickets: Sequence[Ticket], current_user_id: Optional[int] = None) -> Dict[str, int]:
    total       = len(tickets)
    by_status   = {s: sum(1 for t in tickets if t.status is s) for s in TicketStatus}
    crisis      = sum(1 for t in tickets if is_crisis(t))
    unassigned  = sum(1 for t in tickets if not t.assigned_to)
    auto        = sum(1 for t in tickets if t.auto_assigned == "yes")

    stats = {
        "total":             total,
        "open":              by_status[TicketStatus.OPEN],
        "in_progress":       by_status[TicketStatus.IN_PROGRESS],
        "resolved":          by_status[TicketStatus.RESOLVED],
        "closed":            by_status[TicketStatus.CLOSED],
        "crisis":            crisis,
        "unassigned":        unassigned,
        "assigned":          total - unassigned,
        "overdue":           sum(1 for t in tickets if t.is_overdue),
        "auto_assigned":     auto,
        "manually_assigned": sum(1 for t in tickets if t.auto_assigned == "manual"),
        "high_priority":     sum(1 for t in tickets if t.priority in _HIGH),
        "my_assigned":       0,
        "my_tickets":        0,
    }
    stats["active"]   = stats["open"] + stats["in_progress"]
    stats["inactive"] = stats["resolved"] + stats["closed"]

    if current_user_id:
        stats["my_assigned"] = sum(1 for t in tickets if t.assigned_to == current_user_id)
        stats["my_tickets"]  = sum(1 for t in tickets if t.user_id == current_user_id)

    stats["resolution_rate"]  = _rate(stats["resolved"], total)
    stats["crisis_rate"]      = _rate(crisis, total)
    stats["auto_assign_rate"] = _rate(auto, total)
    return stats


def is_past_sla(ticket: Ticket, now: datetime) -> bool:
    """True when an active ticket has waited longer than its category's SLA."""
    if not ticket.status.is_active or ticket.category is None:
        return False
    hours = (now - ticket.created_at).total_seconds() / 3600
    return hours > ticket.category.sla_response_hours
