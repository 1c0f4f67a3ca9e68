"""
Role Permissions
================
Capability flags and dashboard page info per role.  Unknown roles resolve
to the student set via Role's fallback.
"""

from typing import Dict

from campus_support.schemas import Role

CAPABILITIES = (
    "can_create",
    "can_view_all",
    "can_assign",
    "can_modify",
    "can_delete",
    "can_export",
    "can_bulk_actions",
    "can_manage_tags",
    "can_add_internal_notes",
    "can_download_attachments",
    "can_manage_categories",
    "can_view_crisis_detection",
    "can_test_crisis_detection",
)

_BASE: Dict[str, bool] = {cap: False for cap in CAPABILITIES}
_BASE["can_download_attachments"] = True   # every signed-in user

_STAFF = {
    "can_modify":                True,
    "can_manage_tags":           True,
    "can_add_internal_notes":    True,
    "can_view_crisis_detection": True,
}

_GRANTS: Dict[Role, Dict[str, bool]] = {
    Role.ADMIN:     {cap: True for cap in CAPABILITIES},
    Role.COUNSELOR: _STAFF,
    Role.ADVISOR:   _STAFF,
    Role.STUDENT:   {"can_create": True},
}

_PAGE_INFO: Dict[Role, Dict[str, object]] = {
    Role.ADMIN: {
        "title":       "Ticket Management",
        "description": "Manage all support tickets, assignments, and system overview",
        "show_create": True,
        "show_stats":  True,
    },
    Role.COUNSELOR: {
        "title":       "My Cases",
        "description": "View and manage your assigned student support cases",
        "show_create": False,
        "show_stats":  True,
    },
    Role.STUDENT: {
        "title":       "My Support Tickets",
        "description": "Track your support requests and get help when you need it",
        "show_create": True,
        "show_stats":  False,
    },
}
_PAGE_INFO[Role.ADVISOR] = _PAGE_INFO[Role.COUNSELOR]


def permissions_for(role) -> Dict[str, bool]:
    role = Role(role)
    return {**_BASE, **_GRANTS[role]}


def page_info(role) -> Dict[str, object]:
    return dict(_PAGE_INFO[Role(role)])


def can(role, capability: str) -> bool:
    if capability not in CAPABILITIES:
        raise KeyError(f"Unknown capability: {capability}")
    return permissions_for(role)[capability]


def default_view(role) -> str:
    """Dashboard tab a role lands on."""
    role = Role(role)
    if role is Role.ADMIN:
        return "all"
    if role in (Role.COUNSELOR, Role.ADVISOR):
        return "my_assigned"
    return "my_tickets"
