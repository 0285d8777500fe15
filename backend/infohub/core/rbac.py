"""
Role based access control.

Roles are ordered (see ROLE_HIERARCHY) and each carries a fixed permission set.
Admins always pass every check.
"""

from enum import Enum
from typing import Dict, Iterable, List, Set, TypeVar


class Role(str, Enum):
    ADMIN = "admin"
    OFFICE_MEMBER = "office_member"
    TEACHER = "teacher"
    PARENT = "parent"
    VIEWER = "viewer"


class Permission(str, Enum):
    # Announcements
    ANNOUNCEMENT_CREATE = "announcement:create"
    ANNOUNCEMENT_READ = "announcement:read"
    ANNOUNCEMENT_UPDATE = "announcement:update"
    ANNOUNCEMENT_DELETE = "announcement:delete"
    ANNOUNCEMENT_PUBLISH = "announcement:publish"

    # Events
    EVENT_CREATE = "event:create"
    EVENT_READ = "event:read"
    EVENT_UPDATE = "event:update"
    EVENT_DELETE = "event:delete"
    EVENT_MANAGE_REGISTRATIONS = "event:manage_registrations"

    # Resources
    RESOURCE_CREATE = "resource:create"
    RESOURCE_READ = "resource:read"
    RESOURCE_UPDATE = "resource:update"
    RESOURCE_DELETE = "resource:delete"

    # Communications (message boards, reminders, newsletters)
    COMMUNICATION_CREATE = "communication:create"
    COMMUNICATION_READ = "communication:read"
    COMMUNICATION_UPDATE = "communication:update"
    COMMUNICATION_DELETE = "communication:delete"
    COMMUNICATION_REPLY = "communication:reply"

    # Notifications
    NOTIFICATION_SEND = "notification:send"

    # Users
    USER_CREATE = "user:create"
    USER_READ = "user:read"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"
    USER_APPROVE = "user:approve"

    # System
    SYSTEM_SETTINGS = "system:settings"
    SYSTEM_PERFORMANCE = "system:performance"
    SYSTEM_AUDIT = "system:audit"

    # Portals
    TEACHER_PORTAL = "teacher:portal"
    PARENT_PORTAL = "parent:portal"
    PARENT_FEEDBACK = "parent:feedback"


_READ_ONLY: Set[Permission] = {
    Permission.ANNOUNCEMENT_READ,
    Permission.EVENT_READ,
    Permission.RESOURCE_READ,
    Permission.COMMUNICATION_READ,
}

ROLE_PERMISSIONS: Dict[Role, Set[Permission]] = {
    Role.ADMIN: set(Permission),
    Role.OFFICE_MEMBER: _READ_ONLY | {
        Permission.ANNOUNCEMENT_CREATE,
        Permission.ANNOUNCEMENT_UPDATE,
        Permission.ANNOUNCEMENT_PUBLISH,
        Permission.EVENT_CREATE,
        Permission.EVENT_UPDATE,
        Permission.EVENT_MANAGE_REGISTRATIONS,
        Permission.RESOURCE_CREATE,
        Permission.RESOURCE_UPDATE,
        Permission.RESOURCE_DELETE,
        Permission.COMMUNICATION_CREATE,
        Permission.COMMUNICATION_UPDATE,
        Permission.COMMUNICATION_REPLY,
        Permission.NOTIFICATION_SEND,
        Permission.USER_READ,
        Permission.TEACHER_PORTAL,
    },
    Role.TEACHER: _READ_ONLY | {
        Permission.ANNOUNCEMENT_CREATE,
        Permission.ANNOUNCEMENT_UPDATE,
        Permission.EVENT_CREATE,
        Permission.EVENT_UPDATE,
        Permission.EVENT_MANAGE_REGISTRATIONS,
        Permission.RESOURCE_CREATE,
        Permission.RESOURCE_UPDATE,
        Permission.RESOURCE_DELETE,
        Permission.COMMUNICATION_CREATE,
        Permission.COMMUNICATION_REPLY,
        Permission.TEACHER_PORTAL,
    },
    Role.PARENT: _READ_ONLY | {
        Permission.COMMUNICATION_REPLY,
        Permission.PARENT_PORTAL,
        Permission.PARENT_FEEDBACK,
    },
    Role.VIEWER: set(_READ_ONLY),
}

ROLE_HIERARCHY: Dict[Role, int] = {
    Role.VIEWER: 1,
    Role.PARENT: 1,
    Role.TEACHER: 2,
    Role.OFFICE_MEMBER: 3,
    Role.ADMIN: 4,
}

# Roles allowed to author and manage site content
CONTENT_MANAGER_ROLES = (Role.ADMIN, Role.OFFICE_MEMBER, Role.TEACHER)


def _role(value) -> Role:
    if isinstance(value, Role):
        return value
    return Role(getattr(value, "role", value))


def get_user_permissions(user_or_role) -> Set[Permission]:
    try:
        return set(ROLE_PERMISSIONS[_role(user_or_role)])
    except ValueError:
        return set()


def has_permission(user_or_role, permission: Permission) -> bool:
    try:
        role = _role(user_or_role)
    except ValueError:
        return False
    if role == Role.ADMIN:
        return True
    return permission in ROLE_PERMISSIONS[role]


def has_any_permission(user_or_role, permissions: Iterable[Permission]) -> bool:
    return any(has_permission(user_or_role, p) for p in permissions)


def has_all_permissions(user_or_role, permissions: Iterable[Permission]) -> bool:
    return all(has_permission(user_or_role, p) for p in permissions)


def can_access_resource(user_or_role, resource_type: str, action: str) -> bool:
    """Check a `<resource_type>:<action>` pair, e.g. ("event", "update")"""
    try:
        permission = Permission(f"{resource_type}:{action}")
    except ValueError:
        return False
    return has_permission(user_or_role, permission)


def role_level(user_or_role) -> int:
    try:
        return ROLE_HIERARCHY[_role(user_or_role)]
    except ValueError:
        return 0


def has_minimum_role(user_or_role, minimum: Role) -> bool:
    return role_level(user_or_role) >= ROLE_HIERARCHY[minimum]


def has_higher_role(user_or_role, other) -> bool:
    return role_level(user_or_role) > role_level(other)


T = TypeVar("T")


def filter_by_permission(user_or_role, items: Iterable[T], permission_of) -> List[T]:
    """Keep the items whose required permission (computed by `permission_of`) the user holds"""
    return [item for item in items if has_permission(user_or_role, permission_of(item))]
