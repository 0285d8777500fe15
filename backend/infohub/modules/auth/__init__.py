# Authentication module

from infohub.modules.auth.dependencies import (
    get_current_user,
    get_optional_user,
    get_current_admin,
    get_content_manager,
    get_office_staff,
    require_role,
    require_permission,
)

__all__ = [
    "get_current_user",
    "get_optional_user",
    "get_current_admin",
    "get_content_manager",
    "get_office_staff",
    "require_role",
    "require_permission",
]
