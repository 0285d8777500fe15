"""
Unit Tests for role based access control
"""
import pytest

from infohub.core.rbac import (
    Permission,
    Role,
    can_access_resource,
    filter_by_permission,
    get_user_permissions,
    has_all_permissions,
    has_any_permission,
    has_higher_role,
    has_minimum_role,
    has_permission,
    role_level,
)


class TestPermissions:
    """Test role permission lookups"""

    def test_admin_has_every_permission(self):
        for permission in Permission:
            assert has_permission(Role.ADMIN, permission)

    def test_parent_cannot_create_announcements(self):
        assert not has_permission(Role.PARENT, Permission.ANNOUNCEMENT_CREATE)
        assert has_permission(Role.PARENT, Permission.PARENT_FEEDBACK)

    def test_teacher_cannot_delete_events(self):
        assert has_permission(Role.TEACHER, Permission.EVENT_CREATE)
        assert not has_permission(Role.TEACHER, Permission.EVENT_DELETE)

    @pytest.mark.parametrize("role", [Role.TEACHER, Role.OFFICE_MEMBER, Role.ADMIN])
    def test_event_managers_handle_registrations(self, role):
        assert has_permission(role, Permission.EVENT_MANAGE_REGISTRATIONS)
        assert not has_permission(Role.PARENT, Permission.EVENT_MANAGE_REGISTRATIONS)

    def test_only_admin_deletes_announcements(self):
        assert has_permission(Role.ADMIN, Permission.ANNOUNCEMENT_DELETE)
        assert not has_permission(Role.OFFICE_MEMBER, Permission.ANNOUNCEMENT_DELETE)

    def test_viewer_is_read_only(self):
        permissions = get_user_permissions(Role.VIEWER)
        assert permissions == {
            Permission.ANNOUNCEMENT_READ,
            Permission.EVENT_READ,
            Permission.RESOURCE_READ,
            Permission.COMMUNICATION_READ,
        }

    def test_accepts_role_strings(self):
        assert has_permission("office_member", Permission.NOTIFICATION_SEND)

    def test_unknown_role_has_nothing(self):
        assert get_user_permissions("janitor") == set()
        assert not has_permission("janitor", Permission.EVENT_READ)

    def test_any_and_all(self):
        perms = [Permission.EVENT_READ, Permission.SYSTEM_SETTINGS]
        assert has_any_permission(Role.TEACHER, perms)
        assert not has_all_permissions(Role.TEACHER, perms)

    @pytest.mark.parametrize("resource_type,action,expected", [
        ("event", "update", True),
        ("event", "delete", False),
        ("resource", "delete", True),
        ("spaceship", "launch", False),
    ])
    def test_can_access_resource(self, resource_type, action, expected):
        assert can_access_resource(Role.TEACHER, resource_type, action) is expected

    def test_filter_by_permission(self):
        items = [("a", Permission.EVENT_READ), ("b", Permission.USER_DELETE)]
        kept = filter_by_permission(Role.PARENT, items, lambda item: item[1])
        assert [name for name, _ in kept] == ["a"]


class TestRoleHierarchy:
    """Test role ordering"""

    def test_levels(self):
        assert role_level(Role.ADMIN) > role_level(Role.OFFICE_MEMBER) > role_level(Role.TEACHER)
        assert role_level(Role.PARENT) == role_level(Role.VIEWER)
        assert role_level("nobody") == 0

    def test_minimum_role(self):
        assert has_minimum_role(Role.OFFICE_MEMBER, Role.TEACHER)
        assert not has_minimum_role(Role.PARENT, Role.TEACHER)

    def test_higher_role(self):
        assert has_higher_role(Role.ADMIN, Role.TEACHER)
        assert not has_higher_role(Role.PARENT, Role.VIEWER)
