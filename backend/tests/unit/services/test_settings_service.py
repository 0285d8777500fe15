"""
Unit Tests for settings_service
"""
import pytest

from infohub.core.exceptions import ResourceNotFoundError, ValidationError
from infohub.core.rbac import Role
from infohub.services import settings_service
from infohub.services.settings_service import DEFAULT_SETTINGS, PUBLIC_SETTING_KEYS


class TestSettingsService:

    @pytest.mark.asyncio
    async def test_defaults_seeded_once(self, db_session):
        created = await settings_service.ensure_default_settings(db_session)

        assert created == len(DEFAULT_SETTINGS)
        assert await settings_service.ensure_default_settings(db_session) == 0

        grouped = await settings_service.list_settings(db_session)
        assert "site" in grouped

    @pytest.mark.asyncio
    async def test_public_settings_exclude_private_keys(self, db_session):
        public = await settings_service.get_public_settings(db_session)

        assert set(public) == set(PUBLIC_SETTING_KEYS)
        assert "notifications.email_enabled" not in public

    @pytest.mark.asyncio
    async def test_boolean_settings_are_type_checked(self, db_session, make_user):
        admin = await make_user(Role.ADMIN)

        with pytest.raises(ValidationError):
            await settings_service.update_setting(db_session, "features.event_registration", "yes", admin)

        change = await settings_service.update_setting(db_session, "features.event_registration", False, admin)
        assert change == {"key": "features.event_registration", "old_value": True, "new_value": False}

    @pytest.mark.asyncio
    async def test_batch_update(self, db_session, make_user):
        admin = await make_user(Role.ADMIN)

        changes = await settings_service.batch_update(db_session, {
            "site.name": "Hillside School",
            "site.description": "Our school",
        }, admin)

        assert [c["key"] for c in changes] == ["site.name", "site.description"]
        assert (await settings_service.get_public_settings(db_session))["site.name"] == "Hillside School"

    @pytest.mark.asyncio
    async def test_unknown_and_empty(self, db_session, make_user):
        admin = await make_user(Role.ADMIN)

        with pytest.raises(ResourceNotFoundError):
            await settings_service.update_setting(db_session, "does.not.exist", 1, admin)
        with pytest.raises(ValidationError):
            await settings_service.batch_update(db_session, {}, admin)
