"""
Unit Tests for user_service
Tests for: Google account linking, password reset, role upgrade requests
"""
from datetime import datetime, timedelta

import pytest

from infohub.core.config import settings
from infohub.core.exceptions import ConflictError, ValidationError
from infohub.core.rbac import Role
from infohub.core.security import verify_password
from infohub.models.user import ApprovalStatus
from infohub.services import user_service


def _google_profile(email: str, google_id: str = "g-123"):
    return {
        "google_id": google_id,
        "email": email,
        "given_name": "Priya",
        "family_name": "Shah",
        "full_name": "Priya Shah",
        "avatar_url": "https://example.com/p.png",
    }


class TestGoogleAccounts:

    @pytest.mark.asyncio
    async def test_unknown_domain_waits_for_approval(self, db_session):
        user, created = await user_service.get_or_create_oauth_user(db_session, _google_profile("priya@gmail.com"))

        assert created is True
        assert user.role == Role.VIEWER
        assert user.approval_status == ApprovalStatus.PENDING
        assert user.is_active is False

    @pytest.mark.asyncio
    async def test_allowed_domain_is_approved(self, db_session, monkeypatch):
        monkeypatch.setattr(settings, "GOOGLE_ALLOWED_DOMAINS_STR", "school.example")

        user, _ = await user_service.get_or_create_oauth_user(db_session, _google_profile("priya@School.example"))

        assert user.email == "priya@school.example"
        assert user.role == Role(settings.DEFAULT_APPROVED_ROLE)
        assert user.is_active is True

    @pytest.mark.asyncio
    async def test_links_existing_password_account(self, db_session, make_user):
        existing = await make_user(email="link@school.example")

        user, created = await user_service.get_or_create_oauth_user(db_session, _google_profile("link@school.example"))

        assert created is False
        assert str(user.id) == str(existing.id)
        assert user.google_id == "g-123"


class TestPasswordReset:

    @pytest.mark.asyncio
    async def test_token_is_single_use(self, db_session, make_user):
        user = await make_user(email="reset@school.example")
        token = await user_service.request_password_reset(db_session, "RESET@school.example")

        updated = await user_service.reset_password(db_session, str(user.id), token, "a-new-password")
        assert verify_password("a-new-password", updated.hashed_password)

        with pytest.raises(ValidationError):
            await user_service.reset_password(db_session, str(user.id), token, "another-password")

    @pytest.mark.asyncio
    async def test_expired_token(self, db_session, make_user):
        user = await make_user()
        token = await user_service.request_password_reset(db_session, user.email)
        user.reset_token_expires = datetime.utcnow() - timedelta(minutes=1)
        await db_session.commit()

        with pytest.raises(ValidationError):
            await user_service.reset_password(db_session, str(user.id), token, "a-new-password")

    @pytest.mark.asyncio
    async def test_unknown_email_returns_none(self, db_session):
        assert await user_service.request_password_reset(db_session, "nobody@school.example") is None


class TestUpgradeRequests:

    @pytest.mark.asyncio
    async def test_request_and_approve(self, db_session, make_user):
        parent = await make_user(Role.PARENT)
        admin = await make_user(Role.ADMIN)

        upgrade = await user_service.create_upgrade_request(db_session, parent, "teacher", "I teach year 3")
        with pytest.raises(ConflictError):
            await user_service.create_upgrade_request(db_session, parent, "teacher")

        await user_service.review_upgrade_request(db_session, upgrade.id, admin, approve=True)
        refreshed = await user_service.get_user(db_session, str(parent.id))
        assert refreshed.role == Role.TEACHER

        with pytest.raises(ConflictError):
            await user_service.review_upgrade_request(db_session, upgrade.id, admin, approve=False)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("requested", ["admin", "parent"])
    async def test_must_request_a_higher_role(self, db_session, make_user, requested):
        parent = await make_user(Role.PARENT)
        with pytest.raises(ValidationError):
            await user_service.create_upgrade_request(db_session, parent, requested)
