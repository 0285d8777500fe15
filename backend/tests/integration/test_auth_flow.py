"""
Integration Tests for registration, approval and login
"""
import pytest
from httpx import AsyncClient

from infohub.core.config import settings
from infohub.core.rbac import Role

PASSWORD = "testpassword123"


async def _register(client: AsyncClient, email: str, password: str = PASSWORD):
    return await client.post("/api/v1/auth/register", json={
        "email": email,
        "password": password,
        "firstName": "Dana",
        "lastName": "Okafor",
    })


class TestRegistration:

    @pytest.mark.asyncio
    async def test_register_creates_pending_viewer(self, client: AsyncClient):
        response = await _register(client, "dana@school.example")

        assert response.status_code == 201
        user = response.json()["user"]
        assert user["role"] == "viewer"
        assert user["isActive"] is False
        assert user["approvalStatus"] == "pending"

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, client: AsyncClient):
        await _register(client, "dana@school.example")
        response = await _register(client, "Dana@school.example")

        assert response.status_code == 409
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_short_password_rejected(self, client: AsyncClient):
        response = await _register(client, "short@school.example", password="abc")
        assert response.status_code == 422


class TestLogin:

    @pytest.mark.asyncio
    async def test_pending_account_cannot_log_in(self, client: AsyncClient):
        await _register(client, "pending@school.example")
        response = await client.post("/api/v1/auth/login", json={
            "email": "pending@school.example", "password": PASSWORD,
        })

        assert response.status_code == 403
        assert response.json()["error"] == "account_pending"

    @pytest.mark.asyncio
    async def test_wrong_password(self, client: AsyncClient, parent_user):
        response = await client.post("/api/v1/auth/login", json={
            "email": parent_user.email, "password": "not-the-password",
        })
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_returns_tokens_and_cookie(self, client: AsyncClient, teacher_user):
        response = await client.post("/api/v1/auth/login", json={
            "email": teacher_user.email, "password": PASSWORD,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["tokenType"] == "bearer"
        assert body["accessToken"] and body["refreshToken"]
        assert body["user"]["role"] == "teacher"
        assert settings.AUTH_COOKIE_NAME in response.cookies

    @pytest.mark.asyncio
    async def test_refresh_issues_new_pair(self, client: AsyncClient, parent_user):
        login = await client.post("/api/v1/auth/login", json={"email": parent_user.email, "password": PASSWORD})
        response = await client.post("/api/v1/auth/refresh", json={"refreshToken": login.json()["refreshToken"]})

        assert response.status_code == 200
        assert response.json()["accessToken"]

    @pytest.mark.asyncio
    async def test_access_token_is_not_a_refresh_token(self, client: AsyncClient, parent_user):
        login = await client.post("/api/v1/auth/login", json={"email": parent_user.email, "password": PASSWORD})
        response = await client.post("/api/v1/auth/refresh", json={"refreshToken": login.json()["accessToken"]})
        assert response.status_code == 401


class TestApprovalFlow:
    """Register, get approved by an admin, then sign in"""

    @pytest.mark.asyncio
    async def test_full_flow(self, client: AsyncClient, admin_headers):
        registered = await _register(client, "new.teacher@school.example")
        user_id = registered.json()["user"]["id"]

        approved = await client.post(
            f"/api/v1/admin/users/{user_id}/approve", json={"role": "teacher"}, headers=admin_headers
        )
        assert approved.status_code == 200
        assert approved.json()["data"]["role"] == "teacher"
        assert approved.json()["data"]["isActive"] is True

        login = await client.post("/api/v1/auth/login", json={
            "email": "new.teacher@school.example", "password": PASSWORD,
        })
        assert login.status_code == 200

        me = await client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {login.json()['accessToken']}"}
        )
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "new.teacher@school.example"
        assert "announcement:create" in me.json()["permissions"]

    @pytest.mark.asyncio
    async def test_approval_defaults_to_office_member(self, client: AsyncClient, admin_headers):
        registered = await _register(client, "office@school.example")
        user_id = registered.json()["user"]["id"]

        approved = await client.post(f"/api/v1/admin/users/{user_id}/approve", headers=admin_headers)

        assert approved.json()["data"]["role"] == Role.OFFICE_MEMBER.value

    @pytest.mark.asyncio
    async def test_rejected_user_cannot_log_in(self, client: AsyncClient, admin_headers):
        registered = await _register(client, "rejected@school.example")
        user_id = registered.json()["user"]["id"]

        await client.post(f"/api/v1/admin/users/{user_id}/reject", json={"reason": "Unknown"}, headers=admin_headers)
        login = await client.post("/api/v1/auth/login", json={
            "email": "rejected@school.example", "password": PASSWORD,
        })

        assert login.status_code == 403


class TestCurrentUser:

    @pytest.mark.asyncio
    async def test_me_requires_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_cookie_authentication(self, client: AsyncClient, parent_user):
        await client.post("/api/v1/auth/login", json={"email": parent_user.email, "password": PASSWORD})
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 200
        assert response.json()["user"]["id"] == str(parent_user.id)

    @pytest.mark.asyncio
    async def test_inactive_user_forbidden(self, client: AsyncClient, make_user, auth_headers_for):
        user = await make_user(is_active=False)
        response = await client.get("/api/v1/auth/me", headers=auth_headers_for(user))
        assert response.status_code == 403
