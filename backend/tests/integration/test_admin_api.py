"""
Integration Tests for the admin area
"""
import pytest
from httpx import AsyncClient

from infohub.core.rbac import Role
from infohub.services.email_queue import email_queue


class TestAdminAccess:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", [
        "/api/v1/admin/users",
        "/api/v1/admin/settings",
        "/api/v1/admin/audit-logs",
        "/api/v1/admin/performance",
    ])
    async def test_office_staff_forbidden(self, client: AsyncClient, office_headers, path):
        response = await client.get(path, headers=office_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_anonymous_unauthorized(self, client: AsyncClient):
        response = await client.get("/api/v1/admin/users")
        assert response.status_code == 401


class TestUserManagement:

    @pytest.mark.asyncio
    async def test_list_filters_by_role(self, client: AsyncClient, admin_headers, make_user):
        await make_user(Role.TEACHER)
        await make_user(Role.PARENT)

        response = await client.get("/api/v1/admin/users", params={"role": "teacher"}, headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert [u["role"] for u in body["data"]] == ["teacher"]
        assert body["pagination"]["totalCount"] == 1

    @pytest.mark.asyncio
    async def test_role_change_is_audited(self, client: AsyncClient, admin_headers, parent_user):
        response = await client.put(
            f"/api/v1/admin/users/{parent_user.id}", json={"role": "teacher"}, headers=admin_headers
        )
        logs = await client.get("/api/v1/admin/audit-logs", params={"action": "user_updated"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["role"] == "teacher"
        assert logs.json()["data"][0]["targetId"] == str(parent_user.id)

    @pytest.mark.asyncio
    async def test_admin_cannot_demote_self(self, client: AsyncClient, admin_headers, admin_user):
        response = await client.put(
            f"/api/v1/admin/users/{admin_user.id}", json={"role": "parent"}, headers=admin_headers
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_approving_twice_conflicts(self, client: AsyncClient, admin_headers, parent_user):
        response = await client.post(f"/api/v1/admin/users/{parent_user.id}/approve", headers=admin_headers)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_delete_user(self, client: AsyncClient, admin_headers, make_user):
        user = await make_user(Role.VIEWER)

        deleted = await client.delete(f"/api/v1/admin/users/{user.id}", headers=admin_headers)
        missing = await client.get(f"/api/v1/admin/users/{user.id}", headers=admin_headers)

        assert deleted.status_code == 200
        assert missing.status_code == 404


class TestSettings:

    @pytest.mark.asyncio
    async def test_update_shows_on_public_info(self, client: AsyncClient, admin_headers):
        before = await client.get("/api/v1/public/info")
        assert before.json()["data"]["site.name"] == "School Info Hub"

        updated = await client.put(
            "/api/v1/admin/settings/site.name", json={"value": "Riverside Primary"}, headers=admin_headers
        )
        after = await client.get("/api/v1/public/info")

        assert updated.status_code == 200
        assert after.headers["X-Cache"] == "MISS"
        assert after.json()["data"]["site.name"] == "Riverside Primary"

    @pytest.mark.asyncio
    async def test_unknown_setting(self, client: AsyncClient, admin_headers):
        response = await client.put(
            "/api/v1/admin/settings/no.such.key", json={"value": 1}, headers=admin_headers
        )
        assert response.status_code == 404


class TestPerformance:

    @pytest.mark.asyncio
    async def test_summary_and_unknown_type(self, client: AsyncClient, admin_headers):
        summary = await client.get("/api/v1/admin/performance", headers=admin_headers)
        unknown = await client.get("/api/v1/admin/performance", params={"type": "bogus"}, headers=admin_headers)

        assert summary.status_code == 200
        assert summary.json()["type"] == "summary"
        assert unknown.status_code == 400

    @pytest.mark.asyncio
    async def test_api_requests_are_counted_as_queries(
        self, client: AsyncClient, admin_headers, teacher_headers
    ):
        await client.post("/api/v1/admin/performance", params={"action": "clear"}, headers=admin_headers)

        await client.post("/api/v1/announcements", json={"title": "Book fair", "content": "x"}, headers=teacher_headers)
        await client.get("/api/v1/announcements", headers=teacher_headers)
        await client.get("/api/v1/public/events")
        summary = await client.get("/api/v1/admin/performance", headers=admin_headers)

        query_metrics = summary.json()["data"]["queryMetrics"]
        assert query_metrics["totalQueries"] >= 3
        assert summary.json()["data"]["recommendations"] != ["No database operations recorded yet"]


class TestCarousel:

    BASE = "/api/v1/admin/parents-corner/carousel"

    async def _add(self, client: AsyncClient, headers, title: str, **overrides):
        body = {"title": title, "imageUrl": f"/api/v1/files/{title}.jpg"}
        body.update(overrides)
        response = await client.post(self.BASE, json=body, headers=headers)
        assert response.status_code == 201
        return response.json()["data"]

    @pytest.mark.asyncio
    async def test_office_staff_forbidden(self, client: AsyncClient, office_headers):
        response = await client.post(self.BASE, json={"imageUrl": "/x.jpg"}, headers=office_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_new_images_are_appended(self, client: AsyncClient, admin_headers, admin_user):
        first = await self._add(client, admin_headers, "garden")
        second = await self._add(client, admin_headers, "library")

        assert (first["order"], second["order"]) == (0, 1)
        assert first["uploadedBy"] == str(admin_user.id)
        assert first["isActive"] is True

    @pytest.mark.asyncio
    async def test_bulk_reorder_and_hide(self, client: AsyncClient, admin_headers):
        garden = await self._add(client, admin_headers, "garden")
        library = await self._add(client, admin_headers, "library")
        art = await self._add(client, admin_headers, "art")

        response = await client.put(self.BASE, json={"updates": [
            {"id": garden["id"], "order": 5},
            {"id": library["id"], "order": 0},
            {"id": art["id"], "isActive": False},
        ]}, headers=admin_headers)
        listing = await client.get(self.BASE, headers=admin_headers)
        public = await client.get("/api/v1/public/parents-corner/carousel")

        assert response.json()["data"]["updated"] == 3
        assert [i["title"] for i in listing.json()["data"]] == ["library", "art", "garden"]
        assert [i["title"] for i in public.json()["data"]] == ["library", "garden"]

    @pytest.mark.asyncio
    async def test_bulk_with_unknown_id_changes_nothing(self, client: AsyncClient, admin_headers):
        garden = await self._add(client, admin_headers, "garden")

        response = await client.put(self.BASE, json={"updates": [
            {"id": garden["id"], "order": 9},
            {"id": 9999, "order": 0},
        ]}, headers=admin_headers)
        fetched = await client.get(f"{self.BASE}/{garden['id']}", headers=admin_headers)

        assert response.status_code == 404
        assert fetched.json()["data"]["order"] == 0

    @pytest.mark.asyncio
    async def test_update_then_delete(self, client: AsyncClient, admin_headers):
        image = await self._add(client, admin_headers, "garden")

        updated = await client.put(
            f"{self.BASE}/{image['id']}", json={"altText": "Planting tomatoes"}, headers=admin_headers
        )
        deleted = await client.delete(f"{self.BASE}/{image['id']}", headers=admin_headers)
        missing = await client.get(f"{self.BASE}/{image['id']}", headers=admin_headers)

        assert updated.json()["data"]["altText"] == "Planting tomatoes"
        assert updated.json()["data"]["title"] == "garden"
        assert deleted.status_code == 200
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_upload_accepts_images_only(self, client: AsyncClient, admin_headers):
        image = await client.post(
            f"{self.BASE}/upload",
            files={"file": ("class.png", b"\x89PNG\r\n\x1a\n....", "image/png")},
            headers=admin_headers,
        )
        document = await client.post(
            f"{self.BASE}/upload",
            files={"file": ("menu.pdf", b"%PDF-1.4", "application/pdf")},
            headers=admin_headers,
        )

        assert image.status_code == 201
        assert image.json()["data"]["path"].startswith("homepage/carousel/")
        assert document.status_code == 400


class TestEmailQueueAdmin:

    @pytest.mark.asyncio
    async def test_stats_and_cancel(self, client: AsyncClient, admin_headers):
        job_id = email_queue.enqueue("parent@school.test", "Trip reminder", "<p>Bring a coat</p>")

        listed = await client.get("/api/v1/admin/email-queue", params={"status": "pending"}, headers=admin_headers)
        cancelled = await client.delete(f"/api/v1/admin/email-queue/{job_id}", headers=admin_headers)
        again = await client.delete(f"/api/v1/admin/email-queue/{job_id}", headers=admin_headers)

        assert listed.status_code == 200
        assert [j["id"] for j in listed.json()["data"]["jobs"]] == [job_id]
        assert listed.json()["data"]["stats"]["pending"] == 1
        assert cancelled.status_code == 200
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_test_email_needs_smtp(self, client: AsyncClient, admin_headers):
        response = await client.post("/api/v1/admin/email-queue/test", headers=admin_headers)
        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_office_staff_forbidden(self, client: AsyncClient, office_headers):
        response = await client.get("/api/v1/admin/email-queue", headers=office_headers)
        assert response.status_code == 403
