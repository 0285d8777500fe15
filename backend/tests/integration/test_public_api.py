"""
Integration Tests for the public parents' corner endpoints
"""
import pytest
from httpx import AsyncClient


async def _publish(client: AsyncClient, headers, title: str, audience: str = "parents", status: str = "published"):
    response = await client.post("/api/v1/announcements", json={
        "title": title,
        "content": f"<p>{title}</p>",
        "targetAudience": audience,
        "status": status,
    }, headers=headers)
    assert response.status_code == 201
    return response.json()["data"]


class TestPublicAnnouncements:

    @pytest.mark.asyncio
    async def test_only_published_parent_announcements(self, client: AsyncClient, teacher_headers):
        await _publish(client, teacher_headers, "Parents evening")
        await _publish(client, teacher_headers, "Staff training", audience="teachers")
        await _publish(client, teacher_headers, "Draft notice", status="draft")

        response = await client.get("/api/v1/public/announcements")

        assert response.status_code == 200
        titles = [a["title"] for a in response.json()["data"]]
        assert titles == ["Parents evening"]

    @pytest.mark.asyncio
    async def test_second_request_served_from_cache(self, client: AsyncClient, teacher_headers):
        await _publish(client, teacher_headers, "Sports day")

        first = await client.get("/api/v1/public/announcements")
        second = await client.get("/api/v1/public/announcements")

        assert first.headers["X-Cache"] == "MISS"
        assert second.headers["X-Cache"] == "HIT"
        assert second.json() == first.json()

    @pytest.mark.asyncio
    async def test_write_invalidates_cached_pages(self, client: AsyncClient, teacher_headers):
        await _publish(client, teacher_headers, "Sports day")
        await client.get("/api/v1/public/announcements")

        await _publish(client, teacher_headers, "Book fair")
        response = await client.get("/api/v1/public/announcements")

        assert response.headers["X-Cache"] == "MISS"
        assert {a["title"] for a in response.json()["data"]} == {"Sports day", "Book fair"}

    @pytest.mark.asyncio
    async def test_authenticated_request_bypasses_cache(self, client: AsyncClient, parent_headers):
        await client.get("/api/v1/public/announcements")
        response = await client.get("/api/v1/public/announcements", headers=parent_headers)

        assert response.status_code == 200
        assert "X-Cache" not in response.headers


class TestPublicPages:

    @pytest.mark.asyncio
    async def test_info_falls_back_to_defaults(self, client: AsyncClient):
        response = await client.get("/api/v1/public/info")

        assert response.status_code == 200
        assert response.json()["data"]["site.name"] == "School Info Hub"

    @pytest.mark.asyncio
    async def test_newsletters_reject_bad_month(self, client: AsyncClient):
        response = await client.get("/api/v1/public/newsletters", params={"month": "2024-13"})

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_newsletter_archive_empty(self, client: AsyncClient):
        response = await client.get("/api/v1/public/newsletters/archive")

        assert response.status_code == 200
        assert response.json()["success"] is True

    @pytest.mark.asyncio
    async def test_upcoming_events(self, client: AsyncClient, teacher_headers):
        await client.post("/api/v1/events", json={
            "title": "Spring concert", "startDate": "2099-04-01", "status": "published",
        }, headers=teacher_headers)
        await client.post("/api/v1/events", json={
            "title": "Old concert", "startDate": "2000-04-01", "status": "published",
        }, headers=teacher_headers)

        response = await client.get("/api/v1/public/events", params={"upcoming": "true"})

        assert response.status_code == 200
        assert [e["title"] for e in response.json()["data"]] == ["Spring concert"]


class TestPublicMessages:

    async def _announce(self, client: AsyncClient, headers, title: str, **overrides):
        body = {
            "title": title,
            "content": f"<p>{title}</p>",
            "type": "announcement",
            "targetAudience": "all",
            "status": "published",
        }
        body.update(overrides)
        response = await client.post("/api/v1/communications", json=body, headers=headers)
        assert response.status_code == 201
        return response.json()["data"]

    @pytest.mark.asyncio
    async def test_audience_includes_messages_for_everyone(self, client: AsyncClient, office_headers):
        await self._announce(client, office_headers, "Parents only", targetAudience="parents")
        await self._announce(client, office_headers, "Everyone")
        await self._announce(client, office_headers, "Teachers only", targetAudience="teachers")

        response = await client.get("/api/v1/public/messages", params={"audience": "parents"})

        assert response.status_code == 200
        assert {m["title"] for m in response.json()["data"]} == {"Parents only", "Everyone"}
        assert response.json()["total"] == 2

    @pytest.mark.asyncio
    async def test_skips_drafts_expired_and_board_posts(self, client: AsyncClient, office_headers):
        await self._announce(client, office_headers, "Live")
        await self._announce(client, office_headers, "Draft", status="draft")
        await self._announce(client, office_headers, "Expired", expiresAt="2000-01-01T00:00:00")
        await self._announce(client, office_headers, "Board chatter", type="message")

        response = await client.get("/api/v1/public/messages")

        assert [m["title"] for m in response.json()["data"]] == ["Live"]

    @pytest.mark.asyncio
    async def test_pinned_then_priority_order(self, client: AsyncClient, office_headers):
        await self._announce(client, office_headers, "Lost gloves", priority="low")
        await self._announce(client, office_headers, "Snow closure", priority="high")
        await self._announce(client, office_headers, "Term dates", priority="low", isPinned=True)

        response = await client.get("/api/v1/public/messages")

        data = response.json()["data"]
        assert [m["title"] for m in data] == ["Term dates", "Snow closure", "Lost gloves"]
        assert data[1]["isImportant"] is True
        assert data[2]["isImportant"] is False

    @pytest.mark.asyncio
    async def test_card_uses_summary_not_html(self, client: AsyncClient, office_headers):
        await self._announce(
            client, office_headers, "Menu change",
            content="<p>The <b>full</b> menu is attached</p>", summary="New lunch menu from Monday",
        )

        message = (await client.get("/api/v1/public/messages")).json()["data"][0]

        assert message["content"] == "New lunch menu from Monday"
        assert message["targetAudience"] == "all"
        assert message["author"]

    @pytest.mark.asyncio
    async def test_unknown_audience_rejected(self, client: AsyncClient):
        response = await client.get("/api/v1/public/messages", params={"audience": "aliens"})
        assert response.status_code == 400


class TestPublicCarousel:

    @pytest.mark.asyncio
    async def test_only_active_images_in_order(self, client: AsyncClient, admin_headers):
        for title, active in (("Reading hour", True), ("Hidden", False), ("Sports day", True)):
            await client.post("/api/v1/admin/parents-corner/carousel", json={
                "title": title, "imageUrl": f"/img/{title}.jpg", "isActive": active,
            }, headers=admin_headers)

        response = await client.get("/api/v1/public/parents-corner/carousel")

        body = response.json()
        assert response.status_code == 200
        assert [i["title"] for i in body["data"]] == ["Reading hour", "Sports day"]
        assert body["count"] == 2
        assert "isActive" not in body["data"][0]
        assert body["data"][0]["altText"] == "Family learning moment"
