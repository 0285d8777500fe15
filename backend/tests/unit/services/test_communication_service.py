"""
Unit Tests for CommunicationService
Tests for: newsletter periods, role visibility, newsletter archive
"""
from datetime import datetime

import pytest

from infohub.core.exceptions import ValidationError
from infohub.core.rbac import Role
from infohub.models.communication import Communication, CommunicationAudience, CommunicationStatus
from infohub.services.communication_service import (
    CommunicationService,
    is_visible_to_role,
    newsletter_period,
)


class TestNewsletterPeriod:

    def test_month(self):
        assert newsletter_period("2024-02") == (datetime(2024, 2, 1), datetime(2024, 3, 1))

    def test_december_rolls_year(self):
        assert newsletter_period("2023-12") == (datetime(2023, 12, 1), datetime(2024, 1, 1))

    def test_year(self):
        assert newsletter_period(year="2024") == (datetime(2024, 1, 1), datetime(2025, 1, 1))

    def test_nothing(self):
        assert newsletter_period() == (None, None)

    @pytest.mark.parametrize("month", ["2024-13", "2024-1", "Feb 2024"])
    def test_bad_month(self, month):
        with pytest.raises(ValidationError):
            newsletter_period(month)

    def test_bad_year(self):
        with pytest.raises(ValidationError):
            newsletter_period(year="24")


class TestVisibility:

    @pytest.mark.parametrize("role,audience,status,expected", [
        (Role.ADMIN, CommunicationAudience.STAFF, CommunicationStatus.DRAFT, True),
        (Role.OFFICE_MEMBER, CommunicationAudience.STAFF, CommunicationStatus.ARCHIVED, True),
        (Role.OFFICE_MEMBER, CommunicationAudience.ALL, CommunicationStatus.DRAFT, False),
        (Role.TEACHER, CommunicationAudience.TEACHERS, CommunicationStatus.PUBLISHED, True),
        (Role.TEACHER, CommunicationAudience.PARENTS, CommunicationStatus.PUBLISHED, False),
        (Role.PARENT, CommunicationAudience.PARENTS, CommunicationStatus.PUBLISHED, True),
        (Role.PARENT, CommunicationAudience.TEACHERS, CommunicationStatus.PUBLISHED, False),
        (None, CommunicationAudience.ALL, CommunicationStatus.PUBLISHED, True),
        (None, CommunicationAudience.STAFF, CommunicationStatus.PUBLISHED, False),
    ])
    def test_is_visible_to_role(self, role, audience, status, expected):
        communication = Communication(title="t", content="c", target_audience=audience, status=status)
        assert is_visible_to_role(communication, role) is expected


class TestCommunicationService:

    @pytest.mark.asyncio
    async def test_reminder_needs_due_date(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        with pytest.raises(ValidationError):
            await CommunicationService(db_session).create(
                {"title": "Marks", "content": "Submit marks", "type": "reminder"}, teacher
            )

    @pytest.mark.asyncio
    async def test_reminder_with_due_date(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        reminder = await CommunicationService(db_session).create(
            {"title": "Marks", "content": "Submit marks", "type": "reminder", "due_date": datetime(2024, 6, 1, 9, 0)},
            teacher,
        )
        assert reminder.due_date == datetime(2024, 6, 1, 9, 0)
        assert reminder.status == CommunicationStatus.DRAFT

    @pytest.mark.asyncio
    async def test_newsletters_filtered_by_month(self, db_session, make_user):
        office = await make_user(Role.OFFICE_MEMBER)
        service = CommunicationService(db_session)
        for title, published in (("March", datetime(2024, 3, 5)), ("April", datetime(2024, 4, 2))):
            newsletter = await service.create({
                "title": title, "content": "news", "type": "newsletter", "status": "published",
            }, office)
            newsletter.published_at = published
        await db_session.commit()

        march = await service.newsletters(month="2024-03")
        archive = await service.newsletter_archive()

        assert [n["title"] for n in march] == ["March"]
        assert archive["totalNewsletters"] == 2
        assert archive["availableMonths"] == ["2024-04", "2024-03"]
        assert archive["availableYears"] == [2024]
