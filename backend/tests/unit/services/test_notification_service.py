"""
Unit Tests for NotificationService
Tests for: templates, recipient resolution, duplicate suppression, preferences, SSE broker
"""
import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from infohub.core.exceptions import ValidationError
from infohub.core.rbac import Role
from infohub.models.notification import Notification, NotificationPriority, NotificationType
from infohub.services.email_queue import EmailPriority, email_queue
from infohub.services.email_service import email_service
from infohub.services.notification_service import (
    DEFAULT_NOTIFICATION_PREFERENCES,
    NotificationBroker,
    NotificationRequest,
    NotificationService,
    apply_template,
    deep_merge,
    in_do_not_disturb,
    wants_email,
)


class TestHelpers:
    """Test the pure helpers"""

    def test_apply_template(self):
        text = apply_template("Hello {{ name }}, see {{place}}{{missing}}", {"name": "Ana", "place": "room 4"})
        assert text == "Hello Ana, see room 4"

    def test_deep_merge_keeps_nested_defaults(self):
        merged = deep_merge(DEFAULT_NOTIFICATION_PREFERENCES, {"categories": {"event": {"email": False}}})

        assert merged["categories"]["event"] == {"enabled": True, "email": False, "system": True}
        assert merged["categories"]["announcement"]["email"] is True
        assert DEFAULT_NOTIFICATION_PREFERENCES["categories"]["event"]["email"] is True

    @pytest.mark.parametrize("clock,expected", [
        ("23:30", True),
        ("03:00", True),
        ("08:00", False),
        ("12:00", False),
    ])
    def test_do_not_disturb_wraps_midnight(self, clock, expected):
        prefs = {"doNotDisturb": {"enabled": True, "startTime": "22:00", "endTime": "08:00"}}
        hour, minute = map(int, clock.split(":"))
        assert in_do_not_disturb(prefs, datetime(2024, 1, 1, hour, minute)) is expected

    def test_do_not_disturb_disabled(self):
        assert in_do_not_disturb(DEFAULT_NOTIFICATION_PREFERENCES, datetime(2024, 1, 1, 23, 0)) is False

    def test_wants_email_per_category(self):
        assert wants_email(DEFAULT_NOTIFICATION_PREFERENCES, "announcement")
        assert not wants_email(DEFAULT_NOTIFICATION_PREFERENCES, "resource")
        assert not wants_email({**DEFAULT_NOTIFICATION_PREFERENCES, "email": False}, "announcement")


class TestSendNotification:
    """Test recipient resolution and sending"""

    @pytest.mark.asyncio
    async def test_specific_recipient(self, db_session, make_user):
        parent = await make_user(Role.PARENT)
        result = await NotificationService(db_session).send_notification(NotificationRequest(
            title="Library books due",
            message="Please return books by Friday",
            recipient_type="specific",
            recipient_ids=[str(parent.id)],
        ))

        assert result["success"] is True
        assert result["totalSent"] == 1
        assert result["recipients"]["success"] == [str(parent.id)]

    @pytest.mark.asyncio
    async def test_duplicates_suppressed(self, db_session, make_user):
        parent = await make_user(Role.PARENT)
        service = NotificationService(db_session)
        request = dict(
            title="Bus delayed", message="Route 3 is 20 minutes late",
            type=NotificationType.SYSTEM, recipient_type="specific",
            recipient_ids=[str(parent.id)], related_id=7,
        )

        await service.send_notification(NotificationRequest(**request))
        second = await service.send_notification(NotificationRequest(**request))

        assert second["totalSent"] == 0
        assert second["totalFailed"] == 1
        assert second["recipients"]["failed"] == [str(parent.id)]

    @pytest.mark.asyncio
    async def test_old_notifications_do_not_suppress(self, db_session, make_user):
        parent = await make_user(Role.PARENT)
        db_session.add(Notification(
            recipient_id=parent.id, title="Bus delayed", message="old",
            type=NotificationType.SYSTEM, priority=NotificationPriority.LOW,
            created_at=datetime.utcnow() - timedelta(hours=25),
        ))
        await db_session.commit()

        result = await NotificationService(db_session).send_notification(NotificationRequest(
            title="Bus delayed", message="again", recipient_type="specific", recipient_ids=[str(parent.id)],
        ))

        assert result["totalSent"] == 1

    @pytest.mark.asyncio
    async def test_role_based_skips_inactive(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        await make_user(Role.TEACHER, is_active=False)
        await make_user(Role.PARENT)

        result = await NotificationService(db_session).send_notification(NotificationRequest(
            title="Staff meeting", message="3pm in the library",
            recipient_type="role_based", target_roles=["teacher"],
        ))

        assert result["recipients"]["success"] == [str(teacher.id)]

    @pytest.mark.asyncio
    async def test_no_recipients(self, db_session):
        result = await NotificationService(db_session).send_notification(NotificationRequest(
            title="Hello", message="Anyone?", recipient_type="specific", recipient_ids=[],
        ))

        assert result["success"] is False
        assert result["errors"] == ["No recipients found"]

    @pytest.mark.asyncio
    async def test_template_fills_title_and_priority(self, db_session, make_user):
        parent = await make_user(Role.PARENT)
        service = NotificationService(db_session)

        await service.send_notification(NotificationRequest(
            title="Art show", type=NotificationType.EVENT, recipient_type="specific",
            recipient_ids=[str(parent.id)], template="event_cancelled",
        ))

        stored = (await db_session.execute(
            select(Notification).where(Notification.recipient_id == parent.id)
        )).scalar_one()
        assert stored.title == "Important: event cancelled - Art show"
        assert stored.priority == NotificationPriority.URGENT

    @pytest.mark.asyncio
    async def test_unknown_template_and_recipient_type(self, db_session, make_user):
        parent = await make_user(Role.PARENT)
        service = NotificationService(db_session)

        with pytest.raises(ValidationError):
            await service.send_notification(NotificationRequest(
                title="x", recipient_type="specific", recipient_ids=[str(parent.id)], template="nope",
            ))
        with pytest.raises(ValidationError):
            await service.send_notification(NotificationRequest(title="x", message="y", recipient_type="everyone"))


class TestUserOperations:

    @pytest.mark.asyncio
    async def test_bulk_and_stats(self, db_session, make_user):
        parent = await make_user(Role.PARENT)
        service = NotificationService(db_session)
        for i in range(3):
            await service.send_notification(NotificationRequest(
                title=f"Note {i}", message="m", recipient_type="specific", recipient_ids=[str(parent.id)],
            ))

        assert await service.unread_count(str(parent.id)) == 3
        assert await service.mark_all_read(str(parent.id)) == 3
        assert await service.unread_count(str(parent.id)) == 0

    @pytest.mark.asyncio
    async def test_preferences_merge_over_defaults(self, db_session, make_user):
        parent = await make_user(Role.PARENT)
        service = NotificationService(db_session)

        updated = await service.update_user_preferences(str(parent.id), {"email": False})
        fetched = await service.get_user_preferences(str(parent.id))

        assert updated["email"] is False
        assert fetched["email"] is False
        assert fetched["categories"]["event"]["enabled"] is True


class TestBroker:
    """Test in-process fan-out"""

    def test_publish_reaches_subscribers(self):
        broker = NotificationBroker(queue_size=2)
        queue = broker.subscribe("u1")

        assert broker.publish("u1", {"type": "ping"}) == 1
        assert broker.publish("u2", {"type": "ping"}) == 0
        assert queue.get_nowait() == {"type": "ping"}

        broker.unsubscribe("u1", queue)
        assert broker.connection_count() == 0

    def test_full_queue_drops(self):
        broker = NotificationBroker(queue_size=1)
        broker.subscribe("u1")

        assert broker.publish("u1", {"n": 1}) == 1
        assert broker.publish("u1", {"n": 2}) == 0

    @pytest.mark.asyncio
    async def test_stream_frames(self):
        broker = NotificationBroker()
        stream = broker.stream("u1", heartbeat_seconds=0.05)

        connected = await stream.__anext__()
        assert connected.startswith("event: connected")

        heartbeat = await stream.__anext__()
        assert heartbeat == ": heartbeat\n\n"

        broker.publish("u1", {"type": "new_notifications", "count": 1})
        frame = await asyncio.wait_for(stream.__anext__(), timeout=1)
        assert frame.startswith("event: new_notifications")

        await stream.aclose()
        assert broker.connection_count() == 0


class TestEmailCopies:
    """Notification emails go through the background queue"""

    @pytest.fixture
    def smtp_configured(self, monkeypatch):
        monkeypatch.setattr(email_service, "smtp_host", "smtp.school.test")
        monkeypatch.setattr(email_service, "smtp_user", "mailer")
        monkeypatch.setattr(email_service, "smtp_password", "secret")

        async def fail_direct_send(*args, **kwargs):
            raise AssertionError("notification emails must not be sent inline")

        monkeypatch.setattr(email_service, "send_email", fail_direct_send)

    @pytest.mark.asyncio
    async def test_send_queues_email_with_mapped_priority(self, db_session, make_user, smtp_configured):
        parent = await make_user(Role.PARENT)

        result = await NotificationService(db_session).send_notification(NotificationRequest(
            title="Art show", type=NotificationType.EVENT, recipient_type="specific",
            recipient_ids=[str(parent.id)], template="event_cancelled",
        ))

        jobs = email_queue.jobs()
        assert result["totalSent"] == 1
        assert [j["to"] for j in jobs] == [parent.email]
        assert jobs[0]["priority"] == EmailPriority.HIGH.value
        assert jobs[0]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_email_opt_out_queues_nothing(self, db_session, make_user, smtp_configured):
        parent = await make_user(Role.PARENT)
        service = NotificationService(db_session)
        await service.update_user_preferences(str(parent.id), {"email": False})

        await service.send_notification(NotificationRequest(
            title="Bake sale", message="Friday", recipient_type="specific", recipient_ids=[str(parent.id)],
        ))

        assert email_queue.jobs() == []

    @pytest.mark.asyncio
    async def test_unconfigured_smtp_queues_nothing(self, db_session, make_user):
        parent = await make_user(Role.PARENT)

        await NotificationService(db_session).send_notification(NotificationRequest(
            title="Bake sale", message="Friday", recipient_type="specific", recipient_ids=[str(parent.id)],
        ))

        assert email_queue.stats()["queued"] == 0
