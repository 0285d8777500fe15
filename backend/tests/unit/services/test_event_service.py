"""
Unit Tests for EventService
Tests for: registration capacity, waiting list promotion, visibility
"""
from datetime import date, datetime, timedelta

import pytest

from infohub.core.exceptions import EventNotFoundError, RegistrationError, ValidationError
from infohub.core.rbac import Role
from infohub.models.event import EventStatus, RegistrationStatus
from infohub.services.event_service import EventService, is_registration_open


async def _event(db_session, creator, **overrides):
    data = {
        "title": "Science fair",
        "start_date": date.today() + timedelta(days=14),
        "location": "Main hall",
        "registration_required": True,
        "max_participants": 1,
        "status": "published",
    }
    data.update(overrides)
    return await EventService(db_session).create(data, creator)


class TestEventRules:

    @pytest.mark.asyncio
    async def test_end_before_start_rejected(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        with pytest.raises(ValidationError):
            await _event(
                db_session, teacher,
                start_date=date(2024, 5, 2), end_date=date(2024, 5, 1),
            )

    @pytest.mark.asyncio
    async def test_draft_hidden_from_parents(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        parent = await make_user(Role.PARENT)
        event = await _event(db_session, teacher, status="draft")
        service = EventService(db_session)

        assert (await service.get(event.id, teacher)).id == event.id
        with pytest.raises(EventNotFoundError):
            await service.get(event.id, parent)

    @pytest.mark.asyncio
    async def test_registration_open_window(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        event = await _event(db_session, teacher, registration_deadline=datetime.utcnow() + timedelta(days=1))

        assert is_registration_open(event)
        assert not is_registration_open(event, now=datetime.utcnow() + timedelta(days=2))


class TestRegistration:
    """Test sign-ups against capacity"""

    @pytest.mark.asyncio
    async def test_full_event_uses_waiting_list(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        first, second = await make_user(), await make_user()
        event = await _event(db_session, teacher)
        service = EventService(db_session)

        r1 = await service.register(event.id, first, {})
        r2 = await service.register(event.id, second, {"participant_name": "Sam"})

        assert r1.status == RegistrationStatus.CONFIRMED
        assert r2.status == RegistrationStatus.WAITING_LIST
        assert r2.participant_name == "Sam"

    @pytest.mark.asyncio
    async def test_duplicate_registration_rejected(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        parent = await make_user()
        event = await _event(db_session, teacher, max_participants=5)
        service = EventService(db_session)

        await service.register(event.id, parent, {})
        with pytest.raises(RegistrationError):
            await service.register(event.id, parent, {})

    @pytest.mark.asyncio
    async def test_unpublished_event_cannot_be_joined(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        parent = await make_user()
        event = await _event(db_session, teacher, status="draft")

        with pytest.raises(EventNotFoundError):
            await EventService(db_session).register(event.id, parent, {})

    @pytest.mark.asyncio
    async def test_cancel_promotes_earliest_waiting(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        first, second, third = await make_user(), await make_user(), await make_user()
        event = await _event(db_session, teacher)
        service = EventService(db_session)

        await service.register(event.id, first, {})
        waiting = await service.register(event.id, second, {})
        await service.register(event.id, third, {})

        result = await service.cancel_registration(event.id, first)

        assert result["cancelled"]["status"] == RegistrationStatus.CANCELLED.value
        assert result["promoted"]["id"] == waiting.id
        assert result["promoted"]["status"] == RegistrationStatus.CONFIRMED.value

        summary = (await service.list_registrations(event.id, teacher))["summary"]
        assert summary == {"confirmed": 1, "waiting_list": 1, "cancelled": 1}

    @pytest.mark.asyncio
    async def test_cancelling_waitlisted_place_promotes_nobody(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        first, second = await make_user(), await make_user()
        event = await _event(db_session, teacher)
        service = EventService(db_session)

        await service.register(event.id, first, {})
        await service.register(event.id, second, {})
        result = await service.cancel_registration(event.id, second)

        assert result["promoted"] is None

    @pytest.mark.asyncio
    async def test_cancelled_user_can_register_again(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        parent = await make_user()
        event = await _event(db_session, teacher)
        service = EventService(db_session)

        await service.register(event.id, parent, {})
        await service.cancel_registration(event.id, parent)
        again = await service.register(event.id, parent, {})

        assert again.status == RegistrationStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_check_in_requires_confirmed(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        first, second = await make_user(), await make_user()
        event = await _event(db_session, teacher)
        service = EventService(db_session)

        confirmed = await service.register(event.id, first, {})
        waiting = await service.register(event.id, second, {})

        checked = await service.check_in(event.id, confirmed.id, teacher)
        assert checked.checked_in is True
        with pytest.raises(RegistrationError):
            await service.check_in(event.id, waiting.id, teacher)


class TestCalendar:

    @pytest.mark.asyncio
    async def test_multi_day_event_spans_days(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        await _event(
            db_session, teacher, registration_required=False, max_participants=None,
            start_date=date(2024, 6, 28), end_date=date(2024, 7, 2),
        )

        june = await EventService(db_session).calendar(2024, 6)
        july = await EventService(db_session).calendar(2024, 7)

        assert sorted(june["days"]) == ["2024-06-28", "2024-06-29", "2024-06-30"]
        assert sorted(july["days"]) == ["2024-07-01", "2024-07-02"]

    @pytest.mark.asyncio
    async def test_invalid_month(self, db_session):
        with pytest.raises(ValidationError):
            await EventService(db_session).calendar(2024, 13)

    @pytest.mark.asyncio
    async def test_event_status_enum(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        event = await _event(db_session, teacher, status="cancelled")
        assert event.status == EventStatus.CANCELLED
