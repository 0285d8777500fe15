"""
Event Service - school calendar and event registration

Registration rules:
- only published events that require registration accept sign-ups
- sign-ups close at the registration deadline
- once confirmed registrations reach max_participants, new sign-ups join the waiting list
- cancelling a confirmed place promotes the earliest waiting-list registration
"""

import calendar as calendar_lib
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.exceptions import EventNotFoundError, RegistrationError, ValidationError
from infohub.core.logging_config import logger
from infohub.core.rbac import has_minimum_role, Role
from infohub.models.announcement import TargetAudience
from infohub.models.event import (
    Event,
    EventRegistration,
    EventStatus,
    EventType,
    RegistrationStatus,
)
from infohub.models.notification import NotificationType
from infohub.models.user import User
from infohub.services.notification_service import NotificationRequest, NotificationService
from infohub.utils.enums import coerce_enum
from infohub.utils.pagination import paginate, paginate_list

EVENT_FIELDS = (
    "title", "description", "event_type", "start_date", "end_date", "start_time", "end_time",
    "location", "max_participants", "registration_required", "registration_deadline",
    "target_grades", "target_audience", "status", "is_featured",
)


def is_manager(user: Optional[User]) -> bool:
    return user is not None and has_minimum_role(user, Role.TEACHER)


def serialize_registration(r: EventRegistration) -> Dict[str, Any]:
    return {
        "id": r.id,
        "eventId": r.event_id,
        "userId": r.user_id,
        "participantName": r.participant_name,
        "participantEmail": r.participant_email,
        "participantPhone": r.participant_phone,
        "grade": r.grade,
        "specialRequests": r.special_requests,
        "status": r.status.value,
        "registeredAt": r.registered_at.isoformat() if r.registered_at else None,
        "checkedIn": r.checked_in,
        "checkedInAt": r.checked_in_at.isoformat() if r.checked_in_at else None,
    }


def serialize_event(e: Event, registration_count: int = 0) -> Dict[str, Any]:
    spots = None
    if e.max_participants:
        spots = max(0, e.max_participants - registration_count)
    return {
        "id": e.id,
        "title": e.title,
        "description": e.description,
        "eventType": e.event_type.value,
        "startDate": e.start_date.isoformat() if e.start_date else None,
        "endDate": e.end_date.isoformat() if e.end_date else None,
        "startTime": e.start_time,
        "endTime": e.end_time,
        "location": e.location,
        "maxParticipants": e.max_participants,
        "registrationRequired": e.registration_required,
        "registrationDeadline": e.registration_deadline.isoformat() if e.registration_deadline else None,
        "targetGrades": e.target_grades or [],
        "targetAudience": e.target_audience.value,
        "status": e.status.value,
        "isFeatured": e.is_featured,
        "createdBy": e.created_by,
        "createdAt": e.created_at.isoformat() if e.created_at else None,
        "registrationCount": registration_count,
        "spotsAvailable": spots,
        "isRegistrationOpen": is_registration_open(e),
    }


def is_registration_open(event: Event, now: Optional[datetime] = None) -> bool:
    if not event.registration_required or event.status != EventStatus.PUBLISHED:
        return False
    now = now or datetime.utcnow()
    return event.registration_deadline is None or event.registration_deadline > now


@dataclass
class EventFilters:
    event_type: Optional[str] = None
    target_grade: Optional[str] = None
    search: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    upcoming: bool = False
    featured: Optional[bool] = None
    status: Optional[str] = None


class EventService:
    """Service for events, the calendar view and registrations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== QUERIES ====================

    async def confirmed_counts(self, event_ids: List[int]) -> Dict[int, int]:
        if not event_ids:
            return {}
        rows = await self.db.execute(
            select(EventRegistration.event_id, func.count(EventRegistration.id))
            .where(
                EventRegistration.event_id.in_(event_ids),
                EventRegistration.status == RegistrationStatus.CONFIRMED,
            )
            .group_by(EventRegistration.event_id)
        )
        return dict(rows.all())

    async def _serialize_many(self, events: List[Event]) -> List[Dict[str, Any]]:
        counts = await self.confirmed_counts([e.id for e in events])
        return [serialize_event(e, counts.get(e.id, 0)) for e in events]

    async def list_events(
        self,
        filters: EventFilters,
        user: Optional[User] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        query = select(Event)

        if is_manager(user) and filters.status:
            query = query.where(Event.status == coerce_enum(EventStatus, filters.status, "status"))
        elif not is_manager(user):
            query = query.where(Event.status == EventStatus.PUBLISHED)

        if filters.event_type:
            query = query.where(Event.event_type == coerce_enum(EventType, filters.event_type, "eventType"))
        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            query = query.where(or_(
                func.lower(Event.title).like(pattern),
                func.lower(Event.description).like(pattern),
                func.lower(Event.location).like(pattern),
            ))
        if filters.start_date:
            query = query.where(Event.start_date >= filters.start_date)
        if filters.end_date:
            query = query.where(Event.start_date <= filters.end_date)
        if filters.upcoming:
            query = query.where(Event.start_date >= date.today())
        if filters.featured is not None:
            query = query.where(Event.is_featured.is_(filters.featured))

        query = query.order_by(Event.start_date.asc(), Event.start_time.asc(), Event.id.asc())

        if filters.target_grade:
            # target_grades is a JSON list; filter in Python to stay portable
            result = await self.db.execute(query)
            matching = [
                e for e in result.scalars().all()
                if not e.target_grades or filters.target_grade in e.target_grades
            ]
            events, pagination = paginate_list(matching, page, limit)
        else:
            events, pagination = await paginate(self.db, query, page, limit)

        return {"data": await self._serialize_many(events), "pagination": pagination}

    async def calendar(self, year: int, month: int, user: Optional[User] = None) -> Dict[str, Any]:
        if not 1 <= month <= 12:
            raise ValidationError("Month must be between 1 and 12", field="month")

        first = date(year, month, 1)
        last = date(year, month, calendar_lib.monthrange(year, month)[1])

        query = select(Event).where(
            Event.start_date <= last,
            or_(
                Event.end_date >= first,
                (Event.end_date.is_(None)) & (Event.start_date >= first),
            ),
        ).order_by(Event.start_date, Event.start_time)
        if not is_manager(user):
            query = query.where(Event.status == EventStatus.PUBLISHED)

        events = list((await self.db.execute(query)).scalars().all())
        serialized = {e["id"]: e for e in await self._serialize_many(events)}

        days: Dict[str, List[Dict[str, Any]]] = {}
        for event in events:
            day = max(event.start_date, first)
            end = min(event.end_date or event.start_date, last)
            while day <= end:
                days.setdefault(day.isoformat(), []).append(serialized[event.id])
                day += timedelta(days=1)

        return {"year": year, "month": month, "days": days, "totalEvents": len(events)}

    async def get(self, event_id: int, user: Optional[User] = None) -> Event:
        event = (await self.db.execute(select(Event).where(Event.id == event_id))).scalar_one_or_none()
        if event is None or (event.status != EventStatus.PUBLISHED and not is_manager(user)):
            raise EventNotFoundError(event_id)
        return event

    async def get_serialized(self, event_id: int, user: Optional[User] = None) -> Dict[str, Any]:
        event = await self.get(event_id, user)
        counts = await self.confirmed_counts([event.id])
        return serialize_event(event, counts.get(event.id, 0))

    # ==================== MANAGEMENT ====================

    def _apply(self, event: Event, data: Dict[str, Any]) -> None:
        for key in EVENT_FIELDS:
            if key not in data:
                continue
            value = data[key]
            if key == "event_type":
                value = coerce_enum(EventType, value, "eventType")
            elif key == "status":
                value = coerce_enum(EventStatus, value, "status")
            elif key == "target_audience":
                value = coerce_enum(TargetAudience, value, "targetAudience")
            elif key == "target_grades":
                value = list(value or [])
            setattr(event, key, value)

        if not event.title or not event.title.strip():
            raise ValidationError("Title is required", field="title")
        if event.start_date is None:
            raise ValidationError("Start date is required", field="startDate")
        if event.end_date and event.end_date < event.start_date:
            raise ValidationError("End date cannot be before start date", field="endDate")
        if event.max_participants is not None and event.max_participants < 1:
            raise ValidationError("Max participants must be positive", field="maxParticipants")

    async def create(self, data: Dict[str, Any], creator: User) -> Event:
        event = Event(
            created_by=creator.id,
            event_type=EventType.OTHER,
            status=EventStatus.DRAFT,
            target_audience=TargetAudience.ALL,
            target_grades=[],
            registration_required=False,
            is_featured=False,
        )
        self._apply(event, data)
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)

        logger.log_content_change("Events", "created", event.id, creator.email, title=event.title)
        if event.status == EventStatus.PUBLISHED:
            await NotificationService(self.db).notify_event(event, "created")
        return event

    async def update(self, event_id: int, data: Dict[str, Any], user: User) -> Event:
        event = await self.get(event_id, user)
        previous_status = event.status
        self._apply(event, data)
        await self.db.commit()
        await self.db.refresh(event)

        notifications = NotificationService(self.db)
        if event.status == EventStatus.CANCELLED and previous_status != EventStatus.CANCELLED:
            await notifications.notify_event(event, "cancelled")
        elif event.status == EventStatus.PUBLISHED and previous_status != EventStatus.PUBLISHED:
            await notifications.notify_event(event, "created")
        elif event.status == EventStatus.PUBLISHED:
            await notifications.notify_event(event, "updated")

        return event

    async def delete(self, event_id: int, user: User) -> None:
        event = await self.get(event_id, user)
        await self.db.delete(event)
        await self.db.commit()
        logger.log_content_change("Events", "deleted", event_id)

    async def send_custom_notification(
        self,
        event_id: int,
        user: User,
        title: str,
        message: str,
        registrants_only: bool = True,
    ) -> Dict[str, Any]:
        """Managers message an event's registrants (or everyone) directly"""
        event = await self.get(event_id, user)
        request = NotificationRequest(
            title=title,
            message=message,
            type=NotificationType.EVENT,
            related_id=event.id,
            related_type="event",
            link_path=f"/events/{event.id}",
        )
        if registrants_only:
            user_ids = (await self.db.execute(
                select(EventRegistration.user_id).where(
                    EventRegistration.event_id == event.id,
                    EventRegistration.status != RegistrationStatus.CANCELLED,
                )
            )).scalars().all()
            request.recipient_type = "specific"
            request.recipient_ids = [str(u) for u in user_ids]

        return await NotificationService(self.db).send_notification(request)

    # ==================== REGISTRATION ====================

    async def _registration_for(self, event_id: int, user_id: str) -> Optional[EventRegistration]:
        result = await self.db.execute(
            select(EventRegistration).where(
                EventRegistration.event_id == event_id,
                EventRegistration.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def registration_status(self, event_id: int, user: User) -> Dict[str, Any]:
        event = await self.get(event_id)
        if not event.registration_required:
            raise RegistrationError("This event does not require registration")

        registration = await self._registration_for(event.id, user.id)
        count = (await self.confirmed_counts([event.id])).get(event.id, 0)
        is_open = is_registration_open(event)
        has_space = not event.max_participants or count < event.max_participants
        active = registration is not None and registration.status != RegistrationStatus.CANCELLED

        return {
            "event": serialize_event(event, count),
            "registration": serialize_registration(registration) if registration else None,
            "canRegister": not active and is_open and has_space,
            "canCancelRegistration": active and is_open,
        }

    async def register(self, event_id: int, user: User, data: Dict[str, Any]) -> EventRegistration:
        event = await self.get(event_id)
        if not event.registration_required:
            raise RegistrationError("This event does not require registration")
        if event.registration_deadline and event.registration_deadline <= datetime.utcnow():
            raise RegistrationError("Registration deadline has passed")

        existing = await self._registration_for(event.id, user.id)
        if existing is not None and existing.status != RegistrationStatus.CANCELLED:
            raise RegistrationError("You have already registered for this event")

        count = (await self.confirmed_counts([event.id])).get(event.id, 0)
        status = RegistrationStatus.CONFIRMED
        if event.max_participants and count >= event.max_participants:
            status = RegistrationStatus.WAITING_LIST

        registration = existing or EventRegistration(event_id=event.id, user_id=user.id)
        registration.participant_name = data.get("participant_name") or user.full_name
        registration.participant_email = data.get("participant_email") or user.email
        registration.participant_phone = data.get("participant_phone")
        registration.grade = data.get("grade")
        registration.special_requests = data.get("special_requests")
        registration.status = status
        registration.registered_at = datetime.utcnow()
        registration.checked_in = False
        registration.checked_in_at = None
        if existing is None:
            self.db.add(registration)

        await self.db.commit()
        await self.db.refresh(registration)

        logger.info(f"[Events] {user.email} registered for event {event.id}: {status.value}")
        outcome = "confirmed" if status == RegistrationStatus.CONFIRMED else "waitlist"
        await NotificationService(self.db).notify_registration(registration, event, outcome)
        return registration

    async def cancel_registration(self, event_id: int, user: User) -> Dict[str, Any]:
        event = await self.get(event_id)
        registration = await self._registration_for(event.id, user.id)
        if registration is None or registration.status == RegistrationStatus.CANCELLED:
            raise RegistrationError("No active registration found for this event")
        if event.registration_deadline and event.registration_deadline <= datetime.utcnow():
            raise RegistrationError("Registration can no longer be cancelled")

        was_confirmed = registration.status == RegistrationStatus.CONFIRMED
        registration.status = RegistrationStatus.CANCELLED

        promoted = None
        if was_confirmed:
            promoted = (await self.db.execute(
                select(EventRegistration)
                .where(
                    EventRegistration.event_id == event.id,
                    EventRegistration.status == RegistrationStatus.WAITING_LIST,
                )
                .order_by(EventRegistration.registered_at.asc(), EventRegistration.id.asc())
                .limit(1)
            )).scalar_one_or_none()
            if promoted is not None:
                promoted.status = RegistrationStatus.CONFIRMED

        await self.db.commit()

        notifications = NotificationService(self.db)
        await notifications.notify_registration(registration, event, "cancelled")
        if promoted is not None:
            logger.info(f"[Events] Promoted registration {promoted.id} from waiting list for event {event.id}")
            await notifications.notify_waitlist_promotion(promoted, event)

        return {
            "cancelled": serialize_registration(registration),
            "promoted": serialize_registration(promoted) if promoted else None,
        }

    async def list_registrations(
        self,
        event_id: int,
        user: User,
        status: Optional[str] = None,
    ) -> Dict[str, Any]:
        event = await self.get(event_id, user)
        query = select(EventRegistration).where(EventRegistration.event_id == event.id)
        if status:
            query = query.where(EventRegistration.status == coerce_enum(RegistrationStatus, status, "status"))
        query = query.order_by(EventRegistration.registered_at.asc(), EventRegistration.id.asc())

        registrations = list((await self.db.execute(query)).scalars().all())
        summary = {s.value: 0 for s in RegistrationStatus}
        for r in registrations:
            summary[r.status.value] += 1

        return {
            "event": {"id": event.id, "title": event.title, "maxParticipants": event.max_participants},
            "registrations": [serialize_registration(r) for r in registrations],
            "summary": summary,
        }

    async def check_in(self, event_id: int, registration_id: int, user: User, checked_in: bool = True) -> EventRegistration:
        event = await self.get(event_id, user)
        registration = (await self.db.execute(
            select(EventRegistration).where(
                EventRegistration.id == registration_id,
                EventRegistration.event_id == event.id,
            )
        )).scalar_one_or_none()
        if registration is None:
            raise RegistrationError("Registration not found for this event")
        if registration.status != RegistrationStatus.CONFIRMED:
            raise RegistrationError("Only confirmed registrations can be checked in")

        registration.checked_in = checked_in
        registration.checked_in_at = datetime.utcnow() if checked_in else None
        await self.db.commit()
        return registration
