"""
Notification Service - in-app notifications, templates and preferences

Handles:
- Template based notification sending with recipient resolution
- Duplicate suppression (same recipient/title/type/related record within 24h)
- Bulk read/unread/archive/delete operations
- Per-user delivery preferences
- Real-time fan-out to Server-Sent Events subscribers
"""

import asyncio
import copy
import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Set

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.config import settings
from infohub.core.exceptions import NotificationNotFoundError, ValidationError
from infohub.core.logging_config import logger
from infohub.core.rbac import Role
from infohub.models.event import Event, EventRegistration, EventStatus, RegistrationStatus
from infohub.models.notification import (
    Notification,
    NotificationPreference,
    NotificationPriority,
    NotificationType,
)
from infohub.models.user import User
from infohub.services.email_queue import EmailPriority
from infohub.services.email_service import email_service
from infohub.utils.enums import coerce_enum
from infohub.utils.pagination import paginate


@dataclass(frozen=True)
class NotificationTemplate:
    id: str
    name: str
    subject: str
    body: str
    variables: tuple
    default_priority: NotificationPriority
    category: NotificationType

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "subject": self.subject,
            "body": self.body,
            "variables": list(self.variables),
            "defaultPriority": self.default_priority.value,
            "category": self.category.value,
        }


def _template(id, name, subject, body, variables, priority, category) -> NotificationTemplate:
    return NotificationTemplate(id, name, subject, body, tuple(variables), priority, category)


P = NotificationPriority
T = NotificationType

NOTIFICATION_TEMPLATES: Dict[str, NotificationTemplate] = {t.id: t for t in (
    _template("announcement_published", "Announcement published",
              "New announcement: {{title}}",
              "A new announcement has been published: {{title}}. Open it to read the details.",
              ["title", "summary", "author"], P.MEDIUM, T.ANNOUNCEMENT),
    _template("event_created", "Event created",
              "New event: {{title}}",
              "A new event \"{{title}}\" has been scheduled for {{startDate}} at {{location}}.",
              ["title", "description", "startDate", "location"], P.MEDIUM, T.EVENT),
    _template("event_updated", "Event updated",
              "Event updated: {{title}}",
              "Details for \"{{title}}\" have changed. Please check the latest information.",
              ["title", "changes", "startDate"], P.HIGH, T.EVENT),
    _template("event_cancelled", "Event cancelled",
              "Important: event cancelled - {{title}}",
              "We're sorry, \"{{title}}\" has been cancelled. Contact the school office with any questions.",
              ["title", "reason", "contact"], P.URGENT, T.EVENT),
    _template("registration_confirmed", "Registration confirmed",
              "Registration confirmed: {{eventTitle}}",
              "You are registered for \"{{eventTitle}}\" on {{startDate}}.",
              ["eventTitle", "startDate", "location", "participantName"], P.MEDIUM, T.REGISTRATION),
    _template("registration_waitlist", "Added to waiting list",
              "Waiting list: {{eventTitle}}",
              "You are on the waiting list for \"{{eventTitle}}\". We'll let you know as soon as a place opens up.",
              ["eventTitle", "waitlistPosition"], P.MEDIUM, T.REGISTRATION),
    _template("registration_cancelled", "Registration cancelled",
              "Registration cancelled: {{eventTitle}}",
              "Your registration for \"{{eventTitle}}\" has been cancelled.",
              ["eventTitle", "reason"], P.MEDIUM, T.REGISTRATION),
    _template("resource_uploaded", "Resource uploaded",
              "New resource: {{title}}",
              "A new learning resource \"{{title}}\" is available for {{gradeLevel}}.",
              ["title", "description", "gradeLevel", "category"], P.LOW, T.RESOURCE),
    _template("newsletter_published", "Newsletter published",
              "Newsletter issue {{issueNumber}} is out",
              "Newsletter issue {{issueNumber}} \"{{title}}\" has been published.",
              ["title", "issueNumber"], P.LOW, T.NEWSLETTER),
    _template("system_maintenance", "System maintenance",
              "Scheduled maintenance",
              "The site will be under maintenance from {{startTime}} to {{endTime}}. Some services may be unavailable.",
              ["startTime", "endTime", "description"], P.HIGH, T.MAINTENANCE),
    _template("reminder_event", "Event reminder",
              "Reminder: {{title}}",
              "\"{{title}}\" starts {{timeUntil}}. See you there!",
              ["title", "timeUntil", "location"], P.MEDIUM, T.REMINDER),
    _template("reminder_deadline", "Deadline reminder",
              "Deadline reminder: {{title}}",
              "The deadline for \"{{title}}\" is {{deadline}}.",
              ["title", "deadline", "description"], P.HIGH, T.REMINDER),
)}

_CATEGORY_DEFAULT = {"enabled": True, "email": True, "system": True}

DEFAULT_NOTIFICATION_PREFERENCES: Dict[str, Any] = {
    "email": True,
    "system": True,
    "browser": True,
    "doNotDisturb": {"enabled": False, "startTime": "22:00", "endTime": "08:00"},
    "categories": {
        "system": dict(_CATEGORY_DEFAULT),
        "announcement": dict(_CATEGORY_DEFAULT),
        "event": dict(_CATEGORY_DEFAULT),
        "registration": dict(_CATEGORY_DEFAULT),
        "resource": {"enabled": True, "email": False, "system": True},
        "newsletter": {"enabled": True, "email": True, "system": False},
        "maintenance": dict(_CATEGORY_DEFAULT),
        "reminder": dict(_CATEGORY_DEFAULT),
    },
}

_EMAIL_PRIORITY = {
    NotificationPriority.URGENT: EmailPriority.HIGH,
    NotificationPriority.HIGH: EmailPriority.HIGH,
    NotificationPriority.LOW: EmailPriority.LOW,
}

RECIPIENT_TYPES = ("all", "specific", "role_based", "grade_based")
BULK_ACTIONS = ("mark_read", "mark_unread", "archive", "delete")

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def apply_template(template: str, variables: Dict[str, Any]) -> str:
    """Fill {{var}} placeholders from `variables`; missing ones become empty"""
    def repl(match: re.Match) -> str:
        value = variables.get(match.group(1))
        return "" if value is None else str(value)
    return _PLACEHOLDER.sub(repl, template).strip()


def deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def in_do_not_disturb(preferences: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """True if `now` falls inside the user's quiet hours (window may wrap midnight)"""
    dnd = preferences.get("doNotDisturb") or {}
    if not dnd.get("enabled"):
        return False
    current = (now or datetime.now()).strftime("%H:%M")
    start, end = dnd.get("startTime", "22:00"), dnd.get("endTime", "08:00")
    if start <= end:
        return start <= current < end
    return current >= start or current < end


def wants_email(preferences: Dict[str, Any], category: str) -> bool:
    if not preferences.get("email", True) or in_do_not_disturb(preferences):
        return False
    cat = preferences.get("categories", {}).get(category, _CATEGORY_DEFAULT)
    return bool(cat.get("enabled", True) and cat.get("email", True))


def serialize_notification(n: Notification) -> Dict[str, Any]:
    return {
        "id": n.id,
        "recipientId": n.recipient_id,
        "title": n.title,
        "message": n.message,
        "type": n.type.value if n.type else None,
        "priority": n.priority.value if n.priority else None,
        "isRead": n.is_read,
        "readAt": n.read_at.isoformat() if n.read_at else None,
        "relatedId": n.related_id,
        "relatedType": n.related_type,
        "expiresAt": n.expires_at.isoformat() if n.expires_at else None,
        "createdAt": n.created_at.isoformat() if n.created_at else None,
    }


class NotificationBroker:
    """
    In-process pub/sub feeding the SSE stream. Each connected client owns a
    bounded queue; a slow client drops messages rather than blocking senders.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: Dict[str, Set[asyncio.Queue]] = {}

    def subscribe(self, user_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.setdefault(str(user_id), set()).add(queue)
        logger.debug(f"[Notifications] SSE subscriber added for {user_id}")
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(str(user_id))
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[str(user_id)]

    def connection_count(self) -> int:
        return sum(len(q) for q in self._subscribers.values())

    def publish(self, user_id: str, message: Dict[str, Any]) -> int:
        delivered = 0
        for queue in list(self._subscribers.get(str(user_id), ())):
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"[Notifications] SSE queue full for {user_id}, dropping message")
        return delivered

    async def stream(self, user_id: str, heartbeat_seconds: Optional[int] = None) -> AsyncIterator[str]:
        """Yield SSE frames for one client until the consumer stops iterating"""
        heartbeat = heartbeat_seconds or settings.SSE_HEARTBEAT_SECONDS
        queue = self.subscribe(user_id)
        try:
            yield f"event: connected\ndata: {json.dumps({'userId': str(user_id)})}\n\n"
            while True:
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=heartbeat)
                except asyncio.TimeoutError:
                    yield ": heartbeat\n\n"
                    continue
                yield f"event: {message.get('type', 'message')}\ndata: {json.dumps(message, default=str)}\n\n"
        finally:
            self.unsubscribe(user_id, queue)


notification_broker = NotificationBroker()


@dataclass
class NotificationRequest:
    """What to send and to whom"""
    title: str = ""
    message: str = ""
    type: NotificationType = NotificationType.SYSTEM
    priority: Optional[NotificationPriority] = None
    recipient_type: str = "all"
    recipient_ids: List[str] = field(default_factory=list)
    target_roles: List[str] = field(default_factory=list)
    target_grades: List[str] = field(default_factory=list)
    template: Optional[str] = None
    template_data: Dict[str, Any] = field(default_factory=dict)
    related_id: Optional[int] = None
    related_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    link_path: Optional[str] = None


class NotificationService:
    """Service for creating, reading and managing notifications"""

    def __init__(self, db: AsyncSession, broker: NotificationBroker = None):
        self.db = db
        self.broker = broker if broker is not None else notification_broker

    # ==================== SENDING ====================

    async def send_notification(self, data: NotificationRequest) -> Dict[str, Any]:
        if data.recipient_type not in RECIPIENT_TYPES:
            raise ValidationError(f"Unknown recipient type: {data.recipient_type}", field="recipientType")
        data.type = coerce_enum(NotificationType, data.type, "type")
        data.priority = coerce_enum(NotificationPriority, data.priority, "priority")

        recipients = await self._resolve_recipients(data)
        if not recipients:
            return {
                "success": False,
                "totalSent": 0,
                "totalFailed": 0,
                "recipients": {"success": [], "failed": []},
                "errors": ["No recipients found"],
            }

        title, message, priority = data.title, data.message, data.priority
        if data.template:
            template = NOTIFICATION_TEMPLATES.get(data.template)
            if template is None:
                raise ValidationError(f"Unknown notification template: {data.template}", field="template")
            variables = {"title": data.title, "message": data.message, **data.template_data}
            title = apply_template(template.subject, variables)
            message = apply_template(template.body, variables)
            priority = priority or template.default_priority

        if not title or not message:
            raise ValidationError("Notification title and message are required")

        duplicates = await self._find_duplicates(recipients, title, data.type, data.related_id)
        unique = [r for r in recipients if r not in duplicates]

        notifications = [
            Notification(
                recipient_id=recipient_id,
                title=title,
                message=message,
                type=data.type,
                priority=priority or NotificationPriority.MEDIUM,
                related_id=data.related_id,
                related_type=data.related_type,
                expires_at=data.expires_at,
            )
            for recipient_id in unique
        ]
        if notifications:
            self.db.add_all(notifications)
            await self.db.commit()

        self._push_realtime(notifications)
        await self._send_emails(notifications, data.type, data.link_path)

        logger.info(
            f"[Notifications] Sent '{title}' to {len(notifications)} recipients "
            f"({len(duplicates)} suppressed as duplicates)"
        )

        return {
            "success": True,
            "totalSent": len(notifications),
            "totalFailed": len(recipients) - len(notifications),
            "recipients": {"success": unique, "failed": [r for r in recipients if r in duplicates]},
        }

    async def _resolve_recipients(self, data: NotificationRequest) -> List[str]:
        active = select(User.id).where(User.is_active.is_(True))

        if data.recipient_type == "specific":
            ids = [str(i) for i in data.recipient_ids]
            if not ids:
                return []
            result = await self.db.execute(active.where(User.id.in_(ids)))
        elif data.recipient_type == "role_based":
            known = {r.value for r in Role}
            roles = [Role(r) for r in data.target_roles if r in known]
            if not roles:
                return []
            result = await self.db.execute(active.where(User.role.in_(roles)))
        else:
            # Students are not users, so grade-targeted sends reach every active account
            if data.recipient_type == "grade_based" and not data.target_grades:
                return []
            result = await self.db.execute(active)

        return [str(r) for r in result.scalars().all()]

    async def _find_duplicates(
        self,
        recipients: Iterable[str],
        title: str,
        type_: NotificationType,
        related_id: Optional[int],
    ) -> Set[str]:
        since = datetime.utcnow() - timedelta(hours=settings.NOTIFICATION_DEDUP_HOURS)
        conditions = [
            Notification.recipient_id.in_(list(recipients)),
            Notification.title == title,
            Notification.type == type_,
            Notification.created_at >= since,
        ]
        if related_id is None:
            conditions.append(Notification.related_id.is_(None))
        else:
            conditions.append(Notification.related_id == related_id)
        result = await self.db.execute(select(Notification.recipient_id).where(and_(*conditions)))
        return {str(r) for r in result.scalars().all()}

    def _push_realtime(self, notifications: List[Notification]) -> None:
        by_user: Dict[str, List[Dict[str, Any]]] = {}
        for n in notifications:
            by_user.setdefault(str(n.recipient_id), []).append(serialize_notification(n))
        for user_id, items in by_user.items():
            self.broker.publish(user_id, {"type": "new_notifications", "data": items, "count": len(items)})

    async def _send_emails(
        self,
        notifications: List[Notification],
        category: NotificationType,
        link_path: Optional[str],
    ) -> int:
        """Queue email copies for recipients who want them; returns how many were queued"""
        if not notifications or not email_service.is_configured:
            return 0

        recipient_ids = [n.recipient_id for n in notifications]
        users = (await self.db.execute(select(User).where(User.id.in_(recipient_ids)))).scalars().all()
        stored = await self._stored_preferences(recipient_ids)
        by_id = {str(u.id): u for u in users}

        queued = 0
        for n in notifications:
            user = by_id.get(str(n.recipient_id))
            if user is None:
                continue
            preferences = deep_merge(DEFAULT_NOTIFICATION_PREFERENCES, stored.get(str(user.id), {}))
            if wants_email(preferences, category.value):
                email_service.queue_notification_email(
                    user.email, user.full_name, n.title, n.message, link_path,
                    priority=_EMAIL_PRIORITY.get(n.priority, EmailPriority.NORMAL),
                )
                queued += 1
        return queued

    # ==================== READING ====================

    async def list_for_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        type: Optional[str] = None,
        is_read: Optional[bool] = None,
        priority: Optional[str] = None,
    ) -> Dict[str, Any]:
        now = datetime.utcnow()
        conditions = [
            Notification.recipient_id == user_id,
            (Notification.expires_at.is_(None)) | (Notification.expires_at > now),
        ]
        if type:
            conditions.append(Notification.type == coerce_enum(NotificationType, type, "type"))
        if is_read is not None:
            conditions.append(Notification.is_read.is_(is_read))
        if priority:
            conditions.append(Notification.priority == coerce_enum(NotificationPriority, priority, "priority"))

        query = select(Notification).where(*conditions).order_by(Notification.created_at.desc(), Notification.id.desc())
        items, pagination = await paginate(self.db, query, page, limit)

        return {
            "data": [serialize_notification(n) for n in items],
            "pagination": pagination,
            "unreadCount": await self.unread_count(user_id),
        }

    async def unread_count(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    async def get_for_user(self, user_id: str, notification_id: int) -> Notification:
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotificationNotFoundError(notification_id)
        return notification

    async def set_read(self, user_id: str, notification_id: int, is_read: bool = True) -> Notification:
        notification = await self.get_for_user(user_id, notification_id)
        notification.is_read = is_read
        notification.read_at = datetime.utcnow() if is_read else None
        await self.db.commit()
        return notification

    async def delete_for_user(self, user_id: str, notification_id: int) -> None:
        notification = await self.get_for_user(user_id, notification_id)
        await self.db.delete(notification)
        await self.db.commit()

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.recipient_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=datetime.utcnow())
        )
        await self.db.commit()
        return result.rowcount or 0

    async def bulk_operation(self, user_id: str, action: str, notification_ids: List[int]) -> Dict[str, Any]:
        if action not in BULK_ACTIONS:
            raise ValidationError(f"Unknown bulk operation: {action}", field="action")

        owned = and_(Notification.id.in_(notification_ids), Notification.recipient_id == user_id)

        if action == "mark_read":
            stmt = update(Notification).where(owned, Notification.is_read.is_(False)).values(
                is_read=True, read_at=datetime.utcnow()
            )
        elif action == "mark_unread":
            stmt = update(Notification).where(owned, Notification.is_read.is_(True)).values(
                is_read=False, read_at=None
            )
        elif action == "archive":
            # There is no archive flag; archiving marks the notification read
            stmt = update(Notification).where(owned).values(is_read=True, read_at=datetime.utcnow())
        else:
            stmt = delete(Notification).where(owned)

        result = await self.db.execute(stmt.execution_options(synchronize_session=False))
        await self.db.commit()
        return {"success": True, "affectedCount": result.rowcount or 0}

    async def stats(self, user_id: str) -> Dict[str, Any]:
        by_type = await self.db.execute(
            select(Notification.type, func.count(Notification.id))
            .where(Notification.recipient_id == user_id)
            .group_by(Notification.type)
        )
        by_priority = await self.db.execute(
            select(Notification.priority, func.count(Notification.id))
            .where(Notification.recipient_id == user_id, Notification.is_read.is_(False))
            .group_by(Notification.priority)
        )
        total = await self.db.execute(
            select(func.count(Notification.id)).where(Notification.recipient_id == user_id)
        )
        return {
            "total": total.scalar() or 0,
            "unread": await self.unread_count(user_id),
            "byType": {t.value: c for t, c in by_type.all()},
            "unreadByPriority": {p.value: c for p, c in by_priority.all()},
        }

    async def cleanup_expired_notifications(self) -> int:
        result = await self.db.execute(
            delete(Notification).where(Notification.expires_at < datetime.utcnow())
        )
        await self.db.commit()
        count = result.rowcount or 0
        if count:
            logger.info(f"[Notifications] Removed {count} expired notifications")
        return count

    # ==================== PREFERENCES ====================

    async def _stored_preferences(self, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        result = await self.db.execute(
            select(NotificationPreference).where(NotificationPreference.user_id.in_(list(user_ids)))
        )
        return {str(p.user_id): p.preferences or {} for p in result.scalars().all()}

    async def get_user_preferences(self, user_id: str) -> Dict[str, Any]:
        stored = await self._stored_preferences([user_id])
        return deep_merge(DEFAULT_NOTIFICATION_PREFERENCES, stored.get(str(user_id), {}))

    async def update_user_preferences(self, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.db.execute(
            select(NotificationPreference).where(NotificationPreference.user_id == user_id)
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = NotificationPreference(user_id=user_id, preferences={})
            self.db.add(record)

        # Assign a new dict so the JSON column is flagged dirty
        record.preferences = deep_merge(record.preferences or {}, changes)
        await self.db.commit()
        return deep_merge(DEFAULT_NOTIFICATION_PREFERENCES, record.preferences)

    # ==================== DOMAIN HELPERS ====================

    async def notify_announcement_published(self, announcement) -> Dict[str, Any]:
        roles_for_audience = {
            "teachers": [Role.TEACHER.value, Role.OFFICE_MEMBER.value, Role.ADMIN.value],
            "parents": [Role.PARENT.value],
        }
        audience = announcement.target_audience.value
        roles = roles_for_audience.get(audience)
        return await self.send_notification(NotificationRequest(
            title=announcement.title,
            type=NotificationType.ANNOUNCEMENT,
            priority=NotificationPriority(announcement.priority.value),
            recipient_type="role_based" if roles else "all",
            target_roles=roles or [],
            template="announcement_published",
            template_data={"summary": announcement.summary or ""},
            related_id=announcement.id,
            related_type="announcement",
            link_path=f"/announcements/{announcement.id}",
        ))

    async def notify_event(self, event, change: str) -> Dict[str, Any]:
        """change is one of created / updated / cancelled"""
        template = f"event_{change}"
        return await self.send_notification(NotificationRequest(
            title=event.title,
            type=NotificationType.EVENT,
            priority=NotificationPriority.URGENT if change == "cancelled" else None,
            recipient_type="grade_based" if (change == "created" and event.target_grades) else "all",
            target_grades=list(event.target_grades or []),
            template=template,
            template_data={
                "startDate": event.start_date.isoformat() if event.start_date else "",
                "location": event.location or "the school",
            },
            related_id=event.id,
            related_type="event",
            link_path=f"/events/{event.id}",
        ))

    async def notify_registration(self, registration, event, outcome: str) -> Dict[str, Any]:
        """outcome is one of confirmed / waitlist / cancelled"""
        return await self.send_notification(NotificationRequest(
            title=event.title,
            type=NotificationType.REGISTRATION,
            recipient_type="specific",
            recipient_ids=[str(registration.user_id)],
            template=f"registration_{outcome}",
            template_data={
                "eventTitle": event.title,
                "startDate": event.start_date.isoformat() if event.start_date else "",
                "location": event.location or "",
                "participantName": registration.participant_name or "",
            },
            related_id=event.id,
            related_type="event",
            link_path=f"/events/{event.id}",
        ))

    async def notify_waitlist_promotion(self, registration, event) -> Dict[str, Any]:
        return await self.send_notification(NotificationRequest(
            title=f"Waiting List Promotion: {event.title}",
            message=f"A place opened up and your registration for \"{event.title}\" is now confirmed.",
            type=NotificationType.REGISTRATION,
            priority=NotificationPriority.HIGH,
            recipient_type="specific",
            recipient_ids=[str(registration.user_id)],
            related_id=event.id,
            related_type="event",
            link_path=f"/events/{event.id}",
        ))

    async def notify_resource_uploaded(self, resource) -> Dict[str, Any]:
        grade = resource.grade_level.display_name if resource.grade_level else "all grades"
        return await self.send_notification(NotificationRequest(
            title=resource.title,
            type=NotificationType.RESOURCE,
            recipient_type="grade_based" if resource.grade_level else "all",
            target_grades=[grade] if resource.grade_level else [],
            template="resource_uploaded",
            template_data={"gradeLevel": grade},
            related_id=resource.id,
            related_type="resource",
            link_path=f"/resources/{resource.id}",
        ))

    async def notify_newsletter_published(self, communication) -> Dict[str, Any]:
        return await self.send_notification(NotificationRequest(
            title=communication.title,
            type=NotificationType.NEWSLETTER,
            recipient_type="all",
            template="newsletter_published",
            template_data={"issueNumber": communication.issue_number or ""},
            related_id=communication.id,
            related_type="newsletter",
            link_path=f"/newsletters/{communication.id}",
        ))

    async def notify_maintenance(self, start: datetime, end: datetime, description: str = "") -> Dict[str, Any]:
        return await self.send_notification(NotificationRequest(
            type=NotificationType.MAINTENANCE,
            recipient_type="all",
            template="system_maintenance",
            template_data={
                "startTime": start.strftime("%Y-%m-%d %H:%M"),
                "endTime": end.strftime("%Y-%m-%d %H:%M"),
                "description": description,
            },
            expires_at=end,
        ))

    async def create_event_reminders(self, today: Optional[date] = None) -> int:
        """Remind confirmed registrants of published events starting tomorrow"""
        tomorrow = (today or date.today()) + timedelta(days=1)
        events = (await self.db.execute(
            select(Event).where(Event.start_date == tomorrow, Event.status == EventStatus.PUBLISHED)
        )).scalars().all()

        sent = 0
        for event in events:
            user_ids = (await self.db.execute(
                select(EventRegistration.user_id).where(
                    EventRegistration.event_id == event.id,
                    EventRegistration.status == RegistrationStatus.CONFIRMED,
                )
            )).scalars().all()
            if not user_ids:
                continue
            result = await self.send_notification(NotificationRequest(
                title=event.title,
                type=NotificationType.REMINDER,
                recipient_type="specific",
                recipient_ids=[str(u) for u in user_ids],
                template="reminder_event",
                template_data={"timeUntil": "tomorrow", "location": event.location or ""},
                related_id=event.id,
                related_type="event",
                link_path=f"/events/{event.id}",
            ))
            sent += result["totalSent"]

        logger.info(f"[Notifications] Event reminders sent: {sent}")
        return sent
