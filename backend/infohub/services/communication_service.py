"""
Communication Service - message boards, reminders and newsletters

A single communications table backs announcements, message-board posts,
teacher reminders and newsletters. Visibility depends on the reader's role.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from infohub.core.exceptions import AuthorizationError, CommunicationNotFoundError, ValidationError
from infohub.core.logging_config import logger
from infohub.core.rbac import Role
from infohub.models.announcement import Priority
from infohub.models.communication import (
    BoardType,
    Communication,
    CommunicationAudience,
    CommunicationReply,
    CommunicationStatus,
    CommunicationType,
)
from infohub.models.user import User
from infohub.services.html_sanitizer import extract_text_content, sanitize_announcement_content
from infohub.services.notification_service import NotificationService
from infohub.utils.enums import coerce_enum
from infohub.utils.pagination import paginate

SORT_FIELDS = {
    "createdAt": Communication.created_at,
    "updatedAt": Communication.updated_at,
    "publishedAt": Communication.published_at,
    "viewCount": Communication.view_count,
    "replyCount": Communication.reply_count,
}

BULK_ACTIONS = ("publish", "archive", "pin", "unpin", "delete")
MAX_REPLY_LENGTH = 5000
PUBLIC_EXCERPT_LENGTH = 200

_PRIORITY_RANK = case(
    (Communication.priority == Priority.HIGH, 2),
    (Communication.priority == Priority.MEDIUM, 1),
    else_=0,
)

ENUM_FIELDS = {
    "type": (CommunicationType, "type"),
    "target_audience": (CommunicationAudience, "targetAudience"),
    "board_type": (BoardType, "boardType"),
    "status": (CommunicationStatus, "status"),
    "priority": (Priority, "priority"),
}
PLAIN_FIELDS = (
    "summary", "source_group", "is_important", "is_pinned", "is_featured",
    "expires_at", "due_date", "issue_number",
)


def _role(user_or_role) -> Optional[Role]:
    if user_or_role is None:
        return None
    return Role(getattr(user_or_role, "role", user_or_role))


def is_visible_to_role(communication: Communication, user_or_role) -> bool:
    """Whether a reader with this role may see the communication"""
    role = _role(user_or_role)
    published = communication.status == CommunicationStatus.PUBLISHED
    audience = communication.target_audience

    if role == Role.ADMIN:
        return True
    if role == Role.OFFICE_MEMBER:
        return communication.status != CommunicationStatus.DRAFT
    if role in (Role.TEACHER, Role.VIEWER):
        return published and audience in (CommunicationAudience.ALL, CommunicationAudience.TEACHERS)
    if role == Role.PARENT:
        return published and audience in (CommunicationAudience.ALL, CommunicationAudience.PARENTS)
    # Anonymous visitors only see public content
    return published and audience in (CommunicationAudience.ALL, CommunicationAudience.PARENTS)


def _visibility_clause(user: Optional[User]):
    role = _role(user)
    published = Communication.status == CommunicationStatus.PUBLISHED
    if role == Role.ADMIN:
        return None
    if role == Role.OFFICE_MEMBER:
        return Communication.status != CommunicationStatus.DRAFT
    if role in (Role.TEACHER, Role.VIEWER):
        audiences = [CommunicationAudience.ALL, CommunicationAudience.TEACHERS]
    else:
        audiences = [CommunicationAudience.ALL, CommunicationAudience.PARENTS]
    return published & Communication.target_audience.in_(audiences)


def newsletter_period(month: Optional[str] = None, year: Optional[str] = None) -> tuple:
    """[start, end) for a YYYY-MM month or a YYYY year; (None, None) when neither is given"""
    if month:
        if not re.fullmatch(r"\d{4}-\d{2}", month) or not 1 <= int(month[5:]) <= 12:
            raise ValidationError("month must be formatted YYYY-MM", field="month")
        y, m = int(month[:4]), int(month[5:])
        start = datetime(y, m, 1)
        end = datetime(y + 1, 1, 1) if m == 12 else datetime(y, m + 1, 1)
        return start, end
    if year:
        if not re.fullmatch(r"\d{4}", year):
            raise ValidationError("year must be formatted YYYY", field="year")
        return datetime(int(year), 1, 1), datetime(int(year) + 1, 1, 1)
    return None, None


def serialize_reply(r: CommunicationReply) -> Dict[str, Any]:
    return {
        "id": r.id,
        "communicationId": r.communication_id,
        "parentReplyId": r.parent_reply_id,
        "content": r.content,
        "author": {"id": r.author.id, "name": r.author.full_name} if r.author else None,
        "createdAt": r.created_at.isoformat() if r.created_at else None,
    }


def serialize_communication(c: Communication, include_replies: bool = False) -> Dict[str, Any]:
    data = {
        "id": c.id,
        "title": c.title,
        "content": c.content,
        "summary": c.summary,
        "type": c.type.value,
        "sourceGroup": c.source_group,
        "targetAudience": c.target_audience.value,
        "boardType": c.board_type.value,
        "status": c.status.value,
        "priority": c.priority.value,
        "isImportant": c.is_important,
        "isPinned": c.is_pinned,
        "isFeatured": c.is_featured,
        "publishedAt": c.published_at.isoformat() if c.published_at else None,
        "expiresAt": c.expires_at.isoformat() if c.expires_at else None,
        "dueDate": c.due_date.isoformat() if c.due_date else None,
        "issueNumber": c.issue_number,
        "viewCount": c.view_count,
        "replyCount": c.reply_count,
        "author": {"id": c.author.id, "name": c.author.full_name} if c.author else None,
        "createdAt": c.created_at.isoformat() if c.created_at else None,
        "updatedAt": c.updated_at.isoformat() if c.updated_at else None,
    }
    if include_replies:
        data["replies"] = [serialize_reply(r) for r in c.replies]
    return data


def serialize_public_message(c: Communication) -> Dict[str, Any]:
    """Trimmed card for the public ticker: summary or a plain-text excerpt, never full HTML"""
    excerpt = c.summary
    if not excerpt:
        text = extract_text_content(c.content)
        excerpt = text if len(text) <= PUBLIC_EXCERPT_LENGTH else text[:PUBLIC_EXCERPT_LENGTH] + "..."
    stamp = c.published_at or c.created_at
    return {
        "id": c.id,
        "title": c.title,
        "content": excerpt,
        "type": c.type.value,
        "priority": c.priority.value,
        "isImportant": bool(c.is_important or c.priority == Priority.HIGH),
        "isPinned": c.is_pinned,
        "date": stamp.isoformat() if stamp else None,
        "author": c.author.full_name if c.author else None,
        "targetAudience": c.target_audience.value,
    }


@dataclass
class CommunicationFilters:
    type: Optional[str] = None
    source_group: Optional[str] = None
    target_audience: Optional[str] = None
    board_type: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    is_pinned: Optional[bool] = None
    is_important: Optional[bool] = None
    is_featured: Optional[bool] = None
    search: Optional[str] = None
    author_id: Optional[str] = None


class CommunicationService:
    """Service for the unified communications board"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _conditions(self, filters: CommunicationFilters, user: Optional[User]) -> List[Any]:
        conditions = []
        visibility = _visibility_clause(user)
        if visibility is not None:
            conditions.append(visibility)

        for attr, (enum_cls, field) in ENUM_FIELDS.items():
            value = getattr(filters, attr, None)
            if value:
                conditions.append(getattr(Communication, attr) == coerce_enum(enum_cls, value, field))

        if filters.source_group:
            conditions.append(Communication.source_group == filters.source_group)
        if filters.author_id:
            conditions.append(Communication.author_id == filters.author_id)
        for flag in ("is_pinned", "is_important", "is_featured"):
            value = getattr(filters, flag)
            if value is not None:
                conditions.append(getattr(Communication, flag).is_(value))
        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            conditions.append(or_(
                func.lower(Communication.title).like(pattern),
                func.lower(Communication.content).like(pattern),
                func.lower(Communication.summary).like(pattern),
            ))
        return conditions

    async def list(
        self,
        filters: CommunicationFilters,
        user: Optional[User] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        include_stats: bool = True,
    ) -> Dict[str, Any]:
        if sort_by not in SORT_FIELDS:
            raise ValidationError(
                f"Invalid sortBy: {sort_by}. Allowed: {', '.join(SORT_FIELDS)}", field="sortBy"
            )
        if sort_order not in ("asc", "desc"):
            raise ValidationError("sortOrder must be 'asc' or 'desc'", field="sortOrder")

        conditions = self._conditions(filters, user)
        column = SORT_FIELDS[sort_by]
        order = column.asc() if sort_order == "asc" else column.desc()

        query = (
            select(Communication)
            .where(*conditions)
            .order_by(Communication.is_pinned.desc(), order, Communication.id.desc())
        )
        items, pagination = await paginate(self.db, query, page, limit)

        result = {
            "data": [serialize_communication(c) for c in items],
            "pagination": pagination,
        }
        if include_stats:
            result["stats"] = await self.stats(conditions)
        return result

    async def stats(self, conditions: Optional[List[Any]] = None) -> Dict[str, Any]:
        conditions = conditions or []

        async def grouped(column) -> Dict[str, int]:
            rows = await self.db.execute(
                select(column, func.count(Communication.id)).where(*conditions).group_by(column)
            )
            return {key.value: count for key, count in rows.all()}

        async def flagged(column) -> int:
            return (await self.db.execute(
                select(func.count(Communication.id)).where(*conditions, column.is_(True))
            )).scalar() or 0

        by_type = await grouped(Communication.type)
        return {
            "total": sum(by_type.values()),
            "byType": by_type,
            "byStatus": await grouped(Communication.status),
            "byPriority": await grouped(Communication.priority),
            "pinned": await flagged(Communication.is_pinned),
            "important": await flagged(Communication.is_important),
            "featured": await flagged(Communication.is_featured),
        }

    async def _load(self, communication_id: int, with_replies: bool = False) -> Communication:
        query = select(Communication).where(Communication.id == communication_id)
        if with_replies:
            query = query.options(selectinload(Communication.replies))
        communication = (await self.db.execute(query)).unique().scalar_one_or_none()
        if communication is None:
            raise CommunicationNotFoundError(communication_id)
        return communication

    async def get(self, communication_id: int, user: Optional[User] = None, count_view: bool = True) -> Dict[str, Any]:
        communication = await self._load(communication_id, with_replies=True)
        if not is_visible_to_role(communication, user):
            # Hidden items look missing to the reader
            raise CommunicationNotFoundError(communication_id)

        if count_view:
            communication.view_count = (communication.view_count or 0) + 1
            await self.db.commit()

        return serialize_communication(communication, include_replies=True)

    def _apply(self, communication: Communication, data: Dict[str, Any]) -> None:
        if "title" in data:
            title = (data["title"] or "").strip()
            if not title:
                raise ValidationError("Title cannot be empty", field="title")
            communication.title = title
        if "content" in data:
            if not (data["content"] or "").strip():
                raise ValidationError("Content cannot be empty", field="content")
            communication.content = sanitize_announcement_content(data["content"])
            if not data.get("summary") and not communication.summary:
                communication.summary = extract_text_content(communication.content)[:200]
        for attr, (enum_cls, field) in ENUM_FIELDS.items():
            if attr in data and data[attr] is not None:
                setattr(communication, attr, coerce_enum(enum_cls, data[attr], field))
        for attr in PLAIN_FIELDS:
            if attr in data:
                setattr(communication, attr, data[attr])

        if communication.status == CommunicationStatus.PUBLISHED and communication.published_at is None:
            communication.published_at = datetime.utcnow()

    async def create(self, data: Dict[str, Any], author: User) -> Communication:
        if not (data.get("title") or "").strip() or not (data.get("content") or "").strip():
            raise ValidationError("Title and content are required")
        if not data.get("type"):
            raise ValidationError("Communication type is required", field="type")

        communication = Communication(
            author_id=author.id,
            target_audience=CommunicationAudience.ALL,
            board_type=BoardType.GENERAL,
            status=CommunicationStatus.DRAFT,
            priority=Priority.MEDIUM,
            is_important=False,
            is_pinned=False,
            is_featured=False,
            view_count=0,
            reply_count=0,
        )
        self._apply(communication, data)
        if communication.type == CommunicationType.REMINDER and communication.due_date is None:
            raise ValidationError("Reminders need a due date", field="dueDate")

        self.db.add(communication)
        await self.db.commit()
        await self.db.refresh(communication)
        logger.log_content_change("Communications", "created", communication.id, author.email, kind=communication.type.value)

        await self._notify_if_newsletter_published(communication, was_published=False)
        return communication

    def _check_can_edit(self, communication: Communication, user: User) -> None:
        if user.role in (Role.ADMIN, Role.OFFICE_MEMBER):
            return
        if str(communication.author_id) != str(user.id):
            raise AuthorizationError("You can only edit your own posts")

    async def update(self, communication_id: int, data: Dict[str, Any], user: User) -> Communication:
        communication = await self._load(communication_id)
        self._check_can_edit(communication, user)
        was_published = communication.status == CommunicationStatus.PUBLISHED

        self._apply(communication, data)
        await self.db.commit()
        await self.db.refresh(communication)

        await self._notify_if_newsletter_published(communication, was_published)
        return communication

    async def delete(self, communication_id: int, user: User) -> None:
        communication = await self._load(communication_id)
        self._check_can_edit(communication, user)
        await self.db.delete(communication)
        await self.db.commit()
        logger.log_content_change("Communications", "deleted", communication_id)

    async def bulk(self, action: str, ids: List[int]) -> Dict[str, Any]:
        if action not in BULK_ACTIONS:
            raise ValidationError(f"Unknown bulk action: {action}", field="action")
        if not ids:
            raise ValidationError("No communication ids given", field="ids")

        rows = await self.db.execute(select(Communication).where(Communication.id.in_(ids)))
        communications = list(rows.scalars().unique().all())
        newly_published = []

        for c in communications:
            if action == "delete":
                await self.db.delete(c)
            elif action == "archive":
                c.status = CommunicationStatus.ARCHIVED
            elif action == "pin":
                c.is_pinned = True
            elif action == "unpin":
                c.is_pinned = False
            else:
                if c.status != CommunicationStatus.PUBLISHED:
                    newly_published.append(c)
                c.status = CommunicationStatus.PUBLISHED
                c.published_at = c.published_at or datetime.utcnow()

        await self.db.commit()
        for c in newly_published:
            await self._notify_if_newsletter_published(c, was_published=False)

        logger.info(f"[Communications] Bulk {action}: {len(communications)} of {len(ids)}")
        return {"action": action, "affectedCount": len(communications)}

    async def add_reply(
        self,
        communication_id: int,
        content: str,
        author: User,
        parent_reply_id: Optional[int] = None,
    ) -> CommunicationReply:
        communication = await self._load(communication_id)
        if not is_visible_to_role(communication, author):
            raise CommunicationNotFoundError(communication_id)
        if communication.status == CommunicationStatus.CLOSED:
            raise ValidationError("This discussion is closed to new replies")

        content = (content or "").strip()
        if not content:
            raise ValidationError("Reply content is required", field="content")
        if len(content) > MAX_REPLY_LENGTH:
            raise ValidationError(f"Reply is too long (max {MAX_REPLY_LENGTH} characters)", field="content")

        if parent_reply_id is not None:
            parent = await self.db.get(CommunicationReply, parent_reply_id)
            if parent is None or parent.communication_id != communication.id:
                raise ValidationError("Parent reply does not belong to this communication", field="parentReplyId")

        reply = CommunicationReply(
            communication_id=communication.id,
            author_id=author.id,
            content=sanitize_announcement_content(content),
            parent_reply_id=parent_reply_id,
        )
        self.db.add(reply)
        communication.reply_count = (communication.reply_count or 0) + 1
        await self.db.commit()
        await self.db.refresh(reply)
        return reply

    async def list_replies(self, communication_id: int, user: Optional[User] = None) -> List[Dict[str, Any]]:
        communication = await self._load(communication_id, with_replies=True)
        if not is_visible_to_role(communication, user):
            raise CommunicationNotFoundError(communication_id)
        return [serialize_reply(r) for r in communication.replies]

    # ==================== NEWSLETTERS ====================

    async def newsletters(self, month: Optional[str] = None, year: Optional[str] = None,
                          limit: int = 10) -> List[Dict[str, Any]]:
        """Published newsletters, newest first, optionally for one month (YYYY-MM) or year"""
        query = select(Communication).where(
            Communication.type == CommunicationType.NEWSLETTER,
            Communication.status == CommunicationStatus.PUBLISHED,
        )
        start, end = newsletter_period(month, year)
        if start is not None:
            query = query.where(Communication.published_at >= start, Communication.published_at < end)

        query = query.order_by(Communication.published_at.desc(), Communication.id.desc()).limit(limit)
        rows = await self.db.execute(query)
        return [serialize_communication(c) for c in rows.scalars().unique().all()]

    async def newsletter_archive(self, limit: int = 12) -> Dict[str, Any]:
        """Published newsletters grouped by month for archive navigation"""
        rows = await self.db.execute(
            select(Communication)
            .where(
                Communication.type == CommunicationType.NEWSLETTER,
                Communication.status == CommunicationStatus.PUBLISHED,
            )
            .order_by(Communication.published_at.desc(), Communication.created_at.desc())
        )
        newsletters = rows.scalars().unique().all()

        months: Dict[str, Dict[str, Any]] = {}
        for n in newsletters:
            stamp = n.published_at or n.created_at
            key = f"{stamp.year}-{stamp.month:02d}"
            bucket = months.setdefault(key, {"month": key, "year": stamp.year, "count": 0, "newsletters": []})
            bucket["count"] += 1
            bucket["newsletters"].append({
                "id": n.id,
                "title": n.title,
                "issueNumber": n.issue_number,
                "publishedAt": stamp.isoformat(),
            })

        archive = list(months.values())[:limit]
        return {
            "archive": archive,
            "availableYears": sorted({m["year"] for m in months.values()}, reverse=True),
            "availableMonths": list(months.keys()),
            "totalNewsletters": len(newsletters),
        }

    # ==================== PUBLIC MESSAGES ====================

    async def public_messages(
        self,
        audience: str = CommunicationAudience.ALL.value,
        priority: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 5,
    ) -> Dict[str, Any]:
        """
        Live announcements for the homepage ticker.

        A specific audience also sees messages addressed to everyone; pinned
        messages come first, then higher priority, then the newest.
        """
        now = datetime.utcnow()
        conditions = [
            Communication.type == CommunicationType.ANNOUNCEMENT,
            Communication.status == CommunicationStatus.PUBLISHED,
            or_(Communication.expires_at.is_(None), Communication.expires_at >= now),
        ]
        target = coerce_enum(CommunicationAudience, audience, "audience")
        if target != CommunicationAudience.ALL:
            conditions.append(Communication.target_audience.in_([target, CommunicationAudience.ALL]))
        if priority:
            conditions.append(Communication.priority == coerce_enum(Priority, priority, "priority"))
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(or_(
                func.lower(Communication.title).like(pattern),
                func.lower(Communication.content).like(pattern),
            ))

        query = select(Communication).where(*conditions).order_by(
            Communication.is_pinned.desc(),
            _PRIORITY_RANK.desc(),
            Communication.published_at.desc(),
            Communication.id.desc(),
        )
        items, pagination = await paginate(self.db, query, page, limit)
        return {
            "data": [serialize_public_message(c) for c in items],
            "total": pagination["totalCount"],
            "pagination": pagination,
        }

    # ==================== TEACHERS BOARD ====================

    async def teacher_board(self, type: Optional[str] = None, board_type: str = BoardType.TEACHERS.value,
                            limit: int = 20) -> Dict[str, Any]:
        """Published posts on a board (plus general posts), split into pinned and regular"""
        board = coerce_enum(BoardType, board_type, "boardType")
        query = select(Communication).where(
            Communication.status == CommunicationStatus.PUBLISHED,
            Communication.board_type.in_({board, BoardType.GENERAL}),
            Communication.target_audience.in_([CommunicationAudience.ALL, CommunicationAudience.TEACHERS]),
        )
        if type:
            query = query.where(Communication.type == coerce_enum(CommunicationType, type, "type"))

        if type == CommunicationType.REMINDER.value:
            order = (Communication.is_pinned.desc(), Communication.due_date.asc(), Communication.id.desc())
        else:
            order = (Communication.is_pinned.desc(), Communication.created_at.desc(), Communication.id.desc())
        rows = await self.db.execute(query.order_by(*order).limit(limit))
        items = [serialize_communication(c) for c in rows.scalars().unique().all()]

        pinned = [c for c in items if c["isPinned"]]
        return {
            "pinned": pinned,
            "regular": [c for c in items if not c["isPinned"]],
            "total": len(items),
            "totalPinned": len(pinned),
        }

    async def _notify_if_newsletter_published(self, communication: Communication, was_published: bool) -> None:
        if (
            communication.type == CommunicationType.NEWSLETTER
            and communication.status == CommunicationStatus.PUBLISHED
            and not was_published
        ):
            await NotificationService(self.db).notify_newsletter_published(communication)
