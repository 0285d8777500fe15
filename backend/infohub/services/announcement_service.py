"""
Announcement Service - school announcements with smart ordering

Listing ranks announcements by a score combining priority, freshness and
how soon the announcement expires, so urgent notices stay near the top.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.exceptions import AnnouncementNotFoundError, AuthorizationError, ValidationError
from infohub.core.logging_config import logger
from infohub.core.rbac import Role
from infohub.models.announcement import Announcement, AnnouncementStatus, Priority, TargetAudience
from infohub.models.user import User
from infohub.services.html_sanitizer import extract_text_content, sanitize_announcement_content
from infohub.services.notification_service import NotificationService
from infohub.utils.enums import coerce_enum
from infohub.utils.pagination import paginate_list

PRIORITY_WEIGHTS = {
    Priority.HIGH: 100,
    Priority.MEDIUM: 50,
    Priority.LOW: 20,
}

BULK_ACTIONS = ("publish", "archive", "delete")
SUMMARY_LENGTH = 200


def smart_score(announcement: Announcement, now: Optional[datetime] = None) -> float:
    """
    priority weight
    + freshness: max(0, 30 - days since published)
    + urgency: 50 - hours until expiry, when expiry is within the next 48h
    """
    now = now or datetime.utcnow()
    score = float(PRIORITY_WEIGHTS.get(announcement.priority, 0))

    published = announcement.published_at or announcement.created_at
    if published:
        days = (now - published).total_seconds() / 86400
        score += max(0.0, 30 - days)

    if announcement.expires_at:
        hours = (announcement.expires_at - now).total_seconds() / 3600
        if 0 < hours <= 48:
            score += 50 - hours

    return score


def serialize_announcement(a: Announcement) -> Dict[str, Any]:
    return {
        "id": a.id,
        "title": a.title,
        "content": a.content,
        "summary": a.summary,
        "targetAudience": a.target_audience.value,
        "priority": a.priority.value,
        "status": a.status.value,
        "publishedAt": a.published_at.isoformat() if a.published_at else None,
        "expiresAt": a.expires_at.isoformat() if a.expires_at else None,
        "createdAt": a.created_at.isoformat() if a.created_at else None,
        "updatedAt": a.updated_at.isoformat() if a.updated_at else None,
        "author": {
            "id": a.author.id,
            "name": a.author.full_name,
        } if a.author else None,
    }


@dataclass
class AnnouncementFilters:
    target_audience: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = AnnouncementStatus.PUBLISHED.value
    search: Optional[str] = None
    include_expired: bool = False


class AnnouncementService:
    """Service for announcement CRUD and listing"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_announcements(
        self,
        filters: AnnouncementFilters,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        query = select(Announcement)

        if filters.target_audience and filters.target_audience != TargetAudience.ALL.value:
            audience = coerce_enum(TargetAudience, filters.target_audience, "targetAudience")
            query = query.where(Announcement.target_audience == audience)
        if filters.priority:
            query = query.where(Announcement.priority == coerce_enum(Priority, filters.priority, "priority"))
        if filters.status:
            query = query.where(Announcement.status == coerce_enum(AnnouncementStatus, filters.status, "status"))
        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            query = query.where(or_(
                func.lower(Announcement.title).like(pattern),
                func.lower(Announcement.content).like(pattern),
                func.lower(Announcement.summary).like(pattern),
            ))

        now = datetime.utcnow()
        if not filters.include_expired:
            query = query.where(or_(Announcement.expires_at.is_(None), Announcement.expires_at > now))

        result = await self.db.execute(query)
        announcements = list(result.scalars().unique().all())

        # Ties fall back to newest first
        announcements.sort(key=lambda a: a.created_at or now, reverse=True)
        announcements.sort(key=lambda a: smart_score(a, now), reverse=True)

        items, pagination = paginate_list(announcements, page, limit)
        return {
            "data": [serialize_announcement(a) for a in items],
            "pagination": pagination,
        }

    async def get(self, announcement_id: int) -> Announcement:
        result = await self.db.execute(select(Announcement).where(Announcement.id == announcement_id))
        announcement = result.scalar_one_or_none()
        if announcement is None:
            raise AnnouncementNotFoundError(announcement_id)
        return announcement

    async def create(self, data: Dict[str, Any], author: User) -> Announcement:
        title = (data.get("title") or "").strip()
        content = data.get("content") or ""
        if not title or not content.strip():
            raise ValidationError("Title and content are required")

        status = coerce_enum(AnnouncementStatus, data.get("status") or AnnouncementStatus.DRAFT, "status")
        published_at = data.get("published_at")
        if status == AnnouncementStatus.PUBLISHED and published_at is None:
            published_at = datetime.utcnow()

        clean = sanitize_announcement_content(content)
        announcement = Announcement(
            title=title,
            content=clean,
            summary=data.get("summary") or extract_text_content(clean)[:SUMMARY_LENGTH],
            author_id=author.id,
            target_audience=coerce_enum(TargetAudience, data.get("target_audience") or TargetAudience.ALL, "targetAudience"),
            priority=coerce_enum(Priority, data.get("priority") or Priority.MEDIUM, "priority"),
            status=status,
            published_at=published_at,
            expires_at=data.get("expires_at"),
        )
        self.db.add(announcement)
        await self.db.commit()
        await self.db.refresh(announcement)

        logger.log_content_change("Announcements", "created", announcement.id, author.email, status=status.value)

        if status == AnnouncementStatus.PUBLISHED:
            await NotificationService(self.db).notify_announcement_published(announcement)

        return announcement

    def _check_can_edit(self, announcement: Announcement, user: User) -> None:
        if user.role in (Role.ADMIN, Role.OFFICE_MEMBER):
            return
        if str(announcement.author_id) != str(user.id):
            raise AuthorizationError("You can only edit your own announcements")

    async def update(self, announcement_id: int, data: Dict[str, Any], user: User) -> Announcement:
        announcement = await self.get(announcement_id)
        self._check_can_edit(announcement, user)
        was_published = announcement.status == AnnouncementStatus.PUBLISHED

        if "title" in data:
            title = (data["title"] or "").strip()
            if not title:
                raise ValidationError("Title cannot be empty", field="title")
            announcement.title = title
        if "content" in data:
            if not (data["content"] or "").strip():
                raise ValidationError("Content cannot be empty", field="content")
            announcement.content = sanitize_announcement_content(data["content"])
        if "summary" in data:
            announcement.summary = data["summary"]
        if "target_audience" in data:
            announcement.target_audience = coerce_enum(TargetAudience, data["target_audience"], "targetAudience")
        if "priority" in data:
            announcement.priority = coerce_enum(Priority, data["priority"], "priority")
        if "expires_at" in data:
            announcement.expires_at = data["expires_at"]
        if "status" in data:
            announcement.status = coerce_enum(AnnouncementStatus, data["status"], "status")
            if announcement.status == AnnouncementStatus.PUBLISHED and announcement.published_at is None:
                announcement.published_at = datetime.utcnow()

        await self.db.commit()
        await self.db.refresh(announcement)

        if not was_published and announcement.status == AnnouncementStatus.PUBLISHED:
            await NotificationService(self.db).notify_announcement_published(announcement)

        return announcement

    async def delete(self, announcement_id: int) -> None:
        announcement = await self.get(announcement_id)
        await self.db.delete(announcement)
        await self.db.commit()
        logger.log_content_change("Announcements", "deleted", announcement_id)

    async def bulk(self, action: str, ids: List[int]) -> Dict[str, Any]:
        if action not in BULK_ACTIONS:
            raise ValidationError(f"Unknown bulk action: {action}", field="action")
        if not ids:
            raise ValidationError("No announcement ids given", field="ids")

        result = await self.db.execute(select(Announcement).where(Announcement.id.in_(ids)))
        announcements = list(result.scalars().unique().all())
        newly_published = []

        for announcement in announcements:
            if action == "delete":
                await self.db.delete(announcement)
            elif action == "archive":
                announcement.status = AnnouncementStatus.ARCHIVED
            else:
                if announcement.status != AnnouncementStatus.PUBLISHED:
                    newly_published.append(announcement)
                announcement.status = AnnouncementStatus.PUBLISHED
                announcement.published_at = announcement.published_at or datetime.utcnow()

        await self.db.commit()

        notifications = NotificationService(self.db)
        for announcement in newly_published:
            await notifications.notify_announcement_published(announcement)

        logger.info(f"[Announcements] Bulk {action}: {len(announcements)} of {len(ids)}")
        return {"action": action, "affectedCount": len(announcements)}

    async def stats(self) -> Dict[str, Any]:
        async def grouped(column) -> Dict[str, int]:
            rows = await self.db.execute(
                select(column, func.count(Announcement.id)).group_by(column)
            )
            return {key.value: count for key, count in rows.all()}

        by_status = await grouped(Announcement.status)
        return {
            "total": sum(by_status.values()),
            "published": by_status.get(AnnouncementStatus.PUBLISHED.value, 0),
            "draft": by_status.get(AnnouncementStatus.DRAFT.value, 0),
            "archived": by_status.get(AnnouncementStatus.ARCHIVED.value, 0),
            "byPriority": await grouped(Announcement.priority),
            "byTargetAudience": await grouped(Announcement.target_audience),
        }
