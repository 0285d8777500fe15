"""
Database Seed Data Module

Creates the admin account, the grade levels and resource categories the
resource library needs, the default site settings and a few sample posts.
Safe to run repeatedly: existing rows are left alone.

Run with: python -m infohub.db.seed_data
"""
import asyncio
import secrets
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.config import settings
from infohub.core.database import AsyncSessionLocal, close_db, init_db
from infohub.core.logging_config import logger
from infohub.core.rbac import Role
from infohub.core.security import get_password_hash
from infohub.models import (
    Announcement,
    AnnouncementStatus,
    ApprovalStatus,
    Communication,
    CommunicationAudience,
    CommunicationStatus,
    CommunicationType,
    Event,
    EventStatus,
    EventType,
    GradeLevel,
    Priority,
    ResourceCategory,
    TargetAudience,
    User,
)
from infohub.services.settings_service import ensure_default_settings


# ==================== Sample Data Constants ====================

GRADE_LEVELS = [
    {"name": "kindergarten", "display_name": "Kindergarten", "min_grade": 0, "max_grade": 0, "color": "#f59e0b"},
    {"name": "grades-1-2", "display_name": "Grades 1-2", "min_grade": 1, "max_grade": 2, "color": "#10b981"},
    {"name": "grades-3-4", "display_name": "Grades 3-4", "min_grade": 3, "max_grade": 4, "color": "#3b82f6"},
    {"name": "grades-5-6", "display_name": "Grades 5-6", "min_grade": 5, "max_grade": 6, "color": "#8b5cf6"},
]

RESOURCE_CATEGORIES = [
    {"name": "reading", "display_name": "Reading & Literacy", "icon": "book-open", "color": "#3b82f6"},
    {"name": "math", "display_name": "Mathematics", "icon": "calculator", "color": "#10b981"},
    {"name": "science", "display_name": "Science", "icon": "flask", "color": "#f59e0b"},
    {"name": "parent-guides", "display_name": "Parent Guides", "icon": "users", "color": "#ec4899"},
    {"name": "forms", "display_name": "Forms & Documents", "icon": "file-text", "color": "#6b7280"},
]

SAMPLE_ANNOUNCEMENT = {
    "title": "Welcome back to a new school year",
    "content": "<p>We are excited to welcome all families back. "
               "Please check the <strong>events calendar</strong> for orientation dates.</p>",
    "summary": "We are excited to welcome all families back.",
}

SAMPLE_EVENT = {
    "title": "Parent-Teacher Conference",
    "description": "Meet your child's teachers to talk about goals for the term.",
    "location": "Main Hall",
}

SAMPLE_NEWSLETTER = {
    "title": "School Newsletter - Issue 1",
    "content": "<h2>This month at school</h2><p>Highlights from classrooms, clubs and sports.</p>",
}


# ==================== Seeders ====================

async def seed_admin(db: AsyncSession) -> User:
    """Create the admin account named by SEED_ADMIN_EMAIL if it does not exist"""
    email = settings.SEED_ADMIN_EMAIL.lower()
    admin = await db.scalar(select(User).where(User.email == email))
    if admin:
        logger.info(f"[Seed] Admin {email} already exists")
        return admin

    password = settings.SEED_ADMIN_PASSWORD
    if not password:
        password = secrets.token_urlsafe(12)
        print(f"Generated admin password for {email}: {password}")

    admin = User(
        email=email,
        first_name="School",
        last_name="Admin",
        hashed_password=get_password_hash(password),
        role=Role.ADMIN,
        is_active=True,
        approval_status=ApprovalStatus.APPROVED,
    )
    db.add(admin)
    await db.flush()
    logger.info(f"[Seed] Created admin {email}")
    return admin


async def _seed_named(db: AsyncSession, model, rows: List[Dict]) -> int:
    existing = set((await db.execute(select(model.name))).scalars().all())
    created = 0
    for order, row in enumerate(rows):
        if row["name"] in existing:
            continue
        db.add(model(sort_order=order, is_active=True, **row))
        created += 1
    return created


async def seed_grade_levels(db: AsyncSession) -> int:
    return await _seed_named(db, GradeLevel, GRADE_LEVELS)


async def seed_resource_categories(db: AsyncSession) -> int:
    return await _seed_named(db, ResourceCategory, RESOURCE_CATEGORIES)


async def seed_sample_content(db: AsyncSession, admin: User, today: Optional[date] = None) -> int:
    """One published announcement, event and newsletter; skipped when a title already exists"""
    today = today or date.today()
    now = datetime.utcnow()
    created = 0

    if not await db.scalar(select(Announcement.id).where(Announcement.title == SAMPLE_ANNOUNCEMENT["title"])):
        db.add(Announcement(
            **SAMPLE_ANNOUNCEMENT,
            author_id=admin.id,
            target_audience=TargetAudience.PARENTS,
            priority=Priority.HIGH,
            status=AnnouncementStatus.PUBLISHED,
            published_at=now,
        ))
        created += 1

    if not await db.scalar(select(Event.id).where(Event.title == SAMPLE_EVENT["title"])):
        db.add(Event(
            **SAMPLE_EVENT,
            event_type=EventType.PARENT_TEACHER,
            start_date=today + timedelta(days=14),
            start_time="15:30",
            end_time="18:00",
            max_participants=120,
            registration_required=True,
            registration_deadline=now + timedelta(days=12),
            target_grades=[],
            target_audience=TargetAudience.PARENTS,
            status=EventStatus.PUBLISHED,
            is_featured=True,
            created_by=admin.id,
        ))
        created += 1

    if not await db.scalar(select(Communication.id).where(Communication.title == SAMPLE_NEWSLETTER["title"])):
        db.add(Communication(
            **SAMPLE_NEWSLETTER,
            summary="Highlights from classrooms, clubs and sports.",
            type=CommunicationType.NEWSLETTER,
            target_audience=CommunicationAudience.ALL,
            status=CommunicationStatus.PUBLISHED,
            priority=Priority.MEDIUM,
            is_important=False,
            is_pinned=False,
            is_featured=True,
            issue_number=1,
            published_at=now,
            author_id=admin.id,
            view_count=0,
            reply_count=0,
        ))
        created += 1

    return created


async def seed_all():
    """Seed all data"""
    print("=" * 50)
    print("Starting database seeding...")
    print("=" * 50)

    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            admin = await seed_admin(db)
            grades = await seed_grade_levels(db)
            categories = await seed_resource_categories(db)
            content = await seed_sample_content(db, admin)
            await db.commit()
            settings_created = await ensure_default_settings(db)

            print(f"Grade levels: {grades} created")
            print(f"Resource categories: {categories} created")
            print(f"Sample content: {content} created")
            print(f"Settings: {settings_created} created")
            print("=" * 50)
            print("Database seeding completed successfully!")
            print("=" * 50)
        except Exception as e:
            await db.rollback()
            print(f"Error seeding database: {e}")
            raise

    await close_db()


if __name__ == "__main__":
    asyncio.run(seed_all())
