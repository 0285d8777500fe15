"""
Resource Service - learning resources, categories and grade levels
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.exceptions import ConflictError, ResourceItemNotFoundError, ResourceNotFoundError, ValidationError
from infohub.core.logging_config import logger
from infohub.core.rbac import Role, has_minimum_role
from infohub.models.resource import (
    AccessLevel,
    GradeLevel,
    Resource,
    ResourceCategory,
    ResourceStatus,
    ResourceType,
)
from infohub.models.user import User
from infohub.services.notification_service import NotificationService
from infohub.utils.enums import coerce_enum
from infohub.utils.pagination import paginate

BULK_ACTIONS = ("publish", "draft", "archive", "feature", "unfeature", "delete")
RESOURCE_FIELDS = (
    "title", "description", "file_url", "external_url", "thumbnail_url", "file_size",
    "category_id", "grade_level_id", "tags", "subject", "difficulty", "is_featured",
)
DIFFICULTIES = ("beginner", "intermediate", "advanced")
CATEGORY_FIELDS = ("name", "display_name", "description", "icon", "color", "sort_order", "is_active")
GRADE_LEVEL_FIELDS = ("name", "display_name", "min_grade", "max_grade", "color", "sort_order", "is_active")


def serialize_category(c: ResourceCategory, resource_count: Optional[int] = None) -> Dict[str, Any]:
    data = {
        "id": c.id,
        "name": c.name,
        "displayName": c.display_name,
        "description": c.description,
        "icon": c.icon,
        "color": c.color,
        "sortOrder": c.sort_order,
        "isActive": c.is_active,
    }
    if resource_count is not None:
        data["resourceCount"] = resource_count
    return data


def serialize_grade_level(g: GradeLevel) -> Dict[str, Any]:
    return {
        "id": g.id,
        "name": g.name,
        "displayName": g.display_name,
        "minGrade": g.min_grade,
        "maxGrade": g.max_grade,
        "color": g.color,
        "sortOrder": g.sort_order,
        "isActive": g.is_active,
    }


def serialize_resource(r: Resource) -> Dict[str, Any]:
    return {
        "id": r.id,
        "title": r.title,
        "description": r.description,
        "resourceType": r.resource_type.value,
        "fileUrl": r.file_url,
        "externalUrl": r.external_url,
        "thumbnailUrl": r.thumbnail_url,
        "fileSize": r.file_size,
        "category": serialize_category(r.category) if r.category else None,
        "gradeLevel": serialize_grade_level(r.grade_level) if r.grade_level else None,
        "tags": r.tags or [],
        "subject": r.subject,
        "difficulty": r.difficulty,
        "status": r.status.value,
        "accessLevel": r.access_level.value,
        "isFeatured": r.is_featured,
        "downloadCount": r.download_count,
        "viewCount": r.view_count,
        "createdBy": r.created_by,
        "createdAt": r.created_at.isoformat() if r.created_at else None,
        "updatedAt": r.updated_at.isoformat() if r.updated_at else None,
    }


@dataclass
class ResourceFilters:
    search: Optional[str] = None
    category_id: Optional[int] = None
    grade_level_id: Optional[int] = None
    status: Optional[str] = None
    resource_type: Optional[str] = None
    featured: Optional[bool] = None
    access_level: Optional[str] = None


class ResourceService:
    """Service for resources and their taxonomy"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== RESOURCES ====================

    async def list_resources(
        self,
        filters: ResourceFilters,
        user: Optional[User] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        query = select(Resource)
        staff = user is not None and has_minimum_role(user, Role.TEACHER)

        if staff and filters.status:
            query = query.where(Resource.status == coerce_enum(ResourceStatus, filters.status, "status"))
        elif not staff:
            query = query.where(Resource.status == ResourceStatus.PUBLISHED)
            if user is None:
                query = query.where(Resource.access_level == AccessLevel.PUBLIC)
            else:
                query = query.where(Resource.access_level != AccessLevel.TEACHERS)

        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            query = query.where(or_(
                func.lower(Resource.title).like(pattern),
                func.lower(Resource.description).like(pattern),
                func.lower(Resource.subject).like(pattern),
            ))
        if filters.category_id:
            query = query.where(Resource.category_id == filters.category_id)
        if filters.grade_level_id:
            query = query.where(Resource.grade_level_id == filters.grade_level_id)
        if filters.resource_type:
            query = query.where(Resource.resource_type == coerce_enum(ResourceType, filters.resource_type, "resourceType"))
        if filters.featured is not None:
            query = query.where(Resource.is_featured.is_(filters.featured))
        if filters.access_level:
            query = query.where(Resource.access_level == coerce_enum(AccessLevel, filters.access_level, "accessLevel"))

        query = query.order_by(Resource.is_featured.desc(), Resource.created_at.desc(), Resource.id.desc())
        items, pagination = await paginate(self.db, query, page, limit)
        return {"data": [serialize_resource(r) for r in items], "pagination": pagination}

    async def get(self, resource_id: int, user: Optional[User] = None, count_view: bool = False) -> Resource:
        resource = (await self.db.execute(select(Resource).where(Resource.id == resource_id))).scalar_one_or_none()
        if resource is None:
            raise ResourceItemNotFoundError(resource_id)

        staff = user is not None and has_minimum_role(user, Role.TEACHER)
        if not staff:
            hidden = resource.status != ResourceStatus.PUBLISHED or (
                resource.access_level == AccessLevel.TEACHERS
                or (user is None and resource.access_level != AccessLevel.PUBLIC)
            )
            if hidden:
                raise ResourceItemNotFoundError(resource_id)

        if count_view:
            resource.view_count = (resource.view_count or 0) + 1
            await self.db.commit()
        return resource

    async def _validate_refs(self, data: Dict[str, Any]) -> None:
        if data.get("category_id") is not None and await self.db.get(ResourceCategory, data["category_id"]) is None:
            raise ValidationError("Unknown category", field="categoryId")
        if data.get("grade_level_id") is not None and await self.db.get(GradeLevel, data["grade_level_id"]) is None:
            raise ValidationError("Unknown grade level", field="gradeLevelId")
        if data.get("difficulty") and data["difficulty"] not in DIFFICULTIES:
            raise ValidationError(f"Difficulty must be one of: {', '.join(DIFFICULTIES)}", field="difficulty")

    def _apply(self, resource: Resource, data: Dict[str, Any]) -> None:
        for key in RESOURCE_FIELDS:
            if key in data:
                setattr(resource, key, list(data[key] or []) if key == "tags" else data[key])
        if "resource_type" in data:
            resource.resource_type = coerce_enum(ResourceType, data["resource_type"], "resourceType")
        if "status" in data:
            resource.status = coerce_enum(ResourceStatus, data["status"], "status")
        if "access_level" in data:
            resource.access_level = coerce_enum(AccessLevel, data["access_level"], "accessLevel")

        if not resource.title or not resource.title.strip():
            raise ValidationError("Title is required", field="title")
        if resource.resource_type == ResourceType.EXTERNAL_PLATFORM and not resource.external_url:
            raise ValidationError("External resources need a URL", field="externalUrl")

    async def create(self, data: Dict[str, Any], creator: User) -> Resource:
        if not data.get("resource_type"):
            raise ValidationError("Resource type is required", field="resourceType")
        await self._validate_refs(data)

        resource = Resource(
            created_by=creator.id,
            status=ResourceStatus.PUBLISHED,
            access_level=AccessLevel.PUBLIC,
            tags=[],
            is_featured=False,
            download_count=0,
            view_count=0,
        )
        self._apply(resource, data)
        self.db.add(resource)
        await self.db.commit()
        await self.db.refresh(resource)

        logger.log_content_change("Resources", "created", resource.id, creator.email, title=resource.title)
        if resource.status == ResourceStatus.PUBLISHED:
            await NotificationService(self.db).notify_resource_uploaded(resource)
        return resource

    async def update(self, resource_id: int, data: Dict[str, Any], user: User) -> Resource:
        resource = await self.get(resource_id, user)
        await self._validate_refs(data)
        was_published = resource.status == ResourceStatus.PUBLISHED

        self._apply(resource, data)
        await self.db.commit()
        await self.db.refresh(resource)

        if not was_published and resource.status == ResourceStatus.PUBLISHED:
            await NotificationService(self.db).notify_resource_uploaded(resource)
        return resource

    async def delete(self, resource_id: int, user: User) -> None:
        resource = await self.get(resource_id, user)
        await self.db.delete(resource)
        await self.db.commit()
        logger.log_content_change("Resources", "deleted", resource_id)

    async def bulk(self, action: str, ids: List[int]) -> Dict[str, Any]:
        if action not in BULK_ACTIONS:
            raise ValidationError(f"Unknown bulk action: {action}", field="action")
        if not ids:
            raise ValidationError("No resource ids given", field="ids")

        resources = list((await self.db.execute(select(Resource).where(Resource.id.in_(ids)))).scalars().unique().all())
        for r in resources:
            if action == "delete":
                await self.db.delete(r)
            elif action == "publish":
                r.status = ResourceStatus.PUBLISHED
            elif action == "draft":
                r.status = ResourceStatus.DRAFT
            elif action == "archive":
                r.status = ResourceStatus.ARCHIVED
            else:
                r.is_featured = action == "feature"
        await self.db.commit()

        logger.info(f"[Resources] Bulk {action}: {len(resources)} of {len(ids)}")
        return {"action": action, "affectedCount": len(resources)}

    async def record_download(self, resource_id: int, user: Optional[User] = None) -> Dict[str, Any]:
        resource = await self.get(resource_id, user)
        await self.db.execute(
            update(Resource)
            .where(Resource.id == resource.id)
            .values(download_count=Resource.download_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(resource)
        return {
            "id": resource.id,
            "downloadCount": resource.download_count,
            "url": resource.file_url or resource.external_url,
        }

    async def analytics(self, category_id: Optional[int] = None, grade_level_id: Optional[int] = None) -> Dict[str, Any]:
        query = select(Resource)
        if category_id:
            query = query.where(Resource.category_id == category_id)
        if grade_level_id:
            query = query.where(Resource.grade_level_id == grade_level_id)
        resources = list((await self.db.execute(query)).scalars().unique().all())

        total = len(resources)
        downloads = sum(r.download_count or 0 for r in resources)
        views = sum(r.view_count or 0 for r in resources)

        by_type: Dict[str, int] = {}
        by_category: Dict[str, int] = {}
        by_grade: Dict[str, int] = {}
        for r in resources:
            by_type[r.resource_type.value] = by_type.get(r.resource_type.value, 0) + 1
            category = r.category.display_name if r.category else "Uncategorized"
            by_category[category] = by_category.get(category, 0) + 1
            if r.grade_level:
                by_grade[r.grade_level.display_name] = by_grade.get(r.grade_level.display_name, 0) + 1

        # Downloads weigh more than views
        popular = sorted(resources, key=lambda r: (r.download_count or 0) + (r.view_count or 0) * 0.1, reverse=True)[:10]

        return {
            "total": total,
            "published": sum(1 for r in resources if r.status == ResourceStatus.PUBLISHED),
            "draft": sum(1 for r in resources if r.status == ResourceStatus.DRAFT),
            "archived": sum(1 for r in resources if r.status == ResourceStatus.ARCHIVED),
            "featured": sum(1 for r in resources if r.is_featured),
            "totalDownloads": downloads,
            "totalViews": views,
            "avgDownloadsPerResource": round(downloads / total, 2) if total else 0,
            "avgViewsPerResource": round(views / total, 2) if total else 0,
            "byType": by_type,
            "byCategory": by_category,
            "byGradeLevel": by_grade,
            "popularResources": [
                {
                    "id": r.id,
                    "title": r.title,
                    "downloadCount": r.download_count,
                    "viewCount": r.view_count,
                    "resourceType": r.resource_type.value,
                    "category": r.category.display_name if r.category else None,
                }
                for r in popular
            ],
        }

    # ==================== CATEGORIES ====================

    async def list_categories(self, include_inactive: bool = False) -> List[Dict[str, Any]]:
        query = select(ResourceCategory).order_by(ResourceCategory.sort_order, ResourceCategory.display_name)
        if not include_inactive:
            query = query.where(ResourceCategory.is_active.is_(True))
        categories = (await self.db.execute(query)).scalars().all()

        counts = dict((await self.db.execute(
            select(Resource.category_id, func.count(Resource.id)).group_by(Resource.category_id)
        )).all())
        return [serialize_category(c, counts.get(c.id, 0)) for c in categories]

    async def _get_category(self, category_id: int) -> ResourceCategory:
        category = await self.db.get(ResourceCategory, category_id)
        if category is None:
            raise ResourceNotFoundError("Category", category_id)
        return category

    async def _ensure_unique_name(self, model, name: str, exclude_id: Optional[int] = None) -> None:
        query = select(model.id).where(model.name == name)
        if exclude_id is not None:
            query = query.where(model.id != exclude_id)
        if (await self.db.execute(query)).scalar_one_or_none() is not None:
            raise ConflictError(f"'{name}' already exists", details={"name": name})

    async def create_category(self, data: Dict[str, Any]) -> ResourceCategory:
        name = (data.get("name") or "").strip()
        if not name or not (data.get("display_name") or "").strip():
            raise ValidationError("Name and display name are required")
        await self._ensure_unique_name(ResourceCategory, name)

        category = ResourceCategory(sort_order=0, is_active=True)
        for key in CATEGORY_FIELDS:
            if key in data and data[key] is not None:
                setattr(category, key, data[key])
        category.name = name
        self.db.add(category)
        await self.db.commit()
        await self.db.refresh(category)
        return category

    async def update_category(self, category_id: int, data: Dict[str, Any]) -> ResourceCategory:
        category = await self._get_category(category_id)
        if data.get("name") and data["name"] != category.name:
            await self._ensure_unique_name(ResourceCategory, data["name"], exclude_id=category.id)
        for key in CATEGORY_FIELDS:
            if key in data and data[key] is not None:
                setattr(category, key, data[key])
        await self.db.commit()
        return category

    async def delete_category(self, category_id: int) -> None:
        category = await self._get_category(category_id)
        in_use = (await self.db.execute(
            select(func.count(Resource.id)).where(Resource.category_id == category.id)
        )).scalar() or 0
        if in_use:
            raise ConflictError(
                f"Category still has {in_use} resources",
                details={"resourceCount": in_use},
            )
        await self.db.delete(category)
        await self.db.commit()

    # ==================== GRADE LEVELS ====================

    async def list_grade_levels(self, include_inactive: bool = False) -> List[Dict[str, Any]]:
        query = select(GradeLevel).order_by(GradeLevel.sort_order, GradeLevel.min_grade)
        if not include_inactive:
            query = query.where(GradeLevel.is_active.is_(True))
        return [serialize_grade_level(g) for g in (await self.db.execute(query)).scalars().all()]

    async def create_grade_level(self, data: Dict[str, Any]) -> GradeLevel:
        name = (data.get("name") or "").strip()
        if not name or not (data.get("display_name") or "").strip():
            raise ValidationError("Name and display name are required")
        if (
            data.get("min_grade") is not None and data.get("max_grade") is not None
            and data["min_grade"] > data["max_grade"]
        ):
            raise ValidationError("minGrade cannot exceed maxGrade", field="minGrade")
        await self._ensure_unique_name(GradeLevel, name)

        grade = GradeLevel(sort_order=0, is_active=True)
        for key in GRADE_LEVEL_FIELDS:
            if key in data and data[key] is not None:
                setattr(grade, key, data[key])
        grade.name = name
        self.db.add(grade)
        await self.db.commit()
        await self.db.refresh(grade)
        return grade
