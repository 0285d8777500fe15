from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from infohub.core.database import get_db
from infohub.core.rate_limiter import bulk_rate_limit
from infohub.core.rbac import Permission
from infohub.models.user import User
from infohub.modules.auth.dependencies import (
    get_content_manager,
    get_office_staff,
    get_optional_user,
    require_permission,
)
from infohub.schemas.common import BulkAction
from infohub.schemas.resource import (
    CategoryCreate,
    CategoryUpdate,
    GradeLevelCreate,
    ResourceCreate,
    ResourceUpdate,
)
from infohub.services.resource_service import (
    ResourceFilters,
    ResourceService,
    serialize_category,
    serialize_grade_level,
    serialize_resource,
)

router = APIRouter()


@router.get("")
async def list_resources(
    search: Optional[str] = None,
    category_id: Optional[int] = Query(None, alias="categoryId"),
    grade_level_id: Optional[int] = Query(None, alias="gradeLevelId"),
    status_filter: Optional[str] = Query(None, alias="status"),
    resource_type: Optional[str] = Query(None, alias="resourceType"),
    featured: Optional[bool] = None,
    access_level: Optional[str] = Query(None, alias="accessLevel"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    filters = ResourceFilters(
        search=search,
        category_id=category_id,
        grade_level_id=grade_level_id,
        status=status_filter,
        resource_type=resource_type,
        featured=featured,
        access_level=access_level,
    )
    result = await ResourceService(db).list_resources(filters, current_user, page, limit)
    return {"success": True, **result}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_resource(
    body: ResourceCreate,
    current_user: User = Depends(require_permission(Permission.RESOURCE_CREATE)),
    db: AsyncSession = Depends(get_db)
):
    resource = await ResourceService(db).create(body.model_dump(exclude_unset=True), current_user)
    return {"success": True, "data": serialize_resource(resource)}


@router.post("/bulk")
@bulk_rate_limit()
async def bulk_resources(
    request: Request,
    body: BulkAction,
    current_user: User = Depends(get_office_staff),
    db: AsyncSession = Depends(get_db)
):
    return {"success": True, "data": await ResourceService(db).bulk(body.action, body.ids)}


@router.get("/analytics")
async def resource_analytics(
    category_id: Optional[int] = Query(None, alias="categoryId"),
    grade_level_id: Optional[int] = Query(None, alias="gradeLevelId"),
    current_user: User = Depends(get_office_staff),
    db: AsyncSession = Depends(get_db)
):
    """Totals, breakdowns and the most used resources"""
    data = await ResourceService(db).analytics(category_id, grade_level_id)
    return {"success": True, "data": data}


# ============================================
# Categories & grade levels
# ============================================

@router.get("/categories")
async def list_categories(
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: AsyncSession = Depends(get_db)
):
    return {"success": True, "data": await ResourceService(db).list_categories(include_inactive)}


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    body: CategoryCreate,
    current_user: User = Depends(get_office_staff),
    db: AsyncSession = Depends(get_db)
):
    category = await ResourceService(db).create_category(body.model_dump(exclude_unset=True))
    return {"success": True, "data": serialize_category(category, 0)}


@router.put("/categories/{category_id}")
async def update_category(
    category_id: int,
    body: CategoryUpdate,
    current_user: User = Depends(get_office_staff),
    db: AsyncSession = Depends(get_db)
):
    category = await ResourceService(db).update_category(category_id, body.model_dump(exclude_unset=True))
    return {"success": True, "data": serialize_category(category)}


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    current_user: User = Depends(get_office_staff),
    db: AsyncSession = Depends(get_db)
):
    await ResourceService(db).delete_category(category_id)
    return {"success": True, "message": "Category deleted"}


@router.get("/grade-levels")
async def list_grade_levels(
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: AsyncSession = Depends(get_db)
):
    return {"success": True, "data": await ResourceService(db).list_grade_levels(include_inactive)}


@router.post("/grade-levels", status_code=status.HTTP_201_CREATED)
async def create_grade_level(
    body: GradeLevelCreate,
    current_user: User = Depends(get_office_staff),
    db: AsyncSession = Depends(get_db)
):
    grade = await ResourceService(db).create_grade_level(body.model_dump(exclude_unset=True))
    return {"success": True, "data": serialize_grade_level(grade)}


# ============================================
# Single resource
# ============================================

@router.get("/{resource_id}")
async def get_resource(
    resource_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    resource = await ResourceService(db).get(resource_id, current_user, count_view=True)
    return {"success": True, "data": serialize_resource(resource)}


@router.put("/{resource_id}")
async def update_resource(
    resource_id: int,
    body: ResourceUpdate,
    current_user: User = Depends(get_content_manager),
    db: AsyncSession = Depends(get_db)
):
    resource = await ResourceService(db).update(resource_id, body.model_dump(exclude_unset=True), current_user)
    return {"success": True, "data": serialize_resource(resource)}


@router.delete("/{resource_id}")
async def delete_resource(
    resource_id: int,
    current_user: User = Depends(require_permission(Permission.RESOURCE_DELETE)),
    db: AsyncSession = Depends(get_db)
):
    await ResourceService(db).delete(resource_id, current_user)
    return {"success": True, "message": "Resource deleted"}


@router.post("/{resource_id}/download")
async def record_download(
    resource_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Count a download and return the URL to fetch"""
    return {"success": True, "data": await ResourceService(db).record_download(resource_id, current_user)}
