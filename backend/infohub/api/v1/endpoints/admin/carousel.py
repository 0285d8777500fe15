"""
Admin Parents' Corner carousel endpoints.
"""
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.database import get_db
from infohub.core.logging_config import logger
from infohub.models.user import User
from infohub.modules.auth.dependencies import get_current_admin
from infohub.schemas.carousel import CarouselBulkUpdate, CarouselImageCreate, CarouselImageUpdate
from infohub.services import carousel_service
from infohub.services.carousel_service import serialize_image

router = APIRouter()


@router.get("")
async def list_carousel_images(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Every image, hidden ones included, in display order"""
    images = await carousel_service.list_images(db)
    return {"success": True, "data": [serialize_image(i) for i in images], "count": len(images)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_carousel_image(
    body: CarouselImageCreate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    image = await carousel_service.create_image(db, body.model_dump(), current_admin)
    return {"success": True, "data": serialize_image(image)}


@router.put("")
async def bulk_update_carousel(
    body: CarouselBulkUpdate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Reorder or show/hide several images at once"""
    count = await carousel_service.bulk_update(db, [u.model_dump() for u in body.updates])
    return {"success": True, "message": f"Updated {count} images", "data": {"updated": count}}


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_carousel_image(
    file: UploadFile = File(...),
    current_admin: User = Depends(get_current_admin)
):
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

    stored = await carousel_service.store_upload(file.filename, await file.read())
    logger.info(f"[Carousel] {current_admin.email} uploaded {file.filename}")
    return {"success": True, "data": stored.to_dict()}


@router.get("/{image_id}")
async def get_carousel_image(
    image_id: int,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    return {"success": True, "data": serialize_image(await carousel_service.get_image(db, image_id))}


@router.put("/{image_id}")
async def update_carousel_image(
    image_id: int,
    body: CarouselImageUpdate,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    image = await carousel_service.update_image(db, image_id, body.model_dump(exclude_unset=True))
    return {"success": True, "data": serialize_image(image)}


@router.delete("/{image_id}")
async def delete_carousel_image(
    image_id: int,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    await carousel_service.delete_image(db, image_id)
    return {"success": True, "message": "Carousel image deleted"}
