"""
Parents' corner carousel: the photo slideshow on the family page.

Admins manage the images; the public feed shows active ones ordered by
`order`, newest first among equal positions.
"""
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from infohub.core.exceptions import CarouselImageNotFoundError, ValidationError
from infohub.core.logging_config import logger
from infohub.models import CarouselImage, User
from infohub.services.file_storage import IMAGE_TYPES, StoredFile, file_storage

DEFAULT_ALT_TEXT = "Family learning moment"
UPLOAD_FOLDER = "homepage/carousel"
MAX_IMAGE_SIZE = 10 * 1024 * 1024

EDITABLE_FIELDS = ("title", "description", "image_url", "alt_text", "order", "is_active")


def serialize_image(image: CarouselImage, public: bool = False) -> Dict[str, Any]:
    data = {
        "id": image.id,
        "title": image.title,
        "description": image.description,
        "imageUrl": image.image_url,
        "altText": image.alt_text,
        "order": image.order,
        "createdAt": image.created_at.isoformat() if image.created_at else None,
    }
    if not public:
        data.update(
            isActive=image.is_active,
            uploadedBy=str(image.uploaded_by) if image.uploaded_by else None,
            updatedAt=image.updated_at.isoformat() if image.updated_at else None,
        )
    return data


def _ordered(query):
    return query.order_by(CarouselImage.order.asc(), CarouselImage.created_at.desc(), CarouselImage.id.desc())


async def list_images(db: AsyncSession, active_only: bool = False) -> List[CarouselImage]:
    query = select(CarouselImage)
    if active_only:
        query = query.where(CarouselImage.is_active.is_(True))
    return list((await db.execute(_ordered(query))).scalars().all())


async def get_image(db: AsyncSession, image_id: int) -> CarouselImage:
    image = await db.get(CarouselImage, image_id)
    if image is None:
        raise CarouselImageNotFoundError(image_id)
    return image


async def _next_order(db: AsyncSession) -> int:
    highest = (await db.execute(select(func.max(CarouselImage.order)))).scalar()
    return 0 if highest is None else highest + 1


async def create_image(db: AsyncSession, fields: Dict[str, Any], user: Optional[User] = None) -> CarouselImage:
    image_url = (fields.get("image_url") or "").strip()
    if not image_url:
        raise ValidationError("Image URL is required", field="imageUrl")

    order = fields.get("order")
    image = CarouselImage(
        title=fields.get("title"),
        description=fields.get("description"),
        image_url=image_url,
        alt_text=fields.get("alt_text") or DEFAULT_ALT_TEXT,
        order=order if order is not None else await _next_order(db),
        is_active=fields.get("is_active", True),
        uploaded_by=user.id if user else None,
    )
    db.add(image)
    await db.commit()
    await db.refresh(image)
    logger.info(f"[Carousel] Added image {image.id} at position {image.order}")
    return image


async def update_image(db: AsyncSession, image_id: int, fields: Dict[str, Any]) -> CarouselImage:
    image = await get_image(db, image_id)
    for name in EDITABLE_FIELDS:
        value = fields.get(name)
        if value is None:
            continue
        if name == "alt_text":
            value = value or DEFAULT_ALT_TEXT
        setattr(image, name, value)
    await db.commit()
    await db.refresh(image)
    return image


async def bulk_update(db: AsyncSession, updates: Iterable[Dict[str, Any]]) -> int:
    """Apply order/visibility changes in one transaction; unknown ids fail the whole batch"""
    updates = list(updates)
    ids = [u["id"] for u in updates]
    images = {
        image.id: image
        for image in (await db.execute(select(CarouselImage).where(CarouselImage.id.in_(ids)))).scalars()
    }
    missing = [i for i in ids if i not in images]
    if missing:
        raise CarouselImageNotFoundError(missing[0])

    for change in updates:
        image = images[change["id"]]
        if change.get("order") is not None:
            image.order = change["order"]
        if change.get("is_active") is not None:
            image.is_active = change["is_active"]
    await db.commit()
    logger.info(f"[Carousel] Bulk updated {len(updates)} images")
    return len(updates)


async def delete_image(db: AsyncSession, image_id: int) -> None:
    image = await get_image(db, image_id)
    await db.delete(image)
    await db.commit()
    logger.info(f"[Carousel] Deleted image {image_id}")


async def store_upload(filename: str, content: bytes) -> StoredFile:
    """Images only, up to 10MB, kept apart from editor uploads"""
    return await file_storage.save(
        filename, content, folder=UPLOAD_FOLDER, allowed=IMAGE_TYPES, max_size=MAX_IMAGE_SIZE
    )
