from pydantic import Field
from typing import List, Optional

from infohub.schemas.common import CamelModel


class CarouselImageCreate(CamelModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    image_url: str = Field(..., min_length=1)
    alt_text: Optional[str] = Field(None, max_length=255)
    order: Optional[int] = Field(None, ge=0)  # appended after the last image when omitted
    is_active: bool = True


class CarouselImageUpdate(CamelModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, min_length=1)
    alt_text: Optional[str] = Field(None, max_length=255)
    order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class CarouselOrderUpdate(CamelModel):
    id: int
    order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class CarouselBulkUpdate(CamelModel):
    updates: List[CarouselOrderUpdate] = Field(..., min_length=1, max_length=200)
