from pydantic import Field
from typing import List, Optional

from infohub.schemas.common import CamelModel


class ResourceBase(CamelModel):
    description: Optional[str] = None
    file_url: Optional[str] = None
    external_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0)
    category_id: Optional[int] = None
    grade_level_id: Optional[int] = None
    tags: Optional[List[str]] = None
    subject: Optional[str] = Field(None, max_length=100)
    difficulty: Optional[str] = None
    status: Optional[str] = None
    access_level: Optional[str] = None
    is_featured: Optional[bool] = None


class ResourceCreate(ResourceBase):
    title: str = Field(..., min_length=1, max_length=255)
    resource_type: str


class ResourceUpdate(ResourceBase):
    title: Optional[str] = Field(None, max_length=255)
    resource_type: Optional[str] = None


class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(None, max_length=100)
    display_name: Optional[str] = Field(None, max_length=150)
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class GradeLevelCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    display_name: str = Field(..., min_length=1, max_length=100)
    min_grade: Optional[int] = None
    max_grade: Optional[int] = None
    color: Optional[str] = None
    sort_order: Optional[int] = None
