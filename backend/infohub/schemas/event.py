from pydantic import EmailStr, Field, field_validator
from typing import List, Optional
from datetime import date, datetime
import re

from infohub.schemas.common import CamelModel

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class EventBase(CamelModel):
    description: Optional[str] = None
    event_type: Optional[str] = None
    end_date: Optional[date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    max_participants: Optional[int] = Field(None, ge=1)
    registration_required: Optional[bool] = None
    registration_deadline: Optional[datetime] = None
    target_grades: Optional[List[str]] = None
    target_audience: Optional[str] = None
    status: Optional[str] = None
    is_featured: Optional[bool] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not TIME_PATTERN.match(v):
            raise ValueError("Time must be in HH:MM format")
        return v


class EventCreate(EventBase):
    title: str = Field(..., min_length=1, max_length=255)
    start_date: date


class EventUpdate(EventBase):
    title: Optional[str] = Field(None, max_length=255)
    start_date: Optional[date] = None


class RegistrationCreate(CamelModel):
    participant_name: Optional[str] = Field(None, max_length=200)
    participant_email: Optional[EmailStr] = None
    participant_phone: Optional[str] = Field(None, max_length=20)
    grade: Optional[str] = Field(None, max_length=50)
    special_requests: Optional[str] = Field(None, max_length=1000)


class CheckInRequest(CamelModel):
    registration_id: int
    checked_in: bool = True


class EventNotificationCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    registrants_only: bool = True
