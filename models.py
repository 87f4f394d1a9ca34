import datetime as dt
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from lifecycle import BookingStatus, is_occupying

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# ---------- Instructors ----------

class InstructorIn(BaseModel):
    name: str = Field(..., min_length=1)
    bio: Optional[str] = None
    is_active: bool = True


class InstructorOut(InstructorIn):
    id: str
    created_at: str


# ---------- Classes ----------

class ClassIn(BaseModel):
    title: str = Field(..., min_length=1)
    instructor_id: str = Field(..., min_length=1)
    date: dt.date
    start_time: str = Field(..., pattern=TIME_PATTERN)  # "HH:MM", studio wall clock
    end_time: str = Field(..., pattern=TIME_PATTERN)
    capacity: int = Field(..., gt=0)
    is_active: bool = True


class ClassUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    instructor_id: Optional[str] = Field(None, min_length=1)
    date: Optional[dt.date] = None
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    capacity: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None


class ClassOut(BaseModel):
    id: str
    title: str
    instructor_id: str
    instructor_name: Optional[str] = None
    date: dt.date
    start_time: str
    end_time: str
    capacity: int
    booked_slots: int
    spots_left: int
    is_active: bool
    created_at: str
    label: Optional[str] = None


# ---------- Bookings ----------

class BookRequest(BaseModel):
    class_id: str
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=3)
    notes: Optional[str] = None


class AdminBookRequest(BookRequest):
    status: BookingStatus = BookingStatus.PENDING

    @field_validator("status")
    @classmethod
    def status_must_hold_a_slot(cls, v: BookingStatus) -> BookingStatus:
        if not is_occupying(v):
            raise ValueError("new bookings must be Pending or Confirmed")
        return v


class BookingConfirmation(BaseModel):
    booking_id: str
    message: str


class StatusUpdate(BaseModel):
    status: BookingStatus
    class_id: Optional[str] = None


class BookingOut(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    phone: str
    class_id: str
    class_title: Optional[str] = None
    instructor_id: Optional[str] = None
    instructor_name: Optional[str] = None
    class_date: Optional[dt.date] = None
    class_start_time: Optional[str] = None
    class_end_time: Optional[str] = None
    notes: Optional[str] = None
    status: BookingStatus
    created_at: str


# ---------- Profiles ----------

class ProfileIn(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None


class ProfileOut(ProfileIn):
    id: str
    email: str
    created_at: str


# ---------- Admin / schedule ----------

class Overview(BaseModel):
    total_classes: int
    upcoming_bookings: int
    registered_users: int


class ScheduleOut(BaseModel):
    week_start: dt.date
    week_end: dt.date
    times: List[str]
    days: Dict[str, Dict[str, ClassOut]]
