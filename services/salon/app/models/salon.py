from __future__ import annotations

from datetime import date as date_type
from datetime import datetime, time as time_type
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import Field, field_validator

from app.models.common import CamelModel, Entity, LifecycleEntity

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


OPEN_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


class Client(Entity):
    full_name: str
    phone: str
    email: str = ""
    rewards_earned: int = 0


class StatusChange(CamelModel):
    id: str
    previous_status: AppointmentStatus
    new_status: AppointmentStatus
    changed_by: str
    changed_at: datetime
    reason: Optional[str] = None


class Appointment(Entity):
    client_id: str
    staff_id: Optional[str] = None
    service_ids: List[str] = Field(default_factory=list)
    date: date_type
    time: time_type
    total_price: float = 0
    discount: Optional[float] = None
    coupon_code: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.PENDING
    status_history: List[StatusChange] = Field(default_factory=list)
    notes: str = ""

    def starts_at(self, tzinfo) -> datetime:
        return datetime.combine(self.date, self.time, tzinfo=tzinfo)


class Service(LifecycleEntity):
    name: str
    description: str = ""
    category: str
    price: float
    duration: int
    image: Optional[str] = None


class Product(LifecycleEntity):
    name: str
    description: str = ""
    category: str = "general"
    price: float
    stock: int = 0
    image: Optional[str] = None


class DaySchedule(CamelModel):
    start: str = "09:00"
    end: str = "17:00"
    available: bool = True


def _default_schedule() -> Dict[str, DaySchedule]:
    return {day: DaySchedule(available=day != "sunday") for day in WEEKDAYS}


class StaffMember(LifecycleEntity):
    name: str
    role: str = ""
    specialties: List[str] = Field(default_factory=list)
    bio: str = ""
    experience: str = ""
    image: Optional[str] = None
    schedule: Dict[str, DaySchedule] = Field(default_factory=_default_schedule)
    rating: float = 5.0
    completed_services: int = 0


class OpeningHours(CamelModel):
    open: str = "09:00"
    close: str = "19:00"
    is_open: bool = True

    @field_validator("open", "close")
    @classmethod
    def _check_clock_time(cls, value: str) -> str:
        try:
            parsed = time_type.fromisoformat(value)
        except ValueError:
            raise ValueError("must be a time formatted as HH:MM") from None
        return parsed.strftime("%H:%M")

    def covers(self, moment: time_type) -> bool:
        """True when the business is open at ``moment`` on this day."""
        return self.is_open and time_type.fromisoformat(self.open) <= moment < time_type.fromisoformat(self.close)


def _default_hours() -> Dict[str, OpeningHours]:
    hours = {day: OpeningHours() for day in WEEKDAYS}
    hours["saturday"] = OpeningHours(close="18:00")
    hours["sunday"] = OpeningHours(open="10:00", close="16:00")
    return hours


class SalonSettings(CamelModel):
    id: str = "1"
    salon_name: str = "El nombre de tu salón"
    salon_motto: str = "Tu Lema"
    address: str = ""
    phone: str = ""
    email: str = ""
    whatsapp: str = ""
    instagram: str = ""
    facebook_url: str = ""
    hours: Dict[str, OpeningHours] = Field(default_factory=_default_hours)
    updated_at: Optional[datetime] = None
    updated_by: str = "system"


class SettingsChange(CamelModel):
    id: str
    timestamp: datetime
    updated_by: str
    changes: Dict[str, Dict[str, object]]


class ColorPalette(CamelModel):
    primary: str
    primary_light: str
    primary_dark: str
    secondary: str
    secondary_light: str
    secondary_dark: str
    accent: str = "#8b5cf6"
    accent_light: str = "#a78bfa"
    accent_dark: str = "#7c3aed"
    success: str = "#10b981"
    warning: str = "#f59e0b"
    error: str = "#ef4444"
    info: str = "#3b82f6"
    background: str = "#f8fafc"
    surface: str = "#ffffff"
    text: str = "#1f2937"
    text_secondary: str = "#6b7280"
    border: str = "#e5e7eb"
    shadow: str = "rgba(0, 0, 0, 0.1)"


class ThemeSettings(Entity):
    name: str
    description: str = ""
    colors: ColorPalette
    is_default: bool = False
    is_active: bool = False
    created_by: str = "system"


class AdminUser(LifecycleEntity):
    username: str
    password_hash: str
    role: Literal["owner", "admin"] = "admin"
    last_login: Optional[datetime] = None


class NotificationRecord(CamelModel):
    id: str
    appointment_id: str
    client_id: str
    channel: str
    success: bool
    message: str = ""
    created_at: datetime


class LoginAttempt(CamelModel):
    id: str
    username: str
    success: bool
    timestamp: datetime


class CredentialUpdate(CamelModel):
    id: str
    user_id: str
    type: Literal["username", "password"]
    timestamp: datetime
