from datetime import date as date_type
from datetime import datetime
from datetime import time as time_type
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from app.models.salon import AppointmentStatus, DaySchedule, OpeningHours


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100, examples=["Corte y Peinado"])
    description: str = Field(default="", examples=["Servicio de corte y peinado"])
    category: str = Field(min_length=1, examples=["servicios-cabello"])
    price: float = Field(ge=0, examples=[430])
    duration: int = Field(gt=0, description="Duration in minutes", examples=[45])
    image: Optional[str] = None


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    duration: Optional[int] = Field(default=None, gt=0)
    image: Optional[str] = None
    is_active: Optional[bool] = None


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100, examples=["Shampoo Reparador"])
    description: str = ""
    category: str = Field(default="general", examples=["cuidado-cabello"])
    price: float = Field(ge=0, examples=[289])
    stock: int = Field(default=0, ge=0)
    image: Optional[str] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    image: Optional[str] = None
    is_active: Optional[bool] = None


class PriceUpdate(BaseModel):
    service_id: str = Field(alias="serviceId")
    new_price: float = Field(alias="newPrice", ge=0)

    model_config = ConfigDict(populate_by_name=True)


class BulkPriceRequest(BaseModel):
    """Either adjust ``service_ids`` by percentage/amount or set absolute ``prices``."""

    service_ids: List[str] = Field(default_factory=list)
    percentage: Optional[float] = Field(default=None, ge=-100, examples=[10])
    amount: Optional[float] = Field(default=None, examples=[-50])
    prices: List[PriceUpdate] = Field(default_factory=list)

    @model_validator(mode="after")
    def _one_mode(self):
        if self.prices and (self.percentage is not None or self.amount is not None):
            raise ValueError("Use either prices or a percentage/amount adjustment")
        return self


class StaffCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100, examples=["Isabella Martínez"])
    role: str = Field(default="", examples=["Estilista Senior"])
    specialties: List[str] = Field(default_factory=list, examples=[["servicios-cabello"]])
    bio: str = ""
    experience: str = ""
    image: Optional[str] = None
    schedule: Optional[Dict[str, DaySchedule]] = None
    rating: float = Field(default=5.0, ge=0, le=5)


class StaffUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    role: Optional[str] = None
    specialties: Optional[List[str]] = None
    bio: Optional[str] = None
    experience: Optional[str] = None
    image: Optional[str] = None
    schedule: Optional[Dict[str, DaySchedule]] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    is_active: Optional[bool] = None


class BookingRequest(BaseModel):
    full_name: str = Field(min_length=1, examples=["María García"])
    phone: str = Field(min_length=10, examples=["6649876543"])
    email: str = Field(default="", examples=["maria@correo.mx"])
    service_ids: List[str] = Field(min_length=1)
    staff_id: Optional[str] = None
    date: date_type = Field(examples=["2026-11-20"])
    time: time_type = Field(examples=["10:30"])
    notes: str = ""
    coupon_code: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus
    reason: Optional[str] = None


class RedeemRequest(BaseModel):
    code: str = Field(min_length=1, examples=["REWARD-1A2B3C4D"])
    appointment_id: str


class SettingsUpdate(BaseModel):
    salon_name: Optional[str] = None
    salon_motto: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    whatsapp: Optional[str] = None
    instagram: Optional[str] = None
    facebook_url: Optional[str] = None
    hours: Optional[Dict[str, OpeningHours]] = None


class StaffCleanupResponse(BaseModel):
    cancelled: int


StaffAction = Literal["cancel", "reassign"]


class RewardSettingsUpdate(BaseModel):
    spending_threshold: Optional[float] = Field(default=None, gt=0, examples=[5000])
    discount_percentage: Optional[float] = Field(default=None, ge=1, le=100, examples=[20])
    coupon_validity_days: Optional[int] = Field(default=None, ge=1, examples=[30])
    is_active: Optional[bool] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AdminCreate(BaseModel):
    username: str = Field(min_length=3, max_length=50, examples=["recepcion"])
    password: str = Field(min_length=8)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8)


class UsernameChange(BaseModel):
    current_password: str
    new_username: str = Field(min_length=3, max_length=20, examples=["recepcion2"])


class AdminOut(BaseModel):
    id: str
    username: str
    role: str
    is_active: bool
    last_login: Optional[datetime] = None


class ThemeImportRequest(BaseModel):
    data: str = Field(description="Theme JSON as produced by the export endpoint")
