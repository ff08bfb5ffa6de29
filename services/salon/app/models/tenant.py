from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from app.models.common import CamelModel

BusinessType = Literal["salon", "barberia", "spa", "unas", "centro-bienestar"]


class Subscription(CamelModel):
    plan: Literal["basic", "premium", "enterprise"] = "basic"
    status: Literal["active", "suspended", "cancelled"] = "active"
    expires_at: Optional[datetime] = None


class TenantSettings(CamelModel):
    allow_online_booking: bool = True
    require_approval: bool = False
    time_zone: str = "America/Tijuana"
    currency: str = "MXN"
    language: str = "es"


class Tenant(CamelModel):
    id: str
    name: str
    slug: str
    business_type: BusinessType = "salon"
    logo: Optional[str] = None
    primary_color: str = "#ec4899"
    secondary_color: str = "#8b5cf6"
    address: str = ""
    phone: str = ""
    email: str = ""
    website: Optional[str] = None
    description: str = ""
    is_active: bool = True
    owner_id: str
    subscription: Subscription = Field(default_factory=Subscription)
    settings: TenantSettings = Field(default_factory=TenantSettings)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TenantOwner(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone: str = ""
    password_hash: str
    is_email_verified: bool = False
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    tenants: List[str] = Field(default_factory=list)


class DefaultService(CamelModel):
    name: str
    category: str
    duration: int
    price: float


class BusinessTypeConfig(CamelModel):
    id: BusinessType
    name: str
    description: str
    default_services: List[DefaultService]
    primary_color: str
    secondary_color: str
