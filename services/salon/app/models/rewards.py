from __future__ import annotations

import os
from datetime import datetime
from enum import Enum
from typing import Optional

from app.models.common import CamelModel

_DEFAULT_SPENDING_THRESHOLD = float(os.getenv("REWARD_SPENDING_THRESHOLD", "5000"))
_DEFAULT_DISCOUNT_PERCENTAGE = float(os.getenv("REWARD_DISCOUNT_PERCENTAGE", "20"))
_DEFAULT_COUPON_VALIDITY_DAYS = int(os.getenv("REWARD_COUPON_VALIDITY_DAYS", "30"))


class RewardSettings(CamelModel):
    id: str = "1"
    spending_threshold: float = _DEFAULT_SPENDING_THRESHOLD
    discount_percentage: float = _DEFAULT_DISCOUNT_PERCENTAGE
    coupon_validity_days: int = _DEFAULT_COUPON_VALIDITY_DAYS
    is_active: bool = True
    updated_at: Optional[datetime] = None
    updated_by: str = "system"


class RewardCoupon(CamelModel):
    id: str
    code: str
    client_id: str
    discount_percentage: float
    created_at: datetime
    expires_at: datetime
    is_used: bool = False
    used_at: Optional[datetime] = None
    used_in_appointment_id: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_available(self, now: datetime) -> bool:
        return not self.is_used and not self.is_expired(now)


class RewardEvent(str, Enum):
    COUPON_GENERATED = "coupon_generated"
    COUPON_USED = "coupon_used"


class RewardHistory(CamelModel):
    id: str
    client_id: str
    type: RewardEvent
    coupon_code: str
    amount: float
    appointment_id: Optional[str] = None
    created_at: datetime


class CouponError(str, Enum):
    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"
    APPOINTMENT_NOT_FOUND = "appointment_not_found"
    APPOINTMENT_CLOSED = "appointment_closed"
    ALREADY_DISCOUNTED = "already_discounted"
    WRONG_CLIENT = "wrong_client"
    STORAGE = "storage"
