"""Spend-based reward coupons.

Per client: completed spend accumulates until it crosses the programme
threshold, which mints one coupon. A coupon is then either redeemed against
an appointment or expires. A client never holds more than one available
coupon at a time.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from app.models.common import new_id, utcnow
from app.models.rewards import CouponError, RewardCoupon, RewardEvent, RewardHistory, RewardSettings
from app.models.salon import OPEN_STATUSES, Appointment, AppointmentStatus
from app.repositories.appointments import AppointmentRepository
from app.repositories.base import STORAGE_FAILURE_MESSAGE, describe_validation_error
from app.repositories.clients import ClientRepository
from app.repositories.rewards import RewardStore
from shared.kvstore import StorageError
from shared.messaging import Unsubscribe
from shared.results import STORAGE, OperationResult

logger = logging.getLogger(__name__)

COUPON_PREFIX = "REWARD"


def generate_coupon_code() -> str:
    return f"{COUPON_PREFIX}-{secrets.token_hex(4).upper()}"


@dataclass(frozen=True)
class CouponRedemption:
    success: bool
    discount: Optional[float] = None
    error: Optional[str] = None
    error_kind: Optional[CouponError] = None

    @classmethod
    def failed(cls, kind: CouponError, error: str) -> "CouponRedemption":
        return cls(success=False, error=error, error_kind=kind)


class RewardEngine:
    def __init__(
        self,
        store: RewardStore,
        clients: ClientRepository,
        appointments: AppointmentRepository,
        *,
        clock: Callable = utcnow,
    ) -> None:
        self._store = store
        self._clients = clients
        self._appointments = appointments
        self._clock = clock

    # settings

    def get_settings(self) -> RewardSettings:
        try:
            return self._store.get_settings()
        except StorageError:
            logger.exception("Failed to read reward settings")
            return RewardSettings()

    def update_settings(self, changes: Dict[str, Any], actor: str = "system") -> OperationResult:
        current = self.get_settings()
        payload = {**current.to_storage(), **changes, "updatedAt": self._clock(), "updatedBy": actor}
        try:
            settings = RewardSettings.model_validate(payload)
        except ValidationError as exc:
            return OperationResult.fail(describe_validation_error(exc))

        if settings.spending_threshold <= 0:
            return OperationResult.fail("Spending threshold must be greater than zero")
        if not 1 <= settings.discount_percentage <= 100:
            return OperationResult.fail("Discount percentage must be between 1 and 100")
        if settings.coupon_validity_days < 1:
            return OperationResult.fail("Coupons must be valid for at least one day")

        try:
            self._store.save_settings(settings)
        except StorageError:
            logger.exception("Failed to save reward settings")
            return OperationResult.fail(STORAGE_FAILURE_MESSAGE, STORAGE)
        return OperationResult.ok("Reward settings saved", data=settings)

    # accrual

    def calculate_client_total_spending(self, client_id: str) -> float:
        """Sum of ``totalPrice`` over the client's completed appointments."""
        total = sum(
            appointment.total_price
            for appointment in self._appointments.get_by_client(client_id)
            if appointment.status is AppointmentStatus.COMPLETED
        )
        return round(total, 2)

    def generate_reward_coupon(self, client_id: str) -> Optional[RewardCoupon]:
        settings = self.get_settings()
        if not settings.is_active:
            return None

        spending = self.calculate_client_total_spending(client_id)
        if spending < settings.spending_threshold:
            return None

        try:
            now = self._clock()
            coupons = self._store.get_coupons()
            if any(c.client_id == client_id and c.is_available(now) for c in coupons):
                return None

            coupon = RewardCoupon(
                id=new_id(),
                code=generate_coupon_code(),
                client_id=client_id,
                discount_percentage=settings.discount_percentage,
                created_at=now,
                expires_at=now + timedelta(days=settings.coupon_validity_days),
            )
            self._store.save_coupons([*coupons, coupon])
            self._store.append_history(
                RewardHistory(
                    id=new_id(),
                    client_id=client_id,
                    type=RewardEvent.COUPON_GENERATED,
                    coupon_code=coupon.code,
                    amount=spending,
                    created_at=now,
                )
            )
        except StorageError:
            logger.exception("Failed to issue a reward coupon for client '%s'", client_id)
            return None

        self._clients.increment_rewards(client_id)
        logger.info("Reward coupon %s issued to client %s (spend %.2f)", coupon.code, client_id, spending)
        return coupon

    def check_all_clients_for_rewards(self) -> List[RewardCoupon]:
        issued = []
        for client in self._clients.get_all():
            coupon = self.generate_reward_coupon(client.id)
            if coupon is not None:
                issued.append(coupon)
        return issued

    def attach(self, appointments: Optional[AppointmentRepository] = None) -> Unsubscribe:
        """Check the client for a coupon whenever an appointment completes."""
        source = appointments or self._appointments

        def _on_completed(appointment: Appointment) -> None:
            self.generate_reward_coupon(appointment.client_id)

        return source.completions.subscribe(_on_completed)

    # redemption

    def use_reward_coupon(self, code: str, appointment_id: str) -> CouponRedemption:
        try:
            now = self._clock()
            coupon = self._store.find_coupon(code)
            if coupon is None:
                return CouponRedemption.failed(CouponError.NOT_FOUND, "Coupon not found")
            if coupon.is_used:
                return CouponRedemption.failed(CouponError.ALREADY_USED, "Coupon has already been used")
            if coupon.is_expired(now):
                return CouponRedemption.failed(CouponError.EXPIRED, "Coupon has expired")

            appointment = self._appointments.get_by_id(appointment_id)
            if appointment is None:
                return CouponRedemption.failed(CouponError.APPOINTMENT_NOT_FOUND, "Appointment not found")
            if appointment.client_id != coupon.client_id:
                return CouponRedemption.failed(CouponError.WRONG_CLIENT, "Coupon belongs to another client")
            if appointment.status not in OPEN_STATUSES:
                return CouponRedemption.failed(
                    CouponError.APPOINTMENT_CLOSED, f"Appointment is already {appointment.status.value}"
                )
            if appointment.coupon_code:
                return CouponRedemption.failed(
                    CouponError.ALREADY_DISCOUNTED, "Appointment already has a coupon applied"
                )

            discount = round(appointment.total_price * coupon.discount_percentage / 100, 2)

            # marked used before the discount is written, restored if that write fails
            self._store.replace_coupon(
                coupon.model_copy(update={"is_used": True, "used_at": now, "used_in_appointment_id": appointment_id})
            )
            if not self._appointments.apply_discount(appointment_id, coupon.code, discount):
                self._store.replace_coupon(coupon)
                return CouponRedemption.failed(CouponError.STORAGE, STORAGE_FAILURE_MESSAGE)

            self._store.append_history(
                RewardHistory(
                    id=new_id(),
                    client_id=coupon.client_id,
                    type=RewardEvent.COUPON_USED,
                    coupon_code=coupon.code,
                    amount=discount,
                    appointment_id=appointment_id,
                    created_at=now,
                )
            )
        except StorageError:
            logger.exception("Failed to redeem coupon '%s'", code)
            return CouponRedemption.failed(CouponError.STORAGE, STORAGE_FAILURE_MESSAGE)

        logger.info("Coupon %s redeemed on appointment %s (discount %.2f)", coupon.code, appointment_id, discount)
        return CouponRedemption(success=True, discount=discount)

    # queries

    def _coupons(self) -> List[RewardCoupon]:
        try:
            return self._store.get_coupons()
        except StorageError:
            logger.exception("Failed to read reward coupons")
            return []

    def get_client_coupons(self, client_id: str) -> List[RewardCoupon]:
        return [c for c in self._coupons() if c.client_id == client_id]

    def get_client_available_coupons(self, client_id: str) -> List[RewardCoupon]:
        now = self._clock()
        return [c for c in self.get_client_coupons(client_id) if c.is_available(now)]

    def get_reward_history(self, client_id: Optional[str] = None) -> List[RewardHistory]:
        """History rows, newest first."""
        try:
            history = self._store.get_history()
        except StorageError:
            logger.exception("Failed to read reward history")
            return []
        if client_id is not None:
            history = [h for h in history if h.client_id == client_id]
        return list(reversed(history))
