from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from app.models.common import new_id, utcnow
from app.models.salon import WEEKDAYS, AppointmentStatus, NotificationRecord
from app.models.tenant import Tenant
from app.repositories.appointments import AppointmentRepository
from app.repositories.catalog import ServiceRepository
from app.repositories.clients import ClientRepository
from app.repositories.notifications import NotificationLedger
from app.repositories.settings import SalonSettingsRepository
from app.repositories.staff import StaffRepository
from app.schemas.salon_schema import BookingRequest
from app.services.notifications import NotificationOutcome, Notifier, NullNotifier
from app.services.rewards import RewardEngine
from app.services.staff_integrity import resolve_time_zone
from shared.results import CONFLICT, OperationResult

logger = logging.getLogger(__name__)


class BookingService:
    """Client booking: services, staff and slot checks, then hand-off.

    The notifier runs after the appointment is stored; whatever happens there
    is only recorded in the ledger.
    """

    def __init__(
        self,
        tenant: Optional[Tenant],
        *,
        clients: ClientRepository,
        appointments: AppointmentRepository,
        services: ServiceRepository,
        staff: StaffRepository,
        rewards: RewardEngine,
        ledger: NotificationLedger,
        settings: Optional[SalonSettingsRepository] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable = utcnow,
    ) -> None:
        self._tenant = tenant
        self._clients = clients
        self._appointments = appointments
        self._services = services
        self._staff = staff
        self._rewards = rewards
        self._ledger = ledger
        self._settings = settings
        self._notifier = notifier or NullNotifier()
        self._clock = clock

    def _initial_status(self) -> AppointmentStatus:
        if self._tenant is not None and self._tenant.settings.require_approval:
            return AppointmentStatus.PENDING
        return AppointmentStatus.CONFIRMED

    def book(self, request: BookingRequest, actor: str = "client") -> OperationResult:
        if self._tenant is not None and not self._tenant.settings.allow_online_booking:
            return OperationResult.fail("Online booking is not available for this business")

        services = self._services.get_many(request.service_ids)
        active_ids = {s.id for s in services if s.is_active}
        missing = [service_id for service_id in request.service_ids if service_id not in active_ids]
        if missing:
            return OperationResult.fail(f"Services not available: {', '.join(missing)}")

        error = self._check_schedule(request)
        if error:
            return OperationResult.fail(error)

        if request.staff_id:
            error = self._check_staff(request, [s.category for s in services])
            if error:
                return OperationResult.fail(error)
            if self._appointments.find_conflicts(request.staff_id, request.date, request.time):
                return OperationResult.fail("The selected staff member already has an appointment at that time", CONFLICT)

        client_result = self._clients.get_or_create(request.full_name, request.phone, request.email, actor)
        if not client_result.success:
            return client_result
        client = client_result.data

        coupon_code = (request.coupon_code or "").strip().upper() or None
        if coupon_code:
            available = {c.code.upper() for c in self._rewards.get_client_available_coupons(client.id)}
            if coupon_code not in available:
                return OperationResult.fail("Coupon is not available for this client")

        created = self._appointments.create(
            {
                "client_id": client.id,
                "staff_id": request.staff_id,
                "service_ids": list(request.service_ids),
                "date": request.date,
                "time": request.time,
                "total_price": round(sum(s.price for s in services), 2),
                "status": self._initial_status(),
                "notes": request.notes,
            },
            actor,
        )
        if not created.success:
            return created
        appointment = created.data

        if coupon_code:
            redemption = self._rewards.use_reward_coupon(coupon_code, appointment.id)
            if redemption.success:
                appointment = self._appointments.get_by_id(appointment.id) or appointment
            else:
                logger.warning("Coupon %s not applied to %s: %s", coupon_code, appointment.id, redemption.error)

        self._notify(client, appointment, services)
        logger.info("Appointment %s booked for client %s", appointment.id, client.id)
        return OperationResult.ok("Appointment booked", data=appointment)

    def _check_schedule(self, request: BookingRequest) -> Optional[str]:
        """Refuse past slots and slots outside the business opening hours."""
        time_zone = self._tenant.settings.time_zone if self._tenant is not None else None
        tz = resolve_time_zone(time_zone)
        now = self._clock().astimezone(tz)
        if request.date < now.date():
            return "Appointments cannot be booked on past dates"
        if datetime.combine(request.date, request.time, tzinfo=tz) <= now:
            return "Appointments cannot be booked at a time that has already passed"

        if self._settings is None:
            return None
        weekday = WEEKDAYS[request.date.weekday()]
        hours = self._settings.get().hours.get(weekday)
        if hours is None or not hours.is_open:
            return f"The business is closed on {weekday}"
        if not hours.covers(request.time):
            return f"The business is open from {hours.open} to {hours.close} on {weekday}"
        return None

    def _check_staff(self, request: BookingRequest, categories: List[str]) -> Optional[str]:
        member = next((s for s in self._staff.get_active() if s.id == request.staff_id), None)
        if member is None:
            return "Selected staff member is not available"
        if member.specialties and not set(categories).intersection(member.specialties):
            return f"{member.name} does not perform the selected services"
        weekday = WEEKDAYS[request.date.weekday()]
        if not self._staff.is_available_on_day(member.id, weekday):
            return f"{member.name} does not work on {weekday}"
        return None

    def _notify(self, client, appointment, services) -> None:
        try:
            outcome = self._notifier.notify(self._tenant, client, appointment, services)
        except Exception as exc:
            logger.exception("Notifier failed for appointment %s", appointment.id)
            outcome = NotificationOutcome(False, getattr(self._notifier, "channel", "unknown"), str(exc))
        self._ledger.record(
            NotificationRecord(
                id=new_id(),
                appointment_id=appointment.id,
                client_id=client.id,
                channel=outcome.channel,
                success=outcome.success,
                message=outcome.message,
                created_at=self._clock(),
            )
        )
