"""Keeps appointments consistent with the staff roster.

Removing or deactivating a staff member who still has upcoming work
requires a remediation: cancel those appointments or hand them to another
active staff member. Bulk changes are applied in a single write.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.models.common import Lifecycle, utcnow
from app.models.salon import OPEN_STATUSES, Appointment, AppointmentStatus, StaffMember
from app.repositories.appointments import AppointmentRepository
from app.repositories.staff import StaffRepository
from shared.results import INTEGRITY, NOT_FOUND, STORAGE, OperationResult

logger = logging.getLogger(__name__)

CANCEL = "cancel"
REASSIGN = "reassign"
ACTIONS = (CANCEL, REASSIGN)

DEFAULT_TIME_ZONE = "America/Tijuana"


def resolve_time_zone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or DEFAULT_TIME_ZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r, falling back to %s", name, DEFAULT_TIME_ZONE)
        return ZoneInfo(DEFAULT_TIME_ZONE)


class StaffIntegrityGuard:
    def __init__(
        self,
        staff: StaffRepository,
        appointments: AppointmentRepository,
        *,
        time_zone: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._staff = staff
        self._appointments = appointments
        self._tz = resolve_time_zone(time_zone)
        self._clock = clock

    def get_all_appointments_for_staff(self, staff_id: str) -> List[Appointment]:
        return self._appointments.get_by_staff(staff_id)

    def get_future_appointments_for_staff(self, staff_id: str) -> List[Appointment]:
        """Pending or confirmed appointments starting after now, in the business time zone."""
        now = self._clock().astimezone(self._tz)
        return [
            appointment
            for appointment in self._appointments.get_by_staff(staff_id)
            if appointment.status in OPEN_STATUSES and appointment.starts_at(self._tz) > now
        ]

    def handle_staff_deletion(
        self,
        staff: StaffMember,
        action: Optional[str] = None,
        reassign_to_staff_id: Optional[str] = None,
        actor: str = "system",
        reason: Optional[str] = None,
    ) -> OperationResult:
        future = self.get_future_appointments_for_staff(staff.id)
        if not future:
            return OperationResult.ok("No future appointments affected", data=0)

        ids = [appointment.id for appointment in future]
        if action is None:
            return OperationResult.fail(
                f"{staff.name} has {len(ids)} future appointments; choose to cancel or reassign them",
                INTEGRITY,
            )
        if action == CANCEL:
            result = self._appointments.bulk_update_status(
                ids,
                AppointmentStatus.CANCELLED,
                actor,
                reason or f"Staff member {staff.name} removed",
            )
            if result.success:
                logger.info("Cancelled %s appointments of staff %s", result.data, staff.id)
            return result
        if action == REASSIGN:
            error = self._check_reassign_target(staff, reassign_to_staff_id)
            if error:
                return OperationResult.fail(error)
            result = self._appointments.reassign_staff(ids, reassign_to_staff_id, actor)
            if result.success:
                logger.info("Reassigned %s appointments from %s to %s", result.data, staff.id, reassign_to_staff_id)
            return result
        return OperationResult.fail(f"Unknown action '{action}', expected one of {', '.join(ACTIONS)}")

    def _check_reassign_target(self, staff: StaffMember, target_id: Optional[str]) -> Optional[str]:
        if not target_id:
            return "Choose a staff member to reassign the appointments to"
        if target_id == staff.id:
            return "Appointments cannot be reassigned to the staff member being removed"
        target = next((s for s in self._staff.get_all(force_refresh=True) if s.id == target_id), None)
        if target is None:
            return "Target staff member not found"
        if target.lifecycle is not Lifecycle.ACTIVE:
            return f"{target.name} is not active"
        return None

    def handle_staff_update(
        self,
        old_staff: StaffMember,
        new_staff: StaffMember,
        actor: str = "system",
    ) -> OperationResult:
        deactivated = old_staff.lifecycle is Lifecycle.ACTIVE and new_staff.lifecycle is not Lifecycle.ACTIVE
        if not deactivated:
            return OperationResult.ok("No appointments affected", data=0)
        return self.handle_staff_deletion(
            new_staff,
            CANCEL,
            actor=actor,
            reason=f"Staff member {new_staff.name} deactivated",
        )

    def cleanup_orphaned_appointments(self, current_staff: Iterable[StaffMember], actor: str = "system") -> int:
        """Cancel open appointments whose staff is not in ``current_staff``."""
        roster = {member.id for member in current_staff}
        orphans = [
            appointment.id
            for appointment in self._appointments.get_all()
            if appointment.staff_id
            and appointment.staff_id not in roster
            and appointment.status in OPEN_STATUSES
        ]
        if not orphans:
            return 0
        result = self._appointments.bulk_update_status(
            orphans,
            AppointmentStatus.CANCELLED,
            actor,
            "Staff member no longer available",
        )
        return (result.data or 0) if result.success else 0

    def delete_staff(
        self,
        staff_id: str,
        action: Optional[str] = None,
        reassign_to_staff_id: Optional[str] = None,
        actor: str = "system",
    ) -> OperationResult:
        staff = self._staff.get_by_id(staff_id)
        if staff is None or staff.lifecycle is Lifecycle.DELETED:
            return OperationResult.fail("Staff member not found", NOT_FOUND)

        guard = self.handle_staff_deletion(staff, action, reassign_to_staff_id, actor)
        if not guard.success:
            return guard
        if not self._staff.delete(staff_id, actor):
            return OperationResult.fail("Could not delete the staff member", STORAGE)
        return OperationResult.ok(f"{staff.name} removed", data=guard.data)

    def update_staff(self, staff: StaffMember, actor: str = "system") -> OperationResult:
        error = self._staff.validate(staff)
        if error:
            return OperationResult.fail(error)
        previous = self._staff.get_by_id(staff.id)
        if previous is not None:
            guard = self.handle_staff_update(previous, staff, actor)
            if not guard.success:
                return guard
        return self._staff.save(staff, actor)
