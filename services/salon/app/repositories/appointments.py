from __future__ import annotations

import logging
from datetime import date, time
from typing import Callable, Iterable, List, Optional, Union

from app.core import storage_keys
from app.core.scope import TenantScope
from app.models.common import FieldChange, new_id, utcnow
from app.models.salon import OPEN_STATUSES, Appointment, AppointmentStatus, StatusChange
from app.repositories.base import STORAGE_FAILURE_MESSAGE, CollectionRepository
from shared.kvstore import KeyValueStore, StorageError
from shared.messaging import ChangeBus
from shared.results import STORAGE, OperationResult

logger = logging.getLogger(__name__)


def parse_status(value: Union[str, AppointmentStatus]) -> Optional[AppointmentStatus]:
    try:
        return AppointmentStatus(value)
    except ValueError:
        return None


class AppointmentRepository(CollectionRepository[Appointment]):
    """Appointments of one tenant.

    Status only changes through :meth:`update_status` and the bulk helpers,
    which append to ``statusHistory``. Every transition to ``completed`` is
    published on :attr:`completions`.
    """

    model = Appointment
    label = "Appointment"
    storage_key = storage_keys.APPOINTMENTS
    update_log_key = storage_keys.APPOINTMENT_UPDATES

    def __init__(
        self,
        store: KeyValueStore,
        scope: TenantScope,
        *,
        completions: Optional[ChangeBus[Appointment]] = None,
        clock: Callable = utcnow,
    ) -> None:
        super().__init__(store, scope, clock=clock)
        self.completions: ChangeBus[Appointment] = completions if completions is not None else ChangeBus("appointment-completions")

    def validate(self, entity: Appointment) -> Optional[str]:
        if not entity.client_id:
            return "Appointment needs a client"
        if entity.total_price < 0:
            return "Total price cannot be negative"
        if entity.discount is not None and entity.discount < 0:
            return "Discount cannot be negative"
        return None

    def _check_update(self, previous: Appointment, entity: Appointment) -> Optional[str]:
        if previous.status != entity.status:
            return "Status changes must go through update_status"
        return None

    def _merge_update(self, previous: Appointment, entity: Appointment) -> Appointment:
        return entity.model_copy(update={"status_history": previous.status_history})

    # queries

    def get_by_date(self, day: date) -> List[Appointment]:
        return [a for a in self.get_all() if a.date == day]

    def get_by_client(self, client_id: str) -> List[Appointment]:
        return [a for a in self.get_all() if a.client_id == client_id]

    def get_by_staff(self, staff_id: str) -> List[Appointment]:
        return [a for a in self.get_all() if a.staff_id == staff_id]

    def find_conflicts(
        self,
        staff_id: str,
        day: date,
        slot: time,
        ignore_id: Optional[str] = None,
    ) -> List[Appointment]:
        return [
            a
            for a in self.get_all()
            if a.staff_id == staff_id
            and a.date == day
            and a.time == slot
            and a.status in OPEN_STATUSES
            and a.id != ignore_id
        ]

    # status

    def update_status(
        self,
        appointment_id: str,
        new_status: Union[str, AppointmentStatus],
        actor: str = "system",
        reason: Optional[str] = None,
    ) -> bool:
        status = parse_status(new_status)
        if status is None:
            logger.warning("Rejected unknown appointment status %r", new_status)
            return False
        result = self._transition([appointment_id], status, actor, reason)
        if not result.success:
            return False
        if result.data:
            return True
        # unknown id, or already in that status
        return self._has_status(appointment_id, status)

    def _has_status(self, appointment_id: str, status: AppointmentStatus) -> bool:
        appointment = self.get_by_id(appointment_id)
        return appointment is not None and appointment.status is status

    def bulk_update_status(
        self,
        appointment_ids: Iterable[str],
        new_status: Union[str, AppointmentStatus],
        actor: str = "system",
        reason: Optional[str] = None,
    ) -> OperationResult:
        status = parse_status(new_status)
        if status is None:
            return OperationResult.fail(f"Invalid status: {new_status}")
        return self._transition(list(appointment_ids), status, actor, reason)

    def _transition(
        self,
        appointment_ids: List[str],
        status: AppointmentStatus,
        actor: str,
        reason: Optional[str],
    ) -> OperationResult:
        wanted = set(appointment_ids)
        completed: List[Appointment] = []
        try:
            items = self._load()
            now = self._clock()
            log_rows = []
            for index, item in enumerate(items):
                if item.id not in wanted or item.status is status:
                    continue
                change = StatusChange(
                    id=new_id(),
                    previous_status=item.status,
                    new_status=status,
                    changed_by=actor,
                    changed_at=now,
                    reason=reason,
                )
                updated = item.model_copy(
                    update={
                        "status": status,
                        "status_history": [*item.status_history, change],
                        "updated_at": now,
                    }
                )
                items[index] = updated
                log_rows.append(self._log_row(item.id, "status", item.status.value, status.value, actor, now))
                if status is AppointmentStatus.COMPLETED:
                    completed.append(updated)
            if log_rows:
                self._persist(items)
                self._storage.append_capped(self.update_log_key, log_rows, self.update_log_limit)
        except StorageError:
            logger.exception("Status update to '%s' failed under '%s'", status.value, self.key)
            return OperationResult.fail(STORAGE_FAILURE_MESSAGE, STORAGE)

        for appointment in completed:
            self.completions.publish(appointment)
        return OperationResult.ok(f"{len(log_rows)} appointments updated", data=len(log_rows))

    def reassign_staff(self, appointment_ids: Iterable[str], staff_id: str, actor: str = "system") -> OperationResult:
        wanted = set(appointment_ids)
        try:
            items = self._load()
            now = self._clock()
            log_rows = []
            for index, item in enumerate(items):
                if item.id not in wanted or item.staff_id == staff_id:
                    continue
                items[index] = item.model_copy(update={"staff_id": staff_id, "updated_at": now})
                log_rows.append(self._log_row(item.id, "staffId", item.staff_id, staff_id, actor, now))
            if log_rows:
                self._persist(items)
                self._storage.append_capped(self.update_log_key, log_rows, self.update_log_limit)
        except StorageError:
            logger.exception("Staff reassignment failed under '%s'", self.key)
            return OperationResult.fail(STORAGE_FAILURE_MESSAGE, STORAGE)
        return OperationResult.ok(f"{len(log_rows)} appointments reassigned", data=len(log_rows))

    def apply_discount(self, appointment_id: str, code: str, discount: float, actor: str = "system") -> bool:
        appointment = self.get_by_id(appointment_id)
        if appointment is None:
            return False
        updated = appointment.model_copy(update={"discount": discount, "coupon_code": code})
        return self.save(updated, actor).success

    @staticmethod
    def _log_row(entity_id, field, old, new, actor, when) -> dict:
        return FieldChange(
            id=new_id(),
            entity_id=entity_id,
            field=field,
            old_value=old,
            new_value=new,
            updated_by=actor,
            updated_at=when,
        ).to_storage()
