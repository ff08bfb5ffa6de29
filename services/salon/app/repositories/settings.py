from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from app.core import storage_keys
from app.core.scope import TenantScope
from app.models.common import new_id, utcnow
from app.models.salon import SalonSettings, SettingsChange
from app.models.tenant import Tenant
from app.repositories.base import STORAGE_FAILURE_MESSAGE, ScopedStorage, describe_validation_error
from app.repositories.clients import normalize_phone
from shared.kvstore import KeyValueStore, StorageError
from shared.messaging import ChangeBus
from shared.results import STORAGE, OperationResult

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_SALON_NAME = 50
MAX_SALON_MOTTO = 100
HISTORY_LIMIT = 50

_ALIASES = {name: field.alias or name for name, field in SalonSettings.model_fields.items()}
_READ_ONLY = {"id", "updatedAt", "updatedBy"}


def sanitize(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().replace("<", "").replace(">", "")
    return value


def validate_settings_changes(changes: Dict[str, Any]) -> Optional[str]:
    """Return the first problem with already sanitized ``changes``."""
    if "salonName" in changes:
        name = changes["salonName"] or ""
        if not name:
            return "Salon name is required"
        if len(name) > MAX_SALON_NAME:
            return f"Salon name cannot exceed {MAX_SALON_NAME} characters"
    if "salonMotto" in changes:
        motto = changes["salonMotto"] or ""
        if not motto:
            return "Salon motto is required"
        if len(motto) > MAX_SALON_MOTTO:
            return f"Salon motto cannot exceed {MAX_SALON_MOTTO} characters"
    email = changes.get("email")
    if email and not EMAIL_PATTERN.match(email):
        return "Email format is not valid"
    phone = changes.get("phone")
    if phone and len(normalize_phone(phone)) < 10:
        return "Phone number must have at least 10 digits"
    return None


class SalonSettingsRepository:
    """Business profile of one tenant, with a change history.

    Successful saves are published on :attr:`changes` so that every open
    view (and :class:`app.services.storage_sync.StorageSync` in other
    processes) sees the new values.
    """

    def __init__(
        self,
        store: KeyValueStore,
        scope: TenantScope,
        *,
        tenant: Optional[Tenant] = None,
        changes: Optional[ChangeBus[SalonSettings]] = None,
        clock: Callable = utcnow,
    ) -> None:
        self._storage = ScopedStorage(store, scope)
        self._tenant = tenant
        self._clock = clock
        self.changes: ChangeBus[SalonSettings] = changes if changes is not None else ChangeBus("salon-settings")

    @property
    def scope(self) -> TenantScope:
        return self._storage.scope

    @property
    def key(self) -> str:
        return self._storage.scope.scoped_key(storage_keys.SETTINGS)

    def defaults(self) -> SalonSettings:
        settings = SalonSettings()
        if self._tenant is not None:
            settings = settings.model_copy(
                update={
                    "salon_name": self._tenant.name[:MAX_SALON_NAME],
                    "salon_motto": (self._tenant.description or settings.salon_motto)[:MAX_SALON_MOTTO],
                }
            )
        return settings

    def _load(self) -> SalonSettings:
        data = self._storage.read_json(storage_keys.SETTINGS)
        if not isinstance(data, dict):
            return self.defaults()
        merged = {**self.defaults().to_storage(), **data}
        try:
            return SalonSettings.model_validate(merged)
        except ValidationError as exc:
            logger.warning("Invalid settings under '%s', using defaults: %s", self.key, exc)
            return self.defaults()

    def get(self) -> SalonSettings:
        try:
            return self._load()
        except StorageError:
            logger.exception("Failed to read '%s'", self.key)
            return self.defaults()

    def initialize(self) -> SalonSettings:
        """Persist the tenant defaults unless settings already exist.

        Raises:
            StorageError: the backend could not be written
        """
        if self._storage.read_text(storage_keys.SETTINGS):
            return self._load()
        settings = self.defaults().model_copy(update={"updated_at": self._clock()})
        self._storage.write_json(storage_keys.SETTINGS, settings.to_storage())
        return settings

    def save(self, changes: Dict[str, Any], actor: str = "system") -> OperationResult:
        normalized: Dict[str, Any] = {}
        for key, value in changes.items():
            alias = _ALIASES.get(key, key)
            if alias not in _ALIASES.values() or alias in _READ_ONLY:
                logger.debug("Ignoring settings field %r", key)
                continue
            normalized[alias] = sanitize(value)

        error = validate_settings_changes(normalized)
        if error:
            return OperationResult.fail(error)

        try:
            current = self._load()
            now = self._clock()
            payload = {**current.to_storage(), **normalized, "updatedAt": now, "updatedBy": actor}
            try:
                updated = SalonSettings.model_validate(payload)
            except ValidationError as exc:
                return OperationResult.fail(describe_validation_error(exc))

            diff = self._diff(current, updated)
            self._storage.write_json(storage_keys.SETTINGS, updated.to_storage())
            if diff:
                row = SettingsChange(id=new_id(), timestamp=now, updated_by=actor, changes=diff)
                self._storage.append_capped(storage_keys.SETTINGS_HISTORY, [row.to_storage()], HISTORY_LIMIT)
        except StorageError:
            logger.exception("Failed to save settings under '%s'", self.key)
            return OperationResult.fail(STORAGE_FAILURE_MESSAGE, STORAGE)

        logger.info("Salon settings updated by %s (%d fields)", actor, len(diff))
        self.changes.publish(updated)
        return OperationResult.ok("Settings saved", data=updated)

    @staticmethod
    def _diff(old: SalonSettings, new: SalonSettings) -> Dict[str, Dict[str, Any]]:
        before = old.to_storage()
        after = new.to_storage()
        return {
            field: {"from": before.get(field), "to": value}
            for field, value in after.items()
            if field not in _READ_ONLY and before.get(field) != value
        }

    def get_history(self) -> List[SettingsChange]:
        """Settings changes, newest first."""
        try:
            rows = self._storage.read_list(storage_keys.SETTINGS_HISTORY)
        except StorageError:
            logger.exception("Failed to read settings history")
            return []
        return [SettingsChange.model_validate(row) for row in reversed(rows)]
