from __future__ import annotations

import logging
from typing import List, Optional

from app.core import storage_keys
from app.core.scope import TenantScope
from app.models.salon import NotificationRecord
from app.repositories.base import ScopedStorage
from shared.kvstore import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

LEDGER_LIMIT = 200


class NotificationLedger:
    """Outcome of every notification hand-off, last 200 kept."""

    def __init__(self, store: KeyValueStore, scope: TenantScope) -> None:
        self._storage = ScopedStorage(store, scope)

    def record(self, entry: NotificationRecord) -> bool:
        try:
            self._storage.append_capped(storage_keys.NOTIFICATIONS, [entry.to_storage()], LEDGER_LIMIT)
        except StorageError:
            logger.exception("Failed to record notification for appointment '%s'", entry.appointment_id)
            return False
        return True

    def get_all(self, appointment_id: Optional[str] = None) -> List[NotificationRecord]:
        """Newest first."""
        try:
            rows = self._storage.read_list(storage_keys.NOTIFICATIONS)
        except StorageError:
            logger.exception("Failed to read the notification ledger")
            return []
        records = [NotificationRecord.model_validate(row) for row in reversed(rows)]
        if appointment_id is not None:
            records = [r for r in records if r.appointment_id == appointment_id]
        return records
