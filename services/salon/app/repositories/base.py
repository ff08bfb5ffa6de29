"""Collection repositories over the tenant-scoped key-value store.

A collection is one JSON array stored under ``scope.scoped_key(storage_key)``.
Every ``save`` reads the whole collection, mutates it in memory and writes it
back in a single ``set``; concurrent writers of the same tenant are
last-write-wins.

Mutations return :class:`shared.results.OperationResult` and never raise:
validation problems come back as a failed result with the reason, storage
failures are logged and reported with a generic message.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.core.scope import TenantScope
from app.models.common import (
    FieldChange,
    Lifecycle,
    LifecycleEntity,
    PriceChange,
    new_id,
    utcnow,
)
from shared.kvstore import KeyValueStore, StorageError
from shared.results import STORAGE, OperationResult

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

STORAGE_FAILURE_MESSAGE = "Could not save changes, please try again"

Change = Tuple[str, Any, Any]


def describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


class ScopedStorage:
    """JSON list/object access to the store through a tenant scope."""

    def __init__(self, store: KeyValueStore, scope: TenantScope) -> None:
        self.store = store
        self.scope = scope

    def read_text(self, base_key: str) -> Optional[str]:
        return self.store.get(self.scope.scoped_key(base_key))

    def write_text(self, base_key: str, value: str) -> None:
        self.store.set(self.scope.scoped_key(base_key), value)

    def read_json(self, base_key: str) -> Any:
        """Return the decoded value, or None when unset or corrupt.

        Raises:
            StorageError: the backend could not be read
        """
        key = self.scope.scoped_key(base_key)
        raw = self.store.get(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Corrupt JSON under '%s', reading it as empty", key)
            return None

    def write_json(self, base_key: str, value: Any) -> None:
        self.store.set(self.scope.scoped_key(base_key), json.dumps(value))

    def read_list(self, base_key: str) -> List[dict]:
        data = self.read_json(base_key)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning("Expected a list under '%s', got %s", self.scope.scoped_key(base_key), type(data).__name__)
            return []
        return data

    def append_capped(self, base_key: str, rows: List[dict], limit: int) -> None:
        if not rows:
            return
        existing = self.read_list(base_key)
        existing.extend(rows)
        self.write_json(base_key, existing[-limit:])


class CollectionRepository(Generic[M]):
    """Upsert-by-id repository for one entity collection.

    Subclasses set ``model`` and ``storage_key``; setting ``update_log_key``
    records one :class:`FieldChange` per changed field on update, and
    ``price_history_key`` + ``price_field`` one :class:`PriceChange` per
    price change.
    """

    model: Type[M]
    storage_key: str
    label: str = "Record"
    update_log_key: Optional[str] = None
    price_history_key: Optional[str] = None
    price_field: Optional[str] = None
    update_log_limit = 100
    price_history_limit = 200
    untracked_fields = frozenset({"id", "createdAt", "updatedAt", "lifecycle", "statusHistory"})

    def __init__(
        self,
        store: KeyValueStore,
        scope: TenantScope,
        *,
        clock: Callable[[], Any] = utcnow,
    ) -> None:
        self._storage = ScopedStorage(store, scope)
        self._clock = clock

    @property
    def scope(self) -> TenantScope:
        return self._storage.scope

    @property
    def key(self) -> str:
        return self.scope.scoped_key(self.storage_key)

    # reads

    def _load(self) -> List[M]:
        items: List[M] = []
        for row in self._storage.read_list(self.storage_key):
            try:
                items.append(self.model.model_validate(row))
            except ValidationError as exc:
                logger.warning("Skipping invalid %s row under '%s': %s", self.label, self.key, exc)
        return items

    def _persist(self, items: List[M]) -> None:
        self._storage.write_json(self.storage_key, [item.to_storage() for item in items])

    def get_all(self) -> List[M]:
        try:
            return self._load()
        except StorageError:
            logger.exception("Failed to read '%s'", self.key)
            return []

    def get_by_id(self, entity_id: str) -> Optional[M]:
        return next((item for item in self.get_all() if item.id == entity_id), None)

    # hooks

    def validate(self, entity: M) -> Optional[str]:
        return None

    def _check_update(self, previous: M, entity: M) -> Optional[str]:
        return None

    def _merge_update(self, previous: M, entity: M) -> M:
        return entity

    def _after_save(self, entity: M, previous: Optional[M]) -> None:
        pass

    # writes

    def _diff(self, previous: M, current: M) -> List[Change]:
        old = previous.to_storage()
        new = current.to_storage()
        return [
            (field, old.get(field), value)
            for field, value in new.items()
            if field not in self.untracked_fields and old.get(field) != value
        ]

    def _record_changes(self, entity: M, changes: List[Change], actor: str, when) -> None:
        if self.update_log_key and changes:
            rows = [
                FieldChange(
                    id=new_id(),
                    entity_id=entity.id,
                    field=field,
                    old_value=old,
                    new_value=new,
                    updated_by=actor,
                    updated_at=when,
                ).to_storage()
                for field, old, new in changes
            ]
            self._storage.append_capped(self.update_log_key, rows, self.update_log_limit)
        if self.price_history_key and self.price_field:
            rows = [
                PriceChange(
                    id=new_id(),
                    entity_id=entity.id,
                    old_price=old,
                    new_price=new,
                    changed_by=actor,
                    changed_at=when,
                ).to_storage()
                for field, old, new in changes
                if field == self.price_field
            ]
            self._storage.append_capped(self.price_history_key, rows, self.price_history_limit)

    def save(self, entity: M, actor: str = "system") -> OperationResult:
        error = self.validate(entity)
        if error:
            return OperationResult.fail(error)

        previous: Optional[M] = None
        try:
            items = self._load()
            now = self._clock()
            index = next((i for i, item in enumerate(items) if item.id == entity.id), None)
            if index is None:
                entity = entity.model_copy(update={"created_at": entity.created_at or now, "updated_at": now})
                items.append(entity)
                changes: List[Change] = []
            else:
                previous = items[index]
                error = self._check_update(previous, entity)
                if error:
                    return OperationResult.fail(error)
                entity = self._merge_update(previous, entity)
                entity = entity.model_copy(update={"created_at": previous.created_at, "updated_at": now})
                items[index] = entity
                changes = self._diff(previous, entity)
            self._persist(items)
            self._record_changes(entity, changes, actor, now)
        except StorageError:
            logger.exception("Failed to save %s '%s' under '%s'", self.label, entity.id, self.key)
            return OperationResult.fail(STORAGE_FAILURE_MESSAGE, STORAGE)

        self._after_save(entity, previous)
        return OperationResult.ok(f"{self.label} saved", data=entity)

    def _prepare_new(self, data: dict) -> dict:
        payload = {k: v for k, v in data.items() if k not in ("id", "created_at", "createdAt", "updated_at", "updatedAt")}
        now = self._clock()
        payload.update(id=new_id(), created_at=now, updated_at=now)
        return payload

    def create(self, data: dict, actor: str = "system") -> OperationResult:
        try:
            entity = self.model.model_validate(self._prepare_new(data))
        except ValidationError as exc:
            return OperationResult.fail(describe_validation_error(exc))
        return self.save(entity, actor)

    # logs

    def get_update_log(self, entity_id: Optional[str] = None) -> List[FieldChange]:
        """Field changes, newest first."""
        if not self.update_log_key:
            return []
        return self._read_log(self.update_log_key, FieldChange, entity_id)

    def get_price_history(self, entity_id: Optional[str] = None) -> List[PriceChange]:
        """Price changes, newest first."""
        if not self.price_history_key:
            return []
        return self._read_log(self.price_history_key, PriceChange, entity_id)

    def _read_log(self, base_key: str, row_model, entity_id: Optional[str]):
        try:
            rows = self._storage.read_list(base_key)
        except StorageError:
            logger.exception("Failed to read '%s'", self.scope.scoped_key(base_key))
            return []
        entries = [row_model.model_validate(row) for row in rows]
        if entity_id is not None:
            entries = [entry for entry in entries if entry.entity_id == entity_id]
        return list(reversed(entries))


L = TypeVar("L", bound=LifecycleEntity)


class LifecycleRepository(CollectionRepository[L]):
    """Repository of soft-deletable entities."""

    def _prepare_new(self, data: dict) -> dict:
        payload = super()._prepare_new(data)
        payload.pop("isActive", None)
        payload.pop("is_active", None)
        payload["lifecycle"] = Lifecycle.ACTIVE
        return payload

    def get_active(self) -> List[L]:
        return [item for item in self.get_all() if item.lifecycle is Lifecycle.ACTIVE]

    def get_visible(self) -> List[L]:
        """Everything that was not deleted (active and inactive)."""
        return [item for item in self.get_all() if item.lifecycle is not Lifecycle.DELETED]

    def delete(self, entity_id: str, actor: str = "system") -> bool:
        entity = self.get_by_id(entity_id)
        if entity is None or entity.lifecycle is Lifecycle.DELETED:
            return False
        return self.save(entity.model_copy(update={"lifecycle": Lifecycle.DELETED}), actor).success
