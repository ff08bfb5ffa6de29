"""Base model and helpers shared by every persisted entity.

Entities are stored as JSON text with camelCase keys so that records written
by the original single-tenant application keep loading.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, computed_field, model_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Lifecycle(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DELETED = "deleted"


class LifecycleModel(CamelModel):
    """Entity that is soft-deleted through its lifecycle state.

    ``isActive`` is derived and still emitted for older readers; records that
    only carry the legacy boolean load as active/inactive.
    """

    lifecycle: Lifecycle = Lifecycle.ACTIVE

    @model_validator(mode="before")
    @classmethod
    def _lifecycle_from_legacy_flag(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "lifecycle" in data:
            return data
        for key in ("isActive", "is_active"):
            if key in data:
                data = dict(data)
                data["lifecycle"] = Lifecycle.INACTIVE if data.pop(key) is False else Lifecycle.ACTIVE
                break
        return data

    @computed_field(alias="isActive")
    @property
    def is_active(self) -> bool:
        return self.lifecycle is Lifecycle.ACTIVE


class Entity(CamelModel):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LifecycleEntity(LifecycleModel):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FieldChange(CamelModel):
    id: str
    entity_id: str
    field: str
    old_value: Any = None
    new_value: Any = None
    updated_by: str
    updated_at: datetime


class PriceChange(CamelModel):
    id: str
    entity_id: str
    old_price: float
    new_price: float
    changed_by: str
    changed_at: datetime
