from typing import Any, Dict, Optional

from fastapi import HTTPException
from pydantic import ValidationError

from app.models.common import Lifecycle
from app.repositories.base import CollectionRepository, describe_validation_error


def get_visible(repository: CollectionRepository, entity_id: str, detail: str):
    """Entity by id, 404 when unknown or soft-deleted."""
    entity = repository.get_by_id(entity_id)
    if entity is None or getattr(entity, "lifecycle", None) is Lifecycle.DELETED:
        raise HTTPException(status_code=404, detail=detail)
    return entity


def apply_changes(entity, changes: Dict[str, Any]):
    """Validated copy of ``entity`` with ``changes`` (snake_case) applied.

    ``is_active`` toggles the lifecycle between active and inactive.
    """
    changes = dict(changes)
    is_active: Optional[bool] = changes.pop("is_active", None)
    if is_active is not None:
        changes["lifecycle"] = Lifecycle.ACTIVE if is_active else Lifecycle.INACTIVE
    try:
        return type(entity).model_validate({**entity.model_dump(), **changes})
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=describe_validation_error(exc))


def dump(items):
    return [item.to_storage() for item in items]
