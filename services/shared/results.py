"""Result objects returned by mutating operations.

Mutations never raise validation, conflict or storage problems across the
repository boundary; they return a result the caller can render directly.
``code`` classifies failures so the HTTP layer can pick a status code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

# failure codes
VALIDATION = "validation"
CONFLICT = "conflict"
INTEGRITY = "integrity"
NOT_FOUND = "not_found"
STORAGE = "storage"


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    data: Optional[T] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, message: Optional[str] = None, data: Any = None) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, error: str, code: str = VALIDATION) -> "OperationResult":
        return cls(success=False, error=error, message=error, code=code)

    def __bool__(self) -> bool:
        return self.success

    def as_dict(self) -> dict:
        payload = {"success": self.success}
        if self.message is not None:
            payload["message"] = self.message
        if self.error is not None:
            payload["error"] = self.error
        if self.code is not None:
            payload["code"] = self.code
        return payload
