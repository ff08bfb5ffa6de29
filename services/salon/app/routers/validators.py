from fastapi import HTTPException, status

from shared.results import CONFLICT, INTEGRITY, NOT_FOUND, STORAGE, OperationResult

_STATUS_BY_CODE = {
    CONFLICT: status.HTTP_409_CONFLICT,
    INTEGRITY: status.HTTP_409_CONFLICT,
    NOT_FOUND: status.HTTP_404_NOT_FOUND,
    STORAGE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def ensure_success(result: OperationResult) -> OperationResult:
    """Raise the HTTP error matching a failed result, return it otherwise."""
    if not result.success:
        raise HTTPException(
            status_code=_STATUS_BY_CODE.get(result.code, status.HTTP_400_BAD_REQUEST),
            detail=result.error,
        )
    return result


def ensure_found(value, detail: str):
    if value is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    return value
