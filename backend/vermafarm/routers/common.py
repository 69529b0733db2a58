from fastapi import HTTPException

from vermafarm.services.errors import (
    StoreAuthenticationError,
    StoreAuthorizationError,
    StoreConflictError,
    StoreError,
    StoreInvalidStateError,
    StoreNotFoundError,
    StoreValidationError,
)


def raise_store_http_error(exc: StoreError) -> None:
    if isinstance(exc, StoreNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, StoreAuthenticationError):
        raise HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, StoreAuthorizationError):
        raise HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, StoreConflictError):
        raise HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (StoreValidationError, StoreInvalidStateError)):
        raise HTTPException(status_code=400, detail=str(exc))
    raise HTTPException(status_code=500, detail="Server error")
