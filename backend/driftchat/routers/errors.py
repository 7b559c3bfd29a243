"""Map relay errors onto HTTP responses."""

from fastapi import HTTPException

from driftchat.services.errors import (
    LinkExpiredError,
    MessageValidationError,
    NotFoundError,
    RelayError,
    TransientStoreError,
)


def http_error(exc: RelayError) -> HTTPException:
    if isinstance(exc, LinkExpiredError):
        return HTTPException(status_code=410, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, MessageValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, TransientStoreError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=500, detail="Server error")
