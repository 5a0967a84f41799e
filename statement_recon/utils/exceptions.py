"""Common exception utilities for FastAPI routers."""

from typing import NoReturn

from fastapi import HTTPException, status

from statement_recon.services.exceptions import (
    DuplicateImportError,
    InvalidTransitionError,
    NotFoundError,
    PaymentAlreadyLinkedError,
    ReconciliationError,
)


def raise_bad_request(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    ) from cause


def raise_unauthorized(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
    ) from cause


def http_error_for(exc: ReconciliationError) -> HTTPException:
    """Return the HTTP error matching a domain error raised by the services."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{exc.resource} not found")
    if isinstance(exc, (DuplicateImportError, InvalidTransitionError, PaymentAlreadyLinkedError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def raise_for_reconciliation_error(exc: ReconciliationError) -> NoReturn:
    raise http_error_for(exc) from exc
