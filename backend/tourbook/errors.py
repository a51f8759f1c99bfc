# backend/tourbook/errors.py
"""
Domain errors and their HTTP mapping.

Services raise these; routers stay thin and let the handlers registered
in main.py turn them into responses.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class TourbookError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(TourbookError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidInput(TourbookError):
    status_code = status.HTTP_400_BAD_REQUEST


class CapacityExceeded(TourbookError):
    """Slot no longer has room; the caller should re-query availability."""

    status_code = status.HTTP_409_CONFLICT


class SalesStopped(CapacityExceeded):
    """A stop-sale window covers the requested date/option."""


class Conflict(TourbookError):
    status_code = status.HTTP_409_CONFLICT


class Unavailable(TourbookError):
    """Data store unreachable or failing. Safe to retry the whole request."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class DataIntegrityAnomaly(Exception):
    """
    Internal only: stored counts contradict each other (e.g. booked > capacity).

    Logged, never sent to clients.
    """


# ──────────────────────────────────────────────────────────────────────────────
# Handlers
# ──────────────────────────────────────────────────────────────────────────────

async def _tourbook_error_handler(request: Request, exc: TourbookError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def _data_access_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Data access failed on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=Unavailable.status_code,
        content={"detail": "Service temporarily unavailable"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TourbookError, _tourbook_error_handler)
    app.add_exception_handler(SQLAlchemyError, _data_access_error_handler)
    app.add_exception_handler(RedisError, _data_access_error_handler)
