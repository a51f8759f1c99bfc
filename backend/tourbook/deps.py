# backend/tourbook/deps.py
"""
FastAPI dependencies for the cache and lock backends.

Both are created once in the app lifespan and kept on app.state,
so tests can swap them without touching module globals.
"""

from fastapi import Request

from .services.availability import AvailabilityCache, LedgerLocks


def get_cache(request: Request) -> AvailabilityCache | None:
    return getattr(request.app.state, "availability_cache", None)


def get_locks(request: Request) -> LedgerLocks:
    return request.app.state.ledger_locks
