"""Wiring of the reconciliation engine to application settings and database."""

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, settings as default_settings
from src.pattern_reconciler import ItineraryLockRegistry, ReconciliationEngine
from src.pattern_reconciler.sql_store import SqlVisitRecordStore

# Shared so that every engine built in this process serializes on the same locks
_locks: Optional[ItineraryLockRegistry] = None


def get_lock_registry(settings: Settings = default_settings) -> ItineraryLockRegistry:
    """
    Process-wide per-itinerary lock registry.

    Created on first use with the timeout of the settings passed then.

    Raises:
        ValueError: If later settings ask for a different lock timeout
    """
    global _locks
    timeout = settings.reconcile_lock_timeout_seconds
    if _locks is None:
        _locks = ItineraryLockRegistry(timeout=timeout)
    elif _locks.timeout != timeout:
        raise ValueError(
            f"Lock registry already uses a {_locks.timeout}s timeout, not {timeout}s"
        )
    return _locks


def build_engine(
    session_factory: Optional[Callable[[], AsyncSession]] = None,
    settings: Settings = default_settings,
) -> ReconciliationEngine:
    """
    Build a reconciliation engine backed by the SQL store.

    Args:
        session_factory: Session factory (defaults to the application database)
        settings: Application settings

    Returns:
        ReconciliationEngine sharing the process-wide lock registry
    """
    if session_factory is None:
        from app.database import async_session_factory
        session_factory = async_session_factory

    store = SqlVisitRecordStore(session_factory)
    return ReconciliationEngine(store, locks=get_lock_registry(settings))
