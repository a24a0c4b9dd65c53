"""
Exceptions raised by the reconciliation engine.

Every error is terminal to the current reconciliation call. Nothing is
retried internally; callers re-run the whole pipeline against a fresh
snapshot.
"""

from typing import Iterable, Optional

from .models import Key


class ReconciliationError(Exception):
    """Base class for reconciliation failures."""


class DuplicateIdentityError(ReconciliationError):
    """An itinerary contains two points sharing one identity."""

    def __init__(self, point_id: Key, itinerary_id: Optional[Key] = None):
        self.point_id = point_id
        self.itinerary_id = itinerary_id
        where = f" in itinerary {itinerary_id!r}" if itinerary_id is not None else ""
        super().__init__(f"Duplicate point identity {point_id!r}{where}")


class OrphanVisitRecordError(ReconciliationError):
    """Visit records reference points absent from both itineraries."""

    def __init__(self, record_ids: Iterable[Key]):
        self.record_ids = list(record_ids)
        super().__init__(
            f"{len(self.record_ids)} visit record(s) reference points in "
            f"neither the old nor the new itinerary: {self.record_ids!r}"
        )


class ItineraryNotFoundError(ReconciliationError):
    """The itinerary source has no template with this identity."""

    def __init__(self, itinerary_id: Key):
        self.itinerary_id = itinerary_id
        super().__init__(f"Itinerary {itinerary_id!r} not found")


class StoreFailureError(ReconciliationError):
    """The trip/visit-record store failed; no partial mutation is visible."""


class ItineraryLockTimeoutError(StoreFailureError):
    """The per-itinerary lock could not be acquired in time."""

    def __init__(self, itinerary_id: Key, timeout: float):
        self.itinerary_id = itinerary_id
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout}s waiting for lock on itinerary {itinerary_id!r}"
        )
