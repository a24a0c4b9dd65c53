"""Store protocols and in-memory implementation."""

from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Dict, List, Optional, Protocol, runtime_checkable

from .errors import ItineraryNotFoundError, StoreFailureError
from .models import Itinerary, Key, Trip, VisitRecord


@runtime_checkable
class ItinerarySource(Protocol):
    """Protocol for reading persisted itinerary templates."""

    async def get_itinerary(self, itinerary_id: Key) -> Itinerary:
        """Get an itinerary by ID. Raises ItineraryNotFoundError if missing."""
        ...


@runtime_checkable
class VisitRecordBatch(Protocol):
    """Reads and writes valid inside one store transaction."""

    async def list_trips(self, itinerary_id: Key) -> List[Trip]:
        """List trips bound to an itinerary as seen by this transaction."""
        ...

    async def delete_visit_record(self, record_id: Key) -> None:
        """Delete a visit record."""
        ...

    async def update_position(self, record_id: Key, position: int) -> None:
        """Rewrite the position of a visit record."""
        ...


@runtime_checkable
class VisitRecordStore(Protocol):
    """Protocol for trip and visit record storage."""

    async def list_trips(self, itinerary_id: Key) -> List[Trip]:
        """List trips bound to an itinerary, with their visit records."""
        ...

    def transaction(self, itinerary_id: Key) -> AsyncContextManager[VisitRecordBatch]:
        """
        Open an all-or-nothing write boundary for one itinerary.

        Writes become visible only when the context exits without error.
        """
        ...


class _StagedBatch:
    """Collects writes until the owning transaction commits."""

    def __init__(self, store: "InMemoryVisitRecordStore"):
        self._store = store
        self._records = store._records
        self.deleted: set[Key] = set()
        self.positions: Dict[Key, int] = {}

    async def list_trips(self, itinerary_id: Key) -> List[Trip]:
        """Committed trips; writes staged in this batch are not reflected."""
        return await self._store.list_trips(itinerary_id)

    def _require(self, record_id: Key) -> None:
        if record_id not in self._records or record_id in self.deleted:
            raise StoreFailureError(f"Visit record {record_id!r} does not exist")

    async def delete_visit_record(self, record_id: Key) -> None:
        self._require(record_id)
        self.deleted.add(record_id)
        self.positions.pop(record_id, None)

    async def update_position(self, record_id: Key, position: int) -> None:
        self._require(record_id)
        self.positions[record_id] = position


class InMemoryVisitRecordStore:
    """
    In-memory implementation of ItinerarySource and VisitRecordStore.

    Writes inside a transaction are staged and applied in one step when
    the context exits cleanly. An exception (or cancellation) discards
    them, so readers never observe a partially migrated fleet.
    """

    def __init__(
        self,
        itineraries: Optional[List[Itinerary]] = None,
        trips: Optional[List[Trip]] = None
    ):
        self._itineraries: Dict[Key, Itinerary] = {}
        self._trips: Dict[Key, Trip] = {}
        self._records: Dict[Key, VisitRecord] = {}

        for itinerary in itineraries or []:
            self.save_itinerary(itinerary)
        for trip in trips or []:
            self.save_trip(trip)

    def save_itinerary(self, itinerary: Itinerary) -> None:
        """Store or replace an itinerary template."""
        self._itineraries[itinerary.itinerary_id] = itinerary

    def save_trip(self, trip: Trip) -> None:
        """Store or replace a trip together with its visit records."""
        for record in self._trip_records(trip.trip_id):
            del self._records[record.record_id]
        self._trips[trip.trip_id] = trip.model_copy(update={"visit_records": ()})
        for record in trip.visit_records:
            self._records[record.record_id] = record

    def _trip_records(self, trip_id: Key) -> List[VisitRecord]:
        return [r for r in self._records.values() if r.trip_id == trip_id]

    def get_trip(self, trip_id: Key) -> Trip:
        """Get a trip with its current (committed) visit records."""
        trip = self._trips[trip_id]
        records = sorted(self._trip_records(trip_id), key=lambda r: r.position)
        return trip.model_copy(update={"visit_records": tuple(records)})

    def count_visit_records(self) -> int:
        return len(self._records)

    async def get_itinerary(self, itinerary_id: Key) -> Itinerary:
        try:
            return self._itineraries[itinerary_id]
        except KeyError:
            raise ItineraryNotFoundError(itinerary_id) from None

    async def list_trips(self, itinerary_id: Key) -> List[Trip]:
        return [
            self.get_trip(trip_id)
            for trip_id, trip in self._trips.items()
            if trip.itinerary_id == itinerary_id
        ]

    @asynccontextmanager
    async def transaction(self, itinerary_id: Key) -> AsyncIterator[_StagedBatch]:
        batch = _StagedBatch(self)
        yield batch
        self._commit(batch)

    def _commit(self, batch: _StagedBatch) -> None:
        for record_id in batch.deleted:
            del self._records[record_id]
        for record_id, position in batch.positions.items():
            self._records[record_id] = self._records[record_id].model_copy(
                update={"position": position}
            )
