"""SQLAlchemy implementation of the itinerary source and visit record store."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, List

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import ItineraryNotFoundError, StoreFailureError
from .models import Itinerary, ItineraryPoint, Key, Trip, VisitRecord
from .orm import PatternORM, PatternStopORM, StopTimeORM, TripORM

logger = logging.getLogger(__name__)


def _orm_to_point(orm_stop: PatternStopORM) -> ItineraryPoint:
    return ItineraryPoint(
        point_id=orm_stop.id,
        position=orm_stop.stop_sequence,
        stop_id=orm_stop.stop_id,
        default_travel_time=orm_stop.default_travel_time,
        default_dwell_time=orm_stop.default_dwell_time,
    )


def _orm_to_record(orm_stop_time: StopTimeORM) -> VisitRecord:
    return VisitRecord(
        record_id=orm_stop_time.id,
        trip_id=orm_stop_time.trip_id,
        point_id=orm_stop_time.pattern_stop_id,
        position=orm_stop_time.stop_sequence,
        arrival_time=orm_stop_time.arrival_time,
        departure_time=orm_stop_time.departure_time,
        stop_id=orm_stop_time.stop_id,
    )


async def _select_trips(session: AsyncSession, itinerary_id: Key) -> List[Trip]:
    trip_result = await session.execute(
        select(TripORM)
        .where(TripORM.pattern_id == itinerary_id)
        .order_by(TripORM.id)
    )
    trip_rows = trip_result.scalars().all()

    stop_time_result = await session.execute(
        select(StopTimeORM)
        .join(TripORM, StopTimeORM.trip_id == TripORM.id)
        .where(TripORM.pattern_id == itinerary_id)
        .order_by(StopTimeORM.trip_id, StopTimeORM.stop_sequence)
    )
    records: Dict[Key, List[VisitRecord]] = {}
    for row in stop_time_result.scalars().all():
        records.setdefault(row.trip_id, []).append(_orm_to_record(row))

    return [
        Trip(
            trip_id=row.id,
            itinerary_id=row.pattern_id,
            visit_records=tuple(records.get(row.id, [])),
        )
        for row in trip_rows
    ]


class SqlVisitRecordBatch:
    """Stop time reads and writes bound to one open transaction."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_trips(self, itinerary_id: Key) -> List[Trip]:
        return await _select_trips(self._session, itinerary_id)

    async def delete_visit_record(self, record_id: Key) -> None:
        result = await self._session.execute(
            delete(StopTimeORM).where(StopTimeORM.id == record_id)
        )
        if result.rowcount == 0:
            raise StoreFailureError(f"Stop time {record_id!r} does not exist")

    async def update_position(self, record_id: Key, position: int) -> None:
        result = await self._session.execute(
            update(StopTimeORM)
            .where(StopTimeORM.id == record_id)
            .values(stop_sequence=position)
        )
        if result.rowcount == 0:
            raise StoreFailureError(f"Stop time {record_id!r} does not exist")


class SqlVisitRecordStore:
    """SQLAlchemy implementation of ItinerarySource and VisitRecordStore."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        """
        Initialize store.

        Args:
            session_factory: Callable that returns an AsyncSession
        """
        self._session_factory = session_factory

    async def get_itinerary(self, itinerary_id: Key) -> Itinerary:
        async with self._session_factory() as session:
            pattern = await session.get(PatternORM, itinerary_id)
            if pattern is None:
                raise ItineraryNotFoundError(itinerary_id)

            result = await session.execute(
                select(PatternStopORM)
                .where(PatternStopORM.pattern_id == itinerary_id)
                .order_by(PatternStopORM.id)
            )
            points = [_orm_to_point(s) for s in result.scalars().all()]

        return Itinerary(itinerary_id=pattern.id, name=pattern.name, points=points)

    async def list_trips(self, itinerary_id: Key) -> List[Trip]:
        async with self._session_factory() as session:
            return await _select_trips(session, itinerary_id)

    @asynccontextmanager
    async def transaction(self, itinerary_id: Key) -> AsyncIterator[SqlVisitRecordBatch]:
        async with self._session_factory() as session:
            async with session.begin():
                # Serializes edits of the same pattern across processes; trips
                # listed through the batch are read under this lock
                await session.execute(
                    select(PatternORM.id)
                    .where(PatternORM.id == itinerary_id)
                    .with_for_update()
                )
                yield SqlVisitRecordBatch(session)
            logger.debug("Stop time batch committed | itinerary=%s", itinerary_id)
