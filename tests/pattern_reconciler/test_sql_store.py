"""Tests for the SQLAlchemy-backed store, run against SQLite."""

import asyncio
from contextlib import asynccontextmanager

import pytest
from sqlalchemy import func, select

from src.pattern_reconciler import (
    ReconciliationEngine,
    ItineraryPoint,
    ItineraryNotFoundError,
    StoreFailureError,
    reconcile_identities,
    plan_migration,
)
from src.pattern_reconciler.migration import apply_plan
from src.pattern_reconciler.orm import PatternORM, PatternStopORM, StopTimeORM, TripORM
from src.pattern_reconciler.sql_store import SqlVisitRecordBatch, SqlVisitRecordStore

PATTERN_ID = 1


async def seed(session_factory, skip_sequence=None, trip_count=5):
    """Pattern of 8 stops at sequences 0..7, five trips with stop times."""
    async with session_factory() as session:
        async with session.begin():
            session.add(PatternORM(id=PATTERN_ID, name="North Ave", route_id="1"))
            for i in range(8):
                session.add(PatternStopORM(
                    id=100 + i,
                    pattern_id=PATTERN_ID,
                    stop_id=f"stop_{2 * i}",
                    stop_sequence=i,
                    default_travel_time=120,
                ))

            stop_time_id = 1
            current_time = 6 * 60 * 60
            for t in range(1, trip_count + 1):
                session.add(TripORM(id=t, pattern_id=PATTERN_ID))
                for i in range(8):
                    if i == skip_sequence:
                        continue
                    session.add(StopTimeORM(
                        id=stop_time_id,
                        trip_id=t,
                        pattern_stop_id=100 + i,
                        stop_sequence=i,
                        arrival_time=current_time,
                        departure_time=current_time,
                        stop_id=f"stop_{2 * i}",
                    ))
                    stop_time_id += 1
                    current_time += 120


async def count_stop_times(session_factory):
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(StopTimeORM))


@pytest.fixture
def sql_store(session_factory):
    return SqlVisitRecordStore(session_factory)


class TestSqlReads:
    """Reading patterns and trips."""

    async def test_get_itinerary(self, session_factory, sql_store):
        """Pattern stops come back as itinerary points in insertion order."""
        await seed(session_factory)

        itinerary = await sql_store.get_itinerary(PATTERN_ID)

        assert itinerary.itinerary_id == PATTERN_ID
        assert itinerary.name == "North Ave"
        assert itinerary.point_ids == [100 + i for i in range(8)]
        assert itinerary.points[7].stop_id == "stop_14"
        assert itinerary.points[7].position == 7

    async def test_missing_itinerary(self, session_factory, sql_store):
        """Unknown pattern raises ItineraryNotFoundError."""
        with pytest.raises(ItineraryNotFoundError):
            await sql_store.get_itinerary(999)

    async def test_list_trips(self, session_factory, sql_store):
        """Trips carry their stop times ordered by sequence."""
        await seed(session_factory, skip_sequence=5)

        trips = await sql_store.list_trips(PATTERN_ID)

        assert [t.trip_id for t in trips] == [1, 2, 3, 4, 5]
        for trip in trips:
            assert trip.itinerary_id == PATTERN_ID
            assert [r.position for r in trip.visit_records] == [0, 1, 2, 3, 4, 6, 7]
            assert all(r.trip_id == trip.trip_id for r in trip.visit_records)

    async def test_list_trips_empty(self, session_factory, sql_store):
        """A pattern without trips lists nothing."""
        await seed(session_factory, trip_count=0)
        assert await sql_store.list_trips(PATTERN_ID) == []


    async def test_batch_lists_trips_in_transaction(self, session_factory, sql_store):
        """Trips read through a batch reflect that transaction's own writes."""
        await seed(session_factory, trip_count=2)

        async with sql_store.transaction(PATTERN_ID) as batch:
            before = await batch.list_trips(PATTERN_ID)
            await batch.delete_visit_record(1)
            after = await batch.list_trips(PATTERN_ID)

        assert [len(t.visit_records) for t in before] == [8, 8]
        assert [len(t.visit_records) for t in after] == [7, 8]
        assert await count_stop_times(session_factory) == 15


class TestSqlReconciliation:
    """End-to-end reconciliation against the database."""

    async def test_insert_in_middle(self, session_factory, sql_store):
        """Inserted stop shifts later stop times without adding any."""
        await seed(session_factory)
        old = await sql_store.get_itinerary(PATTERN_ID)
        points = [
            p.model_copy(update={"position": p.position + 1}) if p.position >= 4 else p
            for p in old.points
        ]
        points.append(ItineraryPoint(point_id=200, position=4, stop_id="stop_5"))
        new = old.model_copy(update={"points": tuple(points)})

        engine = ReconciliationEngine(sql_store)
        summary = await engine.reconcile_itinerary(PATTERN_ID, new)

        assert summary.records_repositioned == 20
        assert await count_stop_times(session_factory) == 40
        for trip in await sql_store.list_trips(PATTERN_ID):
            assert [r.position for r in trip.visit_records] == [0, 1, 2, 3, 5, 6, 7, 8]
            assert trip.visit_records[-1].point_id == 107

    async def test_removal_when_a_stop_is_skipped(self, session_factory, sql_store):
        """Removing a stop keeps the gap left by a skipped stop."""
        await seed(session_factory, skip_sequence=5)
        old = await sql_store.get_itinerary(PATTERN_ID)
        new = old.model_copy(update={
            "points": tuple(p for p in old.points if p.point_id != 106)
        })

        summary = await ReconciliationEngine(sql_store).run(old, new)

        assert summary.records_deleted == 5
        assert await count_stop_times(session_factory) == 30
        for trip in await sql_store.list_trips(PATTERN_ID):
            assert [r.position for r in trip.visit_records] == [0, 1, 2, 3, 4, 6]
            assert 106 not in [r.point_id for r in trip.visit_records]

    async def test_failure_rolls_back(self, session_factory, sql_store):
        """A write to a missing stop time rolls back the whole batch."""
        await seed(session_factory)
        old = await sql_store.get_itinerary(PATTERN_ID)
        new = old.model_copy(update={"points": old.points[1:]})
        trips = await sql_store.list_trips(PATTERN_ID)
        plan = plan_migration(trips, reconcile_identities(old, new))

        async with session_factory() as session:
            async with session.begin():
                await session.delete(await session.get(StopTimeORM, 40))

        with pytest.raises(StoreFailureError):
            await apply_plan(sql_store, PATTERN_ID, plan)

        assert await count_stop_times(session_factory) == 39
        async with session_factory() as session:
            first = await session.get(StopTimeORM, 1)
            assert first is not None
            assert first.stop_sequence == 0
            second = await session.get(StopTimeORM, 2)
            assert second.stop_sequence == 1

    async def test_cancellation_mid_batch_rolls_back(self, session_factory):
        """Cancelling after the first write leaves every stop time in place."""
        written = asyncio.Event()

        class HangingBatch(SqlVisitRecordBatch):
            async def delete_visit_record(self, record_id):
                await super().delete_visit_record(record_id)
                written.set()
                await asyncio.sleep(3600)

        class HangingStore(SqlVisitRecordStore):
            @asynccontextmanager
            async def transaction(self, itinerary_id):
                async with super().transaction(itinerary_id) as batch:
                    yield HangingBatch(batch._session)

        await seed(session_factory)
        store = HangingStore(session_factory)
        old = await store.get_itinerary(PATTERN_ID)
        new = old.model_copy(update={"points": old.points[1:]})
        engine = ReconciliationEngine(store)

        task = asyncio.create_task(engine.run(old, new))
        await written.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not engine.locks.is_locked(PATTERN_ID)
        assert await count_stop_times(session_factory) == 40
        async with session_factory() as session:
            first = await session.get(StopTimeORM, 1)
            assert first is not None
            assert first.stop_sequence == 0
