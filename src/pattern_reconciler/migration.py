"""
Visit record migration.

Walks the existing visit records of every affected trip and decides,
per record, whether to delete it (its point was removed) or rewrite
its position to the point's new dense index. Records are never
created and their times are never touched.

A trip that skips a point simply has no record for it. Each record is
looked up through its own point identity, so the gap left by a skipped
point survives any edit without extra bookkeeping.
"""

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from .errors import OrphanVisitRecordError, ReconciliationError, StoreFailureError
from .models import (
    Key,
    MigrationPlan,
    MigrationSummary,
    PositionUpdate,
    ReconciliationMap,
    RecordDeletion,
    Trip,
)
from .store import VisitRecordBatch, VisitRecordStore

logger = logging.getLogger(__name__)


def find_orphan_records(
    trips: Iterable[Trip],
    mapping: ReconciliationMap
) -> list[Key]:
    """
    Find visit records whose point is in neither itinerary.

    Args:
        trips: Trips to inspect
        mapping: Reconciliation map of the edit

    Returns:
        Record ids referencing unknown points (empty if none)
    """
    known = set(mapping.positions) | mapping.removed | mapping.inserted
    return [
        record.record_id
        for trip in trips
        for record in trip.visit_records
        if record.point_id not in known
    ]


def plan_migration(
    trips: Iterable[Trip],
    mapping: ReconciliationMap
) -> MigrationPlan:
    """
    Compute deletions and position rewrites for every affected trip.

    This is a pure function: nothing is written and the trips passed in
    are not modified.

    Args:
        trips: Trips bound to the old itinerary
        mapping: Reconciliation map of the edit

    Returns:
        MigrationPlan covering the whole fleet

    Raises:
        OrphanVisitRecordError: If any record references a point absent
            from both itineraries (nothing is planned in that case)
    """
    trips = list(trips)

    orphans = find_orphan_records(trips, mapping)
    if orphans:
        raise OrphanVisitRecordError(orphans)

    deletions: list[RecordDeletion] = []
    updates: list[PositionUpdate] = []

    for trip in trips:
        for record in trip.ordered_records():
            new_position = mapping.get(record.point_id)

            if new_position is None:
                deletions.append(RecordDeletion(
                    record_id=record.record_id,
                    trip_id=trip.trip_id,
                    point_id=record.point_id
                ))
            else:
                # Always rewrite, even when unchanged
                updates.append(PositionUpdate(
                    record_id=record.record_id,
                    trip_id=trip.trip_id,
                    point_id=record.point_id,
                    old_position=record.position,
                    new_position=new_position
                ))

    return MigrationPlan(
        deletions=tuple(deletions),
        updates=tuple(updates),
        trips_examined=len(trips)
    )


@contextmanager
def _store_errors(itinerary_id: Optional[Key]) -> Iterator[None]:
    try:
        yield
    except ReconciliationError:
        raise
    except Exception as e:
        logger.exception("Store failure | itinerary=%s", itinerary_id)
        raise StoreFailureError(
            f"Failed to migrate visit records for itinerary {itinerary_id!r}: {e}"
        ) from e


async def _write_plan(batch: VisitRecordBatch, plan: MigrationPlan) -> None:
    for deletion in plan.deletions:
        await batch.delete_visit_record(deletion.record_id)
    for update in plan.updates:
        await batch.update_position(update.record_id, update.new_position)


def _log_plan(itinerary_id: Optional[Key], plan: MigrationPlan) -> None:
    logger.info(
        "Migration planned | itinerary=%s trips=%s deletions=%s repositioned=%s",
        itinerary_id,
        plan.trips_examined,
        len(plan.deletions),
        plan.repositioned_count,
    )


async def apply_plan(
    store: VisitRecordStore,
    itinerary_id: Key,
    plan: MigrationPlan
) -> None:
    """
    Apply a migration plan inside a single store transaction.

    Args:
        store: Trip/visit record store
        itinerary_id: Itinerary the plan belongs to
        plan: Plan to apply

    Raises:
        StoreFailureError: If the store fails; the transaction is rolled back
    """
    with _store_errors(itinerary_id):
        async with store.transaction(itinerary_id) as batch:
            await _write_plan(batch, plan)


async def migrate_visit_records(
    store: VisitRecordStore,
    trips: Optional[Iterable[Trip]],
    mapping: ReconciliationMap,
    itinerary_id: Optional[Key] = None,
    dry_run: bool = False
) -> MigrationSummary:
    """
    Migrate the visit records of every affected trip as one atomic batch.

    When ``trips`` is None they are read inside the store transaction,
    so the plan is built from the same state the writes apply to.

    Args:
        store: Trip/visit record store
        trips: Trips bound to the old itinerary, or None to read them
            from the store
        mapping: Reconciliation map of the edit
        itinerary_id: Itinerary being reconciled (scopes the transaction)
        dry_run: Plan only; issue no writes

    Returns:
        MigrationSummary with counts of deleted and rewritten records

    Example:
        >>> mapping = reconcile_identities(old, new)
        >>> summary = await migrate_visit_records(store, None, mapping, old.itinerary_id)
        >>> print(f"{summary.records_deleted} deleted, {summary.records_repositioned} moved")
    """
    if trips is not None:
        plan = plan_migration(trips, mapping)
        _log_plan(itinerary_id, plan)
        if not dry_run:
            await apply_plan(store, itinerary_id, plan)
    else:
        with _store_errors(itinerary_id):
            async with store.transaction(itinerary_id) as batch:
                plan = plan_migration(await batch.list_trips(itinerary_id), mapping)
                _log_plan(itinerary_id, plan)
                if not dry_run:
                    await _write_plan(batch, plan)

    return MigrationSummary.from_plan(plan, itinerary_id=itinerary_id, dry_run=dry_run)
