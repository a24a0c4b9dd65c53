"""
Main itinerary reconciliation engine.

Orchestrates the pipeline:
    1. Dense index assignment for the edited itinerary
    2. Identity reconciliation (old ids -> new dense index)
    3. Visit record migration as one atomic batch
"""

import logging
from typing import Iterable, Optional

from .identity import describe_changes, reconcile_identities
from .locks import ItineraryLockRegistry
from .migration import migrate_visit_records, plan_migration
from .models import Itinerary, Key, MigrationPlan, MigrationSummary, Trip
from .store import ItinerarySource, VisitRecordStore

logger = logging.getLogger(__name__)


def _check_bound(trips: list[Trip], itinerary_id: Key) -> None:
    stray = [t.trip_id for t in trips if t.itinerary_id != itinerary_id]
    if stray:
        raise ValueError(
            f"Trips {stray!r} are not bound to itinerary {itinerary_id!r}"
        )


def _check_same_itinerary(old: Itinerary, new: Itinerary) -> None:
    if new.itinerary_id != old.itinerary_id:
        raise ValueError(
            f"Edited itinerary {new.itinerary_id!r} does not match {old.itinerary_id!r}"
        )


def compute_plan(
    old: Itinerary,
    new: Itinerary,
    trips: Iterable[Trip]
) -> MigrationPlan:
    """
    Compute the migration plan for an edit without touching any store.

    Args:
        old: The persisted itinerary
        new: The edited itinerary
        trips: Trips bound to the old itinerary

    Returns:
        MigrationPlan listing every deletion and position rewrite

    Raises:
        DuplicateIdentityError: If either itinerary repeats a point identity
        OrphanVisitRecordError: If a record's point is in neither itinerary
        ValueError: If the edit targets another itinerary, or a trip is
            bound to a different itinerary
    """
    _check_same_itinerary(old, new)
    trips = list(trips)
    _check_bound(trips, old.itinerary_id)
    mapping = reconcile_identities(old, new)
    return plan_migration(trips, mapping)


class ReconciliationEngine:
    """
    Entry point for reconciling visit records after an itinerary edit.

    Example:
        >>> store = InMemoryVisitRecordStore(itineraries=[old], trips=trips)
        >>> engine = ReconciliationEngine(store)
        >>> summary = await engine.run(old, new)
        >>> print(f"Deleted {summary.records_deleted}, moved {summary.records_repositioned}")
    """

    def __init__(
        self,
        store: VisitRecordStore,
        source: Optional[ItinerarySource] = None,
        locks: Optional[ItineraryLockRegistry] = None
    ):
        """
        Initialize engine.

        Args:
            store: Trip/visit record store providing the transactional boundary
            source: Itinerary source; defaults to the store when it implements one
            locks: Per-itinerary lock registry (a private one if omitted)
        """
        self.store = store
        if source is None and isinstance(store, ItinerarySource):
            source = store
        self.source = source
        self.locks = locks or ItineraryLockRegistry()

    async def run(
        self,
        old: Itinerary,
        new: Itinerary,
        affected_trips: Optional[Iterable[Trip]] = None,
        dry_run: bool = False
    ) -> MigrationSummary:
        """
        Reconcile the visit records of every trip bound to the old itinerary.

        Args:
            old: The persisted itinerary
            new: The edited itinerary
            affected_trips: Trips to migrate; read inside the store
                transaction when omitted
            dry_run: Validate and plan only; issue no writes

        Returns:
            MigrationSummary of the applied (or planned) mutations

        Raises:
            DuplicateIdentityError: If either itinerary repeats a point identity
            OrphanVisitRecordError: If a record's point is in neither itinerary
            StoreFailureError: If the store fails; nothing is left half-applied
            ValueError: If the edit targets another itinerary, or a supplied
                trip is bound to a different itinerary
        """
        itinerary_id = old.itinerary_id
        _check_same_itinerary(old, new)

        logger.info(
            "Reconciling itinerary | itinerary=%s old_points=%s new_points=%s",
            itinerary_id,
            len(old.points),
            len(new.points),
        )

        async with self.locks.hold(itinerary_id):
            trips = None
            if affected_trips is not None:
                trips = list(affected_trips)
                _check_bound(trips, itinerary_id)

            mapping = reconcile_identities(old, new)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Itinerary changes | itinerary=%s changes=%s",
                    itinerary_id,
                    describe_changes(old, new),
                )

            summary = await migrate_visit_records(
                self.store,
                trips,
                mapping,
                itinerary_id=itinerary_id,
                dry_run=dry_run
            )

        logger.info(
            "Reconciliation complete | itinerary=%s touched=%s deleted=%s repositioned=%s dry_run=%s",
            itinerary_id,
            summary.trips_touched,
            summary.records_deleted,
            summary.records_repositioned,
            summary.dry_run,
        )
        return summary

    async def reconcile_itinerary(
        self,
        itinerary_id: Key,
        new: Itinerary,
        dry_run: bool = False
    ) -> MigrationSummary:
        """
        Load the persisted itinerary and reconcile it against an edit.

        Args:
            itinerary_id: Identity of the itinerary template
            new: The edited itinerary
            dry_run: Validate and plan only; issue no writes

        Returns:
            MigrationSummary of the applied (or planned) mutations

        Raises:
            ItineraryNotFoundError: If the source has no such itinerary
        """
        if self.source is None:
            raise RuntimeError("No itinerary source configured")

        old = await self.source.get_itinerary(itinerary_id)
        return await self.run(old, new, dry_run=dry_run)
