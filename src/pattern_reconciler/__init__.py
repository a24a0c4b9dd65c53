"""
Itinerary Reconciliation Engine

Keeps per-trip visit records consistent with an edited itinerary
template. Records for removed points are deleted, surviving records
are repositioned, and nothing is ever fabricated for inserted points.
"""

__version__ = "0.1.0"

from .models import (
    ItineraryPoint,
    Itinerary,
    VisitRecord,
    Trip,
    ReconciliationMap,
    MigrationPlan,
    MigrationSummary,
)
from .errors import (
    ReconciliationError,
    DuplicateIdentityError,
    OrphanVisitRecordError,
    ItineraryNotFoundError,
    StoreFailureError,
    ItineraryLockTimeoutError,
)
from .sequence import assign_dense_indices
from .identity import reconcile_identities, describe_changes
from .migration import plan_migration, migrate_visit_records
from .engine import ReconciliationEngine, compute_plan
from .locks import ItineraryLockRegistry
from .store import InMemoryVisitRecordStore

__all__ = [
    "__version__",
    "ItineraryPoint",
    "Itinerary",
    "VisitRecord",
    "Trip",
    "ReconciliationMap",
    "MigrationPlan",
    "MigrationSummary",
    "ReconciliationError",
    "DuplicateIdentityError",
    "OrphanVisitRecordError",
    "ItineraryNotFoundError",
    "StoreFailureError",
    "ItineraryLockTimeoutError",
    "assign_dense_indices",
    "reconcile_identities",
    "describe_changes",
    "plan_migration",
    "migrate_visit_records",
    "ReconciliationEngine",
    "compute_plan",
    "ItineraryLockRegistry",
    "InMemoryVisitRecordStore",
]
