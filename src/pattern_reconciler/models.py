"""
Pydantic models for itinerary reconciliation.

Defines itinerary templates, trip visit records, the reconciliation
map and the mutation intents produced when migrating visit records.
"""

from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# Opaque identity key for points, records, trips and itineraries
Key = Union[int, str, UUID]


# --- Itinerary Models ---

class ItineraryPoint(BaseModel):
    """
    One stop-and-offset entry within an itinerary template.

    Equality and hashing use point_id only; payload fields never
    take part in identity.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "point_id": 101,
                "position": 4,
                "stop_id": "stop_8",
                "default_travel_time": 120,
                "default_dwell_time": 0
            }
        }
    )

    point_id: Key = Field(
        ...,
        description="Stable identity of the point"
    )
    position: int = Field(
        ...,
        description="User-editable ordering number (may be sparse or repeated)"
    )
    stop_id: Optional[str] = Field(
        default=None,
        description="Stop served at this point"
    )
    default_travel_time: Optional[int] = Field(
        default=None,
        ge=0,
        description="Default travel time from the previous point (seconds)"
    )
    default_dwell_time: Optional[int] = Field(
        default=None,
        ge=0,
        description="Default dwell time at the stop (seconds)"
    )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ItineraryPoint):
            return NotImplemented
        return self.point_id == other.point_id

    def __hash__(self) -> int:
        return hash(self.point_id)


class Itinerary(BaseModel):
    """
    An ordered template of itinerary points shared by many trips.

    Points are kept in the order they were supplied. Canonical traversal
    order is obtained by sorting on position, ties broken by that order.
    """

    model_config = ConfigDict(frozen=True)

    itinerary_id: Key = Field(
        ...,
        description="Identity of the itinerary template"
    )
    points: tuple[ItineraryPoint, ...] = Field(
        default=(),
        description="Points as supplied by the editing workflow"
    )
    name: Optional[str] = Field(
        default=None,
        description="Human-readable pattern name"
    )

    @property
    def point_ids(self) -> list[Key]:
        """Point identities in supplied order."""
        return [p.point_id for p in self.points]


# --- Trip Models ---

class VisitRecord(BaseModel):
    """A trip's recorded visit at one itinerary point."""

    model_config = ConfigDict(frozen=True)

    record_id: Key = Field(..., description="Identity of the visit record")
    trip_id: Key = Field(..., description="Trip that owns this record")
    point_id: Key = Field(..., description="Itinerary point visited")
    position: int = Field(
        ...,
        ge=0,
        description="Dense index of the point within the trip's itinerary"
    )
    arrival_time: Optional[int] = Field(
        default=None,
        ge=0,
        description="Arrival time in seconds after service-day midnight"
    )
    departure_time: Optional[int] = Field(
        default=None,
        ge=0,
        description="Departure time in seconds after service-day midnight"
    )
    stop_id: Optional[str] = Field(default=None, description="Stop visited")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VisitRecord):
            return NotImplemented
        return self.record_id == other.record_id

    def __hash__(self) -> int:
        return hash(self.record_id)


class Trip(BaseModel):
    """A trip bound to an itinerary, with the visit records it owns."""

    model_config = ConfigDict(frozen=True)

    trip_id: Key = Field(..., description="Identity of the trip")
    itinerary_id: Key = Field(..., description="Itinerary the trip follows")
    visit_records: tuple[VisitRecord, ...] = Field(
        default=(),
        description="Existing visit records (a trip may skip points)"
    )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Trip):
            return NotImplemented
        return self.trip_id == other.trip_id

    def __hash__(self) -> int:
        return hash(self.trip_id)

    def ordered_records(self) -> list[VisitRecord]:
        """Visit records sorted by position."""
        return sorted(self.visit_records, key=lambda r: r.position)


# --- Reconciliation Models ---

class ReconciliationMap(BaseModel):
    """
    Mapping from surviving point identity to its new dense index.

    Only identities present in both the old and the new itinerary
    appear in positions. Removed identities are those of the old
    itinerary only; inserted identities are those of the new one only.
    """

    model_config = ConfigDict(frozen=True)

    positions: dict[Key, int] = Field(
        default_factory=dict,
        description="Surviving point id -> new dense index"
    )
    removed: frozenset[Key] = Field(
        default_factory=frozenset,
        description="Point ids present only in the old itinerary"
    )
    inserted: frozenset[Key] = Field(
        default_factory=frozenset,
        description="Point ids present only in the new itinerary"
    )

    def __contains__(self, point_id: object) -> bool:
        return point_id in self.positions

    def get(self, point_id: Key) -> Optional[int]:
        """New dense index for a point, or None if it was removed."""
        return self.positions.get(point_id)


class RecordDeletion(BaseModel):
    """Intent to delete a visit record whose point no longer exists."""

    model_config = ConfigDict(frozen=True)

    record_id: Key
    trip_id: Key
    point_id: Key


class PositionUpdate(BaseModel):
    """Intent to rewrite the position of a surviving visit record."""

    model_config = ConfigDict(frozen=True)

    record_id: Key
    trip_id: Key
    point_id: Key
    old_position: int
    new_position: int

    @property
    def changed(self) -> bool:
        """Whether the rewrite actually moves the record."""
        return self.old_position != self.new_position


class MigrationPlan(BaseModel):
    """All mutation intents for one itinerary edit, across every trip."""

    model_config = ConfigDict(frozen=True)

    deletions: tuple[RecordDeletion, ...] = ()
    updates: tuple[PositionUpdate, ...] = ()
    trips_examined: int = 0

    @property
    def trips_touched(self) -> int:
        """Trips with at least one deletion or changed position."""
        touched = {d.trip_id for d in self.deletions}
        touched.update(u.trip_id for u in self.updates if u.changed)
        return len(touched)

    @property
    def repositioned_count(self) -> int:
        return sum(1 for u in self.updates if u.changed)


class MigrationSummary(BaseModel):
    """Result of a reconciliation run, returned for auditing and UI feedback."""

    itinerary_id: Optional[Key] = Field(
        default=None,
        description="Itinerary that was reconciled"
    )
    trips_examined: int = Field(description="Trips bound to the old itinerary")
    trips_touched: int = Field(
        description="Trips with at least one deleted or moved record"
    )
    records_deleted: int = Field(description="Visit records deleted")
    records_updated: int = Field(description="Position rewrites issued")
    records_repositioned: int = Field(
        description="Position rewrites whose value changed"
    )
    dry_run: bool = Field(
        default=False,
        description="True if the plan was computed but not applied"
    )

    @classmethod
    def from_plan(
        cls,
        plan: MigrationPlan,
        itinerary_id: Optional[Key] = None,
        dry_run: bool = False
    ) -> "MigrationSummary":
        """Summarize a migration plan."""
        return cls(
            itinerary_id=itinerary_id,
            trips_examined=plan.trips_examined,
            trips_touched=plan.trips_touched,
            records_deleted=len(plan.deletions),
            records_updated=len(plan.updates),
            records_repositioned=plan.repositioned_count,
            dry_run=dry_run
        )
