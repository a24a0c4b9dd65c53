"""
Shared fixtures for reconciliation tests.

The base pattern has 8 points P0..P7 at positions 0..7, serving every
other stop along one street (stop_0, stop_2, ... stop_14). Five trips
each carry one visit record per point unless told to skip some.
"""

from types import SimpleNamespace

import pytest

from src.pattern_reconciler import (
    InMemoryVisitRecordStore,
    Itinerary,
    ItineraryPoint,
    Trip,
    VisitRecord,
)

ITINERARY_ID = 1
TRIP_COUNT = 5


def build_itinerary(count: int = 8, itinerary_id=ITINERARY_ID) -> Itinerary:
    points = [
        ItineraryPoint(
            point_id=f"P{i}",
            position=i,
            stop_id=f"stop_{2 * i}",
            default_travel_time=120,
        )
        for i in range(count)
    ]
    return Itinerary(itinerary_id=itinerary_id, name="North Ave", points=points)


def build_trips(itinerary: Itinerary, count: int = TRIP_COUNT, skip=()) -> list[Trip]:
    trips = []
    current_time = 6 * 60 * 60
    for t in range(count):
        trip_id = f"T{t}"
        records = []
        ordered = sorted(itinerary.points, key=lambda p: p.position)
        for index, point in enumerate(ordered):
            if point.point_id in skip:
                continue
            records.append(VisitRecord(
                record_id=f"{trip_id}-{point.point_id}",
                trip_id=trip_id,
                point_id=point.point_id,
                position=index,
                arrival_time=current_time,
                departure_time=current_time,
                stop_id=point.stop_id,
            ))
            current_time += point.default_travel_time
        trips.append(Trip(
            trip_id=trip_id,
            itinerary_id=itinerary.itinerary_id,
            visit_records=tuple(records),
        ))
    return trips


def with_points(itinerary: Itinerary, points) -> Itinerary:
    """Copy of an itinerary with a different point list."""
    return Itinerary(
        itinerary_id=itinerary.itinerary_id,
        name=itinerary.name,
        points=list(points),
    )


def moved(point: ItineraryPoint, position: int) -> ItineraryPoint:
    return point.model_copy(update={"position": position})


@pytest.fixture
def helpers():
    """Itinerary and trip builders."""
    return SimpleNamespace(
        itinerary=build_itinerary,
        trips=build_trips,
        with_points=with_points,
        moved=moved,
    )


@pytest.fixture
def itinerary():
    return build_itinerary()


@pytest.fixture
def trips(itinerary):
    return build_trips(itinerary)


@pytest.fixture
def store(itinerary, trips):
    return InMemoryVisitRecordStore(itineraries=[itinerary], trips=trips)
