"""
Dense index assignment for itinerary points.

Position numbers entered by schedulers are neither contiguous nor
unique. Sorting by position (stable on supplied order) and numbering
from zero gives the dense index used by visit records.
"""

from typing import Iterable, Optional

from .errors import DuplicateIdentityError
from .models import ItineraryPoint, Key


def check_unique_identities(
    points: Iterable[ItineraryPoint],
    itinerary_id: Optional[Key] = None
) -> None:
    """
    Ensure no two points share an identity.

    Args:
        points: Itinerary points to check
        itinerary_id: Owning itinerary (for error reporting)

    Raises:
        DuplicateIdentityError: On the first repeated point_id
    """
    seen: set[Key] = set()
    for point in points:
        if point.point_id in seen:
            raise DuplicateIdentityError(point.point_id, itinerary_id)
        seen.add(point.point_id)


def assign_dense_indices(
    points: Iterable[ItineraryPoint],
    itinerary_id: Optional[Key] = None
) -> dict[Key, int]:
    """
    Assign a zero-based dense index to every point.

    Points are sorted by position ascending. Equal positions keep the
    order in which the points were supplied (Python's sort is stable).

    Args:
        points: Itinerary points in supplied order
        itinerary_id: Owning itinerary (for error reporting)

    Returns:
        Mapping of point_id to dense index 0..N-1

    Raises:
        DuplicateIdentityError: If two points share an identity

    Example:
        >>> points = [
        ...     ItineraryPoint(point_id="a", position=10),
        ...     ItineraryPoint(point_id="b", position=3),
        ...     ItineraryPoint(point_id="c", position=10),
        ... ]
        >>> assign_dense_indices(points)
        {'b': 0, 'a': 1, 'c': 2}
    """
    snapshot = list(points)
    check_unique_identities(snapshot, itinerary_id)

    ordered = sorted(snapshot, key=lambda p: p.position)
    return {point.point_id: index for index, point in enumerate(ordered)}
