"""
Identity reconciliation between two itinerary versions.

Compares point identities of the persisted itinerary against the
edited one. Moving a point changes its dense index but never its
identity, so visit records follow their point automatically.
"""

from .models import Itinerary, Key, ReconciliationMap
from .sequence import assign_dense_indices, check_unique_identities


def reconcile_identities(old: Itinerary, new: Itinerary) -> ReconciliationMap:
    """
    Map every surviving point identity to its dense index in the new itinerary.

    Identities only in the old itinerary are reported as removed; identities
    only in the new one are reported as inserted. Neither appears in the
    positions mapping.

    Args:
        old: The persisted itinerary
        new: The edited itinerary

    Returns:
        ReconciliationMap for the edit

    Raises:
        DuplicateIdentityError: If either itinerary repeats a point identity
    """
    check_unique_identities(old.points, old.itinerary_id)
    new_indices = assign_dense_indices(new.points, new.itinerary_id)

    positions: dict[Key, int] = {}
    removed: set[Key] = set()

    for point in old.points:
        index = new_indices.get(point.point_id)
        if index is None:
            removed.add(point.point_id)
        else:
            positions[point.point_id] = index

    inserted = set(new_indices) - set(positions)

    return ReconciliationMap(
        positions=positions,
        removed=frozenset(removed),
        inserted=frozenset(inserted)
    )


def describe_changes(old: Itinerary, new: Itinerary) -> dict[str, list[Key]]:
    """
    Summarize an itinerary edit for logs and previews.

    Args:
        old: The persisted itinerary
        new: The edited itinerary

    Returns:
        Dictionary with inserted, removed and moved point ids, each
        listed in new (or, for removed, old) traversal order

    Example:
        >>> changes = describe_changes(old, new)
        >>> # {"inserted": [9], "removed": [], "moved": [4, 5, 6, 7]}
    """
    old_indices = assign_dense_indices(old.points, old.itinerary_id)
    new_indices = assign_dense_indices(new.points, new.itinerary_id)

    def by_index(ids, indices):
        return sorted(ids, key=lambda point_id: indices[point_id])

    inserted = [pid for pid in new_indices if pid not in old_indices]
    removed = [pid for pid in old_indices if pid not in new_indices]
    moved = [
        pid for pid in new_indices
        if pid in old_indices and old_indices[pid] != new_indices[pid]
    ]

    return {
        "inserted": by_index(inserted, new_indices),
        "removed": by_index(removed, old_indices),
        "moved": by_index(moved, new_indices),
    }
