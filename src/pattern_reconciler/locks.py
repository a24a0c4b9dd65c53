"""
Per-itinerary mutual exclusion.

Two reconciliations of the same itinerary must run one after the other;
reconciliations of different itineraries never contend.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from .errors import ItineraryLockTimeoutError
from .models import Key

logger = logging.getLogger(__name__)


class ItineraryLockRegistry:
    """
    Holds one asyncio.Lock per itinerary identity.

    A lock lives only while some task holds or waits for it; the entry
    is dropped when the last of them leaves.
    """

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._locks: Dict[Key, asyncio.Lock] = {}
        self._users: Dict[Key, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def _checkout(self, itinerary_id: Key) -> asyncio.Lock:
        lock = self._locks.get(itinerary_id)
        if lock is None:
            lock = self._locks[itinerary_id] = asyncio.Lock()
        self._users[itinerary_id] = self._users.get(itinerary_id, 0) + 1
        return lock

    def _checkin(self, itinerary_id: Key) -> None:
        remaining = self._users[itinerary_id] - 1
        if remaining:
            self._users[itinerary_id] = remaining
        else:
            del self._users[itinerary_id]
            del self._locks[itinerary_id]

    def is_locked(self, itinerary_id: Key) -> bool:
        lock = self._locks.get(itinerary_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, itinerary_id: Key) -> AsyncIterator[None]:
        """
        Hold the lock for an itinerary.

        Raises:
            ItineraryLockTimeoutError: If the lock is not acquired within timeout
        """
        lock = self._checkout(itinerary_id)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
        except asyncio.TimeoutError:
            self._checkin(itinerary_id)
            logger.warning(
                "Lock wait timed out | itinerary=%s timeout=%s",
                itinerary_id,
                self.timeout,
            )
            raise ItineraryLockTimeoutError(itinerary_id, self.timeout) from None
        except BaseException:
            self._checkin(itinerary_id)
            raise

        try:
            yield
        finally:
            lock.release()
            self._checkin(itinerary_id)
