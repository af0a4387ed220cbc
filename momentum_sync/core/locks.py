"""
PURPOSE: Keyed mutual-exclusion registry for per-ticker critical sections.

The sheet reconciler scans the ticker column and then writes a row; those two
calls are not atomic on the Sheets side, so every reconciliation for the same
instrument must run under the same asyncio.Lock. Locks are created lazily the
first time a key is seen and dropped once nobody holds or waits on them.

CALLED BY:
    - sync/reconciler.py (SheetReconciler.reconcile)
"""

import asyncio
import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from momentum_sync.utils.logger import get_logger

logger = get_logger(__name__)


class KeyedLockRegistry:
    """
    PURPOSE: Map a normalized key to a lazily created asyncio.Lock.

    The registry dict itself is guarded by a threading.Lock that is only held
    while looking up or updating an entry, never across an await, so holders
    of different keys never contend with each other.

    Entries are reference counted: the lock for a key is
    removed when its last holder or waiter leaves, so the registry stays as
    large as the set of tickers currently being reconciled rather than every
    ticker ever seen.

    Attributes:
        _locks: Key -> asyncio.Lock for keys in use.
        _users: Key -> number of hold() callers holding or waiting.
        _guard: Short-lived lock protecting _locks and _users.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}
        self._guard = threading.Lock()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """
        PURPOSE: Async context manager holding the lock for key.

        Args:
            key: Already-normalized identity (see sync.reconciler.normalize_identity).

        Usage:
            async with registry.hold("aapl"):
                ...  # scan + write for AAPL
        """
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[key] = lock
                logger.debug("keyed_lock_created", key=key, registry_size=len(self._locks))
            self._users[key] = self._users.get(key, 0) + 1

        try:
            async with lock:
                yield
        finally:
            with self._guard:
                remaining = self._users[key] - 1
                if remaining:
                    self._users[key] = remaining
                else:
                    del self._users[key]
                    self._locks.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

