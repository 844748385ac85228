"""
Permit Cache

Owns signed permits between requests. A permit is reused while it is
unexpired and its spend ledger is below the permit's cap; otherwise a new one
is signed on the next demand.

All mutations for one key (``network:asset:payTo``) run under that key's
``asyncio.Lock``:
    - two requests racing on a cold cache produce one signature, not two
      (each signature would read and consume the same nonce)
    - ledger increments never lose updates
Requests for different keys never wait on each other.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from ..schemas.permits import CachedPermit

logger = logging.getLogger(__name__)

SignFn = Callable[[], Awaitable[CachedPermit]]


def permit_key(network: str, asset: str, pay_to: str) -> str:
    """Cache key for permits issued against one router target."""
    return f"{network}:{asset}:{pay_to}"


@dataclass
class _LedgerEntry:
    permit: CachedPermit
    spent: int = 0
    exhausted: bool = False


class PermitCache:
    """
    Process-wide store of signed permits with per-permit spend accounting.

    Callers never modify permits; they only read them, report spend with
    :meth:`record_spend`, or drop them with :meth:`invalidate`.

    Args:
        clock: Source of unix time, injectable for tests.

    Example:
        cache = PermitCache()
        permit = await cache.get_permit(key, lambda: signer.sign(...))
        await cache.record_spend(key, 1500, permit=permit)
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, _LedgerEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _is_usable(self, entry: Optional[_LedgerEntry]) -> bool:
        if entry is None or entry.exhausted:
            return False
        if entry.permit.is_expired(self._clock()):
            return False
        return entry.spent < entry.permit.max_value_int

    async def get_permit(self, key: str, sign_fn: SignFn) -> CachedPermit:
        """
        Return a usable permit for ``key``, signing a new one if needed.

        A cached permit is returned while ``now < deadline`` and its ledger is
        below ``maxValue``. Otherwise ``sign_fn`` is awaited (under the key's
        lock, so concurrent callers wait for and share its result), the entry
        is replaced and its ledger reset to zero.

        Args:
            key: Permit key, see :func:`permit_key`.
            sign_fn: Zero-argument coroutine function producing a new permit.

        Returns:
            CachedPermit: The cached or newly signed permit.

        Raises:
            Exception: Whatever ``sign_fn`` raises; the cache is left as it was.
        """
        async with self._lock_for(key):
            entry = self._entries.get(key)
            if self._is_usable(entry):
                logger.debug("Reusing cached permit for %s (spent=%s)", key, entry.spent)
                return entry.permit

            if entry is not None:
                logger.debug(
                    "Cached permit for %s no longer usable (expired or exhausted); re-signing", key
                )
            permit = await sign_fn()
            self._entries[key] = _LedgerEntry(permit=permit)
            return permit

    async def record_spend(
        self,
        key: str,
        amount: int,
        permit: Optional[CachedPermit] = None,
    ) -> int:
        """
        Attribute ``amount`` base units of spend to the permit cached for ``key``.

        When the total reaches ``maxValue`` the entry is marked exhausted and
        the next :meth:`get_permit` signs a new permit.

        Args:
            key: Permit key.
            amount: Non-negative spend in token base units.
            permit: Permit the spend was made with. If the cache has since
                replaced it, the spend is not applied to the new permit.

        Returns:
            int: Ledger total for the current entry after the update (0 if
                there is no matching entry).

        Raises:
            ValueError: If ``amount`` is negative.
        """
        amount = int(amount)
        if amount < 0:
            raise ValueError("spend amount must be non-negative")

        async with self._lock_for(key):
            entry = self._entries.get(key)
            if entry is None or (permit is not None and entry.permit is not permit):
                logger.debug("Ignoring spend of %s for replaced or missing permit %s", amount, key)
                return 0

            entry.spent += amount
            if entry.spent >= entry.permit.max_value_int:
                entry.exhausted = True
                logger.info(
                    "Permit for %s exhausted (spent=%s, cap=%s)",
                    key, entry.spent, entry.permit.max_value,
                )
            return entry.spent

    async def invalidate(self, key: str, permit: Optional[CachedPermit] = None) -> bool:
        """
        Drop the entry for ``key``.

        Args:
            key: Permit key.
            permit: If given, drop only while this permit is still the cached one.

        Returns:
            bool: True if an entry was removed.
        """
        async with self._lock_for(key):
            entry = self._entries.get(key)
            if entry is None or (permit is not None and entry.permit is not permit):
                return False
            del self._entries[key]
            return True

    def peek(self, key: str) -> Optional[CachedPermit]:
        """Currently cached permit for ``key`` (usable or not), without locking."""
        entry = self._entries.get(key)
        return entry.permit if entry else None

    def get_spent(self, key: str) -> int:
        entry = self._entries.get(key)
        return entry.spent if entry else 0
