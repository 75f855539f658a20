"""Process-wide RateTable cache with periodic refresh.

Readers always get a complete snapshot: a refresh builds a new RateTable
and swaps the single reference, so a table is never observed half-updated.
"""

import asyncio
import logging
import time

from sltax.calculators.liability import TaxEngine
from sltax.calculators.rate_table import RateTable, SettingsProvider, load_rate_table

logger = logging.getLogger(__name__)


class RateTableCache:
    """Cache the RateTable built from ``provider`` for ``refresh_seconds``."""

    def __init__(
        self,
        provider: SettingsProvider,
        refresh_seconds: float = 300.0,
    ) -> None:
        self._provider = provider
        self._refresh_seconds = refresh_seconds
        self._table: RateTable | None = None
        self._loaded_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def is_stale(self) -> bool:
        return self._table is None or time.monotonic() - self._loaded_at >= self._refresh_seconds

    async def load(self) -> RateTable:
        """Load a snapshot. RateTableError propagates, so startup fails on bad rates."""
        async with self._lock:
            return await self._load_locked()

    async def refresh(self) -> RateTable:
        """Rebuild the snapshot, keeping the previous one if the rebuild fails."""
        async with self._lock:
            return await self._refresh_locked()

    async def get(self) -> RateTable:
        """Current snapshot, rebuilt first if older than the refresh interval."""
        table = self._table
        if table is None or self.is_stale:
            async with self._lock:
                # Another task may have rebuilt while we waited for the lock.
                table = self._table
                if table is None or self.is_stale:
                    table = await self._refresh_locked()
        return table

    async def engine(self) -> TaxEngine:
        """A TaxEngine bound to the current snapshot."""
        return TaxEngine(await self.get())

    async def _load_locked(self) -> RateTable:
        table = await load_rate_table(self._provider)
        self._table = table
        self._loaded_at = time.monotonic()
        return table

    async def _refresh_locked(self) -> RateTable:
        if self._table is None:
            return await self._load_locked()
        try:
            return await self._load_locked()
        except Exception:
            logger.exception("Rate table refresh failed, keeping previous snapshot")
            self._loaded_at = time.monotonic()
            return self._table
