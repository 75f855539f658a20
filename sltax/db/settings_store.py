"""Rate overrides read from the system_settings table."""

import logging
from typing import Any

import asyncpg

logger = logging.getLogger(__name__)


class PostgresSettingsProvider:
    """Settings provider backed by ``system_settings(key, value)``.

    Lookup errors are logged and reported as missing settings, so the
    calculators fall back to their statutory defaults.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def get_setting(self, key: str) -> str | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT value FROM system_settings WHERE key = $1", key
                )
        except Exception:
            logger.exception("Error retrieving setting %s", key)
            return None
        return row["value"] if row else None

    async def get_settings(self) -> dict[str, Any]:
        """All settings in one query, so a rate table sees one version of the table."""
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch("SELECT key, value FROM system_settings")
        except Exception:
            logger.exception("Error retrieving system settings")
            return {}
        return {row["key"]: row["value"] for row in rows}
