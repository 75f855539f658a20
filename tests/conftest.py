"""Shared test fixtures."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from sltax.calculators.rate_table import RateTable
from sltax.calculators.tax_data import TaxBracket

AS_OF = date(2025, 6, 30)


@pytest.fixture
def as_of() -> date:
    """Fixed evaluation date so lateness does not depend on the clock."""
    return AS_OF


@pytest.fixture
def mock_provider() -> AsyncMock:
    """Async settings provider with no overrides configured."""
    provider = AsyncMock()
    provider.get_setting.return_value = None
    provider.get_settings.return_value = {}
    return provider


@pytest.fixture
def failing_provider() -> AsyncMock:
    """Settings provider whose store is unreachable."""
    provider = AsyncMock()
    provider.get_setting.side_effect = ConnectionError("settings store unreachable")
    provider.get_settings.side_effect = ConnectionError("settings store unreachable")
    return provider


@pytest.fixture
def flat_rates() -> RateTable:
    """Synthetic two-bracket table: 10% to 1,000, 20% above."""
    return RateTable(
        individual_brackets=(
            TaxBracket(Decimal("0"), Decimal("1000"), Decimal("0.10")),
            TaxBracket(Decimal("1000"), None, Decimal("0.20")),
        ),
        corporate_rate=Decimal("0.30"),
        gst_rate=Decimal("0.10"),
    )


@pytest.fixture
def mock_db_pool() -> MagicMock:
    """Mock of asyncpg.Pool with context-managed acquire().

    asyncpg.Pool.acquire() returns an async context manager (not a coroutine),
    so we use MagicMock for the pool and configure __aenter__/__aexit__ manually.
    """
    conn = AsyncMock()
    conn.fetchrow.return_value = None
    conn.fetch.return_value = []

    acm = MagicMock()
    acm.__aenter__ = AsyncMock(return_value=conn)
    acm.__aexit__ = AsyncMock(return_value=False)

    pool = MagicMock()
    pool.acquire.return_value = acm
    return pool
