"""In-memory and YAML settings providers, and provider selection."""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import asyncpg

from config import load_yaml_config
from config.settings import Settings
from sltax.calculators.rate_table import SettingsProvider
from sltax.db.settings_store import PostgresSettingsProvider

logger = logging.getLogger(__name__)


class StaticSettingsProvider:
    """Fixed mapping of setting overrides; empty means statutory defaults."""

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values = dict(values or {})

    async def get_setting(self, key: str) -> Any | None:
        return self._values.get(key)

    async def get_settings(self) -> Mapping[str, Any]:
        return dict(self._values)


class YamlSettingsProvider:
    """Overrides read from a YAML file.

    ``get_settings`` parses the file once, so a rate table built from it
    reflects a single version of the file. A missing or unreadable file
    raises; the rate table treats that like any other store failure and
    uses defaults.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = path

    async def get_setting(self, key: str) -> Any | None:
        return (await self.get_settings()).get(key)

    async def get_settings(self) -> Mapping[str, Any]:
        return load_yaml_config(self.path)


def build_settings_provider(
    settings: Settings,
    pool: asyncpg.Pool | None = None,
) -> SettingsProvider:
    """Select the provider named by ``settings.settings_source``."""
    if settings.settings_source == "postgres":
        if pool is None:
            raise ValueError("settings_source=postgres requires a database pool")
        logger.info("Using system_settings table for rate overrides")
        return PostgresSettingsProvider(pool)
    if settings.settings_source == "yaml":
        logger.info("Using %s for rate overrides", settings.rate_overrides_file)
        return YamlSettingsProvider(settings.rate_overrides_file)
    logger.info("Using statutory default rates")
    return StaticSettingsProvider()
