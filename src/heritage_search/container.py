"""
Application DI Container (dependency-injector).

Centralizes creation of the shared collaborators of search sessions.

Usage::

    from heritage_search.container import ApplicationContainer

    container = ApplicationContainer()
    container.config.from_dict({
        "worker_base": "https://worker.example.org",
        "http_timeout": 20.0,
        "data_dir": "~/.heritage-search",
    })

    transport = container.transport()
    saved = container.saved_searches()
    cache = container.query_cache()      # new cache per call

    # In tests - override any provider:
    container.transport.override(providers.Object(fake_transport))
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dependency_injector import containers, providers

from heritage_search.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULTS: dict[str, Any] = {
    "worker_base": "https://art.hicksrch.workers.dev",
    "http_timeout": 30.0,
    "default_ttl": 3600,
    "data_dir": None,
    "cache_max_entries": None,
}

ENV_VARS = {
    "worker_base": ("HERITAGE_WORKER_BASE", str),
    "http_timeout": ("HERITAGE_HTTP_TIMEOUT", float),
    "data_dir": ("HERITAGE_DATA_DIR", str),
    "cache_max_entries": ("HERITAGE_CACHE_MAX_ENTRIES", int),
}

SAVED_SEARCHES_FILE = "saved-searches.json"


def _create_transport(worker_base: str, http_timeout: float, default_ttl: int | None) -> object:
    """Lazy factory for HttpTransport (avoids importing httpx at container import)."""
    from heritage_search.infrastructure.http import HttpTransport

    return HttpTransport(worker_base, timeout=http_timeout, default_ttl=default_ttl)


def _create_storage(data_dir: str | None) -> object:
    """JSON file storage under ``data_dir``, or memory storage without one."""
    from heritage_search.application.session.saved_searches import JsonFileStorage, MemoryStorage

    if not data_dir:
        return MemoryStorage()
    path = Path(data_dir).expanduser() / SAVED_SEARCHES_FILE
    logger.info(f"Saved searches stored in {path}")
    return JsonFileStorage(path)


def _create_saved_searches(storage: object) -> object:
    from heritage_search.application.session.saved_searches import SavedSearchStore

    return SavedSearchStore(storage)  # type: ignore[arg-type]


def _create_query_cache(cache_max_entries: int | None) -> object:
    from heritage_search.infrastructure.cache import QueryCache

    return QueryCache(max_entries=cache_max_entries or None)


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for heritage-search.

    - ``transport``: HTTP transport bound to the worker (singleton)
    - ``storage``: key-value storage for saved searches (singleton)
    - ``saved_searches``: SavedSearchStore over ``storage`` (singleton)
    - ``query_cache``: QueryCache, one per session (factory)
    """

    config = providers.Configuration()

    transport = providers.Singleton(
        _create_transport,
        worker_base=config.worker_base,
        http_timeout=config.http_timeout,
        default_ttl=config.default_ttl,
    )

    storage = providers.Singleton(
        _create_storage,
        data_dir=config.data_dir,
    )

    saved_searches = providers.Singleton(
        _create_saved_searches,
        storage=storage,
    )

    query_cache = providers.Factory(
        _create_query_cache,
        cache_max_entries=config.cache_max_entries,
    )


def settings_from_env(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Read container settings from ``HERITAGE_*`` environment variables.

    Raises:
        ConfigurationError: A variable is set but cannot be converted
    """
    env = os.environ if environ is None else environ
    settings = dict(DEFAULTS)
    for key, (name, convert) in ENV_VARS.items():
        raw = env.get(name, "").strip()
        if not raw:
            continue
        try:
            settings[key] = convert(raw)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from e
    return settings


def create_container(overrides: Mapping[str, Any] | None = None) -> ApplicationContainer:
    """Container configured from defaults, the environment, then ``overrides``."""
    container = ApplicationContainer()
    settings = settings_from_env()
    settings.update(overrides or {})
    container.config.from_dict(settings)
    return container


__all__ = ["ApplicationContainer", "create_container", "settings_from_env"]
