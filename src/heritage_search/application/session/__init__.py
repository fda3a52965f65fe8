"""
Session state: URL-backed query state and saved searches.
"""

from .saved_searches import (
    JsonFileStorage,
    KeyValueStorage,
    MemoryStorage,
    SavedSearch,
    SavedSearchStore,
)
from .url_store import HistoryBackend, InMemoryHistory, UrlStateStore

__all__ = [
    "HistoryBackend",
    "InMemoryHistory",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "SavedSearch",
    "SavedSearchStore",
    "UrlStateStore",
]
