"""
URL State Store - single source of truth for the current query.

The store keeps an in-memory QueryState snapshot consistent with a history
backend (the address bar in a browser; InMemoryHistory headlessly) and
notifies subscribers on every write and on Back/Forward navigation.

Guarantees:
    - Every non-silent write notifies each current subscriber exactly once,
      before the outermost write returns.
    - Writes issued from inside a notification are queued and delivered
      after the current dispatch round. Each write is a full snapshot, so
      the last delivered state is always the latest one written.
    - The pop listener is attached to the backend only while at least one
      subscriber exists.

Example:
    store = UrlStateStore(codec, InMemoryHistory("q=prints"))
    unsubscribe = store.subscribe(lambda state: print(state.term))
    store.write(store.read().replace(term="maps"))   # prints "maps"
    store.history.back()                            # prints "prints"
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from heritage_search.application.search.codec import QueryCodec
    from heritage_search.models import QueryState

logger = logging.getLogger(__name__)

Listener = Callable[["QueryState"], None]


class HistoryBackend(Protocol):
    """Minimal history surface the store needs (pushState/replaceState/popstate)."""

    def location(self) -> str:
        """Current query string, without the leading '?'."""
        ...

    def push(self, query: str) -> None: ...

    def replace(self, query: str) -> None: ...

    def add_pop_listener(self, listener: Callable[[], None]) -> None: ...

    def remove_pop_listener(self, listener: Callable[[], None]) -> None: ...


class InMemoryHistory:
    """
    Headless history stack.

    ``back()``, ``forward()`` and ``go()`` move through entries and fire
    pop listeners the way a browser fires ``popstate``.
    """

    def __init__(self, initial: str = "", *, path: str = "/", fragment: str = "") -> None:
        self.path = path
        self.fragment = fragment
        self._entries: list[str] = [initial.lstrip("?")]
        self._index = 0
        self._pop_listeners: list[Callable[[], None]] = []

    def location(self) -> str:
        return self._entries[self._index]

    def push(self, query: str) -> None:
        del self._entries[self._index + 1 :]
        self._entries.append(query)
        self._index += 1

    def replace(self, query: str) -> None:
        self._entries[self._index] = query

    def add_pop_listener(self, listener: Callable[[], None]) -> None:
        if listener not in self._pop_listeners:
            self._pop_listeners.append(listener)

    def remove_pop_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._pop_listeners:
            self._pop_listeners.remove(listener)

    def go(self, delta: int) -> bool:
        target = self._index + delta
        if delta == 0 or not 0 <= target < len(self._entries):
            return False
        self._index = target
        for listener in list(self._pop_listeners):
            listener()
        return True

    def back(self) -> bool:
        return self.go(-1)

    def forward(self) -> bool:
        return self.go(1)

    @property
    def length(self) -> int:
        return len(self._entries)

    @property
    def pop_listener_count(self) -> int:
        return len(self._pop_listeners)

    def href(self, query: str | None = None) -> str:
        q = self.location() if query is None else query
        suffix = f"#{self.fragment}" if self.fragment else ""
        return f"{self.path}{'?' + q if q else ''}{suffix}"


class UrlStateStore:
    """
    Current-query store synchronized with a history backend.

    Args:
        codec: QueryCodec used to parse and serialize the location
        history: History backend; defaults to a fresh InMemoryHistory
    """

    def __init__(self, codec: QueryCodec, history: HistoryBackend | None = None) -> None:
        self._codec = codec
        self.history: HistoryBackend = history if history is not None else InMemoryHistory()
        self._state = codec.parse(self.history.location())
        self._listeners: list[Listener] = []
        self._pending: deque[QueryState] = deque()
        self._dispatching = False

    def read(self) -> QueryState:
        """Synchronous snapshot of the current query."""
        return self._state

    def write(self, state: QueryState, *, replace: bool = False, silent: bool = False) -> QueryState:
        """
        Serialize ``state`` into history and update the snapshot.

        Args:
            state: New query state (normalized on the way through)
            replace: Replace the current history entry instead of pushing;
                used for pagination so Back does not step through pages
            silent: Update URL and snapshot without notifying

        Returns:
            The normalized snapshot now held by the store
        """
        query = self._codec.to_query_string(state)
        if replace:
            self.history.replace(query)
        else:
            self.history.push(query)
        self._state = self._codec.parse(query)
        logger.debug(f"URL state {'replaced' if replace else 'pushed'}: ?{query}")
        if not silent:
            self._notify(self._state)
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns an idempotent unsubscribe function."""
        self._listeners.append(listener)
        if len(self._listeners) == 1:
            self.history.add_pop_listener(self._handle_pop)

        def unsubscribe() -> None:
            if listener not in self._listeners:
                return
            self._listeners.remove(listener)
            if not self._listeners:
                self.history.remove_pop_listener(self._handle_pop)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def to_query_string(self, state: QueryState | None = None) -> str:
        return self._codec.to_query_string(state if state is not None else self._state)

    def _handle_pop(self) -> None:
        self._state = self._codec.parse(self.history.location())
        logger.debug(f"History navigation to ?{self.history.location()}")
        self._notify(self._state)

    def _notify(self, state: QueryState) -> None:
        self._pending.append(state)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._pending:
                snapshot = self._pending.popleft()
                for listener in list(self._listeners):
                    if listener not in self._listeners:
                        continue
                    try:
                        listener(snapshot)
                    except Exception:
                        logger.exception("URL state listener failed")
        finally:
            self._dispatching = False
