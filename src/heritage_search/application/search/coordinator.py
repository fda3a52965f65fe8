"""
Request Coordinator - one search session per page or per source.

The SearchSession ties the URL state store, the query cache, the external
``search(query, signal)`` function and the result aggregator together.

State machine:
    idle      --non-empty query-->            loading
    loading   --success-->                    loaded
    loading   --failure-->                    error
    loading   --superseding query-->          loading (previous request aborted)
    loaded    --load_more()-->                appending
    appending --success-->                    loaded (aggregate extended)
    appending --failure-->                    loaded + append_error (retryable)
    error     --retry() or query change-->    loading

Correctness rules:
    - At most one authoritative request is in flight. Issuing a new one
      aborts the previous one first.
    - The settlement of an aborted or superseded request is ignored under
      all circumstances: token identity is checked before any mutation, so
      transports that ignore the signal cannot leak stale results.
    - Cancellation is never reported as an error.
    - A cache hit for the authoritative query is applied synchronously,
      without a loading transition.
    - Every successful transition that exposes a continuation prefetches the
      next page in the background. Prefetches use their own tokens, are
      attempted at most once per target, survive later query changes, store
      successes in the cache and drop failures silently.

All public methods must be called from within the running event loop.

Example:
    session = SearchSession(search, codec, store=store, render=print)
    session.mount()
    session.submit(QueryState(term="prints"))
    await session.wait()
    session.load_more()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any

from heritage_search.application.search.facets import compute_facets
from heritage_search.application.search.result_aggregator import MergeMode, ResultAggregator
from heritage_search.infrastructure.cache import QueryCache
from heritage_search.models import QueryState, SessionState, SessionStatus
from heritage_search.shared.async_utils import (
    AbortController,
    AbortSignal,
    bind_task_to_signal,
    gather_with_errors,
)
from heritage_search.shared.exceptions import InvalidParameterError, format_error, is_cancellation

if TYPE_CHECKING:
    from heritage_search.application.search.codec import QueryCodec
    from heritage_search.application.search.facets import FacetDimension
    from heritage_search.application.session.url_store import UrlStateStore
    from heritage_search.models import ResultItem, ResultPage

logger = logging.getLogger(__name__)

SearchFn = Callable[[QueryState, AbortSignal], Awaitable["ResultPage"]]
RenderFn = Callable[[Sequence["ResultItem"]], None]
StateListener = Callable[[SessionState], None]


class SearchSession:
    """
    Search-session engine for one result list.

    Args:
        search: ``search(query, signal) -> ResultPage`` supplied by a provider
            adapter; must reject rather than hang on errors
        codec: QueryCodec defining canonical state and cache keys
        store: Optional URL state store; when given, user actions are written
            through it and Back/Forward drive the session
        cache: Query cache owned by this session (a fresh one by default)
        render: ``render(items)`` sink called after each aggregate change
        facet_dimensions: Facets computed from the aggregate
        prefetch: Enable speculative next-page prefetch
        name: Label used in logs
    """

    def __init__(
        self,
        search: SearchFn,
        codec: QueryCodec,
        *,
        store: UrlStateStore | None = None,
        cache: QueryCache | None = None,
        render: RenderFn | None = None,
        facet_dimensions: Sequence[FacetDimension] = (),
        prefetch: bool = True,
        name: str = "search",
    ) -> None:
        self._search = search
        self._codec = codec
        self._store = store
        self.cache = cache if cache is not None else QueryCache()
        self._render = render
        self._dimensions = tuple(facet_dimensions)
        self._prefetch_enabled = prefetch
        self.name = name

        self.state = SessionState()
        self._aggregator = ResultAggregator()
        self._observers: list[StateListener] = []
        self._unsubscribe: Callable[[], None] | None = None

        # Authoritative request
        self._active: AbortController | None = None
        self._task: asyncio.Task[None] | None = None

        # Continuation
        self._pending_next: QueryState | None = None
        self._append_target: str | None = None
        self._loading_next = False

        # Prefetch
        self._prefetch_attempted: set[str] = set()
        self._prefetch_tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    @property
    def items(self) -> list[ResultItem]:
        return self.state.aggregated_items

    @property
    def query(self) -> QueryState | None:
        return self.state.current_query

    @property
    def pending_next(self) -> QueryState | None:
        return self._pending_next

    @property
    def in_flight(self) -> bool:
        return self._active is not None

    @property
    def prefetching(self) -> int:
        return sum(1 for t in self._prefetch_tasks if not t.done())

    def on_change(self, listener: StateListener) -> Callable[[], None]:
        """Observe SessionState changes. Returns an unsubscribe function."""
        self._observers.append(listener)

        def remove() -> None:
            if listener in self._observers:
                self._observers.remove(listener)

        return remove

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def mount(self) -> None:
        """Subscribe to the store and run the state it currently holds."""
        if self._store is not None:
            if self._unsubscribe is None:
                self._unsubscribe = self._store.subscribe(self._handle_state_change)
            initial = self._store.read()
        else:
            initial = self.state.current_query or QueryState(size=self._codec.defaults.size)
        self._handle_state_change(initial)

    def unmount(self) -> None:
        """Tear the session down: stop listening, abort everything in flight."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._abort_active("unmount")
        for task in list(self._prefetch_tasks):
            task.cancel()

    async def __aenter__(self) -> SearchSession:
        self.mount()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.unmount()

    async def wait(self, *, include_prefetch: bool = True) -> None:
        """Wait until no authoritative request (and optionally no prefetch) is pending."""
        while True:
            pending: list[asyncio.Task[None]] = []
            if self._task is not None and not self._task.done():
                pending.append(self._task)
            if include_prefetch:
                pending.extend(t for t in self._prefetch_tasks if not t.done())
            if not pending:
                return
            await gather_with_errors(*pending, return_exceptions=True)

    def clear_cache(self) -> None:
        """Explicit reset of the cache and the prefetch bookkeeping."""
        self.cache.clear()
        self._prefetch_attempted.clear()

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def submit(self, state: QueryState) -> None:
        """Issue an authoritative query (new search, facet or sort change)."""
        self._append_target = None
        self._navigate(self._codec.normalize(state), replace=False)

    def update(self, **changes: Any) -> None:
        """
        Submit the current query with ``changes``.

        Changing only ``page``/``cursor`` is pagination: the history entry is
        replaced rather than pushed. Any other change rewinds to the first page.
        """
        base = self.state.current_query or QueryState(size=self._codec.defaults.size)
        paging = bool(changes) and changes.keys() <= {"page", "cursor"}
        if "page" not in changes and "cursor" not in changes:
            base = base.first_page()
        self._append_target = None
        self._navigate(self._codec.normalize(base.replace(**changes)), replace=paging)

    def go_to_page(self, page: int) -> None:
        """Jump to page ``page`` of the current query (pager navigation)."""
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise InvalidParameterError("page", page, "a page number >= 1")
        self.update(page=page, cursor=None)

    def toggle_facet(self, key: str, value: str) -> None:
        base = self.state.current_query or QueryState()
        self.submit(base.with_facet_toggled(key, value))

    def clear_facet(self, key: str) -> None:
        base = self.state.current_query or QueryState()
        self.submit(base.with_facet_cleared(key))

    def load_more(self) -> bool:
        """
        Continuation trigger (button click or scroll intersection).

        Returns:
            False when there is nothing to load or an append is already
            running; repeated triggers are therefore no-ops
        """
        if self._pending_next is None or self._loading_next:
            return False
        if self.state.status is not SessionStatus.LOADED:
            return False
        self._loading_next = True
        target = self._pending_next
        self._append_target = self._codec.cache_key(target)
        self._navigate(target, replace=True)
        return True

    def retry(self) -> bool:
        """Retry a failed append, or re-issue a query that ended in ``error``."""
        if self.state.append_error is not None and self._pending_next is not None:
            return self.load_more()
        query = self.state.current_query
        retryable = self.state.status in (SessionStatus.ERROR, SessionStatus.IDLE)
        if retryable and query is not None and query.has_term:
            self._append_target = None
            self._start(query, self._codec.cache_key(query), MergeMode.REPLACE)
            return True
        return False

    def cancel(self) -> bool:
        """
        Abort the in-flight authoritative request without issuing another.

        A cancelled search settles to ``idle``; a cancelled append returns to
        ``loaded`` with the continuation still available.
        """
        if self._active is None:
            return False
        mode = MergeMode.APPEND if self.state.status is SessionStatus.APPENDING else MergeMode.REPLACE
        self._abort_active("cancelled")
        self._settle_cancelled(mode)
        return True

    def reset(self) -> None:
        """Abort the authoritative request and clear the aggregate."""
        self._show_idle(self.state.current_query)

    # ------------------------------------------------------------------
    # State change handling
    # ------------------------------------------------------------------

    def _navigate(self, state: QueryState, *, replace: bool) -> None:
        if self._store is not None and self._unsubscribe is not None:
            # The store notifies synchronously, which lands in _handle_state_change
            self._store.write(state, replace=replace)
        else:
            if self._store is not None:
                self._store.write(state, replace=replace, silent=True)
            self._handle_state_change(state)

    def _handle_state_change(self, state: QueryState) -> None:
        query = self._codec.normalize(state)
        key = self._codec.cache_key(query)
        mode = MergeMode.APPEND if self._append_target == key else MergeMode.REPLACE
        self._append_target = None
        if mode is MergeMode.REPLACE:
            self._loading_next = False

        self.state.current_query = query
        if not query.has_term:
            self._show_idle(query)
            return
        self._start(query, key, mode)

    def _start(self, query: QueryState, key: str, mode: MergeMode) -> None:
        self._abort_active("superseded")
        if mode is MergeMode.REPLACE:
            self._pending_next = None
            self.state.pending_continuation = None
        self.state.error = None
        self.state.append_error = None

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"[{self.name}] cache hit: {key}")
            self._apply(query, key, cached, mode)
            return

        controller = AbortController()
        self._active = controller
        if mode is MergeMode.APPEND:
            self.state.status = SessionStatus.APPENDING
        else:
            self.state.status = SessionStatus.LOADING
            self._clear_aggregate()
            self._draw()
        self._emit()

        task = asyncio.create_task(self._run(query, key, mode, controller), name=f"{self.name}:{key}")
        self._task = task
        bind_task_to_signal(task, controller.signal)

    async def _run(self, query: QueryState, key: str, mode: MergeMode, controller: AbortController) -> None:
        signal = controller.signal
        try:
            page = await self._search(query, signal)
        except asyncio.CancelledError:
            if signal.aborted:
                logger.debug(f"[{self.name}] request aborted: {key}")
                return
            raise
        except Exception as e:
            if not self._is_current(controller):
                logger.debug(f"[{self.name}] discarding failure of superseded request {key}: {e}")
                return
            if is_cancellation(e, signal):
                self._settle_cancelled(mode)
                return
            self._fail(e, mode)
            return

        if not self._is_current(controller):
            logger.debug(f"[{self.name}] discarding stale response for {key}")
            return
        self._active = None
        self.cache.set(key, page)
        self._apply(query, key, page, mode)

    def _is_current(self, controller: AbortController) -> bool:
        return self._active is controller and not controller.aborted

    def _abort_active(self, reason: str) -> None:
        controller, self._active = self._active, None
        if controller is not None:
            logger.debug(f"[{self.name}] aborting in-flight request ({reason})")
            controller.abort(reason)

    def _apply(self, query: QueryState, key: str, page: ResultPage, mode: MergeMode) -> None:
        merged = self._aggregator.merge(key, page, mode)
        if mode is MergeMode.APPEND:
            self._loading_next = False
        self.state.status = SessionStatus.LOADED
        if not merged:
            self._emit()
            return

        self.state.aggregated_items = self._aggregator.items
        self.state.total = page.total
        self.state.facets = compute_facets(self._aggregator.items, self._dimensions, self.state.current_query)

        if page.continuation is not None:
            self._pending_next = query.with_continuation(page.continuation)
            self.state.pending_continuation = page.continuation
        else:
            self._pending_next = None
            self.state.pending_continuation = None

        self._draw()
        self._emit()
        if self._pending_next is not None:
            self._prefetch(self._pending_next)

    def _fail(self, error: Exception, mode: MergeMode) -> None:
        self._active = None
        message = format_error(error)
        if mode is MergeMode.APPEND:
            logger.warning(f"[{self.name}] load more failed: {message}")
            self._loading_next = False
            self.state.status = SessionStatus.LOADED
            self.state.append_error = message
        else:
            logger.warning(f"[{self.name}] search failed: {message}")
            self._clear_aggregate()
            self.state.status = SessionStatus.ERROR
            self.state.error = message
            self._draw()
        self._emit()

    def _settle_cancelled(self, mode: MergeMode) -> None:
        # Cancellation is not a failure: no error, no results
        logger.debug(f"[{self.name}] request cancelled")
        self._active = None
        if mode is MergeMode.APPEND:
            self._loading_next = False
            self.state.status = SessionStatus.LOADED
        else:
            self.state.status = SessionStatus.IDLE
        self._emit()

    def _clear_aggregate(self) -> None:
        self._aggregator.reset()
        self._pending_next = None
        self.state.aggregated_items = []
        self.state.total = None
        self.state.pending_continuation = None
        self.state.facets = compute_facets([], self._dimensions, self.state.current_query)

    def _show_idle(self, query: QueryState | None) -> None:
        self._abort_active("idle")
        self._append_target = None
        self._pending_next = None
        self._loading_next = False
        self._aggregator.reset()
        self.state = SessionState(
            current_query=query,
            status=SessionStatus.IDLE,
            facets=compute_facets([], self._dimensions, query),
        )
        self._draw()
        self._emit()

    # ------------------------------------------------------------------
    # Prefetch
    # ------------------------------------------------------------------

    def _prefetch(self, query: QueryState) -> None:
        if not self._prefetch_enabled:
            return
        key = self._codec.cache_key(query)
        if key in self.cache or key in self._prefetch_attempted:
            return
        self._prefetch_attempted.add(key)
        task = asyncio.create_task(self._run_prefetch(query, key), name=f"{self.name}:prefetch:{key}")
        self._prefetch_tasks.add(task)
        task.add_done_callback(self._prefetch_tasks.discard)

    async def _run_prefetch(self, query: QueryState, key: str) -> None:
        controller = AbortController()
        try:
            page = await self._search(query, controller.signal)
        except Exception as e:
            logger.debug(f"[{self.name}] prefetch failed for {key}: {e}")
            return
        self.cache.set(key, page)
        logger.debug(f"[{self.name}] prefetched {key}")

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _draw(self) -> None:
        if self._render is None:
            return
        try:
            self._render(self.state.aggregated_items)
        except Exception:
            logger.exception(f"[{self.name}] render failed")

    def _emit(self) -> None:
        for observer in list(self._observers):
            try:
                observer(self.state)
            except Exception:
                logger.exception(f"[{self.name}] session observer failed")
