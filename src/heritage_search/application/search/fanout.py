"""
Fan-out Aggregator - one shared term, many independent sources.

Each registered source gets its own SearchSession (own cache, own status,
own abort token). Sources never block or cancel one another:

- run_all() starts every enabled source concurrently, so total latency is
  bounded by the slowest enabled source.
- Disabling a source aborts its in-flight request and clears its aggregate
  without touching siblings.
- A failing source ends in ``error`` on its own; the others carry on.

Example:
    fanout = FanOutAggregator([harvard, dataverse, arxiv], per_source_limit=5)
    fanout.run_all("prints")
    await fanout.wait()
    for view in fanout.snapshot():
        print(view.label, view.status.value, len(view.items))
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from heritage_search.application.search.codec import CodecDefaults, QueryCodec
from heritage_search.application.search.coordinator import SearchFn, SearchSession
from heritage_search.models import QueryState, SessionStatus
from heritage_search.shared.async_utils import gather_with_errors
from heritage_search.shared.exceptions import UnknownSourceError

if TYPE_CHECKING:
    from heritage_search.models import ResultItem

logger = logging.getLogger(__name__)

DEFAULT_PER_SOURCE_LIMIT = 5
MAX_PER_SOURCE_LIMIT = 50

SourceRenderFn = Callable[[str, Sequence["ResultItem"]], None]


@dataclass(frozen=True)
class SourceDefinition:
    """A searchable source registered with the fan-out aggregator."""

    key: str
    label: str
    search: SearchFn
    type_label: str = ""
    description: str = ""
    default_enabled: bool = True
    supports_images: bool = False


@dataclass
class SourceView:
    """Per-source snapshot for display."""

    key: str
    label: str
    enabled: bool
    status: SessionStatus
    items: list[ResultItem] = field(default_factory=list)
    total: int | None = None
    error: str | None = None


def ensure_limit(value: int | float | None) -> int:
    """Clamp a per-source limit to 1..50; invalid input gives the default."""
    if value is None or isinstance(value, bool):
        return DEFAULT_PER_SOURCE_LIMIT
    try:
        limit = int(value)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_PER_SOURCE_LIMIT
    if limit <= 0:
        return DEFAULT_PER_SOURCE_LIMIT
    return min(MAX_PER_SOURCE_LIMIT, limit)


def fanout_codec() -> QueryCodec:
    return QueryCodec(
        min_size=1,
        max_size=MAX_PER_SOURCE_LIMIT,
        defaults=CodecDefaults(size=DEFAULT_PER_SOURCE_LIMIT),
    )


class FanOutAggregator:
    """
    Runs one SearchSession per source against a shared term.

    Args:
        sources: Source definitions; keys must be unique
        per_source_limit: Items requested from each source
        render: Optional ``render(source_key, items)`` sink
        images_only: Hide items without an image in snapshots
        prefetch: Enable next-page prefetch per source (off by default;
            the fan-out view shows a single page per source)
    """

    def __init__(
        self,
        sources: Sequence[SourceDefinition],
        *,
        per_source_limit: int = DEFAULT_PER_SOURCE_LIMIT,
        render: SourceRenderFn | None = None,
        images_only: bool = False,
        prefetch: bool = False,
    ) -> None:
        self._codec = fanout_codec()
        self._definitions: dict[str, SourceDefinition] = {}
        self._enabled: dict[str, bool] = {}
        self._sessions: dict[str, SearchSession] = {}
        self._render = render
        self.term = ""
        self.per_source_limit = ensure_limit(per_source_limit)
        self.images_only = images_only

        for definition in sources:
            if definition.key in self._definitions:
                raise ValueError(f"Duplicate source key: {definition.key}")
            self._definitions[definition.key] = definition
            self._enabled[definition.key] = definition.default_enabled
            self._sessions[definition.key] = SearchSession(
                definition.search,
                self._codec,
                render=self._source_renderer(definition.key),
                prefetch=prefetch,
                name=definition.key,
            )

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    @property
    def keys(self) -> list[str]:
        return list(self._definitions)

    def definition(self, key: str) -> SourceDefinition:
        try:
            return self._definitions[key]
        except KeyError:
            raise UnknownSourceError(key) from None

    def session(self, key: str) -> SearchSession:
        self.definition(key)
        return self._sessions[key]

    def is_enabled(self, key: str) -> bool:
        self.definition(key)
        return self._enabled[key]

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def run_all(self, term: str | None = None) -> None:
        """Start every enabled source; disabled ones are cleared."""
        if term is not None:
            self.term = term.strip()
        logger.info(f"Fan-out search for {self.term!r} across {sum(self._enabled.values())} sources")
        for key in self._definitions:
            self.run_source(key)

    def run_source(self, key: str) -> None:
        session = self.session(key)
        if not self.term or not self._enabled[key]:
            session.reset()
            return
        session.submit(QueryState(term=self.term, size=self.per_source_limit))

    def set_enabled(self, key: str, enabled: bool) -> None:
        """Toggle a source; disabling aborts and clears only that source."""
        session = self.session(key)
        self._enabled[key] = enabled
        if not enabled:
            session.reset()
        elif self.term:
            self.run_source(key)

    def set_per_source_limit(self, limit: int) -> None:
        self.per_source_limit = ensure_limit(limit)
        if self.term:
            self.run_all()

    def retry(self, key: str) -> bool:
        return self.session(key).retry()

    def clear(self) -> None:
        """Empty the term and reset every source."""
        self.term = ""
        for session in self._sessions.values():
            session.reset()

    async def wait(self) -> None:
        """Wait for every source to settle."""
        await gather_with_errors(*(s.wait() for s in self._sessions.values()), return_exceptions=True)

    def close(self) -> None:
        for session in self._sessions.values():
            session.unmount()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def visible_items(self, key: str) -> list[ResultItem]:
        items = self.session(key).items
        if self.images_only:
            return [item for item in items if item.has_image]
        return list(items)

    def snapshot(self) -> list[SourceView]:
        views = []
        for key, definition in self._definitions.items():
            state = self._sessions[key].state
            views.append(
                SourceView(
                    key=key,
                    label=definition.label,
                    enabled=self._enabled[key],
                    status=state.status,
                    items=self.visible_items(key),
                    total=state.total,
                    error=state.error,
                )
            )
        return views

    def _source_renderer(self, key: str) -> Callable[[Sequence[ResultItem]], None] | None:
        if self._render is None:
            return None
        render = self._render

        def draw(items: Sequence[ResultItem]) -> None:
            render(key, items)

        return draw
