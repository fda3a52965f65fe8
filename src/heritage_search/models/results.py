"""
Result and session models.

ResultItem is the normalized display model provider adapters produce;
ResultPage is one page of those items as returned by ``search()``;
SessionState is the per-session snapshot the coordinator owns.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .query_state import Continuation, QueryState


@dataclass
class ResultItem:
    """Normalized item shared by every source."""

    id: str
    title: str
    source: str = ""
    subtitle: str | None = None
    date: str | None = None
    tags: list[str] = field(default_factory=list)
    image: str | None = None
    href: str | None = None
    # Facet dimension key -> values this item contributes to that dimension
    facets: dict[str, list[str]] = field(default_factory=dict)
    raw: Any = None

    @property
    def has_image(self) -> bool:
        return bool(self.image)


@dataclass
class ResultPage:
    """
    One page returned by a source.

    ``continuation`` is an opaque token, offset or page number pointing at the
    next page; ``None`` means the result set is exhausted.
    """

    items: Sequence[ResultItem] = ()
    total: int | None = None
    continuation: Continuation | None = None

    @property
    def is_exhausted(self) -> bool:
        return self.continuation is None


class SessionStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    APPENDING = "appending"
    ERROR = "error"


@dataclass
class FacetValue:
    value: str
    count: int
    selected: bool = False


@dataclass
class FacetGroup:
    key: str
    label: str
    values: list[FacetValue] = field(default_factory=list)

    @property
    def selected_values(self) -> list[str]:
        return [v.value for v in self.values if v.selected]


@dataclass
class SessionState:
    """
    Snapshot of one search session.

    ``error`` is set when an authoritative request failed (status ERROR);
    ``append_error`` is the transient inline error of a failed "load more",
    which leaves the aggregate visible and the append retryable.
    """

    current_query: QueryState | None = None
    aggregated_items: list[ResultItem] = field(default_factory=list)
    total: int | None = None
    pending_continuation: Continuation | None = None
    status: SessionStatus = SessionStatus.IDLE
    error: str | None = None
    append_error: str | None = None
    facets: list[FacetGroup] = field(default_factory=list)

    @property
    def has_more(self) -> bool:
        return self.pending_continuation is not None

    def summary(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "items": len(self.aggregated_items),
            "total": self.total,
            "has_more": self.has_more,
            "error": self.error,
            "append_error": self.append_error,
        }
