"""
Data models for the search-session engine.
"""

from .query_state import (
    DEFAULT_ORDER,
    DEFAULT_PAGE,
    DEFAULT_SIZE,
    DEFAULT_SORT,
    Continuation,
    QueryState,
)
from .results import (
    FacetGroup,
    FacetValue,
    ResultItem,
    ResultPage,
    SessionState,
    SessionStatus,
)

__all__ = [
    "DEFAULT_ORDER",
    "DEFAULT_PAGE",
    "DEFAULT_SIZE",
    "DEFAULT_SORT",
    "Continuation",
    "QueryState",
    "FacetGroup",
    "FacetValue",
    "ResultItem",
    "ResultPage",
    "SessionState",
    "SessionStatus",
]
