"""
Search use cases.
"""

from .codec import CodecDefaults, QueryCodec
from .coordinator import SearchSession
from .facets import (
    FacetDimension,
    FacetOrdering,
    century_of,
    compute_facets,
    date_extractor,
    decade_of,
    year_of,
)
from .fanout import FanOutAggregator, SourceDefinition, SourceView
from .result_aggregator import (
    MergeMode,
    ResultAggregator,
    next_offset_from_total,
    next_page_from_page_size,
    next_page_from_total,
)

__all__ = [
    # Codec
    "CodecDefaults",
    "QueryCodec",
    # Coordinator
    "SearchSession",
    # Aggregation
    "MergeMode",
    "ResultAggregator",
    "next_offset_from_total",
    "next_page_from_page_size",
    "next_page_from_total",
    # Facets
    "FacetDimension",
    "FacetOrdering",
    "century_of",
    "compute_facets",
    "date_extractor",
    "decade_of",
    "year_of",
    # Fan-out
    "FanOutAggregator",
    "SourceDefinition",
    "SourceView",
]
