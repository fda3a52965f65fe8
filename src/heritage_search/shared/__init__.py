"""
Shared utilities.

Provides:
- Unified exception hierarchy
- Abort tokens and TaskGroup-based parallel execution
"""

from .async_utils import AbortController, AbortSignal, bind_task_to_signal, gather_with_errors
from .exceptions import (
    APIError,
    ConfigurationError,
    DataError,
    DecodeError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    HeritageSearchError,
    HttpStatusError,
    InvalidParameterError,
    SearchCancelledError,
    TransportError,
    UnknownSourceError,
    ValidationError,
    format_error,
    is_cancellation,
)

__all__ = [
    # Abort tokens
    "AbortController",
    "AbortSignal",
    "bind_task_to_signal",
    # Parallel execution
    "gather_with_errors",
    # Exceptions
    "APIError",
    "ConfigurationError",
    "DataError",
    "DecodeError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "HeritageSearchError",
    "HttpStatusError",
    "InvalidParameterError",
    "SearchCancelledError",
    "TransportError",
    "UnknownSourceError",
    "ValidationError",
    "format_error",
    "is_cancellation",
]
