"""
Unified Exception Hierarchy for Heritage Search.

Exception Hierarchy:
    HeritageSearchError (base)
    ├── APIError
    │   ├── TransportError
    │   └── HttpStatusError
    ├── DataError
    │   └── DecodeError
    ├── ValidationError
    │   ├── InvalidParameterError
    │   └── UnknownSourceError
    ├── ConfigurationError
    └── SearchCancelledError

SearchCancelledError is not a failure from the session's point of view:
a cancelled request is a no-op and must never surface as an error.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from heritage_search.shared.async_utils import AbortSignal


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    WARNING = auto()  # Recoverable, can continue
    ERROR = auto()  # Failed but can retry
    CRITICAL = auto()  # Cannot continue
    TRANSIENT = auto()  # Temporary, should retry


class ErrorCategory(Enum):
    """Categories for error classification."""

    API = "api"
    TRANSPORT = "transport"
    DATA = "data"
    VALIDATION = "validation"
    CONFIGURATION = "config"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Rich context attached to an error."""

    source: str | None = None
    operation: str | None = None
    url: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class HeritageSearchError(Exception):
    """
    Base exception for all Heritage Search errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    - User-facing formatting
    """

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.API,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        if self.context.source:
            result["source"] = self.context.source
        if self.context.url:
            result["url"] = self.context.url
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        return result

    def to_user_message(self) -> str:
        """Short message suitable for an inline alert."""
        return str(self)


# =============================================================================
# API Errors
# =============================================================================


class APIError(HeritageSearchError):
    """Base class for upstream API failures."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        category: ErrorCategory = ErrorCategory.API,
        retryable: bool = True,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=category,
            retryable=retryable,
        )


class TransportError(APIError):
    """Raised when the request never produced an HTTP response."""

    def __init__(
        self,
        message: str = "Network connection failed",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(message, context=context, category=ErrorCategory.TRANSPORT)
        self.severity = ErrorSeverity.TRANSIENT


class HttpStatusError(APIError):
    """Raised for non-2xx responses. Carries the status and a body sample."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        url: str,
        content_type: str | None = None,
        sample: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext(url=url)
        super().__init__(message, context=ctx, retryable=status >= 500 or status == 429)
        self.status = status
        self.url = url
        self.content_type = content_type
        self.sample = sample

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["status"] = self.status
        if self.sample:
            result["sample"] = self.sample
        return result

    def to_user_message(self) -> str:
        return f"{self.status}: {self}"


# =============================================================================
# Data Errors
# =============================================================================


class DataError(HeritageSearchError):
    """Base class for data-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.DATA,
            retryable=False,
        )


class DecodeError(DataError):
    """Raised when a payload that should be JSON or XML cannot be decoded."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        sample: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(message, context=context or ErrorContext(url=url))
        self.url = url
        self.sample = sample


# =============================================================================
# Validation / Configuration Errors
# =============================================================================


class ValidationError(HeritageSearchError):
    """Base class for validation errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.VALIDATION,
            retryable=False,
        )


class InvalidParameterError(ValidationError):
    """Raised when a parameter value is invalid."""

    def __init__(self, param_name: str, value: Any, expected: str) -> None:
        super().__init__(
            f"Invalid parameter '{param_name}': {value!r} (expected {expected})",
            context=ErrorContext(input_value=value, suggestion=f"Expected {expected}"),
        )


class UnknownSourceError(ValidationError):
    """Raised when a fan-out source key is not registered."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Unknown source: {key}", context=ErrorContext(source=key))
        self.key = key


class ConfigurationError(HeritageSearchError):
    """Raised for configuration-related errors."""

    def __init__(self, message: str, *, context: ErrorContext | None = None) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )


class SearchCancelledError(HeritageSearchError):
    """Raised by transports that observed an aborted signal."""

    def __init__(self, message: str = "Request aborted", *, reason: Any = None) -> None:
        super().__init__(
            message,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.CANCELLED,
            retryable=False,
        )
        self.reason = reason


# =============================================================================
# Helpers
# =============================================================================


def is_cancellation(error: BaseException, signal: AbortSignal | None = None) -> bool:
    """
    Decide whether a settlement is a cancellation rather than a failure.

    The signal is checked first: once a request's signal is aborted, whatever
    the transport raised is treated as cancellation.
    """
    if signal is not None and signal.aborted:
        return True
    return isinstance(error, (SearchCancelledError, asyncio.CancelledError))


def format_error(error: BaseException) -> str:
    """Format an error for inline display."""
    if isinstance(error, HeritageSearchError):
        return error.to_user_message()
    return str(error) or error.__class__.__name__
