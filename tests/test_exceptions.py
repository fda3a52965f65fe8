"""Tests for the exception hierarchy and its helpers."""

import asyncio

import pytest

from heritage_search.shared.async_utils import AbortController
from heritage_search.shared.exceptions import (
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


class TestHierarchy:
    @pytest.mark.parametrize(
        ("error", "parent"),
        [
            (TransportError(), APIError),
            (HttpStatusError("x", status=500, url="/"), APIError),
            (DecodeError("x"), DataError),
            (InvalidParameterError("size", -1, "positive int"), ValidationError),
            (UnknownSourceError("louvre"), ValidationError),
            (ConfigurationError("x"), HeritageSearchError),
            (SearchCancelledError(), HeritageSearchError),
        ],
    )
    def test_parents(self, error, parent):
        assert isinstance(error, parent)

    def test_transport_error_is_transient(self):
        error = TransportError()
        assert error.severity is ErrorSeverity.TRANSIENT
        assert error.category is ErrorCategory.TRANSPORT
        assert error.retryable

    @pytest.mark.parametrize(("status", "retryable"), [(500, True), (503, True), (429, True), (404, False)])
    def test_http_status_retryable(self, status, retryable):
        assert HttpStatusError("x", status=status, url="/").retryable is retryable


class TestSerialization:
    def test_to_dict(self):
        error = HttpStatusError("failed", status=502, url="https://w/x", sample="<html>")
        data = error.to_dict()
        assert data["error"] == "failed"
        assert data["status"] == 502
        assert data["url"] == "https://w/x"
        assert data["sample"] == "<html>"
        assert data["category"] == "api"

    def test_context_fields(self):
        error = DataError("bad", context=ErrorContext(source="harvard", suggestion="Try again"))
        data = error.to_dict()
        assert data["source"] == "harvard"
        assert data["suggestion"] == "Try again"

    def test_invalid_parameter_message(self):
        error = InvalidParameterError("size", -1, "positive int")
        assert "size" in str(error)
        assert error.context.suggestion == "Expected positive int"


class TestHelpers:
    def test_format_error(self):
        assert format_error(HttpStatusError("down", status=503, url="/")) == "503: down"
        assert format_error(RuntimeError("plain")) == "plain"
        assert format_error(RuntimeError()) == "RuntimeError"

    def test_is_cancellation(self):
        assert is_cancellation(SearchCancelledError())
        assert is_cancellation(asyncio.CancelledError())
        assert not is_cancellation(RuntimeError("x"))

    def test_aborted_signal_makes_anything_a_cancellation(self):
        controller = AbortController()
        assert not is_cancellation(RuntimeError("x"), controller.signal)
        controller.abort()
        assert is_cancellation(RuntimeError("x"), controller.signal)
