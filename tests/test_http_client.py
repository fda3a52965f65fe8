"""Tests for the HTTP transport and the provider adapter base."""

import asyncio

import httpx
import pytest

from heritage_search.application.search.codec import QueryCodec
from heritage_search.application.search.coordinator import SearchSession
from heritage_search.application.search.result_aggregator import next_page_from_total
from heritage_search.infrastructure.http.client import (
    SAMPLE_LIMIT,
    XML_ACCEPT,
    HttpTransport,
    normalize_param,
    read_sample,
)
from heritage_search.infrastructure.sources.base_source import SearchSource, ensure_https, to_list
from heritage_search.models import QueryState, ResultItem, ResultPage, SessionStatus
from heritage_search.shared.async_utils import AbortController
from heritage_search.shared.exceptions import (
    DataError,
    DecodeError,
    HttpStatusError,
    SearchCancelledError,
    TransportError,
)

BASE = "https://worker.test"


def make_transport(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpTransport(BASE, client=client, **kwargs)


# ============================================================
# URL building
# ============================================================


class TestBuildUrl:
    def test_drops_blank_params_and_adds_ttl(self):
        transport = HttpTransport(BASE)
        url = transport.build_url(
            "/harvard-art/object",
            {"q": " prints ", "page": 2, "empty": "", "none": None, "flag": True, "size": 3.0},
        )
        assert url == f"{BASE}/harvard-art/object?q=prints&page=2&flag=true&size=3&ttl=3600"

    def test_explicit_ttl_wins(self):
        url = HttpTransport(BASE).build_url("/x", {"ttl": 60})
        assert url.endswith("?ttl=60")

    def test_params_merge_with_path_query(self):
        url = HttpTransport(BASE).build_url("/x?ttl=10&a=1", {"a": "2"})
        assert url == f"{BASE}/x?ttl=10&a=2"

    def test_ttl_can_be_disabled(self):
        assert HttpTransport(BASE, default_ttl=None).build_url("/x") == f"{BASE}/x"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, None), ("  ", None), (False, "false"), (0, "0"), (2.5, "2.5"), (float("nan"), None)],
    )
    def test_normalize_param(self, value, expected):
        assert normalize_param(value) == expected

    def test_read_sample_truncates(self):
        assert read_sample("") is None
        assert read_sample("short") == "short"
        sample = read_sample("x" * 1000)
        assert len(sample) == SAMPLE_LIMIT + 1
        assert sample.endswith("…")


# ============================================================
# Fetching
# ============================================================


class TestFetch:
    async def test_fetch_json(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"records": [1, 2]})

        transport = make_transport(handler)
        payload = await transport.fetch_json("/harvard-art/object", {"q": "prints"})
        assert payload == {"records": [1, 2]}
        assert seen[0].headers["accept"] == "application/json"
        assert seen[0].url.params["ttl"] == "3600"

    async def test_empty_body_is_none(self):
        transport = make_transport(lambda request: httpx.Response(200, text=""))
        assert await transport.fetch_json("/x") is None

    async def test_status_error_carries_sample(self):
        body = "e" * 1000
        transport = make_transport(
            lambda request: httpx.Response(503, text=body, headers={"content-type": "text/plain"})
        )
        with pytest.raises(HttpStatusError) as exc_info:
            await transport.fetch_json("/x")
        error = exc_info.value
        assert error.status == 503
        assert error.url.startswith(f"{BASE}/x")
        assert error.content_type == "text/plain"
        assert len(error.sample) == SAMPLE_LIMIT + 1
        assert error.retryable

    async def test_client_error_not_retryable(self):
        transport = make_transport(lambda request: httpx.Response(404, text="missing"))
        with pytest.raises(HttpStatusError) as exc_info:
            await transport.fetch_json("/x")
        assert not exc_info.value.retryable
        assert exc_info.value.sample == "missing"

    async def test_invalid_json(self):
        transport = make_transport(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(DecodeError) as exc_info:
            await transport.fetch_json("/x")
        assert exc_info.value.sample == "<html>oops</html>"

    async def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError):
            await make_transport(handler).fetch_json("/x")

    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(TransportError, match="timed out"):
            await make_transport(handler).fetch_json("/x")

    async def test_fetch_text_uses_xml_accept(self):
        seen = []

        def handler(request):
            seen.append(request.headers["accept"])
            return httpx.Response(200, text="<feed/>")

        assert await make_transport(handler).fetch_text("/arxiv/query") == "<feed/>"
        assert seen == [XML_ACCEPT]

    async def test_already_aborted_signal_skips_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        controller = AbortController()
        controller.abort("gone")
        with pytest.raises(SearchCancelledError):
            await make_transport(handler).fetch_json("/x", signal=controller.signal)
        assert calls == []

    async def test_abort_during_request(self):
        started = asyncio.Event()

        async def handler(request):
            started.set()
            await asyncio.Event().wait()

        controller = AbortController()
        task = asyncio.create_task(make_transport(handler).fetch_json("/x", signal=controller.signal))
        await started.wait()
        controller.abort("superseded")
        with pytest.raises(SearchCancelledError) as exc_info:
            await task
        assert exc_info.value.reason == "superseded"

    async def test_close_leaves_injected_client_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        async with HttpTransport(BASE, client=client):
            pass
        assert not client.is_closed
        await client.aclose()


# ============================================================
# SearchSource
# ============================================================


class MuseumSource(SearchSource):
    key = "museum"
    label = "Museum"
    path = "/museum/search"
    supports_images = True

    def build_params(self, query):
        return {"q": query.term, "page": query.page, "size": query.size}

    def parse(self, payload, query):
        items = [
            ResultItem(id=str(r["id"]), title=r["title"], source=self.key, image=ensure_https(r.get("image")))
            for r in payload["records"]
        ]
        total = payload["total"]
        return ResultPage(items, total, next_page_from_total(query.page, query.size, total))


def museum_handler(request):
    page = int(request.url.params["page"])
    size = int(request.url.params["size"])
    start = (page - 1) * size
    records = [
        {"id": n, "title": f"Object {n}", "image": f"http://img.test/{n}.jpg"}
        for n in range(start, min(start + size, 8))
    ]
    return httpx.Response(200, json={"records": records, "total": 8})


class TestSearchSource:
    async def test_search_maps_payload(self):
        source = MuseumSource(make_transport(museum_handler))
        page = await source.search(QueryState(term="vase", size=5), AbortController().signal)
        assert [i.id for i in page.items] == ["0", "1", "2", "3", "4"]
        assert page.items[0].image == "https://img.test/0.jpg"
        assert page.continuation == 2

    async def test_unexpected_shape_is_data_error(self):
        source = MuseumSource(make_transport(lambda r: httpx.Response(200, json={"rows": []})))
        with pytest.raises(DataError):
            await source.search(QueryState(term="vase"), AbortController().signal)

    def test_definition(self):
        definition = MuseumSource(HttpTransport(BASE)).definition(default_enabled=False)
        assert (definition.key, definition.label) == ("museum", "Museum")
        assert definition.supports_images
        assert not definition.default_enabled

    async def test_session_over_http(self):
        source = MuseumSource(make_transport(museum_handler))
        session = SearchSession(source, QueryCodec(), prefetch=False)
        session.submit(QueryState(term="vase", size=5))
        await session.wait()
        assert session.status is SessionStatus.LOADED
        assert session.load_more() is True
        await session.wait()
        assert len(session.items) == 8
        assert session.pending_next is None


class TestPayloadHelpers:
    def test_ensure_https(self):
        assert ensure_https("http://a.test/x") == "https://a.test/x"
        assert ensure_https(" https://a.test ") == "https://a.test"
        assert ensure_https("") is None
        assert ensure_https(3) is None

    def test_to_list(self):
        assert to_list(" a ") == ["a"]
        assert to_list(["a", " ", None, 2]) == ["a", "2"]
        assert to_list({"a": 1}) == []
