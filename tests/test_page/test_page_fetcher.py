"""Tests for shared-page fetcher."""

import asyncio
import functools

import httpx
import pytest

from chat_archiver.exceptions import PageFetchError
from chat_archiver.page import fetcher as fetcher_module
from chat_archiver.page.fetcher import PageFetcher, _validate_url


def test_validate_url_blocked_scheme():
    is_safe, error = _validate_url("file:///etc/passwd")
    assert is_safe is False
    assert "Blocked URL scheme" in error


def test_validate_url_localhost():
    is_safe, error = _validate_url("http://localhost:8080")
    assert is_safe is False
    assert "localhost" in error


def test_validate_url_no_hostname():
    is_safe, _ = _validate_url("http://")
    assert is_safe is False


def test_validate_url_private_ip():
    is_safe, error = _validate_url("http://192.168.1.1")
    assert is_safe is False
    assert "private" in error.lower()


def test_fetch_rejects_unsafe_url():
    with pytest.raises(PageFetchError, match="Blocked URL scheme"):
        PageFetcher().fetch_sync("ftp://example.com/share")


@pytest.fixture
def mock_transport(monkeypatch):
    """Route the fetcher's httpx.Client through a handler; skip DNS checks."""

    def install(handler):
        def fake_validate(url):
            if "127.0.0.1" in url:
                return False, "Blocked: URL resolves to private/internal IP (127.0.0.1)"
            return True, None

        monkeypatch.setattr(fetcher_module, "_validate_url", fake_validate)
        monkeypatch.setattr(
            httpx,
            "Client",
            functools.partial(httpx.Client, transport=httpx.MockTransport(handler)),
        )

    return install


def test_fetch_returns_snapshot(mock_transport):
    def handler(request):
        return httpx.Response(
            200,
            headers={"content-type": "text/html; charset=utf-8"},
            text="<html><head><title>Shared chat</title></head></html>",
        )

    mock_transport(handler)
    page = PageFetcher().fetch_sync("https://chatgpt.com/share/abcdefgh1234")
    assert page.document_title == "Shared chat"
    assert page.host == "chatgpt.com"


def test_fetch_follows_safe_redirect(mock_transport):
    def handler(request):
        if request.url.path == "/old":
            return httpx.Response(302, headers={"location": "https://chatgpt.com/new"})
        return httpx.Response(200, headers={"content-type": "text/html"}, text="<html></html>")

    mock_transport(handler)
    page = PageFetcher().fetch_sync("https://chatgpt.com/old")
    assert page.path == "/new"


def test_fetch_blocks_private_redirect(mock_transport):
    def handler(request):
        return httpx.Response(302, headers={"location": "http://127.0.0.1/admin"})

    mock_transport(handler)
    with pytest.raises(PageFetchError, match="Redirect blocked"):
        PageFetcher().fetch_sync("https://chatgpt.com/share/abc")


def test_fetch_rejects_non_html(mock_transport):
    def handler(request):
        return httpx.Response(200, headers={"content-type": "application/json"}, text='{"a": 1}')

    mock_transport(handler)
    with pytest.raises(PageFetchError, match="Not an HTML page"):
        PageFetcher().fetch_sync("https://chatgpt.com/share/abc")


def test_fetch_rejects_oversized_response(mock_transport):
    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/html"}, text="<p>" + "x" * 100)

    mock_transport(handler)
    with pytest.raises(PageFetchError, match="too large"):
        PageFetcher(max_response_bytes=10).fetch_sync("https://chatgpt.com/share/abc")


def test_fetch_wraps_http_errors(mock_transport):
    def handler(request):
        return httpx.Response(404, text="not found")

    mock_transport(handler)
    with pytest.raises(PageFetchError, match="Fetch failed"):
        PageFetcher().fetch_sync("https://chatgpt.com/share/missing")


def test_async_fetch(monkeypatch):
    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/html"}, text="<html><title>Async</title></html>")

    monkeypatch.setattr(fetcher_module, "_validate_url", lambda url: (True, None))
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        functools.partial(httpx.AsyncClient, transport=httpx.MockTransport(handler)),
    )
    page = asyncio.run(PageFetcher().fetch("https://gemini.google.com/share/abcdef123456"))
    assert page.document_title == "Async"
