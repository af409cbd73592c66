"""SSRF-safe fetcher for shared conversation pages."""

from __future__ import annotations

import ipaddress
import logging
import socket
from urllib.parse import urlparse

from chat_archiver.exceptions import PageFetchError
from chat_archiver.page.snapshot import PageSnapshot

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = {"http", "https"}

_BLOCKED_NETWORKS = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]

_USER_AGENT = "ChatArchiver/0.1"


def _validate_url(url: str) -> tuple[bool, str | None]:
    """Validate a URL for safety. Returns (is_safe, error_message)."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False, "Invalid URL format"

    if parsed.scheme not in _ALLOWED_SCHEMES:
        return False, f"Blocked URL scheme: {parsed.scheme}. Only http/https allowed."

    hostname = parsed.hostname
    if not hostname:
        return False, "URL has no hostname"

    if hostname in ("localhost", "0.0.0.0"):
        return False, "Blocked: localhost access not allowed"

    try:
        for addr_info in socket.getaddrinfo(hostname, None):
            ip = ipaddress.ip_address(addr_info[4][0])
            for network in _BLOCKED_NETWORKS:
                if ip in network:
                    return False, f"Blocked: URL resolves to private/internal IP ({ip})"
    except socket.gaierror:
        return False, f"Cannot resolve hostname: {hostname}"

    return True, None


def _next_location(response) -> str | None:
    if not (response.is_redirect and response.has_redirect_location):
        return None
    if response.next_request is None:
        return None
    redirect_url = str(response.next_request.url)
    is_safe, error = _validate_url(redirect_url)
    if not is_safe:
        raise PageFetchError(f"Redirect blocked: {error}")
    return redirect_url


def _import_httpx():
    try:
        import httpx
    except ImportError:
        raise ImportError(
            "httpx is required for PageFetcher. "
            "Install with: pip install chat-archiver[fetch]"
        )
    return httpx


class PageFetcher:
    """Fetch a publicly shared conversation page as a :class:`PageSnapshot`.

    Only server-rendered markup is captured; pages that build the thread with
    client-side scripts yield snapshots without messages.

    Args:
        max_response_bytes: Maximum response size in bytes (default 5MB).
        max_redirects: Maximum number of redirects to follow (default 5).
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        max_response_bytes: int = 5 * 1_048_576,
        max_redirects: int = 5,
        timeout: float = 10.0,
    ):
        self.max_response_bytes = max_response_bytes
        self.max_redirects = max_redirects
        self.timeout = timeout

    def _headers(self, url: str) -> dict[str, str]:
        return {
            "User-Agent": _USER_AGENT,
            "Host": urlparse(url).hostname or "",
        }

    def _to_snapshot(self, response) -> PageSnapshot:
        if response is None:
            raise PageFetchError("No response received")
        if len(response.content) > self.max_response_bytes:
            raise PageFetchError(f"Response too large (>{self.max_response_bytes} bytes)")
        response.raise_for_status()

        content_type = response.headers.get("content-type", "")
        text = response.text
        if "html" not in content_type and not text.lstrip().startswith("<"):
            raise PageFetchError(f"Not an HTML page: {content_type or 'unknown content type'}")

        logger.info(f"Fetched {response.url} ({len(response.content)} bytes)")
        return PageSnapshot(text, str(response.url))

    async def fetch(self, url: str) -> PageSnapshot:
        """Async fetch of a conversation page."""
        httpx = _import_httpx()

        is_safe, error = _validate_url(url)
        if not is_safe:
            raise PageFetchError(error)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=False,
            ) as client:
                current_url = url
                response = None
                for _ in range(self.max_redirects):
                    response = await client.get(current_url, headers=self._headers(current_url))
                    redirect_url = _next_location(response)
                    if redirect_url is None:
                        break
                    current_url = redirect_url
                return self._to_snapshot(response)
        except PageFetchError:
            raise
        except Exception as e:
            raise PageFetchError(f"Fetch failed: {e}") from e

    def fetch_sync(self, url: str) -> PageSnapshot:
        """Synchronous fetch of a conversation page."""
        httpx = _import_httpx()

        is_safe, error = _validate_url(url)
        if not is_safe:
            raise PageFetchError(error)

        try:
            with httpx.Client(
                timeout=self.timeout,
                follow_redirects=False,
            ) as client:
                current_url = url
                response = None
                for _ in range(self.max_redirects):
                    response = client.get(current_url, headers=self._headers(current_url))
                    redirect_url = _next_location(response)
                    if redirect_url is None:
                        break
                    current_url = redirect_url
                return self._to_snapshot(response)
        except PageFetchError:
            raise
        except Exception as e:
            raise PageFetchError(f"Fetch failed: {e}") from e
