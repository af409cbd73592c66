"""Read-only snapshot of a rendered chat page."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup, Tag


class PageSnapshot:
    """Serialized DOM of a page plus the URL it was rendered at.

    Args:
        html: Outer HTML of the document (or of its ``<body>``).
        url: Location of the page; drives platform detection and session ids.
        title: Document title override. When omitted the ``<title>`` element
            is used.
    """

    def __init__(self, html: str, url: str, title: str | None = None):
        self.html = html
        self.url = url
        self._title = title
        self._soup: BeautifulSoup | None = None
        self._parsed_url = urlparse(url)

    @classmethod
    def from_file(cls, path: Path | str, url: str, title: str | None = None) -> PageSnapshot:
        return cls(Path(path).read_text(encoding="utf-8"), url, title=title)

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.html, "html.parser")
        return self._soup

    @property
    def root(self) -> Tag:
        """The element queries start from (``<html>`` when present)."""
        html_el = self.soup.find("html")
        return self.soup if html_el is None else html_el

    @property
    def body(self) -> Tag:
        body_el = self.soup.find("body")
        return self.root if body_el is None else body_el

    @property
    def host(self) -> str:
        return (self._parsed_url.hostname or "").lower()

    @property
    def path(self) -> str:
        return self._parsed_url.path or "/"

    @property
    def query(self) -> dict[str, list[str]]:
        return parse_qs(self._parsed_url.query)

    @property
    def document_title(self) -> str:
        if self._title is not None:
            return self._title
        title_el = self.soup.find("title")
        if title_el is None:
            return ""
        return title_el.get_text(strip=True)
