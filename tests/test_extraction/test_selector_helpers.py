"""Tests for DOM query helpers."""

from bs4 import BeautifulSoup

from chat_archiver.extraction.selectors import (
    closest_any,
    extract_earliest_time,
    is_hidden,
    matches_any,
    normalize_candidate_nodes,
    normalize_whitespace,
    parse_datetime_ms,
    query_all_unique,
    query_first,
    safe_text,
    unique_in_document_order,
)
from chat_archiver.extraction.profiles import _patterns


HTML = """
<html><body>
  <main>
    <div class="msg a" id="one">First message here</div>
    <div class="msg b" id="two" data-role="user">Second message</div>
    <nav><div class="msg" id="three">Sidebar entry</div></nav>
    <div class="msg" id="four" hidden>Hidden one</div>
    <div class="msg" id="five" style="display: none">Hidden two</div>
    <div class="msg" id="six">Copy</div>
    <div class="msg" id="seven">x</div>
  </main>
</body></html>
"""


def _soup():
    return BeautifulSoup(HTML, "html.parser")


def test_normalize_whitespace():
    assert normalize_whitespace("  hello \n\t world  ") == "hello world"
    assert normalize_whitespace(None) == ""


def test_safe_text_missing_node():
    assert safe_text(None) == ""


def test_safe_text_joins_children():
    soup = BeautifulSoup("<div><p>Hello</p><p>world</p></div>", "html.parser")
    assert safe_text(soup.div) == "Hello world"


def test_query_first_uses_first_matching_selector():
    soup = _soup()
    node = query_first(soup, [".missing", "[data-role='user']", ".msg"])
    assert node["id"] == "two"
    assert query_first(soup, [".missing"]) is None


def test_query_all_unique_merges_in_document_order():
    soup = _soup()
    nodes = query_all_unique(soup, [".b", ".a", "#one"])
    assert [n["id"] for n in nodes] == ["one", "two"]


def test_unique_in_document_order_uses_identity():
    soup = BeautifulSoup("<div><p>same</p><p>same</p></div>", "html.parser")
    first, second = soup.find_all("p")
    # Structurally equal tags are still distinct nodes.
    assert first == second
    result = unique_in_document_order([second, first, second])
    assert len(result) == 2
    assert result[0] is first
    assert result[1] is second


def test_matches_any_and_closest_any():
    soup = _soup()
    three = soup.find(id="three")
    assert matches_any(three, [".msg"])
    assert not matches_any(three, [".b"])
    assert not matches_any(three, [])
    assert closest_any(three, ["nav"]).name == "nav"
    assert closest_any(soup.find(id="one"), ["nav"]) is None
    assert closest_any(None, ["nav"]) is None


def test_is_hidden():
    soup = _soup()
    assert is_hidden(soup.find(id="four"))
    assert is_hidden(soup.find(id="five"))
    assert not is_hidden(soup.find(id="one"))


def test_normalize_candidate_nodes_filters_noise():
    soup = _soup()
    nodes = soup.select(".msg")
    result = normalize_candidate_nodes(
        nodes,
        min_text_length=2,
        noise_container_selectors=["nav"],
        noise_text_patterns=_patterns(r"^copy$"),
    )
    assert [n["id"] for n in result.nodes] == ["one", "two"]
    # nav, hidden, display:none, "Copy", too short
    assert result.dropped_noise == 5


def test_parse_datetime_ms():
    assert parse_datetime_ms("1970-01-01T00:00:01Z") == 1000
    assert parse_datetime_ms("not a date") is None
    assert parse_datetime_ms(None) is None


def test_extract_earliest_time():
    soup = BeautifulSoup(
        """
        <main>
          <time datetime="2024-05-02T10:00:00Z">later</time>
          <time datetime="2024-05-01T10:00:00Z">earlier</time>
          <time datetime="garbage">bad</time>
        </main>
        """,
        "html.parser",
    )
    earliest = extract_earliest_time(soup, ["main time[datetime]"])
    assert earliest == parse_datetime_ms("2024-05-01T10:00:00Z")
    assert extract_earliest_time(soup, ["article time[datetime]"]) is None
