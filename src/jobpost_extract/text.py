"""Shared text-processing utilities.

Pure functions with no browser dependencies — safe to import from any
layer (CLI, extraction, cookies).
"""

from __future__ import annotations

import re
from html.parser import HTMLParser

from bs4 import BeautifulSoup
from bs4.element import Tag
from markdownify import markdownify

# "Show more" / "Show less" in the languages the site renders for us
_TOGGLE_PHRASES = (
    "show more",
    "show less",
    "daha fazla",
    "daha az",
    "mehr anzeigen",
    "weniger anzeigen",
    "voir plus",
    "voir moins",
)

_TOGGLE_BUTTON_SELECTOR = '.show-more-less-html__button, [class*="show-more-less-html__button"]'
# Longest label text a toggle control carries
_TOGGLE_MAX_LENGTH = 30


def clean_whitespace(text: str | None) -> str:
    """Collapse runs of whitespace to single spaces and strip the ends.

    >>> clean_whitespace("  Senior\\n   Engineer  ")
    'Senior Engineer'
    """
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


class _HTMLTextExtractor(HTMLParser):
    """Lightweight HTML-to-text converter for description fragments."""

    _BLOCK_TAGS = frozenset({"p", "div", "li", "br", "h1", "h2", "h3", "h4", "ul", "ol"})

    def __init__(self) -> None:
        super().__init__()
        self._parts: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in self._BLOCK_TAGS:
            self._parts.append(" ")

    def handle_data(self, data: str) -> None:
        self._parts.append(data)

    def get_text(self) -> str:
        return "".join(self._parts)


def html_to_text(html: str) -> str:
    """Strip HTML tags and return plain text."""
    extractor = _HTMLTextExtractor()
    extractor.feed(html)
    return clean_whitespace(extractor.get_text())


def clean_job_html(html: str) -> str:
    """Remove expand/collapse controls, presentational attributes and empty nodes.

    The description panel ships its own "Show more" button inside the
    markup and decorates every node with ``class`` and ``data-*``
    attributes that carry no content.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for button in soup.select(_TOGGLE_BUTTON_SELECTOR):
        button.decompose()

    for el in soup.find_all(["button", "span"]):
        if not isinstance(el, Tag) or el.decomposed:
            continue
        text = el.get_text(" ", strip=True).lower()
        if len(text) <= _TOGGLE_MAX_LENGTH and any(phrase in text for phrase in _TOGGLE_PHRASES):
            el.decompose()

    for el in soup.find_all(True):
        for attr in list(el.attrs):
            if attr == "class" or attr.startswith("data-"):
                del el.attrs[attr]

    # Innermost first so a parent emptied by its children goes too
    for el in reversed(soup.find_all(True)):
        if el.name in ("br", "img", "hr"):
            continue
        if not el.find(True) and not el.get_text(strip=True):
            el.decompose()

    return str(soup).strip()


def html_to_markdown(html: str) -> str:
    """Convert a job-description fragment to Markdown.

    ATX headings, ``-`` bullets, ``**strong**``, ``*em*`` and inline
    links; never more than one blank line in a row.
    """
    if not html:
        return ""
    markdown = markdownify(
        clean_job_html(html),
        heading_style="ATX",
        bullets="-",
        strong_em_symbol="*",
    )
    markdown = re.sub(r"[ \t]+\n", "\n", markdown)
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    return markdown.strip()


def parse_count(text: str | None) -> int | None:
    """Pull the first integer out of a count phrase.

    Understands thousands separators and ``K``/``M`` suffixes.

    >>> parse_count("Over 200 applicants")
    200
    >>> parse_count("12,345 followers")
    12345
    >>> parse_count("1.2K employees")
    1200
    """
    if not text:
        return None
    match = re.search(r"(\d[\d,]*(?:\.\d+)?)\s*([KkMm])?\b", text)
    if not match:
        return None
    number = float(match.group(1).replace(",", ""))
    suffix = (match.group(2) or "").upper()
    if suffix == "K":
        number *= 1_000
    elif suffix == "M":
        number *= 1_000_000
    return int(round(number))
