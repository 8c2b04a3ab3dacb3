"""BeautifulSoup-backed :class:`DomBackend`.

Stands in for the live tab DOM: the document stays mutable, so content
inserted while a wait is in progress is seen by the next poll.  Also
used to extract from saved HTML snapshots.

Shadow DOM is modelled the way servers serialise it: an open shadow root
is a ``<template shadowrootmode="open">`` child of its host.  Ordinary
queries do not descend into templates, matching the browser, so shadow
content is reachable only through :meth:`SoupDom.shadow_root`.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup
from bs4.element import PreformattedString, Tag
from soupsieve import SelectorSyntaxError

from jobpost_extract.browser.dom import DomBackend, Element
from jobpost_extract.logging import logger

_HIDDEN_STYLE = re.compile(
    r"(?:^|;)\s*(?:display\s*:\s*none|visibility\s*:\s*hidden|opacity\s*:\s*0(?:\.0*)?)\s*(?:;|$|!)",
    re.IGNORECASE,
)

_SHADOW_ATTRS = ("shadowrootmode", "shadowroot")

_NON_TEXT_TAGS = frozenset({"script", "style", "noscript", "template"})


class SoupDom(DomBackend):
    """DOM backend over a parsed BeautifulSoup document."""

    def __init__(self, soup: BeautifulSoup, url: str = "") -> None:
        self.soup = soup
        self.url = url

    @classmethod
    def from_html(cls, html: str, url: str = "") -> SoupDom:
        return cls(BeautifulSoup(html, "html.parser"), url)

    # -- lookups -------------------------------------------------------------

    def _select(self, scope: Element | None, selector: str) -> list[Tag]:
        root = self.soup if scope is None else scope
        try:
            found = root.select(selector)
        except SelectorSyntaxError as exc:
            logger.warning("Invalid selector %r: %s", selector, exc)
            return []
        return [el for el in found if _in_scope(el, root)]

    async def query(self, scope: Element | None, selector: str) -> Element | None:
        found = self._select(scope, selector)
        return found[0] if found else None

    async def query_all(self, scope: Element | None, selector: str) -> list[Element]:
        return list(self._select(scope, selector))

    # -- reads ---------------------------------------------------------------

    async def get_text(self, element: Element) -> str | None:
        if not isinstance(element, Tag):
            return None
        return _visible_strings(element)

    async def get_html(self, element: Element) -> str | None:
        if not isinstance(element, Tag):
            return None
        return element.decode_contents()

    async def get_attribute(self, element: Element, name: str) -> str | None:
        if not isinstance(element, Tag):
            return None
        value = element.get(name)
        if value is None:
            return None
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    async def is_visible(self, element: Element) -> bool:
        if not isinstance(element, Tag) or not self._attached(element):
            return False
        node: Tag | None = element
        while node is not None and node is not self.soup:
            if node.has_attr("hidden"):
                return False
            style = node.get("style")
            if isinstance(style, str) and _HIDDEN_STYLE.search(style):
                return False
            node = node.parent
        return True

    async def shadow_root(self, element: Element) -> Element | None:
        if not isinstance(element, Tag):
            return None
        for child in element.find_all("template", recursive=False):
            mode = next((child.get(a) for a in _SHADOW_ATTRS if child.has_attr(a)), None)
            if mode == "open":
                return child
            if mode == "closed":
                logger.debug("Closed shadow root on <%s> is not reachable", element.name)
                return None
        return None

    async def dedupe(self, elements: list[Element]) -> list[Element]:
        seen: set[int] = set()
        unique: list[Element] = []
        for el in elements:
            if id(el) in seen:
                continue
            seen.add(id(el))
            unique.append(el)
        return unique

    async def current_url(self) -> str:
        return self.url

    async def title(self) -> str:
        if self.soup.title is None:
            return ""
        return self.soup.title.get_text(strip=True)

    async def body_text(self) -> str:
        return _visible_strings(self.soup.body or self.soup)

    # -- actions -------------------------------------------------------------
    # A parsed document has no event loop of its own; actions never land.

    async def click(self, element: Element, timeout: float) -> bool:
        return False

    async def press_key(self, key: str) -> bool:
        return False

    async def scroll_to_bottom(self) -> bool:
        return False

    # -- helpers -------------------------------------------------------------

    def _attached(self, element: Tag) -> bool:
        if getattr(element, "decomposed", False):
            return False
        return any(parent is self.soup for parent in element.parents)


def _in_scope(element: Tag, root: Tag) -> bool:
    """Whether ``element`` belongs to ``root``'s tree without crossing a shadow boundary."""
    for parent in element.parents:
        if parent is root:
            return True
        if parent.name == "template":
            return False
    return False


def _visible_strings(element: Tag) -> str:
    parts: list[str] = []
    for string in element.find_all(string=True):
        if isinstance(string, PreformattedString):
            continue
        node = string.parent
        while node is not None and node is not element:
            if node.name in _NON_TEXT_TAGS:
                break
            node = node.parent
        else:
            parts.append(str(string))
    return " ".join(" ".join(parts).split())
