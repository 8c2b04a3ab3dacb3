"""DOM capability interface shared by every extraction component.

The locator engine, the readiness waiter and the site-state detector are
written only against :class:`DomBackend`.  Two implementations exist:

- :class:`~jobpost_extract.browser.page_dom.PageDom` drives a live
  Playwright ``Page`` (the bulk-extraction path)
- :class:`~jobpost_extract.browser.soup_dom.SoupDom` wraps a parsed,
  mutable BeautifulSoup document (the in-page and saved-snapshot path)

Elements are opaque to callers: whatever the backend hands out is only
ever passed back into the same backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

# Backend-native element handle (ElementHandle, bs4 Tag, ...)
Element = Any


class SessionLostError(Exception):
    """The page or its browser went away while we were reading it.

    Raised by backends instead of returning ``None`` so the orchestrator
    can tell a disconnected session from an element that is simply absent.
    """


class DomBackend(ABC):
    """Asynchronous read-mostly view of one document.

    ``scope`` arguments accept an element (or shadow root) previously
    returned by this backend, or ``None`` for the whole document.
    Lookups return ``None`` / ``[]`` for absence, never raise for it.

    Lookups see the light DOM only: a CSS query never crosses into a
    shadow root.  Shadow content is reached by scoping a query to
    :meth:`shadow_root`.
    """

    @abstractmethod
    async def query(self, scope: Element | None, selector: str) -> Element | None:
        """First element under ``scope`` matching a CSS selector, without piercing shadow roots."""

    @abstractmethod
    async def query_all(self, scope: Element | None, selector: str) -> list[Element]:
        """Every element under ``scope`` matching a CSS selector, in document order."""

    @abstractmethod
    async def get_text(self, element: Element) -> str | None:
        """Text content of the element and its descendants."""

    @abstractmethod
    async def get_html(self, element: Element) -> str | None:
        """Inner HTML of the element."""

    @abstractmethod
    async def get_attribute(self, element: Element, name: str) -> str | None: ...

    @abstractmethod
    async def is_visible(self, element: Element) -> bool:
        """Computed visibility: display, visibility and opacity of the element and its ancestors."""

    @abstractmethod
    async def shadow_root(self, element: Element) -> Element | None:
        """The element's *open* shadow root, usable as a ``scope``.

        Closed shadow roots are not reachable from page script and are
        reported as ``None``, the same as having no shadow root at all.
        """

    @abstractmethod
    async def dedupe(self, elements: list[Element]) -> list[Element]:
        """Drop repeated references to the same node, keeping first occurrences."""

    @abstractmethod
    async def current_url(self) -> str: ...

    @abstractmethod
    async def title(self) -> str: ...

    @abstractmethod
    async def body_text(self) -> str:
        """Visible text of the whole document body."""

    @abstractmethod
    async def click(self, element: Element, timeout: float) -> bool:
        """Click the element, giving up after ``timeout`` seconds.  Returns whether it clicked."""

    @abstractmethod
    async def press_key(self, key: str) -> bool:
        """Send a key press to the document.  Returns whether it was delivered."""

    @abstractmethod
    async def scroll_to_bottom(self) -> bool:
        """Scroll the main document to trigger lazy loading.  Returns whether it scrolled."""
