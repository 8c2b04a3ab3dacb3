"""Playwright-backed :class:`DomBackend`.

Element lookups swallow Playwright errors (a node detached between the
query and the read is just "absent") unless the page or its browser is
gone, in which case :class:`SessionLostError` is raised so the caller
can re-acquire the session instead of recording empty fields.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError

from jobpost_extract.browser.dom import DomBackend, Element, SessionLostError
from jobpost_extract.logging import logger

if TYPE_CHECKING:
    from playwright.async_api import Page

_VISIBLE_JS = """e => {
  for (let n = e; n && n.nodeType === 1; n = n.parentElement) {
    const s = getComputedStyle(n);
    if (s.display === 'none' || s.visibility === 'hidden' || parseFloat(s.opacity) === 0) {
      return false;
    }
  }
  const r = e.getBoundingClientRect();
  return r.width > 0 || r.height > 0;
}"""

# Light-DOM lookups.  Playwright's own CSS engine pierces open shadow
# roots; document.querySelector does not, so shadow content stays behind
# shadow_root() as on every other backend.
_QUERY_ONE_JS = "([root, selector]) => (root || document).querySelector(selector)"
_QUERY_ALL_JS = "([root, selector]) => Array.from((root || document).querySelectorAll(selector))"

_FIRST_OCCURRENCE_JS = "els => els.map((e, i) => els.indexOf(e) === i)"


class PageDom(DomBackend):
    """DOM backend over a live Playwright page."""

    def __init__(self, page: Page) -> None:
        self.page = page

    def _session_lost(self) -> bool:
        if self.page.is_closed():
            return True
        browser = self.page.context.browser
        return browser is not None and not browser.is_connected()

    def _absorb(self, exc: PlaywrightError, operation: str) -> None:
        """Re-raise as :class:`SessionLostError` when the page is gone; otherwise log and absorb."""
        if self._session_lost():
            raise SessionLostError(f"{operation}: {exc.message}") from exc
        logger.debug("%s failed: %s", operation, exc.message)

    # -- lookups -------------------------------------------------------------

    async def query(self, scope: Element | None, selector: str) -> Element | None:
        try:
            handle = await self.page.evaluate_handle(_QUERY_ONE_JS, [scope, selector])
        except PlaywrightError as exc:
            self._absorb(exc, f"query {selector!r}")
            return None
        element = handle.as_element()
        if element is None:
            await handle.dispose()
        return element

    async def query_all(self, scope: Element | None, selector: str) -> list[Element]:
        try:
            handle = await self.page.evaluate_handle(_QUERY_ALL_JS, [scope, selector])
            properties = await handle.get_properties()
        except PlaywrightError as exc:
            self._absorb(exc, f"query_all {selector!r}")
            return []
        found: list[Element] = []
        indexed = [(int(key), prop) for key, prop in properties.items() if key.isdigit()]
        for _index, prop in sorted(indexed, key=lambda item: item[0]):
            element = prop.as_element()
            if element is not None:
                found.append(element)
        await handle.dispose()
        return found

    # -- reads ---------------------------------------------------------------

    async def get_text(self, element: Element) -> str | None:
        try:
            text: str | None = await element.text_content()
        except PlaywrightError as exc:
            self._absorb(exc, "text_content")
            return None
        return text

    async def get_html(self, element: Element) -> str | None:
        try:
            html: str = await element.inner_html()
        except PlaywrightError as exc:
            self._absorb(exc, "inner_html")
            return None
        return html

    async def get_attribute(self, element: Element, name: str) -> str | None:
        try:
            value: str | None = await element.get_attribute(name)
        except PlaywrightError as exc:
            self._absorb(exc, f"get_attribute {name!r}")
            return None
        return value

    async def is_visible(self, element: Element) -> bool:
        try:
            return bool(await element.evaluate(_VISIBLE_JS))
        except PlaywrightError as exc:
            self._absorb(exc, "is_visible")
            return False

    async def shadow_root(self, element: Element) -> Element | None:
        try:
            handle = await element.evaluate_handle("e => e.shadowRoot")
        except PlaywrightError as exc:
            self._absorb(exc, "shadow_root")
            return None
        root = handle.as_element()
        if root is None:
            # null for both "no shadow root" and "closed shadow root"
            await handle.dispose()
        return root

    async def dedupe(self, elements: list[Element]) -> list[Element]:
        if len(elements) < 2:
            return list(elements)
        try:
            keep = await self.page.evaluate(_FIRST_OCCURRENCE_JS, elements)
        except PlaywrightError as exc:
            self._absorb(exc, "dedupe")
            return list(elements)
        return [el for el, first in zip(elements, keep, strict=True) if first]

    async def current_url(self) -> str:
        return self.page.url

    async def title(self) -> str:
        try:
            return await self.page.title()
        except PlaywrightError as exc:
            self._absorb(exc, "title")
            return ""

    async def body_text(self) -> str:
        try:
            return await self.page.inner_text("body", timeout=1_000)
        except PlaywrightError as exc:
            self._absorb(exc, "body_text")
            return ""

    # -- actions -------------------------------------------------------------

    async def click(self, element: Element, timeout: float) -> bool:
        try:
            await element.click(timeout=timeout * 1000)
        except PlaywrightError as exc:
            self._absorb(exc, "click")
            return False
        return True

    async def press_key(self, key: str) -> bool:
        try:
            await self.page.keyboard.press(key)
        except PlaywrightError as exc:
            self._absorb(exc, f"press {key}")
            return False
        return True

    async def scroll_to_bottom(self) -> bool:
        try:
            await self.page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
        except PlaywrightError as exc:
            self._absorb(exc, "scroll")
            return False
        return True
