"""Browser layer — session lifecycle and the DOM capability interface.

Extraction code talks to a :class:`DomBackend`; only this package knows
whether that is a live Playwright page or a parsed document.
"""

from jobpost_extract.browser.dom import DomBackend, SessionLostError
from jobpost_extract.browser.page_dom import PageDom
from jobpost_extract.browser.session import (
    BrowserConnection,
    LaunchMode,
    SessionManager,
    SessionPool,
    pace,
)
from jobpost_extract.browser.soup_dom import SoupDom

__all__ = [
    "BrowserConnection",
    "DomBackend",
    "LaunchMode",
    "PageDom",
    "SessionLostError",
    "SessionManager",
    "SessionPool",
    "SoupDom",
    "pace",
]
