"""Site-state detection: interstitials, login walls, rate limiting.

:func:`detect_site_state` classifies the page currently loaded, in
priority order:

1. a visible blocking interstitial (the contextual sign-in modal) —
   dismissible, see :func:`attempt_dismiss`
2. a login wall — login form markers, an auth-wall URL, or a security
   challenge page
3. rate-limit wording in the page text
4. otherwise normal

State is derived fresh on every call; nothing is cached across
navigations.  Detection only queries the DOM; :func:`attempt_dismiss`
is the one operation that waits, and never for more than a second.
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from jobpost_extract.extraction.locators import css_each, resolve
from jobpost_extract.logging import logger

if TYPE_CHECKING:
    from jobpost_extract.browser.dom import DomBackend


class SiteState(StrEnum):
    NORMAL = "normal"
    INTERSTITIAL = "interstitial-present"
    LOGIN_WALL = "login-wall"
    RATE_LIMITED = "rate-limited"


INTERSTITIAL_LOCATORS = css_each(
    ".contextual-sign-in-modal__screen",
    "div.contextual-sign-in-modal",
)

DISMISS_LOCATORS = css_each(
    'button.modal__dismiss[aria-label="Dismiss"]',
    "button.contextual-sign-in-modal__dismiss",
    'button[aria-label="Dismiss"]',
    ".modal__dismiss",
    ".contextual-sign-in-modal__dismiss",
    "button.sign-in-modal__dismiss",
)

LOGIN_WALL_LOCATORS = css_each(
    'input[name="session_key"]',
    ".authwall",
    'div[data-test-id="sign-in-modal"]',
    'div[class*="sign-in-modal"]',
)

LOGGED_IN_LOCATORS = css_each(
    'nav[class*="global-nav"]',
    'div[data-test-id="nav-settings"]',
    'button[aria-label*="profile"]',
    'div[class*="feed-identity-module"]',
)

AUTH_WALL_PATHS = ("/login", "/authwall", "/uas/login", "/checkpoint")
CHALLENGE_TITLE_WORDS = ("security verification", "security check", "challenge")
RATE_LIMIT_PHRASES = ("rate limit exceeded", "too many requests", "please slow down")

# Total time attempt_dismiss may spend, and the pause after each action
DISMISS_BUDGET = 1.0
DISMISS_SETTLE = 0.3


async def detect_site_state(dom: DomBackend) -> SiteState:
    """Classify the current page."""
    if await _interstitial_visible(dom):
        return SiteState.INTERSTITIAL
    if await _login_wall(dom):
        return SiteState.LOGIN_WALL
    body = (await dom.body_text()).lower()
    if any(phrase in body for phrase in RATE_LIMIT_PHRASES):
        return SiteState.RATE_LIMITED
    return SiteState.NORMAL


async def attempt_dismiss(
    dom: DomBackend,
    *,
    budget: float = DISMISS_BUDGET,
    settle: float = DISMISS_SETTLE,
) -> bool:
    """Try to close a blocking interstitial.  Returns whether it is confirmed gone.

    Tries the known dismiss buttons, then an Escape key press, re-checking
    after each.  The whole attempt is cut off after ``budget`` seconds.
    """
    try:
        return await asyncio.wait_for(_dismiss(dom, settle), budget)
    except TimeoutError:
        logger.warning("Interstitial dismissal did not finish within %.1fs", budget)
        return False


async def verify_session(dom: DomBackend) -> bool:
    """Whether the page shows signs of a logged-in session."""
    element = await resolve(dom, None, LOGGED_IN_LOCATORS, accept=dom.is_visible)
    if element is not None:
        return True
    if await _login_wall(dom):
        return False
    path = urlsplit(await dom.current_url()).path.rstrip("/")
    return path in ("", "/feed") or path.startswith("/feed/")


# ---------------------------------------------------------------------------
# Internal checks
# ---------------------------------------------------------------------------


async def _interstitial_visible(dom: DomBackend) -> bool:
    return await resolve(dom, None, INTERSTITIAL_LOCATORS, accept=dom.is_visible) is not None


async def _login_wall(dom: DomBackend) -> bool:
    path = urlsplit(await dom.current_url()).path
    if any(path.startswith(prefix) for prefix in AUTH_WALL_PATHS):
        return True
    title = (await dom.title()).lower()
    if any(word in title for word in CHALLENGE_TITLE_WORDS):
        return True
    return await resolve(dom, None, LOGIN_WALL_LOCATORS, accept=dom.is_visible) is not None


async def _dismiss(dom: DomBackend, settle: float) -> bool:
    if not await _interstitial_visible(dom):
        return True

    button = await resolve(dom, None, DISMISS_LOCATORS, accept=dom.is_visible)
    if button is not None and await dom.click(button, settle):
        await asyncio.sleep(settle)
        if not await _interstitial_visible(dom):
            logger.info("Interstitial dismissed via close button")
            return True

    if await dom.press_key("Escape"):
        await asyncio.sleep(settle)
    gone = not await _interstitial_visible(dom)
    if gone:
        logger.info("Interstitial dismissed via Escape")
    return gone
