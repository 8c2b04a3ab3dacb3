"""Site-state detection tests.

Maps to BDD specs: TestDetectSiteState, TestAttemptDismiss, TestVerifySession
"""

from __future__ import annotations

import asyncio
import time

import pytest

from jobpost_extract.browser.dom import Element
from jobpost_extract.browser.soup_dom import SoupDom
from jobpost_extract.extraction.site_state import (
    SiteState,
    attempt_dismiss,
    detect_site_state,
    verify_session,
)

MODAL = (
    '<div class="contextual-sign-in-modal">'
    '<div class="contextual-sign-in-modal__screen">Sign in to see who you already know</div>'
    '<button class="modal__dismiss" aria-label="Dismiss">×</button>'
    "</div>"
)

JOB_URL = "https://www.linkedin.com/jobs/view/3812345678/"


def _dom(body: str, url: str = JOB_URL, title: str = "Job | LinkedIn") -> SoupDom:
    return SoupDom.from_html(f"<html><head><title>{title}</title></head><body>{body}</body></html>", url)


class InteractiveSoupDom(SoupDom):
    """Soup backend whose clicks and key presses land, like a live tab."""

    def __init__(self, *args: object, close_on: str = "click", click_delay: float = 0.0, **kwargs: object) -> None:
        super().__init__(*args, **kwargs)  # type: ignore[arg-type]
        self.close_on = close_on
        self.click_delay = click_delay
        self.clicks = 0
        self.keys: list[str] = []

    def _close_modal(self) -> None:
        modal = self.soup.select_one(".contextual-sign-in-modal")
        if modal is not None:
            modal.decompose()

    async def click(self, element: Element, timeout: float) -> bool:
        self.clicks += 1
        await asyncio.sleep(self.click_delay)
        if self.close_on == "click":
            self._close_modal()
        return True

    async def press_key(self, key: str) -> bool:
        self.keys.append(key)
        if self.close_on == "escape" and key == "Escape":
            self._close_modal()
        return True


def _interactive(body: str, **kwargs: object) -> InteractiveSoupDom:
    dom = _dom(body)
    return InteractiveSoupDom(dom.soup, dom.url, **kwargs)


class TestDetectSiteState:
    """REQUIREMENT: The current page is classified into exactly one site state.

    WHO: The orchestrator before it reads any field
    WHAT: A visible sign-in modal is an interstitial (and wins over a
          login form behind it); auth-wall URLs, login inputs and
          security-check titles are login walls; rate-limit wording is
          rate-limited; anything else is normal; a hidden modal does not
          count
    WHY: Reading fields off a login wall produces confident garbage
    """

    async def test_normal_page(self) -> None:
        """A plain job page is NORMAL."""
        assert await detect_site_state(_dom("<h1>Staff Engineer</h1>")) is SiteState.NORMAL

    async def test_visible_modal_is_interstitial(self) -> None:
        """The contextual sign-in modal makes the page an interstitial."""
        assert await detect_site_state(_dom(MODAL)) is SiteState.INTERSTITIAL

    async def test_hidden_modal_is_ignored(self) -> None:
        """A modal hidden with display:none is not an interstitial."""
        body = f'<div style="display:none">{MODAL}</div><h1>Staff Engineer</h1>'
        assert await detect_site_state(_dom(body)) is SiteState.NORMAL

    async def test_interstitial_wins_over_login_form(self) -> None:
        """Interstitial detection runs before login-wall detection."""
        body = MODAL + '<input name="session_key">'
        assert await detect_site_state(_dom(body)) is SiteState.INTERSTITIAL

    @pytest.mark.parametrize(
        ("body", "url", "title"),
        [
            ("<p>Join now</p>", "https://www.linkedin.com/authwall?trk=x", "LinkedIn"),
            ('<form><input name="session_key"></form>', JOB_URL, "LinkedIn"),
            ('<div class="authwall">Sign in</div>', JOB_URL, "LinkedIn"),
            ("<p>Let's do a quick check</p>", JOB_URL, "Security Verification | LinkedIn"),
            ("<p>verify</p>", "https://www.linkedin.com/checkpoint/challenge/abc", "LinkedIn"),
        ],
    )
    async def test_login_wall_markers(self, body: str, url: str, title: str) -> None:
        """Each login-wall marker on its own classifies the page as LOGIN_WALL."""
        assert await detect_site_state(_dom(body, url, title)) is SiteState.LOGIN_WALL

    async def test_rate_limit_wording(self) -> None:
        """'Too many requests' in the body is RATE_LIMITED."""
        dom = _dom("<h1>Too Many Requests</h1><p>Please try again later.</p>")
        assert await detect_site_state(dom) is SiteState.RATE_LIMITED

    async def test_state_is_derived_fresh_each_call(self) -> None:
        """Removing the modal changes the next classification."""
        dom = _dom(MODAL)
        assert await detect_site_state(dom) is SiteState.INTERSTITIAL
        dom.soup.select_one(".contextual-sign-in-modal").decompose()
        assert await detect_site_state(dom) is SiteState.NORMAL


class TestAttemptDismiss:
    """REQUIREMENT: Interstitials are dismissed within a fixed budget, confirmed by re-check.

    WHO: The orchestrator on an interstitial page
    WHAT: A dismiss-button click that removes the modal succeeds; when the
          button does nothing, Escape is tried; success is only reported
          when the modal is confirmed gone; the whole attempt is cut off
          at its budget; an already-clear page succeeds immediately
    WHY: A stuck dismissal must never stall extraction for longer than a second
    """

    async def test_click_dismisses_modal(self) -> None:
        """Clicking the dismiss button removes the modal and reports success."""
        dom = _interactive(MODAL)
        assert await attempt_dismiss(dom, settle=0.01) is True
        assert dom.clicks == 1
        assert dom.keys == []

    async def test_escape_fallback(self) -> None:
        """When the click has no effect, Escape closes the modal."""
        dom = _interactive(MODAL, close_on="escape")
        assert await attempt_dismiss(dom, settle=0.01) is True
        assert dom.keys == ["Escape"]

    async def test_failure_is_reported_when_modal_stays(self) -> None:
        """A modal that survives every action yields False."""
        dom = _interactive(MODAL, close_on="never")
        assert await attempt_dismiss(dom, settle=0.01) is False

    async def test_parsed_snapshot_cannot_dismiss(self) -> None:
        """On a static snapshot actions never land, so dismissal fails."""
        assert await attempt_dismiss(_dom(MODAL), settle=0.01) is False

    async def test_budget_bounds_the_attempt(self) -> None:
        """A click that hangs is abandoned at the budget."""
        dom = _interactive(MODAL, click_delay=5.0)
        started = time.monotonic()
        assert await attempt_dismiss(dom, budget=0.2, settle=0.01) is False
        assert time.monotonic() - started < 0.5

    async def test_clear_page_needs_no_dismissal(self) -> None:
        """Without a modal, dismissal succeeds without any action."""
        dom = _interactive("<h1>Job</h1>")
        assert await attempt_dismiss(dom) is True
        assert dom.clicks == 0


class TestVerifySession:
    """REQUIREMENT: A logged-in session is recognised from the page it lands on.

    WHO: check-cookies --live
    WHAT: Global navigation or the feed identity module means logged in;
          a login wall means logged out; a feed URL without a wall counts
          as logged in
    WHY: Cookies can be well-formed yet revoked server-side
    """

    async def test_global_nav_means_logged_in(self) -> None:
        """A visible global nav is a logged-in page."""
        dom = _dom('<nav class="global-nav__content">Home</nav>', "https://www.linkedin.com/jobs/")
        assert await verify_session(dom) is True

    async def test_login_redirect_means_logged_out(self) -> None:
        """Landing on /login is logged out."""
        dom = _dom('<input name="session_key">', "https://www.linkedin.com/login?session_redirect=x")
        assert await verify_session(dom) is False

    async def test_feed_url_without_wall(self) -> None:
        """Staying on /feed/ with no wall counts as logged in."""
        assert await verify_session(_dom("<main></main>", "https://www.linkedin.com/feed/")) is True

    async def test_other_page_without_markers(self) -> None:
        """An unrelated page with no markers is not proof of a session."""
        assert await verify_session(_dom("<main></main>", "https://www.linkedin.com/jobs/")) is False
