"""Global test configuration — shared fixtures.

This conftest provides:

1. **Settings factories** — ``make_settings`` builds a validated
   :class:`Settings` with a fast readiness policy so tests that wait on
   absent panels finish in milliseconds.

2. **DOM fixtures** — ``job_page_html`` (a complete, logged-in job
   detail page) and ``make_dom`` (a :class:`SoupDom` over any markup).
   The soup backend stands in for a live page; only browser I/O is
   ever mocked.

3. **Browser I/O mocks** — ``mock_session`` produces a session manager
   whose pages are ``MagicMock`` objects, for orchestrator tests that
   exercise navigation without a browser.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from jobpost_extract.browser.soup_dom import SoupDom
from jobpost_extract.config import Settings, settings_from_dict

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

JOB_URL = "https://www.linkedin.com/jobs/view/3812345678/"

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def make_settings():
    """Factory fixture — returns a callable that produces a Settings instance.

    The default readiness policy polls every 10ms for at most 150ms.

    Usage::

        def test_something(make_settings):
            settings = make_settings()
            settings = make_settings(readiness={"timeout_ms": 2000})
    """

    def _factory(**sections: dict[str, Any]) -> Settings:
        data: dict[str, Any] = {
            "readiness": {
                "max_retries": 15,
                "initial_delay_ms": 10,
                "retry_delay_ms": 10,
                "timeout_ms": 150,
            },
            "pacing": {"inter_request_delay_ms": 0, "jitter_ms": 0},
        }
        for name, values in sections.items():
            data[name] = {**data.get(name, {}), **values}
        return settings_from_dict(data, environ={})

    return _factory


# ---------------------------------------------------------------------------
# DOM fixtures
# ---------------------------------------------------------------------------


TOP_CARD = """
<div class="job-details-jobs-unified-top-card__container--two-pane">
  <div class="job-details-jobs-unified-top-card__job-title">
    <h1>Staff Platform Engineer</h1>
  </div>
  <div class="job-details-jobs-unified-top-card__company-name">
    <a href="/company/acme/life/">Acme Robotics</a>
  </div>
  <span class="job-details-jobs-unified-top-card__bullet">Berlin, Germany (Hybrid)</span>
  <span class="posted-time-ago__text">3 days ago</span>
  <span class="num-applicants__caption">Over 200 applicants</span>
  <div class="compensation__salary">$120K/yr - $150K/yr</div>
  <span class="job-details-jobs-unified-top-card__job-insight--highlight">Full-time</span>
  <button class="jobs-apply-button--top-card" aria-label="Easy Apply to Staff Platform Engineer">
    Easy Apply
  </button>
</div>
"""

DESCRIPTION = """
<div id="job-details">
  <h2>About the job</h2>
  <p>Build the <strong>robot fleet</strong> platform.</p>
  <ul><li>Python</li><li>Kubernetes</li></ul>
</div>
"""

HIRING_TEAM = """
<div class="hirer-card__container">
  <h2>Meet the hiring team</h2>
  <div class="hirer-card__hirer-information">
    <a href="/in/jane-doe?trk=public"><strong>Jane Doe</strong></a>
    <span class="hirer-card__connection-degree">2nd</span>
    <div class="hirer-card__job-title">Engineering Manager</div>
    <span class="hirer-card__role">Job poster</span>
    <img class="evi-image" src="https://media.example.com/jane.jpg">
  </div>
</div>
"""

COMPANY_BOX = """
<section class="jobs-company">
  <div class="jobs-company__box">
    <h2>About the company</h2>
    <div class="artdeco-entity-lockup__title"><a href="/company/acme/life/">Acme Robotics</a></div>
    <div class="artdeco-entity-lockup__subtitle">12,345 followers</div>
    <div class="jobs-company__inline-information">
      Software Development · 1,001-5,000 employees · 2,345 on LinkedIn
    </div>
    <p class="jobs-company__company-description">Acme builds warehouse robots.</p>
  </div>
</section>
"""


def build_job_page(
    *,
    top_card: str = TOP_CARD,
    description: str = DESCRIPTION,
    hiring_team: str = HIRING_TEAM,
    company_box: str = COMPANY_BOX,
    extra: str = "",
    title: str = "Staff Platform Engineer | Acme Robotics | LinkedIn",
) -> str:
    """A job detail page assembled from replaceable panels."""
    return (
        f"<html><head><title>{title}</title></head><body>"
        '<nav class="global-nav">Home</nav>'
        f"{top_card}{description}{hiring_team}{company_box}{extra}"
        "</body></html>"
    )


@pytest.fixture
def job_page_html() -> str:
    return build_job_page()


@pytest.fixture
def make_dom():
    """Factory fixture — ``make_dom(html, url=JOB_URL)`` returns a SoupDom."""

    def _factory(html: str, url: str = JOB_URL) -> SoupDom:
        return SoupDom.from_html(html, url)

    return _factory


# ---------------------------------------------------------------------------
# Browser I/O mocks
# ---------------------------------------------------------------------------


def make_mock_page(*, goto_side_effect: Any = None, closed: bool = False) -> MagicMock:
    """A Playwright ``Page`` stand-in whose ``goto`` behaves as given."""
    page = MagicMock()
    page.goto = AsyncMock(side_effect=goto_side_effect)
    page.is_closed = MagicMock(return_value=closed)
    return page


@pytest.fixture
def mock_session():
    """Factory fixture — returns ``(session, pages)`` for a mocked SessionManager.

    Each ``session.page()`` context yields the next page from ``pages``
    (the last one repeats).  ``session.connection.is_alive`` reports
    ``alive``.

    Usage::

        async def test_something(mock_session):
            session, pages = mock_session([make_mock_page(goto_side_effect=...)])
    """

    def _factory(pages: list[MagicMock], *, alive: bool = True) -> tuple[MagicMock, list[MagicMock]]:
        handed_out: list[MagicMock] = []

        @asynccontextmanager
        async def _page(cookies: Any = None) -> AsyncIterator[MagicMock]:
            page = pages[min(len(handed_out), len(pages) - 1)]
            handed_out.append(page)
            yield page

        session = MagicMock()
        session.page = MagicMock(side_effect=_page)
        session.acquire = AsyncMock()
        session.release = AsyncMock()
        session.connection = MagicMock()
        session.connection.is_alive = alive
        return session, handed_out

    return _factory
