"""Extraction orchestrator tests.

Maps to BDD specs: TestRequiredFields, TestFieldValues, TestSiteStateHandling,
TestLateContent, TestNavigation, TestSessionRecovery, TestListing
"""

from __future__ import annotations

import asyncio

import pytest
from conftest import JOB_URL, build_job_page, make_mock_page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from jobpost_extract.browser.soup_dom import SoupDom
from jobpost_extract.cookies import parse_cookies
from jobpost_extract.errors import ErrorType
from jobpost_extract.extraction import (
    ExtractionPhase,
    ExtractionStatus,
    FieldFailure,
    JobExtractor,
    SiteState,
    WaitPolicy,
)

P = ExtractionPhase

TOP_CARD_WITHOUT_COMPANY = """
<div class="job-details-jobs-unified-top-card__container--two-pane">
  <div class="job-details-jobs-unified-top-card__job-title"><h1>Staff Platform Engineer</h1></div>
</div>
"""

MODAL = (
    '<div class="contextual-sign-in-modal">'
    '<div class="contextual-sign-in-modal__screen">Sign in to see more</div>'
    '<button class="modal__dismiss" aria-label="Dismiss">×</button>'
    "</div>"
)

CRITERIA = """
<ul class="description__job-criteria-list">
  <li class="description__job-criteria-item"><h3>Seniority level</h3>
    <span class="description__job-criteria-text">Mid-Senior level</span></li>
  <li class="description__job-criteria-item"><h3>Employment type</h3>
    <span class="description__job-criteria-text">Full-time</span></li>
  <li class="description__job-criteria-item"><h3>Job function</h3>
    <span class="description__job-criteria-text">Engineering</span></li>
  <li class="description__job-criteria-item"><h3>Industries</h3>
    <span class="description__job-criteria-text">Automation Machinery Manufacturing</span></li>
</ul>
"""


def _card(job_id: str, title: str, company: str | None, footer: tuple[str, ...] = ()) -> str:
    company_html = f'<div class="artdeco-entity-lockup__subtitle">{company}</div>' if company else ""
    footer_html = "".join(f"<li>{item}</li>" for item in footer)
    return (
        f'<li class="jobs-search-results__list-item" data-occludable-job-id="{job_id}">'
        f'<a class="job-card-list__title" href="/jobs/view/{job_id}/?trk=public_jobs">{title}</a>'
        f"{company_html}"
        '<ul class="job-card-container__metadata-wrapper"><li>Berlin (Remote)</li></ul>'
        f'<ul class="job-card-list__footer-wrapper">{footer_html}</ul>'
        "</li>"
    )


@pytest.fixture
def extractor(make_settings):
    return JobExtractor(make_settings())


class TestRequiredFields:
    """REQUIREMENT: Missing fields degrade the result instead of failing it.

    WHO: Callers consuming extraction outcomes in bulk
    WHAT: A missing optional field leaves the result complete with a
          not_found failure recorded; one missing required field yields a
          done but partial result; with every required field missing the
          call fails with an EXTRACTION error and the partial result attached
    WHY: One moved panel must not throw away everything else on the page
    """

    async def test_missing_optional_field(self, extractor, make_dom) -> None:
        """Without a description the result is done and not partial."""
        outcome = await extractor.extract_dom(make_dom(build_job_page(description="")), JOB_URL)
        assert outcome.status is ExtractionStatus.DONE
        assert outcome.result.partial is False
        assert outcome.result.description_html is None
        assert FieldFailure("description", "not_found") in outcome.result.failures

    async def test_missing_company_is_partial(self, extractor, make_dom) -> None:
        """Without a company the result is done and partial."""
        dom = make_dom(build_job_page(top_card=TOP_CARD_WITHOUT_COMPANY))
        outcome = await extractor.extract_dom(dom, JOB_URL)
        assert outcome.ok
        assert outcome.result.title == "Staff Platform Engineer"
        assert outcome.result.company is None
        assert outcome.result.partial is True

    async def test_no_required_field_fails(self, extractor, make_dom) -> None:
        """With neither title nor company the call fails with EXTRACTION."""
        outcome = await extractor.extract_dom(make_dom(build_job_page(top_card="")), JOB_URL)
        assert outcome.status is ExtractionStatus.FAILED
        assert outcome.error.error_type is ErrorType.EXTRACTION
        assert outcome.result is not None
        assert outcome.result.partial is True
        assert outcome.states == [P.STATE_CHECK, P.EXTRACTING, P.FAILED]


class TestFieldValues:
    """REQUIREMENT: Every field of a complete job page is read and normalised.

    WHO: Consumers of ExtractionResult
    WHAT: Required fields come from fallback locators when needed; salary,
          posting date, applicant count and workplace type are parsed;
          the description is cleaned into HTML, Markdown and text; hiring
          contacts and the company box become typed records; criteria are
          read by position; the job id comes from markup when the URL has none
    WHY: Downstream filtering works on typed values, not display strings
    """

    async def test_top_card_fields(self, extractor, make_dom, job_page_html) -> None:
        """Title (via the second locator), company, location and top-card facts."""
        outcome = await extractor.extract_dom(make_dom(job_page_html), JOB_URL)
        result = outcome.result
        assert outcome.states == [P.STATE_CHECK, P.EXTRACTING, P.DONE]
        assert outcome.site_state is SiteState.NORMAL
        assert result.title == "Staff Platform Engineer"
        assert result.company == "Acme Robotics"
        assert result.job_id == "3812345678"
        assert result.location == "Berlin, Germany (Hybrid)"
        assert result.workplace_type == "hybrid"
        assert result.employment_type == "Full-time"
        assert result.posted_text == "3 days ago"
        assert result.posted_date is not None
        assert result.applicant_count == 200
        assert result.is_easy_apply is True
        assert (result.salary.minimum, result.salary.maximum, result.salary.period) == (
            120_000,
            150_000,
            "year",
        )
        assert result.failures == []

    async def test_description_forms(self, extractor, make_dom, job_page_html) -> None:
        """The description is available as cleaned HTML, Markdown and text."""
        result = (await extractor.extract_dom(make_dom(job_page_html), JOB_URL)).result
        assert "class=" not in result.description_html
        assert "**robot fleet**" in result.description_markdown
        assert "- Kubernetes" in result.description_markdown
        assert "Build the robot fleet platform." in result.description_text

    async def test_hiring_contact(self, extractor, make_dom, job_page_html) -> None:
        """The hiring-team card becomes a HiringContact."""
        result = (await extractor.extract_dom(make_dom(job_page_html), JOB_URL)).result
        [contact] = result.hiring_team
        assert contact.name == "Jane Doe"
        assert contact.profile_id == "jane-doe"
        assert contact.profile_url == "https://www.linkedin.com/in/jane-doe"
        assert contact.title == "Engineering Manager"
        assert contact.connection_degree == "2nd"
        assert contact.is_job_poster is True
        assert contact.image_url == "https://media.example.com/jane.jpg"

    async def test_company_profile(self, extractor, make_dom, job_page_html) -> None:
        """The company box becomes a CompanyProfile with parsed counts."""
        profile = (await extractor.extract_dom(make_dom(job_page_html), JOB_URL)).result.company_profile
        assert profile.name == "Acme Robotics"
        assert profile.company_id == "acme"
        assert profile.industry == "Software Development"
        assert profile.employee_count == "1,001-5,000 employees"
        assert profile.linkedin_employee_count == 2345
        assert profile.follower_count == 12345
        assert profile.description == "Acme builds warehouse robots."

    async def test_job_criteria(self, extractor, make_dom) -> None:
        """The logged-out criteria list fills seniority, function and industries."""
        dom = make_dom(build_job_page(extra=CRITERIA))
        result = (await extractor.extract_dom(dom, JOB_URL)).result
        assert result.seniority_level == "Mid-Senior level"
        assert result.job_function == "Engineering"
        assert result.industries == "Automation Machinery Manufacturing"

    async def test_job_id_from_markup(self, extractor, make_dom) -> None:
        """Without an id in the URL, the hidden posting id is used."""
        url = "https://www.linkedin.com/jobs/collections/recommended/"
        extra = '<code id="decoratedJobPostingId" style="display: none"><!--"3899999999"--></code>'
        result = (await extractor.extract_dom(make_dom(build_job_page(extra=extra), url), url)).result
        assert result.job_id == "3899999999"

    async def test_to_dict_is_compact(self, extractor, make_dom, job_page_html) -> None:
        """Serialised outcomes omit None values and render datetimes as strings."""
        data = (await extractor.extract_dom(make_dom(job_page_html), JOB_URL)).to_dict()
        assert data["status"] == "done"
        assert data["states"] == ["state_check", "extracting", "done"]
        assert "seniority_level" not in data["result"]
        assert isinstance(data["result"]["posted_date"], str)


class TestSiteStateHandling:
    """REQUIREMENT: The page's site state shapes how extraction proceeds.

    WHO: The orchestrator after navigation
    WHAT: An interstitial triggers a dismissal attempt (recorded in the
          trace) and extraction continues whether or not it succeeded;
          login walls are read once without waiting out the policy
    WHY: A wall never finishes loading, so waiting on it only burns time
    """

    async def test_interstitial_is_dismissed_then_extracted(self, extractor, make_dom) -> None:
        """The trace shows dismissing and the fields are still read."""
        outcome = await extractor.extract_dom(make_dom(build_job_page(extra=MODAL)), JOB_URL)
        assert outcome.states == [P.STATE_CHECK, P.DISMISSING, P.EXTRACTING, P.DONE]
        assert outcome.site_state is SiteState.INTERSTITIAL
        assert outcome.result.title == "Staff Platform Engineer"

    async def test_login_wall_is_read_once(self, make_settings, make_dom) -> None:
        """A login wall fails fast even with a long readiness timeout."""
        extractor = JobExtractor(make_settings(readiness={"timeout_ms": 5_000, "retry_delay_ms": 100}))
        html = "<html><body><form><input name='session_key'></form></body></html>"
        outcome = await extractor.extract_dom(make_dom(html), JOB_URL)
        assert outcome.site_state is SiteState.LOGIN_WALL
        assert outcome.status is ExtractionStatus.FAILED
        assert outcome.elapsed < 1.0


class TestLateContent:
    """REQUIREMENT: Late-rendering panels are waited for, not read as placeholders.

    WHO: Pages whose description hydrates after the top card
    WHAT: A skeleton replaced by real content mid-wait is read as the real
          content, well before the policy timeout
    WHY: Reading at first sight captures the skeleton and loses the description
    """

    async def test_description_rendered_after_delay(self, make_settings) -> None:
        """Content appearing at 0.4s is extracted; the wait ends within 0.55s."""
        skeleton = '<div id="job-details"><div class="scaffold-skeleton-container"></div></div>'
        dom = SoupDom.from_html(build_job_page(description=skeleton), JOB_URL)
        extractor = JobExtractor(make_settings())
        extractor.policy = WaitPolicy(max_retries=10, retry_delay=0.1, timeout=2.0)

        def render() -> None:
            panel = dom.soup.select_one("#job-details")
            panel.clear()
            paragraph = dom.soup.new_tag("p")
            paragraph.string = "Rendered late."
            panel.append(paragraph)

        asyncio.get_running_loop().call_later(0.4, render)
        outcome = await extractor.extract_dom(dom, JOB_URL)

        assert outcome.result.description_text == "Rendered late."
        assert outcome.result.title == "Staff Platform Engineer"
        assert not [f for f in outcome.result.failures if f.field == "description"]
        assert outcome.elapsed <= 0.55


class TestNavigation:
    """REQUIREMENT: Navigation problems come back as typed outcomes.

    WHO: Bulk extraction loops that must keep going
    WHAT: A navigation timeout is TIMED_OUT with a TIMEOUT error; a
          network error on a live session is FAILED with CONNECTION;
          invalid cookies fail before any page is opened; slugged job
          URLs are navigated in canonical form
    WHY: One unreachable posting must not abort a batch
    """

    async def test_navigation_timeout(self, make_settings, mock_session) -> None:
        """A goto timeout yields TIMED_OUT with a two-state trace."""
        session, _pages = mock_session(
            [make_mock_page(goto_side_effect=PlaywrightTimeoutError("Timeout 30000ms exceeded"))]
        )
        outcome = await JobExtractor(make_settings(), session).extract(JOB_URL)
        assert outcome.status is ExtractionStatus.TIMED_OUT
        assert outcome.error.error_type is ErrorType.TIMEOUT
        assert outcome.states == [P.NAVIGATING, P.TIMED_OUT]

    async def test_network_error(self, make_settings, mock_session) -> None:
        """A DNS failure on a live session is FAILED with CONNECTION."""
        session, _pages = mock_session(
            [make_mock_page(goto_side_effect=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))]
        )
        outcome = await JobExtractor(make_settings(), session).extract(JOB_URL)
        assert outcome.status is ExtractionStatus.FAILED
        assert outcome.error.error_type is ErrorType.CONNECTION
        session.acquire.assert_not_awaited()

    async def test_invalid_cookies_fail_before_navigation(self, make_settings, mock_session) -> None:
        """A cookie set without the auth cookie never opens a page."""
        session, _pages = mock_session([make_mock_page()])
        cookies = parse_cookies('[{"name": "JSESSIONID", "value": "x", "domain": ".linkedin.com"}]')
        outcome = await JobExtractor(make_settings(), session).extract(JOB_URL, cookies)
        assert outcome.status is ExtractionStatus.FAILED
        assert outcome.error.error_type is ErrorType.AUTHENTICATION
        assert outcome.error.context["validation_errors"]
        session.page.assert_not_called()

    async def test_slugged_url_is_canonicalised(self, make_settings, mock_session) -> None:
        """The page is loaded at /jobs/view/<id>/."""
        page = make_mock_page(goto_side_effect=PlaywrightTimeoutError("Timeout"))
        session, _pages = mock_session([page])
        url = "https://www.linkedin.com/jobs/view/staff-engineer-at-acme-3812345678?refId=abc"
        await JobExtractor(make_settings(), session).extract(url)
        assert page.goto.await_args.args[0] == JOB_URL

    async def test_extract_many_keeps_going(self, make_settings, mock_session) -> None:
        """Each URL gets its own outcome even when every one times out."""
        session, pages = mock_session([make_mock_page(goto_side_effect=PlaywrightTimeoutError("Timeout"))])
        outcomes = await JobExtractor(make_settings(), session).extract_many([JOB_URL, JOB_URL])
        assert [o.status for o in outcomes] == [ExtractionStatus.TIMED_OUT] * 2
        assert len(pages) == 2


class TestSessionRecovery:
    """REQUIREMENT: A lost browser session is re-acquired once per call.

    WHO: Long bulk runs against a remote browser that may restart
    WHAT: A navigation error on a closed page re-acquires the session and
          retries with a fresh trace; losing the session twice fails the
          call with a CONNECTION error
    WHY: A restarted browser should cost one retry, not the whole batch
    """

    async def test_retry_after_session_loss(self, make_settings, mock_session) -> None:
        """The second attempt runs on a new page after one acquire."""
        lost = make_mock_page(goto_side_effect=PlaywrightError("Target closed"), closed=True)
        slow = make_mock_page(goto_side_effect=PlaywrightTimeoutError("Timeout"))
        session, pages = mock_session([lost, slow])
        outcome = await JobExtractor(make_settings(), session).extract(JOB_URL)
        session.acquire.assert_awaited_once()
        assert pages == [lost, slow]
        assert outcome.status is ExtractionStatus.TIMED_OUT
        assert outcome.states == [P.NAVIGATING, P.TIMED_OUT]

    async def test_session_lost_twice(self, make_settings, mock_session) -> None:
        """A second loss fails the call."""
        lost = make_mock_page(goto_side_effect=PlaywrightError("Target closed"), closed=True)
        session, pages = mock_session([lost])
        outcome = await JobExtractor(make_settings(), session).extract(JOB_URL)
        assert outcome.status is ExtractionStatus.FAILED
        assert outcome.error.error_type is ErrorType.CONNECTION
        assert "session lost twice" in outcome.error.error
        assert len(pages) == 2


class TestListing:
    """REQUIREMENT: Search-result cards are collected, deduplicated and validated.

    WHO: The listing command and callers building job queues
    WHAT: Each card yields id, canonical URL, title and company; the same
          job listed twice appears once; cards missing a required part
          are skipped and counted; promoted and Easy Apply badges are
          flagged; a page with no cards is partial with a cards failure;
          invalid cookies set the listing error
    WHY: A queue with duplicate or half-read cards wastes detail extractions
    """

    async def test_cards_are_read(self, extractor, make_dom) -> None:
        """Two distinct cards, one duplicate and one skipped."""
        body = (
            "<ul>"
            + _card("4000000001", "Data Engineer", "Acme", ("Promoted", "Easy Apply"))
            + _card("4000000002", "ML Engineer", "Globex")
            + _card("4000000001", "Data Engineer", "Acme")
            + _card("4000000003", "No Company", None)
            + "</ul>"
        )
        url = "https://www.linkedin.com/jobs/search/?keywords=engineer"
        listing = await extractor.listing_from_dom(make_dom(f"<html><body>{body}</body></html>", url), url)

        assert [c.job_id for c in listing.cards] == ["4000000001", "4000000002"]
        first, second = listing.cards
        assert first.url == "https://www.linkedin.com/jobs/view/4000000001/"
        assert (first.title, first.company, first.location) == ("Data Engineer", "Acme", "Berlin (Remote)")
        assert first.is_promoted is True
        assert first.is_easy_apply is True
        assert second.is_promoted is False
        assert second.is_easy_apply is False
        assert listing.skipped == 1
        assert listing.partial is True

    async def test_no_cards(self, extractor, make_dom) -> None:
        """An empty results page is partial with a cards not_found failure."""
        url = "https://www.linkedin.com/jobs/search/?keywords=nothing"
        listing = await extractor.listing_from_dom(make_dom("<p>No matching jobs found.</p>", url), url)
        assert listing.cards == []
        assert listing.partial is True
        assert listing.failures == [FieldFailure("cards", "not_found")]

    async def test_invalid_cookies(self, make_settings, mock_session) -> None:
        """Invalid cookies set the listing error without opening a page."""
        session, _pages = mock_session([make_mock_page()])
        listing = await JobExtractor(make_settings(), session).extract_listing(
            "https://www.linkedin.com/jobs/search/?keywords=python", []
        )
        assert listing.error is not None
        assert listing.error.context["validation_errors"] == ["No cookies provided"]
        session.page.assert_not_called()
