"""Extraction orchestrator — job detail and search-result pages.

One call to :meth:`JobExtractor.extract` walks the state machine::

    navigating → state_check → (dismissing →)? extracting → done | timed_out | failed

and always hands back an :class:`ExtractionOutcome`.  Field-level
problems are recorded on the result and never abort the other fields;
navigation timeouts, invalid cookies and pages without any required
field come back as typed ``timed_out`` / ``failed`` outcomes.  A lost
browser session is re-acquired once per call, transparently.

The same field walk runs on any :class:`DomBackend`:
:meth:`JobExtractor.extract_dom` is the in-page path (a live tab or a
saved snapshot), :meth:`JobExtractor.extract` wraps it in navigation.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import replace
from functools import partial
from typing import TYPE_CHECKING, Any, TypeVar

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from jobpost_extract.browser.dom import SessionLostError
from jobpost_extract.browser.page_dom import PageDom
from jobpost_extract.browser.session import SessionManager, pace
from jobpost_extract.browser.soup_dom import SoupDom
from jobpost_extract.cookies import validate_cookies
from jobpost_extract.errors import ActionableError, ErrorType
from jobpost_extract.extraction import fields
from jobpost_extract.extraction.locators import resolve, resolve_all, resolve_text
from jobpost_extract.extraction.models import (
    REQUIRED_FIELDS,
    CompanyProfile,
    ExtractionOutcome,
    ExtractionPhase,
    ExtractionResult,
    ExtractionStatus,
    FieldFailure,
    HiringContact,
    JobCard,
    ListingResult,
    SearchParams,
)
from jobpost_extract.extraction.parsing import (
    absolute_url,
    build_search_url,
    canonical_job_url,
    company_id_from_url,
    detect_workplace_type,
    extract_job_id,
    job_id_from_markup,
    match_employment_type,
    parse_connection_degree,
    profile_id_from_url,
)
from jobpost_extract.extraction.readiness import WaitPolicy, await_ready, has_text, present
from jobpost_extract.extraction.site_state import (
    SiteState,
    attempt_dismiss,
    detect_site_state,
    verify_session,
)
from jobpost_extract.logging import logger
from jobpost_extract.text import (
    clean_job_html,
    clean_whitespace,
    html_to_markdown,
    html_to_text,
    parse_count,
)

if TYPE_CHECKING:
    from playwright.async_api import Page

    from jobpost_extract.browser.dom import DomBackend, Element
    from jobpost_extract.config import Settings
    from jobpost_extract.cookies import SessionCookie
    from jobpost_extract.extraction.fields import ExtractionField

T = TypeVar("T")

# Description "show more" handling
EXPAND_CLICK_TIMEOUT = 1.0
EXPAND_SETTLE = 0.5

_DEGRADED_STATES = (SiteState.LOGIN_WALL, SiteState.RATE_LIMITED)
_INFO_SEPARATORS = ("•", "·", "\n")


class JobExtractor:
    """Extracts job postings through a :class:`SessionManager`.

    The extractor owns its session manager unless one is passed in;
    use it as an async context manager (or call :meth:`close`) so an
    owned browser is released at shutdown.
    """

    def __init__(self, settings: Settings, session: SessionManager | None = None) -> None:
        self.settings = settings
        self._owns_session = session is None
        self.session = session or SessionManager(settings)
        self.policy = settings.readiness.policy()

    async def __aenter__(self) -> JobExtractor:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session:
            await self.session.release()

    # -- detail pages --------------------------------------------------------

    async def extract(
        self,
        url: str,
        cookies: Sequence[SessionCookie] | None = None,
    ) -> ExtractionOutcome:
        """Navigate to a job page and extract it.

        ``cookies`` are validated before any navigation; an invalid set
        fails the call without touching the browser.  Without cookies the
        page is loaded logged out.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        states: list[ExtractionPhase] = []

        def finish(outcome: ExtractionOutcome) -> ExtractionOutcome:
            outcome.elapsed = loop.time() - started
            logger.info(
                "Extraction of %s: %s in %.2fs (%s)",
                url,
                outcome.status,
                outcome.elapsed,
                " → ".join(outcome.states),
            )
            return outcome

        error = self._check_cookies(cookies)
        if error is not None:
            states.append(ExtractionPhase.FAILED)
            return finish(ExtractionOutcome(ExtractionStatus.FAILED, error=error, states=states))

        target = self._canonical_url(url)

        async def attempt() -> ExtractionOutcome:
            states.clear()
            return await self._extract_page(target, cookies or [], states)

        try:
            outcome = await self._with_session_retry(target, attempt)
        except SessionLostError as exc:
            states.append(ExtractionPhase.FAILED)
            outcome = ExtractionOutcome(
                ExtractionStatus.FAILED,
                error=ActionableError.connection(
                    "browser",
                    target,
                    f"session lost twice: {exc}",
                    suggestion="Check the browser process or remote endpoint, then retry",
                ),
                states=states,
            )
        except ActionableError as exc:
            logger.error("Extraction of %s failed: %s", target, exc.error)
            states.append(ExtractionPhase.FAILED)
            outcome = ExtractionOutcome(ExtractionStatus.FAILED, error=exc, states=states)
        except Exception as exc:
            logger.error("Unexpected error extracting %s: %s", target, exc)
            states.append(ExtractionPhase.FAILED)
            outcome = ExtractionOutcome(
                ExtractionStatus.FAILED,
                error=ActionableError.from_exception(exc, "extractor", "extract"),
                states=states,
            )
        return finish(outcome)

    async def extract_many(
        self,
        urls: Iterable[str],
        cookies: Sequence[SessionCookie] | None = None,
    ) -> list[ExtractionOutcome]:
        """Extract several pages sequentially on this extractor's session, paced."""
        outcomes: list[ExtractionOutcome] = []
        for index, url in enumerate(urls):
            if index:
                await pace(self.settings.pacing)
            outcomes.append(await self.extract(url, cookies))
        done = sum(1 for o in outcomes if o.ok)
        logger.info("Extracted %d/%d page(s)", done, len(outcomes))
        return outcomes

    async def extract_html(self, html: str, url: str) -> ExtractionOutcome:
        """Extract from saved page markup (no browser)."""
        return await self.extract_dom(SoupDom.from_html(html, url), url)

    async def extract_dom(
        self,
        dom: DomBackend,
        url: str,
        *,
        states: list[ExtractionPhase] | None = None,
    ) -> ExtractionOutcome:
        """Run state check and field extraction on an already-loaded page.

        Appends to ``states`` (starting at ``state_check``) so a caller
        that navigated first gets one continuous trace.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        trace = [] if states is None else states

        trace.append(ExtractionPhase.STATE_CHECK)
        site_state = await detect_site_state(dom)
        if site_state is SiteState.INTERSTITIAL:
            trace.append(ExtractionPhase.DISMISSING)
            if await attempt_dismiss(dom):
                site_state = await detect_site_state(dom)
            else:
                logger.warning("Interstitial on %s could not be dismissed — extracting anyway", url)
        if site_state in _DEGRADED_STATES:
            logger.warning("Page %s shows %s — extracting what is readable", url, site_state)

        trace.append(ExtractionPhase.EXTRACTING)
        policy = self._policy_for(site_state)
        result = ExtractionResult(url=url, job_id=extract_job_id(url))

        await self._extract_fields(dom, fields.REQUIRED_DETAIL_FIELDS, result, policy)
        missing = result.missing_required
        if len(missing) == len(REQUIRED_FIELDS):
            result.partial = True
            trace.append(ExtractionPhase.FAILED)
            logger.warning("No required field found on %s (%s)", url, site_state)
            return ExtractionOutcome(
                ExtractionStatus.FAILED,
                result=result,
                error=ActionableError.extraction(url, missing),
                site_state=site_state,
                states=trace,
                elapsed=loop.time() - started,
            )

        if await self._expand_description(dom):
            logger.debug("Description expanded")
        await self._extract_fields(
            dom,
            (*fields.OPTIONAL_DETAIL_FIELDS, fields.HIRING_TEAM_SECTION, fields.COMPANY_BOX),
            result,
            policy,
        )
        await self._extract_criteria(dom, result)
        self._finish_result(result)

        if missing:
            logger.warning("Partial result for %s: missing %s", url, ", ".join(missing))
        trace.append(ExtractionPhase.DONE)
        return ExtractionOutcome(
            ExtractionStatus.DONE,
            result=result,
            site_state=site_state,
            states=trace,
            elapsed=loop.time() - started,
        )

    async def check_login(self, cookies: Sequence[SessionCookie]) -> bool:
        """Open the feed with ``cookies`` and report whether it looks logged in."""
        feed = self.settings.site.base_url.rstrip("/") + "/feed/"

        async def attempt() -> bool:
            async with self.session.page(cookies=cookies) as page:
                error = await self._navigate(page, feed)
                if error is not None:
                    raise error
                return await verify_session(PageDom(page))

        return await self._with_session_retry(feed, attempt)

    # -- listing pages -------------------------------------------------------

    async def extract_listing(
        self,
        target: str | SearchParams,
        cookies: Sequence[SessionCookie] | None = None,
    ) -> ListingResult:
        """Read the job cards of a search-results page.

        Cards missing an id, title or company are skipped and counted.
        """
        base_url = self.settings.site.base_url
        url = build_search_url(target, base_url) if isinstance(target, SearchParams) else target

        error = self._check_cookies(cookies)
        if error is not None:
            return ListingResult(url, partial=True, error=error)

        async def attempt() -> ListingResult:
            async with self.session.page(cookies=cookies) as page:
                error = await self._navigate(page, url)
                if error is not None:
                    return ListingResult(url, partial=True, error=error)
                return await self.listing_from_dom(
                    PageDom(page), url, scroll_passes=fields.LISTING_SCROLL_PASSES
                )

        try:
            return await self._with_session_retry(url, attempt)
        except SessionLostError as exc:
            return ListingResult(
                url,
                partial=True,
                error=ActionableError.connection("browser", url, f"session lost twice: {exc}"),
            )
        except ActionableError as exc:
            logger.error("Listing %s failed: %s", url, exc.error)
            return ListingResult(url, partial=True, error=exc)
        except Exception as exc:
            logger.error("Unexpected error reading listing %s: %s", url, exc)
            return ListingResult(
                url,
                partial=True,
                error=ActionableError.from_exception(exc, "extractor", "extract_listing"),
            )

    async def listing_from_dom(
        self,
        dom: DomBackend,
        url: str,
        *,
        scroll_passes: int = 0,
    ) -> ListingResult:
        """Collect job cards from an already-loaded results page."""
        site_state = await detect_site_state(dom)
        if site_state is SiteState.INTERSTITIAL and await attempt_dismiss(dom):
            site_state = await detect_site_state(dom)
        if site_state in _DEGRADED_STATES:
            logger.warning("Listing %s shows %s — reading visible cards only", url, site_state)

        listing = ListingResult(url, site_state=site_state)
        policy = self._policy_for(site_state)
        wait = await await_ready(partial(resolve, dom, None, fields.CARD_LOCATORS), present(), policy)
        if not wait.ready:
            logger.warning("No job cards appeared on %s", url)
            listing.partial = True
            listing.failures.append(FieldFailure("cards", "not_found"))
            return listing

        await self._scroll_for_cards(dom, scroll_passes)

        seen: set[str] = set()
        for element in await resolve_all(dom, None, fields.CARD_LOCATORS):
            try:
                card = await self._read_card(dom, element)
            except SessionLostError:
                raise
            except Exception as exc:
                logger.warning("Failed to read a job card on %s: %s", url, exc)
                listing.skipped += 1
                listing.failures.append(FieldFailure("card", f"error:{exc}"))
                continue
            if card is None:
                listing.skipped += 1
                continue
            if card.job_id in seen:
                continue
            seen.add(card.job_id)
            listing.cards.append(card)

        listing.partial = listing.skipped > 0
        logger.info(
            "Listing %s: %d card(s), %d skipped", url, len(listing.cards), listing.skipped
        )
        return listing

    # -- navigation and session handling -------------------------------------

    async def _extract_page(
        self,
        url: str,
        cookies: Sequence[SessionCookie],
        states: list[ExtractionPhase],
    ) -> ExtractionOutcome:
        async with self.session.page(cookies=cookies) as page:
            states.append(ExtractionPhase.NAVIGATING)
            error = await self._navigate(page, url)
            if error is not None:
                timed_out = error.error_type is ErrorType.TIMEOUT
                states.append(ExtractionPhase.TIMED_OUT if timed_out else ExtractionPhase.FAILED)
                return ExtractionOutcome(
                    ExtractionStatus.TIMED_OUT if timed_out else ExtractionStatus.FAILED,
                    error=error,
                    states=states,
                )
            return await self.extract_dom(PageDom(page), url, states=states)

    async def _navigate(self, page: Page, url: str) -> ActionableError | None:
        """Load ``url``; a timeout or network error comes back as a value."""
        timeout_ms = self.settings.browser.page_timeout_ms
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            logger.warning("Navigation to %s timed out after %dms", url, timeout_ms)
            return ActionableError.navigation_timeout(url, timeout_ms)
        except PlaywrightError as exc:
            connection = self.session.connection
            if page.is_closed() or connection is None or not connection.is_alive:
                raise SessionLostError(exc.message) from exc
            logger.warning("Navigation to %s failed: %s", url, exc.message)
            return ActionableError.connection(self.settings.site.root_domain, url, exc.message)
        return None

    async def _with_session_retry(self, target: str, run: Callable[[], Awaitable[T]]) -> T:
        """Run ``run``; on a lost session, re-acquire and run it once more."""
        try:
            return await run()
        except SessionLostError as exc:
            logger.warning("Browser session lost while handling %s (%s) — re-acquiring", target, exc)
        await self.session.acquire()
        return await run()

    def _check_cookies(self, cookies: Sequence[SessionCookie] | None) -> ActionableError | None:
        if cookies is None:
            return None
        site = self.settings.site
        validation = validate_cookies(
            list(cookies), required_cookie=site.auth_cookie, root_domain=site.root_domain
        )
        if validation.valid:
            return None
        for problem in validation.errors:
            logger.warning("Cookie problem: %s", problem)
        return ActionableError.cookies_invalid(site.root_domain, validation.errors)

    def _canonical_url(self, url: str) -> str:
        job_id = extract_job_id(url)
        if job_id is None:
            return url
        return canonical_job_url(job_id, self.settings.site.base_url)

    def _policy_for(self, site_state: SiteState) -> WaitPolicy:
        # Walled pages will not finish loading; read them once
        if site_state in _DEGRADED_STATES:
            return replace(self.policy, max_retries=1)
        return self.policy

    # -- field walk ----------------------------------------------------------

    async def _extract_fields(
        self,
        dom: DomBackend,
        batch: Sequence[ExtractionField],
        result: ExtractionResult,
        policy: WaitPolicy,
    ) -> None:
        """Extract every field of ``batch`` concurrently into ``result``.

        Each field absorbs its own errors; only a lost session escapes.
        """
        outcomes = await asyncio.gather(
            *(self._extract_field(dom, field, result, policy) for field in batch),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

    async def _extract_field(
        self,
        dom: DomBackend,
        field: ExtractionField,
        result: ExtractionResult,
        policy: WaitPolicy,
    ) -> None:
        if getattr(result, field.attr):
            return
        try:
            element, failure = await self._locate(dom, field, policy)
            if failure is not None:
                result.failures.append(failure)
            if element is None:
                if field.read is fields.ReadMode.PRESENCE:
                    setattr(result, field.attr, False)
                else:
                    logger.debug("Field %s not found", field.name)
                return

            value: Any
            if field is fields.HIRING_TEAM_SECTION:
                value = await self._hiring_team(dom, element)
            elif field is fields.COMPANY_BOX:
                value = await self._company_profile(dom, element, result)
            else:
                value = await self._read(dom, element, field)
                if value and field.postprocess is not None:
                    value = field.postprocess(value)

            if value is None or value == "" or value == []:
                if failure is None:
                    result.failures.append(FieldFailure(field.name, "not_found"))
                return
            setattr(result, field.attr, value)
        except SessionLostError:
            raise
        except Exception as exc:
            logger.warning("Field %s failed: %s", field.name, exc)
            result.failures.append(FieldFailure(field.name, f"error:{exc}"))

    async def _locate(
        self,
        dom: DomBackend,
        field: ExtractionField,
        policy: WaitPolicy,
    ) -> tuple[Element | None, FieldFailure | None]:
        """Find the element for ``field``, waiting for asynchronous ones.

        A wait that times out on a still-loading element returns that
        element for a best-effort read, together with a ``timeout``
        failure.
        """
        if field.predicate is not None:
            wait = await await_ready(
                partial(resolve, dom, None, field.locators), field.predicate(dom), policy
            )
            if wait.ready:
                return wait.element, None
            if wait.last_candidate is not None:
                logger.warning(
                    "Field %s not ready after %.2fs — reading what is there",
                    field.name,
                    wait.elapsed,
                )
                return wait.last_candidate, FieldFailure(field.name, "timeout")
            return None, FieldFailure(field.name, "not_found")

        accept = None
        if field.read is fields.ReadMode.TEXT:
            accept = has_text(dom)
        elif field.read is fields.ReadMode.ATTRIBUTE:
            attr_name = field.attribute or ""

            async def accept(element: Element) -> bool:
                return bool(await dom.get_attribute(element, attr_name))

        element = await resolve(dom, None, field.locators, accept=accept)
        if element is None and field.read is not fields.ReadMode.PRESENCE:
            return None, FieldFailure(field.name, "not_found")
        return element, None

    async def _read(self, dom: DomBackend, element: Element, field: ExtractionField) -> Any:
        if field.read is fields.ReadMode.PRESENCE:
            return True
        if field.read is fields.ReadMode.HTML:
            return await dom.get_html(element)
        if field.read is fields.ReadMode.ATTRIBUTE:
            return await dom.get_attribute(element, field.attribute or "")
        return clean_whitespace(await dom.get_text(element)) or None

    async def _extract_criteria(self, dom: DomBackend, result: ExtractionResult) -> None:
        """Seniority, employment type, function and industries, by list position."""
        try:
            items = await resolve_all(dom, None, fields.CRITERIA_ITEM_LOCATORS)
            for name, item in zip(fields.CRITERIA_ORDER, items):
                text = await resolve_text(dom, item, fields.CRITERIA_TEXT_LOCATORS)
                if text and getattr(result, name) is None:
                    setattr(result, name, text)

            if result.employment_type is None:
                for pill in await resolve_all(dom, None, fields.INSIGHT_PILL_LOCATORS):
                    kind = match_employment_type(clean_whitespace(await dom.get_text(pill)))
                    if kind:
                        result.employment_type = kind
                        break
        except SessionLostError:
            raise
        except Exception as exc:
            logger.debug("Job criteria extraction failed: %s", exc)

    async def _expand_description(self, dom: DomBackend) -> bool:
        """Click a visible "show more" under the description; True if it expanded."""
        button = await resolve(dom, None, fields.SHOW_MORE_LOCATORS, accept=dom.is_visible)
        if button is None or not await dom.click(button, EXPAND_CLICK_TIMEOUT):
            return False
        await asyncio.sleep(EXPAND_SETTLE)
        if await resolve(dom, None, fields.SHOW_LESS_LOCATORS) is not None:
            return True
        return await resolve(dom, None, fields.CLAMPED_LOCATORS) is None

    def _finish_result(self, result: ExtractionResult) -> None:
        """Derive the normalised values from the raw ones just read."""
        if result.description_html:
            cleaned = clean_job_html(result.description_html)
            text = html_to_text(cleaned)
            if text:
                result.description_html = cleaned
                result.description_markdown = html_to_markdown(cleaned)
                result.description_text = text
            else:
                result.description_html = None

        for source, (target, parse) in fields.DERIVED.items():
            raw = getattr(result, source)
            if raw and getattr(result, target) is None:
                setattr(result, target, parse(raw))

        result.workplace_type = detect_workplace_type(result.location, result.employment_type)
        if result.is_easy_apply is None:
            result.is_easy_apply = False
        result.partial = bool(result.missing_required)

    # -- composite sections --------------------------------------------------

    async def _hiring_team(
        self,
        dom: DomBackend,
        section: Element,
    ) -> list[HiringContact]:
        base_url = self.settings.site.base_url
        cards = await resolve_all(dom, section, fields.HIRING_CONTACT_LOCATORS) or [section]
        contacts: list[HiringContact] = []
        seen: set[str] = set()
        for card in cards:
            name = await resolve_text(dom, card, fields.CONTACT_NAME_LOCATORS)
            if not name:
                continue
            link = await resolve(dom, card, fields.CONTACT_LINK_LOCATORS)
            profile_url = absolute_url(
                await dom.get_attribute(link, "href") if link is not None else None, base_url
            )
            key = profile_url or name
            if key in seen:
                continue
            seen.add(key)

            card_text = clean_whitespace(await dom.get_text(card)).lower()
            degree_text = await resolve_text(dom, card, fields.CONTACT_DEGREE_LOCATORS)
            image = await resolve(dom, card, fields.CONTACT_IMAGE_LOCATORS)
            contacts.append(
                HiringContact(
                    name=name,
                    profile_id=profile_id_from_url(profile_url),
                    profile_url=profile_url,
                    title=await resolve_text(dom, card, fields.CONTACT_TITLE_LOCATORS),
                    role=await resolve_text(dom, card, fields.CONTACT_ROLE_LOCATORS),
                    connection_degree=parse_connection_degree(degree_text or card_text),
                    is_job_poster=any(m in card_text for m in fields.JOB_POSTER_MARKERS),
                    image_url=await dom.get_attribute(image, "src") if image is not None else None,
                )
            )
        return contacts

    async def _company_profile(
        self,
        dom: DomBackend,
        box: Element,
        result: ExtractionResult,
    ) -> CompanyProfile | None:
        name = await resolve_text(dom, box, fields.COMPANY_NAME_LOCATORS) or result.company
        if not name:
            return None
        link = await resolve(dom, box, fields.COMPANY_LINK_LOCATORS)
        url = absolute_url(
            await dom.get_attribute(link, "href") if link is not None else None,
            self.settings.site.base_url,
        )
        logo = await resolve(dom, box, fields.COMPANY_LOGO_LOCATORS)

        info: dict[str, Any] = {}
        for element in await resolve_all(dom, box, fields.COMPANY_INFO_LOCATORS):
            _classify_company_info(await dom.get_text(element) or "", info)

        return CompanyProfile(
            name=name,
            company_id=company_id_from_url(url),
            url=url,
            logo_url=await dom.get_attribute(logo, "src") if logo is not None else None,
            description=await resolve_text(dom, box, fields.COMPANY_DESCRIPTION_LOCATORS),
            **info,
        )

    async def _scroll_for_cards(self, dom: DomBackend, passes: int) -> None:
        """Scroll until no new cards load, at most ``passes`` times."""
        count = len(await resolve_all(dom, None, fields.CARD_LOCATORS))
        for _ in range(passes):
            if not await dom.scroll_to_bottom():
                return
            await asyncio.sleep(fields.LISTING_SCROLL_SETTLE)
            loaded = len(await resolve_all(dom, None, fields.CARD_LOCATORS))
            if loaded <= count:
                return
            logger.debug("Scrolling loaded %d more card(s)", loaded - count)
            count = loaded

    async def _read_card(self, dom: DomBackend, card: Element) -> JobCard | None:
        """One search-result card, or ``None`` when id, title or company is missing."""
        base_url = self.settings.site.base_url
        link = await resolve(dom, card, fields.CARD_LINK_LOCATORS)
        href = await dom.get_attribute(link, "href") if link is not None else None

        job_id = await self._card_job_id(dom, card) or extract_job_id(href)
        title = await resolve_text(dom, card, fields.CARD_TITLE_LOCATORS)
        company = await resolve_text(dom, card, fields.CARD_COMPANY_LOCATORS)
        if not job_id or not title or not company:
            logger.debug("Skipping card (id=%s, title=%s, company=%s)", job_id, title, company)
            return None

        employment_type = None
        for item in await resolve_all(dom, card, fields.CARD_METADATA_LOCATORS):
            employment_type = match_employment_type(clean_whitespace(await dom.get_text(item)))
            if employment_type:
                break

        footer = " ".join(
            [
                clean_whitespace(await dom.get_text(item)).lower()
                for item in await resolve_all(dom, card, fields.CARD_FOOTER_LOCATORS)
            ]
        )
        easy_apply = await resolve(dom, card, fields.CARD_EASY_APPLY_LOCATORS) is not None

        url = absolute_url(href, base_url)
        if not url or "/jobs/view/" not in url:
            url = canonical_job_url(job_id, base_url)
        return JobCard(
            job_id=job_id,
            url=url,
            title=title,
            company=company,
            location=await resolve_text(dom, card, fields.CARD_LOCATION_LOCATORS),
            employment_type=employment_type,
            is_promoted="promoted" in footer,
            is_easy_apply=easy_apply or "easy apply" in footer,
        )

    async def _card_job_id(self, dom: DomBackend, card: Element) -> str | None:
        for name in fields.CARD_ID_ATTRIBUTES:
            job_id = job_id_from_markup(await dom.get_attribute(card, name))
            if job_id:
                return job_id
        inner = await resolve(dom, card, fields.CARD_ID_LOCATORS)
        if inner is None:
            return None
        for name in fields.CARD_ID_ATTRIBUTES:
            job_id = job_id_from_markup(await dom.get_attribute(inner, name))
            if job_id:
                return job_id
        return None


def _classify_company_info(text: str, info: dict[str, Any]) -> None:
    """Sort "Software Development · 1,001-5,000 employees · 2,345 on LinkedIn" fragments."""
    parts = [text]
    for separator in _INFO_SEPARATORS:
        parts = [piece for part in parts for piece in part.split(separator)]
    for raw in parts:
        part = clean_whitespace(raw)
        lower = part.lower()
        if not part:
            continue
        if "on linkedin" in lower:
            info.setdefault("linkedin_employee_count", parse_count(part))
        elif "follower" in lower:
            info.setdefault("follower_count", parse_count(part))
        elif "employee" in lower:
            info.setdefault("employee_count", part)
        elif "industry" not in info and not any(ch.isdigit() for ch in part):
            info["industry"] = part
