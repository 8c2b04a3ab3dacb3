"""Declarative field table for job detail and listing pages.

Each logical datum is one :class:`ExtractionField`: an ordered locator
cascade (newest markup first, older variants after), how to read the
matched element, and an optional post-processing step.  The table is
data only.  Navigation, timing and failure bookkeeping live in
:mod:`~jobpost_extract.extraction.extractor`.

Markup changes are handled by editing these tuples, not the
orchestrator.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from jobpost_extract.extraction.locators import (
    LocatorSpec,
    attribute,
    css,
    css_each,
    shadow_path,
    text_contains,
)
from jobpost_extract.extraction.parsing import (
    job_id_from_markup,
    parse_posted_date,
    parse_salary,
)
from jobpost_extract.extraction.readiness import has_real_content, has_text
from jobpost_extract.text import parse_count

if TYPE_CHECKING:
    from jobpost_extract.browser.dom import DomBackend
    from jobpost_extract.extraction.readiness import ReadinessPredicate

PredicateFactory = Callable[["DomBackend"], "ReadinessPredicate"]


class ReadMode(StrEnum):
    """What to take from the matched element."""

    TEXT = "text"
    HTML = "html"
    ATTRIBUTE = "attribute"
    PRESENCE = "presence"


@dataclass(frozen=True)
class ExtractionField:
    """One logical datum and how to find it.

    ``predicate`` marks the field as loading asynchronously: the
    orchestrator waits for it with the readiness waiter instead of
    reading once.  ``target`` is the :class:`ExtractionResult` attribute
    the post-processed value lands in, defaulting to ``name``.
    """

    name: str
    locators: tuple[LocatorSpec, ...]
    read: ReadMode = ReadMode.TEXT
    attribute: str | None = None
    postprocess: Callable[[str], Any] | None = None
    required: bool = False
    predicate: PredicateFactory | None = None
    target: str | None = None

    def __post_init__(self) -> None:
        if not self.locators:
            raise ValueError(f"field {self.name!r} needs at least one locator")
        if self.read is ReadMode.ATTRIBUTE and not self.attribute:
            raise ValueError(f"field {self.name!r} reads an attribute but names none")

    @property
    def asynchronous(self) -> bool:
        return self.predicate is not None

    @property
    def attr(self) -> str:
        return self.target or self.name


# ---------------------------------------------------------------------------
# Detail page — required fields
# ---------------------------------------------------------------------------

TITLE = ExtractionField(
    "title",
    (
        *css_each(
            "h1.job-details-jobs-unified-top-card__job-title",
            ".job-details-jobs-unified-top-card__job-title",
            ".top-card-layout__title",
            "h1.top-card-layout__title",
            ".jobs-details-top-card__job-title",
            ".jobs-unified-top-card__job-title",
            "h2.job-title",
        ),
        attribute("data-control-name=job_search_job_title", tag="a"),
        shadow_path("#interop-outlet", ".job-details-jobs-unified-top-card__job-title"),
    ),
    required=True,
    predicate=has_text,
)

COMPANY = ExtractionField(
    "company",
    (
        *css_each(
            ".job-details-jobs-unified-top-card__company-name a",
            ".job-details-jobs-unified-top-card__company-name",
            ".topcard__org-name-link",
            ".top-card-layout__second-subline a",
            ".jobs-details-top-card__company-name",
            ".jobs-unified-top-card__company-name",
        ),
        attribute("data-control-name=job_search_company_name", tag="a"),
        shadow_path("#interop-outlet", ".job-details-jobs-unified-top-card__company-name"),
    ),
    required=True,
    predicate=has_text,
)

REQUIRED_DETAIL_FIELDS = (TITLE, COMPANY)

# ---------------------------------------------------------------------------
# Detail page — optional fields
# ---------------------------------------------------------------------------

LOCATION = ExtractionField(
    "location",
    css_each(
        ".job-details-jobs-unified-top-card__primary-description-container .tvm__text",
        ".job-details-jobs-unified-top-card__bullet",
        ".topcard__flavor.topcard__flavor--bullet",
        ".jobs-details-top-card__bullet",
        ".job-details-jobs-unified-top-card__primary-description-without-tagline",
        ".job-details-jobs-unified-top-card__primary-description",
        "[data-test-id='job-location']",
    ),
)

DESCRIPTION = ExtractionField(
    "description",
    css_each(
        "#job-details",
        ".jobs-description__content .jobs-box__html-content",
        ".description__text.description__text--rich",
        ".jobs-description-content__text",
        ".jobs-description__text",
        ".jobs-box__html-content",
        "[data-job-id] .jobs-box__html-content",
        ".show-more-less-html__markup",
    ),
    read=ReadMode.HTML,
    predicate=has_real_content,
    target="description_html",
)

POSTED = ExtractionField(
    "posted",
    (
        *css_each(
            ".job-details-jobs-unified-top-card__primary-description-container "
            ".tvm__text--positive",
            ".posted-time-ago__text",
            ".jobs-details-top-card__posted-date",
            ".jobs-unified-top-card__posted-date",
        ),
        css("time", scope=".top-card-layout, .job-details-jobs-unified-top-card__container--two-pane"),
    ),
    predicate=has_text,
    target="posted_text",
)

APPLICANTS = ExtractionField(
    "applicants",
    (
        *css_each(
            ".num-applicants__caption",
            ".jobs-unified-top-card__applicant-count",
            ".jobs-details-top-card__applicant-count",
        ),
        text_contains(
            "applicant",
            tag="span",
            scope=".job-details-jobs-unified-top-card__primary-description-container",
        ),
    ),
    predicate=has_text,
    target="applicants_text",
)

SALARY = ExtractionField(
    "salary",
    (
        *css_each(
            ".salary.compensation__salary",
            ".compensation__salary",
            "[data-test-id='job-salary']",
            ".job-search-card__salary-info",
        ),
        text_contains("/yr", tag="span", scope=".job-details-jobs-unified-top-card__job-insight"),
        text_contains("/hr", tag="span", scope=".job-details-jobs-unified-top-card__job-insight"),
        *css_each(
            ".job-details-jobs-unified-top-card__job-insight",
            ".jobs-details-top-card__job-insight",
        ),
    ),
    postprocess=parse_salary,
)

EMPLOYMENT_TYPE = ExtractionField(
    "employment_type",
    css_each(
        ".jobs-details-top-card__job-insight--highlight",
        ".job-details-jobs-unified-top-card__job-insight--highlight",
    ),
)

JOB_ID_MARKUP = ExtractionField(
    "job_id",
    css_each("#decoratedJobPostingId", "code#decoratedJobPostingId"),
    read=ReadMode.HTML,
    postprocess=job_id_from_markup,
)

EASY_APPLY = ExtractionField(
    "is_easy_apply",
    (
        attribute("data-tracking-control-name*=easy-apply", tag="button"),
        attribute("data-tracking-control-name*=easyApply", tag="button"),
        attribute("aria-label*=Easy Apply", tag="button"),
        attribute("aria-label*=easy apply", tag="button"),
        *css_each(".jobs-apply-button--top-card", "button.jobs-s-apply"),
    ),
    read=ReadMode.PRESENCE,
)

OPTIONAL_DETAIL_FIELDS = (
    LOCATION,
    DESCRIPTION,
    POSTED,
    APPLICANTS,
    SALARY,
    EMPLOYMENT_TYPE,
    JOB_ID_MARKUP,
    EASY_APPLY,
)

# Fields a post-processing step derives a second value from
DERIVED = {
    "posted_text": ("posted_date", parse_posted_date),
    "applicants_text": ("applicant_count", parse_count),
}

# ---------------------------------------------------------------------------
# Job criteria (logged-out layout), read by position
# ---------------------------------------------------------------------------

CRITERIA_ITEM_LOCATORS = css_each(
    ".description__job-criteria-item",
    ".description__job-criteria-list li",
)
CRITERIA_TEXT_LOCATORS = css_each(
    ".description__job-criteria-text",
    "span",
)
# The list is rendered in this order in every language
CRITERIA_ORDER = ("seniority_level", "employment_type", "job_function", "industries")

# Fallback employment types from the top-card insight pills
INSIGHT_PILL_LOCATORS = css_each(
    ".job-details-preferences-and-skills__pill",
    ".job-details-jobs-unified-top-card__job-insight span",
    ".jobs-unified-top-card__job-insight span",
)

# ---------------------------------------------------------------------------
# Description expansion
# ---------------------------------------------------------------------------

SHOW_MORE_LOCATORS = (
    *css_each(
        ".show-more-less-html__button.show-more-less-html__button--more",
        "button.jobs-description__footer-button",
        'button[aria-label="Click to see more description"]',
    ),
    attribute("aria-expanded=false", tag="button", scope=".jobs-description"),
)
SHOW_LESS_LOCATORS = css_each(
    ".show-more-less-html__button.show-more-less-html__button--less",
    'button[aria-label="Click to see less description"]',
)
CLAMPED_LOCATORS = css_each(".show-more-less-html__markup--clamp-after-5")

# ---------------------------------------------------------------------------
# Hiring team panel (loads after the top card)
# ---------------------------------------------------------------------------

HIRING_TEAM_SECTION = ExtractionField(
    "hiring_team",
    (
        *css_each(
            ".job-details-people-who-can-help__section--two-pane",
            ".job-details-people-who-can-help__section",
            ".hirer-card__container",
            ".jobs-poster",
            ".message-the-recruiter",
        ),
        text_contains("Meet the hiring team", tag="section"),
    ),
    predicate=has_text,
)

HIRING_CONTACT_LOCATORS = css_each(
    ".hirer-card__hirer-information",
    ".job-details-people-who-can-help__section--two-pane .display-flex.align-items-center",
    ".jobs-poster__details",
    ".base-main-card",
)
CONTACT_LINK_LOCATORS = (
    attribute("href*=/in/", tag="a"),
)
CONTACT_NAME_LOCATORS = css_each(
    ".jobs-poster__name strong",
    ".jobs-poster__name",
    ".hirer-card__hirer-information strong",
    "a[href*='/in/'] strong",
    ".base-main-card__title",
    "a[href*='/in/'] span[aria-hidden='true']",
)
CONTACT_TITLE_LOCATORS = css_each(
    ".hirer-card__job-title",
    ".linked-area .text-body-small",
    ".jobs-poster__headline",
    ".base-main-card__subtitle",
)
CONTACT_DEGREE_LOCATORS = css_each(
    ".hirer-card__connection-degree",
    ".dist-value",
    ".entity-result__badge-text",
    ".member-insights__degree",
)
CONTACT_ROLE_LOCATORS = css_each(
    ".hirer-card__role",
    ".jobs-poster__subtitle",
)
CONTACT_IMAGE_LOCATORS = css_each(
    "img.evi-image",
    "img.presence-entity__image",
    "img",
)
JOB_POSTER_MARKERS = ("job poster", "posted this job")

# ---------------------------------------------------------------------------
# "About the company" box
# ---------------------------------------------------------------------------

COMPANY_BOX = ExtractionField(
    "company_profile",
    (
        *css_each(
            ".jobs-company__box",
            "section.jobs-company",
            ".jobs-company",
            ".topcard__org-info",
        ),
        text_contains("About the company", tag="section"),
    ),
    predicate=has_text,
)

COMPANY_NAME_LOCATORS = css_each(
    ".artdeco-entity-lockup__title a",
    ".artdeco-entity-lockup__title",
    ".jobs-company__name",
    "a[href*='/company/'] .t-16",
)
COMPANY_LINK_LOCATORS = (
    attribute("href*=/company/", tag="a"),
)
COMPANY_LOGO_LOCATORS = css_each(
    ".artdeco-entity-lockup__image img",
    "img.evi-image",
    "img",
)
COMPANY_INFO_LOCATORS = css_each(
    ".jobs-company__inline-information",
    ".artdeco-entity-lockup__subtitle",
    ".t-14.mt5",
)
COMPANY_DESCRIPTION_LOCATORS = css_each(
    ".jobs-company__company-description",
    ".jobs-company__box p",
    "p",
)

# ---------------------------------------------------------------------------
# Search results
# ---------------------------------------------------------------------------

CARD_LOCATORS = (
    *css_each(
        'li[class*="jobs-search-results__list-item"]',
        'li[class*="job-card-container"]',
        "li.scaffold-layout__list-item",
        ".job-search-card",
        ".jobs-search-results__list-item",
        ".job-card-container",
    ),
    attribute("data-occludable-job-id", tag="li"),
)

# Read from the card element itself, in this order
CARD_ID_ATTRIBUTES = ("data-occludable-job-id", "data-job-id", "data-entity-urn")
CARD_ID_LOCATORS = (attribute("data-job-id"), attribute("data-entity-urn"))

CARD_LINK_LOCATORS = (
    attribute("href*=/jobs/view/", tag="a"),
    *css_each(
        "a[data-control-name='job_search_job_title']",
        ".job-search-card__link-wrapper a",
        "a.job-card-list__title",
        "a.base-card__full-link",
    ),
)
CARD_TITLE_LOCATORS = css_each(
    ".job-card-list__title--link strong",
    ".job-card-list__title",
    ".job-card-container__link",
    "a[class*='job-card-list__title']",
    ".job-search-card__title",
    ".base-search-card__title",
)
CARD_COMPANY_LOCATORS = css_each(
    ".job-card-container__company-name",
    ".artdeco-entity-lockup__subtitle",
    ".job-search-card__subtitle",
    ".base-search-card__subtitle",
)
CARD_LOCATION_LOCATORS = css_each(
    ".job-card-container__metadata-wrapper li",
    ".job-card-list__metadata-wrapper li",
    ".job-search-card__location",
    ".artdeco-entity-lockup__caption li",
)
CARD_METADATA_LOCATORS = css_each(
    ".job-card-container__metadata-wrapper li",
    ".job-card-container__metadata-item",
)
CARD_FOOTER_LOCATORS = css_each(
    ".job-card-container__footer-item",
    ".job-card-list__footer-wrapper li",
)
CARD_EASY_APPLY_LOCATORS = (
    text_contains("Easy Apply", tag="span"),
    text_contains("Easy Apply", tag="li"),
)

# Lazy cards appear as the list scrolls
LISTING_SCROLL_PASSES = 3
LISTING_SCROLL_SETTLE = 0.8
