"""Data contracts produced by the extraction orchestrator.

Required fields (title, company, url) are populated whenever the page
offered them; everything else degrades to ``None`` / empty when absent.
A result missing a required field is flagged ``partial`` and is still
usable — only an outcome with status ``failed`` is an error.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from jobpost_extract.errors import ActionableError
    from jobpost_extract.extraction.site_state import SiteState

REQUIRED_FIELDS = ("title", "company")


# ---------------------------------------------------------------------------
# Field-level values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SalaryRange:
    """Compensation as displayed; amounts are not annualised."""

    minimum: float | None
    maximum: float | None
    currency: str | None
    period: str | None  # "year" | "month" | "week" | "day" | "hour"
    text: str


@dataclass(frozen=True)
class HiringContact:
    """A person from the hiring-team panel."""

    name: str
    profile_id: str | None = None
    profile_url: str | None = None
    title: str | None = None
    role: str | None = None
    connection_degree: str | None = None
    is_job_poster: bool = False
    image_url: str | None = None


@dataclass(frozen=True)
class CompanyProfile:
    """The "About the company" box."""

    name: str
    company_id: str | None = None
    url: str | None = None
    logo_url: str | None = None
    industry: str | None = None
    employee_count: str | None = None
    linkedin_employee_count: int | None = None
    follower_count: int | None = None
    description: str | None = None


@dataclass(frozen=True)
class FieldFailure:
    """Why a field came back empty: ``not_found``, ``timeout`` or ``error:<message>``."""

    field: str
    reason: str


# ---------------------------------------------------------------------------
# Detail-page result
# ---------------------------------------------------------------------------


@dataclass
class ExtractionResult:
    """Everything read from one job-detail page."""

    url: str
    title: str | None = None
    company: str | None = None
    job_id: str | None = None
    location: str | None = None
    description_html: str | None = None
    description_markdown: str | None = None
    description_text: str | None = None
    salary: SalaryRange | None = None
    employment_type: str | None = None
    seniority_level: str | None = None
    job_function: str | None = None
    industries: str | None = None
    workplace_type: str | None = None
    posted_text: str | None = None
    posted_date: datetime | None = None
    applicants_text: str | None = None
    applicant_count: int | None = None
    is_easy_apply: bool | None = None
    company_profile: CompanyProfile | None = None
    hiring_team: list[HiringContact] = field(default_factory=list)
    partial: bool = False
    failures: list[FieldFailure] = field(default_factory=list)
    extracted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def missing_required(self) -> list[str]:
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict — ``None`` values are excluded, datetimes are ISO strings."""
        return _compact(asdict(self))


# ---------------------------------------------------------------------------
# Orchestrator outcome
# ---------------------------------------------------------------------------


class ExtractionPhase(StrEnum):
    """States an extraction call passes through, in order."""

    NAVIGATING = "navigating"
    STATE_CHECK = "state_check"
    DISMISSING = "dismissing"
    EXTRACTING = "extracting"
    DONE = "done"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class ExtractionStatus(StrEnum):
    """Terminal status of an extraction call."""

    DONE = "done"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass
class ExtractionOutcome:
    """What an extraction call hands back — never an uncaught exception.

    ``states`` is the phase trace, e.g. ``navigating → state_check →
    extracting → done``.
    """

    status: ExtractionStatus
    result: ExtractionResult | None = None
    error: ActionableError | None = None
    site_state: SiteState | None = None
    states: list[ExtractionPhase] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        """Done, possibly partial."""
        return self.status is ExtractionStatus.DONE

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "status": self.status.value,
            "states": [s.value for s in self.states],
            "elapsed": round(self.elapsed, 3),
        }
        if self.site_state is not None:
            out["site_state"] = self.site_state.value
        if self.result is not None:
            out["result"] = self.result.to_dict()
        if self.error is not None:
            out["error"] = self.error.to_dict()
        return out


# ---------------------------------------------------------------------------
# Listing pages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SearchParams:
    """Job-search query, encoded by :func:`~jobpost_extract.extraction.parsing.build_search_url`."""

    keywords: str
    location: str | None = None
    experience_level: str | None = None  # f_E, e.g. "2,3"
    job_type: str | None = None  # f_JT, e.g. "F"
    remote: bool = False
    date_posted: str | None = None  # f_TPR, e.g. "r86400"
    start: int = 0


@dataclass(frozen=True)
class JobCard:
    """One entry of a search-results list."""

    job_id: str
    url: str
    title: str
    company: str
    location: str | None = None
    employment_type: str | None = None
    is_promoted: bool = False
    is_easy_apply: bool = False


@dataclass
class ListingResult:
    """Cards read from one search-results page.

    ``error`` is set when the page itself could not be read (invalid
    cookies, navigation timeout, lost session); ``cards`` is then empty.
    """

    url: str
    cards: list[JobCard] = field(default_factory=list)
    skipped: int = 0
    partial: bool = False
    failures: list[FieldFailure] = field(default_factory=list)
    site_state: SiteState | None = None
    error: ActionableError | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "url": self.url,
            "cards": [_compact(asdict(card)) for card in self.cards],
            "skipped": self.skipped,
            "partial": self.partial,
            "failures": [asdict(f) for f in self.failures],
        }
        if self.site_state is not None:
            out["site_state"] = self.site_state.value
        if self.error is not None:
            out["error"] = self.error.to_dict()
        return out


def _compact(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _compact(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_compact(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value
