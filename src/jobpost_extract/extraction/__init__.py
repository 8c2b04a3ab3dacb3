"""Extraction layer — locators, readiness, site state and the orchestrator.

Everything here is written against :class:`~jobpost_extract.browser.dom.DomBackend`
and runs unchanged on a live Playwright page or a parsed snapshot.
"""

from jobpost_extract.extraction.extractor import JobExtractor
from jobpost_extract.extraction.fields import ExtractionField, ReadMode
from jobpost_extract.extraction.locators import (
    LocatorKind,
    LocatorSpec,
    resolve,
    resolve_all,
    resolve_text,
)
from jobpost_extract.extraction.models import (
    CompanyProfile,
    ExtractionOutcome,
    ExtractionPhase,
    ExtractionResult,
    ExtractionStatus,
    FieldFailure,
    HiringContact,
    JobCard,
    ListingResult,
    SalaryRange,
    SearchParams,
)
from jobpost_extract.extraction.readiness import WaitPolicy, WaitResult, await_ready
from jobpost_extract.extraction.site_state import (
    SiteState,
    attempt_dismiss,
    detect_site_state,
    verify_session,
)

__all__ = [
    "CompanyProfile",
    "ExtractionField",
    "ExtractionOutcome",
    "ExtractionPhase",
    "ExtractionResult",
    "ExtractionStatus",
    "FieldFailure",
    "HiringContact",
    "JobCard",
    "JobExtractor",
    "ListingResult",
    "LocatorKind",
    "LocatorSpec",
    "ReadMode",
    "SalaryRange",
    "SearchParams",
    "SiteState",
    "WaitPolicy",
    "WaitResult",
    "attempt_dismiss",
    "await_ready",
    "detect_site_state",
    "resolve",
    "resolve_all",
    "resolve_text",
    "verify_session",
]
