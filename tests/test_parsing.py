"""Pure text-fragment parser tests.

Maps to BDD specs: TestJobIds, TestSearchUrl, TestPostedDate, TestSalary,
TestLabels
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from jobpost_extract.extraction.models import SearchParams
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
    parse_posted_date,
    parse_salary,
    profile_id_from_url,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestJobIds:
    """REQUIREMENT: Job ids are recovered from every URL and markup shape the site uses.

    WHO: The orchestrator canonicalising URLs, and the listing walker
    WHAT: /jobs/view/<id>, slugged /jobs/view/<slug>-<id> and
          ?currentJobId=<id> all yield the id; the hidden
          decoratedJobPostingId comment yields it too; non-job URLs
          yield None
    WHY: The id is the stable key for deduplication and the canonical URL
    """

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.linkedin.com/jobs/view/3812345678/",
            "https://www.linkedin.com/jobs/view/3812345678",
            "https://www.linkedin.com/jobs/view/staff-engineer-at-acme-3812345678?refId=abc",
            "https://www.linkedin.com/jobs/search/?keywords=python&currentJobId=3812345678",
            "https://www.linkedin.com/jobs/collections/recommended/?currentJobId=3812345678",
        ],
    )
    def test_id_from_url_shapes(self, url: str) -> None:
        """Each URL shape yields the same id."""
        assert extract_job_id(url) == "3812345678"

    def test_non_job_url_has_no_id(self) -> None:
        """A company page URL yields None."""
        assert extract_job_id("https://www.linkedin.com/company/acme/") is None

    def test_id_from_hidden_markup(self) -> None:
        """The commented id inside #decoratedJobPostingId is read."""
        assert job_id_from_markup('<!--"3812345678"-->') == "3812345678"
        assert job_id_from_markup("urn:li:fsd_jobPosting:3812345678") == "3812345678"

    def test_canonical_url(self) -> None:
        """The canonical form is <base>/jobs/view/<id>/."""
        assert canonical_job_url("42", "https://www.linkedin.com/") == "https://www.linkedin.com/jobs/view/42/"

    def test_absolute_url_drops_tracking_query(self) -> None:
        """Relative links become absolute and lose their query string."""
        assert absolute_url("/in/jane-doe?trk=public") == "https://www.linkedin.com/in/jane-doe"
        assert absolute_url(None) is None

    def test_profile_and_company_ids(self) -> None:
        """Profile and company slugs come from their URL paths."""
        assert profile_id_from_url("https://www.linkedin.com/in/jane-doe/") == "jane-doe"
        assert company_id_from_url("https://www.linkedin.com/company/acme/life/") == "acme"


class TestSearchUrl:
    """REQUIREMENT: Search parameters encode to the site's query-string filters.

    WHO: The listing command building a URL from --keywords
    WHAT: Keywords and location are URL-encoded; remote maps to f_WT=2,
          date filter to f_TPR, experience to f_E, job type to f_JT;
          start is included only when paging
    WHY: A hand-built URL that drops a filter returns the wrong cards
    """

    def test_all_filters(self) -> None:
        """Every filter appears under its query key."""
        url = build_search_url(
            SearchParams(
                "data engineer",
                location="New York, NY",
                experience_level="2,3",
                job_type="F",
                remote=True,
                date_posted="r86400",
                start=25,
            )
        )
        assert url.startswith("https://www.linkedin.com/jobs/search/?keywords=data+engineer")
        for fragment in ("location=New+York%2C+NY", "f_E=2%2C3", "f_JT=F", "f_WT=2", "f_TPR=r86400", "start=25"):
            assert fragment in url

    def test_first_page_has_no_start(self) -> None:
        """start=0 is omitted."""
        assert "start=" not in build_search_url(SearchParams("python"))


class TestPostedDate:
    """REQUIREMENT: Relative posting phrases become absolute UTC datetimes.

    WHO: Consumers filtering postings by age
    WHAT: 'N <unit> ago' for seconds through years (months as 30 days),
          'Reposted' prefixes, 'just now', and ISO dates; unknown text is None
    WHY: '3 days ago' is meaningless once stored
    """

    @pytest.mark.parametrize(
        ("text", "delta"),
        [
            ("3 days ago", timedelta(days=3)),
            ("Reposted 1 week ago", timedelta(weeks=1)),
            ("5 hours ago", timedelta(hours=5)),
            ("2 months ago", timedelta(days=60)),
            ("30 minutes ago", timedelta(minutes=30)),
            ("1 year ago", timedelta(days=365)),
        ],
    )
    def test_relative_phrases(self, text: str, delta: timedelta) -> None:
        """Each phrase resolves to now minus its span."""
        assert parse_posted_date(text, now=NOW) == NOW - delta

    def test_just_now(self) -> None:
        """'Just now' is the current instant."""
        assert parse_posted_date("Just now", now=NOW) == NOW

    def test_iso_date(self) -> None:
        """A datetime attribute value parses to midnight UTC."""
        assert parse_posted_date("2026-02-14", now=NOW) == datetime(2026, 2, 14, tzinfo=timezone.utc)

    def test_unknown_text(self) -> None:
        """Text without a date is None."""
        assert parse_posted_date("Actively recruiting", now=NOW) is None


class TestSalary:
    """REQUIREMENT: Displayed compensation parses to a typed range.

    WHO: Consumers comparing salaries
    WHAT: Symbols and ISO codes set the currency; K/M multipliers apply,
          a trailing multiplier covers both bounds; /yr, /hr, 'per year'
          and 'annually' set the period; amounts without a currency
          marker are ignored
    WHY: '$120K/yr - $150K/yr' must compare against 130000
    """

    def test_range_with_multiplier_and_period(self) -> None:
        """A full range parses to numeric bounds, USD and a yearly period."""
        salary = parse_salary("$120K/yr - $150K/yr")
        assert salary is not None
        assert (salary.minimum, salary.maximum) == (120_000, 150_000)
        assert (salary.currency, salary.period) == ("USD", "year")

    def test_trailing_multiplier_applies_to_both_bounds(self) -> None:
        """'€60-80K' means 60,000 to 80,000."""
        salary = parse_salary("€60-80K per year")
        assert salary is not None
        assert (salary.minimum, salary.maximum) == (60_000, 80_000)
        assert (salary.currency, salary.period) == ("EUR", "year")

    def test_hourly_single_amount(self) -> None:
        """A single hourly amount has equal bounds."""
        salary = parse_salary("$45.50/hr")
        assert salary is not None
        assert salary.minimum == salary.maximum == 45.5
        assert salary.period == "hour"

    def test_iso_code_and_adverb_period(self) -> None:
        """'GBP 50,000 to 65,000 annually' uses the code and the adverb."""
        salary = parse_salary("GBP 50,000 to 65,000 annually")
        assert salary is not None
        assert (salary.minimum, salary.maximum, salary.currency, salary.period) == (
            50_000,
            65_000,
            "GBP",
            "year",
        )

    @pytest.mark.parametrize(
        ("text", "period"),
        [("$30 hourly", "hour"), ("€4,000 monthly", "month"), ("CAD 900 weekly", "week")],
    )
    def test_adverb_period_after_single_amount(self, text: str, period: str) -> None:
        """A spaced period adverb after a lone amount sets the period."""
        salary = parse_salary(text)
        assert salary is not None
        assert salary.period == period
        assert salary.text == text

    def test_amount_without_currency_is_ignored(self) -> None:
        """Employee counts and experience years are not salaries."""
        assert parse_salary("1,001-5,000 employees") is None
        assert parse_salary("5+ years of experience; pays $90K/yr").minimum == 90_000


class TestLabels:
    """REQUIREMENT: Short labels are recognised from their display text.

    WHO: Workplace type, employment type and hiring-contact degree fields
    WHAT: Remote/hybrid/on-site from location text (hybrid beats remote),
          employment types in any casing or hyphenation, and 1st/2nd/3rd+
          connection degrees
    WHY: Labels are embedded in free text whose wording varies
    """

    def test_workplace_from_location(self) -> None:
        """The parenthesised workplace label in a location is found."""
        assert detect_workplace_type("Berlin, Germany (Hybrid)") == "hybrid"
        assert detect_workplace_type(None, "Remote") == "remote"
        assert detect_workplace_type("Austin, TX (On-site)") == "on-site"
        assert detect_workplace_type("Austin, TX") is None

    def test_employment_type(self) -> None:
        """Employment-type text is returned as displayed; other text is None."""
        assert match_employment_type(" Part time ") == "Part time"
        assert match_employment_type("Internship") == "Internship"
        assert match_employment_type("Mid-Senior level") is None

    def test_connection_degree(self) -> None:
        """'· 2nd' and '3rd+' are recognised."""
        assert parse_connection_degree("Jane Doe · 2nd") == "2nd"
        assert parse_connection_degree("3rd+ degree connection") == "3rd+"
        assert parse_connection_degree("Hiring manager") is None
