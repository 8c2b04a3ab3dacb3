"""Pure parsers for the text fragments a job page displays.

Job ids and URLs, search-URL construction, relative posting dates,
salary ranges and short labels (workplace type, employment type,
connection degree).  No DOM access — everything here takes strings
and is tested in isolation.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from urllib.parse import parse_qs, urlencode, urlsplit

from jobpost_extract.extraction.models import SalaryRange, SearchParams

DEFAULT_BASE_URL = "https://www.linkedin.com"

# ---------------------------------------------------------------------------
# Job ids and URLs
# ---------------------------------------------------------------------------

# /jobs/view/123456 or /jobs/view/senior-engineer-at-acme-123456
_JOB_VIEW = re.compile(r"/jobs/view/(?:[^/?#]*-)?(\d+)(?:[/?#]|$)")
_DIGITS = re.compile(r"\d{5,}")
_PROFILE_PATH = re.compile(r"/in/([^/?#]+)")
_COMPANY_PATH = re.compile(r"/company/([^/?#]+)")


def extract_job_id(url: str | None) -> str | None:
    """Job id from a detail URL or a ``currentJobId`` query parameter.

    >>> extract_job_id("https://www.linkedin.com/jobs/view/3812345678/")
    '3812345678'
    >>> extract_job_id("https://www.linkedin.com/jobs/view/staff-engineer-at-acme-3812345678?trk=x")
    '3812345678'
    >>> extract_job_id("https://www.linkedin.com/jobs/search/?currentJobId=3812345678")
    '3812345678'
    """
    if not url:
        return None
    match = _JOB_VIEW.search(url)
    if match:
        return match.group(1)
    values = parse_qs(urlsplit(url).query).get("currentJobId", [])
    for value in values:
        if value.isdigit():
            return value
    return None


def job_id_from_markup(html: str | None) -> str | None:
    """Job id from the hidden ``#decoratedJobPostingId`` node (``<!--"3812345678"-->``)."""
    if not html:
        return None
    match = _DIGITS.search(html)
    return match.group(0) if match else None


def canonical_job_url(job_id: str, base_url: str = DEFAULT_BASE_URL) -> str:
    return f"{base_url.rstrip('/')}/jobs/view/{job_id}/"


def absolute_url(href: str | None, base_url: str = DEFAULT_BASE_URL) -> str | None:
    """Make a site-relative link absolute and drop its tracking query string."""
    if not href:
        return None
    href = href.strip()
    if href.startswith("/"):
        href = base_url.rstrip("/") + href
    return href.split("?", 1)[0]


def profile_id_from_url(url: str | None) -> str | None:
    if not url:
        return None
    match = _PROFILE_PATH.search(url)
    return match.group(1) if match else None


def company_id_from_url(url: str | None) -> str | None:
    if not url:
        return None
    match = _COMPANY_PATH.search(url)
    return match.group(1) if match else None


def build_search_url(params: SearchParams, base_url: str = DEFAULT_BASE_URL) -> str:
    """Search-results URL for a query.

    >>> build_search_url(SearchParams("python developer", location="Berlin", remote=True))
    'https://www.linkedin.com/jobs/search/?keywords=python+developer&location=Berlin&f_WT=2'
    """
    query: dict[str, str] = {"keywords": params.keywords}
    if params.location:
        query["location"] = params.location
    if params.experience_level:
        query["f_E"] = params.experience_level
    if params.job_type:
        query["f_JT"] = params.job_type
    if params.remote:
        query["f_WT"] = "2"
    if params.date_posted:
        query["f_TPR"] = params.date_posted
    if params.start > 0:
        query["start"] = str(params.start)
    return f"{base_url.rstrip('/')}/jobs/search/?{urlencode(query)}"


# ---------------------------------------------------------------------------
# Posting dates
# ---------------------------------------------------------------------------

_RELATIVE = re.compile(
    r"(\d+)\s*(second|sec|minute|min|hour|hr|day|week|wk|month|mo|year|yr)s?\s+ago",
    re.IGNORECASE,
)
_JUST_NOW = re.compile(r"\b(just now|moments? ago|today)\b", re.IGNORECASE)

_UNIT_DELTAS = {
    "second": timedelta(seconds=1),
    "sec": timedelta(seconds=1),
    "minute": timedelta(minutes=1),
    "min": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "hr": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "wk": timedelta(weeks=1),
    "month": timedelta(days=30),
    "mo": timedelta(days=30),
    "year": timedelta(days=365),
    "yr": timedelta(days=365),
}


def parse_posted_date(text: str | None, now: datetime | None = None) -> datetime | None:
    """Turn "3 days ago", "Reposted 1 week ago" or an ISO date into a UTC datetime.

    Months count as 30 days and years as 365.
    """
    if not text:
        return None
    current = now or datetime.now(timezone.utc)
    stripped = text.strip()

    try:
        day = date.fromisoformat(stripped[:10])
    except ValueError:
        pass
    else:
        return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)

    if _JUST_NOW.search(stripped):
        return current
    match = _RELATIVE.search(stripped)
    if not match:
        return None
    amount = int(match.group(1))
    return current - amount * _UNIT_DELTAS[match.group(2).lower()]


# ---------------------------------------------------------------------------
# Salary
# ---------------------------------------------------------------------------

_CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP", "₹": "INR"}
_CURRENCY_CODES = ("USD", "EUR", "GBP", "CAD", "AUD", "INR", "CHF")

_PERIODS = {
    "yr": "year",
    "year": "year",
    "annum": "year",
    "annually": "year",
    "hr": "hour",
    "hour": "hour",
    "hourly": "hour",
    "mo": "month",
    "month": "month",
    "monthly": "month",
    "wk": "week",
    "week": "week",
    "weekly": "week",
    "day": "day",
    "daily": "day",
}


def _amount(n: str) -> str:
    currency = "|".join(re.escape(s) for s in _CURRENCY_SYMBOLS) + "|" + "|".join(_CURRENCY_CODES)
    return (
        rf"(?P<{n}_cur>{currency})?\s*"
        rf"(?P<{n}_num>\d[\d,]*(?:\.\d+)?)\s*"
        rf"(?P<{n}_mult>[kKmM]\b)?"
        rf"(?:\s*(?:/\s*|per\s+|an?\s+)(?P<{n}_per>yr|year|annum|hr|hour|mo|month|wk|week|day)\b"
        rf"|\s*(?P<{n}_adv>annually|hourly|monthly|weekly|daily)\b)?"
    )


_SALARY = re.compile(
    _amount("lo") + r"(?:\s*(?:-|\N{EN DASH}|\N{EM DASH}|to)\s*" + _amount("hi") + ")?",
    re.IGNORECASE,
)


def _value(number: str, mult: str | None) -> float:
    value = float(number.replace(",", ""))
    if mult:
        value *= 1_000 if mult.lower() == "k" else 1_000_000
    return value


def _currency(raw: str | None) -> str | None:
    if not raw:
        return None
    return _CURRENCY_SYMBOLS.get(raw, raw.upper())


def parse_salary(text: str | None) -> SalaryRange | None:
    """Parse the first currency-marked amount or range in ``text``.

    Amounts without a currency marker are ignored (they are usually
    employee counts or years of experience).

    >>> parse_salary("$120K/yr - $150K/yr")
    SalaryRange(minimum=120000.0, maximum=150000.0, currency='USD', period='year', text='$120K/yr - $150K/yr')
    >>> parse_salary("$45/hr").period
    'hour'
    """
    if not text:
        return None
    for match in _SALARY.finditer(text):
        groups = match.groupdict()
        currency = _currency(groups["lo_cur"]) or _currency(groups["hi_cur"])
        if currency is None:
            continue

        low = _value(groups["lo_num"], groups["lo_mult"])
        high = low
        if groups["hi_num"]:
            high = _value(groups["hi_num"], groups["hi_mult"])
            # "$120-150K": the multiplier on the upper bound applies to both
            if groups["hi_mult"] and not groups["lo_mult"] and low < 1_000 <= high:
                low = _value(groups["lo_num"], groups["hi_mult"])

        period_word = next(
            (groups[g] for g in ("hi_per", "hi_adv", "lo_per", "lo_adv") if groups[g]),
            None,
        )
        period = _PERIODS.get(period_word.lower()) if period_word else None

        return SalaryRange(
            minimum=min(low, high),
            maximum=max(low, high),
            currency=currency,
            period=period,
            text=match.group(0).strip(),
        )
    return None


# ---------------------------------------------------------------------------
# Misc labels
# ---------------------------------------------------------------------------

_WORKPLACE = (
    ("hybrid", re.compile(r"\bhybrid\b", re.IGNORECASE)),
    ("on-site", re.compile(r"\bon[\s-]?site\b", re.IGNORECASE)),
    ("remote", re.compile(r"\bremote\b", re.IGNORECASE)),
)
_DEGREE = re.compile(r"\b(1st|2nd|3rd\+?)(?!\w)")


def detect_workplace_type(*texts: str | None) -> str | None:
    """``remote``, ``hybrid`` or ``on-site`` from location or insight text."""
    for text in texts:
        if not text:
            continue
        for label, pattern in _WORKPLACE:
            if pattern.search(text):
                return label
    return None


def parse_connection_degree(text: str | None) -> str | None:
    if not text:
        return None
    match = _DEGREE.search(text)
    return match.group(1) if match else None


_EMPLOYMENT_TYPE = re.compile(
    r"\b(full[\s-]?time|part[\s-]?time|contract|temporary|internship|volunteer)\b",
    re.IGNORECASE,
)


def match_employment_type(text: str | None) -> str | None:
    """The text itself when it names an employment type, else ``None``.

    >>> match_employment_type("Full-time")
    'Full-time'
    >>> match_employment_type("Berlin, Germany") is None
    True
    """
    if not text or not _EMPLOYMENT_TYPE.search(text):
        return None
    return text.strip()
