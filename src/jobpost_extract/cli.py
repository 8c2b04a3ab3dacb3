"""CLI command handlers for jobpost-extract.

Each public function corresponds to a CLI subcommand and encapsulates
the wiring, orchestration, and output for that command.  Handlers exit
with status 1 on a failed or timed-out extraction and on configuration
errors; a partial result is still a success.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, NoReturn

from jobpost_extract.errors import ActionableError

if TYPE_CHECKING:
    from jobpost_extract.config import Settings
    from jobpost_extract.cookies import SessionCookie
    from jobpost_extract.extraction.models import ExtractionOutcome, ListingResult

DEFAULT_COOKIE_OUT = "data/cookies.json"


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _fail(err: ActionableError) -> NoReturn:
    print(f"Error: {err.error}", file=sys.stderr)
    if err.suggestion:
        print(f"  Suggestion: {err.suggestion}", file=sys.stderr)
    context = err.context or {}
    for problem in context.get("validation_errors", []):
        print(f"  - {problem}", file=sys.stderr)
    for fmt, reason in context.get("attempts", {}).items():
        print(f"  - {fmt}: {reason}", file=sys.stderr)
    sys.exit(1)


def load_cli_settings(path: str | None) -> Settings:
    """Settings from ``--settings``, else ``config/settings.toml`` if present, else defaults."""
    from jobpost_extract.config import DEFAULT_SETTINGS_PATH, load_settings, settings_from_dict

    if path:
        return load_settings(path)
    if DEFAULT_SETTINGS_PATH.exists():
        return load_settings(DEFAULT_SETTINGS_PATH)
    return settings_from_dict({})


def _load_cookies(path: str | None, fmt: str | None = None) -> list[SessionCookie] | None:
    from jobpost_extract.cookies import load_cookie_file

    if not path:
        return None
    return load_cookie_file(path, fmt)


def _print_outcome(outcome: ExtractionOutcome, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False))
        return

    print(f"\n{'=' * 60}")
    print(f" Status:  {outcome.status}  ({' → '.join(outcome.states)})")
    if outcome.site_state is not None:
        print(f" Site:    {outcome.site_state}")
    print(f" Elapsed: {outcome.elapsed:.2f}s")
    print(f"{'=' * 60}")

    result = outcome.result
    if result is not None:
        rows: list[tuple[str, Any]] = [
            ("Title", result.title),
            ("Company", result.company),
            ("Job ID", result.job_id),
            ("Location", result.location),
            ("Workplace", result.workplace_type),
            ("Employment", result.employment_type),
            ("Seniority", result.seniority_level),
            ("Posted", result.posted_text),
            ("Applicants", result.applicants_text),
            ("Salary", result.salary.text if result.salary else None),
            ("Easy Apply", result.is_easy_apply),
        ]
        for label, value in rows:
            if value is not None:
                print(f" {label + ':':<12}{value}")
        if result.hiring_team:
            print(" Hiring team:")
            for contact in result.hiring_team:
                print(f"   - {contact.name} ({contact.title or 'no title'})")
        if result.company_profile is not None:
            profile = result.company_profile
            print(f" Company:    {profile.name} | {profile.industry or '?'} | {profile.employee_count or '?'}")
        if result.partial:
            print(f" PARTIAL — missing: {', '.join(result.missing_required)}")
        for failure in result.failures:
            print(f"   ! {failure.field}: {failure.reason}")
        if result.description_markdown:
            print(f"\n{result.description_markdown}\n")

    if outcome.error is not None:
        print(f" Error: {outcome.error.error}")
        if outcome.error.suggestion:
            print(f"   Suggestion: {outcome.error.suggestion}")


def _print_listing(listing: ListingResult, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(listing.to_dict(), indent=2, ensure_ascii=False))
        return
    print(f"\n{'=' * 60}")
    print(f" Listing: {listing.url}")
    print(f" Cards:   {len(listing.cards)} ({listing.skipped} skipped)")
    print(f"{'=' * 60}\n")
    for i, card in enumerate(listing.cards, 1):
        flags = [f for f, on in (("promoted", card.is_promoted), ("easy apply", card.is_easy_apply)) if on]
        suffix = f"  [{', '.join(flags)}]" if flags else ""
        print(f"{i}. {card.title} — {card.company}{suffix}")
        print(f"   {card.location or 'location n/a'} | {card.url}")
    if listing.error is not None:
        print(f"Error: {listing.error.error}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def handle_import_cookies(args: argparse.Namespace) -> None:
    """Parse exported cookies, keep the target site's, validate, and save them.

    Reads ``--file`` or, without it, standard input (paste a cookie
    table and press Ctrl-D).  The output is a Playwright cookie JSON
    array usable with ``--cookies``.
    """
    from jobpost_extract.cookies import (
        describe_auth_cookie,
        filter_site_cookies,
        parse_cookies,
        save_cookie_file,
        validate_cookies,
    )

    try:
        settings = load_cli_settings(args.settings)
        if args.file:
            raw = Path(args.file).read_text(encoding="utf-8")
        else:
            print("Paste cookies, then press Ctrl-D:", file=sys.stderr)
            raw = sys.stdin.read()
        cookies = parse_cookies(raw, args.format)
    except ActionableError as err:
        _fail(err)
    except OSError as exc:
        _fail(ActionableError.config("cookies", f"Cannot read {args.file}: {exc}"))

    site = settings.site
    kept = filter_site_cookies(cookies, site.root_domain)
    dropped = len(cookies) - len(kept)
    print(f"Parsed {len(cookies)} cookie(s); kept {len(kept)} for {site.root_domain}")
    if dropped:
        print(f"  Dropped {dropped} cookie(s) for other domains")

    validation = validate_cookies(kept, required_cookie=site.auth_cookie, root_domain=site.root_domain)
    print(f"  {describe_auth_cookie(kept, site.auth_cookie)}")
    if not validation.valid:
        _fail(ActionableError.cookies_invalid(site.root_domain, validation.errors))

    path = save_cookie_file(kept, args.out)
    print(f"Cookies saved to {path}")


def handle_check_cookies(args: argparse.Namespace) -> None:
    """Validate a cookie file; with ``--live``, confirm the session in a browser."""
    from jobpost_extract.cookies import describe_auth_cookie, validate_cookies
    from jobpost_extract.extraction.extractor import JobExtractor

    try:
        settings = load_cli_settings(args.settings)
        cookies = _load_cookies(args.file, args.format) or []
    except ActionableError as err:
        _fail(err)

    site = settings.site
    print(f"{len(cookies)} cookie(s) in {args.file}")
    print(f"  {describe_auth_cookie(cookies, site.auth_cookie)}")
    validation = validate_cookies(cookies, required_cookie=site.auth_cookie, root_domain=site.root_domain)
    if not validation.valid:
        _fail(ActionableError.cookies_invalid(site.root_domain, validation.errors))
    print("Cookie set is valid")

    if not args.live:
        return

    async def _run() -> bool:
        async with JobExtractor(settings) as extractor:
            return await extractor.check_login(cookies)

    try:
        logged_in = asyncio.run(_run())
    except ActionableError as err:
        _fail(err)
    if not logged_in:
        _fail(
            ActionableError.authentication(
                site.root_domain,
                "Feed did not show a logged-in session",
                suggestion="Export fresh cookies from a logged-in browser",
            )
        )
    print("Live check: logged in")


def handle_extract(args: argparse.Namespace) -> None:
    """Extract one or more job detail pages."""
    from jobpost_extract.extraction.extractor import JobExtractor

    try:
        settings = load_cli_settings(args.settings)
        cookies = _load_cookies(args.cookies)
    except ActionableError as err:
        _fail(err)

    async def _run() -> list[ExtractionOutcome]:
        async with JobExtractor(settings) as extractor:
            return await extractor.extract_many(args.urls, cookies)

    outcomes = asyncio.run(_run())
    for outcome in outcomes:
        _print_outcome(outcome, as_json=args.json)
    if not all(o.ok for o in outcomes):
        sys.exit(1)


def handle_listing(args: argparse.Namespace) -> None:
    """Walk a search-results page given as a URL or as search terms."""
    from jobpost_extract.extraction.extractor import JobExtractor
    from jobpost_extract.extraction.models import SearchParams

    if not args.url and not args.keywords:
        _fail(ActionableError.validation("listing", "Pass a search URL or --keywords"))

    try:
        settings = load_cli_settings(args.settings)
        cookies = _load_cookies(args.cookies)
    except ActionableError as err:
        _fail(err)

    target: str | SearchParams = args.url or SearchParams(
        keywords=args.keywords,
        location=args.location,
        remote=args.remote,
        date_posted=args.date_posted,
    )

    async def _run() -> ListingResult:
        async with JobExtractor(settings) as extractor:
            return await extractor.extract_listing(target, cookies)

    listing = asyncio.run(_run())
    _print_listing(listing, as_json=args.json)
    if listing.error is not None:
        sys.exit(1)


def handle_extract_html(args: argparse.Namespace) -> None:
    """Extract from a saved HTML snapshot without a browser."""
    from jobpost_extract.extraction.extractor import JobExtractor

    path = Path(args.file)
    if not path.exists():
        _fail(ActionableError.config("file", f"HTML file not found: {path}"))

    try:
        settings = load_cli_settings(args.settings)
    except ActionableError as err:
        _fail(err)

    html = path.read_text(encoding="utf-8")
    extractor = JobExtractor(settings)
    outcome = asyncio.run(extractor.extract_html(html, args.url))
    _print_outcome(outcome, as_json=args.json)
    if not outcome.ok:
        sys.exit(1)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="jobpost-extract",
        description="Resilient job-posting extraction from LinkedIn pages",
    )
    parser.add_argument(
        "--settings",
        type=str,
        default=None,
        metavar="PATH",
        help="Settings TOML (default: config/settings.toml when present)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at DEBUG level")
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        metavar="DIR",
        help="Also write a timestamped log file to DIR",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # -- import-cookies ------------------------------------------------------
    import_p = sub.add_parser("import-cookies", help="Parse exported cookies into a cookie file")
    import_p.add_argument("--file", type=str, default=None, help="Cookie export (default: stdin)")
    import_p.add_argument(
        "--format",
        choices=["json", "tabular", "netscape"],
        default=None,
        help="Input format (default: auto-detect)",
    )
    import_p.add_argument(
        "--out",
        type=str,
        default=DEFAULT_COOKIE_OUT,
        help=f"Output file (default: {DEFAULT_COOKIE_OUT})",
    )

    # -- check-cookies -------------------------------------------------------
    check_p = sub.add_parser("check-cookies", help="Validate a cookie file")
    check_p.add_argument("--file", type=str, default=DEFAULT_COOKIE_OUT, help="Cookie file")
    check_p.add_argument(
        "--format",
        choices=["json", "tabular", "netscape"],
        default=None,
        help="Input format (default: auto-detect)",
    )
    check_p.add_argument(
        "--live",
        action="store_true",
        help="Also open the feed in a browser and confirm the session is logged in",
    )

    # -- extract -------------------------------------------------------------
    extract_p = sub.add_parser("extract", help="Extract job detail page(s)")
    extract_p.add_argument("urls", nargs="+", help="Job URL(s) or /jobs/view/<id> links")
    extract_p.add_argument("--cookies", type=str, default=None, help="Cookie file")
    extract_p.add_argument("--json", action="store_true", help="Print JSON")

    # -- listing -------------------------------------------------------------
    listing_p = sub.add_parser("listing", help="Read job cards from a search-results page")
    listing_p.add_argument("url", nargs="?", default=None, help="Search-results URL")
    listing_p.add_argument("--keywords", type=str, default=None, help="Search keywords")
    listing_p.add_argument("--location", type=str, default=None, help="Search location")
    listing_p.add_argument("--remote", action="store_true", help="Remote jobs only")
    listing_p.add_argument(
        "--date-posted",
        type=str,
        default=None,
        metavar="F_TPR",
        help="Posting-age filter, e.g. r86400 for the last 24 hours",
    )
    listing_p.add_argument("--cookies", type=str, default=None, help="Cookie file")
    listing_p.add_argument("--json", action="store_true", help="Print JSON")

    # -- extract-html --------------------------------------------------------
    html_p = sub.add_parser("extract-html", help="Extract from a saved HTML file")
    html_p.add_argument("file", type=str, help="Saved page HTML")
    html_p.add_argument("--url", type=str, required=True, help="URL the page was saved from")
    html_p.add_argument("--json", action="store_true", help="Print JSON")

    return parser
