"""Authentication-cookie import and validation.

Operators hand us cookies in whatever shape their browser produced:

- **json** — an extension export (``expirationDate`` epoch seconds) or a
  Playwright ``storage_state``/``add_cookies`` dump (``expires``)
- **tabular** — rows copy-pasted from the DevTools *Application → Cookies*
  table, tab- or comma-separated, with an optional header row
- **netscape** — a ``cookies.txt`` file (``domain flag path secure
  expiration name value``)

Each parser is independent and pure.  :func:`parse_cookies` tries them
in that order and returns the first non-empty result; results from two
parsers are never merged.  When nothing parses, the caller gets every
per-format failure in one :class:`~jobpost_extract.errors.ActionableError`.
"""

from __future__ import annotations

import ipaddress
import json
import re
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from jobpost_extract.errors import ActionableError
from jobpost_extract.logging import logger

# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


class CookieFormat(StrEnum):
    """Supported cookie input formats, in auto-detection order."""

    JSON = "json"
    TABULAR = "tabular"
    NETSCAPE = "netscape"


@dataclass(frozen=True)
class SessionCookie:
    """A normalised authentication cookie.

    ``domain`` is always passed through :func:`normalize_domain`;
    ``expires`` is integer epoch seconds, ``None`` for session cookies.
    """

    name: str
    value: str
    domain: str
    path: str = "/"
    expires: int | None = None
    http_only: bool = False
    secure: bool = True
    same_site: str | None = None

    def is_expired(self, now: float | None = None) -> bool:
        """Whether the cookie's expiry lies in the past.  Session cookies never expire."""
        if self.expires is None:
            return False
        current = time.time() if now is None else now
        return self.expires < current


@dataclass(frozen=True)
class CookieValidation:
    """Result of :func:`validate_cookies` — every problem, not just the first."""

    valid: bool
    errors: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Domain handling
# ---------------------------------------------------------------------------

_HOSTNAME = re.compile(r"^\.?[a-z0-9_-]+(\.[a-z0-9_-]+)*$", re.IGNORECASE)


def normalize_domain(domain: str) -> str:
    """Canonicalise a cookie domain to its leading-dot form.

    The bare apex, the ``www.`` host and the dotted form all map to the
    same value.  IP addresses and single-label hosts (``localhost``)
    cannot carry a domain cookie and are returned without a dot.

    >>> normalize_domain("www.linkedin.com")
    '.linkedin.com'
    >>> normalize_domain("LinkedIn.com")
    '.linkedin.com'
    >>> normalize_domain(".www.linkedin.com")
    '.linkedin.com'
    >>> normalize_domain("127.0.0.1")
    '127.0.0.1'
    """
    host = domain.strip().lower().lstrip(".")
    if host.startswith("www."):
        host = host[4:]
    if not host:
        return ""
    try:
        ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        return host
    if "." not in host:
        return host
    return f".{host}"


def domain_matches(domain: str, root_domain: str) -> bool:
    """Whether a cookie domain belongs to ``root_domain`` or one of its subdomains."""
    host = domain.strip().lower().lstrip(".")
    root = root_domain.strip().lower().lstrip(".")
    return bool(root) and (host == root or host.endswith(f".{root}"))


# ---------------------------------------------------------------------------
# Field coercion helpers
# ---------------------------------------------------------------------------

_SAME_SITE = {
    "strict": "Strict",
    "lax": "Lax",
    "none": "None",
    "no_restriction": "None",
}

_TRUE_FLAGS = frozenset({"true", "✓", "yes", "1"})


def _same_site(raw: object) -> str | None:
    if not raw:
        return None
    return _SAME_SITE.get(str(raw).strip().lower())


def _flag(raw: str | None, *, default: bool) -> bool:
    if raw is None:
        return default
    text = raw.strip()
    if not text:
        return False
    return text.lower() in _TRUE_FLAGS


def _epoch_from_number(number: float) -> int | None:
    """Epoch seconds from a seconds or milliseconds timestamp; ``<= 0`` means session."""
    if number <= 0:
        return None
    if number > 1_000_000_000_000:
        number = number / 1000
    return int(number)


def _parse_expiry(raw: str | None) -> int | None:
    """Expiry column of the DevTools table: ISO date, HTTP date, timestamp, or ``Session``."""
    if raw is None:
        return None
    text = raw.strip()
    if not text or text.lower() == "session":
        return None
    try:
        return _epoch_from_number(float(text))
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError):
            raise ValueError(f"unrecognised expiry '{text}'") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


# ---------------------------------------------------------------------------
# Format parsers
# ---------------------------------------------------------------------------


def _cookie_from_object(obj: Mapping[str, Any]) -> SessionCookie:
    name = obj.get("name")
    domain = obj.get("domain")
    if not isinstance(name, str) or not name:
        raise ValueError("cookie object without a 'name'")
    if not isinstance(domain, str) or not domain:
        raise ValueError(f"cookie '{name}' has no 'domain'")

    expires: int | None = None
    raw_expiry = obj.get("expirationDate", obj.get("expires"))
    if isinstance(raw_expiry, int | float) and not isinstance(raw_expiry, bool):
        expires = _epoch_from_number(float(raw_expiry))

    return SessionCookie(
        name=name,
        value=str(obj.get("value", "")),
        domain=normalize_domain(domain),
        path=str(obj.get("path") or "/"),
        expires=expires,
        http_only=bool(obj.get("httpOnly", False)),
        secure=bool(obj.get("secure", True)),
        same_site=_same_site(obj.get("sameSite")),
    )


def parse_json_cookies(raw: str) -> list[SessionCookie]:
    """Parse a JSON array (or a single object, or ``{"cookies": [...]}``)."""
    data = json.loads(raw)
    if isinstance(data, dict):
        data = data["cookies"] if isinstance(data.get("cookies"), list) else [data]
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array, got {type(data).__name__}")
    cookies: list[SessionCookie] = []
    for index, obj in enumerate(data):
        if not isinstance(obj, dict):
            raise ValueError(f"element {index} is not an object")
        cookies.append(_cookie_from_object(obj))
    return cookies


def parse_tabular_cookies(raw: str) -> list[SessionCookie]:
    """Parse rows copied from the DevTools cookie table.

    Columns: ``Name, Value, Domain, Path, Expires, Size, HttpOnly,
    Secure, SameSite[, Priority]``.  A row whose third column does not
    look like a host name is not a table row and is skipped.
    """
    lines = [line for line in raw.strip().splitlines() if line.strip()]
    if not lines:
        raise ValueError("no rows")

    start = 1 if "name" in _split_row(lines[0])[0].lower() else 0

    cookies: list[SessionCookie] = []
    skipped = 0
    for line in lines[start:]:
        parts = _split_row(line)
        if len(parts) < 3:
            skipped += 1
            continue
        name, value, domain = (p.strip() for p in parts[:3])
        if not name or not value or not domain or not _HOSTNAME.match(domain):
            skipped += 1
            continue

        cols: list[str | None] = [*parts, *([None] * max(0, 9 - len(parts)))]

        cookies.append(
            SessionCookie(
                name=name,
                value=value,
                domain=normalize_domain(domain),
                path=(cols[3] or "").strip() or "/",
                expires=_parse_expiry(cols[4]),
                http_only=_flag(cols[6], default=False),
                secure=_flag(cols[7], default=True),
                same_site=_same_site(cols[8]),
            )
        )

    if not cookies:
        raise ValueError(f"no table rows with a name, value and host ({skipped} skipped)")
    return cookies


def _split_row(line: str) -> list[str]:
    parts = line.strip().split("\t")
    if len(parts) < 3:
        parts = line.strip().split(",")
    return parts


_HTTPONLY_PREFIX = "#HttpOnly_"


def parse_netscape_cookies(raw: str) -> list[SessionCookie]:
    """Parse a Netscape ``cookies.txt`` file.

    Values may themselves contain tabs; everything after the name column
    is the value.  curl-style ``#HttpOnly_`` domain prefixes are honoured.
    """
    cookies: list[SessionCookie] = []
    for line in raw.splitlines():
        text = line.strip()
        http_only = False
        if text.startswith(_HTTPONLY_PREFIX):
            text = text[len(_HTTPONLY_PREFIX):]
            http_only = True
        if not text or text.startswith("#"):
            continue
        parts = text.split("\t")
        if len(parts) < 7:
            continue
        domain, _flag_col, path, secure, expiration, name, *value_parts = parts
        if not name.strip() or not domain.strip():
            continue
        try:
            expires = _epoch_from_number(float(expiration)) if expiration.strip() else None
        except ValueError:
            raise ValueError(f"bad expiration '{expiration}' for cookie '{name}'") from None
        cookies.append(
            SessionCookie(
                name=name.strip(),
                value="\t".join(value_parts).strip(),
                domain=normalize_domain(domain),
                path=path.strip() or "/",
                expires=expires,
                http_only=http_only,
                secure=secure.strip().upper() == "TRUE",
            )
        )
    if not cookies:
        raise ValueError("no lines with 7 tab-separated fields")
    return cookies


_PARSERS: dict[CookieFormat, Callable[[str], list[SessionCookie]]] = {
    CookieFormat.JSON: parse_json_cookies,
    CookieFormat.TABULAR: parse_tabular_cookies,
    CookieFormat.NETSCAPE: parse_netscape_cookies,
}


def parse_cookies(raw: str, format_hint: CookieFormat | str | None = None) -> list[SessionCookie]:
    """Parse cookie text, auto-detecting the format unless ``format_hint`` is given.

    Raises:
        ActionableError: PARSE, listing the failure of every attempted
            format.  Unparsable input is never treated as zero cookies.
    """
    formats = [CookieFormat(format_hint)] if format_hint else list(_PARSERS)
    attempts: dict[str, str] = {}

    if not raw or not raw.strip():
        raise ActionableError.cookie_format({str(f): "input is empty" for f in formats})

    for fmt in formats:
        try:
            cookies = _PARSERS[fmt](raw)
        except (ValueError, KeyError, TypeError) as exc:
            attempts[str(fmt)] = str(exc) or type(exc).__name__
            logger.debug("Cookie parser %s rejected input: %s", fmt, attempts[str(fmt)])
            continue
        if not cookies:
            attempts[str(fmt)] = "no cookies found"
            continue
        logger.info("Parsed %d cookies using %s format", len(cookies), fmt)
        return cookies

    raise ActionableError.cookie_format(attempts)


# ---------------------------------------------------------------------------
# Validation and formatting
# ---------------------------------------------------------------------------


def validate_cookies(
    cookies: list[SessionCookie],
    *,
    required_cookie: str = "li_at",
    root_domain: str = "linkedin.com",
    now: float | None = None,
) -> CookieValidation:
    """Check a cookie set before any navigation uses it.

    Collects every violation — missing auth cookie, expired cookies,
    foreign domains — so the operator fixes them in one round-trip.
    Never raises.
    """
    if not cookies:
        return CookieValidation(valid=False, errors=["No cookies provided"])

    errors: list[str] = []
    if not any(c.name == required_cookie for c in cookies):
        errors.append(f"Missing required cookie: {required_cookie} (authentication token)")

    current = time.time() if now is None else now
    expired = [c for c in cookies if c.is_expired(current)]
    if expired:
        errors.append(
            f"Found {len(expired)} expired cookie(s): {', '.join(c.name for c in expired)}"
        )

    foreign = [c for c in cookies if not domain_matches(c.domain, root_domain)]
    if foreign:
        errors.append(
            f"Found {len(foreign)} cookie(s) with invalid domain: "
            + ", ".join(f"{c.name} ({c.domain})" for c in foreign)
        )

    return CookieValidation(valid=not errors, errors=errors)


def filter_site_cookies(cookies: Iterable[SessionCookie], root_domain: str) -> list[SessionCookie]:
    """Keep only cookies scoped to ``root_domain``."""
    return [c for c in cookies if domain_matches(c.domain, root_domain)]


def describe_auth_cookie(
    cookies: Iterable[SessionCookie],
    name: str = "li_at",
    *,
    now: float | None = None,
) -> str:
    """One-line, human-readable status of the authentication cookie."""
    cookie = next((c for c in cookies if c.name == name), None)
    if cookie is None:
        return f"{name}: missing"
    if cookie.expires is None:
        return f"{name}: present (session cookie)"
    stamp = datetime.fromtimestamp(cookie.expires, tz=timezone.utc).isoformat()
    if cookie.is_expired(now):
        return f"{name}: expired at {stamp}"
    return f"{name}: present, expires {stamp}"


def to_browser_cookies(cookies: Iterable[SessionCookie]) -> list[dict[str, Any]]:
    """Shape cookies for ``BrowserContext.add_cookies``."""
    formatted: list[dict[str, Any]] = []
    for c in cookies:
        entry: dict[str, Any] = {
            "name": c.name,
            "value": c.value,
            "domain": c.domain,
            "path": c.path or "/",
            "expires": c.expires if c.expires is not None else -1,
            "httpOnly": c.http_only,
            "secure": c.secure,
        }
        if c.same_site:
            entry["sameSite"] = c.same_site
        formatted.append(entry)
    return formatted


def load_cookie_file(path: str | Path, format_hint: CookieFormat | str | None = None) -> list[SessionCookie]:
    """Read and parse a cookie file."""
    filepath = Path(path)
    if not filepath.exists():
        raise ActionableError.config(
            field_name="cookies",
            reason=f"Cookie file not found: {filepath}",
            suggestion="Export cookies from a logged-in browser and pass the file path",
        )
    return parse_cookies(filepath.read_text(encoding="utf-8"), format_hint)


def save_cookie_file(cookies: Iterable[SessionCookie], path: str | Path) -> Path:
    """Write cookies as a Playwright-compatible JSON array."""
    filepath = Path(path)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    filepath.write_text(json.dumps(to_browser_cookies(cookies), indent=2), encoding="utf-8")
    logger.info("Cookies saved to %s", filepath)
    return filepath
