"""Configuration loading and validation.

Loads ``settings.toml`` and validates all fields at startup, before any
browser sessions are opened.  A browser that fails to attach halfway
through a bulk extraction is far more costly than a startup validation
failure.

The validated config is exposed as a :class:`Settings` dataclass with
typed fields for each section: ``browser``, ``pacing``, ``readiness``
and ``site``.  Every section is optional; the defaults match the values
the target site has been observed to tolerate.

Environment overrides (``BROWSER_WS_ENDPOINT``, ``SCRAPER_HEADLESS``,
``SCRAPER_TIMEOUT``, ``SCRAPER_RATE_LIMIT_DELAY``) are applied once, at
load time.  Nothing downstream reads the environment.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from jobpost_extract.errors import ActionableError

if TYPE_CHECKING:
    from jobpost_extract.extraction.readiness import WaitPolicy

# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

KNOWN_CHANNELS = ("msedge", "chrome", "chromium")


@dataclass(frozen=True)
class BrowserConfig:
    """Browser acquisition and fingerprint settings from ``[browser]``."""

    headless: bool = True
    page_timeout_ms: int = 30_000
    remote_endpoint: str | None = None
    browser_channel: str | None = None
    stealth: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: int = 1920
    viewport_height: int = 1080
    accept_language: str = "en-US,en;q=0.9"

    @property
    def is_remote(self) -> bool:
        """A configured endpoint selects remote attach over local launch."""
        return bool(self.remote_endpoint)


@dataclass(frozen=True)
class PacingConfig:
    """Inter-request pacing for bulk extraction from ``[pacing]``."""

    inter_request_delay_ms: int = 2_000
    jitter_ms: int = 500


@dataclass(frozen=True)
class ReadinessConfig:
    """Content-readiness wait policy from ``[readiness]``."""

    max_retries: int = 10
    initial_delay_ms: int = 100
    retry_delay_ms: int = 300
    exponential: bool = False
    timeout_ms: int = 5_000

    def policy(self) -> WaitPolicy:
        """Build the :class:`WaitPolicy` the readiness waiter consumes."""
        from jobpost_extract.extraction.readiness import WaitPolicy

        return WaitPolicy(
            max_retries=self.max_retries,
            initial_delay=self.initial_delay_ms / 1000,
            retry_delay=self.retry_delay_ms / 1000,
            exponential=self.exponential,
            timeout=self.timeout_ms / 1000,
        )


@dataclass(frozen=True)
class SiteConfig:
    """Target-site identity from ``[site]``."""

    root_domain: str = "linkedin.com"
    auth_cookie: str = "li_at"
    base_url: str = "https://www.linkedin.com"


@dataclass(frozen=True)
class Settings:
    """Top-level validated configuration."""

    browser: BrowserConfig = field(default_factory=BrowserConfig)
    pacing: PacingConfig = field(default_factory=PacingConfig)
    readiness: ReadinessConfig = field(default_factory=ReadinessConfig)
    site: SiteConfig = field(default_factory=SiteConfig)


# ---------------------------------------------------------------------------
# Default settings path
# ---------------------------------------------------------------------------

DEFAULT_SETTINGS_PATH = Path("config/settings.toml")


# ---------------------------------------------------------------------------
# Loading and validation
# ---------------------------------------------------------------------------


def load_settings(
    path: str | Path = DEFAULT_SETTINGS_PATH,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load and validate settings from a TOML file.

    Raises :class:`~jobpost_extract.errors.ActionableError`:
      - CONFIG if the file is missing
      - PARSE if the TOML is malformed
      - VALIDATION if field values are out of range

    ``environ`` defaults to ``os.environ``; pass an explicit mapping in tests.
    """
    filepath = Path(path)
    if not filepath.exists():
        raise ActionableError.config(
            field_name="settings_path",
            reason=f"Settings file not found: {filepath}",
            suggestion=f"Create {filepath} or pass --settings with an existing file",
        )

    raw_text = filepath.read_text(encoding="utf-8")
    try:
        data = tomllib.loads(raw_text)
    except tomllib.TOMLDecodeError as exc:
        raise ActionableError.parse(
            source="settings",
            selector="TOML syntax",
            raw_error=str(exc),
            suggestion=f"Fix TOML syntax in {filepath}",
        ) from None

    return settings_from_dict(data, environ)


def settings_from_dict(
    data: Mapping[str, object],
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Validate already-parsed settings data and apply environment overrides."""
    env = os.environ if environ is None else environ

    browser_data = _section(data, "browser")
    pacing_data = _section(data, "pacing")
    readiness_data = _section(data, "readiness")
    site_data = _section(data, "site")

    # -- environment overrides ----------------------------------------------
    if env.get("BROWSER_WS_ENDPOINT"):
        browser_data["remote_endpoint"] = env["BROWSER_WS_ENDPOINT"]
    if env.get("SCRAPER_HEADLESS"):
        browser_data["headless"] = env["SCRAPER_HEADLESS"].strip().lower() not in (
            "0",
            "false",
            "no",
            "off",
        )
    if env.get("SCRAPER_TIMEOUT"):
        browser_data["page_timeout_ms"] = _env_int(env, "SCRAPER_TIMEOUT")
    if env.get("SCRAPER_RATE_LIMIT_DELAY"):
        pacing_data["inter_request_delay_ms"] = _env_int(env, "SCRAPER_RATE_LIMIT_DELAY")

    # -- browser section -----------------------------------------------------
    endpoint = str(browser_data.get("remote_endpoint") or "").strip() or None
    if endpoint and not endpoint.startswith(("ws://", "wss://", "http://", "https://")):
        raise ActionableError.validation(
            field_name="browser.remote_endpoint",
            reason=f"'{endpoint}' is missing a scheme (ws://, wss://, http:// or https://)",
            suggestion="Set [browser].remote_endpoint to a ws:// or http:// URL",
        )

    channel = str(browser_data.get("browser_channel") or "").strip() or None
    if channel and channel not in KNOWN_CHANNELS:
        raise ActionableError.validation(
            field_name="browser.browser_channel",
            reason=f"'{channel}' is not one of {', '.join(KNOWN_CHANNELS)}",
            suggestion="Set [browser].browser_channel to msedge, chrome or chromium, or leave it empty",
        )

    browser = BrowserConfig(
        headless=bool(browser_data.get("headless", True)),
        page_timeout_ms=_positive_int(browser_data, "page_timeout_ms", 30_000, "browser"),
        remote_endpoint=endpoint,
        browser_channel=channel,
        stealth=bool(browser_data.get("stealth", True)),
        user_agent=str(browser_data.get("user_agent") or DEFAULT_USER_AGENT),
        viewport_width=_positive_int(browser_data, "viewport_width", 1920, "browser"),
        viewport_height=_positive_int(browser_data, "viewport_height", 1080, "browser"),
        accept_language=str(browser_data.get("accept_language") or "en-US,en;q=0.9"),
    )

    # -- pacing section ------------------------------------------------------
    pacing = PacingConfig(
        inter_request_delay_ms=_non_negative_int(
            pacing_data, "inter_request_delay_ms", 2_000, "pacing"
        ),
        jitter_ms=_non_negative_int(pacing_data, "jitter_ms", 500, "pacing"),
    )

    # -- readiness section ---------------------------------------------------
    max_retries = _int_field(readiness_data, "max_retries", 10, "readiness")
    if max_retries < 1:
        raise ActionableError.validation(
            field_name="readiness.max_retries",
            reason=f"is {max_retries} — must be >= 1",
            suggestion="Set [readiness].max_retries to at least 1",
        )
    readiness = ReadinessConfig(
        max_retries=max_retries,
        initial_delay_ms=_non_negative_int(readiness_data, "initial_delay_ms", 100, "readiness"),
        retry_delay_ms=_non_negative_int(readiness_data, "retry_delay_ms", 300, "readiness"),
        exponential=bool(readiness_data.get("exponential", False)),
        timeout_ms=_positive_int(readiness_data, "timeout_ms", 5_000, "readiness"),
    )

    # -- site section --------------------------------------------------------
    base_url = str(site_data.get("base_url", "https://www.linkedin.com")).rstrip("/")
    if not base_url.startswith(("http://", "https://")):
        raise ActionableError.validation(
            field_name="site.base_url",
            reason=f"'{base_url}' is missing a scheme (http:// or https://)",
            suggestion="Set [site].base_url to a URL starting with https://",
        )
    root_domain = str(site_data.get("root_domain", "linkedin.com")).strip().lstrip(".").lower()
    if not root_domain:
        raise ActionableError.validation(
            field_name="site.root_domain",
            reason="must not be empty",
            suggestion="Set [site].root_domain to the site's registrable domain",
        )
    site = SiteConfig(
        root_domain=root_domain,
        auth_cookie=str(site_data.get("auth_cookie", "li_at")),
        base_url=base_url,
    )

    return Settings(browser=browser, pacing=pacing, readiness=readiness, site=site)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _section(data: Mapping[str, object], name: str) -> dict[str, object]:
    """Return a copy of an optional top-level section, or raise CONFIG error."""
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ActionableError.config(
            field_name=name,
            reason=f"[{name}] must be a table, not {type(section).__name__}",
            suggestion=f"Define [{name}] as a TOML table",
        )
    return dict(section)


def _env_int(env: Mapping[str, str], name: str) -> int:
    raw = env[name]
    try:
        return int(raw)
    except ValueError:
        raise ActionableError.validation(
            field_name=name,
            reason=f"'{raw}' is not an integer number of milliseconds",
            suggestion=f"Set {name} to a whole number, e.g. {name}=30000",
        ) from None


def _int_field(section: dict[str, object], name: str, default: int, section_name: str) -> int:
    value = section.get(name, default)
    if isinstance(value, bool) or not isinstance(value, int | float | str):
        raise ActionableError.validation(
            field_name=f"{section_name}.{name}",
            reason=f"must be a number, got {type(value).__name__}",
        )
    try:
        return int(value)
    except ValueError:
        raise ActionableError.validation(
            field_name=f"{section_name}.{name}",
            reason=f"'{value}' is not a number",
        ) from None


def _positive_int(section: dict[str, object], name: str, default: int, section_name: str) -> int:
    value = _int_field(section, name, default, section_name)
    if value <= 0:
        raise ActionableError.validation(
            field_name=f"{section_name}.{name}",
            reason=f"is {value} — must be > 0",
            suggestion=f"Set [{section_name}].{name} to a positive number",
        )
    return value


def _non_negative_int(
    section: dict[str, object], name: str, default: int, section_name: str
) -> int:
    value = _int_field(section, name, default, section_name)
    if value < 0:
        raise ActionableError.validation(
            field_name=f"{section_name}.{name}",
            reason=f"is {value} — must be >= 0",
            suggestion=f"Set [{section_name}].{name} to zero or a positive number",
        )
    return value
