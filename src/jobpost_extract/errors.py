"""Actionable error hierarchy for jobpost-extract.

Errors are classified by **recovery path**, not by origin.
Each error type carries structured guidance for three audiences:
  - The calling code (typed ``error_type`` for routing)
  - The human operator (``suggestion`` + ``troubleshooting`` steps)
  - An AI agent (``ai_guidance`` with concrete next actions)

On the extraction path these errors travel as *values* attached to an
outcome; they are raised only for configuration problems and for
sessions that cannot be acquired at all.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


class ErrorType(StrEnum):
    """Recovery-path categories — what to *do*, not where it came from."""

    AUTHENTICATION = "authentication"
    CONFIG = "config"
    CONNECTION = "connection"
    PARSE = "parse"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    EXTRACTION = "extraction"
    UNEXPECTED = "unexpected"


# ---------------------------------------------------------------------------
# Guidance dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AIGuidance:
    """Machine-readable guidance for an AI agent consuming this error."""

    action_required: str
    command: str | None = None
    discovery_tool: str | None = None
    checks: list[str] | None = None
    steps: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"action_required": self.action_required}
        if self.command is not None:
            result["command"] = self.command
        if self.discovery_tool is not None:
            result["discovery_tool"] = self.discovery_tool
        if self.checks is not None:
            result["checks"] = self.checks
        if self.steps is not None:
            result["steps"] = self.steps
        return result


@dataclass(frozen=True)
class Troubleshooting:
    """Sequential, human-readable recovery steps for the operator."""

    steps: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {"steps": self.steps}


# ---------------------------------------------------------------------------
# Base actionable error
# ---------------------------------------------------------------------------


@dataclass
class ActionableError(Exception):
    """Structured error with embedded recovery guidance.

    Use the factory classmethods rather than constructing directly —
    they encode domain knowledge so callers don't have to.
    """

    error: str
    error_type: ErrorType
    service: str

    success: bool = field(default=False, init=False)
    suggestion: str | None = None
    ai_guidance: AIGuidance | None = None
    troubleshooting: Troubleshooting | None = None
    context: dict[str, Any] | None = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    # Make it work as a real exception
    def __post_init__(self) -> None:
        super().__init__(self.error)

    # -- serialisation -------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Compact JSON-ready dict — ``None`` values are excluded."""
        result: dict[str, Any] = {
            "success": self.success,
            "error": self.error,
            "error_type": self.error_type.value,
            "service": self.service,
            "timestamp": self.timestamp,
        }
        if self.suggestion is not None:
            result["suggestion"] = self.suggestion
        if self.ai_guidance is not None:
            result["ai_guidance"] = self.ai_guidance.to_dict()
        if self.troubleshooting is not None:
            result["troubleshooting"] = self.troubleshooting.to_dict()
        if self.context is not None:
            result["context"] = self.context
        return result

    # -- factory methods -----------------------------------------------------

    @classmethod
    def authentication(
        cls,
        site: str,
        raw_error: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """Login wall, expired session cookie, or checkpoint challenge."""
        return cls(
            error=f"Authentication failed for {site}: {raw_error}",
            error_type=ErrorType.AUTHENTICATION,
            service=site,
            suggestion=suggestion or f"Re-export fresh {site} cookies from a logged-in browser",
            ai_guidance=AIGuidance(
                action_required="Operator must supply a fresh authentication cookie set",
                checks=[
                    f"Check that the {site} cookie export contains the session cookie",
                    "Check the cookie expiry dates against the current time",
                ],
            ),
            troubleshooting=Troubleshooting(
                steps=[
                    f"1. Log in to {site} in a normal browser",
                    "2. Export cookies (JSON extension, DevTools table, or cookies.txt)",
                    "3. Run: python -m jobpost_extract import-cookies --file <export>",
                    "4. Re-run the extraction",
                ]
            ),
        )

    @classmethod
    def cookies_invalid(
        cls,
        site: str,
        errors: list[str],
    ) -> ActionableError:
        """Cookie set failed validation before any navigation happened."""
        err = cls.authentication(
            site,
            "; ".join(errors) if errors else "cookie validation failed",
            suggestion="Fix every listed cookie problem, then re-import",
        )
        err.context = {"validation_errors": list(errors)}
        return err

    @classmethod
    def config(
        cls,
        field_name: str,
        reason: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """Missing or invalid configuration in settings.toml."""
        return cls(
            error=f"Configuration error — {field_name}: {reason}",
            error_type=ErrorType.CONFIG,
            service="settings.toml",
            suggestion=suggestion or f"Fix '{field_name}' in config/settings.toml",
            ai_guidance=AIGuidance(
                action_required=f"Correct the '{field_name}' value in config/settings.toml",
                checks=[
                    "Verify config/settings.toml exists",
                    f"Verify '{field_name}' is present and valid",
                ],
            ),
            troubleshooting=Troubleshooting(
                steps=[
                    "1. Open config/settings.toml",
                    f"2. Locate the '{field_name}' setting",
                    f"3. Fix the issue: {reason}",
                    "4. Save and re-run",
                ]
            ),
        )

    @classmethod
    def connection(
        cls,
        service: str,
        url: str,
        raw_error: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """Browser endpoint unreachable, launch failure, or lost connection."""
        return cls(
            error=f"Cannot connect to {service} at {url}: {raw_error}",
            error_type=ErrorType.CONNECTION,
            service=service,
            suggestion=suggestion or f"Verify {service} is running at {url}",
            ai_guidance=AIGuidance(
                action_required=f"Verify {service} is reachable",
                checks=[
                    f"Is {service} running?",
                    f"Is the endpoint {url} correct in settings.toml?",
                    "Is a VPN or firewall blocking the connection?",
                ],
            ),
            troubleshooting=Troubleshooting(
                steps=[
                    f"1. Verify {service} is running",
                    f"2. Check the endpoint in config/settings.toml matches {url}",
                    "3. Run 'playwright install chromium' for local launches",
                    "4. Re-run the command",
                ]
            ),
        )

    @classmethod
    def parse(
        cls,
        source: str,
        selector: str,
        raw_error: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """Input or page structure did not match what the parser expects."""
        return cls(
            error=f"Parse failure on {source} — '{selector}': {raw_error}",
            error_type=ErrorType.PARSE,
            service=source,
            suggestion=suggestion or f"The {source} structure may have changed; update '{selector}'",
            ai_guidance=AIGuidance(
                action_required=f"Inspect {source} and update '{selector}'",
                checks=[
                    f"Open {source} and verify '{selector}' still matches",
                    "Update the locator table if the markup changed",
                ],
            ),
            troubleshooting=Troubleshooting(
                steps=[
                    f"1. Open {source}",
                    "2. Inspect the structure with DevTools",
                    f"3. Verify '{selector}' still exists",
                    "4. Update the field locators if needed",
                ]
            ),
        )

    @classmethod
    def cookie_format(
        cls,
        attempts: dict[str, str],
    ) -> ActionableError:
        """No known cookie format could parse the supplied text."""
        detail = "; ".join(f"{name}: {reason}" for name, reason in attempts.items())
        err = cls.parse(
            "cookie input",
            "/".join(attempts) or "cookie formats",
            f"no format produced cookies ({detail})",
            suggestion=(
                "Supply a JSON cookie export, a DevTools cookie table, "
                "or a Netscape cookies.txt file"
            ),
        )
        err.context = {"attempts": dict(attempts)}
        return err

    @classmethod
    def validation(
        cls,
        field_name: str,
        reason: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """Input validation failure (TOML, CLI args, etc.)."""
        return cls(
            error=f"Validation error — {field_name}: {reason}",
            error_type=ErrorType.VALIDATION,
            service="validation",
            suggestion=suggestion or f"Fix '{field_name}': {reason}",
            ai_guidance=AIGuidance(
                action_required=f"Correct the value for '{field_name}'",
            ),
            troubleshooting=Troubleshooting(
                steps=[
                    f"1. Check the value of '{field_name}'",
                    f"2. Issue: {reason}",
                    "3. Correct and retry",
                ]
            ),
        )

    @classmethod
    def navigation_timeout(
        cls,
        url: str,
        timeout_ms: int,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """Page navigation did not finish within the page-operation timeout."""
        return cls(
            error=f"Navigation to {url} timed out after {timeout_ms}ms",
            error_type=ErrorType.TIMEOUT,
            service="browser",
            suggestion=suggestion or "Raise [browser].page_timeout_ms or retry later",
            ai_guidance=AIGuidance(
                action_required="Retry the extraction after a pause",
                checks=[
                    "Is the target site reachable from this host?",
                    "Is the remote browser overloaded?",
                ],
            ),
            context={"url": url, "timeout_ms": timeout_ms},
        )

    @classmethod
    def extraction(
        cls,
        url: str,
        missing: list[str],
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """Every required field was absent — nothing usable was extracted."""
        return cls(
            error=f"Extraction failed for {url}: missing {', '.join(missing)}",
            error_type=ErrorType.EXTRACTION,
            service="extractor",
            suggestion=suggestion or "The page markup may have changed; review the field locators",
            ai_guidance=AIGuidance(
                action_required="Compare the page markup against the field locator table",
                checks=[
                    "Was the page a login wall or rate-limit page?",
                    f"Do the locators for {', '.join(missing)} still match?",
                ],
            ),
            troubleshooting=Troubleshooting(
                steps=[
                    f"1. Open {url} in a logged-in browser",
                    "2. Save the page HTML",
                    "3. Run: python -m jobpost_extract extract-html <file> --url <url>",
                    "4. Update the locators for the missing fields",
                ]
            ),
            context={"url": url, "missing": list(missing)},
        )

    @classmethod
    def unexpected(
        cls,
        service: str,
        operation: str,
        raw_error: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """Catch-all for truly unexpected failures."""
        return cls(
            error=f"Unexpected error in {service} during {operation}: {raw_error}",
            error_type=ErrorType.UNEXPECTED,
            service=service,
            suggestion=suggestion or "This is an unexpected error — check logs for details",
            ai_guidance=AIGuidance(
                action_required="Analyze the error and escalate if needed",
                checks=[
                    "Check the full traceback in logs",
                    f"Is {service} in a known-good state?",
                ],
            ),
        )

    @classmethod
    def from_exception(
        cls,
        error: Exception,
        service: str,
        operation: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """Auto-classify an exception by keyword patterns.

        A caller-supplied ``suggestion`` is always preserved — it carries
        context the generic classifier cannot infer.
        """
        error_str = str(error).lower()
        raw_error = str(error)

        if any(kw in error_str for kw in ("unauthorized", "401", "authwall", "login")):
            return cls.authentication(service, raw_error, suggestion=suggestion)

        if any(kw in error_str for kw in ("timeout", "timed out")):
            return cls.connection(service, "", raw_error, suggestion=suggestion)

        if any(
            kw in error_str
            for kw in ("connection refused", "unreachable", "resolve", "disconnected")
        ):
            return cls.connection(service, "", raw_error, suggestion=suggestion)

        return cls.unexpected(service, operation, raw_error, suggestion=suggestion)
