"""Content-readiness waiting.

Lazy panels render a skeleton first and real content later, or not at
all.  :func:`await_ready` polls a *locate* callable until a readiness
predicate accepts what it finds, on a fixed or exponential cadence,
and always stops at ``WaitPolicy.timeout``.

Timing out is an ordinary outcome (the site may never render that
panel), so it comes back as a :class:`WaitResult` rather than an
exception.  The last candidate seen is kept for a best-effort read.

Predicates are re-run on every poll and must not touch the page.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from jobpost_extract.logging import logger
from jobpost_extract.text import clean_whitespace

if TYPE_CHECKING:
    from jobpost_extract.browser.dom import DomBackend, Element

Locate = Callable[[], Awaitable["Element | None"]]
ReadinessPredicate = Callable[["Element"], Awaitable[bool]]

# Placeholder markup the site renders while a panel loads
SKELETON_SELECTORS = (
    ".scaffold-skeleton-container",
    ".job-description-skeleton__text-container",
    ".scaffold-skeleton-text",
    ".scaffold-skeleton--shimmer",
)
LOADER_SELECTORS = (
    ".artdeco-loader",
    ".artdeco-loader__bars",
    "[data-test-loader-a11y]",
)
CONTENT_SELECTORS = "p, ul, ol, div.mt4, .mt4, h2, h3"
_LOADING_LABEL = re.compile(r"loading[.…\s]*")

_PLACEHOLDER_CLASSES = frozenset(
    {
        "scaffold-skeleton-container",
        "job-description-skeleton__text-container",
        "artdeco-loader",
    }
)


@dataclass(frozen=True)
class WaitPolicy:
    """Retry cadence and hard time limit for one wait (seconds).

    ``initial_delay`` is the base of the exponential schedule
    (``initial_delay * 2**n``); ``retry_delay`` is the fixed gap
    otherwise.  ``timeout`` bounds the whole wait however many retries
    remain.
    """

    max_retries: int = 10
    initial_delay: float = 0.1
    retry_delay: float = 0.3
    exponential: bool = False
    timeout: float = 5.0

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.initial_delay < 0 or self.retry_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")

    def delay_for(self, attempt: int) -> float:
        """Pause after the ``attempt``-th (1-based) unsuccessful poll."""
        if self.exponential:
            return float(self.initial_delay * 2 ** (attempt - 1))
        return self.retry_delay


@dataclass(frozen=True)
class WaitResult:
    """Outcome of :func:`await_ready`.

    ``element`` is set only when the predicate accepted it.  On timeout
    ``last_candidate`` holds whatever was located last, possibly still a
    placeholder.
    """

    element: Element | None
    attempts: int
    elapsed: float
    timed_out: bool
    last_candidate: Element | None = None

    @property
    def ready(self) -> bool:
        return self.element is not None


async def await_ready(
    locate: Locate,
    predicate: ReadinessPredicate,
    policy: WaitPolicy,
) -> WaitResult:
    """Poll ``locate`` until ``predicate`` accepts its result or the policy runs out.

    The first poll happens immediately.  ``locate`` is re-run on every
    poll because the host page may replace the node.  Both callables are
    cut off at the deadline, so a hung backend cannot stretch the wait.
    """
    loop = asyncio.get_running_loop()
    started = loop.time()
    deadline = started + policy.timeout
    attempts = 0
    last: Element | None = None

    while True:
        attempts += 1
        try:
            candidate = await asyncio.wait_for(locate(), max(deadline - loop.time(), 0))
            if candidate is not None:
                last = candidate
                if await asyncio.wait_for(predicate(candidate), max(deadline - loop.time(), 0)):
                    elapsed = loop.time() - started
                    logger.debug("Ready after %d attempt(s), %.3fs", attempts, elapsed)
                    return WaitResult(candidate, attempts, elapsed, False, candidate)
        except TimeoutError:
            break

        if attempts >= policy.max_retries:
            break
        remaining = deadline - loop.time()
        if remaining <= 0:
            break
        await asyncio.sleep(min(policy.delay_for(attempts), remaining))

    elapsed = loop.time() - started
    logger.debug("Not ready after %d attempt(s), %.3fs", attempts, elapsed)
    return WaitResult(None, attempts, elapsed, True, last)


# ---------------------------------------------------------------------------
# Readiness predicates
# ---------------------------------------------------------------------------


def present() -> ReadinessPredicate:
    """Ready as soon as the element exists."""

    async def check(element: Element) -> bool:
        return True

    return check


def has_text(dom: DomBackend, min_length: int = 1) -> ReadinessPredicate:
    """Ready once the element's normalised text reaches ``min_length`` characters."""

    async def check(element: Element) -> bool:
        return len(clean_whitespace(await dom.get_text(element))) >= min_length

    return check


async def is_placeholder(dom: DomBackend, element: Element) -> bool:
    """Whether ``element`` is, or contains, a loading skeleton or spinner."""
    classes = set((await dom.get_attribute(element, "class") or "").split())
    if classes & _PLACEHOLDER_CLASSES:
        return True
    for selector in (*SKELETON_SELECTORS, *LOADER_SELECTORS):
        if await dom.query(element, selector) is not None:
            return True
    return False


def has_real_content(dom: DomBackend, min_length: int = 1) -> ReadinessPredicate:
    """Ready once the element holds real content and no loading placeholder.

    Real content is either a nested content block (paragraph, list,
    heading) with text of its own, or at least ``min_length`` characters
    of bare text.  "Loading…" labels do not count as text.
    """

    async def text_of(element: Element) -> str:
        raw = (await dom.get_text(element) or "").lower()
        return clean_whitespace(_LOADING_LABEL.sub(" ", raw))

    async def check(element: Element) -> bool:
        if await is_placeholder(dom, element):
            return False
        text = await text_of(element)
        if not text:
            return False
        for block in await dom.query_all(element, CONTENT_SELECTORS):
            if await text_of(block):
                return True
        return len(text) >= min_length

    return check
