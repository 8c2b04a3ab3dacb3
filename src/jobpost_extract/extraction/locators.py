"""Selector resolution over ordered locator lists.

A logical field ("job title") is declared as an ordered tuple of
:class:`LocatorSpec` — most specific and most stable first.  The
resolver tries them in that order and stops at the first one that
matches; the list order is the *only* tie-breaker, document order never
promotes a later locator.

Absence is normal.  Markup drifts constantly, so "no locator matched"
is a ``None`` / ``[]`` result, not an error.

Shadow DOM: ``shadow-path`` locators walk through *open* shadow roots
only.  A closed shadow root cannot be entered from page script; a path
that hits one resolves to nothing (logged at DEBUG).
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from jobpost_extract.logging import logger
from jobpost_extract.text import clean_whitespace

if TYPE_CHECKING:
    from jobpost_extract.browser.dom import DomBackend, Element

Accept = Callable[["Element"], Awaitable[bool]]

SHADOW_SEPARATOR = " >>> "

_ATTRIBUTE_MATCH = re.compile(r"^([\w:.-]+)\s*(?:([*^$~|]?=)\s*(.*))?$", re.DOTALL)


class LocatorKind(StrEnum):
    CSS = "css"
    ATTRIBUTE = "attribute"
    TEXT_CONTAINS = "text-contains"
    SHADOW_PATH = "shadow-path"


@dataclass(frozen=True)
class LocatorSpec:
    """One candidate way to find an element.

    ``value`` by kind:

    - ``css``: a CSS selector
    - ``attribute``: ``name``, ``name=value`` or ``name*=value``
      (also ``^=``, ``$=``, ``~=``, ``|=``), restricted to ``tag``
    - ``text-contains``: a case-insensitive substring of the element's
      text, restricted to ``tag``; the innermost matching element wins
    - ``shadow-path``: CSS selectors joined by ``" >>> "``; every
      segment but the last names a shadow host

    ``scope`` optionally narrows the search to elements matching a
    container selector first.
    """

    kind: LocatorKind
    value: str
    scope: str | None = None
    tag: str = "*"

    def __post_init__(self) -> None:
        if not self.value.strip():
            raise ValueError(f"{self.kind} locator needs a non-empty value")
        if self.kind is LocatorKind.ATTRIBUTE and not _ATTRIBUTE_MATCH.match(self.value.strip()):
            raise ValueError(f"bad attribute locator {self.value!r}")

    def describe(self) -> str:
        prefix = f"{self.scope} :: " if self.scope else ""
        return f"{self.kind}:{prefix}{self.value}"

    def css_selector(self) -> str | None:
        """The equivalent CSS selector for ``css`` and ``attribute`` locators."""
        if self.kind is LocatorKind.CSS:
            return self.value
        if self.kind is LocatorKind.ATTRIBUTE:
            match = _ATTRIBUTE_MATCH.match(self.value.strip())
            assert match is not None
            name, operator, expected = match.groups()
            if operator is None:
                return f"{self.tag}[{name}]"
            escaped = expected.replace("\\", "\\\\").replace('"', '\\"')
            return f'{self.tag}[{name}{operator}"{escaped}"]'
        return None


# ---------------------------------------------------------------------------
# Declaration helpers
# ---------------------------------------------------------------------------


def css(selector: str, *, scope: str | None = None) -> LocatorSpec:
    return LocatorSpec(LocatorKind.CSS, selector, scope)


def attribute(expr: str, *, tag: str = "*", scope: str | None = None) -> LocatorSpec:
    return LocatorSpec(LocatorKind.ATTRIBUTE, expr, scope, tag)


def text_contains(needle: str, *, tag: str = "*", scope: str | None = None) -> LocatorSpec:
    return LocatorSpec(LocatorKind.TEXT_CONTAINS, needle, scope, tag)


def shadow_path(*selectors: str, scope: str | None = None) -> LocatorSpec:
    return LocatorSpec(LocatorKind.SHADOW_PATH, SHADOW_SEPARATOR.join(selectors), scope)


def css_each(*selectors: str, scope: str | None = None) -> tuple[LocatorSpec, ...]:
    """Shorthand for a cascade made only of CSS selectors."""
    return tuple(css(s, scope=scope) for s in selectors)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


async def resolve(
    dom: DomBackend,
    scope: Element | None,
    locators: Sequence[LocatorSpec],
    *,
    accept: Accept | None = None,
) -> Element | None:
    """Element matched by the first satisfiable locator, or ``None``.

    With ``accept``, a locator is satisfiable only if one of its
    candidates passes the check (e.g. "has non-empty text").
    """
    for index, spec in enumerate(locators):
        if accept is None:
            found = await _candidates(dom, scope, spec, first_only=True)
            element = found[0] if found else None
        else:
            element = None
            for candidate in await _candidates(dom, scope, spec, first_only=False):
                if await accept(candidate):
                    element = candidate
                    break
        if element is not None:
            if index:
                logger.debug("Resolved via fallback locator #%d %s", index + 1, spec.describe())
            return element
    return None


async def resolve_all(
    dom: DomBackend,
    scope: Element | None,
    locators: Sequence[LocatorSpec],
) -> list[Element]:
    """Every element matched by any locator, deduplicated.

    Locator order is kept, and document order within each locator; an
    element matched by two locators appears once, at its first position.
    """
    collected: list[Element] = []
    for spec in locators:
        collected.extend(await _candidates(dom, scope, spec, first_only=False))
    if not collected:
        return []
    return await dom.dedupe(collected)


async def resolve_text(
    dom: DomBackend,
    scope: Element | None,
    locators: Sequence[LocatorSpec],
) -> str | None:
    """Whitespace-normalised text of the first locator whose element has any."""

    async def has_text(element: Element) -> bool:
        return bool(clean_whitespace(await dom.get_text(element)))

    element = await resolve(dom, scope, locators, accept=has_text)
    if element is None:
        return None
    return clean_whitespace(await dom.get_text(element)) or None


# ---------------------------------------------------------------------------
# Per-kind candidate lookup
# ---------------------------------------------------------------------------


async def _candidates(
    dom: DomBackend,
    scope: Element | None,
    spec: LocatorSpec,
    *,
    first_only: bool,
) -> list[Element]:
    if spec.scope:
        roots = await dom.query_all(scope, spec.scope)
    else:
        roots = [scope]

    found: list[Element] = []
    for root in roots:
        found.extend(await _candidates_in(dom, root, spec, first_only=first_only))
        if first_only and found:
            return found[:1]
    return found


async def _candidates_in(
    dom: DomBackend,
    root: Element | None,
    spec: LocatorSpec,
    *,
    first_only: bool,
) -> list[Element]:
    if spec.kind is LocatorKind.TEXT_CONTAINS:
        return await _text_matches(dom, root, spec, first_only=first_only)

    if spec.kind is LocatorKind.SHADOW_PATH:
        *hosts, target = spec.value.split(SHADOW_SEPARATOR.strip())
        current = root
        for host_selector in hosts:
            host = await dom.query(current, host_selector.strip())
            if host is None:
                return []
            shadow = await dom.shadow_root(host)
            if shadow is None:
                logger.debug(
                    "No open shadow root on %r (absent or closed) for %s",
                    host_selector.strip(),
                    spec.describe(),
                )
                return []
            current = shadow
        return await _query(dom, current, target.strip(), first_only=first_only)

    selector = spec.css_selector()
    assert selector is not None
    return await _query(dom, root, selector, first_only=first_only)


async def _query(
    dom: DomBackend, root: Element | None, selector: str, *, first_only: bool
) -> list[Element]:
    if first_only:
        element = await dom.query(root, selector)
        return [] if element is None else [element]
    return await dom.query_all(root, selector)


async def _text_matches(
    dom: DomBackend,
    root: Element | None,
    spec: LocatorSpec,
    *,
    first_only: bool,
) -> list[Element]:
    needle = clean_whitespace(spec.value).lower()
    innermost: list[Element] = []
    for element in await _containing(dom, root, spec.tag, needle):
        # Every ancestor of a match matches too; keep only the deepest
        if await _containing(dom, element, spec.tag, needle, first_only=True):
            continue
        innermost.append(element)
        if first_only:
            break
    return innermost


async def _containing(
    dom: DomBackend,
    root: Element | None,
    tag: str,
    needle: str,
    *,
    first_only: bool = False,
) -> list[Element]:
    """Elements under ``root`` whose normalised text contains ``needle``."""
    found: list[Element] = []
    for element in await dom.query_all(root, tag):
        if needle in clean_whitespace(await dom.get_text(element)).lower():
            found.append(element)
            if first_only:
                break
    return found
