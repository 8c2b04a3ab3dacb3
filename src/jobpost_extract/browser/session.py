"""Playwright session manager: browser acquisition, page setup, pacing.

Owns the browser connection and every page created in it.  Extraction
code receives a ``Page``; it never launches or attaches browsers itself.

Three acquisition modes, selected by :class:`~jobpost_extract.config.BrowserConfig`:

**Remote attach** (``remote_endpoint`` set):
  ``connect_over_cdp()`` to a browser someone else runs (Browserless,
  a shared Chrome).  We do not own that process: :meth:`SessionManager.release`
  only *disconnects*, and the remote side keeps its default viewport.

**CDP subprocess** (``browser_channel`` set):
  The real system browser (e.g. Edge) is launched as a subprocess with
  ``--remote-debugging-port`` and Playwright connects to it.  A browser
  not launched by Playwright carries no automation flags.

**Playwright launch** (default):
  ``chromium.launch()`` with the anti-detection argument set.

Local modes are *closed* on release: browser shut down, subprocess
terminated, temporary profile removed.
"""

from __future__ import annotations

import asyncio
import random
import shutil
import signal
import socket
import subprocess
import tempfile
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from playwright.async_api import Error as PlaywrightError
from playwright_stealth import Stealth

from jobpost_extract.browser.dom import SessionLostError
from jobpost_extract.cookies import to_browser_cookies
from jobpost_extract.errors import ActionableError
from jobpost_extract.logging import logger, mask_endpoint

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Playwright

    from jobpost_extract.config import PacingConfig, Settings
    from jobpost_extract.cookies import SessionCookie


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class LaunchMode(StrEnum):
    """How the browser behind a connection was obtained."""

    LOCAL = "local"
    CDP = "cdp"
    REMOTE = "remote"


LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--window-size=1920,1080",
    "--disable-blink-features=AutomationControlled",
]

# Known browser binary paths (macOS app bundles, common Linux installs)
_BROWSER_PATHS: dict[str, list[str]] = {
    "msedge": [
        "/Applications/Microsoft Edge.app/Contents/MacOS/Microsoft Edge",
        "/usr/bin/microsoft-edge",
    ],
    "chrome": [
        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
        "/usr/bin/google-chrome",
    ],
    "chromium": [
        "/Applications/Chromium.app/Contents/MacOS/Chromium",
        "/usr/bin/chromium",
        "/usr/bin/chromium-browser",
    ],
}

_HIDE_WEBDRIVER_JS = "Object.defineProperty(navigator, 'webdriver', { get: () => false });"


# ---------------------------------------------------------------------------
# CDP helpers
# ---------------------------------------------------------------------------


def _find_browser_binary(channel: str) -> str | None:
    """Resolve a browser channel name to an executable path.

    First checks the known paths in ``_BROWSER_PATHS``, then falls back
    to ``shutil.which()`` for PATH-based lookup.
    """
    for path in _BROWSER_PATHS.get(channel, []):
        if Path(path).exists():
            return path

    which = shutil.which(channel)
    if which:
        return which

    return None


def _find_free_port() -> int:
    """Ask the OS for a free TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port: int = s.getsockname()[1]
        return port


async def _wait_for_cdp(
    cdp_url: str,
    *,
    timeout: float = 15.0,
    poll_interval: float = 0.3,
) -> None:
    """Poll until the CDP ``/json/version`` endpoint responds."""
    import urllib.request

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        try:
            await asyncio.to_thread(urllib.request.urlopen, f"{cdp_url}/json/version", timeout=2)
            logger.debug("CDP endpoint ready at %s", cdp_url)
            return
        except OSError:
            if loop.time() > deadline:
                raise TimeoutError(
                    f"CDP endpoint at {cdp_url} did not start within {timeout}s"
                ) from None
            await asyncio.sleep(poll_interval)


def _terminate_process(proc: subprocess.Popen[bytes]) -> None:
    """Gracefully stop the CDP browser subprocess."""
    if proc.poll() is not None:
        return  # already exited
    try:
        proc.send_signal(signal.SIGTERM)
        proc.wait(timeout=5)
    except (OSError, subprocess.TimeoutExpired):
        logger.warning("Browser subprocess did not exit cleanly — killing")
        proc.kill()
        proc.wait(timeout=3)


# ---------------------------------------------------------------------------
# Pacing
# ---------------------------------------------------------------------------


async def pace(pacing: PacingConfig, rng: random.Random | None = None) -> float:
    """Sleep for the inter-request delay plus or minus the configured jitter.

    Returns the actual duration slept in seconds (useful for assertions).
    """
    source = rng or random
    jitter = source.uniform(-pacing.jitter_ms, pacing.jitter_ms) if pacing.jitter_ms else 0.0
    duration = max(0.0, pacing.inter_request_delay_ms + jitter) / 1000
    logger.debug("Pacing: sleeping %.2fs", duration)
    await asyncio.sleep(duration)
    return duration


# ---------------------------------------------------------------------------
# Connection handle
# ---------------------------------------------------------------------------


@dataclass
class BrowserConnection:
    """One live browser connection and the contexts we opened in it."""

    browser: Browser
    playwright: Playwright
    mode: LaunchMode
    endpoint: str | None = None
    process: subprocess.Popen[bytes] | None = None
    profile_dir: str | None = None
    contexts: list[BrowserContext] = field(default_factory=list)
    disconnected: bool = False

    @property
    def is_remote(self) -> bool:
        return self.mode is LaunchMode.REMOTE

    @property
    def is_alive(self) -> bool:
        """Whether this handle can still serve pages."""
        if self.disconnected:
            return False
        if self.process is not None and self.process.poll() is not None:
            return False
        return self.browser.is_connected()


# ---------------------------------------------------------------------------
# Session manager
# ---------------------------------------------------------------------------


class SessionManager:
    """Manages one browser connection with lazy, self-healing acquisition.

    At most one connection is live per manager.  :meth:`acquire` returns
    it while it reports itself alive and otherwise replaces it, so
    callers never hold a dead handle.

    Usage::

        async with SessionManager(settings) as session:
            async with session.page(cookies) as page:
                await page.goto(url)
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._connection: BrowserConnection | None = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> SessionManager:
        await self.acquire()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.release()

    @property
    def connection(self) -> BrowserConnection | None:
        return self._connection

    # -- acquisition ---------------------------------------------------------

    async def acquire(self) -> BrowserConnection:
        """Return the live connection, creating or replacing it as needed."""
        async with self._lock:
            current = self._connection
            if current is not None and current.is_alive:
                return current
            if current is not None:
                logger.warning("Browser connection (%s) is no longer alive — replacing it", current.mode)
                await self._discard(current)
                self._connection = None

            self._connection = await self._connect()
            return self._connection

    async def _connect(self) -> BrowserConnection:
        from playwright.async_api import async_playwright

        cfg = self.settings.browser
        playwright = await async_playwright().start()
        try:
            if cfg.remote_endpoint:
                connection = await self._attach_remote(playwright, cfg.remote_endpoint)
            elif cfg.browser_channel:
                connection = await self._launch_cdp(playwright, cfg.browser_channel)
            else:
                connection = await self._launch_playwright(playwright)
        except BaseException:
            await playwright.stop()
            raise

        def _on_disconnect(_browser: Any) -> None:
            if not connection.disconnected:
                logger.warning("Browser (%s) disconnected", connection.mode)
            connection.disconnected = True

        connection.browser.on("disconnected", _on_disconnect)
        return connection

    async def _attach_remote(self, playwright: Playwright, endpoint: str) -> BrowserConnection:
        masked = mask_endpoint(endpoint)
        logger.info("Attaching to remote browser at %s", masked)
        try:
            browser = await playwright.chromium.connect_over_cdp(
                endpoint, timeout=self.settings.browser.page_timeout_ms
            )
        except PlaywrightError as exc:
            raise ActionableError.connection(
                "remote browser",
                masked,
                exc.message,
                suggestion="Check that the remote browser is running and the endpoint token is valid",
            ) from exc
        logger.info("Attached to remote browser")
        return BrowserConnection(
            browser=browser,
            playwright=playwright,
            mode=LaunchMode.REMOTE,
            endpoint=endpoint,
        )

    async def _launch_playwright(self, playwright: Playwright) -> BrowserConnection:
        """Launch Playwright's bundled Chromium with anti-detection flags."""
        cfg = self.settings.browser
        logger.info("Launching local browser (headless=%s)", cfg.headless)
        try:
            browser = await playwright.chromium.launch(
                headless=cfg.headless,
                args=LAUNCH_ARGS,
                ignore_default_args=["--enable-automation"],
                timeout=cfg.page_timeout_ms,
            )
        except PlaywrightError as exc:
            raise ActionableError.connection(
                "local browser",
                "chromium",
                exc.message,
                suggestion="Run 'playwright install chromium' and retry",
            ) from exc
        return BrowserConnection(browser=browser, playwright=playwright, mode=LaunchMode.LOCAL)

    async def _launch_cdp(self, playwright: Playwright, channel: str) -> BrowserConnection:
        """Launch the system browser as a subprocess and connect via CDP."""
        binary = _find_browser_binary(channel)
        if not binary:
            raise ActionableError.config(
                field_name="browser.browser_channel",
                reason=f"Could not find '{channel}' browser binary",
                suggestion=(
                    f"Install {channel} or set browser_channel to an installed browser "
                    "(msedge, chrome, chromium)"
                ),
            )

        port = _find_free_port()
        # Throwaway profile so we never collide with the user's running browser
        profile_dir = tempfile.mkdtemp(prefix=f"jobpost-{channel}-")

        cmd = [
            binary,
            f"--remote-debugging-port={port}",
            f"--user-data-dir={profile_dir}",
            "--no-first-run",
            "--no-default-browser-check",
            "--window-size=1920,1080",
            "--disable-blink-features=AutomationControlled",
        ]
        if self.settings.browser.headless:
            cmd.append("--headless=new")

        logger.info("Launching %s via CDP on port %d", channel, port)
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

        cdp_url = f"http://localhost:{port}"
        try:
            await _wait_for_cdp(cdp_url)
            browser = await playwright.chromium.connect_over_cdp(cdp_url)
        except (TimeoutError, PlaywrightError) as exc:
            await asyncio.to_thread(_terminate_process, process)
            shutil.rmtree(profile_dir, ignore_errors=True)
            raise ActionableError.connection(channel, cdp_url, str(exc)) from exc

        return BrowserConnection(
            browser=browser,
            playwright=playwright,
            mode=LaunchMode.CDP,
            endpoint=cdp_url,
            process=process,
            profile_dir=profile_dir,
        )

    # -- pages ---------------------------------------------------------------

    async def new_page(
        self,
        connection: BrowserConnection | None = None,
        cookies: Iterable[SessionCookie] | None = None,
    ) -> Page:
        """Open a fingerprint-normalised page in a fresh context.

        Every page gets the configured user agent, ``Accept-Language``
        header, stealth patches, a ``navigator.webdriver`` override and
        the page-operation timeout.  Local browsers also get the fixed
        viewport; remote browsers keep their own.
        """
        conn = connection or await self.acquire()
        cfg = self.settings.browser

        options: dict[str, Any] = {
            "user_agent": cfg.user_agent,
            "extra_http_headers": {"Accept-Language": cfg.accept_language},
        }
        if conn.is_remote:
            options["no_viewport"] = True
        else:
            options["viewport"] = {"width": cfg.viewport_width, "height": cfg.viewport_height}

        try:
            context = await conn.browser.new_context(**options)
        except PlaywrightError as exc:
            if not conn.is_alive:
                raise SessionLostError(exc.message) from exc
            raise ActionableError.connection(
                "browser", mask_endpoint(conn.endpoint or str(conn.mode)), exc.message
            ) from exc
        conn.contexts.append(context)

        try:
            if cfg.stealth:
                await Stealth(navigator_user_agent_override=cfg.user_agent).apply_stealth_async(
                    context
                )
            await context.add_init_script(_HIDE_WEBDRIVER_JS)
            browser_cookies = to_browser_cookies(cookies or [])
            if browser_cookies:
                await context.add_cookies(browser_cookies)  # type: ignore[arg-type]
            context.set_default_timeout(cfg.page_timeout_ms)
            context.set_default_navigation_timeout(cfg.page_timeout_ms)
            page = await context.new_page()
        except BaseException:
            await self._close_context(conn, context)
            raise

        logger.debug("Page created with %d cookies", len(browser_cookies))
        return page

    async def close_page(self, page: Page) -> None:
        """Close a page and the context it was created in."""
        conn = self._connection
        context = page.context
        if conn is not None:
            await self._close_context(conn, context)
            return
        try:
            await context.close()
        except PlaywrightError as exc:
            logger.debug("Context close failed: %s", exc.message)

    @asynccontextmanager
    async def page(
        self,
        cookies: Iterable[SessionCookie] | None = None,
    ) -> AsyncIterator[Page]:
        """A page that is closed on exit, whether or not the body raised."""
        page = await self.new_page(cookies=cookies)
        try:
            yield page
        finally:
            await self.close_page(page)

    async def _close_context(self, conn: BrowserConnection, context: BrowserContext) -> None:
        if context in conn.contexts:
            conn.contexts.remove(context)
        try:
            await context.close()
        except PlaywrightError as exc:
            logger.debug("Context close failed: %s", exc.message)

    # -- release -------------------------------------------------------------

    async def release(self, connection: BrowserConnection | None = None) -> None:
        """Give the connection back.

        Remote browsers are disconnected and left running for their other
        clients.  Local browsers are closed and their process terminated.
        """
        async with self._lock:
            conn = connection or self._connection
            if conn is None:
                return
            if conn.is_remote:
                await self._disconnect_remote(conn)
            else:
                await self._close_local(conn)
            await self._stop_driver(conn)
            if conn is self._connection:
                self._connection = None

    async def _disconnect_remote(self, conn: BrowserConnection) -> None:
        logger.info("Disconnecting from remote browser at %s", mask_endpoint(conn.endpoint or ""))
        for context in list(conn.contexts):
            await self._close_context(conn, context)
        conn.disconnected = True
        # For a browser obtained with connect_over_cdp, close() drops our
        # connection only; the remote process keeps running.
        try:
            await conn.browser.close()
        except PlaywrightError as exc:
            logger.warning("Error disconnecting from remote browser: %s", exc.message)

    async def _close_local(self, conn: BrowserConnection) -> None:
        logger.info("Closing local browser (%s)", conn.mode)
        conn.contexts.clear()
        conn.disconnected = True
        try:
            await conn.browser.close()
        except PlaywrightError as exc:
            logger.warning("Error closing local browser: %s", exc.message)
        if conn.process is not None:
            await asyncio.to_thread(_terminate_process, conn.process)
        if conn.profile_dir:
            shutil.rmtree(conn.profile_dir, ignore_errors=True)
            conn.profile_dir = None

    async def _stop_driver(self, conn: BrowserConnection) -> None:
        try:
            await conn.playwright.stop()
        except PlaywrightError as exc:
            logger.debug("Playwright driver stop failed: %s", exc.message)

    async def _discard(self, conn: BrowserConnection) -> None:
        """Tear down a connection that stopped reporting itself alive."""
        if conn.is_remote:
            conn.contexts.clear()
            conn.disconnected = True
        else:
            await self._close_local(conn)
        await self._stop_driver(conn)


# ---------------------------------------------------------------------------
# Session pool
# ---------------------------------------------------------------------------


class SessionPool:
    """A fixed set of independent :class:`SessionManager` instances.

    Each worker checks out one manager for the duration of its work; no
    connection or page is ever shared between managers.
    """

    def __init__(self, settings: Settings, size: int) -> None:
        if size < 1:
            raise ActionableError.validation(
                field_name="pool size",
                reason=f"is {size} — must be >= 1",
            )
        self._sessions = [SessionManager(settings) for _ in range(size)]
        self._idle: asyncio.Queue[SessionManager] = asyncio.Queue()
        for session in self._sessions:
            self._idle.put_nowait(session)

    @property
    def size(self) -> int:
        return len(self._sessions)

    @asynccontextmanager
    async def checkout(self) -> AsyncIterator[SessionManager]:
        """Borrow a session exclusively; it is returned on exit."""
        session = await self._idle.get()
        try:
            yield session
        finally:
            self._idle.put_nowait(session)

    async def close(self) -> None:
        """Release every session's connection."""
        for session in self._sessions:
            await session.release()
