"""
Browser session management for the ticket watcher.
"""
import asyncio
import inspect
import logging
import os
from typing import Any, Awaitable, Callable, Iterable, Optional, Set, TypeVar, Union

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Playwright,
    TimeoutError as PlaywrightTimeoutError
)

from .exceptions import BrowserSessionError, DeadlineExceeded
from .models import BrowserConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Strong references to cleanups scheduled from done callbacks
_pending_cleanups: Set[asyncio.Future] = set()

# Well-known Chrome install locations, checked in order.
CHROME_CANDIDATES = (
    r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
    r"C:\Program Files\Google\Chrome\Application\chrome.exe",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
)


def find_local_browser(candidates: Iterable[str] = CHROME_CANDIDATES) -> Optional[str]:
    """Return the first existing browser executable, or None."""
    for path in candidates:
        if os.path.isfile(path):
            return path
    return None


async def run_with_deadline(awaitable: Awaitable[T], seconds: float) -> T:
    """Await `awaitable`, raising DeadlineExceeded if it runs past `seconds`.

    Playwright's own TimeoutError is folded into the same signal so callers
    never have to inspect error messages to tell a timeout from a failure.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except (asyncio.TimeoutError, PlaywrightTimeoutError) as e:
        raise DeadlineExceeded(seconds) from e


async def launch_chromium(
    playwright: Playwright,
    headless: bool,
    args: Iterable[str] = (),
    executable_path: Optional[str] = None
) -> Browser:
    """Launch a Chromium process with the given flags."""
    options = {"headless": headless, "args": list(args)}
    if executable_path:
        options["executable_path"] = executable_path
    return await playwright.chromium.launch(**options)


class BrowserSessionManager:
    """Owns the long-lived headless background browser.

    Only replacement of the session is serialised. Contexts derived through
    `with_session` are used without holding the lock.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig()
        self._lock = asyncio.Lock()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    async def initialize(self) -> None:
        """Tear down any existing session and launch a fresh one."""
        async with self._lock:
            await self._teardown()
            try:
                self._playwright = await shielded(async_playwright().start(), _stop_driver)
                self._browser = await launch_chromium(
                    self._playwright,
                    headless=self.config.headless,
                    args=self.config.args,
                )
            except Exception as e:
                await self._teardown()
                raise BrowserSessionError(f"Could not launch background browser: {e}") from e
            except BaseException:
                # Cancelled mid-launch; the driver must not outlive the caller
                await self._teardown()
                raise
        logger.info("✅ Background browser initialized and standing by")

    async def with_session(
        self,
        fn: Callable[[Browser], Union[T, Awaitable[T]]]
    ) -> T:
        """Hand the current browser to `fn` under the lock and return its result."""
        async with self._lock:
            if self._browser is None:
                raise BrowserSessionError("Browser session not initialized. Call initialize() first.")
            result = fn(self._browser)
            if inspect.isawaitable(result):
                result = await result
            return result

    async def new_context(self) -> BrowserContext:
        """Derive a scoped browsing context from the background session."""
        config = self.config
        creating = self.with_session(lambda browser: browser.new_context(
            user_agent=config.user_agent,
            viewport={'width': config.viewport[0], 'height': config.viewport[1]},
            locale=config.locale,
            timezone_id=config.timezone,
        ))
        return await shielded(creating, close_quietly)

    async def close(self) -> None:
        """Release the browser and the Playwright driver."""
        async with self._lock:
            await self._teardown()

    async def _teardown(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.warning(f"⚠️ Error closing background browser: {e}")
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.warning(f"⚠️ Error stopping Playwright: {e}")
        if browser is not None:
            logger.debug("Background browser closed")


async def _stop_driver(playwright: Playwright) -> None:
    try:
        await playwright.stop()
    except Exception as e:
        logger.warning(f"⚠️ Error stopping Playwright: {e}")


async def shielded(awaitable: Awaitable[T], discard: Callable[[T], Awaitable[Any]]) -> T:
    """Await `awaitable` without letting a cancellation abandon its result.

    If the caller is cancelled first, the operation still runs to completion
    and whatever it produces is handed to `discard` instead of leaking.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        task.add_done_callback(lambda done: _discard_result(done, discard))
        raise


def _discard_result(task: "asyncio.Future[T]", discard: Callable[[T], Awaitable[Any]]) -> None:
    if task.cancelled() or task.exception() is not None:
        return
    cleanup = asyncio.ensure_future(discard(task.result()))
    _pending_cleanups.add(cleanup)
    cleanup.add_done_callback(_pending_cleanups.discard)


async def close_quietly(resource: Any) -> None:
    """Close a Playwright context or page, logging rather than raising."""
    if resource is None:
        return
    try:
        await resource.close()
    except Exception as e:
        logger.debug(f"Ignoring error while closing {type(resource).__name__}: {e}")
