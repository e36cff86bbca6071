"""
Interactive auto-fill of the ticket quantity form.

Opens a visible browser, pre-fills the form, and leaves the captcha for the
human to enter.
"""
import asyncio
import logging
from typing import Optional

from playwright.async_api import async_playwright, Browser, Page, Playwright

from .browser import close_quietly, find_local_browser, launch_chromium, run_with_deadline
from .exceptions import AutomationError
from .models import AutoFillConfig

logger = logging.getLogger(__name__)

TICKET_FORM_SELECTOR = "#ticketPriceList"
AGREE_SELECTOR = "#TicketForm_agree"
VERIFY_CODE_SELECTOR = "#TicketForm_verifyCode"

# Picks the first ticket price <select> (usually full price) and notifies the page.
SELECT_QUANTITY_JS = """
(quantity) => {
    const selects = document.querySelectorAll('select[name^="TicketForm[ticketPrice]"]');
    if (selects.length === 0) {
        return false;
    }
    selects[0].value = quantity;
    selects[0].dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}
"""


class AutoFillSequencer:
    """Drives the ticket form in a short-lived visible browser."""

    def __init__(self, config: AutoFillConfig):
        self.config = config

    def resolve_executable(self) -> Optional[str]:
        """Pick the browser binary: configured path, then a local Chrome, then bundled."""
        if self.config.chrome_path:
            return self.config.chrome_path
        return find_local_browser()

    async def attempt(self, url: str) -> None:
        """Pre-fill the form at `url` and hold the window for the human.

        Raises:
            AutomationError: if the browser cannot start or any step fails.
        """
        logger.info("========== 🎫 Tickets found! Opening browser... ==========")
        executable = self.resolve_executable()
        if executable:
            logger.info(f"Using Chrome: {executable}")

        playwright: Optional[Playwright] = None
        browser: Optional[Browser] = None
        try:
            try:
                playwright = await async_playwright().start()
                browser = await launch_chromium(
                    playwright,
                    headless=False,
                    executable_path=executable,
                )
                context = await browser.new_context(no_viewport=True)
                page = await context.new_page()
            except Exception as e:
                raise AutomationError("launch browser", e) from e

            await self.fill_form(page, url)
            self._log_guidance()
            await self.hold()
        finally:
            await close_quietly(browser)
            if playwright is not None:
                try:
                    await playwright.stop()
                except Exception as e:
                    logger.warning(f"⚠️ Error stopping Playwright: {e}")

    async def fill_form(self, page: Page, url: str) -> None:
        """Run the scripted steps against an open page."""
        timeout = self.config.form_timeout
        page.set_default_timeout(timeout * 1000)  # Convert to ms

        logger.info("🌐 Navigating to the ticket selection page...")
        await self._step("navigate", page.goto(url, wait_until="domcontentloaded"))
        await self._step(
            "wait for ticket form",
            page.wait_for_selector(TICKET_FORM_SELECTOR, state="visible"),
        )
        await asyncio.sleep(self.config.form_settle_delay)

        selected = await self._step(
            "select quantity",
            page.evaluate(SELECT_QUANTITY_JS, self.config.quantity),
        )
        if not selected:
            raise AutomationError("select quantity", LookupError("no ticket price selector on the page"))
        await asyncio.sleep(self.config.settle_delay)

        await self._step("agree to terms", page.click(AGREE_SELECTOR))
        await asyncio.sleep(self.config.settle_delay)

        await self._step("focus verification code", page.focus(VERIFY_CODE_SELECTOR))

    async def hold(self) -> None:
        """Keep the session open for the human completion window."""
        logger.info(f"⏳ Holding the browser open for {self.config.hold_seconds:g}s")
        await asyncio.sleep(self.config.hold_seconds)

    async def _step(self, name: str, awaitable):
        try:
            return await run_with_deadline(awaitable, self.config.form_timeout)
        except Exception as e:
            raise AutomationError(name, e) from e

    def _log_guidance(self) -> None:
        logger.info("=========================================")
        logger.info("Completed automatically:")
        logger.info(f"✓ Selected {self.config.quantity} ticket(s)")
        logger.info("✓ Agreed to the terms")
        logger.info("✓ Focused the verification code field")
        logger.info("")
        logger.info("👉 Enter the verification code and confirm the ticket quantity now!")
        logger.info("=========================================")
