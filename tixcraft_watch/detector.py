"""
Availability probing for the ticket area selection page.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, List, Optional, Sequence

from playwright.async_api import Page

from .browser import BrowserSessionManager, close_quietly, run_with_deadline
from .exceptions import DeadlineExceeded
from .models import DetectorConfig, MarkerStrategy, ProbeResult

logger = logging.getLogger(__name__)

# Collects the text of every <font> under #group_0 .. #group_{n-1}, in order.
GROUP_TEXTS_JS = """
(groupCount) => {
    const texts = [];
    for (let i = 0; i < groupCount; i++) {
        const group = document.getElementById('group_' + i);
        if (group) {
            group.querySelectorAll('font').forEach(f => texts.push(f.textContent));
        }
    }
    return texts;
}
"""


def match_keywords(texts: Iterable[str], keywords: Sequence[str]) -> Optional[str]:
    """Return the first text containing any of `keywords`, or None."""
    for text in texts:
        if text and any(keyword in text for keyword in keywords):
            return text
    return None


class StructuralMarker:
    """Waits for the area list container, then scans group texts for keywords."""

    strategy = MarkerStrategy.STRUCTURAL

    def __init__(self, selector: str, keywords: Sequence[str], group_count: int = 7):
        self.selector = selector
        self.keywords = tuple(keywords)
        self.group_count = group_count

    async def extract(self, page: Page) -> List[str]:
        texts = await page.evaluate(GROUP_TEXTS_JS, self.group_count)
        return [text or "" for text in (texts or [])]

    def classify(self, texts: List[str]) -> ProbeResult:
        matched = match_keywords(texts, self.keywords)
        if matched is not None:
            logger.info(f"🎫 Found an area with tickets: {matched.strip()}")
            return ProbeResult.available(matched)
        logger.info(f"❌ Checked {len(texts)} area(s), all sold out")
        return ProbeResult.not_available()


class SimpleMarker:
    """The visible element itself is the availability signal."""

    strategy = MarkerStrategy.SIMPLE

    def __init__(self, selector: str):
        self.selector = selector

    async def extract(self, page: Page) -> List[str]:
        return []

    def classify(self, texts: List[str]) -> ProbeResult:
        logger.info(f"🎫 Marker {self.selector} is visible")
        return ProbeResult.available("")


def create_marker(config: DetectorConfig):
    """Build the marker strategy described by `config`."""
    if config.strategy == MarkerStrategy.SIMPLE:
        return SimpleMarker(config.selector)
    return StructuralMarker(config.selector, config.keywords, config.group_count)


class AvailabilityDetector:
    """Runs bounded probes against the target page."""

    def __init__(self, config: DetectorConfig, sessions: BrowserSessionManager, marker=None):
        self.config = config
        self.sessions = sessions
        self.marker = marker or create_marker(config)

    async def probe(self, url: str, deadline: Optional[float] = None) -> ProbeResult:
        """Probe `url` once. Never raises for browser failures."""
        deadline = deadline or self.config.probe_timeout
        logger.info(f"🔍 Checking {url} with headless Chrome")

        try:
            texts = await run_with_deadline(self._inspect(url, deadline), deadline)
        except DeadlineExceeded:
            logger.info(f"⏳ Marker {self.marker.selector} not found within {deadline:g}s")
            return ProbeResult.not_available()
        except Exception as e:
            logger.error(f"❌ Headless Chrome check failed: {e}")
            return ProbeResult.failed(e)

        return self.marker.classify(texts)

    async def _inspect(self, url: str, deadline: float) -> List[str]:
        async with self._page(deadline) as page:
            await page.goto(url, wait_until="domcontentloaded")
            await page.wait_for_selector(self.marker.selector, state="visible")
            return await self.marker.extract(page)

    @asynccontextmanager
    async def _page(self, deadline: float) -> AsyncIterator[Page]:
        owned = not self.config.persistent_session
        sessions = BrowserSessionManager(self.sessions.config) if owned else self.sessions

        context = None
        try:
            if owned:
                # Counts against the deadline
                await sessions.initialize()
            context = await sessions.new_context()
            page = await context.new_page()
            page.set_default_timeout(deadline * 1000)  # Convert to ms
            yield page
        finally:
            await close_quietly(context)
            if owned:
                await sessions.close()
