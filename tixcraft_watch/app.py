"""
Check scheduling for the tixcraft ticket watcher.
"""
import asyncio
import logging
import signal
from datetime import datetime
from typing import List, Optional

from .autofill import AutoFillSequencer
from .browser import BrowserSessionManager
from .detector import AvailabilityDetector
from .exceptions import AutomationError, BrowserSessionError
from .models import AppConfig, AvailabilityPolicy, ProbeResult
from .notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


class CheckScheduler:
    """Drives periodic, non-overlapping availability checks."""

    def __init__(
        self,
        config: AppConfig,
        sessions: BrowserSessionManager,
        detector: Optional[AvailabilityDetector] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        autofill: Optional[AutoFillSequencer] = None,
        install_signal_handlers: bool = True
    ):
        self.config = config
        self.sessions = sessions
        self.detector = detector or AvailabilityDetector(config.detector, sessions)
        self.dispatcher = dispatcher or NotificationDispatcher(config.email, config.target_url)
        self.autofill = autofill or AutoFillSequencer(config.autofill)
        self.shutdown_event = asyncio.Event()
        self.check_count = 0
        self.completed = False
        self._handle_signals = install_signal_handlers

    def _handle_shutdown(self, signum) -> None:
        """Handle shutdown signals gracefully."""
        logger.warning(f"Received signal {signum}, initiating graceful shutdown...")
        self.shutdown_event.set()

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> List[int]:
        """Route SIGINT/SIGTERM into the loop; returns the signals to remove later."""
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown, sig)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                # No loop signal support here (Windows); hop onto the loop from the handler
                signal.signal(
                    sig,
                    lambda signum, frame: loop.call_soon_threadsafe(self._handle_shutdown, signum)
                )
        return installed

    async def run(self) -> bool:
        """Run checks until shutdown or, under notify_exit, the first alert.

        Returns True if monitoring finished because an alert was delivered.
        """
        logger.info(f"🚀 Watching {self.config.target_url} every {self.config.check_interval:g}s")
        loop = asyncio.get_running_loop()
        installed = self._install_signal_handlers(loop) if self._handle_signals else []
        try:
            await self._loop(loop)
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

        logger.info("✅ Ticket monitoring stopped")
        return self.completed

    async def _loop(self, loop: asyncio.AbstractEventLoop) -> None:
        interval = self.config.check_interval
        next_tick = loop.time() + interval

        while not self.shutdown_event.is_set():
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                logger.info("Monitoring cancelled")
                raise
            except Exception as e:
                logger.error(f"Error in monitoring loop: {e}", exc_info=True)

            if self.completed or self.shutdown_event.is_set():
                break

            now = loop.time()
            if now < next_tick:
                await self._wait(next_tick - now)
            else:
                # Overran: start right away and drop the ticks we slept through.
                missed = int((now - next_tick) // interval)
                next_tick += missed * interval
            next_tick += interval

    async def run_cycle(self) -> ProbeResult:
        """Run one probe-and-react cycle."""
        self.check_count += 1
        logger.info(f"🔄 Starting check #{self.check_count} at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

        result = await self.detector.probe(self.config.target_url)

        if result.is_error:
            logger.error(f"❌ Check failed: {result.cause}; retrying on the next tick")
            if self.config.recycle_session_on_error:
                await self._recycle_session()
        elif result.is_available:
            await self._handle_available(result)
        return result

    async def _handle_available(self, result: ProbeResult) -> None:
        policy = self.config.policy

        if policy == AvailabilityPolicy.AUTOFILL:
            logger.info("🎫 Tickets detected! Starting the auto-fill flow...")
            try:
                await self.autofill.attempt(self.config.target_url)
            except AutomationError as e:
                logger.error(f"❌ Auto-fill failed: {e}")
                logger.warning(f"👉 Please complete the purchase manually at: {self.config.target_url}")
            else:
                logger.info("✅ Auto-fill done, waiting for you to finish the purchase.")
            logger.info("ℹ️ Monitoring continues; stop the process when you are done.")
            return

        logger.info("🎫 Tickets detected! Sending notification e-mail...")
        outcome = await self.dispatcher.notify(result.marker_text)
        if policy == AvailabilityPolicy.NOTIFY_EXIT:
            if outcome.ok:
                logger.info("✅ Notification delivered, stopping monitoring")
                self.completed = True
            else:
                logger.warning("⚠️ Notification failed, monitoring continues")

    async def _recycle_session(self) -> None:
        logger.info("♻️ Re-initializing the background browser")
        try:
            await self.sessions.initialize()
        except BrowserSessionError as e:
            logger.error(f"❌ Could not re-initialize the browser: {e}")

    async def _wait(self, seconds: float) -> None:
        """Sleep for `seconds`, waking early on shutdown."""
        logger.info(f"⏳ Next check in {seconds:.1f}s")
        try:
            await asyncio.wait_for(self.shutdown_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
