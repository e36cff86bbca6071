"""Exception types raised by the ticket watcher."""
from typing import Optional


class TicketWatchError(Exception):
    """Base class for all ticket watcher errors."""


class ConfigError(TicketWatchError):
    """A required setting is missing or malformed."""


class BrowserSessionError(TicketWatchError):
    """The background browser session is missing or could not be started."""


class DeadlineExceeded(TicketWatchError):
    """A browser operation did not finish before its deadline."""

    def __init__(self, seconds: float, message: str = ""):
        self.seconds = seconds
        super().__init__(message or f"deadline of {seconds:g}s exceeded")


class SendError(TicketWatchError):
    """The mail collaborator failed to deliver a notification."""


class AutomationError(TicketWatchError):
    """A scripted auto-fill step failed."""

    def __init__(self, step: str, cause: Optional[Exception] = None):
        self.step = step
        self.cause = cause
        message = f"auto-fill step '{step}' failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
