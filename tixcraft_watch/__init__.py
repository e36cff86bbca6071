"""tixcraft ticket watcher package.

This package polls a tixcraft ticket page for availability and, once tickets
show up, sends an e-mail alert or pre-fills the purchase form for the user.
"""

__version__ = "0.1.0"

# Import key components to make them available at the package level
from .app import CheckScheduler
from .autofill import AutoFillSequencer
from .browser import BrowserSessionManager
from .detector import AvailabilityDetector, SimpleMarker, StructuralMarker, match_keywords
from .models import AppConfig, AvailabilityPolicy, MarkerStrategy, ProbeResult, ProbeStatus
from .notifications import NotificationDispatcher, SmtpMailSender

__all__ = [
    'AppConfig',
    'AutoFillSequencer',
    'AvailabilityDetector',
    'AvailabilityPolicy',
    'BrowserSessionManager',
    'CheckScheduler',
    'MarkerStrategy',
    'NotificationDispatcher',
    'ProbeResult',
    'ProbeStatus',
    'SimpleMarker',
    'SmtpMailSender',
    'StructuralMarker',
    'match_keywords',
]
