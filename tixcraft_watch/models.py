"""Data models and types for the tixcraft ticket watcher."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

DEFAULT_KEYWORDS: Tuple[str, ...] = ("剩餘", "熱賣中")  # "remaining", "hot-selling"


class ProbeStatus(str, Enum):
    """Outcome of a single availability probe."""
    AVAILABLE = "available"
    NOT_AVAILABLE = "not_available"
    ERROR = "error"


class MarkerStrategy(str, Enum):
    """How the detector recognises an availability signal on the page."""
    STRUCTURAL = "structural"  # scan area group texts for keywords
    SIMPLE = "simple"  # element appearance is the signal


class AvailabilityPolicy(str, Enum):
    """What the scheduler does once tickets are detected."""
    NOTIFY = "notify"
    NOTIFY_EXIT = "notify_exit"
    AUTOFILL = "autofill"


@dataclass(frozen=True)
class ProbeResult:
    """Result of one probe against the target page."""
    status: ProbeStatus
    marker_text: str = ""
    cause: Optional[BaseException] = None

    @classmethod
    def available(cls, marker_text: str = "") -> "ProbeResult":
        return cls(ProbeStatus.AVAILABLE, marker_text=marker_text)

    @classmethod
    def not_available(cls) -> "ProbeResult":
        return cls(ProbeStatus.NOT_AVAILABLE)

    @classmethod
    def failed(cls, cause: BaseException) -> "ProbeResult":
        return cls(ProbeStatus.ERROR, cause=cause)

    @property
    def is_available(self) -> bool:
        return self.status is ProbeStatus.AVAILABLE

    @property
    def is_error(self) -> bool:
        return self.status is ProbeStatus.ERROR


@dataclass(frozen=True)
class NotificationResult:
    """Outcome of a single notification attempt."""
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BrowserConfig:
    """Configuration for the headless background browser."""
    headless: bool = True
    args: Tuple[str, ...] = ("--no-sandbox", "--disable-gpu")
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0.0.0 Safari/537.36"
    )
    viewport: Tuple[int, int] = (1280, 720)
    locale: str = "zh-TW"
    timezone: str = "Asia/Taipei"


@dataclass
class DetectorConfig:
    """Configuration for the availability detector."""
    strategy: MarkerStrategy = MarkerStrategy.STRUCTURAL
    selector: str = "#group_0"
    keywords: Tuple[str, ...] = DEFAULT_KEYWORDS
    group_count: int = 7  # group_0 .. group_6
    probe_timeout: float = 30.0  # seconds
    persistent_session: bool = True


@dataclass
class EmailConfig:
    """Configuration for e-mail notifications."""
    recipient: Optional[str] = None
    sender: Optional[str] = None
    app_password: Optional[str] = None
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    timeout: float = 30.0

    @property
    def enabled(self) -> bool:
        return bool(self.recipient and self.sender and self.app_password)


@dataclass
class AutoFillConfig:
    """Configuration for the interactive auto-fill sequencer."""
    chrome_path: Optional[str] = None
    form_timeout: float = 30.0  # seconds to wait for the ticket form
    form_settle_delay: float = 0.5  # seconds after the form appears
    settle_delay: float = 0.3  # seconds between scripted steps
    hold_seconds: float = 180.0  # human completion window
    quantity: str = "1"


@dataclass
class AppConfig:
    """Main application configuration."""
    target_url: str
    check_interval: float = 60.0  # seconds
    policy: AvailabilityPolicy = AvailabilityPolicy.NOTIFY
    recycle_session_on_error: bool = False
    log_level: str = "INFO"
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    autofill: AutoFillConfig = field(default_factory=AutoFillConfig)
