"""Configuration settings using Pydantic with environment variables."""
from typing import Annotated, Optional, Tuple

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .exceptions import ConfigError
from .models import (
    DEFAULT_KEYWORDS,
    AppConfig,
    AutoFillConfig,
    AvailabilityPolicy,
    DetectorConfig,
    EmailConfig,
    MarkerStrategy,
)

VALID_LOG_LEVELS = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}


class Settings(BaseSettings):
    """Application settings with environment variable loading and validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    # Required settings
    TARGET_URL: str = Field(
        ...,
        description="URL of the ticket area selection page to monitor"
    )

    # Optional settings with defaults
    CHECK_INTERVAL_SECONDS: float = Field(
        60.0,
        description="Seconds between availability checks"
    )
    PROBE_TIMEOUT_SECONDS: float = Field(
        30.0,
        description="Deadline in seconds for a single page probe"
    )
    MARKER_STRATEGY: MarkerStrategy = Field(
        MarkerStrategy.STRUCTURAL,
        description="'structural' to scan area texts, 'simple' to wait for one element"
    )
    MARKER_SELECTOR: str = Field(
        "#group_0",
        description="CSS selector of the marker element"
    )
    AVAILABILITY_KEYWORDS: Annotated[Tuple[str, ...], NoDecode] = Field(
        DEFAULT_KEYWORDS,
        description="Comma separated keywords that signal available tickets"
    )
    INTERACTIVE_MODE: bool = Field(
        False,
        description="Open a visible browser and pre-fill the form on detection"
    )
    ON_AVAILABLE: Optional[AvailabilityPolicy] = Field(
        None,
        description="Policy on detection: notify, notify_exit or autofill"
    )
    EMAIL_TO: Optional[str] = Field(None, description="Notification recipient")
    EMAIL_FROM: Optional[str] = Field(None, description="Notification sender / SMTP login")
    EMAIL_APP_PASSWORD: Optional[str] = Field(None, description="SMTP app password")
    SMTP_HOST: str = Field("smtp.gmail.com", description="SMTP server host")
    SMTP_PORT: int = Field(587, description="SMTP server port")
    CHROME_PATH: Optional[str] = Field(None, description="Browser executable for auto-fill")
    AUTOFILL_HOLD_SECONDS: float = Field(
        180.0,
        description="Seconds to keep the auto-fill browser open for the human"
    )
    PERSISTENT_SESSION: bool = Field(
        True,
        description="Reuse one background browser across checks"
    )
    RECYCLE_SESSION_ON_ERROR: bool = Field(
        False,
        description="Re-initialize the background browser after a failed check"
    )
    LOG_LEVEL: str = Field(
        "INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    @field_validator('TARGET_URL')
    @classmethod
    def validate_target_url(cls, v):
        """Validate target URL format."""
        v = v.strip()
        if not v:
            raise ValueError('TARGET_URL is not set')
        if not v.startswith(('http://', 'https://')):
            raise ValueError('TARGET_URL must start with http:// or https://')
        return v

    @field_validator('CHECK_INTERVAL_SECONDS')
    @classmethod
    def validate_interval(cls, v):
        if v < 1:
            raise ValueError('CHECK_INTERVAL_SECONDS must be at least 1')
        return v

    @field_validator('PROBE_TIMEOUT_SECONDS', 'AUTOFILL_HOLD_SECONDS')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError('must be greater than 0')
        return v

    @field_validator('AVAILABILITY_KEYWORDS', mode='before')
    @classmethod
    def parse_keywords(cls, v):
        """Parse comma separated keywords into a tuple."""
        if isinstance(v, str):
            v = [keyword.strip() for keyword in v.split(',')]
        keywords = tuple(keyword for keyword in v if keyword)
        if not keywords:
            raise ValueError('AVAILABILITY_KEYWORDS must contain at least one keyword')
        return keywords

    @field_validator('ON_AVAILABLE', mode='before')
    @classmethod
    def parse_policy(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v

    @field_validator('MARKER_STRATEGY', mode='before')
    @classmethod
    def parse_strategy(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v):
        """Validate LOG_LEVEL is a valid logging level."""
        if v.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f'LOG_LEVEL must be one of {VALID_LOG_LEVELS}')
        return v.upper()

    @model_validator(mode='after')
    def check_email_settings(self):
        """An explicit notify policy needs a complete set of e-mail settings."""
        if self.ON_AVAILABLE in (AvailabilityPolicy.NOTIFY, AvailabilityPolicy.NOTIFY_EXIT):
            missing = self.missing_email_settings()
            if missing:
                raise ValueError(
                    f"policy '{self.ON_AVAILABLE.value}' needs e-mail settings: {', '.join(missing)}"
                )
        return self

    def missing_email_settings(self):
        return [
            name for name in ('EMAIL_TO', 'EMAIL_FROM', 'EMAIL_APP_PASSWORD')
            if not getattr(self, name)
        ]

    @property
    def policy(self) -> AvailabilityPolicy:
        """Resolve the detection policy.

        ON_AVAILABLE wins when set. Otherwise INTERACTIVE_MODE selects
        auto-fill, complete e-mail settings select notify, and anything
        else falls back to auto-fill.
        """
        if self.ON_AVAILABLE is not None:
            return self.ON_AVAILABLE
        if self.INTERACTIVE_MODE or self.missing_email_settings():
            return AvailabilityPolicy.AUTOFILL
        return AvailabilityPolicy.NOTIFY

    @classmethod
    def from_env(cls, env_file: Optional[str] = '.env', **overrides) -> "Settings":
        """Build settings from the environment and an optional .env file.

        Keyword overrides take precedence over both.

        Raises:
            ConfigError: if a required setting is missing or malformed.
        """
        try:
            return cls(_env_file=env_file, **overrides)
        except ValidationError as e:
            raise ConfigError(format_validation_error(e)) from e

    def to_app_config(self) -> AppConfig:
        """Convert validated settings into the runtime configuration."""
        return AppConfig(
            target_url=self.TARGET_URL,
            check_interval=self.CHECK_INTERVAL_SECONDS,
            policy=self.policy,
            recycle_session_on_error=self.RECYCLE_SESSION_ON_ERROR,
            log_level=self.LOG_LEVEL,
            detector=DetectorConfig(
                strategy=self.MARKER_STRATEGY,
                selector=self.MARKER_SELECTOR,
                keywords=self.AVAILABILITY_KEYWORDS,
                probe_timeout=self.PROBE_TIMEOUT_SECONDS,
                persistent_session=self.PERSISTENT_SESSION,
            ),
            email=EmailConfig(
                recipient=self.EMAIL_TO,
                sender=self.EMAIL_FROM,
                app_password=self.EMAIL_APP_PASSWORD,
                smtp_host=self.SMTP_HOST,
                smtp_port=self.SMTP_PORT,
            ),
            autofill=AutoFillConfig(
                chrome_path=self.CHROME_PATH,
                hold_seconds=self.AUTOFILL_HOLD_SECONDS,
            ),
        )


def format_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic ValidationError into one readable line."""
    parts = []
    for item in error.errors():
        location = '.'.join(str(part) for part in item.get('loc', ())) or 'settings'
        parts.append(f"{location}: {item.get('msg')}")
    return '; '.join(parts)


def load_config(env_file: Optional[str] = '.env', **overrides) -> AppConfig:
    """Load and validate the application configuration."""
    return Settings.from_env(env_file, **overrides).to_app_config()
