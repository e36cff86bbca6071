"""Tests for configuration loading."""
import pytest

from tixcraft_watch.config import Settings, load_config
from tixcraft_watch.exceptions import ConfigError
from tixcraft_watch.models import AvailabilityPolicy, MarkerStrategy

TARGET_URL = "https://tixcraft.com/ticket/area/24_test/12345"

EMAIL_ENV = {
    'EMAIL_TO': 'fan@example.com',
    'EMAIL_FROM': 'watcher@example.com',
    'EMAIL_APP_PASSWORD': 'app-password',
}


@pytest.fixture
def env(monkeypatch):
    """Isolate the process environment; returns a setter for settings."""
    for name in Settings.model_fields:
        monkeypatch.delenv(name, raising=False)

    def set_env(**values):
        for name, value in values.items():
            monkeypatch.setenv(name, value)

    set_env(TARGET_URL=TARGET_URL, **EMAIL_ENV)
    return set_env


def load(**overrides):
    return Settings.from_env(env_file=None, **overrides)


class TestSettings:
    """Tests for the Settings model."""

    def test_defaults(self, env):
        settings = load()

        assert settings.TARGET_URL == TARGET_URL
        assert settings.CHECK_INTERVAL_SECONDS == 60.0
        assert settings.PROBE_TIMEOUT_SECONDS == 30.0
        assert settings.MARKER_STRATEGY is MarkerStrategy.STRUCTURAL
        assert settings.AVAILABILITY_KEYWORDS == ("剩餘", "熱賣中")
        assert settings.SMTP_HOST == "smtp.gmail.com"
        assert settings.SMTP_PORT == 587
        assert settings.policy is AvailabilityPolicy.NOTIFY
        assert settings.LOG_LEVEL == "INFO"

    def test_missing_target_url(self, env, monkeypatch):
        monkeypatch.delenv('TARGET_URL')

        with pytest.raises(ConfigError, match="TARGET_URL"):
            load()

    def test_blank_values_are_ignored(self, env):
        env(CHECK_INTERVAL_SECONDS='')

        assert load().CHECK_INTERVAL_SECONDS == 60.0

    @pytest.mark.parametrize("url", ["tixcraft.com/ticket", "ftp://tixcraft.com"])
    def test_invalid_target_url(self, env, url):
        env(TARGET_URL=url)

        with pytest.raises(ConfigError, match="TARGET_URL"):
            load()

    @pytest.mark.parametrize("interval", ["abc", "0", "0.5"])
    def test_invalid_interval(self, env, interval):
        env(CHECK_INTERVAL_SECONDS=interval)

        with pytest.raises(ConfigError, match="CHECK_INTERVAL_SECONDS"):
            load()

    def test_invalid_log_level(self, env):
        env(LOG_LEVEL='LOUD')

        with pytest.raises(ConfigError):
            load()

    def test_log_level_is_normalised(self, env):
        env(LOG_LEVEL='debug')

        assert load().LOG_LEVEL == 'DEBUG'

    def test_keywords_are_parsed(self, env):
        env(AVAILABILITY_KEYWORDS=' 剩餘, 熱賣中 ,,Available ')

        assert load().AVAILABILITY_KEYWORDS == ("剩餘", "熱賣中", "Available")

    def test_empty_keywords_rejected(self, env):
        env(AVAILABILITY_KEYWORDS=' , ')

        with pytest.raises(ConfigError, match="AVAILABILITY_KEYWORDS"):
            load()

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("TRUE", True), ("1", True), ("yes", True), ("on", True),
        ("false", False), ("0", False), ("no", False), ("off", False),
    ])
    def test_boolean_settings(self, env, raw, expected):
        env(PERSISTENT_SESSION=raw, RECYCLE_SESSION_ON_ERROR=raw)

        settings = load()

        assert settings.PERSISTENT_SESSION is expected
        assert settings.RECYCLE_SESSION_ON_ERROR is expected

    def test_malformed_boolean_rejected(self, env):
        """Test a typo in a flag fails startup instead of reading as false."""
        env(RECYCLE_SESSION_ON_ERROR='ture')

        with pytest.raises(ConfigError, match="RECYCLE_SESSION_ON_ERROR"):
            load()

    def test_dotenv_file_is_read(self, env, monkeypatch, tmp_path):
        monkeypatch.delenv('TARGET_URL')
        dotenv = tmp_path / '.env'
        dotenv.write_text(f"TARGET_URL={TARGET_URL}\nCHECK_INTERVAL_SECONDS=45\nUNRELATED=1\n")

        settings = Settings.from_env(env_file=str(dotenv))

        assert settings.TARGET_URL == TARGET_URL
        assert settings.CHECK_INTERVAL_SECONDS == 45.0

    def test_overrides_win_over_environment(self, env):
        env(CHECK_INTERVAL_SECONDS='30')

        assert load(CHECK_INTERVAL_SECONDS=5.0).CHECK_INTERVAL_SECONDS == 5.0

    def test_target_url_alone_falls_back_to_autofill(self, env, monkeypatch):
        for name in EMAIL_ENV:
            monkeypatch.delenv(name)

        settings = load()

        assert settings.policy is AvailabilityPolicy.AUTOFILL

    def test_partial_email_settings_fall_back_to_autofill(self, env, monkeypatch):
        monkeypatch.delenv('EMAIL_APP_PASSWORD')

        assert load().policy is AvailabilityPolicy.AUTOFILL

    @pytest.mark.parametrize("policy", ["notify", "notify_exit"])
    def test_explicit_notify_requires_email_settings(self, env, monkeypatch, policy):
        monkeypatch.delenv('EMAIL_TO')
        env(ON_AVAILABLE=policy)

        with pytest.raises(ConfigError, match="EMAIL_TO"):
            load()

    def test_interactive_mode_selects_autofill(self, env):
        env(INTERACTIVE_MODE='true')

        assert load().policy is AvailabilityPolicy.AUTOFILL

    def test_explicit_policy_wins(self, env):
        env(INTERACTIVE_MODE='1', ON_AVAILABLE='NOTIFY_EXIT')

        assert load().policy is AvailabilityPolicy.NOTIFY_EXIT

    def test_unknown_policy_rejected(self, env):
        env(ON_AVAILABLE='panic')

        with pytest.raises(ConfigError):
            load()

    def test_simple_strategy(self, env):
        env(MARKER_STRATEGY='Simple', MARKER_SELECTOR='a.btn-buy')

        settings = load()

        assert settings.MARKER_STRATEGY is MarkerStrategy.SIMPLE
        assert settings.MARKER_SELECTOR == 'a.btn-buy'


class TestLoadConfig:
    """Tests for conversion into the runtime AppConfig."""

    def test_load_config_from_env(self, env):
        env(
            CHECK_INTERVAL_SECONDS='15',
            PROBE_TIMEOUT_SECONDS='20',
            SMTP_HOST='smtp.example.com',
            SMTP_PORT='2525',
            CHROME_PATH='/opt/chrome',
            AUTOFILL_HOLD_SECONDS='60',
            PERSISTENT_SESSION='false',
            RECYCLE_SESSION_ON_ERROR='yes',
            LOG_LEVEL='WARNING',
        )

        config = load_config(env_file=None)

        assert config.target_url == TARGET_URL
        assert config.check_interval == 15.0
        assert config.policy is AvailabilityPolicy.NOTIFY
        assert config.recycle_session_on_error is True
        assert config.log_level == 'WARNING'
        assert config.detector.probe_timeout == 20.0
        assert config.detector.persistent_session is False
        assert config.detector.keywords == ("剩餘", "熱賣中")
        assert config.email.recipient == 'fan@example.com'
        assert config.email.smtp_host == 'smtp.example.com'
        assert config.email.smtp_port == 2525
        assert config.email.enabled is True
        assert config.autofill.chrome_path == '/opt/chrome'
        assert config.autofill.hold_seconds == 60.0
