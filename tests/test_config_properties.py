"""
Property-based tests for configuration loading.

Covers duration parsing, the file and environment layers, and the helpers
the CLI builds on.
"""

import json
import math
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from domain_monitor.cli import (
    apply_env_overrides,
    config_to_dict,
    create_default_config,
    create_logger,
    create_notification_router,
    format_report,
    load_config,
    load_config_from_file,
    parse_duration,
    save_config_to_file,
)
from domain_monitor.config import EmailConfig, MonitorConfig, TelegramConfig
from domain_monitor.enums import CheckOutcome, LogLevel
from domain_monitor.exceptions import ConfigurationError
from domain_monitor.models import CheckReport
from domain_monitor.self_test import validate_config


class TestParseDurationProperty:
    """Property tests for duration values."""

    @given(
        hours=st.integers(min_value=0, max_value=48),
        minutes=st.integers(min_value=0, max_value=59),
        seconds=st.integers(min_value=0, max_value=59),
    )
    @settings(max_examples=100)
    def test_compound_duration(self, hours: int, minutes: int, seconds: int) -> None:
        """*For any* h/m/s combination, the parsed value SHALL be the total in seconds."""
        text = f"{hours}h{minutes}m{seconds}s"

        assert parse_duration(text) == hours * 3600 + minutes * 60 + seconds

    @given(value=st.floats(min_value=0, max_value=1e6, allow_nan=False))
    @settings(max_examples=50)
    def test_plain_numbers_are_seconds(self, value: float) -> None:
        """*For any* finite number, the value SHALL be taken as seconds."""
        assert parse_duration(value) == value
        assert parse_duration(repr(value)) == value

    @pytest.mark.parametrize("raw,expected", [
        ("2s", 2.0),
        ("500ms", 0.5),
        ("1.5m", 90.0),
        ("-3s", -3.0),
        ("10", 10.0),
        (7, 7.0),
    ])
    def test_known_values(self, raw, expected: float) -> None:
        assert math.isclose(parse_duration(raw), expected)

    @pytest.mark.parametrize("raw", ["", "soon", "5 s", "5d", "s", True, "nan", "inf", float("inf")])
    def test_invalid_values(self, raw) -> None:
        with pytest.raises(ValueError):
            parse_duration(raw)


class TestConfigFile:

    def test_all_fields_are_read(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "domains": ["example.com", "example.org"],
            "threshold_days": 30,
            "state_dir": str(tmp_path / "state"),
            "retries": 5,
            "backoff": "1s",
            "concurrency": 3,
            "timeout": 2.5,
            "smtp_host": "smtp.example.com",
            "smtp_port": 2525,
            "smtp_user": "monitor",
            "smtp_pass": "hunter2",
            "email_from": "monitor@example.com",
            "email_to": "a@example.com, b@example.com",
            "telegram": {"bot_token": "123:abc", "chat_id": 42},
            "logging": {"level": "debug", "output_format": "json"},
        }))

        config = load_config_from_file(path)

        assert config.domains == ["example.com", "example.org"]
        assert config.threshold_days == 30
        assert config.state_dir == tmp_path / "state"
        assert config.retry.max_attempts == 5
        assert config.retry.base_delay_seconds == 1.0
        assert config.concurrency == 3
        assert config.timeout_seconds == 2.5
        assert config.notifications.email.smtp_port == 2525
        assert config.notifications.email.to_addresses == ["a@example.com", "b@example.com"]
        assert config.notifications.telegram == TelegramConfig(bot_token="123:abc", chat_id="42")
        assert config.logging.output_format == "json"

    @pytest.mark.parametrize("content,code", [
        ("{broken", "invalid_json"),
        ("[1, 2]", "invalid_structure"),
        ('{"threshold_days": "soon"}', "invalid_value"),
        ('{"domains": [1, 2]}', "invalid_value"),
        ('{"telegram": {"chat_id": 1}}', "invalid_value"),
    ])
    def test_invalid_file(self, tmp_path: Path, content: str, code: str) -> None:
        path = tmp_path / "config.json"
        path.write_text(content)

        with pytest.raises(ConfigurationError) as exc_info:
            load_config_from_file(path)

        assert exc_info.value.code == code

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_config_from_file(tmp_path / "absent.json")

        assert exc_info.value.code == "unreadable"

    def test_saved_config_loads_back(self, tmp_path: Path) -> None:
        config = create_default_config()
        config.domains = ["example.com"]
        config.threshold_days = 14
        config.notifications.email = EmailConfig(
            smtp_host="smtp.example.com",
            from_address="m@example.com",
            to_addresses=["o@example.com"],
        )
        path = tmp_path / "nested" / "config.json"

        assert save_config_to_file(config, path) is True
        loaded = load_config_from_file(path)

        assert config_to_dict(loaded) == config_to_dict(config)


class TestEnvironmentOverridesProperty:
    """Property tests for the environment layer."""

    @given(domains=st.lists(st.from_regex(r"[a-z]{1,10}\.com", fullmatch=True), max_size=5))
    @settings(max_examples=50)
    def test_domains_are_comma_separated(self, domains: list[str]) -> None:
        """*For any* domain list, DOMAINS SHALL split on commas and drop blanks."""
        raw = " , ".join(domains) + ",,"
        config = apply_env_overrides(create_default_config(), {"DOMAINS": raw})

        assert config.domains == domains

    def test_numbers_and_durations(self) -> None:
        config = apply_env_overrides(create_default_config(), {
            "THRESHOLD_DAYS": "21",
            "RETRIES": "4",
            "BACKOFF": "250ms",
            "CONCURRENCY": "8",
            "TIMEOUT": "3s",
            "STATE_DIR": "/tmp/state",
        })

        assert config.threshold_days == 21
        assert config.retry.max_attempts == 4
        assert config.retry.base_delay_seconds == 0.25
        assert config.concurrency == 8
        assert config.timeout_seconds == 3.0
        assert config.state_dir == Path("/tmp/state")

    def test_invalid_numbers_keep_previous_values(self) -> None:
        config = apply_env_overrides(create_default_config(), {
            "THRESHOLD_DAYS": "a week",
            "BACKOFF": "later",
            "CONCURRENCY": "",
        })

        assert config.threshold_days == 7
        assert config.retry.base_delay_seconds == 2.0
        assert config.concurrency == 5

    def test_channels_and_logging(self) -> None:
        config = apply_env_overrides(create_default_config(), {
            "SMTP_HOST": "smtp.example.com",
            "EMAIL_FROM": "m@example.com",
            "EMAIL_TO": "o@example.com",
            "TELEGRAM_BOT_TOKEN": "123:abc",
            "DISCORD_WEBHOOK_URL": "https://discord.invalid/hook",
            "DEBUG": "true",
            "LOG_FORMAT": "JSON",
        })

        assert config.notifications.email.is_complete
        assert config.notifications.email.smtp_port == 587
        assert config.notifications.telegram is None
        assert config.notifications.discord.webhook_url == "https://discord.invalid/hook"
        assert config.logging.level == "debug"
        assert config.logging.output_format == "json"

    def test_environment_wins_over_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"threshold_days": 10, "concurrency": 2}))

        config = load_config(environ={"CONFIG_FILE": str(path), "THRESHOLD_DAYS": "20"})

        assert config.threshold_days == 20
        assert config.concurrency == 2

    def test_defaults_without_file(self) -> None:
        config = load_config(environ={})

        assert config_to_dict(config) == config_to_dict(MonitorConfig())
        assert config.retry.max_attempts == 3
        assert config.timeout_seconds == 5.0
        assert config.state_dir == Path("/data")


class TestFactories:

    def test_incomplete_email_is_not_registered(self) -> None:
        config = create_default_config()
        config.notifications.email = EmailConfig(smtp_host="smtp.example.com")

        router = create_notification_router(config)

        assert router.channels == []

    def test_configured_channels_are_registered(self) -> None:
        config = apply_env_overrides(create_default_config(), {
            "SMTP_HOST": "smtp.example.com",
            "EMAIL_FROM": "m@example.com",
            "EMAIL_TO": "o@example.com",
            "TELEGRAM_BOT_TOKEN": "123:abc",
            "TELEGRAM_CHAT_ID": "42",
            "WEBHOOK_URL": "https://hooks.invalid/x",
        })

        router = create_notification_router(config)

        assert [c.get_name() for c in router.channels] == ["email", "telegram", "webhook"]

    def test_logger_level_and_format(self) -> None:
        config = create_default_config()
        config.logging.level = "warning"
        config.logging.output_format = "bogus"

        logger = create_logger(config)

        assert logger.level == LogLevel.WARN
        assert logger.output_format == "text"
        assert create_logger(config, verbose=True, output_format="json").level == LogLevel.DEBUG

    def test_format_report(self) -> None:
        report = CheckReport(domain="example.com", outcome=CheckOutcome.EXPIRING, notified=True, days_left=3)

        assert format_report(report) == "example.com: expiring expires in 3 days [notified]"


class TestValidateConfig:

    def test_defaults_only_warn_about_empty_domains(self) -> None:
        result = validate_config(create_default_config())

        assert result.valid is True
        assert result.errors == []
        assert len(result.warnings) == 1

    def test_invalid_values_are_errors(self) -> None:
        config = create_default_config()
        config.domains = ["example.com"]
        config.threshold_days = -1
        config.concurrency = 0
        config.timeout_seconds = 0
        config.retry.base_delay_seconds = -1
        config.logging.output_format = "xml"

        result = validate_config(config)

        assert result.valid is False
        assert len(result.errors) == 5

    def test_partial_email_and_no_retries_warn(self) -> None:
        config = create_default_config()
        config.domains = ["example.com"]
        config.retry.max_attempts = 0
        config.notifications.email = EmailConfig(smtp_host="smtp.example.com")

        result = validate_config(config)

        assert result.valid is True
        assert len(result.warnings) == 2
