"""
Configuration dataclasses for the domain monitor.

This module defines the configuration structures read by the core during a
run: the monitored domains and thresholds, WHOIS retry policy, lookup
timeouts, concurrency, state directory, notification channels and logging.
Loading from files and the environment lives in the CLI module.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


DEFAULT_STATE_DIR = Path("/data")
DEFAULT_RESOLV_CONF = Path("/etc/resolv.conf")
DEFAULT_FALLBACK_NAMESERVER = "8.8.8.8"


@dataclass
class RetryConfig:
    """Retry behavior for WHOIS lookups and notification delivery."""

    max_attempts: int = 3
    base_delay_seconds: float = 2.0
    max_jitter_seconds: float = 1.0


@dataclass
class EmailConfig:
    """SMTP notification channel configuration."""

    smtp_host: str
    smtp_port: int = 587
    username: str = ""
    password: str = ""
    from_address: str = ""
    to_addresses: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        """True when host, sender and at least one recipient are set."""
        return bool(self.smtp_host and self.from_address and self.to_addresses)


@dataclass
class TelegramConfig:
    """Telegram notification channel configuration."""

    bot_token: str
    chat_id: str


@dataclass
class DiscordConfig:
    """Discord notification channel configuration."""

    webhook_url: str


@dataclass
class WebhookConfig:
    """Generic webhook notification channel configuration."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class NotificationConfig:
    """Notification channels configuration."""

    email: Optional[EmailConfig] = None
    telegram: Optional[TelegramConfig] = None
    discord: Optional[DiscordConfig] = None
    webhook: Optional[WebhookConfig] = None


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class MonitorConfig:
    """Root configuration for one monitoring run."""

    domains: list[str] = field(default_factory=list)
    threshold_days: int = 7
    state_dir: Path = DEFAULT_STATE_DIR
    retry: RetryConfig = field(default_factory=RetryConfig)
    concurrency: int = 5
    timeout_seconds: float = 5.0
    resolv_conf_path: Path = DEFAULT_RESOLV_CONF
    fallback_nameserver: str = DEFAULT_FALLBACK_NAMESERVER
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
