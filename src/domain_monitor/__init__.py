"""
Domain Monitor - one-shot notifications for domain availability and expiry.

This package checks a list of domains on each invocation: an SOA probe tells
whether a domain has become available, WHOIS supplies its expiration date,
and per-domain state files make sure each notification goes out only once.
"""

__version__ = "0.1.0"

from domain_monitor.exceptions import (
    DomainMonitorError,
    ValidationError,
    NetworkError,
    ProtocolError,
    PersistenceError,
    NotificationError,
    ConfigurationError,
)
from domain_monitor.enums import (
    LogLevel,
    DNSErrorCode,
    WHOISErrorCode,
    CheckOutcome,
    NotificationKind,
)
from domain_monitor.config import (
    RetryConfig,
    EmailConfig,
    TelegramConfig,
    DiscordConfig,
    WebhookConfig,
    NotificationConfig,
    LoggingConfig,
    MonitorConfig,
)
from domain_monitor.models import (
    DomainState,
    CheckReport,
)
from domain_monitor.expiration import (
    parse_expiration,
    format_rfc3339,
)
from domain_monitor.dns_probe import (
    DNSProber,
    DNSHeader,
    build_query,
    parse_answer_count,
    read_nameserver,
)
from domain_monitor.whois_client import (
    WHOISClient,
    parse_whois_text,
)
from domain_monitor.retry_manager import (
    RetryManager,
    RetryResult,
)
from domain_monitor.whois_retriever import (
    WHOISRetriever,
)
from domain_monitor.state_store import (
    StateStore,
)
from domain_monitor.logger import (
    StructuredLogger,
    LogEntry,
)
from domain_monitor.notifications import (
    NotificationPayload,
    NotificationResult,
    NotificationChannel,
    TelegramChannel,
    DiscordChannel,
    EmailChannel,
    WebhookChannel,
    NotificationRouter,
)
from domain_monitor.orchestrator import (
    AvailabilityChecker,
    ExpirationSource,
    Notifier,
    DomainMonitor,
)
from domain_monitor.self_test import (
    SelfTest,
    SelfTestResult,
    EndpointTestResult,
    ConfigValidationResult,
)
from domain_monitor.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Exceptions
    "DomainMonitorError",
    "ValidationError",
    "NetworkError",
    "ProtocolError",
    "PersistenceError",
    "NotificationError",
    "ConfigurationError",
    # Enums
    "LogLevel",
    "DNSErrorCode",
    "WHOISErrorCode",
    "CheckOutcome",
    "NotificationKind",
    # Configuration
    "RetryConfig",
    "EmailConfig",
    "TelegramConfig",
    "DiscordConfig",
    "WebhookConfig",
    "NotificationConfig",
    "LoggingConfig",
    "MonitorConfig",
    # Models
    "DomainState",
    "CheckReport",
    # Expiration
    "parse_expiration",
    "format_rfc3339",
    # DNS Probe
    "DNSProber",
    "DNSHeader",
    "build_query",
    "parse_answer_count",
    "read_nameserver",
    # WHOIS
    "WHOISClient",
    "parse_whois_text",
    "WHOISRetriever",
    # Retry Manager
    "RetryManager",
    "RetryResult",
    # State Store
    "StateStore",
    # Logger
    "StructuredLogger",
    "LogEntry",
    # Notifications
    "NotificationPayload",
    "NotificationResult",
    "NotificationChannel",
    "TelegramChannel",
    "DiscordChannel",
    "EmailChannel",
    "WebhookChannel",
    "NotificationRouter",
    # Orchestrator
    "AvailabilityChecker",
    "ExpirationSource",
    "Notifier",
    "DomainMonitor",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config",
    "load_config_from_file",
    "save_config_to_file",
    # Self-Test
    "SelfTest",
    "SelfTestResult",
    "EndpointTestResult",
    "ConfigValidationResult",
]
