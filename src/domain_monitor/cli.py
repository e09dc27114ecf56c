"""
Command-line interface for the domain monitor.

This module provides the main CLI entry point with commands for:
- run: Clean up stale state and check every configured domain (default)
- check: Run the state machine for the given domains only
- config: Configuration management
- self-test: Verify configuration, resolver and WHOIS connectivity

Configuration is layered: defaults, then a JSON file (``--config`` or
``CONFIG_FILE``), then environment variables (a ``.env`` file is read first).
"""

import argparse
import asyncio
import json
import math
import os
import re
import sys
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from . import __version__
from .config import (
    DiscordConfig,
    EmailConfig,
    LoggingConfig,
    MonitorConfig,
    NotificationConfig,
    TelegramConfig,
    WebhookConfig,
)
from .dns_probe import DNSProber
from .enums import CheckOutcome, LogLevel
from .exceptions import ConfigurationError, PersistenceError
from .logger import StructuredLogger
from .models import CheckReport
from .notifications import (
    DiscordChannel,
    EmailChannel,
    NotificationRouter,
    TelegramChannel,
    WebhookChannel,
)
from .orchestrator import DomainMonitor
from .retry_manager import RetryManager
from .self_test import SelfTest, validate_config
from .state_store import StateStore
from .whois_client import WHOISClient
from .whois_retriever import WHOISRetriever


DEFAULT_CONFIG_PATH = Path("config.json")

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_FULL = re.compile(r"(?:(?:\d+(?:\.\d*)?|\.\d+)(?:ns|us|µs|μs|ms|s|m|h))+")
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: object) -> float:
    """
    Convert a duration to seconds.

    Accepts a number of seconds (int, float or numeric string) or a
    duration string such as ``"2s"``, ``"1m30s"`` or ``"500ms"``.

    Raises:
        ValueError: If the value is not a duration
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")

    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        try:
            seconds = float(text)
        except ValueError:
            sign = 1.0
            if text[:1] in ("+", "-"):
                sign = -1.0 if text[0] == "-" else 1.0
                text = text[1:]
            if not _DURATION_FULL.fullmatch(text):
                raise ValueError(f"invalid duration: {value!r}") from None
            seconds = sign * sum(
                float(number) * _UNIT_SECONDS[unit]
                for number, unit in _DURATION_PART.findall(text)
            )

    if not math.isfinite(seconds):
        raise ValueError(f"invalid duration: {value!r}")
    return seconds


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def create_default_config() -> MonitorConfig:
    """Create a configuration holding only default values."""
    return MonitorConfig()


def load_config_from_file(config_path: Path, base: Optional[MonitorConfig] = None) -> MonitorConfig:
    """
    Load configuration from a JSON file on top of ``base`` (defaults if omitted).

    Raises:
        ConfigurationError: If the file cannot be read or holds invalid values
    """
    config = base or create_default_config()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigurationError(
            code="unreadable",
            message=f"Could not read config file: {e}",
            details={"config_path": str(config_path)},
        ) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            code="invalid_json",
            message=f"Config file is not valid JSON: {e}",
            details={"config_path": str(config_path)},
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            code="invalid_structure",
            message="Config file must contain a JSON object",
            details={"config_path": str(config_path)},
        )

    try:
        _apply_file_data(config, data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ConfigurationError(
            code="invalid_value",
            message=f"Invalid value in config file: {e}",
            details={"config_path": str(config_path)},
        ) from e

    return config


def _apply_file_data(config: MonitorConfig, data: dict) -> None:
    if "domains" in data:
        domains = data["domains"]
        if isinstance(domains, str):
            domains = _split_list(domains)
        if not isinstance(domains, list) or not all(isinstance(d, str) for d in domains):
            raise ValueError("domains must be a list of strings")
        config.domains = list(domains)

    if "threshold_days" in data:
        config.threshold_days = int(data["threshold_days"])
    if "state_dir" in data:
        config.state_dir = Path(data["state_dir"])
    if "retries" in data:
        config.retry.max_attempts = int(data["retries"])
    if "backoff" in data:
        config.retry.base_delay_seconds = parse_duration(data["backoff"])
    if "concurrency" in data:
        config.concurrency = int(data["concurrency"])
    if "timeout" in data:
        config.timeout_seconds = parse_duration(data["timeout"])
    if "resolv_conf_path" in data:
        config.resolv_conf_path = Path(data["resolv_conf_path"])
    if "fallback_nameserver" in data:
        config.fallback_nameserver = str(data["fallback_nameserver"])

    email_keys = ("smtp_host", "smtp_port", "smtp_user", "smtp_pass", "email_from", "email_to")
    if any(key in data for key in email_keys):
        email = config.notifications.email or EmailConfig(smtp_host="")
        email.smtp_host = str(data.get("smtp_host", email.smtp_host))
        email.smtp_port = int(data.get("smtp_port", email.smtp_port))
        email.username = str(data.get("smtp_user", email.username))
        email.password = str(data.get("smtp_pass", email.password))
        email.from_address = str(data.get("email_from", email.from_address))
        if "email_to" in data:
            to = data["email_to"]
            email.to_addresses = _split_list(to) if isinstance(to, str) else [str(t) for t in to]
        config.notifications.email = email

    telegram = data.get("telegram")
    if telegram:
        config.notifications.telegram = TelegramConfig(
            bot_token=telegram["bot_token"],
            chat_id=str(telegram["chat_id"]),
        )

    discord = data.get("discord")
    if discord:
        config.notifications.discord = DiscordConfig(webhook_url=discord["webhook_url"])

    webhook = data.get("webhook")
    if webhook:
        config.notifications.webhook = WebhookConfig(
            url=webhook["url"],
            headers=dict(webhook.get("headers", {})),
        )

    logging_data = data.get("logging")
    if logging_data:
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level),
            output_format=logging_data.get("output_format", config.logging.output_format),
        )


def apply_env_overrides(
    config: MonitorConfig,
    environ: Optional[Mapping[str, str]] = None,
) -> MonitorConfig:
    """
    Override configuration values from environment variables.

    Empty variables are ignored, as are numbers and durations that do not
    parse; the previous value is kept in both cases.
    """
    env = os.environ if environ is None else environ

    def get(name: str) -> Optional[str]:
        value = env.get(name, "").strip()
        return value or None

    def get_int(name: str) -> Optional[int]:
        value = get(name)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    def get_duration(name: str) -> Optional[float]:
        value = get(name)
        if value is None:
            return None
        try:
            return parse_duration(value)
        except ValueError:
            return None

    if get("DOMAINS") is not None:
        config.domains = _split_list(get("DOMAINS"))
    if get_int("THRESHOLD_DAYS") is not None:
        config.threshold_days = get_int("THRESHOLD_DAYS")
    if get("STATE_DIR") is not None:
        config.state_dir = Path(get("STATE_DIR"))
    if get_int("RETRIES") is not None:
        config.retry.max_attempts = get_int("RETRIES")
    if get_duration("BACKOFF") is not None:
        config.retry.base_delay_seconds = get_duration("BACKOFF")
    if get_int("CONCURRENCY") is not None:
        config.concurrency = get_int("CONCURRENCY")
    if get_duration("TIMEOUT") is not None:
        config.timeout_seconds = get_duration("TIMEOUT")

    smtp_vars = ("SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASS", "EMAIL_FROM", "EMAIL_TO")
    if any(get(name) is not None for name in smtp_vars):
        email = config.notifications.email or EmailConfig(smtp_host="")
        email.smtp_host = get("SMTP_HOST") or email.smtp_host
        if get_int("SMTP_PORT") is not None:
            email.smtp_port = get_int("SMTP_PORT")
        email.username = get("SMTP_USER") or email.username
        email.password = get("SMTP_PASS") or email.password
        email.from_address = get("EMAIL_FROM") or email.from_address
        if get("EMAIL_TO") is not None:
            email.to_addresses = _split_list(get("EMAIL_TO"))
        config.notifications.email = email

    if get("TELEGRAM_BOT_TOKEN") and get("TELEGRAM_CHAT_ID"):
        config.notifications.telegram = TelegramConfig(
            bot_token=get("TELEGRAM_BOT_TOKEN"),
            chat_id=get("TELEGRAM_CHAT_ID"),
        )
    if get("DISCORD_WEBHOOK_URL"):
        config.notifications.discord = DiscordConfig(webhook_url=get("DISCORD_WEBHOOK_URL"))
    if get("WEBHOOK_URL"):
        config.notifications.webhook = WebhookConfig(url=get("WEBHOOK_URL"))

    if get("LOG_LEVEL") is not None:
        config.logging.level = get("LOG_LEVEL").lower()
    if (get("DEBUG") or "").lower() == "true":
        config.logging.level = LogLevel.DEBUG.value
    if get("LOG_FORMAT") is not None:
        config.logging.output_format = get("LOG_FORMAT").lower()

    return config


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> MonitorConfig:
    """
    Build the effective configuration: defaults, file, environment.

    The file comes from ``config_path`` or else ``CONFIG_FILE``; without
    either, only defaults and environment apply.

    Raises:
        ConfigurationError: If the config file is unreadable or invalid
    """
    env = os.environ if environ is None else environ
    config = create_default_config()

    path = config_path
    if path is None and env.get("CONFIG_FILE", "").strip():
        path = Path(env["CONFIG_FILE"].strip())

    if path is not None:
        config = load_config_from_file(path, config)

    return apply_env_overrides(config, env)


def config_to_dict(config: MonitorConfig) -> dict:
    """Render a configuration in the config-file layout."""
    data: dict = {
        "domains": list(config.domains),
        "threshold_days": config.threshold_days,
        "state_dir": str(config.state_dir),
        "retries": config.retry.max_attempts,
        "backoff": config.retry.base_delay_seconds,
        "concurrency": config.concurrency,
        "timeout": config.timeout_seconds,
        "resolv_conf_path": str(config.resolv_conf_path),
        "fallback_nameserver": config.fallback_nameserver,
        "logging": {
            "level": config.logging.level,
            "output_format": config.logging.output_format,
        },
    }

    email = config.notifications.email
    if email is not None:
        data.update({
            "smtp_host": email.smtp_host,
            "smtp_port": email.smtp_port,
            "smtp_user": email.username,
            "smtp_pass": email.password,
            "email_from": email.from_address,
            "email_to": ",".join(email.to_addresses),
        })
    if config.notifications.telegram is not None:
        data["telegram"] = {
            "bot_token": config.notifications.telegram.bot_token,
            "chat_id": config.notifications.telegram.chat_id,
        }
    if config.notifications.discord is not None:
        data["discord"] = {"webhook_url": config.notifications.discord.webhook_url}
    if config.notifications.webhook is not None:
        data["webhook"] = {
            "url": config.notifications.webhook.url,
            "headers": dict(config.notifications.webhook.headers),
        }
    return data


def save_config_to_file(config: MonitorConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
        return True
    except OSError as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def create_logger(
    config: MonitorConfig,
    verbose: bool = False,
    output_format: Optional[str] = None,
) -> StructuredLogger:
    """Create the process logger from the logging settings and CLI flags."""
    try:
        level = LogLevel.from_name(config.logging.level)
    except ValueError:
        level = LogLevel.INFO
    if verbose:
        level = LogLevel.DEBUG

    fmt = output_format or config.logging.output_format
    if fmt not in ("json", "text", "both"):
        fmt = "text"

    return StructuredLogger(level=level, output_format=fmt)


def create_notification_router(
    config: MonitorConfig,
    logger: Optional[StructuredLogger] = None,
) -> NotificationRouter:
    """
    Create a notification router with every configured channel.

    Email is registered only when host, sender and recipient are all set.
    """
    notifications: NotificationConfig = config.notifications
    router = NotificationRouter(
        retry_manager=RetryManager(config.retry, logger=logger),
        logger=logger,
    )

    if notifications.email is not None and notifications.email.is_complete:
        router.register_channel(EmailChannel(notifications.email))
    if notifications.telegram is not None:
        router.register_channel(TelegramChannel(notifications.telegram))
    if notifications.discord is not None:
        router.register_channel(DiscordChannel(notifications.discord))
    if notifications.webhook is not None:
        router.register_channel(WebhookChannel(notifications.webhook))

    return router


def create_prober(config: MonitorConfig, logger: Optional[StructuredLogger] = None) -> DNSProber:
    return DNSProber(
        timeout_seconds=config.timeout_seconds,
        resolv_conf_path=config.resolv_conf_path,
        fallback_nameserver=config.fallback_nameserver,
        logger=logger,
    )


def create_monitor(
    config: MonitorConfig,
    logger: Optional[StructuredLogger] = None,
) -> tuple[DomainMonitor, StateStore]:
    """Wire the production collaborators into a DomainMonitor."""
    state_store = StateStore(config.state_dir, logger=logger)
    whois_client = WHOISClient(timeout=config.timeout_seconds, logger=logger)
    retriever = WHOISRetriever(
        whois_client,
        RetryManager(config.retry, logger=logger),
        logger=logger,
    )
    monitor = DomainMonitor(
        config=config,
        availability=create_prober(config, logger),
        expiration_source=retriever,
        notifier=create_notification_router(config, logger),
        state_store=state_store,
        logger=logger,
    )
    return monitor, state_store


def format_report(report: CheckReport) -> str:
    """One-line summary of a check report."""
    parts = [f"{report.domain}: {report.outcome.value}"]
    if report.days_left is not None:
        parts.append(f"expires in {report.days_left} days")
    if report.expiration is not None:
        parts.append(f"({report.expiration.isoformat()})")
    if report.notified:
        parts.append("[notified]")
    if report.error:
        parts.append(f"error: {report.error}")
    return " ".join(parts)


def cmd_run(args: argparse.Namespace, config: MonitorConfig, logger: StructuredLogger) -> int:
    """Handle the 'run' command."""
    monitor, state_store = create_monitor(config, logger)

    try:
        state_store.ensure_directory()
    except PersistenceError as e:
        logger.log_error("CLI", "Cannot prepare state directory", error=e)
        return 1

    state_store.cleanup(config.domains)
    asyncio.run(monitor.process_all())
    return 0


def cmd_check(args: argparse.Namespace, config: MonitorConfig, logger: StructuredLogger) -> int:
    """Handle the 'check' command."""
    monitor, state_store = create_monitor(config, logger)

    try:
        state_store.ensure_directory()
    except PersistenceError as e:
        logger.log_error("CLI", "Cannot prepare state directory", error=e)
        return 1

    async def check_all() -> list[CheckReport]:
        return [await monitor.process_domain(domain) for domain in args.domains if domain.strip()]

    reports = asyncio.run(check_all())
    for report in reports:
        print(format_report(report))

    return 1 if any(r.outcome == CheckOutcome.FAILED for r in reports) else 0


def cmd_self_test(args: argparse.Namespace, config: MonitorConfig, logger: StructuredLogger) -> int:
    """Handle the 'self-test' command."""
    self_test = SelfTest(
        config,
        prober=create_prober(config, logger),
        whois_client=WHOISClient(timeout=config.timeout_seconds, logger=logger),
        logger=logger,
    )
    result = asyncio.run(self_test.run())
    self_test.print_results(result)
    return 0 if result.success else 1


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    if args.path:
        config_path = Path(args.path)
    elif args.config:
        config_path = Path(args.config)
    else:
        config_path = Path(os.environ.get("CONFIG_FILE", "").strip() or DEFAULT_CONFIG_PATH)

    if args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        if save_config_to_file(create_default_config(), config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        return 1

    try:
        config = load_config(config_path if config_path.exists() else None)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    if args.action == "show":
        shown = StructuredLogger().mask_sensitive_data(config_to_dict(config))
        print(f"Configuration from: {config_path if config_path.exists() else 'defaults and environment'}")
        print(json.dumps(shown, indent=2, ensure_ascii=False))
        return 0

    if args.action == "validate":
        result = validate_config(config)
        for error in result.errors:
            print(f"  ✗ {error}")
        for warning in result.warnings:
            print(f"  ! {warning}")
        if not result.valid:
            print("Configuration is invalid.", file=sys.stderr)
            return 1
        print("Configuration is valid.")
        return 0

    return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="domain-monitor",
        description="Notify once when monitored domains become available or near expiry",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file (default: $CONFIG_FILE)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json", "both"],
        help="Log output format",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "run",
        help="Check all configured domains (default)",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Check the given domains",
    )
    check_parser.add_argument(
        "domains",
        nargs="+",
        help="Domains to check (e.g., example.com)",
    )

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )

    subparsers.add_parser(
        "self-test",
        help="Verify configuration, resolver and WHOIS connectivity",
    )

    return parser


COMMANDS = {
    "run": cmd_run,
    "check": cmd_check,
    "self-test": cmd_self_test,
}


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)
    load_dotenv()

    command = args.command or "run"
    if command == "config":
        return cmd_config(args)

    try:
        config = load_config(Path(args.config) if args.config else None)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    logger = create_logger(config, verbose=args.verbose, output_format=args.log_format)
    return COMMANDS[command](args, config, logger)


if __name__ == "__main__":
    sys.exit(main())
