"""
Structured logger for the domain monitor.

Provides leveled logging with text, JSON or dual-format output and masking of
sensitive values (SMTP passwords, bot tokens, webhook URLs). A single logger
instance is created by the CLI and passed into every component.
"""

import json
import sys
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, TextIO

from .enums import LogLevel


@dataclass
class LogEntry:
    """Represents a single log entry with all metadata."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)


class StructuredLogger:
    """
    Leveled logger with dual-format output.

    Supports:
    - JSON lines, human-readable text, or both
    - Dropping entries below the configured level
    - Automatic masking of sensitive data
    - Thread-safe writes (executor threads log through the same instance)
    """

    # Keys that should be masked in log output
    SENSITIVE_KEYS = frozenset({
        'token', 'secret', 'password', 'pass', 'api_key',
        'bot_token', 'webhook_url', 'auth', 'authorization',
        'credential', 'credentials', 'private_key',
    })

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        level: LogLevel = LogLevel.INFO,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        max_entries: int = 1000,
    ):
        """
        Initialize the logger.

        Args:
            level: Minimum level that is written
            output_format: Output format - 'json', 'text', or 'both'
            output_stream: Output stream for log entries (defaults to sys.stderr)
            max_entries: Number of recent entries kept in memory for inspection
        """
        if output_format not in ("json", "text", "both"):
            raise ValueError(f"Invalid output_format: {output_format}")

        self._level = level
        self._output_format = output_format
        self._output_stream = output_stream or sys.stderr
        self._lock = threading.Lock()
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)

    @property
    def level(self) -> LogLevel:
        return self._level

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def entries(self) -> list[LogEntry]:
        """Get the most recent written entries, oldest first."""
        with self._lock:
            return list(self._entries)

    def set_level(self, level: LogLevel) -> None:
        self._level = level

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level.severity >= self._level.severity

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Log an entry in the configured format(s).

        Args:
            level: Log severity level
            component: Component name generating the log
            message: Human-readable log message
            data: Optional additional data to include

        Returns:
            The created LogEntry, or None when the level is filtered out
        """
        if not self.is_enabled_for(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=self.mask_sensitive_data(data or {}),
        )

        with self._lock:
            self._entries.append(entry)
            self._output_entry(entry)

        return entry

    def debug(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, component, message, data)

    def info(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, component, message, data)

    def warning(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, component, message, data)

    def error(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, component, message, data)

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        additional_data: Optional[dict] = None,
        level: LogLevel = LogLevel.ERROR,
    ) -> Optional[LogEntry]:
        """
        Log a failure with its exception context.

        Domain errors contribute their code and details; other exceptions
        contribute their type and message.
        """
        data = additional_data.copy() if additional_data else {}

        if error is not None:
            data["error_message"] = str(error)
            data["error_type"] = type(error).__name__
            code = getattr(error, "code", None)
            if isinstance(code, str):
                data["error_code"] = code
            details = getattr(error, "details", None)
            if isinstance(details, dict) and details:
                data["error_details"] = details

        return self.log(level, component, message, data)

    def mask_sensitive_data(self, data: dict) -> dict:
        """
        Recursively mask sensitive data in a dictionary.

        Args:
            data: Dictionary potentially containing sensitive data

        Returns:
            New dictionary with sensitive values masked
        """
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            key_lower = str(key).lower()

            is_sensitive = any(
                sensitive_key in key_lower
                for sensitive_key in self.SENSITIVE_KEYS
            )

            if is_sensitive:
                masked[key] = self.MASK_VALUE
            elif isinstance(value, dict):
                masked[key] = self.mask_sensitive_data(value)
            elif isinstance(value, list):
                masked[key] = [
                    self.mask_sensitive_data(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                masked[key] = value

        return masked

    def _output_entry(self, entry: LogEntry) -> None:
        if self._output_format in ("json", "both"):
            self._output_stream.write(self.format_json(entry) + "\n")

        if self._output_format in ("text", "both"):
            self._output_stream.write(self.format_text(entry) + "\n")

        self._output_stream.flush()

    def format_json(self, entry: LogEntry) -> str:
        """Format a log entry as a single JSON line."""
        obj = {
            "timestamp": entry.timestamp,
            "level": entry.level.value,
            "component": entry.component,
            "message": entry.message,
            "data": entry.data,
        }
        return json.dumps(obj, ensure_ascii=False, default=str)

    def format_text(self, entry: LogEntry) -> str:
        """Format a log entry as human-readable text."""
        # Format: [TIMESTAMP] LEVEL [COMPONENT] MESSAGE {data}
        parts = [
            f"[{entry.timestamp}]",
            entry.level.value.upper(),
            f"[{entry.component}]",
            entry.message,
        ]

        if entry.data:
            parts.append(json.dumps(entry.data, ensure_ascii=False, default=str))

        return " ".join(parts)

    def clear_entries(self) -> None:
        with self._lock:
            self._entries.clear()
