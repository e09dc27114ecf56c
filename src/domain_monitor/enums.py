"""
Enumeration types for the domain monitor.

These enums provide type-safe constants for log levels, error codes,
check outcomes and notification kinds.
"""

from enum import Enum


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def severity(self) -> int:
        """Numeric rank used for level filtering."""
        return _SEVERITY[self]

    @classmethod
    def from_name(cls, name: str) -> "LogLevel":
        """Resolve a level from a config string ('warning' is accepted for 'warn')."""
        normalized = (name or "").strip().lower()
        if normalized == "warning":
            normalized = "warn"
        return cls(normalized)


_SEVERITY = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}


class DNSErrorCode(Enum):
    """Error codes for the DNS availability probe."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformed_response"
    INVALID_NAME = "invalid_name"


class WHOISErrorCode(Enum):
    """Error codes for WHOIS retrieval and parsing."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    NO_SERVER = "no_server"
    RETRIES_EXHAUSTED = "retries_exhausted"
    EMPTY_RESPONSE = "empty_response"
    NOT_FOUND = "not_found"
    MISSING_EXPIRATION = "missing_expiration"
    INVALID_DATE = "invalid_date"


class CheckOutcome(Enum):
    """Result of one state-machine pass over a domain."""

    AVAILABLE = "available"
    EXPIRING = "expiring"
    STABLE = "stable"
    FAILED = "failed"


class NotificationKind(Enum):
    """What a notification is about."""

    AVAILABLE = "available"
    EXPIRING = "expiring"
    INFO = "info"
