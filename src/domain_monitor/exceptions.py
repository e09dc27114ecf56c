"""
Exception classes for the domain monitor.

All exceptions inherit from DomainMonitorError and carry a machine-readable
code, a human-readable message, and optional details.
"""

from typing import Optional


class DomainMonitorError(Exception):
    """Base exception for all domain monitor errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(DomainMonitorError):
    """Raised when a domain name cannot be encoded for a lookup."""

    pass


class NetworkError(DomainMonitorError):
    """Raised on transport failures (DNS socket, WHOIS connection, timeouts)."""

    pass


class ProtocolError(DomainMonitorError):
    """Raised when a response cannot be interpreted (short DNS header, bad WHOIS text, bad date)."""

    pass


class PersistenceError(DomainMonitorError):
    """Raised when the state directory cannot be prepared."""

    pass


class NotificationError(DomainMonitorError):
    """Raised when a notification channel fails to deliver."""

    pass


class ConfigurationError(DomainMonitorError):
    """Raised when a configuration file cannot be read or parsed."""

    pass
