"""
Data models for the domain monitor.

This module defines the per-domain persisted state and the report produced
by one pass of the state machine over a domain.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .enums import CheckOutcome
from .expiration import ZERO_TIMESTAMP, format_rfc3339, parse_rfc3339


STATE_KEYS = frozenset({"expiration", "notified_expiry", "notified_available"})


@dataclass
class DomainState:
    """
    Persistent state for a single domain.

    An expiration of None means "unknown" and is stored on disk as the zero
    timestamp. notified_available never goes back to False; notified_expiry
    is cleared only when a fresh WHOIS expiration differs from the stored one.
    """

    expiration: Optional[datetime] = None
    notified_expiry: bool = False
    notified_available: bool = False

    def has_valid_expiration(self, now: datetime) -> bool:
        """True when a known expiration lies strictly in the future."""
        return self.expiration is not None and self.expiration > now

    def to_dict(self) -> dict:
        """Serialize to the on-disk JSON object."""
        return {
            "expiration": (
                format_rfc3339(self.expiration) if self.expiration is not None else ZERO_TIMESTAMP
            ),
            "notified_expiry": self.notified_expiry,
            "notified_available": self.notified_available,
        }

    @classmethod
    def from_dict(cls, data: object) -> "DomainState":
        """
        Deserialize a state record.

        The record must be an object with exactly the three state keys, a
        string expiration in RFC 3339 form and boolean flags.

        Raises:
            ValueError: If the record does not match that shape
        """
        if not isinstance(data, dict) or set(data) != STATE_KEYS:
            raise ValueError("state record must hold exactly the three state fields")

        raw_expiration = data["expiration"]
        notified_expiry = data["notified_expiry"]
        notified_available = data["notified_available"]

        if not isinstance(raw_expiration, str):
            raise ValueError("expiration must be a string")
        if not isinstance(notified_expiry, bool) or not isinstance(notified_available, bool):
            raise ValueError("notification flags must be booleans")

        expiration = None
        if raw_expiration != ZERO_TIMESTAMP:
            expiration = parse_rfc3339(raw_expiration)

        return cls(
            expiration=expiration,
            notified_expiry=notified_expiry,
            notified_available=notified_available,
        )


@dataclass
class CheckReport:
    """Outcome of processing one domain during a run."""

    domain: str
    outcome: CheckOutcome
    notified: bool = False
    expiration: Optional[datetime] = None
    days_left: Optional[int] = None
    error: Optional[str] = None
