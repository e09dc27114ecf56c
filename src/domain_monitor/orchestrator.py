"""
Domain monitor orchestration.

This module holds the per-domain state machine and the bounded fan-out over
all configured domains. It integrates:
- The DNS availability probe
- The WHOIS expiration source
- The per-domain state store
- The notifier

Every collaborator is injected, so tests substitute doubles for the network
and notification sides.
"""

import asyncio
import math
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Protocol, runtime_checkable

from .config import MonitorConfig
from .enums import CheckOutcome, LogLevel, NotificationKind
from .exceptions import DomainMonitorError
from .logger import StructuredLogger
from .models import CheckReport, DomainState
from .state_store import StateStore


SECONDS_PER_DAY = 86400


@runtime_checkable
class AvailabilityChecker(Protocol):
    """Answers whether a domain is unregistered."""

    async def is_available(self, domain: str) -> bool:
        ...


@runtime_checkable
class ExpirationSource(Protocol):
    """Provides a fresh registration expiration for a domain."""

    async def fetch_expiration(self, domain: str) -> datetime:
        ...


@runtime_checkable
class Notifier(Protocol):
    """Delivers a message about a domain; failures stay inside the notifier."""

    async def send(
        self,
        domain: str,
        message: str,
        kind: NotificationKind = NotificationKind.INFO,
    ) -> object:
        ...


def available_message(domain: str) -> str:
    return f"Domain {domain} is now available!"


def expiring_message(domain: str, days_left: int) -> str:
    return f"Domain {domain} expires in {days_left} days"


def days_until(expiration: datetime, now: datetime) -> int:
    """Whole days from ``now`` to ``expiration``, rounded down."""
    return math.floor((expiration - now).total_seconds() / SECONDS_PER_DAY)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DomainMonitor:
    """
    Runs the notification state machine for each monitored domain.

    For one domain: load state, probe DNS, and when the domain is still
    registered make sure a valid expiration is known (cached or fresh from
    WHOIS) before deciding on the expiry warning. Each notification is sent
    at most once per state record, every mutation is persisted right away.
    """

    COMPONENT = "DomainMonitor"

    def __init__(
        self,
        config: MonitorConfig,
        availability: AvailabilityChecker,
        expiration_source: ExpirationSource,
        notifier: Notifier,
        state_store: StateStore,
        logger: Optional[StructuredLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize the monitor.

        Args:
            config: Run configuration (threshold, concurrency, domains)
            availability: DNS availability checker
            expiration_source: WHOIS-backed expiration source
            notifier: Notification sink
            state_store: Per-domain state persistence
            logger: Optional structured logger
            clock: Returns the current aware datetime (defaults to UTC now)
        """
        self._config = config
        self._availability = availability
        self._expiration_source = expiration_source
        self._notifier = notifier
        self._state_store = state_store
        self._logger = logger
        self._clock = clock or utc_now

    async def process_all(self, domains: Optional[Iterable[str]] = None) -> None:
        """
        Process every configured domain with bounded concurrency.

        Blank entries are skipped and repeated entries are processed once.
        Returns after all domain tasks have finished; a failing task never
        affects the others.

        Args:
            domains: Domains to process (defaults to the configured list)
        """
        source = self._config.domains if domains is None else domains
        limit = max(1, self._config.concurrency)
        semaphore = asyncio.Semaphore(limit)
        tasks: list[asyncio.Task] = []
        seen: set[str] = set()

        for raw in source:
            domain = raw.strip()
            if not domain or domain in seen:
                self._log(LogLevel.DEBUG, "Skipping blank or repeated domain entry", {"entry": raw})
                continue
            seen.add(domain)

            await semaphore.acquire()
            tasks.append(asyncio.create_task(self._run_slot(domain, semaphore)))

        await asyncio.gather(*tasks)
        self._log(LogLevel.INFO, f"Processed {len(tasks)} domains", {"concurrency": limit})

    async def _run_slot(self, domain: str, semaphore: asyncio.Semaphore) -> None:
        try:
            await self.process_domain(domain)
        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    self.COMPONENT,
                    f"Unexpected failure while processing {domain}",
                    error=e,
                    additional_data={"domain": domain},
                )
        finally:
            semaphore.release()

    async def process_domain(self, domain: str) -> CheckReport:
        """
        Run one state-machine pass for a domain.

        Returns:
            CheckReport describing what happened
        """
        domain = domain.strip()
        state = self._state_store.load(domain)

        try:
            available = await self._availability.is_available(domain)
        except DomainMonitorError as e:
            self._log_failure(f"DNS check failed for {domain}, falling back to WHOIS", domain, e)
            available = False

        if available:
            return await self._handle_available(domain, state)

        now = self._clock()
        if not state.has_valid_expiration(now):
            try:
                fresh = await self._expiration_source.fetch_expiration(domain)
            except DomainMonitorError as e:
                self._log_failure(f"Could not determine expiration for {domain}", domain, e)
                return CheckReport(
                    domain=domain,
                    outcome=CheckOutcome.FAILED,
                    expiration=state.expiration,
                    error=str(e),
                )
            self._apply_fresh_expiration(domain, state, fresh)
            self._state_store.save(domain, state)

        return await self._handle_expiry(domain, state, now)

    async def _handle_available(self, domain: str, state: DomainState) -> CheckReport:
        notified = False
        if not state.notified_available:
            await self._notify(domain, available_message(domain), NotificationKind.AVAILABLE)
            state.notified_available = True
            self._state_store.save(domain, state)
            notified = True
        else:
            self._log(LogLevel.DEBUG, f"{domain} is available, already notified", {"domain": domain})

        return CheckReport(
            domain=domain,
            outcome=CheckOutcome.AVAILABLE,
            notified=notified,
            expiration=state.expiration,
        )

    def _apply_fresh_expiration(self, domain: str, state: DomainState, fresh: datetime) -> None:
        # A different expiration re-arms the expiry warning; notified_available is never cleared
        if state.expiration != fresh:
            if state.expiration is not None and state.notified_expiry:
                self._log(
                    LogLevel.INFO,
                    f"Expiration of {domain} changed, expiry warning re-armed",
                    {
                        "domain": domain,
                        "previous": state.expiration.isoformat(),
                        "current": fresh.isoformat(),
                    },
                )
            state.notified_expiry = False
        state.expiration = fresh

    async def _handle_expiry(self, domain: str, state: DomainState, now: datetime) -> CheckReport:
        days_left = days_until(state.expiration, now)
        threshold = self._config.threshold_days

        if days_left > threshold:
            self._log(
                LogLevel.DEBUG,
                f"{domain} expires in {days_left} days",
                {"domain": domain, "days_left": days_left, "threshold": threshold},
            )
            return CheckReport(
                domain=domain,
                outcome=CheckOutcome.STABLE,
                expiration=state.expiration,
                days_left=days_left,
            )

        notified = False
        if not state.notified_expiry:
            await self._notify(domain, expiring_message(domain, days_left), NotificationKind.EXPIRING)
            state.notified_expiry = True
            self._state_store.save(domain, state)
            notified = True

        return CheckReport(
            domain=domain,
            outcome=CheckOutcome.EXPIRING,
            notified=notified,
            expiration=state.expiration,
            days_left=days_left,
        )

    async def _notify(self, domain: str, message: str, kind: NotificationKind) -> None:
        try:
            await self._notifier.send(domain, message, kind)
        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    self.COMPONENT,
                    f"Notifier raised for {domain}",
                    error=e,
                    additional_data={"domain": domain, "kind": kind.value},
                )

    def _log(self, level: LogLevel, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)

    def _log_failure(self, message: str, domain: str, error: Exception) -> None:
        if self._logger:
            self._logger.log_error(
                self.COMPONENT,
                message,
                error=error,
                additional_data={"domain": domain},
                level=LogLevel.WARN,
            )
