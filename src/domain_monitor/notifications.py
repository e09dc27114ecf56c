"""
Notification Router module for the domain monitor.

Provides notification channels (Email, Telegram, Discord, Webhook) and a
router that delivers each message to every registered channel with retries.
The router is the Notifier used by the domain state machine: it never raises,
delivery failures end up in the log.
"""

import asyncio
import smtplib
import ssl
from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.mime.text import MIMEText
from typing import Optional, Protocol, runtime_checkable

import httpx

from .config import (
    DiscordConfig,
    EmailConfig,
    RetryConfig,
    TelegramConfig,
    WebhookConfig,
)
from .enums import NotificationKind
from .exceptions import NotificationError
from .logger import StructuredLogger
from .retry_manager import RetryManager


HTTP_TIMEOUT_SECONDS = 30.0


@dataclass
class NotificationPayload:
    """Payload for a notification message."""

    domain: str
    message: str
    kind: NotificationKind = NotificationKind.INFO
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass
class NotificationResult:
    """Result of a notification delivery attempt."""

    channel: str
    success: bool
    error: Optional[str] = None
    attempts: int = 1


@runtime_checkable
class NotificationChannel(Protocol):
    """Protocol defining the interface for notification channels."""

    @abstractmethod
    async def send(self, payload: NotificationPayload) -> bool:
        """
        Send a notification.

        Returns:
            True if delivery was successful, False otherwise
        """
        ...

    @abstractmethod
    def get_name(self) -> str:
        ...


def _http_failure(channel: str, error: httpx.HTTPError) -> NotificationError:
    return NotificationError(
        code="http_error",
        message=f"{channel} request failed: {error}",
        details={"channel": channel, "error_type": type(error).__name__},
    )


class EmailChannel:
    """Email notification channel using SMTP."""

    def __init__(self, config: EmailConfig, timeout: float = HTTP_TIMEOUT_SECONDS) -> None:
        self._config = config
        self._timeout = timeout

    async def send(self, payload: NotificationPayload) -> bool:
        """Send notification via Email."""
        # smtplib blocks, keep it off the event loop
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._send_sync, payload)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(
                code="smtp_error",
                message=f"Failed to send mail for {payload.domain}: {e}",
                details={"channel": "email", "smtp_host": self._config.smtp_host},
            ) from e
        return True

    def _send_sync(self, payload: NotificationPayload) -> None:
        msg = self.format_email(payload)

        with smtplib.SMTP(self._config.smtp_host, self._config.smtp_port, timeout=self._timeout) as server:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls(context=ssl.create_default_context())
                server.ehlo()
            if self._config.username:
                server.login(self._config.username, self._config.password)
            server.sendmail(
                self._config.from_address,
                self._config.to_addresses,
                msg.as_string(),
            )

    def get_name(self) -> str:
        return "email"

    def format_email(self, payload: NotificationPayload) -> MIMEText:
        """The message doubles as subject and body."""
        msg = MIMEText(payload.message + "\r\n", "plain", "utf-8")
        msg["From"] = self._config.from_address
        msg["To"] = ", ".join(self._config.to_addresses)
        msg["Subject"] = payload.message
        return msg


class TelegramChannel:
    """Telegram notification channel using Bot API."""

    def __init__(self, config: TelegramConfig) -> None:
        self._chat_id = config.chat_id
        self._base_url = f"https://api.telegram.org/bot{config.bot_token}"

    async def send(self, payload: NotificationPayload) -> bool:
        """Send notification via Telegram Bot API."""
        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    f"{self._base_url}/sendMessage",
                    json={
                        "chat_id": self._chat_id,
                        "text": self._format_message(payload),
                        "parse_mode": "HTML",
                    },
                    timeout=HTTP_TIMEOUT_SECONDS,
                )
            except httpx.HTTPError as e:
                raise _http_failure(self.get_name(), e) from e
            return response.status_code == 200

    def get_name(self) -> str:
        return "telegram"

    def _format_message(self, payload: NotificationPayload) -> str:
        icon = {
            NotificationKind.AVAILABLE: "🟢",
            NotificationKind.EXPIRING: "🟠",
        }.get(payload.kind, "ℹ️")
        return (
            f"{icon} <b>{payload.message}</b>\n\n"
            f"Domain: <code>{payload.domain}</code>\n"
            f"Time: {payload.timestamp}"
        )


class DiscordChannel:
    """Discord notification channel using Webhooks."""

    COLORS = {
        NotificationKind.AVAILABLE: 0x00FF00,
        NotificationKind.EXPIRING: 0xFFA500,
        NotificationKind.INFO: 0x3498DB,
    }

    def __init__(self, config: DiscordConfig) -> None:
        self._webhook_url = config.webhook_url

    async def send(self, payload: NotificationPayload) -> bool:
        """Send notification via Discord Webhook."""
        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self._webhook_url,
                    json={"embeds": [self._format_embed(payload)]},
                    timeout=HTTP_TIMEOUT_SECONDS,
                )
            except httpx.HTTPError as e:
                raise _http_failure(self.get_name(), e) from e
            # Discord returns 204 No Content on success
            return response.status_code in (200, 204)

    def get_name(self) -> str:
        return "discord"

    def _format_embed(self, payload: NotificationPayload) -> dict:
        return {
            "title": payload.message,
            "color": self.COLORS.get(payload.kind, 0x3498DB),
            "fields": [
                {"name": "Domain", "value": payload.domain, "inline": True},
                {"name": "Kind", "value": payload.kind.value, "inline": True},
                {"name": "Time", "value": payload.timestamp, "inline": True},
            ],
        }


class WebhookChannel:
    """Generic webhook notification channel using HTTP POST."""

    def __init__(self, config: WebhookConfig) -> None:
        self._url = config.url
        self._headers = config.headers.copy()

    async def send(self, payload: NotificationPayload) -> bool:
        """Send notification via HTTP POST webhook."""
        data = {
            "domain": payload.domain,
            "message": payload.message,
            "kind": payload.kind.value,
            "timestamp": payload.timestamp,
        }

        headers = {"Content-Type": "application/json"}
        headers.update(self._headers)

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self._url,
                    json=data,
                    headers=headers,
                    timeout=HTTP_TIMEOUT_SECONDS,
                )
            except httpx.HTTPError as e:
                raise _http_failure(self.get_name(), e) from e
            return 200 <= response.status_code < 300

    def get_name(self) -> str:
        return "webhook"


@dataclass
class RetryAttempt:
    """Record of a single delivery attempt."""

    attempt_number: int
    error: str
    timestamp: str


class NotificationRouter:
    """
    Delivers notifications to every registered channel.

    A channel that returns False or raises counts as a failed attempt and is
    retried through the RetryManager. With no channel registered, delivery
    is skipped and only logged.
    """

    COMPONENT = "NotificationRouter"

    def __init__(
        self,
        retry_manager: Optional[RetryManager] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        """
        Initialize the notification router.

        Args:
            retry_manager: Retry policy for each channel (defaults to RetryConfig())
            logger: Optional structured logger
        """
        self._channels: list[NotificationChannel] = []
        self._retry_manager = retry_manager or RetryManager(RetryConfig(), logger=logger)
        self._logger = logger

    def register_channel(self, channel: NotificationChannel) -> None:
        self._channels.append(channel)

    def unregister_channel(self, channel_name: str) -> bool:
        """Remove a channel by name; True if one was removed."""
        for i, channel in enumerate(self._channels):
            if channel.get_name() == channel_name:
                self._channels.pop(i)
                return True
        return False

    @property
    def channels(self) -> list[NotificationChannel]:
        return self._channels.copy()

    async def send(
        self,
        domain: str,
        message: str,
        kind: NotificationKind = NotificationKind.INFO,
    ) -> list[NotificationResult]:
        """
        Send a message about a domain to all channels.

        Returns:
            One NotificationResult per channel (empty when none is registered)
        """
        if self._logger:
            self._logger.info(self.COMPONENT, f"Notification for {domain}: {message}")

        if not self._channels:
            if self._logger:
                self._logger.info(self.COMPONENT, "No notification channel configured, skipping delivery")
            return []

        payload = NotificationPayload(domain=domain, message=message, kind=kind)
        results = []
        for channel in self._channels:
            results.append(await self._send_with_retry(channel, payload))
        return results

    async def _send_with_retry(
        self,
        channel: NotificationChannel,
        payload: NotificationPayload,
    ) -> NotificationResult:
        channel_name = channel.get_name()
        retry_attempts: list[RetryAttempt] = []

        async def attempt() -> bool:
            try:
                delivered = await channel.send(payload)
            except Exception as e:
                retry_attempts.append(self._record(len(retry_attempts) + 1, str(e)))
                raise
            if not delivered:
                retry_attempts.append(self._record(len(retry_attempts) + 1, "Channel returned failure"))
                raise NotificationError(
                    code="delivery_failed",
                    message=f"Channel '{channel_name}' returned failure",
                    details={"channel": channel_name},
                )
            return True

        result = await self._retry_manager.execute_with_retry(
            attempt,
            description=f"{channel_name} notification for {payload.domain}",
        )

        if result.success:
            if self._logger:
                self._logger.info(
                    self.COMPONENT,
                    f"Notification sent via {channel_name} for {payload.domain}",
                    {"attempts": result.attempts},
                )
            return NotificationResult(
                channel=channel_name,
                success=True,
                error=None,
                attempts=result.attempts,
            )

        self._log_all_retries_failed(channel_name, payload, retry_attempts)
        return NotificationResult(
            channel=channel_name,
            success=False,
            error=str(result.last_error) if result.last_error else None,
            attempts=result.attempts,
        )

    @staticmethod
    def _record(number: int, error: str) -> RetryAttempt:
        return RetryAttempt(
            attempt_number=number,
            error=error,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    def _log_all_retries_failed(
        self,
        channel_name: str,
        payload: NotificationPayload,
        retry_attempts: list[RetryAttempt],
    ) -> None:
        if self._logger is None:
            return

        self._logger.error(
            self.COMPONENT,
            f"All notification retries failed for channel '{channel_name}'",
            {
                "channel": channel_name,
                "domain": payload.domain,
                "kind": payload.kind.value,
                "timestamp": payload.timestamp,
                "total_attempts": len(retry_attempts),
                "attempts": [
                    {
                        "attempt": a.attempt_number,
                        "error": a.error,
                        "timestamp": a.timestamp,
                    }
                    for a in retry_attempts
                ],
            },
        )
