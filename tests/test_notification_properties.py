"""
Property-based tests for Notification Router module.

Uses Hypothesis for property-based testing of delivery, retries and failure
containment across notification channels.
"""

import asyncio
from dataclasses import dataclass
from io import StringIO

from hypothesis import given, settings
from hypothesis import strategies as st

from domain_monitor.config import DiscordConfig, EmailConfig, RetryConfig, TelegramConfig
from domain_monitor.enums import LogLevel, NotificationKind
from domain_monitor.logger import StructuredLogger
from domain_monitor.notifications import (
    DiscordChannel,
    EmailChannel,
    NotificationChannel,
    NotificationPayload,
    NotificationRouter,
    TelegramChannel,
)
from domain_monitor.retry_manager import RetryManager


# Test doubles for notification channels


@dataclass
class MockChannelConfig:
    """Configuration for mock channel behavior."""

    name: str
    should_succeed: bool = True
    fail_count: int = 0  # Number of times to fail before succeeding


class MockNotificationChannel:
    """Mock notification channel for testing."""

    def __init__(self, config: MockChannelConfig) -> None:
        self._config = config
        self._call_count = 0
        self._payloads: list[NotificationPayload] = []

    async def send(self, payload: NotificationPayload) -> bool:
        """Record the call and return configured result."""
        self._call_count += 1
        self._payloads.append(payload)

        if self._config.fail_count > 0 and self._call_count <= self._config.fail_count:
            return False

        return self._config.should_succeed

    def get_name(self) -> str:
        return self._config.name

    @property
    def call_count(self) -> int:
        return self._call_count

    @property
    def payloads(self) -> list[NotificationPayload]:
        return self._payloads.copy()


class FailingNotificationChannel:
    """Channel that always fails with an exception."""

    def __init__(self, name: str = "failing") -> None:
        self._name = name
        self.call_count = 0

    async def send(self, payload: NotificationPayload) -> bool:
        self.call_count += 1
        raise ConnectionError("channel unreachable")

    def get_name(self) -> str:
        return self._name


def make_router(attempts: int = 3, logger: StructuredLogger = None) -> NotificationRouter:
    manager = RetryManager(RetryConfig(max_attempts=attempts, base_delay_seconds=0.0, max_jitter_seconds=0.0))
    return NotificationRouter(retry_manager=manager, logger=logger)


def make_logger() -> StructuredLogger:
    return StructuredLogger(level=LogLevel.DEBUG, output_stream=StringIO())


class TestDeliveryProperty:
    """Property tests for delivery to registered channels."""

    @given(
        domain=st.from_regex(r"[a-z0-9]{1,12}\.(com|net|dev)", fullmatch=True),
        kind=st.sampled_from(list(NotificationKind)),
        channel_count=st.integers(min_value=1, max_value=4),
    )
    @settings(max_examples=50)
    def test_every_channel_receives_the_message(
        self, domain: str, kind: NotificationKind, channel_count: int
    ) -> None:
        """
        *For any* message, every registered channel SHALL receive one
        payload carrying the domain, message and kind.
        """
        router = make_router()
        channels = [MockNotificationChannel(MockChannelConfig(name=f"ch{i}")) for i in range(channel_count)]
        for channel in channels:
            router.register_channel(channel)

        message = f"Domain {domain} is now available!"
        results = asyncio.run(router.send(domain, message, kind))

        assert [r.channel for r in results] == [c.get_name() for c in channels]
        assert all(r.success and r.attempts == 1 for r in results)
        for channel in channels:
            payload = channel.payloads[0]
            assert (payload.domain, payload.message, payload.kind) == (domain, message, kind)

    @given(
        fail_count=st.integers(min_value=0, max_value=5),
        attempts=st.integers(min_value=1, max_value=5),
    )
    @settings(max_examples=50)
    def test_failed_attempts_are_retried(self, fail_count: int, attempts: int) -> None:
        """
        *For any* channel failing k times, delivery SHALL succeed on attempt
        k + 1 if the retry budget allows and report failure otherwise.
        """
        router = make_router(attempts)
        channel = MockNotificationChannel(MockChannelConfig(name="flaky", fail_count=fail_count))
        router.register_channel(channel)

        result = asyncio.run(router.send("example.com", "hello"))[0]

        if fail_count < attempts:
            assert result.success is True
            assert result.attempts == fail_count + 1
        else:
            assert result.success is False
            assert result.attempts == attempts
            assert "returned failure" in result.error
        assert channel.call_count == min(fail_count + 1, attempts)


class TestFailureContainment:

    def test_raising_channel_does_not_propagate(self) -> None:
        logger = make_logger()
        router = make_router(attempts=2, logger=logger)
        failing = FailingNotificationChannel()
        healthy = MockNotificationChannel(MockChannelConfig(name="healthy"))
        router.register_channel(failing)
        router.register_channel(healthy)

        results = asyncio.run(router.send("example.com", "Domain example.com expires in 3 days"))

        assert [r.success for r in results] == [False, True]
        assert failing.call_count == 2
        assert results[0].error == "channel unreachable"
        final = [e for e in logger.entries if e.level == LogLevel.ERROR]
        assert final[0].data["total_attempts"] == 2
        assert final[0].data["channel"] == "failing"

    def test_no_channels_only_logs(self) -> None:
        logger = make_logger()
        router = make_router(logger=logger)

        results = asyncio.run(router.send("example.com", "Domain example.com is now available!"))

        assert results == []
        messages = [e.message for e in logger.entries]
        assert messages == [
            "Notification for example.com: Domain example.com is now available!",
            "No notification channel configured, skipping delivery",
        ]

    def test_unregister_channel(self) -> None:
        router = make_router()
        router.register_channel(MockNotificationChannel(MockChannelConfig(name="a")))

        assert router.unregister_channel("a") is True
        assert router.unregister_channel("a") is False
        assert router.channels == []


class TestChannelFormatting:

    def test_channels_satisfy_protocol(self) -> None:
        assert isinstance(MockNotificationChannel(MockChannelConfig(name="m")), NotificationChannel)
        assert isinstance(TelegramChannel(TelegramConfig(bot_token="t", chat_id="1")), NotificationChannel)

    def test_email_uses_message_as_subject_and_body(self) -> None:
        channel = EmailChannel(EmailConfig(
            smtp_host="smtp.example.com",
            from_address="monitor@example.com",
            to_addresses=["ops@example.com", "dev@example.com"],
        ))
        payload = NotificationPayload(domain="example.com", message="Domain example.com expires in 5 days")

        msg = channel.format_email(payload)

        assert msg["Subject"] == "Domain example.com expires in 5 days"
        assert msg["To"] == "ops@example.com, dev@example.com"
        assert msg.get_payload(decode=True).decode("utf-8").startswith("Domain example.com expires in 5 days")

    def test_discord_color_follows_kind(self) -> None:
        channel = DiscordChannel(DiscordConfig(webhook_url="https://discord.invalid/hook"))
        payload = NotificationPayload(domain="a.com", message="m", kind=NotificationKind.EXPIRING)

        embed = channel._format_embed(payload)

        assert embed["color"] == DiscordChannel.COLORS[NotificationKind.EXPIRING]
        assert embed["title"] == "m"

    def test_telegram_message_names_domain(self) -> None:
        channel = TelegramChannel(TelegramConfig(bot_token="t", chat_id="1"))
        payload = NotificationPayload(domain="a.com", message="Domain a.com is now available!",
                                      kind=NotificationKind.AVAILABLE)

        text = channel._format_message(payload)

        assert "<code>a.com</code>" in text
        assert "Domain a.com is now available!" in text
