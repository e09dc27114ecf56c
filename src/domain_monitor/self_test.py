"""
Startup self-test for the domain monitor.

Validates the configuration and, when it is usable, checks that the DNS
resolver and the WHOIS service answer for a domain known to be registered.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional

from .config import MonitorConfig
from .dns_probe import DNSProber
from .enums import LogLevel
from .exceptions import DomainMonitorError
from .logger import StructuredLogger
from .whois_client import WHOISClient, parse_whois_text


REFERENCE_DOMAIN = "example.com"


@dataclass
class EndpointTestResult:
    """Result of testing a single endpoint."""

    endpoint: str
    endpoint_type: str  # 'dns', 'whois'
    success: bool
    response_time_ms: float
    error: Optional[str] = None


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class SelfTestResult:
    """Complete self-test result."""

    success: bool
    config_validation: ConfigValidationResult
    endpoint_results: list[EndpointTestResult] = field(default_factory=list)
    total_duration_ms: float = 0.0

    @property
    def failed_endpoints(self) -> list[EndpointTestResult]:
        return [r for r in self.endpoint_results if not r.success]


def validate_config(config: MonitorConfig) -> ConfigValidationResult:
    """
    Validate a monitor configuration.

    Returns:
        ConfigValidationResult with errors (fatal) and warnings
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not [d for d in config.domains if d.strip()]:
        warnings.append("No domains configured - nothing will be monitored")

    if config.threshold_days < 0:
        errors.append(f"threshold_days must not be negative: {config.threshold_days}")

    if config.concurrency < 1:
        errors.append(f"concurrency must be at least 1: {config.concurrency}")

    if config.timeout_seconds <= 0:
        errors.append(f"timeout must be positive: {config.timeout_seconds}")

    if config.retry.base_delay_seconds < 0:
        errors.append(f"backoff must not be negative: {config.retry.base_delay_seconds}")

    if config.retry.max_attempts < 1:
        warnings.append("retries is less than 1 - WHOIS will never be queried")

    email = config.notifications.email
    if email is not None:
        if not 0 < email.smtp_port < 65536:
            errors.append(f"Invalid SMTP port: {email.smtp_port}")
        if not email.is_complete:
            warnings.append("Email partially configured (host, sender and recipient are required)")

    if config.logging.output_format not in ("json", "text", "both"):
        errors.append(f"Unsupported log format: {config.logging.output_format}")

    return ConfigValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


class SelfTest:
    """
    Startup self-test.

    Performs:
    1. Configuration validation
    2. An SOA probe of the reference domain through the configured resolver
    3. A WHOIS lookup of the reference domain
    """

    COMPONENT = "SelfTest"

    def __init__(
        self,
        config: MonitorConfig,
        prober: DNSProber,
        whois_client: WHOISClient,
        logger: Optional[StructuredLogger] = None,
        reference_domain: str = REFERENCE_DOMAIN,
    ) -> None:
        self._config = config
        self._prober = prober
        self._whois_client = whois_client
        self._logger = logger
        self._reference_domain = reference_domain

    async def run(self) -> SelfTestResult:
        """
        Run the complete self-test.

        Endpoint probes are skipped when the configuration is invalid.
        """
        start_time = time.perf_counter()

        config_result = self.validate_config()
        if not config_result.valid:
            return SelfTestResult(
                success=False,
                config_validation=config_result,
                total_duration_ms=self._elapsed_ms(start_time),
            )

        endpoint_results = list(await asyncio.gather(
            self._test_dns(),
            self._test_whois(),
        ))

        result = SelfTestResult(
            success=all(r.success for r in endpoint_results),
            config_validation=config_result,
            endpoint_results=endpoint_results,
            total_duration_ms=self._elapsed_ms(start_time),
        )

        if self._logger:
            self._logger.log(
                LogLevel.INFO if result.success else LogLevel.ERROR,
                self.COMPONENT,
                "Self-test passed" if result.success else "Self-test failed",
                {"failed": [r.endpoint for r in result.failed_endpoints]},
            )
        return result

    def validate_config(self) -> ConfigValidationResult:
        return validate_config(self._config)

    async def _test_dns(self) -> EndpointTestResult:
        start_time = time.perf_counter()
        endpoint = f"{self._prober.nameserver()}:53"
        try:
            available = await self._prober.is_available(self._reference_domain)
        except DomainMonitorError as e:
            return EndpointTestResult(
                endpoint=endpoint,
                endpoint_type="dns",
                success=False,
                response_time_ms=self._elapsed_ms(start_time),
                error=e.message,
            )

        return EndpointTestResult(
            endpoint=endpoint,
            endpoint_type="dns",
            success=not available,
            response_time_ms=self._elapsed_ms(start_time),
            error=f"No SOA answer for {self._reference_domain}" if available else None,
        )

    async def _test_whois(self) -> EndpointTestResult:
        start_time = time.perf_counter()
        endpoint = "whois"
        try:
            endpoint = f"{await self._whois_client.resolve_server(self._reference_domain)}:43"
            raw = await self._whois_client.lookup(self._reference_domain)
            parse_whois_text(self._reference_domain, raw)
        except DomainMonitorError as e:
            return EndpointTestResult(
                endpoint=endpoint,
                endpoint_type="whois",
                success=False,
                response_time_ms=self._elapsed_ms(start_time),
                error=e.message,
            )

        return EndpointTestResult(
            endpoint=endpoint,
            endpoint_type="whois",
            success=True,
            response_time_ms=self._elapsed_ms(start_time),
        )

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return (time.perf_counter() - start_time) * 1000

    def print_results(self, result: SelfTestResult) -> None:
        """Print self-test results to stdout."""
        print("Domain Monitor Self-Test")
        print("=" * 60)

        print("\nConfiguration:")
        if result.config_validation.valid:
            print("  ✓ Configuration is valid")
        else:
            print("  ✗ Configuration is invalid")
            for error in result.config_validation.errors:
                print(f"    - {error}")

        if result.config_validation.warnings:
            print("\n  Warnings:")
            for warning in result.config_validation.warnings:
                print(f"    - {warning}")

        if result.endpoint_results:
            print("\nConnectivity:")
            for endpoint_result in result.endpoint_results:
                status = "✓" if endpoint_result.success else "✗"
                print(
                    f"  {status} {endpoint_result.endpoint_type.upper()}: "
                    f"{endpoint_result.endpoint} "
                    f"({endpoint_result.response_time_ms:.0f}ms)"
                )
                if endpoint_result.error:
                    print(f"      Error: {endpoint_result.error}")

        print(f"\n{'-' * 60}")
        print("✓ Self-test passed" if result.success else "✗ Self-test failed")
        print(f"  Duration: {result.total_duration_ms:.0f}ms")
