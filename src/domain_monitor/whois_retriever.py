"""
WHOIS retriever: transport retries followed by expiration parsing.

Only transport failures are retried. Once a reply arrives, a parse failure
ends the call.
"""

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from .enums import WHOISErrorCode
from .exceptions import NetworkError
from .expiration import parse_expiration
from .logger import StructuredLogger
from .retry_manager import RetryManager
from .whois_client import parse_whois_text


@runtime_checkable
class WHOISTransport(Protocol):
    """Anything that returns raw WHOIS text for a domain."""

    async def lookup(self, domain: str) -> str:
        ...


def is_transport_error(error: Exception) -> bool:
    return isinstance(error, NetworkError)


class WHOISRetriever:
    """Fetches and parses a domain's expiration date."""

    COMPONENT = "WHOISRetriever"

    def __init__(
        self,
        transport: WHOISTransport,
        retry_manager: RetryManager,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._transport = transport
        self._retry_manager = retry_manager
        self._logger = logger

    async def fetch_raw(self, domain: str) -> str:
        """
        Return raw WHOIS text, retrying transport failures.

        Raises:
            NetworkError: retries_exhausted once every attempt failed
            Exception: Any non-transport error from the transport, unchanged
        """
        result = await self._retry_manager.execute_with_retry(
            lambda: self._transport.lookup(domain),
            is_retryable=is_transport_error,
            description=f"WHOIS lookup for {domain}",
        )

        if result.success:
            return result.result

        last_error = result.last_error
        if last_error is not None and not is_transport_error(last_error):
            raise last_error

        if self._logger:
            self._logger.warning(
                self.COMPONENT,
                f"WHOIS failed for {domain} after {result.attempts} attempts",
                {"last_error": str(last_error) if last_error else None},
            )
        raise NetworkError(
            code=WHOISErrorCode.RETRIES_EXHAUSTED.value,
            message=f"WHOIS lookup for {domain} failed after {result.attempts} attempts",
            details={
                "domain": domain,
                "attempts": result.attempts,
                "last_error": str(last_error) if last_error else None,
            },
        )

    async def fetch_expiration(self, domain: str) -> datetime:
        """
        Fetch WHOIS text and parse its expiration date.

        Raises:
            NetworkError: If the transport never succeeded
            ProtocolError: If the reply has no usable expiration
        """
        raw = await self.fetch_raw(domain)
        expiration = parse_expiration(parse_whois_text(domain, raw))
        if self._logger:
            self._logger.debug(
                self.COMPONENT,
                f"Parsed expiration for {domain}",
                {"expiration": expiration.isoformat()},
            )
        return expiration
