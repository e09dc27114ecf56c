"""
WHOIS client and WHOIS text parser.

The client speaks the plain port-43 protocol: pick a server for the TLD,
send the domain followed by CRLF, read until the server closes. TLDs missing
from the built-in table are resolved through the IANA referral server.

The parser hands the reply to python-whois and renders the expiration it
finds as RFC 3339 so that ``expiration.parse_expiration`` can read it.
"""

import asyncio
import socket
from datetime import datetime, timezone
from typing import Any, Optional

from whois.exceptions import PywhoisError
from whois.parser import WhoisEntry

from .enums import WHOISErrorCode
from .exceptions import NetworkError, ProtocolError
from .expiration import format_rfc3339
from .logger import StructuredLogger


WHOIS_PORT = 43
IANA_WHOIS_SERVER = "whois.iana.org"

# Replies that mean the registry has no record of the domain
NO_MATCH_SIGNALS: tuple[str, ...] = (
    "No match for",
    "NOT FOUND",
    "No Data Found",
    "No entries found",
    "Status: free",
    "Status: AVAILABLE",
    "Not found:",
    "Domain not found",
)


def _not_found_signal(raw: str) -> Optional[str]:
    lowered = raw.lower()
    for signal in NO_MATCH_SIGNALS:
        if signal.lower() in lowered:
            return signal
    return None


def _render_expiration(value: Any) -> str:
    # python-whois yields naive datetimes in UTC, or the raw text when no format matched
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return format_rfc3339(value.astimezone(timezone.utc))
    return str(value).strip()


def parse_whois_text(domain: str, raw: str) -> str:
    """
    Extract the expiration field from a WHOIS reply.

    The reply is parsed with python-whois, which picks the registry specific
    field layout from the domain's TLD.

    Args:
        domain: Domain the reply belongs to
        raw: Full WHOIS response text

    Returns:
        The expiration as RFC 3339 text, or the registry's text when
        python-whois could not read it as a date

    Raises:
        ProtocolError: empty_response, not_found, invalid_date or missing_expiration
    """
    if not raw or not raw.strip():
        raise ProtocolError(
            code=WHOISErrorCode.EMPTY_RESPONSE.value,
            message="WHOIS response is empty",
        )

    try:
        entry = WhoisEntry.load(domain, raw)
        if "expiration_date" not in entry:
            entry.parse()
        expiration = entry.get("expiration_date")
    except PywhoisError as e:
        signal = _not_found_signal(raw)
        if signal:
            raise ProtocolError(
                code=WHOISErrorCode.NOT_FOUND.value,
                message="WHOIS server has no record for the domain",
                details={"signal": signal},
            ) from e
        raise ProtocolError(
            code=WHOISErrorCode.INVALID_DATE.value,
            message=f"WHOIS response could not be parsed: {e}",
            details={"domain": domain},
        ) from e

    if isinstance(expiration, list):
        expiration = expiration[0] if expiration else None
    if expiration:
        return _render_expiration(expiration)

    signal = _not_found_signal(raw)
    if signal:
        raise ProtocolError(
            code=WHOISErrorCode.NOT_FOUND.value,
            message="WHOIS server has no record for the domain",
            details={"signal": signal},
        )

    raise ProtocolError(
        code=WHOISErrorCode.MISSING_EXPIRATION.value,
        message="WHOIS response has no expiration field",
    )


class WHOISClient:
    """
    Port-43 WHOIS client.

    Every network failure surfaces as NetworkError so that callers can
    retry transport problems and nothing else.
    """

    COMPONENT = "WHOISClient"

    # Default WHOIS servers per TLD
    WHOIS_SERVERS: dict[str, str] = {
        "com": "whois.verisign-grs.com",
        "net": "whois.verisign-grs.com",
        "org": "whois.pir.org",
        "info": "whois.afilias.net",
        "biz": "whois.biz",
        "io": "whois.nic.io",
        "co": "whois.nic.co",
        "me": "whois.nic.me",
        "dev": "whois.nic.google",
        "app": "whois.nic.google",
        "eu": "whois.eu",
        "de": "whois.denic.de",
        "uk": "whois.nic.uk",
        "nl": "whois.domain-registry.nl",
    }

    def __init__(
        self,
        timeout: float = 10.0,
        custom_servers: Optional[dict[str, str]] = None,
        port: int = WHOIS_PORT,
        referral_server: str = IANA_WHOIS_SERVER,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        """
        Initialize the WHOIS client.

        Args:
            timeout: Deadline for one query in seconds
            custom_servers: Optional WHOIS servers per TLD, merged over the defaults
            port: TCP port used for every server
            referral_server: Server asked for TLDs missing from the table
            logger: Optional structured logger
        """
        self._timeout = timeout
        self._port = port
        self._referral_server = referral_server
        self._logger = logger

        self._servers = dict(self.WHOIS_SERVERS)
        if custom_servers:
            self._servers.update({k.lower(): v for k, v in custom_servers.items()})

    async def lookup(self, domain: str) -> str:
        """
        Fetch the raw WHOIS reply for a domain.

        Raises:
            NetworkError: When no server is known or the exchange fails
        """
        server = await self.resolve_server(domain)
        if self._logger:
            self._logger.debug(self.COMPONENT, f"Querying {server} for {domain}")
        return await self.query(domain, server)

    async def resolve_server(self, domain: str) -> str:
        """Return the WHOIS server for the domain's TLD, asking IANA if needed."""
        tld = self._extract_tld(domain)
        server = self._servers.get(tld)
        if server:
            return server

        referral = await self.query(tld, self._referral_server)
        server = self._parse_referral(referral)
        if not server:
            raise NetworkError(
                code=WHOISErrorCode.NO_SERVER.value,
                message=f"No WHOIS server known for TLD: {tld}",
                details={"domain": domain, "tld": tld},
            )

        self._servers[tld] = server
        return server

    async def query(self, text: str, server: str) -> str:
        """
        Send one query line to a server and read the reply to EOF.

        Raises:
            NetworkError: timeout or network_error
        """
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, self._sync_query, text, server),
                timeout=self._timeout,
            )
        except (socket.timeout, asyncio.TimeoutError) as e:
            raise NetworkError(
                code=WHOISErrorCode.TIMEOUT.value,
                message=f"WHOIS query to {server} timed out after {self._timeout}s",
                details={"server": server, "query": text},
            ) from e
        except OSError as e:
            raise NetworkError(
                code=WHOISErrorCode.NETWORK_ERROR.value,
                message=f"Socket error talking to {server}: {e}",
                details={"server": server, "query": text},
            ) from e

    def _sync_query(self, text: str, server: str) -> str:
        with socket.create_connection((server, self._port), timeout=self._timeout) as sock:
            sock.sendall(f"{text}\r\n".encode("utf-8"))

            response_parts: list[bytes] = []
            while True:
                data = sock.recv(4096)
                if not data:
                    break
                response_parts.append(data)

        return b"".join(response_parts).decode("utf-8", errors="replace")

    @staticmethod
    def _parse_referral(raw: str) -> Optional[str]:
        for line in raw.splitlines():
            key, sep, value = line.partition(":")
            if sep and key.strip().lower() in ("refer", "whois") and value.strip():
                return value.strip()
        return None

    @staticmethod
    def _extract_tld(domain: str) -> str:
        parts = domain.strip().rstrip(".").lower().split(".")
        return parts[-1] if parts else ""

    def get_supported_tlds(self) -> list[str]:
        """Return list of TLDs with a known WHOIS server."""
        return list(self._servers.keys())
