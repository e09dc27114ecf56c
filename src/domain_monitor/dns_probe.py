"""
DNS availability probe.

This module answers one question about a domain: does an SOA query for it
come back with any answer records? It builds the query datagram by hand and
reads only the fixed 12-byte header of the reply.

Query layout (all integers big-endian):

    offset  size  field
    0       2     ID        (0x0001)
    2       2     FLAGS     (0x0100: standard query, recursion desired)
    4       2     QDCOUNT   (1)
    6       2     ANCOUNT   (0)
    8       2     NSCOUNT   (0)
    10      2     ARCOUNT   (0)
    12      n     QNAME     (length-prefixed labels, zero terminated)
    12+n    2     QTYPE     (6 = SOA)
    14+n    2     QCLASS    (1 = IN)

A reply with ANCOUNT == 0 means the domain has no SOA answer and is reported
available. The answer section is not decoded.
"""

import asyncio
import socket
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import idna

from .config import DEFAULT_FALLBACK_NAMESERVER, DEFAULT_RESOLV_CONF
from .enums import DNSErrorCode
from .exceptions import NetworkError, ProtocolError, ValidationError
from .logger import StructuredLogger


DNS_PORT = 53
DNS_HEADER_SIZE = 12
DNS_MAX_UDP_SIZE = 512
MAX_LABEL_LENGTH = 63

QTYPE_SOA = 6
QCLASS_IN = 1
DEFAULT_QUERY_ID = 0x0001
FLAGS_RECURSION_DESIRED = 0x0100

_HEADER = struct.Struct("!HHHHHH")


@dataclass
class DNSHeader:
    """Decoded fixed-size DNS message header."""

    query_id: int
    flags: int
    question_count: int
    answer_count: int
    authority_count: int
    additional_count: int

    @property
    def is_response(self) -> bool:
        return bool(self.flags & 0x8000)

    @property
    def rcode(self) -> int:
        return self.flags & 0x000F

    @classmethod
    def from_bytes(cls, data: bytes) -> "DNSHeader":
        """
        Decode the header at the start of a DNS message.

        Raises:
            ProtocolError: If fewer than 12 bytes are given
        """
        if len(data) < DNS_HEADER_SIZE:
            raise ProtocolError(
                code=DNSErrorCode.MALFORMED_RESPONSE.value,
                message=f"DNS response too short: {len(data)} bytes",
                details={"length": len(data)},
            )
        return cls(*_HEADER.unpack_from(data, 0))


def encode_name(domain: str) -> bytes:
    """
    Encode a domain name as length-prefixed labels ending in a zero byte.

    Non-ASCII names are converted with IDNA (UTS #46) first. A single
    trailing dot is accepted.

    Raises:
        ValidationError: On empty labels, labels over 63 octets, or names
            that IDNA rejects
    """
    name = domain.strip()
    if name.endswith("."):
        name = name[:-1]

    if not name:
        raise ValidationError(
            code=DNSErrorCode.INVALID_NAME.value,
            message="Domain name is empty",
            details={"domain": domain},
        )

    if not name.isascii():
        try:
            name = idna.encode(name, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise ValidationError(
                code=DNSErrorCode.INVALID_NAME.value,
                message=f"IDNA encoding failed: {e}",
                details={"domain": domain, "idna_error": str(e)},
            ) from e

    encoded = bytearray()
    for label in name.split("."):
        raw = label.encode("ascii")
        if not raw or len(raw) > MAX_LABEL_LENGTH:
            raise ValidationError(
                code=DNSErrorCode.INVALID_NAME.value,
                message=f"Invalid label {label!r} in {domain!r}",
                details={"domain": domain, "label": label},
            )
        encoded.append(len(raw))
        encoded.extend(raw)
    encoded.append(0)
    return bytes(encoded)


def build_query(
    domain: str,
    record_type: int = QTYPE_SOA,
    query_id: int = DEFAULT_QUERY_ID,
) -> bytes:
    """Build a single-question query datagram for ``domain``."""
    header = _HEADER.pack(query_id, FLAGS_RECURSION_DESIRED, 1, 0, 0, 0)
    return header + encode_name(domain) + struct.pack("!HH", record_type, QCLASS_IN)


def parse_answer_count(response: bytes) -> int:
    """Return the ANCOUNT field of a reply."""
    return DNSHeader.from_bytes(response).answer_count


def read_nameserver(
    path: Path = DEFAULT_RESOLV_CONF,
    fallback: str = DEFAULT_FALLBACK_NAMESERVER,
) -> str:
    """Return the first ``nameserver`` in a resolv.conf file, else ``fallback``."""
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return fallback

    for line in text.splitlines():
        fields = line.split()
        if len(fields) >= 2 and fields[0] == "nameserver":
            return fields[1]
    return fallback


class DNSProber:
    """
    SOA-based availability prober.

    Each probe reads the resolver configuration, sends one UDP query and
    decides availability from the reply's answer count. Errors are raised
    and never mean "available".
    """

    COMPONENT = "DNSProber"

    def __init__(
        self,
        timeout_seconds: float = 5.0,
        resolv_conf_path: Path = DEFAULT_RESOLV_CONF,
        fallback_nameserver: str = DEFAULT_FALLBACK_NAMESERVER,
        port: int = DNS_PORT,
        query_id: int = DEFAULT_QUERY_ID,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        """
        Initialize the prober.

        Args:
            timeout_seconds: Deadline for one query/reply exchange
            resolv_conf_path: Resolver configuration file to read
            fallback_nameserver: Resolver used when the file has no entry
            port: Resolver UDP port
            query_id: Transaction ID written into every query
            logger: Optional structured logger
        """
        self._timeout = timeout_seconds
        self._resolv_conf_path = resolv_conf_path
        self._fallback = fallback_nameserver
        self._port = port
        self._query_id = query_id
        self._logger = logger

    def nameserver(self) -> str:
        return read_nameserver(self._resolv_conf_path, self._fallback)

    async def is_available(self, domain: str) -> bool:
        """
        Report whether ``domain`` has no SOA answer.

        Raises:
            ValidationError: If the name cannot be encoded
            NetworkError: On socket failures or when the deadline passes
            ProtocolError: If the reply is shorter than a DNS header
        """
        query = build_query(domain, QTYPE_SOA, self._query_id)
        server = self.nameserver()

        loop = asyncio.get_running_loop()
        try:
            response = await asyncio.wait_for(
                loop.run_in_executor(None, self._exchange, server, query),
                timeout=self._timeout,
            )
        except (socket.timeout, asyncio.TimeoutError) as e:
            raise NetworkError(
                code=DNSErrorCode.TIMEOUT.value,
                message=f"DNS query for {domain} timed out after {self._timeout}s",
                details={"domain": domain, "server": server},
            ) from e
        except OSError as e:
            raise NetworkError(
                code=DNSErrorCode.NETWORK_ERROR.value,
                message=f"DNS query for {domain} failed: {e}",
                details={"domain": domain, "server": server},
            ) from e

        header = DNSHeader.from_bytes(response)
        if self._logger:
            self._logger.debug(
                self.COMPONENT,
                f"SOA reply for {domain}",
                {
                    "server": server,
                    "id": header.query_id,
                    "rcode": header.rcode,
                    "answers": header.answer_count,
                },
            )
        return header.answer_count == 0

    def _exchange(self, server: str, query: bytes) -> bytes:
        family, socktype, proto, _, address = socket.getaddrinfo(
            server, self._port, type=socket.SOCK_DGRAM
        )[0]
        with socket.socket(family, socktype, proto) as sock:
            sock.settimeout(self._timeout)
            sock.connect(address)
            sock.send(query)
            return sock.recv(DNS_MAX_UDP_SIZE)
