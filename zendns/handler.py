"""Transport-independent query handling: cache, blocklist, upstream, DNSSEC."""

from __future__ import annotations

import asyncio
import enum
import logging
import socket
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

import dns.exception
import dns.flags
import dns.message
import dns.rcode

from zendns.blocklist import Blocklist
from zendns.dnssec import DnssecValidator

_log = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 60.0
MAX_UDP_SIZE = 512
DEFAULT_UPSTREAM_TIMEOUT = 5.0


class DnsCache:
    """Responses keyed by domain, each kept for a fixed time to live."""

    def __init__(
        self, ttl: float = DEFAULT_CACHE_TTL, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[bytes, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> bytes | None:
        """Return the live response for key; an expired entry is dropped."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            response, expiry = entry
            if self._clock() < expiry:
                return response
            del self._entries[key]
            return None

    def put(self, key: str, value: bytes) -> None:
        """Store a response that expires ttl seconds from now."""
        with self._lock:
            self._entries[key] = (bytes(value), self._clock() + self.ttl)


class Outcome(enum.Enum):
    INVALID = "invalid"
    CACHED = "cached"
    BLOCKED = "blocked"
    NO_RESPONSE = "no_response"
    DNSSEC_FAILED = "dnssec_failed"
    FORWARDED = "forwarded"


@dataclass(frozen=True)
class Resolution:
    """What became of one query; the transport decides what to send back."""

    outcome: Outcome
    domain: str = ""
    message: dns.message.Message | None = None
    response: bytes | None = None


def refused_response(message: dns.message.Message) -> bytes:
    """Build a REFUSED reply carrying the query's id, opcode and questions."""
    reply = dns.message.Message(id=message.id)
    reply.flags = dns.flags.QR
    reply.set_opcode(message.opcode())
    reply.set_rcode(dns.rcode.REFUSED)
    reply.question = list(message.question)
    try:
        return reply.to_wire()
    except dns.exception.DNSException:
        return b""


def _split_host_port(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise ValueError(f"invalid address: {address!r}")
    return host.strip("[]"), int(port)


async def forward_query(
    query_bytes: bytes,
    upstream_addr: str,
    timeout: float | None = DEFAULT_UPSTREAM_TIMEOUT,
) -> bytes | None:
    """Send a query over UDP and return up to 512 bytes of reply, or None."""
    loop = asyncio.get_running_loop()
    try:
        host, port = _split_host_port(upstream_addr)
        infos = await loop.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
        family, _, _, _, address = infos[0]
        with socket.socket(family, socket.SOCK_DGRAM) as sock:
            sock.setblocking(False)
            sock.bind(("::", 0) if family == socket.AF_INET6 else ("0.0.0.0", 0))
            await loop.sock_sendto(sock, query_bytes, address)
            data, _ = await asyncio.wait_for(
                loop.sock_recvfrom(sock, MAX_UDP_SIZE), timeout
            )
    except (OSError, asyncio.TimeoutError, ValueError) as exc:
        _log.warning("Upstream %s gave no response: %s", upstream_addr, exc)
        return None
    return data


class QueryHandler:
    """Runs one raw DNS query through cache, blocklist, upstream and DNSSEC."""

    def __init__(
        self,
        blocklist: Blocklist,
        cache: DnsCache,
        dnssec: DnssecValidator,
        upstream_addr: str,
        timeout: float | None = DEFAULT_UPSTREAM_TIMEOUT,
    ) -> None:
        self.blocklist = blocklist
        self.cache = cache
        self.dnssec = dnssec
        self.upstream_addr = upstream_addr
        self.timeout = timeout

    async def resolve(self, query_bytes: bytes) -> Resolution:
        """Decide the answer to one wire-format query."""
        try:
            message = dns.message.from_wire(query_bytes)
        except (dns.exception.DNSException, ValueError):
            return Resolution(Outcome.INVALID)

        domain = message.question[0].name.to_text() if message.question else ""

        cached = self.cache.get(domain)
        if cached is not None:
            return Resolution(Outcome.CACHED, domain, message, cached)

        if self.blocklist.is_blocked(domain):
            return Resolution(Outcome.BLOCKED, domain, message)

        response = await forward_query(query_bytes, self.upstream_addr, self.timeout)
        if response is None:
            return Resolution(Outcome.NO_RESPONSE, domain, message)

        if message.question and not await self.dnssec.validate(
            domain, message.question[0].rdtype
        ):
            return Resolution(Outcome.DNSSEC_FAILED, domain, message)

        self.cache.put(domain, response)
        return Resolution(Outcome.FORWARDED, domain, message, response)