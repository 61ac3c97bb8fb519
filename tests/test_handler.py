import asyncio
import contextlib

import dns.flags
import dns.message
import dns.opcode
import dns.rcode
import dns.rrset
import pytest

from zendns.blocklist import Blocklist
from zendns.dnssec import DnssecValidator
from zendns.handler import (
    DnsCache,
    Outcome,
    QueryHandler,
    forward_query,
    refused_response,
)


class _Upstream(asyncio.DatagramProtocol):
    def __init__(self, reply):
        self.reply = reply
        self.queries = []
        self.transport = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.queries.append(data)
        payload = self.reply(data)
        if payload is not None:
            self.transport.sendto(payload, addr)


@contextlib.asynccontextmanager
async def upstream(reply):
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(
        lambda: _Upstream(reply), local_addr=("127.0.0.1", 0)
    )
    try:
        host, port = transport.get_extra_info("sockname")[:2]
        yield protocol, f"{host}:{port}"
    finally:
        transport.close()


def _silent(data):
    return None


def _answer(data):
    query = dns.message.from_wire(data)
    response = dns.message.make_response(query)
    response.answer.append(
        dns.rrset.from_text(query.question[0].name, 300, "IN", "A", "192.0.2.1")
    )
    return response.to_wire()


def _query(name="www.example.com."):
    return dns.message.make_query(name, "A")


def _handler(tmp_path, address, blocked=(), cache=None, timeout=1.0):
    return QueryHandler(
        Blocklist(blocked),
        cache if cache is not None else DnsCache(),
        DnssecValidator(tmp_path),
        address,
        timeout=timeout,
    )


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_cache_missing_key():
    assert DnsCache().get("example.com.") is None


def test_cache_put_get_and_expiry():
    clock = _Clock()
    cache = DnsCache(ttl=60, clock=clock)
    cache.put("example.com.", b"data")
    clock.now = 59.9
    assert cache.get("example.com.") == b"data"
    clock.now = 60.0
    assert cache.get("example.com.") is None
    assert len(cache) == 0


def test_refused_response_mirrors_query():
    query = _query("ads.example.com.")
    reply = dns.message.from_wire(refused_response(query))
    assert reply.id == query.id
    assert reply.rcode() == dns.rcode.REFUSED
    assert reply.opcode() == dns.opcode.QUERY
    assert reply.flags & dns.flags.QR
    assert not reply.flags & dns.flags.RD
    assert reply.question == query.question
    assert reply.answer == []


@pytest.mark.asyncio
async def test_forward_query_truncates_to_512():
    async with upstream(lambda data: b"x" * 1000) as (_, address):
        data = await forward_query(b"query", address, timeout=1.0)
    assert data == b"x" * 512


@pytest.mark.asyncio
async def test_forward_query_timeout_returns_none():
    async with upstream(_silent) as (protocol, address):
        data = await forward_query(b"query", address, timeout=0.2)
    assert data is None
    assert protocol.queries == [b"query"]


@pytest.mark.asyncio
async def test_forward_query_bad_address_returns_none():
    assert await forward_query(b"query", "not-an-address", timeout=0.2) is None


@pytest.mark.asyncio
async def test_invalid_query(tmp_path):
    result = await _handler(tmp_path, "127.0.0.1:1").resolve(b"\x01\x02")
    assert result.outcome is Outcome.INVALID
    assert result.response is None


@pytest.mark.asyncio
async def test_forward_then_cache(tmp_path):
    wire = _query().to_wire()
    async with upstream(_answer) as (protocol, address):
        handler = _handler(tmp_path, address)
        first = await handler.resolve(wire)
        second = await handler.resolve(wire)
    assert first.outcome is Outcome.FORWARDED
    assert first.domain == "www.example.com."
    assert dns.message.from_wire(first.response).id == dns.message.from_wire(wire).id
    assert second.outcome is Outcome.CACHED
    assert second.response == first.response
    assert len(protocol.queries) == 1


@pytest.mark.asyncio
async def test_expired_cache_forwards_again(tmp_path):
    clock = _Clock()
    wire = _query().to_wire()
    async with upstream(_answer) as (protocol, address):
        handler = _handler(tmp_path, address, cache=DnsCache(ttl=60, clock=clock))
        await handler.resolve(wire)
        clock.now = 61.0
        result = await handler.resolve(wire)
    assert result.outcome is Outcome.FORWARDED
    assert len(protocol.queries) == 2


@pytest.mark.asyncio
async def test_blocked_domain_is_not_forwarded(tmp_path):
    query = _query("ads.example.com.")
    async with upstream(_answer) as (protocol, address):
        handler = _handler(tmp_path, address, blocked=["ads.example.com."])
        result = await handler.resolve(query.to_wire())
    assert result.outcome is Outcome.BLOCKED
    assert protocol.queries == []
    reply = dns.message.from_wire(refused_response(result.message))
    assert reply.rcode() == dns.rcode.REFUSED
    assert reply.id == query.id


@pytest.mark.asyncio
async def test_silent_upstream_gives_no_response(tmp_path):
    async with upstream(_silent) as (_, address):
        handler = _handler(tmp_path, address, timeout=0.2)
        result = await handler.resolve(_query().to_wire())
    assert result.outcome is Outcome.NO_RESPONSE
    assert len(handler.cache) == 0