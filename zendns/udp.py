"""Plain DNS over UDP."""

from __future__ import annotations

import asyncio
import logging

from zendns.handler import (
    MAX_UDP_SIZE,
    Outcome,
    QueryHandler,
    Resolution,
    _split_host_port,
    refused_response,
)

_log = logging.getLogger(__name__)


def _reply_for(resolution: Resolution) -> bytes | None:
    if resolution.outcome in (Outcome.CACHED, Outcome.FORWARDED):
        return resolution.response
    if resolution.outcome is Outcome.BLOCKED and resolution.message is not None:
        return refused_response(resolution.message)
    return None


class DnsUdpProtocol(asyncio.DatagramProtocol):
    """Answers each incoming datagram through a QueryHandler."""

    def __init__(self, handler: QueryHandler) -> None:
        self.handler = handler
        self.transport: asyncio.DatagramTransport | None = None
        self._tasks: set[asyncio.Task] = set()

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr) -> None:
        task = asyncio.get_running_loop().create_task(
            self._answer(data[:MAX_UDP_SIZE], addr)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def connection_lost(self, exc: Exception | None) -> None:
        for task in list(self._tasks):
            task.cancel()

    async def _answer(self, data: bytes, addr) -> None:
        resolution = await self.handler.resolve(data)
        reply = _reply_for(resolution)
        if reply is None or self.transport is None or self.transport.is_closing():
            return
        self.transport.sendto(reply, addr)


async def run_udp_server(handler: QueryHandler, listen_addr: str) -> None:
    """Serve DNS over UDP on listen_addr until cancelled."""
    host, port = _split_host_port(listen_addr)
    _log.info("UDP DNS server running on %s", listen_addr)
    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(
        lambda: DnsUdpProtocol(handler), local_addr=(host, port)
    )
    try:
        await loop.create_future()
    finally:
        transport.close()