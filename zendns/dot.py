"""DNS over TLS."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import ssl
from pathlib import Path

from zendns.config import Config, ConfigError
from zendns.handler import MAX_UDP_SIZE, Outcome, QueryHandler, _split_host_port

_log = logging.getLogger(__name__)

DEFAULT_DOT_ADDR = "0.0.0.0:853"
BLOCKED_REPLY = b"Blocked"


def load_tls_context(cert_path: str | Path, key_path: str | Path) -> ssl.SSLContext:
    """Build a server TLS context from PEM certificate and key files."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
    return context


async def handle_dot_connection(
    handler: QueryHandler,
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
) -> None:
    """Read one query from the stream, write the answer and close it."""
    try:
        try:
            data = await reader.read(MAX_UDP_SIZE)
        except OSError:
            return
        resolution = await handler.resolve(data)
        if resolution.outcome in (Outcome.CACHED, Outcome.FORWARDED):
            reply = resolution.response
        elif resolution.outcome is Outcome.BLOCKED:
            reply = BLOCKED_REPLY
        else:
            reply = None
        if reply is not None:
            writer.write(reply)
            with contextlib.suppress(OSError):
                await writer.drain()
    finally:
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()


async def run_dot_server(handler: QueryHandler, config: Config) -> None:
    """Serve DNS over TLS on the configured address until cancelled."""
    addr = config.dot_listen_addr if config.dot_listen_addr is not None else DEFAULT_DOT_ADDR
    _log.info("DoT server running on %s", addr)
    if config.tls_cert is None:
        raise ConfigError("TLS cert required for DoT")
    if config.tls_key is None:
        raise ConfigError("TLS key required for DoT")
    context = load_tls_context(config.tls_cert, config.tls_key)
    host, port = _split_host_port(addr)
    server = await asyncio.start_server(
        functools.partial(handle_dot_connection, handler), host, port, ssl=context
    )
    async with server:
        await server.serve_forever()