"""DNS over HTTP."""

from __future__ import annotations

import asyncio
import ipaddress
import logging

from aiohttp import web

from zendns.config import Config
from zendns.handler import Outcome, QueryHandler, _split_host_port

_log = logging.getLogger(__name__)

DEFAULT_DOH_ADDR = "0.0.0.0:8443"
BLOCKED_REPLY = b"Blocked"
DNSSEC_FAILED_REPLY = b"DNSSEC validation failed"


def make_doh_app(handler: QueryHandler) -> web.Application:
    """Build an app answering any request whose body is a wire-format query."""

    async def serve(request: web.Request) -> web.Response:
        try:
            body = await request.read()
        except (OSError, ValueError):
            body = b""
        resolution = await handler.resolve(body)
        if resolution.outcome in (Outcome.CACHED, Outcome.FORWARDED):
            reply = resolution.response or b""
        elif resolution.outcome is Outcome.BLOCKED:
            reply = BLOCKED_REPLY
        elif resolution.outcome is Outcome.DNSSEC_FAILED:
            reply = DNSSEC_FAILED_REPLY
        else:
            reply = b""
        return web.Response(body=reply)

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", serve)
    return app


async def run_doh_server(handler: QueryHandler, config: Config) -> None:
    """Serve DNS over HTTP on the configured address until cancelled."""
    addr = config.doh_listen_addr if config.doh_listen_addr is not None else DEFAULT_DOH_ADDR
    _log.info("DoH server running on %s", addr)
    try:
        host, port = _split_host_port(addr)
        ipaddress.ip_address(host)
    except ValueError as exc:
        raise ValueError(f"Invalid DoH listen address: {addr}") from exc
    if config.tls_cert is not None and config.tls_key is not None:
        _log.info(
            "Note: DoH server running over HTTP. For production, configure HTTPS with TLS."
        )
    runner = web.AppRunner(make_doh_app(handler))
    await runner.setup()
    try:
        site = web.TCPSite(runner, host, port)
        await site.start()
        await asyncio.get_running_loop().create_future()
    finally:
        await runner.cleanup()