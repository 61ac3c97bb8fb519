"""Starting the resolver's listeners and background tasks."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

from zendns.blocklist import Blocklist, load_blocklist
from zendns.config import Config, ConfigError, load_config
from zendns.dnssec import DnssecValidator
from zendns.doh import run_doh_server
from zendns.dot import run_dot_server
from zendns.handler import DnsCache, QueryHandler
from zendns.udp import run_udp_server

_log = logging.getLogger(__name__)


def _report(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _log.error("%s task failed: %s", task.get_name(), exc)


async def _wait_for_interrupt() -> None:
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    try:
        loop.add_signal_handler(signal.SIGINT, stop.set)
    except (NotImplementedError, RuntimeError, ValueError):
        await loop.create_future()
        return
    try:
        await stop.wait()
    finally:
        loop.remove_signal_handler(signal.SIGINT)


async def start(config: Config, blocklist: Blocklist) -> None:
    """Run the enabled listeners and background updates until Ctrl+C."""
    _log.info("Starting DNS resolver...")
    handler = QueryHandler(blocklist, DnsCache(), DnssecValidator(), config.upstream_addr)

    jobs: list[tuple[str, Coroutine[Any, Any, Any]]] = []
    if config.enable_udp is None or config.enable_udp:
        jobs.append(("udp", run_udp_server(handler, config.listen_addr)))
    if config.enable_dot:
        jobs.append(("dot", run_dot_server(handler, config)))
    if config.enable_doh:
        jobs.append(("doh", run_doh_server(handler, config)))
    jobs.append(("blocklist", blocklist.periodic_update(config.blocklist_sources or [])))
    jobs.append(("root-hints", handler.dnssec.update_root_hints()))

    loop = asyncio.get_running_loop()
    tasks = []
    for name, job in jobs:
        task = loop.create_task(job, name=name)
        task.add_done_callback(_report)
        tasks.append(task)

    _log.info("DNS resolver started successfully. Press Ctrl+C to stop.")
    try:
        await _wait_for_interrupt()
    finally:
        _log.info("Shutting down DNS resolver...")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def _run(config: Config) -> None:
    blocklist = await load_blocklist(config.blocklist_sources or [])
    await start(config, blocklist)


def main(argv: list[str] | None = None) -> int:
    """Command entry point: load the configuration and run the resolver."""
    parser = argparse.ArgumentParser(prog="zendns", description="Filtering DNS resolver.")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="configuration file (default: ~/.config/zendns/config.toml)",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"zendns: {exc}", file=sys.stderr)
        return 1
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_run(config))
    return 0