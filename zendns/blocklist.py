"""A thread-safe set of blocked domains loaded from files and URLs."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterable
from pathlib import Path

import aiohttp

_log = logging.getLogger(__name__)

UPDATE_INTERVAL = 3600.0


def parse_domains(text: str) -> set[str]:
    """Return the non-empty, non-comment lines of text, stripped."""
    return {
        domain
        for line in text.split("\n")
        if (domain := line.strip()) and not domain.startswith("#")
    }


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _read_file(source: str) -> set[str] | None:
    try:
        data = Path(source).read_bytes()
    except OSError:
        return None
    lines = []
    for raw in data.split(b"\n"):
        try:
            lines.append(raw.decode("utf-8"))
        except UnicodeDecodeError:
            # Reading stops at the first line that is not valid UTF-8.
            break
    return parse_domains("\n".join(lines))


async def _fetch_url(session: aiohttp.ClientSession, url: str) -> set[str] | None:
    try:
        async with session.get(url) as response:
            text = await response.text(errors="replace")
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
        _log.error("[blocklist] Failed to fetch %s: %s", url, exc)
        return None
    return parse_domains(text)


async def fetch_domains(sources: Iterable[str]) -> set[str]:
    """Collect domains from every readable file and reachable URL in sources."""
    domains: set[str] = set()
    session: aiohttp.ClientSession | None = None
    try:
        for source in sources:
            if _is_url(source):
                if session is None:
                    session = aiohttp.ClientSession()
                found = await _fetch_url(session, source)
                kind = "URL"
            else:
                found = _read_file(source)
                kind = "file"
            if found is not None:
                domains |= found
                _log.info("[blocklist] Updated from %s: %s", kind, source)
    finally:
        if session is not None:
            await session.close()
    return domains


class Blocklist:
    """Set of blocked domains, safe to read and replace from several threads."""

    def __init__(self, domains: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._domains = frozenset(domains)

    @property
    def domains(self) -> frozenset[str]:
        with self._lock:
            return self._domains

    def __len__(self) -> int:
        return len(self.domains)

    def is_blocked(self, domain: str) -> bool:
        """Return True if the domain is in the list (exact match)."""
        with self._lock:
            return domain in self._domains

    def replace(self, domains: Iterable[str]) -> None:
        """Swap in a new set of domains atomically."""
        fresh = frozenset(domains)
        with self._lock:
            self._domains = fresh

    async def periodic_update(
        self, sources: Iterable[str], interval: float = UPDATE_INTERVAL
    ) -> None:
        """Reload from sources forever, waiting interval seconds between rounds."""
        sources = list(sources)
        while True:
            _log.info(
                "[blocklist] Periodic update check - refreshing from %d sources",
                len(sources),
            )
            self.replace(await fetch_domains(sources))
            _log.info("[blocklist] Updated in-memory blocklist with fresh data")
            await asyncio.sleep(interval)


async def load_blocklist(sources: Iterable[str]) -> Blocklist:
    """Build a Blocklist from the given files and URLs."""
    return Blocklist(await fetch_domains(sources))