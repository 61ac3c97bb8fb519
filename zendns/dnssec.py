"""Trust-anchor loading, root hints refresh and DNSSEC checks."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import aiohttp
import dns.asyncresolver
import dns.exception
import dns.flags

_log = logging.getLogger(__name__)

ROOT_HINTS_URL = "https://www.internic.net/domain/named.root"
DEFAULT_NAMESERVERS = (
    "8.8.8.8",
    "8.8.4.4",
    "2001:4860:4860::8888",
    "2001:4860:4860::8844",
)


def _default_config_dir() -> Path:
    try:
        home = Path.home()
    except RuntimeError:
        home = Path("/")
    return home / ".config" / "zendns"


def load_trust_anchors(path: str | Path) -> set[str]:
    """Read trust anchors, one per non-empty, non-comment line; missing file gives none."""
    try:
        content = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return set()
    return {
        anchor
        for line in content.splitlines()
        if (anchor := line.strip()) and not anchor.startswith("#")
    }


class DnssecValidator:
    """Checks answers with a DNSSEC-aware lookup when trust anchors are configured."""

    def __init__(
        self,
        config_dir: str | Path | None = None,
        *,
        root_hints_url: str = ROOT_HINTS_URL,
    ) -> None:
        directory = Path(config_dir) if config_dir is not None else _default_config_dir()
        self.root_key_path = directory / "root.key"
        self.root_hints_path = directory / "root.hints"
        self.root_hints_url = root_hints_url
        self.trust_anchors = load_trust_anchors(self.root_key_path)

    async def update_root_hints(self) -> bool:
        """Download the root hints file and store it; return whether it was written."""
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(self.root_hints_url) as response:
                    text = await response.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError):
            _log.error("Failed to download root hints from %s", self.root_hints_url)
            return False
        try:
            self.root_hints_path.write_text(text, encoding="utf-8")
        except OSError as exc:
            _log.error("Failed to write root hints: %s", exc)
            return False
        _log.info("Updated root hints at %s", self.root_hints_path)
        return True

    async def validate(self, domain: str, record_type) -> bool:
        """Return True when the lookup is authenticated, or when no anchors are loaded."""
        if not self.trust_anchors:
            _log.info("[DNSSEC] No trust anchors loaded, skipping validation for %s", domain)
            return True
        resolver = dns.asyncresolver.Resolver(configure=False)
        resolver.nameservers = list(DEFAULT_NAMESERVERS)
        resolver.use_edns(0, dns.flags.DO, 1232)
        resolver.flags = dns.flags.RD | dns.flags.AD
        try:
            answer = await resolver.resolve(domain, record_type)
        except dns.exception.DNSException as exc:
            _log.info("[DNSSEC] Validation failed for %s: %s", domain, exc)
            return False
        if not answer.response.flags & dns.flags.AD:
            _log.info("[DNSSEC] Validation failed for %s: answer not authenticated", domain)
            return False
        _log.info("[DNSSEC] Validation passed for %s", domain)
        return True