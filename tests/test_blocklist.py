import asyncio
import contextlib

import pytest
from aiohttp import web

from zendns.blocklist import Blocklist, fetch_domains, load_blocklist, parse_domains


@contextlib.asynccontextmanager
async def http_server(body):
    async def handle(request):
        return web.Response(text=body)

    app = web.Application()
    app.router.add_get("/list", handle)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    try:
        host, port = runner.addresses[0][:2]
        yield f"http://{host}:{port}/list"
    finally:
        await runner.cleanup()


async def _wait_for(predicate, attempts=200):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.01)


@pytest.mark.parametrize(
    "text, expected",
    [
        (
            "# header\nads.example.com\n\n  tracker.example.org  \r\n#other\n",
            {"ads.example.com", "tracker.example.org"},
        ),
        ("a.example\na.example\n", {"a.example"}),
    ],
    ids=["comments-and-blanks", "duplicates"],
)
def test_parse_domains(text, expected):
    assert parse_domains(text) == expected


def test_blocklist_is_blocked_and_replace():
    blocklist = Blocklist(["a.example"])
    assert blocklist.is_blocked("a.example")
    assert not blocklist.is_blocked("b.example")
    blocklist.replace({"b.example"})
    assert not blocklist.is_blocked("a.example")
    assert blocklist.is_blocked("b.example")
    assert len(blocklist) == 1


@pytest.mark.asyncio
async def test_load_from_file(tmp_path):
    path = tmp_path / "list.txt"
    path.write_text("# c\nx.example\ny.example\n", encoding="utf-8")
    blocklist = await load_blocklist([str(path)])
    assert blocklist.domains == {"x.example", "y.example"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "bad_source",
    ["{tmp}/absent.txt", "http://127.0.0.1:1/list"],
    ids=["missing-file", "unreachable-url"],
)
async def test_unusable_source_is_ignored(tmp_path, bad_source):
    good = tmp_path / "list.txt"
    good.write_text("x.example\n", encoding="utf-8")
    domains = await fetch_domains([bad_source.format(tmp=tmp_path), str(good)])
    assert domains == {"x.example"}


@pytest.mark.asyncio
async def test_file_reading_stops_at_invalid_utf8(tmp_path):
    path = tmp_path / "list.txt"
    path.write_bytes(b"good.example\n\xff\xfe\nlater.example\n")
    assert await fetch_domains([str(path)]) == {"good.example"}


@pytest.mark.asyncio
async def test_load_from_url():
    async with http_server("# list\nweb.example\n") as url:
        domains = await fetch_domains([url])
    assert domains == {"web.example"}


@pytest.mark.asyncio
async def test_periodic_update_refreshes(tmp_path):
    path = tmp_path / "list.txt"
    blocklist = Blocklist(["stale.example"])
    task = asyncio.create_task(blocklist.periodic_update([str(path)], interval=0.01))
    try:
        for name in ("first.example", "second.example"):
            path.write_text(f"{name}\n", encoding="utf-8")
            await _wait_for(lambda name=name: blocklist.is_blocked(name))
            assert blocklist.domains == {name}
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task