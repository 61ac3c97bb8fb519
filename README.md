# zendns

zendns is a small DNS forwarder that blocks domains. It answers queries over
plain UDP. It can also answer over DNS-over-TLS (DoT) and over DNS sent in the
body of HTTP requests (DoH). For each query it does these steps in order:

1. It answers from the cache if the cache holds a live answer.
2. If the domain is on the blocklist, it refuses the query.
3. Otherwise it forwards the query to an upstream resolver.
4. If trust anchors are configured, it checks the answer with DNSSEC.
5. It caches the answer for 60 seconds.

## Installation

```
pip install .
```

To also install the test tools:

```
pip install .[test]
```

## Configuration

By default zendns reads its settings from `~/.config/zendns/config.toml`.
If there is no home directory, it uses `/` as home.

```toml
listen_addr = "127.0.0.1:5353"      # UDP listen address (required)
upstream_addr = "9.9.9.9:53"        # upstream resolver (required)

blocklist_sources = [
    "https://example.com/blocklist.txt",
    "/etc/zendns/local-blocklist.txt",
]

enable_udp = true                   # default: true
enable_dot = false                  # default: false
enable_doh = false                  # default: false

dot_listen_addr = "0.0.0.0:853"     # default: 0.0.0.0:853
doh_listen_addr = "0.0.0.0:8443"    # default: 0.0.0.0:8443

# DoT needs both of these (PEM files).
tls_cert = "/etc/zendns/cert.pem"
tls_key = "/etc/zendns/key.pem"
```

Keys that zendns does not know are ignored. A missing required key, a value of
the wrong type, or a file that cannot be read or parsed raises
`zendns.config.ConfigError`.

### Blocklists

Each entry in `blocklist_sources` is either an `http://` or `https://` URL or
a local file path. A source is plain text with one domain per line. Blank
lines and lines that start with `#` are ignored. A source that cannot be
fetched or read is skipped. While the server runs, the blocklist is fetched
again from all sources once an hour, and the new list replaces the old one.

Matching is exact. The name compared is the query name in absolute form,
with its trailing dot, for example `ads.example.com.`. Blocklist entries
must be written the same way to match.

### DNSSEC

Trust anchors are read from `~/.config/zendns/root.key`, one per line. Blank
lines and `#` comments are skipped. If there are no anchors, every answer is
accepted. If there are anchors, zendns looks the name up again through public
resolvers with the DO bit set. It accepts the answer only if that reply has the
AD (authenticated data) flag set. At startup the root hints file is downloaded
once to `~/.config/zendns/root.hints`.

## Running

```
zendns
zendns --config /path/to/config.toml
```

The command logs to standard error. It exits with status 1 if the
configuration cannot be loaded. Press Ctrl+C to stop the server.

## How each transport replies

- **UDP** (`zendns.udp`): a cached or forwarded answer is sent back as it was
  received. A blocked domain gets a REFUSED reply that carries the query's id,
  opcode and questions. No reply is sent if the upstream does not answer
  within 5 seconds or if DNSSEC validation fails.
- **DoT** (`zendns.dot`): each TLS connection carries one raw query of up to
  512 bytes, with no length prefix. The raw answer is written back, and then
  the connection is closed. A blocked domain gets the bytes `Blocked`.
- **DoH** (`zendns.doh`): a request of any method to any path is accepted,
  and its body is taken as a wire-format query. The response body is the raw
  answer, `Blocked`, `DNSSEC validation failed`, or empty if there is no
  answer. The listen address must be an IP address and a port.

The cache is keyed by the query name only, so queries for different record
types of the same name share one cache entry.

## Library use

```python
import asyncio

from zendns.blocklist import load_blocklist
from zendns.config import default_config_path, load_config

config = load_config(default_config_path())
blocklist = asyncio.run(load_blocklist(config.blocklist_sources or []))
print(blocklist.is_blocked("ads.example.com."))
```

`zendns.handler.QueryHandler.resolve` runs the whole pipeline on raw
wire-format bytes and returns a `Resolution`. Its `outcome` is an `Outcome`:
`INVALID`, `CACHED`, `BLOCKED`, `NO_RESPONSE`, `DNSSEC_FAILED` or `FORWARDED`.
Each transport decides what to send back for each outcome. Other public names
you can use:

- `zendns.handler.DnsCache`
- `zendns.handler.forward_query`
- `zendns.handler.refused_response`
- `zendns.dnssec.DnssecValidator`
- `zendns.server.start`

## What zendns does not do

- The DoH listener speaks plain HTTP, even when `tls_cert` and `tls_key` are
  set. In that case it only logs a note. It does not serve HTTPS.
- DoT uses neither the two-byte length framing nor several queries per
  connection.
- DNSSEC is not validated locally against the trust anchors. zendns relies on
  the AD flag from the public resolvers. The root hints file is downloaded
  but not used for resolution.
- Upstream queries use UDP only. Answers longer than 512 bytes are cut off,
  and there is no TCP fallback.