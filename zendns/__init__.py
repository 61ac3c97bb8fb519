"""A blocking DNS forwarder serving UDP, DNS-over-TLS and DNS over HTTP."""

__version__ = "0.2.0"