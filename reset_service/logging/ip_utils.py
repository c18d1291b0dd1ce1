"""Utilities for handling IP address logging policies."""

from __future__ import annotations

import ipaddress
import os

_MODES = {"full", "anonymized", "off"}


def resolve_ip_mode(mode: str | None = None) -> str:
    """Return the effective mode, falling back to ``LOG_IP_MODE`` then ``full``."""

    value = (mode or os.getenv("LOG_IP_MODE") or "full").lower()
    return value if value in _MODES else "full"


def anonymize_ip(ip: str | None, mode: str | None = None) -> str | None:
    """Return ``ip`` formatted according to the logging mode.

    ``anonymized`` keeps the /24 (IPv4) or /64 (IPv6) network, ``off`` drops the
    address entirely.
    """

    effective = resolve_ip_mode(mode)
    if effective == "off":
        return None
    try:
        parsed = ipaddress.ip_address(ip or "")
    except ValueError:
        return "unknown"
    if effective == "anonymized":
        prefix = 24 if parsed.version == 4 else 64
        return ipaddress.ip_network(f"{parsed}/{prefix}", strict=False).with_prefixlen
    return str(parsed)
