"""Client address resolution for request logging."""

from __future__ import annotations

import ipaddress
from typing import Final

from fastapi import Request

_PRIVATE_PROXY_NETWORKS: Final = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "127.0.0.0/8",
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "::1/128",
        "fc00::/7",
    )
)


def _parse_ip(value: str | None) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    if not value:
        return None
    try:
        return ipaddress.ip_address(value.strip())
    except ValueError:
        return None


def get_client_ip(request: Request) -> str:
    """Return the originating client IP address for a request.

    ``X-Forwarded-For`` is honoured only when the direct peer is a private
    proxy address (or not an IP at all, as with the test client).
    """

    peer_host = request.client.host if request.client else None
    peer = _parse_ip(peer_host)
    if peer is not None and not any(peer in net for net in _PRIVATE_PROXY_NETWORKS):
        return str(peer)

    if peer_host:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = _parse_ip(forwarded.split(",")[0])
        if first_hop is not None:
            return str(first_hop)

    return str(peer) if peer is not None else "unknown"
