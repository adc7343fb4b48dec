"""Per-client request limits.

Clients are keyed by IP. X-Forwarded-For is honoured only when the direct
peer is one of the proxies in TRUSTED_PROXY_CIDRS, so callers cannot pick
their own bucket.
"""

import ipaddress
from functools import lru_cache

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings
from .logging_config import get_logger

logger = get_logger("dentipal.api.rate_limit")

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


def parse_networks(cidrs: list[str]) -> tuple[Network, ...]:
    """Parse CIDR strings, dropping (and logging) malformed entries."""
    networks = []
    for cidr in cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr.strip(), strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr!r}")
    return tuple(networks)


@lru_cache
def trusted_networks() -> tuple[Network, ...]:
    return parse_networks(get_settings().trusted_proxy_cidrs)


def is_trusted_proxy(ip: str, networks: tuple[Network, ...]) -> bool:
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return any(addr in network for network in networks)


def get_client_ip(request) -> str:
    """Leftmost X-Forwarded-For entry behind a trusted proxy, else the peer address."""
    peer = get_remote_address(request)
    if not is_trusted_proxy(peer, trusted_networks()):
        return peer
    forwarded = request.headers.get("x-forwarded-for", "")
    client_ip = forwarded.split(",")[0].strip()
    return client_ip or peer


limiter = Limiter(key_func=get_client_ip, enabled=get_settings().rate_limit_enabled)
