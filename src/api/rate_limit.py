"""
API rate limiting using slowapi.

Provides a shared Limiter instance keyed by client IP address, with
counters stored in Redis so limits hold across API instances. Enable
via RATE_LIMIT_ENABLED=true; when disabled the decorators are no-ops.

The client address is the TCP peer. X-Forwarded-For is honoured only when
the peer is listed in TRUSTED_PROXIES, and then only up to the first hop
that is not itself a trusted proxy.
"""

import ipaddress

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from src.config.settings import get_settings


def _parse_networks(value: str | None) -> list[ipaddress.IPv4Network | ipaddress.IPv6Network]:
    return [
        ipaddress.ip_network(item.strip(), strict=False)
        for item in (value or "").split(",")
        if item.strip()
    ]


def _is_trusted(address: str, networks) -> bool:
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return any(ip in network for network in networks)


def get_client_ip(request: Request) -> str | None:
    """Client address, following X-Forwarded-For only through trusted proxies."""
    if request.client is None:
        return None
    peer = request.client.host

    trusted = _parse_networks(get_settings().trusted_proxies)
    if not trusted or not _is_trusted(peer, trusted):
        return peer

    forwarded = request.headers.get("X-Forwarded-For", "")
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    # Walk right to left; everything left of the first untrusted hop is client-supplied
    for hop in reversed(hops):
        if not _is_trusted(hop, trusted):
            return hop
    return hops[0] if hops else peer


def _get_rate_limit_key(request: Request) -> str:
    """Extract rate limit key: client IP."""
    return get_client_ip(request) or get_remote_address(request)


def create_limiter() -> Limiter:
    """Create a configured Limiter instance."""
    settings = get_settings()
    return Limiter(
        key_func=_get_rate_limit_key,
        default_limits=[settings.rate_limit_default],
        storage_uri=str(settings.redis_url),
        enabled=settings.rate_limit_enabled,
    )


limiter = create_limiter()
