"""
Rate limiting for the save-token endpoints.

Every save-token request signs a new token and writes a record, so it is
limited per client. X-Forwarded-For is only honoured when the direct peer is
a trusted proxy.
"""
import os
import ipaddress

from fastapi import Request
from slowapi import Limiter


SAVE_TOKEN_RATE_LIMIT = os.getenv("RECOVERY_RATE_LIMIT") or "20/minute"
RATE_LIMIT_ENABLED = os.getenv("RECOVERY_RATE_LIMIT_ENABLED", "true").lower() == "true"


def parse_trusted_proxies(proxy_config: str | None = None) -> set[str]:
    """
    Parse trusted proxy IPs from RECOVERY_TRUSTED_PROXIES.

    Example: RECOVERY_TRUSTED_PROXIES="10.0.0.1,10.0.0.2,172.16.0.0/28"

    Supports both individual IPs and CIDR notation. Invalid entries are skipped.
    """
    if proxy_config is None:
        proxy_config = os.getenv("RECOVERY_TRUSTED_PROXIES", "")

    trusted = set()
    for proxy in proxy_config.split(","):
        proxy = proxy.strip()
        if not proxy:
            continue

        if "/" in proxy:
            try:
                network = ipaddress.ip_network(proxy, strict=False)
            except ValueError:
                continue
            trusted.update(str(ip) for ip in network.hosts())
        else:
            trusted.add(proxy)

    return trusted


_TRUSTED_PROXIES: set[str] | None = None


def get_trusted_proxies() -> set[str]:
    """Get cached trusted proxies, parsing on first access."""
    global _TRUSTED_PROXIES
    if _TRUSTED_PROXIES is None:
        _TRUSTED_PROXIES = parse_trusted_proxies()
    return _TRUSTED_PROXIES


def get_real_client_ip(request: Request) -> str:
    """
    Client address used as the rate limit key.

    Behind a trusted proxy, the rightmost X-Forwarded-For entry that is not
    itself a trusted proxy is used.
    """
    direct_client_ip = request.client.host if request.client else "unknown"

    trusted_proxies = get_trusted_proxies()
    if not trusted_proxies or direct_client_ip not in trusted_proxies:
        return direct_client_ip

    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if not x_forwarded_for:
        return direct_client_ip

    ips = [ip.strip() for ip in x_forwarded_for.split(",")]
    for ip in reversed(ips):
        if ip and ip not in trusted_proxies:
            return ip

    return ips[0] if ips else direct_client_ip


limiter = Limiter(key_func=get_real_client_ip, enabled=RATE_LIMIT_ENABLED)
