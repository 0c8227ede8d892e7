"""
Tests for the rate limit client key.
"""
import pytest
from starlette.requests import Request

from delegated_recovery.core import rate_limit
from delegated_recovery.core.rate_limit import get_real_client_ip, parse_trusted_proxies


def make_request(client_ip: str, forwarded_for: str | None = None) -> Request:
    headers = []
    if forwarded_for is not None:
        headers.append((b"x-forwarded-for", forwarded_for.encode("latin-1")))
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/save-token",
        "headers": headers,
        "client": (client_ip, 12345),
    })


@pytest.fixture
def trusted(monkeypatch):
    def set_trusted(config: str):
        monkeypatch.setattr(rate_limit, "_TRUSTED_PROXIES", parse_trusted_proxies(config))
    return set_trusted


class TestTrustedProxies:
    def test_parse_ips_and_cidr(self):
        proxies = parse_trusted_proxies("10.0.0.1, 192.168.1.0/30,not-a-net/99,")

        assert proxies == {"10.0.0.1", "192.168.1.1", "192.168.1.2"}

    def test_empty(self):
        assert parse_trusted_proxies("") == set()


class TestClientIp:
    def test_direct_client_without_proxies(self, trusted):
        trusted("")

        assert get_real_client_ip(make_request("203.0.113.9", "198.51.100.1")) == "203.0.113.9"

    def test_untrusted_peer_cannot_spoof(self, trusted):
        trusted("10.0.0.1")

        assert get_real_client_ip(make_request("203.0.113.9", "198.51.100.1")) == "203.0.113.9"

    def test_trusted_proxy_forwards_client(self, trusted):
        trusted("10.0.0.1,10.0.0.2")

        request = make_request("10.0.0.1", "198.51.100.1, 10.0.0.2")

        assert get_real_client_ip(request) == "198.51.100.1"

    def test_trusted_proxy_without_header(self, trusted):
        trusted("10.0.0.1")

        assert get_real_client_ip(make_request("10.0.0.1")) == "10.0.0.1"
