"""Tests for client address and date helpers."""
from datetime import datetime, timedelta, timezone

import pytest
from starlette.requests import Request

from viticult.utils.dates import ensure_utc
from viticult.utils.network import LOCAL_DEVELOPMENT, geo_from_headers, get_client_ip, raw_client_ip


def make_request(headers=None, client=("203.0.113.9", 50000)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestClientIp:
    """Test client address resolution behind proxies."""

    def test_forwarded_for_first_entry(self):
        request = make_request({"X-Forwarded-For": "198.51.100.7, 10.0.0.1"})

        assert raw_client_ip(request) == "198.51.100.7"

    def test_real_ip_header(self):
        request = make_request({"X-Real-IP": "198.51.100.8"})

        assert raw_client_ip(request) == "198.51.100.8"

    def test_socket_peer(self):
        assert raw_client_ip(make_request()) == "203.0.113.9"

    def test_no_client(self):
        assert get_client_ip(make_request(client=None)) == "Unknown"

    @pytest.mark.parametrize("address", ["127.0.0.1", "::1", "::ffff:127.0.0.1", "192.168.1.20", "10.1.2.3"])
    def test_local_addresses(self, address):
        request = make_request(client=(address, 50000))

        assert get_client_ip(request) == LOCAL_DEVELOPMENT

    def test_public_address_kept(self):
        assert get_client_ip(make_request()) == "203.0.113.9"


class TestGeoHeaders:
    """Test CDN geolocation headers."""

    def test_cloudflare_country(self):
        request = make_request({"CF-IPCountry": "gb"})

        assert geo_from_headers(request) == {"country": "GB", "region": None}

    def test_unknown_country_ignored(self):
        request = make_request({"CF-IPCountry": "XX", "X-Country-Code": "us", "X-Region-Code": "ca"})

        assert geo_from_headers(request) == {"country": "US", "region": "CA"}


class TestDates:
    """Test UTC normalisation."""

    def test_naive_treated_as_utc(self):
        assert ensure_utc(datetime(2024, 5, 1, 12)) == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    def test_aware_converted(self):
        bst = timezone(timedelta(hours=1))
        converted = ensure_utc(datetime(2024, 5, 1, 13, tzinfo=bst))

        assert converted.tzinfo == timezone.utc
        assert converted.hour == 12

    def test_none(self):
        assert ensure_utc(None) is None
