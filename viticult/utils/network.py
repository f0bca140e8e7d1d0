"""Client address helpers."""
import ipaddress
from typing import Dict, Optional

from fastapi import Request

LOCAL_DEVELOPMENT = "Local Development"
UNKNOWN = "Unknown"


def raw_client_ip(request: Request) -> str:
    """Best-effort client IP as seen through proxies.

    Order: first ``X-Forwarded-For`` entry, ``X-Real-IP``, socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN


def is_local_address(value: str) -> bool:
    if value in ("localhost", "testclient"):
        return True
    try:
        address = ipaddress.ip_address(value.split("%")[0])
    except ValueError:
        return False
    if getattr(address, "ipv4_mapped", None):
        address = address.ipv4_mapped
    return address.is_loopback or address.is_private or address.is_link_local


def get_client_ip(request: Request) -> str:
    """Client IP for storage on submissions.

    Loopback and private addresses are reported as ``"Local Development"``.

    Example:
        >>> get_client_ip(request)  # X-Forwarded-For: 203.0.113.9, 10.0.0.1
        '203.0.113.9'
    """
    ip = raw_client_ip(request)
    if ip == UNKNOWN:
        return ip
    if is_local_address(ip):
        return LOCAL_DEVELOPMENT
    return ip


COUNTRY_HEADERS = ("cf-ipcountry", "x-country-code")
REGION_HEADERS = ("x-region-code", "cf-region-code")


def _first_header(request: Request, names) -> Optional[str]:
    for name in names:
        value = request.headers.get(name)
        if value and value.upper() not in ("XX", "T1"):
            return value.strip().upper()
    return None


def geo_from_headers(request: Request) -> Dict[str, Optional[str]]:
    """Country and region supplied by the CDN edge, if any.

    Example:
        >>> geo_from_headers(request)  # CF-IPCountry: GB
        {'country': 'GB', 'region': None}
    """
    return {
        "country": _first_header(request, COUNTRY_HEADERS),
        "region": _first_header(request, REGION_HEADERS),
    }
