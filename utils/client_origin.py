"""
Best-effort client IP extraction from proxy headers.
"""

from typing import Mapping, Optional

FALLBACK_IP = "127.0.0.1"


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # Starlette Headers are already case-insensitive; plain dicts are not
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if key.lower() == name:
                return candidate
    return value


def get_client_ip(headers: Mapping[str, str]) -> str:
    """
    Return the client IP for a request.

    Precedence, first match wins:
    1. x-forwarded-for (first entry of the comma-separated list)
    2. x-real-ip
    3. cf-connecting-ip
    4. 127.0.0.1
    """
    forwarded_for = _header(headers, "x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = _header(headers, "x-real-ip")
    if real_ip:
        return real_ip.strip()

    cf_connecting_ip = _header(headers, "cf-connecting-ip")
    if cf_connecting_ip:
        return cf_connecting_ip.strip()

    return FALLBACK_IP
