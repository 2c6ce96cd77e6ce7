"""Format and pattern checks called by generated validators."""

from __future__ import annotations

import ipaddress
import json
import re
from collections.abc import Callable
from datetime import date, datetime
from email.utils import parseaddr, parsedate_tz
from functools import lru_cache
from urllib.parse import urlsplit

from wiregen.runtime.errors import ServiceError, invalid_format_error, invalid_pattern_error

_DATE_TIME = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)
_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_UUID = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")
_HOSTNAME = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
_MAC = re.compile(r"^[0-9A-Fa-f]{2}([:-])[0-9A-Fa-f]{2}(\1[0-9A-Fa-f]{2}){4}$")


def _check_date_time(value: str) -> None:
    match = _DATE_TIME.match(value)
    if match is None:
        raise ValueError("not an RFC 3339 date-time")
    day, clock, _, zone = match.groups()
    offset = "+00:00" if zone in ("Z", "z") else zone
    datetime.fromisoformat(f"{day}T{clock}{offset}")


def _check_date(value: str) -> None:
    if _DATE.match(value) is None:
        raise ValueError("not an RFC 3339 full-date")
    date.fromisoformat(value)


def _check_uuid(value: str) -> None:
    if _UUID.match(value) is None:
        raise ValueError("not an RFC 4122 UUID")


def _check_email(value: str) -> None:
    _, address = parseaddr(value)
    if not address or "@" not in address:
        raise ValueError("not an RFC 5322 address")


def _check_hostname(value: str) -> None:
    if len(value) > 253 or _HOSTNAME.match(value) is None:
        raise ValueError("not an RFC 1035 hostname")


def _check_uri(value: str) -> None:
    if not urlsplit(value).scheme:
        raise ValueError("missing URI scheme")


def _check_mac(value: str) -> None:
    if _MAC.match(value) is None:
        raise ValueError("not an IEEE 802 MAC-48 address")


def _check_cidr(value: str) -> None:
    if "/" not in value:
        raise ValueError("missing prefix length")
    ipaddress.ip_network(value, strict=False)


def _check_rfc1123(value: str) -> None:
    if parsedate_tz(value) is None:
        raise ValueError("not an RFC 1123 date")


FORMATS: dict[str, Callable[[str], object]] = {
    "date-time": _check_date_time,
    "date": _check_date,
    "uuid": _check_uuid,
    "email": _check_email,
    "hostname": _check_hostname,
    "ipv4": ipaddress.IPv4Address,
    "ipv6": ipaddress.IPv6Address,
    "ip": ipaddress.ip_address,
    "uri": _check_uri,
    "mac": _check_mac,
    "cidr": _check_cidr,
    "regexp": re.compile,
    "json": json.loads,
    "rfc1123": _check_rfc1123,
}


def validate_format(path: str, value: str, format: str) -> ServiceError | None:
    """Return an ``invalid_format`` error when *value* is not a valid *format*."""
    try:
        check = FORMATS[format]
    except KeyError:
        raise ValueError(f"unknown format {format!r}") from None
    try:
        check(value)
    except (ValueError, re.error) as exc:
        return invalid_format_error(path, value, format, exc)
    return None


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def validate_pattern(path: str, value: str, pattern: str) -> ServiceError | None:
    """Return an ``invalid_pattern`` error when *pattern* matches nowhere in *value*."""
    if _compile(pattern).search(value) is None:
        return invalid_pattern_error(path, value, pattern)
    return None
