"""
Reverse zone and template domain helpers
Pure functions shared by the zone and template services
"""

import re
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import dns.exception
import dns.reversename

from ..models.records import DnsRecord
from ..models.zones import ReverseZoneInfo


FALLBACK_TEMPLATE_DOMAIN = "example.com"
INVALID_REVERSE_ZONE = "invalid.in-addr.arpa"

_ACL_ENTRY = re.compile(r"^[a-zA-Z0-9.:/_\-!]+$")


# =============================================================================
# Serials
# =============================================================================

def today_serial_date(now: Optional[datetime] = None) -> int:
    """UTC date as YYYYMMDD"""
    now = now or datetime.now(timezone.utc)
    return int(now.strftime("%Y%m%d"))


def next_serial(serial: int, today: Optional[int] = None) -> int:
    """
    Next YYYYMMDDNN serial
    A serial dated in the future keeps counting from where it is
    """
    today = today if today is not None else today_serial_date()
    if serial // 100 < today:
        return today * 100 + 1
    return serial + 1


def initial_serial(requested: int, today: Optional[int] = None) -> int:
    """Serial for a new zone: requested if dated today or later"""
    today = today if today is not None else today_serial_date()
    if requested // 100 >= today:
        return requested
    return today * 100 + 1


# =============================================================================
# ACL entries
# =============================================================================

def sanitize_acl_entries(entries: Iterable[str]) -> List[str]:
    """Trim entries and drop anything that is not a plain address-match token"""
    cleaned = (e.strip() for e in entries or [])
    return [e for e in cleaned if e and _ACL_ENTRY.match(e)]


# =============================================================================
# Reverse DNS
# =============================================================================

def derive_reverse_zone(ip: str) -> ReverseZoneInfo:
    """
    Reverse zone and PTR owner for an address

    IPv4 uses the /24 zone (PTR = last octet), IPv6 the /112 nibble zone
    (PTR = last four nibbles).
    """
    ip = ip.strip()
    try:
        name = dns.reversename.from_address(ip)
    except (dns.exception.SyntaxError, ValueError):
        return ReverseZoneInfo(ip=ip, reverse_zone=INVALID_REVERSE_ZONE, valid=False)

    labels = name.to_text(omit_final_dot=True).split(".")
    ptr_labels = 1 if ":" not in ip else 4
    return ReverseZoneInfo(
        ip=ip,
        reverse_zone=".".join(labels[ptr_labels:]),
        ptr_name=".".join(labels[:ptr_labels]),
    )


def owner_fqdn(name: str, zone_name: str) -> str:
    """Absolute form of a record owner"""
    name = name.strip()
    if name in ("", "@"):
        return f"{zone_name}."
    if name.endswith("."):
        return name
    return f"{name}.{zone_name}."


# =============================================================================
# Templates
# =============================================================================

def detect_template_domain(records: List[DnsRecord]) -> str:
    """Most frequent dotted owner name in the template records"""
    candidates = [
        r.name.rstrip(".")
        for r in records
        if r.name.strip() and r.name != "@" and "." in r.name.rstrip(".")
    ]
    if not candidates:
        return FALLBACK_TEMPLATE_DOMAIN
    return Counter(candidates).most_common(1)[0][0]


def remap_domain(text: str, template_domain: str, zone_name: str) -> str:
    """
    Replace template_domain in text with zone_name

    Keeps subdomain prefixes and the trailing dot:
    "www.example.com." -> "www.mysite.io.", "@" is unchanged.
    """
    if not text.strip() or not template_domain.strip():
        return text

    td = template_domain.rstrip(".")
    zn = zone_name.rstrip(".")
    lowered = text.lower()

    if lowered == f"{td}.".lower():
        return f"{zn}."
    if lowered == td.lower():
        return zn

    with_dot = f"{td}.".lower()
    if lowered.endswith(with_dot) and lowered[-len(with_dot) - 1:-len(with_dot)] == ".":
        return text[:-len(with_dot)] + f"{zn}."
    if lowered.endswith(td.lower()) and len(text) > len(td) and text[-len(td) - 1] == ".":
        return text[:-len(td)] + zn
    return text
