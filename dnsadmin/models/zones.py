"""
Zone Management Models
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator
from enum import Enum
import re

import dns.exception
import dns.name

from .records import DnsRecord


_ZONE_LABEL = re.compile(r"^_?[a-zA-Z0-9]([a-zA-Z0-9_-]*[a-zA-Z0-9])?$")


def is_valid_zone_name(name: str) -> bool:
    """Hostname-style zone name: letters, digits, hyphens and leading underscores per label"""
    name = name.strip().rstrip(".")
    if not name or len(name) > 253:
        return False
    try:
        dns.name.from_text(name)
    except dns.exception.DNSException:
        return False
    return all(len(label) <= 63 and _ZONE_LABEL.match(label) for label in name.split("."))


class ZoneKind(str, Enum):
    """Forward or reverse lookup zone"""
    FORWARD = "forward"
    REVERSE = "reverse"


class ZoneRole(str, Enum):
    """Role the daemon plays for the zone"""
    MASTER = "master"
    SLAVE = "slave"
    STUB = "stub"
    FORWARD_ONLY = "forward-only"


class SoaRecord(BaseModel):
    """Start of authority parameters"""
    primary_ns: str = Field(default="ns1.localhost.", description="Primary nameserver")
    admin_email: str = Field(default="admin.localhost.", description="Responsible mailbox in DNS form")
    serial: int = Field(default=1, ge=0, le=4294967295, description="Zone serial (YYYYMMDDNN)")
    refresh: int = 3600
    retry: int = 900
    expire: int = 1209600
    minimum_ttl: int = 86400


class DnsZone(BaseModel):
    """Zone as persisted in the zone list"""
    id: str
    name: str
    kind: ZoneKind = ZoneKind.FORWARD
    role: ZoneRole = ZoneRole.MASTER
    file_path: str = ""
    enabled: bool = True
    soa: SoaRecord = Field(default_factory=SoaRecord)
    records: List[DnsRecord] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Zone options
    master_addresses: List[str] = Field(default_factory=list)
    allow_transfer: List[str] = Field(default_factory=list)
    allow_update: List[str] = Field(default_factory=list)
    allow_query: List[str] = Field(default_factory=list)
    also_notify: List[str] = Field(default_factory=list)
    forwarders: List[str] = Field(default_factory=list)
    dnssec_enabled: bool = False


class CreateZoneRequest(BaseModel):
    """Create a new zone"""
    name: str = Field(..., description="Zone name (e.g., example.com)")
    kind: ZoneKind = ZoneKind.FORWARD
    role: ZoneRole = ZoneRole.MASTER
    soa: SoaRecord = Field(default_factory=SoaRecord)
    master_addresses: List[str] = Field(default_factory=list)
    allow_transfer: List[str] = Field(default_factory=list)
    allow_update: List[str] = Field(default_factory=list)
    allow_query: List[str] = Field(default_factory=list)
    also_notify: List[str] = Field(default_factory=list)
    forwarders: List[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_zone_name(cls, v):
        # Remove trailing dot for consistency
        v = v.strip().rstrip(".")
        if v and not is_valid_zone_name(v):
            raise ValueError(f"Invalid zone name: {v!r}")
        return v


class UpdateZoneOptionsRequest(BaseModel):
    """Partial update of zone ACL lists; None leaves a list untouched"""
    master_addresses: Optional[List[str]] = None
    allow_transfer: Optional[List[str]] = None
    allow_update: Optional[List[str]] = None
    allow_query: Optional[List[str]] = None
    also_notify: Optional[List[str]] = None
    forwarders: Optional[List[str]] = None


class UpdateZoneRequest(UpdateZoneOptionsRequest):
    """Partial update of a zone"""
    role: Optional[ZoneRole] = None
    kind: Optional[ZoneKind] = None
    soa: Optional[SoaRecord] = None


# =============================================================================
# Import / Export
# =============================================================================

class BulkImportRequest(BaseModel):
    """Import records into an existing zone"""
    zone_id: str
    content: str
    format: str = "bind"


class BulkImportResult(BaseModel):
    """Outcome of a bulk import"""
    success: bool
    imported: int = 0
    skipped: int = 0
    errors: List[str] = Field(default_factory=list)


# =============================================================================
# Reverse DNS
# =============================================================================

class ReverseZoneInfo(BaseModel):
    """Reverse zone and PTR owner derived from an address"""
    ip: str
    reverse_zone: str
    ptr_name: str = ""
    valid: bool = True


class IpPtrSuggestion(BaseModel):
    """Reverse zone suggestion for an address"""
    ip: str
    domain: str = Field(default="", description="Forward owner carrying the address, if any")
    reverse_zone: str = ""
    ptr_record_name: str = ""


class ReverseGenerationResult(BaseModel):
    """Outcome of generating reverse zones from a forward zone"""
    success: bool
    message: str = ""
    created_zones: List[str] = Field(default_factory=list)
    added_records: int = 0
    skipped_records: int = 0
    errors: List[str] = Field(default_factory=list)
