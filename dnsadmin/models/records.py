"""
DNS Record Models
Record types managed in generated zone files
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator
from enum import Enum
import re


class RecordType(str, Enum):
    """Supported DNS record types"""
    A = "A"                     # IPv4 address
    AAAA = "AAAA"               # IPv6 address
    CNAME = "CNAME"             # Canonical name
    MX = "MX"                   # Mail exchanger
    TXT = "TXT"                 # Text record
    NS = "NS"                   # Name server
    SRV = "SRV"                 # Service locator
    PTR = "PTR"                 # Pointer (reverse DNS)
    CAA = "CAA"                 # Certification Authority Authorization
    SOA = "SOA"                 # Start of authority (lives in the zone header)
    TLSA = "TLSA"               # TLS Authentication
    SSHFP = "SSHFP"             # SSH fingerprint
    HTTPS = "HTTPS"             # HTTPS service binding
    NAPTR = "NAPTR"             # Naming authority pointer


class DnsRecord(BaseModel):
    """Single resource record of a zone"""
    id: str = Field(default="", description="Record id (assigned when blank)")
    name: str = Field(..., description="Owner name (relative, @ or FQDN)")
    type: RecordType
    value: str = Field(..., description="Record data")
    ttl: int = Field(default=3600, ge=0, le=2147483647, description="Time to live in seconds")
    priority: Optional[int] = Field(default=None, description="MX/SRV priority")
    weight: Optional[int] = Field(default=None, description="SRV weight")
    port: Optional[int] = Field(default=None, description="SRV port")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if re.search(r"\s", v):
            raise ValueError("Record name cannot contain whitespace")
        return v

    @field_validator("value")
    @classmethod
    def validate_value(cls, v):
        v = v.strip()
        # One record per zone file line
        if "\n" in v or "\r" in v:
            raise ValueError("Record value cannot span multiple lines")
        return v
