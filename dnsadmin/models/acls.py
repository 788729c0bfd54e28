"""
ACL and TSIG key Models
Named address groups and transaction signing keys referenced by zone policies
"""

from datetime import datetime
from typing import List
from pydantic import BaseModel, Field, field_validator
from enum import Enum
import re


class DnsAcl(BaseModel):
    """Named ACL"""
    id: str = ""
    name: str = Field(..., min_length=1, max_length=64, description="ACL name")
    entries: List[str] = Field(default_factory=list, description="IPs, networks, keys, or ACL references")
    comment: str = ""

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        # ACL names should be valid identifiers
        if not re.match(r'^[a-zA-Z][a-zA-Z0-9_-]*$', v):
            raise ValueError("ACL name must start with a letter and contain only letters, numbers, hyphens, and underscores")
        reserved = ["any", "none", "localhost", "localnets"]
        if v.lower() in reserved:
            raise ValueError(f"'{v}' is a reserved ACL name")
        return v

    @field_validator("entries")
    @classmethod
    def validate_entries(cls, v):
        return [entry.strip() for entry in v if entry.strip()]


class TsigAlgorithm(str, Enum):
    """TSIG HMAC algorithms"""
    HMAC_SHA256 = "hmac-sha256"
    HMAC_SHA512 = "hmac-sha512"
    HMAC_SHA1 = "hmac-sha1"
    HMAC_MD5 = "hmac-md5"

    @property
    def digest_size(self) -> int:
        """Secret length in bytes matching the digest size"""
        return {
            TsigAlgorithm.HMAC_SHA256: 32,
            TsigAlgorithm.HMAC_SHA512: 64,
            TsigAlgorithm.HMAC_SHA1: 20,
            TsigAlgorithm.HMAC_MD5: 16,
        }[self]


class TsigKey(BaseModel):
    """TSIG key; the secret is only returned masked after creation"""
    id: str = ""
    name: str
    algorithm: TsigAlgorithm = TsigAlgorithm.HMAC_SHA256
    secret: str = ""
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not re.match(r'^[a-zA-Z0-9][a-zA-Z0-9._-]*$', v):
            raise ValueError("TSIG key name may contain only letters, numbers, dots, hyphens, and underscores")
        return v
