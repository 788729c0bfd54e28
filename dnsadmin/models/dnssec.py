"""
DNSSEC Models
"""

from typing import Optional, List
from pydantic import BaseModel, Field
from enum import Enum


class KeyType(str, Enum):
    """DNSSEC key types"""
    KSK = "KSK"     # Key Signing Key
    ZSK = "ZSK"     # Zone Signing Key


class DnssecKeyInfo(BaseModel):
    """Key file found in the keys directory"""
    key_name: str = Field(..., description="Key file stem, e.g. Kexample.com.+013+12345")
    key_tag: int
    algorithm: int
    key_type: KeyType
    flags: int = Field(..., description="DNSKEY flags (256=ZSK, 257=KSK)")
    public_key_file: str


class DnssecStatus(BaseModel):
    """DNSSEC state of a zone"""
    enabled: bool = False
    signed: bool = False
    ksk_key_tag: Optional[int] = None
    zsk_key_tag: Optional[int] = None
    keys: List[DnssecKeyInfo] = Field(default_factory=list)
    ds_records: List[str] = Field(default_factory=list)
