"""
Server Control, Global Options, Installation and Propagation Models
"""

from datetime import datetime
from typing import Optional, List, Dict
from pydantic import BaseModel, Field, field_validator
from enum import Enum
import re

from .records import RecordType


# =============================================================================
# Global Options
# =============================================================================

class ForwarderConfig(BaseModel):
    """Global forwarders"""
    forwarders: List[str] = Field(default_factory=list)
    forward_only: bool = False


class GlobalSecurityConfig(BaseModel):
    """Global options rendered into named.conf.options"""
    recursion_enabled: bool = False
    allow_recursion: List[str] = Field(default_factory=lambda: ["localnets", "localhost"])
    rate_limit_enabled: bool = False
    rate_limit_responses_per_second: int = Field(default=10, ge=1)
    rate_limit_window: int = Field(default=5, ge=1)
    default_name_servers: List[str] = Field(default_factory=list, description="NS records seeded into new forward zones")
    allow_query: List[str] = Field(default_factory=lambda: ["any"])
    minimal_responses: bool = False
    edns_udp_size: int = Field(default=1232, ge=512, le=4096)
    ipv4_enabled: bool = True
    ipv6_enabled: bool = True
    tcp_clients: int = Field(default=100, ge=1)
    max_cache_size: str = "128M"
    reuseport: bool = False


# =============================================================================
# Service Status
# =============================================================================

class ServiceStatus(BaseModel):
    """Daemon status summary"""
    running: bool
    version: str = ""
    config_valid: bool = False
    config_output: str = ""
    uptime: str = ""
    zone_count: int = 0


class QueryStats(BaseModel):
    """Query statistics parsed from the daemon's statistics dump"""
    total_queries: int = 0
    success_queries: int = 0
    failed_queries: int = 0
    recursive_queries: int = 0
    query_types: Dict[str, int] = Field(default_factory=dict)
    top_domains: Dict[str, int] = Field(default_factory=dict)
    raw_stats: str = ""


# =============================================================================
# Lookup (dig)
# =============================================================================

class LookupRequest(BaseModel):
    """Lookup request"""
    query: str
    type: str = "A"
    server: Optional[str] = None


class LookupAnswer(BaseModel):
    """Single answer line"""
    name: str
    ttl: int
    type: str
    value: str


class LookupResult(BaseModel):
    """Parsed dig output"""
    success: bool
    query: str
    type: str
    answers: List[LookupAnswer] = Field(default_factory=list)
    raw_output: str = ""
    query_time: str = ""
    server: str = ""
    status: str = ""


# =============================================================================
# Installation
# =============================================================================

class InstallMethod(str, Enum):
    """How the daemon is installed"""
    DOCKER = "docker"
    APT = "apt"


class InstallRequest(BaseModel):
    """Install request"""
    method: InstallMethod = InstallMethod.DOCKER
    docker_image: str = "ubuntu/bind9:latest"
    container_name: str = "bind9"
    host_port: int = Field(default=53, ge=1, le=65535)
    config_path: str = Field(default="binddns/config", description="Host config dir (relative to data root)")
    data_path: str = Field(default="binddns/data", description="Host data dir (relative to data root)")

    @field_validator("container_name")
    @classmethod
    def validate_container_name(cls, v):
        v = v.strip()
        if not re.match(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$", v):
            raise ValueError("Container name may contain only letters, numbers, dots, hyphens, and underscores")
        return v


class InstallStatus(BaseModel):
    """Detected installation"""
    installed: bool
    method: Optional[InstallMethod] = None
    running: bool = False
    version: str = ""
    container_id: Optional[str] = None
    image: Optional[str] = None
    compose_file: Optional[str] = None
    os_type: str = "linux"


# =============================================================================
# Propagation
# =============================================================================

class PropagationStatus(BaseModel):
    """Answer of one public resolver"""
    server: str
    provider: str
    values: List[str] = Field(default_factory=list)
    matches: bool = False
    error: Optional[str] = None


class PropagationCheckResult(BaseModel):
    """Propagation of a record across public resolvers"""
    zone_id: str
    record_name: str
    record_type: RecordType
    expected_value: str = ""
    checks: List[PropagationStatus] = Field(default_factory=list)
    checked_at: datetime = Field(default_factory=datetime.utcnow)
