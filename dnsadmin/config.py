"""
Configuration management for dnsadmin
Supports environment variables and .env files
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional, List, Dict
from functools import lru_cache
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    app_name: str = "dnsadmin"
    debug: bool = False

    # Storage
    data_root: str = Field(default="/var/lib/dnsadmin", description="Root for persisted documents and generated files")
    compose_root: Optional[str] = Field(default=None, description="Directory holding compose projects (defaults to <data_root>/compose)")

    # Container deployment
    container_runtime: str = "docker"
    default_container_name: str = "bind9"

    # BIND9 host installation
    bind9_config_dir: str = "/etc/bind"
    bind9_rndc: str = "rndc"
    bind9_named_checkconf: str = "named-checkconf"
    bind9_named_checkzone: str = "named-checkzone"
    bind9_dnssec_keygen: str = "dnssec-keygen"
    bind9_dnssec_signzone: str = "dnssec-signzone"
    bind9_dnssec_dsfromkey: str = "dnssec-dsfromkey"
    bind9_tsig_keygen: str = "tsig-keygen"
    dig_path: str = "dig"

    # DNSSEC
    dnssec_algorithm: str = "ECDSAP256SHA256"

    # Records
    default_record_ttl: int = 3600

    # Statistics files checked after `rndc stats` (first existing wins)
    stats_files: List[str] = [
        "/var/named/data/named_stats.txt",
        "/var/cache/bind/named.stats",
        "/var/log/named/named.stats",
    ]

    # Timeouts (seconds)
    command_timeout: int = 30
    long_command_timeout: int = 300

    # Propagation checks: resolver address -> provider name
    propagation_resolvers: Dict[str, str] = {
        "8.8.8.8": "Google",
        "1.1.1.1": "Cloudflare",
    }
    propagation_timeout: float = 3.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = "DNSADMIN_"

    @property
    def data_dir(self) -> Path:
        """Directory holding the JSON documents and host-mode zone/key files"""
        return Path(self.data_root) / "binddns"

    @property
    def compose_dir(self) -> Path:
        """Compose project directory of the containerized daemon"""
        root = Path(self.compose_root) if self.compose_root else Path(self.data_root) / "compose"
        return root / "dnsbind"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
