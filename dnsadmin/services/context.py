"""
DNS Context - state shared by all services
One asyncio lock guards every mutation of persisted state and managed config files
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from ..config import Settings
from ..models.acls import DnsAcl, TsigKey
from ..models.server import ForwarderConfig, GlobalSecurityConfig
from ..models.templates import ZoneTemplate, default_templates
from ..models.zones import DnsZone
from .gateway import BindLayout, CommandGateway, detect_layout
from .store import JsonStore


logger = logging.getLogger(__name__)


class DnsContext:
    """Settings, layout, gateway, stores and the zone cache"""

    def __init__(self, settings: Settings, gateway: Optional[CommandGateway] = None):
        self.settings = settings
        self.lock = asyncio.Lock()
        self.layout: BindLayout = gateway.layout if gateway else detect_layout(settings)
        self.gateway = gateway or CommandGateway(settings, self.layout)

        data_dir = settings.data_dir
        self.zone_store = JsonStore(data_dir / "zones-metadata.json", List[DnsZone], list)
        self.acl_store = JsonStore(data_dir / "acls.json", List[DnsAcl], list)
        self.tsig_store = JsonStore(data_dir / "tsig-keys.json", List[TsigKey], list)
        self.forwarder_store = JsonStore(data_dir / "forwarders.json", ForwarderConfig, ForwarderConfig)
        self.security_store = JsonStore(data_dir / "security-config.json", GlobalSecurityConfig, GlobalSecurityConfig)
        self.template_store = JsonStore(data_dir / "templates.json", List[ZoneTemplate], default_templates)

        self._zones: Optional[List[DnsZone]] = None

    # =========================================================================
    # Zone Cache
    # =========================================================================

    def load_zones(self) -> List[DnsZone]:
        """Cached zone list; callers own the returned objects only after copying"""
        if self._zones is None:
            self._zones = self.zone_store.load()
        return self._zones

    def save_zones(self, zones: List[DnsZone]) -> None:
        self.zone_store.save(zones)
        self._zones = zones

    def find_zone(self, zone_id: str) -> Optional[DnsZone]:
        return next((z for z in self.load_zones() if z.id == zone_id), None)

    def find_zone_by_name(self, name: str) -> Optional[DnsZone]:
        name = name.rstrip(".").lower()
        return next((z for z in self.load_zones() if z.name.lower() == name), None)

    def replace_zone(self, zone: DnsZone) -> None:
        """Persist a changed zone in place"""
        zones = [zone if z.id == zone.id else z for z in self.load_zones()]
        self.save_zones(zones)

    # =========================================================================
    # Layout
    # =========================================================================

    def zone_file_path(self, zone_name: str) -> Path:
        return self.layout.zones_dir / f"db.{zone_name}"

    def to_daemon(self, host_path) -> str:
        return self.layout.mapper.to_daemon(host_path)

    def refresh_layout(self) -> BindLayout:
        """Re-detect the deployment after install/uninstall"""
        self.layout = detect_layout(self.settings)
        self.gateway.layout = self.layout
        logger.info(
            f"BIND9 layout: {'container ' + self.layout.container_name if self.layout.container_mode else 'host'}, "
            f"config={self.layout.config_dir}, zones={self.layout.zones_dir}"
        )
        return self.layout

    # =========================================================================
    # Daemon
    # =========================================================================

    async def reload_bind(self) -> bool:
        """Ask the daemon to reload; failures are logged, not raised"""
        result = await self.gateway.run(f"{self.settings.bind9_rndc} reload")
        if not result.ok:
            logger.warning(f"rndc reload failed: {result.message}")
        return result.ok
