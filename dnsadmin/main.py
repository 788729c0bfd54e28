"""
dnsadmin - Main entry point
Builds the service object that owns every BIND9 administration service
"""

import logging
from typing import Optional

from .config import Settings, get_settings
from .services.acls import AccessService
from .services.context import DnsContext
from .services.dnssec import DNSSECService
from .services.gateway import CommandGateway
from .services.install import InstallService
from .services.options import OptionsService
from .services.propagation import DnsQuerier, PropagationService
from .services.server import ServerService
from .services.templates import TemplateService
from .services.zones import ZoneService


logger = logging.getLogger(__name__)


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings"""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format,
    )


class DnsAdmin:
    """All administration services sharing one context"""

    def __init__(self, ctx: DnsContext, querier: Optional[DnsQuerier] = None):
        self.ctx = ctx
        self.zones = ZoneService(ctx)
        self.templates = TemplateService(ctx)
        self.access = AccessService(ctx)
        self.options = OptionsService(ctx)
        self.dnssec = DNSSECService(ctx)
        self.installer = InstallService(ctx)
        self.server = ServerService(ctx, self.installer)
        self.propagation = PropagationService(ctx, querier)

    @property
    def settings(self) -> Settings:
        return self.ctx.settings


def create_dns_admin(
    settings: Optional[Settings] = None,
    gateway: Optional[CommandGateway] = None,
    querier: Optional[DnsQuerier] = None,
) -> DnsAdmin:
    """Create the service object once at startup and pass it to callers"""
    settings = settings or get_settings()
    ctx = DnsContext(settings, gateway)

    layout = ctx.layout
    logger.info(
        f"Starting {settings.app_name}: "
        f"{'container ' + layout.container_name if layout.container_mode else 'host'} mode, "
        f"config={layout.config_dir}, zones={layout.zones_dir}"
    )
    return DnsAdmin(ctx, querier)
