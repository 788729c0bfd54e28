"""
BIND9 Service Layer
Zone, access, options, DNSSEC, server and install management
"""

from .context import DnsContext
from .gateway import CommandGateway, CommandError, BindLayout, detect_layout
from .store import JsonStore
from .zones import ZoneService
from .templates import TemplateService
from .acls import AccessService
from .options import OptionsService
from .dnssec import DNSSECService, DnssecError
from .server import ServerService
from .install import InstallService
from .propagation import PropagationService, DnsQuerier, DnspythonQuerier

__all__ = [
    "DnsContext",
    "CommandGateway",
    "CommandError",
    "BindLayout",
    "detect_layout",
    "JsonStore",
    "ZoneService",
    "TemplateService",
    "AccessService",
    "OptionsService",
    "DNSSECService",
    "DnssecError",
    "ServerService",
    "InstallService",
    "PropagationService",
    "DnsQuerier",
    "DnspythonQuerier",
]
