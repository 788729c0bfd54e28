"""
dnsadmin - BIND9 configuration and lifecycle administration
"""

from .main import DnsAdmin, configure_logging, create_dns_admin

__all__ = ["DnsAdmin", "configure_logging", "create_dns_admin"]
