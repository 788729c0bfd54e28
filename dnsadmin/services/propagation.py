"""
Propagation Service - compare a zone's records with public resolver answers
"""

import asyncio
import logging
from typing import List, Optional, Protocol

import dns.asyncresolver
import dns.exception
import dns.resolver

from ..models.records import RecordType
from ..models.server import PropagationCheckResult, PropagationStatus
from .context import DnsContext
from .resolver import owner_fqdn


logger = logging.getLogger(__name__)


class DnsQuerier(Protocol):
    """Ask one server for one name/type"""

    async def query(self, name: str, rtype: str, server: str, timeout: float) -> List[str]:
        ...


class DnspythonQuerier:
    """Stub-resolver queries with dnspython"""

    async def query(self, name: str, rtype: str, server: str, timeout: float) -> List[str]:
        resolver = dns.asyncresolver.Resolver(configure=False)
        resolver.nameservers = [server]
        resolver.lifetime = timeout
        resolver.timeout = timeout

        try:
            answer = await resolver.resolve(name, rtype)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return []
        return [rdata.to_text() for rdata in answer]


def normalize_value(value: str) -> str:
    return value.strip().strip('"').rstrip(".").lower()


NAME_VALUED = (RecordType.CNAME, RecordType.NS, RecordType.PTR, RecordType.MX, RecordType.SRV)


def expected_text(record, zone_name: str) -> str:
    """Record data in the presentation form resolvers answer with"""
    value = record.value
    if record.type in NAME_VALUED:
        value = owner_fqdn(value, zone_name)
    if record.type == RecordType.MX:
        return f"{record.priority if record.priority is not None else 10} {value}"
    if record.type == RecordType.SRV:
        return f"{record.priority or 0} {record.weight or 0} {record.port or 0} {value}"
    return value


class PropagationService:
    """Check a record against the configured public resolvers"""

    def __init__(self, ctx: DnsContext, querier: Optional[DnsQuerier] = None):
        self.ctx = ctx
        self.querier = querier or DnspythonQuerier()

    async def _check_one(self, server: str, provider: str, fqdn: str, rtype: str, expected: List[str]) -> PropagationStatus:
        try:
            values = await self.querier.query(fqdn, rtype, server, self.ctx.settings.propagation_timeout)
        except (dns.exception.DNSException, OSError, asyncio.TimeoutError) as e:
            logger.debug(f"Propagation query {fqdn} {rtype} @{server} failed: {e}")
            return PropagationStatus(server=server, provider=provider, error=str(e) or type(e).__name__)

        answered = {normalize_value(v) for v in values}
        matches = bool(expected) and all(normalize_value(v) in answered for v in expected)
        return PropagationStatus(server=server, provider=provider, values=values, matches=matches)

    async def check_propagation(
        self,
        zone_id: str,
        name: str = "@",
        record_type: RecordType = RecordType.A,
    ) -> PropagationCheckResult:
        record_type = RecordType(record_type)
        result = PropagationCheckResult(zone_id=zone_id, record_name=name, record_type=record_type)

        zone = self.ctx.find_zone(zone_id)
        if not zone:
            return result

        fqdn = owner_fqdn(name, zone.name)
        expected = [
            expected_text(r, zone.name) for r in zone.records
            if r.type == record_type and owner_fqdn(r.name, zone.name).lower() == fqdn.lower()
        ]
        result.expected_value = ", ".join(expected)

        resolvers = self.ctx.settings.propagation_resolvers
        result.checks = list(await asyncio.gather(*(
            self._check_one(server, provider, fqdn, record_type.value, expected)
            for server, provider in resolvers.items()
        )))
        return result
