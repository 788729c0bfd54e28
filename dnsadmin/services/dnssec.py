"""
DNSSEC Service - key generation, signing and DS records
Tools run where the daemon runs; key files are read from the host side of the keys dir
"""

import logging
import re
import shlex
from pathlib import Path
from typing import List, Optional

from ..models.common import ActionResult
from ..models.dnssec import DnssecKeyInfo, DnssecStatus, KeyType
from ..models.zones import DnsZone, ZoneRole
from .context import DnsContext
from .gateway import CommandError
from .renderer import BindConfigWriter


logger = logging.getLogger(__name__)

# zone. [ttl] IN DNSKEY flags protocol algorithm public_key
_DNSKEY = re.compile(r"(\S+)\s+(?:\d+\s+)?IN\s+DNSKEY\s+(\d+)\s+(\d+)\s+(\d+)\s+(.+)")
# Kexample.com.+013+12345
_KEY_NAME = re.compile(r"^K.+\.\+(\d{3})\+(\d+)$")


class DnssecError(CommandError):
    """DNSSEC tool step failed"""
    pass


def parse_key_file(key_file: Path) -> Optional[DnssecKeyInfo]:
    """Key info from a K<zone>.+alg+tag.key file"""
    name_match = _KEY_NAME.match(key_file.stem)
    if not name_match:
        return None

    for line in key_file.read_text().splitlines():
        if line.startswith(";"):
            continue
        match = _DNSKEY.search(line)
        if not match:
            continue
        flags = int(match.group(2))
        return DnssecKeyInfo(
            key_name=key_file.stem,
            key_tag=int(name_match.group(2)),
            algorithm=int(match.group(4)),
            key_type=KeyType.KSK if flags == 257 else KeyType.ZSK,
            flags=flags,
            public_key_file=str(key_file),
        )
    return None


class DNSSECService:
    """DNSSEC lifecycle per zone: unsigned, enabled, signed"""

    def __init__(self, ctx: DnsContext):
        self.ctx = ctx
        self.writer = BindConfigWriter(ctx)

    @property
    def keys_dir(self) -> Path:
        return self.ctx.layout.keys_dir

    def _zone_keys(self, zone_name: str) -> List[DnssecKeyInfo]:
        if not self.keys_dir.exists():
            return []

        keys = []
        for key_file in sorted(self.keys_dir.glob(f"K{zone_name}.+*.key")):
            try:
                info = parse_key_file(key_file)
            except OSError as e:
                logger.warning(f"Cannot read key file {key_file}: {e}")
                continue
            if info:
                keys.append(info)
        return keys

    async def _run_step(self, command: str, what: str) -> None:
        result = await self.ctx.gateway.run(command, timeout=self.ctx.gateway.long_timeout)
        if not result.ok:
            raise DnssecError(f"{what} failed: {result.message}", result)

    async def _sign(self, zone: DnsZone) -> None:
        s = self.ctx.settings
        keys = self.ctx.to_daemon(self.keys_dir)
        zone_file = self.ctx.to_daemon(self.ctx.zone_file_path(zone.name))
        await self._run_step(
            f"{s.bind9_dnssec_signzone} -K {shlex.quote(keys)} -o {shlex.quote(zone.name)} -S {shlex.quote(zone_file)}",
            "Zone signing",
        )

    async def _ds_records(self, keys: List[DnssecKeyInfo]) -> List[str]:
        ds_records = []
        for key in keys:
            if key.key_type != KeyType.KSK:
                continue
            path = self.ctx.to_daemon(key.public_key_file)
            result = await self.ctx.gateway.run(f"{self.ctx.settings.bind9_dnssec_dsfromkey} {shlex.quote(path)}")
            if result.ok:
                ds_records.extend(line.strip() for line in result.stdout.splitlines() if line.strip())
            else:
                logger.warning(f"dnssec-dsfromkey failed for {key.key_name}: {result.message}")
        return ds_records

    # =========================================================================
    # Status
    # =========================================================================

    async def get_dnssec_status(self, zone_id: str) -> DnssecStatus:
        zone = self.ctx.find_zone(zone_id)
        if not zone or not zone.dnssec_enabled:
            return DnssecStatus()

        keys = self._zone_keys(zone.name)
        ksk = next((k for k in keys if k.key_type == KeyType.KSK), None)
        zsk = next((k for k in keys if k.key_type == KeyType.ZSK), None)

        return DnssecStatus(
            enabled=True,
            signed=Path(f"{self.ctx.zone_file_path(zone.name)}.signed").exists(),
            ksk_key_tag=ksk.key_tag if ksk else None,
            zsk_key_tag=zsk.key_tag if zsk else None,
            keys=keys,
            ds_records=await self._ds_records(keys),
        )

    async def get_ds_records(self, zone_id: str) -> List[str]:
        return (await self.get_dnssec_status(zone_id)).ds_records

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def enable_dnssec(self, zone_id: str) -> ActionResult:
        """Generate KSK and ZSK, sign the zone and switch it to inline signing"""
        async with self.ctx.lock:
            zone = self.ctx.find_zone(zone_id)
            if not zone:
                return ActionResult(success=False, message="Zone not found")
            if zone.role != ZoneRole.MASTER:
                return ActionResult(success=False, message="DNSSEC can only be enabled on master zones")

            s = self.ctx.settings
            keys = self.ctx.to_daemon(self.keys_dir)
            try:
                await self._run_step(f"mkdir -p {shlex.quote(keys)}", "Creating key directory")
                await self._run_step(
                    f"{s.bind9_dnssec_keygen} -K {shlex.quote(keys)} -a {s.dnssec_algorithm} -f KSK {shlex.quote(zone.name)}",
                    "KSK generation",
                )
                await self._run_step(
                    f"{s.bind9_dnssec_keygen} -K {shlex.quote(keys)} -a {s.dnssec_algorithm} {shlex.quote(zone.name)}",
                    "ZSK generation",
                )
                await self._sign(zone)

                updated = zone.model_copy(update={"dnssec_enabled": True})
                if updated.enabled:
                    self.writer.write_zone_block(updated)
                self.ctx.replace_zone(updated)
            except DnssecError as e:
                logger.error(f"Enabling DNSSEC for {zone.name}: {e.message}")
                return ActionResult(success=False, message=str(e))
            except OSError as e:
                logger.exception(f"Enabling DNSSEC for {zone.name}")
                return ActionResult(success=False, message=f"Failed to enable DNSSEC: {e}")

            logger.info(f"DNSSEC enabled for {zone.name}")
            await self.ctx.reload_bind()
            return ActionResult(success=True, message=f"DNSSEC enabled for {zone.name}")

    async def sign_zone(self, zone_id: str) -> ActionResult:
        async with self.ctx.lock:
            zone = self.ctx.find_zone(zone_id)
            if not zone:
                return ActionResult(success=False, message="Zone not found")
            if not zone.dnssec_enabled:
                return ActionResult(success=False, message="DNSSEC is not enabled for this zone")

            keys = self.ctx.to_daemon(self.keys_dir)
            try:
                await self._run_step(f"mkdir -p {shlex.quote(keys)}", "Creating key directory")
                await self._sign(zone)
            except DnssecError as e:
                return ActionResult(success=False, message=str(e))

            await self.ctx.reload_bind()
            return ActionResult(success=True, message=f"Zone {zone.name} successfully signed")

    async def disable_dnssec(self, zone_id: str) -> ActionResult:
        """Remove the signed file and keys, back to an unsigned zone"""
        async with self.ctx.lock:
            zone = self.ctx.find_zone(zone_id)
            if not zone:
                return ActionResult(success=False, message="Zone not found")

            try:
                Path(f"{self.ctx.zone_file_path(zone.name)}.signed").unlink(missing_ok=True)
                if self.keys_dir.exists():
                    for key_file in self.keys_dir.glob(f"K{zone.name}.+*"):
                        key_file.unlink()

                updated = zone.model_copy(update={"dnssec_enabled": False})
                if updated.enabled:
                    self.writer.write_zone_block(updated)
                self.ctx.replace_zone(updated)
            except OSError as e:
                logger.exception(f"Disabling DNSSEC for {zone.name}")
                return ActionResult(success=False, message=f"Failed to disable DNSSEC: {e}")

            logger.info(f"DNSSEC disabled for {zone.name}")
            await self.ctx.reload_bind()
            return ActionResult(success=True, message=f"DNSSEC disabled for {zone.name}")
