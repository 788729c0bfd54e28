"""
Zone Service - zone and record management
Every mutation runs under the context lock, rewrites the affected files and reloads the daemon
"""

import ipaddress
import logging
import shlex
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from ..models.common import ActionResult, ValidationResult
from ..models.records import DnsRecord, RecordType
from ..models.zones import (
    BulkImportRequest,
    BulkImportResult,
    CreateZoneRequest,
    DnsZone,
    IpPtrSuggestion,
    ReverseGenerationResult,
    SoaRecord,
    UpdateZoneOptionsRequest,
    UpdateZoneRequest,
    ZoneKind,
    ZoneRole,
    is_valid_zone_name,
)
from .context import DnsContext
from .parsers import parse_zone_import
from .renderer import BindConfigWriter, render_zone_file
from .resolver import (
    derive_reverse_zone,
    initial_serial,
    next_serial,
    owner_fqdn,
    sanitize_acl_entries,
)


logger = logging.getLogger(__name__)

ACL_FIELDS = (
    "master_addresses",
    "allow_transfer",
    "allow_update",
    "allow_query",
    "also_notify",
    "forwarders",
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _clean_record(record: DnsRecord) -> DnsRecord:
    return record.model_copy(update={
        "id": record.id.strip() or _new_id(),
        "name": record.name.strip(),
        "value": record.value.strip(),
    })


def _same_address(a: str, b: str) -> bool:
    try:
        return ipaddress.ip_address(a.strip()) == ipaddress.ip_address(b.strip())
    except ValueError:
        return a.strip() == b.strip()


def with_records(zone: DnsZone, records: List[DnsRecord]) -> DnsZone:
    """Copy of zone with new records and the next serial"""
    soa = zone.soa.model_copy(update={"serial": next_serial(zone.soa.serial)})
    return zone.model_copy(update={"records": records, "soa": soa})


class ZoneService:
    """Zone and record CRUD, import/export and reverse zone generation"""

    def __init__(self, ctx: DnsContext):
        self.ctx = ctx
        self.writer = BindConfigWriter(ctx)

    # =========================================================================
    # Helpers (caller holds the lock)
    # =========================================================================

    def _acl_updates(self, request: UpdateZoneOptionsRequest) -> Dict[str, List[str]]:
        updates = {}
        for name in ACL_FIELDS:
            value = getattr(request, name)
            if value is not None:
                updates[name] = sanitize_acl_entries(value)
        return updates

    def _write_files(self, zone: DnsZone, zone_file: bool = True) -> None:
        if zone_file and zone.role == ZoneRole.MASTER:
            self.writer.write_zone_file(zone)
        if zone.enabled:
            self.writer.write_zone_block(zone)

    def _commit_records(self, zone: DnsZone, records: List[DnsRecord]) -> DnsZone:
        updated = with_records(zone, records)
        if updated.role == ZoneRole.MASTER:
            self.writer.write_zone_file(updated)
        self.ctx.replace_zone(updated)
        return updated

    # =========================================================================
    # Zones
    # =========================================================================

    async def list_zones(self) -> List[DnsZone]:
        return [z.model_copy(deep=True) for z in self.ctx.load_zones()]

    async def get_zone(self, zone_id: str) -> Optional[DnsZone]:
        zone = self.ctx.find_zone(zone_id)
        return zone.model_copy(deep=True) if zone else None

    async def create_zone(self, request: CreateZoneRequest) -> Optional[DnsZone]:
        """Create a zone; None when the name is blank, malformed or already used"""
        name = request.name.strip().rstrip(".")
        if not name:
            logger.warning("Refusing to create a zone with a blank name")
            return None
        if not is_valid_zone_name(name):
            logger.warning(f"Refusing to create a zone with an invalid name: {name!r}")
            return None

        async with self.ctx.lock:
            if self.ctx.find_zone_by_name(name):
                logger.warning(f"Zone already exists: {name}")
                return None

            records = []
            if request.kind == ZoneKind.FORWARD and request.role == ZoneRole.MASTER:
                security = self.ctx.security_store.load()
                for ns in security.default_name_servers:
                    ns = ns.strip()
                    if ns:
                        records.append(DnsRecord(
                            id=_new_id(),
                            name="@",
                            type=RecordType.NS,
                            value=ns if ns.endswith(".") else f"{ns}.",
                            ttl=self.ctx.settings.default_record_ttl,
                        ))

            zone = DnsZone(
                id=_new_id(),
                name=name,
                kind=request.kind,
                role=request.role,
                file_path=str(self.ctx.zone_file_path(name)),
                soa=request.soa.model_copy(update={"serial": initial_serial(request.soa.serial)}),
                records=records,
                **{f: sanitize_acl_entries(getattr(request, f)) for f in ACL_FIELDS},
            )

            try:
                self._write_files(zone)
                self.ctx.save_zones(self.ctx.load_zones() + [zone])
            except OSError:
                logger.exception(f"Failed to create zone {name}")
                return None

            logger.info(f"Created zone {name} ({zone.kind.value}/{zone.role.value})")
            await self.ctx.reload_bind()
            return zone.model_copy(deep=True)

    async def delete_zone(self, zone_id: str) -> bool:
        async with self.ctx.lock:
            zone = self.ctx.find_zone(zone_id)
            if not zone:
                return False

            try:
                path = self.ctx.zone_file_path(zone.name)
                for artifact in (path, Path(f"{path}.signed"), Path(f"{path}.jnl")):
                    artifact.unlink(missing_ok=True)
                self.writer.remove_zone_block(zone.name)
                self.ctx.save_zones([z for z in self.ctx.load_zones() if z.id != zone_id])
            except OSError:
                logger.exception(f"Failed to delete zone {zone.name}")
                return False

            logger.info(f"Deleted zone {zone.name}")
            await self.ctx.reload_bind()
            return True

    async def toggle_zone(self, zone_id: str) -> bool:
        """Enable/disable a zone; its file and metadata are kept"""
        async with self.ctx.lock:
            zone = self.ctx.find_zone(zone_id)
            if not zone:
                return False

            toggled = zone.model_copy(update={"enabled": not zone.enabled})
            try:
                if toggled.enabled:
                    self.writer.write_zone_block(toggled)
                else:
                    self.writer.remove_zone_block(toggled.name)
                self.ctx.replace_zone(toggled)
            except OSError:
                logger.exception(f"Failed to toggle zone {zone.name}")
                return False

            logger.info(f"Zone {zone.name} {'enabled' if toggled.enabled else 'disabled'}")
            await self.ctx.reload_bind()
            return True

    async def update_zone_options(self, zone_id: str, request: UpdateZoneOptionsRequest) -> bool:
        async with self.ctx.lock:
            zone = self.ctx.find_zone(zone_id)
            if not zone:
                return False

            updated = zone.model_copy(update=self._acl_updates(request))
            try:
                self._write_files(updated, zone_file=False)
                self.ctx.replace_zone(updated)
            except OSError:
                logger.exception(f"Failed to update options of zone {zone.name}")
                return False

            await self.ctx.reload_bind()
            return True

    async def update_zone(self, zone_id: str, request: UpdateZoneRequest) -> bool:
        """Partial update of role, kind, SOA and ACL lists"""
        async with self.ctx.lock:
            zone = self.ctx.find_zone(zone_id)
            if not zone:
                return False

            updates = self._acl_updates(request)
            if request.role is not None:
                updates["role"] = request.role
            if request.kind is not None:
                updates["kind"] = request.kind
            if request.soa is not None:
                serial = next_serial(max(zone.soa.serial, request.soa.serial))
                updates["soa"] = request.soa.model_copy(update={"serial": serial})

            updated = zone.model_copy(update=updates)
            became_master = (
                request.role is not None
                and request.role != zone.role
                and updated.role == ZoneRole.MASTER
            )

            try:
                self._write_files(updated, zone_file=request.soa is not None or became_master)
                self.ctx.replace_zone(updated)
            except OSError:
                logger.exception(f"Failed to update zone {zone.name}")
                return False

            await self.ctx.reload_bind()
            return True

    # =========================================================================
    # Records
    # =========================================================================

    async def get_records(self, zone_id: str) -> List[DnsRecord]:
        zone = self.ctx.find_zone(zone_id)
        return [r.model_copy() for r in zone.records] if zone else []

    async def update_records(self, zone_id: str, records: List[DnsRecord]) -> bool:
        """Replace all records of a zone"""
        async with self.ctx.lock:
            zone = self.ctx.find_zone(zone_id)
            if not zone:
                return False

            try:
                self._commit_records(zone, [_clean_record(r) for r in records])
            except OSError:
                logger.exception(f"Failed to update records of {zone.name}")
                return False

            await self.ctx.reload_bind()
            return True

    async def add_record(self, zone_id: str, record: DnsRecord) -> Optional[DnsRecord]:
        async with self.ctx.lock:
            zone = self.ctx.find_zone(zone_id)
            if not zone:
                return None

            new_record = _clean_record(record)
            try:
                self._commit_records(zone, zone.records + [new_record])
            except OSError:
                logger.exception(f"Failed to add record to {zone.name}")
                return None

            logger.debug(f"Added {new_record.type.value} record {new_record.name} to {zone.name}")
            await self.ctx.reload_bind()
            return new_record.model_copy()

    async def delete_record(self, zone_id: str, record_id: str) -> bool:
        async with self.ctx.lock:
            zone = self.ctx.find_zone(zone_id)
            if not zone:
                return False

            remaining = [r for r in zone.records if r.id != record_id]
            if len(remaining) == len(zone.records):
                return False

            try:
                self._commit_records(zone, remaining)
            except OSError:
                logger.exception(f"Failed to delete record from {zone.name}")
                return False

            await self.ctx.reload_bind()
            return True

    # =========================================================================
    # Import / Export
    # =========================================================================

    async def import_zone_file(self, request: BulkImportRequest) -> BulkImportResult:
        """Append records parsed from zone file text"""
        if request.format.lower() != "bind":
            return BulkImportResult(success=False, errors=[f"Unsupported import format: {request.format}"])

        parsed = parse_zone_import(request.content)

        async with self.ctx.lock:
            zone = self.ctx.find_zone(request.zone_id)
            if not zone:
                return BulkImportResult(success=False, errors=["Zone not found"])

            if not parsed.records:
                return BulkImportResult(
                    success=not parsed.errors,
                    skipped=parsed.skipped,
                    errors=parsed.errors,
                )

            try:
                self._commit_records(zone, zone.records + parsed.records)
            except OSError:
                logger.exception(f"Failed to import records into {zone.name}")
                return BulkImportResult(success=False, errors=["Failed to write zone"])

            logger.info(
                f"Imported {len(parsed.records)} records into {zone.name} "
                f"({parsed.skipped} skipped, {len(parsed.errors)} errors)"
            )
            await self.ctx.reload_bind()

        return BulkImportResult(
            success=True,
            imported=len(parsed.records),
            skipped=parsed.skipped,
            errors=parsed.errors,
        )

    async def get_zone_file_content(self, zone_id: str) -> Optional[str]:
        """Zone file as currently on disk"""
        zone = self.ctx.find_zone(zone_id)
        if not zone:
            return None
        path = self.ctx.zone_file_path(zone.name)
        return path.read_text() if path.exists() else None

    async def export_zone_file(self, zone_id: str) -> Optional[str]:
        """Zone file rendered from the stored zone"""
        zone = self.ctx.find_zone(zone_id)
        if not zone:
            return None
        return render_zone_file(zone.name, zone.soa, zone.records)

    async def validate_zone(self, zone_id: str) -> ValidationResult:
        zone = self.ctx.find_zone(zone_id)
        if not zone:
            return ValidationResult(valid=False, output="Zone not found")

        path = self.ctx.to_daemon(self.ctx.zone_file_path(zone.name))
        result = await self.ctx.gateway.run(
            f"{self.ctx.settings.bind9_named_checkzone} {shlex.quote(zone.name)} {shlex.quote(path)}"
        )
        return ValidationResult(valid=result.ok, output=result.stdout.strip() or result.stderr.strip())

    async def regenerate_zone_files(self) -> ActionResult:
        """Rewrite every zone file and declaration from the stored zones"""
        async with self.ctx.lock:
            zones = self.ctx.load_zones()
            try:
                for zone in zones:
                    if zone.role == ZoneRole.MASTER:
                        self.writer.write_zone_file(zone)
                    if zone.enabled:
                        self.writer.write_zone_block(zone)
                    else:
                        self.writer.remove_zone_block(zone.name)
            except OSError as e:
                logger.exception("Failed to regenerate zone files")
                return ActionResult(success=False, message=f"Failed to regenerate zone files: {e}")

            await self.ctx.reload_bind()
            return ActionResult(success=True, message=f"Regenerated {len(zones)} zones")

    # =========================================================================
    # Reverse DNS
    # =========================================================================

    async def suggest_reverse_zone(self, ip: str) -> IpPtrSuggestion:
        info = derive_reverse_zone(ip)
        suggestion = IpPtrSuggestion(ip=info.ip)
        if not info.valid:
            return suggestion

        suggestion.reverse_zone = info.reverse_zone
        suggestion.ptr_record_name = info.ptr_name

        for zone in self.ctx.load_zones():
            if zone.kind != ZoneKind.FORWARD:
                continue
            for record in zone.records:
                if record.type in (RecordType.A, RecordType.AAAA) and _same_address(record.value, info.ip):
                    suggestion.domain = owner_fqdn(record.name, zone.name).rstrip(".")
                    return suggestion
        return suggestion

    async def generate_reverse_zones(self, zone_id: str) -> ReverseGenerationResult:
        """Create reverse zones and PTR records for the A/AAAA records of a forward zone"""
        async with self.ctx.lock:
            zone = self.ctx.find_zone(zone_id)
            if not zone:
                return ReverseGenerationResult(success=False, message="Zone not found")
            if zone.kind != ZoneKind.FORWARD:
                return ReverseGenerationResult(
                    success=False,
                    message="Reverse zones can only be generated from a forward zone",
                )

            changed: Dict[str, DnsZone] = {}
            created: List[str] = []
            added = skipped = 0
            errors: List[str] = []

            for record in zone.records:
                if record.type not in (RecordType.A, RecordType.AAAA):
                    continue

                info = derive_reverse_zone(record.value)
                if not info.valid:
                    errors.append(f"{record.name} {record.type.value} {record.value}: invalid address")
                    continue

                key = info.reverse_zone.lower()
                target = changed.get(key) or self.ctx.find_zone_by_name(info.reverse_zone)

                if target is None:
                    target = DnsZone(
                        id=_new_id(),
                        name=info.reverse_zone,
                        kind=ZoneKind.REVERSE,
                        role=ZoneRole.MASTER,
                        file_path=str(self.ctx.zone_file_path(info.reverse_zone)),
                        soa=SoaRecord(
                            primary_ns=zone.soa.primary_ns,
                            admin_email=zone.soa.admin_email,
                            serial=initial_serial(0),
                            refresh=zone.soa.refresh,
                            retry=zone.soa.retry,
                            expire=zone.soa.expire,
                            minimum_ttl=zone.soa.minimum_ttl,
                        ),
                        records=[DnsRecord(
                            id=_new_id(),
                            name="@",
                            type=RecordType.NS,
                            value=zone.soa.primary_ns,
                            ttl=self.ctx.settings.default_record_ttl,
                        )],
                    )
                    created.append(target.name)
                    changed[key] = target
                elif target.role != ZoneRole.MASTER:
                    errors.append(f"{record.value}: reverse zone {target.name} is not a master zone")
                    continue

                ptr_value = owner_fqdn(record.name, zone.name)
                exists = any(
                    r.type == RecordType.PTR
                    and r.name == info.ptr_name
                    and r.value.rstrip(".").lower() == ptr_value.rstrip(".").lower()
                    for r in target.records
                )
                if exists:
                    skipped += 1
                    continue

                ptr = DnsRecord(id=_new_id(), name=info.ptr_name, type=RecordType.PTR, value=ptr_value, ttl=record.ttl)
                changed[key] = target.model_copy(update={"records": target.records + [ptr]})
                added += 1

            if changed:
                # New zones keep their initial serial
                final: Dict[str, DnsZone] = {}
                for target in changed.values():
                    if target.name not in created:
                        target = with_records(target, target.records)
                    final[target.id] = target

                try:
                    for target in final.values():
                        self._write_files(target)
                    zones = [final.pop(z.id, z) for z in self.ctx.load_zones()]
                    self.ctx.save_zones(zones + list(final.values()))
                except OSError as e:
                    logger.exception(f"Failed to write reverse zones for {zone.name}")
                    return ReverseGenerationResult(success=False, message=str(e), errors=errors)

                await self.ctx.reload_bind()

            logger.info(
                f"Reverse generation for {zone.name}: {len(created)} zones created, "
                f"{added} PTR added, {skipped} skipped"
            )
            return ReverseGenerationResult(
                success=not errors or added > 0 or skipped > 0,
                message=f"Created {len(created)} reverse zones, added {added} PTR records",
                created_zones=created,
                added_records=added,
                skipped_records=skipped,
                errors=errors,
            )
