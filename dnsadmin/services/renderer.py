"""
Config Renderer - zone files, zone declarations and named.conf fragments
Rendering functions are pure; BindConfigWriter puts their output on disk
"""

import grp
import logging
import os
import pwd
from pathlib import Path
from typing import Iterable, List, Optional

from ..models.acls import DnsAcl, TsigKey
from ..models.records import DnsRecord, RecordType
from ..models.server import ForwarderConfig, GlobalSecurityConfig
from ..models.zones import DnsZone, SoaRecord, ZoneRole
from .gateway import CONTAINER_ZONES_DIR


logger = logging.getLogger(__name__)

BLOCK_START = "# --- dnsadmin zone start: {name} ---"
BLOCK_END = "# --- dnsadmin zone end: {name} ---"

GENERATED_HEADER = "// Generated by dnsadmin - DO NOT EDIT MANUALLY"

LOGGING_CONF = """\
logging {
    channel default_log {
        stderr;
        severity info;
        print-time yes;
        print-severity yes;
        print-category yes;
    };
    category default { default_log; };
    category queries { default_log; };
    category security { default_log; };
    category xfer-out { default_log; };
    category notify { default_log; };
};
"""


def _addr_list(entries: Iterable[str]) -> str:
    """BIND address match list: `{ a; b; }`"""
    items = "".join(f"{e}; " for e in entries)
    return f"{{ {items}}}"


# =============================================================================
# Zone Files
# =============================================================================

def format_record(record: DnsRecord) -> str:
    """Single zone file line for a record"""
    name = record.name.ljust(24)
    rtype = record.type.value

    if record.type == RecordType.MX:
        priority = record.priority if record.priority is not None else 10
        data = f"{priority} {record.value}"
    elif record.type == RecordType.SRV:
        data = (
            f"{record.priority if record.priority is not None else 0} "
            f"{record.weight if record.weight is not None else 0} "
            f"{record.port if record.port is not None else 0} {record.value}"
        )
    elif record.type == RecordType.TXT:
        value = record.value
        data = value if value.startswith('"') and value.endswith('"') and len(value) > 1 else f'"{value}"'
    else:
        data = record.value

    return f"{name} {record.ttl:<8} IN  {rtype:<6} {data}"


def render_zone_file(zone_name: str, soa: SoaRecord, records: List[DnsRecord]) -> str:
    """Zone file text; depends only on its arguments"""
    lines = [
        f"; Zone file for {zone_name}",
        "; Generated by dnsadmin",
        f"; Serial: {soa.serial}",
        f"$TTL {soa.minimum_ttl}",
        f"@    IN    SOA    {soa.primary_ns} {soa.admin_email} (",
        f"                  {soa.serial:<12} ; Serial",
        f"                  {soa.refresh:<12} ; Refresh",
        f"                  {soa.retry:<12} ; Retry",
        f"                  {soa.expire:<12} ; Expire",
        f"                  {soa.minimum_ttl:<12} ; Negative TTL",
        "                  )",
        "",
    ]

    if not any(r.type == RecordType.NS for r in records):
        lines.append(f"{'@'.ljust(24)} {soa.minimum_ttl:<8} IN  {'NS':<6} {soa.primary_ns}")

    for record in records:
        if record.type == RecordType.SOA:
            continue
        lines.append(format_record(record))

    return "\n".join(lines) + "\n"


# =============================================================================
# Zone Declarations
# =============================================================================

def render_zone_block(zone: DnsZone, zone_file: str, key_directory: Optional[str] = None) -> str:
    """
    Zone declaration for named.conf.local

    zone_file and key_directory are paths as the daemon sees them.
    """
    lines = [f'zone "{zone.name}" {{']

    if zone.role == ZoneRole.MASTER:
        lines.append("    type master;")
        lines.append(f'    file "{zone_file}";')
    elif zone.role in (ZoneRole.SLAVE, ZoneRole.STUB):
        lines.append(f"    type {zone.role.value};")
        lines.append(f'    file "{zone_file}";')
        if zone.master_addresses:
            lines.append(f"    masters {_addr_list(zone.master_addresses)};")
    elif zone.role == ZoneRole.FORWARD_ONLY:
        lines.append("    type forward;")
        lines.append("    forward only;")
        lines.append(f"    forwarders {_addr_list(zone.forwarders)};")
    else:
        raise ValueError(f"Unsupported zone role: {zone.role}")

    if zone.role == ZoneRole.MASTER:
        lines.append(f"    allow-transfer {_addr_list(zone.allow_transfer or ['none'])};")
        lines.append(f"    allow-update {_addr_list(zone.allow_update or ['none'])};")
    else:
        if zone.allow_transfer:
            lines.append(f"    allow-transfer {_addr_list(zone.allow_transfer)};")
        if zone.allow_update and zone.role != ZoneRole.FORWARD_ONLY:
            lines.append(f"    allow-update {_addr_list(zone.allow_update)};")

    if zone.allow_query:
        lines.append(f"    allow-query {_addr_list(zone.allow_query)};")
    if zone.also_notify:
        lines.append(f"    also-notify {_addr_list(zone.also_notify)};")

    if zone.role == ZoneRole.MASTER and zone.dnssec_enabled:
        lines.append("    auto-dnssec maintain;")
        lines.append("    inline-signing yes;")
        if key_directory:
            lines.append(f'    key-directory "{key_directory}";')

    lines.append("};")
    return "\n".join(lines)


class ManagedBlockFile:
    """named.conf.local with one marker-delimited block per zone"""

    def __init__(self, path: Path):
        self.path = Path(path)

    def read(self) -> str:
        return self.path.read_text() if self.path.exists() else ""

    def has_block(self, name: str) -> bool:
        return BLOCK_START.format(name=name) in self.read()

    def count_blocks(self, name: str) -> int:
        return self.read().count(BLOCK_START.format(name=name))

    def _without_block(self, name: str) -> List[str]:
        start = BLOCK_START.format(name=name)
        end = BLOCK_END.format(name=name)

        filtered = []
        skipping = False
        for line in self.read().splitlines():
            stripped = line.strip()
            if stripped == start:
                skipping = True
            elif stripped == end:
                skipping = False
            elif not skipping:
                filtered.append(line)
        return filtered

    def remove_block(self, name: str) -> None:
        if not self.path.exists():
            return
        content = "\n".join(self._without_block(name)).rstrip() + "\n"
        write_config_file(self.path, content)

    def write_block(self, name: str, block: str) -> None:
        """Replace the zone's block, leaving exactly one"""
        body = "\n".join(self._without_block(name)).rstrip()
        wrapped = "\n".join([BLOCK_START.format(name=name), block, BLOCK_END.format(name=name)])
        content = f"{body}\n\n{wrapped}\n" if body else f"{wrapped}\n"
        write_config_file(self.path, content)


# =============================================================================
# Fragments
# =============================================================================

def render_acls(acls: List[DnsAcl]) -> str:
    lines = [GENERATED_HEADER]
    for acl in acls:
        if acl.comment.strip():
            lines.append(f"// {acl.comment.strip()}")
        lines.append(f'acl "{acl.name}" {{')
        for entry in acl.entries:
            if entry.startswith("key "):
                key_name = entry[4:].replace('"', "").strip()
                lines.append(f'    key "{key_name}";')
            else:
                lines.append(f"    {entry};")
        lines.append("};")
        lines.append("")
    return "\n".join(lines) + "\n"


def render_tsig_keys(keys: List[TsigKey]) -> str:
    lines = [GENERATED_HEADER]
    for key in keys:
        lines.append(f'key "{key.name}" {{')
        lines.append(f"    algorithm {key.algorithm.value};")
        lines.append(f'    secret "{key.secret}";')
        lines.append("};")
        lines.append("")
    return "\n".join(lines) + "\n"


def render_forwarders(config: ForwarderConfig) -> str:
    """Forwarders fragment, included from inside the options block"""
    if not config.forwarders:
        return "// No global forwarders configured\n"

    lines = ["// Generated by dnsadmin - Global Forwarders", "forwarders {"]
    lines.extend(f"    {f};" for f in config.forwarders)
    lines.append("};")
    if config.forward_only:
        lines.append("forward only;")
    return "\n".join(lines) + "\n"


def render_options(security: GlobalSecurityConfig, forwarders_include: str) -> str:
    """Global options block"""
    lines = [
        "// Generated by dnsadmin - Global Options",
        "options {",
        f'    directory "{CONTAINER_ZONES_DIR}";',
        f"    listen-on {{ {'any' if security.ipv4_enabled else 'none'}; }};",
        f"    listen-on-v6 {{ {'any' if security.ipv6_enabled else 'none'}; }};",
        f"    allow-query {_addr_list(security.allow_query or ['any'])};",
        "",
        "    // Global security",
        f"    recursion {'yes' if security.recursion_enabled else 'no'};",
    ]

    if security.recursion_enabled and security.allow_recursion:
        lines.append(f"    allow-recursion {_addr_list(security.allow_recursion)};")
    else:
        lines.append("    allow-recursion { none; };")

    lines.extend([
        "    allow-transfer { none; };",
        "    allow-update { none; };",
        '    version "none";',
        "",
        f"    minimal-responses {'yes' if security.minimal_responses else 'no'};",
        f"    edns-udp-size {security.edns_udp_size};",
        f"    tcp-clients {security.tcp_clients};",
        f"    max-cache-size {security.max_cache_size};",
    ])

    if security.reuseport:
        lines.append("    reuseport yes;")

    if security.rate_limit_enabled:
        lines.extend([
            "",
            "    // Response Rate Limiting (RRL)",
            "    rate-limit {",
            f"        responses-per-second {security.rate_limit_responses_per_second};",
            f"        window {security.rate_limit_window};",
            "    };",
        ])

    lines.extend([
        "",
        "    dnssec-validation auto;",
        "",
        f'    include "{forwarders_include}";',
        "};",
    ])
    return "\n".join(lines) + "\n"


# =============================================================================
# File Operations
# =============================================================================

def set_bind_ownership(path: Path) -> None:
    """
    Set file ownership to bind:bind and permissions to 664.
    Falls back to named:named, then to permissions only.
    """
    try:
        for user in ("bind", "named"):
            try:
                uid = pwd.getpwnam(user).pw_uid
                gid = grp.getgrnam(user).gr_gid
            except KeyError:
                continue
            os.chown(path, uid, gid)
            os.chmod(path, 0o664)
            return
        os.chmod(path, 0o644)
    except PermissionError:
        # Not running as root
        try:
            os.chmod(path, 0o664)
        except PermissionError:
            logger.debug(f"Cannot change permissions of {path}")


def write_config_file(path: Path, content: str) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    set_bind_ownership(path)


def ensure_include(named_conf: Path, include_path: str, prepend: bool = False) -> bool:
    """
    Add `include "<include_path>";` to the root config if absent
    Returns True when the file was changed
    """
    directive = f'include "{include_path}";'
    content = named_conf.read_text() if named_conf.exists() else ""

    if directive in content:
        return False

    if prepend:
        content = f"{directive}\n{content}"
    else:
        content = content.rstrip("\n")
        content = f"{content}\n{directive}\n" if content else f"{directive}\n"

    write_config_file(named_conf, content)
    logger.info(f"Added {directive} to {named_conf}")
    return True


# =============================================================================
# Writer
# =============================================================================

class BindConfigWriter:
    """Writes rendered config for the current layout"""

    def __init__(self, ctx):
        self.ctx = ctx

    @property
    def layout(self):
        return self.ctx.layout

    def _fragment(self, name: str) -> Path:
        return self.layout.config_dir / name

    def _include(self, name: str, prepend: bool = False) -> None:
        ensure_include(self.layout.named_conf, self.ctx.to_daemon(self._fragment(name)), prepend=prepend)

    # Zone files and declarations

    def write_zone_file(self, zone: DnsZone) -> Path:
        path = self.ctx.zone_file_path(zone.name)
        write_config_file(path, render_zone_file(zone.name, zone.soa, zone.records))
        logger.debug(f"Wrote zone file {path} (serial {zone.soa.serial})")
        return path

    def zone_block(self, zone: DnsZone) -> str:
        path = self.ctx.zone_file_path(zone.name)
        signed = Path(f"{path}.signed")
        if zone.dnssec_enabled and signed.exists():
            path = signed
        return render_zone_block(zone, self.ctx.to_daemon(path), self.ctx.to_daemon(self.layout.keys_dir))

    def write_zone_block(self, zone: DnsZone) -> None:
        ManagedBlockFile(self.layout.named_conf_local).write_block(zone.name, self.zone_block(zone))
        self._include("named.conf.local")

    def remove_zone_block(self, zone_name: str) -> None:
        ManagedBlockFile(self.layout.named_conf_local).remove_block(zone_name)

    # Fragments

    def write_acls(self, acls: List[DnsAcl]) -> None:
        write_config_file(self._fragment("named.conf.acl"), render_acls(acls))
        self._include("named.conf.acl", prepend=True)

    def write_tsig_keys(self, keys: List[TsigKey]) -> None:
        write_config_file(self._fragment("named.conf.tsig"), render_tsig_keys(keys))
        self._include("named.conf.tsig", prepend=True)

    def write_forwarders(self, config: ForwarderConfig) -> None:
        write_config_file(self._fragment("named.conf.forwarders"), render_forwarders(config))

    def write_options(self, security: GlobalSecurityConfig) -> None:
        forwarders = self._fragment("named.conf.forwarders")
        if not forwarders.exists():
            write_config_file(forwarders, render_forwarders(ForwarderConfig()))
        content = render_options(security, self.ctx.to_daemon(forwarders))
        write_config_file(self._fragment("named.conf.options"), content)
        self._include("named.conf.options")

    def seed_default_config(self, security: Optional[GlobalSecurityConfig] = None) -> bool:
        """Write a minimal working config tree if named.conf is absent"""
        if self.layout.named_conf.exists():
            return False

        logger.info(f"Seeding default BIND9 config in {self.layout.config_dir}")
        self.layout.config_dir.mkdir(parents=True, exist_ok=True)

        includes = [
            self.ctx.to_daemon(self._fragment(name))
            for name in ("named.conf.options", "named.conf.logging", "named.conf.local")
        ]
        write_config_file(self.layout.named_conf, "".join(f'include "{p}";\n' for p in includes))

        self.write_options(security or GlobalSecurityConfig())
        write_config_file(self._fragment("named.conf.logging"), LOGGING_CONF)

        local = self.layout.named_conf_local
        if not local.exists():
            write_config_file(local, "// Zone definitions go here\n")
        return True
