"""
Server Service - daemon control, lookups, statistics and logs
"""

import logging
import shlex
from pathlib import Path

from ..models.common import ActionResult, ValidationResult
from ..models.server import (
    InstallMethod,
    LookupRequest,
    LookupResult,
    QueryStats,
    ServiceStatus,
)
from .context import DnsContext
from .install import InstallService
from .parsers import extract_line, parse_dig_output, parse_query_stats


logger = logging.getLogger(__name__)


class ServerService:
    """Control the running daemon through rndc and friends"""

    def __init__(self, ctx: DnsContext, installer: InstallService):
        self.ctx = ctx
        self.installer = installer

    @property
    def rndc(self) -> str:
        return self.ctx.settings.bind9_rndc

    def _action(self, result, success_message: str) -> ActionResult:
        if result.ok:
            return ActionResult(success=True, message=success_message)
        return ActionResult(success=False, message=result.message)

    # =========================================================================
    # Status & Control
    # =========================================================================

    async def get_status(self) -> ServiceStatus:
        install = await self.installer.get_install_status()
        rndc_status = await self.ctx.gateway.run(f"{self.rndc} status")

        # rndc may not answer yet while the process is already up
        running = rndc_status.ok or (install.installed and install.running)

        if rndc_status.ok:
            version = extract_line(rndc_status.stdout, "version:")
            uptime = next(
                (line.strip() for line in rndc_status.stdout.splitlines() if "server is up and running" in line),
                "",
            )
        else:
            version = install.version
            uptime = ""

        check = await self.validate_config()
        return ServiceStatus(
            running=running,
            version=version,
            config_valid=check.valid,
            config_output=check.output,
            uptime=uptime,
            zone_count=len(self.ctx.load_zones()),
        )

    async def reload(self) -> ActionResult:
        result = await self.ctx.gateway.run(f"{self.rndc} reload")
        return self._action(result, "BIND9 reloaded")

    async def restart(self) -> ActionResult:
        if self.ctx.layout.container_mode:
            result = await self.ctx.gateway.run_host(
                f"{self.ctx.settings.container_runtime} restart {shlex.quote(self.ctx.layout.container_name)}"
            )
            return self._action(result, "BIND9 container restarted")

        result = await self.ctx.gateway.run("systemctl restart named || systemctl restart bind9")
        return self._action(result, "BIND9 restarted")

    async def flush_cache(self) -> ActionResult:
        result = await self.ctx.gateway.run(f"{self.rndc} flush")
        return self._action(result, "DNS cache flushed")

    async def validate_config(self) -> ValidationResult:
        result = await self.ctx.gateway.run(self.ctx.settings.bind9_named_checkconf)
        if result.ok:
            return ValidationResult(valid=True, output="Configuration OK")
        return ValidationResult(valid=False, output=result.message)

    # =========================================================================
    # Lookup
    # =========================================================================

    async def lookup(self, request: LookupRequest) -> LookupResult:
        """Query with dig from where the daemon runs"""
        parts = [self.ctx.settings.dig_path]
        if request.server and request.server.strip():
            parts.append(f"@{request.server.strip()}")
        parts.extend([request.query, request.type])
        command = " ".join(shlex.quote(p) for p in parts) + " +noall +answer +stats +comments"

        result = await self.ctx.gateway.run(command)
        if not result.ok:
            return LookupResult(
                success=False,
                query=request.query,
                type=request.type,
                raw_output=result.message,
            )

        parsed = parse_dig_output(result.stdout)
        return LookupResult(
            success=True,
            query=request.query,
            type=request.type,
            answers=parsed.answers,
            raw_output=result.stdout,
            query_time=parsed.query_time,
            server=parsed.server,
            status=parsed.status,
        )

    # =========================================================================
    # Statistics & Logs
    # =========================================================================

    async def _read_stats(self) -> str:
        files = self.ctx.settings.stats_files
        if self.ctx.layout.container_mode:
            command = " || ".join(f"cat {shlex.quote(f)} 2>/dev/null" for f in files)
            result = await self.ctx.gateway.run(command)
            return result.stdout if result.ok else ""

        for name in files:
            path = Path(name)
            if path.exists():
                return path.read_text(errors="replace")
        return ""

    async def get_query_stats(self) -> QueryStats:
        dump = await self.ctx.gateway.run(f"{self.rndc} stats")
        if not dump.ok:
            logger.warning(f"rndc stats failed: {dump.message}")

        try:
            raw = await self._read_stats()
        except OSError as e:
            logger.warning(f"Cannot read statistics file: {e}")
            raw = ""

        if not raw.strip():
            status = await self.ctx.gateway.run(f"{self.rndc} status")
            return QueryStats(raw_stats=status.stdout)

        return parse_query_stats(raw)

    async def get_logs(self, tail: int = 100) -> str:
        install = await self.installer.get_install_status()
        if not install.installed or not install.running:
            return "DNS service is not running."

        gateway = self.ctx.gateway
        if install.method == InstallMethod.DOCKER and install.container_id:
            result = await gateway.run_host(
                f"{self.ctx.settings.container_runtime} logs --tail {int(tail)} {shlex.quote(install.container_id)} 2>&1"
            )
            return result.stdout
        if install.method == InstallMethod.APT:
            result = await gateway.run_host(f"journalctl -u named -u bind9 -n {int(tail)} --no-pager")
            return result.stdout
        return "Log retrieval not supported for this installation type."
