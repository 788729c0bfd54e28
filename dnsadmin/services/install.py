"""
Install Service - provisions the daemon with docker compose or apt
"""

import logging
import shlex
from pathlib import Path

from ..models.common import ActionResult
from ..models.server import InstallMethod, InstallRequest, InstallStatus
from .context import DnsContext
from .renderer import BindConfigWriter


logger = logging.getLogger(__name__)

COMPOSE_TEMPLATE = """\
services:
  bind9:
    image: {image}
    container_name: {container_name}
    restart: unless-stopped
    environment:
      - TZ=UTC
      - BIND9_USER=bind
    ports:
      - "{host_port}:53/udp"
      - "{host_port}:53/tcp"
    volumes:
      - {config_path}:/etc/bind
      - {data_path}:/var/lib/bind
"""

APT_PACKAGES = "bind9 bind9utils bind9-doc dnsutils"


class InstallService:
    """Install, uninstall and detect the daemon"""

    def __init__(self, ctx: DnsContext):
        self.ctx = ctx
        self.writer = BindConfigWriter(ctx)

    @property
    def compose_file(self) -> Path:
        return self.ctx.settings.compose_dir / "docker-compose.yml"

    @property
    def env_file(self) -> Path:
        return self.ctx.settings.compose_dir / ".env"

    def _resolve_data_path(self, path: str) -> Path:
        p = Path(path)
        return p if p.is_absolute() else Path(self.ctx.settings.data_root) / p

    # =========================================================================
    # Status
    # =========================================================================

    async def get_install_status(self) -> InstallStatus:
        runtime = self.ctx.settings.container_runtime
        gateway = self.ctx.gateway

        if self.compose_file.exists():
            name = self.ctx.layout.container_name
            check = await gateway.run_host(
                f"{runtime} ps -a --filter name={shlex.quote(name)} --format '{{{{.ID}}}}|{{{{.Image}}}}|{{{{.Status}}}}'"
            )
            parts = check.stdout.strip().splitlines()[0].split("|") if check.ok and check.stdout.strip() else []
            if len(parts) >= 3:
                version = await gateway.run_host(f"{runtime} exec {shlex.quote(name)} named -v")
                return InstallStatus(
                    installed=True,
                    method=InstallMethod.DOCKER,
                    running=parts[2].lower().startswith("up"),
                    version=version.stdout.strip() if version.ok else "",
                    container_id=parts[0],
                    image=parts[1],
                    compose_file=str(self.compose_file),
                )
            return InstallStatus(
                installed=True,
                method=InstallMethod.DOCKER,
                compose_file=str(self.compose_file),
            )

        dpkg = await gateway.run_host("dpkg -s bind9")
        if dpkg.ok and "Status: install ok installed" in dpkg.stdout:
            version = await gateway.run_host("named -v")
            active = await gateway.run_host("systemctl is-active named || systemctl is-active bind9")
            return InstallStatus(
                installed=True,
                method=InstallMethod.APT,
                running="active" in active.stdout.split(),
                version=version.stdout.strip() if version.ok else "",
            )

        return InstallStatus(installed=False)

    # =========================================================================
    # Install
    # =========================================================================

    async def install(self, request: InstallRequest) -> ActionResult:
        async with self.ctx.lock:
            try:
                if request.method == InstallMethod.DOCKER:
                    result = await self._install_docker(request)
                else:
                    result = await self._install_apt()
            except OSError as e:
                logger.exception("BIND9 install failed")
                return ActionResult(success=False, message=f"Install failed: {e}")

            self.ctx.refresh_layout()
            return result

    async def _install_docker(self, request: InstallRequest) -> ActionResult:
        runtime = self.ctx.settings.container_runtime
        gateway = self.ctx.gateway

        info = await gateway.run_host(f"{runtime} info")
        if not info.ok:
            return ActionResult(success=False, message=f"{runtime} is not running. Start it and try again.")

        config_path = self._resolve_data_path(request.config_path)
        data_path = self._resolve_data_path(request.data_path)
        compose_dir = self.ctx.settings.compose_dir
        for directory in (compose_dir, config_path, data_path):
            directory.mkdir(parents=True, exist_ok=True)

        logger.info(f"Pulling BIND9 image: {request.docker_image}")
        pull = await gateway.run_host(f"{runtime} pull {shlex.quote(request.docker_image)}", timeout=gateway.long_timeout)
        if not pull.ok:
            err = f"{pull.stderr} {pull.stdout}".strip()[:500]
            return ActionResult(success=False, message=f"Failed to pull image '{request.docker_image}': {err}")

        self.env_file.write_text(
            f"BIND9_IMAGE={request.docker_image}\n"
            f"BIND9_CONTAINER_NAME={request.container_name}\n"
            f"BIND9_HOST_PORT={request.host_port}\n"
            f"BIND9_CONFIG_PATH={config_path}\n"
            f"BIND9_DATA_PATH={data_path}\n"
        )
        self.compose_file.write_text(COMPOSE_TEMPLATE.format(
            image=request.docker_image,
            container_name=request.container_name,
            host_port=request.host_port,
            config_path=config_path,
            data_path=data_path,
        ))

        # The compose file switches the layout to container paths before seeding
        self.ctx.refresh_layout()
        self.writer.seed_default_config(self.ctx.security_store.load())

        up = await gateway.run_host(
            f"{runtime} compose -f {shlex.quote(str(self.compose_file))} up -d",
            timeout=gateway.long_timeout,
        )
        if up.ok:
            logger.info(f"BIND9 started in container {request.container_name}")
            return ActionResult(success=True, message="BIND9 started via Docker Compose")

        msg = up.message
        if "address already in use" in msg.lower() or "port is already allocated" in msg.lower():
            return ActionResult(
                success=False,
                message=f"Port {request.host_port} is already in use. Choose a different host port (e.g., 5353).",
            )
        return ActionResult(success=False, message=f"Compose up failed: {msg}")

    async def _install_apt(self) -> ActionResult:
        gateway = self.ctx.gateway
        install = await gateway.run_host(
            f"apt-get update && apt-get install -y {APT_PACKAGES}",
            timeout=gateway.long_timeout,
        )
        if not install.ok:
            return ActionResult(success=False, message=f"apt install failed: {install.message[:500]}")

        start = await gateway.run_host("systemctl enable --now named || systemctl enable --now bind9")
        if start.ok:
            return ActionResult(success=True, message="BIND9 installed and started via apt")
        return ActionResult(success=True, message=f"BIND9 installed. Service start returned: {start.message[:200]}")

    # =========================================================================
    # Uninstall
    # =========================================================================

    async def uninstall(self) -> ActionResult:
        status = await self.get_install_status()
        if not status.installed:
            return ActionResult(success=False, message="BIND9 is not installed")

        gateway = self.ctx.gateway
        async with self.ctx.lock:
            if status.method == InstallMethod.DOCKER:
                runtime = self.ctx.settings.container_runtime
                down = await gateway.run_host(
                    f"{runtime} compose -f {shlex.quote(str(self.compose_file))} down -v",
                    timeout=gateway.long_timeout,
                )
                if not down.ok:
                    return ActionResult(success=False, message=f"Compose down failed: {down.message}")
                self.compose_file.unlink(missing_ok=True)
                self.env_file.unlink(missing_ok=True)
                result = ActionResult(success=True, message="BIND9 compose stack removed")
            else:
                remove = await gateway.run_host(
                    "systemctl stop named; systemctl stop bind9; apt-get remove -y bind9 bind9utils",
                    timeout=gateway.long_timeout,
                )
                if not remove.ok:
                    return ActionResult(success=False, message=remove.message[:300])
                result = ActionResult(success=True, message="BIND9 removed")

            self.ctx.refresh_layout()
            logger.info(result.message)
            return result
