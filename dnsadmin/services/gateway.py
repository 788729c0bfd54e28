"""
Command Gateway - runs daemon tooling on the host or inside the daemon's container
Also detects the deployment layout and maps host paths to daemon paths
"""

import asyncio
import logging
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

from dotenv import dotenv_values

from ..config import Settings
from ..models.common import CommandResult


logger = logging.getLogger(__name__)

# Fixed paths inside the daemon container
CONTAINER_CONFIG_DIR = "/etc/bind"
CONTAINER_ZONES_DIR = "/var/lib/bind"
CONTAINER_KEYS_DIR = "/var/lib/bind/keys"


class CommandError(Exception):
    """External command failed"""
    def __init__(self, message: str, result: Optional[CommandResult] = None):
        self.message = message
        self.result = result
        super().__init__(message)


# =============================================================================
# Path Mapping
# =============================================================================

class PathMapper(Protocol):
    """Translate host paths into the paths the daemon sees"""

    def to_daemon(self, host_path: Union[os.PathLike, str]) -> str:
        ...


class HostPathMapper:
    """The daemon runs on the host: paths pass through unchanged"""

    def to_daemon(self, host_path) -> str:
        return str(host_path)


class ContainerPathMapper:
    """The daemon runs in a container with bind-mounted config/data dirs"""

    def __init__(self, config_dir: Path, zones_dir: Path, keys_dir: Path):
        # Keys live under the zones dir, so they are matched first
        self._mounts = [
            (Path(keys_dir), CONTAINER_KEYS_DIR),
            (Path(zones_dir), CONTAINER_ZONES_DIR),
            (Path(config_dir), CONTAINER_CONFIG_DIR),
        ]

    def to_daemon(self, host_path) -> str:
        path = Path(host_path)
        for host_dir, container_dir in self._mounts:
            if path == host_dir:
                return container_dir
            try:
                relative = path.relative_to(host_dir)
            except ValueError:
                continue
            return f"{container_dir}/{relative.as_posix()}"
        return str(host_path)


# =============================================================================
# Layout Detection
# =============================================================================

@dataclass
class BindLayout:
    """Where the daemon's files live and how to reach the daemon"""
    container_mode: bool
    container_name: str
    config_dir: Path
    zones_dir: Path
    keys_dir: Path
    mapper: PathMapper

    @property
    def named_conf(self) -> Path:
        return self.config_dir / "named.conf"

    @property
    def named_conf_local(self) -> Path:
        return self.config_dir / "named.conf.local"


def _resolve_data_path(settings: Settings, path: str) -> Path:
    p = Path(path)
    return p if p.is_absolute() else Path(settings.data_root) / p


def compose_env(settings: Settings) -> dict:
    """Values of the compose project's .env file"""
    env_file = settings.compose_dir / ".env"
    if not env_file.exists():
        return {}
    return {k: v for k, v in dotenv_values(env_file).items() if v is not None}


def detect_layout(settings: Settings) -> BindLayout:
    """Detect host or container deployment from the compose marker file"""
    compose_file = settings.compose_dir / "docker-compose.yml"

    if compose_file.exists():
        env = compose_env(settings)
        data_dir = (
            _resolve_data_path(settings, env["BIND9_DATA_PATH"])
            if env.get("BIND9_DATA_PATH")
            else settings.data_dir / "data"
        )
        config_dir = (
            _resolve_data_path(settings, env["BIND9_CONFIG_PATH"])
            if env.get("BIND9_CONFIG_PATH")
            else settings.compose_dir / "config"
        )
        keys_dir = data_dir / "keys"
        return BindLayout(
            container_mode=True,
            container_name=env.get("BIND9_CONTAINER_NAME") or settings.default_container_name,
            config_dir=config_dir,
            zones_dir=data_dir,
            keys_dir=keys_dir,
            mapper=ContainerPathMapper(config_dir, data_dir, keys_dir),
        )

    return BindLayout(
        container_mode=False,
        container_name=settings.default_container_name,
        config_dir=Path(settings.bind9_config_dir),
        zones_dir=settings.data_dir / "zones",
        keys_dir=settings.data_dir / "keys",
        mapper=HostPathMapper(),
    )


# =============================================================================
# Command Execution
# =============================================================================

class CommandGateway:
    """Run shell commands for the daemon, directly or via `<runtime> exec`"""

    def __init__(self, settings: Settings, layout: BindLayout):
        self.settings = settings
        self.layout = layout
        self.timeout = settings.command_timeout
        self.long_timeout = settings.long_command_timeout

    def wrap(self, command: str) -> str:
        """Command line that reaches the daemon in the current layout"""
        if not self.layout.container_mode:
            return command
        return (
            f"{self.settings.container_runtime} exec {self.layout.container_name} "
            f"sh -c {shlex.quote(command)}"
        )

    async def run(
        self,
        command: str,
        timeout: Optional[int] = None,
        cwd: Optional[str] = None,
    ) -> CommandResult:
        """Run a daemon-side command"""
        return await self._execute(self.wrap(command), timeout or self.timeout, cwd)

    async def run_host(
        self,
        command: str,
        timeout: Optional[int] = None,
        cwd: Optional[str] = None,
    ) -> CommandResult:
        """Run a command on the host regardless of layout"""
        return await self._execute(command, timeout or self.timeout, cwd)

    async def _execute(self, command: str, timeout: int, cwd: Optional[str]) -> CommandResult:
        env = dict(os.environ)
        env["LC_ALL"] = "C"
        path = env.get("PATH", "")
        extra = [p for p in ("/usr/local/bin", "/usr/sbin", "/sbin") if p not in path.split(":")]
        if extra:
            env["PATH"] = ":".join([path] + extra) if path else ":".join(extra)

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
            )

            try:
                stdout, stderr = await asyncio.wait_for(
                    process.communicate(),
                    timeout=timeout
                )
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                logger.error(f"Command timed out after {timeout}s: {command}")
                return CommandResult(exit_code=-1, stderr="Command timed out")

            result = CommandResult(
                exit_code=process.returncode,
                stdout=stdout.decode("utf-8", errors="replace"),
                stderr=stderr.decode("utf-8", errors="replace"),
            )
            if result.ok:
                logger.debug(f"Command succeeded: {command}")
            else:
                logger.warning(f"Command failed [{result.exit_code}]: {command}: {result.stderr.strip()}")
            return result

        except OSError as e:
            logger.error(f"Error executing command: {command}: {e}")
            return CommandResult(exit_code=-1, stderr=str(e))
