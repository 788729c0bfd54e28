import asyncio
from pathlib import Path

from dnsadmin.services.gateway import (
    CommandGateway,
    ContainerPathMapper,
    HostPathMapper,
    detect_layout,
)


def test_host_mapper_passes_paths_through():
    assert HostPathMapper().to_daemon("/srv/zones/db.example.com") == "/srv/zones/db.example.com"


def test_container_mapper_rewrites_mounted_paths():
    mapper = ContainerPathMapper(
        config_dir=Path("/srv/bind/config"),
        zones_dir=Path("/srv/bind/data"),
        keys_dir=Path("/srv/bind/data/keys"),
    )

    assert mapper.to_daemon("/srv/bind/data/db.example.com") == "/var/lib/bind/db.example.com"
    assert mapper.to_daemon("/srv/bind/data/keys/Kexample.com.+013+1.key") == "/var/lib/bind/keys/Kexample.com.+013+1.key"
    assert mapper.to_daemon(Path("/srv/bind/data/keys")) == "/var/lib/bind/keys"
    assert mapper.to_daemon("/srv/bind/config/named.conf.acl") == "/etc/bind/named.conf.acl"
    assert mapper.to_daemon("/tmp/other") == "/tmp/other"


def test_host_layout(settings):
    layout = detect_layout(settings)

    assert layout.container_mode is False
    assert layout.zones_dir == settings.data_dir / "zones"
    assert layout.keys_dir == settings.data_dir / "keys"
    assert layout.config_dir == Path(settings.bind9_config_dir)


def test_container_layout_from_compose_env(settings, tmp_path):
    compose_dir = settings.compose_dir
    compose_dir.mkdir(parents=True)
    (compose_dir / "docker-compose.yml").write_text("services: {}\n")
    (compose_dir / ".env").write_text(
        "BIND9_CONTAINER_NAME=dns-test\n"
        f"BIND9_CONFIG_PATH={tmp_path / 'cfg'}\n"
        f"BIND9_DATA_PATH={tmp_path / 'zones'}\n"
    )

    layout = detect_layout(settings)

    assert layout.container_mode is True
    assert layout.container_name == "dns-test"
    assert layout.config_dir == tmp_path / "cfg"
    assert layout.zones_dir == tmp_path / "zones"
    assert layout.mapper.to_daemon(tmp_path / "zones" / "db.a.test") == "/var/lib/bind/db.a.test"


def test_container_layout_defaults(settings):
    settings.compose_dir.mkdir(parents=True)
    (settings.compose_dir / "docker-compose.yml").write_text("services: {}\n")

    layout = detect_layout(settings)

    assert layout.container_name == "bind9"
    assert layout.zones_dir == settings.data_dir / "data"
    assert layout.config_dir == settings.compose_dir / "config"


def test_wrap_in_container_mode(settings):
    settings.compose_dir.mkdir(parents=True)
    (settings.compose_dir / "docker-compose.yml").write_text("services: {}\n")
    gateway = CommandGateway(settings, detect_layout(settings))

    assert gateway.wrap("rndc reload") == "docker exec bind9 sh -c 'rndc reload'"


def test_run_on_host(settings):
    gateway = CommandGateway(settings, detect_layout(settings))

    result = asyncio.run(gateway.run("echo hello; echo oops >&2; exit 3"))

    assert result.exit_code == 3
    assert result.stdout.strip() == "hello"
    assert result.stderr.strip() == "oops"
    assert result.message == "oops"


def test_run_timeout(settings):
    gateway = CommandGateway(settings, detect_layout(settings))

    result = asyncio.run(gateway.run("sleep 5", timeout=1))

    assert result.exit_code == -1
    assert result.stderr == "Command timed out"


def test_run_missing_working_directory(settings, tmp_path):
    gateway = CommandGateway(settings, detect_layout(settings))

    result = asyncio.run(gateway.run_host("true", cwd=str(tmp_path / "missing")))

    assert result.exit_code == -1
    assert result.stderr
