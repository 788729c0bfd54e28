import pytest

from dnsadmin.config import Settings
from dnsadmin.main import create_dns_admin
from dnsadmin.models.common import CommandResult
from dnsadmin.services.gateway import CommandGateway, detect_layout


class FakeGateway(CommandGateway):
    """Records every command and answers from scripted results"""

    def __init__(self, settings):
        super().__init__(settings, detect_layout(settings))
        self.commands = []
        self._responses = []

    def respond(self, fragment, exit_code=0, stdout="", stderr=""):
        """Answer commands containing fragment; later scripts win"""
        self._responses.append((fragment, CommandResult(exit_code=exit_code, stdout=stdout, stderr=stderr)))

    def ran(self, fragment):
        return [c for c in self.commands if fragment in c]

    async def _execute(self, command, timeout, cwd):
        self.commands.append(command)
        for fragment, result in reversed(self._responses):
            if fragment in command:
                return result
        return CommandResult(exit_code=0)


class FakeQuerier:
    def __init__(self):
        self.answers = {}
        self.errors = {}
        self.queries = []

    async def query(self, name, rtype, server, timeout):
        self.queries.append((name, rtype, server, timeout))
        if server in self.errors:
            raise self.errors[server]
        return self.answers.get(server, [])


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_root=str(tmp_path / "data"),
        compose_root=str(tmp_path / "compose"),
        bind9_config_dir=str(tmp_path / "etc" / "bind"),
        stats_files=[str(tmp_path / "named.stats")],
    )


@pytest.fixture
def gateway(settings):
    return FakeGateway(settings)


@pytest.fixture
def querier():
    return FakeQuerier()


@pytest.fixture
def admin(settings, gateway, querier):
    return create_dns_admin(settings, gateway, querier)


@pytest.fixture
def ctx(admin):
    return admin.ctx
