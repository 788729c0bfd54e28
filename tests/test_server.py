import asyncio

from dnsadmin.models.server import LookupRequest


RNDC_STATUS = """\
version: BIND 9.18.24-1-Debian (Extended Support Version) <id:>
running on localhost: Linux x86_64
number of zones: 102 (97 automatic)
server is up and running
"""

DIG_OUTPUT = """\
;; ->>HEADER<<- opcode: QUERY, status: NOERROR, id: 1
example.com.\t\t300\tIN\tA\t93.184.216.34
;; Query time: 3 msec
;; SERVER: 127.0.0.1#53(127.0.0.1) (UDP)
"""

STATS = """\
+++ Statistics Dump +++ (1700000100)
++ Incoming Requests ++
                   7 QUERY
++ Incoming Queries ++
                   7 A
--- Statistics Dump --- (1700000100)
"""


def use_container(settings, ctx):
    settings.compose_dir.mkdir(parents=True, exist_ok=True)
    (settings.compose_dir / "docker-compose.yml").write_text("services: {}\n")
    ctx.refresh_layout()


def test_get_status(admin, gateway):
    gateway.respond("rndc status", stdout=RNDC_STATUS)

    status = asyncio.run(admin.server.get_status())

    assert status.running is True
    assert status.version.startswith("BIND 9.18.24")
    assert status.uptime == "server is up and running"
    assert status.config_valid is True
    assert status.config_output == "Configuration OK"
    assert status.zone_count == 0


def test_get_status_when_down(admin, gateway):
    gateway.respond("rndc status", exit_code=1, stderr="rndc: connect failed: 127.0.0.1#953: connection refused")
    gateway.respond("named-checkconf", exit_code=1, stderr="/etc/bind/named.conf:3: unknown option 'bogus'")

    status = asyncio.run(admin.server.get_status())

    assert status.running is False
    assert status.config_valid is False
    assert "unknown option" in status.config_output


def test_reload_and_flush(admin, gateway):
    assert asyncio.run(admin.server.reload()).success is True
    assert asyncio.run(admin.server.flush_cache()).message == "DNS cache flushed"
    assert gateway.ran("rndc flush")

    gateway.respond("rndc reload", exit_code=1, stderr="rndc: 'reload' failed: failure")
    failed = asyncio.run(admin.server.reload())
    assert failed.success is False
    assert "failure" in failed.message


def test_restart_on_host(admin, gateway):
    assert asyncio.run(admin.server.restart()).success is True
    assert gateway.ran("systemctl restart named")


def test_restart_in_container(admin, settings, ctx, gateway):
    use_container(settings, ctx)

    assert asyncio.run(admin.server.restart()).success is True
    assert gateway.ran("docker restart bind9")


def test_commands_are_wrapped_in_container_mode(admin, settings, ctx, gateway):
    use_container(settings, ctx)

    asyncio.run(admin.server.flush_cache())

    assert gateway.commands[-1] == "docker exec bind9 sh -c 'rndc flush'"


def test_lookup(admin, gateway):
    gateway.respond("dig", stdout=DIG_OUTPUT)

    result = asyncio.run(admin.server.lookup(LookupRequest(query="example.com", server="8.8.8.8")))

    assert result.success is True
    assert result.status == "NOERROR"
    assert result.answers[0].value == "93.184.216.34"
    assert gateway.ran("dig @8.8.8.8 example.com A +noall +answer +stats +comments")


def test_lookup_quotes_arguments(admin, gateway):
    asyncio.run(admin.server.lookup(LookupRequest(query="example.com; rm -rf /")))
    assert gateway.ran("dig 'example.com; rm -rf /' A")

    gateway.respond("dig", exit_code=9, stderr=";; connection timed out; no servers could be reached")
    result = asyncio.run(admin.server.lookup(LookupRequest(query="example.com")))
    assert result.success is False
    assert "timed out" in result.raw_output


def test_query_stats_from_file(admin, settings, gateway):
    with open(settings.stats_files[0], "w") as f:
        f.write(STATS)

    stats = asyncio.run(admin.server.get_query_stats())

    assert gateway.ran("rndc stats")
    assert stats.total_queries == 7
    assert stats.query_types == {"A": 7}


def test_query_stats_fallback_to_status(admin, gateway):
    gateway.respond("rndc status", stdout=RNDC_STATUS)

    stats = asyncio.run(admin.server.get_query_stats())

    assert stats.total_queries == 0
    assert stats.raw_stats == RNDC_STATUS


def test_query_stats_in_container(admin, settings, ctx, gateway):
    use_container(settings, ctx)
    gateway.respond("cat ", stdout=STATS)

    stats = asyncio.run(admin.server.get_query_stats())

    assert stats.total_queries == 7


def test_logs(admin, settings, ctx, gateway):
    assert asyncio.run(admin.server.get_logs()) == "DNS service is not running."

    use_container(settings, ctx)
    gateway.respond("ps -a", stdout="abc123|ubuntu/bind9:latest|Up 5 minutes\n")
    gateway.respond("logs --tail", stdout="starting BIND 9.18.24\n")

    assert asyncio.run(admin.server.get_logs(tail=20)) == "starting BIND 9.18.24\n"
    assert gateway.ran("docker logs --tail 20 abc123")
