import asyncio

import dns.exception

from dnsadmin.models.records import DnsRecord, RecordType
from dnsadmin.models.zones import CreateZoneRequest
from dnsadmin.services.propagation import expected_text, normalize_value


def zone_with(admin, *records):
    zone = asyncio.run(admin.zones.create_zone(CreateZoneRequest(name="example.com")))
    for record in records:
        asyncio.run(admin.zones.add_record(zone.id, record))
    return zone


def test_expected_text():
    mx = DnsRecord(name="@", type=RecordType.MX, value="mail", priority=5)
    srv = DnsRecord(name="_sip._tcp", type=RecordType.SRV, value="sip.example.com.", priority=10, weight=20, port=5060)
    a = DnsRecord(name="www", type=RecordType.A, value="1.2.3.4")

    assert expected_text(mx, "example.com") == "5 mail.example.com."
    assert expected_text(srv, "example.com") == "10 20 5060 sip.example.com."
    assert expected_text(a, "example.com") == "1.2.3.4"


def test_normalize_value():
    assert normalize_value(' "Hello" ') == "hello"
    assert normalize_value("Mail.Example.COM.") == "mail.example.com"


def test_check_propagation(admin, querier):
    zone = zone_with(admin, DnsRecord(name="www", type=RecordType.A, value="1.2.3.4"))
    querier.answers["8.8.8.8"] = ["1.2.3.4"]
    querier.answers["1.1.1.1"] = ["5.6.7.8"]

    result = asyncio.run(admin.propagation.check_propagation(zone.id, "www", RecordType.A))

    assert result.expected_value == "1.2.3.4"
    by_server = {c.server: c for c in result.checks}
    assert by_server["8.8.8.8"].matches is True
    assert by_server["8.8.8.8"].provider == "Google"
    assert by_server["1.1.1.1"].matches is False
    assert by_server["1.1.1.1"].values == ["5.6.7.8"]
    assert {q[0] for q in querier.queries} == {"www.example.com."}


def test_all_expected_values_must_be_answered(admin, querier):
    zone = zone_with(
        admin,
        DnsRecord(name="@", type=RecordType.MX, value="mx1.example.com.", priority=10),
        DnsRecord(name="@", type=RecordType.MX, value="mx2", priority=20),
    )
    querier.answers["8.8.8.8"] = ["10 mx1.example.com.", "20 mx2.example.com."]
    querier.answers["1.1.1.1"] = ["10 mx1.example.com."]

    result = asyncio.run(admin.propagation.check_propagation(zone.id, "@", RecordType.MX))

    by_server = {c.server: c for c in result.checks}
    assert by_server["8.8.8.8"].matches is True
    assert by_server["1.1.1.1"].matches is False


def test_resolver_errors_are_reported(admin, querier):
    zone = zone_with(admin, DnsRecord(name="www", type=RecordType.A, value="1.2.3.4"))
    querier.answers["8.8.8.8"] = ["1.2.3.4"]
    querier.errors["1.1.1.1"] = dns.exception.Timeout()

    result = asyncio.run(admin.propagation.check_propagation(zone.id, "www"))

    by_server = {c.server: c for c in result.checks}
    assert by_server["8.8.8.8"].matches is True
    assert by_server["1.1.1.1"].error
    assert by_server["1.1.1.1"].matches is False


def test_missing_record_never_matches(admin, querier):
    zone = zone_with(admin)
    querier.answers["8.8.8.8"] = []

    result = asyncio.run(admin.propagation.check_propagation(zone.id, "nothing", RecordType.TXT))

    assert result.expected_value == ""
    assert not any(c.matches for c in result.checks)


def test_unknown_zone(admin, querier):
    result = asyncio.run(admin.propagation.check_propagation("missing"))

    assert result.checks == []
    assert querier.queries == []
