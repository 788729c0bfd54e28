import asyncio

import pytest
from pydantic import ValidationError

from dnsadmin.main import create_dns_admin
from dnsadmin.models.records import DnsRecord, RecordType
from dnsadmin.models.server import GlobalSecurityConfig
from dnsadmin.models.zones import (
    BulkImportRequest,
    CreateZoneRequest,
    SoaRecord,
    UpdateZoneOptionsRequest,
    UpdateZoneRequest,
    ZoneKind,
    ZoneRole,
    is_valid_zone_name,
)
from dnsadmin.services import resolver
from dnsadmin.services.renderer import ManagedBlockFile


def create(admin, name="example.com", **kwargs):
    return asyncio.run(admin.zones.create_zone(CreateZoneRequest(name=name, **kwargs)))


def add(admin, zone_id, name, rtype, value, **kwargs):
    record = DnsRecord(name=name, type=rtype, value=value, **kwargs)
    return asyncio.run(admin.zones.add_record(zone_id, record))


def named_conf_local(ctx):
    return ManagedBlockFile(ctx.layout.named_conf_local)


def test_create_zone_writes_files(admin, ctx, gateway):
    zone = create(admin, "Example.com.")

    assert zone is not None
    assert zone.name == "Example.com"
    assert zone.soa.serial == resolver.today_serial_date() * 100 + 1
    assert ctx.zone_file_path("Example.com").exists()
    assert named_conf_local(ctx).count_blocks("Example.com") == 1
    assert 'include "' in ctx.layout.named_conf.read_text()
    assert gateway.ran("rndc reload")


def test_duplicate_and_blank_names_are_rejected(admin):
    assert create(admin, "example.com") is not None
    assert create(admin, "EXAMPLE.com.") is None
    assert create(admin, "  ") is None
    assert len(asyncio.run(admin.zones.list_zones())) == 1


def test_malformed_zone_names_are_rejected(admin, ctx, gateway):
    for name in ("x.com;touch pwned;echo", "a/../../../escaped", "bad name.com", "-lead.com"):
        assert not is_valid_zone_name(name)
        with pytest.raises(ValidationError):
            CreateZoneRequest(name=name)

    unchecked = CreateZoneRequest.model_construct(name="a/../../../escaped")
    assert asyncio.run(admin.zones.create_zone(unchecked)) is None
    assert asyncio.run(admin.zones.list_zones()) == []
    assert not gateway.commands

    for name in ("1.168.192.in-addr.arpa", "_tcp.example.com", "xn--bcher-kva.example", "example.com."):
        assert is_valid_zone_name(name)


def test_record_text_stays_on_one_line():
    with pytest.raises(ValidationError):
        DnsRecord(name="www", type=RecordType.A, value="1.2.3.4\n@ IN NS evil.")
    with pytest.raises(ValidationError):
        DnsRecord(name="www 60 IN NS evil.", type=RecordType.A, value="1.2.3.4")


def test_create_zone_sanitizes_acls(admin):
    zone = create(admin, allow_transfer=[" 10.0.0.2 ", "bad;entry", ""], also_notify=["10.0.0.3"])

    assert zone.allow_transfer == ["10.0.0.2"]
    assert zone.also_notify == ["10.0.0.3"]


def test_default_name_servers_seed_forward_master_zones(admin, ctx):
    ctx.security_store.save(GlobalSecurityConfig(default_name_servers=["ns1.example.net", "ns2.example.net."]))

    zone = create(admin, "seeded.org")
    assert [(r.name, r.type, r.value) for r in zone.records] == [
        ("@", RecordType.NS, "ns1.example.net."),
        ("@", RecordType.NS, "ns2.example.net."),
    ]

    slave = create(admin, "slave.org", role=ZoneRole.SLAVE, master_addresses=["192.0.2.1"])
    assert slave.records == []
    assert not ctx.zone_file_path("slave.org").exists()
    assert "type slave;" in ctx.layout.named_conf_local.read_text()


def test_record_mutations_bump_serial(admin, ctx):
    zone = create(admin)
    today = resolver.today_serial_date()

    record = add(admin, zone.id, "www", RecordType.A, "1.2.3.4")
    assert record.id

    stored = asyncio.run(admin.zones.get_zone(zone.id))
    assert stored.soa.serial == today * 100 + 2
    assert "www" in ctx.zone_file_path("example.com").read_text()

    assert asyncio.run(admin.zones.delete_record(zone.id, record.id)) is True
    assert asyncio.run(admin.zones.delete_record(zone.id, record.id)) is False

    stored = asyncio.run(admin.zones.get_zone(zone.id))
    assert stored.soa.serial == today * 100 + 3
    assert stored.records == []


def test_serial_restarts_on_new_day(admin, monkeypatch):
    monkeypatch.setattr(resolver, "today_serial_date", lambda now=None: 20240101)
    zone = create(admin)
    add(admin, zone.id, "a", RecordType.A, "10.0.0.1")
    assert asyncio.run(admin.zones.get_zone(zone.id)).soa.serial == 2024010102

    monkeypatch.setattr(resolver, "today_serial_date", lambda now=None: 20240102)
    add(admin, zone.id, "b", RecordType.A, "10.0.0.2")
    assert asyncio.run(admin.zones.get_zone(zone.id)).soa.serial == 2024010201


def test_update_records_replaces_all(admin):
    zone = create(admin)
    add(admin, zone.id, "old", RecordType.A, "10.0.0.1")

    records = [DnsRecord(name=" www ", type=RecordType.A, value=" 1.2.3.4 ")]
    assert asyncio.run(admin.zones.update_records(zone.id, records)) is True

    stored = asyncio.run(admin.zones.get_records(zone.id))
    assert len(stored) == 1
    assert stored[0].name == "www"
    assert stored[0].value == "1.2.3.4"
    assert stored[0].id


def test_option_updates_keep_one_block(admin, ctx):
    zone = create(admin)

    for transfer in (["10.0.0.2"], ["10.0.0.3"]):
        ok = asyncio.run(admin.zones.update_zone_options(zone.id, UpdateZoneOptionsRequest(allow_transfer=transfer)))
        assert ok is True

    content = ctx.layout.named_conf_local.read_text()
    assert named_conf_local(ctx).count_blocks("example.com") == 1
    assert "allow-transfer { 10.0.0.3; };" in content
    assert "10.0.0.2" not in content


def test_update_zone_soa_and_role(admin, ctx):
    zone = create(admin)
    before = zone.soa.serial

    request = UpdateZoneRequest(soa=SoaRecord(primary_ns="ns9.example.com.", serial=1))
    assert asyncio.run(admin.zones.update_zone(zone.id, request)) is True

    stored = asyncio.run(admin.zones.get_zone(zone.id))
    assert stored.soa.primary_ns == "ns9.example.com."
    assert stored.soa.serial == before + 1
    assert "ns9.example.com." in ctx.zone_file_path("example.com").read_text()

    request = UpdateZoneRequest(role=ZoneRole.SLAVE, master_addresses=["192.0.2.10"])
    assert asyncio.run(admin.zones.update_zone(zone.id, request)) is True
    content = ctx.layout.named_conf_local.read_text()
    assert "type slave;" in content
    assert "masters { 192.0.2.10; };" in content

    assert asyncio.run(admin.zones.update_zone("missing", request)) is False


def test_toggle_zone(admin, ctx):
    zone = create(admin)

    assert asyncio.run(admin.zones.toggle_zone(zone.id)) is True
    assert not named_conf_local(ctx).has_block("example.com")
    assert ctx.zone_file_path("example.com").exists()
    assert asyncio.run(admin.zones.get_zone(zone.id)).enabled is False

    assert asyncio.run(admin.zones.toggle_zone(zone.id)) is True
    assert named_conf_local(ctx).count_blocks("example.com") == 1


def test_disabled_zone_stays_out_of_config(admin, ctx):
    zone = create(admin)
    asyncio.run(admin.zones.toggle_zone(zone.id))

    add(admin, zone.id, "www", RecordType.A, "1.2.3.4")
    asyncio.run(admin.zones.update_zone_options(zone.id, UpdateZoneOptionsRequest(allow_query=["any"])))
    asyncio.run(admin.zones.regenerate_zone_files())

    assert not named_conf_local(ctx).has_block("example.com")


def test_delete_zone(admin, ctx):
    zone = create(admin)
    path = ctx.zone_file_path("example.com")
    (path.parent / "db.example.com.jnl").write_text("journal")

    assert asyncio.run(admin.zones.delete_zone(zone.id)) is True
    assert not path.exists()
    assert not (path.parent / "db.example.com.jnl").exists()
    assert not named_conf_local(ctx).has_block("example.com")
    assert asyncio.run(admin.zones.list_zones()) == []
    assert asyncio.run(admin.zones.delete_zone(zone.id)) is False


def test_zone_list_persists_across_contexts(admin, settings, gateway):
    create(admin)
    other = create_dns_admin(settings, gateway)

    assert [z.name for z in asyncio.run(other.zones.list_zones())] == ["example.com"]


def test_returned_zones_are_copies(admin):
    zone = create(admin)

    listed = asyncio.run(admin.zones.list_zones())[0]
    listed.records.append(DnsRecord(name="x", type=RecordType.A, value="10.0.0.1"))

    assert asyncio.run(admin.zones.get_records(zone.id)) == []


def test_failed_reload_does_not_fail_mutation(admin, gateway):
    gateway.respond("rndc reload", exit_code=1, stderr="rndc: connect failed")

    zone = create(admin)
    assert zone is not None
    assert add(admin, zone.id, "www", RecordType.A, "1.2.3.4") is not None


def test_import_zone_file(admin, ctx):
    zone = create(admin)
    content = "$TTL 3600\nwww IN A 1.2.3.4\nmail IN MX 10 mail.example.com.\nbroken\n"

    result = asyncio.run(admin.zones.import_zone_file(BulkImportRequest(zone_id=zone.id, content=content)))

    assert result.success is True
    assert result.imported == 2
    assert result.skipped == 1
    assert len(result.errors) == 1
    assert "mail.example.com." in ctx.zone_file_path("example.com").read_text()


def test_import_rejects_unknown_zone_and_format(admin):
    zone = create(admin)

    missing = asyncio.run(admin.zones.import_zone_file(BulkImportRequest(zone_id="nope", content="www IN A 1.2.3.4")))
    assert missing.success is False

    json_format = asyncio.run(admin.zones.import_zone_file(
        BulkImportRequest(zone_id=zone.id, content="{}", format="json")
    ))
    assert json_format.success is False


def test_export_and_file_content(admin):
    zone = create(admin)
    add(admin, zone.id, "www", RecordType.A, "1.2.3.4")

    exported = asyncio.run(admin.zones.export_zone_file(zone.id))
    on_disk = asyncio.run(admin.zones.get_zone_file_content(zone.id))

    assert exported == on_disk
    assert asyncio.run(admin.zones.export_zone_file("missing")) is None


def test_validate_zone(admin, gateway, ctx):
    zone = create(admin)
    gateway.respond("named-checkzone", stdout="zone example.com/IN: loaded serial 1\nOK\n")

    result = asyncio.run(admin.zones.validate_zone(zone.id))

    assert result.valid is True
    assert result.output.endswith("OK")
    assert gateway.ran(f"named-checkzone example.com {ctx.zone_file_path('example.com')}")

    gateway.respond("named-checkzone", exit_code=1, stderr="bad zone")
    assert asyncio.run(admin.zones.validate_zone(zone.id)).valid is False
    assert asyncio.run(admin.zones.validate_zone("missing")).output == "Zone not found"


def test_regenerate_zone_files(admin, ctx):
    zone = create(admin)
    add(admin, zone.id, "www", RecordType.A, "1.2.3.4")
    ctx.zone_file_path("example.com").unlink()
    ctx.layout.named_conf_local.write_text("")

    result = asyncio.run(admin.zones.regenerate_zone_files())

    assert result.success is True
    assert "www" in ctx.zone_file_path("example.com").read_text()
    assert named_conf_local(ctx).count_blocks("example.com") == 1


def test_generate_reverse_zones(admin, ctx):
    zone = create(admin)
    add(admin, zone.id, "www", RecordType.A, "192.168.1.10")
    add(admin, zone.id, "api", RecordType.A, "192.168.1.11")
    add(admin, zone.id, "v6", RecordType.AAAA, "2001:db8::1")

    result = asyncio.run(admin.zones.generate_reverse_zones(zone.id))

    assert result.success is True
    assert result.added_records == 3
    assert "1.168.192.in-addr.arpa" in result.created_zones
    assert len(result.created_zones) == 2

    reverse = ctx.find_zone_by_name("1.168.192.in-addr.arpa")
    assert reverse.kind == ZoneKind.REVERSE
    ptrs = {r.name: r.value for r in reverse.records if r.type == RecordType.PTR}
    assert ptrs == {"10": "www.example.com.", "11": "api.example.com."}
    assert ctx.zone_file_path("1.168.192.in-addr.arpa").exists()

    again = asyncio.run(admin.zones.generate_reverse_zones(zone.id))
    assert again.created_zones == []
    assert again.added_records == 0
    assert again.skipped_records == 3
    assert len(asyncio.run(admin.zones.list_zones())) == 3


def test_generate_reverse_zones_adds_to_existing_zone(admin, ctx):
    zone = create(admin)
    reverse = create(admin, "1.168.192.in-addr.arpa", kind=ZoneKind.REVERSE)
    add(admin, zone.id, "www", RecordType.A, "192.168.1.10")
    serial = asyncio.run(admin.zones.get_zone(reverse.id)).soa.serial

    result = asyncio.run(admin.zones.generate_reverse_zones(zone.id))

    assert result.created_zones == []
    assert result.added_records == 1
    updated = asyncio.run(admin.zones.get_zone(reverse.id))
    assert updated.soa.serial == serial + 1


def test_generate_reverse_zones_requires_forward_zone(admin):
    reverse = create(admin, "1.168.192.in-addr.arpa", kind=ZoneKind.REVERSE)
    result = asyncio.run(admin.zones.generate_reverse_zones(reverse.id))
    assert result.success is False


def test_suggest_reverse_zone(admin):
    zone = create(admin)
    add(admin, zone.id, "www", RecordType.A, "192.168.1.10")

    suggestion = asyncio.run(admin.zones.suggest_reverse_zone("192.168.1.10"))
    assert suggestion.reverse_zone == "1.168.192.in-addr.arpa"
    assert suggestion.ptr_record_name == "10"
    assert suggestion.domain == "www.example.com"

    unknown = asyncio.run(admin.zones.suggest_reverse_zone("10.9.8.7"))
    assert unknown.domain == ""
    assert unknown.reverse_zone == "8.9.10.in-addr.arpa"

    invalid = asyncio.run(admin.zones.suggest_reverse_zone("nope"))
    assert invalid.reverse_zone == ""
