"""
Zone Template Models
"""

from typing import List
from pydantic import BaseModel, Field

from .records import DnsRecord, RecordType


class ZoneTemplate(BaseModel):
    """Named bundle of records written against a placeholder domain"""
    id: str = ""
    name: str
    description: str = ""
    records: List[DnsRecord] = Field(default_factory=list)


def default_templates() -> List[ZoneTemplate]:
    """Built-in templates, written against example.com"""
    return [
        ZoneTemplate(
            id="tpl-web-basic",
            name="Basic Website",
            description="NS, A, www CNAME, and mail records for a typical website",
            records=[
                DnsRecord(id="t1", name="@", type=RecordType.NS, value="ns1.example.com.", ttl=86400),
                DnsRecord(id="t2", name="@", type=RecordType.NS, value="ns2.example.com.", ttl=86400),
                DnsRecord(id="t3", name="@", type=RecordType.A, value="1.2.3.4", ttl=3600),
                DnsRecord(id="t4", name="www", type=RecordType.CNAME, value="@", ttl=3600),
                DnsRecord(id="t5", name="@", type=RecordType.MX, value="mail.example.com.", ttl=3600, priority=10),
            ],
        ),
        ZoneTemplate(
            id="tpl-email",
            name="Email Setup",
            description="MX, SPF, and DMARC records",
            records=[
                DnsRecord(id="t6", name="@", type=RecordType.MX, value="mail.example.com.", ttl=3600, priority=10),
                DnsRecord(id="t7", name="@", type=RecordType.TXT, value="v=spf1 mx a ~all", ttl=3600),
                DnsRecord(id="t8", name="_dmarc", type=RecordType.TXT,
                          value="v=DMARC1; p=quarantine; rua=mailto:dmarc@example.com", ttl=3600),
            ],
        ),
        ZoneTemplate(
            id="tpl-google-workspace",
            name="Google Workspace",
            description="MX records and SPF TXT for Google Workspace",
            records=[
                DnsRecord(id="t9", name="@", type=RecordType.MX, value="aspmx.l.google.com.", ttl=3600, priority=1),
                DnsRecord(id="t10", name="@", type=RecordType.MX, value="alt1.aspmx.l.google.com.", ttl=3600, priority=5),
                DnsRecord(id="t11", name="@", type=RecordType.MX, value="alt2.aspmx.l.google.com.", ttl=3600, priority=5),
                DnsRecord(id="t12", name="@", type=RecordType.TXT, value="v=spf1 include:_spf.google.com ~all", ttl=3600),
            ],
        ),
    ]
