"""
Text parsers for zone imports, dig answers and statistics dumps
Pure functions: no I/O, no state
"""

import re
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..models.records import DnsRecord, RecordType
from ..models.server import LookupAnswer, QueryStats


DEFAULT_IMPORT_TTL = 3600
RAW_STATS_LIMIT = 4000

_NUMBERED_LINE = re.compile(r"^(\d+)\s+(.+)$")


# =============================================================================
# Zone Import
# =============================================================================

@dataclass
class ParsedImport:
    """Records parsed from zone file text"""
    records: List[DnsRecord] = field(default_factory=list)
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


def _strip_comment(line: str) -> str:
    """Drop a `;` comment that is not inside a quoted string"""
    in_quotes = False
    for i, ch in enumerate(line):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == ";" and not in_quotes:
            return line[:i]
    return line


def _ungroup(body: str) -> Tuple[str, int]:
    """Blank out grouping parentheses outside quotes; returns (text, depth change)"""
    chars = []
    depth = 0
    in_quotes = False
    for ch in body:
        if ch == '"':
            in_quotes = not in_quotes
        elif not in_quotes and ch in "()":
            depth += 1 if ch == "(" else -1
            ch = " "
        chars.append(ch)
    return "".join(chars), depth


def _logical_lines(text: str) -> List[Tuple[int, str]]:
    """
    Join parenthesized multi-line entries
    Returns (first line number, joined text) pairs; comments stay in place
    """
    entries = []
    buffer: List[str] = []
    start = 0
    depth = 0

    for lineno, raw in enumerate(text.splitlines(), start=1):
        body, change = _ungroup(_strip_comment(raw))
        if depth == 0:
            start = lineno
            buffer = [raw if not body.strip() else body.rstrip()]
        else:
            buffer.append(body.strip())
        depth += change
        if depth <= 0:
            depth = 0
            entries.append((start, " ".join(part for part in buffer if part)))

    if depth > 0 and buffer:
        entries.append((start, " ".join(buffer)))
    return entries


def _split_tokens(line: str) -> List[str]:
    """Whitespace split that keeps quoted strings together"""
    return re.findall(r'"[^"]*"|\S+', line)


def _parse_int(token: str, what: str) -> int:
    try:
        return int(token)
    except ValueError:
        raise ValueError(f"invalid {what} '{token}'")


def parse_record_line(line: str, previous_owner: Optional[str] = None) -> Optional[DnsRecord]:
    """
    Parse `name [ttl] [class] type rdata`

    A line starting with whitespace reuses previous_owner.
    Returns None for unsupported types and SOA; raises ValueError when malformed.
    """
    inherits = line[:1].isspace()
    tokens = _split_tokens(line)

    if inherits:
        if not previous_owner:
            raise ValueError("no previous owner name to inherit")
        tokens = [previous_owner] + tokens

    if len(tokens) < 3:
        raise ValueError("expected 'name [ttl] [class] type value'")

    name = tokens[0]
    idx = 1
    ttl = DEFAULT_IMPORT_TTL

    # TTL and class may appear in either order
    for _ in range(2):
        if idx < len(tokens) and tokens[idx].isdigit():
            ttl = int(tokens[idx])
            idx += 1
        elif idx < len(tokens) and tokens[idx].upper() in ("IN", "CH", "HS"):
            idx += 1

    if idx + 1 >= len(tokens):
        raise ValueError("missing record type or value")

    type_str = tokens[idx].upper()
    rdata = tokens[idx + 1:]

    try:
        record_type = RecordType(type_str)
    except ValueError:
        return None
    if record_type == RecordType.SOA:
        return None

    priority = weight = port = None

    if record_type == RecordType.MX:
        if len(rdata) < 2:
            raise ValueError("MX record needs priority and exchange")
        priority = _parse_int(rdata[0], "MX priority")
        value = rdata[1]
    elif record_type == RecordType.SRV:
        if len(rdata) < 4:
            raise ValueError("SRV record needs priority, weight, port and target")
        priority = _parse_int(rdata[0], "SRV priority")
        weight = _parse_int(rdata[1], "SRV weight")
        port = _parse_int(rdata[2], "SRV port")
        value = rdata[3]
    elif record_type == RecordType.TXT:
        value = "".join(part.strip('"') for part in rdata)
    else:
        value = " ".join(rdata)

    return DnsRecord(
        id=str(uuid.uuid4()),
        name=name.strip(),
        type=record_type,
        value=value.strip(),
        ttl=ttl,
        priority=priority,
        weight=weight,
        port=port,
    )


def parse_zone_import(text: str) -> ParsedImport:
    """Parse zone file text into records, collecting per-line errors"""
    result = ParsedImport()
    owner: Optional[str] = None

    for lineno, line in _logical_lines(text):
        stripped = line.strip()
        if not stripped or stripped.startswith(";") or stripped.startswith("$"):
            result.skipped += 1
            continue

        try:
            record = parse_record_line(_strip_comment(line).rstrip(), owner)
        except ValueError as e:
            result.errors.append(f"Line {lineno}: {e}")
            continue

        if not line[:1].isspace():
            owner = _split_tokens(stripped)[0]

        if record is None:
            result.skipped += 1
        else:
            result.records.append(record)

    return result


# =============================================================================
# dig
# =============================================================================

@dataclass
class DigOutput:
    answers: List[LookupAnswer] = field(default_factory=list)
    status: str = ""
    query_time: str = ""
    server: str = ""


def parse_dig_output(text: str) -> DigOutput:
    """Parse `dig +noall +answer +stats +comments` output"""
    out = DigOutput()

    for line in text.splitlines():
        trimmed = line.strip()
        if trimmed.startswith(";; ->>HEADER<<-"):
            match = re.search(r"status: (\w+)", trimmed)
            out.status = match.group(1) if match else ""
        elif trimmed.startswith(";;"):
            if "Query time:" in trimmed:
                out.query_time = trimmed.split("Query time:", 1)[1].strip()
            if "SERVER:" in trimmed:
                out.server = trimmed.split("SERVER:", 1)[1].strip()
        elif trimmed and not trimmed.startswith(";"):
            parts = trimmed.split(None, 4)
            if len(parts) >= 5:
                try:
                    ttl = int(parts[1])
                except ValueError:
                    ttl = 0
                out.answers.append(LookupAnswer(name=parts[0], ttl=ttl, type=parts[3], value=parts[4]))

    return out


# =============================================================================
# Statistics
# =============================================================================

def parse_query_stats(text: str) -> QueryStats:
    """
    Parse a named.stats dump

    Dumps accumulate in the same file; only the most recent one is used.
    """
    dumps = text.split("+++ Statistics Dump +++")
    latest = dumps[-1]

    stats = QueryStats(raw_stats=text[-RAW_STATS_LIMIT:])
    section = ""

    for line in latest.splitlines():
        trimmed = line.strip()
        if trimmed.startswith("++") and trimmed.endswith("++"):
            section = trimmed.strip("+ ").strip()
            continue
        if trimmed.startswith("["):
            # Per-view / per-zone sub-headers
            continue

        match = _NUMBERED_LINE.match(trimmed)
        if not match:
            continue
        count = int(match.group(1))
        label = match.group(2).strip()

        if section == "Incoming Requests":
            stats.total_queries += count
        elif section == "Incoming Queries":
            stats.query_types[label] = stats.query_types.get(label, 0) + count
        elif section == "Name Server Statistics":
            if "successful answer" in label:
                stats.success_queries = count
            elif "SERVFAIL" in label:
                stats.failed_queries = count
            elif "caused recursion" in label:
                stats.recursive_queries = count

    return stats


def extract_line(text: str, prefix: str) -> str:
    """Remainder of the first line starting with prefix"""
    for line in text.splitlines():
        if line.startswith(prefix):
            return line[len(prefix):].strip()
    return ""
