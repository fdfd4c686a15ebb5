# sarif_issues/markers.py

"""
Identity markers embedded in issue bodies.

Every body the pipeline writes starts with a hidden block:

    <!-- sarif-issues
    rule=js/sql-injection
    file=src/app.ts
    lines=10,20,30
    -->

Dedup and auto-close read identity back from this block, comparing whole
values rather than searching for substrings. Bodies written before the
block existed are still understood through their visible markers:
the "**CodeQL Rule** | `id`" and "**File** | `path`" table rows, the
"#### Location n: Lines a-b" / "#### Lines a-b" headings, and the older
single "**Lines** | n" table row.
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional

from sarif_issues.utils.metadata import vulnerability_key

MARKER_BLOCK_RE = re.compile(r"<!--\s*sarif-issues\r?\n(.*?)-->", re.S)
LEGACY_RULE_RE = re.compile(r"\*\*CodeQL Rule\*\* \| `([^`]+)`")
LEGACY_FILE_RE = re.compile(r"\*\*File\*\* \| `([^`]+)`")
LOCATION_LINES_RE = re.compile(r"^#{2,4}\s+(?:Location\s+\d+:\s+)?Lines?\s+(\d+)(?:-\d+)?", re.M)
LEGACY_SINGLE_LINE_RE = re.compile(r"\*\*Lines?\*\* \| (\d+)")


@dataclass(frozen=True)
class Markers:
    rule_id: str
    file_path: str
    lines: FrozenSet[int] = frozenset()

    def identifies(self, rule_id: str, file_path: str) -> bool:
        return self.rule_id == clean_value(rule_id) and self.file_path == clean_value(file_path)

    def vulnerability_keys(self) -> List[str]:
        return [vulnerability_key(self.rule_id, self.file_path, line) for line in sorted(self.lines)]


def clean_value(value: str) -> str:
    """Make a value safe to store on one line inside an HTML comment."""
    return " ".join(str(value).split()).replace("-->", "-- >")


def render_marker_block(rule_id: str, file_path: str, lines: Iterable[int]) -> str:
    line_list = ",".join(str(n) for n in lines)
    return (
        "<!-- sarif-issues\n"
        f"rule={clean_value(rule_id)}\n"
        f"file={clean_value(file_path)}\n"
        f"lines={line_list}\n"
        "-->\n"
    )


def _parse_block(raw: str) -> dict:
    fields = {}
    for line in raw.splitlines():
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        fields[key.strip()] = value.strip()
    return fields


def _parse_line_list(value: str) -> FrozenSet[int]:
    return frozenset(int(part) for part in value.split(",") if part.strip().isdigit())


def extract_markers(body: str) -> Optional[Markers]:
    """
    Read (rule, file, lines) back out of an issue body. Returns None when
    the rule or the file cannot be found; `lines` may be empty.
    """
    body = body or ""
    rule_id = file_path = None
    lines: FrozenSet[int] = frozenset()

    block = MARKER_BLOCK_RE.search(body)
    if block:
        fields = _parse_block(block.group(1))
        rule_id = fields.get("rule") or None
        file_path = fields.get("file") or None
        lines = _parse_line_list(fields.get("lines", ""))

    if rule_id is None:
        match = LEGACY_RULE_RE.search(body)
        rule_id = match.group(1) if match else None
    if file_path is None:
        match = LEGACY_FILE_RE.search(body)
        file_path = match.group(1) if match else None
    if rule_id is None or file_path is None:
        return None

    if not lines:
        lines = frozenset(int(n) for n in LOCATION_LINES_RE.findall(body))
    if not lines:
        match = LEGACY_SINGLE_LINE_RE.search(body)
        if match:
            lines = frozenset([int(match.group(1))])

    return Markers(rule_id=rule_id, file_path=file_path, lines=lines)

