# sarif_issues/utils/metadata.py

"""
Records passed between the pipeline stages.

  - Finding: one result decoded from the analysis report
  - Occurrence: the per-location part of a finding, kept inside a group
  - GroupedFinding: findings sharing (rule_id, file_path); the unit tracked as one issue
  - Category: taxonomy entry a rule maps to
  - TrackedItem: an issue as the tracker returns it
  - GuidanceDocument: a fetched, verified guidance file
  - GuidanceBundle: the guidance documents rendered into one issue
  - ItemAction / RunSummary: what one reconciliation run did
"""

from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


@dataclass(frozen=True)
class Finding:
    rule_id: str
    rule_name: str
    rule_help: str
    message: str
    level: str
    severity: str
    file_path: str
    start_line: int
    end_line: int
    start_column: int
    end_column: int
    code_snippet: str
    tool_name: str
    tool_version: str


@dataclass(frozen=True)
class Occurrence:
    start_line: int
    end_line: int
    start_column: int
    end_column: int
    code_snippet: str
    message: str

    @property
    def line_range(self) -> str:
        if self.end_line != self.start_line:
            return f"{self.start_line}-{self.end_line}"
        return str(self.start_line)


@dataclass
class GroupedFinding:
    rule_id: str
    rule_name: str
    rule_help: str
    file_path: str
    level: str
    severity: str
    tool_name: str
    tool_version: str
    message: str
    occurrences: List[Occurrence] = field(default_factory=list)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.rule_id, self.file_path)

    @property
    def lines(self) -> List[int]:
        return [o.start_line for o in self.occurrences]


@dataclass(frozen=True)
class Category:
    key: str
    name: str
    doc_file: str
    maintainability: Tuple[str, ...] = ()
    threat_model: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TrackedItem:
    number: int
    title: str
    body: str
    labels: FrozenSet[str] = frozenset()
    state: str = "open"
    url: str = ""

    def has_label(self, label: str) -> bool:
        return label in self.labels


@dataclass(frozen=True)
class GuidanceDocument:
    category: str
    filename: str
    content: str


@dataclass
class GuidanceBundle:
    owasp: List[GuidanceDocument] = field(default_factory=list)
    maintainability: List[GuidanceDocument] = field(default_factory=list)
    threat_model: List[GuidanceDocument] = field(default_factory=list)
    # Requested maintainability files, fetched or not; they drive labels
    maintainability_files: List[str] = field(default_factory=list)


def vulnerability_key(rule_id: str, file_path: str, line) -> str:
    """Atomic liveness unit used by the auto-close sweep."""
    return f"{rule_id}:{file_path}:{line}"


@dataclass(frozen=True)
class ItemAction:
    action: str  # created | updated | closed | closed_duplicate | skipped | failed
    rule_id: str = ""
    file_path: str = ""
    number: Optional[int] = None
    reason: str = ""


@dataclass
class RunSummary:
    total_findings: int = 0
    total_groups: int = 0
    actionable: int = 0
    created: int = 0
    updated: int = 0
    closed: int = 0
    duplicates_closed: int = 0
    skipped: Counter = field(default_factory=Counter)
    by_severity: Counter = field(default_factory=Counter)
    by_category: Counter = field(default_factory=Counter)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    actions: List[ItemAction] = field(default_factory=list)
    dry_run: bool = False

    @property
    def skipped_total(self) -> int:
        return sum(self.skipped.values())

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def record(self, action: str, group=None, number: Optional[int] = None, reason: str = "") -> None:
        self.actions.append(ItemAction(
            action=action,
            rule_id=group.rule_id if group is not None else "",
            file_path=group.file_path if group is not None else "",
            number=number,
            reason=reason,
        ))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_findings": self.total_findings,
            "total_groups": self.total_groups,
            "actionable": self.actionable,
            "created": self.created,
            "updated": self.updated,
            "closed": self.closed,
            "duplicates_closed": self.duplicates_closed,
            "skipped": self.skipped_total,
            "skipped_by_reason": dict(self.skipped),
            "by_severity": dict(self.by_severity),
            "by_category": dict(self.by_category),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "actions": [asdict(a) for a in self.actions],
            "dry_run": self.dry_run,
        }
