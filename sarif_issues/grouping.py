# sarif_issues/grouping.py

"""
Collapse findings into one GroupedFinding per (rule_id, file_path).

Groups keep first-seen order, and so do the occurrences inside each group.
The first finding of a group supplies the shared rule metadata.
"""

from typing import Dict, Iterable, List, Set, Tuple

from sarif_issues.markers import clean_value
from sarif_issues.utils.metadata import Finding, GroupedFinding, Occurrence, vulnerability_key


def group_findings(findings: Iterable[Finding]) -> List[GroupedFinding]:
    groups: Dict[Tuple[str, str], GroupedFinding] = {}
    for f in findings:
        key = (f.rule_id, f.file_path)
        group = groups.get(key)
        if group is None:
            group = GroupedFinding(
                rule_id=f.rule_id,
                rule_name=f.rule_name,
                rule_help=f.rule_help,
                file_path=f.file_path,
                level=f.level,
                severity=f.severity,
                tool_name=f.tool_name,
                tool_version=f.tool_version,
                message=f.message,
            )
            groups[key] = group
        group.occurrences.append(
            Occurrence(
                start_line=f.start_line,
                end_line=f.end_line,
                start_column=f.start_column,
                end_column=f.end_column,
                code_snippet=f.code_snippet,
                message=f.message,
            )
        )
    return list(groups.values())


def vulnerability_keys(groups: Iterable[GroupedFinding]) -> Set[str]:
    """
    Union of `ruleId:filePath:line` keys over every occurrence of `groups`.
    Rule and path are normalized the way marker blocks store them.
    """
    keys: Set[str] = set()
    for group in groups:
        rule_id, file_path = clean_value(group.rule_id), clean_value(group.file_path)
        keys.update(vulnerability_key(rule_id, file_path, line) for line in group.lines)
    return keys
