# sarif_issues/parser.py

"""
SARIF report parser: decodes `runs[].results[]` into Finding records.

A report that cannot be read or decoded raises FatalInputError before the
pipeline touches the tracker. Problems inside a single result are logged
and that result is skipped.
"""

import json
import os
from typing import Any, Dict, Iterator, List, Optional

from sarif_issues.errors import FatalInputError
from sarif_issues.taxonomy import Taxonomy
from sarif_issues.utils.file_utils import read_text_file
from sarif_issues.utils.logger import get_logger
from sarif_issues.utils.metadata import Finding
from sarif_issues.utils.settings import SNIPPET_CONTEXT_LINES

LOG = get_logger(__name__)

FILE_NOT_FOUND_SNIPPET = "(File not found)"
UNREADABLE_SNIPPET = "(Unable to extract code snippet)"


def load_report(path: str) -> Dict[str, Any]:
    """
    Read and decode the report at `path`.

    Raises FatalInputError if the file is missing, is not JSON, or is not a
    SARIF log object.
    """
    LOG.info("Parsing SARIF file: %s", path)
    if not os.path.isfile(path):
        raise FatalInputError(f"SARIF file not found: {path}")
    try:
        report = json.loads(read_text_file(path))
    except (OSError, UnicodeDecodeError, ValueError) as e:
        raise FatalInputError(f"Failed to parse SARIF file {path}: {e}") from e
    return report


def extract_code_snippet(
    file_path: str,
    start_line: int,
    end_line: int,
    context_lines: int = SNIPPET_CONTEXT_LINES,
    root: str = ".",
) -> str:
    """
    Return lines `start_line - context_lines` .. `end_line + context_lines`
    of `file_path` (relative to `root`), numbered, with the finding's own
    lines marked by an arrow. Never raises: an unreadable file yields a
    placeholder string.
    """
    full_path = file_path if os.path.isabs(file_path) else os.path.join(root, file_path)
    if not os.path.isfile(full_path):
        LOG.warning("File not found for snippet extraction: %s", file_path)
        return FILE_NOT_FOUND_SNIPPET
    try:
        lines = read_text_file(full_path).split("\n")
    except (OSError, UnicodeDecodeError) as e:
        LOG.warning("Failed to extract code snippet from %s: %s", file_path, e)
        return UNREADABLE_SNIPPET

    first = max(0, start_line - context_lines - 1)
    last = min(len(lines), end_line + context_lines)
    numbered = []
    for offset, text in enumerate(lines[first:last]):
        number = first + offset + 1
        prefix = "→ " if start_line <= number <= end_line else "  "
        numbered.append(f"{prefix}{number:>4}: {text}")
    return "\n".join(numbered)


class SarifParser:
    """
    Turns a decoded SARIF log into Findings, in report order.

    :param taxonomy: Supplies the level -> severity table and per-rule severities
    :param source_root: Directory that result URIs are relative to (for snippets)
    """

    def __init__(self, taxonomy: Taxonomy, source_root: str = "."):
        self.taxonomy = taxonomy
        self.source_root = source_root

    def parse_file(self, path: str) -> Iterator[Finding]:
        return self.parse(load_report(path))

    def parse(self, report: Any) -> Iterator[Finding]:
        """
        Validate the top-level structure now, then return a generator over
        the findings.
        """
        if not isinstance(report, dict):
            raise FatalInputError("SARIF document is not a JSON object")
        if "runs" not in report:
            raise FatalInputError("SARIF document has no 'runs'")
        runs = report["runs"]
        if not isinstance(runs, list):
            raise FatalInputError("SARIF 'runs' is not a list")
        return self._iter_runs(runs)

    def _iter_runs(self, runs: List[Any]) -> Iterator[Finding]:
        count = 0
        for run in runs:
            if not isinstance(run, dict):
                LOG.warning("Skipping malformed run entry")
                continue
            driver = (run.get("tool") or {}).get("driver") or {}
            tool_name = driver.get("name") or "CodeQL"
            tool_version = driver.get("semanticVersion") or driver.get("version") or "unknown"
            rules = [r for r in driver.get("rules") or [] if isinstance(r, dict)]
            rules_by_id = {r.get("id"): r for r in rules if r.get("id")}

            for result in run.get("results") or []:
                try:
                    finding = self._parse_result(result, rules, rules_by_id, tool_name, tool_version)
                except (AttributeError, KeyError, TypeError, ValueError) as e:
                    LOG.error("Failed to parse result: %s", e)
                    continue
                if finding is not None:
                    count += 1
                    yield finding
        LOG.info("Parsed %d vulnerabilities from SARIF", count)

    def _parse_result(
        self,
        result: Dict[str, Any],
        rules: List[Dict[str, Any]],
        rules_by_id: Dict[str, Dict[str, Any]],
        tool_name: str,
        tool_version: str,
    ) -> Optional[Finding]:
        rule_id = self._resolve_rule_id(result, rules)
        message = (result.get("message") or {}).get("text") or "No description provided"
        level = result.get("level") or "warning"

        locations = result.get("locations") or []
        location = locations[0].get("physicalLocation") if locations else None
        if not location:
            LOG.warning("Skipping result without location: %s", rule_id)
            return None

        file_path = (location.get("artifactLocation") or {}).get("uri") or "unknown"
        region = location.get("region") or {}
        start_line = int(region.get("startLine") or 1)
        end_line = max(int(region.get("endLine") or start_line), start_line)
        start_column = int(region.get("startColumn") or 1)
        end_column = int(region.get("endColumn") or start_column)

        snippet = (region.get("snippet") or {}).get("text") or ""
        if not snippet.strip():
            snippet = extract_code_snippet(file_path, start_line, end_line, root=self.source_root)

        rule = rules_by_id.get(rule_id) or {}
        rule_name = (rule.get("shortDescription") or {}).get("text") or rule.get("name") or rule_id
        rule_help = (rule.get("help") or {}).get("text") or (rule.get("fullDescription") or {}).get("text") or ""

        severity = self.taxonomy.rule_severity(rule_id) or self.taxonomy.severity_for_level(level)

        return Finding(
            rule_id=rule_id,
            rule_name=rule_name,
            rule_help=rule_help,
            message=message,
            level=level,
            severity=severity,
            file_path=file_path,
            start_line=start_line,
            end_line=end_line,
            start_column=start_column,
            end_column=end_column,
            code_snippet=snippet.strip(),
            tool_name=tool_name,
            tool_version=tool_version,
        )

    @staticmethod
    def _resolve_rule_id(result: Dict[str, Any], rules: List[Dict[str, Any]]) -> str:
        rule_id = result.get("ruleId") or (result.get("rule") or {}).get("id")
        if rule_id:
            return rule_id
        index = result.get("ruleIndex")
        if isinstance(index, int) and 0 <= index < len(rules) and rules[index].get("id"):
            return rules[index]["id"]
        raise ValueError("result has no ruleId")
