# sarif_issues/reporter/issue_reporter.py

"""
IssueRenderer turns a grouped finding, its category and the fetched
guidance into an issue title, a Markdown body and a label list.

The body opens with the hidden identity block from `markers.py`; the
reconciler finds issues again through it, so truncation never cuts into it.
"""

import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from sarif_issues.config import Config
from sarif_issues.markers import render_marker_block
from sarif_issues.taxonomy import Taxonomy
from sarif_issues.utils.logger import get_logger
from sarif_issues.utils.metadata import Category, GroupedFinding, GuidanceBundle, GuidanceDocument
from sarif_issues.utils.settings import (
    AWAITING_PLAN_LABEL,
    DOCS_BASE_URL,
    LANGUAGE_MAP,
    MAX_BODY_LENGTH,
    MENTION_KEYWORD,
    SENTINEL_LABEL,
)

LOG = get_logger(__name__)

TRUNCATION_NOTICE = (
    "\n\n---\n\n**⚠️ Note**: This issue was truncated due to size limits. "
    "See the OWASP category link above for complete security guidance."
)

_FENCE_RE = re.compile(r"^(`{3,})", re.M)
_BACKTICK_RUN_RE = re.compile(r"`+")
_OWASP_NUM_RE = re.compile(r"A(\d{2})")
_HEADING_RE = re.compile(r"^#\s+([^(—\n]+)", re.M)


@dataclass
class RenderedIssue:
    title: str
    body: str
    labels: List[str] = field(default_factory=list)


def language_for(file_path: str) -> str:
    return LANGUAGE_MAP.get(os.path.splitext(file_path)[1].lower(), "text")


def plural(count: int, word: str, suffix: str = "s") -> str:
    return f"{count} {word}{suffix if count != 1 else ''}"


def owasp_info(filename: str, content: str) -> Tuple[str, str]:
    """
    ("A01", "Broken Access Control") from "A01_broken_access_control.md"
    and the document's first heading.
    """
    num_match = _OWASP_NUM_RE.search(filename)
    title_match = _HEADING_RE.search(content)
    num = f"A{num_match.group(1)}" if num_match else ""
    title = title_match.group(1).strip() if title_match else title_from_filename(filename)
    return num, title


def title_from_filename(filename: str) -> str:
    """ "complexity-reduction.md" -> "Complexity Reduction" """
    stem = filename[:-3] if filename.endswith(".md") else filename
    return " ".join(word.capitalize() for word in re.split(r"[-_]", stem) if word)


def code_fence(snippet: str) -> str:
    """A backtick fence longer than any backtick run inside `snippet`."""
    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(snippet)), default=0)
    return "`" * max(3, longest + 1)


def truncate_body(body: str, max_length: int = MAX_BODY_LENGTH, protected_prefix: str = "") -> str:
    """
    Cut `body` to at most `max_length` characters and append the truncation
    notice. `protected_prefix` (the identity block) is always kept whole, an
    open code fence is closed, and open <details> blocks are closed.
    """
    if len(body) <= max_length:
        return body

    LOG.warning("Issue body too long (%d chars), truncating to %d", len(body), max_length)
    head = protected_prefix if protected_prefix and body.startswith(protected_prefix) else ""
    rest = body[len(head):]
    budget = max_length - len(head) - len(TRUNCATION_NOTICE)
    if budget <= 0:
        return head + TRUNCATION_NOTICE

    kept = rest[:budget]
    closers = _closers_for(kept)
    if len(kept) + len(closers) > budget:
        kept = kept[: max(0, budget - len(closers))]
        closers = _closers_for(kept)
    return head + kept + closers + TRUNCATION_NOTICE


def _closers_for(text: str) -> str:
    closers = ""
    fences = _FENCE_RE.findall(text)
    if len(fences) % 2 == 1:
        closers += "\n" + fences[-1]
    open_details = text.count("<details>") - text.count("</details>")
    closers += "\n</details>" * max(0, open_details)
    return closers


class IssueRenderer:
    def __init__(self, config: Config, taxonomy: Taxonomy, max_body_length: int = MAX_BODY_LENGTH):
        self.config = config
        self.taxonomy = taxonomy
        self.max_body_length = max_body_length

    def render(
        self,
        group: GroupedFinding,
        category: Category,
        guidance: Optional[GuidanceBundle] = None,
        now: Optional[datetime] = None,
    ) -> RenderedIssue:
        guidance = guidance or GuidanceBundle()
        timestamp = (now or datetime.now().astimezone()).isoformat()
        return RenderedIssue(
            title=self.title(group),
            body=self.body(group, category, guidance, timestamp),
            labels=self.labels(group, category, guidance.maintainability_files),
        )

    @staticmethod
    def title(group: GroupedFinding) -> str:
        count = len(group.occurrences)
        return (
            f"[Security] {group.rule_name} in {os.path.basename(group.file_path)} "
            f"({plural(count, 'occurrence')})"
        )

    def labels(self, group: GroupedFinding, category: Category, maintainability_files: List[str]) -> List[str]:
        labels = [SENTINEL_LABEL]
        severity_label = self.taxonomy.severity_label(group.severity)
        if severity_label:
            labels.append(severity_label)
        labels.append(f"owasp/{category.key.lower()}")
        for fname in maintainability_files:
            labels.append(f"maintainability/{fname[:-3] if fname.endswith('.md') else fname}")
        labels.append(AWAITING_PLAN_LABEL)
        return labels

    def body(self, group: GroupedFinding, category: Category, guidance: GuidanceBundle, timestamp: str) -> str:
        markers = render_marker_block(group.rule_id, group.file_path, group.lines)
        parts = [
            markers,
            self._header(group, category, timestamp),
            self._locations(group),
        ]
        if group.rule_help:
            parts.append(f"\n**Additional Context**: {group.rule_help}\n")
        parts.append(self._guidance(guidance))
        parts.append(self._call_to_action(group))
        parts.append(self._footer(group, category, timestamp))
        return truncate_body("".join(parts), self.max_body_length, protected_prefix=markers)

    def _header(self, group: GroupedFinding, category: Category, timestamp: str) -> str:
        count = len(group.occurrences)
        return (
            f"## 🔴 Security Vulnerability: {group.rule_name}\n\n"
            f"**Detected by**: {group.tool_name} v{group.tool_version}\n"
            f"**Created**: {timestamp}\n"
            f"**Occurrences**: {plural(count, 'location')} in this file\n\n"
            "---\n\n"
            "### 📋 Vulnerability Details\n\n"
            "| Property | Value |\n"
            "|----------|-------|\n"
            f"| **Severity** | {group.severity.upper()} |\n"
            f"| **CodeQL Rule** | `{group.rule_id}` |\n"
            f"| **OWASP Category** | [{category.name}]({DOCS_BASE_URL}{category.doc_file}) |\n"
            f"| **File** | `{group.file_path}` |\n"
            f"| **Total Occurrences** | {count} |\n\n"
            "### 💻 Vulnerable Code Locations\n"
        )

    def _locations(self, group: GroupedFinding) -> str:
        language = language_for(group.file_path)
        numbered = len(group.occurrences) > 1
        sections = []
        for index, occurrence in enumerate(group.occurrences, start=1):
            heading = f"Location {index}: Lines {occurrence.line_range}" if numbered else f"Lines {occurrence.line_range}"
            snippet = occurrence.code_snippet or "(No code snippet available)"
            fence = code_fence(snippet)
            sections.append(
                f"\n#### {heading}\n\n"
                f"{fence}{language}\n{snippet}\n{fence}\n\n"
                f"**Issue**: {occurrence.message}\n"
            )
        return "".join(sections)

    def _guidance(self, guidance: GuidanceBundle) -> str:
        out = ""
        if guidance.owasp:
            out += self._details_group(
                "📘", "OWASP Security Guidance", "guide", guidance.owasp, "🔒", self._owasp_summary
            )
        if guidance.maintainability:
            out += self._details_group(
                "🏗️", "Maintainability Guidance", "guide", guidance.maintainability, "📐",
                lambda doc: title_from_filename(doc.filename),
            )
        if guidance.threat_model:
            out += self._details_group(
                "🎯", "Threat Model Analysis (STRIDE)", "threat", guidance.threat_model, "🎭",
                lambda doc: title_from_filename(doc.filename),
            )
        return out

    @staticmethod
    def _owasp_summary(doc: GuidanceDocument) -> str:
        num, title = owasp_info(doc.filename, doc.content)
        return f"{num} - {title}" if num else title

    @staticmethod
    def _details_group(icon, heading, noun, documents, item_icon, summarize) -> str:
        out = (
            "\n<details>\n"
            f"<summary>{icon} <strong>{heading}</strong> ({plural(len(documents), noun)})</summary>\n\n"
        )
        for doc in documents:
            out += (
                "\n<details>\n"
                f"<summary>{item_icon} <strong>{summarize(doc)}</strong></summary>\n\n"
                f"{doc.content}\n\n"
                "</details>\n"
            )
        return out + "\n</details>\n"

    @staticmethod
    def _call_to_action(group: GroupedFinding) -> str:
        count = len(group.occurrences)
        occurrences = plural(count, "occurrence")
        lines = ", ".join(o.line_range for o in group.occurrences)
        return (
            "\n---\n\n"
            "## 🤖 Remediation Request\n\n"
            f"To request a remediation plan for **all {occurrences}**, copy and paste this comment:\n\n"
            "```\n"
            f"{MENTION_KEYWORD} Please provide a remediation plan for all {occurrences} "
            f"of this vulnerability in {group.file_path} following the security and "
            "maintainability guidelines provided.\n"
            "```\n\n"
            "Keep these parameters in the request:\n\n"
            f"- **rule**: `{group.rule_id}`\n"
            f"- **file**: `{group.file_path}`\n"
            f"- **lines**: {lines}\n\n"
            "---\n"
        )

    def _footer(self, group: GroupedFinding, category: Category, timestamp: str) -> str:
        config = self.config
        return (
            "\n<details>\n"
            "<summary>📊 Additional Metadata</summary>\n\n"
            f"- **Detection Time**: {timestamp}\n"
            f"- **Language**: {language_for(group.file_path).capitalize()}\n"
            f"- **Tool**: {group.tool_name} v{group.tool_version}\n"
            f"- **Repository**: {config.repository}\n"
            f"- **Branch**: {config.branch}\n"
            f"- **Commit**: {config.sha}\n"
            f"- **Rule ID**: {group.rule_id}\n"
            f"- **OWASP Category**: {category.key}\n"
            f"- **Severity**: {group.severity} (level: {group.level})\n"
            f"- **Guidance Source**: {config.guidance_repo}@{config.guidance_branch}\n\n"
            "</details>\n"
        )
