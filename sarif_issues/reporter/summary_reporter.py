# sarif_issues/reporter/summary_reporter.py

import json
import os
from typing import List

from colorama import Fore, Style, init

from sarif_issues.utils.file_utils import ensure_directory, write_text_file
from sarif_issues.utils.logger import get_logger
from sarif_issues.utils.metadata import RunSummary
from sarif_issues.utils.settings import ENV_NO_COLOR, SEVERITY_LEVELS, SUMMARY_FILE_NAME

LOG = get_logger(__name__)

_SEVERITY_COLORS = {
    "critical": Fore.RED,
    "high": Fore.MAGENTA,
    "medium": Fore.YELLOW,
    "low": Fore.CYAN,
}


class SummaryReporter:
    """
    Reporter for the outcome of one run: a JSON document persisted under the
    logs directory, and a coloured console block.
    """

    @staticmethod
    def format_json(summary: RunSummary) -> str:
        return json.dumps(summary.to_dict(), indent=2)

    @staticmethod
    def write(summary: RunSummary, logs_dir: str) -> str:
        """Write `<logs_dir>/summary.json` and return its path."""
        ensure_directory(logs_dir)
        path = os.path.join(logs_dir, SUMMARY_FILE_NAME)
        write_text_file(path, SummaryReporter.format_json(summary) + "\n")
        LOG.info("Wrote run summary to %s", path)
        return path

    @staticmethod
    def format_console(summary: RunSummary, color: bool = True) -> str:
        def paint(text: str, fore: str) -> str:
            return f"{fore}{text}{Style.RESET_ALL}" if color else text

        title = "=== sarif-issues summary" + (" (dry run)" if summary.dry_run else "") + " ==="
        lines: List[str] = [
            paint(title, Style.BRIGHT),
            f"Findings:        {summary.total_findings} in {summary.total_groups} group(s)",
            f"Actionable:      {summary.actionable}",
            paint(f"Created:         {summary.created}", Fore.GREEN),
            paint(f"Updated:         {summary.updated}", Fore.BLUE),
            paint(f"Closed:          {summary.closed}", Fore.GREEN),
        ]
        if summary.duplicates_closed:
            lines.append(f"Duplicates:      {summary.duplicates_closed} closed")
        skipped = f"Skipped:         {summary.skipped_total}"
        if summary.skipped:
            skipped += " (" + ", ".join(f"{k}: {v}" for k, v in sorted(summary.skipped.items())) + ")"
        lines.append(skipped)

        severities = [s for s in reversed(SEVERITY_LEVELS) if summary.by_severity.get(s)]
        severities += sorted(s for s in summary.by_severity if s not in SEVERITY_LEVELS)
        if severities:
            lines.append("By severity:")
            for severity in severities:
                lines.append(
                    "  " + paint(f"{severity:<10}{summary.by_severity[severity]}", _SEVERITY_COLORS.get(severity, ""))
                )
        if summary.by_category:
            lines.append("By category:")
            for key in sorted(summary.by_category):
                lines.append(f"  {key:<10}{summary.by_category[key]}")

        for warning in summary.warnings:
            lines.append(paint(f"Warning: {warning}", Fore.YELLOW))
        if summary.errors:
            lines.append(paint(f"Errors:          {len(summary.errors)}", Fore.RED))
            for error in summary.errors:
                lines.append(paint(
                    f"  {error.get('rule_id', '')} {error.get('file_path', '')}: {error.get('message', '')}",
                    Fore.RED,
                ))
        return "\n".join(lines)

    @staticmethod
    def print_summary(summary: RunSummary) -> None:
        color = not os.getenv(ENV_NO_COLOR)
        if color:
            init(autoreset=True)
        print(SummaryReporter.format_console(summary, color=color))
