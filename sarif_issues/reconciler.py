# sarif_issues/reconciler.py

"""
Reconcile this run's grouped findings with the issues earlier runs opened.

For every actionable group, in report order and up to `max_items_per_run`:
  - query the open sentinel-labelled issues,
  - if one identifies the same (rule, file), update it in place and leave an
    audit comment; extra matches are closed as duplicates,
  - otherwise create a new issue.

Afterwards the sweep closes every open sentinel-labelled issue none of whose
`rule:file:line` keys is still live, except issues carrying the override
label and issues whose body cannot be read back.

`find_matches`, `plan_sweep` and `merge_labels` are pure; `Reconciler`
applies their decisions through a `Tracker`.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence, Set

from sarif_issues.config import Config
from sarif_issues.errors import RemoteCallFailure
from sarif_issues.filters import ActionableFinding, FilterResult
from sarif_issues.grouping import vulnerability_keys
from sarif_issues.guidance import GuidanceFetcher, collect_guidance
from sarif_issues.markers import extract_markers
from sarif_issues.reporter.issue_reporter import IssueRenderer, RenderedIssue
from sarif_issues.taxonomy import Taxonomy
from sarif_issues.throttle import NoDelay, RateLimiter
from sarif_issues.tracker import Tracker
from sarif_issues.utils.logger import get_logger
from sarif_issues.utils.metadata import GroupedFinding, GuidanceBundle, RunSummary, TrackedItem
from sarif_issues.utils.settings import (
    AWAITING_PLAN_LABEL,
    MANAGED_LABEL_PREFIXES,
    OVERRIDE_LABEL,
    RESOLVED_LABEL,
    SENTINEL_LABEL,
)

LOG = get_logger(__name__)

MAX_ITEMS_REASON = "max_items"


@dataclass
class SweepPlan:
    to_close: List[TrackedItem] = field(default_factory=list)
    still_live: List[TrackedItem] = field(default_factory=list)
    overridden: List[TrackedItem] = field(default_factory=list)
    unparsable: List[TrackedItem] = field(default_factory=list)


def find_matches(items: Iterable[TrackedItem], rule_id: str, file_path: str) -> List[TrackedItem]:
    """Open items whose markers name exactly (rule_id, file_path), lowest number first."""
    matches = []
    for item in items:
        if item.state != "open":
            continue
        markers = extract_markers(item.body)
        if markers is not None and markers.identifies(rule_id, file_path):
            matches.append(item)
    return sorted(matches, key=lambda item: item.number)


def plan_sweep(
    items: Iterable[TrackedItem],
    live_keys: Set[str],
    override_label: str = OVERRIDE_LABEL,
) -> SweepPlan:
    plan = SweepPlan()
    for item in items:
        if item.state != "open":
            continue
        if item.has_label(override_label):
            plan.overridden.append(item)
            continue
        markers = extract_markers(item.body)
        if markers is None or not markers.lines:
            plan.unparsable.append(item)
            continue
        if any(key in live_keys for key in markers.vulnerability_keys()):
            plan.still_live.append(item)
        else:
            plan.to_close.append(item)
    return plan


def is_managed_label(label: str) -> bool:
    if label in (SENTINEL_LABEL, AWAITING_PLAN_LABEL, RESOLVED_LABEL):
        return True
    return any(label.startswith(prefix) for prefix in MANAGED_LABEL_PREFIXES)


def merge_labels(existing: Iterable[str], rendered: Sequence[str]) -> List[str]:
    """Rendered labels, plus every existing label the pipeline does not manage."""
    merged = list(rendered)
    for label in sorted(existing):
        if not is_managed_label(label) and label not in merged:
            merged.append(label)
    return merged


def live_vulnerability_keys(
    groups: Sequence[GroupedFinding],
    filter_result: FilterResult,
    filtered_findings_live: bool = True,
) -> Set[str]:
    """
    Keys the sweep treats as still detected. With `filtered_findings_live`
    every group built this run counts, including ones the filter rejected;
    otherwise only actionable groups do.
    """
    if filtered_findings_live:
        return vulnerability_keys(groups)
    return vulnerability_keys(a.group for a in filter_result.actionable)


def _now() -> datetime:
    return datetime.now().astimezone()


class Reconciler:
    """
    :param tracker: Where issues live (a DryRunTracker for --dry-run)
    :param renderer: Builds title, body and labels
    :param fetcher: Guidance source; None renders issues without guidance
    :param rate_limiter: Waited on before every tracker mutation
    :param clock: Returns the run timestamp used in comments and bodies
    """

    def __init__(
        self,
        tracker: Tracker,
        renderer: IssueRenderer,
        taxonomy: Taxonomy,
        config: Config,
        fetcher: Optional[GuidanceFetcher] = None,
        rate_limiter: Optional[RateLimiter] = None,
        clock: Callable[[], datetime] = _now,
    ):
        self.tracker = tracker
        self.renderer = renderer
        self.taxonomy = taxonomy
        self.config = config
        self.fetcher = fetcher
        self.rate_limiter = rate_limiter or NoDelay()
        self.clock = clock

    def run(
        self,
        groups: Sequence[GroupedFinding],
        filter_result: FilterResult,
        total_findings: int = 0,
        summary: Optional[RunSummary] = None,
    ) -> RunSummary:
        summary = summary or RunSummary()
        summary.total_findings = total_findings or sum(len(g.occurrences) for g in groups)
        summary.total_groups = len(groups)
        summary.actionable = len(filter_result.actionable)
        summary.skipped.update(filter_result.reasons)
        for group in groups:
            summary.by_severity[group.severity] += 1
        for actionable in filter_result.actionable:
            summary.by_category[actionable.category.key] += 1

        cap = self.config.max_items_per_run
        for index, actionable in enumerate(filter_result.actionable):
            if index >= cap:
                remaining = filter_result.actionable[index:]
                LOG.warning(
                    "Reached max issues limit (%d); skipping %d remaining finding group(s)",
                    cap, len(remaining),
                )
                for skipped in remaining:
                    summary.skipped[MAX_ITEMS_REASON] += 1
                    summary.record("skipped", skipped.group, reason=MAX_ITEMS_REASON)
                break
            self._process(actionable, summary)

        live_keys = live_vulnerability_keys(groups, filter_result, self.config.filtered_findings_live)
        self.sweep(live_keys, summary)
        return summary

    def _process(self, actionable: ActionableFinding, summary: RunSummary) -> None:
        group, category = actionable.group, actionable.category
        LOG.info(
            "Processing %s in %s (%d occurrence(s))",
            group.rule_id, group.file_path, len(group.occurrences),
        )
        try:
            open_items = self.tracker.list_open_items_by_label(SENTINEL_LABEL)
            matches = find_matches(open_items, group.rule_id, group.file_path)
            guidance = (
                collect_guidance(self.fetcher, self.taxonomy, self.config, group, category)
                if self.fetcher is not None
                else GuidanceBundle()
            )
            rendered = self.renderer.render(group, category, guidance, now=self.clock())
            if not matches:
                self._create(group, rendered, summary)
                return
            primary = matches[0]
            self._update(primary, group, rendered, summary)
            for duplicate in matches[1:]:
                self._close_duplicate(duplicate, primary, group, summary)
        except RemoteCallFailure as e:
            LOG.error(
                "Failed to process %s in %s: %s [%s]",
                group.rule_id, group.file_path, e, e.context(),
            )
            summary.errors.append({
                "rule_id": group.rule_id,
                "file_path": group.file_path,
                "operation": e.operation,
                "item": e.item,
                "status": e.status,
                "message": str(e),
            })
            summary.record("failed", group, e.item if isinstance(e.item, int) else None, reason=str(e))

    def _create(self, group: GroupedFinding, rendered: RenderedIssue, summary: RunSummary) -> None:
        self.rate_limiter.wait()
        item = self.tracker.create_item(
            rendered.title, rendered.body, rendered.labels, assignees=self.config.auto_assign
        )
        LOG.info("Created issue #%s: %s", item.number, rendered.title)
        summary.created += 1
        summary.record("created", group, item.number)

    def _update(
        self, item: TrackedItem, group: GroupedFinding, rendered: RenderedIssue, summary: RunSummary
    ) -> None:
        LOG.info("Issue #%s already tracks %s in %s; updating", item.number, group.rule_id, group.file_path)
        labels = merge_labels(item.labels, rendered.labels)
        self.rate_limiter.wait()
        self.tracker.update_item(item.number, rendered.title, rendered.body, labels)
        self.rate_limiter.wait()
        self.tracker.add_comment(item.number, self._redetected_comment(group))
        summary.updated += 1
        summary.record("updated", group, item.number)

    def _close_duplicate(
        self, item: TrackedItem, primary: TrackedItem, group: GroupedFinding, summary: RunSummary
    ) -> None:
        if item.has_label(OVERRIDE_LABEL):
            LOG.info("Duplicate issue #%s carries %s; leaving it open", item.number, OVERRIDE_LABEL)
            return
        LOG.warning("Closing issue #%s as a duplicate of #%s", item.number, primary.number)
        self.rate_limiter.wait()
        self.tracker.add_comment(
            item.number,
            f"🔁 **Duplicate**: this finding is tracked in #{primary.number}.\n\n"
            f"{self._provenance()}",
        )
        self.rate_limiter.wait()
        self.tracker.set_state(item.number, "closed")
        summary.duplicates_closed += 1
        summary.record("closed_duplicate", group, item.number, reason=f"duplicate of #{primary.number}")

    def sweep(self, live_keys: Set[str], summary: RunSummary) -> None:
        """
        Close open sentinel-labelled issues that no live key backs. A tracker
        failure stops the sweep and is recorded as a warning; work already
        done this run stands.
        """
        LOG.info("Checking for resolved vulnerabilities (%d live key(s))", len(live_keys))
        try:
            items = self.tracker.list_open_items_by_label(SENTINEL_LABEL)
            plan = plan_sweep(items, live_keys)
            for item in plan.unparsable:
                LOG.warning("Issue #%s: cannot read rule, file or lines from body; leaving it open", item.number)
            for item in plan.overridden:
                LOG.debug("Issue #%s is labelled %s; not auto-closing", item.number, OVERRIDE_LABEL)
            for item in plan.to_close:
                self._close_resolved(item)
                summary.closed += 1
                summary.record("closed", number=item.number, reason="no longer detected")
        except RemoteCallFailure as e:
            message = f"Auto-close sweep aborted: {e}"
            LOG.warning("%s [%s]", message, e.context())
            summary.warnings.append(message)

    def _close_resolved(self, item: TrackedItem) -> None:
        LOG.info("Closing resolved issue #%s: %s", item.number, item.title)
        self.rate_limiter.wait()
        self.tracker.add_comment(
            item.number,
            "✅ **Resolved**: This vulnerability is no longer detected in the latest scan.\n\n"
            f"{self._provenance()}\n\n"
            f"If this was closed in error, reopen it and add the `{OVERRIDE_LABEL}` label "
            "to stop automatic closing.",
        )
        self.rate_limiter.wait()
        self.tracker.set_state(item.number, "closed")
        self.rate_limiter.wait()
        self.tracker.add_labels(item.number, [RESOLVED_LABEL])

    def _redetected_comment(self, group: GroupedFinding) -> str:
        lines = ", ".join(o.line_range for o in group.occurrences)
        return (
            "🔄 **Re-detected**: The same vulnerability was found again in the latest scan.\n\n"
            f"{self._provenance()}\n"
            f"- **Lines**: {lines}"
        )

    def _provenance(self) -> str:
        return (
            f"- **Branch**: {self.config.branch}\n"
            f"- **Commit**: {self.config.sha}\n"
            f"- **Timestamp**: {self.clock().isoformat()}"
        )
