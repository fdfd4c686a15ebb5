# sarif_issues/filters.py

"""
Decide which grouped findings are actionable this run.

A group is actionable when its severity meets the threshold, its path is
not excluded, and its rule maps to a category. Checks run in that order;
the first one that fails is the group's only rejection reason.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from sarif_issues.config import Config
from sarif_issues.taxonomy import Taxonomy
from sarif_issues.utils.logger import get_logger
from sarif_issues.utils.metadata import Category, GroupedFinding
from sarif_issues.utils.settings import severity_rank

LOG = get_logger(__name__)


class RejectionReason(str, Enum):
    BELOW_THRESHOLD = "below_threshold"
    EXCLUDED_PATH = "excluded_path"
    UNMAPPED_RULE = "unmapped_rule"


@dataclass
class ActionableFinding:
    group: GroupedFinding
    category: Category


@dataclass
class FilterResult:
    actionable: List[ActionableFinding] = field(default_factory=list)
    rejected: List[GroupedFinding] = field(default_factory=list)
    reasons: Counter = field(default_factory=Counter)


def meets_severity_threshold(severity: str, threshold: str) -> bool:
    return severity_rank(severity) >= severity_rank(threshold)


def is_excluded_path(file_path: str, excluded: Sequence[str]) -> bool:
    return any(fragment and fragment in file_path for fragment in excluded)


class FindingFilter:
    def __init__(self, config: Config, taxonomy: Taxonomy):
        self.threshold = config.severity_threshold
        self.excluded_paths = tuple(config.excluded_paths)
        self.taxonomy = taxonomy

    def evaluate(self, group: GroupedFinding) -> Optional[RejectionReason]:
        """Return why `group` is rejected, or None if it is actionable."""
        if not meets_severity_threshold(group.severity, self.threshold):
            LOG.info(
                "Skipping %s (severity %s below threshold %s)",
                group.rule_id, group.severity, self.threshold,
            )
            return RejectionReason.BELOW_THRESHOLD
        if is_excluded_path(group.file_path, self.excluded_paths):
            LOG.info("Skipping %s (path %s is excluded)", group.rule_id, group.file_path)
            return RejectionReason.EXCLUDED_PATH
        if self.taxonomy.category_for(group.rule_id) is None:
            LOG.warning("Skipping %s (no category mapping)", group.rule_id)
            return RejectionReason.UNMAPPED_RULE
        return None

    def apply(self, groups: Iterable[GroupedFinding]) -> FilterResult:
        result = FilterResult()
        for group in groups:
            reason = self.evaluate(group)
            if reason is None:
                result.actionable.append(ActionableFinding(group, self.taxonomy.category_for(group.rule_id)))
            else:
                result.rejected.append(group)
                result.reasons[reason.value] += 1
        return result
