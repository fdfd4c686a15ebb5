# sarif_issues/pipeline.py

"""
One processing run: parse -> group -> filter -> reconcile -> summarize.

The report is parsed completely before the tracker is contacted, so a
FatalInputError leaves the tracker untouched.
"""

import os
from datetime import datetime
from typing import Callable, Optional

import requests

from sarif_issues.config import Config
from sarif_issues.errors import ConfigError
from sarif_issues.filters import FindingFilter
from sarif_issues.grouping import group_findings
from sarif_issues.guidance import GuidanceFetcher
from sarif_issues.parser import SarifParser
from sarif_issues.reconciler import Reconciler
from sarif_issues.reporter.issue_reporter import IssueRenderer
from sarif_issues.reporter.summary_reporter import SummaryReporter
from sarif_issues.taxonomy import Taxonomy
from sarif_issues.throttle import FixedDelay, NoDelay, RateLimiter
from sarif_issues.tracker import DryRunTracker, GitHubTracker, Tracker
from sarif_issues.utils.logger import attach_json_log, detach_handler, get_logger
from sarif_issues.utils.metadata import RunSummary
from sarif_issues.utils.settings import PROCESSING_LOG_NAME

LOG = get_logger(__name__)


def load_taxonomy(config: Config) -> Taxonomy:
    try:
        taxonomy = Taxonomy.load(config.mappings_path or None)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Failed to load rule mappings {config.mappings_path}: {e}") from e
    return taxonomy.with_rule_severity(config.severity_overrides)


def run_pipeline(
    config: Config,
    tracker: Optional[Tracker] = None,
    fetcher: Optional[GuidanceFetcher] = None,
    rate_limiter: Optional[RateLimiter] = None,
    session: Optional[requests.Session] = None,
    dry_run: bool = False,
    clock: Optional[Callable[[], datetime]] = None,
) -> RunSummary:
    """
    Run the whole pipeline for `config` and return the run summary, which
    is also written to `<logs_dir>/summary.json`.

    `tracker`, `fetcher`, `rate_limiter` and `session` default to the real
    GitHub-backed collaborators. Raises ConfigError or FatalInputError.
    """
    handler = attach_json_log(os.path.join(config.logs_dir, PROCESSING_LOG_NAME))
    try:
        LOG.info("Starting SARIF processing: %s", config.describe())
        taxonomy = load_taxonomy(config)

        parser = SarifParser(taxonomy, config.source_root)
        findings = list(parser.parse_file(config.sarif_path))
        groups = group_findings(findings)
        LOG.info("Grouped %d finding(s) into %d issue(s)", len(findings), len(groups))
        filter_result = FindingFilter(config, taxonomy).apply(groups)
        LOG.info(
            "%d actionable group(s); %d filtered out %s",
            len(filter_result.actionable), len(filter_result.rejected), dict(filter_result.reasons),
        )

        if tracker is None:
            tracker = GitHubTracker(config.github_token, config.repository, config.api_url, session=session)
        if dry_run:
            tracker = DryRunTracker(tracker)
        if fetcher is None:
            fetcher = GuidanceFetcher.from_config(config, session=session)
        if rate_limiter is None:
            rate_limiter = NoDelay() if dry_run else FixedDelay(config.request_delay)

        reconciler_kwargs = {"clock": clock} if clock is not None else {}
        reconciler = Reconciler(
            tracker,
            IssueRenderer(config, taxonomy),
            taxonomy,
            config,
            fetcher=fetcher,
            rate_limiter=rate_limiter,
            **reconciler_kwargs,
        )
        summary = reconciler.run(
            groups, filter_result, total_findings=len(findings), summary=RunSummary(dry_run=dry_run)
        )
        SummaryReporter.write(summary, config.logs_dir)
        LOG.info(
            "Processing complete: %d created, %d updated, %d closed, %d skipped, %d error(s)",
            summary.created, summary.updated, summary.closed, summary.skipped_total, len(summary.errors),
        )
        return summary
    finally:
        detach_handler(handler)
