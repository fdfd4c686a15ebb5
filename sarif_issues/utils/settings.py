# sarif_issues/utils/settings.py

"""
Default settings and constants for sarif-issues.

This module centralizes:
  - The severity scale and its ordering
  - Labels the pipeline owns on tracked issues
  - Body size limits and snippet context
  - Default file locations and environment variable names
"""

from typing import Dict, List

# -----------------------------------------------------------------------------
# Severity scale, lowest first. Threshold comparisons use this order.
# -----------------------------------------------------------------------------
SEVERITY_LEVELS: List[str] = ["low", "medium", "high", "critical"]
DEFAULT_SEVERITY = "medium"
DEFAULT_SEVERITY_THRESHOLD = "high"
DEFAULT_MAX_ITEMS_PER_RUN = 10

# -----------------------------------------------------------------------------
# Labels
# -----------------------------------------------------------------------------
SENTINEL_LABEL = "codeql-finding"
OVERRIDE_LABEL = "false-positive"
RESOLVED_LABEL = "resolved"
AWAITING_PLAN_LABEL = "awaiting-remediation-plan"

# Prefixes of labels computed from findings; anything else on an issue
# belongs to humans and survives an update.
MANAGED_LABEL_PREFIXES: List[str] = ["severity/", "owasp/", "maintainability/"]

# -----------------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------------
MAX_BODY_LENGTH = 65000  # GitHub rejects bodies above 65536 characters
SNIPPET_CONTEXT_LINES = 2
MENTION_KEYWORD = "@claude"
DOCS_BASE_URL = "https://maintainability.ai/docs/prompts/owasp/"

LANGUAGE_MAP: Dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".java": "java",
    ".go": "go",
    ".cs": "csharp",
    ".rb": "ruby",
    ".php": "php",
}

# -----------------------------------------------------------------------------
# Guidance documents
# -----------------------------------------------------------------------------
GUIDANCE_CATEGORIES: List[str] = ["owasp", "maintainability", "threat-modeling"]
ALLOWED_GUIDANCE_HOSTS: List[str] = ["raw.githubusercontent.com"]
DEFAULT_GUIDANCE_REPO = "AliceNN-ucdenver/MaintainabilityAI"
DEFAULT_GUIDANCE_BRANCH = "main"
GUIDANCE_FETCH_TIMEOUT = 10

# -----------------------------------------------------------------------------
# Default file locations (relative to the working directory)
# -----------------------------------------------------------------------------
DEFAULT_SARIF_PATH = "results.sarif"
DEFAULT_HASHES_PATH = "prompt-hashes.json"
DEFAULT_LOGS_DIR = "logs"
PROCESSING_LOG_NAME = "processing.log"
SUMMARY_FILE_NAME = "summary.json"

# -----------------------------------------------------------------------------
# Tracker
# -----------------------------------------------------------------------------
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_REQUEST_DELAY = 1.0
TRACKER_TIMEOUT = 30
TRACKER_PAGE_SIZE = 100

# -----------------------------------------------------------------------------
# Environment variable names for overriding behavior
# -----------------------------------------------------------------------------
ENV_LOG_LEVEL = "SARIF_ISSUES_LOG"  # e.g., set to "DEBUG", "INFO", etc.
ENV_NO_COLOR = "SARIF_ISSUES_NO_COLOR"  # if set, disable terminal colors
MAX_LOG_MESSAGE_LENGTH = 500


def severity_rank(severity: str) -> int:
    """
    Position of `severity` on the scale; unknown values rank below "low".
    """
    try:
        return SEVERITY_LEVELS.index(str(severity).lower())
    except ValueError:
        return -1
