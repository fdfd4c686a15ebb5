"""sarif-issues: SARIF findings to GitHub issues, with dedup and auto-close."""

__version__ = "1.0.0"
