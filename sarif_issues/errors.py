# sarif_issues/errors.py

"""
Exceptions raised by sarif-issues.

Only ConfigError and FatalInputError end a run; they are raised before any
tracker mutation. RemoteCallFailure is caught per grouped finding (or per
sweep) and recorded in the run summary.
"""


class SarifIssuesError(Exception):
    """Base class for every error this package raises on purpose."""


class ConfigError(SarifIssuesError):
    """Required configuration is missing or invalid."""


class FatalInputError(SarifIssuesError):
    """The analysis report cannot be read or decoded."""


class RemoteCallFailure(SarifIssuesError):
    """
    A call to the tracker or the guidance source failed.

    :param operation: Name of the remote operation (e.g. "create_item")
    :param item: Issue number or document key the call was about, if any
    :param status: HTTP status code, if a response was received
    """

    def __init__(self, message: str, operation: str = "", item=None, status: int = None):
        super().__init__(message)
        self.operation = operation
        self.item = item
        self.status = status

    def context(self) -> str:
        parts = []
        if self.operation:
            parts.append(f"operation={self.operation}")
        if self.item is not None:
            parts.append(f"item={self.item}")
        if self.status is not None:
            parts.append(f"status={self.status}")
        return " ".join(parts)


class IntegrityFailure(RemoteCallFailure):
    """Fetched content does not match its reference digest."""
