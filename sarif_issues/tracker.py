# sarif_issues/tracker.py

"""
Issue tracker access.

`Tracker` is the interface the reconciler talks to. `GitHubTracker`
implements it over the GitHub REST API; `DryRunTracker` wraps another
tracker, answering reads from it and only logging writes.

Every remote problem (transport error, non-2xx status, undecodable
response) surfaces as RemoteCallFailure.
"""

import abc
import itertools
from typing import Any, Dict, Iterable, List, Optional, Sequence

import requests

from sarif_issues.errors import RemoteCallFailure
from sarif_issues.utils.logger import get_logger
from sarif_issues.utils.metadata import TrackedItem
from sarif_issues.utils.settings import DEFAULT_API_URL, TRACKER_PAGE_SIZE, TRACKER_TIMEOUT

LOG = get_logger(__name__)


class Tracker(abc.ABC):
    @abc.abstractmethod
    def list_open_items_by_label(self, label: str) -> List[TrackedItem]:
        """Return every open item carrying `label`."""

    @abc.abstractmethod
    def create_item(
        self, title: str, body: str, labels: Sequence[str], assignees: Sequence[str] = ()
    ) -> TrackedItem:
        """Create an open item and return it."""

    @abc.abstractmethod
    def update_item(self, number: int, title: str, body: str, labels: Sequence[str]) -> TrackedItem:
        """Replace title, body and labels of an item."""

    @abc.abstractmethod
    def add_comment(self, number: int, text: str) -> None:
        """Append a comment to an item."""

    @abc.abstractmethod
    def set_state(self, number: int, state: str) -> None:
        """Set an item to "open" or "closed"."""

    @abc.abstractmethod
    def add_labels(self, number: int, labels: Sequence[str]) -> None:
        """Add labels to an item, keeping the ones it has."""


def item_from_json(data: Dict[str, Any]) -> TrackedItem:
    labels = frozenset(
        label if isinstance(label, str) else label.get("name", "")
        for label in data.get("labels") or []
    )
    return TrackedItem(
        number=int(data["number"]),
        title=data.get("title") or "",
        body=data.get("body") or "",
        labels=frozenset(name for name in labels if name),
        state=data.get("state") or "open",
        url=data.get("html_url") or "",
    )


class GitHubTracker(Tracker):
    """
    Issues of one GitHub repository.

    :param token: Token sent as a bearer credential
    :param repository: "owner/repo"
    :param api_url: REST API root (GitHub Enterprise installs differ)
    :param session: A requests.Session (or compatible object); one is created if omitted
    """

    def __init__(
        self,
        token: str,
        repository: str,
        api_url: str = DEFAULT_API_URL,
        session: Optional[requests.Session] = None,
        timeout: float = TRACKER_TIMEOUT,
    ):
        self.repository = repository
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        })

    def _request(self, method: str, path: str, operation: str, item=None, **kwargs) -> Any:
        url = f"{self.api_url}/repos/{self.repository}{path}"
        LOG.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise RemoteCallFailure(f"{operation} failed: {e}", operation, item) from e

        status = response.status_code
        if not 200 <= status < 300:
            detail = ""
            try:
                error_body = response.json()
                if isinstance(error_body, dict):
                    detail = error_body.get("message", "")
            except ValueError:
                detail = (response.text or "")[:200]
            raise RemoteCallFailure(
                f"{operation} failed: HTTP {status} {detail}".rstrip(), operation, item, status
            )
        if status == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteCallFailure(f"{operation} returned invalid JSON: {e}", operation, item, status) from e

    def list_open_items_by_label(self, label: str) -> List[TrackedItem]:
        items: List[TrackedItem] = []
        for page in itertools.count(1):
            batch = self._request(
                "GET",
                "/issues",
                "list_open_items_by_label",
                params={"labels": label, "state": "open", "per_page": TRACKER_PAGE_SIZE, "page": page},
            ) or []
            # The issues endpoint also returns pull requests
            items.extend(item_from_json(entry) for entry in batch if "pull_request" not in entry)
            if len(batch) < TRACKER_PAGE_SIZE:
                break
        return items

    def create_item(
        self, title: str, body: str, labels: Sequence[str], assignees: Sequence[str] = ()
    ) -> TrackedItem:
        payload: Dict[str, Any] = {"title": title, "body": body, "labels": list(labels)}
        if assignees:
            payload["assignees"] = list(assignees)
        return item_from_json(self._request("POST", "/issues", "create_item", json=payload))

    def update_item(self, number: int, title: str, body: str, labels: Sequence[str]) -> TrackedItem:
        data = self._request(
            "PATCH",
            f"/issues/{number}",
            "update_item",
            item=number,
            json={"title": title, "body": body, "labels": list(labels)},
        )
        return item_from_json(data)

    def add_comment(self, number: int, text: str) -> None:
        self._request("POST", f"/issues/{number}/comments", "add_comment", item=number, json={"body": text})

    def set_state(self, number: int, state: str) -> None:
        self._request("PATCH", f"/issues/{number}", "set_state", item=number, json={"state": state})

    def add_labels(self, number: int, labels: Sequence[str]) -> None:
        self._request("POST", f"/issues/{number}/labels", "add_labels", item=number, json={"labels": list(labels)})


class DryRunTracker(Tracker):
    """Reads from `inner`; logs every write instead of performing it."""

    def __init__(self, inner: Tracker):
        self.inner = inner
        self._next_number = itertools.count(-1, -1)

    def list_open_items_by_label(self, label: str) -> List[TrackedItem]:
        return self.inner.list_open_items_by_label(label)

    def create_item(
        self, title: str, body: str, labels: Sequence[str], assignees: Sequence[str] = ()
    ) -> TrackedItem:
        LOG.info("[dry-run] would create issue: %s (labels: %s)", title, ", ".join(labels))
        return TrackedItem(number=next(self._next_number), title=title, body=body, labels=frozenset(labels))

    def update_item(self, number: int, title: str, body: str, labels: Sequence[str]) -> TrackedItem:
        LOG.info("[dry-run] would update issue #%s: %s", number, title)
        return TrackedItem(number=number, title=title, body=body, labels=frozenset(labels))

    def add_comment(self, number: int, text: str) -> None:
        LOG.info("[dry-run] would comment on issue #%s", number)

    def set_state(self, number: int, state: str) -> None:
        LOG.info("[dry-run] would set issue #%s to %s", number, state)

    def add_labels(self, number: int, labels: Iterable[str]) -> None:
        LOG.info("[dry-run] would label issue #%s with %s", number, ", ".join(labels))
