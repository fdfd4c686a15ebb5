import pytest
import requests

from helpers import FakeResponse, FakeSession, FakeTracker
from sarif_issues.errors import RemoteCallFailure
from sarif_issues.tracker import DryRunTracker, GitHubTracker, item_from_json
from sarif_issues.utils.metadata import TrackedItem

API = "https://api.github.com/repos/acme/webapp"


def _issue(number, labels=("codeql-finding",), **kw):
    data = {
        "number": number,
        "title": f"Issue {number}",
        "body": "body",
        "state": "open",
        "labels": [{"name": name} for name in labels],
        "html_url": f"https://github.com/acme/webapp/issues/{number}",
    }
    data.update(kw)
    return data


def test_auth_headers_are_set():
    session = FakeSession()
    GitHubTracker("secret", "acme/webapp", session=session)
    assert session.headers["Authorization"] == "Bearer secret"
    assert session.headers["Accept"] == "application/vnd.github+json"


def test_list_paginates_and_drops_pull_requests():
    first_page = [_issue(n) for n in range(1, 101)]
    first_page[0]["pull_request"] = {"url": "..."}
    session = FakeSession(responses=[
        FakeResponse(200, first_page),
        FakeResponse(200, [_issue(101)]),
    ])
    items = GitHubTracker("t", "acme/webapp", session=session).list_open_items_by_label("codeql-finding")

    assert len(items) == 100
    assert items[0].number == 2
    assert items[-1].number == 101
    method, url, kwargs = session.requests[1]
    assert (method, url) == ("GET", f"{API}/issues")
    assert kwargs["params"] == {"labels": "codeql-finding", "state": "open", "per_page": 100, "page": 2}


def test_create_sends_payload():
    session = FakeSession(responses=[FakeResponse(201, _issue(7, labels=("codeql-finding", "severity/high")))])
    item = GitHubTracker("t", "acme/webapp", session=session).create_item(
        "Title", "Body", ["codeql-finding", "severity/high"], assignees=["alice"]
    )
    assert item.number == 7
    assert item.labels == frozenset({"codeql-finding", "severity/high"})
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("POST", f"{API}/issues")
    assert kwargs["json"] == {
        "title": "Title", "body": "Body", "labels": ["codeql-finding", "severity/high"], "assignees": ["alice"],
    }


def test_mutations_hit_the_right_endpoints():
    session = FakeSession(responses=[
        FakeResponse(200, _issue(3)),
        FakeResponse(201, {"id": 1}),
        FakeResponse(200, _issue(3, state="closed")),
        FakeResponse(200, [{"name": "resolved"}]),
    ])
    tracker = GitHubTracker("t", "acme/webapp", session=session)
    tracker.update_item(3, "T", "B", ["codeql-finding"])
    tracker.add_comment(3, "hello")
    tracker.set_state(3, "closed")
    tracker.add_labels(3, ["resolved"])

    assert [(m, u) for m, u, _ in session.requests] == [
        ("PATCH", f"{API}/issues/3"),
        ("POST", f"{API}/issues/3/comments"),
        ("PATCH", f"{API}/issues/3"),
        ("POST", f"{API}/issues/3/labels"),
    ]
    assert session.requests[2][2]["json"] == {"state": "closed"}


def test_http_error_becomes_remote_call_failure():
    session = FakeSession(responses=[FakeResponse(422, {"message": "Validation Failed"})])
    with pytest.raises(RemoteCallFailure) as excinfo:
        GitHubTracker("t", "acme/webapp", session=session).update_item(9, "T", "B", [])
    error = excinfo.value
    assert error.status == 422
    assert error.operation == "update_item"
    assert error.item == 9
    assert "Validation Failed" in str(error)


def test_transport_error_becomes_remote_call_failure():
    session = FakeSession(error=requests.Timeout("timed out"))
    with pytest.raises(RemoteCallFailure) as excinfo:
        GitHubTracker("t", "acme/webapp", session=session).add_comment(1, "x")
    assert excinfo.value.status is None


def test_item_from_json_accepts_string_labels():
    item = item_from_json({"number": 4, "labels": ["a", {"name": "b"}], "body": None})
    assert item.labels == frozenset({"a", "b"})
    assert item.body == ""


def test_dry_run_reads_through_but_never_writes():
    inner = FakeTracker([TrackedItem(1, "Existing", "body", frozenset({"codeql-finding"}))])
    dry = DryRunTracker(inner)

    assert [i.number for i in dry.list_open_items_by_label("codeql-finding")] == [1]
    created = dry.create_item("New", "body", ["codeql-finding"])
    dry.update_item(1, "Changed", "new body", [])
    dry.add_comment(1, "x")
    dry.set_state(1, "closed")
    dry.add_labels(1, ["resolved"])

    assert created.number < 0
    assert inner.mutations() == []
    assert inner.items[1].title == "Existing"
