# tests/helpers.py

"""
In-memory stand-ins for the tracker and for HTTP, plus builders for SARIF
documents, findings and configs.
"""

import json
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timezone

from sarif_issues.config import Config
from sarif_issues.tracker import Tracker
from sarif_issues.utils.metadata import Finding, GroupedFinding, Occurrence, TrackedItem

FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock():
    return FIXED_NOW


class FakeTracker(Tracker):
    """
    Keeps issues in a dict. Put a RemoteCallFailure in `fail[operation]`
    to make that operation raise.
    """

    def __init__(self, items=()):
        self.items = {}
        self.comments = defaultdict(list)
        self.assignees = {}
        self.calls = []
        self.fail = {}
        self._next = 1
        for item in items:
            self.items[item.number] = item
            self._next = max(self._next, item.number + 1)

    def _call(self, operation, number=None):
        self.calls.append((operation, number))
        error = self.fail.get(operation)
        if error is not None:
            raise error

    def list_open_items_by_label(self, label):
        self._call("list_open_items_by_label")
        return [
            item for _, item in sorted(self.items.items())
            if item.state == "open" and label in item.labels
        ]

    def create_item(self, title, body, labels, assignees=()):
        self._call("create_item")
        item = TrackedItem(number=self._next, title=title, body=body, labels=frozenset(labels))
        self.items[item.number] = item
        self.assignees[item.number] = list(assignees)
        self._next += 1
        return item

    def update_item(self, number, title, body, labels):
        self._call("update_item", number)
        item = replace(self.items[number], title=title, body=body, labels=frozenset(labels))
        self.items[number] = item
        return item

    def add_comment(self, number, text):
        self._call("add_comment", number)
        self.comments[number].append(text)

    def set_state(self, number, state):
        self._call("set_state", number)
        self.items[number] = replace(self.items[number], state=state)

    def add_labels(self, number, labels):
        self._call("add_labels", number)
        item = self.items[number]
        self.items[number] = replace(item, labels=item.labels | frozenset(labels))

    def open_items(self):
        return [item for _, item in sorted(self.items.items()) if item.state == "open"]

    def mutations(self):
        return [call for call in self.calls if call[0] != "list_open_items_by_label"]


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, content=None):
        self.status_code = status_code
        if content is None:
            content = json.dumps(json_data).encode("utf-8") if json_data is not None else b""
        self.content = content
        self.text = content.decode("utf-8", "replace")

    def json(self):
        return json.loads(self.content)


class FakeSession:
    """
    Answers from `routes` (url -> FakeResponse) first, then from the
    `responses` queue. Every request is recorded.
    """

    def __init__(self, responses=None, routes=None, error=None):
        self.headers = {}
        self.responses = list(responses or [])
        self.routes = dict(routes or {})
        self.error = error
        self.requests = []

    def request(self, method, url, timeout=None, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        if url in self.routes:
            return self.routes[url]
        if not self.responses:
            return FakeResponse(404, {"message": "Not Found"})
        return self.responses.pop(0)

    def get(self, url, timeout=None, **kwargs):
        return self.request("GET", url, timeout=timeout, **kwargs)


def make_config(**overrides):
    values = dict(
        github_token="test-token",
        repository="acme/webapp",
        branch="main",
        sha="abc123",
        request_delay=0.0,
    )
    values.update(overrides)
    return Config(**values)


def sarif_result(rule_id, uri, start_line, level="error", message="Bad thing here", snippet="query(input)", end_line=None):
    region = {"startLine": start_line, "startColumn": 5, "endColumn": 20}
    if end_line is not None:
        region["endLine"] = end_line
    if snippet is not None:
        region["snippet"] = {"text": snippet}
    return {
        "ruleId": rule_id,
        "level": level,
        "message": {"text": message},
        "locations": [{"physicalLocation": {"artifactLocation": {"uri": uri}, "region": region}}],
    }


def sarif_report(results, rules=None, name="CodeQL", version="2.15.0"):
    return {
        "version": "2.1.0",
        "runs": [{
            "tool": {"driver": {"name": name, "semanticVersion": version, "rules": rules or []}},
            "results": results,
        }],
    }


def write_report(path, results, rules=None):
    path.write_text(json.dumps(sarif_report(results, rules)), encoding="utf-8")
    return str(path)


def make_finding(rule_id="js/sql-injection", file_path="src/db.ts", line=10, severity="critical", level="error", **kw):
    values = dict(
        rule_id=rule_id,
        rule_name=kw.pop("rule_name", "Database query built from user-controlled sources"),
        rule_help="",
        message="This query depends on a user-provided value.",
        level=level,
        severity=severity,
        file_path=file_path,
        start_line=line,
        end_line=line,
        start_column=1,
        end_column=10,
        code_snippet="db.query(sql)",
        tool_name="CodeQL",
        tool_version="2.15.0",
    )
    values.update(kw)
    return Finding(**values)


def make_group(rule_id="js/sql-injection", file_path="src/db.ts", lines=(10,), severity="critical", **kw):
    group = GroupedFinding(
        rule_id=rule_id,
        rule_name=kw.get("rule_name", "Database query built from user-controlled sources"),
        rule_help=kw.get("rule_help", ""),
        file_path=file_path,
        level=kw.get("level", "error"),
        severity=severity,
        tool_name="CodeQL",
        tool_version="2.15.0",
        message=kw.get("message", "This query depends on a user-provided value."),
    )
    for line in lines:
        group.occurrences.append(
            Occurrence(line, line, 1, 10, kw.get("snippet", "db.query(sql)"), group.message)
        )
    return group
