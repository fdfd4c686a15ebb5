from helpers import FIXED_NOW, make_config, make_group
from sarif_issues.markers import extract_markers, render_marker_block
from sarif_issues.reporter.issue_reporter import (
    TRUNCATION_NOTICE,
    IssueRenderer,
    code_fence,
    owasp_info,
    title_from_filename,
    truncate_body,
)
from sarif_issues.utils.metadata import GuidanceBundle, GuidanceDocument


def _render(taxonomy, group, guidance=None, **config):
    category = taxonomy.category_for(group.rule_id)
    return IssueRenderer(make_config(**config), taxonomy).render(group, category, guidance, now=FIXED_NOW)


def test_title_counts_occurrences(taxonomy):
    one = _render(taxonomy, make_group(file_path="src/deep/db.ts", lines=(10,)))
    three = _render(taxonomy, make_group(file_path="src/deep/db.ts", lines=(10, 20, 30)))
    assert one.title == "[Security] Database query built from user-controlled sources in db.ts (1 occurrence)"
    assert three.title.endswith("in db.ts (3 occurrences)")


def test_body_starts_with_markers_that_read_back(taxonomy):
    issue = _render(taxonomy, make_group(lines=(10, 20, 30)))
    assert issue.body.startswith("<!-- sarif-issues\n")
    markers = extract_markers(issue.body)
    assert markers.rule_id == "js/sql-injection"
    assert markers.file_path == "src/db.ts"
    assert markers.lines == frozenset({10, 20, 30})


def test_body_sections(taxonomy):
    body = _render(taxonomy, make_group(lines=(10, 20))).body
    assert "| **CodeQL Rule** | `js/sql-injection` |" in body
    assert "| **File** | `src/db.ts` |" in body
    assert "| **Severity** | CRITICAL |" in body
    assert "#### Location 1: Lines 10" in body
    assert "#### Location 2: Lines 20" in body
    assert "```typescript\ndb.query(sql)\n```" in body
    assert "@claude Please provide a remediation plan for all 2 occurrences" in body
    assert "- **lines**: 10, 20" in body
    assert "- **Commit**: abc123" in body
    assert FIXED_NOW.isoformat() in body


def test_single_occurrence_heading(taxonomy):
    body = _render(taxonomy, make_group(lines=(7,))).body
    assert "#### Lines 7\n" in body
    assert "Location 1" not in body


def test_labels(taxonomy):
    bundle = GuidanceBundle(maintainability_files=["input-validation.md"])
    issue = _render(taxonomy, make_group(), guidance=bundle)
    assert issue.labels == [
        "codeql-finding",
        "severity/critical",
        "owasp/a03",
        "maintainability/input-validation",
        "awaiting-remediation-plan",
    ]


def test_guidance_sections_only_for_fetched_documents(taxonomy):
    bundle = GuidanceBundle(
        owasp=[GuidanceDocument("owasp", "A03_injection.md", "# Injection (OWASP A03)\n\nUse parameters.")],
        threat_model=[GuidanceDocument("threat-modeling", "tampering.md", "Tampering text")],
    )
    body = _render(taxonomy, make_group(), guidance=bundle).body
    assert "OWASP Security Guidance</strong> (1 guide)" in body
    assert "<strong>A03 - Injection</strong>" in body
    assert "Use parameters." in body
    assert "<strong>Tampering</strong>" in body
    assert "Maintainability Guidance" not in body
    assert body.count("<details>") == body.count("</details>")


def test_snippet_with_backticks_gets_longer_fence(taxonomy):
    body = _render(taxonomy, make_group(snippet="const s = ```nested```;")).body
    assert "````typescript\nconst s = ```nested```;\n````" in body


def test_helpers():
    assert code_fence("plain") == "```"
    assert code_fence("a ```` b") == "`````"
    assert title_from_filename("complexity-reduction.md") == "Complexity Reduction"
    assert owasp_info("A01_broken_access_control.md", "no heading") == ("A01", "A01 Broken Access Control")


def test_truncation_keeps_markers_and_closes_blocks():
    markers = render_marker_block("js/xss", "a.ts", [1, 2])
    body = markers + "<details>\n```js\n" + "x" * 5000
    result = truncate_body(body, max_length=1000, protected_prefix=markers)

    assert len(result) <= 1000
    assert result.startswith(markers)
    assert result.endswith(TRUNCATION_NOTICE)
    kept = result[: -len(TRUNCATION_NOTICE)]
    assert kept.rstrip().endswith("```\n</details>")
    assert extract_markers(result).lines == frozenset({1, 2})


def test_short_body_untouched():
    assert truncate_body("short", max_length=100) == "short"


def test_long_rendered_body_is_truncated(taxonomy):
    group = make_group(lines=tuple(range(1, 400)), snippet="y" * 400)
    issue = IssueRenderer(make_config(), taxonomy, max_body_length=20000).render(
        group, taxonomy.category_for(group.rule_id), now=FIXED_NOW
    )
    assert len(issue.body) <= 20000
    assert issue.body.endswith(TRUNCATION_NOTICE)
    assert extract_markers(issue.body).lines == frozenset(range(1, 400))
