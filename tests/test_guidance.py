import json

import pytest
import requests

from helpers import FakeResponse, FakeSession, make_config, make_group
from sarif_issues.guidance import (
    GuidanceFetcher,
    collect_guidance,
    generate_hash_manifest,
    load_hash_manifest,
    sha256_digest,
    verify_url,
)

REPO = "acme/prompts"
BRANCH = "main"
INJECTION = b"# Injection\n\nUse parameterized queries.\n"


def _url(category, filename):
    return f"https://raw.githubusercontent.com/{REPO}/{BRANCH}/examples/promptpack/{category}/{filename}"


def _fetcher(session, manifest=None, **kw):
    manifest = manifest if manifest is not None else {"owasp": {"A03_injection.md": sha256_digest(INJECTION)}}
    return GuidanceFetcher(REPO, BRANCH, manifest, session=session, **kw)


def test_verified_document_is_served_and_cached():
    session = FakeSession(routes={_url("owasp", "A03_injection.md"): FakeResponse(200, content=INJECTION)})
    fetcher = _fetcher(session)

    assert fetcher.fetch("owasp", "A03_injection.md") == INJECTION.decode("utf-8")
    assert fetcher.fetch("owasp", "A03_injection.md") == INJECTION.decode("utf-8")
    assert len(session.requests) == 1


def test_digest_mismatch_never_serves_content():
    session = FakeSession(routes={_url("owasp", "A03_injection.md"): FakeResponse(200, content=b"tampered")})
    fetcher = _fetcher(session)
    assert fetcher.fetch("owasp", "A03_injection.md") is None
    # negative results are cached too
    assert fetcher.fetch("owasp", "A03_injection.md") is None
    assert len(session.requests) == 1


def test_document_missing_from_manifest_is_not_fetched():
    session = FakeSession()
    assert _fetcher(session).fetch("owasp", "A01_broken_access_control.md") is None
    assert session.requests == []


def test_not_found_and_transport_errors_yield_none():
    assert _fetcher(FakeSession()).fetch("owasp", "A03_injection.md") is None
    broken = FakeSession(error=requests.ConnectionError("boom"))
    assert _fetcher(broken).fetch("owasp", "A03_injection.md") is None


def test_untrusted_host_is_refused():
    session = FakeSession()
    fetcher = _fetcher(session, allowed_hosts=("example.com",))
    assert fetcher.fetch("owasp", "A03_injection.md") is None
    assert session.requests == []


@pytest.mark.parametrize("url,ok", [
    ("https://raw.githubusercontent.com/a/b/main/x.md", True),
    ("http://raw.githubusercontent.com/a/b/main/x.md", False),
    ("https://evil.example.com/x.md", False),
])
def test_verify_url(url, ok):
    assert verify_url(url) is ok


def test_fetch_documents_drops_failures():
    session = FakeSession(routes={_url("owasp", "A03_injection.md"): FakeResponse(200, content=INJECTION)})
    docs = _fetcher(session).fetch_documents("owasp", ["A03_injection.md", "A01_broken_access_control.md"])
    assert [d.filename for d in docs] == ["A03_injection.md"]


def test_load_hash_manifest(tmp_path):
    path = tmp_path / "hashes.json"
    path.write_text(json.dumps({
        "_metadata": {"generated": "now"},
        "owasp": {"A03_injection.md": "sha256:abc"},
    }), encoding="utf-8")
    assert load_hash_manifest(str(path)) == {"owasp": {"A03_injection.md": "sha256:abc"}}


def test_missing_or_broken_manifest_is_empty(tmp_path):
    assert load_hash_manifest(str(tmp_path / "none.json")) == {}
    broken = tmp_path / "broken.json"
    broken.write_text("[1, 2]", encoding="utf-8")
    assert load_hash_manifest(str(broken)) == {}


def test_generate_hash_manifest(tmp_path):
    for category in ("owasp", "maintainability", "threat-modeling"):
        (tmp_path / category).mkdir()
    (tmp_path / "owasp" / "A03_injection.md").write_bytes(INJECTION)
    (tmp_path / "owasp" / "index.md").write_text("index", encoding="utf-8")
    (tmp_path / "owasp" / "notes.txt").write_text("ignored", encoding="utf-8")

    manifest = generate_hash_manifest(str(tmp_path))
    assert manifest["owasp"] == {"A03_injection.md": sha256_digest(INJECTION)}
    assert manifest["maintainability"] == {}
    assert manifest["_metadata"]["algorithm"] == "SHA-256"


def test_generate_hash_manifest_needs_every_category(tmp_path):
    (tmp_path / "owasp").mkdir()
    with pytest.raises(FileNotFoundError):
        generate_hash_manifest(str(tmp_path))


def test_collect_guidance_respects_flags(taxonomy):
    manifest = {
        "owasp": {"A03_injection.md": sha256_digest(INJECTION)},
        "maintainability": {"input-validation.md": sha256_digest(b"validate")},
        "threat-modeling": {"tampering.md": sha256_digest(b"tamper")},
    }
    session = FakeSession(routes={
        _url("owasp", "A03_injection.md"): FakeResponse(200, content=INJECTION),
        _url("maintainability", "input-validation.md"): FakeResponse(200, content=b"validate"),
        _url("threat-modeling", "tampering.md"): FakeResponse(200, content=b"tamper"),
    })
    fetcher = _fetcher(session, manifest)
    group = make_group()
    category = taxonomy.category_for(group.rule_id)

    plain = collect_guidance(fetcher, taxonomy, make_config(), group, category)
    assert [d.filename for d in plain.owasp] == ["A03_injection.md"]
    # without the flag only the category's own aspects are requested
    assert plain.maintainability_files == ["input-validation.md", "complexity-reduction.md"]
    assert [d.filename for d in plain.maintainability] == ["input-validation.md"]
    assert plain.threat_model == []

    full = collect_guidance(
        fetcher, taxonomy, make_config(enable_maintainability=True, enable_threat_model=True), group, category
    )
    # "user-provided" in the message triggers input validation; A03 adds complexity reduction
    assert full.maintainability_files == ["input-validation.md", "complexity-reduction.md"]
    assert [d.filename for d in full.maintainability] == ["input-validation.md"]
    assert [d.filename for d in full.threat_model] == ["tampering.md"]
