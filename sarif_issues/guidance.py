# sarif_issues/guidance.py

"""
Fetch remediation guidance documents with integrity verification.

A document is served only if
  - it is listed in the hash manifest (the manifest doubles as an allow-list),
  - its URL is HTTPS on an allowed host,
  - the downloaded bytes hash to the manifest's "sha256:<hex>" digest.

Any failure means "no guidance for this document"; it never fails a run.
Results, including failures, are cached for the lifetime of the fetcher
(one run).

The manifest is produced by `generate_hash_manifest()` from a local copy
of the prompt pack (`sarif-issues hash-guidance`).
"""

import hashlib
import os
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlparse

import requests

from sarif_issues.config import Config
from sarif_issues.errors import IntegrityFailure, RemoteCallFailure
from sarif_issues.taxonomy import Taxonomy
from sarif_issues.utils.file_utils import list_files_with_extension, read_json_file, write_json_file
from sarif_issues.utils.logger import get_logger
from sarif_issues.utils.metadata import Category, GroupedFinding, GuidanceBundle, GuidanceDocument
from sarif_issues.utils.settings import (
    ALLOWED_GUIDANCE_HOSTS,
    GUIDANCE_CATEGORIES,
    GUIDANCE_FETCH_TIMEOUT,
)

LOG = get_logger(__name__)

URL_TEMPLATE = "https://raw.githubusercontent.com/{repo}/{branch}/examples/promptpack/{category}/{filename}"


def sha256_digest(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


def verify_integrity(data: bytes, expected: str) -> bool:
    return sha256_digest(data) == expected


def verify_url(url: str, allowed_hosts: Sequence[str] = ALLOWED_GUIDANCE_HOSTS) -> bool:
    """
    Accept only HTTPS URLs whose host is on the allow-list.
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        LOG.error("Invalid guidance URL: %s", e)
        return False
    if parsed.scheme != "https":
        LOG.error("Blocked non-HTTPS guidance URL (scheme %s)", parsed.scheme)
        return False
    if parsed.hostname not in allowed_hosts:
        LOG.error("Blocked guidance fetch from untrusted host %s", parsed.hostname)
        return False
    return True


def load_hash_manifest(path: str) -> Dict[str, Dict[str, str]]:
    """
    Read the digest manifest. A missing or unreadable manifest leaves every
    document unverifiable, so nothing is fetched; the run continues.
    """
    try:
        raw = read_json_file(path)
    except FileNotFoundError:
        LOG.warning("Guidance hash manifest not found at %s; guidance will be omitted", path)
        return {}
    except (OSError, ValueError) as e:
        LOG.error("Failed to load guidance hash manifest %s: %s", path, e)
        return {}
    if not isinstance(raw, dict):
        LOG.error("Guidance hash manifest %s is not a JSON object", path)
        return {}
    manifest = {
        category: dict(entries)
        for category, entries in raw.items()
        if not category.startswith("_") and isinstance(entries, dict)
    }
    LOG.info("Loaded guidance hash manifest (%d files)", sum(len(v) for v in manifest.values()))
    return manifest


def generate_hash_manifest(promptpack_dir: str, categories: Sequence[str] = GUIDANCE_CATEGORIES) -> Dict:
    """
    Hash every `*.md` (except index.md) in each category directory of a
    local prompt pack.

    Raises FileNotFoundError if a category directory is missing.
    """
    manifest: Dict = {
        "_metadata": {
            "generated": datetime.now(timezone.utc).isoformat(),
            "generator": "sarif-issues hash-guidance",
            "algorithm": "SHA-256",
        }
    }
    for category in categories:
        category_dir = os.path.join(promptpack_dir, category)
        if not os.path.isdir(category_dir):
            raise FileNotFoundError(f"Category directory not found: {category_dir}")
        manifest[category] = {}
        for fname in list_files_with_extension(category_dir, ".md", exclude_names=["index.md"]):
            with open(os.path.join(category_dir, fname), "rb") as f:
                manifest[category][fname] = sha256_digest(f.read())
            LOG.debug("Hashed %s/%s", category, fname)
    return manifest


class GuidanceFetcher:
    def __init__(
        self,
        repo: str,
        branch: str,
        manifest: Dict[str, Dict[str, str]],
        session: Optional[requests.Session] = None,
        timeout: float = GUIDANCE_FETCH_TIMEOUT,
        allowed_hosts: Sequence[str] = ALLOWED_GUIDANCE_HOSTS,
    ):
        self.repo = repo
        self.branch = branch
        self.manifest = manifest
        self.session = session or requests.Session()
        self.timeout = timeout
        self.allowed_hosts = tuple(allowed_hosts)
        self._cache: Dict[str, Optional[str]] = {}

    @classmethod
    def from_config(cls, config: Config, session: Optional[requests.Session] = None) -> "GuidanceFetcher":
        return cls(
            config.guidance_repo,
            config.guidance_branch,
            load_hash_manifest(config.hashes_path),
            session=session,
        )

    def url_for(self, category: str, filename: str) -> str:
        return URL_TEMPLATE.format(repo=self.repo, branch=self.branch, category=category, filename=filename)

    def fetch(self, category: str, filename: str) -> Optional[str]:
        """
        Return the verified content of `category/filename`, or None.
        """
        cache_key = f"{category}/{filename}"
        if cache_key in self._cache:
            LOG.debug("Using cached guidance: %s", cache_key)
            return self._cache[cache_key]

        content = self._fetch_verified(category, filename, cache_key)
        self._cache[cache_key] = content
        return content

    def fetch_documents(self, category: str, filenames: Sequence[str]) -> List[GuidanceDocument]:
        """Fetch several documents; the ones that fail are simply left out."""
        documents = []
        for filename in filenames:
            content = self.fetch(category, filename)
            if content:
                documents.append(GuidanceDocument(category, filename, content))
        return documents

    def _fetch_verified(self, category: str, filename: str, cache_key: str) -> Optional[str]:
        expected = self.manifest.get(category, {}).get(filename)
        if not expected:
            LOG.error("Guidance not in hash manifest: %s", cache_key)
            return None

        url = self.url_for(category, filename)
        if not verify_url(url, self.allowed_hosts):
            return None

        try:
            LOG.info("Fetching guidance: %s", cache_key)
            data = self._download(url, cache_key)
            if not verify_integrity(data, expected):
                raise IntegrityFailure(
                    f"digest mismatch (expected {expected[:20]}..., got {sha256_digest(data)[:20]}...)",
                    "fetch_guidance",
                    cache_key,
                )
            content = data.decode("utf-8")
        except IntegrityFailure as e:
            LOG.error("Guidance integrity verification FAILED: %s: %s", cache_key, e)
            return None
        except RemoteCallFailure as e:
            if e.status == 404:
                LOG.warning("Guidance not found: %s", cache_key)
            else:
                LOG.error("Failed to fetch guidance %s: %s", cache_key, e)
            return None
        except UnicodeDecodeError as e:
            LOG.error("Guidance %s is not valid UTF-8: %s", cache_key, e)
            return None

        LOG.info("Guidance verified and cached: %s (%d chars)", cache_key, len(content))
        return content

    def _download(self, url: str, cache_key: str) -> bytes:
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteCallFailure(str(e), "fetch_guidance", cache_key) from e
        if response.status_code != 200:
            raise RemoteCallFailure(
                f"HTTP {response.status_code}", "fetch_guidance", cache_key, response.status_code
            )
        return response.content


def write_hash_manifest(manifest: Dict, path: str) -> None:
    write_json_file(path, manifest)
    LOG.info("Wrote hash manifest to %s", path)


def collect_guidance(
    fetcher: GuidanceFetcher,
    taxonomy: Taxonomy,
    config: Config,
    group: GroupedFinding,
    category: Category,
) -> GuidanceBundle:
    """
    Gather the guidance for one grouped finding: the category's OWASP
    document, maintainability documents (the category's own aspects,
    plus keyword triggers when maintainability is enabled) and STRIDE threat
    documents when threat modelling is enabled.
    """
    bundle = GuidanceBundle()
    if category.doc_file:
        bundle.owasp = fetcher.fetch_documents("owasp", [category.doc_file])

    files: List[str] = []
    if config.enable_maintainability:
        search_text = f"{group.message} {group.rule_help} {group.rule_id}"
        files = taxonomy.maintainability_concerns(search_text)
    for aspect in category.maintainability:
        fname = f"{aspect}.md"
        if fname not in files:
            files.append(fname)
    bundle.maintainability_files = files
    if files:
        bundle.maintainability = fetcher.fetch_documents("maintainability", files)

    if config.enable_threat_model and category.threat_model:
        bundle.threat_model = fetcher.fetch_documents(
            "threat-modeling", [f"{threat}.md" for threat in category.threat_model]
        )
    return bundle
