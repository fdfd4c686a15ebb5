# sarif_issues/taxonomy.py

"""
Mapping from analyzer rule identifiers to OWASP Top 10 (2021) categories.

The built-in table covers the CodeQL JavaScript/TypeScript and Python
security queries. A JSON file with the same layout can replace it:

    {
      "severity_mapping":        {"<sarif level>": "<severity>"},
      "codeql_to_owasp":         {"<rule id>": "<category key>"},
      "owasp_categories":        {"<key>": {"name", "prompt_file",
                                            "maintainability", "threat_model"}},
      "label_mapping":           {"<severity>": "<label>"},
      "maintainability_triggers": {"<name>": {"keywords": [...], "prompt_file"}},
      "rule_severity":           {"<rule id>": "<severity>"}   (optional)
    }
"""

import copy
from typing import Any, Dict, List, Mapping, Optional

from sarif_issues.utils.file_utils import read_json_file
from sarif_issues.utils.logger import get_logger
from sarif_issues.utils.metadata import Category
from sarif_issues.utils.settings import DEFAULT_SEVERITY

LOG = get_logger(__name__)

SEVERITY_MAPPING: Dict[str, str] = {
    "error": "critical",
    "warning": "high",
    "note": "medium",
    "none": "low",
}

LABEL_MAPPING: Dict[str, str] = {
    "critical": "severity/critical",
    "high": "severity/high",
    "medium": "severity/medium",
    "low": "severity/low",
}

OWASP_CATEGORIES: Dict[str, Dict[str, Any]] = {
    "A01": {
        "name": "A01:2021 - Broken Access Control",
        "prompt_file": "A01_broken_access_control.md",
        "maintainability": ["input-validation"],
        "threat_model": ["elevation-of-privilege", "information-disclosure"],
    },
    "A02": {
        "name": "A02:2021 - Cryptographic Failures",
        "prompt_file": "A02_cryptographic_failures.md",
        "maintainability": ["dependency-hygiene"],
        "threat_model": ["information-disclosure", "tampering"],
    },
    "A03": {
        "name": "A03:2021 - Injection",
        "prompt_file": "A03_injection.md",
        "maintainability": ["input-validation", "complexity-reduction"],
        "threat_model": ["tampering", "elevation-of-privilege"],
    },
    "A04": {
        "name": "A04:2021 - Insecure Design",
        "prompt_file": "A04_insecure_design.md",
        "maintainability": ["complexity-reduction"],
        "threat_model": ["denial-of-service"],
    },
    "A05": {
        "name": "A05:2021 - Security Misconfiguration",
        "prompt_file": "A05_security_misconfiguration.md",
        "maintainability": [],
        "threat_model": ["information-disclosure"],
    },
    "A06": {
        "name": "A06:2021 - Vulnerable and Outdated Components",
        "prompt_file": "A06_vulnerable_components.md",
        "maintainability": ["dependency-hygiene"],
        "threat_model": ["tampering"],
    },
    "A07": {
        "name": "A07:2021 - Identification and Authentication Failures",
        "prompt_file": "A07_authentication_failures.md",
        "maintainability": [],
        "threat_model": ["spoofing"],
    },
    "A08": {
        "name": "A08:2021 - Software and Data Integrity Failures",
        "prompt_file": "A08_integrity_failures.md",
        "maintainability": ["input-validation"],
        "threat_model": ["tampering"],
    },
    "A09": {
        "name": "A09:2021 - Security Logging and Monitoring Failures",
        "prompt_file": "A09_logging_monitoring.md",
        "maintainability": [],
        "threat_model": ["repudiation", "information-disclosure"],
    },
    "A10": {
        "name": "A10:2021 - Server-Side Request Forgery",
        "prompt_file": "A10_ssrf.md",
        "maintainability": ["input-validation"],
        "threat_model": ["spoofing", "information-disclosure"],
    },
}

RULE_TO_CATEGORY: Dict[str, str] = {
    # 1) Access control and path handling
    "js/path-injection": "A01",
    "js/missing-token-validation": "A01",
    "js/unvalidated-dynamic-method-call": "A01",
    "py/path-injection": "A01",

    # 2) Cryptography and randomness
    "js/weak-cryptographic-algorithm": "A02",
    "js/insufficient-password-hash": "A02",
    "js/insecure-randomness": "A02",
    "js/biased-cryptographic-random": "A02",
    "py/weak-cryptographic-algorithm": "A02",
    "py/weak-sensitive-data-hashing": "A02",

    # 3) Injection
    "js/sql-injection": "A03",
    "js/xss": "A03",
    "js/reflected-xss": "A03",
    "js/stored-xss": "A03",
    "js/xss-through-dom": "A03",
    "js/code-injection": "A03",
    "js/command-line-injection": "A03",
    "js/shell-command-injection-from-environment": "A03",
    "js/regex-injection": "A03",
    "js/template-object-injection": "A03",
    "py/sql-injection": "A03",
    "py/command-line-injection": "A03",
    "py/code-injection": "A03",
    "py/reflective-xss": "A03",

    # 4) Insecure design
    "js/missing-rate-limiting": "A04",
    "js/polynomial-redos": "A04",
    "js/redos": "A04",
    "js/resource-exhaustion": "A04",

    # 5) Misconfiguration
    "js/cors-misconfiguration-for-credentials": "A05",
    "js/stack-trace-exposure": "A05",
    "js/disabling-certificate-validation": "A05",
    "py/flask-debug": "A05",
    "py/stack-trace-exposure": "A05",

    # 7) Authentication
    "js/hardcoded-credentials": "A07",
    "js/clear-text-cookie": "A07",
    "py/hardcoded-credentials": "A07",

    # 8) Integrity
    "js/prototype-pollution": "A08",
    "js/prototype-pollution-utility": "A08",
    "js/unsafe-deserialization": "A08",
    "py/unsafe-deserialization": "A08",

    # 9) Logging
    "js/log-injection": "A09",
    "js/clear-text-logging": "A09",
    "py/log-injection": "A09",
    "py/clear-text-logging-sensitive-data": "A09",

    # 10) SSRF
    "js/request-forgery": "A10",
    "py/full-ssrf": "A10",
    "py/partial-ssrf": "A10",
}

MAINTAINABILITY_TRIGGERS: Dict[str, Dict[str, Any]] = {
    "complexity": {
        "keywords": ["complex", "cyclomatic", "nested", "redos", "backtracking"],
        "prompt_file": "complexity-reduction.md",
    },
    "validation": {
        "keywords": ["sanitiz", "unvalidated", "user-provided", "user input", "injection"],
        "prompt_file": "input-validation.md",
    },
    "dependencies": {
        "keywords": ["outdated", "deprecated", "dependency", "weak cryptographic"],
        "prompt_file": "dependency-hygiene.md",
    },
}


class Taxonomy:
    """
    Static rule -> category lookup plus the severity and label tables that
    go with it. Instances are immutable after construction.
    """

    def __init__(
        self,
        rule_to_category: Mapping[str, str],
        categories: Mapping[str, Mapping[str, Any]],
        severity_mapping: Mapping[str, str] = None,
        label_mapping: Mapping[str, str] = None,
        maintainability_triggers: Mapping[str, Mapping[str, Any]] = None,
        rule_severity: Mapping[str, str] = None,
    ):
        self._rule_to_category = dict(rule_to_category)
        self._categories: Dict[str, Category] = {
            key: Category(
                key=key,
                name=str(entry.get("name", key)),
                doc_file=str(entry.get("prompt_file", "")),
                maintainability=tuple(entry.get("maintainability") or ()),
                threat_model=tuple(entry.get("threat_model") or ()),
            )
            for key, entry in categories.items()
        }
        self._severity_mapping = dict(severity_mapping or SEVERITY_MAPPING)
        self._label_mapping = dict(label_mapping or LABEL_MAPPING)
        self._triggers = {
            name: (tuple(k.lower() for k in t.get("keywords", [])), str(t.get("prompt_file", "")))
            for name, t in (maintainability_triggers or {}).items()
        }
        self._rule_severity = {k: str(v).lower() for k, v in (rule_severity or {}).items()}

    @classmethod
    def default(cls) -> "Taxonomy":
        return cls(
            RULE_TO_CATEGORY,
            OWASP_CATEGORIES,
            SEVERITY_MAPPING,
            LABEL_MAPPING,
            MAINTAINABILITY_TRIGGERS,
        )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Taxonomy":
        return cls(
            rule_to_category=raw.get("codeql_to_owasp", {}),
            categories=raw.get("owasp_categories", {}),
            severity_mapping=raw.get("severity_mapping"),
            label_mapping=raw.get("label_mapping"),
            maintainability_triggers=raw.get("maintainability_triggers"),
            rule_severity=raw.get("rule_severity"),
        )

    @classmethod
    def load(cls, path: str = None) -> "Taxonomy":
        """
        Load a mapping file, or the built-in table when `path` is empty.
        A broken mapping file is a startup error (OSError/ValueError propagate).
        """
        if not path:
            return cls.default()
        LOG.info("Loading rule mappings from %s", path)
        return cls.from_dict(read_json_file(path))

    def with_rule_severity(self, overrides: Mapping[str, str]) -> "Taxonomy":
        """Return a copy whose per-rule severities also include `overrides`."""
        if not overrides:
            return self
        clone = copy.copy(self)
        clone._rule_severity = {**self._rule_severity, **{k: str(v).lower() for k, v in overrides.items()}}
        return clone

    def category_for(self, rule_id: str) -> Optional[Category]:
        """
        Return the Category for `rule_id`, or None if the rule is not mapped.
        """
        key = self._rule_to_category.get(rule_id)
        if not key:
            LOG.debug("No category mapping for rule: %s", rule_id)
            return None
        category = self._categories.get(key)
        if category is None:
            LOG.error("Category %s (mapped from %s) is not defined", key, rule_id)
        return category

    def severity_for_level(self, level: str) -> str:
        return self._severity_mapping.get(str(level).lower(), DEFAULT_SEVERITY)

    def rule_severity(self, rule_id: str) -> Optional[str]:
        return self._rule_severity.get(rule_id)

    def severity_label(self, severity: str) -> Optional[str]:
        return self._label_mapping.get(severity)

    def maintainability_concerns(self, text: str) -> List[str]:
        """
        Return guidance files whose trigger keywords occur in `text`, in
        trigger order, each at most once.
        """
        haystack = text.lower()
        concerns: List[str] = []
        for name, (keywords, prompt_file) in self._triggers.items():
            if prompt_file in concerns:
                continue
            if any(keyword in haystack for keyword in keywords):
                LOG.debug("Detected maintainability concern: %s", name)
                concerns.append(prompt_file)
        return concerns
