"""
Configuration loader for sarif-issues.

Settings are read once, at startup, into an immutable `Config`:
  1. an optional config file: explicit path via --config, or one of
     .sarif-issues.toml, sarif-issues.toml, .sarif-issues.yaml/yml,
     sarif-issues.yaml/yml, pyproject.toml ([tool.sarif_issues]),
     setup.cfg ([tool:sarif_issues] or [sarif_issues]);
  2. environment variables (the CI workflow's interface), which win.

Every pipeline component receives the `Config` it needs; nothing below the
CLI reads the environment.
"""

import configparser
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

import toml

from sarif_issues.errors import ConfigError
from sarif_issues.utils.settings import (
    DEFAULT_API_URL,
    DEFAULT_GUIDANCE_BRANCH,
    DEFAULT_GUIDANCE_REPO,
    DEFAULT_HASHES_PATH,
    DEFAULT_LOGS_DIR,
    DEFAULT_MAX_ITEMS_PER_RUN,
    DEFAULT_REQUEST_DELAY,
    DEFAULT_SARIF_PATH,
    DEFAULT_SEVERITY_THRESHOLD,
    SEVERITY_LEVELS,
)

# Ordered search paths
_CONFIG_FILES = [
    ".sarif-issues.toml",
    "sarif-issues.toml",
    ".sarif-issues.yaml", ".sarif-issues.yml",
    "sarif-issues.yaml", "sarif-issues.yml",
    "pyproject.toml",
    "setup.cfg",
]

# Field name -> environment variables, first one set wins
_ENV_KEYS: Dict[str, List[str]] = {
    "github_token": ["GITHUB_TOKEN"],
    "repository": ["GITHUB_REPOSITORY"],
    "api_url": ["GITHUB_API_URL"],
    "severity_threshold": ["SEVERITY_THRESHOLD"],
    "max_items_per_run": ["MAX_ISSUES_PER_RUN"],
    "enable_maintainability": ["ENABLE_MAINTAINABILITY"],
    "enable_threat_model": ["ENABLE_THREAT_MODEL"],
    "auto_assign": ["AUTO_ASSIGN"],
    "excluded_paths": ["EXCLUDED_PATHS"],
    "guidance_repo": ["PROMPT_REPO"],
    "guidance_branch": ["PROMPT_BRANCH"],
    "sarif_path": ["SARIF_PATH"],
    "source_root": ["SOURCE_ROOT"],
    "mappings_path": ["PROMPT_MAPPINGS"],
    "hashes_path": ["PROMPT_HASHES"],
    "logs_dir": ["LOGS_DIR"],
    "branch": ["GITHUB_REF_NAME"],
    "sha": ["GITHUB_SHA"],
    "request_delay": ["REQUEST_DELAY"],
    "filtered_findings_live": ["FILTERED_FINDINGS_LIVE"],
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    github_token: str = ""
    repository: str = ""
    api_url: str = DEFAULT_API_URL
    severity_threshold: str = DEFAULT_SEVERITY_THRESHOLD
    max_items_per_run: int = DEFAULT_MAX_ITEMS_PER_RUN
    enable_maintainability: bool = False
    enable_threat_model: bool = False
    auto_assign: Tuple[str, ...] = ()
    excluded_paths: Tuple[str, ...] = ()
    guidance_repo: str = DEFAULT_GUIDANCE_REPO
    guidance_branch: str = DEFAULT_GUIDANCE_BRANCH
    sarif_path: str = DEFAULT_SARIF_PATH
    source_root: str = "."
    mappings_path: str = ""
    hashes_path: str = DEFAULT_HASHES_PATH
    logs_dir: str = DEFAULT_LOGS_DIR
    branch: str = "main"
    sha: str = "unknown"
    request_delay: float = DEFAULT_REQUEST_DELAY
    filtered_findings_live: bool = True
    severity_overrides: Dict[str, str] = field(default_factory=dict)

    @property
    def owner(self) -> str:
        return self.repository.split("/", 1)[0] if "/" in self.repository else ""

    @property
    def repo(self) -> str:
        return self.repository.split("/", 1)[1] if "/" in self.repository else ""

    @classmethod
    def load(
        cls,
        path: str = None,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "Config":
        """
        Build a Config from the config file (if any), then the environment,
        then keyword overrides (CLI flags). Does not validate.
        """
        environ = os.environ if environ is None else environ
        cfg_path = path or cls._find_config_file(os.getcwd())
        raw = cls._read_file(cfg_path) if cfg_path else {}
        config = cls._from_dict(raw)

        env_values = cls._from_environ(environ)
        if env_values:
            config = replace(config, **env_values)

        overrides = {k: v for k, v in overrides.items() if v is not None}
        if overrides:
            config = replace(config, **cls._coerce(overrides))
        return config

    def validate(self) -> "Config":
        """Raise ConfigError for settings the pipeline cannot run without."""
        if not self.github_token:
            raise ConfigError("GITHUB_TOKEN environment variable is required")
        if not self.owner or not self.repo:
            raise ConfigError(
                f"Could not determine repository owner/name from {self.repository!r}; "
                "expected GITHUB_REPOSITORY=owner/repo"
            )
        if self.severity_threshold not in SEVERITY_LEVELS:
            raise ConfigError(
                f"Unknown severity threshold {self.severity_threshold!r}; "
                f"expected one of {', '.join(SEVERITY_LEVELS)}"
            )
        if self.max_items_per_run < 0:
            raise ConfigError("MAX_ISSUES_PER_RUN must not be negative")
        if self.request_delay < 0:
            raise ConfigError("REQUEST_DELAY must not be negative")
        return self

    def describe(self) -> Dict[str, Any]:
        """Settings worth echoing at startup; never includes the token."""
        return {
            "repository": self.repository,
            "sarif_path": self.sarif_path,
            "severity_threshold": self.severity_threshold,
            "max_items_per_run": self.max_items_per_run,
            "maintainability_enabled": self.enable_maintainability,
            "threat_model_enabled": self.enable_threat_model,
            "guidance_source": f"{self.guidance_repo}@{self.guidance_branch}",
            "filtered_findings_live": self.filtered_findings_live,
        }

    @staticmethod
    def _find_config_file(start_dir: str) -> str:
        for fname in _CONFIG_FILES:
            candidate = os.path.join(start_dir, fname)
            if os.path.isfile(candidate):
                return candidate
        return ""

    @staticmethod
    def _read_file(cfg_path: str) -> Dict[str, Any]:
        if not os.path.isfile(cfg_path):
            raise ConfigError(f"Config file not found: {cfg_path}")
        ext = os.path.splitext(cfg_path)[1].lower()
        if ext == ".toml":
            raw = toml.load(cfg_path)
            if os.path.basename(cfg_path) == "pyproject.toml":
                return raw.get("tool", {}).get("sarif_issues", {})
            return raw.get("tool", {}).get("sarif_issues", raw)
        if ext in (".yaml", ".yml"):
            import yaml
            with open(cfg_path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        if os.path.basename(cfg_path) == "setup.cfg":
            parser = configparser.ConfigParser()
            parser.read(cfg_path)
            for section in ("tool:sarif_issues", "sarif_issues"):
                if parser.has_section(section):
                    return dict(parser.items(section))
        return {}

    @staticmethod
    def _ensure_tuple(val: Any) -> Tuple[str, ...]:
        if val is None:
            return ()
        if isinstance(val, (list, tuple)):
            return tuple(str(v).strip() for v in val if str(v).strip())
        return tuple(v.strip() for v in str(val).split(",") if v.strip())

    @staticmethod
    def _to_bool(val: Any) -> bool:
        if isinstance(val, bool):
            return val
        return str(val).strip().lower() in _TRUE_VALUES

    @classmethod
    def _coerce(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        """Convert raw strings/lists to each field's declared type."""
        types = {f.name: f.type for f in fields(cls)}
        out: Dict[str, Any] = {}
        for key, val in values.items():
            if key not in types:
                continue
            kind = types[key]
            try:
                if kind is bool:
                    out[key] = cls._to_bool(val)
                elif kind is int:
                    out[key] = int(val)
                elif kind is float:
                    out[key] = float(val)
                elif kind == Tuple[str, ...]:
                    out[key] = cls._ensure_tuple(val)
                elif kind == Dict[str, str]:
                    out[key] = {str(k): str(v).lower() for k, v in dict(val).items()}
                elif key == "severity_threshold":
                    out[key] = str(val).strip().lower()
                else:
                    out[key] = str(val)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for {key}: {val!r} ({e})") from e
        return out

    @classmethod
    def _from_dict(cls, raw: Dict[str, Any]) -> "Config":
        lowered = {str(k).lower().replace("-", "_"): v for k, v in raw.items()}
        return cls(**cls._coerce(lowered))

    @classmethod
    def _from_environ(cls, environ: Mapping[str, str]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for name, keys in _ENV_KEYS.items():
            for key in keys:
                if environ.get(key):
                    values[name] = environ[key]
                    break
        # GITHUB_REPOSITORY_OWNER alone is not enough to address a repository,
        # but it fills in the owner when only the repo name is given.
        owner = environ.get("GITHUB_REPOSITORY_OWNER")
        if owner and "repository" in values and "/" not in values["repository"]:
            values["repository"] = f"{owner}/{values['repository']}"
        return cls._coerce(values)
