import pytest

from sarif_issues.config import Config
from sarif_issues.errors import ConfigError


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_defaults_without_file_or_env():
    config = Config.load(environ={})
    assert config.severity_threshold == "high"
    assert config.max_items_per_run == 10
    assert config.filtered_findings_live is True
    assert config.sarif_path == "results.sarif"
    assert config.auto_assign == ()


def test_environment_values_are_coerced():
    config = Config.load(environ={
        "GITHUB_TOKEN": "tok",
        "GITHUB_REPOSITORY": "acme/webapp",
        "SEVERITY_THRESHOLD": "Medium",
        "MAX_ISSUES_PER_RUN": "3",
        "ENABLE_MAINTAINABILITY": "true",
        "ENABLE_THREAT_MODEL": "0",
        "AUTO_ASSIGN": "alice, bob,",
        "EXCLUDED_PATHS": "node_modules/,test/",
        "REQUEST_DELAY": "0.5",
        "FILTERED_FINDINGS_LIVE": "false",
        "GITHUB_REF_NAME": "feature/x",
        "GITHUB_SHA": "deadbeef",
    })
    assert config.owner == "acme" and config.repo == "webapp"
    assert config.severity_threshold == "medium"
    assert config.max_items_per_run == 3
    assert config.enable_maintainability is True
    assert config.enable_threat_model is False
    assert config.auto_assign == ("alice", "bob")
    assert config.excluded_paths == ("node_modules/", "test/")
    assert config.request_delay == 0.5
    assert config.filtered_findings_live is False
    assert (config.branch, config.sha) == ("feature/x", "deadbeef")


def test_toml_file_then_env_then_overrides(isolated_cwd):
    (isolated_cwd / "sarif-issues.toml").write_text(
        'severity_threshold = "low"\nmax_items_per_run = 4\nexcluded_paths = ["vendor/"]\n',
        encoding="utf-8",
    )
    config = Config.load(environ={"MAX_ISSUES_PER_RUN": "7"}, sarif_path="custom.sarif", logs_dir=None)
    assert config.severity_threshold == "low"
    assert config.excluded_paths == ("vendor/",)
    assert config.max_items_per_run == 7
    assert config.sarif_path == "custom.sarif"
    assert config.logs_dir == "logs"


def test_yaml_file(isolated_cwd):
    path = isolated_cwd / "settings.yaml"
    path.write_text("enable_threat_model: true\nseverity_overrides:\n  js/xss: Critical\n", encoding="utf-8")
    config = Config.load(str(path), environ={})
    assert config.enable_threat_model is True
    assert config.severity_overrides == {"js/xss": "critical"}


def test_setup_cfg_section(isolated_cwd):
    (isolated_cwd / "setup.cfg").write_text("[sarif_issues]\nauto_assign = carol\n", encoding="utf-8")
    assert Config.load(environ={}).auto_assign == ("carol",)


def test_owner_fills_in_bare_repository_name():
    config = Config.load(environ={"GITHUB_REPOSITORY": "webapp", "GITHUB_REPOSITORY_OWNER": "acme"})
    assert config.repository == "acme/webapp"


def test_explicit_missing_file_is_an_error(isolated_cwd):
    with pytest.raises(ConfigError):
        Config.load(str(isolated_cwd / "absent.toml"), environ={})


def test_bad_number_is_an_error():
    with pytest.raises(ConfigError):
        Config.load(environ={"MAX_ISSUES_PER_RUN": "lots"})


@pytest.mark.parametrize("env", [
    {"GITHUB_REPOSITORY": "acme/webapp"},
    {"GITHUB_TOKEN": "t", "GITHUB_REPOSITORY": "webapp"},
    {"GITHUB_TOKEN": "t", "GITHUB_REPOSITORY": "acme/webapp", "SEVERITY_THRESHOLD": "severe"},
    {"GITHUB_TOKEN": "t", "GITHUB_REPOSITORY": "acme/webapp", "MAX_ISSUES_PER_RUN": "-1"},
])
def test_validate_rejects(env):
    with pytest.raises(ConfigError):
        Config.load(environ=env).validate()


def test_validate_accepts_minimal_settings():
    config = Config.load(environ={"GITHUB_TOKEN": "t", "GITHUB_REPOSITORY": "acme/webapp"})
    assert config.validate() is config
    assert "t" not in config.describe().values()
