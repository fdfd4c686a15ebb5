# tests/conftest.py

import pytest

from helpers import FakeTracker, make_config
from sarif_issues.taxonomy import Taxonomy


@pytest.fixture
def taxonomy():
    return Taxonomy.default()


@pytest.fixture
def tracker():
    return FakeTracker()


@pytest.fixture
def config(tmp_path):
    return make_config(logs_dir=str(tmp_path / "logs"), hashes_path=str(tmp_path / "prompt-hashes.json"))
