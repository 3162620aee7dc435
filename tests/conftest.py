from pathlib import Path
from types import SimpleNamespace

import pandas as pd
import pytest
import yaml

from fallback_classifier import ClassificationUnavailable


ROOT = Path(__file__).parent.parent


def pytest_addoption(parser):
    parser.addoption(
        "--config-path",
        default=str(ROOT / "config" / "default.yaml"),
        help="Path to the categorization config YAML",
    )


@pytest.fixture(scope="session")
def config_path(request):
    return Path(request.config.getoption("--config-path")).resolve()


@pytest.fixture(scope="session")
def default_config(config_path):
    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture(scope="session")
def sample_csv():
    return ROOT / "data" / "subjects.csv"


@pytest.fixture
def subjects_df():
    return pd.DataFrame({
        "id": ["1", "2", "3", "4", "5"],
        "subject": ["Algebra II", "Intro to Programming", "Old Shop Class", "Reading & Writing", ""],
        "status": ["Active", "Active", "Deprecated", "Active", "Active"],
    })


@pytest.fixture
def write_config(tmp_path):
    """Write a config YAML into tmp_path and return its path."""

    def _write(**overrides):
        config = {
            "paths": {
                "input": "subjects.csv",
                "output": "out/subjects_normalized.csv",
            },
            "columns": {"subject": "subject", "status": "status"},
            "fallback": {"enabled": False},
        }
        for section, values in overrides.items():
            if values is None:
                config.pop(section, None)
            else:
                config.setdefault(section, {}).update(values)
        path = tmp_path / "config.yaml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f)
        return path

    return _write


class FakeFallback:
    """Stands in for the remote classifier; unknown subjects fail."""

    model = "fake-model"

    def __init__(self, labels=None):
        self.labels = labels or {}
        self.calls = []

    def classify(self, subject):
        self.calls.append(subject)
        if subject not in self.labels:
            raise ClassificationUnavailable(f"no label for '{subject}'")
        return self.labels[subject]


@pytest.fixture
def fake_fallback():
    return FakeFallback


class FakeCompletions:

    def __init__(self, content=None, error=None, choices=True):
        self.content = content
        self.error = error
        self.choices = choices
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        if not self.choices:
            return SimpleNamespace(choices=[])
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def fake_client():
    def _build(**kwargs):
        completions = FakeCompletions(**kwargs)
        return SimpleNamespace(chat=SimpleNamespace(completions=completions))

    return _build
