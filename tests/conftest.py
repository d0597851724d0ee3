"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from storage.repository import SessionRepository  # noqa: E402
from storage.settings import SettingsRepository  # noqa: E402
from storage.store import PersistenceStore  # noqa: E402


@pytest.fixture
def store(tmp_path):
    """An initialized store backed by a temporary SQLite file."""
    s = PersistenceStore(str(tmp_path / "data" / "test.sqlite"))
    s.initialize()
    yield s
    s.close()


@pytest.fixture
def repo(store):
    return SessionRepository(store)


@pytest.fixture
def settings_repo(store):
    return SettingsRepository(store)


@pytest.fixture
def session(repo):
    """A freshly created session with an object type."""
    return repo.create_session("Widgets", "widgets")


@pytest.fixture
def photo(tmp_path):
    """A small fake photo file on disk."""
    path = tmp_path / "photo.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg-bytes")
    return str(path)


class FakeDetector:
    """Detector double that returns a fixed count or raises a given error."""

    def __init__(self, count=0, error=None):
        self.count = count
        self.error = error
        self.calls = []

    def count_objects(self, image_path, object_type, api_key):
        self.calls.append((image_path, object_type, api_key))
        if self.error is not None:
            raise self.error
        return self.count


@pytest.fixture
def fake_detector():
    return FakeDetector(count=10)


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
storage:
  database_path: "data/test.sqlite"

detector:
  endpoint: "https://vision.example.test/v1/chat/completions"
  model: "gpt-4o"
  timeout_seconds: 30

review:
  marker_size: 40

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "storage": {
            "database_path": "data/test.sqlite",
        },
        "detector": {
            "endpoint": "https://vision.example.test/v1/chat/completions",
            "model": "gpt-4o",
            "timeout_seconds": 30,
            "max_tokens": 1000,
            "strict_parse": False,
        },
        "review": {
            "marker_size": 40,
            "placeholder": {"origin": 50, "spacing": 100, "size": 60},
        },
        "web": {"host": "127.0.0.1", "port": 5000},
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
