"""Settings read from the environment."""

import pytest

from src.adapters.claude_semantic import DEFAULT_MODEL
from src.config import ConfigError, Settings


def test_defaults_with_empty_environment():
    s = Settings.from_env({})
    assert s.anthropic_api_key is None
    assert s.claude_model == DEFAULT_MODEL
    assert s.catalog_path == "data/places.json"
    assert s.notify_channel == "console"
    assert s.draft_ttl_seconds == 900.0
    assert s.dedupe_ttl_seconds == 120.0
    assert s.log_level == "INFO"


def test_values_are_read_and_normalized():
    s = Settings.from_env({
        "ANTHROPIC_API_KEY": "sk-test",
        "SEMANTIC_TIMEOUT_SECONDS": "2.5",
        "NOTIFY_CHANNEL": "Recording",
        "DRAFT_TTL_SECONDS": "60",
        "ACCESS_PATH": "config/access.json",
        "LOG_LEVEL": "debug",
    })
    assert s.anthropic_api_key == "sk-test"
    assert s.semantic_timeout == 2.5
    assert s.notify_channel == "recording"
    assert s.draft_ttl_seconds == 60.0
    assert s.access_path == "config/access.json"
    assert s.log_level == "DEBUG"


def test_blank_optional_values_count_as_unset():
    s = Settings.from_env({"ANTHROPIC_API_KEY": "", "ZONES_PATH": "", "DRAFT_TTL_SECONDS": ""})
    assert s.anthropic_api_key is None
    assert s.zones_path is None
    assert s.draft_ttl_seconds == 900.0


@pytest.mark.parametrize("env", [
    {"NOTIFY_CHANNEL": "carrier-pigeon"},
    {"DRAFT_TTL_SECONDS": "quince"},
    {"SEMANTIC_TIMEOUT_SECONDS": "0"},
    {"DEDUPE_TTL_SECONDS": "-5"},
])
def test_invalid_values_are_fatal(env):
    with pytest.raises(ConfigError):
        Settings.from_env(env)


def test_reads_process_environment_by_default(monkeypatch):
    monkeypatch.setenv("CATALOG_PATH", "/srv/places.json")
    assert Settings.from_env().catalog_path == "/srv/places.json"
