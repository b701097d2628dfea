"""Tests for configuration loading and structured logging."""

import json
import logging
from pathlib import Path

import pytest

from listing_studio.utils import config as config_module
from listing_studio.utils.config import Config, get_config, load_config
from listing_studio.utils.errors import ConfigurationError
from listing_studio.utils.logger import JSONFormatter

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "studio.yaml"


@pytest.fixture(autouse=True)
def reset_config(monkeypatch):
    monkeypatch.setattr(config_module, "_config", None)


def test_load_shipped_yaml(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")

    config = load_config(REPO_CONFIG)

    assert config.gemini_api_key == "from-env"
    assert config.models.editing == "gemini-2.5-flash-image"
    assert config.credits.costs == {"batch": 5, "video": 10, "default": 1}
    assert config.credits.initial_balance == 50
    assert config.cache.ttl_seconds == 300
    assert config.retry.max_retries == 2
    assert get_config() is config


def test_yaml_overrides_sections(tmp_path, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "k")
    monkeypatch.setenv("TIMEOUT_GEMINI_SECONDS", "30")
    path = tmp_path / "studio.yaml"
    path.write_text("credits:\n  initial_balance: 5\nvideo:\n  max_wait_seconds: 60\n")

    config = load_config(path)

    assert config.credits.initial_balance == 5
    assert config.credits.costs["video"] == 10
    assert config.video.max_wait_seconds == 60
    assert config.timeout_gemini_seconds == 30.0


def test_studio_config_env_selects_file(tmp_path, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "k")
    path = tmp_path / "other.yaml"
    path.write_text("models:\n  editing: other-model\n")
    monkeypatch.setenv("STUDIO_CONFIG", str(path))

    assert load_config().models.editing == "other-model"


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(tmp_path / "absent.yaml")


def test_missing_api_key_raises(tmp_path, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    path = tmp_path / "studio.yaml"
    path.write_text("{}\n")

    with pytest.raises(ConfigurationError, match="Failed to load configuration"):
        load_config(path)


def test_get_config_before_load_raises():
    with pytest.raises(ConfigurationError):
        get_config()


def test_config_defaults_without_yaml():
    config = Config(gemini_api_key="k")

    assert config.storage_path is None
    assert config.video.poll_interval_seconds == 5
    assert config.models.video == "veo-3.1-fast-generate-preview"


def test_json_formatter_lifts_extra_and_hides_payloads():
    record = logging.LogRecord("listing_studio.test", logging.INFO, __file__, 1, "Edit recorded", None, None)
    record.asset_id = "a1"
    record.image = "data:image/png;base64," + "A" * 500
    record.raw = b"\x89PNG"

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "Edit recorded"
    assert data["level"] == "INFO"
    assert data["asset_id"] == "a1"
    assert data["image"].startswith("<data-url:")
    assert data["raw"] == "<bytes: 4 bytes>"
