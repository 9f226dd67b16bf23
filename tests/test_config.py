"""Tests for config.py"""

import pytest

from amzpulse.config import ConfigError, load_config


def test_defaults_without_file(monkeypatch):
    monkeypatch.delenv("AMZPULSE_API_BASE", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    cfg = load_config()
    assert cfg.backend.base_url == "http://localhost:3001"
    assert cfg.gemini.model == "gemini-2.5-flash"
    assert cfg.gemini.is_ready() is False
    assert cfg.runtime.timezone == "America/Los_Angeles"


def test_environment_supplies_defaults(monkeypatch):
    monkeypatch.setenv("AMZPULSE_API_BASE", "https://api.example.com")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("API_KEY", "legacy-key")
    cfg = load_config()
    assert cfg.backend.base_url == "https://api.example.com"
    assert cfg.gemini.api_key == "legacy-key"


def test_yaml_with_env_references(tmp_path, monkeypatch):
    monkeypatch.setenv("MY_GEMINI", "secret")
    path = tmp_path / "config.yaml"
    path.write_text(
        "backend:\n"
        "  base_url: http://backend.test\n"
        "  timeout: 5\n"
        "gemini:\n"
        "  api_key: ENV:MY_GEMINI\n"
        "  model: gemini-2.5-pro\n"
        "storage:\n"
        "  state_dir: /tmp/amz\n"
        "runtime:\n"
        "  timezone: UTC\n"
        "  log_level: debug\n"
    )
    cfg = load_config(path)
    assert cfg.backend.base_url == "http://backend.test"
    assert cfg.backend.timeout == 5.0
    assert cfg.gemini.api_key == "secret"
    assert cfg.gemini.model == "gemini-2.5-pro"
    assert cfg.gemini.timeout == 30.0
    assert cfg.storage.state_dir == "/tmp/amz"
    assert cfg.runtime.timezone == "UTC"


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.yaml")


def test_non_mapping_raises(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_config(path)


@pytest.mark.parametrize("value", ["-1", "0", "soon"])
def test_bad_timeout_raises(tmp_path, value):
    path = tmp_path / "config.yaml"
    path.write_text(f"backend:\n  timeout: {value}\n")
    with pytest.raises(ConfigError):
        load_config(path)
