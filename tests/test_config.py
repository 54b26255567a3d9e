"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from inkproof.config import DEFAULT_AI_MODEL, InkproofConfig


def test_default_config():
    """Test defaults point at the local inkproof home."""
    config = InkproofConfig()
    assert config.key_path.name == "signing_key.json"
    assert config.event_log_path.name == "events.jsonl"
    assert config.retain_text is False
    assert config.background_writes is False
    assert config.ai_model == DEFAULT_AI_MODEL
    assert "~" not in str(config.key_path)


def test_config_validation():
    """Test configuration validation."""
    with pytest.raises(ValueError, match="queue_size"):
        InkproofConfig(queue_size=0)

    with pytest.raises(ValueError, match="consistency_tolerance"):
        InkproofConfig(consistency_tolerance=-1.0)

    with pytest.raises(ValueError, match="ai_model"):
        InkproofConfig(ai_model="")


def test_config_from_yaml(tmp_path: Path):
    """Test loading from a YAML file, ignoring unknown keys."""
    path = tmp_path / "inkproof.yaml"
    path.write_text(yaml.safe_dump({
        "key_path": str(tmp_path / "key.json"),
        "retain_text": True,
        "queue_size": 50,
        "unknown_option": "ignored",
    }))

    config = InkproofConfig.from_yaml(path)

    assert config.key_path == tmp_path / "key.json"
    assert config.retain_text is True
    assert config.queue_size == 50


def test_config_yaml_must_be_mapping(tmp_path: Path):
    """Test a non-mapping YAML document is rejected."""
    path = tmp_path / "inkproof.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ValueError, match="mapping"):
        InkproofConfig.from_yaml(path)


def test_config_from_env(monkeypatch, tmp_path: Path):
    """Test configuration from environment variables."""
    monkeypatch.setenv("INKPROOF_KEY_PATH", str(tmp_path / "k.json"))
    monkeypatch.setenv("INKPROOF_EVENT_LOG", str(tmp_path / "e.jsonl"))
    monkeypatch.setenv("INKPROOF_RETAIN_TEXT", "true")
    monkeypatch.setenv("INKPROOF_BACKGROUND_WRITES", "TRUE")
    monkeypatch.setenv("INKPROOF_QUEUE_SIZE", "5000")
    monkeypatch.setenv("INKPROOF_AI_MODEL", "model-x")

    config = InkproofConfig.from_env()

    assert config.key_path == tmp_path / "k.json"
    assert config.event_log_path == tmp_path / "e.jsonl"
    assert config.retain_text is True
    assert config.background_writes is True
    assert config.queue_size == 5000
    assert config.ai_model == "model-x"


def test_env_overrides_yaml(monkeypatch, tmp_path: Path):
    """Test environment wins over the YAML file."""
    path = tmp_path / "inkproof.yaml"
    path.write_text("ai_model: from-file\nqueue_size: 10\n")
    monkeypatch.setenv("INKPROOF_AI_MODEL", "from-env")

    config = InkproofConfig.load(path)

    assert config.ai_model == "from-env"
    assert config.queue_size == 10


def test_config_to_dict():
    """Test serialization to a plain dict."""
    data = InkproofConfig(queue_size=7).to_dict()
    assert data["queue_size"] == 7
    assert isinstance(data["key_path"], str)
