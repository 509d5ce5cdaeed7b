"""
Unit tests for configuration loading.
"""

from types import SimpleNamespace

import pytest

from rate_toc.config import get_setting, load_config


def test_packaged_defaults():
    """Test the packaged YAML defaults."""
    config = load_config()

    assert config["target"] == "AUTOC"
    assert config["R"] == 200
    assert config["half_sample"] is True
    assert config["q"][-1] == 1.0
    assert len(config["q"]) == 10
    assert config["grid_tolerance"] == pytest.approx(1e-15)
    assert config["zero_threshold"] == pytest.approx(1e-15)


def test_user_file_overrides_defaults(tmp_path):
    """Test a user YAML file replaces only the keys it sets."""
    path = tmp_path / "rate.yaml"
    path.write_text("target: QINI\nR: 50\n", encoding="utf-8")

    config = load_config(path)

    assert config["target"] == "QINI"
    assert config["R"] == 50
    assert config["half_sample"] is True


def test_unknown_key_rejected(tmp_path):
    """Test typos in the user file are not silently ignored."""
    path = tmp_path / "rate.yaml"
    path.write_text("replicates: 50\n", encoding="utf-8")

    with pytest.raises(RuntimeError, match="Unknown config keys"):
        load_config(path)


def test_missing_file_rejected(tmp_path):
    """Test a missing config path fails."""
    with pytest.raises(RuntimeError, match="Config file not found"):
        load_config(tmp_path / "nope.yaml")


def test_get_setting_dict_and_object():
    """Test settings can be read from dicts and attribute objects."""
    assert get_setting({"R": 5}, "R") == 5
    assert get_setting(SimpleNamespace(R=7), "R") == 7

    with pytest.raises(KeyError):
        get_setting({}, "R")
    with pytest.raises(KeyError):
        get_setting(SimpleNamespace(), "R")
