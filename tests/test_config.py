from pathlib import Path

import pytest
import yaml

from crnch import config as cfg
from crnch.engine_config import EngineConfig


def test_defaults(patched_config_paths: Path):
    config = cfg.Config()
    assert config.get("tolerance") == 0.05
    assert config.get("max_iterations") == 14
    assert config.get_with_source("default_level") == ("medium", cfg.SOURCE_DEFAULT)


def test_layering_user_local_env(patched_config_paths: Path, monkeypatch: pytest.MonkeyPatch):
    cfg.USER_CONFIG_DIR.mkdir(parents=True)
    cfg.USER_CONFIG_PATH.write_text(yaml.safe_dump({"tolerance": 0.1, "max_iterations": 8}))
    cfg.LOCAL_CONFIG_PATH.write_text(yaml.safe_dump({"max_iterations": 6, "unknown": 1}))
    monkeypatch.setenv("CRNCH_TOOL_TIMEOUT", "30")

    config = cfg.Config()

    assert config.get_with_source("tolerance") == (0.1, cfg.SOURCE_USER_CONFIG)
    assert config.get_with_source("max_iterations") == (6, cfg.SOURCE_LOCAL_CONFIG)
    value, source = config.get_with_source("tool_timeout")
    assert value == 30.0
    assert "CRNCH_TOOL_TIMEOUT" in source
    assert config.get("unknown") is None


def test_invalid_values_are_ignored(patched_config_paths: Path, monkeypatch, capsys):
    monkeypatch.setenv("CRNCH_MAX_ITERATIONS", "many")
    cfg.LOCAL_CONFIG_PATH.write_text(yaml.safe_dump({"default_level": "extreme"}))

    config = cfg.Config()

    assert config.get("max_iterations") == 14
    assert config.get("default_level") == "medium"
    err = capsys.readouterr().err
    assert "CRNCH_MAX_ITERATIONS" in err
    assert "default_level" in err


def test_set_persists_to_user_file(patched_config_paths: Path):
    config = cfg.Config()
    assert config.set("auto_yes", "true")
    assert yaml.safe_load(cfg.USER_CONFIG_PATH.read_text()) == {"auto_yes": True}
    assert cfg.Config().get_with_source("auto_yes") == (True, cfg.SOURCE_USER_CONFIG)


def test_set_rejects_unknown_key_and_bad_value(patched_config_paths: Path):
    config = cfg.Config()
    assert not config.set("colour", "blue")
    assert not config.set("tolerance", "2")
    assert not cfg.USER_CONFIG_PATH.exists()


def test_cli_override(patched_config_paths: Path):
    config = cfg.Config()
    config.update_from_cli("verbose", True)
    config.update_from_cli("log_file", None)
    assert config.get_with_source("verbose") == (True, "command-line argument")
    assert config.get_with_source("log_file") == ("", cfg.SOURCE_DEFAULT)
    assert config.validate()


def test_engine_config_from_app_config(patched_config_paths: Path, monkeypatch):
    monkeypatch.setenv("CRNCH_TOLERANCE", "0.02")
    engine = EngineConfig.from_app_config(cfg.Config())
    assert engine.tolerance == 0.02
    assert engine.tolerance_for(100_000) == 2000


def test_engine_config_validation():
    assert EngineConfig(tolerance_bytes=512).tolerance_for(1_000_000) == 512
    with pytest.raises(ValueError):
        EngineConfig(tolerance=1.5)
    with pytest.raises(ValueError):
        EngineConfig(max_iterations=0)
    with pytest.raises(ValueError):
        EngineConfig(colour="blue")
