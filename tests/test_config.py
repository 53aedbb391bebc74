import json
import logging

import pytest

from formlocalizer.core.exceptions import ConfigError
from formlocalizer.utils.config import ConfigManager, ExtractionSettings, OutputSettings


def test_defaults_when_file_is_missing(tmp_path):
    manager = ConfigManager(str(tmp_path / "missing.json"))
    assert manager.load_config() is False
    assert manager.extraction_settings == ExtractionSettings()
    assert manager.output_settings.output_format == "xlf"


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "formlocalizer.json"
    manager = ConfigManager(str(path))
    manager.extraction_settings.locales = ["en", "fr"]
    manager.extraction_settings.custom_fields = ["help"]
    manager.output_settings.output_format = "json"
    assert manager.save_config() is True

    loaded = ConfigManager(str(path))
    assert loaded.load_config() is True
    assert loaded.extraction_settings.locales == ["en", "fr"]
    assert loaded.extraction_settings.custom_fields == ["help"]
    assert loaded.output_settings.output_format == "json"


def test_save_keeps_a_backup_of_the_previous_file(tmp_path):
    path = tmp_path / "formlocalizer.json"
    manager = ConfigManager(str(path))
    manager.save_config()
    manager.output_settings.output_dir = "second"
    manager.save_config()
    backup = tmp_path / "formlocalizer.json.bak"
    assert backup.exists()
    assert json.loads(backup.read_text(encoding="utf-8"))["output_settings"]["output_dir"] == "translations"
    assert json.loads(path.read_text(encoding="utf-8"))["output_settings"]["output_dir"] == "second"


def test_unknown_keys_are_logged_and_ignored(tmp_path, caplog):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "extraction_settings": {"locales": ["de"], "colour": "blue"},
        "output_settings": {"output_dir": "out"},
    }), encoding="utf-8")
    manager = ConfigManager(str(path))
    with caplog.at_level(logging.WARNING):
        manager.load_config()
    assert manager.extraction_settings.locales == ["de"]
    assert manager.output_settings.output_dir == "out"
    assert "colour" in caplog.text


def test_invalid_json_raises_config_error(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        ConfigManager(str(path)).load_config()


def test_non_object_json_raises_config_error(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigError):
        ConfigManager(str(path)).load_config()


def test_invalid_values_are_rejected():
    manager = ConfigManager(None)
    with pytest.raises(ConfigError):
        manager.update_from_dict({"output_settings": {"output_format": "po"}})
    with pytest.raises(ConfigError):
        manager.update_from_dict({"extraction_settings": {"choice_convention": "sideways"}})


def test_dot_notation_settings():
    manager = ConfigManager(None)
    manager.set_setting("extraction.strict", True)
    assert manager.get_setting("extraction.strict") is True
    assert manager.get_setting("output.output_dir") == "translations"
    assert manager.get_setting("nope.nothing", "fallback") == "fallback"
    with pytest.raises(ConfigError):
        manager.set_setting("output.unknown", 1)


def test_reset_and_to_dict():
    manager = ConfigManager(None)
    manager.output_settings.output_dir = "elsewhere"
    manager.reset_to_defaults()
    data = manager.to_dict()
    assert data["output_settings"] == vars(OutputSettings())
    assert data["extraction_settings"]["choice_convention"] == "current"
    assert manager.save_config() is False
