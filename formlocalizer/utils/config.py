"""
Configuration Manager
====================

Manages extraction and output settings, stored as JSON.
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from formlocalizer.core.exceptions import ConfigError


@dataclass
class ExtractionSettings:
    """What to scan and how to read it."""
    locales: List[str] = field(default_factory=lambda: ["en"])
    scan_dirs: List[str] = field(default_factory=lambda: ["src"])
    excluded_dirs: List[str] = field(default_factory=lambda: ["Tests", "vendor", "var", "node_modules"])
    excluded_names: List[str] = field(default_factory=lambda: ["*Test.php", "*TestCase.php"])
    file_extensions: List[str] = field(default_factory=lambda: [".php"])
    # Only write these domains (empty = all)
    domains: List[str] = field(default_factory=list)
    ignored_domains: List[str] = field(default_factory=list)
    # Extra option keys holding messages, e.g. "help"
    custom_fields: List[str] = field(default_factory=list)
    # "current": choice labels are the array keys
    # "legacy": labels are the values unless choices_as_values is true
    choice_convention: str = "current"
    # Abort on the first option value that cannot be read
    strict: bool = False


@dataclass
class OutputSettings:
    """Where and how catalogues are written."""
    output_dir: str = "translations"
    output_format: str = "xlf"
    source_language: str = "en"
    add_date: bool = True
    add_filerefs: bool = True


VALID_OUTPUT_FORMATS = ("xlf", "json")
VALID_CHOICE_CONVENTIONS = ("current", "legacy")


def _build(cls, data: Dict[str, Any], logger: logging.Logger):
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {', '.join(unknown)}")
    return cls(**{k: v for k, v in data.items() if k in known})


class ConfigManager:
    """Manages application configuration."""

    def __init__(self, config_file: Optional[str] = "formlocalizer.json"):
        self.logger = logging.getLogger(__name__)
        self.config_file = Path(config_file) if config_file else None

        # Default configuration
        self.extraction_settings = ExtractionSettings()
        self.output_settings = OutputSettings()

    def load_config(self) -> bool:
        """Load configuration from file.

        Returns False when there is no config file (defaults are kept).

        Raises:
            ConfigError: the file exists but cannot be read or is invalid.
        """
        if self.config_file is None or not self.config_file.exists():
            self.logger.info("Config file doesn't exist, using defaults")
            return False

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not read configuration {self.config_file}: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigError(f"Configuration {self.config_file} must be a JSON object")

        self.update_from_dict(config_data)
        self.logger.info("Configuration loaded successfully")
        return True

    def update_from_dict(self, config_data: Dict[str, Any]) -> None:
        try:
            if 'extraction_settings' in config_data:
                self.extraction_settings = _build(
                    ExtractionSettings, config_data['extraction_settings'], self.logger)
            if 'output_settings' in config_data:
                self.output_settings = _build(
                    OutputSettings, config_data['output_settings'], self.logger)
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e
        self.validate()

    def validate(self) -> None:
        if self.output_settings.output_format not in VALID_OUTPUT_FORMATS:
            raise ConfigError(
                f"Unsupported output format '{self.output_settings.output_format}', "
                f"expected one of: {', '.join(VALID_OUTPUT_FORMATS)}")
        if self.extraction_settings.choice_convention not in VALID_CHOICE_CONVENTIONS:
            raise ConfigError(
                f"Unsupported choice convention '{self.extraction_settings.choice_convention}', "
                f"expected one of: {', '.join(VALID_CHOICE_CONVENTIONS)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'extraction_settings': asdict(self.extraction_settings),
            'output_settings': asdict(self.output_settings),
        }

    def save_config(self) -> bool:
        """Save configuration to file."""
        if self.config_file is None:
            return False
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)

            # Create backup if file exists
            if self.config_file.exists():
                backup_file = self.config_file.with_suffix('.json.bak')
                if backup_file.exists():
                    try:
                        backup_file.unlink()
                    except OSError as e:
                        self.logger.warning(f"Could not remove existing backup: {e}")
                try:
                    self.config_file.rename(backup_file)
                except OSError as e:
                    self.logger.warning(f"Could not create backup: {e}")

            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self.to_dict(), f, indent=4, ensure_ascii=False)
            self.logger.info("Configuration saved successfully")
            return True
        except OSError as e:
            self.logger.error(f"Error saving configuration: {e}")
            return False

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a setting value using dot notation (e.g., 'output.output_format')."""
        section, _, setting = key.partition('.')
        if section == 'extraction':
            return getattr(self.extraction_settings, setting, default)
        if section == 'output':
            return getattr(self.output_settings, setting, default)
        return default

    def set_setting(self, key: str, value: Any) -> None:
        """Set a setting value using dot notation (e.g., 'extraction.strict')."""
        section, _, setting = key.partition('.')
        target = {'extraction': self.extraction_settings, 'output': self.output_settings}.get(section)
        if target is None or not hasattr(target, setting):
            raise ConfigError(f"Unknown setting: {key}")
        setattr(target, setting, value)

    def reset_to_defaults(self) -> None:
        """Reset configuration to defaults."""
        self.extraction_settings = ExtractionSettings()
        self.output_settings = OutputSettings()
        self.logger.info("Configuration reset to defaults")
