"""Configuration manager for loading and validating .git-review.yml"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from diffnotes.domain.config import AppConfig, DisplayConfig, NotesConfig, RetryConfig

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".git-review.yml"


class ConfigurationError(Exception):
    """Configuration validation error."""

    pass


class ConfigManager:
    """Manages configuration from .git-review.yml and environment variables

    Loads configuration with validation using Pydantic models. Configuration priority:
    1. Default values (defined in Pydantic models)
    2. .git-review.yml file (searched from current directory upwards)
    3. Environment variables (DIFFNOTES_*)
    4. CLI arguments (handled by CLI layer)
    """

    DEFAULT_CONFIG = {
        "display": {
            "diff_mode": "side-by-side",
            "context_lines": 8,
            "context_expand_increment": 8,
            "horizontal_scroll_amount": 4,
            "column_width": 80,
        },
        "notes": {
            "ref_prefix": "refs/notes/git-review",
            "author_name": "git-review",
            "author_email": "git-review@local",
        },
        "retry": {
            "max_attempts": 3,
            "initial_delay": 0.2,
            "backoff_multiplier": 2.0,
            "jitter": 0.1,
        },
    }

    def __init__(self, config_path: Optional[Path] = None, search_from: Optional[Path] = None):
        """Initialize config manager

        Args:
            config_path: Path to .git-review.yml (searched for if None)
            search_from: Directory the search starts from (default: current directory)

        Raises:
            ConfigurationError: If configuration validation fails
        """
        if isinstance(config_path, str):
            config_path = Path(config_path)
        self.config_path = config_path or self._find_config_file(search_from or Path.cwd())
        try:
            self.config: AppConfig = self._load_config()
        except ValidationError as e:
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                msg = error["msg"]
                errors.append(f"  - {field}: {msg}")
            raise ConfigurationError(
                "Configuration validation failed:\n" + "\n".join(errors)
            ) from e

    def _find_config_file(self, start: Path) -> Optional[Path]:
        """Find .git-review.yml starting from start and walking up

        Returns:
            Path to config file or None if not found
        """
        start = start.resolve()
        for parent in [start] + list(start.parents):
            config_file = parent / CONFIG_FILE_NAME
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return config_file
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
        return None

    def _load_config(self) -> AppConfig:
        """Load configuration from file and validate with Pydantic

        Raises:
            ValidationError: If configuration is invalid
        """
        config_dict = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
                if not isinstance(file_config, dict):
                    raise ValueError("top-level YAML value must be a mapping")
                config_dict = self._merge_config(config_dict, file_config)
                logger.info(f"Loaded configuration from {self.config_path}")
            except (OSError, yaml.YAMLError, ValueError) as e:
                logger.warning(f"Failed to load config from {self.config_path}: {e}")
                logger.info("Using default configuration")

        config_dict = self._apply_env_overrides(config_dict)

        return AppConfig(**config_dict)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries"""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides"""
        if os.getenv("DIFFNOTES_CONTEXT_LINES"):
            config["display"]["context_lines"] = os.getenv("DIFFNOTES_CONTEXT_LINES")

        if os.getenv("DIFFNOTES_DIFF_MODE"):
            config["display"]["diff_mode"] = os.getenv("DIFFNOTES_DIFF_MODE")

        if os.getenv("DIFFNOTES_NOTES_REF"):
            config["notes"]["ref_prefix"] = os.getenv("DIFFNOTES_NOTES_REF")

        return config

    def get_display_config(self) -> DisplayConfig:
        return self.config.display

    def get_notes_config(self) -> NotesConfig:
        return self.config.notes

    def get_retry_config(self) -> RetryConfig:
        return self.config.retry

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)

        Args:
            key: Configuration key (e.g., "display.context_lines" or "display")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self.config.model_dump()
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value
