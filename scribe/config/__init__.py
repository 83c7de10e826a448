"""YAML configuration loader for Scribe."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


# Environment variables that override values from the YAML file.
ENV_OVERRIDES = {
    "DISCORD_TOKEN": "discord.token",
    "TARGET_USER_ID": "discord.target_user_id",
    "MEETING_NOTES_CHANNEL_ID": "discord.notes_channel_id",
    "GEMINI_API_KEY": "gemini.api_key",
    "GEMINI_MODEL": "gemini.model",
    "GOOGLE_DRIVE_FOLDER_ID": "drive.folder_id",
    "GOOGLE_SERVICE_ACCOUNT_FILE": "drive.service_account_file",
    "PORT": "status.port",
}


class ScribeConfig:
    """Scribe configuration loader."""

    def __init__(self, config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, looks for scribe.yaml
                        in the current directory; if that is missing too, the
                        configuration is built from environment variables only.
            environ: Environment mapping used for overrides (defaults to os.environ)
        """
        self.environ = os.environ if environ is None else environ

        if config_path is None and Path("scribe.yaml").exists():
            config_path = "scribe.yaml"

        if config_path is None:
            self.config_file = None
            logger.info("No configuration file given, using environment only")
            self.config = {}
        else:
            self.config_file = Path(config_path)
            if not self.config_file.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_file}")
            logger.info(f"Loading configuration from: {self.config_file}")
            self.config = self._load_config()

        self._apply_env_overrides()

    @classmethod
    def from_dict(cls, values: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> "ScribeConfig":
        """Build a configuration from an in-memory dictionary."""
        config = cls.__new__(cls)
        config.environ = {} if environ is None else environ
        config.config_file = None
        config.config = values
        config._apply_env_overrides()
        return config

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        if not config:
            raise ConfigurationError("Configuration file is empty")

        # Resolve relative paths
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        for section, key in (
            ('storage', 'data_directory'),
            ('logging', 'file_path'),
            ('google_cloud', 'credentials_path'),
            ('drive', 'service_account_file'),
        ):
            if section in config and config[section] and key in config[section]:
                value = config[section][key]
                if value and not os.path.isabs(value):
                    config[section][key] = str(config_dir / value)

    def _apply_env_overrides(self) -> None:
        for env_name, key_path in ENV_OVERRIDES.items():
            value = self.environ.get(env_name)
            if value:
                self.set(key_path, value)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'voice.ready_timeout_seconds').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'gemini.model')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if not isinstance(config_dict.get(key), dict):
                config_dict[key] = {}
            config_dict = config_dict[key]

        # Set the final value
        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set")

    def require(self, key_path: str) -> Any:
        """Get a configuration value that must be present - CRASHES if not found."""
        value = self.get(key_path)
        if value in (None, ""):
            raise ConfigurationError(f"Required configuration '{key_path}' is not set")
        return value

    def get_discord_token(self) -> str:
        return str(self.require('discord.token'))

    def get_target_user_id(self) -> str:
        return str(self.require('discord.target_user_id'))

    def get_notes_channel_id(self) -> Optional[str]:
        channel_id = self.get('discord.notes_channel_id')
        return str(channel_id) if channel_id else None

    def get_data_directory(self) -> str:
        """Get working storage directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())
