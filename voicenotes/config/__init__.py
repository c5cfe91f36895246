"""YAML configuration loader for VoiceNotes."""

import os
import copy
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    'audio': {
        'sample_rate': 16000,
        'chunk_size': 1024,
        'channels': 1,
        'enabled': True,
    },
    'transcription': {
        'enabled': True,
        'backend': 'google',
        'chunk_duration_seconds': 3.0,
    },
    'google_cloud': {
        'credentials_path': None,
        'language': 'it-IT',
        'use_enhanced_model': True,
        'enable_automatic_punctuation': True,
    },
    'gestures': {
        'window_ms': 400,
    },
    'session': {
        'grace_period_seconds': 10.0,
    },
    'notes': {
        'timestamp_format': '%d/%m/%Y, %H:%M',
    },
    'storage': {
        'data_directory': 'data',
        'enhanced_enabled': True,
        'max_notes': None,
    },
    'export': {
        'output_directory': 'exports',
    },
    'logging': {
        'level': 'INFO',
        'file_path': 'logs/voicenotes.log',
        'console_output': False,
    },
}

_PATH_KEYS = (
    ('google_cloud', 'credentials_path'),
    ('storage', 'data_directory'),
    ('export', 'output_directory'),
    ('logging', 'file_path'),
)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class VoiceNotesConfig:
    """VoiceNotes configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults
                        are used with paths relative to the working directory.
        """
        if config_path is None:
            self.config_file = None
            logger.info("No configuration file given, using defaults")
            self.config = copy.deepcopy(DEFAULT_CONFIG)
            self._resolve_paths(self.config, Path.cwd())
            return

        self.config_file = Path(config_path)
        if not self.config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                user_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        if user_config is None:
            user_config = {}
        if not isinstance(user_config, dict):
            raise ConfigurationError("Configuration file must contain a mapping")

        config = _deep_merge(DEFAULT_CONFIG, user_config)
        self._resolve_paths(config, self.config_file.parent)
        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any], base_dir: Path) -> None:
        """Resolve relative paths against ``base_dir`` (the config file's directory)."""
        for section, key in _PATH_KEYS:
            value = config.get(section, {}).get(key)
            if value and not os.path.isabs(value):
                config[section][key] = str(base_dir / value)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'google_cloud.language').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self.config
        for key in key_path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation."""
        keys = key_path.split('.')
        config_dict = self.config
        for key in keys[:-1]:
            config_dict = config_dict.setdefault(key, {})
        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_google_credentials_path(self) -> str:
        """Get Google credentials path, failing loudly when it is missing."""
        creds_path = self.get('google_cloud.credentials_path')
        if not creds_path:
            raise ConfigurationError("google_cloud.credentials_path is not configured")

        creds_file = Path(creds_path)
        if not creds_file.exists():
            raise ConfigurationError(f"Google credentials file not found: {creds_path}")
        return str(creds_file.absolute())

    def get_data_directory(self) -> str:
        return str(Path(self.get('storage.data_directory', 'data')).absolute())

    def get_export_directory(self) -> str:
        return str(Path(self.get('export.output_directory', 'exports')).absolute())

    def get_gesture_window_seconds(self) -> float:
        return float(self.get('gestures.window_ms', 400)) / 1000.0

    def get_max_notes(self) -> Optional[int]:
        value = self.get('storage.max_notes')
        if value in (None, '', 0):
            return None
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"storage.max_notes must be an integer, got {value!r}") from e
