"""Configuration management for the splitresume CLI."""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from common.constants import (
    DEFAULT_CHUNK_SIZE_GB,
    DEFAULT_DIGEST_ALGORITHM,
    DEFAULT_PREFIX,
    DEFAULT_SAFETY_BUFFER_GB,
    DEFAULT_SUFFIX_LENGTH,
)
from common.logging_config import get_logger

logger = get_logger(__name__)

SECRET_KEYS = ("b2_key_id", "b2_application_key")


def default_config_path() -> Path:
    return Path(os.environ.get("SPLITRESUME_CONFIG", Path.home() / '.splitresume' / 'config.json'))


class Config:
    """Manages CLI defaults stored in a JSON file."""

    DEFAULT_CONFIG = {
        "prefix": DEFAULT_PREFIX,
        "chunk_size": str(DEFAULT_CHUNK_SIZE_GB),
        "safety_buffer": str(DEFAULT_SAFETY_BUFFER_GB),
        "digest_algorithm": DEFAULT_DIGEST_ALGORITHM,
        "suffix_length": DEFAULT_SUFFIX_LENGTH,
        "timeout": 30,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.splitresume/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        A corrupted file is copied to ``config.json.bak`` and defaults are used.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.splitresume' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Could not read config {self.config_path}: {e}; using defaults")
                backup_path = self.config_path.with_suffix('.json.bak')
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError as copy_error:
                    logger.warning(f"Could not back up config: {copy_error}")
                return self.DEFAULT_CONFIG.copy()

        config = self.DEFAULT_CONFIG.copy()
        try:
            with open(self.config_path, 'w') as f:
                json.dump(config, f, indent=2)
        except OSError as e:
            logger.debug(f"Could not write default config: {e}")
        return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not save config {self.config_path}: {e}")

    def get(self, key: str):
        """
        Get a setting, letting ``SPLITRESUME_<KEY>`` override the file.
        """
        env_value = os.environ.get(f"SPLITRESUME_{key.upper()}")
        if env_value is not None:
            return env_value
        return self.data.get(key, self.DEFAULT_CONFIG.get(key))

    def get_b2_credentials(self) -> tuple[Optional[str], Optional[str]]:
        """
        Get B2 application key ID and key.

        Environment variables (the names the B2 tools use) take precedence
        over the config file.

        Returns:
            Tuple of (key_id, application_key); either may be None
        """
        key_id = os.environ.get("B2_APPLICATION_KEY_ID") or self.data.get("b2_key_id")
        key = os.environ.get("B2_APPLICATION_KEY") or self.data.get("b2_application_key")
        return key_id, key

    def get_timeout(self) -> int:
        return int(self.get('timeout'))

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': int(self.get('max_retries')),
            'retry_backoff_multiplier': float(self.get('retry_backoff_multiplier')),
        }
