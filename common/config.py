"""Configuration management for Reelstream clients."""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from common.constants import (
    API_PREFIX,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    MAX_BUFFER_LENGTH_SECONDS,
    MAX_CONSECUTIVE_RECOVERIES,
    MAX_MAX_BUFFER_LENGTH_SECONDS,
    RESUME_MARGIN_SECONDS,
    SEGMENT_TIME_SECONDS,
)
from common.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / '.reelstream' / 'config.json'


class Config:
    """Manages client configuration stored in a JSON file."""

    DEFAULT_CONFIG = {
        "server_host": os.environ.get("REELSTREAM_SERVER_HOST", DEFAULT_SERVER_HOST),
        "server_port": int(os.environ.get("REELSTREAM_SERVER_PORT", str(DEFAULT_SERVER_PORT))),
        "api_prefix": os.environ.get("REELSTREAM_API_PREFIX", API_PREFIX),
        "timeout": 30,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
        "segment_time": SEGMENT_TIME_SECONDS,
        "max_buffer_length": MAX_BUFFER_LENGTH_SECONDS,
        "max_max_buffer_length": MAX_MAX_BUFFER_LENGTH_SECONDS,
        "resume_margin": RESUME_MARGIN_SECONDS,
        "max_recoveries": MAX_CONSECUTIVE_RECOVERIES,
        "playback_rate": 1.0,
    }

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (defaults to ~/.reelstream/config.json)
        """
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.reelstream' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError) as e:
                backup_path = self.config_path.with_suffix('.json.bak')
                logger.warning(f"Unreadable config {self.config_path} ({e}), backing up to {backup_path}")
                try:
                    shutil.copy(self.config_path, backup_path)
                except IOError as copy_error:
                    logger.warning(f"Could not back up config: {copy_error}")
                return self.DEFAULT_CONFIG.copy()

        config = self.DEFAULT_CONFIG.copy()
        try:
            with open(self.config_path, 'w') as f:
                json.dump(config, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not write default config to {self.config_path}: {e}")
        return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not save config to {self.config_path}: {e}")

    def get_base_url(self) -> str:
        """
        Get server base URL including the API prefix.

        Returns:
            Base URL string (e.g., "http://localhost:8080/api/v1")
        """
        host = self.data.get('server_host', DEFAULT_SERVER_HOST)
        port = self.data.get('server_port', DEFAULT_SERVER_PORT)
        prefix = self.data.get('api_prefix', API_PREFIX).rstrip('/')
        return f"http://{host}:{port}{prefix}"

    def get_timeout(self) -> float:
        """
        Get request timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return self.data.get('timeout', 30)

    def get_retry_config(self) -> dict:
        """
        Get retry configuration for idempotent reads.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }

    def get_segment_time(self) -> int:
        return int(self.data.get('segment_time', SEGMENT_TIME_SECONDS))

    def get_playback_config(self) -> dict:
        """
        Get playback buffering and recovery settings.

        Returns:
            Dictionary with buffer lengths, resume margin, recovery cap and rate
        """
        return {
            'segment_time': float(self.get_segment_time()),
            'max_buffer_length': float(self.data.get('max_buffer_length', MAX_BUFFER_LENGTH_SECONDS)),
            'max_max_buffer_length': float(self.data.get('max_max_buffer_length', MAX_MAX_BUFFER_LENGTH_SECONDS)),
            'resume_margin': float(self.data.get('resume_margin', RESUME_MARGIN_SECONDS)),
            'max_recoveries': int(self.data.get('max_recoveries', MAX_CONSECUTIVE_RECOVERIES)),
            'playback_rate': float(self.data.get('playback_rate', 1.0)),
        }
