"""
Settings Manager for the image-distribution agent
Reads agent settings from a JSON file merged over built-in defaults
"""

import json
import os
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


DEFAULT_SETTINGS: Dict[str, Any] = {
    'docker_host': 'unix:///var/run/docker.sock',
    'docker_scheme': 'http',
    'docker_version': '1.24',
    'registry': 'localhost:5000',
    'log_level': 'INFO',
    'pull_timeout': None,
}


class SettingsManager:
    """Manager for agent settings"""

    @staticmethod
    def get_user_settings_path() -> str:
        """Get path to user settings file"""
        config_dir = os.path.join(
            os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config')),
            'kraken-agent'
        )
        return os.path.join(config_dir, 'settings.json')

    def __init__(self, settings_file: Optional[str] = None):
        """
        Initialize settings manager

        Args:
            settings_file: JSON settings path (default: user settings path)
        """
        self.settings_file = settings_file or self.get_user_settings_path()
        self.settings: Dict[str, Any] = {}

        self.load()

    def load(self):
        """Load settings from file, falling back to defaults"""
        self.settings = DEFAULT_SETTINGS.copy()

        if not os.path.exists(self.settings_file):
            logger.debug(f"No settings file at {self.settings_file}, using defaults")
            return

        try:
            with open(self.settings_file, 'r', encoding='utf-8') as f:
                loaded_settings = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not load settings from {self.settings_file}: {e}")
            return

        if not isinstance(loaded_settings, dict):
            logger.warning(f"Ignoring settings file {self.settings_file}: not a JSON object")
            return

        # User settings override defaults
        self.settings.update(loaded_settings)
        logger.debug(f"Settings loaded from {self.settings_file}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get setting value

        Args:
            key: Setting key
            default: Default value if key not found

        Returns:
            Setting value
        """
        return self.settings.get(key, default)

    def update(self, settings_dict: Dict[str, Any]):
        """
        Override settings in memory, skipping None values

        Args:
            settings_dict: Dictionary of settings to update
        """
        self.settings.update({k: v for k, v in settings_dict.items() if v is not None})

    def get_all(self) -> Dict[str, Any]:
        """Get all settings"""
        return self.settings.copy()
