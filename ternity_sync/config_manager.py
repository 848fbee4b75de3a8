"""
Configuration Manager Module
Handles loading and accessing application configuration from YAML files and environment variables.
"""

import os
import re
from pathlib import Path
from typing import Dict, List

import yaml
from dotenv import load_dotenv


TOGGL_KEYS = ['TOGGL_API_TOKEN', 'TOGGL_WORKSPACE_ID', 'TOGGL_ORGANIZATION_ID']
TIMETASTIC_KEYS = ['TIMETASTIC_API_TOKEN']
DATABASE_KEYS = ['DATABASE_URL']


class ConfigurationError(Exception):
    """Raised when required configuration is missing."""

    def __init__(self, message: str, missing: List[str] = None):
        self.message = message
        self.missing = missing or []
        super().__init__(self.message)


class ConfigManager:
    """Manages application configuration from YAML files and environment variables."""

    _instance = None
    _config: Dict = None

    def __new__(cls):
        """Singleton pattern for configuration."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize configuration if not already loaded."""
        if self._config is None:
            self._load_configuration()

    def _load_configuration(self) -> None:
        """Load all configuration files."""
        # Load environment variables from .env file
        load_dotenv()

        self._config_dir = self._find_config_dir()

        config_path = self._config_dir / 'config.yaml'
        self._config = self._load_yaml_with_env(config_path)

    def _find_config_dir(self) -> Path:
        """Find the configuration directory."""
        env_config_dir = os.getenv('CONFIG_DIR')
        if env_config_dir:
            return Path(env_config_dir)

        possible_paths = [
            Path(__file__).parent.parent / 'config',  # Relative to the package
            Path.cwd() / 'config',
            Path('/app/config'),  # Docker container
        ]

        for path in possible_paths:
            if path.exists():
                return path

        raise FileNotFoundError("Configuration directory not found")

    def _load_yaml_with_env(self, file_path: Path) -> Dict:
        """
        Load YAML file with environment variable substitution.

        Supports ${VAR_NAME} and ${VAR_NAME:-default} syntax.
        """
        if not file_path.exists():
            return {}

        with open(file_path, 'r', encoding='utf-8') as f:
            content = f.read()

        content = self._substitute_env_vars(content)

        return yaml.safe_load(content) or {}

    def _substitute_env_vars(self, content: str) -> str:
        """
        Substitute environment variables in string.

        Supports:
        - ${VAR_NAME} - Required variable
        - ${VAR_NAME:-default} - Variable with default value
        """
        pattern = r'\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}'

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2)

            value = os.getenv(var_name)
            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                return match.group(0)  # Return original if not found

        return re.sub(pattern, replacer, content)

    # ========================================
    # Configuration Getters
    # ========================================

    def get_toggl_settings(self) -> Dict:
        """Get Toggl client and extraction tunables."""
        return self._config.get('toggl', {})

    def get_timetastic_settings(self) -> Dict:
        """Get Timetastic client and extraction tunables."""
        return self._config.get('timetastic', {})

    def get_retry_config(self) -> Dict:
        """Get backoff configuration shared by both clients."""
        return self._config.get('retry', {})

    def get_database_config(self) -> Dict:
        """Get database pool configuration."""
        return self._config.get('database', {})

    def get_etl_config(self) -> Dict:
        """Get ETL configuration."""
        return self._config.get('etl', {})

    def get_logging_config(self) -> Dict:
        """Get logging configuration."""
        return self._config.get('logging', {})

    def get_scheduler_config(self) -> Dict:
        """Get scheduler configuration."""
        return self._config.get('scheduler', {})

    def get_user_matching_config(self) -> Dict:
        """Get user matching ignore-lists and candidate email domains."""
        return self._config.get('user_matching', {})


def _require_env(keys: List[str], label: str = None) -> Dict[str, str]:
    """Read environment keys, failing with every missing key listed at once."""
    load_dotenv()
    values = {key: os.getenv(key) for key in keys}
    missing = [key for key, value in values.items() if not value]

    if missing:
        scope = f" for {label}" if label else ""
        raise ConfigurationError(
            f"Missing required env vars{scope}: {', '.join(missing)}",
            missing
        )

    return values


def get_sync_config() -> Dict[str, str]:
    """Get the full set of credentials both sources and the database need."""
    env = _require_env(TOGGL_KEYS + TIMETASTIC_KEYS + DATABASE_KEYS)
    return {
        'toggl_api_token': env['TOGGL_API_TOKEN'],
        'toggl_workspace_id': env['TOGGL_WORKSPACE_ID'],
        'toggl_organization_id': env['TOGGL_ORGANIZATION_ID'],
        'timetastic_api_token': env['TIMETASTIC_API_TOKEN'],
        'database_url': env['DATABASE_URL'],
    }


def get_toggl_config() -> Dict[str, str]:
    """Get only Toggl credentials (allows running Toggl sync without a Timetastic token)."""
    env = _require_env(TOGGL_KEYS + DATABASE_KEYS, 'Toggl')
    return {
        'toggl_api_token': env['TOGGL_API_TOKEN'],
        'toggl_workspace_id': env['TOGGL_WORKSPACE_ID'],
        'toggl_organization_id': env['TOGGL_ORGANIZATION_ID'],
        'database_url': env['DATABASE_URL'],
    }


def get_timetastic_config() -> Dict[str, str]:
    """Get only Timetastic credentials."""
    env = _require_env(TIMETASTIC_KEYS + DATABASE_KEYS, 'Timetastic')
    return {
        'timetastic_api_token': env['TIMETASTIC_API_TOKEN'],
        'database_url': env['DATABASE_URL'],
    }


def get_database_url() -> str:
    """Get the shared database connection string."""
    return _require_env(DATABASE_KEYS, 'database')['DATABASE_URL']
