"""
Configuration Manager Module
Handles loading and accessing application configuration from YAML files and environment variables.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv


DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    'database': {
        'path': './metrics.db',
        'pool_size': 5,
        'max_overflow': 10,
        'threads': 4,
    },
    'loader': {
        'source_dir': './example-data',
        'load_on_startup': True,
        'batch_size': 500,
        'reload_schedule': '',
    },
    'scheduler': {
        'enabled': True,
        'aggregation_interval_minutes': 60,
        'run_on_startup': True,
    },
    'api': {
        'host': '0.0.0.0',
        'port': 8080,
        'debug': False,
    },
    'logging': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'file': '',
        'max_bytes': 10485760,
        'backup_count': 5,
    },
}


class ConfigManager:
    """Manages application configuration from YAML files and environment variables.

    One instance is created by the process owner and passed to whatever needs it.
    """

    def __init__(self, config_dir: Optional[Path] = None, load_env: bool = True):
        """
        Load configuration.

        Args:
            config_dir: Directory holding config.yaml. Falls back to CONFIG_DIR
                and the default locations when omitted.
            load_env: Whether to read a .env file into the environment first
        """
        if load_env:
            load_dotenv()

        self._config_dir = Path(config_dir) if config_dir else self._find_config_dir()
        self._config = self._load_configuration()

    def _load_configuration(self) -> Dict:
        """Load config.yaml and merge it over the defaults."""
        loaded = {}
        if self._config_dir is not None:
            loaded = self._load_yaml_with_env(self._config_dir / 'config.yaml')

        merged = {}
        for section, defaults in DEFAULT_CONFIG.items():
            merged[section] = dict(defaults)
            merged[section].update(loaded.get(section) or {})
        return merged

    def _find_config_dir(self) -> Optional[Path]:
        """Find the configuration directory, or None when there is none."""
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

        return None

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

    @property
    def config_dir(self) -> Optional[Path]:
        return self._config_dir

    def get_database_config(self) -> Dict:
        """Get analytical store configuration."""
        return self._config['database']

    def get_loader_config(self) -> Dict:
        """Get bulk loader configuration."""
        return self._config['loader']

    def get_scheduler_config(self) -> Dict:
        """Get scheduler configuration."""
        return self._config['scheduler']

    def get_api_config(self) -> Dict:
        """Get HTTP server configuration."""
        return self._config['api']

    def get_logging_config(self) -> Dict:
        """Get logging configuration."""
        return self._config['logging']

    def reload(self) -> None:
        """Reload configuration from files."""
        self._config = self._load_configuration()
