"""
Configuration loading and management with template support.

Resolves the sync configuration of a root directory from its config file or
the defaults, with environment variable overrides.
"""

import json
import os
import re
from pathlib import Path
from string import Template
from typing import Any, Dict, Optional, Union
import logging

from pydantic import ValidationError

from core.models.config import SyncConfig, GlobalSettings
from .defaults import (
    CONFIG_DIR_NAME, CONFIG_FILE_NAME, ENV_VAR_MAPPING, STRING_ENV_KEYS,
    get_default_sync_config
)

logger = logging.getLogger(__name__)


def collection_prefix_for(name: str) -> str:
    """Derive a collection-safe prefix from a root directory name"""
    prefix = re.sub(r'[^a-z0-9-]+', '-', name.lower()).strip('-')
    return prefix or "root"


class ConfigurationLoader:
    """Load and manage sync configurations with template support"""

    def __init__(self, global_settings: Optional[GlobalSettings] = None):
        self.global_settings = global_settings or GlobalSettings()
        self.config_cache: Dict[str, SyncConfig] = {}

    @staticmethod
    def config_file_for(root: Union[str, Path]) -> Path:
        return Path(root) / CONFIG_DIR_NAME / CONFIG_FILE_NAME

    def load_config(
        self,
        root: Union[str, Path],
        name: Optional[str] = None
    ) -> SyncConfig:
        """Load or create the configuration for a root directory"""
        root = Path(root).resolve()

        if not name:
            name = root.name or "root"

        cache_key = str(root)
        if cache_key in self.config_cache:
            return self.config_cache[cache_key]

        config_file = self.config_file_for(root)

        if config_file.exists():
            config = self._load_existing_config(config_file, root, name)
        else:
            config = self._create_config(root, name)

        self.config_cache[cache_key] = config
        return config

    def _load_existing_config(self, config_file: Path, root: Path, name: str) -> SyncConfig:
        """Load existing configuration file with validation"""
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            data = self._apply_env_overrides(data)
            data['root'] = root
            data.setdefault('name', name)

            return SyncConfig(**data)

        except (json.JSONDecodeError, ValidationError, ValueError) as e:
            logger.error(f"Failed to load config from {config_file}: {e}")
            return self._create_config(root, name)

    def _create_config(self, root: Path, name: str) -> SyncConfig:
        """Create new configuration from the default template"""
        config_data = get_default_sync_config()

        substitutions = {
            'name': name,
            'root': str(root),
            'collection_prefix': collection_prefix_for(name),
            'qdrant_url': self.global_settings.default_qdrant_url
        }
        config_data = self._substitute_template_vars(config_data, substitutions)

        config_data = self._apply_env_overrides(config_data)
        config_data['root'] = root

        return SyncConfig(**config_data)

    def _substitute_template_vars(
        self,
        data: Any,
        substitutions: Dict[str, str]
    ) -> Any:
        """Recursively substitute template variables in configuration"""
        if isinstance(data, dict):
            return {
                key: self._substitute_template_vars(value, substitutions)
                for key, value in data.items()
            }
        elif isinstance(data, list):
            return [
                self._substitute_template_vars(item, substitutions)
                for item in data
            ]
        elif isinstance(data, str):
            return Template(data).safe_substitute(substitutions)
        else:
            return data

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration"""
        for env_var, config_path in ENV_VAR_MAPPING.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                self._set_nested_value(config_data, config_path, env_value)

        return config_data

    def _set_nested_value(self, data: Dict[str, Any], path: str, value: str) -> None:
        """Set nested dictionary value using dot notation path"""
        keys = path.split('.')
        current = data

        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        if path in STRING_ENV_KEYS:
            current[keys[-1]] = value
        else:
            current[keys[-1]] = self._convert_env_value(value)

    def _convert_env_value(self, value: str) -> Any:
        """Convert environment variable string to appropriate type"""
        # Boolean conversion
        if value.lower() in ('true', 'yes', 'on'):
            return True
        elif value.lower() in ('false', 'no', 'off'):
            return False

        # Numeric conversion
        try:
            if '.' in value:
                return float(value)
            else:
                return int(value)
        except ValueError:
            pass

        return value

    def save_config(self, config: SyncConfig) -> Path:
        """
        Write a configuration to ``<root>/.vfs-sync/config.json``.

        Raises:
            OSError: if the file cannot be written
        """
        config_file = self.config_file_for(config.root)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        data = config.to_dict()
        # The root is implied by the file location
        data.pop('root', None)

        with open(config_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.info(f"Saved configuration to {config_file}")
        self.config_cache[str(config.root)] = config
        return config_file

    def clear_cache(self) -> None:
        """Clear configuration cache"""
        self.config_cache.clear()
        logger.info("Configuration cache cleared")
