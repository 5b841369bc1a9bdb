"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List
from urllib.parse import urlparse

import yaml

from .errors import ConfigurationError


DEFAULT_CONFIG: Dict[str, Any] = {
    'discourse': {
        'base_url': None,
        'api_key': None,
        'api_username': 'system',
        'site_base_url': '',
    },
    'import': {
        'source_label': 'Google+',
        'global_tags': ['gplus'],
        'min_title_words': 3,
        'max_title_words': 14,
        'min_title_characters': 12,
        'max_title_length': 254,
        'min_post_characters': 12,
        'missing_media_text': '<i>missing/deleted media</i>',
    },
    'advanced': {
        'request_timeout': 30,
        'max_retries': 3,
        'retry_backoff_factor': 0.5,
        'rate_limit': 0.0,
        'verify_ssl': True,
    },
    'migration': {
        'mode': 'import',
        'dry_run': False,
        'show_progress': True,
        'mapping_file': 'gplus-mappings.json',
        'mapping_save_interval': 50,
    },
    'logging': {
        'level': None,
        'file': None,
    },
}


@dataclass
class ImportSettings:
    """Rendering and title tunables taken from the ``import`` and ``discourse`` sections."""

    source_label: str = 'Google+'
    global_tags: List[str] = field(default_factory=lambda: ['gplus'])
    min_title_words: int = 3
    max_title_words: int = 14
    min_title_characters: int = 12
    max_title_length: int = 254
    min_post_characters: int = 12
    missing_media_text: str = '<i>missing/deleted media</i>'
    site_base_url: str = ''

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ImportSettings':
        section = config.get('import', {})
        defaults = DEFAULT_CONFIG['import']
        return cls(
            source_label=section.get('source_label', defaults['source_label']),
            global_tags=list(section.get('global_tags', defaults['global_tags']) or []),
            min_title_words=section.get('min_title_words', defaults['min_title_words']),
            max_title_words=section.get('max_title_words', defaults['max_title_words']),
            min_title_characters=section.get('min_title_characters', defaults['min_title_characters']),
            max_title_length=section.get('max_title_length', defaults['max_title_length']),
            min_post_characters=section.get('min_post_characters', defaults['min_post_characters']),
            missing_media_text=section.get('missing_media_text', defaults['missing_media_text']),
            site_base_url=get_nested(config, 'discourse.site_base_url', '') or ''
        )


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Values missing from the file are filled from ``DEFAULT_CONFIG``.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        config_data = cls._substitute_env_vars_recursive(config_data)

        return cls.with_defaults(config_data)

    @classmethod
    def with_defaults(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """Deep-merge ``config`` over ``DEFAULT_CONFIG``."""
        def merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
            merged = copy.deepcopy(base)
            for key, value in override.items():
                if isinstance(value, dict) and isinstance(merged.get(key), dict):
                    merged[key] = merge(merged[key], value)
                else:
                    merged[key] = value
            return merged

        return merge(DEFAULT_CONFIG, config)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigurationError: If validation fails
        """
        mode = get_nested(config, 'migration.mode', 'import')
        if mode not in ['import', 'update']:
            raise ConfigurationError("migration.mode must be 'import' or 'update'")

        cls._validate_required_field(config, 'discourse.base_url')
        cls._validate_required_field(config, 'discourse.api_key')
        cls._validate_required_field(config, 'discourse.api_username')
        cls._validate_url(get_nested(config, 'discourse.base_url'), 'discourse.base_url')

        for key in ('min_title_words', 'max_title_words', 'min_title_characters',
                    'max_title_length', 'min_post_characters'):
            value = get_nested(config, f'import.{key}')
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigurationError(f"import.{key} must be a non-negative integer")

        if get_nested(config, 'import.max_title_words') < get_nested(config, 'import.min_title_words'):
            raise ConfigurationError("import.max_title_words must not be below import.min_title_words")

        global_tags = get_nested(config, 'import.global_tags', [])
        if not isinstance(global_tags, list) or not all(isinstance(t, str) for t in global_tags):
            raise ConfigurationError("import.global_tags must be a list of strings")

        timeout = get_nested(config, 'advanced.request_timeout', 30)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigurationError("advanced.request_timeout must be a positive number")

        max_retries = get_nested(config, 'advanced.max_retries', 3)
        if not isinstance(max_retries, int) or max_retries < 0:
            raise ConfigurationError("advanced.max_retries must be a non-negative integer")

        if not get_nested(config, 'migration.mapping_file'):
            raise ConfigurationError("Missing required configuration: migration.mapping_file")

        save_interval = get_nested(config, 'migration.mapping_save_interval', 50)
        if not isinstance(save_interval, int) or isinstance(save_interval, bool) or save_interval < 1:
            raise ConfigurationError("migration.mapping_save_interval must be a positive integer")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('migration', 'logging'):
            merged.setdefault(section, {})

        if getattr(args, 'mode', None):
            merged['migration']['mode'] = args.mode

        if getattr(args, 'dry_run', None) is not None:
            merged['migration']['dry_run'] = args.dry_run

        if getattr(args, 'progress', None) is not None:
            merged['migration']['show_progress'] = args.progress

        if getattr(args, 'mapping_file', None):
            merged['migration']['mapping_file'] = args.mapping_file

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config: dict, field_path: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config, field_path)
        if value is None or value == '':
            raise ConfigurationError(f"Missing required configuration: {field_path}")

        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ConfigurationError(
                f"Configuration field '{field_path}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ConfigurationError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ConfigurationError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "discourse.base_url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config

    for key in path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


__all__ = ['ConfigLoader', 'ImportSettings', 'DEFAULT_CONFIG', 'get_nested']
