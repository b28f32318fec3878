"""
Azure capacity inventory - Configuration Management

Supports loading configuration from:
1. YAML config file (--config)
2. Environment variables (AZINV_*)
3. Command-line arguments (highest priority)

Config file example:
```yaml
output: "./reports"
log_level: INFO
lookback_hours: 48
subscriptions:
  - "Production"
  - ${AZINV_EXTRA_SUBSCRIPTION}  # env var substitution
reports:
  - sql
  - storage
```
"""
import logging
import os
import re
import stat
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .constants import ALL_REPORTS, DEFAULT_LOG_LEVEL, DEFAULT_LOOKBACK_HOURS, DEFAULT_OUTPUT_DIR

logger = logging.getLogger(__name__)

# Default config file locations (checked in order)
DEFAULT_CONFIG_PATHS = [
    './azinv-config.yaml',
    './azinv-config.yml',
    '~/.azinv/config.yaml',
    '~/.azinv/config.yml',
]

# Mapping from config keys to env vars
ENV_VAR_MAPPING = {
    'output': 'AZINV_OUTPUT',
    'log_level': 'AZINV_LOG_LEVEL',
    'lookback_hours': 'AZINV_LOOKBACK_HOURS',
    'subscriptions': 'AZINV_SUBSCRIPTIONS',
    'reports': 'AZINV_REPORTS',
}

LIST_KEYS = ('subscriptions', 'reports')

DEFAULTS: Dict[str, Any] = {
    'output': DEFAULT_OUTPUT_DIR,
    'log_level': DEFAULT_LOG_LEVEL,
    'lookback_hours': DEFAULT_LOOKBACK_HOURS,
    'subscriptions': [],
    'reports': list(ALL_REPORTS),
}


class ConfigError(ValueError):
    """Raised for config values that cannot be used."""


def _substitute_env_vars(value: Any) -> Any:
    """Substitute ${ENV_VAR} patterns in string values."""
    if isinstance(value, str):
        # Pattern: ${VAR_NAME} or ${VAR_NAME:-default}
        pattern = r'\$\{([^}:]+)(?::-([^}]*))?\}'

        def replace(match):
            var_name = match.group(1)
            default = match.group(2) or ''
            return os.environ.get(var_name, default)

        return re.sub(pattern, replace, value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _split_list(value: Any) -> List[str]:
    """Normalize a comma-separated string or list into a list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(',')
    else:
        items = [str(v) for v in value]
    return [v.strip() for v in items if v and v.strip()]


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load configuration from a YAML file."""
    path = Path(config_path).expanduser()

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    file_mode = path.stat().st_mode
    if file_mode & (stat.S_IWGRP | stat.S_IWOTH):
        logger.warning(f"Config file {config_path} is writable by others. "
                       f"Consider: chmod 600 {config_path}")

    logger.info(f"Loading config from {path}")

    with open(path) as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    return _substitute_env_vars(config)


def find_default_config() -> Optional[str]:
    """Find a config file in default locations."""
    for path in DEFAULT_CONFIG_PATHS:
        expanded = Path(path).expanduser()
        if expanded.exists():
            return str(expanded)
    return None


def load_env_config() -> Dict[str, Any]:
    """Load configuration from environment variables."""
    config: Dict[str, Any] = {}

    for config_key, env_var in ENV_VAR_MAPPING.items():
        value = os.environ.get(env_var)
        if value is not None:
            config[config_key] = value

    return config


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Merge multiple config dicts. Later configs override earlier ones."""
    result: Dict[str, Any] = {}

    for config in configs:
        for key, value in config.items():
            if isinstance(value, dict) and isinstance(result.get(key), dict):
                result[key] = merge_configs(result[key], value)
            elif value is not None:
                result[key] = value

    return result


def args_to_config(args) -> Dict[str, Any]:
    """Convert argparse args to config dict format."""
    config: Dict[str, Any] = {}

    arg_mapping = {
        'output': 'output',
        'log_level': 'log_level',
        'lookback_hours': 'lookback_hours',
        'subscription': 'subscriptions',
        'report': 'reports',
    }

    for arg_name, config_key in arg_mapping.items():
        value = getattr(args, arg_name, None)
        # Empty repeatable flags mean "not given"
        if value is not None and value != []:
            config[config_key] = value

    return config


def normalize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply defaults and coerce types; raises ConfigError for bad values."""
    result = merge_configs(DEFAULTS, config)

    for key in LIST_KEYS:
        result[key] = _split_list(result.get(key))

    try:
        result['lookback_hours'] = int(result['lookback_hours'])
    except (TypeError, ValueError):
        raise ConfigError(f"lookback_hours must be an integer, got {result['lookback_hours']!r}")
    if result['lookback_hours'] <= 0:
        raise ConfigError("lookback_hours must be positive")

    reports = [r.lower() for r in result['reports']]
    if 'all' in reports:
        reports = list(ALL_REPORTS)
    unknown = [r for r in reports if r not in ALL_REPORTS]
    if unknown:
        raise ConfigError(f"Unknown report(s): {', '.join(unknown)}")
    result['reports'] = reports

    result['log_level'] = str(result['log_level']).upper()
    result['output'] = str(result['output'])
    return result


def load_config(args) -> Dict[str, Any]:
    """
    Load configuration from all sources and merge them.

    Priority (highest to lowest):
    1. CLI arguments
    2. Config file (--config or default location)
    3. Environment variables

    Returns the merged, normalized config dict.
    """
    configs = []

    env_config = load_env_config()
    if env_config:
        logger.debug("Loaded config from environment variables")
        configs.append(env_config)

    config_path = getattr(args, 'config', None)
    if config_path:
        configs.append(load_config_file(config_path))
    else:
        default_config = find_default_config()
        if default_config:
            logger.info(f"Found default config file: {default_config}")
            configs.append(load_config_file(default_config))

    configs.append(args_to_config(args))

    return normalize_config(merge_configs(*configs))


def generate_sample_config() -> str:
    """Generate a sample config file content."""
    return '''# Azure capacity inventory configuration
#
# Environment variable substitution supported:
#   ${VAR_NAME}           - required env var
#   ${VAR_NAME:-default}  - env var with default value

# Directory (or https://<account>.blob.core.windows.net/<container> URL)
# the CSV reports are written to
output: "./reports"

# Logging level: DEBUG, INFO, WARNING, ERROR
log_level: INFO

# How far back to look for the latest Azure Monitor data point
lookback_hours: 48

# Subscriptions to scan, by id or display name
# (default: every Enabled subscription the caller can read)
# subscriptions:
#   - "xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx"
#   - "Production"

# Reports produced by collect.py: sql, storage, vm (or all)
reports:
  - sql
  - storage
  - vm
'''
