"""
Collector settings, layered from three sources.

Lowest priority first:
1. Environment variables (RGCOST_SUBSCRIPTION, RGCOST_TOP, ...)
2. A YAML file (--config, else the first of DEFAULT_CONFIG_PATHS that exists)
3. Command-line arguments

String values in the YAML file may reference the environment as
``${NAME}`` or ``${NAME:-fallback}``.
"""
import logging
import os
import re
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .constants import DEFAULT_TOP_RESOURCES

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATHS = [
    './rgcost-config.yaml',
    './rgcost-config.yml',
    '~/.rgcost/config.yaml',
    '~/.rgcost/config.yml',
]

SETTING_KEYS = ('subscription', 'output', 'log_level', 'top', 'export')
ENV_PREFIX = 'RGCOST_'

# argparse dest -> setting key, where the two differ
ARG_ALIASES = {'subscription': 'subscription_id'}

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')
EXPORT_NAMES = ('detailed', 'summary', 'both', 'skip')

_ENV_REFERENCE = re.compile(r'\$\{([^}:]+)(?::-([^}]*))?\}')


@dataclass
class CollectorSettings:
    """Resolved settings for one collector run."""
    subscription: Optional[str] = None
    output: str = '.'
    log_level: str = 'INFO'
    top: int = DEFAULT_TOP_RESOURCES
    export: Optional[str] = None

    @classmethod
    def from_layers(cls, *layers: Dict[str, Any]) -> 'CollectorSettings':
        """Build settings from partial dicts; later layers win, None/'' never override."""
        merged: Dict[str, Any] = {}
        for layer in layers:
            merged.update({k: v for k, v in layer.items() if v is not None and v != ''})

        settings = cls(**merged)
        settings.validate()
        return settings

    def validate(self) -> None:
        """Normalize values in place; raise ValueError on anything unusable."""
        try:
            self.top = int(self.top)
        except (TypeError, ValueError):
            raise ValueError(f"'top' must be a whole number, got {self.top!r}") from None
        if self.top < 0:
            raise ValueError(f"'top' cannot be negative, got {self.top}")

        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"'log_level' must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}")

        if self.export is not None:
            self.export = str(self.export).strip().lower()
            if self.export not in EXPORT_NAMES:
                raise ValueError(f"'export' must be one of {', '.join(EXPORT_NAMES)}, got {self.export!r}")

        self.output = str(self.output)


def expand_env(value: Any) -> Any:
    """Replace ${NAME} / ${NAME:-fallback} references, recursing into lists and dicts."""
    if isinstance(value, dict):
        return {k: expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env(v) for v in value]
    if not isinstance(value, str):
        return value
    return _ENV_REFERENCE.sub(lambda m: os.environ.get(m.group(1), m.group(2) or ''), value)


def read_config_file(config_path: str) -> Dict[str, Any]:
    """
    Read settings from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the top level of the file is not a mapping
    """
    path = Path(config_path).expanduser()
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    if path.stat().st_mode & (stat.S_IRWXG | stat.S_IRWXO):
        logger.warning(f"{path} has loose permissions (readable by group/other); chmod 600 recommended")

    with path.open() as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping of settings")

    unknown = sorted(set(data) - set(SETTING_KEYS))
    if unknown:
        logger.warning(f"Ignoring unknown keys in {path}: {', '.join(unknown)}")

    return expand_env({k: v for k, v in data.items() if k in SETTING_KEYS})


def find_default_config() -> Optional[str]:
    for candidate in DEFAULT_CONFIG_PATHS:
        path = Path(candidate).expanduser()
        if path.is_file():
            return str(path)
    return None


def env_settings() -> Dict[str, Any]:
    """Settings present as RGCOST_* environment variables."""
    values = {}
    for key in SETTING_KEYS:
        env_var = ENV_PREFIX + key.upper()
        if env_var in os.environ:
            values[key] = os.environ[env_var]
    return values


def cli_settings(args) -> Dict[str, Any]:
    """Settings given on the command line (unset options are None)."""
    return {key: getattr(args, ARG_ALIASES.get(key, key), None) for key in SETTING_KEYS}


def load_settings(args) -> CollectorSettings:
    """
    Resolve settings for a run from env, config file and CLI arguments.

    Raises:
        FileNotFoundError: If --config names a missing file
        ValueError: If the file is malformed or a value is invalid
    """
    layers = [env_settings()]

    config_path = getattr(args, 'config', None) or find_default_config()
    if config_path:
        logger.info(f"Loading config from {config_path}")
        layers.append(read_config_file(config_path))

    layers.append(cli_settings(args))
    return CollectorSettings.from_layers(*layers)


def generate_sample_config() -> str:
    """Text of a commented sample config file."""
    levels = ", ".join(LOG_LEVELS)
    exports = ", ".join(EXPORT_NAMES)
    return f'''# Resource Group Cost Collector Configuration
#
# Values may reference environment variables:
#   ${{NAME}}             value of NAME (empty if unset)
#   ${{NAME:-fallback}}   value of NAME, or "fallback" if unset
#
# Every key can also be set as RGCOST_<KEY> in the environment;
# command-line options override both.

# Subscription to report on (default: first enabled subscription)
# subscription: ${{AZURE_SUBSCRIPTION_ID}}

# Directory for CSV/JSON exports and the run log
output: "."

# One of: {levels}
log_level: INFO

# How many of the most expensive resources to list
top: {DEFAULT_TOP_RESOURCES}

# Export without prompting; one of: {exports}
# export: both
'''
