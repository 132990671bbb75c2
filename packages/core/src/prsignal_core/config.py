import os
from pathlib import Path
from typing import Optional

import yaml

from prsignal_core.errors import ConfigError

DEFAULT_CONFIG: dict = {
    "store": "sqlite",  # "sqlite" | "memory"
    "store_path": ".prsignal.db",
    "poll_batch_limit": 50,
    "provider_timeout": 30,  # seconds, applied to every provider call
    "default_poll_interval": 300,
    "stale_after_days": 7,
    "cleanup_retention_days": 30,
    # Job periods in seconds
    "poll_period": 60,
    "metrics_period": 300,
    "health_period": 3600,
    "cleanup_period": 86400,
    # Self-hosted instances; None = the public cloud endpoint
    "github_base_url": None,
    "gitlab_base_url": None,
    "bitbucket_base_url": None,
}

_POSITIVE_KEYS = (
    "poll_batch_limit",
    "provider_timeout",
    "default_poll_interval",
    "stale_after_days",
    "cleanup_retention_days",
    "poll_period",
    "metrics_period",
    "health_period",
    "cleanup_period",
)


def load_config(config_path: str = ".prsignal.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prsignal.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Secrets only ever come from the environment, never from the YAML file.
    config["encryption_key"] = os.environ.get("PRSIGNAL_ENCRYPTION_KEY")

    return config


def validate_config(config: dict) -> dict:
    """Raise ConfigError if any period, limit or timeout is not a positive number."""
    for key in _POSITIVE_KEYS:
        value = config.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"'{key}' must be a positive number, got {value!r}")
    return config
