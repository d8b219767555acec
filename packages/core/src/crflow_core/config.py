import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "api_base_url": "http://localhost:8080/api",
    "api_key": None,
    "base_ref": "main",
    "cache": "json",  # "json" = ~/.crflow/preferences.json; "none" disables the preference cache
    "cache_path": None,  # None = ~/.crflow/preferences.json
    "cache_expiry_days": 30,
    "recent_limit": 20,
    "exclude": [],  # fnmatch patterns or directory names to skip (e.g. "migrations/", "*.min.js")
    "request_timeout": 30,
    "retry_count": 3,
}

REQUIRED_KEYS = ("api_base_url", "api_key")

# Environment variables win over both defaults and the config file.
_ENV_OVERRIDES = {
    "api_base_url": "CRFLOW_API_BASE_URL",
    "api_key": "CRFLOW_API_KEY",
    "cache_path": "CRFLOW_CACHE_PATH",
}


def load_config(config_path: str = ".crflow.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .crflow.yml in the current directory
      3. CLI argument overrides
      4. Environment variables for endpoints and credentials
    """
    config = {**DEFAULT_CONFIG, "exclude": list(DEFAULT_CONFIG["exclude"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    for key, env_var in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            config[key] = value

    return config


def check_config(config: dict) -> list[str]:
    """Return the required keys that are missing or empty."""
    return [key for key in REQUIRED_KEYS if not config.get(key)]


def masked(config: dict) -> dict:
    """Return a copy of ``config`` with secrets shortened for display."""
    result = {}
    for key, value in config.items():
        if value and ("key" in key.lower() or "secret" in key.lower() or "token" in key.lower()):
            result[key] = f"{str(value)[:4]}..."
        else:
            result[key] = value
    return result
