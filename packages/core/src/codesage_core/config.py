import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "openai_model": "gpt-4o",
    "anthropic_model": "claude-sonnet-4-20250514",
    "provider_timeout": 30,
    "github_timeout": 15,
    "token_exchange_timeout": 10,
    "max_attempts": 3,
    "backoff_base": 2.0,
    "token_safety_margin": 300,  # seconds before expiry at which the installation token is refreshed
    "github_api_url": "https://api.github.com",
    "mock_on_exhaustion": True,  # fall back to the mock analysis when every configured provider failed
    "store": "sqlite",
    "store_path": ".codesage.db",
    "workers": 1,
}

_ENV_CREDENTIALS = {
    "openai_api_key": "OPENAI_API_KEY",
    "anthropic_api_key": "ANTHROPIC_API_KEY",
    "github_app_id": "GITHUB_APP_ID",
    "github_private_key_path": "GITHUB_APP_PRIVATE_KEY_PATH",
    "github_installation_id": "GITHUB_INSTALLATION_ID",
}


def load_config(config_path: str = ".codesage.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .codesage.yml in the current directory
      3. CLI argument overrides

    Credentials always come from the environment, never from the file.
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

    for key, env_var in _ENV_CREDENTIALS.items():
        config[key] = os.environ.get(env_var)

    return config


def is_provider_configured(api_key: Optional[str]) -> bool:
    return bool(api_key and api_key.strip())


def is_platform_configured(config: dict) -> bool:
    """True when every GitHub App credential needed to mint installation tokens is set."""
    return all(
        config.get(key) and str(config[key]).strip()
        for key in ("github_app_id", "github_private_key_path", "github_installation_id")
    )
