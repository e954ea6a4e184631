"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and an optional
YAML configuration file (~/.clinicscraper/config.yaml).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".clinicscraper"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_MAX_CONCURRENCY = 2
DEFAULT_GROQ_MODEL = "llama-3.3-70b-versatile"
DEFAULT_REQUEST_TIMEOUT_S = 60.0

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


class MissingCredentialError(RuntimeError):
    """Raised when a required API key is not configured."""

    def __init__(self, env_var: str):
        self.env_var = env_var
        super().__init__(
            f"Missing required environment variable: {env_var}. "
            "Copy .env.example to .env and fill in your API keys."
        )


def load_configuration(config_file: Optional[Path] = None, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file (defaults to ~/.clinicscraper/config.yaml).
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}
    config_file = config_file or DEFAULT_CONFIG_FILE

    # 1. YAML file (lowest priority)
    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file; override=False so real environment variables win
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path and load_dotenv(dotenv_path=dotenv_path, override=False):
        logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug(".env file not found at or above current directory.")

    _loaded = True
    logger.debug("Configuration loading process completed.")


def reset_configuration() -> None:
    """Forgets loaded configuration so the next load_configuration re-reads it."""
    global _config, _loaded
    _config = {}
    _loaded = False


def _coerce(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def get_config(key: str, default: Any = None, coerce: bool = True) -> Any:
    """Get a configuration value by key.

    Environment values are coerced to bool/int/float unless ``coerce`` is
    False, which keeps credentials and paths as the exact strings given.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (key upper-cased, dots become underscores)
    3. YAML config
    4. Default value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace(".", "_")
    if env_key in os.environ:
        value = os.environ[env_key]
        return _coerce(value) if coerce else value

    if key in _config:
        return _config[key]

    # Nested YAML lookup, e.g. 'logging.level' -> {'logging': {'level': ...}}
    node: Any = _config
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Convenience Functions ---

def get_groq_api_key() -> Optional[str]:
    key = get_config("GROQ_API_KEY", coerce=False) or get_config("groq.api_key", coerce=False)
    return str(key) if key else None


def get_serpapi_api_key() -> Optional[str]:
    key = get_config("SERPAPI_API_KEY", coerce=False) or get_config("serpapi.api_key", coerce=False)
    return str(key) if key else None


def get_max_concurrency() -> int:
    """Default classification concurrency (MAX_CONCURRENCY), falling back to 2."""
    value = get_config("MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY)
    try:
        concurrency = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-integer MAX_CONCURRENCY={value!r}; using {DEFAULT_MAX_CONCURRENCY}.")
        return DEFAULT_MAX_CONCURRENCY
    return concurrency if concurrency >= 1 else DEFAULT_MAX_CONCURRENCY


def get_groq_model() -> str:
    return str(get_config("groq.model", DEFAULT_GROQ_MODEL))


def get_request_timeout() -> float:
    return float(get_config("groq.request_timeout_s", DEFAULT_REQUEST_TIMEOUT_S))


def require_credential(env_var: str, value: Optional[str]) -> str:
    """Returns the value or raises MissingCredentialError naming the variable."""
    if not value:
        raise MissingCredentialError(env_var)
    return value


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Set configuration values that override everything else (tests only)."""
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
