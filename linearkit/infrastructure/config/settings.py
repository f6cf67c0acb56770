"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a YAML
configuration file (~/.linearkit/config.yaml), then assembling a
validated ToolkitConfig for the composition root.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from linearkit.core.batch_executor import DEFAULT_BATCH_SIZE
from linearkit.core.session_manager import PERSISTENCE_DISK, PERSISTENCE_MEMORY, SessionConfig
from linearkit.domain.errors import ConfigError
from linearkit.infrastructure.cache.response_cache import DEFAULT_MAX_ITEMS, DEFAULT_TTL_SECONDS
from linearkit.infrastructure.persistence.session_store import DEFAULT_SESSION_DIR
from linearkit.infrastructure.resilience.query_executor import ExecutorConfig
from linearkit.infrastructure.transport.http_transport import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".linearkit"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

# --- Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


@dataclass
class CacheConfig:
    enabled: bool = True
    ttl: float = DEFAULT_TTL_SECONDS
    max_size: int = DEFAULT_MAX_ITEMS


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class ToolkitConfig:
    """Everything the composition root needs to build a Toolkit."""
    executor: ExecutorConfig
    cache: CacheConfig = field(default_factory=CacheConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    batch_size: int = DEFAULT_BATCH_SIZE
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """Raises ConfigError listing every invalid setting."""
        errors: List[str] = []
        if not self.executor.api_key:
            errors.append("apiKey: LINEAR_API_KEY is required")
        if not str(self.executor.endpoint).startswith(("http://", "https://")):
            errors.append(f"endpoint: Invalid endpoint URL: {self.executor.endpoint}")
        if self.executor.timeout <= 0:
            errors.append("timeout: Timeout must be positive")
        if self.executor.retry_attempts < 0:
            errors.append("retryAttempts: must be zero or more")
        if self.executor.retry_delay <= 0:
            errors.append("retryDelay: must be positive")
        if self.cache.ttl <= 0:
            errors.append("cache.ttl: Cache TTL must be positive")
        if self.cache.max_size <= 0:
            errors.append("cache.maxSize: must be positive")
        if self.session.persistence_type not in (PERSISTENCE_MEMORY, PERSISTENCE_DISK):
            errors.append(f"sessionPersistence: must be 'memory' or 'disk', got {self.session.persistence_type!r}")
        if self.session.cache_ttl <= 0:
            errors.append("sessionCacheTTL: must be positive")
        if self.batch_size <= 0:
            errors.append("batchSize: must be positive")
        if errors:
            raise ConfigError("Configuration validation failed:\n" + "\n".join(errors), details={"errors": errors})


def load_configuration(config_file: Optional[Path] = None, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Test overrides (set_config_for_testing)
    2. Environment Variables
    3. .env file
    4. YAML configuration file
    5. Default values

    Args:
        config_file: Path to the YAML configuration file
            (defaults to ~/.linearkit/config.yaml).
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}
    config_file = config_file or DEFAULT_CONFIG_FILE

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        with open(config_file, "r") as f:
            yaml_config = yaml.safe_load(f)
        if isinstance(yaml_config, dict):
            _config.update(yaml_config)
            logger.info(f"Loaded configuration from YAML: {config_file}")
        elif yaml_config is not None:
            logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (override=False: ENV VARS take precedence)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path and load_dotenv(dotenv_path=dotenv_path, override=False):
        logger.info(f"Loaded environment variables from: {dotenv_path}")

    _loaded = True
    logger.info("Configuration loading process completed.")


def reset_configuration() -> None:
    """Forgets everything loaded so the next load_configuration reads again."""
    global _config, _loaded
    _config = {}
    _loaded = False


def _coerce(value: str) -> Any:
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (key upper-cased, dots as underscores)
    3. YAML config (dotted keys walk nested mappings)
    4. Default value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace(".", "_")
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    node: Any = _config
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            node = None
            break
        node = node[part]
    if node is not None:
        return node

    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _as_number(key: str, value: Any, cast: Any) -> Any:
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Configuration validation failed:\n{key}: expected a number, got {value!r}") from e


def build_toolkit_config(overrides: Optional[Dict[str, Any]] = None) -> ToolkitConfig:
    """Assembles and validates a ToolkitConfig from the loaded settings.

    Args:
        overrides: Keys (same names as get_config) taking precedence over
            every other source.

    Raises:
        ConfigError: If any setting is missing or invalid.
    """
    load_configuration()
    overrides = overrides or {}

    def setting(key: str, default: Any = None) -> Any:
        if key in overrides:
            return overrides[key]
        return get_config(key, default)

    config = ToolkitConfig(
        executor=ExecutorConfig(
            api_key=str(setting("LINEAR_API_KEY", "") or ""),
            endpoint=str(setting("LINEAR_API_ENDPOINT", DEFAULT_ENDPOINT)),
            timeout=_as_number("REQUEST_TIMEOUT", setting("REQUEST_TIMEOUT", DEFAULT_TIMEOUT_SECONDS), float),
            retry_attempts=_as_number("RETRY_ATTEMPTS", setting("RETRY_ATTEMPTS", 3), int),
            retry_delay=_as_number("RETRY_DELAY", setting("RETRY_DELAY", 1.0), float),
        ),
        cache=CacheConfig(
            enabled=_as_bool(setting("CACHE_ENABLED", True)),
            ttl=_as_number("CACHE_TTL", setting("CACHE_TTL", DEFAULT_TTL_SECONDS), float),
            max_size=_as_number("CACHE_MAX_SIZE", setting("CACHE_MAX_SIZE", DEFAULT_MAX_ITEMS), int),
        ),
        session=SessionConfig(
            cache_ttl=_as_number("SESSION_CACHE_TTL", setting("SESSION_CACHE_TTL", 3600), float),
            persistence_type=str(setting("SESSION_PERSISTENCE", PERSISTENCE_MEMORY)).lower(),
            persistence_dir=Path(setting("SESSION_DIR", DEFAULT_SESSION_DIR)),
        ),
        batch_size=_as_number("BATCH_SIZE", setting("BATCH_SIZE", DEFAULT_BATCH_SIZE), int),
        logging=LoggingConfig(
            level=str(setting("LOG_LEVEL", "INFO")).upper(),
            file=setting("LOG_FILE"),
        ),
    )
    config.validate()
    return config


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
