"""Loads configuration settings for the Storefront client.

Sources, lowest to highest priority:
1. YAML configuration file (~/.shopmon/config.yaml)
2. .env file (searched upwards from the current directory)
3. Environment variables

YAML keys are the lowercase field names of StorefrontSettings (plus an
optional `headers` mapping). Environment and .env keys use the SHOPIFY_*
names listed in ENV_KEYS.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values

from shopmon.domain.models.errors import ConfigurationError
from shopmon.domain.models.retry import DEFAULT_RETRY_POLICY, RetryPolicy
from shopmon.infrastructure.cache.response_cache import DEFAULT_TTL_SECONDS
from shopmon.infrastructure.telemetry.history_store import DEFAULT_HISTORY_FILE
from shopmon.infrastructure.transport.http_transport import DEFAULT_API_VERSION, DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".shopmon"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
HEADER_ENV_PREFIX = "SHOPIFY_HEADER_"

ENV_KEYS = {
    "store_domain": "SHOPIFY_STORE_DOMAIN",
    "public_token": "SHOPIFY_STOREFRONT_PUBLIC_TOKEN",
    "private_token": "SHOPIFY_STOREFRONT_PRIVATE_TOKEN",
    "api_version": "SHOPIFY_STOREFRONT_API_VERSION",
    "timeout": "SHOPIFY_TIMEOUT",
    "max_retries": "SHOPIFY_MAX_RETRIES",
    "retry_delay": "SHOPIFY_RETRY_DELAY",
    "max_retry_delay": "SHOPIFY_MAX_RETRY_DELAY",
    "backoff_factor": "SHOPIFY_BACKOFF_FACTOR",
    "cache_ttl": "SHOPIFY_CACHE_TTL",
    "enable_caching": "SHOPIFY_ENABLE_CACHING",
    "history_file": "SHOPIFY_HISTORY_FILE",
    "max_history_length": "SHOPIFY_MAX_HISTORY_LENGTH",
    "warning_percentage": "SHOPIFY_WARNING_PERCENTAGE",
    "buyer_ip": "SHOPIFY_BUYER_IP",
}


@dataclass(frozen=True)
class StorefrontSettings:
    """Resolved configuration. Durations are in seconds."""
    store_domain: Optional[str] = None
    public_token: Optional[str] = None
    private_token: Optional[str] = None
    api_version: str = DEFAULT_API_VERSION
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_RETRY_POLICY.max_retries
    retry_delay: float = DEFAULT_RETRY_POLICY.initial_delay
    max_retry_delay: float = DEFAULT_RETRY_POLICY.max_delay
    backoff_factor: float = DEFAULT_RETRY_POLICY.backoff_factor
    cache_ttl: float = DEFAULT_TTL_SECONDS
    enable_caching: bool = True
    history_file: Path = DEFAULT_HISTORY_FILE
    max_history_length: int = 1000
    warning_percentage: float = 80.0
    buyer_ip: Optional[str] = None
    custom_headers: Dict[str, str] = field(default_factory=dict)

    @property
    def has_credentials(self) -> bool:
        return bool(self.store_domain and (self.public_token or self.private_token))

    def retry_policy(self) -> RetryPolicy:
        try:
            return RetryPolicy(
                max_retries=self.max_retries,
                initial_delay=self.retry_delay,
                max_delay=self.max_retry_delay,
                backoff_factor=self.backoff_factor,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid retry configuration: {e}") from e


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def _load_yaml(config_file: Path) -> Dict[str, Any]:
    if not config_file.is_file():
        logger.debug(f"YAML config file not found: {config_file}")
        return {}
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load or parse YAML config {config_file}: {e}") from e
    if yaml_config is None:
        return {}
    if not isinstance(yaml_config, dict):
        raise ConfigurationError(f"YAML config file {config_file} did not contain a mapping.")
    logger.info(f"Loaded configuration from YAML: {config_file}")
    return yaml_config


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes", "on"):
        return True
    if text in ("false", "0", "no", "off"):
        return False
    raise ConfigurationError(f"Invalid boolean for {key}: {value!r}")


def _coerce_number(key: str, value: Any, kind: type) -> Any:
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid {kind.__name__} for {key}: {value!r}") from e


def load_settings(
    config_file: Optional[Path] = None,
    env_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    require_credentials: bool = True,
) -> StorefrontSettings:
    """Builds StorefrontSettings from YAML, .env and the environment.

    Args:
        config_file: Path to the YAML configuration file (~/.shopmon/config.yaml if None).
        env_file: Path to the .env file (searched upwards from cwd if None).
        environ: Environment mapping (defaults to os.environ).
        require_credentials: Raise when the domain or both tokens are missing.

    Raises:
        ConfigurationError: On unreadable files, malformed values or, when
            required, missing credentials.
    """
    environ = os.environ if environ is None else environ
    yaml_config = _load_yaml(Path(config_file or DEFAULT_CONFIG_FILE))

    dotenv_path = env_file or find_dotenv_path()
    env_values: Dict[str, Optional[str]] = {}
    if dotenv_path and Path(dotenv_path).is_file():
        env_values.update(dotenv_values(dotenv_path))
        logger.info(f"Loaded environment variables from: {dotenv_path}")
    env_values.update(environ)

    raw: Dict[str, Any] = {}
    for name, env_key in ENV_KEYS.items():
        if env_values.get(env_key) not in (None, ""):
            raw[name] = env_values[env_key]
        elif yaml_config.get(name) is not None:
            raw[name] = yaml_config[name]

    headers = {str(k): str(v) for k, v in (yaml_config.get("headers") or {}).items()}
    for key, value in env_values.items():
        if key.startswith(HEADER_ENV_PREFIX) and value:
            header_name = key[len(HEADER_ENV_PREFIX):].replace("_", "-")
            headers[header_name] = value

    values: Dict[str, Any] = {"custom_headers": headers}
    for name, value in raw.items():
        if name in ("timeout", "retry_delay", "max_retry_delay", "backoff_factor", "cache_ttl", "warning_percentage"):
            values[name] = _coerce_number(ENV_KEYS[name], value, float)
        elif name in ("max_retries", "max_history_length"):
            values[name] = _coerce_number(ENV_KEYS[name], value, int)
        elif name == "enable_caching":
            values[name] = _coerce_bool(ENV_KEYS[name], value)
        elif name == "history_file":
            values[name] = Path(str(value)).expanduser()
        else:
            values[name] = str(value)

    settings = StorefrontSettings(**values)
    if require_credentials:
        if not settings.store_domain:
            raise ConfigurationError(f"Missing required configuration: {ENV_KEYS['store_domain']}")
        if not settings.public_token and not settings.private_token:
            raise ConfigurationError(
                f"Missing required configuration: {ENV_KEYS['public_token']} or {ENV_KEYS['private_token']}"
            )
    logger.debug(f"Settings resolved for store {settings.store_domain or '<unset>'} (API {settings.api_version})")
    return settings
