from pathlib import Path

import pytest

from shopmon.domain.models.errors import ConfigurationError
from shopmon.infrastructure.config.settings import StorefrontSettings, load_settings

CREDENTIALS = {
    "SHOPIFY_STORE_DOMAIN": "env-shop.myshopify.com",
    "SHOPIFY_STOREFRONT_PUBLIC_TOKEN": "env-token",
}


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        "store_domain: yaml-shop.myshopify.com\n"
        "public_token: yaml-token\n"
        "api_version: '2024-10'\n"
        "max_retries: 5\n"
        "headers:\n"
        "  X-From-Yaml: 'yes'\n",
        encoding="utf-8",
    )
    return path


def load(tmp_path: Path, environ, config_file=None, env_file=None, **kwargs) -> StorefrontSettings:
    return load_settings(
        config_file=config_file or tmp_path / "absent.yaml",
        env_file=env_file or tmp_path / "absent.env",
        environ=environ,
        **kwargs,
    )


def test_defaults(tmp_path: Path):
    settings = load(tmp_path, dict(CREDENTIALS))
    assert settings.api_version == "2025-04"
    assert settings.timeout == 30.0
    assert (settings.max_retries, settings.retry_delay, settings.max_retry_delay, settings.backoff_factor) == (3, 0.5, 5.0, 2.0)
    assert settings.cache_ttl == 300
    assert settings.enable_caching is True
    assert settings.max_history_length == 1000


def test_yaml_values_are_used(tmp_path: Path, config_file: Path):
    settings = load(tmp_path, {}, config_file=config_file)
    assert settings.store_domain == "yaml-shop.myshopify.com"
    assert settings.api_version == "2024-10"
    assert settings.max_retries == 5
    assert settings.custom_headers == {"X-From-Yaml": "yes"}


def test_environment_overrides_dotenv_and_yaml(tmp_path: Path, config_file: Path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "SHOPIFY_STORE_DOMAIN=dotenv-shop.myshopify.com\nSHOPIFY_TIMEOUT=12\n",
        encoding="utf-8",
    )
    settings = load(
        tmp_path,
        {"SHOPIFY_STORE_DOMAIN": "env-shop.myshopify.com"},
        config_file=config_file,
        env_file=env_file,
    )
    assert settings.store_domain == "env-shop.myshopify.com"
    assert settings.timeout == 12.0
    assert settings.public_token == "yaml-token"


def test_values_are_coerced(tmp_path: Path):
    environ = dict(
        CREDENTIALS,
        SHOPIFY_MAX_RETRIES="4",
        SHOPIFY_RETRY_DELAY="0.25",
        SHOPIFY_ENABLE_CACHING="false",
        SHOPIFY_HISTORY_FILE=str(tmp_path / "h.json"),
        SHOPIFY_HEADER_X_TEAM="storefront",
    )
    settings = load(tmp_path, environ)
    assert settings.max_retries == 4
    assert settings.retry_delay == 0.25
    assert settings.enable_caching is False
    assert settings.history_file == tmp_path / "h.json"
    assert settings.custom_headers == {"X-TEAM": "storefront"}

    policy = settings.retry_policy()
    assert (policy.max_retries, policy.initial_delay) == (4, 0.25)


@pytest.mark.parametrize("key, value", [
    ("SHOPIFY_MAX_RETRIES", "many"),
    ("SHOPIFY_TIMEOUT", "soon"),
    ("SHOPIFY_ENABLE_CACHING", "maybe"),
])
def test_malformed_values_raise(tmp_path: Path, key, value):
    with pytest.raises(ConfigurationError):
        load(tmp_path, dict(CREDENTIALS, **{key: value}))


def test_invalid_retry_policy_raises_configuration_error(tmp_path: Path):
    settings = load(tmp_path, dict(CREDENTIALS, SHOPIFY_BACKOFF_FACTOR="0.5"))
    with pytest.raises(ConfigurationError):
        settings.retry_policy()


def test_missing_credentials(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="SHOPIFY_STORE_DOMAIN"):
        load(tmp_path, {})
    with pytest.raises(ConfigurationError, match="TOKEN"):
        load(tmp_path, {"SHOPIFY_STORE_DOMAIN": "shop.myshopify.com"})

    settings = load(tmp_path, {}, require_credentials=False)
    assert not settings.has_credentials


def test_private_token_alone_is_enough(tmp_path: Path):
    settings = load(tmp_path, {
        "SHOPIFY_STORE_DOMAIN": "shop.myshopify.com",
        "SHOPIFY_STOREFRONT_PRIVATE_TOKEN": "private",
    })
    assert settings.has_credentials
    assert settings.private_token == "private"


def test_malformed_yaml_raises(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load(tmp_path, dict(CREDENTIALS), config_file=path)
