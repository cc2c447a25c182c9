"""Tests for catalog_mirror.config -- env-var config loading and validation.

NOT to be confused with test_config_loader.py (YAML discovery) or
test_config_schema.py (Pydantic models). This tests validate_config()
and load_config() precedence.
"""

import logging

import pytest

from catalog_mirror.config import (
    DEFAULT_API_URL,
    Config,
    load_config,
    validate_config,
)

_ENV_KEYS = [
    "CATALOG_API_URL",
    "CATALOG_ENV",
    "CATALOG_INSECURE",
    "CATALOG_DEBUG",
    "CATALOG_MAX_PARALLEL_REQUESTS",
    "CATALOG_POLL_INTERVAL",
    "CATALOG_MAX_POLLS",
    "CATALOG_MAX_RETRIES",
    "CATALOG_BACKOFF_BASE",
    "CATALOG_TOKEN_FILE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config() -- URL format and numeric ranges."""

    def test_valid_config(self):
        validate_config(Config(api_url="https://catalog.example.com"))

    def test_strips_trailing_slash(self):
        config = Config(api_url="https://catalog.example.com/api/")
        validate_config(config)
        assert config.api_url == "https://catalog.example.com/api"

    def test_invalid_url_no_scheme(self):
        with pytest.raises(
            ValueError, match="must start with http:// or https://"
        ):
            validate_config(Config(api_url="catalog.example.com"))

    def test_url_without_host(self):
        with pytest.raises(ValueError, match="hostname"):
            validate_config(Config(api_url="https://"))

    def test_unknown_environment(self):
        with pytest.raises(ValueError, match="Invalid environment"):
            validate_config(Config(environment="staging"))

    @pytest.mark.parametrize(
        "field, value",
        [
            ("poll_interval", 0),
            ("max_polls", 0),
            ("max_retries", -1),
            ("backoff_base", -0.5),
        ],
    )
    def test_numeric_ranges(self, field, value):
        config = Config()
        setattr(config, field, value)
        with pytest.raises(ValueError):
            validate_config(config)

    def test_insecure_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            validate_config(Config(insecure=True))
        assert "SSL verification disabled" in caplog.text


class TestConfigHelpers:
    def test_sync_policy_mirrors_config(self):
        config = Config(
            poll_interval=2, max_polls=10, max_retries=1, backoff_base=0.5
        )
        policy = config.sync_policy()
        assert policy.interval == 2
        assert policy.max_polls == 10
        assert policy.max_retries == 1
        assert policy.backoff_base == 0.5

    def test_is_production(self):
        assert Config(environment="production").is_production
        assert not Config().is_production


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for precedence: CLI > env > YAML fallbacks > defaults."""

    def test_defaults(self):
        config = load_config()
        assert config.api_url == DEFAULT_API_URL
        assert config.environment == "development"
        assert config.poll_interval == 5.0
        assert config.max_polls == 60
        assert config.max_retries == 3
        assert config.backoff_base == 1.0
        assert config.max_parallel_requests == 5

    def test_production_requires_url(self):
        with pytest.raises(ValueError, match="required in production"):
            load_config(environment="production")

    def test_production_url_from_env(self, monkeypatch):
        monkeypatch.setenv("CATALOG_ENV", "production")
        monkeypatch.setenv("CATALOG_API_URL", "https://api.example.com")
        config = load_config()
        assert config.is_production
        assert config.api_url == "https://api.example.com"

    def test_cli_beats_env(self, monkeypatch):
        monkeypatch.setenv("CATALOG_API_URL", "https://env.example.com")
        config = load_config(url="https://cli.example.com")
        assert config.api_url == "https://cli.example.com"

    def test_env_beats_yaml(self, monkeypatch):
        monkeypatch.setenv("CATALOG_MAX_POLLS", "7")
        config = load_config(
            yaml_fallbacks={"max_polls": 20, "url": "https://yaml.example.com"}
        )
        assert config.max_polls == 7
        assert config.api_url == "https://yaml.example.com"

    def test_yaml_beats_default(self):
        config = load_config(
            yaml_fallbacks={"poll_interval": 0.5, "max_retries": 5}
        )
        assert config.poll_interval == 0.5
        assert config.max_retries == 5

    def test_bool_env_values(self, monkeypatch):
        monkeypatch.setenv("CATALOG_INSECURE", "yes")
        monkeypatch.setenv("CATALOG_DEBUG", "0")
        config = load_config(yaml_fallbacks={"debug": True})
        assert config.insecure is True
        assert config.debug is False

    def test_invalid_number_in_env(self, monkeypatch):
        monkeypatch.setenv("CATALOG_MAX_POLLS", "lots")
        with pytest.raises(ValueError, match="CATALOG_MAX_POLLS"):
            load_config()

    def test_out_of_range_env(self, monkeypatch):
        monkeypatch.setenv("CATALOG_MAX_PARALLEL_REQUESTS", "0")
        with pytest.raises(ValueError, match="between 1 and 100"):
            load_config()

    def test_token_file_expands_user(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        config = load_config(token_file="~/tokens.json")
        assert config.token_file == str(tmp_path / "tokens.json")
