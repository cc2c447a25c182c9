"""Runtime configuration for the catalog mirror.

Reads catalog API settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.  The resulting ``Config``
is passed explicitly into every component; nothing below this module
reads the process environment.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    CATALOG_API_URL: Catalog API base URL (required in production,
        default http://localhost:3000 otherwise)
    CATALOG_ENV: development, production or test (default: development)
    CATALOG_INSECURE: Skip SSL verification (optional, default: false)
    CATALOG_DEBUG: Enable debug logging (optional, default: false)
    CATALOG_MAX_PARALLEL_REQUESTS: Max parallel HTTP requests (default: 5)
    CATALOG_POLL_INTERVAL: Seconds between sync status checks (default: 5)
    CATALOG_MAX_POLLS: Status checks before a sync times out (default: 60)
    CATALOG_MAX_RETRIES: Retries of a failed status check (default: 3)
    CATALOG_BACKOFF_BASE: Seconds of the first retry delay (default: 1)
    CATALOG_TOKEN_FILE: Path of the token store
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from .sync.session import SyncPolicy

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:3000"
DEFAULT_TOKEN_FILE = str(
    Path.home() / ".config" / "catalog_mirror" / "tokens.json"
)
ENVIRONMENTS = ("development", "production", "test")


@dataclass
class Config:
    api_url: str = DEFAULT_API_URL
    environment: str = "development"
    insecure: bool = False
    debug: bool = False
    max_parallel_requests: int = 5
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    poll_interval: float = 5.0
    max_polls: int = 60
    max_retries: int = 3
    backoff_base: float = 1.0
    token_file: str = DEFAULT_TOKEN_FILE

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def sync_policy(self) -> SyncPolicy:
        """Timing and retry settings for the sync controller."""
        return SyncPolicy(
            interval=self.poll_interval,
            max_polls=self.max_polls,
            max_retries=self.max_retries,
            backoff_base=self.backoff_base,
        )


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the URL is malformed or a numeric setting is out
            of range.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    if config.environment not in ENVIRONMENTS:
        raise ValueError(
            f"Invalid environment '{config.environment}': "
            f"must be one of {', '.join(ENVIRONMENTS)}"
        )

    if config.poll_interval <= 0:
        raise ValueError("poll_interval must be greater than 0")
    if config.max_polls < 1:
        raise ValueError("max_polls must be at least 1")
    if config.max_retries < 0:
        raise ValueError("max_retries cannot be negative")
    if config.backoff_base < 0:
        raise ValueError("backoff_base cannot be negative")

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _resolve_number(
    env_key: str,
    fb: dict,
    fb_key: str,
    default,
    cast,
    low,
    high,
):
    """Resolve a numeric setting: env > YAML > default, range-checked."""
    raw = os.getenv(env_key)
    if raw is None:
        return cast(fb.get(fb_key, default))
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {env_key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {env_key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_config(
    url: str | None = None,
    environment: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    token_file: str | None = None,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        url: Override API URL.
        environment: Override deployment environment.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        token_file: Override token store path.
        yaml_fallbacks: Flat dict of values from the YAML ``api`` and
            ``sync`` sections, used when CLI arg and env var are unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is invalid, or if no API URL is configured
            in production.
    """
    fb = yaml_fallbacks or {}

    final_env = (
        environment
        or os.getenv("CATALOG_ENV")
        or fb.get("environment")
        or "development"
    ).strip()

    api_url = url or os.getenv("CATALOG_API_URL") or fb.get("url")
    if not api_url:
        if final_env == "production":
            raise ValueError(
                "API URL is required in production. Set CATALOG_API_URL "
                "environment variable, pass --url, or add 'url' to config.yml."
            )
        api_url = DEFAULT_API_URL

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("CATALOG_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("CATALOG_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    final_token_file = (
        token_file
        or os.getenv("CATALOG_TOKEN_FILE")
        or fb.get("token_file")
        or DEFAULT_TOKEN_FILE
    )

    config = Config(
        api_url=api_url,
        environment=final_env,
        insecure=final_insecure,
        debug=final_debug,
        max_parallel_requests=_resolve_number(
            "CATALOG_MAX_PARALLEL_REQUESTS",
            fb, "max_parallel_requests", 5, int, 1, 100,
        ),
        connect_timeout=float(fb.get("connect_timeout", 10.0)),
        read_timeout=float(fb.get("read_timeout", 60.0)),
        poll_interval=_resolve_number(
            "CATALOG_POLL_INTERVAL",
            fb, "poll_interval", 5.0, float, 0.01, 3600,
        ),
        max_polls=_resolve_number(
            "CATALOG_MAX_POLLS", fb, "max_polls", 60, int, 1, 10000
        ),
        max_retries=_resolve_number(
            "CATALOG_MAX_RETRIES", fb, "max_retries", 3, int, 0, 20
        ),
        backoff_base=_resolve_number(
            "CATALOG_BACKOFF_BASE",
            fb, "backoff_base", 1.0, float, 0, 600,
        ),
        token_file=str(Path(final_token_file).expanduser()),
    )

    validate_config(config)

    return config
