"""Runtime configuration for the document store connection.

Reads store settings from CLI args, environment variables, .env files, and
YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    SHELFLIFE_STORE_URL: Document store base URL (required)
    SHELFLIFE_API_TOKEN: Bearer token sent with every request (optional)
    SHELFLIFE_INSECURE: Skip SSL verification (optional, default: false)
    SHELFLIFE_DEBUG: Enable debug logging (optional, default: false)
    SHELFLIFE_MAX_PARALLEL_REQUESTS: Max concurrent store requests (optional, default: 5)
    SHELFLIFE_MAX_BATCH_SIZE: Max ids per batch read (optional, default: 30)
    SHELFLIFE_POLL_INTERVAL: Seconds between watch polls (optional, default: 2.0)
    SHELFLIFE_REQUEST_TIMEOUT: Read timeout in seconds (optional, default: 30)
    SHELFLIFE_SERIALIZE_PER_UID: Queue mutations per uid (optional, default: true)
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, TypeVar
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

N = TypeVar("N", int, float)


@dataclass
class Config:
    store_url: str
    api_token: str | None = None
    insecure: bool = False
    debug: bool = False
    max_parallel_requests: int = 5
    max_batch_size: int = 30
    poll_interval: float = 2.0
    request_timeout: float = 30.0
    serialize_per_uid: bool = True


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the URL is malformed or a numeric setting is out of
            range.
    """
    config.store_url = config.store_url.strip()

    if not config.store_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid store URL '{config.store_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.store_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid store URL '{config.store_url}': URL must include a hostname"
        )

    config.store_url = config.store_url.removesuffix("/")

    if not (1 <= config.max_parallel_requests <= 100):
        raise ValueError(
            f"Invalid max_parallel_requests {config.max_parallel_requests}: "
            "must be between 1 and 100"
        )
    if not (1 <= config.max_batch_size <= 500):
        raise ValueError(
            f"Invalid max_batch_size {config.max_batch_size}: "
            "must be between 1 and 500"
        )
    if config.poll_interval <= 0:
        raise ValueError(
            f"Invalid poll_interval {config.poll_interval}: must be positive"
        )
    if config.request_timeout <= 0:
        raise ValueError(
            f"Invalid request_timeout {config.request_timeout}: must be positive"
        )

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


def _resolve_bool(cli_flag: bool, env_key: str, fallback: Any) -> bool:
    if cli_flag:
        return True
    env_val = _get_bool_env(env_key)
    if env_val is not None:
        return env_val
    return bool(fallback)


def _resolve_number(
    env_key: str,
    fallback: Any,
    default: N,
    cast: Callable[[str], N],
) -> N:
    raw = os.getenv(env_key)
    if raw is not None:
        try:
            return cast(raw)
        except ValueError:
            raise ValueError(
                f"Invalid {env_key} '{raw}': must be a number"
            ) from None
    if fallback is not None:
        return cast(fallback)
    return default


def load_config(
    url: str | None = None,
    api_token: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        url: Override store URL.
        api_token: Override API token.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flattened values from the YAML ``store`` and
            ``sync`` sections, used when CLI arg and env var are unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the store URL is missing after checking all sources,
            or any value is invalid.
    """
    fb = yaml_fallbacks or {}

    store_url = url or os.getenv("SHELFLIFE_STORE_URL") or fb.get("url")
    if not store_url:
        raise ValueError(
            "Store URL not found. Set SHELFLIFE_STORE_URL environment variable, "
            "pass --url CLI argument, or add 'url' to config.yml."
        )

    token = api_token or os.getenv("SHELFLIFE_API_TOKEN") or fb.get("api_token")

    serialize_env = _get_bool_env("SHELFLIFE_SERIALIZE_PER_UID")
    if serialize_env is not None:
        serialize_per_uid = serialize_env
    else:
        serialize_per_uid = bool(fb.get("serialize_per_uid", True))

    config = Config(
        store_url=store_url.strip(),
        api_token=token.strip() if token else None,
        insecure=_resolve_bool(insecure, "SHELFLIFE_INSECURE", fb.get("insecure", False)),
        debug=_resolve_bool(debug, "SHELFLIFE_DEBUG", fb.get("debug", False)),
        max_parallel_requests=_resolve_number(
            "SHELFLIFE_MAX_PARALLEL_REQUESTS",
            fb.get("max_parallel_requests"),
            5,
            int,
        ),
        max_batch_size=_resolve_number(
            "SHELFLIFE_MAX_BATCH_SIZE", fb.get("max_batch_size"), 30, int
        ),
        poll_interval=_resolve_number(
            "SHELFLIFE_POLL_INTERVAL", fb.get("poll_interval"), 2.0, float
        ),
        request_timeout=_resolve_number(
            "SHELFLIFE_REQUEST_TIMEOUT", fb.get("request_timeout"), 30.0, float
        ),
        serialize_per_uid=serialize_per_uid,
    )

    validate_config(config)

    return config
