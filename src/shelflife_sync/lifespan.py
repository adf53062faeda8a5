"""Lifespan management for store client startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from .config import load_config
from .config_loader import discover_config_files, load_hierarchical_config
from .config_schema import build_config, yaml_fallbacks
from .core.async_utils import init_semaphore, run_sync
from .core.client import DocumentStoreClient

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr so stdout stays clean for command output."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def store_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage store client startup and shutdown.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Create DocumentStoreClient and validate connection
    - Fail fast if the store is unreachable

    On shutdown:
    - Close every HTTP session the client opened

    Args:
        config_overrides: Optional dict with config values from CLI (url, api_token, insecure, debug)

    Yields:
        Dict with 'client' (DocumentStoreClient) and 'config' (Config)

    Raises:
        RuntimeError: If configuration is invalid or the store connection fails.
    """
    logger.info("Store client starting...")

    # CLI args > env vars (.env loaded first) > YAML config > defaults
    try:
        load_dotenv()

        fallbacks: dict[str, Any] | None = None
        sources = []
        config_files = discover_config_files()
        if config_files:
            unified = build_config(load_hierarchical_config())
            fallbacks = yaml_fallbacks(unified)
            sources.append(f"config file: {config_files[0]}")

        overrides = config_overrides or {}
        config = load_config(
            url=overrides.get("url"),
            api_token=overrides.get("api_token"),
            insecure=overrides.get("insecure", False),
            debug=overrides.get("debug", False),
            yaml_fallbacks=fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        logger.info("Store URL: %s", config.store_url)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure SHELFLIFE_STORE_URL is set."
        ) from e

    logger.info("Validating store connection...")
    client = DocumentStoreClient(config)
    try:
        version = await run_sync(client.validate_connection)
    except Exception as e:
        client.close()
        logger.error("Failed to connect to store: %s", e)
        _stderr_print("ERROR: Store connection failed.")
        _stderr_print(f"  {e}")
        raise RuntimeError(
            f"Store connection failed: {e}. Check SHELFLIFE_STORE_URL and SHELFLIFE_API_TOKEN."
        ) from e

    logger.info("Connected to document store version %s", version or "unknown")
    init_semaphore(config.max_parallel_requests)
    logger.debug("Parallel requests: %d", config.max_parallel_requests)

    try:
        yield {"client": client, "config": config}
    finally:
        client.close()
        logger.info("Store client shut down")
