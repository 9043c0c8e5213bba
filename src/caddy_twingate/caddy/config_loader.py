"""
Load the Caddy http app from a config file or the Caddy admin API.

Accepted shapes:
- a full Caddy config: ``{"apps": {"http": {"servers": ...}}}``
- just the http app: ``{"servers": ...}``
- an empty document (no servers)

Files may be JSON (``caddy adapt`` output) or YAML.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx
import yaml
from pydantic import ValidationError

from caddy_twingate.discovery.routing import HttpApp
from caddy_twingate.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ADMIN_CONFIG_PATH = "/config/"


def load_http_app(data: Mapping[str, Any] | None) -> HttpApp:
    """Build an HttpApp from a decoded Caddy config document."""
    if not data:
        return HttpApp()
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Caddy config root must be a mapping, got {type(data).__name__}")

    if "apps" in data:
        apps = data.get("apps") or {}
        http = apps.get("http") if isinstance(apps, Mapping) else None
        if not http:
            logger.info("Caddy config has no http app")
            return HttpApp()
        data = http

    try:
        return HttpApp.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid Caddy http app config: {e}") from e


def load_http_app_from_file(path: str | Path) -> HttpApp:
    config_path = Path(path).expanduser()
    if not config_path.exists():
        raise ConfigurationError(f"Caddy config file not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse Caddy config {config_path}: {e}") from e

    return load_http_app(data)


async def fetch_http_app(
    admin_url: str,
    timeout: float = 10.0,
    http_client: httpx.AsyncClient | None = None,
) -> HttpApp:
    """
    Read the running config from the Caddy admin API.

    Args:
        admin_url: Admin endpoint, e.g. http://localhost:2019
        timeout: Request timeout in seconds
        http_client: Pre-built client (tests inject a MockTransport here)
    """
    url = admin_url.rstrip("/") + ADMIN_CONFIG_PATH
    client = http_client or httpx.AsyncClient(timeout=timeout)
    try:
        response = await client.get(url)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as e:
        raise ConfigurationError(f"Failed to fetch Caddy config from {url}: {e}") from e
    except ValueError as e:
        raise ConfigurationError(f"Caddy admin API returned invalid JSON: {e}") from e
    finally:
        if http_client is None:
            await client.aclose()

    logger.debug(f"Fetched Caddy config from {url}")
    return load_http_app(data)
