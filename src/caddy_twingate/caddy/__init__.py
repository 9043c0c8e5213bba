"""Caddy configuration sources."""

from caddy_twingate.caddy.config_loader import fetch_http_app, load_http_app, load_http_app_from_file

__all__ = ["fetch_http_app", "load_http_app", "load_http_app_from_file"]
