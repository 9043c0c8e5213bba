"""Proxy-facing address resolution."""

import logging
import socket

from caddy_twingate.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Any routable address works; a UDP connect sends no packets
PROBE_ADDRESS = ("8.8.8.8", 80)


def get_outbound_ip() -> str:
    """Return the local IPv4 address used for outbound traffic."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(PROBE_ADDRESS)
            return sock.getsockname()[0]
    except OSError as e:
        raise ConfigurationError(f"failed to detect outbound IP: {e}") from e


def resolve_caddy_address(configured: str | None) -> str:
    """
    Return the configured address, or auto-detect the outbound one.

    Raises:
        ConfigurationError: Nothing configured and detection failed
    """
    if configured:
        logger.info(f"Using explicitly configured Caddy address {configured}")
        return configured

    try:
        ip = get_outbound_ip()
    except ConfigurationError as e:
        raise ConfigurationError(
            f"failed to resolve Caddy address: {e}. Consider setting CADDY_ADDRESS explicitly"
        ) from e

    logger.info(f"Auto-detected Caddy address {ip} from outbound interface")
    return ip
