"""Environment settings - loads credentials and sync options from .env.

Priority:
1. Environment variables (highest priority)
2. .env file values
3. Default values in this file
"""

import ipaddress
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from caddy_twingate.exceptions import ConfigurationError
from caddy_twingate.models import CleanupConfig

# Project root: src/caddy_twingate/core/settings.py -> project_root/
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
ENV_FILE_PATH = PROJECT_ROOT / ".env"


def _validate_ip(value: str | None) -> str | None:
    if not value:
        return None
    try:
        ipaddress.ip_address(value)
    except ValueError as e:
        raise ValueError(f"caddy_address must be a valid IP address, got: {value}") from e
    return value


class TwingateConfig(BaseModel):
    """Pre-validated configuration handed to the sync service.

    Mirrors the JSON shape of the Caddy ``twingate`` app block.
    """

    tenant: str = Field(..., min_length=1, description="Twingate tenant (acme in acme.twingate.com)")
    remote_network: str = Field(default="", description="Target Remote Network; defaults to Caddy-Managed")
    caddy_address: str | None = Field(default=None, description="Address Resources point at; auto-detected if empty")
    resource_cleanup: CleanupConfig = Field(default_factory=CleanupConfig)

    @field_validator("caddy_address")
    @classmethod
    def check_caddy_address(cls, value: str | None) -> str | None:
        return _validate_ip(value)


class EnvSettings(BaseSettings):
    """Environment variables for credentials and runtime options."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # Twingate
    # ============================================
    twingate_api_key: str = ""
    twingate_tenant: str = ""
    twingate_remote_network: str = ""

    # ============================================
    # Caddy
    # ============================================
    caddy_address: str = ""  # Auto-detected if empty
    caddy_admin_url: str = "http://localhost:2019"

    # ============================================
    # Resource cleanup
    # ============================================
    resource_cleanup_enabled: bool = False
    resource_cleanup_dry_run: bool = False

    # ============================================
    # Runtime
    # ============================================
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    page_size: int = Field(default=100, ge=1, le=1000)
    sync_timeout_seconds: float = Field(default=300.0, gt=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("caddy_address")
    @classmethod
    def check_caddy_address(cls, value: str) -> str:
        return _validate_ip(value) or ""

    def require_api_key(self) -> str:
        if not self.twingate_api_key:
            raise ConfigurationError("TWINGATE_API_KEY environment variable is required")
        return self.twingate_api_key

    def to_twingate_config(self) -> TwingateConfig:
        """Build the sync configuration; the tenant must be set."""
        if not self.twingate_tenant:
            raise ConfigurationError("tenant is required (set TWINGATE_TENANT)")
        return TwingateConfig(
            tenant=self.twingate_tenant,
            remote_network=self.twingate_remote_network,
            caddy_address=self.caddy_address or None,
            resource_cleanup=CleanupConfig(
                enabled=self.resource_cleanup_enabled,
                dry_run=self.resource_cleanup_dry_run,
            ),
        )


def get_settings() -> EnvSettings:
    try:
        return EnvSettings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e
