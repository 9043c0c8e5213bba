"""caddy-twingate CLI - keep Twingate Resources in step with Caddy routes.

Usage:
    caddy-twingate discover --config caddy.json      # Show discovered resources
    caddy-twingate summary                           # Preview against Twingate
    caddy-twingate sync --cleanup --dry-run          # Sync, report stale resources
    caddy-twingate check                             # Test API connectivity
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from caddy_twingate import __version__
from caddy_twingate.caddy import fetch_http_app, load_http_app_from_file
from caddy_twingate.core.logging_config import setup_logging
from caddy_twingate.core.network import resolve_caddy_address
from caddy_twingate.core.settings import EnvSettings, TwingateConfig, get_settings
from caddy_twingate.discovery import HttpApp, RouteDiscoverer
from caddy_twingate.exceptions import AggregateSyncError, CaddyTwingateError, ConfigurationError
from caddy_twingate.inventory import TwingateClient
from caddy_twingate.models import CleanupConfig
from caddy_twingate.service import preview, reconcile
from caddy_twingate.sync import SyncResult

app = typer.Typer(
    name="caddy-twingate",
    help="Sync Caddy reverse_proxy routes to Twingate Resources",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

EXIT_ERROR = 1
EXIT_PARTIAL_FAILURE = 2

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Caddy JSON/YAML config file (default: read from admin API)"),
]
AdminUrlOption = Annotated[
    str | None,
    typer.Option("--admin-url", help="Caddy admin API URL (default: CADDY_ADMIN_URL)"),
]
AddressOption = Annotated[
    str | None,
    typer.Option("--address", "-a", help="Address Resources point at (default: CADDY_ADDRESS or auto-detect)"),
]
NetworkOption = Annotated[
    str | None,
    typer.Option("--network", "-n", help="Target Remote Network (default: TWINGATE_REMOTE_NETWORK)"),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logs")]


# ============================================
# Helpers
# ============================================
def _load_app(settings: EnvSettings, config_path: Path | None, admin_url: str | None) -> HttpApp:
    if config_path is not None:
        return load_http_app_from_file(config_path)
    return asyncio.run(fetch_http_app(admin_url or settings.caddy_admin_url))


def _build_config(
    settings: EnvSettings,
    address: str | None = None,
    network: str | None = None,
    cleanup: bool | None = None,
    dry_run: bool | None = None,
) -> TwingateConfig:
    config = settings.to_twingate_config()
    updates: dict = {}
    if address:
        updates["caddy_address"] = address
    if network:
        updates["remote_network"] = network
    if cleanup is not None or dry_run is not None:
        updates["resource_cleanup"] = CleanupConfig(
            enabled=config.resource_cleanup.enabled if cleanup is None else cleanup,
            dry_run=config.resource_cleanup.dry_run if dry_run is None else dry_run,
        )
    if not updates:
        return config
    try:
        return TwingateConfig.model_validate({**config.model_dump(), **updates})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid option: {e}") from e


def build_client(settings: EnvSettings, config: TwingateConfig) -> TwingateClient:
    return TwingateClient(
        tenant=config.tenant,
        api_key=settings.require_api_key(),
        timeout=settings.http_timeout_seconds,
    )


def _fail(message: str, code: int = EXIT_ERROR) -> None:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    raise typer.Exit(code)


def _settings(verbose: bool) -> EnvSettings:
    try:
        settings = get_settings()
    except ConfigurationError as e:
        setup_logging(verbose)
        _fail(str(e))
    setup_logging(verbose, settings.log_level)
    return settings


def _print_result(result: SyncResult) -> None:
    table = Table(title="Twingate sync")
    table.add_column("Resource")
    table.add_column("Action")
    table.add_column("Details", overflow="fold")

    styles = {"created": "green", "updated": "yellow", "unchanged": "dim", "failed": "red"}
    for outcome in result.outcomes:
        action = outcome.action.value
        table.add_row(outcome.mapping.name, f"[{styles[action]}]{action}[/]", escape(outcome.message))
    for cleanup in result.cleanup_outcomes:
        action = cleanup.action.value
        style = "red" if action == "failed" else "magenta"
        table.add_row(cleanup.name, f"[{style}]{action}[/]", escape(cleanup.message))

    console.print(table)
    console.print(
        f"created={result.created} updated={result.updated} unchanged={result.unchanged} "
        f"upsert_errors={result.upsert_errors} deleted={result.deleted} "
        f"delete_errors={result.delete_errors}" + (" (dry run)" if result.dry_run else "")
    )


# ============================================
# Commands
# ============================================
@app.command()
def discover(
    config_path: ConfigOption = None,
    admin_url: AdminUrlOption = None,
    address: AddressOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print mappings as JSON")] = False,
    verbose: VerboseOption = False,
) -> None:
    """Show the Twingate Resources Caddy's routes map to."""
    settings = _settings(verbose)

    try:
        http_app = _load_app(settings, config_path, admin_url)
        caddy_address = resolve_caddy_address(address or settings.caddy_address)
    except CaddyTwingateError as e:
        _fail(str(e))

    result = RouteDiscoverer(caddy_address=caddy_address).discover_endpoints(http_app)
    mappings = [ep.to_resource_mapping(caddy_address) for ep in result.endpoints]

    if as_json:
        console.print_json(
            json.dumps([{"name": m.name, "alias": m.alias, "address": m.address} for m in mappings])
        )
        return

    table = Table(title=f"Discovered resources ({len(mappings)})")
    table.add_column("Name")
    table.add_column("Alias")
    table.add_column("Address")
    for mapping in mappings:
        table.add_row(mapping.name, mapping.alias or "[dim]<none>[/dim]", mapping.address)
    console.print(table)

    for diagnostic in result.diagnostics:
        err_console.print(f"[yellow]Warning:[/yellow] {escape(diagnostic)}")


@app.command()
def summary(
    config_path: ConfigOption = None,
    admin_url: AdminUrlOption = None,
    address: AddressOption = None,
    network: NetworkOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Preview what a sync would create or update. Nothing is changed."""
    settings = _settings(verbose)

    async def _run():
        config = _build_config(settings, address=address, network=network)
        async with build_client(settings, config) as client:
            return await preview(http_app, config, client, page_size=settings.page_size)

    try:
        http_app = _load_app(settings, config_path, admin_url)
        result = asyncio.run(_run())
    except CaddyTwingateError as e:
        _fail(str(e))

    console.print_json(result.model_dump_json())


@app.command()
def sync(
    config_path: ConfigOption = None,
    admin_url: AdminUrlOption = None,
    address: AddressOption = None,
    network: NetworkOption = None,
    cleanup: Annotated[
        bool | None,
        typer.Option("--cleanup/--no-cleanup", help="Delete resources no longer routed by Caddy"),
    ] = None,
    dry_run: Annotated[
        bool | None,
        typer.Option("--dry-run/--no-dry-run", help="Only report what cleanup would delete"),
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the result as JSON")] = False,
    verbose: VerboseOption = False,
) -> None:
    """Sync Caddy routes to Twingate Resources."""
    settings = _settings(verbose)

    async def _run():
        config = _build_config(settings, address=address, network=network, cleanup=cleanup, dry_run=dry_run)
        async with build_client(settings, config) as client:
            return await reconcile(
                http_app,
                config,
                client,
                page_size=settings.page_size,
                timeout=settings.sync_timeout_seconds,
            )

    try:
        http_app = _load_app(settings, config_path, admin_url)
        result = asyncio.run(_run())
    except AggregateSyncError as e:
        if as_json:
            console.print_json(json.dumps(e.result.to_dict()))
        else:
            _print_result(e.result)
        _fail(str(e), EXIT_PARTIAL_FAILURE)
    except CaddyTwingateError as e:
        _fail(str(e))

    if as_json:
        console.print_json(json.dumps(result.to_dict()))
    else:
        _print_result(result)


@app.command()
def check(verbose: VerboseOption = False) -> None:
    """Test connectivity to the Twingate API."""
    settings = _settings(verbose)

    async def _run() -> None:
        config = settings.to_twingate_config()
        async with build_client(settings, config) as client:
            await client.test_connection()

    try:
        asyncio.run(_run())
    except CaddyTwingateError as e:
        _fail(str(e))

    console.print(f"[green]✓[/green] Connected to Twingate tenant {settings.twingate_tenant}")


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"caddy-twingate {__version__}")


if __name__ == "__main__":
    app()
