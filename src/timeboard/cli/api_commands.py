"""CLI commands for API management.

This module provides commands for running the Timeboard REST API and
issuing bearer tokens for it.
"""

import sys
from pathlib import Path
from typing import Optional

import click

from timeboard.api.auth import create_token_for_user
from timeboard.api.server import run_server
from timeboard.core.config import ConfigManager


def _load_config(ctx: click.Context, config_path: Optional[str]) -> ConfigManager:
    """Explicit ``--config`` wins over the config loaded by the parent group."""
    if config_path:
        return ConfigManager(Path(config_path))
    parent = (ctx.find_root().obj or {}).get("config")
    return parent or ConfigManager()


@click.group()
def api() -> None:
    """API server management commands."""
    pass


@api.command()
@click.option("--host", default=None, help="Host address (default: from config)")
@click.option("--port", type=int, default=None, help="Port number (default: from config)")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option("--ssl-cert", type=click.Path(exists=True), help="Path to SSL certificate file")
@click.option("--ssl-key", type=click.Path(exists=True), help="Path to SSL key file")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Path to config file")
@click.pass_context
def serve(
    ctx: click.Context,
    host: Optional[str],
    port: Optional[int],
    reload: bool,
    ssl_cert: Optional[str],
    ssl_key: Optional[str],
    config_path: Optional[str],
) -> None:
    """Start the API server.

    Examples:
        timeboard api serve
        timeboard api serve --host 0.0.0.0 --port 8080
        timeboard api serve --ssl-cert cert.pem --ssl-key key.pem
    """
    config = _load_config(ctx, config_path)

    if not config.get("api.enabled", False):
        click.echo(click.style("⚠️  API is not enabled in configuration", fg="yellow"), err=True)
        click.echo("\nTo enable the API, add to your config file:")
        click.echo("  api:")
        click.echo("    enabled: true")
        sys.exit(1)

    config.ensure_api_secret_key()

    final_host = host or config.get("api.host", "localhost")
    final_port = port or config.get("api.port", 8000)

    ssl_cert_path = Path(ssl_cert) if ssl_cert and ssl_key else None
    ssl_key_path = Path(ssl_key) if ssl_cert and ssl_key else None

    protocol = "https" if ssl_cert_path and ssl_key_path else "http"
    click.echo("🚀 Starting Timeboard API server...")
    click.echo(f"   URL: {protocol}://{final_host}:{final_port}")
    click.echo(f"   Docs: {protocol}://{final_host}:{final_port}/docs")
    if reload:
        click.echo("   Mode: Development (auto-reload enabled)")
    click.echo()

    try:
        run_server(
            config=config,
            host=final_host,
            port=final_port,
            reload=reload,
            workers=config.get("api.workers", 1),
            ssl_certfile=ssl_cert_path,
            ssl_keyfile=ssl_key_path,
        )
    except KeyboardInterrupt:
        click.echo("\n\n👋 Shutting down API server...")
    except Exception as e:
        click.echo(click.style(f"❌ Error starting server: {e}", fg="red"), err=True)
        sys.exit(1)


@api.command()
@click.option("--user-id", default="cli-user", help="Subject of the token")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Path to config file")
@click.pass_context
def token(ctx: click.Context, user_id: str, config_path: Optional[str]) -> None:
    """Create a bearer token for the API.

    Examples:
        timeboard api token
        timeboard api token --user-id dashboard
    """
    config = _load_config(ctx, config_path)
    token_data = create_token_for_user(config, user_id=user_id)
    hours = token_data["expires_in"] // 3600

    click.echo("✅ Token created successfully!")
    click.echo()
    click.echo(f"Token: {token_data['access_token']}")
    click.echo(f"Expires in: {hours} hours")
    click.echo()
    click.echo("Use this token in API requests:")
    click.echo(f"  Authorization: Bearer {token_data['access_token']}")
    click.echo()
    host = config.get("api.host", "localhost")
    port = config.get("api.port", 8000)
    click.echo("Example curl command:")
    click.echo(
        f'  curl -H "Authorization: Bearer {token_data["access_token"]}" '
        f"http://{host}:{port}/api/v1/status"
    )
