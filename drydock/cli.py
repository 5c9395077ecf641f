"""
Drydock CLI entry point.

Usage:
    drydock [OPTIONS] COMMAND [ARGS]...

Commands:
    serve      Run the HTTP API
    maintain   Run one reconciliation pass (cron)
    status     Print pool counts and health
    provision  Provision servers into the pool
"""

import asyncio
import json
from typing import Annotated, Any

import typer

from drydock.config import Settings, get_settings
from drydock.errors import ConfigError
from drydock.log import configure_logging
from drydock.services.pool import open_pool_manager

app = typer.Typer(
    name="drydock",
    help="Pre-booted server pool manager",
    no_args_is_help=True,
)


def _load_settings() -> Settings:
    try:
        settings = get_settings()
    except ConfigError as exc:
        typer.echo(f"Configuration error: {exc.message}", err=True)
        for error in exc.details.get("errors", []):
            location = ".".join(str(part) for part in error.get("loc", ()))
            typer.echo(f"  {location}: {error.get('msg')}", err=True)
        raise typer.Exit(code=2)

    configure_logging(settings.logging.level, json_output=settings.logging.json_output)
    return settings


def _print_json(payload: dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


@app.command()
def serve(
    host: Annotated[str | None, typer.Option("--host", "-H", help="Bind address")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Bind port")] = None,
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from drydock.main import create_app

    settings = _load_settings()
    uvicorn.run(
        create_app(settings),
        host=host or settings.server.host,
        port=port or settings.server.port,
        log_config=None,
    )


@app.command()
def maintain() -> None:
    """Run one reconciliation pass: reap, replenish, probe readiness."""
    settings = _load_settings()

    async def _run() -> dict[str, Any]:
        async with open_pool_manager(settings) as pool:
            before = await pool.status.get_pool_status()
            result = await pool.reconciler.maintain_pool()
            after = await pool.status.get_pool_status()
        return {
            "before": before.to_dict(),
            "after": after.to_dict(),
            "provisioned": result.provisioned,
            "cleaned": result.cleaned,
            "promoted": result.promoted,
            "purged": result.purged,
            "orphaned": result.orphaned,
            "errors": result.errors,
        }

    _print_json(asyncio.run(_run()))


@app.command()
def status() -> None:
    """Print pool counts and health."""
    settings = _load_settings()

    async def _run() -> dict[str, Any]:
        async with open_pool_manager(settings) as pool:
            pool_status = await pool.status.get_pool_status()
        health = pool_status.health
        return {
            "pool": pool_status.to_dict(),
            "health": {"healthy": health.healthy, "message": health.message},
        }

    payload = asyncio.run(_run())
    _print_json(payload)
    if not payload["health"]["healthy"]:
        raise typer.Exit(code=1)


@app.command()
def provision(
    count: Annotated[int, typer.Argument(min=1, max=10, help="Servers to provision")] = 1,
) -> None:
    """Provision servers into the pool (clipped to max pool size)."""
    settings = _load_settings()

    async def _run() -> dict[str, Any]:
        async with open_pool_manager(settings) as pool:
            result = await pool.provisioner.provision_servers(count)
            pool_status = await pool.status.get_pool_status()
        return {
            "provisioned": result.provisioned,
            "errors": result.errors,
            "pool": pool_status.counts(),
        }

    _print_json(asyncio.run(_run()))


if __name__ == "__main__":
    app()
