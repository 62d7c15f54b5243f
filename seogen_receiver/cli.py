"""
SEOgen Receiver - Command Line Interface

Usage:
    seogen-receiver serve
    seogen-receiver init-db
    seogen-receiver duplicates scan
    seogen-receiver duplicates cleanup --dry-run
    seogen-receiver secret show
    seogen-receiver secret rotate
    seogen-receiver pull JOB_ID

Every command accepts --env-file to load a dotenv file before settings are
read.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional

import click
from dotenv import load_dotenv

from .config import configure_logging, get_settings, reset_settings
from .container import ReceiverContainer, build_container


def _load_container(ctx: click.Context) -> ReceiverContainer:
    container = ctx.obj.get("container") if ctx.obj else None
    if container is None:
        container = build_container(get_settings())
        ctx.obj["container"] = container
        ctx.call_on_close(lambda: container.pool.close() if container.pool else None)
    return container


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@click.group()
@click.option(
    "--env-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Load environment variables from this dotenv file first",
)
@click.pass_context
def cli(ctx: click.Context, env_file: Optional[Path]) -> None:
    """SEOgen callback receiver."""
    ctx.ensure_object(dict)
    if env_file is not None:
        load_dotenv(env_file, override=True)
        reset_settings()
    if "container" not in ctx.obj:
        configure_logging(get_settings())


@cli.command()
@click.option("--host", default=None, help="Bind host (default: HOST setting)")
@click.option("--port", default=None, type=int, help="Bind port (default: PORT setting)")
def serve(host: Optional[str], port: Optional[int]) -> None:
    """Run the HTTP receiver with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "seogen_receiver.main:app",
        host=host or settings.HOST,
        port=port or settings.PORT,
    )


@cli.command("init-db")
def init_db() -> None:
    """Create receiver tables in DATABASE_URL."""
    from .db import close_pool, ensure_schema, open_pool

    settings = get_settings()
    if not settings.uses_database:
        raise click.ClickException("DATABASE_URL is not set")

    pool = open_pool(settings.DATABASE_URL)
    try:
        ensure_schema(pool)
    finally:
        close_pool(pool)
    click.echo("Schema ready")


# =============================================================================
# Duplicates
# =============================================================================


@cli.group()
def duplicates() -> None:
    """Find and clean up duplicate pages."""


@duplicates.command("scan")
@click.pass_context
def duplicates_scan(ctx: click.Context) -> None:
    """Report duplicate groups without changing anything."""
    reconciler = _load_container(ctx).reconciler
    _echo_json({"summary": reconciler.summary().to_dict(), "groups": reconciler.find_duplicates()})


@duplicates.command("cleanup")
@click.option("--dry-run", is_flag=True, help="Show the plan without trashing")
@click.pass_context
def duplicates_cleanup(ctx: click.Context, dry_run: bool) -> None:
    """Keep one page per canonical key and trash the rest."""
    report = _load_container(ctx).reconciler.cleanup(dry_run=dry_run)
    _echo_json(report.to_dict())
    verb = "Would trash" if dry_run else "Trashed"
    click.echo(f"{verb} {report.trashed} duplicate page(s) across {report.total_keys} key(s)")


# =============================================================================
# Callback secret
# =============================================================================


@cli.group()
def secret() -> None:
    """Manage the shared callback secret."""


@secret.command("show")
@click.pass_context
def secret_show(ctx: click.Context) -> None:
    """Print the callback secret, generating it on first use."""
    click.echo(_load_container(ctx).config.get_or_create_callback_secret())


@secret.command("rotate")
@click.confirmation_option(prompt="Rotating breaks callbacks until the API is updated. Continue?")
@click.pass_context
def secret_rotate(ctx: click.Context) -> None:
    """Replace the callback secret with a new random one."""
    click.echo(_load_container(ctx).config.rotate_callback_secret())


# =============================================================================
# Pull import
# =============================================================================


@cli.command()
@click.argument("job_id")
@click.pass_context
def pull(ctx: click.Context, job_id: str) -> None:
    """Pull and import one batch of pending results for JOB_ID."""
    from .services.pull_importer import GenerationApiClient, PullImporter

    container = _load_container(ctx)
    settings = container.settings
    client = GenerationApiClient(
        settings.SEOGEN_API_URL,
        container.config.get_license_key(),
        timeout=settings.PULL_HTTP_TIMEOUT_SECONDS,
    )
    try:
        summary = PullImporter(
            container.coordinator,
            client,
            max_items=settings.PULL_BATCH_MAX_ITEMS,
            max_seconds=settings.PULL_BATCH_MAX_SECONDS,
        ).run_import_batch(job_id)
    finally:
        client.close()

    _echo_json(asdict(summary))
    if summary.failed:
        raise SystemExit(1)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
