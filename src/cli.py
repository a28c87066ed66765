"""
Command-line interface for provider-verify.

Provides commands to run the API server, initialize the database,
and run the TTL lifecycle jobs from cron.

Usage:
    provider-verify serve                   # Run the API server
    provider-verify init-db                 # Initialize database
    provider-verify health                  # Check service health
    provider-verify recalculate-confidence  # Apply time decay to scores
    provider-verify cleanup-expired         # Delete rows past their TTL
    provider-verify expiration-stats        # Show TTL breakdown
"""

import asyncio
import sys

import click

from src.config.settings import get_settings
from src.observability.logging import bind_context, setup_logging
from src.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Provider Verify - crowd verification of plan acceptance."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"

    setup_logging()

    # Initialize tracing if enabled
    settings = get_settings()
    if settings.tracing_enabled:
        from src.observability.tracing import setup_tracing

        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        )


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from src.providers.repository import ProviderRepository
    from src.storage.database import Database
    from src.verification.repository import VerificationRepository

    async def run():
        db = Database()
        await db.connect()

        try:
            # Verification tables reference providers and plans
            await ProviderRepository(db).create_tables()
            await VerificationRepository(db).create_tables()
            click.echo("Database initialized successfully")
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}

        try:
            from src.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        settings = get_settings()
        results["admin_configured"] = settings.admin_configured
        results["api_keys_configured"] = bool(settings.api_keys)

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))

        click.echo("-" * 40)

        if results["postgres"]:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the verification API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command("recalculate-confidence")
@click.option("--dry-run", is_flag=True, help="Compute scores without writing")
@click.option("--batch-size", default=None, type=int, help="Records per page")
@click.option("--limit", default=None, type=int, help="Max records to process")
def recalculate_confidence(dry_run: bool, batch_size: int | None, limit: int | None) -> None:
    """Recompute confidence scores so stale records decay.

    Example:
        provider-verify recalculate-confidence --dry-run
        provider-verify recalculate-confidence --limit 500
    """
    from src.storage.database import Database
    from src.verification.decay_job import run_decay_recalculation

    bind_context(job="decay", dry_run=dry_run)

    def progress(processed: int, updated: int) -> None:
        click.echo(f"  processed {processed} records, {updated} changed...")

    async def run():
        db = Database()
        await db.connect()

        try:
            result = await run_decay_recalculation(
                db,
                dry_run=dry_run,
                limit=limit,
                batch_size=batch_size,
                on_progress=progress,
            )
        finally:
            await db.close()

        label = "Dry run" if dry_run else "Recalculation"
        click.echo(f"\n{label} complete in {result.elapsed_seconds:.2f}s")
        click.echo("-" * 40)
        click.echo(f"  Processed: {result.processed}")
        click.echo(f"  {'Would update' if dry_run else 'Updated'}: {result.updated}")
        click.echo(f"  Unchanged: {result.unchanged}")
        click.echo(f"  Errors:    {result.errors}")
        for message in result.error_messages[:10]:
            click.echo(click.style(f"    {message}", fg="red"))

        if result.errors:
            sys.exit(1)

    asyncio.run(run())


@main.command("cleanup-expired")
@click.option("--dry-run", is_flag=True, help="Show counts without deleting")
@click.option("--batch-size", default=None, type=int, help="Rows per DELETE")
def cleanup_expired(dry_run: bool, batch_size: int | None) -> None:
    """Delete reports and acceptance records past their TTL.

    Example:
        provider-verify cleanup-expired --dry-run   # Preview without deleting
        provider-verify cleanup-expired             # Delete expired rows
    """
    from src.storage.database import Database
    from src.verification.cleanup_job import run_expiry_cleanup

    bind_context(job="cleanup", dry_run=dry_run)

    async def run():
        db = Database()
        await db.connect()

        try:
            result = await run_expiry_cleanup(db, dry_run=dry_run, batch_size=batch_size)
        finally:
            await db.close()

        if dry_run:
            click.echo(
                f"\nDry run - would delete {result.expired_reports} reports "
                f"and {result.expired_acceptances} acceptance records"
            )
            click.echo("\nRun without --dry-run to actually delete.")
        else:
            click.echo(
                f"\nDeleted {result.deleted_reports} reports "
                f"and {result.deleted_acceptances} acceptance records"
            )

    asyncio.run(run())


@main.command("expiration-stats")
def expiration_stats() -> None:
    """Show TTL counts for reports and acceptance records."""
    from src.storage.database import Database
    from src.verification.repository import VerificationRepository
    from src.verification.service import utcnow

    async def run():
        db = Database()
        await db.connect()

        try:
            stats = await VerificationRepository(db).expiration_stats(utcnow())
        finally:
            await db.close()

        for table, counts in stats.items():
            click.echo(f"\n{table}")
            click.echo("-" * 40)
            for name, value in counts.items():
                click.echo(f"  {name}: {value}")

    asyncio.run(run())
