"""CLI entry point for the commentary enricher."""

import logging
from pathlib import Path

import typer

from .config import get_config
from .models import ConfigurationError, EnrichmentError
from .runner import DRIVERS, outcome_counts, run_enrichment
from .tools.uploader import Uploader, publish_records, publishable_records, upload_directory

cli = typer.Typer(help="LLM enrichment pipeline for Bible commentary records.")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
def run(
    driver: str = typer.Argument(..., help=f"Driver to run: {', '.join(DRIVERS)}"),
    target: str | None = typer.Argument(None, help="Single record (or introduction) to process"),
    concurrency: int | None = typer.Option(None, "--concurrency", "-c", help="Records in flight"),
    delay: float | None = typer.Option(None, "--delay", "-d", help="Seconds each worker waits between records"),
    language: str | None = typer.Option(None, "--lang", "-l", help="Content language code"),
    refresh_keywords: bool = typer.Option(
        False, "--refresh-keywords", help="Regenerate keywords even when a record has them"
    ),
):
    """Run one enrichment driver over the corpus or a single record."""
    config = get_config()
    configure_logging(config.log_level)

    updates = {}
    if language:
        updates["language"] = language
    if refresh_keywords:
        updates["refresh_keywords"] = True
    if updates:
        config = config.model_copy(update=updates)

    try:
        summary = run_enrichment(
            driver, target, config=config, concurrency=concurrency, inter_call_delay=delay
        )
    except ConfigurationError as e:
        typer.echo(f"❌ Configuration error: {e}", err=True)
        raise typer.Exit(code=1)

    counts = outcome_counts(summary)
    typer.echo(f"📊 {driver}: {counts['processed']} processed")
    typer.echo(f"   ✅ updated: {counts['updated']}")
    typer.echo(f"   ⏭️  skipped: {counts['skipped']}")
    typer.echo(f"   ❌ failed: {counts['failed']}")
    typer.echo(f"⏱️  Runtime: {summary.runtime_sec:.1f} seconds")

    if summary.failed:
        for outcome in summary.outcomes:
            if outcome.error:
                typer.echo(f"   • {Path(outcome.path).name}: {outcome.error_type}: {outcome.error}")
        raise typer.Exit(code=1)


@cli.command()
def upload(
    language: str = typer.Option(..., "--lang", "-l", help="Content language code"),
    kind: str = typer.Option(..., "--kind", "-k", help="File kind: json or audio"),
    directory: Path = typer.Option(..., "--dir", help="Directory holding the files"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log what would be uploaded"),
):
    """Upload record or audio files to object storage."""
    config = get_config()
    configure_logging(config.log_level)

    if not directory.is_dir():
        typer.echo(f"❌ Directory not found: {directory}", err=True)
        raise typer.Exit(code=1)

    try:
        counts = upload_directory(directory, language, kind, Uploader.from_settings(config), dry_run=dry_run)
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"📦 Uploaded: {counts['uploaded']}, failed: {counts['failed']}, skipped: {counts['skipped']}")
    if counts["failed"]:
        raise typer.Exit(code=1)


@cli.command()
def publish(
    target: str | None = typer.Argument(None, help="Single record to publish"),
    language: str | None = typer.Option(None, "--lang", "-l", help="Content language code"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log what would be uploaded"),
):
    """Publish records from the content store to object storage."""
    config = get_config()
    configure_logging(config.log_level)
    if language:
        config = config.model_copy(update={"language": language})

    try:
        paths = publishable_records(config, target)
    except EnrichmentError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)

    counts = publish_records(paths, config.language, Uploader.from_settings(config), dry_run=dry_run)

    typer.echo(f"📦 Published: {counts['uploaded']}, failed: {counts['failed']}, skipped: {counts['skipped']}")
    if counts["failed"]:
        raise typer.Exit(code=1)


@cli.command()
def drivers():
    """List available enrichment drivers."""
    for name, driver_cls in DRIVERS.items():
        doc = (driver_cls.__doc__ or "").strip().splitlines()
        typer.echo(f"{name:14} {doc[0] if doc else ''}")


if __name__ == "__main__":
    cli()
