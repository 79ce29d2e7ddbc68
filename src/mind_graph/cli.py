"""Command-line entry point for mind-graph."""

from __future__ import annotations

import logging
import sys

import click

from .commands import download as download_cmd
from .commands import ingest as ingest_cmd
from .core.config import ConfigManager, DEFAULT_CONFIG_PATH, NEGATIVE_POLICIES, SIZE_SELECTORS, SPLITS
from .core.paths import get_data_dir

# Setup logging early so submodules inherit sane defaults
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@click.group()
@click.option(
    "--config",
    default=str(DEFAULT_CONFIG_PATH),
    show_default=True,
    help="Path to config file (defaults to data_dir/config/config.yaml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, config: str, verbose: bool) -> None:
    """mind-graph - build a news recommendation graph from the MIND dataset."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


@cli.command("ingest")
@click.argument("size", type=click.Choice(SIZE_SELECTORS))
@click.argument("server")
@click.argument("token")
@click.option("--split", type=click.Choice(SPLITS), help="Archive split to ingest (default: dataset.split)")
@click.option(
    "--negatives",
    type=click.Choice(NEGATIVE_POLICIES),
    help="Link non-clicked impressions as Ignored or fold them into Viewed (default: ingest.negative_impressions)",
)
@click.option("--max-in-flight", type=click.IntRange(min=1), help="Concurrent article units (default: 20)")
@click.option("--commit-every", type=click.IntRange(min=1), help="Impressions between commits (default: 10000)")
@click.pass_context
def ingest(
    ctx: click.Context,
    size: str,
    server: str,
    token: str,
    split: str | None,
    negatives: str | None,
    max_in_flight: int | None,
    commit_every: int | None,
) -> None:
    """Download MIND SIZE and ingest it into the graph store at SERVER."""
    try:
        summary = ingest_cmd.run(
            ctx.obj["config_path"],
            size,
            server,
            token,
            split=split,
            negatives=negatives,
            max_in_flight=max_in_flight,
            commit_every=commit_every,
        )
        click.echo(
            f"✅ Done! {summary.articles} articles, {summary.impressions} impressions ingested"
        )
    except Exception as exc:  # pragma: no cover - click echoes the message
        click.echo(f"❌ Ingest failed: {exc}", err=True)
        sys.exit(1)


@cli.command("download")
@click.argument("size", type=click.Choice(SIZE_SELECTORS))
@click.pass_context
def download(ctx: click.Context, size: str) -> None:
    """Download the MIND SIZE archives and the document-type map."""
    try:
        download_cmd.run(ctx.obj["config_path"], size)
        click.echo(f"✅ MIND {size} downloaded to {get_data_dir()}")
    except Exception as exc:  # pragma: no cover - click echoes the message
        click.echo(f"❌ Download failed: {exc}", err=True)
        sys.exit(1)


@cli.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show configuration and runtime directories."""
    try:
        config_manager = ConfigManager(ctx.obj["config_path"])
        click.echo(f"📄 Config file: {config_manager.config_path}")

        if config_manager.validate_config():
            click.echo("✅ Configuration is valid")
        else:
            click.echo("❌ Configuration validation failed")
            return

        dataset = config_manager.get_section("dataset")
        ingest_cfg = config_manager.get_section("ingest")
        click.echo(f"📂 Data directory: {get_data_dir()}")
        click.echo(f"📦 Archives: {dataset.get('data_dir')} (split: {dataset.get('split', 'train')})")
        click.echo(
            f"⚙️  Max in flight: {ingest_cfg.get('max_in_flight')}, "
            f"commit every: {ingest_cfg.get('commit_every')}, "
            f"negative impressions: {ingest_cfg.get('negative_impressions')}"
        )

    except Exception as exc:  # pragma: no cover - click echoes the message
        click.echo(f"❌ Error checking status: {exc}", err=True)


if __name__ == "__main__":  # pragma: no cover - script entry
    cli()
