# src/s3_publish/cli.py
"""Command-line interface for the s3-publish tool."""

import asyncio
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TaskID, TextColumn

from s3_publish.config import Config, ConnectConfig, PublishSettings, load_config_file
from s3_publish.diff import SyncReport
from s3_publish.exceptions import ConfigurationError, PublishError
from s3_publish.files import SyncResult, scan_directory
from s3_publish.report import render_report
from s3_publish.signals import GracefulShutdown
from s3_publish.storage import S3Storage

logger: logging.Logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    """Configure rich-based logging for the application."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # Silence noisy loggers
    for logger_name in ["botocore", "aiobotocore", "urllib3"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def _parse_headers(values: Tuple[str, ...]) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for value in values:
        name, sep, content = value.partition("=")
        if not sep or not name.strip():
            raise ConfigurationError(f"Invalid header '{value}', expected KEY=VALUE.")
        headers[name.strip()] = content.strip()
    return headers


def build_config(options: Dict[str, Any]) -> Config:
    """
    Builds the run configuration from the command-line options.

    A ``--config`` file provides the base values; otherwise the connection
    comes from ``PUBLISH_*`` environment variables. Flags given on the
    command line take precedence.

    Args:
        options (Dict[str, Any]): The parsed click options.

    Returns:
        Config: The validated configuration.
    """
    config: Config
    if options["config"] is not None:
        config = load_config_file(Path(options["config"]))
        if options["bucket"]:
            config = dataclasses.replace(
                config,
                connect=dataclasses.replace(config.connect, bucket=options["bucket"]),
            )
    else:
        config = Config(
            connect=ConnectConfig.from_env(bucket=options["bucket"]),
            settings=PublishSettings(root_dir=options["root_dir"] or ""),
        )

    settings: PublishSettings = config.settings
    config = dataclasses.replace(
        config,
        settings=dataclasses.replace(
            settings,
            root_dir=options["root_dir"] or settings.root_dir,
            force=options["force"] or settings.force,
            no_clean=options["no_clean"] or settings.no_clean,
            quiet=settings.quiet and not options["verbose_delete"],
            simulate=options["simulate"] or settings.simulate,
        ),
        headers={**config.headers, **_parse_headers(options["header"])},
        cache_file_name=options["cache_file"] or config.cache_file_name,
    )
    return config


async def main_async(config: Config, source_dir: Path) -> SyncReport:
    """
    Asynchronously publish a directory.

    Args:
        config (Config): The application configuration.
        source_dir (Path): The directory to publish.

    Returns:
        SyncReport: The outcome of the run.
    """
    # Lazily import to keep CLI startup fast
    from s3_publish.publisher import Publisher

    shutdown_manager: GracefulShutdown = GracefulShutdown()
    async with shutdown_manager as shutdown_event:
        async with S3Storage(config.connect) as storage:
            publisher: Publisher = Publisher(
                config, storage, shutdown_event=shutdown_event
            )
            progress: Progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TextColumn("[bold cyan]{task.completed} files"),
                transient=True,
            )
            with progress:
                task_id: TaskID = progress.add_task("Publishing...", total=None)

                def on_result(result: SyncResult) -> None:
                    progress.update(
                        task_id,
                        advance=1,
                        description=f"Publishing {result.file.relative_path}",
                    )

                report: SyncReport = await publisher.publish(
                    scan_directory(source_dir, exclude=[config.cache_file]),
                    on_result=on_result,
                )

    if shutdown_manager.received is not None and not report.complete:
        logger.warning(
            f"Interrupted by {shutdown_manager.received.name}: files after the "
            f"last one processed were left unpublished and {len(report.kept)} "
            "previously published objects were kept. Run again to finish."
        )
    return report


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument(
    "source_dir",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, resolve_path=True),
)
@click.option("--bucket", default=None, help="Bucket to publish to.")
@click.option(
    "--dir",
    "root_dir",
    default=None,
    help="Remote prefix every object key starts with.",
)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON file with connect/setting/controls sections.",
)
@click.option(
    "--cache-file",
    default=None,
    help="Manifest file. Defaults to .s3-publish-cache-<bucket>.",
)
@click.option(
    "--header",
    multiple=True,
    help="Default upload header as KEY=VALUE. Repeatable.",
)
@click.option("--force", is_flag=True, default=False, help="Upload every file.")
@click.option(
    "--no-clean",
    is_flag=True,
    default=False,
    help="Keep remote objects whose local file is gone.",
)
@click.option(
    "--verbose-delete",
    is_flag=True,
    default=False,
    help="Request per-key results when deleting stale objects.",
)
@click.option(
    "--simulate",
    is_flag=True,
    default=False,
    help="Build the manifest without any remote calls.",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set the logging level.",
    show_default=True,
)
def cli(**kwargs: Any) -> None:
    """
    Incrementally publish a directory to an S3-compatible bucket.

    Files whose contents did not change since the last run are skipped,
    using a local manifest of content fingerprints. Remote objects whose
    local file was removed are deleted unless --no-clean is given.

    Credentials and the endpoint are read from PUBLISH_* environment
    variables. See the .env.example file for required variables.
    """
    load_dotenv()
    setup_logging(kwargs["log_level"])

    report: Optional[SyncReport] = None
    try:
        config: Config = build_config(kwargs)
        report = asyncio.run(main_async(config, Path(kwargs["source_dir"])))
    except PublishError as e:
        logger.critical(f"A critical application error occurred: {e}")
        sys.exit(1)
    except asyncio.CancelledError:
        logger.warning("Shutdown signal received. Exiting.")
    except Exception:
        logger.critical(
            "An unexpected error caused the application to fail:", exc_info=True
        )
        sys.exit(1)

    if report is not None:
        render_report(report, Console())
        if not report.ok:
            sys.exit(1)
        logger.info("✅ Publish completed successfully.")


if __name__ == "__main__":
    cli()
