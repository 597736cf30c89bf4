"""CLI interface using Typer and Rich."""

from importlib.metadata import PackageNotFoundError, version
from typing import Optional

import typer
from rich.console import Console

from s3du.config import S3duConfig, load_config
from s3du.models import ClientMode, ObjectVersions, Region, SizeReport, SizeUnit
from s3du.providers.base import BucketSizer, ConfigurationError, S3duError
from s3du.providers.cloudwatch import CloudWatchSizer
from s3du.providers.s3 import S3Sizer
from s3du.reporter import BucketReporter
from s3du.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Show the space used by AWS S3 buckets, like du.")
# Sizes go to stdout through typer.echo so tabs survive for `sort -h`;
# everything else goes to stderr.
err_console = Console(stderr=True)


def create_sizer(config: S3duConfig, region: Region) -> BucketSizer:
    """Create the bucket sizer for the configured mode.

    Args:
        config: Validated configuration.
        region: Region the AWS client is created in.

    Returns:
        Configured sizer instance.
    """
    if config.mode is ClientMode.S3:
        return S3Sizer(
            region,
            bucket_name=config.bucket,
            object_versions=config.object_versions,
            include_multipart=config.include_multipart,
            rate_limit=config.rate_limit,
        )

    return CloudWatchSizer(region, bucket_name=config.bucket, rate_limit=config.rate_limit)


def print_report(report: SizeReport, unit: SizeUnit) -> None:
    """Print one `<size>\\t<bucket>` line per bucket and the total."""
    for entry in report.entries:
        size = unit.format(entry.size) if entry.available else "unavailable"
        typer.echo(f"{size}\t{entry.bucket}")

    typer.echo(f"{unit.format(report.total)}\tTotal")


def _version_callback(value: bool) -> None:
    if not value:
        return

    try:
        typer.echo(f"s3du {version('s3du')}")
    except PackageNotFoundError:
        typer.echo("s3du (not installed)")
    raise typer.Exit()


@app.command()
def main(
    bucket: Optional[str] = typer.Argument(
        None, help="Only report this bucket (default: all buckets)"
    ),
    mode: Optional[ClientMode] = typer.Option(
        None, "--mode", "-m", help="Use CloudWatch metrics or S3 listings [env: S3DU_MODE]"
    ),
    region: Optional[str] = typer.Option(
        None, "--region", "-r", help="AWS region [env: S3DU_REGION, AWS_REGION, AWS_DEFAULT_REGION]"
    ),
    endpoint: Optional[str] = typer.Option(
        None, "--endpoint", "-e", help="Custom S3 endpoint URL, s3 mode only [env: S3DU_ENDPOINT]"
    ),
    object_versions: Optional[ObjectVersions] = typer.Option(
        None,
        "--object-versions",
        "-o",
        help="Objects summed in s3 mode [env: S3DU_OBJECT_VERSIONS]",
    ),
    include_multipart: bool = typer.Option(
        False,
        "--include-multipart",
        help="Add in-progress multipart uploads to the object versions total",
    ),
    unit: Optional[SizeUnit] = typer.Option(
        None, "--unit", "-u", help="Output size unit [env: S3DU_UNIT]"
    ),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", help="Buckets sized at once [env: S3DU_CONCURRENCY]"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Give up on unfinished buckets after this many seconds"
    ),
    log_file: Optional[str] = typer.Option(None, "--log-file"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    show_version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version"
    ),
) -> None:
    """Print the size of each bucket followed by the total.

    Example:
        s3du --mode s3 --object-versions all --region eu-west-1
        s3du my-bucket --unit bytes
    """
    try:
        config = load_config(
            bucket=bucket,
            mode=mode,
            region=region,
            endpoint=endpoint,
            object_versions=object_versions,
            include_multipart=include_multipart or None,
            unit=unit,
            concurrency=concurrency,
            timeout=timeout,
            log_file=log_file,
            verbose=verbose or None,
        )
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error:[/red]\n{e}")
        raise typer.Exit(1)

    configure_logging(config.log_file, config.verbose)
    logger = get_logger(__name__)

    try:
        client_region = config.client_region()
        logger.info("initializing_sizer", mode=config.mode.value, region=client_region.name)
        sizer = create_sizer(config, client_region)
        reporter = BucketReporter(sizer, concurrency=config.concurrency, timeout=config.timeout)

        report = reporter.report()
        print_report(report, config.unit)

        if not report.complete:
            err_console.print(
                f"[yellow]Size unavailable for: {', '.join(report.unavailable)}[/yellow]"
            )
            raise typer.Exit(1)

    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error: {str(e)}[/red]")
        logger.error("configuration_error", error=str(e))
        raise typer.Exit(1)
    except S3duError as e:
        err_console.print(f"[red]Error: {str(e)}[/red]")
        logger.error("sizing_error", error=str(e), error_type=type(e).__name__)
        raise typer.Exit(1)
    except typer.Exit:
        raise
    except Exception as e:
        err_console.print(f"[red]Unexpected error: {str(e)}[/red]")
        logger.exception("unexpected_error")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
