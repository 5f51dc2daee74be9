from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .config import load_settings
from .errors import BatchWriteError, ConfigError, InvocationError, StageError
from .logging_setup import setup_logging
from .models import build_run_options
from .pipeline.run import run_pipeline

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    help="Triggers the relay Lambda to put an object in S3 and copies that data into a DynamoDB table.",
)


def _report_failure(err: StageError) -> None:
    typer.echo(f"ERROR: {err}", err=True)
    cause = err.cause
    if isinstance(cause, InvocationError) and cause.payload is not None:
        typer.echo(f"Function error payload: {cause.payload}", err=True)
    if isinstance(cause, BatchWriteError):
        for e in cause.errors:
            typer.echo(f"  - {type(e).__name__}: {e}", err=True)
    if err.partially_migrated:
        typer.echo("Some items may already be written; re-running overwrites them by key.", err=True)
    else:
        typer.echo("No items were written.", err=True)


@app.command("migrate-data")
def migrate_data(
    function_ref: str = typer.Option(..., "--lambda", "-l", help="Specify the name of your lambda function"),
    bucket_ref: str = typer.Option(..., "--bucket", "-b", help="Specify the name of your S3 bucket"),
    table_ref: str = typer.Option(..., "--table", "-t", help="Specify the name of your DynamoDB table"),
    source_url: str = typer.Option(..., "--postUrl", "-u", help="Specify the url to fetch the post object"),
    object_name: str = typer.Option(..., "--postName", "-n", help="Specify the name of the post and S3 object"),
    manifest: Optional[Path] = typer.Option(
        None, "--manifest", help="Service manifest JSON (serverless print --format json)"
    ),
    region: Optional[str] = typer.Option(None, "--region", help="AWS region (default: boto3 resolution)"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG|INFO|WARNING|ERROR"),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="text|json"),
) -> None:
    """
    Invoke the relay function, read the staged S3 object and upsert it into DynamoDB.

    Exit codes: 0 success, 1 a stage failed, 2 invalid options or configuration.
    """
    try:
        settings = load_settings(
            manifest_path=manifest,
            region=region,
            log_level=log_level.upper() if log_level else None,
            log_format=log_format,
        )
        setup_logging(settings.log_level, log_format=settings.log_format)
        options = build_run_options(
            function_ref=function_ref,
            bucket_ref=bucket_ref,
            table_ref=table_ref,
            source_url=source_url,
            object_name=object_name,
        )
        result = run_pipeline(options, settings=settings)
    except ConfigError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(code=2)
    except StageError as e:
        _report_failure(e)
        raise typer.Exit(code=1)

    typer.echo("Migration complete.")
    typer.echo(f"Function: {result.resources.function_name}")
    typer.echo(f"Object: s3://{result.resources.bucket_name}/{object_name}")
    typer.echo(f"Items written to {result.resources.table_name}: {result.items_written}")
