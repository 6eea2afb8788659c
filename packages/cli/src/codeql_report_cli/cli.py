"""CLI entry point for gh-codeql-report.

Reads a CSV of repositories and code scanning alert numbers, looks each
alert up on GitHub and writes an enriched CSV report.
"""

from __future__ import annotations

import importlib.metadata
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from codeql_report_core.errors import ConfigError, ReportError

console = Console()
err_console = Console(stderr=True)

LOGGER_NAME = "codeql_report"
_LOG_FORMAT = "%(asctime)s %(filename)s:%(lineno)d: %(message)s"


def configure_logging(log_path: str | None, verbose: bool) -> logging.Logger:
    """Return the run logger, writing to ``log_path`` (appended) or stderr.

    Handlers from a previous call are closed and replaced, so the logger can
    be configured more than once per process.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_path:
        path = Path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    return logger


def _print_summary(summary) -> None:
    table = Table(title="CodeQL Report", show_header=True, header_style="bold cyan")
    table.add_column("Records", justify="right")
    table.add_column("Written", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_row(str(summary.total_rows), str(summary.written), str(summary.failed))
    console.print(table)


@click.command("gh-codeql-report")
@click.version_option(
    version=importlib.metadata.version("gh-codeql-report"),
    prog_name="gh-codeql-report",
)
@click.option("--token", default=None, help="GitHub access token (required).")
@click.option("--input", "input_path", default=None, help="Path to the input CSV file (required).")
@click.option(
    "--output", "output_path", default=None, help="Path to the output CSV file.  [default: codeql-report.csv]"
)
@click.option("--log", "log_path", default=None, help="Path to the log file (default: stderr).")
@click.option("--verbose", is_flag=True, help="Enable verbose output.")
@click.option(
    "--config",
    "config_path",
    default=".codeql-report.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="CODEQL_REPORT_CONFIG",
)
@click.pass_context
def main(
    ctx: click.Context,
    token: str | None,
    input_path: str | None,
    output_path: str | None,
    log_path: str | None,
    verbose: bool,
    config_path: str,
):
    """Generate a CodeQL report from GitHub code scanning alerts.

    Takes a CSV file with "Repository" (owner/name) and "Alert Number"
    columns, queries the GitHub API for each alert's details and writes
    one report row per alert that could be fetched.
    """
    from codeql_report_core.config import load_config, require_flags, validate_config
    from codeql_report_core.deadline import Deadline
    from codeql_report_core.gh.code_scanning import AlertClient
    from codeql_report_core.report import generate_report

    try:
        require_flags({"token": token, "input": input_path})
        config = load_config(config_path, cli_overrides={"output": output_path})
        validate_config(config)
    except ConfigError as e:
        raise click.UsageError(str(e), ctx=ctx)

    logger = configure_logging(log_path, verbose)
    logger.info("Starting gh-codeql-report")

    deadline = Deadline.from_minutes(config["deadline_minutes"])
    client = AlertClient.from_config(config, token, deadline=deadline, logger=logger)

    def _progress(index: int, total: int) -> None:
        if verbose:
            console.print(f"Processing record {index}/{total}")

    try:
        summary = generate_report(
            input_path,
            config["output"],
            client,
            repository_column=config["repository_column"],
            alert_number_column=config["alert_number_column"],
            deadline=deadline,
            logger=logger,
            progress=_progress,
        )
    except (ReportError, OSError) as e:
        logger.error("Error generating report: %s", e)
        err_console.print(f"[red]Error generating report:[/red] {escape(str(e))}")
        ctx.exit(1)

    if summary.failed:
        err_console.print(
            f"[yellow]{summary.failed} of {summary.total_rows} record(s) could not be processed; "
            "see the log for details.[/yellow]"
        )

    logger.info("Report successfully generated at %s", summary.output_path)
    if verbose:
        _print_summary(summary)
        console.print(f"Report successfully generated at {escape(summary.output_path)}")
