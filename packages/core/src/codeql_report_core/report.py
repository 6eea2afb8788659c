"""Report generation: input rows in, one enriched CSV row per fetched alert out."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Callable, Protocol

from codeql_report_core.errors import FetchError, FormatError
from codeql_report_core.models import Alert, ReportSummary, RowFailure
from codeql_report_core.utils.tabular import read_rows, write_rows

if TYPE_CHECKING:
    from codeql_report_core.deadline import Deadline

_ALERT_NUMBER_RE = re.compile(r"[+-]?[0-9]+")

REPORT_HEADER = (
    "Org",
    "Repo",
    "Alert ID",
    "Severity",
    "Short Description",
    "Full Description",
    "File Path",
    "Start Line",
    "Start Column",
    "End Line",
    "End Column",
)


class AlertFetcher(Protocol):
    def get_alert(self, owner: str, repo: str, number: int) -> Alert: ...


def parse_repository(value: str) -> tuple[str, str]:
    """Split ``owner/name`` into its two parts.

    Raises FormatError unless there are exactly two non-empty segments.
    """
    parts = (value or "").split("/")
    if len(parts) != 2 or not all(p.strip() for p in parts):
        raise FormatError(f"Invalid repository format: {value!r}")
    return parts[0].strip(), parts[1].strip()


def parse_alert_number(value: str) -> int:
    """Parse an optionally signed run of ASCII digits; negative numbers are rejected."""
    text = (value or "").strip()
    if not _ALERT_NUMBER_RE.fullmatch(text):
        raise FormatError(f"Failed to parse alert number {value!r}")
    number = int(text, 10)
    if number < 0:
        raise FormatError(f"Alert number must not be negative: {value!r}")
    return number


def alert_to_row(alert: Alert) -> list[str]:
    return [
        alert.owner,
        alert.repo,
        str(alert.id),
        alert.severity,
        alert.short_description,
        alert.full_description,
        alert.file_path,
        str(alert.start_line),
        str(alert.start_column),
        str(alert.end_line),
        str(alert.end_column),
    ]


def generate_report(
    input_path: str,
    output_path: str,
    client: AlertFetcher,
    *,
    repository_column: str = "Repository",
    alert_number_column: str = "Alert Number",
    deadline: Deadline | None = None,
    logger: logging.Logger | None = None,
    progress: Callable[[int, int], None] | None = None,
) -> ReportSummary:
    """Fetch every alert listed in ``input_path`` and write the report to ``output_path``.

    Rows that cannot be parsed or fetched are logged, counted in the returned
    summary and left out of the report; they never abort the run. Errors from
    reading the input, writing the output or running out of time do.
    """
    log = logger or logging.getLogger(__name__)

    log.info("Reading input from %s", input_path)
    records = read_rows(input_path)
    total = len(records)
    log.info("Found %d records to process", total)

    summary = ReportSummary(output_path=output_path, total_rows=total)

    for index, record in enumerate(records, start=1):
        if progress is not None:
            progress(index, total)
        if deadline is not None:
            deadline.check(f"processing record {index}/{total}")

        try:
            owner, repo = parse_repository(record.get(repository_column, ""))
            number = parse_alert_number(record.get(alert_number_column, ""))
            alert = client.get_alert(owner, repo, number)
        except (FormatError, FetchError) as e:
            log.warning("Record %d skipped: %s", index, e)
            summary.failures.append(RowFailure(index=index, row=record, reason=str(e)))
            continue

        summary.alerts.append(alert)

    log.info("Successfully processed %d/%d alerts", summary.written, total)
    if summary.failed:
        log.warning("Failed to process %d alerts", summary.failed)

    write_rows(output_path, REPORT_HEADER, (alert_to_row(a) for a in summary.alerts))
    log.info("Report written to %s", output_path)
    return summary
