"""Exception hierarchy for report generation.

Row-level failures (FormatError raised while parsing a single row, FetchError)
are caught by the orchestrator, counted and skipped. Everything else aborts
the run. File I/O failures surface as the builtin OSError.
"""

from __future__ import annotations


class ReportError(Exception):
    """Base class for errors raised by codeql_report_core."""


class ConfigError(ReportError):
    """Required flags are missing, a setting is invalid, or the config file cannot be parsed."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = list(missing or [])


class FormatError(ReportError, ValueError):
    """Tabular data or a single field does not have the expected shape."""


class FetchError(ReportError):
    """A code scanning alert could not be fetched.

    The underlying PyGithub or network exception is chained as ``__cause__``.
    """

    def __init__(self, owner: str, repo: str, number: int, message: str):
        super().__init__(f"failed to get alert #{number} for {owner}/{repo}: {message}")
        self.owner = owner
        self.repo = repo
        self.number = number


class RateLimitRetriesExhausted(FetchError):
    """The API kept reporting an exhausted quota after the configured number of retries."""


class DeadlineExceeded(ReportError):
    """The overall time budget for the run ran out."""
