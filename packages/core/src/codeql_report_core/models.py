"""Data models shared by the fetch client and the report orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class Alert:
    """One code scanning alert, flattened to the columns of the report."""

    owner: str
    repo: str
    id: int
    severity: str
    short_description: str
    full_description: str
    file_path: str
    start_line: int
    start_column: int
    end_line: int
    end_column: int


@dataclass
class RateState:
    """Last rate-limit values reported by the API.

    ``reset`` is a UTC epoch timestamp in seconds, 0 when unknown.
    """

    remaining: int | None = None
    limit: int | None = None
    reset: int = 0

    @property
    def reset_at(self) -> datetime | None:
        if not self.reset:
            return None
        return datetime.fromtimestamp(self.reset, tz=timezone.utc)

    def update_from_headers(self, headers: dict | None) -> None:
        """Refresh from ``x-ratelimit-*`` response headers, ignoring absent or garbled values."""
        if not headers:
            return
        lowered = {str(k).lower(): v for k, v in headers.items()}
        for key, attr in (
            ("x-ratelimit-remaining", "remaining"),
            ("x-ratelimit-limit", "limit"),
            ("x-ratelimit-reset", "reset"),
        ):
            value = lowered.get(key)
            if value is None:
                continue
            try:
                setattr(self, attr, int(value))
            except (TypeError, ValueError):
                continue


@dataclass
class RowFailure:
    """An input row that was skipped, with the reason it failed."""

    index: int  # 1-based position among the data rows
    row: dict[str, str]
    reason: str


@dataclass
class ReportSummary:
    """Result returned by generate_report — what the CLI needs to report back."""

    output_path: str
    total_rows: int
    alerts: list[Alert] = field(default_factory=list)
    failures: list[RowFailure] = field(default_factory=list)

    @property
    def written(self) -> int:
        return len(self.alerts)

    @property
    def failed(self) -> int:
        return len(self.failures)
