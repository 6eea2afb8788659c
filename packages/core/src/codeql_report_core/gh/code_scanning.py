"""Code scanning alert lookups against the GitHub REST API.

One call type only: ``GET /repos/{owner}/{repo}/code-scanning/alerts/{number}``.
PyGithub has no single-alert getter, so the request goes through the
client's requester and the JSON is mapped onto ``Alert`` here.

Rate limiting is handled in AlertClient rather than by PyGithub's built-in
retry (which is disabled): when GitHub rejects a call because the quota is
spent, the client sleeps until the advertised reset time and re-issues the
same request, up to ``max_retries`` times.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable

import requests
from github import Auth, Github, GithubException

from codeql_report_core.config import SEVERITY_FIELDS
from codeql_report_core.errors import DeadlineExceeded, FetchError, RateLimitRetriesExhausted
from codeql_report_core.models import Alert, RateState

if TYPE_CHECKING:
    from codeql_report_core.deadline import Deadline

_RATE_LIMIT_STATUSES = (403, 429)


def build_github(token: str, base_url: str | None = None, timeout: float = 15) -> Github:
    kwargs: dict = {"auth": Auth.Token(token), "timeout": timeout, "retry": None}
    if base_url:
        kwargs["base_url"] = base_url
    return Github(**kwargs)


class AlertClient:
    """Fetches code scanning alerts one at a time and tracks the API quota.

    ``rate`` holds the rate-limit values from the most recent response, error
    responses included. Not thread-safe; one client serves one sequential run.
    """

    def __init__(
        self,
        github: Github,
        *,
        severity_field: str = "security_severity_level",
        max_retries: int | None = 5,
        low_rate_limit_threshold: int = 10,
        deadline: Deadline | None = None,
        logger: logging.Logger | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        if severity_field not in SEVERITY_FIELDS:
            raise ValueError(f"Unknown severity field: {severity_field!r}")
        self._gh = github
        self._severity_fields = (severity_field,) + tuple(f for f in SEVERITY_FIELDS if f != severity_field)
        self.max_retries = max_retries
        self.low_rate_limit_threshold = low_rate_limit_threshold
        self._deadline = deadline
        self._log = logger or logging.getLogger(__name__)
        self._sleep = sleep
        self._clock = clock
        self.rate = RateState()

    @classmethod
    def from_config(
        cls,
        config: dict,
        token: str,
        deadline: Deadline | None = None,
        logger: logging.Logger | None = None,
    ) -> AlertClient:
        return cls(
            build_github(token, base_url=config.get("base_url"), timeout=config["request_timeout"]),
            severity_field=config["severity_field"],
            max_retries=config["max_rate_limit_retries"],
            low_rate_limit_threshold=config["low_rate_limit_threshold"],
            deadline=deadline,
            logger=logger,
        )

    def get_alert(self, owner: str, repo: str, number: int) -> Alert:
        """Return the alert, waiting out rate limits as needed.

        Raises FetchError for any other failure (not found, bad credentials,
        network errors), RateLimitRetriesExhausted once ``max_retries`` waits
        have not helped, and DeadlineExceeded when the run budget is spent or
        a rate-limit wait would outlast it.
        """
        self._log.debug("Fetching alert #%d for %s/%s", number, owner, repo)
        path = f"/repos/{owner}/{repo}/code-scanning/alerts/{number}"
        retries = 0

        while True:
            if self._deadline is not None:
                self._deadline.check(f"fetching alert #{number} for {owner}/{repo}")

            try:
                headers, data = self._gh.requester.requestJsonAndCheck("GET", path)
            except GithubException as e:
                self.rate.update_from_headers(e.headers)
                wait = self._rate_limit_wait(e)
                if wait is None:
                    raise FetchError(owner, repo, number, _describe(e)) from e
                if self.max_retries is not None and retries >= self.max_retries:
                    raise RateLimitRetriesExhausted(
                        owner, repo, number, f"rate limit still exhausted after {retries} retries"
                    ) from e
                if self._deadline is not None and wait > self._deadline.remaining():
                    raise DeadlineExceeded(
                        f"rate limit resets in {wait:.0f}s, beyond the remaining time budget "
                        f"of {self._deadline.remaining():.0f}s"
                    ) from e
                self._log.warning(
                    "GitHub rate limit reached. Sleeping for %.0fs until %s",
                    wait,
                    self.rate.reset_at.isoformat() if self.rate.reset_at else "reset",
                )
                self._sleep(wait)
                retries += 1
                continue
            except requests.RequestException as e:
                raise FetchError(owner, repo, number, f"{type(e).__name__}: {e}") from e

            self.rate.update_from_headers(headers)
            if self.rate.remaining is not None and self.rate.remaining < self.low_rate_limit_threshold:
                self._log.warning(
                    "Warning: GitHub API rate limit low: %d remaining, resets at %s",
                    self.rate.remaining,
                    self.rate.reset_at.isoformat() if self.rate.reset_at else "unknown",
                )

            return self._to_alert(owner, repo, number, data)

    def _rate_limit_wait(self, exc: GithubException) -> float | None:
        """Seconds to wait before retrying, or None if ``exc`` is not a spent quota with a future reset."""
        if exc.status not in _RATE_LIMIT_STATUSES:
            return None
        if self.rate.remaining != 0 or not self.rate.reset:
            return None
        wait = self.rate.reset - self._clock()
        return wait if wait > 0 else None

    def _to_alert(self, owner: str, repo: str, number: int, data) -> Alert:
        if not isinstance(data, dict) or "number" not in data:
            raise FetchError(owner, repo, number, "unexpected response payload")

        rule = data.get("rule") or {}
        instance = data.get("most_recent_instance") or {}
        location = instance.get("location") or {}

        severity = ""
        for name in self._severity_fields:
            if rule.get(name):
                severity = rule[name]
                break

        return Alert(
            owner=owner,
            repo=repo,
            id=int(data["number"]),
            severity=severity,
            short_description=rule.get("description") or "",
            full_description=rule.get("full_description") or "",
            file_path=location.get("path") or "",
            start_line=int(location.get("start_line") or 0),
            start_column=int(location.get("start_column") or 0),
            end_line=int(location.get("end_line") or 0),
            end_column=int(location.get("end_column") or 0),
        )


def _describe(exc: GithubException) -> str:
    message = exc.data.get("message") if isinstance(exc.data, dict) else None
    return f"{exc.status} {message or type(exc).__name__}"
