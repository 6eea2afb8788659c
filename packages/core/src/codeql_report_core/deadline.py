"""Overall time budget for one report run."""

from __future__ import annotations

import time
from typing import Callable

from codeql_report_core.errors import DeadlineExceeded


class Deadline:
    """A fixed budget measured on a monotonic clock from construction time."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.seconds = seconds
        self._expires_at = clock() + seconds

    @classmethod
    def from_minutes(cls, minutes: float, clock: Callable[[], float] = time.monotonic) -> Deadline:
        return cls(minutes * 60, clock=clock)

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._clock() >= self._expires_at

    def check(self, action: str = "run") -> None:
        if self.expired:
            raise DeadlineExceeded(f"time budget of {self.seconds:.0f}s exceeded before {action}")
