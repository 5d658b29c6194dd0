"""
Clock abstractions for job timestamps.

Notes
-----
Job code reads time only through a Clock so that stage timestamps in a
BackupJob are reproducible in tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

LOG_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class Clock(Protocol):
    """A source of local time for job bookkeeping."""

    def now(self) -> datetime:
        """
        Return the current time.

        Returns
        -------
        datetime
            A timezone-aware datetime.
        """
        ...


@dataclass(frozen=True, slots=True)
class SystemClock:
    """Clock backed by the host's local time zone."""

    def now(self) -> datetime:
        return datetime.now().astimezone()


@dataclass(frozen=True, slots=True)
class FixedClock:
    """Clock pinned to one instant (useful for tests)."""

    fixed_time: datetime

    def now(self) -> datetime:
        if self.fixed_time.tzinfo is None:
            return self.fixed_time.astimezone()
        return self.fixed_time


def format_log_timestamp(moment: datetime) -> str:
    """Render *moment* the way job log lines print times (``YYYY-MM-DD HH:MM:SS``)."""
    return moment.strftime(LOG_TIMESTAMP_FORMAT)
