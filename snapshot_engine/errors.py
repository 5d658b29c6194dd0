"""
Domain exceptions for stacksnap.

Notes
-----
Engine code does not raise generic exceptions for expected failure modes. Each
one maps to a domain exception below so the orchestrator can decide whether a
failure is fatal (abort, clean up, propagate the exit status) or degrades to a
logged warning.
"""

from __future__ import annotations


class StacksnapError(RuntimeError):
    """Base exception for all stacksnap domain failures."""


class SafetyViolationError(StacksnapError):
    """Raised when an operation is blocked by path safety policy."""


class RepositoryConfigError(StacksnapError):
    """Raised when the repository configuration file is missing or incomplete."""


class ConfigParseError(StacksnapError):
    """Raised when a stack's native configuration file cannot be opened."""


class UsageReportError(StacksnapError):
    """Raised when the repository size query fails. Never fatal for a job."""


class StageFailureError(StacksnapError):
    """
    Raised when a mandatory job stage fails.

    Attributes
    ----------
    stage:
        Short stage name, e.g. ``"dump"`` or ``"snapshot"``.
    returncode:
        Exit status of the external command that failed. The job propagates
        this value as the process exit status.
    """

    stage = "stage"

    def __init__(self, message: str, *, returncode: int) -> None:
        super().__init__(message)
        self.returncode = returncode


class DumpFailureError(StageFailureError):
    """Raised when the database dump utility exits non-zero."""

    stage = "dump"


class SnapshotFailureError(StageFailureError):
    """Raised when the snapshot engine fails to commit a snapshot."""

    stage = "snapshot"


class RetentionFailureError(StageFailureError):
    """Raised when forget/prune fails. The committed snapshot is kept."""

    stage = "retention"


class IntegrityFailureError(StageFailureError):
    """Raised when the repository consistency check fails."""

    stage = "check"
