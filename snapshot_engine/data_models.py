"""Data models for stacksnap.

This module defines the typed values threaded through a backup job. All of them
are frozen dataclasses: a stage receives a value and returns a new one via
:func:`dataclasses.replace`, it never mutates the value it was given.

The models are intentionally standard-library-only to keep the job core
lightweight and deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Self


class StackProfile(str, Enum):
    """Known application stacks. ``NONE`` is a valid detection outcome."""

    NONE = "none"
    MOODLE = "moodle"
    OSTICKET = "osticket"
    MAUTIC = "mautic"
    REDMINE = "redmine"


class JobState(str, Enum):
    """States of the backup job state machine."""

    IDLE = "idle"
    DETECTING = "detecting"
    EXTRACTING_CONFIG = "extracting_config"
    DUMPING = "dumping"
    SKIPPING_DUMP = "skipping_dump"
    SNAPSHOTTING = "snapshotting"
    RETAINING = "retaining"
    VERIFYING = "verifying"
    REPORTING = "reporting"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Credentials:
    """
    Database credentials extracted from a stack's configuration.

    Attributes
    ----------
    database_name:
        Database (schema) name.
    user:
        Database user.
    password:
        Database password.

    Notes
    -----
    An all-empty value is valid and means "no dump".
    """

    database_name: str = ""
    user: str = ""
    password: str = ""

    @property
    def is_complete(self) -> bool:
        """True when every field is non-empty, i.e. a dump can be attempted."""
        return bool(self.database_name and self.user and self.password)

    def __repr__(self) -> str:
        masked = "***" if self.password else ""
        return (
            f"Credentials(database_name={self.database_name!r}, user={self.user!r}, "
            f"password={masked!r})"
        )


@dataclass(frozen=True, slots=True)
class ExtraPaths:
    """
    Stack-specific paths added to or removed from a snapshot.

    Attributes
    ----------
    extra_include_paths:
        Paths included in addition to the backup root, in order.
    exclude_paths:
        Paths excluded from the snapshot, in order. ``None`` means the stack
        defines no exclusion mechanism at all and no exclusion flag is emitted.
    """

    extra_include_paths: tuple[Path, ...] = ()
    exclude_paths: tuple[Path, ...] | None = None


@dataclass(frozen=True, slots=True)
class RetentionPolicy:
    """Daily/weekly/monthly snapshot counts kept by forget."""

    keep_daily: int = 7
    keep_weekly: int = 5
    keep_monthly: int = 12


DEFAULT_RETENTION_POLICY = RetentionPolicy()


@dataclass(frozen=True, slots=True)
class SnapshotRequest:
    """
    A fully resolved request for the snapshot engine's backup operation.

    Attributes
    ----------
    include_paths:
        Paths to capture, in order.
    exclude_flags:
        One ``--exclude=<path>`` flag per excluded path, in order.
    quiet:
        Run the engine in non-interactive quiet mode.
    """

    include_paths: tuple[Path, ...]
    exclude_flags: tuple[str, ...]
    quiet: bool = True


@dataclass(frozen=True, slots=True)
class BackupJob:
    """
    The single value threaded through the backup pipeline.

    Attributes
    ----------
    root_path:
        Directory being backed up.
    archive_label:
        Label used to name the job's log file.
    profile:
        Detected stack profile.
    credentials:
        Database credentials (empty when no dump applies).
    extra_paths:
        Stack-specific includes and excludes.
    dump_artifact_path:
        Path of the database dump, set only when a dump was produced.
    include_set:
        Paths submitted to the snapshot engine. Always starts with root_path.
    started_at:
        Time the job was created.
    stage_times:
        ``(state, entered_at)`` pairs in the order states were entered.
    """

    root_path: Path
    archive_label: str
    started_at: datetime
    profile: StackProfile = StackProfile.NONE
    credentials: Credentials = field(default_factory=Credentials)
    extra_paths: ExtraPaths = field(default_factory=ExtraPaths)
    dump_artifact_path: Path | None = None
    include_set: tuple[Path, ...] = ()
    stage_times: tuple[tuple[JobState, datetime], ...] = ()

    @classmethod
    def start(cls, root_path: Path, archive_label: str, started_at: datetime) -> Self:
        """Create a fresh job whose include set holds only *root_path*."""
        return cls(
            root_path=root_path,
            archive_label=archive_label,
            started_at=started_at,
            include_set=(root_path,),
        )

    def entering(self, state: JobState, at: datetime) -> Self:
        """Return a copy with *state* appended to the stage timeline."""
        return replace(self, stage_times=self.stage_times + ((state, at),))

    def with_includes(self, *paths: Path) -> Self:
        """Return a copy with *paths* appended to the include set, skipping duplicates."""
        include_set = list(self.include_set)
        for path in paths:
            if path not in include_set:
                include_set.append(path)
        return replace(self, include_set=tuple(include_set))
