"""
Database dump stage.

The dump is written as a single SQL text file into a scratch directory owned by
the running job. The scratch directory is emptied before every dump so that an
artifact left behind by an earlier, possibly failed, run never ends up in a
snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

from snapshot_engine.commands import CommandRunner
from snapshot_engine.data_models import BackupJob, Credentials
from snapshot_engine.errors import DumpFailureError, SafetyViolationError
from snapshot_engine.paths_and_safety import (
    DEFAULT_SCRATCH_ROOT,
    reset_scratch_directory,
    resolve_dump_location,
)
from snapshot_engine.repository_config import ToolPaths

LOGGER = logging.getLogger(__name__)


def build_dump_command(credentials: Credentials, mysqldump: str = "mysqldump") -> tuple[str, ...]:
    """Return the dump utility command line for *credentials*."""
    return (
        mysqldump,
        f"--user={credentials.user}",
        f"--password={credentials.password}",
        credentials.database_name,
    )


def run_database_dump(
    job: BackupJob,
    *,
    runner: CommandRunner,
    tools: ToolPaths,
    scratch_root: Path = DEFAULT_SCRATCH_ROOT,
) -> BackupJob:
    """
    Dump the job's database when its credentials are complete.

    Parameters
    ----------
    job:
        Job after configuration extraction.
    runner:
        Executes the dump utility.
    tools:
        Executable locations.
    scratch_root:
        Parent of the per-database scratch directory.

    Returns
    -------
    BackupJob
        The job unchanged when any credential field is empty; otherwise a copy
        with ``dump_artifact_path`` set and appended to ``include_set``.

    Raises
    ------
    DumpFailureError
        If the scratch directory cannot be prepared, or the dump utility cannot
        be started or exits non-zero.
    """
    credentials = job.credentials
    if not credentials.is_complete:
        LOGGER.info("No db dump is required.")
        return job

    LOGGER.info("Starting dbdump procedure.")
    try:
        scratch_directory, dump_file = resolve_dump_location(credentials.database_name, scratch_root)
        reset_scratch_directory(scratch_directory, scratch_root)
    except (SafetyViolationError, OSError) as exc:
        raise DumpFailureError(f"Cannot prepare dump scratch directory: {exc}", returncode=1) from exc

    argv = build_dump_command(credentials, tools.mysqldump)
    try:
        result = runner.run(argv, stdout_path=dump_file, secrets=(credentials.password,))
    except OSError as exc:
        raise DumpFailureError(
            f"Cannot write database dump to {dump_file} ({exc.strerror or exc})", returncode=1
        ) from exc

    if not result.ok:
        raise DumpFailureError(
            f"Database dump of '{credentials.database_name}' failed with exit status {result.returncode}.",
            returncode=result.returncode,
        )

    LOGGER.info("Database '%s' dumped to %s", credentials.database_name, dump_file)
    return replace(job, dump_artifact_path=dump_file).with_includes(dump_file)
