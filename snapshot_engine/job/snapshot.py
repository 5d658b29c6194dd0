"""
Snapshot stage.

Builds a :class:`SnapshotRequest` from a job and submits it to the snapshot
engine's ``backup`` operation.

Invariants
----------
- The include paths are the job's include set, in order.
- No exclusion flag is emitted when the stack defines no exclusion set; never an
  empty or malformed ``--exclude=``.
- Otherwise exactly one ``--exclude=<path>`` flag per path, in input order.
"""

from __future__ import annotations

import logging
from typing import Mapping

from snapshot_engine.commands import CommandRunner
from snapshot_engine.data_models import BackupJob, SnapshotRequest
from snapshot_engine.errors import SnapshotFailureError
from snapshot_engine.repository_config import ToolPaths

LOGGER = logging.getLogger(__name__)

EXCLUDE_FLAG = "--exclude="
QUIET_FLAG = "--quiet"


def build_snapshot_request(job: BackupJob) -> SnapshotRequest:
    """
    Build the snapshot request for *job*.

    Parameters
    ----------
    job:
        Job after the dump stage.

    Returns
    -------
    SnapshotRequest
        Include paths and exclusion flags in deterministic order.
    """
    exclude_paths = job.extra_paths.exclude_paths
    if exclude_paths is None:
        flags: tuple[str, ...] = ()
    else:
        flags = tuple(f"{EXCLUDE_FLAG}{path}" for path in exclude_paths)
    return SnapshotRequest(include_paths=job.include_set, exclude_flags=flags, quiet=True)


def build_backup_command(request: SnapshotRequest, restic: str = "restic") -> tuple[str, ...]:
    """Return the snapshot engine command line for *request*."""
    argv = [restic, "backup", *(str(path) for path in request.include_paths), *request.exclude_flags]
    if request.quiet:
        argv.append(QUIET_FLAG)
    return tuple(argv)


def submit_snapshot(
    request: SnapshotRequest,
    *,
    runner: CommandRunner,
    tools: ToolPaths,
    environment: Mapping[str, str],
    secrets: tuple[str, ...] = (),
) -> None:
    """
    Commit one snapshot of the requested paths.

    Raises
    ------
    SnapshotFailureError
        If the snapshot engine exits non-zero.
    """
    LOGGER.info("Taking snapshot in restic")
    result = runner.run(build_backup_command(request, tools.restic), env=environment, secrets=secrets)
    if not result.ok:
        raise SnapshotFailureError(
            f"Snapshot failed with exit status {result.returncode}.", returncode=result.returncode
        )
