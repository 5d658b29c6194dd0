"""
Retention stage.

Applies the fixed retention windows with the snapshot engine's ``forget``
operation, then removes data no longer referenced by any snapshot with a
separate ``prune``. A failure here does not roll back the snapshot committed by
the previous stage.
"""

from __future__ import annotations

import logging
from typing import Mapping

from snapshot_engine.commands import CommandRunner
from snapshot_engine.data_models import DEFAULT_RETENTION_POLICY, RetentionPolicy
from snapshot_engine.errors import RetentionFailureError
from snapshot_engine.repository_config import ToolPaths

LOGGER = logging.getLogger(__name__)


def build_forget_command(policy: RetentionPolicy, restic: str = "restic") -> tuple[str, ...]:
    """Return the ``forget`` command line for *policy*."""
    return (
        restic,
        "forget",
        "--keep-daily",
        str(policy.keep_daily),
        "--keep-weekly",
        str(policy.keep_weekly),
        "--keep-monthly",
        str(policy.keep_monthly),
    )


def build_prune_command(restic: str = "restic") -> tuple[str, ...]:
    """Return the ``prune`` command line."""
    return (restic, "prune")


def enforce_retention(
    *,
    runner: CommandRunner,
    tools: ToolPaths,
    environment: Mapping[str, str],
    policy: RetentionPolicy = DEFAULT_RETENTION_POLICY,
    secrets: tuple[str, ...] = (),
) -> None:
    """
    Forget snapshots outside the retention windows and prune unreferenced data.

    Parameters
    ----------
    runner:
        Executes the snapshot engine.
    tools:
        Executable locations.
    environment:
        Environment carrying the repository location and password.
    policy:
        Retention windows. Jobs always pass the module default.
    secrets:
        Values to mask in logged output.

    Raises
    ------
    RetentionFailureError
        If ``forget`` or ``prune`` exits non-zero. ``prune`` is not attempted
        after a failed ``forget``.
    """
    LOGGER.info("Cleaning old snapshots")
    forget = runner.run(build_forget_command(policy, tools.restic), env=environment, secrets=secrets)
    if not forget.ok:
        raise RetentionFailureError(
            f"Forget failed with exit status {forget.returncode}; the new snapshot is kept.",
            returncode=forget.returncode,
        )

    prune = runner.run(build_prune_command(tools.restic), env=environment, secrets=secrets)
    if not prune.ok:
        raise RetentionFailureError(
            f"Prune failed with exit status {prune.returncode}; the new snapshot is kept.",
            returncode=prune.returncode,
        )
