"""
Repository integrity verification.

Runs the snapshot engine's consistency ``check``. This is the last mandatory
stage of a job. A failure may point to repository corruption unrelated to the
current run, so it is logged at CRITICAL level; nothing is repaired
automatically.
"""

from __future__ import annotations

import logging
from typing import Mapping

from snapshot_engine.commands import CommandRunner
from snapshot_engine.errors import IntegrityFailureError
from snapshot_engine.repository_config import ToolPaths

LOGGER = logging.getLogger(__name__)


def build_check_command(restic: str = "restic") -> tuple[str, ...]:
    """Return the ``check`` command line."""
    return (restic, "check")


def verify_repository(
    *,
    runner: CommandRunner,
    tools: ToolPaths,
    environment: Mapping[str, str],
    secrets: tuple[str, ...] = (),
) -> None:
    """
    Check repository consistency.

    Raises
    ------
    IntegrityFailureError
        If the check exits non-zero.
    """
    LOGGER.info("Checking restic repo integrity")
    result = runner.run(build_check_command(tools.restic), env=environment, secrets=secrets)
    if not result.ok:
        LOGGER.critical(
            "Repository integrity check FAILED (exit status %s). Inspect the repository before the next run.",
            result.returncode,
        )
        raise IntegrityFailureError(
            f"Repository check failed with exit status {result.returncode}.", returncode=result.returncode
        )
