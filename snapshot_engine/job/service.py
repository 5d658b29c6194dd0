"""
Backup job orchestration for stacksnap.

This module owns the job state machine and coordinates:
- stack detection by fingerprint
- configuration extraction (credentials, extra includes, excludes)
- the optional database dump
- the snapshot
- retention (forget + prune)
- the repository consistency check
- best-effort usage reporting
- cleanup of the dump artifact

State machine
-------------
IDLE -> DETECTING -> EXTRACTING_CONFIG -> (DUMPING | SKIPPING_DUMP) ->
SNAPSHOTTING -> RETAINING -> VERIFYING -> REPORTING -> CLEANING_UP ->
(DONE | FAILED)

Failure policy
--------------
- A stage failure in DUMPING, SNAPSHOTTING, RETAINING or VERIFYING skips every
  remaining stage, runs CLEANING_UP and ends in FAILED. The job's exit code is
  the failing command's exit status.
- A missing profile, incomplete credentials, an unreadable stack configuration
  and a failed usage query are logged and never change the outcome.
- CLEANING_UP runs on every exit path.
- Nothing is retried and no lock is taken; the snapshot engine serialises
  writers to a repository.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Sequence

from snapshot_engine.clock import Clock, SystemClock
from snapshot_engine.commands import CommandRunner, SubprocessRunner
from snapshot_engine.data_models import BackupJob, JobState
from snapshot_engine.errors import ConfigParseError, SafetyViolationError, StageFailureError
from snapshot_engine.job.dump import run_database_dump
from snapshot_engine.job.render import render_job_header, render_job_plan, render_job_summary
from snapshot_engine.job.retention import enforce_retention
from snapshot_engine.job.snapshot import build_snapshot_request, submit_snapshot
from snapshot_engine.job.usage import report_repository_usage
from snapshot_engine.job.verify import verify_repository
from snapshot_engine.paths_and_safety import (
    DEFAULT_SCRATCH_ROOT,
    remove_dump_artifact,
    resolve_dump_location,
    validate_backup_root,
)
from snapshot_engine.profiles.detect import detect_profile
from snapshot_engine.profiles.extract import extract_stack_config
from snapshot_engine.profiles.registry import PROFILE_REGISTRY, ProfileDefinition
from snapshot_engine.repository_config import RepositoryConfig

LOGGER = logging.getLogger(__name__)

SCRIPT_NAME = "stacksnap"
SCRIPT_VERSION = "0.2.0"


@dataclass(frozen=True, slots=True)
class JobReport:
    """
    Outcome of one backup job.

    Attributes
    ----------
    job:
        Last job value produced before the run ended.
    final_state:
        ``JobState.DONE`` or ``JobState.FAILED``.
    exit_code:
        ``0`` on success, otherwise the failing command's exit status.
    error:
        The fatal stage failure, if any.
    usage_gib:
        Repository size in GiB when the usage query succeeded.
    """

    job: BackupJob
    final_state: JobState
    exit_code: int
    error: StageFailureError | None = None
    usage_gib: float | None = None

    @property
    def states(self) -> tuple[JobState, ...]:
        """States entered by the job, in order."""
        return tuple(state for state, _ in self.job.stage_times)

    @property
    def succeeded(self) -> bool:
        return self.final_state is JobState.DONE


def run_backup_job(
    *,
    root: Path,
    archive_label: str,
    repository: RepositoryConfig,
    runner: CommandRunner | None = None,
    clock: Clock | None = None,
    scratch_root: Path = DEFAULT_SCRATCH_ROOT,
    registry: Sequence[ProfileDefinition] = PROFILE_REGISTRY,
) -> JobReport:
    """
    Run one backup job against *root*.

    Parameters
    ----------
    root:
        Directory to back up.
    archive_label:
        Label naming the job's log file.
    repository:
        Repository location, credentials and tool paths.
    runner:
        Executes external commands. Defaults to :class:`SubprocessRunner`.
    clock:
        Source of stage timestamps. Defaults to :class:`SystemClock`.
    scratch_root:
        Parent of the database dump scratch directory.
    registry:
        Known stacks in priority order.

    Returns
    -------
    JobReport
        Final state, exit code and the last job value.

    Raises
    ------
    SafetyViolationError
        If *root* is not a usable directory. Raised before any stage runs.
    """
    run_clock = clock or SystemClock()
    command_runner = runner or SubprocessRunner()
    backup_root = validate_backup_root(root)

    for line in render_job_header(
        script_name=SCRIPT_NAME, version=SCRIPT_VERSION, config_file=repository.source_path
    ):
        LOGGER.info(line)

    job = BackupJob.start(backup_root, archive_label, run_clock.now())
    job = job.entering(JobState.IDLE, job.started_at)

    environment = repository.engine_environment()
    secrets = repository.secrets()
    tools = repository.tools

    error: StageFailureError | None = None
    usage_gib: float | None = None
    try:
        job = job.entering(JobState.DETECTING, run_clock.now())
        definition = detect_profile(backup_root, registry)
        if definition is None:
            LOGGER.info("No known application profile detected under %s.", backup_root)
        else:
            LOGGER.info("Detected application profile: %s", definition.profile.value)
            job = replace(job, profile=definition.profile)

        job = job.entering(JobState.EXTRACTING_CONFIG, run_clock.now())
        job = _apply_stack_config(job, definition)
        for line in render_job_plan(job):
            LOGGER.info(line)

        dump_state = JobState.DUMPING if job.credentials.is_complete else JobState.SKIPPING_DUMP
        job = job.entering(dump_state, run_clock.now())
        job = run_database_dump(job, runner=command_runner, tools=tools, scratch_root=scratch_root)

        job = job.entering(JobState.SNAPSHOTTING, run_clock.now())
        submit_snapshot(
            build_snapshot_request(job),
            runner=command_runner,
            tools=tools,
            environment=environment,
            secrets=secrets,
        )

        job = job.entering(JobState.RETAINING, run_clock.now())
        enforce_retention(runner=command_runner, tools=tools, environment=environment, secrets=secrets)

        job = job.entering(JobState.VERIFYING, run_clock.now())
        verify_repository(runner=command_runner, tools=tools, environment=environment, secrets=secrets)

        job = job.entering(JobState.REPORTING, run_clock.now())
        usage_gib = report_repository_usage(
            repository.bucket_name,
            runner=command_runner,
            tools=tools,
            environment=environment,
            secrets=secrets,
        )
    except StageFailureError as exc:
        error = exc
        LOGGER.error("Backup aborted in %s stage: %s", exc.stage, exc)
    finally:
        job = job.entering(JobState.CLEANING_UP, run_clock.now())
        _clean_up(job, scratch_root)

    final_state = JobState.DONE if error is None else JobState.FAILED
    job = job.entering(final_state, run_clock.now())
    report = JobReport(
        job=job,
        final_state=final_state,
        exit_code=0 if error is None else _exit_status(error.returncode),
        error=error,
        usage_gib=usage_gib,
    )
    for line in render_job_summary(report):
        LOGGER.info(line)
    return report


def _apply_stack_config(job: BackupJob, definition: ProfileDefinition | None) -> BackupJob:
    """Fold a stack's extracted credentials and paths into the job."""
    if definition is None:
        return job
    try:
        extracted = extract_stack_config(definition, job.root_path)
    except ConfigParseError as exc:
        LOGGER.warning("%s; database dump will be skipped.", exc)
        return job

    job = replace(job, credentials=extracted.credentials, extra_paths=extracted.extra_paths)
    return job.with_includes(*extracted.extra_paths.extra_include_paths)


def _clean_up(job: BackupJob, scratch_root: Path) -> None:
    """Remove the dump artifact if one was created, including a partial one."""
    candidate = job.dump_artifact_path
    if candidate is None and job.credentials.is_complete:
        try:
            _, candidate = resolve_dump_location(job.credentials.database_name, scratch_root)
        except SafetyViolationError:
            candidate = None

    try:
        removed = remove_dump_artifact(candidate, scratch_root)
    except (OSError, SafetyViolationError) as exc:
        LOGGER.error("Could not remove dump artifact %s: %s", candidate, exc)
        return
    if removed:
        LOGGER.info("Removed dump artifact %s", candidate)


def _exit_status(returncode: int) -> int:
    """Map a command's return code to a non-zero process exit status."""
    if returncode < 0:
        # Killed by a signal: report it the way a shell does.
        return 128 + (-returncode)
    return returncode & 0xFF or 1
