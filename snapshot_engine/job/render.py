"""
Rendering for job log output.

This module renders the banner, plan and summary blocks a job writes to its log
as deterministic lists of lines. It performs no I/O.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from snapshot_engine.clock import format_log_timestamp
from snapshot_engine.data_models import BackupJob, JobState

if TYPE_CHECKING:
    from snapshot_engine.job.service import JobReport

BANNER_RULE = "======================================="


def render_job_header(*, script_name: str, version: str, config_file: Path | None) -> list[str]:
    """
    Render the start-of-run banner.

    Parameters
    ----------
    script_name:
        Program name as invoked.
    version:
        Program version.
    config_file:
        Repository configuration file, when known.

    Returns
    -------
    list[str]
        Banner lines.
    """
    return [
        BANNER_RULE,
        "Start backup procedure",
        f"Script: {script_name}",
        f"Version: {version}",
        f"Configuration file: {config_file if config_file is not None else '-'}",
    ]


def render_job_plan(job: BackupJob) -> list[str]:
    """
    Render what a job is about to capture.

    Parameters
    ----------
    job:
        Job after configuration extraction.

    Returns
    -------
    list[str]
        Plan lines: root, profile, database, include set, exclude set.
    """
    lines = [
        f"Backup root : {job.root_path}",
        f"Profile     : {job.profile.value}",
        f"Database    : {job.credentials.database_name or '-'}",
        "Include     :",
    ]
    lines.extend(f"  {path}" for path in job.include_set)
    exclude_paths = job.extra_paths.exclude_paths
    if exclude_paths is None:
        lines.append("Exclude     : (none)")
    else:
        lines.append("Exclude     :")
        lines.extend(f"  {path}" for path in exclude_paths)
    return lines


def render_job_summary(report: JobReport) -> list[str]:
    """
    Render the end-of-run summary.

    Parameters
    ----------
    report:
        Finished job report.

    Returns
    -------
    list[str]
        Summary lines.
    """
    job = report.job
    lines = [
        f"Final state : {report.final_state.value}",
        f"Exit status : {report.exit_code}",
        f"Started     : {format_log_timestamp(job.started_at)}",
        "Stages      : " + " -> ".join(state.value for state in report.states if state is not JobState.IDLE),
    ]
    if report.error is not None:
        lines.append(f"Failure     : {report.error.stage}: {report.error}")
    lines.append("End backup procedure")
    return lines
