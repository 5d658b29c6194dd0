"""
Logging configuration for backup jobs.

A job writes every line twice: to stdout and appended to
``<log_dir>/restic-<label>.log``. Both handlers share one format so a log file
reads the same as the console output of the run that produced it.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from snapshot_engine.clock import LOG_TIMESTAMP_FORMAT

DEFAULT_LOG_DIR = Path("/var/log")
LOG_NAME_PREFIX = "restic"
LOG_FORMAT = "%(asctime)s %(message)s"
VERBOSE_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_HANDLER_MARKER = "_stacksnap_handler"


def job_log_path(archive_label: str, log_dir: Path = DEFAULT_LOG_DIR) -> Path:
    """
    Return the append-only log file path for an archive label.

    Parameters
    ----------
    archive_label:
        Label given on the command line (typically the site address).
    log_dir:
        Directory holding job logs.

    Returns
    -------
    Path
        ``<log_dir>/restic-<label>.log``.
    """
    label = archive_label.strip().replace("/", "_")
    return Path(log_dir) / f"{LOG_NAME_PREFIX}-{label}.log"


def configure_job_logging(
    archive_label: str,
    *,
    log_dir: Path = DEFAULT_LOG_DIR,
    verbose: int = 0,
) -> Path | None:
    """
    Attach stdout and log-file handlers to the root logger.

    Parameters
    ----------
    archive_label:
        Label used to name the log file.
    log_dir:
        Directory holding job logs.
    verbose:
        ``0`` logs INFO and above; ``1`` or more logs DEBUG with logger names.

    Returns
    -------
    Path | None
        The log file in use, or None if it could not be opened. In that case the
        job still logs to stdout and a warning is emitted.
    """
    level = logging.DEBUG if verbose >= 1 else logging.INFO
    formatter = logging.Formatter(
        VERBOSE_LOG_FORMAT if verbose >= 1 else LOG_FORMAT,
        datefmt=LOG_TIMESTAMP_FORMAT,
    )

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    setattr(console, _HANDLER_MARKER, True)
    root.addHandler(console)

    log_path = job_log_path(archive_label, log_dir)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    except OSError as exc:
        logging.getLogger(__name__).warning(
            "Cannot open log file %s (%s); logging to stdout only.", log_path, exc.strerror or exc
        )
        return None

    file_handler.setFormatter(formatter)
    setattr(file_handler, _HANDLER_MARKER, True)
    root.addHandler(file_handler)
    return log_path
