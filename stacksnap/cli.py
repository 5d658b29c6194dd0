"""
Command-line interface for stacksnap.

Notes
-----
The CLI is intentionally thin. It parses arguments, configures logging and
delegates to the job service.

Usage
-----
    stacksnap /path/to/site /path/to/repository.conf site-address

Exit status
-----------
- 0: snapshot, retention and integrity check all succeeded.
- 2: invalid arguments, backup root or repository configuration.
- otherwise: the exit status of the first failing external command.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from snapshot_engine.errors import StacksnapError
from snapshot_engine.job.service import SCRIPT_VERSION, run_backup_job
from snapshot_engine.log_setup import DEFAULT_LOG_DIR, configure_job_logging
from snapshot_engine.paths_and_safety import DEFAULT_SCRATCH_ROOT
from snapshot_engine.repository_config import load_repository_config

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """
    Build and return the argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured parser.
    """
    parser = argparse.ArgumentParser(
        prog="stacksnap",
        description=(
            "Back up a self-hosted application directory with restic: detect the "
            "application stack, dump its database, snapshot, prune and check the repository."
        ),
    )
    parser.add_argument("backup_root", type=Path, help="Directory to back up")
    parser.add_argument(
        "config_file",
        type=Path,
        help="Env-style file setting RESTIC_REPOSITORY, RESTIC_PASSWORD and the AWS keys",
    )
    parser.add_argument(
        "archive_label",
        help="Archive label (e.g. the site address); names the log file restic-<label>.log",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=DEFAULT_LOG_DIR,
        help=f"Directory for the append-only job log (default: {DEFAULT_LOG_DIR}).",
    )
    parser.add_argument(
        "--scratch-root",
        type=Path,
        default=DEFAULT_SCRATCH_ROOT,
        help=f"Parent directory for database dump scratch space (default: {DEFAULT_SCRATCH_ROOT}).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log debug output, including the (masked) commands being run.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {SCRIPT_VERSION}")
    return parser


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point.

    Parameters
    ----------
    argv:
        Optional argument vector. If None, argparse uses sys.argv.

    Returns
    -------
    int
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    label = args.archive_label.strip()
    if not label:
        print("ERROR: archive label must not be empty.")
        return 2

    configure_job_logging(label, log_dir=args.log_dir, verbose=args.verbose)

    try:
        repository = load_repository_config(args.config_file)
        report = run_backup_job(
            root=args.backup_root,
            archive_label=label,
            repository=repository,
            scratch_root=args.scratch_root,
        )
    except StacksnapError as exc:
        LOGGER.error("Backup not started: %s", exc)
        print(f"ERROR: {exc}")
        return 2
    return report.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
