"""
Filesystem path policy and safety gates.

This module is the single choke point for the filesystem writes and deletions a
job performs outside of the snapshot engine:

- The backup root must be an existing directory and never a filesystem root.
- Database dumps are written to a scratch directory ``<scratch_root>/<dbname>``.
- Emptying the scratch directory and removing the dump artifact are only ever
  allowed inside the scratch root.

Nothing in the job code should delete files without going through this module.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from snapshot_engine.errors import SafetyViolationError

DEFAULT_SCRATCH_ROOT = Path("/tmp")
DUMP_FILE_SUFFIX = ".sql"


def validate_backup_root(root: Path) -> Path:
    """Validate a backup root and return its resolved absolute form.

    Parameters
    ----------
    root:
        Candidate directory to back up.

    Returns
    -------
    pathlib.Path
        Resolved absolute directory.

    Raises
    ------
    SafetyViolationError
        If the path does not exist, is not a directory, or is a filesystem root.
    """
    root = Path(root).expanduser()

    try:
        resolved = root.resolve(strict=True)
    except FileNotFoundError as exc:
        raise SafetyViolationError(f"Backup root does not exist: {root}") from exc

    if not resolved.is_dir():
        raise SafetyViolationError(f"Backup root is not a directory: {resolved}")

    if len(resolved.parts) <= 1:
        raise SafetyViolationError(f"Refusing to use filesystem root as backup root: {resolved}")

    return resolved


def resolve_dump_location(database_name: str, scratch_root: Path = DEFAULT_SCRATCH_ROOT) -> tuple[Path, Path]:
    """
    Resolve the scratch directory and dump file for a database.

    Parameters
    ----------
    database_name:
        Database name; used as both directory and file stem.
    scratch_root:
        Parent directory for per-database scratch directories.

    Returns
    -------
    tuple[Path, Path]
        ``(scratch_directory, dump_file)``.

    Raises
    ------
    SafetyViolationError
        If the database name cannot be used as a single path component.
    """
    name = database_name.strip()
    if not name or name in {".", ".."}:
        raise SafetyViolationError(f"Database name cannot be used as a directory name: {database_name!r}")
    if any(sep in name for sep in ("/", "\\", "\x00")):
        raise SafetyViolationError(f"Database name contains path separators: {database_name!r}")

    root = Path(scratch_root).resolve()
    scratch_directory = (root / name).resolve()
    _assert_within(root, scratch_directory, purpose="scratch directory")
    return scratch_directory, scratch_directory / f"{name}{DUMP_FILE_SUFFIX}"


def reset_scratch_directory(scratch_directory: Path, scratch_root: Path = DEFAULT_SCRATCH_ROOT) -> Path:
    """
    Create *scratch_directory*, or empty it if it already exists.

    Parameters
    ----------
    scratch_directory:
        Directory exclusively owned by the running job.
    scratch_root:
        Root the directory must live under.

    Returns
    -------
    Path
        The (now empty) scratch directory.

    Raises
    ------
    SafetyViolationError
        If the directory is not strictly inside *scratch_root*, or exists as a
        non-directory.
    """
    root = Path(scratch_root).resolve()
    directory = Path(scratch_directory).resolve()
    _assert_within(root, directory, purpose="scratch directory")
    if directory == root:
        raise SafetyViolationError(f"Refusing to empty the scratch root itself: {root}")

    if not directory.exists():
        directory.mkdir(parents=True)
        return directory
    if not directory.is_dir():
        raise SafetyViolationError(f"Scratch path exists and is not a directory: {directory}")

    for child in directory.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()
    return directory


def remove_dump_artifact(dump_file: Path | None, scratch_root: Path = DEFAULT_SCRATCH_ROOT) -> bool:
    """
    Remove a dump artifact if one exists.

    Parameters
    ----------
    dump_file:
        Dump artifact path, or None when no dump was produced.
    scratch_root:
        Root the artifact must live under.

    Returns
    -------
    bool
        True if a file was removed.
    """
    if dump_file is None:
        return False
    path = Path(dump_file)
    _assert_within(Path(scratch_root).resolve(), path.resolve(), purpose="dump artifact")
    if not path.is_file():
        return False
    path.unlink()
    return True


def _assert_within(base: Path, candidate: Path, purpose: str) -> None:
    """Ensure candidate is within base after resolution."""
    try:
        candidate.relative_to(base)
    except ValueError as exc:
        raise SafetyViolationError(
            f"Unsafe path for {purpose}: {candidate} is not within {base}"
        ) from exc
