from __future__ import annotations

from pathlib import Path

import pytest

from snapshot_engine.errors import SafetyViolationError
from snapshot_engine.paths_and_safety import (
    remove_dump_artifact,
    reset_scratch_directory,
    resolve_dump_location,
    validate_backup_root,
)


def test_validate_backup_root_resolves_directory(tmp_path: Path) -> None:
    site = tmp_path / "site"
    site.mkdir()

    assert validate_backup_root(tmp_path / "site" / ".." / "site") == site.resolve()


def test_validate_backup_root_rejects_missing(tmp_path: Path) -> None:
    with pytest.raises(SafetyViolationError):
        validate_backup_root(tmp_path / "missing")


def test_validate_backup_root_rejects_file(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")

    with pytest.raises(SafetyViolationError):
        validate_backup_root(target)


def test_validate_backup_root_rejects_filesystem_root() -> None:
    with pytest.raises(SafetyViolationError):
        validate_backup_root(Path("/"))


def test_dump_location_is_named_after_database(tmp_path: Path) -> None:
    directory, dump_file = resolve_dump_location("moodle_db", tmp_path)

    assert directory == tmp_path.resolve() / "moodle_db"
    assert dump_file == directory / "moodle_db.sql"


@pytest.mark.parametrize("bad_name", ["", " ", ".", "..", "a/b", r"a\b", "a\x00b"])
def test_dump_location_rejects_unsafe_names(bad_name: str, tmp_path: Path) -> None:
    with pytest.raises(SafetyViolationError):
        resolve_dump_location(bad_name, tmp_path)


def test_reset_creates_missing_directory(tmp_path: Path) -> None:
    directory = reset_scratch_directory(tmp_path / "db", tmp_path)

    assert directory.is_dir()
    assert list(directory.iterdir()) == []


def test_reset_empties_existing_directory(tmp_path: Path) -> None:
    directory = tmp_path / "db"
    (directory / "sub").mkdir(parents=True)
    (directory / "db.sql").write_text("stale", encoding="utf-8")
    (directory / "sub" / "file").write_text("stale", encoding="utf-8")

    reset_scratch_directory(directory, tmp_path)

    assert directory.is_dir()
    assert list(directory.iterdir()) == []


def test_reset_refuses_scratch_root_itself(tmp_path: Path) -> None:
    with pytest.raises(SafetyViolationError):
        reset_scratch_directory(tmp_path, tmp_path)


def test_reset_refuses_directory_outside_scratch_root(tmp_path: Path) -> None:
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    outside = tmp_path / "elsewhere"
    outside.mkdir()
    (outside / "keep.txt").write_text("keep", encoding="utf-8")

    with pytest.raises(SafetyViolationError):
        reset_scratch_directory(outside, scratch)

    assert (outside / "keep.txt").exists()


def test_remove_dump_artifact(tmp_path: Path) -> None:
    dump_file = tmp_path / "db" / "db.sql"
    dump_file.parent.mkdir()
    dump_file.write_text("dump", encoding="utf-8")

    assert remove_dump_artifact(dump_file, tmp_path) is True
    assert not dump_file.exists()
    assert remove_dump_artifact(dump_file, tmp_path) is False
    assert remove_dump_artifact(None, tmp_path) is False


def test_remove_dump_artifact_outside_scratch_root_is_refused(tmp_path: Path) -> None:
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    victim = tmp_path / "important.sql"
    victim.write_text("keep", encoding="utf-8")

    with pytest.raises(SafetyViolationError):
        remove_dump_artifact(victim, scratch)

    assert victim.exists()
