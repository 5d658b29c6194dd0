from __future__ import annotations

from pathlib import Path

import pytest

from snapshot_engine.errors import RepositoryConfigError
from snapshot_engine.repository_config import (
    RepositoryConfig,
    ToolPaths,
    load_repository_config,
    parse_env_assignments,
)

SAMPLE = """# restic repository for site backups
export RESTIC_REPOSITORY="s3:s3.amazonaws.com/acme-backups"
export RESTIC_PASSWORD='pa ss#word'
AWS_ACCESS_KEY_ID=AKIAEXAMPLE   # access key
AWS_SECRET_ACCESS_KEY=abc#def
UNRELATED=ignored
"""


def test_parse_handles_export_quotes_and_comments() -> None:
    values = parse_env_assignments(SAMPLE)

    assert values == {
        "RESTIC_REPOSITORY": "s3:s3.amazonaws.com/acme-backups",
        "RESTIC_PASSWORD": "pa ss#word",
        "AWS_ACCESS_KEY_ID": "AKIAEXAMPLE",
        "AWS_SECRET_ACCESS_KEY": "abc#def",
    }


def test_parse_last_assignment_wins() -> None:
    values = parse_env_assignments("RESTIC_PASSWORD=one\nRESTIC_PASSWORD=two\n")

    assert values["RESTIC_PASSWORD"] == "two"


def test_parse_rejects_unterminated_quote() -> None:
    with pytest.raises(RepositoryConfigError, match="Line 2"):
        parse_env_assignments("RESTIC_REPOSITORY=x\nRESTIC_PASSWORD='oops\n")


def test_load_repository_config(tmp_path: Path) -> None:
    path = tmp_path / "repo.conf"
    path.write_text(SAMPLE + "RESTIC_BINARY=/opt/restic/restic\n", encoding="utf-8")

    config = load_repository_config(path)

    assert config.repository == "s3:s3.amazonaws.com/acme-backups"
    assert config.password == "pa ss#word"
    assert config.bucket_name == "acme-backups"
    assert config.tools == ToolPaths(restic="/opt/restic/restic")
    assert config.source_path == path
    assert "pa ss#word" not in repr(config)


def test_load_requires_repository(tmp_path: Path) -> None:
    path = tmp_path / "repo.conf"
    path.write_text("RESTIC_PASSWORD=pw\n", encoding="utf-8")

    with pytest.raises(RepositoryConfigError, match="RESTIC_REPOSITORY"):
        load_repository_config(path)


def test_load_missing_file(tmp_path: Path) -> None:
    with pytest.raises(RepositoryConfigError, match="Cannot read"):
        load_repository_config(tmp_path / "missing.conf")


@pytest.mark.parametrize(
    ("repository", "bucket"),
    [
        ("s3:s3.amazonaws.com/acme", "acme"),
        ("s3:s3.amazonaws.com/acme/", "acme"),
        ("s3:https://minio.local:9000/acme", "acme"),
    ],
)
def test_bucket_name_is_final_component(repository: str, bucket: str) -> None:
    assert RepositoryConfig(repository=repository).bucket_name == bucket


def test_engine_environment_sets_only_known_values() -> None:
    config = RepositoryConfig(repository="s3:host/bucket", password="pw")

    env = config.engine_environment({"PATH": "/usr/bin", "AWS_ACCESS_KEY_ID": "from-env"})

    assert env == {
        "PATH": "/usr/bin",
        "AWS_ACCESS_KEY_ID": "from-env",
        "RESTIC_REPOSITORY": "s3:host/bucket",
        "RESTIC_PASSWORD": "pw",
    }
    assert config.secrets() == ("pw",)
