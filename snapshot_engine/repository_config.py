"""
Repository configuration for stacksnap jobs.

The configuration file is the same shell-style env file a cron wrapper would
``source``::

    export RESTIC_REPOSITORY="s3:s3.amazonaws.com/example-backups"
    export RESTIC_PASSWORD='secret'
    AWS_ACCESS_KEY_ID=AKIA...
    AWS_SECRET_ACCESS_KEY=...

Only assignments to recognised keys are read. Values are tokenised with
:mod:`shlex`, so shell quoting and trailing comments behave as in a shell. No
variable expansion or command substitution is performed.

Notes
-----
The repository location, password and object-store keys are opaque to the job
except for the repository's final path component, which names the bucket
queried for usage reporting.
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from snapshot_engine.errors import RepositoryConfigError

REPOSITORY_KEY = "RESTIC_REPOSITORY"
PASSWORD_KEY = "RESTIC_PASSWORD"
ACCESS_KEY_KEY = "AWS_ACCESS_KEY_ID"
SECRET_KEY_KEY = "AWS_SECRET_ACCESS_KEY"

RESTIC_BINARY_KEY = "RESTIC_BINARY"
MYSQLDUMP_BINARY_KEY = "MYSQLDUMP_BINARY"
AWS_BINARY_KEY = "AWS_BINARY"

RECOGNISED_KEYS = frozenset(
    {
        REPOSITORY_KEY,
        PASSWORD_KEY,
        ACCESS_KEY_KEY,
        SECRET_KEY_KEY,
        RESTIC_BINARY_KEY,
        MYSQLDUMP_BINARY_KEY,
        AWS_BINARY_KEY,
    }
)


@dataclass(frozen=True, slots=True)
class ToolPaths:
    """
    Executables invoked by a job.

    Attributes
    ----------
    restic:
        Snapshot engine executable.
    mysqldump:
        Database dump utility.
    aws:
        Object-store query tool.
    """

    restic: str = "restic"
    mysqldump: str = "mysqldump"
    aws: str = "aws"


@dataclass(frozen=True, slots=True)
class RepositoryConfig:
    """
    Repository location and credentials.

    Attributes
    ----------
    repository:
        Snapshot repository location, e.g. ``s3:s3.amazonaws.com/bucket``.
    password:
        Repository password.
    access_key_id:
        Object-store access key.
    secret_access_key:
        Object-store secret key.
    tools:
        Executables to invoke.
    source_path:
        File the configuration was read from, when any.
    """

    repository: str
    password: str = field(default="", repr=False)
    access_key_id: str = ""
    secret_access_key: str = field(default="", repr=False)
    tools: ToolPaths = field(default_factory=ToolPaths)
    source_path: Path | None = None

    @property
    def bucket_name(self) -> str:
        """Final path component of the repository location."""
        return self.repository.rstrip("/").rsplit("/", 1)[-1]

    def engine_environment(self, base: Mapping[str, str] | None = None) -> dict[str, str]:
        """
        Build the environment for snapshot engine and object-store commands.

        Parameters
        ----------
        base:
            Environment to extend. Defaults to the current process environment.

        Returns
        -------
        dict[str, str]
            A new mapping with the repository and object-store variables set.
        """
        env = dict(os.environ if base is None else base)
        env[REPOSITORY_KEY] = self.repository
        if self.password:
            env[PASSWORD_KEY] = self.password
        if self.access_key_id:
            env[ACCESS_KEY_KEY] = self.access_key_id
        if self.secret_access_key:
            env[SECRET_KEY_KEY] = self.secret_access_key
        return env

    def secrets(self) -> tuple[str, ...]:
        """Values that must never appear in logged output."""
        return tuple(value for value in (self.password, self.secret_access_key) if value)


def parse_env_assignments(text: str) -> dict[str, str]:
    """
    Parse ``KEY=value`` assignments from shell-style text.

    Parameters
    ----------
    text:
        File contents.

    Returns
    -------
    dict[str, str]
        Recognised keys mapped to their last assigned value.

    Raises
    ------
    RepositoryConfigError
        If a line cannot be tokenised (e.g. an unterminated quote).
    """
    values: dict[str, str] = {}
    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            tokens = shlex.split(line)
        except ValueError as exc:
            raise RepositoryConfigError(f"Line {lineno}: cannot parse {raw_line!r} ({exc})") from exc
        if tokens and tokens[0] == "export":
            tokens = tokens[1:]
        for token in tokens:
            # '#' starts a comment only at the beginning of a word, as in sh.
            if token.startswith("#"):
                break
            key, sep, value = token.partition("=")
            if sep and key in RECOGNISED_KEYS:
                values[key] = value
    return values


def load_repository_config(path: Path) -> RepositoryConfig:
    """
    Load a repository configuration file.

    Parameters
    ----------
    path:
        Shell-style env file.

    Returns
    -------
    RepositoryConfig
        Parsed configuration.

    Raises
    ------
    RepositoryConfigError
        If the file cannot be read or does not set ``RESTIC_REPOSITORY``.
    """
    path = Path(path).expanduser()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RepositoryConfigError(f"Cannot read configuration file: {path} ({exc.strerror or exc})") from exc

    values = parse_env_assignments(text)
    repository = values.get(REPOSITORY_KEY, "").strip()
    if not repository:
        raise RepositoryConfigError(f"{REPOSITORY_KEY} is not set in {path}")

    defaults = ToolPaths()
    tools = ToolPaths(
        restic=values.get(RESTIC_BINARY_KEY) or defaults.restic,
        mysqldump=values.get(MYSQLDUMP_BINARY_KEY) or defaults.mysqldump,
        aws=values.get(AWS_BINARY_KEY) or defaults.aws,
    )
    return RepositoryConfig(
        repository=repository,
        password=values.get(PASSWORD_KEY, ""),
        access_key_id=values.get(ACCESS_KEY_KEY, ""),
        secret_access_key=values.get(SECRET_KEY_KEY, ""),
        tools=tools,
        source_path=path,
    )
