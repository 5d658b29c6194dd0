"""
External command execution.

Every external tool a job drives (dump utility, snapshot engine, object-store
query tool) is invoked through a :class:`CommandRunner`. Stages depend on the
protocol, not on :mod:`subprocess`, so tests substitute a recording fake.

Notes
-----
- Commands run synchronously with no timeout; the next stage starts only after
  the previous command returns.
- Captured output is echoed line by line to the job logger so it reaches both
  stdout and the job's log file.
- Secret values are masked before any command line or output is logged.
- Output is decoded as UTF-8; undecodable bytes (e.g. latin-1 filenames in
  engine warnings) are replaced rather than raised.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, Sequence

LOGGER = logging.getLogger(__name__)

COMMAND_NOT_FOUND_EXIT = 127
COMMAND_NOT_EXECUTABLE_EXIT = 126
MASK = "***"


@dataclass(frozen=True, slots=True)
class CommandResult:
    """
    Outcome of one external command.

    Attributes
    ----------
    argv:
        Command line that was executed.
    returncode:
        Exit status. ``127`` when the executable was not found, ``126`` when it
        could not be executed.
    stdout:
        Captured standard output (empty when redirected to a file).
    stderr:
        Captured standard error.
    """

    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    """Runs one external command to completion."""

    def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        stdout_path: Path | None = None,
        secrets: Iterable[str] = (),
    ) -> CommandResult:
        """
        Execute *argv* and wait for it to finish.

        Parameters
        ----------
        argv:
            Executable followed by its arguments.
        env:
            Full environment for the child, or None to inherit.
        stdout_path:
            When given, standard output is written to this file instead of
            being captured.
        secrets:
            Values to mask in logged command lines and output.

        Returns
        -------
        CommandResult
            Exit status and captured output.
        """
        ...


def mask_sensitive(value: str, secrets: Iterable[str]) -> str:
    """Replace occurrences of secret values in *value* with ``***``."""
    masked = value
    for secret in secrets:
        if secret:
            masked = masked.replace(secret, MASK)
    return masked


def format_command(argv: Sequence[str], secrets: Iterable[str] = ()) -> str:
    """Render *argv* as a single masked string for logging."""
    return mask_sensitive(" ".join(argv), tuple(secrets))


@dataclass(frozen=True, slots=True)
class SubprocessRunner:
    """CommandRunner backed by :func:`subprocess.run`."""

    logger: logging.Logger = LOGGER

    def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        stdout_path: Path | None = None,
        secrets: Iterable[str] = (),
    ) -> CommandResult:
        args = tuple(str(part) for part in argv)
        hidden = tuple(secrets)
        self.logger.debug("Running: %s", format_command(args, hidden))

        child_env = dict(env) if env is not None else None
        if stdout_path is not None:
            # OSError from opening the output file propagates to the calling stage.
            with Path(stdout_path).open("w", encoding="utf-8") as handle:
                completed = self._spawn(args, stdout=handle, stderr=subprocess.PIPE, env=child_env)
        else:
            completed = self._spawn(args, stdout=subprocess.PIPE, stderr=subprocess.PIPE, env=child_env)

        if isinstance(completed, CommandResult):
            return completed

        stdout = (completed.stdout or "") if stdout_path is None else ""
        stderr = completed.stderr or ""
        _echo_lines(self.logger, logging.INFO, stdout, hidden)
        _echo_lines(self.logger, logging.WARNING, stderr, hidden)
        return CommandResult(argv=args, returncode=completed.returncode, stdout=stdout, stderr=stderr)

    def _spawn(
        self,
        args: tuple[str, ...],
        *,
        stdout: Any,
        stderr: Any,
        env: dict[str, str] | None,
    ) -> subprocess.CompletedProcess[str] | CommandResult:
        try:
            return subprocess.run(
                args, stdout=stdout, stderr=stderr, encoding="utf-8", errors="replace", env=env, check=False
            )
        except FileNotFoundError as exc:
            returncode = COMMAND_NOT_FOUND_EXIT
            message = f"Executable not found: {args[0]} ({exc.strerror or exc})"
        except PermissionError as exc:
            returncode = COMMAND_NOT_EXECUTABLE_EXIT
            message = f"Executable cannot be run: {args[0]} ({exc.strerror or exc})"
        except OSError as exc:
            returncode = COMMAND_NOT_EXECUTABLE_EXIT
            message = f"Cannot execute {args[0]} ({exc.strerror or exc})"
        self.logger.error(message)
        return CommandResult(argv=args, returncode=returncode, stderr=message)


def _echo_lines(logger: logging.Logger, level: int, text: str, secrets: tuple[str, ...]) -> None:
    for line in text.splitlines():
        if line.strip():
            logger.log(level, "%s", mask_sensitive(line, secrets))
