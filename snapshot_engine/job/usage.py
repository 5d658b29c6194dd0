"""
Repository usage reporting.

Best effort: asks the object store for the aggregate size of the bucket backing
the repository and logs it in GiB. Nothing here can fail a job; every error is
downgraded to a warning by :func:`report_repository_usage`.
"""

from __future__ import annotations

import json
import logging
from typing import Mapping

from snapshot_engine.commands import CommandRunner
from snapshot_engine.errors import UsageReportError
from snapshot_engine.repository_config import ToolPaths

LOGGER = logging.getLogger(__name__)

BYTES_PER_GIB = 1024**3
SIZE_QUERY = "[sum(Contents[].Size)]"


def build_size_query_command(bucket: str, aws: str = "aws") -> tuple[str, ...]:
    """Return the object-store command that sums object sizes in *bucket*."""
    return (aws, "s3api", "list-objects", "--bucket", bucket, "--output", "json", "--query", SIZE_QUERY)


def parse_size_query_output(stdout: str) -> int:
    """
    Parse the aggregate size from the size query's JSON output.

    Parameters
    ----------
    stdout:
        JSON document of the form ``[<bytes>]``. An empty bucket yields
        ``[null]`` and counts as zero.

    Returns
    -------
    int
        Aggregate size in bytes.

    Raises
    ------
    UsageReportError
        If the output is not the expected JSON shape.
    """
    try:
        payload = json.loads(stdout)
    except json.JSONDecodeError as exc:
        raise UsageReportError(f"Size query returned malformed JSON: {exc}") from exc

    if not isinstance(payload, list) or len(payload) != 1:
        raise UsageReportError(f"Unexpected size query output: {stdout.strip()!r}")
    value = payload[0]
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise UsageReportError(f"Unexpected size value: {value!r}")
    return int(value)


def query_bucket_size(
    bucket: str,
    *,
    runner: CommandRunner,
    tools: ToolPaths,
    environment: Mapping[str, str],
    secrets: tuple[str, ...] = (),
) -> int:
    """
    Return the aggregate size of *bucket* in bytes.

    Raises
    ------
    UsageReportError
        If the bucket is unknown, the query fails or its output cannot be parsed.
    """
    if not bucket:
        raise UsageReportError("Repository location has no bucket component.")
    result = runner.run(build_size_query_command(bucket, tools.aws), env=environment, secrets=secrets)
    if not result.ok:
        raise UsageReportError(f"Size query for bucket '{bucket}' failed with exit status {result.returncode}.")
    return parse_size_query_output(result.stdout)


def report_repository_usage(
    bucket: str,
    *,
    runner: CommandRunner,
    tools: ToolPaths,
    environment: Mapping[str, str],
    secrets: tuple[str, ...] = (),
) -> float | None:
    """
    Log the repository bucket's size in GiB.

    Returns
    -------
    float | None
        Size in GiB, or None when the size could not be determined (a warning
        has been logged).
    """
    try:
        size_bytes = query_bucket_size(
            bucket, runner=runner, tools=tools, environment=environment, secrets=secrets
        )
    except UsageReportError as exc:
        LOGGER.warning("Could not determine repository usage: %s", exc)
        return None
    except OSError as exc:
        LOGGER.warning("Could not determine repository usage: %s", exc.strerror or exc)
        return None

    gibibytes = size_bytes / BYTES_PER_GIB
    LOGGER.info("%.2fG used for the restic repo in bucket %s.", gibibytes, bucket)
    return gibibytes
