from __future__ import annotations

import logging

import pytest

from fake_runner import FakeRunner
from snapshot_engine.data_models import DEFAULT_RETENTION_POLICY
from snapshot_engine.errors import IntegrityFailureError, RetentionFailureError
from snapshot_engine.job.retention import build_forget_command, enforce_retention
from snapshot_engine.job.verify import verify_repository
from snapshot_engine.repository_config import ToolPaths

ENV = {"RESTIC_REPOSITORY": "s3:s3.amazonaws.com/bucket", "RESTIC_PASSWORD": "pw"}


def test_forget_uses_fixed_windows() -> None:
    assert build_forget_command(DEFAULT_RETENTION_POLICY) == (
        "restic",
        "forget",
        "--keep-daily",
        "7",
        "--keep-weekly",
        "5",
        "--keep-monthly",
        "12",
    )


def test_retention_runs_forget_then_prune() -> None:
    runner = FakeRunner()

    enforce_retention(runner=runner, tools=ToolPaths(), environment=ENV, secrets=("pw",))

    assert runner.operations == ["forget", "prune"]
    assert runner.call("prune").argv == ("restic", "prune")
    assert all(call.env == ENV for call in runner.calls)


def test_forget_failure_skips_prune() -> None:
    runner = FakeRunner(returncodes={"forget": 1})

    with pytest.raises(RetentionFailureError) as excinfo:
        enforce_retention(runner=runner, tools=ToolPaths(), environment=ENV)

    assert runner.operations == ["forget"]
    assert excinfo.value.returncode == 1
    assert excinfo.value.stage == "retention"


def test_prune_failure_is_a_retention_failure() -> None:
    runner = FakeRunner(returncodes={"prune": 4})

    with pytest.raises(RetentionFailureError) as excinfo:
        enforce_retention(runner=runner, tools=ToolPaths(), environment=ENV)

    assert excinfo.value.returncode == 4


def test_check_success() -> None:
    runner = FakeRunner()

    verify_repository(runner=runner, tools=ToolPaths(restic="/usr/local/bin/restic"), environment=ENV)

    assert runner.call("check").argv == ("/usr/local/bin/restic", "check")


def test_check_failure_is_logged_critical(caplog: pytest.LogCaptureFixture) -> None:
    runner = FakeRunner(returncodes={"check": 1})

    with caplog.at_level(logging.INFO), pytest.raises(IntegrityFailureError) as excinfo:
        verify_repository(runner=runner, tools=ToolPaths(), environment=ENV)

    assert excinfo.value.stage == "check"
    assert any(record.levelno == logging.CRITICAL for record in caplog.records)
