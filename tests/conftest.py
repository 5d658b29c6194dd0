from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest


@pytest.fixture(autouse=True)
def _reset_job_logging() -> Iterator[None]:
    """Detach handlers attached by configure_job_logging during a test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if getattr(handler, "_stacksnap_handler", False):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
