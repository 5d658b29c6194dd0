"""Stack detection by fingerprint file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from snapshot_engine.profiles.registry import PROFILE_REGISTRY, ProfileDefinition

LOGGER = logging.getLogger(__name__)


def detect_profile(
    root: Path,
    registry: Sequence[ProfileDefinition] = PROFILE_REGISTRY,
) -> ProfileDefinition | None:
    """
    Identify the stack installed under *root*.

    Parameters
    ----------
    root:
        Backup root directory.
    registry:
        Candidate definitions in priority order.

    Returns
    -------
    ProfileDefinition | None
        The first definition whose fingerprint exists under *root*, or None when
        no fingerprint matches. None is a normal outcome, not an error.
    """
    for definition in registry:
        if (root / definition.fingerprint).exists():
            LOGGER.debug("Fingerprint %s found under %s", definition.fingerprint, root)
            return definition
    return None
