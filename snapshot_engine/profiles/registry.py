"""
Registry of known application stacks.

The registry is an ordered tuple of :class:`ProfileDefinition` entries. Order is
priority: when a backup root contains fingerprints of several stacks, the
earliest entry wins. Adding a stack means adding one ``StackProfile`` member,
one extraction function and one entry here; neither detection nor the job
orchestration changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable

from snapshot_engine.data_models import StackProfile
from snapshot_engine.profiles.extract import (
    ExtractionResult,
    extract_mautic,
    extract_moodle,
    extract_osticket,
    extract_redmine,
)

Extractor = Callable[[Path, Path], ExtractionResult]


@dataclass(frozen=True, slots=True)
class ProfileDefinition:
    """
    A known stack and how to read its configuration.

    Attributes
    ----------
    profile:
        Stack identity.
    fingerprint:
        Relative path whose presence under a backup root identifies the stack.
        It is also the configuration file the extractor reads.
    extractor:
        ``(config_file, root) -> ExtractionResult``.
    """

    profile: StackProfile
    fingerprint: PurePosixPath
    extractor: Extractor


PROFILE_REGISTRY: tuple[ProfileDefinition, ...] = (
    ProfileDefinition(StackProfile.MOODLE, PurePosixPath("config.php"), extract_moodle),
    ProfileDefinition(StackProfile.OSTICKET, PurePosixPath("include/ost-config.php"), extract_osticket),
    ProfileDefinition(StackProfile.MAUTIC, PurePosixPath("app/config/local.php"), extract_mautic),
    ProfileDefinition(StackProfile.REDMINE, PurePosixPath("config/database.yml"), extract_redmine),
)
