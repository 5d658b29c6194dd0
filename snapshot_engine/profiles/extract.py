"""
Per-stack configuration extraction.

Each known stack keeps its database credentials (and, for some stacks, a data
directory) in its own native configuration format. The functions here read that
file and pull out exactly what a backup job needs:

- three credential fields (database name, user, password),
- extra include paths (e.g. Moodle's data root),
- a fixed set of exclude paths (caches, sessions, locks).

Failure policy
--------------
- A file that cannot be opened raises :class:`ConfigParseError`.
- A missing or unparseable key yields an empty field. A job with an empty
  credential field skips the database dump instead of failing.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from snapshot_engine.data_models import Credentials, ExtraPaths
from snapshot_engine.errors import ConfigParseError

if TYPE_CHECKING:
    from snapshot_engine.profiles.registry import ProfileDefinition

LOGGER = logging.getLogger(__name__)

MOODLE_EXCLUDED_SUBPATHS: tuple[str, ...] = (
    "cache",
    "localcache",
    "lock",
    "sessions",
    "temp",
    "trashdir",
)
MAUTIC_EXCLUDED_SUBPATHS: tuple[str, ...] = ("app/cache",)

REDMINE_ENVIRONMENT = "production"


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """
    Credentials and paths extracted from a stack's configuration.

    Attributes
    ----------
    credentials:
        Database credentials; fields may be empty.
    extra_paths:
        Additional include paths and the stack's exclusion set.
    """

    credentials: Credentials = field(default_factory=Credentials)
    extra_paths: ExtraPaths = field(default_factory=ExtraPaths)


def extract_stack_config(definition: ProfileDefinition, root: Path) -> ExtractionResult:
    """
    Extract credentials and extra paths for a detected stack.

    Parameters
    ----------
    definition:
        Registry entry of the detected profile.
    root:
        Backup root the fingerprint was found under.

    Returns
    -------
    ExtractionResult
        Extracted values.

    Raises
    ------
    ConfigParseError
        If the stack's configuration file cannot be opened.
    """
    return definition.extractor(root / definition.fingerprint, root)


def extract_moodle(config_file: Path, root: Path) -> ExtractionResult:
    """Read ``$CFG->...`` assignments from Moodle's ``config.php``."""
    text = _read_config(config_file)
    credentials = Credentials(
        database_name=_match(text, _php_property("dbname"), config_file),
        user=_match(text, _php_property("dbuser"), config_file),
        password=_match(text, _php_property("dbpass"), config_file),
    )

    dataroot = _match(text, _php_property("dataroot"), config_file)
    if not dataroot:
        return ExtractionResult(credentials=credentials)

    data_root = Path(dataroot)
    return ExtractionResult(
        credentials=credentials,
        extra_paths=ExtraPaths(
            extra_include_paths=(data_root,),
            exclude_paths=tuple(data_root / sub for sub in MOODLE_EXCLUDED_SUBPATHS),
        ),
    )


def extract_osticket(config_file: Path, root: Path) -> ExtractionResult:
    """Read ``define('DB...', '...')`` constants from ``include/ost-config.php``."""
    text = _read_config(config_file)
    return ExtractionResult(
        credentials=Credentials(
            database_name=_match(text, _php_define("DBNAME"), config_file),
            user=_match(text, _php_define("DBUSER"), config_file),
            password=_match(text, _php_define("DBPASS"), config_file),
        )
    )


def extract_mautic(config_file: Path, root: Path) -> ExtractionResult:
    """Read ``'db_*' => '...'`` parameters from ``app/config/local.php``."""
    text = _read_config(config_file)
    return ExtractionResult(
        credentials=Credentials(
            database_name=_match(text, _php_array_key("db_name"), config_file),
            user=_match(text, _php_array_key("db_user"), config_file),
            password=_match(text, _php_array_key("db_pass(?:word)?"), config_file),
        ),
        extra_paths=ExtraPaths(
            exclude_paths=tuple(root / sub for sub in MAUTIC_EXCLUDED_SUBPATHS),
        ),
    )


def extract_redmine(config_file: Path, root: Path) -> ExtractionResult:
    """Read the production section of Redmine's ``config/database.yml``."""
    text = _read_config(config_file)
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        LOGGER.warning("Cannot parse %s as YAML (%s); database dump will be skipped.", config_file, exc)
        return ExtractionResult()

    section = document.get(REDMINE_ENVIRONMENT) if isinstance(document, dict) else None
    if not isinstance(section, dict):
        LOGGER.warning("No '%s' section in %s.", REDMINE_ENVIRONMENT, config_file)
        return ExtractionResult()

    return ExtractionResult(
        credentials=Credentials(
            database_name=_scalar(section.get("database")),
            user=_scalar(section.get("username")),
            password=_scalar(section.get("password")),
        )
    )


def _read_config(config_file: Path) -> str:
    try:
        return config_file.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise ConfigParseError(f"Cannot open configuration file: {config_file} ({exc.strerror or exc})") from exc


def _php_property(name: str) -> re.Pattern[str]:
    return re.compile(r"\$CFG->" + name + r"\s*=\s*(?P<q>['\"])(?P<value>.*?)(?P=q)")


def _php_define(name: str) -> re.Pattern[str]:
    return re.compile(
        r"define\s*\(\s*(['\"])" + name + r"\1\s*,\s*(?P<q>['\"])(?P<value>.*?)(?P=q)"
    )


def _php_array_key(name: str) -> re.Pattern[str]:
    return re.compile(r"(['\"])" + name + r"\1\s*=>\s*(?P<q>['\"])(?P<value>.*?)(?P=q)")


def _match(text: str, pattern: re.Pattern[str], config_file: Path) -> str:
    """Return the first quoted value matched by *pattern*, or ``""``."""
    for line in text.splitlines():
        stripped = line.lstrip()
        if stripped.startswith(("//", "#", "*")):
            continue
        found = pattern.search(line)
        if found:
            return found.group("value")
    LOGGER.debug("No match for %s in %s", pattern.pattern, config_file)
    return ""


def _scalar(value: object) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value)
