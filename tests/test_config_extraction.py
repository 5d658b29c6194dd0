from __future__ import annotations

from pathlib import Path

import pytest

from snapshot_engine.data_models import StackProfile
from snapshot_engine.errors import ConfigParseError
from snapshot_engine.profiles.extract import (
    MOODLE_EXCLUDED_SUBPATHS,
    extract_mautic,
    extract_moodle,
    extract_osticket,
    extract_redmine,
    extract_stack_config,
)
from snapshot_engine.profiles.registry import PROFILE_REGISTRY, ProfileDefinition

MOODLE_CONFIG = """<?php  // Moodle configuration file

unset($CFG);
global $CFG;
$CFG = new stdClass();

$CFG->dbtype    = 'mysqli';
$CFG->dblibrary = 'native';
$CFG->dbhost    = 'localhost';
$CFG->dbname    = 'x';
$CFG->dbuser    = 'u';
$CFG->dbpass    = 'p';
$CFG->prefix    = 'mdl_';

$CFG->wwwroot   = 'https://moodle.example.org';
$CFG->dataroot  = '/data/m1';
$CFG->admin     = 'admin';

require_once(__DIR__ . '/lib/setup.php');
"""

OSTICKET_CONFIG = """<?php
# Database Options
define('DBTYPE','mysql');
define('DBHOST','localhost');
define('DBNAME','osticket');
define('DBUSER','ost_user');
define('DBPASS','s3cret');
define('TABLE_PREFIX','ost_');
"""

MAUTIC_CONFIG = """<?php
$parameters = array(
	'db_driver' => 'pdo_mysql',
	'db_host' => 'localhost',
	'db_port' => '3306',
	'db_name' => 'mautic',
	'db_user' => 'mautic_user',
	'db_password' => 'mautic_pass',
	'db_table_prefix' => null,
);
"""

REDMINE_CONFIG = """default: &default
  adapter: mysql2
  host: localhost
  encoding: utf8mb4

development:
  <<: *default
  database: redmine_development
  username: dev
  password: "devpass"

production:
  <<: *default
  database: redmine
  username: redmine
  password: "r3dm1ne"
"""


def _definition(profile: StackProfile) -> ProfileDefinition:
    return next(d for d in PROFILE_REGISTRY if d.profile is profile)


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_moodle_extracts_credentials_dataroot_and_fixed_excludes(tmp_path: Path) -> None:
    config = _write(tmp_path / "config.php", MOODLE_CONFIG)

    result = extract_moodle(config, tmp_path)

    assert result.credentials.database_name == "x"
    assert result.credentials.user == "u"
    assert result.credentials.password == "p"
    assert result.extra_paths.extra_include_paths == (Path("/data/m1"),)
    assert result.extra_paths.exclude_paths == tuple(
        Path("/data/m1") / sub for sub in ("cache", "localcache", "lock", "sessions", "temp", "trashdir")
    )
    assert len(MOODLE_EXCLUDED_SUBPATHS) == 6


def test_moodle_without_dataroot_has_no_exclusion_mechanism(tmp_path: Path) -> None:
    text = "\n".join(line for line in MOODLE_CONFIG.splitlines() if "dataroot" not in line)
    config = _write(tmp_path / "config.php", text)

    result = extract_moodle(config, tmp_path)

    assert result.credentials.is_complete
    assert result.extra_paths.extra_include_paths == ()
    assert result.extra_paths.exclude_paths is None


def test_moodle_missing_key_degrades_to_empty_field(tmp_path: Path) -> None:
    text = MOODLE_CONFIG.replace("$CFG->dbpass    = 'p';", "$CFG->dbpass    = getenv('DBPASS');")
    config = _write(tmp_path / "config.php", text)

    result = extract_moodle(config, tmp_path)

    assert result.credentials.password == ""
    assert result.credentials.database_name == "x"
    assert not result.credentials.is_complete


def test_osticket_extracts_credentials_without_extra_paths(tmp_path: Path) -> None:
    config = _write(tmp_path / "include" / "ost-config.php", OSTICKET_CONFIG)

    result = extract_osticket(config, tmp_path)

    assert (result.credentials.database_name, result.credentials.user, result.credentials.password) == (
        "osticket",
        "ost_user",
        "s3cret",
    )
    assert result.extra_paths.extra_include_paths == ()
    assert result.extra_paths.exclude_paths is None


def test_mautic_extracts_credentials_and_excludes_cache(tmp_path: Path) -> None:
    config = _write(tmp_path / "app" / "config" / "local.php", MAUTIC_CONFIG)

    result = extract_mautic(config, tmp_path)

    assert result.credentials.database_name == "mautic"
    assert result.credentials.user == "mautic_user"
    assert result.credentials.password == "mautic_pass"
    assert result.extra_paths.exclude_paths == (tmp_path / "app" / "cache",)


def test_redmine_reads_production_section(tmp_path: Path) -> None:
    config = _write(tmp_path / "config" / "database.yml", REDMINE_CONFIG)

    result = extract_redmine(config, tmp_path)

    assert result.credentials.database_name == "redmine"
    assert result.credentials.user == "redmine"
    assert result.credentials.password == "r3dm1ne"
    assert result.extra_paths.exclude_paths is None


def test_redmine_numeric_password_is_stringified(tmp_path: Path) -> None:
    config = _write(
        tmp_path / "config" / "database.yml",
        "production:\n  database: rm\n  username: rm\n  password: 123456\n",
    )

    result = extract_redmine(config, tmp_path)

    assert result.credentials.password == "123456"


def test_redmine_malformed_yaml_degrades_to_empty_credentials(tmp_path: Path) -> None:
    config = _write(tmp_path / "config" / "database.yml", "production: [unclosed\n  database: x\n")

    result = extract_redmine(config, tmp_path)

    assert not result.credentials.is_complete
    assert result.credentials.database_name == ""


def test_redmine_without_production_section(tmp_path: Path) -> None:
    config = _write(tmp_path / "config" / "database.yml", "development:\n  database: dev\n")

    result = extract_redmine(config, tmp_path)

    assert result.credentials.database_name == ""


def test_unreadable_config_raises_config_parse_error(tmp_path: Path) -> None:
    # A directory where the fingerprint file is expected cannot be opened as a file.
    (tmp_path / "config.php").mkdir()
    definition = _definition(StackProfile.MOODLE)

    with pytest.raises(ConfigParseError):
        extract_stack_config(definition, tmp_path)


def test_extract_stack_config_dispatches_by_profile(tmp_path: Path) -> None:
    _write(tmp_path / "include" / "ost-config.php", OSTICKET_CONFIG)
    definition = _definition(StackProfile.OSTICKET)

    result = extract_stack_config(definition, tmp_path)

    assert result.credentials.database_name == "osticket"
