"""
Module entrypoint for the stacksnap CLI.

This file exists so that `python -m stacksnap ...` works when the console-script
wrapper is not installed (e.g. from a cron job pointing at a checkout).
"""

from __future__ import annotations

from stacksnap.cli import main


def _run() -> None:
    """
    Execute the command line interface and exit with its status.

    Raises
    ------
    SystemExit
        Always; carries the job's exit status.
    """
    raise SystemExit(main())


if __name__ == "__main__":
    _run()
