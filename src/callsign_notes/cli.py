"""Command line entry point for the callsign notes sync daemon."""

from __future__ import annotations

import logging
import sys
import uuid
from pathlib import Path

import click

from callsign_notes.config import load_config
from callsign_notes.shared import ConfigValidationError
from callsign_notes.sync import build_cycle_report, run_daemon

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # urllib3 logs every retry/connection at DEBUG; keep it at WARNING
    logging.getLogger("urllib3").setLevel(logging.WARNING)


@click.command()
@click.option(
    "--config",
    "config_path",
    default="config.yaml",
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Path to YAML config file",
)
@click.option("--once", is_flag=True, default=False, help="Run a single pass and exit (overrides daemon.run_once)")
@click.option("--dry-run", is_flag=True, default=False, help="Render and log notes without committing")
@click.option(
    "--log-level",
    default="INFO",
    show_default=True,
    envvar="CALLSIGN_NOTES_LOG_LEVEL",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
)
@click.option("--run-id", default=None, help="Override UUID for log correlation")
def main(config_path: str, once: bool, dry_run: bool, log_level: str, run_id: str | None) -> None:
    """Generate Ham2K PoLo callsign notes from amateur radio organization rosters."""
    configure_logging(log_level)
    run_id = run_id or str(uuid.uuid4())

    try:
        config = load_config(Path(config_path))
    except ConfigValidationError as exc:
        click.echo(f"[{run_id}] FATAL: {exc}", err=True)
        sys.exit(1)

    single_pass = once or config.daemon.run_once
    click.echo(f"[{run_id}] Starting callsign notes sync (once={single_pass}, dry_run={dry_run})")

    counters = run_daemon(config, once=once, dry_run=dry_run)

    click.echo(build_cycle_report(counters, dry_run=dry_run))
    if counters.organizations_failed > 0:
        click.echo(
            f"[{run_id}] {counters.organizations_failed} organization(s) failed; exiting non-zero",
            err=True,
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
