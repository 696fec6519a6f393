"""callsign_notes.sync

Multi-organization sync loop.

Processing order per tick:
  1.  Connectivity preflight (diagnostic only, never skips the tick)
  2.  Fresh HTTP session + fresh publisher pool
  3.  For each enabled organization, in config order:
      a.  Fetch roster (retried inside the fetcher)
      b.  Empty roster → warn, skip
      c.  Render notes
      d.  Dry run → log content, skip
      e.  Publish gate against the remote file
      f.  Commit when changed
  4.  Single-pass → return; otherwise sleep and repeat

A failure in any step for one organization is logged with the organization
name and its cause chain; the next organization still runs.
"""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

import requests

from callsign_notes.config import Config, GitHubConfig, Organization
from callsign_notes.github_publisher import (
    PublisherFactory,
    PublisherPool,
    default_publisher_factory,
)
from callsign_notes.notes import build_commit_message, render_notes
from callsign_notes.publish_gate import evaluate
from callsign_notes.roster import RosterFetcher, fetcher_for
from callsign_notes.shared import RunCounters, describe_exception

log = logging.getLogger(__name__)

STATUS_PUBLISHED = "published"
STATUS_UNCHANGED = "unchanged"
STATUS_EMPTY = "empty"
STATUS_DRY_RUN = "dry_run"

CONNECTIVITY_TARGETS: tuple[tuple[str, str, int], ...] = (
    ("Google (DNS)", "google.com", 443),
    ("Google Sheets", "docs.google.com", 443),
    ("GitHub API", "api.github.com", 443),
)
CONNECTIVITY_TIMEOUT_SECS = 10.0
ROSTER_USER_AGENT = "callsign-notes/1.0 (roster sync)"

FetcherFactory = Callable[[Organization, requests.Session], RosterFetcher]


@dataclass
class OrgOutcome:
    org_name: str
    status: str
    member_count: int = 0


# ---------------------------------------------------------------------------
# Connectivity preflight
# ---------------------------------------------------------------------------

def run_connectivity_check(
    targets: tuple[tuple[str, str, int], ...] = CONNECTIVITY_TARGETS,
    timeout: float = CONNECTIVITY_TIMEOUT_SECS,
) -> bool:
    """TCP-connect to each target and log the result. Returns True if all answered."""
    log.info("Running connectivity check...")
    all_ok = True
    for name, host, port in targets:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                log.debug("[connectivity] %s (%s:%d) - OK", name, host, port)
        except TimeoutError:
            all_ok = False
            log.warning("[connectivity] %s (%s:%d) - TIMEOUT after %.0fs", name, host, port, timeout)
        except OSError as exc:
            all_ok = False
            log.warning("[connectivity] %s (%s:%d) - FAILED: %s", name, host, port, describe_exception(exc))
    return all_ok


# ---------------------------------------------------------------------------
# One organization
# ---------------------------------------------------------------------------

def sync_organization(
    org: Organization,
    fetcher: RosterFetcher,
    pool: PublisherPool,
    github: GitHubConfig,
    dry_run: bool = False,
    now: datetime | None = None,
) -> OrgOutcome:
    """Fetch → render → gate → commit for one organization.

    Raises whatever the fetcher or publisher raises; the caller isolates it.
    """
    members = fetcher.fetch(org)
    log.info("[%s] Fetched %d members from roster", org.name, len(members))

    if not members:
        log.warning("[%s] No members found in roster, skipping publish this cycle", org.name)
        return OrgOutcome(org.name, STATUS_EMPTY)

    content = render_notes(
        members,
        label=org.label,
        emoji=org.emoji,
        source_url=org.url,
        generated_at=now or datetime.now(timezone.utc),
    )

    if dry_run:
        log.info("[%s] Dry run - would generate %s:\n%s", org.name, org.output_file, content)
        return OrgOutcome(org.name, STATUS_DRY_RUN, len(members))

    target = org.resolve_target(github)
    publisher = pool.get(target)
    decision = evaluate(publisher, org.output_file, content)
    if not decision.changed:
        log.info("[%s] %s unchanged since last commit, not publishing", org.name, org.output_file)
        return OrgOutcome(org.name, STATUS_UNCHANGED, len(members))

    publisher.commit_file(
        org.output_file,
        content,
        build_commit_message(org.label, len(members)),
    )
    log.info(
        "[%s] Published %s (%d members, %s) -> %s/%s",
        org.name, org.output_file, len(members), decision.reason, target.owner, target.repo,
    )
    return OrgOutcome(org.name, STATUS_PUBLISHED, len(members))


# ---------------------------------------------------------------------------
# One tick
# ---------------------------------------------------------------------------

def run_cycle(
    config: Config,
    dry_run: bool = False,
    network_ok: bool = True,
    session: requests.Session | None = None,
    publisher_factory: PublisherFactory = default_publisher_factory,
    fetcher_factory: FetcherFactory = fetcher_for,
    now: datetime | None = None,
) -> RunCounters:
    """Process every enabled organization once, isolating per-organization failures."""
    counters = RunCounters(network_down=not network_ok)
    own_session = session is None
    if session is None:
        session = requests.Session()
        session.headers.update({"User-Agent": ROSTER_USER_AGENT})
    pool = PublisherPool(config.github, publisher_factory)

    try:
        for org in config.enabled_organizations():
            counters.organizations_processed += 1
            log.info("[%s] Starting sync", org.name)
            try:
                fetcher = fetcher_factory(org, session)
                outcome = sync_organization(
                    org, fetcher, pool, config.github, dry_run=dry_run, now=now,
                )
            except Exception as exc:
                counters.organizations_failed += 1
                detail = describe_exception(exc)
                if not network_ok:
                    detail += " (network appears down)"
                log.error("[%s] Sync failed: %s", org.name, detail)
                counters.warnings.append(f"[{org.name}] {detail}")
                continue

            counters.members_rendered += outcome.member_count
            if outcome.status == STATUS_PUBLISHED:
                counters.organizations_published += 1
            elif outcome.status == STATUS_UNCHANGED:
                counters.organizations_unchanged += 1
            elif outcome.status == STATUS_EMPTY:
                counters.organizations_empty += 1
                counters.warnings.append(f"[{org.name}] empty roster, publish skipped")
            elif outcome.status == STATUS_DRY_RUN:
                counters.organizations_dry_run += 1
    finally:
        pool.close()
        if own_session:
            session.close()

    return counters


# ---------------------------------------------------------------------------
# Daemon loop
# ---------------------------------------------------------------------------

def run_daemon(config: Config, once: bool = False, dry_run: bool = False) -> RunCounters:
    """Run ticks until single-pass mode ends the loop.

    Returns the counters of the last tick (only reachable in single-pass mode).
    """
    run_once = once or config.daemon.run_once
    enabled = config.enabled_organizations()
    if not enabled:
        log.warning("No organizations enabled in config")
        return RunCounters()

    log.info("Starting callsign notes sync with %d enabled organization(s)", len(enabled))

    while True:
        network_ok = run_connectivity_check()
        counters = run_cycle(config, dry_run=dry_run, network_ok=network_ok)
        log.info(
            "Cycle complete: %d processed, %d published, %d unchanged, %d empty, %d failed",
            counters.organizations_processed,
            counters.organizations_published,
            counters.organizations_unchanged,
            counters.organizations_empty,
            counters.organizations_failed,
        )
        log.debug("Cycle counters: %s", counters.to_dict())

        if run_once:
            log.info("Run-once mode, exiting")
            return counters

        log.info("Sleeping for %d seconds", config.daemon.sync_interval_secs)
        time.sleep(config.daemon.sync_interval_secs)


# ---------------------------------------------------------------------------
# Report builder
# ---------------------------------------------------------------------------

def build_cycle_report(counters: RunCounters, dry_run: bool) -> str:
    c = counters.to_dict()
    lines = [
        "=== Callsign Notes Sync Report ===",
        f"dry_run        : {dry_run}",
        f"network_down   : {c['network_down']}",
        "",
        "--- Organizations ---",
        f"processed      : {c['organizations_processed']}",
        f"published      : {c['organizations_published']}",
        f"unchanged      : {c['organizations_unchanged']}",
        f"empty          : {c['organizations_empty']}",
        f"rendered only  : {c['organizations_dry_run']}",
        f"failed         : {c['organizations_failed']}",
        f"members        : {c['members_rendered']}",
    ]
    if c["warnings"]:
        lines += ["", "--- Warnings (first 10) ---"]
        lines += [f"  {w}" for w in c["warnings"][:10]]
    return "\n".join(lines)
