"""callsign_notes.shared

Shared types and helpers used by the roster fetchers, the publisher and the
sync orchestrator. Includes the Member record, the error taxonomy, the
retrying HTTP GET, and the per-cycle RunCounters.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

import requests

log = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 0.5


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigValidationError(Exception):
    """Raised when the configuration file is missing, unreadable or invalid."""


class FetchError(Exception):
    """Raised when an organization's roster cannot be retrieved or parsed."""


class PublishError(Exception):
    """Raised when the remote store rejects a read or a commit."""


def describe_exception(exc: BaseException) -> str:
    """Render an exception and its whole cause chain on one line.

    requests failures are tagged so operators can tell a network outage
    ('[connection error]', '[timeout]') from an HTTP status or a data error.
    """
    parts: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current) or type(current).__name__
        if isinstance(current, requests.Timeout):
            text += " [timeout]"
        elif isinstance(current, requests.ConnectionError):
            text += " [connection error]"
        parts.append(text)
        if current.__cause__ is not None:
            current = current.__cause__
        elif current.__suppress_context__:
            current = None
        else:
            current = current.__context__
    return " -> ".join(parts)


# ---------------------------------------------------------------------------
# Member
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Member:
    callsign: str
    member_id: str  # opaque; may carry an achievement suffix such as "2C"


def dedupe_members(members: Iterable[Member], org_name: str = "") -> list[Member]:
    """Keep the first occurrence of each callsign, preserving source order."""
    seen: set[str] = set()
    out: list[Member] = []
    for m in members:
        if m.callsign in seen:
            log.debug("[%s] Duplicate callsign dropped: %s #%s", org_name, m.callsign, m.member_id)
            continue
        seen.add(m.callsign)
        out.append(m)
    return out


# ---------------------------------------------------------------------------
# Fetch helpers
# ---------------------------------------------------------------------------

def fetch_with_retry(
    session: requests.Session,
    url: str,
    org_name: str,
    timeout: float = 30,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_RETRY_BASE_DELAY,
) -> str:
    """GET url and return the body text, retrying transport and HTTP failures.

    Delay between attempts doubles from base_delay. Raises FetchError chained
    to the last failure once max_attempts are exhausted.
    """
    last_exc: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            resp = session.get(url, timeout=timeout)
            resp.raise_for_status()
            return resp.text
        except requests.RequestException as exc:
            last_exc = exc
            log.warning(
                "[%s] Fetch attempt %d/%d failed for %s: %s",
                org_name, attempt, max_attempts, url, describe_exception(exc),
            )

        if attempt < max_attempts:
            delay = base_delay * (2 ** (attempt - 1))
            log.info("[%s] Retrying in %.1fs", org_name, delay)
            time.sleep(delay)

    raise FetchError(f"giving up on {url} after {max_attempts} attempts") from last_exc


# ---------------------------------------------------------------------------
# RunCounters
# ---------------------------------------------------------------------------

@dataclass
class RunCounters:
    organizations_processed: int = 0
    organizations_published: int = 0
    organizations_unchanged: int = 0
    organizations_empty: int = 0
    organizations_dry_run: int = 0
    organizations_failed: int = 0
    members_rendered: int = 0
    network_down: bool = False
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in self.__dict__.items() if k != "warnings"}
        d["warnings"] = self.warnings[:50]
        return d
