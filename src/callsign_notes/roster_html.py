"""callsign_notes.roster_html

Roster fetcher for rosters published as an HTML table (e.g. the SKCC
membership listing).

Cells are picked by position, not by header text, since these pages do not
keep stable headers. Rows whose callsign ends in "/SK" (Silent Key) are
dropped before validation. Member numbers keep their achievement suffix
("2C", "660S") as an opaque string.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import requests
from bs4 import BeautifulSoup

from callsign_notes.config import Organization
from callsign_notes.normalize import (
    is_silent_key,
    is_valid_callsign,
    normalize_callsign,
    normalize_member_id,
    strip_portable_suffix,
)
from callsign_notes.shared import FetchError, Member, dedupe_members, fetch_with_retry

log = logging.getLogger(__name__)

HTML_TIMEOUT_SECS = 60


def parse_roster_html(
    html: str,
    callsign_index: int,
    number_index: int,
    table_selector: str = "table",
    org_name: str = "",
) -> list[Member]:
    """Extract deduplicated Members from the first table matching table_selector."""
    soup = BeautifulSoup(html, "html.parser")
    table = soup.select_one(table_selector)
    if table is None:
        raise FetchError(f"No table matching '{table_selector}' found in HTML roster")

    needed = max(callsign_index, number_index) + 1
    members: list[Member] = []
    silent_keys = 0

    for row_num, tr in enumerate(table.find_all("tr")):
        cells = tr.find_all("td")
        # Header rows use <th>
        if not cells:
            continue
        if len(cells) < needed:
            log.debug("[%s] Row %d: not enough columns (%d)", org_name, row_num, len(cells))
            continue

        callsign_raw = normalize_callsign(cells[callsign_index].get_text(strip=True))
        if callsign_raw is None:
            continue
        if is_silent_key(callsign_raw):
            silent_keys += 1
            log.debug("[%s] Row %d: skipping Silent Key %s", org_name, row_num, callsign_raw)
            continue

        callsign = strip_portable_suffix(callsign_raw)
        if not is_valid_callsign(callsign):
            log.warning("[%s] Row %d: invalid callsign %r; skipping", org_name, row_num, callsign_raw)
            continue

        member_id = normalize_member_id(cells[number_index].get_text(strip=True))
        if member_id is None:
            log.warning("[%s] Row %d: empty member ID for %s; skipping", org_name, row_num, callsign)
            continue

        members.append(Member(callsign=callsign, member_id=member_id))

    if silent_keys:
        log.info("[%s] Excluded %d Silent Key row(s)", org_name, silent_keys)
    return dedupe_members(members, org_name)


@dataclass
class HtmlTableRosterFetcher:
    """Fetch an HTML roster page over HTTP and parse its member table."""

    session: requests.Session
    timeout: float = HTML_TIMEOUT_SECS

    def fetch(self, org: Organization) -> list[Member]:
        html = fetch_with_retry(self.session, org.roster_url, org.name, timeout=self.timeout)
        return parse_roster_html(
            html,
            callsign_index=org.callsign_column_index,
            number_index=org.number_column_index,
            table_selector=org.table_selector,
            org_name=org.name,
        )
