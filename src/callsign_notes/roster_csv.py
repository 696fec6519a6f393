"""callsign_notes.roster_csv

Roster fetcher for delimited-text exports (e.g. a published Google Sheet).

Layout assumptions:
  - Empty lines are ignored everywhere.
  - The export may start with metadata rows; `skip_rows` of them are dropped.
  - The next row is the header. Callsign and number columns are resolved by
    name, case-insensitively and ignoring surrounding whitespace.
  - Every following row is a data row.

A missing header row or an unresolvable column is a FetchError: the source or
its configuration is wrong, so retrying will not help.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from typing import Sequence

import requests

from callsign_notes.config import Organization
from callsign_notes.normalize import (
    is_valid_callsign,
    normalize_callsign,
    normalize_header,
    normalize_member_id,
)
from callsign_notes.shared import FetchError, Member, dedupe_members, fetch_with_retry

log = logging.getLogger(__name__)

CSV_TIMEOUT_SECS = 30


def find_column(headers: Sequence[str], name: str) -> int | None:
    """Return the index of the header matching name, or None."""
    target = normalize_header(name)
    for i, header in enumerate(headers):
        if normalize_header(header) == target:
            return i
    return None


def parse_roster_csv(
    text: str,
    callsign_column: str,
    number_column: str,
    skip_rows: int = 0,
    org_name: str = "",
) -> list[Member]:
    """Parse a delimited roster body into deduplicated Members in source order."""
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    # Empty lines are not records: they never count as metadata or header
    records = (row for row in reader if row)

    for _ in range(skip_rows):
        if next(records, None) is None:
            break

    headers = next(records, None)
    if headers is None:
        raise FetchError(f"CSV has no header row after skipping {skip_rows} metadata row(s)")
    log.debug("[%s] Header row: %s", org_name, headers)

    callsign_idx = find_column(headers, callsign_column)
    if callsign_idx is None:
        raise FetchError(f"Could not find callsign column '{callsign_column}' in CSV header {headers}")
    number_idx = find_column(headers, number_column)
    if number_idx is None:
        raise FetchError(f"Could not find number column '{number_column}' in CSV header {headers}")
    needed = max(callsign_idx, number_idx) + 1

    members: list[Member] = []
    for row in records:
        row_num = reader.line_num
        if not any(cell.strip() for cell in row):
            continue
        if len(row) < needed:
            log.warning(
                "[%s] Row %d: expected at least %d fields, got %d; skipping",
                org_name, row_num, needed, len(row),
            )
            continue

        callsign = normalize_callsign(row[callsign_idx])
        if callsign is None:
            log.debug("[%s] Row %d: empty callsign", org_name, row_num)
            continue
        if not is_valid_callsign(callsign):
            log.warning("[%s] Row %d: invalid callsign %r; skipping", org_name, row_num, callsign)
            continue

        member_id = normalize_member_id(row[number_idx])
        if member_id is None:
            log.warning("[%s] Row %d: missing member number for %s; skipping", org_name, row_num, callsign)
            continue

        members.append(Member(callsign=callsign, member_id=member_id))

    return dedupe_members(members, org_name)


@dataclass
class CsvRosterFetcher:
    """Fetch a delimited roster over HTTP and parse it."""

    session: requests.Session
    timeout: float = CSV_TIMEOUT_SECS

    def fetch(self, org: Organization) -> list[Member]:
        body = fetch_with_retry(self.session, org.roster_url, org.name, timeout=self.timeout)
        try:
            return parse_roster_csv(
                body,
                callsign_column=org.callsign_column,
                number_column=org.number_column,
                skip_rows=org.skip_rows,
                org_name=org.name,
            )
        except csv.Error as exc:
            raise FetchError(f"malformed CSV from {org.roster_url}") from exc
