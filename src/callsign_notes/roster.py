"""callsign_notes.roster

Source-type dispatch for roster fetchers.

Each fetcher exposes a single `fetch(org) -> list[Member]`; which one runs is
decided by the organization's `source_type` tag.
"""

from __future__ import annotations

from typing import Callable, Protocol

import requests

from callsign_notes.config import SOURCE_CSV, SOURCE_HTML_TABLE, Organization
from callsign_notes.roster_csv import CsvRosterFetcher
from callsign_notes.roster_html import HtmlTableRosterFetcher
from callsign_notes.shared import FetchError, Member


class RosterFetcher(Protocol):
    def fetch(self, org: Organization) -> list[Member]:
        """Return the validated, deduplicated members of org's roster."""
        ...


FETCHERS: dict[str, Callable[[requests.Session], RosterFetcher]] = {
    SOURCE_CSV: CsvRosterFetcher,
    SOURCE_HTML_TABLE: HtmlTableRosterFetcher,
}


def fetcher_for(org: Organization, session: requests.Session) -> RosterFetcher:
    try:
        factory = FETCHERS[org.source_type]
    except KeyError:
        raise FetchError(f"Unsupported source_type '{org.source_type}'") from None
    return factory(session)
