"""Unit tests for the HTML-table roster fetcher."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

import pytest
import requests

from callsign_notes.config import Organization
from callsign_notes.roster_html import HtmlTableRosterFetcher, parse_roster_html
from callsign_notes.shared import FetchError, Member

SKCC_HTML = """
<html><body>
<table class="nav"><tr><td>Home</td><td>Roster</td></tr></table>
<table class="skcc_table">
    <tr>
        <th>SKCC #</th>
        <th>Call</th>
        <th>Name</th>
    </tr>
    <tr>
        <td>1</td>
        <td>KC9ECI</td>
        <td>Tom</td>
    </tr>
    <tr>
        <td>2C</td>
        <td>KI4CIA</td>
        <td>Melinda</td>
    </tr>
    <tr>
        <td>3S</td>
        <td>N6WK/SK</td>
        <td>Gordon [SK]</td>
    </tr>
</table>
</body></html>
"""


def _org(**overrides) -> Organization:
    base = dict(
        name="skcc",
        source_type="html_table",
        roster_url="https://www.skccgroup.com/membership_data/membership_roster.php",
        label="SKCC",
        emoji="🔑",
        output_file="skcc-notes.txt",
        callsign_column_index=1,
        number_column_index=0,
        table_selector="table.skcc_table",
    )
    base.update(overrides)
    return Organization(**base)


def _table(*rows: tuple[str, ...]) -> str:
    body = "".join(
        "<tr>" + "".join(f"<td>{c}</td>" for c in row) + "</tr>" for row in rows
    )
    return f"<table><tr><th>#</th><th>Call</th></tr>{body}</table>"


# ---------------------------------------------------------------------------
# parse_roster_html
# ---------------------------------------------------------------------------

class TestParseRosterHtml:
    def test_parses_skcc_table(self):
        members = parse_roster_html(SKCC_HTML, 1, 0, table_selector="table.skcc_table")
        assert members == [Member("KC9ECI", "1"), Member("KI4CIA", "2C")]

    def test_silent_key_excluded(self):
        members = parse_roster_html(SKCC_HTML, 1, 0, table_selector="table.skcc_table")
        assert "N6WK" not in {m.callsign for m in members}

    def test_lowercase_silent_key_excluded(self):
        members = parse_roster_html(_table(("4", "n6wk/sk"), ("5", "K4MW")), 1, 0)
        assert members == [Member("K4MW", "5")]

    def test_achievement_suffix_kept(self):
        members = parse_roster_html(_table(("660S", "K4MW"), ("14947T", "W6JSV")), 1, 0)
        assert [m.member_id for m in members] == ["660S", "14947T"]

    def test_default_selector_uses_first_table(self):
        # First <table> in SKCC_HTML is the nav table with no callsigns
        assert parse_roster_html(SKCC_HTML, 1, 0) == []

    def test_missing_table_is_fetch_error(self):
        with pytest.raises(FetchError, match="No table matching"):
            parse_roster_html("<p>maintenance</p>", 1, 0)

    def test_short_rows_skipped(self):
        html = _table(("1",), ("2", "K4MW"))
        assert parse_roster_html(html, 1, 0) == [Member("K4MW", "2")]

    def test_invalid_callsign_skipped_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            members = parse_roster_html(_table(("1", "NOTACALL"), ("2", "K4MW")), 1, 0, org_name="skcc")
        assert members == [Member("K4MW", "2")]
        assert "[skcc] Row" in caplog.text
        assert "NOTACALL" in caplog.text

    def test_portable_suffix_stripped(self):
        assert parse_roster_html(_table(("7", "k1abc/p")), 1, 0) == [Member("K1ABC", "7")]

    def test_empty_member_id_skipped(self):
        assert parse_roster_html(_table(("", "K4MW")), 1, 0) == []

    def test_duplicates_keep_first(self):
        html = _table(("1", "K4MW"), ("2C", "K4MW"))
        assert parse_roster_html(html, 1, 0) == [Member("K4MW", "1")]

    def test_nested_markup_in_cells(self):
        html = "<table><tr><td><b>12</b></td><td> <a href='#'>w6jsv</a> </td></tr></table>"
        assert parse_roster_html(html, 1, 0) == [Member("W6JSV", "12")]


# ---------------------------------------------------------------------------
# HtmlTableRosterFetcher
# ---------------------------------------------------------------------------

class TestHtmlTableRosterFetcher:
    def test_fetch(self):
        session = MagicMock()
        resp = MagicMock()
        resp.text = SKCC_HTML
        session.get.return_value = resp
        members = HtmlTableRosterFetcher(session).fetch(_org())
        assert members == [Member("KC9ECI", "1"), Member("KI4CIA", "2C")]
        session.get.assert_called_once_with(_org().roster_url, timeout=60)

    @patch("callsign_notes.shared.time.sleep")
    def test_timeout_exhausts_retries(self, mock_sleep, caplog):
        session = MagicMock()
        session.get.side_effect = requests.Timeout("read timed out")
        with caplog.at_level(logging.WARNING):
            with pytest.raises(FetchError):
                HtmlTableRosterFetcher(session).fetch(_org())
        assert session.get.call_count == 3
        assert "[timeout]" in caplog.text
        assert "Fetch attempt 3/3 failed" in caplog.text
