"""Normalization functions for roster ingestion.

All functions accept str | None and return the appropriate type or None.
"""

from __future__ import annotations

import re

CALLSIGN_RE = re.compile(r"^[A-Z]{1,2}\d[A-Z]{1,4}$")
SILENT_KEY_SUFFIX = "/SK"


# ---------------------------------------------------------------------------
# Rule 1: trim
# ---------------------------------------------------------------------------

def trim(value: str | None) -> str | None:
    """Strip leading/trailing whitespace; treat empty string as None."""
    if value is None:
        return None
    v = value.strip()
    return v if v else None


# ---------------------------------------------------------------------------
# Rule 2: normalize_header
# ---------------------------------------------------------------------------

def normalize_header(value: str | None) -> str:
    """Lowercase and trim a header cell for column matching; inner spacing is kept."""
    return (trim(value) or "").lower()


# ---------------------------------------------------------------------------
# Rule 3: normalize_callsign
# ---------------------------------------------------------------------------

def normalize_callsign(value: str | None) -> str | None:
    """Trim and uppercase a callsign cell; blank → None."""
    v = trim(value)
    if v is None:
        return None
    return v.upper()


def is_silent_key(callsign: str) -> bool:
    """True for rows marked as deceased members (e.g. 'N6WK/SK')."""
    return callsign.upper().endswith(SILENT_KEY_SUFFIX)


def strip_portable_suffix(callsign: str) -> str:
    """Drop anything after the first '/' ('K1ABC/P' → 'K1ABC')."""
    return callsign.split("/", 1)[0].strip()


# ---------------------------------------------------------------------------
# Rule 4: callsign grammar
# ---------------------------------------------------------------------------

def is_valid_callsign(value: str | None) -> bool:
    """One or two letters, one digit, one to four letters."""
    if not value:
        return False
    return CALLSIGN_RE.fullmatch(value) is not None


# ---------------------------------------------------------------------------
# Rule 5: member_id
# ---------------------------------------------------------------------------

def normalize_member_id(value: str | None) -> str | None:
    """Trim a member number cell, keeping any achievement suffix ('2C').

    Member ids are opaque strings and never parsed as integers.
    """
    return trim(value)
