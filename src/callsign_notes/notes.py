"""Ham2K PoLo callsign notes rendering.

Output format (consumed downstream, keep stable):

    # <label> Callsign Notes for Ham2K PoLo
    # Generated: YYYY-MM-DD HH:MM:SS UTC
    # <source url>                                   (optional)
    # Do not edit manually - this file is auto-generated

    <CALLSIGN> <emoji> <label> #<member id>
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from callsign_notes.shared import Member

TIMESTAMP_MARKER = "# Generated:"
_TS_FORMAT = "%Y-%m-%d %H:%M:%S UTC"
COMMIT_TRAILER = "Generated by callsign-notes"


def format_timestamp(generated_at: datetime) -> str:
    """Naive datetimes are taken as UTC; aware ones are converted."""
    if generated_at.tzinfo is None:
        generated_at = generated_at.replace(tzinfo=timezone.utc)
    return generated_at.astimezone(timezone.utc).strftime(_TS_FORMAT)


def render_notes(
    members: Sequence[Member],
    label: str,
    emoji: str,
    source_url: str | None,
    generated_at: datetime,
) -> str:
    lines = [
        f"# {label} Callsign Notes for Ham2K PoLo",
        f"{TIMESTAMP_MARKER} {format_timestamp(generated_at)}",
    ]
    if source_url:
        lines.append(f"# {source_url}")
    lines.append("# Do not edit manually - this file is auto-generated")
    lines.append("")

    for m in sorted(members, key=lambda m: m.callsign):
        lines.append(f"{m.callsign} {emoji} {label} #{m.member_id}")

    return "\n".join(lines) + "\n"


def build_commit_message(label: str, member_count: int) -> str:
    return f"Update {label} callsign notes ({member_count} members)\n\n{COMMIT_TRAILER}"
