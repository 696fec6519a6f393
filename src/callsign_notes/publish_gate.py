"""callsign_notes.publish_gate

Change detection in front of the publisher. Two artifacts that differ only in
their "# Generated:" line are the same artifact, so an hourly cycle over a
stable roster produces no commit.
"""

from __future__ import annotations

from dataclasses import dataclass

from callsign_notes.github_publisher import RepositoryPublisher
from callsign_notes.notes import TIMESTAMP_MARKER

REASON_ABSENT = "absent"
REASON_CHANGED = "changed"
REASON_UNCHANGED = "unchanged"


@dataclass(frozen=True)
class GateDecision:
    changed: bool
    reason: str


def comparable_lines(text: str) -> list[str]:
    """Split on "\\n" only (a trailing "\\r" is dropped) and skip the timestamp line."""
    lines = [line.rstrip("\r") for line in text.split("\n")]
    if lines and lines[-1] == "":
        lines.pop()
    return [line for line in lines if not line.startswith(TIMESTAMP_MARKER)]


def content_changed(new_content: str, existing_content: str | None) -> bool:
    """True when existing is absent or differs outside the timestamp line."""
    if existing_content is None:
        return True
    return comparable_lines(new_content) != comparable_lines(existing_content)


def evaluate(publisher: RepositoryPublisher, path: str, new_content: str) -> GateDecision:
    existing = publisher.get_content(path)
    if existing is None:
        return GateDecision(changed=True, reason=REASON_ABSENT)
    if content_changed(new_content, existing):
        return GateDecision(changed=True, reason=REASON_CHANGED)
    return GateDecision(changed=False, reason=REASON_UNCHANGED)
