"""Integration test fixtures.

Replaces the network with a URL-routed fake session and the GitHub contents
API with an in-memory repository, so whole sync cycles run offline.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest
import requests

from callsign_notes.config import (
    Config,
    DaemonConfig,
    GitHubConfig,
    GitHubTarget,
    Organization,
)
from callsign_notes.shared import PublishError

# ---------------------------------------------------------------------------
# Fake roster session
# ---------------------------------------------------------------------------


class FakeResponse:
    def __init__(self, text: str, status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class FakeSession:
    """Routes GETs by exact URL; unknown URLs behave like an unreachable host."""

    def __init__(self, routes: dict[str, str] | None = None) -> None:
        self.routes: dict[str, str | Exception | FakeResponse] = dict(routes or {})
        self.calls: list[str] = []
        self.headers: dict[str, str] = {}
        self.closed = False

    def get(self, url: str, timeout: float | None = None, **kwargs) -> FakeResponse:
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            raise requests.ConnectionError(f"Failed to resolve {url}")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, FakeResponse):
            return route
        return FakeResponse(route)

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# In-memory repository publisher
# ---------------------------------------------------------------------------


@dataclass
class Commit:
    path: str
    content: str
    message: str


@dataclass
class InMemoryPublisher:
    target: GitHubTarget
    files: dict[str, str] = field(default_factory=dict)
    commits: list[Commit] = field(default_factory=list)
    fail_commits: bool = False
    closed: bool = False

    def get_content_sha(self, path: str) -> str | None:
        return f"sha-{len(self.files[path])}" if path in self.files else None

    def get_content(self, path: str) -> str | None:
        return self.files.get(path)

    def commit_file(self, path: str, content: str, message: str) -> None:
        if self.fail_commits:
            raise PublishError(f"Failed to update {path}")
        self.files[path] = content
        self.commits.append(Commit(path, content, message))

    def close(self) -> None:
        self.closed = True


class FakeGitHub:
    """Publisher factory keeping one in-memory repository per target across ticks."""

    def __init__(self) -> None:
        self.repos: dict[GitHubTarget, InMemoryPublisher] = {}
        self.created: list[GitHubTarget] = []

    def __call__(self, config: GitHubConfig, target: GitHubTarget) -> InMemoryPublisher:
        self.created.append(target)
        if target not in self.repos:
            self.repos[target] = InMemoryPublisher(target)
        return self.repos[target]

    def repo(self, owner: str = "owner", repo: str = "notes", branch: str = "main") -> InMemoryPublisher:
        return self.repos.setdefault(
            GitHubTarget(owner, repo, branch), InMemoryPublisher(GitHubTarget(owner, repo, branch))
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

QRQ_URL = "https://example.test/qrqcrew.csv"
SKCC_URL = "https://example.test/skcc_roster.php"
CWOPS_URL = "https://unreachable.test/cwops.csv"

QRQ_CSV = (
    "QRQ Crew Roster\n"
    "Updated weekly\n"
    "\n"
    "Call,Name,QC #\n"
    "W6JSV,Jay,10\n"
    "K4MW,Mike,1\n"
    "WN7JT,Jim,2\n"
)

SKCC_HTML = """
<table class="roster">
  <tr><th>SKCC #</th><th>Call</th></tr>
  <tr><td>1</td><td>KC9ECI</td></tr>
  <tr><td>2C</td><td>KI4CIA</td></tr>
  <tr><td>3S</td><td>N6WK/SK</td></tr>
</table>
"""


@pytest.fixture()
def github_config() -> GitHubConfig:
    return GitHubConfig(
        token="tok",
        owner="owner",
        repo="notes",
        branch="main",
        commit_author_name="Notes Bot",
        commit_author_email="bot@example.com",
    )


@pytest.fixture()
def organizations() -> list[Organization]:
    return [
        Organization(
            name="cwops",
            roster_url=CWOPS_URL,
            label="CWops",
            emoji="🎹",
            output_file="cwops-notes.txt",
        ),
        Organization(
            name="qrqcrew",
            roster_url=QRQ_URL,
            label="QRQ Crew",
            emoji="⚓",
            url="https://qrqcrew.club",
            output_file="qrqcrew-notes.txt",
            callsign_column="Call",
            number_column="QC #",
            skip_rows=2,
        ),
        Organization(
            name="skcc",
            source_type="html_table",
            roster_url=SKCC_URL,
            label="SKCC",
            emoji="🔑",
            output_file="skcc-notes.txt",
            github={"repo": "skcc-notes"},
        ),
    ]


@pytest.fixture()
def config(github_config, organizations) -> Config:
    return Config(github=github_config, daemon=DaemonConfig(run_once=True), organizations=organizations)


@pytest.fixture()
def session() -> FakeSession:
    return FakeSession({QRQ_URL: QRQ_CSV, SKCC_URL: SKCC_HTML})


@pytest.fixture()
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch):
    monkeypatch.setattr("callsign_notes.shared.time.sleep", lambda _secs: None)
