"""callsign_notes.github_publisher

Minimal commit/read client for the GitHub REST contents API.

Contract used by the sync orchestrator:
  - get_content_sha(path) / get_content(path) return None when the file does
    not exist yet (HTTP 404), never raise for absence.
  - commit_file(path, content, message) creates the file when no sha exists,
    otherwise updates it against the current sha. One attempt only; any
    failure surfaces as PublishError.
"""

from __future__ import annotations

import base64
import binascii
import logging
import urllib.parse
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import requests

from callsign_notes.config import GitHubConfig, GitHubTarget
from callsign_notes.shared import PublishError

log = logging.getLogger(__name__)

API_TIMEOUT_SECS = 30
USER_AGENT = "callsign-notes/1.0"


class RepositoryPublisher(Protocol):
    def get_content_sha(self, path: str) -> str | None:
        ...

    def get_content(self, path: str) -> str | None:
        ...

    def commit_file(self, path: str, content: str, message: str) -> None:
        ...


class GitHubPublisher:
    """Read and commit single files on one owner/repo/branch."""

    def __init__(
        self,
        token: str,
        target: GitHubTarget,
        author_name: str,
        author_email: str,
        api_url: str = "https://api.github.com",
        session: requests.Session | None = None,
        timeout: float = API_TIMEOUT_SECS,
    ) -> None:
        self.target = target
        self._author = {"name": author_name, "email": author_email}
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": USER_AGENT,
        })

    @classmethod
    def from_config(
        cls,
        config: GitHubConfig,
        target: GitHubTarget | None = None,
        session: requests.Session | None = None,
    ) -> GitHubPublisher:
        return cls(
            token=config.token,
            target=target or config.default_target,
            author_name=config.commit_author_name,
            author_email=config.commit_author_email,
            api_url=config.api_url,
            session=session,
        )

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    def _contents_url(self, path: str) -> str:
        quoted = urllib.parse.quote(path.lstrip("/"))
        return f"{self._api_url}/repos/{self.target.owner}/{self.target.repo}/contents/{quoted}"

    def _get_item(self, path: str) -> dict[str, Any] | None:
        try:
            resp = self._session.get(
                self._contents_url(path),
                params={"ref": self.target.branch},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise PublishError(f"GET {path} on {self._describe_target()} failed") from exc

        if resp.status_code == 404:
            return None
        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise PublishError(f"GET {path} on {self._describe_target()} failed") from exc

        try:
            item = resp.json()
        except ValueError as exc:
            raise PublishError(f"GET {path} on {self._describe_target()} returned invalid JSON") from exc
        if not isinstance(item, dict):
            raise PublishError(f"{path} on {self._describe_target()} is a directory, not a file")
        return item

    def get_content_sha(self, path: str) -> str | None:
        item = self._get_item(path)
        if item is None:
            return None
        return item.get("sha")

    def get_content(self, path: str) -> str | None:
        item = self._get_item(path)
        if item is None or item.get("content") is None:
            return None
        # Content comes base64 encoded with embedded newlines
        encoded = "".join(item["content"].split())
        try:
            return base64.b64decode(encoded).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise PublishError(f"Cannot decode content of {path}") from exc

    # ------------------------------------------------------------------ #
    # Commit                                                               #
    # ------------------------------------------------------------------ #

    def commit_file(self, path: str, content: str, message: str) -> None:
        sha = self.get_content_sha(path)
        log.debug(
            "Committing to %s file %s (%s)",
            self._describe_target(), path, "update" if sha else "create",
        )

        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": self.target.branch,
            "committer": dict(self._author),
            "author": dict(self._author),
        }
        if sha:
            body["sha"] = sha

        try:
            resp = self._session.put(self._contents_url(path), json=body, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            action = "update" if sha else "create"
            raise PublishError(f"Failed to {action} {path} on {self._describe_target()}") from exc

        log.info("Committed %s to %s", path, self._describe_target())

    def _describe_target(self) -> str:
        return f"{self.target.owner}/{self.target.repo}@{self.target.branch}"


# ---------------------------------------------------------------------------
# Per-tick publisher pool
# ---------------------------------------------------------------------------

PublisherFactory = Callable[[GitHubConfig, GitHubTarget], RepositoryPublisher]


def default_publisher_factory(config: GitHubConfig, target: GitHubTarget) -> RepositoryPublisher:
    return GitHubPublisher.from_config(config, target)


@dataclass
class PublisherPool:
    """One publisher per distinct target, created lazily and discarded after the tick."""

    config: GitHubConfig
    factory: PublisherFactory = default_publisher_factory
    _publishers: dict[GitHubTarget, RepositoryPublisher] = field(default_factory=dict, init=False)

    def get(self, target: GitHubTarget) -> RepositoryPublisher:
        if target not in self._publishers:
            self._publishers[target] = self.factory(self.config, target)
        return self._publishers[target]

    def close(self) -> None:
        for publisher in self._publishers.values():
            close = getattr(publisher, "close", None)
            if close is not None:
                close()
        self._publishers.clear()
