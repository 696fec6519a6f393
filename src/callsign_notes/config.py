"""callsign_notes.config

Loads and validates the YAML configuration consumed by the sync daemon.

Top-level keys:
  github: token, owner, repo, branch, commit author identity
  daemon: sync_interval_secs, run_once
  organizations: list of organization descriptors

A token written as "${VAR}" is replaced from the environment at load time.
Any key can also be overridden by an environment variable named
CALLSIGN_NOTES__<SECTION>__<KEY> (list elements by index, e.g.
CALLSIGN_NOTES__ORGANIZATIONS__0__ENABLED=false), applied before validation.
Validation failures raise ConfigValidationError; the CLI treats that as fatal
before any cycle runs.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from callsign_notes.shared import ConfigValidationError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SOURCE_CSV = "csv"
SOURCE_HTML_TABLE = "html_table"
VALID_SOURCE_TYPES = frozenset({SOURCE_CSV, SOURCE_HTML_TABLE})

REQUIRED_TOP_LEVEL_KEYS = frozenset({"github", "organizations"})
REQUIRED_GITHUB_KEYS = frozenset({
    "token", "owner", "repo", "branch", "commit_author_name", "commit_author_email",
})
REQUIRED_ENABLED_ORG_KEYS = ("roster_url", "label", "emoji", "output_file")

DEFAULT_SYNC_INTERVAL_SECS = 3600

_ENV_PLACEHOLDER_RE = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")
ENV_OVERRIDE_PREFIX = "CALLSIGN_NOTES__"


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GitHubTarget:
    owner: str
    repo: str
    branch: str


@dataclass
class GitHubConfig:
    token: str
    owner: str
    repo: str
    branch: str
    commit_author_name: str
    commit_author_email: str
    api_url: str = "https://api.github.com"

    @property
    def default_target(self) -> GitHubTarget:
        return GitHubTarget(self.owner, self.repo, self.branch)


@dataclass
class DaemonConfig:
    sync_interval_secs: int = DEFAULT_SYNC_INTERVAL_SECS
    run_once: bool = False


@dataclass
class Organization:
    name: str
    enabled: bool = True
    source_type: str = SOURCE_CSV
    roster_url: str = ""
    label: str = ""
    emoji: str = ""
    output_file: str = ""
    url: str | None = None  # shown in the notes header only
    skip_rows: int = 0
    # csv sources: columns resolved by header name
    callsign_column: str = "Callsign"
    number_column: str = "Number"
    # html_table sources: columns resolved by position
    callsign_column_index: int = 1
    number_column_index: int = 0
    table_selector: str = "table"
    github: dict[str, str] = field(default_factory=dict)

    def resolve_target(self, global_github: GitHubConfig) -> GitHubTarget:
        """Per-organization owner/repo/branch override, falling back to the global block."""
        return GitHubTarget(
            owner=self.github.get("owner") or global_github.owner,
            repo=self.github.get("repo") or global_github.repo,
            branch=self.github.get("branch") or global_github.branch,
        )


@dataclass
class Config:
    github: GitHubConfig
    daemon: DaemonConfig
    organizations: list[Organization]

    def enabled_organizations(self) -> list[Organization]:
        return [o for o in self.organizations if o.enabled]


# ---------------------------------------------------------------------------
# Loader + validator
# ---------------------------------------------------------------------------

def load_config(path: Path, environ: Mapping[str, str] | None = None) -> Config:
    """Load, apply environment overrides, validate, and return a Config.

    Raises:
        ConfigValidationError: If the file is missing, not YAML, or invalid.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigValidationError(f"Cannot read config file {path}: {exc}") from exc
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Config file {path} is not valid YAML: {exc}") from exc
    data = apply_env_overrides(data, os.environ if environ is None else environ)
    return parse_config(data)


def apply_env_overrides(data: Any, environ: Mapping[str, str]) -> Any:
    """Overlay CALLSIGN_NOTES__A__B=value variables onto the parsed YAML in place.

    Path segments are lowercased; a numeric segment indexes an existing list
    element. Values are read as YAML scalars so "3600" and "false" keep
    their types.
    """
    if not isinstance(data, dict):
        return data
    for name in sorted(environ):
        if not name.startswith(ENV_OVERRIDE_PREFIX):
            continue
        path = [seg.lower() for seg in name[len(ENV_OVERRIDE_PREFIX):].split("__")]
        if not all(path):
            raise ConfigValidationError(f"Malformed config override variable {name}")
        node: Any = data
        for seg in path[:-1]:
            node = _override_child(node, seg, name)
        value = _parse_override_value(environ[name])
        if isinstance(node, list):
            node[_list_index(node, path[-1], name)] = value
        else:
            node[path[-1]] = value
    return data


def _override_child(node: Any, seg: str, name: str) -> Any:
    if isinstance(node, list):
        child = node[_list_index(node, seg, name)]
    else:
        child = node.get(seg)
        if child is None:
            child = node[seg] = {}
    if not isinstance(child, (dict, list)):
        raise ConfigValidationError(f"{name}: '{seg}' is a value, not a section")
    return child


def _list_index(node: list[Any], seg: str, name: str) -> int:
    if not seg.isdigit() or int(seg) >= len(node):
        raise ConfigValidationError(f"{name}: no list element '{seg}'")
    return int(seg)


def _parse_override_value(raw: str) -> Any:
    try:
        value = yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw
    if value is None or isinstance(value, (dict, list)):
        return raw
    return value


def parse_config(data: Any) -> Config:
    validate_config(data)

    gh = data["github"]
    github = GitHubConfig(
        token=resolve_env_placeholder(str(gh["token"])),
        owner=str(gh["owner"]),
        repo=str(gh["repo"]),
        branch=str(gh["branch"]),
        commit_author_name=str(gh["commit_author_name"]),
        commit_author_email=str(gh["commit_author_email"]),
        api_url=str(gh.get("api_url") or "https://api.github.com").rstrip("/"),
    )

    dm = data.get("daemon") or {}
    daemon = DaemonConfig(
        sync_interval_secs=int(dm.get("sync_interval_secs", DEFAULT_SYNC_INTERVAL_SECS)),
        run_once=bool(dm.get("run_once", False)),
    )

    orgs = [_parse_organization(o) for o in data["organizations"]]
    return Config(github=github, daemon=daemon, organizations=orgs)


def _parse_organization(o: dict[str, Any]) -> Organization:
    url = o.get("url")
    return Organization(
        name=str(o["name"]),
        enabled=bool(o.get("enabled", True)),
        source_type=str(o.get("source_type", SOURCE_CSV)),
        roster_url=str(o.get("roster_url") or ""),
        label=str(o.get("label") or ""),
        emoji=str(o.get("emoji") or ""),
        output_file=str(o.get("output_file") or ""),
        url=str(url) if url else None,
        skip_rows=int(o.get("skip_rows", 0)),
        callsign_column=str(o.get("callsign_column", "Callsign")),
        number_column=str(o.get("number_column", "Number")),
        callsign_column_index=int(o.get("callsign_column_index", 1)),
        number_column_index=int(o.get("number_column_index", 0)),
        table_selector=str(o.get("table_selector", "table")),
        github={k: str(v) for k, v in (o.get("github") or {}).items()},
    )


def validate_config(data: Any) -> None:
    """Raise ConfigValidationError if data does not match the required schema.

    Validates:
      - Required top-level keys and github keys present
      - daemon.sync_interval_secs is a positive integer
      - organizations is a non-empty list of mappings with unique names
      - source_type is one of the supported values
      - enabled organizations carry every field their rendering needs
      - skip_rows and column indexes are non-negative integers
    """
    if not isinstance(data, dict):
        raise ConfigValidationError("YAML root must be a mapping.")

    missing = REQUIRED_TOP_LEVEL_KEYS - set(data.keys())
    if missing:
        raise ConfigValidationError(f"Missing required config keys: {sorted(missing)}")

    gh = data["github"]
    if not isinstance(gh, dict):
        raise ConfigValidationError("'github' must be a mapping.")
    missing_gh = sorted(k for k in REQUIRED_GITHUB_KEYS if not gh.get(k))
    if missing_gh:
        raise ConfigValidationError(f"Missing required github keys: {missing_gh}")

    dm = data.get("daemon") or {}
    if not isinstance(dm, dict):
        raise ConfigValidationError("'daemon' must be a mapping.")
    interval = dm.get("sync_interval_secs", DEFAULT_SYNC_INTERVAL_SECS)
    if not _is_int(interval) or int(interval) <= 0:
        raise ConfigValidationError(
            f"daemon.sync_interval_secs must be a positive integer, got {interval!r}."
        )

    orgs = data["organizations"]
    if not isinstance(orgs, list) or not orgs:
        raise ConfigValidationError("'organizations' must be a non-empty list.")

    names: set[str] = set()
    for idx, o in enumerate(orgs):
        if not isinstance(o, dict):
            raise ConfigValidationError(f"organizations[{idx}] must be a mapping.")
        name = o.get("name")
        if not name:
            raise ConfigValidationError(f"organizations[{idx}] is missing 'name'.")
        if name in names:
            raise ConfigValidationError(f"Duplicate organization name '{name}'.")
        names.add(name)

        source_type = o.get("source_type", SOURCE_CSV)
        if source_type not in VALID_SOURCE_TYPES:
            raise ConfigValidationError(
                f"Organization '{name}': invalid source_type '{source_type}'. "
                f"Must be one of {sorted(VALID_SOURCE_TYPES)}."
            )

        for key in ("skip_rows", "callsign_column_index", "number_column_index"):
            if key in o and (not _is_int(o[key]) or int(o[key]) < 0):
                raise ConfigValidationError(
                    f"Organization '{name}': {key} must be a non-negative integer."
                )

        if o.get("github") is not None and not isinstance(o["github"], dict):
            raise ConfigValidationError(f"Organization '{name}': 'github' must be a mapping.")

        if not o.get("enabled", True):
            continue
        missing_org = [k for k in REQUIRED_ENABLED_ORG_KEYS if not o.get(k)]
        if missing_org:
            raise ConfigValidationError(
                f"Organization '{name}' is enabled but missing: {missing_org}"
            )


def resolve_env_placeholder(value: str) -> str:
    """Replace a whole-value "${VAR}" placeholder with the environment value."""
    m = _ENV_PLACEHOLDER_RE.match(value)
    if not m:
        return value
    env_var = m.group(1)
    resolved = os.environ.get(env_var)
    if not resolved:
        raise ConfigValidationError(f"Environment variable {env_var} not set")
    return resolved


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
