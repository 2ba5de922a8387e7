import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, get_args

from .models import Config, EventPayload, MergeMethod


class ConfigError(ValueError):
    """Raised when an action input cannot be used."""


class Settings:
    # Action inputs (INPUT_*)
    token: str
    approve: bool
    merge: bool
    label: Optional[str]
    merge_method: Optional[str]
    only_protected_branches: bool
    source_branches: Tuple[str, ...]

    # Runner environment
    github_api_url: str
    repository: Optional[str]
    event_name: Optional[str]
    event_path: Optional[str]
    output_path: Optional[str]
    log_level: str
    metrics_textfile: Optional[str]
    http_timeout: str
    service_version: str

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._env = os.environ if environ is None else environ

        self.token = self.input("token")
        # Only the literal string "true" enables a flag
        self.approve = self.input("approve") == "true"
        self.merge = self.input("merge") == "true"
        self.label = self.input("label") or None
        self.merge_method = self.input("mergeMethod", "merge_method") or None
        self.only_protected_branches = self.input("onlyProtectedBranches", "only_protected_branches") == "true"
        raw_branches = self.input("sourceBranches", "source_branches")
        self.source_branches = tuple(b.strip() for b in raw_branches.split(",") if b.strip())

        self.github_api_url = self._get("GITHUB_API_URL", "https://api.github.com").rstrip("/")
        self.repository = self._get("GITHUB_REPOSITORY") or None
        self.event_name = self._get("GITHUB_EVENT_NAME") or None
        self.event_path = self._get("GITHUB_EVENT_PATH") or None
        self.output_path = self._get("GITHUB_OUTPUT") or None
        self.metrics_textfile = self._get("METRICS_TEXTFILE") or None
        self.service_version = self._get("SERVICE_VERSION", "dev")
        self.http_timeout = self._get("HTTP_TIMEOUT_SECONDS", "60")
        # RUNNER_DEBUG is set when a workflow is re-run with debug logging
        if self._get("RUNNER_DEBUG") == "1":
            self.log_level = "DEBUG"
        else:
            self.log_level = self._get("LOG_LEVEL", "INFO").upper()

    def _get(self, key: str, default: str = "") -> str:
        return self._env.get(key, default).strip()

    def input(self, name: str, *aliases: str) -> str:
        """Read an action input the way the Actions runner exports it."""
        for candidate in (name, *aliases):
            value = self._get(f"INPUT_{candidate.replace(' ', '_').upper()}")
            if value:
                return value
        return ""

    def http_timeout_seconds(self) -> float:
        try:
            return float(self.http_timeout)
        except ValueError:
            raise ConfigError(f"HTTP_TIMEOUT_SECONDS must be a number, got {self.http_timeout!r}")

    def action_config(self) -> Config:
        if self.merge_method is not None and self.merge_method not in get_args(MergeMethod):
            raise ConfigError(
                f"Invalid mergeMethod {self.merge_method!r}; expected one of {', '.join(get_args(MergeMethod))}"
            )
        return Config(
            token=self.token,
            approve=self.approve,
            merge=self.merge,
            label=self.label,
            merge_method=self.merge_method,
            only_protected_branches=self.only_protected_branches,
            source_branches=self.source_branches,
        )

    def repo_slug(self, payload: EventPayload) -> Optional[Tuple[str, str]]:
        """Return (owner, repo) for API calls, preferring GITHUB_REPOSITORY."""
        if self.repository and "/" in self.repository:
            owner, repo = self.repository.split("/", 1)
            return owner, repo
        repo_info = payload.repository
        if repo_info and repo_info.owner.login and repo_info.name:
            return repo_info.owner.login, repo_info.name
        return None

    def load_event(self) -> EventPayload:
        return EventPayload.model_validate(read_event_file(self.event_path))


def read_event_file(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    event_path = Path(path)
    if not event_path.exists():
        return {}
    with event_path.open("r", encoding="utf-8") as handle:
        return json.load(handle)
