from datetime import datetime
from typing import Any, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, SecretStr


MergeMethod = Literal["merge", "squash", "rebase"]

StopReason = Literal[
    "missing_pull_request",
    "no_matching_branch",
    "no_open_pull_request",
    "not_mergeable",
]


class Config(BaseModel):
    """Action inputs for a single run. Frozen once built."""

    model_config = ConfigDict(frozen=True)

    token: SecretStr
    approve: bool = False
    merge: bool = False
    label: Optional[str] = None
    merge_method: Optional[MergeMethod] = None
    only_protected_branches: bool = False
    # Empty tuple means no filter
    source_branches: Tuple[str, ...] = ()


class PRIdentity(BaseModel):
    owner: str
    repo: str
    number: int


# --- Event payload (read-only view of GITHUB_EVENT_PATH) ---


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Commit(_Payload):
    sha: Optional[str] = None


class BranchRef(_Payload):
    name: str
    protected: bool = False
    commit: Commit = Field(default_factory=Commit)


class Owner(_Payload):
    login: Optional[str] = None


class Repository(_Payload):
    name: Optional[str] = None
    full_name: Optional[str] = None
    owner: Owner = Field(default_factory=Owner)


class PullRequestEvent(_Payload):
    number: Optional[int] = None


class EventPayload(_Payload):
    pull_request: Optional[PullRequestEvent] = None
    repository: Optional[Repository] = None
    sha: Optional[str] = None
    branches: List[BranchRef] = Field(default_factory=list)


# --- Remote pull request state ---


class PullRequestState(_Payload):
    number: int
    # Kept as sent: None while GitHub is still computing, and only the JSON
    # literal true may count as mergeable
    mergeable: Any = None
    mergeable_state: Optional[str] = None
    updated_at: Optional[datetime] = None


# --- Run results ---


class Stop(BaseModel):
    """Policy-driven early termination. Not an error."""

    reason: StopReason
    message: str


class RunOutcome(BaseModel):
    result: Literal["success", "failure"]
    stop: Optional[Stop] = None
    error: Optional[str] = None

    def output(self) -> dict:
        return {"result": self.result}
