"""Map an event payload to the one pull request a run acts on.

Each resolver returns either its value or a :class:`Stop` describing why the
run should end neutrally. Nothing here raises for policy reasons; exceptions
are left for remote/transport errors.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple, Union

from .github import PullRequestAPI
from .models import Config, EventPayload, PRIdentity, PullRequestState, Stop

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def resolve_branch(payload: EventPayload, cfg: Config) -> Union[str, Stop]:
    """Pick the first payload branch whose head is the event commit.

    The protection flag must equal ``cfg.only_protected_branches`` exactly, so
    ``False`` selects unprotected branches only.
    """
    allow = set(cfg.source_branches)
    for branch in payload.branches:
        if branch.commit.sha != payload.sha:
            continue
        if branch.protected != cfg.only_protected_branches:
            continue
        if allow and branch.name not in allow:
            continue
        logger.debug("Found branch %s for sha=%s", branch.name, payload.sha)
        return branch.name
    logger.debug(
        "No branch matched: sha=%s candidates=%s only_protected=%s source_branches=%s",
        payload.sha,
        [b.name for b in payload.branches],
        cfg.only_protected_branches,
        list(cfg.source_branches),
    )
    return Stop(
        reason="no_matching_branch",
        message="Couldn't find a branch name that matches the configuration, exiting.",
    )


def _updated_key(pr: PullRequestState) -> datetime:
    ts = pr.updated_at or _OLDEST
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def resolve_pull_number(
    gh: PullRequestAPI, owner: str, repo: str, head_owner: str, branch: str
) -> Union[int, Stop]:
    head = f"{head_owner}:{branch}"
    pulls = [PullRequestState.model_validate(p) for p in gh.list_open_pulls(owner, repo, head)]
    if not pulls:
        return Stop(
            reason="no_open_pull_request",
            message=f"Couldn't find open pull requests for {head}, exiting.",
        )
    # Stable sort: equal timestamps keep the order GitHub returned
    pulls.sort(key=_updated_key, reverse=True)
    logger.debug("Found %d pull request(s) for %s: %s", len(pulls), head, [p.number for p in pulls])
    return pulls[0].number


def _branch_context(payload: EventPayload, repo_slug: Optional[Tuple[str, str]]) -> Optional[Tuple[str, str, str]]:
    """Return (owner, repo, head_owner) when branch resolution is possible."""
    if not (payload.repository and payload.sha and repo_slug):
        return None
    head_owner = payload.repository.owner.login or repo_slug[0]
    return repo_slug[0], repo_slug[1], head_owner


def resolve_target(
    gh: PullRequestAPI,
    payload: EventPayload,
    cfg: Config,
    repo_slug: Optional[Tuple[str, str]],
) -> Union[PRIdentity, Stop]:
    # pull_request events name the PR directly; no lookup needed
    if payload.pull_request and payload.pull_request.number is not None and repo_slug:
        logger.info("Found pull request #%s in the event payload", payload.pull_request.number)
        return PRIdentity(owner=repo_slug[0], repo=repo_slug[1], number=payload.pull_request.number)

    ctx = None if payload.pull_request else _branch_context(payload, repo_slug)
    if ctx is None:
        return Stop(reason="missing_pull_request", message="Event payload missing `pull_request`, exiting.")

    owner, repo, head_owner = ctx
    logger.info("Resolving pull request from commit %s in %s/%s", payload.sha, owner, repo)
    branch = resolve_branch(payload, cfg)
    if isinstance(branch, Stop):
        return branch
    number = resolve_pull_number(gh, owner, repo, head_owner, branch)
    if isinstance(number, Stop):
        return number
    return PRIdentity(owner=owner, repo=repo, number=number)
