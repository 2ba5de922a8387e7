import logging
from typing import Optional, Tuple

from .github import PullRequestAPI
from .models import Config, PRIdentity, PullRequestState, Stop
from .metrics import actions_total

logger = logging.getLogger(__name__)


def evaluate_mergeability(gh: PullRequestAPI, target: PRIdentity) -> Tuple[bool, str, PullRequestState]:
    pr = PullRequestState.model_validate(gh.get_pull(target.owner, target.repo, target.number))
    # mergeable is None while GitHub computes it; only an explicit True counts
    if pr.mergeable is True and pr.mergeable_state == "clean":
        return True, "mergeable", pr
    mergeable = "unknown" if pr.mergeable is None else str(pr.mergeable).lower()
    return False, f"not_mergeable:{mergeable}:{pr.mergeable_state or 'unknown'}", pr


def approve(gh: PullRequestAPI, target: PRIdentity) -> None:
    logger.info("Creating approving review for pull request #%s", target.number)
    gh.approve_pull(target.owner, target.repo, target.number)
    actions_total.labels(action="approve", result="success").inc()
    logger.info("Approved pull request #%s", target.number)


def add_label(gh: PullRequestAPI, target: PRIdentity, label: str) -> None:
    logger.info("Adding label %s to pull request #%s", label, target.number)
    gh.add_labels(target.owner, target.repo, target.number, [label])
    actions_total.labels(action="label", result="success").inc()
    logger.info("Added label %s to pull request #%s", label, target.number)


def merge(gh: PullRequestAPI, target: PRIdentity, cfg: Config) -> Optional[Stop]:
    ok, reason, pr = evaluate_mergeability(gh, target)
    if not ok:
        logger.debug(
            "PR #%s not mergeable: reason=%s mergeable=%s mergeable_state=%s",
            target.number,
            reason,
            pr.mergeable,
            pr.mergeable_state,
        )
        actions_total.labels(action="merge", result="blocked").inc()
        return Stop(reason="not_mergeable", message=f"Pull request #{target.number} is not mergeable, exiting.")

    logger.info("Merging pull request #%s (method=%s)", target.number, cfg.merge_method or "default")
    gh.merge_pull(target.owner, target.repo, target.number, cfg.merge_method)
    actions_total.labels(action="merge", result="success").inc()
    logger.info("Merged pull request #%s", target.number)
    return None


def process_item(gh: PullRequestAPI, cfg: Config, target: PRIdentity) -> Optional[Stop]:
    """Run approve, label and merge in that order, each only when configured.

    Returns a :class:`Stop` when the merge gate blocks; remote errors raise.
    """
    logger.debug("Processing %s/%s#%s", target.owner, target.repo, target.number)
    if cfg.approve:
        approve(gh, target)
    if cfg.label:
        add_label(gh, target, cfg.label)
    if cfg.merge:
        return merge(gh, target, cfg)
    return None
