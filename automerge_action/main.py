import logging
import sys
from typing import Mapping, Optional, Tuple

from .config import ConfigError, Settings
from .github import GitHubClient, PullRequestAPI
from .metrics import run_outcomes_total, write_textfile
from .models import Config, EventPayload, RunOutcome, Stop
from .resolve import resolve_target
from .worker import process_item

logger = logging.getLogger(__name__)


def run(
    gh: PullRequestAPI,
    cfg: Config,
    payload: EventPayload,
    repo_slug: Optional[Tuple[str, str]],
) -> RunOutcome:
    """Resolve the pull request and apply the configured actions.

    Neutral stops come back as ``success`` with ``stop`` set. Any exception
    raised along the way becomes a ``failure`` carrying its message.
    """
    try:
        target = resolve_target(gh, payload, cfg, repo_slug)
        if isinstance(target, Stop):
            return RunOutcome(result="success", stop=target)
        stop = process_item(gh, cfg, target)
        return RunOutcome(result="success", stop=stop)
    except Exception as e:
        logger.debug("Run failed", exc_info=True)
        return RunOutcome(result="failure", error=str(e) or e.__class__.__name__)


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def report(outcome: RunOutcome, settings: Settings) -> int:
    """Publish the run outcome and return the process exit code."""
    if outcome.stop is not None:
        logger.info(outcome.stop.message)
    if outcome.result == "failure":
        # Equivalent of core.setFailed: an error annotation plus a non-zero exit
        sys.stdout.write(f"::error::{_escape_data(outcome.error or 'failure')}\n")
        sys.stdout.flush()

    reason = outcome.stop.reason if outcome.stop else ("error" if outcome.error else "completed")
    run_outcomes_total.labels(result=outcome.result, reason=reason).inc()

    if settings.output_path:
        with open(settings.output_path, "a", encoding="utf-8") as handle:
            for key, value in outcome.output().items():
                handle.write(f"{key}={value}\n")
    if settings.metrics_textfile:
        try:
            write_textfile(settings.metrics_textfile, settings.service_version)
        except OSError as e:
            logger.warning("Could not write metrics to %s: %s", settings.metrics_textfile, e)

    logger.debug("Run outcome: %s", outcome.model_dump())
    return 0 if outcome.result == "success" else 1


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )


def main(environ: Optional[Mapping[str, str]] = None) -> int:
    settings = Settings(environ)
    configure_logging(settings.log_level)

    try:
        timeout = settings.http_timeout_seconds()
        cfg = settings.action_config()
        payload = settings.load_event()
    except (ConfigError, ValueError, OSError) as e:
        return report(RunOutcome(result="failure", error=str(e)), settings)

    # SecretStr keeps the token out of this dump
    logger.debug("conf: %s", cfg)
    logger.debug("event: name=%s path=%s", settings.event_name, settings.event_path)

    gh = GitHubClient(cfg.token.get_secret_value(), settings.github_api_url, timeout)
    outcome = run(gh, cfg, payload, settings.repo_slug(payload))
    return report(outcome, settings)


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
