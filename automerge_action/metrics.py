import logging
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, write_to_textfile

logger = logging.getLogger(__name__)


def build_registry() -> CollectorRegistry:
    """Private registry so a run only exports its own series."""
    return CollectorRegistry()


REGISTRY: CollectorRegistry = build_registry()

# GitHub API metrics
github_api_requests_total = Counter(
    "github_api_requests_total",
    "Outbound GitHub API requests",
    labelnames=("endpoint", "status"),
    registry=REGISTRY,
)
github_api_latency_seconds = Histogram(
    "github_api_latency_seconds",
    "Latency of GitHub API requests",
    labelnames=("endpoint",),
    registry=REGISTRY,
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)
github_rate_limit_remaining = Gauge(
    "github_rate_limit_remaining",
    "GitHub REST API remaining requests",
    registry=REGISTRY,
)

# Action behavior metrics
actions_total = Counter(
    "actions_total",
    "Pull request actions by kind and result",
    labelnames=("action", "result"),
    registry=REGISTRY,
)
run_outcomes_total = Counter(
    "run_outcomes_total",
    "Finished runs by result and stop reason",
    labelnames=("result", "reason"),
    registry=REGISTRY,
)

service_info = Gauge(
    "service_info",
    "Build/version info labeled on 1",
    labelnames=("version",),
    registry=REGISTRY,
)


def write_textfile(path: str, version: str) -> None:
    service_info.labels(version=version).set(1)
    write_to_textfile(path, REGISTRY)
    logger.debug("metrics.write: path=%s", path)
