import time
import logging
from typing import Any, Dict, List, Optional, Protocol
import httpx

from .metrics import (
    github_api_requests_total,
    github_api_latency_seconds,
    github_rate_limit_remaining,
)

logger = logging.getLogger(__name__)


class GitHubAPIError(RuntimeError):
    def __init__(self, status_code: int, message: str, endpoint: str = ""):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"{endpoint} returned {status_code}: {message}" if endpoint else message)


class PullRequestAPI(Protocol):
    """Remote operations the action needs. Tests substitute a fake."""

    def list_open_pulls(self, owner: str, repo: str, head: str) -> List[Dict[str, Any]]: ...

    def get_pull(self, owner: str, repo: str, number: int) -> Dict[str, Any]: ...

    def approve_pull(self, owner: str, repo: str, number: int) -> Dict[str, Any]: ...

    def add_labels(self, owner: str, repo: str, number: int, labels: List[str]) -> List[Dict[str, Any]]: ...

    def merge_pull(self, owner: str, repo: str, number: int, merge_method: Optional[str]) -> Dict[str, Any]: ...


def _safe_url(url: str) -> str:
    # params travel separately; only their keys are logged
    return url.split("?", 1)[0]


def _param_keys(d: Optional[Dict[str, Any]]) -> List[str]:
    return sorted((d or {}).keys())


def _error_message(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return resp.text


class GitHubClient:
    def __init__(self, token: str, base_url: str = "https://api.github.com", timeout: float = 60.0):
        self._token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"token {self._token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": "automerge-action/1.0",
        }

    def request(
        self,
        method: str,
        path: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Any] = None,
    ) -> Any:
        """Issue one request and return the decoded JSON body.

        ``endpoint`` is the templated route used as a metrics label. Non-2xx
        responses raise :class:`GitHubAPIError`; transport errors propagate.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        start = time.perf_counter()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "github.request: method=%s path=%s params=%s",
                method.upper(),
                _safe_url(url),
                _param_keys(params),
            )
        try:
            resp = httpx.request(method, url, headers=self._headers(), params=params, json=data, timeout=self.timeout)
        except httpx.HTTPError as e:
            github_api_requests_total.labels(endpoint=endpoint, status="exc").inc()
            logger.debug("github.response_error: method=%s path=%s error=%s", method.upper(), _safe_url(url), e)
            raise
        duration = time.perf_counter() - start
        github_api_latency_seconds.labels(endpoint=endpoint).observe(duration)
        github_api_requests_total.labels(endpoint=endpoint, status=str(resp.status_code)).inc()
        remaining = resp.headers.get("X-RateLimit-Remaining")
        if remaining is not None and remaining.isdigit():
            github_rate_limit_remaining.set(int(remaining))
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "github.response: method=%s path=%s status=%s duration_ms=%d rl_remaining=%s",
                method.upper(),
                _safe_url(url),
                resp.status_code,
                int(duration * 1000),
                remaining,
            )
        if resp.status_code >= 300:
            raise GitHubAPIError(resp.status_code, _error_message(resp), endpoint)
        if resp.status_code == 204 or not resp.content:
            return {}
        return resp.json()

    # --- PullRequestAPI ---
    def list_open_pulls(self, owner: str, repo: str, head: str) -> List[Dict[str, Any]]:
        params = {"state": "open", "sort": "updated", "direction": "desc", "head": head}
        return self.request("GET", f"/repos/{owner}/{repo}/pulls", "GET /repos/{owner}/{repo}/pulls", params=params)

    def get_pull(self, owner: str, repo: str, number: int) -> Dict[str, Any]:
        return self.request("GET", f"/repos/{owner}/{repo}/pulls/{number}", "GET /repos/{owner}/{repo}/pulls/{number}")

    def approve_pull(self, owner: str, repo: str, number: int) -> Dict[str, Any]:
        return self.request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{number}/reviews",
            "POST /repos/{owner}/{repo}/pulls/{number}/reviews",
            data={"event": "APPROVE"},
        )

    def add_labels(self, owner: str, repo: str, number: int, labels: List[str]) -> List[Dict[str, Any]]:
        return self.request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{number}/labels",
            "POST /repos/{owner}/{repo}/issues/{number}/labels",
            data={"labels": labels},
        )

    def merge_pull(self, owner: str, repo: str, number: int, merge_method: Optional[str]) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if merge_method:
            data["merge_method"] = merge_method
        return self.request(
            "PUT",
            f"/repos/{owner}/{repo}/pulls/{number}/merge",
            "PUT /repos/{owner}/{repo}/pulls/{number}/merge",
            data=data,
        )
