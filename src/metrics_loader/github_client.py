"""GitHub REST API client for repository clone traffic retrieval."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import requests

from .config import Config
from .errors import FetchError, MalformedRecordError
from .models import MetricRecord, RepoIdentity
from .series import parse_record_date

logger = logging.getLogger(__name__)


def _parse_count(entry: Dict[str, Any], key: str, repo: Optional[RepoIdentity]) -> int:
    value = entry.get(key)
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise MalformedRecordError(
            f"Clone traffic entry has invalid '{key}' value {value!r}: repo={repo}, payload={entry}"
        )
    return value


def parse_clone_traffic(
    payload: Dict[str, Any],
    repo: Optional[RepoIdentity] = None,
) -> List[MetricRecord]:
    """Parse and validate a ``/traffic/clones`` response body.

    Args:
        payload: Decoded JSON object returned by GitHub.
        repo: Repository the payload belongs to, used in error messages.

    Returns:
        One ``MetricRecord`` per entry of the ``clones`` array, in payload order.
        A payload without ``clones`` yields an empty list.

    Raises:
        MalformedRecordError: If ``clones`` is not a list, or an entry has an
            invalid timestamp or a missing/negative/non-integer count.
    """
    clones = payload.get("clones")
    if clones is None:
        return []
    if not isinstance(clones, list):
        raise MalformedRecordError(f"Clone traffic 'clones' must be a list: repo={repo}")

    records: List[MetricRecord] = []
    for entry in clones:
        if not isinstance(entry, dict):
            raise MalformedRecordError(f"Clone traffic entry must be an object: repo={repo}, payload={entry!r}")

        records.append(
            MetricRecord(
                date=parse_record_date(entry.get("timestamp")),
                total_count=_parse_count(entry, "count", repo),
                unique_count=_parse_count(entry, "uniques", repo),
            )
        )

    return records


class GitHubClient:
    """Small, typed client for the GitHub repository traffic API."""

    _MAX_RETRIES = 5
    _MAX_BACKOFF_SECONDS = 30
    _MAX_RATE_LIMIT_WAIT_SECONDS = 60

    def __init__(self, config: Config, session: Optional[requests.Session] = None) -> None:
        """Initialize an authenticated GitHub API client.

        Args:
            config: Validated runtime configuration including the access token.
            session: Optional pre-built session, mainly for tests.
        """
        self._settings = config.settings
        self._timeout_seconds = config.settings.request_timeout_seconds
        self._base_url = config.settings.api_base_url.rstrip("/")

        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "Authorization": f"token {config.github_token}",
                "User-Agent": config.settings.user_agent,
                "X-GitHub-Api-Version": config.settings.api_version,
            }
        )

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def _build_url(self, path: str) -> str:
        """Build a fully qualified API URL from a path below the API root."""
        return f"{self._base_url}/{path.lstrip('/')}"

    def _backoff_seconds(self, attempt: int) -> int:
        return min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1))

    def _retry_after_seconds(self, response: requests.Response) -> Optional[int]:
        """Return the Retry-After header in seconds, capped, or ``None`` if absent."""
        retry_after_header = response.headers.get("Retry-After")
        if not retry_after_header:
            return None
        try:
            return min(self._MAX_BACKOFF_SECONDS, max(1, int(retry_after_header)))
        except ValueError:
            return None

    def _seconds_until_rate_limit_reset(self, response: requests.Response) -> Optional[int]:
        """Return seconds until ``X-RateLimit-Reset`` (epoch seconds), or ``None`` if unknown."""
        try:
            reset_at = int(response.headers.get("X-RateLimit-Reset", ""))
        except ValueError:
            return None
        return max(1, reset_at - int(time.time()))

    def _retry_delay(self, response: requests.Response, attempt: int) -> Optional[int]:
        """Return seconds to wait before retrying a failed response, or ``None`` if final.

        - Primary rate limit (``X-RateLimit-Remaining: 0``): wait for the reset
          when it is near enough, otherwise give up for this run.
        - Secondary rate limit (403 with ``Retry-After``): honor the header.
        - 429 and 5xx: honor ``Retry-After``, else exponential backoff.
        """
        status_code = response.status_code

        if status_code in (403, 429) and response.headers.get("X-RateLimit-Remaining") == "0":
            wait_seconds = self._seconds_until_rate_limit_reset(response)
            if wait_seconds is None or wait_seconds > self._MAX_RATE_LIMIT_WAIT_SECONDS:
                return None
            return wait_seconds

        retry_after_seconds = self._retry_after_seconds(response)
        if status_code == 403:
            return retry_after_seconds

        if status_code == 429 or 500 <= status_code <= 599:
            return retry_after_seconds or self._backoff_seconds(attempt)

        return None

    def _describe_failure(self, response: requests.Response, url: str) -> str:
        status_code = response.status_code
        if status_code == 401:
            return f"GitHub rejected the access token: GET {url} returned 401"
        if response.headers.get("X-RateLimit-Remaining") == "0":
            reset = response.headers.get("X-RateLimit-Reset", "unknown")
            return f"GitHub rate limit exceeded (resets at {reset}): GET {url} returned {status_code}"
        if status_code == 404:
            return f"Repository not found or traffic not accessible: GET {url} returned 404"
        return f"GitHub API request failed: GET {url} returned {status_code} - {response.text}"

    def _decode_payload(self, response: requests.Response, url: str) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(f"GitHub API returned invalid JSON: GET {url}") from exc

        if not isinstance(payload, dict):
            raise FetchError(f"GitHub API returned unexpected payload shape: GET {url}")

        return payload

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a GET request, retrying transport errors and retryable responses.

        Raises:
            FetchError: If the request repeatedly fails, returns a final
                HTTP >= 400 response, or does not return a JSON object.
        """
        url = self._build_url(path)
        last_error: Optional[Exception] = None

        for attempt in range(1, self._MAX_RETRIES + 1):
            try:
                response = self._session.get(url, params=params, timeout=self._timeout_seconds)
            except requests.RequestException as exc:
                last_error = exc
                if attempt < self._MAX_RETRIES:
                    time.sleep(self._backoff_seconds(attempt))
                continue

            if response.status_code < 400:
                return self._decode_payload(response, url)

            delay = self._retry_delay(response, attempt)
            if delay is None or attempt == self._MAX_RETRIES:
                raise FetchError(self._describe_failure(response, url))

            logger.warning(
                "Retrying GitHub request in %s second(s) after HTTP %s",
                delay,
                response.status_code,
                extra={"url": url, "attempt": attempt},
            )
            time.sleep(delay)

        raise FetchError(f"GitHub request failed after retries: GET {url}") from last_error

    def fetch_clone_metrics(self, repo: RepoIdentity) -> List[MetricRecord]:
        """Fetch the available window of daily clone metrics for a repository.

        Raises:
            FetchError: On transport, authentication, rate-limit or HTTP failures.
            MalformedRecordError: If the response contains invalid records.
        """
        payload = self._get_json(
            f"repos/{repo.owner_name}/{repo.repo_name}/traffic/clones",
            params={"per": "day"},
        )
        return parse_clone_traffic(payload, repo)
