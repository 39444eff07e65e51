"""GitHub GraphQL transport used by every board and repository call.

Failure policy per attempt:

- network error or HTTP 5xx: exponential backoff with jitter, then retry
- rate limited: the RateLimiter is told, and the next attempt waits in
  ``acquire()`` until GitHub's reset time
- anything else: raised at once

Everything that leaves ``execute`` is a ``GraphQLClientError``.
"""

import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from .rate_limiter import RateLimiter, looks_like_rate_limit

GRAPHQL_URL = "https://api.github.com/graphql"
BACKOFF_BASE = 1.0

# GitHub GraphQL error ``type`` values that mean the token lacks access
FORBIDDEN_TYPES = frozenset({"FORBIDDEN", "INSUFFICIENT_SCOPES"})

logger = logging.getLogger("port_tracker.github")


class GraphQLClientError(RuntimeError):
    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class GraphQLPermissionError(GraphQLClientError):
    pass


class GraphQLRateLimitError(GraphQLClientError):
    """Raised once retries are used up; ``retry_after`` is the limiter's wait."""

    def __init__(self, message: str, retry_after: float = 0.0, errors=None) -> None:
        super().__init__(message, errors)
        self.retry_after = retry_after


class _Retry(Exception):
    def __init__(self, reason: str, backoff: bool) -> None:
        super().__init__(reason)
        self.reason = reason
        self.backoff = backoff


def _error_messages(errors: List[Dict[str, Any]]) -> str:
    return "; ".join(str(e.get("message") or e.get("type") or e) for e in errors)


class GraphQLClient:
    """Blocking GitHub GraphQL transport with bounded retries."""

    def __init__(
        self,
        token_provider: Callable[[], Optional[str]],
        rate_limiter: RateLimiter,
        session: Optional[requests.Session] = None,
        endpoint: str = GRAPHQL_URL,
        timeout: int = 30,
        max_attempts: int = 3,
    ) -> None:
        self.endpoint = endpoint
        self.session = session or requests.Session()
        self.token_provider = token_provider
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self.max_attempts = max_attempts

    def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        token = self.token_provider()
        if not token:
            raise GraphQLPermissionError("GitHub token missing")
        request = {
            "json": {"query": query, "variables": variables or {}},
            "headers": {"Authorization": f"bearer {token}", "Accept": "application/vnd.github+json"},
        }
        for attempt in range(1, self.max_attempts + 1):
            last = attempt == self.max_attempts
            try:
                return self._attempt(request, last)
            except _Retry as retry:
                logger.debug("GraphQL attempt %s/%s failed (%s), retrying", attempt, self.max_attempts, retry.reason)
                if retry.backoff:
                    self._sleep(BACKOFF_BASE * 2 ** (attempt - 1))
        raise GraphQLClientError("GitHub API retries exhausted")

    def _attempt(self, request: Dict[str, Any], last: bool) -> Dict[str, Any]:
        self.rate_limiter.acquire()
        try:
            response = self.session.post(self.endpoint, timeout=self.timeout, **request)
        except requests.RequestException as exc:
            if last:
                raise GraphQLClientError(f"GitHub API network error: {exc}") from exc
            raise _Retry(f"network error: {exc}", backoff=True)
        self.rate_limiter.update(response.headers)

        status = response.status_code
        if status >= 500:
            if last:
                raise GraphQLClientError(f"GitHub API error: HTTP {status}")
            raise _Retry(f"HTTP {status}", backoff=True)
        if status in (401, 403):
            raise GraphQLPermissionError(f"GitHub API refused the token: HTTP {status}")
        if status >= 400:
            raise GraphQLClientError(f"GitHub API error: HTTP {status} {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise GraphQLClientError("GitHub API returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise GraphQLClientError("GitHub API returned a non-object JSON document")

        errors = [e for e in (payload.get("errors") or []) if isinstance(e, dict)]
        if errors:
            self._raise_for_errors(errors, response.headers, last)
        data = payload.get("data")
        if not isinstance(data, dict):
            raise GraphQLClientError("GitHub API returned no data")
        return data

    def _raise_for_errors(self, errors: List[Dict[str, Any]], headers: Any, last: bool) -> None:
        types = {str(e.get("type") or "").upper() for e in errors}
        message = _error_messages(errors)
        if looks_like_rate_limit(errors):
            self.rate_limiter.update(headers, errors)
            if last:
                raise GraphQLRateLimitError(message, retry_after=self.rate_limiter.wait_seconds, errors=errors)
            raise _Retry("rate limited", backoff=False)
        if types & FORBIDDEN_TYPES:
            raise GraphQLPermissionError(message, errors)
        raise GraphQLClientError(message, errors)

    def _sleep(self, base_delay: float) -> None:
        time.sleep(base_delay + random.uniform(0, base_delay))
