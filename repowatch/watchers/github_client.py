"""GitHub activity client: latest commits, pull requests, issues, releases."""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

import requests

from repowatch.config import GitHubConfig
from repowatch.utils.retry import retry
from repowatch.watchers.base import (
    Commit,
    FetchResult,
    Issue,
    PullRequest,
    Release,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GitHubActivityClient:
    """Read-only poller for the most recent page of one resource type.

    Never raises for upstream trouble: network errors, non-2xx statuses and
    malformed payloads all come back as a failed FetchResult.
    """

    def __init__(
        self,
        config: GitHubConfig,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config
        self._session = session or requests.Session()
        self._session.headers.update({
            "User-Agent": config.user_agent,
            "Accept": "application/vnd.github.v3+json",
        })
        if config.token:
            self._session.headers["Authorization"] = f"Bearer {config.token}"
        self.rate_limit_remaining: int | None = None
        self._get = retry(
            max_attempts=config.max_attempts,
            exceptions=(requests.ConnectionError, requests.Timeout),
        )(self._session_get)

    def _session_get(self, url: str, params: dict[str, Any]) -> requests.Response:
        return self._session.get(
            url, params=params, timeout=self.config.timeout_seconds
        )

    def latest_commits(self, repo_id: str) -> FetchResult[Commit]:
        return self._fetch(
            repo_id, "commits",
            {"per_page": self.config.commits_per_page},
            Commit.from_api,
        )

    def latest_pull_requests(self, repo_id: str) -> FetchResult[PullRequest]:
        return self._fetch(
            repo_id, "pulls",
            {"state": "all", "sort": "updated",
             "per_page": self.config.pulls_per_page},
            PullRequest.from_api,
        )

    def latest_issues(self, repo_id: str) -> FetchResult[Issue]:
        return self._fetch(
            repo_id, "issues",
            {"state": "all", "sort": "updated",
             "per_page": self.config.issues_per_page},
            Issue.from_api,
        )

    def latest_releases(self, repo_id: str) -> FetchResult[Release]:
        return self._fetch(
            repo_id, "releases",
            {"per_page": self.config.releases_per_page},
            Release.from_api,
        )

    def _fetch(
        self,
        repo_id: str,
        resource: str,
        params: dict[str, Any],
        parse: Callable[[dict[str, Any]], T],
    ) -> FetchResult[T]:
        url = f"{self.config.api_base}/repos/{repo_id}/{resource}"
        try:
            resp = self._get(url, params)
        except requests.RequestException as e:
            logger.error("Error fetching %s for %s: %s", resource, repo_id, e)
            return FetchResult.failed(str(e))

        self._track_rate_limit(resp)

        if not resp.ok:
            logger.error(
                "GitHub API error fetching %s for %s (%d): %s",
                resource, repo_id, resp.status_code, resp.text[:300],
            )
            return FetchResult.failed(f"HTTP {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError as e:
            logger.error(
                "Malformed %s payload for %s: %s", resource, repo_id, e
            )
            return FetchResult.failed("invalid JSON")

        if not isinstance(payload, list):
            logger.error(
                "Unexpected %s payload for %s: expected a list, got %s",
                resource, repo_id, type(payload).__name__,
            )
            return FetchResult.failed("unexpected payload")

        items: list[T] = []
        for entry in payload:
            try:
                items.append(parse(entry))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(
                    "Skipping malformed %s entry for %s: %s",
                    resource, repo_id, e,
                )

        logger.debug("Fetched %d %s for %s", len(items), resource, repo_id)
        return FetchResult.of(items)

    def _track_rate_limit(self, resp: requests.Response) -> None:
        remaining = resp.headers.get("X-RateLimit-Remaining", "")
        if remaining.isdigit():
            self.rate_limit_remaining = int(remaining)

    def close(self) -> None:
        self._session.close()
