"""GitHub watcher: watermark diffing of commits, PRs, issues and releases."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Protocol, Sequence, TypeVar

from repowatch.notifications.formatter import (
    format_commit,
    format_issue,
    format_pull_request,
    format_release,
)
from repowatch.registry import (
    COMMIT_EVENTS,
    ISSUE_EVENTS,
    PULL_REQUEST_EVENTS,
    RELEASE_EVENTS,
    EventCategory,
    WatchedRepository,
)
from repowatch.watchers.base import Commit, FetchResult
from repowatch.watchers.github_client import GitHubActivityClient

logger = logging.getLogger(__name__)

WATCHER_NAME = "GitHubWatcher"


class Notifier(Protocol):
    def send(self, channel_id: str, content: str) -> bool: ...


class _HasId(Protocol):
    @property
    def id(self) -> int: ...


ItemT = TypeVar("ItemT", bound=_HasId)


def diff_commits(
    commits: Sequence[Commit], watermark: str | None
) -> tuple[list[Commit], str]:
    """Split a newest-first commit page against the last seen sha.

    Returns the unseen commits oldest-first and the new watermark (the newest
    sha). A missing watermark yields no commits; a watermark that fell off the
    page makes the whole page new.
    """
    newest = commits[0].sha
    if watermark is None or watermark == newest:
        return [], newest

    fresh: list[Commit] = []
    for commit in commits:
        if commit.sha == watermark:
            break
        fresh.append(commit)
    fresh.reverse()
    return fresh, newest


def diff_by_id(
    items: Sequence[ItemT], watermark: int | None
) -> tuple[list[ItemT], int]:
    """Split a page of id-numbered items against the last seen id.

    Returns items with an id above the watermark in ascending id order, and
    the highest id seen, never lower than the current watermark.
    """
    newest = max(item.id for item in items)
    if watermark is None:
        return [], newest
    fresh = sorted((item for item in items if item.id > watermark), key=lambda i: i.id)
    return fresh, max(watermark, newest)


class GitHubWatcher:
    """Polls one repository per call and emits notifications for new activity.

    ``check_repository`` never mutates its argument; it returns the repository
    with advanced watermarks. A failing category keeps its old watermark and
    does not stop the others.
    """

    def __init__(self, client: GitHubActivityClient, notifier: Notifier) -> None:
        self.client = client
        self.notifier = notifier
        self.sent = 0
        self.failed = 0

    @property
    def name(self) -> str:
        return WATCHER_NAME

    def reset_stats(self) -> None:
        self.sent = 0
        self.failed = 0

    def check_repository(self, repo: WatchedRepository) -> WatchedRepository:
        categories: list[
            tuple[str, frozenset[EventCategory],
                  Callable[[WatchedRepository], WatchedRepository]]
        ] = [
            ("commits", COMMIT_EVENTS, self._check_commits),
            ("pull requests", PULL_REQUEST_EVENTS, self._check_pull_requests),
            ("issues", ISSUE_EVENTS, self._check_issues),
            ("releases", RELEASE_EVENTS, self._check_releases),
        ]

        updated = repo
        for label, events, check in categories:
            if not repo.watches_any(events):
                continue
            try:
                updated = check(updated)
            except Exception as e:
                logger.error(
                    "Failed checking %s for %s: %s",
                    label, repo.repo_id, e, exc_info=True,
                )
        return updated

    def _notify(self, repo: WatchedRepository, content: str) -> None:
        if self.notifier.send(repo.channel_id, content):
            self.sent += 1
        else:
            self.failed += 1

    def _usable(self, result: FetchResult, label: str, repo_id: str) -> bool:
        if not result.has_items:
            logger.debug(
                "No %s data for %s this cycle (%s)",
                label, repo_id, result.status.value,
            )
        return result.has_items

    def _check_commits(self, repo: WatchedRepository) -> WatchedRepository:
        result = self.client.latest_commits(repo.repo_id)
        if not self._usable(result, "commit", repo.repo_id):
            return repo

        fresh, watermark = diff_commits(result.items, repo.last_commit_id)
        if repo.last_commit_id is None:
            logger.info(
                "Commit baseline for %s set to %s", repo.repo_id, watermark[:7]
            )

        for commit in fresh:
            self._notify(repo, format_commit(commit, repo.repo_id))
        if fresh:
            logger.info(
                "Sent %d commit notification(s) for %s", len(fresh), repo.repo_id
            )

        return replace(repo, last_commit_id=watermark)

    def _check_pull_requests(self, repo: WatchedRepository) -> WatchedRepository:
        result = self.client.latest_pull_requests(repo.repo_id)
        if not self._usable(result, "pull request", repo.repo_id):
            return repo

        fresh, watermark = diff_by_id(result.items, repo.last_pull_request_id)
        events = repo.watched_events
        for pr in fresh:
            if EventCategory.PR_OPENED in events and pr.state == "open":
                self._notify(repo, format_pull_request(pr, repo.repo_id, "opened"))
            if EventCategory.PR_MERGED in events and pr.merged:
                self._notify(repo, format_pull_request(pr, repo.repo_id, "merged"))
            if (EventCategory.PR_CLOSED in events
                    and pr.state == "closed" and not pr.merged):
                self._notify(repo, format_pull_request(pr, repo.repo_id, "closed"))

        logger.info(
            "Checked %d pull request update(s) for %s", len(fresh), repo.repo_id
        )
        return replace(repo, last_pull_request_id=watermark)

    def _check_issues(self, repo: WatchedRepository) -> WatchedRepository:
        result = self.client.latest_issues(repo.repo_id)
        if not self._usable(result, "issue", repo.repo_id):
            return repo

        issues = [issue for issue in result.items if not issue.is_pull_request]
        if not issues:
            return repo

        fresh, watermark = diff_by_id(issues, repo.last_issue_id)
        events = repo.watched_events
        for issue in fresh:
            if EventCategory.ISSUES_OPENED in events and issue.state == "open":
                self._notify(repo, format_issue(issue, repo.repo_id, "opened"))
            if EventCategory.ISSUES_CLOSED in events and issue.state == "closed":
                self._notify(repo, format_issue(issue, repo.repo_id, "closed"))

        logger.info("Checked %d issue update(s) for %s", len(fresh), repo.repo_id)
        return replace(repo, last_issue_id=watermark)

    def _check_releases(self, repo: WatchedRepository) -> WatchedRepository:
        result = self.client.latest_releases(repo.repo_id)
        if not self._usable(result, "release", repo.repo_id):
            return repo

        fresh, watermark = diff_by_id(result.items, repo.last_release_id)
        for release in fresh:
            # Drafts still move the watermark
            if release.draft:
                continue
            self._notify(repo, format_release(release, repo.repo_id))

        logger.info("Checked %d release update(s) for %s", len(fresh), repo.repo_id)
        return replace(repo, last_release_id=watermark)
