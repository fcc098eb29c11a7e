"""Watch registry: watched repositories, their subscriptions and watermarks."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable

from github import Auth, Github, GithubException, UnknownObjectException

from repowatch.database import Database

logger = logging.getLogger(__name__)

REGISTRY_KEY = "watched_repos"
REPO_ID_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+/[a-zA-Z0-9._-]+$")


class RegistryError(Exception):
    """A registry operation was rejected."""


class EventCategory(str, Enum):
    COMMITS = "commits"
    PUSH = "push"
    PR_OPENED = "pr_opened"
    PR_CLOSED = "pr_closed"
    PR_MERGED = "pr_merged"
    ISSUES_OPENED = "issues_opened"
    ISSUES_CLOSED = "issues_closed"
    RELEASES = "releases"


EVENT_DESCRIPTIONS = {
    EventCategory.COMMITS: "New commits",
    EventCategory.PUSH: "Pushes to the default branch",
    EventCategory.PR_OPENED: "Pull requests opened",
    EventCategory.PR_CLOSED: "Pull requests closed without merging",
    EventCategory.PR_MERGED: "Pull requests merged",
    EventCategory.ISSUES_OPENED: "Issues opened",
    EventCategory.ISSUES_CLOSED: "Issues closed",
    EventCategory.RELEASES: "Published releases",
}

# Event families sharing one upstream poll
COMMIT_EVENTS = frozenset({EventCategory.COMMITS, EventCategory.PUSH})
PULL_REQUEST_EVENTS = frozenset({
    EventCategory.PR_OPENED,
    EventCategory.PR_CLOSED,
    EventCategory.PR_MERGED,
})
ISSUE_EVENTS = frozenset({
    EventCategory.ISSUES_OPENED,
    EventCategory.ISSUES_CLOSED,
})
RELEASE_EVENTS = frozenset({EventCategory.RELEASES})

DEFAULT_EVENTS = frozenset({EventCategory.COMMITS})


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class WatchedRepository:
    """One repository subscription and its per-category watermarks."""

    repo_id: str                  # owner/name
    channel_id: str
    watched_events: frozenset[EventCategory] = DEFAULT_EVENTS
    last_commit_id: str | None = None
    last_pull_request_id: int | None = None
    last_issue_id: int | None = None
    last_release_id: int | None = None
    added_by: str = ""
    added_at: str = field(default_factory=_utc_now)

    def watches_any(self, events: Iterable[EventCategory]) -> bool:
        return any(event in self.watched_events for event in events)

    def to_dict(self) -> dict[str, Any]:
        return {
            "repo": self.repo_id,
            "channel_id": self.channel_id,
            "watched_events": [
                e.value for e in EventCategory if e in self.watched_events
            ],
            "last_commit_id": self.last_commit_id,
            "last_pull_request_id": self.last_pull_request_id,
            "last_issue_id": self.last_issue_id,
            "last_release_id": self.last_release_id,
            "added_by": self.added_by,
            "added_at": self.added_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WatchedRepository:
        events = set()
        for raw in data.get("watched_events") or []:
            try:
                events.add(EventCategory(raw))
            except ValueError:
                logger.warning(
                    "Ignoring unknown event %r stored for %s",
                    raw, data.get("repo"),
                )

        return cls(
            repo_id=data["repo"],
            channel_id=str(data["channel_id"]),
            watched_events=frozenset(events) or DEFAULT_EVENTS,
            last_commit_id=data.get("last_commit_id"),
            last_pull_request_id=data.get("last_pull_request_id"),
            last_issue_id=data.get("last_issue_id"),
            last_release_id=data.get("last_release_id"),
            added_by=data.get("added_by") or "",
            added_at=data.get("added_at") or "",
        )


class WatchRegistry:
    """Durable list of watched repositories, read and written as one blob."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self) -> list[WatchedRepository] | None:
        """Return every watched repository, or None if nothing was stored."""
        raw = self.db.get_value(REGISTRY_KEY)
        if raw is None:
            return None
        return [WatchedRepository.from_dict(entry) for entry in json.loads(raw)]

    def put(self, repos: list[WatchedRepository]) -> None:
        """Replace the stored list in a single write."""
        self.db.put_value(
            REGISTRY_KEY, json.dumps([repo.to_dict() for repo in repos])
        )


def parse_events(text: str) -> frozenset[EventCategory]:
    """Parse a comma-separated list of event names.

    Raises RegistryError naming every unknown event, or if nothing is left.
    """
    names = [part.strip().lower() for part in text.split(",") if part.strip()]
    valid: set[EventCategory] = set()
    invalid: list[str] = []
    for name in names:
        try:
            valid.add(EventCategory(name))
        except ValueError:
            invalid.append(name)

    if invalid:
        available = ", ".join(e.value for e in EventCategory)
        raise RegistryError(
            f"Invalid event(s): {', '.join(invalid)}. "
            f"Available events: {available}"
        )
    if not valid:
        raise RegistryError("Provide at least one event to watch")
    return frozenset(valid)


def github_repository_exists(repo_id: str, token: str = "") -> bool:
    """Check that a repository is visible on GitHub."""
    github = Github(auth=Auth.Token(token)) if token else Github()
    try:
        github.get_repo(repo_id)
        return True
    except UnknownObjectException:
        return False
    except GithubException as e:
        logger.error("GitHub lookup failed for %s: %s", repo_id, e)
        return False
    finally:
        github.close()


def add_repository(
    registry: WatchRegistry,
    repo_id: str,
    channel_id: str,
    added_by: str = "",
    events: Iterable[EventCategory] | None = None,
    verify: Callable[[str], bool] | None = None,
) -> WatchedRepository:
    """Register a repository with every watermark unset."""
    if not REPO_ID_PATTERN.match(repo_id):
        raise RegistryError(f"Invalid repository format {repo_id!r}, use owner/repo")
    if not channel_id:
        raise RegistryError("A channel is required")

    watched = frozenset(events) if events is not None else DEFAULT_EVENTS
    if not watched:
        raise RegistryError("Provide at least one event to watch")

    repos = registry.get() or []
    if any(r.repo_id == repo_id for r in repos):
        raise RegistryError(f"Repository {repo_id} is already being watched")

    if verify is not None and not verify(repo_id):
        raise RegistryError(f"Repository {repo_id} not found or is private")

    repo = WatchedRepository(
        repo_id=repo_id,
        channel_id=channel_id,
        watched_events=watched,
        added_by=added_by,
    )
    registry.put([*repos, repo])
    logger.info("Now watching %s in channel %s", repo_id, channel_id)
    return repo


def remove_repository(registry: WatchRegistry, repo_id: str) -> None:
    repos = registry.get() or []
    remaining = [r for r in repos if r.repo_id != repo_id]
    if len(remaining) == len(repos):
        raise RegistryError(f"Repository {repo_id} is not in the watch list")
    registry.put(remaining)
    logger.info("Stopped watching %s", repo_id)


def list_repositories(registry: WatchRegistry) -> list[WatchedRepository]:
    return registry.get() or []


def update_events(
    registry: WatchRegistry,
    repo_id: str,
    events: Iterable[EventCategory],
) -> tuple[frozenset[EventCategory], frozenset[EventCategory]]:
    """Replace the watched events of a repository.

    Returns the previous and the new event sets. Watermarks are kept.
    """
    new_events = frozenset(events)
    if not new_events:
        raise RegistryError("Provide at least one event to watch")

    repos = registry.get() or []
    for index, repo in enumerate(repos):
        if repo.repo_id == repo_id:
            break
    else:
        raise RegistryError(f"Repository {repo_id} is not in the watch list")

    old_events = repo.watched_events
    repos[index] = replace(repo, watched_events=new_events)
    registry.put(repos)
    logger.info(
        "Updated events for %s: %s",
        repo_id, ", ".join(sorted(e.value for e in new_events)),
    )
    return old_events, new_events
