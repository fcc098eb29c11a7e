"""Discord message formatting for upstream activity.

Every formatter is pure and total. Missing fields fall back to:

- author: ``unknown``
- title: ``(no title)``
- commit message: ``(no message)``
- release name: the tag, then ``(unnamed)``
- release tag: ``(untagged)``
- timestamp: ``unknown date``
- link: ``(no link)``

Timestamps are rendered in UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from repowatch.watchers.base import Commit, Issue, PullRequest, Release

PullRequestAction = Literal["opened", "closed", "merged"]
IssueAction = Literal["opened", "closed"]

PR_EMOJI = {
    "opened": "\N{TWISTED RIGHTWARDS ARROWS}",
    "merged": "\N{WHITE HEAVY CHECK MARK}",
    "closed": "\N{CROSS MARK}",
}

ISSUE_EMOJI = {
    "opened": "\N{BUG}",
    "closed": "\N{HEAVY CHECK MARK}\N{VARIATION SELECTOR-16}",
}

COMMIT_EMOJI = "\N{MEMO}"
RELEASE_EMOJI = "\N{ROCKET}"


def format_date(timestamp: str | None) -> str:
    """Render an ISO timestamp as 'YYYY-MM-DD HH:MM UTC'."""
    if not isinstance(timestamp, str) or not timestamp:
        return "unknown date"
    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return timestamp
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def format_commit(commit: Commit, repo_id: str) -> str:
    lines = commit.message.splitlines()
    message = lines[0].strip() if lines else ""
    return "\n".join([
        f"{COMMIT_EMOJI} **New commit in {repo_id}**",
        f"**Author:** {commit.author or 'unknown'}",
        f"**Message:** {message or '(no message)'}",
        f"**SHA:** `{commit.sha[:7]}`",
        f"**Date:** {format_date(commit.timestamp)}",
        f"**Link:** {commit.url or '(no link)'}",
    ])


def format_pull_request(
    pr: PullRequest, repo_id: str, action: PullRequestAction
) -> str:
    if action == "opened":
        when = pr.created_at
    elif action == "merged":
        when = pr.merged_at or pr.closed_at or pr.updated_at
    else:
        when = pr.closed_at or pr.updated_at

    return "\n".join([
        f"{PR_EMOJI[action]} **Pull request {action} in {repo_id}**",
        f"**Title:** {pr.title or '(no title)'}",
        f"**Author:** {pr.author or 'unknown'}",
        f"**Number:** #{pr.number}",
        f"**Date:** {format_date(when)}",
        f"**Link:** {pr.url or '(no link)'}",
    ])


def format_issue(issue: Issue, repo_id: str, action: IssueAction) -> str:
    when = issue.created_at if action == "opened" else (
        issue.closed_at or issue.updated_at
    )
    return "\n".join([
        f"{ISSUE_EMOJI[action]} **Issue {action} in {repo_id}**",
        f"**Title:** {issue.title or '(no title)'}",
        f"**Author:** {issue.author or 'unknown'}",
        f"**Number:** #{issue.number}",
        f"**Date:** {format_date(when)}",
        f"**Link:** {issue.url or '(no link)'}",
    ])


def format_release(release: Release, repo_id: str) -> str:
    prerelease = " (Pre-release)" if release.prerelease else ""
    return "\n".join([
        f"{RELEASE_EMOJI} **New release in {repo_id}**{prerelease}",
        f"**Version:** {release.tag or '(untagged)'}",
        f"**Name:** {release.name or release.tag or '(unnamed)'}",
        f"**Author:** {release.author or 'unknown'}",
        f"**Date:** {format_date(release.published_at)}",
        f"**Link:** {release.url or '(no link)'}",
    ])
