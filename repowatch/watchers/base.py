"""Upstream item models and the per-category fetch result.

``from_api`` keeps only well-typed values: a text field that arrives as
anything but a string becomes "" (or None for timestamps), so formatting
never sees a foreign type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _timestamp(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _login(user: Any) -> str:
    return _text(_mapping(user).get("login"))


@dataclass(frozen=True)
class Commit:
    sha: str
    message: str
    author: str           # GitHub login, falling back to the git author name
    timestamp: str | None  # ISO timestamp of the git author date
    url: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Commit:
        commit = _mapping(data.get("commit"))
        git_author = _mapping(commit.get("author"))
        return cls(
            sha=str(data["sha"]),
            message=_text(commit.get("message")),
            author=_login(data.get("author")) or _text(git_author.get("name")),
            timestamp=_timestamp(git_author.get("date")),
            url=_text(data.get("html_url")),
        )


@dataclass(frozen=True)
class PullRequest:
    id: int
    number: int
    title: str
    author: str
    state: str            # 'open' or 'closed'
    merged: bool
    created_at: str | None
    closed_at: str | None
    merged_at: str | None
    updated_at: str | None
    url: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> PullRequest:
        return cls(
            id=int(data["id"]),
            number=int(data.get("number") or 0),
            title=_text(data.get("title")),
            author=_login(data.get("user")),
            state=_text(data.get("state")),
            # The list endpoint omits 'merged' but always carries 'merged_at'
            merged=bool(data.get("merged") or data.get("merged_at")),
            created_at=_timestamp(data.get("created_at")),
            closed_at=_timestamp(data.get("closed_at")),
            merged_at=_timestamp(data.get("merged_at")),
            updated_at=_timestamp(data.get("updated_at")),
            url=_text(data.get("html_url")),
        )


@dataclass(frozen=True)
class Issue:
    id: int
    number: int
    title: str
    author: str
    state: str
    created_at: str | None
    closed_at: str | None
    updated_at: str | None
    url: str

    @property
    def is_pull_request(self) -> bool:
        """Issue listings include pull requests; their links point at /pull/."""
        return "/pull/" in self.url

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Issue:
        return cls(
            id=int(data["id"]),
            number=int(data.get("number") or 0),
            title=_text(data.get("title")),
            author=_login(data.get("user")),
            state=_text(data.get("state")),
            created_at=_timestamp(data.get("created_at")),
            closed_at=_timestamp(data.get("closed_at")),
            updated_at=_timestamp(data.get("updated_at")),
            url=_text(data.get("html_url")),
        )


@dataclass(frozen=True)
class Release:
    id: int
    tag: str
    name: str
    author: str
    published_at: str | None
    draft: bool
    prerelease: bool
    url: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Release:
        return cls(
            id=int(data["id"]),
            tag=_text(data.get("tag_name")),
            name=_text(data.get("name")),
            author=_login(data.get("author")),
            published_at=(
                _timestamp(data.get("published_at"))
                or _timestamp(data.get("created_at"))
            ),
            draft=bool(data.get("draft")),
            prerelease=bool(data.get("prerelease")),
            url=_text(data.get("html_url")),
        )


class FetchStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


T = TypeVar("T")


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Outcome of polling one category of one repository.

    Items are newest-first, in upstream order. Only OK carries items.
    """

    status: FetchStatus
    items: list[T] = field(default_factory=list)
    error: str = ""

    @property
    def has_items(self) -> bool:
        return self.status is FetchStatus.OK

    @classmethod
    def of(cls, items: list[T]) -> FetchResult[T]:
        if not items:
            return cls(FetchStatus.EMPTY)
        return cls(FetchStatus.OK, items)

    @classmethod
    def failed(cls, error: str) -> FetchResult[T]:
        return cls(FetchStatus.FAILED, error=error)
