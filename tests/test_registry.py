from __future__ import annotations

import json
from dataclasses import replace
from unittest.mock import MagicMock

import pytest
from github import GithubException, UnknownObjectException

from repowatch.database import Database
from repowatch.registry import (
    DEFAULT_EVENTS,
    REGISTRY_KEY,
    EventCategory,
    RegistryError,
    WatchedRepository,
    WatchRegistry,
    add_repository,
    github_repository_exists,
    list_repositories,
    parse_events,
    remove_repository,
    update_events,
)


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "repowatch.db")
    yield database
    database.close()


@pytest.fixture
def registry(db):
    return WatchRegistry(db)


class TestWatchRegistry:
    def test_get_absent_returns_none(self, registry):
        assert registry.get() is None

    def test_put_then_get(self, registry):
        repo = WatchedRepository(
            repo_id="octocat/demo",
            channel_id="42",
            watched_events=frozenset({EventCategory.PR_MERGED, EventCategory.RELEASES}),
            last_commit_id="abc",
            last_pull_request_id=10,
            added_by="mona",
        )
        registry.put([repo])
        assert registry.get() == [repo]

    def test_stored_as_json_list(self, registry, db):
        registry.put([WatchedRepository(repo_id="o/r", channel_id="1")])
        stored = json.loads(db.get_value(REGISTRY_KEY))
        assert stored[0]["repo"] == "o/r"
        assert stored[0]["watched_events"] == ["commits"]
        assert stored[0]["last_issue_id"] is None

    def test_legacy_entry_defaults_to_commits(self, registry, db):
        db.put_value(
            REGISTRY_KEY,
            json.dumps([{"repo": "o/r", "channel_id": 123, "last_commit_id": None}]),
        )
        (repo,) = registry.get()
        assert repo.watched_events == DEFAULT_EVENTS
        assert repo.channel_id == "123"
        assert repo.last_release_id is None

    def test_unknown_stored_event_ignored(self, registry, db):
        db.put_value(
            REGISTRY_KEY,
            json.dumps([{"repo": "o/r", "channel_id": "1", "watched_events": ["stars", "releases"]}]),
        )
        (repo,) = registry.get()
        assert repo.watched_events == frozenset({EventCategory.RELEASES})


class TestParseEvents:
    def test_case_and_whitespace(self):
        assert parse_events(" Commits, PR_MERGED ,releases") == frozenset({
            EventCategory.COMMITS, EventCategory.PR_MERGED, EventCategory.RELEASES,
        })

    def test_invalid_names_listed(self):
        with pytest.raises(RegistryError, match="stars, forks"):
            parse_events("commits,stars,forks")

    def test_empty_rejected(self):
        with pytest.raises(RegistryError):
            parse_events(" , ")


class TestAddRepository:
    def test_adds_with_null_watermarks(self, registry):
        repo = add_repository(registry, "octocat/demo", "42", added_by="mona")

        assert repo.watched_events == DEFAULT_EVENTS
        assert repo.last_commit_id is None
        assert repo.last_pull_request_id is None
        assert repo.added_at
        assert list_repositories(registry) == [repo]

    @pytest.mark.parametrize("repo_id", ["octocat", "octocat/demo/extra", "oct cat/demo", ""])
    def test_invalid_format(self, registry, repo_id):
        with pytest.raises(RegistryError):
            add_repository(registry, repo_id, "42")

    def test_duplicate_rejected(self, registry):
        add_repository(registry, "octocat/demo", "42")
        with pytest.raises(RegistryError, match="already"):
            add_repository(registry, "octocat/demo", "43")

    def test_empty_events_rejected(self, registry):
        with pytest.raises(RegistryError):
            add_repository(registry, "octocat/demo", "42", events=[])

    def test_verification_failure(self, registry):
        verify = MagicMock(return_value=False)
        with pytest.raises(RegistryError, match="not found"):
            add_repository(registry, "octocat/private", "42", verify=verify)
        verify.assert_called_once_with("octocat/private")
        assert registry.get() is None


class TestRemoveRepository:
    def test_removes(self, registry):
        add_repository(registry, "o/a", "1")
        add_repository(registry, "o/b", "1")
        remove_repository(registry, "o/a")
        assert [r.repo_id for r in list_repositories(registry)] == ["o/b"]

    def test_missing(self, registry):
        with pytest.raises(RegistryError, match="not in the watch list"):
            remove_repository(registry, "o/none")


class TestUpdateEvents:
    def test_replaces_events_and_keeps_watermarks(self, registry):
        add_repository(registry, "o/r", "1")
        repos = registry.get()
        registry.put([replace(repos[0], last_commit_id="abc")])

        old, new = update_events(registry, "o/r", {EventCategory.ISSUES_OPENED})

        assert old == DEFAULT_EVENTS
        assert new == frozenset({EventCategory.ISSUES_OPENED})
        (repo,) = registry.get()
        assert repo.watched_events == new
        assert repo.last_commit_id == "abc"

    def test_empty_rejected(self, registry):
        add_repository(registry, "o/r", "1")
        with pytest.raises(RegistryError):
            update_events(registry, "o/r", [])
        assert registry.get()[0].watched_events == DEFAULT_EVENTS

    def test_unknown_repository(self, registry):
        with pytest.raises(RegistryError):
            update_events(registry, "o/none", {EventCategory.COMMITS})


class TestGithubRepositoryExists:
    def test_found(self, monkeypatch):
        github = MagicMock()
        monkeypatch.setattr("repowatch.registry.Github", MagicMock(return_value=github))

        assert github_repository_exists("octocat/demo") is True
        github.get_repo.assert_called_once_with("octocat/demo")
        github.close.assert_called_once()

    def test_not_found(self, monkeypatch):
        github = MagicMock()
        github.get_repo.side_effect = UnknownObjectException(404, {"message": "Not Found"}, {})
        monkeypatch.setattr("repowatch.registry.Github", MagicMock(return_value=github))

        assert github_repository_exists("octocat/missing") is False

    def test_api_error(self, monkeypatch):
        github = MagicMock()
        github.get_repo.side_effect = GithubException(500, {"message": "boom"}, {})
        monkeypatch.setattr("repowatch.registry.Github", MagicMock(return_value=github))

        assert github_repository_exists("octocat/demo", token="t") is False
