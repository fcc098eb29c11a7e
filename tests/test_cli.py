from __future__ import annotations

import pytest

from repowatch.__main__ import main
from repowatch.database import Database
from repowatch.registry import EventCategory, WatchRegistry


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setattr("repowatch.__main__.setup_logging", lambda level: None)
    db_path = tmp_path / "repowatch.db"
    path = tmp_path / "config.toml"
    path.write_text(f'[general]\ndatabase_path = "{db_path.as_posix()}"\n', encoding="utf-8")
    return path, db_path


def _stored(db_path):
    db = Database(db_path)
    try:
        return WatchRegistry(db).get()
    finally:
        db.close()


def test_add_list_events_remove(config_file, capsys):
    path, db_path = config_file
    base = ["--config", str(path)]

    assert main(base + ["add", "octocat/demo", "42", "--no-verify",
                        "--events", "pr_merged,releases", "--added-by", "mona"]) == 0
    (repo,) = _stored(db_path)
    assert repo.watched_events == frozenset({EventCategory.PR_MERGED, EventCategory.RELEASES})
    assert repo.added_by == "mona"

    assert main(base + ["list"]) == 0
    assert "octocat/demo" in capsys.readouterr().out

    assert main(base + ["events", "octocat/demo", "issues_opened"]) == 0
    assert _stored(db_path)[0].watched_events == frozenset({EventCategory.ISSUES_OPENED})

    assert main(base + ["remove", "octocat/demo"]) == 0
    assert _stored(db_path) == []


def test_add_verifies_repository(config_file, monkeypatch, capsys):
    path, db_path = config_file
    monkeypatch.setattr(
        "repowatch.__main__.github_repository_exists", lambda repo_id, token="": False
    )

    assert main(["--config", str(path), "add", "octocat/private", "42"]) == 2
    assert "not found" in capsys.readouterr().err
    assert _stored(db_path) is None


def test_invalid_events_exit_code(config_file, capsys):
    path, _ = config_file
    assert main(["--config", str(path), "add", "octocat/demo", "42",
                 "--no-verify", "--events", "stars"]) == 2
    assert "stars" in capsys.readouterr().err


def test_status_before_any_cycle(config_file, capsys):
    path, _ = config_file
    assert main(["--config", str(path), "status"]) == 0
    assert "No cycle has run yet." in capsys.readouterr().out
