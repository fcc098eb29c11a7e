"""Configuration loading from config.toml + .env."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True)
class GitHubConfig:
    token: str = ""
    api_base: str = "https://api.github.com"
    user_agent: str = "repowatch-github-watcher"
    timeout_seconds: float = 15.0
    commits_per_page: int = 5
    pulls_per_page: int = 10
    issues_per_page: int = 10
    releases_per_page: int = 5
    max_attempts: int = 2


@dataclass(frozen=True)
class DiscordConfig:
    token: str = ""
    api_base: str = "https://discord.com/api/v10"
    send_delay_seconds: float = 1.0
    timeout_seconds: float = 15.0


@dataclass(frozen=True)
class RepoWatchConfig:
    github: GitHubConfig
    discord: DiscordConfig
    database_path: str = "repowatch.db"
    log_level: str = "INFO"
    check_interval_minutes: int = 5


def _env(key: str, default: str = "") -> str:
    """Get an environment variable, returning default if not set."""
    return os.environ.get(key, default)


def load_config(config_path: str | Path | None = None) -> RepoWatchConfig:
    """Load configuration from config.toml and .env files.

    Args:
        config_path: Path to config.toml. Defaults to config.toml in the
                     project root (next to the repowatch package), which may
                     be absent; an explicitly given path must exist.
    """
    project_root = Path(__file__).resolve().parent.parent

    load_dotenv(project_root / ".env")

    toml: dict = {}
    if config_path is None:
        default_path = project_root / "config.toml"
        if default_path.exists():
            with open(default_path, "rb") as f:
                toml = tomllib.load(f)
    else:
        with open(Path(config_path), "rb") as f:
            toml = tomllib.load(f)

    general = toml.get("general", {})
    gh = toml.get("github", {})
    discord = toml.get("discord", {})

    return RepoWatchConfig(
        database_path=general.get("database_path", "repowatch.db"),
        log_level=general.get("log_level", "INFO"),
        check_interval_minutes=general.get("check_interval_minutes", 5),
        github=GitHubConfig(
            token=_env("GITHUB_TOKEN"),
            api_base=gh.get("api_base", "https://api.github.com").rstrip("/"),
            user_agent=gh.get("user_agent", "repowatch-github-watcher"),
            timeout_seconds=gh.get("timeout_seconds", 15.0),
            commits_per_page=gh.get("commits_per_page", 5),
            pulls_per_page=gh.get("pulls_per_page", 10),
            issues_per_page=gh.get("issues_per_page", 10),
            releases_per_page=gh.get("releases_per_page", 5),
            max_attempts=gh.get("max_attempts", 2),
        ),
        discord=DiscordConfig(
            token=_env("DISCORD_TOKEN"),
            api_base=discord.get(
                "api_base", "https://discord.com/api/v10"
            ).rstrip("/"),
            send_delay_seconds=discord.get("send_delay_seconds", 1.0),
            timeout_seconds=discord.get("timeout_seconds", 15.0),
        ),
    )
