"""Entry point for repowatch: python -m repowatch."""

from __future__ import annotations

import argparse
import signal
import sys
from functools import partial

from repowatch.config import RepoWatchConfig, load_config
from repowatch.database import Database
from repowatch.registry import (
    EVENT_DESCRIPTIONS,
    EventCategory,
    RegistryError,
    WatchRegistry,
    add_repository,
    github_repository_exists,
    list_repositories,
    parse_events,
    remove_repository,
    update_events,
)
from repowatch.scheduler import RepoWatchScheduler
from repowatch.utils.logging_config import setup_logging
from repowatch.watchers.github_watcher import WATCHER_NAME


def _describe(events: frozenset[EventCategory]) -> str:
    return ", ".join(EVENT_DESCRIPTIONS[e] for e in EventCategory if e in events)


def _cmd_run(ns: argparse.Namespace, config: RepoWatchConfig) -> int:
    scheduler = RepoWatchScheduler(config)

    def shutdown(signum: int, frame: object) -> None:
        scheduler.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    scheduler.start()
    return 0


def _cmd_check(ns: argparse.Namespace, config: RepoWatchConfig) -> int:
    scheduler = RepoWatchScheduler(config)
    try:
        scheduler.run_cycle()
        state = scheduler.last_cycle_state() or {}
    finally:
        scheduler.shutdown()
    return 0 if state.get("consecutive_failures", 0) == 0 else 1


def _cmd_add(ns: argparse.Namespace, config: RepoWatchConfig) -> int:
    events = parse_events(ns.events) if ns.events else None
    verify = None
    if not ns.no_verify:
        verify = partial(github_repository_exists, token=config.github.token)

    db = Database(config.database_path)
    try:
        repo = add_repository(
            WatchRegistry(db),
            ns.repository,
            ns.channel,
            added_by=ns.added_by,
            events=events,
            verify=verify,
        )
    finally:
        db.close()
    print(f"Added {repo.repo_id}; notifications go to channel {repo.channel_id}")
    print(f"Watching: {_describe(repo.watched_events)}")
    return 0


def _cmd_remove(ns: argparse.Namespace, config: RepoWatchConfig) -> int:
    db = Database(config.database_path)
    try:
        remove_repository(WatchRegistry(db), ns.repository)
    finally:
        db.close()
    print(f"Removed {ns.repository} from the watch list")
    return 0


def _cmd_list(ns: argparse.Namespace, config: RepoWatchConfig) -> int:
    db = Database(config.database_path)
    try:
        repos = list_repositories(WatchRegistry(db))
    finally:
        db.close()

    if not repos:
        print("No repositories are currently being watched.")
        return 0

    for index, repo in enumerate(repos, start=1):
        print(f"{index}. {repo.repo_id}")
        print(f"   channel:  {repo.channel_id}")
        print(f"   added by: {repo.added_by or 'unknown'}")
        print(f"   events:   {_describe(repo.watched_events)}")
    return 0


def _cmd_events(ns: argparse.Namespace, config: RepoWatchConfig) -> int:
    events = parse_events(ns.events)
    db = Database(config.database_path)
    try:
        old, new = update_events(WatchRegistry(db), ns.repository, events)
    finally:
        db.close()
    print(f"Updated watched events for {ns.repository}")
    print(f"Previous: {_describe(old)}")
    print(f"New:      {_describe(new)}")
    return 0


def _cmd_status(ns: argparse.Namespace, config: RepoWatchConfig) -> int:
    db = Database(config.database_path)
    try:
        state = db.get_watcher_state(WATCHER_NAME)
    finally:
        db.close()

    if state is None:
        print("No cycle has run yet.")
        return 0
    print(f"Last check:           {state['last_check_at']}")
    print(f"Last success:         {state['last_successful_at'] or 'Never'}")
    print(f"Consecutive failures: {state['consecutive_failures']}")
    for key, value in sorted(state["metadata"].items()):
        print(f"{key.replace('_', ' ').capitalize() + ':':<22}{value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repowatch",
        description="Watch GitHub repositories and post activity to Discord.",
    )
    parser.add_argument("--config", help="Path to config.toml")
    parser.set_defaults(func=_cmd_run)
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Start the scheduler (default).")
    run.set_defaults(func=_cmd_run)

    check = sub.add_parser("check", help="Run a single watch cycle now.")
    check.set_defaults(func=_cmd_check)

    event_names = ",".join(e.value for e in EventCategory)

    add = sub.add_parser("add", help="Start watching a repository.")
    add.add_argument("repository", help="owner/repo")
    add.add_argument("channel", help="Discord channel id")
    add.add_argument("--events", help=f"Comma-separated: {event_names}")
    add.add_argument("--added-by", default="", help="Recorded as provenance")
    add.add_argument(
        "--no-verify", action="store_true",
        help="Skip checking that the repository exists on GitHub",
    )
    add.set_defaults(func=_cmd_add)

    remove = sub.add_parser("remove", help="Stop watching a repository.")
    remove.add_argument("repository", help="owner/repo")
    remove.set_defaults(func=_cmd_remove)

    listing = sub.add_parser("list", help="List watched repositories.")
    listing.set_defaults(func=_cmd_list)

    events = sub.add_parser("events", help="Replace the watched events.")
    events.add_argument("repository", help="owner/repo")
    events.add_argument("events", help=f"Comma-separated: {event_names}")
    events.set_defaults(func=_cmd_events)

    status = sub.add_parser("status", help="Show the outcome of the last cycle.")
    status.set_defaults(func=_cmd_status)

    return parser


def main(argv: list[str] | None = None) -> int:
    ns = build_parser().parse_args(argv)
    config = load_config(ns.config)
    setup_logging(config.log_level)

    try:
        return ns.func(ns, config)
    except RegistryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
