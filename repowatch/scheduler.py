"""Main scheduler: runs the diff-and-notify cycle over the watch registry."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from repowatch.config import RepoWatchConfig
from repowatch.database import Database
from repowatch.notifications.discord_notifier import DiscordNotifier
from repowatch.registry import WatchedRepository, WatchRegistry
from repowatch.watchers.github_client import GitHubActivityClient
from repowatch.watchers.github_watcher import GitHubWatcher, Notifier

logger = logging.getLogger(__name__)


class RepoWatchScheduler:
    """Runs one cycle per tick: load registry, check every repo, persist once.

    Cycles never overlap. The APScheduler job allows a single instance and
    ``run_cycle`` holds a non-blocking lock, so a trigger that arrives while a
    cycle is still running is skipped rather than queued.
    """

    def __init__(
        self,
        config: RepoWatchConfig,
        db: Database | None = None,
        client: GitHubActivityClient | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.config = config
        self.db = db or Database(config.database_path)
        self.registry = WatchRegistry(self.db)
        self.client = client or GitHubActivityClient(config.github)
        self.notifier = notifier or DiscordNotifier(config.discord)
        self.watcher = GitHubWatcher(self.client, self.notifier)
        self.scheduler = BlockingScheduler()
        self._cycle_lock = threading.Lock()

    def run_cycle(self, triggered_at: datetime | None = None) -> bool:
        """Run one full cycle. Returns False if another cycle was running."""
        triggered_at = triggered_at or datetime.now(timezone.utc)
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning(
                "Previous cycle still running, skipping trigger at %s",
                triggered_at.isoformat(),
            )
            return False
        try:
            self._run_cycle(triggered_at)
        finally:
            self._cycle_lock.release()
        return True

    def _run_cycle(self, triggered_at: datetime) -> None:
        logger.info("GitHub watcher triggered at %s", triggered_at.isoformat())
        self.watcher.reset_stats()

        try:
            repos = self.registry.get()
            if not repos:
                logger.info("No repositories to watch")
                self.db.update_watcher_state(
                    self.watcher.name, successful=True, metadata={"repositories": 0}
                )
                return

            logger.info("Checking %d repositories for updates", len(repos))
            updated = [self._check_repository(repo) for repo in repos]
            self.registry.put(updated)

        except Exception as e:
            logger.error("Watch cycle failed: %s", e, exc_info=True)
            self.db.update_watcher_state(self.watcher.name, successful=False)
            return

        self.db.update_watcher_state(
            self.watcher.name,
            successful=True,
            metadata={
                "repositories": len(updated),
                "notifications_sent": self.watcher.sent,
                "notifications_failed": self.watcher.failed,
                "rate_limit_remaining": self.client.rate_limit_remaining,
            },
        )
        logger.info(
            "Watch cycle completed: %d repositories, %d notification(s) sent, "
            "%d failed",
            len(updated), self.watcher.sent, self.watcher.failed,
        )
        if self.client.rate_limit_remaining is not None:
            logger.info(
                "GitHub API rate limit remaining: %d",
                self.client.rate_limit_remaining,
            )

    def _check_repository(self, repo: WatchedRepository) -> WatchedRepository:
        """Check one repository, keeping its old snapshot on any error."""
        logger.info("Checking %s...", repo.repo_id)
        try:
            return self.watcher.check_repository(repo)
        except Exception as e:
            logger.error(
                "Error checking repository %s: %s", repo.repo_id, e, exc_info=True
            )
            return repo

    def last_cycle_state(self) -> dict | None:
        return self.db.get_watcher_state(self.watcher.name)

    def start(self) -> None:
        """Register the cycle job and start the blocking scheduler."""
        interval = self.config.check_interval_minutes
        self.scheduler.add_job(
            self.run_cycle,
            trigger=IntervalTrigger(minutes=interval),
            id=self.watcher.name,
            name="Check watched repositories",
            next_run_time=datetime.now(timezone.utc),
            misfire_grace_time=60,
            coalesce=True,
            max_instances=1,
        )
        logger.info(
            "repowatch started, checking every %d minute(s). Press Ctrl+C to stop.",
            interval,
        )
        self.scheduler.start()

    def shutdown(self) -> None:
        """Gracefully shut down the scheduler and close resources."""
        logger.info("Shutting down repowatch...")
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.client.close()
        closer = getattr(self.notifier, "close", None)
        if closer is not None:
            closer()
        self.db.close()
