"""Discord channel message sender via the bot REST API."""

from __future__ import annotations

import logging
import time
from typing import Callable

import requests

from repowatch.config import DiscordConfig

logger = logging.getLogger(__name__)

# Discord rejects message content above this length
MAX_MESSAGE_LENGTH = 2000


class DiscordNotifier:
    """Posts messages to Discord channels, one at a time, paced.

    Consecutive send attempts are at least ``send_delay_seconds`` apart for
    the life of the notifier, measured on a monotonic clock. The gap is not
    reset between cycles: a cycle that starts within the delay of the
    previous cycle's last send waits out the remainder, and one that starts
    later sends at once.
    """

    def __init__(
        self,
        config: DiscordConfig,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        if config.token:
            self._session.headers["Authorization"] = f"Bot {config.token}"
        self._sleep = sleep
        self._clock = clock
        self._last_sent_at: float | None = None

    def _wait_for_slot(self) -> None:
        if self._last_sent_at is None:
            return
        remaining = self.config.send_delay_seconds - (
            self._clock() - self._last_sent_at
        )
        if remaining > 0:
            self._sleep(remaining)

    def send(self, channel_id: str, content: str) -> bool:
        """Send a message to a channel. Returns True on success."""
        if not self.config.token:
            logger.warning("Discord notifier not configured, skipping")
            return False

        if len(content) > MAX_MESSAGE_LENGTH:
            content = content[: MAX_MESSAGE_LENGTH - 3] + "..."

        self._wait_for_slot()
        try:
            resp = self._session.post(
                f"{self.config.api_base}/channels/{channel_id}/messages",
                json={"content": content},
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error("Error sending message to channel %s: %s", channel_id, e)
            return False
        finally:
            self._last_sent_at = self._clock()

        if not resp.ok:
            logger.error(
                "Failed to send message to channel %s (%d): %s",
                channel_id, resp.status_code, resp.text[:300],
            )
            return False

        logger.debug("Message sent to channel %s", channel_id)
        return True

    def close(self) -> None:
        self._session.close()
