"""Presence (status broadcasting) capability.

The watch flow tells a presence integration what the user is doing
(browsing the menu, searching, watching an episode). Calls are
fire-and-forget: an integration must never raise into the caller and
nothing it does feeds back into the watch flow.

Lifecycle: connect() once at startup, reconnect on demand after a failed
call with a bounded number of attempts, disconnect() at shutdown.
"""

import time
from urllib.parse import urljoin

from pypresence import Presence as DiscordRPC

from utils.logging import get_logger

logger = get_logger(__name__)

MAX_CONNECT_ATTEMPTS = 3
SITE_URL = "https://openani.me/"


class Presence:
    """Base presence integration.

    Subclasses override the _open/_send/_clear/_close hooks; the public
    methods wrap them so failures are logged instead of raised. A failed
    call drops the connection and the next call reconnects, until
    max_connect_attempts consecutive connects have failed.
    """

    name = "presence"

    def __init__(self, max_connect_attempts: int = MAX_CONNECT_ATTEMPTS) -> None:
        self.max_connect_attempts = max_connect_attempts
        self.connected = False
        self.failed_attempts = 0

    def _open(self) -> None:
        pass

    def _send(self, details: str, state: str | None = None, **extra) -> None:
        raise NotImplementedError

    def _clear(self) -> None:
        pass

    def _close(self) -> None:
        pass

    def connect(self) -> bool:
        """Connect to the backend unless the attempt budget is spent.

        Returns:
            True if connected
        """
        if self.connected:
            return True
        if self.failed_attempts >= self.max_connect_attempts:
            return False

        try:
            self._open()
        except Exception as e:
            self.failed_attempts += 1
            logger.debug(
                f"{self.name}: connect attempt {self.failed_attempts}/{self.max_connect_attempts} failed: {e}"
            )
            return False

        self.connected = True
        self.failed_attempts = 0
        logger.debug(f"{self.name}: connected")
        return True

    def _safe(self, action: str, func, *args, **kwargs) -> None:
        if not self.connect():
            return
        try:
            func(*args, **kwargs)
        except Exception as e:
            logger.debug(f"{self.name}: {action} failed: {e}")
            self.connected = False

    def update_main_menu(self) -> None:
        self._safe("update", self._send, "Browsing the menu")

    def update_searching(self, query: str) -> None:
        self._safe("update", self._send, "Searching", f"'{query}'")

    def update_watching(
        self,
        anime_title: str,
        episode_info: str,
        episode_url: str | None = None,
        image_url: str | None = None,
    ) -> None:
        self._safe(
            "update",
            self._send,
            anime_title,
            episode_info,
            episode_url=episode_url,
            image_url=image_url,
        )

    def clear(self) -> None:
        if self.connected:
            self._safe("clear", self._clear)

    def disconnect(self) -> None:
        if not self.connected:
            return
        try:
            self._close()
        except Exception as e:
            logger.debug(f"{self.name}: disconnect failed: {e}")
        finally:
            self.connected = False


class NullPresence(Presence):
    """Presence that does nothing (presence disabled)."""

    name = "null-presence"

    def _send(self, details: str, state: str | None = None, **extra) -> None:
        pass


class LogPresence(Presence):
    """Presence that only writes debug log lines."""

    name = "log-presence"

    def _send(self, details: str, state: str | None = None, **extra) -> None:
        logger.debug(f"presence: {details}" + (f" | {state}" if state else ""))

    def _clear(self) -> None:
        logger.debug("presence: cleared")


class DiscordPresence(Presence):
    """Discord Rich Presence through the local Discord client."""

    name = "discord-presence"

    def __init__(self, client_id: str, max_connect_attempts: int = MAX_CONNECT_ATTEMPTS) -> None:
        super().__init__(max_connect_attempts)
        self.client_id = client_id
        self.started_at = int(time.time())
        self._rpc: DiscordRPC | None = None

    def _open(self) -> None:
        rpc = DiscordRPC(self.client_id)
        rpc.connect()
        self._rpc = rpc

    def _send(
        self,
        details: str,
        state: str | None = None,
        episode_url: str | None = None,
        image_url: str | None = None,
        **extra,
    ) -> None:
        # Discord limits both text fields to 128 characters
        activity = {
            "details": details[:128],
            "start": self.started_at,
            "large_image": image_url or "openani",
            "large_text": "openani-cli",
        }
        if state:
            activity["state"] = state[:128]
        if episode_url:
            activity["buttons"] = [{"label": "Watch on openani.me", "url": urljoin(SITE_URL, episode_url)}]
        self._rpc.update(**activity)

    def _clear(self) -> None:
        self._rpc.clear()

    def _close(self) -> None:
        rpc, self._rpc = self._rpc, None
        if rpc is not None:
            rpc.close()


def create_presence(enabled: bool, discord_client_id: str = "") -> Presence:
    """Presence integration for this process.

    Discord is used when a client id is configured; otherwise enabled
    presence only logs its updates and disabled presence does nothing.
    """
    if not enabled:
        return NullPresence()
    if discord_client_id:
        return DiscordPresence(discord_client_id)
    return LogPresence()
