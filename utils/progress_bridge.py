"""Progress bridge between the external player and the CLI.

The player is opaque to the CLI: while it runs, progress is reported
out-of-band as a snapshot JSON file that is overwritten in place:

    {"timestamp": 1714586400, "time_pos": 605, "duration": 1440,
     "percent_pos": 42, "status": "playing", "estimated": false}

Two writers implement the same contract:
- ProgressMonitor: a thread in the CLI process polling mpv's JSON IPC socket
- mpv_progress.lua: a script running inside mpv (used where the IPC socket
  is unavailable, e.g. Windows named pipes)

The playback controller reads the snapshot exactly once, after the player
process has exited.
"""

import json
import socket
import threading
import time
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError

from models.models import PlaybackOptions, ProgressSnapshot, SnapshotStatus, compute_progress
from utils.exceptions import PersistenceError, SnapshotUnreadable
from utils.logging import get_logger
from utils.persistence import JSONStore

logger = get_logger(__name__)

# Typical anime episode length used while the real duration is unknown
ASSUMED_EPISODE_SECONDS = 24 * 60
# Estimated percentages never claim completion
ESTIMATED_PERCENT_CAP = 99
REPORT_INTERVAL_SECONDS = 5

SCRIPT_IDENTIFIER = "openani"
LUA_SCRIPT_PATH = Path(__file__).with_name("mpv_progress.lua")


def derive_percent(time_pos: float, duration: float, percent_pos: float = 0) -> tuple[float, bool]:
    """Apply the percentage derivation policy.

    Args:
        time_pos: Seconds played
        duration: Total seconds, 0 if unknown
        percent_pos: Percentage reported directly by the player, 0 if unavailable

    Returns:
        Tuple of (percent, estimated)
    """
    if duration <= 0 and time_pos > 0:
        estimated = time_pos / ASSUMED_EPISODE_SECONDS * 100
        return min(estimated, ESTIMATED_PERCENT_CAP), True

    if percent_pos <= 0 and duration > 0 and time_pos > 0:
        return time_pos / duration * 100, False

    return max(percent_pos, 0), False


def build_snapshot(
    time_pos: float | None,
    duration: float | None,
    percent_pos: float | None = None,
    status: SnapshotStatus = SnapshotStatus.PLAYING,
    timestamp: int | None = None,
) -> ProgressSnapshot:
    """Build a snapshot from raw player properties (None = unavailable)."""
    time_pos = time_pos or 0
    duration = duration or 0
    percent, estimated = derive_percent(time_pos, duration, percent_pos or 0)

    return ProgressSnapshot(
        timestamp=timestamp if timestamp is not None else int(time.time()),
        time_pos=int(time_pos),
        duration=int(duration),
        percent_pos=int(percent),
        status=status,
        estimated=estimated,
    )


def reconcile_final(
    live: ProgressSnapshot | None,
    prior: ProgressSnapshot | None,
    timestamp: int | None = None,
) -> ProgressSnapshot:
    """Build the finished snapshot written when the player shuts down.

    Players often report zeroed properties during teardown, so the final
    snapshot never regresses below the last one written during playback.

    Args:
        live: Values read at shutdown (None if they could not be read)
        prior: Last snapshot written during playback, if any

    Returns:
        Snapshot with status=finished and estimated=False
    """
    time_pos = live.time_pos if live else 0
    duration = live.duration if live else 0
    percent = live.percent_pos if live else 0

    if prior is not None:
        time_pos = max(time_pos, prior.time_pos)
        duration = max(duration, prior.duration)
        percent = max(percent, prior.percent_pos)

    if time_pos > 0 and duration > 0:
        percent = compute_progress(time_pos, duration)

    return ProgressSnapshot(
        timestamp=timestamp if timestamp is not None else int(time.time()),
        time_pos=time_pos,
        duration=duration,
        percent_pos=percent,
        status=SnapshotStatus.FINISHED,
        estimated=False,
    )


class SnapshotFile:
    """The shared snapshot location.

    Reads are tolerant: a missing, empty or half-written file means
    "no data yet", never an error for the caller of read().
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._store = JSONStore(self.path)

    def write(self, snapshot: ProgressSnapshot) -> None:
        """Overwrite the snapshot in place."""
        self._store.save(snapshot.model_dump(mode="json"), indent=None)

    def read_strict(self) -> ProgressSnapshot:
        """Read the snapshot.

        Raises:
            SnapshotUnreadable: Missing, unparseable or invalid snapshot
        """
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
            return ProgressSnapshot.model_validate(data)
        except FileNotFoundError as e:
            raise SnapshotUnreadable(f"No progress snapshot at {self.path}") from e
        except (OSError, ValueError, ValidationError) as e:
            raise SnapshotUnreadable(f"Unreadable progress snapshot {self.path}: {e}") from e

    def read(self) -> ProgressSnapshot | None:
        """Read the snapshot, or None if there is no usable data."""
        try:
            return self.read_strict()
        except SnapshotUnreadable as e:
            logger.debug(str(e))
            return None

    def remove(self) -> None:
        """Delete a stale snapshot before a new session starts."""
        try:
            self._store.remove()
        except PersistenceError as e:
            logger.warning(f"Could not remove stale snapshot: {e}")


def build_script_opts(snapshot_path: Path, history_path: Path | None, options: PlaybackOptions) -> str:
    """Build mpv's --script-opts value for mpv_progress.lua.

    Values use mpv's %len% quoting so titles containing commas or '='
    survive the key-value list parsing.
    """
    values = {
        "progress_file": str(snapshot_path),
        "history_file": str(history_path) if history_path else "",
        "anime_id": options.anime_id,
        "anime_title": options.anime_title,
        "anime_slug": options.anime_slug,
        "season_number": str(options.season_number),
        "episode_number": str(options.episode_number),
        "episode_title": options.episode_title,
        "fansub_name": options.fansub_name,
        "interval": str(REPORT_INTERVAL_SECONDS),
    }
    return ",".join(
        f"{SCRIPT_IDENTIFIER}-{key}=%{len(value.encode('utf-8'))}%{value}"
        for key, value in values.items()
    )


class MpvIpcClient:
    """Minimal line-based JSON client for mpv's --input-ipc-server socket."""

    def __init__(self, socket_path: str, timeout: float = 1.0) -> None:
        self.socket_path = socket_path
        self.timeout = timeout
        self._sock: socket.socket | None = None
        self._buffer = b""
        self._request_id = 0
        self.events: list[str] = []

    def connect(self) -> None:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)
        try:
            sock.connect(self.socket_path)
        except OSError:
            sock.close()
            raise
        self._sock = sock

    def close(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None

    def _read_message(self) -> dict:
        """Next JSON message from the socket.

        Raises:
            ConnectionError: Player closed the socket
            socket.timeout: No message within the timeout
        """
        # Decode complete lines only; a read may end inside a multibyte character
        while b"\n" not in self._buffer:
            chunk = self._sock.recv(4096)
            if not chunk:
                raise ConnectionError("mpv closed the IPC socket")
            self._buffer += chunk

        line, self._buffer = self._buffer.split(b"\n", 1)
        if not line.strip():
            return {}
        try:
            return json.loads(line.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return {}

    def get_property(self, name: str) -> float | None:
        """Request a numeric property, None if unavailable.

        Events received while waiting for the reply are queued in self.events.
        """
        if self._sock is None:
            raise ConnectionError("Not connected")

        self._request_id += 1
        request_id = self._request_id
        request = {"command": ["get_property", name], "request_id": request_id}
        self._sock.sendall((json.dumps(request) + "\n").encode("utf-8"))

        while True:
            message = self._read_message()
            if "event" in message:
                self.events.append(message["event"])
                continue
            if message.get("request_id") != request_id:
                continue
            if message.get("error") != "success":
                return None
            data = message.get("data")
            return float(data) if isinstance(data, (int, float)) else None


class ProgressMonitor(threading.Thread):
    """Writes snapshots for an mpv process through its JSON IPC socket.

    Polls time-pos, duration and percent-pos every interval seconds while the
    player runs and writes the reconciled finished snapshot once the player
    closes the socket.

    Args:
        socket_path: mpv --input-ipc-server path
        snapshot_file: Shared snapshot location
        is_alive: Returns False once the player process has exited
        interval: Seconds between snapshots
        on_snapshot: Called with every snapshot written (e.g. console echo)
    """

    def __init__(
        self,
        socket_path: str,
        snapshot_file: SnapshotFile,
        is_alive: Callable[[], bool],
        interval: float = REPORT_INTERVAL_SECONDS,
        on_snapshot: Callable[[ProgressSnapshot], None] | None = None,
        connect_timeout: float = 10.0,
    ) -> None:
        super().__init__(name="openani-progress-monitor", daemon=True)
        self.client = MpvIpcClient(socket_path)
        self.snapshot_file = snapshot_file
        self.is_alive = is_alive
        self.interval = interval
        self.on_snapshot = on_snapshot
        self.connect_timeout = connect_timeout
        self._stop_event = threading.Event()
        self._known_duration = 0
        self.last_snapshot: ProgressSnapshot | None = None
        self.connected = False

    def stop(self) -> None:
        self._stop_event.set()

    def _connect(self) -> bool:
        """Wait for mpv to create the socket."""
        deadline = time.monotonic() + self.connect_timeout
        while time.monotonic() < deadline and self.is_alive() and not self._stop_event.is_set():
            try:
                self.client.connect()
                return True
            except OSError:
                time.sleep(0.1)
        return False

    def poll(self, status: SnapshotStatus = SnapshotStatus.PLAYING) -> ProgressSnapshot | None:
        """Read the player's properties and write one snapshot.

        Returns:
            The written snapshot, or None if playback has not started yet
        """
        time_pos = self.client.get_property("time-pos")
        duration = self.client.get_property("duration")
        percent_pos = self.client.get_property("percent-pos")

        # Once a real duration is known it is never forgotten
        if duration and duration > 0:
            self._known_duration = duration
        elif self._known_duration:
            duration = self._known_duration

        if not time_pos and self.last_snapshot is None:
            return None

        snapshot = build_snapshot(time_pos, duration, percent_pos, status)
        self._write(snapshot)
        return snapshot

    def _write(self, snapshot: ProgressSnapshot) -> None:
        try:
            self.snapshot_file.write(snapshot)
        except PersistenceError as e:
            logger.warning(f"Could not write progress snapshot: {e}")
            return
        self.last_snapshot = snapshot
        if self.on_snapshot is not None:
            try:
                self.on_snapshot(snapshot)
            except Exception as e:
                logger.debug(f"Snapshot callback failed: {e}")

    def _status_from_events(self) -> SnapshotStatus:
        events, self.client.events = self.client.events, []
        if "playback-restart" in events:
            return SnapshotStatus.RESTARTED
        if self.last_snapshot is None:
            return SnapshotStatus.STARTED
        return SnapshotStatus.PLAYING

    def run(self) -> None:
        if not self._connect():
            logger.warning("Could not connect to the player IPC socket, progress will not be tracked")
            return

        self.connected = True
        logger.debug(f"Progress monitor connected to {self.client.socket_path}")
        try:
            while not self._stop_event.is_set():
                try:
                    self.poll(self._status_from_events())
                except (socket.timeout, TimeoutError):
                    pass
                if self._stop_event.wait(self.interval):
                    break
        except (ConnectionError, OSError) as e:
            logger.debug(f"Player closed the IPC connection: {e}")
        finally:
            self.client.close()
            self.finalize()

    def finalize(self) -> ProgressSnapshot:
        """Write the finished snapshot without regressing stored progress."""
        final = reconcile_final(self.last_snapshot, self.snapshot_file.read())
        try:
            self.snapshot_file.write(final)
        except PersistenceError as e:
            logger.warning(f"Could not write final progress snapshot: {e}")
        logger.debug(
            f"Final snapshot: {final.percent_pos}% ({final.time_pos}s/{final.duration}s)"
        )
        return final
