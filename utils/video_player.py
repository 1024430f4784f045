import os
import platform
import shutil
import socket
import subprocess
import tempfile
import threading
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import NamedTuple

from models.config import PlayerSettings, settings
from models.models import PlaybackOptions, ProgressSnapshot, compute_progress
from utils.exceptions import PlaybackInterrupted, PlayerProcessFailure, PlayerUnavailable
from utils.logging import get_logger
from utils.progress_bridge import (
    LUA_SCRIPT_PATH,
    ProgressMonitor,
    SnapshotFile,
    build_script_opts,
)

logger = get_logger(__name__)

INSTALL_HINTS = [
    "Ubuntu/Debian: sudo apt install mpv",
    "macOS: brew install mpv",
    "Windows: download from https://mpv.io/installation/",
]


class PlaybackResult(NamedTuple):
    """Normalized outcome of one playback attempt.

    Attributes:
        progress: Percentage watched (recomputed from time_pos/duration when both are known)
        time_pos: Seconds watched
        duration: Total seconds
        exit_code: Player exit code, None if the player never ran
        interrupted: True if the user pressed Ctrl+C during playback
    """

    progress: int = 0
    time_pos: int = 0
    duration: int = 0
    exit_code: int | None = None
    interrupted: bool = False


def find_player(binary: str | None = None) -> str | None:
    """Locate the player executable on PATH (or verify an absolute path)."""
    return shutil.which(binary or settings.player.binary)


def use_ipc_bridge(player_settings: PlayerSettings | None = None) -> bool:
    """Whether progress is tracked through mpv's JSON IPC socket.

    Windows named pipes are not supported by the monitor, so the bundled Lua
    script is used there.

    Environment Variables:
        OPENANI_DISABLE_IPC: Set to "1" to force the Lua script bridge
    """
    player_settings = player_settings or settings.player
    if os.environ.get("OPENANI_DISABLE_IPC") == "1":
        return False
    if platform.system() == "Windows" or not hasattr(socket, "AF_UNIX"):
        return False
    return player_settings.progress_bridge == "ipc"


def _create_ipc_socket_path() -> str:
    """Unique socket path in the temp directory: /tmp/openani-mpv-{uuid}.sock"""
    unique_id = str(uuid.uuid4())[:8]
    return str(Path(tempfile.gettempdir()) / f"openani-mpv-{unique_id}.sock")


def _cleanup_ipc_socket(path: str | None) -> None:
    """Remove the IPC socket file without errors."""
    if not path:
        return
    try:
        Path(path).unlink(missing_ok=True)
    except OSError:
        pass


def build_player_args(
    player_path: str,
    url: str,
    options: PlaybackOptions,
    socket_path: str | None = None,
    script_opts: str | None = None,
    player_settings: PlayerSettings | None = None,
) -> list[str]:
    """Build the player command line.

    Args:
        player_path: Player executable
        url: Media URL
        options: Start offset and session identity
        socket_path: IPC socket path (IPC bridge)
        script_opts: --script-opts value (Lua script bridge)
        player_settings: Player settings, defaults to global settings

    Returns:
        Argument vector for subprocess.Popen (no shell involved)
    """
    player_settings = player_settings or settings.player
    args = [player_path, url]

    if options.start_time:
        args.append(f"--start={options.start_time}")

    if socket_path:
        args.append(f"--input-ipc-server={socket_path}")
    elif script_opts is not None:
        args.append(f"--script={LUA_SCRIPT_PATH}")
        args.append(f"--script-opts={script_opts}")

    args.extend(player_settings.cache_args)
    args.extend(player_settings.extra_args)
    return args


def result_from_snapshot(
    snapshot: ProgressSnapshot | None,
    exit_code: int | None,
    interrupted: bool = False,
) -> PlaybackResult:
    """Turn the final snapshot into a PlaybackResult.

    progress is recomputed from time_pos/duration whenever both are known so
    it always agrees with what the history store would compute.
    """
    if snapshot is None:
        return PlaybackResult(exit_code=exit_code, interrupted=interrupted)

    if snapshot.time_pos > 0 and snapshot.duration > 0:
        progress = compute_progress(snapshot.time_pos, snapshot.duration)
    else:
        progress = snapshot.percent_pos

    return PlaybackResult(
        progress=progress,
        time_pos=snapshot.time_pos,
        duration=snapshot.duration,
        exit_code=exit_code,
        interrupted=interrupted,
    )


def _stream_output(process: subprocess.Popen) -> threading.Thread:
    """Forward the player's output to the debug log."""

    def pump() -> None:
        for line in process.stdout:
            line = line.rstrip()
            if line:
                logger.debug(f"[player] {line}")

    thread = threading.Thread(target=pump, name="openani-player-output", daemon=True)
    thread.start()
    return thread


def _terminate(process: subprocess.Popen) -> None:
    """Stop the player, escalating to kill if it doesn't exit."""
    if process.poll() is not None:
        return
    try:
        process.terminate()
        process.wait(timeout=3)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()


def report_player_unavailable(binary: str) -> None:
    """Tell the user how to install the player."""
    print(f"❌ Player '{binary}' not found. Please install mpv:")
    for hint in INSTALL_HINTS:
        print(f"   {hint}")


def play_video(
    url: str,
    options: PlaybackOptions | None = None,
    debug: bool = False,
    on_progress: Callable[[ProgressSnapshot], None] | None = None,
    player_settings: PlayerSettings | None = None,
    history_file: Path | None = None,
) -> PlaybackResult:
    """Play a URL in the external player and wait for it to exit.

    Blocks (no timeout) until the player process terminates, then reads the
    progress snapshot exactly once.

    Args:
        url: Media URL to play
        options: Start offset and session identity
        debug: Skip playback and return a zero result
        on_progress: Called with each snapshot while playing (IPC bridge only)
        player_settings: Player settings, defaults to global settings
        history_file: History file the Lua bridge may update live

    Returns:
        PlaybackResult. Missing player or spawn failures give a zero result;
        a non-zero exit code still returns whatever progress was recorded.

    Raises:
        PlaybackInterrupted: User pressed Ctrl+C; carries the best-effort result
    """
    options = options or PlaybackOptions()
    player_settings = player_settings or settings.player

    if debug:
        print("DEBUG MODE: Skipping video playback")
        return PlaybackResult()

    player_path = find_player(player_settings.binary)
    if not player_path:
        logger.warning(str(PlayerUnavailable(f"{player_settings.binary} not found in PATH")))
        report_player_unavailable(player_settings.binary)
        return PlaybackResult()

    snapshot_file = SnapshotFile(player_settings.snapshot_file)
    snapshot_file.remove()
    snapshot_file.path.parent.mkdir(parents=True, exist_ok=True)

    socket_path = None
    script_opts = None
    if use_ipc_bridge(player_settings):
        socket_path = _create_ipc_socket_path()
    else:
        script_opts = build_script_opts(snapshot_file.path, history_file, options)

    args = build_player_args(player_path, url, options, socket_path, script_opts, player_settings)
    logger.debug(f"Player command: {args}")

    try:
        process = subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
    except OSError as e:
        failure = PlayerProcessFailure(f"Failed to launch {player_settings.binary}: {e}")
        logger.error(str(failure))
        print(f"❌ {failure}")
        _cleanup_ipc_socket(socket_path)
        return PlaybackResult()

    output_thread = _stream_output(process)
    monitor = None
    if socket_path:
        monitor = ProgressMonitor(
            socket_path,
            snapshot_file,
            is_alive=lambda: process.poll() is None,
            on_snapshot=on_progress,
        )
        monitor.start()

    interrupted = False
    try:
        exit_code = process.wait()
    except KeyboardInterrupt:
        interrupted = True
        logger.info("Playback interrupted, stopping player")
        _terminate(process)
        exit_code = process.returncode
    finally:
        if monitor is not None:
            monitor.stop()
            monitor.join(timeout=5)
        output_thread.join(timeout=1)
        _cleanup_ipc_socket(socket_path)

    if exit_code != 0 and not interrupted:
        logger.warning(str(PlayerProcessFailure(f"Player exited with code {exit_code}", exit_code)))
    else:
        logger.debug(f"Player exited with code {exit_code}")

    result = result_from_snapshot(snapshot_file.read(), exit_code, interrupted)
    logger.info(f"Playback finished: {result.progress}% ({result.time_pos}s/{result.duration}s)")

    if interrupted:
        raise PlaybackInterrupted(result)
    return result
