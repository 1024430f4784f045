"""Episode downloads through external downloaders.

Tries yt-dlp first and falls back to curl. Downloads are saved as
<download_path>/<anime title>/<episode name>.mp4 with both parts sanitized.
"""

import re
import shutil
import subprocess
from pathlib import Path

from models.config import settings
from utils.exceptions import DownloadError
from utils.logging import get_logger

logger = get_logger(__name__)

PERCENT_PATTERN = re.compile(r"(\d+(?:\.\d+)?)%")
LINE_BREAK = re.compile(rb"[\r\n]")


def sanitize_filename(name: str) -> str:
    """Make a string safe to use as a file or directory name."""
    name = re.sub(r'[<>:"/\\|?*]', "_", name)
    name = re.sub(r"\s+", "_", name)
    return name.strip() or "untitled"


def _iter_output(stream):
    """Yield output segments as they arrive; both \\r and \\n end a segment."""
    pending = b""
    while True:
        chunk = stream.read1(4096)
        if not chunk:
            break
        pending += chunk
        *segments, pending = LINE_BREAK.split(pending)
        for segment in segments:
            if segment:
                yield segment.decode("utf-8", errors="replace")
    if pending:
        yield pending.decode("utf-8", errors="replace")


def _run_downloader(args: list[str], name: str) -> None:
    """Run one downloader, echoing its percentage output.

    Raises:
        DownloadError: Downloader missing or exited non-zero
    """
    try:
        process = subprocess.Popen(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
    except OSError as e:
        raise DownloadError(f"Could not start {name}: {e}") from e

    last_percent = None
    for line in _iter_output(process.stdout):
        match = PERCENT_PATTERN.search(line)
        if match and match.group(1) != last_percent:
            last_percent = match.group(1)
            print(f"\r📊 Progress: {last_percent}%", end="", flush=True)
        elif "ERROR" in line:
            logger.warning(f"[{name}] {line.strip()}")

    exit_code = process.wait()
    print()
    if exit_code != 0:
        raise DownloadError(f"{name} failed with code {exit_code}")


def download_video(
    url: str,
    anime_title: str,
    episode_name: str,
    output_dir: Path | None = None,
) -> bool:
    """Download an episode.

    Args:
        url: Direct video URL
        anime_title: Used for the per-anime directory
        episode_name: Used for the file name
        output_dir: Base directory, defaults to settings.download.download_path

    Returns:
        True if the file exists afterwards (downloaded now or previously)
    """
    anime_dir = Path(output_dir or settings.download.download_path) / sanitize_filename(anime_title)
    file_path = anime_dir / f"{sanitize_filename(episode_name)}.mp4"

    if file_path.exists():
        print(f"⚠️  File already exists: {file_path}")
        return True

    try:
        anime_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot create download directory {anime_dir}: {e}")
        return False

    print(f"📁 Download directory: {anime_dir}")
    print(f"📄 Filename: {file_path.name}")

    downloaders = [
        ("yt-dlp", ["yt-dlp", "-o", str(file_path), url]),
        ("curl", ["curl", "-L", "-#", "-o", str(file_path), url]),
    ]
    for name, args in downloaders:
        if not shutil.which(name):
            logger.debug(f"{name} not installed, skipping")
            continue

        print(f"⬇️  Starting download with {name}...")
        try:
            _run_downloader(args, name)
        except DownloadError as e:
            logger.warning(str(e))
            file_path.unlink(missing_ok=True)
            continue

        print(f"✅ Download completed: {file_path}")
        return True

    if not any(shutil.which(name) for name, _ in downloaders):
        print("❌ No downloader found. Please install yt-dlp (pip install yt-dlp) or curl.")
    else:
        print("❌ Download failed with all methods")
    return False
