"""Tests for utils/downloader.py (yt-dlp / curl subprocesses mocked)."""

import io
from unittest.mock import MagicMock, patch

from utils.downloader import download_video, sanitize_filename

URL = "https://cdn.example/animes/frieren/1/1-7-1080p.mp4?big=1"


def fake_process(output: str, exit_code: int = 0):
    process = MagicMock()
    process.stdout = io.BytesIO(output.encode("utf-8"))
    process.wait.return_value = exit_code
    return process


def which_only(*names):
    return lambda name: f"/usr/bin/{name}" if name in names else None


class TestSanitizeFilename:
    def test_replaces_unsafe_characters(self):
        assert sanitize_filename('Re:Zero / "Part" 2?') == "Re_Zero____Part__2_"

    def test_empty_name(self):
        assert sanitize_filename("") == "untitled"


class TestDownloadVideo:
    """Test downloader selection and fallback."""

    def test_uses_yt_dlp_first(self, temp_data_dir, capsys):
        process = fake_process("[download]  42.0% of 300MiB\n[download] 100% of 300MiB\n")
        with patch("utils.downloader.shutil.which", side_effect=which_only("yt-dlp", "curl")), patch(
            "utils.downloader.subprocess.Popen", return_value=process
        ) as mock_popen:
            ok = download_video(URL, "Frieren", "S1E1 - Episode 1", output_dir=temp_data_dir)

        assert ok is True
        args = mock_popen.call_args[0][0]
        assert args[0] == "yt-dlp"
        assert args[2] == str(temp_data_dir / "Frieren" / "S1E1_-_Episode_1.mp4")
        assert "42.0%" in capsys.readouterr().out

    def test_carriage_return_progress_is_echoed(self, temp_data_dir, capsys):
        """Should show each redraw of a carriage-return progress bar."""
        output = "######     12.5%\r############   55.5%\r################ 100.0%\n"
        with patch("utils.downloader.shutil.which", side_effect=which_only("curl")), patch(
            "utils.downloader.subprocess.Popen", return_value=fake_process(output)
        ):
            assert download_video(URL, "Frieren", "S1E1", output_dir=temp_data_dir) is True

        shown = capsys.readouterr().out
        assert "12.5%" in shown
        assert "55.5%" in shown
        assert "100.0%" in shown

    def test_falls_back_to_curl(self, temp_data_dir):
        processes = [fake_process("ERROR: unsupported URL\n", exit_code=1), fake_process("100.0%\n")]
        with patch("utils.downloader.shutil.which", side_effect=which_only("yt-dlp", "curl")), patch(
            "utils.downloader.subprocess.Popen", side_effect=processes
        ) as mock_popen:
            ok = download_video(URL, "Frieren", "S1E1", output_dir=temp_data_dir)

        assert ok is True
        assert [c[0][0][0] for c in mock_popen.call_args_list] == ["yt-dlp", "curl"]

    def test_no_downloader_installed(self, temp_data_dir, capsys):
        with patch("utils.downloader.shutil.which", return_value=None), patch(
            "utils.downloader.subprocess.Popen"
        ) as mock_popen:
            ok = download_video(URL, "Frieren", "S1E1", output_dir=temp_data_dir)

        assert ok is False
        mock_popen.assert_not_called()
        assert "No downloader found" in capsys.readouterr().out

    def test_all_downloaders_fail(self, temp_data_dir):
        with patch("utils.downloader.shutil.which", side_effect=which_only("curl")), patch(
            "utils.downloader.subprocess.Popen", return_value=fake_process("", exit_code=22)
        ):
            assert download_video(URL, "Frieren", "S1E1", output_dir=temp_data_dir) is False

    def test_spawn_failure_is_not_raised(self, temp_data_dir):
        with patch("utils.downloader.shutil.which", side_effect=which_only("curl")), patch(
            "utils.downloader.subprocess.Popen", side_effect=OSError("no exec")
        ):
            assert download_video(URL, "Frieren", "S1E1", output_dir=temp_data_dir) is False

    def test_existing_file_is_skipped(self, temp_data_dir):
        target = temp_data_dir / "Frieren" / "S1E1.mp4"
        target.parent.mkdir()
        target.write_bytes(b"video")

        with patch("utils.downloader.subprocess.Popen") as mock_popen:
            assert download_video(URL, "Frieren", "S1E1", output_dir=temp_data_dir) is True
        mock_popen.assert_not_called()
