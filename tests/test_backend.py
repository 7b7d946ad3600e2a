"""Tests for the hub download progress adapters."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from unittest.mock import patch

from whisper_dictate.backend import (
    MAX_DISK_FRACTION,
    MlxWhisperBackend,
    _DiskProgressWatcher,
    _progress_bar_class,
)
from whisper_dictate.models import BASE


class TestProgressBar:
    """Tests for the tqdm class handed to snapshot_download."""

    def test_reports_fractions(self) -> None:
        fractions: list[float] = []
        bar_class = _progress_bar_class(fractions.append)

        with bar_class(total=4, disable=True) as bar:
            bar.update(1)
            bar.update(2)
            bar.update(1)

        assert fractions == [0.25, 0.75, 1.0]

    def test_unknown_total_reports_nothing(self) -> None:
        fractions: list[float] = []
        bar_class = _progress_bar_class(fractions.append)

        with bar_class(total=None) as bar:
            bar.update(10)

        assert fractions == []


class TestDiskProgressWatcher:
    """Tests for progress derived from bytes written to the model directory."""

    def test_reports_partial_file(self, tmp_path: Path) -> None:
        """A single large file counts before it is complete."""
        fractions: list[float] = []
        (tmp_path / ".cache").mkdir()
        (tmp_path / ".cache" / "weights.npz.incomplete").write_bytes(b"x" * 250)

        _DiskProgressWatcher(tmp_path, 1000, fractions.append).poll()

        assert fractions == [0.25]

    def test_caps_below_completion(self, tmp_path: Path) -> None:
        fractions: list[float] = []
        (tmp_path / "weights.npz").write_bytes(b"x" * 1200)

        _DiskProgressWatcher(tmp_path, 1000, fractions.append).poll()

        assert fractions == [MAX_DISK_FRACTION]

    def test_empty_or_missing_directory_reports_nothing(self, tmp_path: Path) -> None:
        fractions: list[float] = []

        _DiskProgressWatcher(tmp_path, 1000, fractions.append).poll()
        _DiskProgressWatcher(tmp_path / "missing", 1000, fractions.append).poll()
        _DiskProgressWatcher(tmp_path, 0, fractions.append).poll()

        assert fractions == []

    def test_polls_until_exit(self, tmp_path: Path) -> None:
        reported = threading.Event()
        fractions: list[float] = []

        def on_progress(fraction: float) -> None:
            fractions.append(fraction)
            reported.set()

        (tmp_path / "weights.npz").write_bytes(b"x" * 500)
        with _DiskProgressWatcher(tmp_path, 1000, on_progress, interval=0.01) as watcher:
            assert reported.wait(timeout=5)
        assert watcher._thread is None

        count = len(fractions)
        time.sleep(0.05)
        assert len(fractions) == count
        assert set(fractions) == {0.5}


class TestMlxWhisperBackend:
    """Tests for the hub download wiring."""

    def test_download_passes_progress_bar_and_directory(self, tmp_path: Path) -> None:
        directory = tmp_path / "base"
        fractions: list[float] = []

        def fake_snapshot_download(repo_id, local_dir, tqdm_class):
            (local_dir / "weights.npz").write_bytes(b"weights")
            with tqdm_class(total=2, disable=True) as bar:
                bar.update(2)
            return str(local_dir)

        with patch("huggingface_hub.snapshot_download", side_effect=fake_snapshot_download) as download:
            MlxWhisperBackend().download(BASE, directory, fractions.append)

        download.assert_called_once()
        assert download.call_args.kwargs["repo_id"] == BASE.repo_id
        assert download.call_args.kwargs["local_dir"] == directory
        assert 1.0 in fractions
        assert (directory / "weights.npz").exists()
