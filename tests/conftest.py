"""
Shared fixtures for the converter test suite.
"""

import io
from pathlib import Path

import pytest

from converter.config import Settings
from converter.store import JobStore


class FakeProcess:
    """Stand-in for subprocess.Popen: canned combined output and an exit code."""

    def __init__(self, lines, returncode=0):
        self.stdout = io.StringIO("".join(f"{line}\n" for line in lines))
        self.returncode = returncode
        self.args = None
        self.killed = False

    def wait(self, timeout=None):
        return self.returncode

    def kill(self):
        self.killed = True
        self.returncode = -9


class RecordingScheduler:
    """Scheduler double that records submissions instead of running them."""

    def __init__(self):
        self.submitted = []

    def submit(self, job_id, fn, *args, **kwargs):
        self.submitted.append((job_id, fn, args, kwargs))

    def run_all(self):
        for _, fn, args, kwargs in self.submitted:
            fn(*args, **kwargs)

    def shutdown(self, wait=True):
        pass


@pytest.fixture
def settings(tmp_path) -> Settings:
    storage = tmp_path / "storage"
    storage.mkdir()
    return Settings(
        storage_dir=storage,
        downloader_cmd=["yt-dlp"],
        download_update_interval=0,
        download_unknown_size_interval=0,
        transcode_update_interval=0,
    )


@pytest.fixture
def store() -> JobStore:
    return JobStore()


@pytest.fixture
def storage_dir(settings) -> Path:
    return settings.resolved_storage_dir()


@pytest.fixture
def fake_process():
    return FakeProcess


@pytest.fixture
def recording_scheduler() -> RecordingScheduler:
    return RecordingScheduler()
