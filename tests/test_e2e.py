"""
End-to-end upload conversion with the real ffmpeg binary.

Skipped when ffmpeg/ffprobe are not on PATH.
"""

import shutil
import subprocess

import pytest

from converter.models import JobState
from converter.scheduler import JobScheduler
from converter.service import ConversionService

pytestmark = [
    pytest.mark.e2e,
    pytest.mark.skipif(
        shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
        reason="ffmpeg not installed",
    ),
]


@pytest.fixture
def sample_video(tmp_path):
    """10 seconds of test pattern with a sine tone."""
    path = tmp_path / "sample.mp4"
    subprocess.run(
        [
            "ffmpeg", "-y", "-v", "error",
            "-f", "lavfi", "-i", "testsrc=duration=10:size=320x240:rate=25",
            "-f", "lavfi", "-i", "sine=frequency=440:duration=10",
            "-shortest", "-c:v", "mpeg4", "-c:a", "aac",
            str(path),
        ],
        check=True,
        timeout=120,
    )
    return path


def test_upload_converts_to_mp3(settings, store, sample_video):
    scheduler = JobScheduler(store, max_workers=1)
    service = ConversionService(settings, store=store, scheduler=scheduler)
    service.start(verify_tools=False)

    with open(sample_video, "rb") as f:
        job = service.submit_file(f, "sample.mp4")
    service.shutdown(wait=True)

    done = service.get_status(job.id)
    assert done.state is JobState.completed, done.message
    assert done.progress_percent == 100
    assert done.output_path.endswith(".mp3")

    output = service.get_output(job.id)
    assert output is not None and output.stat().st_size > 0
