import logging
import subprocess
from pathlib import Path
from typing import Callable, Optional

from converter.config import Settings
from converter.files import output_file_for
from converter.models import JobState
from converter.progress import (
    Throttle,
    parse_duration_seconds,
    parse_elapsed_seconds,
    percent_complete,
)
from converter.store import JobStore

logger = logging.getLogger(__name__)


def encoder_command(settings: Settings, input_path: Path, output_path: Path):
    return [
        settings.ffmpeg_bin,
        "-y",
        "-i", str(input_path),
        "-vn",
        "-ar", str(settings.sample_rate),
        "-ac", str(settings.channels),
        "-b:a", settings.audio_bitrate,
        str(output_path),
    ]


def probe_duration(input_path: Path, settings: Settings) -> float:
    """Ask ffprobe for the container duration in seconds; 0.0 if it can't tell us."""
    cmd = [
        settings.ffprobe_bin,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(input_path),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=settings.probe_timeout)
        first_line = result.stdout.strip().splitlines()[0]
        return float(first_line.strip())
    except (OSError, subprocess.SubprocessError, IndexError, ValueError) as e:
        logger.debug("ffprobe gave no duration for %s: %s", input_path, e)
        return 0.0


class DurationTracker:
    """
    Total length used to turn ``time=`` positions into percentages.

    An inline ``Duration:`` seen earlier in the log wins. Otherwise the probe
    runs once and its answer (zero included) is kept for the rest of the job.
    """

    def __init__(self, probe: Callable[[], float]):
        self._probe = probe
        self._inline = 0.0
        self._probed: Optional[float] = None

    def observe(self, line: str) -> None:
        if "Duration:" in line and self._inline <= 0:
            self._inline = parse_duration_seconds(line)

    def total(self) -> float:
        if self._inline > 0:
            return self._inline
        if self._probed is None:
            self._probed = self._probe()
        return self._probed


def run_transcode(job_id: str, input_path: Path, original_name: str, store: JobStore, settings: Settings) -> None:
    """
    Convert an acquired file to the target audio format and publish the result.

    Never raises: every failure ends as a FAILED job with a message.
    """
    input_path = Path(input_path)
    store.set_state(job_id, JobState.running)
    store.set_message(job_id, "Starting conversion...")
    logger.info("[%s] Converting file: %s", job_id, input_path)

    proc = None
    try:
        out_file = output_file_for(
            settings.resolved_storage_dir(), job_id, original_name, settings.output_extension
        )
        cmd = encoder_command(settings, input_path, out_file)
        proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, errors="replace")

        durations = DurationTracker(lambda: probe_duration(input_path, settings))
        throttle = Throttle(settings.transcode_update_interval)
        for line in proc.stdout:
            line = line.rstrip("\r\n")
            logger.debug("[ffmpeg %s] %s", job_id, line)
            durations.observe(line)

            elapsed = parse_elapsed_seconds(line)
            if elapsed is None:
                continue
            percent = percent_complete(elapsed, durations.total())
            if percent is not None and throttle.ready():
                store.set_progress(job_id, percent)
                store.set_message(job_id, f"Converting... {percent}%")

        rc = proc.wait()
        if rc == 0 and out_file.exists():
            store.complete(job_id, str(out_file), "Completed")
            logger.info("✅ [%s] Conversion completed: %s", job_id, out_file)
            _remove_source(job_id, input_path)
        else:
            store.fail(job_id, f"Conversion failed (ffmpeg rc: {rc})")
            logger.error("❌ [%s] ffmpeg rc=%s", job_id, rc)
    except Exception as e:
        logger.exception("❌ [%s] Conversion failed: %s", job_id, e)
        store.fail(job_id, f"Conversion failed: {e}")
        if proc is not None:
            _stop_encoder(job_id, proc)


def _stop_encoder(job_id: str, proc) -> None:
    try:
        proc.kill()
        proc.wait()
    except OSError as e:
        logger.warning("⚠️ [%s] could not stop ffmpeg: %s", job_id, e)


def _remove_source(job_id: str, input_path: Path) -> None:
    try:
        input_path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("⚠️ [%s] could not remove %s: %s", job_id, input_path, e)
