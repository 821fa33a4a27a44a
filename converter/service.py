"""
Conversion service: the surface the HTTP layer talks to.

Owns the job store and the worker pool for the lifetime of the process.
"""

import contextlib
import logging
import shutil
import subprocess
import uuid
from pathlib import Path
from typing import BinaryIO, Dict, Optional, Union

from .config import Settings
from .files import client_filename, job_file, sanitize_filename
from .models import Job, JobState
from .scheduler import JobScheduler
from .sources import classify_url
from .store import JobStore
from worker.worker import process_file_job, process_url_job

logger = logging.getLogger(__name__)


def check_tools(settings: Settings) -> Dict[str, bool]:
    """Run ``--version`` / ``-version`` on each external tool and log what is usable."""
    checks = {
        "yt-dlp": list(settings.downloader_cmd) + ["--version"],
        "ffmpeg": [settings.ffmpeg_bin, "-version"],
        "ffprobe": [settings.ffprobe_bin, "-version"],
    }
    available = {}
    for name, cmd in checks.items():
        try:
            rc = subprocess.run(cmd, capture_output=True, timeout=30).returncode
        except (OSError, subprocess.SubprocessError) as e:
            logger.error("❌ %s is not available: %s", name, e)
            available[name] = False
            continue
        if rc == 0:
            logger.info("✅ %s is available and working", name)
        else:
            logger.warning("⚠️ %s may not be properly installed (exit code %s)", name, rc)
        available[name] = rc == 0
    return available


class ConversionService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[JobStore] = None,
        scheduler: Optional[JobScheduler] = None,
    ):
        self.settings = settings or Settings()
        self.store = store if store is not None else JobStore()
        self.scheduler = scheduler or JobScheduler(self.store, max_workers=self.settings.max_workers)

    @property
    def storage_dir(self) -> Path:
        return self.settings.resolved_storage_dir()

    def start(self, verify_tools: bool = True) -> None:
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Media storage directory: %s", self.storage_dir)
        if verify_tools:
            check_tools(self.settings)

    def shutdown(self, wait: bool = True) -> None:
        self.scheduler.shutdown(wait=wait)

    def submit_file(self, data: Union[bytes, BinaryIO], filename: Optional[str]) -> Job:
        job_id = str(uuid.uuid4())
        sanitized = sanitize_filename(client_filename(filename))
        target = job_file(self.storage_dir, job_id, sanitized)

        # the record only exists once the upload is safely on disk
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as out:
                if isinstance(data, (bytes, bytearray)):
                    out.write(data)
                else:
                    shutil.copyfileobj(data, out)
        except Exception:
            logger.exception("❌ [%s] Could not store upload %s", job_id, target)
            with contextlib.suppress(OSError):
                target.unlink(missing_ok=True)
            raise

        job = self.store.create(job_id)
        logger.info("📦 [%s] Upload stored: %s", job_id, target)
        self.scheduler.submit(job_id, process_file_job, job_id, target, sanitized, self.store, self.settings)
        return job

    def submit_url(self, url: str) -> Job:
        """
        Raises:
            InvalidInput: the URL is not http/https; no job is created
        """
        logger.info("🔍 Processing URL: %s", url)
        source = classify_url(url)

        job_id = str(uuid.uuid4())
        job = self.store.create(job_id)
        logger.info(
            "🎯 [%s] URL analysis: host=%s kind=%s url=%s", job_id, source.host, source.kind.value, source.url
        )
        self.scheduler.submit(job_id, process_url_job, job_id, source, self.store, self.settings)
        return job

    def get_status(self, job_id: str) -> Optional[Job]:
        return self.store.get(job_id)

    def get_output(self, job_id: str) -> Optional[Path]:
        job = self.store.get(job_id)
        if job is None or job.state is not JobState.completed or not job.output_path:
            return None
        path = Path(job.output_path)
        return path if path.is_file() else None
