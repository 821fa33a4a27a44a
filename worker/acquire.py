import logging
import subprocess
from pathlib import Path, PurePosixPath
from typing import Optional, Tuple

import requests

from converter.config import MIB, Settings
from converter.errors import InvalidInput, ToolFailure, TransientIOFailure
from converter.files import find_downloaded_file, find_job_file, job_file, sanitize_filename
from converter.models import JobState
from converter.progress import Throttle, parse_download_percent
from converter.sources import UrlSource
from converter.store import JobStore

logger = logging.getLogger(__name__)

# Realistic browser headers; some hosts refuse obvious scripts
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

VIDEO_TYPE_MARKERS = ("mp4", "webm", "mpeg")


# ============================================================
# Direct HTTP
# ============================================================
def _parse_length(value: Optional[str]) -> int:
    if not value:
        return -1
    try:
        return int(value)
    except ValueError:
        return -1


def probe_headers(job_id: str, url: str, settings: Settings) -> Tuple[Optional[str], int]:
    """
    HEAD the URL for Content-Type/Content-Length. Best effort: any failure
    leaves both unknown (None, -1).
    """
    try:
        resp = requests.head(url, headers=BROWSER_HEADERS, timeout=settings.head_timeout, allow_redirects=True)
    except requests.RequestException as e:
        logger.debug("[%s] HEAD failed: %s", job_id, e)
        return None, -1

    logger.info("📊 [%s] HEAD response status: %s", job_id, resp.status_code)
    if not 200 <= resp.status_code < 400:
        return None, -1
    return resp.headers.get("Content-Type"), _parse_length(resp.headers.get("Content-Length"))


def is_video_content_type(content_type: str) -> bool:
    content_type = content_type.lower()
    return (
        content_type.startswith("video/")
        or content_type.startswith("application/octet-stream")
        or any(marker in content_type for marker in VIDEO_TYPE_MARKERS)
    )


def check_remote_source(source: UrlSource, content_type: Optional[str], content_length: int, settings: Settings) -> None:
    """Reject a source before transferring its body."""
    # provider pages are HTML, not the media itself
    if content_type and not source.provider_delegated and not is_video_content_type(content_type):
        raise InvalidInput(f"Remote content not a recognized video type: {content_type.lower()}")
    if content_length > settings.max_download_bytes:
        raise InvalidInput(f"Remote file too large: {content_length // MIB} MB")


def remote_filename(source: UrlSource) -> str:
    name = PurePosixPath(source.path).name
    return sanitize_filename(name or "remote-file")


def acquire_direct(job_id: str, source: UrlSource, store: JobStore, settings: Settings) -> Tuple[Path, str]:
    """
    Stream a remote file to local storage.

    Returns:
        (path of the acquired file, sanitized source name)

    Raises:
        InvalidInput: unsupported content type, or declared/actual size over the cap
        TransientIOFailure: bad HTTP status or a network error mid-transfer
    """
    store.set_state(job_id, JobState.running)
    store.set_message(job_id, "Starting download...")
    logger.info("📥 [%s] Starting regular download: %s", job_id, source.url)

    content_type, content_length = probe_headers(job_id, source.url, settings)
    logger.info("📄 [%s] Content-Type: %s, Content-Length: %s", job_id, content_type, content_length)
    check_remote_source(source, content_type, content_length, settings)

    headers = dict(BROWSER_HEADERS, **{"Accept-Encoding": "identity"})
    try:
        resp = requests.get(
            source.url,
            headers=headers,
            stream=True,
            timeout=(settings.connect_timeout, settings.read_timeout),
        )
    except requests.RequestException as e:
        raise TransientIOFailure(f"Request failed: {e}") from e

    logger.info("📡 [%s] GET response status: %s", job_id, resp.status_code)
    if not 200 <= resp.status_code < 400:
        resp.close()
        raise TransientIOFailure(f"HTTP status: {resp.status_code}")

    if content_length <= 0:
        content_length = _parse_length(resp.headers.get("Content-Length"))

    sanitized = remote_filename(source)
    target = job_file(settings.resolved_storage_dir(), job_id, sanitized)
    try:
        _stream_to_file(job_id, resp, target, content_length, store, settings)
    finally:
        resp.close()

    store.set_progress(job_id, 0)
    store.set_message(job_id, "Download complete. Queueing conversion.")
    return target, sanitized


def _stream_to_file(job_id, resp, target: Path, content_length: int, store: JobStore, settings: Settings) -> None:
    limit = settings.max_download_bytes
    throttle = Throttle(
        settings.download_update_interval if content_length > 0 else settings.download_unknown_size_interval
    )
    total_read = 0
    try:
        with open(target, "wb") as f:
            for chunk in resp.iter_content(chunk_size=settings.chunk_size):
                if not chunk:
                    continue
                f.write(chunk)
                total_read += len(chunk)

                if total_read > limit:
                    raise InvalidInput("Downloaded file exceeds maximum allowed size")

                if not throttle.ready():
                    continue
                if content_length > 0:
                    percent = total_read * 100 // content_length
                    store.set_progress(job_id, min(99, percent))
                    store.set_message(job_id, f"Downloading... {percent}%")
                else:
                    store.set_message(job_id, f"Downloading... {total_read // MIB} MB")
    except InvalidInput:
        target.unlink(missing_ok=True)
        logger.warning("⚠️ [%s] Aborted after %d bytes, partial file removed", job_id, total_read)
        raise
    except requests.RequestException as e:
        raise TransientIOFailure(f"Transfer interrupted: {e}") from e


# ============================================================
# Provider-delegated (yt-dlp)
# ============================================================
def downloader_command(settings: Settings, output_template: str, url: str):
    return list(settings.downloader_cmd) + [
        "-f", "bestaudio",
        "--extract-audio",
        "--audio-format", settings.audio_format,
        "--audio-quality", "0",
        "--embed-thumbnail",
        "--add-metadata",
        "-o", output_template,
        url,
    ]


def acquire_via_downloader(job_id: str, source: UrlSource, store: JobStore, settings: Settings) -> Path:
    """
    Let the external downloader fetch and extract the audio in one go.

    Returns:
        path of the finished audio file

    Raises:
        ToolFailure: non-zero exit, or no file found after a clean exit
    """
    store.set_state(job_id, JobState.running)
    store.set_message(job_id, "Downloading from YouTube...")
    logger.info("📥 [%s] Starting YouTube download: %s", job_id, source.url)

    storage_dir = settings.resolved_storage_dir()
    base_path = job_file(storage_dir, job_id, sanitize_filename("youtube-audio"))
    cmd = downloader_command(settings, f"{base_path}.%(ext)s", source.url)

    logger.info("🚀 [%s] Executing yt-dlp command", job_id)
    proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, errors="replace")

    output = []
    for line in proc.stdout:
        line = line.rstrip("\r\n")
        output.append(line)
        logger.info("[yt-dlp %s] %s", job_id, line)

        percent = parse_download_percent(line)
        if percent is not None:
            store.set_progress(job_id, min(99, percent))
            store.set_message(job_id, f"Downloading from YouTube... {percent}%")

    rc = proc.wait()
    captured = "\n".join(output)
    logger.info("📊 [%s] yt-dlp exit code: %s", job_id, rc)

    if rc != 0:
        raise ToolFailure(
            f"YouTube download failed with code: {rc}. Check logs for details.", exit_code=rc, output=captured
        )

    downloaded = find_downloaded_file(base_path) or find_job_file(storage_dir, job_id)
    if downloaded is None:
        raise ToolFailure(
            "YouTube download completed but file not found. Check logs for details.", exit_code=rc, output=captured
        )
    return downloaded
