import logging
import re
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._\- ]")

# Extensions the downloader may leave behind, in lookup order
DOWNLOADED_EXTENSIONS = (".mp3", ".m4a", ".webm", ".mp4")


def sanitize_filename(name: Optional[str]) -> str:
    if name is None:
        return "file"
    return UNSAFE_FILENAME_CHARS.sub("_", name)


def client_filename(name: Optional[str]) -> Optional[str]:
    """Drop any directory part a client put into an upload filename."""
    if name is None:
        return None
    return name.replace("\\", "/").rsplit("/", 1)[-1]


def job_file(storage_dir: Path, job_id: str, name: str) -> Path:
    return Path(storage_dir) / f"{job_id}-{name}"


def output_file_for(storage_dir: Path, job_id: str, original_name: str, extension: str = ".mp3") -> Path:
    base = original_name
    if "." in original_name:
        base = original_name[: original_name.rindex(".")]
    return job_file(storage_dir, job_id, sanitize_filename(base) + extension)


def find_downloaded_file(base_path: Path, extensions: Iterable[str] = DOWNLOADED_EXTENSIONS) -> Optional[Path]:
    """Try ``<base_path><ext>`` for each known extension."""
    for ext in extensions:
        candidate = Path(f"{base_path}{ext}")
        if candidate.exists():
            logger.debug("📁 Found downloaded file: %s", candidate)
            return candidate
    return None


def find_job_file(storage_dir: Path, job_id: str, extensions: Iterable[str] = DOWNLOADED_EXTENSIONS) -> Optional[Path]:
    """
    Fallback lookup: any file in ``storage_dir`` whose name starts with the job id.

    Known media extensions win; otherwise the first match is returned.
    """
    storage_dir = Path(storage_dir)
    if not storage_dir.is_dir():
        return None
    matches = sorted(p for p in storage_dir.iterdir() if p.name.startswith(job_id))
    if not matches:
        return None

    logger.debug("🔍 Found %d files with ID prefix: %s", len(matches), job_id)
    extensions = tuple(extensions)
    for path in matches:
        if path.is_file() and path.suffix.lower() in extensions:
            return path
    return matches[0]
