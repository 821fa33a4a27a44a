import os
import shlex
import sys
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field

MIB = 1024 * 1024


def _default_downloader() -> List[str]:
    # yt-dlp from the same environment, like `python -m demucs`
    return [sys.executable, "-m", "yt_dlp"]


class Settings(BaseModel):
    storage_dir: Path = Path("media-storage")
    max_workers: int = Field(3, ge=1)
    max_download_bytes: int = 800 * MIB

    # external tools
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"
    downloader_cmd: List[str] = Field(default_factory=_default_downloader)

    # target audio
    audio_format: str = "mp3"
    output_extension: str = ".mp3"
    sample_rate: int = 44100
    channels: int = 2
    audio_bitrate: str = "192k"

    # timeouts (seconds)
    head_timeout: float = 15.0
    connect_timeout: float = 20.0
    read_timeout: float = 600.0
    probe_timeout: float = 5.0

    # progress throttles (seconds)
    download_update_interval: float = 0.8
    download_unknown_size_interval: float = 2.5
    transcode_update_interval: float = 1.0

    chunk_size: int = 8192
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        values = {}
        if os.getenv("MEDIA_STORAGE_DIR"):
            values["storage_dir"] = Path(os.environ["MEDIA_STORAGE_DIR"])
        if os.getenv("CONVERTER_WORKERS"):
            values["max_workers"] = int(os.environ["CONVERTER_WORKERS"])
        if os.getenv("MAX_DOWNLOAD_MB"):
            values["max_download_bytes"] = int(os.environ["MAX_DOWNLOAD_MB"]) * MIB
        if os.getenv("FFMPEG_BIN"):
            values["ffmpeg_bin"] = os.environ["FFMPEG_BIN"]
        if os.getenv("FFPROBE_BIN"):
            values["ffprobe_bin"] = os.environ["FFPROBE_BIN"]
        if os.getenv("DOWNLOADER_CMD"):
            values["downloader_cmd"] = shlex.split(os.environ["DOWNLOADER_CMD"])
        if os.getenv("CORS_ALLOW_ORIGINS"):
            values["cors_origins"] = [o.strip() for o in os.environ["CORS_ALLOW_ORIGINS"].split(",") if o.strip()]
        return cls(**values)

    def resolved_storage_dir(self) -> Path:
        return self.storage_dir.expanduser().resolve()
