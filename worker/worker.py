import logging
from pathlib import Path

from converter.config import Settings
from converter.errors import ToolFailure
from converter.sources import UrlSource
from converter.store import JobStore
from worker.acquire import acquire_direct, acquire_via_downloader
from worker.transcode import run_transcode

logger = logging.getLogger(__name__)


# --- uploaded files ---
def process_file_job(job_id: str, input_path: Path, original_name: str, store: JobStore, settings: Settings):
    logger.info("🚀 [%s] Processing upload → %s", job_id, input_path)
    run_transcode(job_id, input_path, original_name, store, settings)


# --- URLs ---
def process_url_job(job_id: str, source: UrlSource, store: JobStore, settings: Settings):
    try:
        if source.provider_delegated:
            logger.info("🎵 [%s] Using yt-dlp for YouTube download", job_id)
            audio = acquire_via_downloader(job_id, source, store, settings)
            # yt-dlp already produced the final audio, nothing to transcode
            store.complete(job_id, str(audio.resolve()), "YouTube conversion completed!")
            logger.info("✅ [%s] YouTube conversion completed: %s", job_id, audio)
            return

        logger.info("🌐 [%s] Using regular download method", job_id)
        acquired, name = acquire_direct(job_id, source, store, settings)
    except ToolFailure as e:
        logger.error("❌ [%s] %s (exit code %s). Output:\n%s", job_id, e, e.exit_code, e.output)
        store.fail(job_id, f"Download failed: {e}")
        return
    except Exception as e:
        logger.error("❌ [%s] Error: %s", job_id, e, exc_info=True)
        store.fail(job_id, f"Download failed: {e}")
        return

    run_transcode(job_id, acquired, name, store, settings)
