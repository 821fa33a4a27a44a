import logging
import os
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import unquote

from fastapi import FastAPI, File, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse

from converter.config import Settings
from converter.errors import InvalidInput
from converter.service import ConversionService

logger = logging.getLogger("converter.api")

ALLOWED_VIDEO_EXTENSIONS = {"mp4", "mov", "mkv", "webm", "avi", "mpeg", "mpg"}


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )


def create_app(settings: Optional[Settings] = None, service: Optional[ConversionService] = None) -> FastAPI:
    settings = settings or (service.settings if service else Settings.from_env())
    service = service or ConversionService(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service.start()
        yield
        service.shutdown(wait=False)

    app = FastAPI(title="Media Converter", version="1.0", lifespan=lifespan)
    app.state.service = service

    # ============================================================
    # CORS
    # ============================================================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ============================================================
    # Health check
    # ============================================================
    @app.get("/api/status")
    async def app_status():
        return PlainTextResponse("Application is running")

    # ============================================================
    # Upload → audio
    # ============================================================
    @app.post("/api/convert")
    async def convert_file(file: Optional[UploadFile] = File(None)):
        if file is None:
            return PlainTextResponse("No file uploaded", status_code=400)
        if not await file.read(1):
            return PlainTextResponse("No file uploaded", status_code=400)
        await file.seek(0)

        ext = os.path.splitext(file.filename or "")[1].lstrip(".").lower()
        if ext not in ALLOWED_VIDEO_EXTENSIONS:
            return PlainTextResponse("Unsupported file type.", status_code=400)

        try:
            job = await run_in_threadpool(service.submit_file, file.file, file.filename)
        except Exception as e:
            logger.exception("❌ Upload submission failed")
            return PlainTextResponse(f"Failed: {e}", status_code=500)
        return PlainTextResponse(job.id)

    # ============================================================
    # URL → audio
    # ============================================================
    @app.get("/api/download")
    async def download_from_url(url: Optional[str] = Query(None)):
        if url is None or not url.strip():
            return PlainTextResponse("Missing url", status_code=400)
        try:
            job = service.submit_url(unquote(url))
        except InvalidInput as e:
            return PlainTextResponse(str(e), status_code=400)
        except Exception as e:
            logger.exception("❌ URL submission failed")
            return PlainTextResponse(f"Failed: {e}", status_code=500)
        return PlainTextResponse(job.id)

    # ============================================================
    # Polling & retrieval
    # ============================================================
    @app.get("/api/status/{job_id}")
    async def job_status(job_id: str):
        job = service.get_status(job_id)
        if job is None:
            return JSONResponse({"detail": "Not found"}, status_code=404)
        return JSONResponse(job.model_dump(mode="json", by_alias=True))

    @app.get("/api/download/{job_id}")
    async def download_output(job_id: str):
        path = service.get_output(job_id)
        if path is None:
            return PlainTextResponse("File not available", status_code=404)
        return FileResponse(path, media_type="application/octet-stream", filename=path.name)

    return app


configure_logging()
app = create_app()

# ============================================================
# Local server
# ============================================================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
