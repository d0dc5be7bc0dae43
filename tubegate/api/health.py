import os

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse

from tubegate.i18n import i18n
from tubegate.models.response import HealthResponse

router = APIRouter()

EXAMPLE_URL = "https://youtu.be/LZY0-ccz2-w"


@router.get("/")
async def root(request: Request):
    """Static page when present, otherwise an endpoint directory"""
    config = request.app.state.config
    index = os.path.join(config.storage.static_dir, "index.html")
    if os.path.isfile(index):
        return FileResponse(index, media_type="text/html")

    return {
        "status": True,
        "creator": config.creator,
        "message": i18n.get("response.service"),
        "endpoints": {
            "audio": f"/api/downloader/ytmp3?url={EXAMPLE_URL}",
            "video": "/api/downloader/ytmp4?url=YOUTUBE_URL",
            "audio_v2": "/api/download/ytmp3?apikey=API_KEY&url=YOUTUBE_URL",
            "search": "/api/search?q=QUERY",
            "download": "/download/FILENAME",
            "health": "/health",
        },
    }


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Lightweight health check"""
    return HealthResponse(message=i18n.get("response.running"), creator=request.app.state.config.creator)
