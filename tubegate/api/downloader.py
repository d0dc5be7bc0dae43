from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from tubegate.api.common import serve_media
from tubegate.infra.rate_limit import rate_limiter
from tubegate.models.internal import MediaKind
from tubegate.services.normalizer import ResponseShape

router = APIRouter()


@router.get("/api/downloader/ytmp3", dependencies=[Depends(rate_limiter)])
async def download_audio(request: Request, url: Optional[str] = Query(None, description="YouTube URL")):
    """Download audio as MP3 and return a short-lived direct link"""
    return await serve_media(request, url, MediaKind.AUDIO, ResponseShape.FLAT)


@router.get("/api/downloader/ytmp4", dependencies=[Depends(rate_limiter)])
async def download_video(request: Request, url: Optional[str] = Query(None, description="YouTube URL")):
    """Download video as MP4 and return a short-lived direct link"""
    return await serve_media(request, url, MediaKind.VIDEO, ResponseShape.FLAT)
