import functools
from typing import Optional

import aiofiles
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from tubegate.api.common import serve_media
from tubegate.core.auth import check_api_key
from tubegate.core.errors import Unauthorized
from tubegate.core.logging import log_info, log_warning
from tubegate.i18n import i18n
from tubegate.infra.rate_limit import rate_limiter
from tubegate.models.internal import MediaKind
from tubegate.services.normalizer import ResponseShape, error_body, render_error
from tubegate.utils.locale import get_locale

CHUNK_SIZE = 1024 * 1024

router = APIRouter()


@router.get("/api/download/ytmp3", dependencies=[Depends(rate_limiter)])
async def download_audio_gated(
    request: Request,
    url: Optional[str] = Query(None, description="YouTube URL"),
    apikey: Optional[str] = Query(None, description="API key")
):
    """Nested-shape audio download; prefers the remote tunnel when configured"""
    config = request.app.state.config
    try:
        check_api_key(config, apikey)
    except Unauthorized as e:
        log_warning(request, "Rejected request with invalid API key")
        locale = get_locale(request.headers.get("accept-language"))
        return render_error(e, ResponseShape.NESTED, config.creator, locale)

    return await serve_media(request, url, MediaKind.AUDIO, ResponseShape.NESTED, prefer_tunnel=True)


@router.get("/download/{filename}")
async def serve_file(request: Request, filename: str):
    """Stream a staged file while it is still alive"""
    config = request.app.state.config
    store = request.app.state.media.store
    locale = get_locale(request.headers.get("accept-language"))
    _ = functools.partial(i18n.get, locale=locale)

    not_found = JSONResponse(
        error_body(404, _("error.file_not_found"), ResponseShape.FLAT, config.creator),
        status_code=404
    )

    path = store.resolve_download(filename)
    if path is None:
        return not_found

    # Open before streaming: the cleanup timer may unlink the path mid-transfer
    try:
        f = await aiofiles.open(path, "rb")
    except FileNotFoundError:
        return not_found
    log_info(request, f"Streaming {filename}")

    async def generate():
        try:
            while True:
                chunk = await f.read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
        finally:
            await f.close()

    media_type = MediaKind.AUDIO.media_type if filename.endswith(".mp3") else MediaKind.VIDEO.media_type
    headers = {
        "Content-Disposition": f'attachment; filename="{filename}"',
        "X-Content-Type-Options": "nosniff",
        "Cache-Control": "no-cache",
    }
    return StreamingResponse(generate(), media_type=media_type, headers=headers)
