import functools
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from tubegate.core.errors import InvalidQuery, SearchFailed
from tubegate.core.logging import log_error, log_info
from tubegate.i18n import i18n
from tubegate.infra.rate_limit import rate_limiter
from tubegate.services.normalizer import ResponseShape, render_error, render_search
from tubegate.services.search import SEARCH_MAX_RESULTS
from tubegate.services.ytdlp import ToolError
from tubegate.utils.locale import get_locale

router = APIRouter()


@router.get("/api/search", dependencies=[Depends(rate_limiter)])
async def search_videos(request: Request, q: Optional[str] = Query(None, description="Search query")):
    """Search videos using yt-dlp's ytsearch."""
    config = request.app.state.config
    locale = get_locale(request.headers.get("accept-language"))
    _ = functools.partial(i18n.get, locale=locale)

    query = (q or "").strip()
    if not query:
        return render_error(InvalidQuery(), ResponseShape.FLAT, config.creator, locale)

    log_info(request, f"Search request: q={query}")

    try:
        records = await request.app.state.media.search.search(query, limit=SEARCH_MAX_RESULTS)
    except ToolError as e:
        log_error(request, f"Search error: {e.reason[:200]}")
        return render_error(SearchFailed(e.reason[:200]), ResponseShape.FLAT, config.creator, locale)

    return render_search(query, records, config.creator)
