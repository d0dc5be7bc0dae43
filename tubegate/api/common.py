import functools
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from tubegate.core.errors import GatewayError
from tubegate.core.logging import log_error, log_info
from tubegate.i18n import i18n
from tubegate.models.internal import MediaKind
from tubegate.services.normalizer import ResponseShape, error_body, render_error, render_result
from tubegate.utils.locale import get_locale, safe_url_for_log


async def serve_media(
    request: Request,
    url: Optional[str],
    kind: MediaKind,
    shape: ResponseShape,
    prefer_tunnel: bool = False
) -> JSONResponse:
    """Run one media request and serialize the outcome in the route's shape"""
    config = request.app.state.config
    media = request.app.state.media
    locale = get_locale(request.headers.get("accept-language"))
    _ = functools.partial(i18n.get, locale=locale)

    try:
        result = await media.fetch(url, kind, prefer_tunnel=prefer_tunnel)
    except GatewayError as e:
        log_error(request, f"{kind.value} request failed ({e.status_code}): {e.render()}")
        return render_error(e, shape, config.creator, locale)
    except Exception as e:
        log_error(request, f"Unexpected {kind.value} error: {str(e)}")
        return JSONResponse(error_body(500, _("error.internal"), shape, config.creator), status_code=500)

    log_info(request, f"Served {kind.value} for {safe_url_for_log(result.download_url)} via {result.source}")
    return render_result(result, shape, config.creator)
