from typing import Any, Dict, Optional

from tubegate.i18n import i18n


class GatewayError(Exception):
    """Failure surfaced to API clients as a JSON error body"""

    status_code = 500
    key = "error.internal"

    def __init__(self, **params: Any):
        self.params: Dict[str, Any] = params
        super().__init__(self.render())

    def render(self, locale: Optional[str] = None) -> str:
        return i18n.get(self.key, locale=locale, **self.params)


class InvalidLocator(GatewayError):
    status_code = 400
    key = "error.invalid_url"


class MissingLocator(InvalidLocator):
    key = "error.url_required"


class InvalidQuery(GatewayError):
    status_code = 400
    key = "error.query_required"


class Unauthorized(GatewayError):
    status_code = 401
    key = "error.unauthorized"


class AuthRequired(GatewayError):
    """Upstream demands sign-in; the cookie jar needs refreshing"""
    key = "error.auth_required"


class ResolutionFailed(GatewayError):
    key = "error.resolution_failed"

    def __init__(self, reason: str):
        super().__init__(reason=reason)


class DownloadFailed(GatewayError):
    key = "error.download_failed"

    def __init__(self, reason: str):
        super().__init__(reason=reason)


class MissingFile(GatewayError):
    key = "error.missing_file"


class SearchFailed(GatewayError):
    key = "error.search_failed"

    def __init__(self, reason: str):
        super().__init__(reason=reason)
