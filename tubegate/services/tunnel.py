import logging
from typing import Any, Optional

import httpx

from tubegate.config.settings import TunnelConfig
from tubegate.models.internal import MediaKind
from tubegate.utils.locale import safe_url_for_log

logger = logging.getLogger(__name__)


def extract_tunnel_url(data: Any) -> Optional[str]:
    """Find the download URL in any of the response shapes tunnels return"""
    if not isinstance(data, dict):
        return None

    for key in ("url", "download_url"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value

    result = data.get("result")
    if isinstance(result, str) and result:
        return result
    if isinstance(result, dict):
        for key in ("url", "download_url"):
            value = result.get(key)
            if isinstance(value, str) and value:
                return value

    return None


class TunnelService:
    """
    Optional remote redirection service (cobalt API).
    Any failure means "unavailable" and the caller downloads locally.
    """

    def __init__(self, tunnel_config: TunnelConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = tunnel_config
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.config.url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True, timeout=self.config.timeout_seconds)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _payload(self, locator: str, kind: MediaKind, audio_format: str) -> dict:
        return {
            "url": locator,
            "downloadMode": "audio" if kind is MediaKind.AUDIO else "auto",
            "audioFormat": audio_format,
            "videoQuality": self.config.video_quality,
        }

    async def request_tunnel(self, locator: str, kind: MediaKind, audio_format: str = "mp3") -> Optional[str]:
        if not self.enabled:
            return None

        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.config.api_key:
            headers["Authorization"] = f"Api-Key {self.config.api_key}"

        try:
            response = await self._get_client().post(
                self.config.url,
                json=self._payload(locator, kind, audio_format),
                headers=headers
            )
        except httpx.HTTPError as e:
            logger.warning("Tunnel request failed for %s: %s", safe_url_for_log(locator), e)
            return None

        if not response.is_success:
            logger.warning("Tunnel returned HTTP %d for %s", response.status_code, safe_url_for_log(locator))
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("Tunnel returned a non-JSON body")
            return None

        url = extract_tunnel_url(data)
        if not url:
            logger.warning("Tunnel response carried no URL (status=%s)", data.get("status") if isinstance(data, dict) else None)
            return None

        logger.info("Tunnel provided a direct URL for %s", safe_url_for_log(locator))
        return url
