import logging
from typing import Optional

import httpx

from tubegate.config.settings import Config
from tubegate.core.security import LocatorValidator
from tubegate.models.internal import MediaKind, MediaResult
from tubegate.services.download import FormatFallbackChain
from tubegate.services.metadata import MetadataResolver
from tubegate.services.search import VideoSearchService
from tubegate.services.storage import EphemeralFileStore
from tubegate.services.tunnel import TunnelService
from tubegate.services.ytdlp import (
    CookieJar,
    FFmpegCommandBuilder,
    SubprocessExecutor,
    YTDLPCommandBuilder,
)
from tubegate.utils.locale import safe_url_for_log

logger = logging.getLogger(__name__)


class MediaService:
    """Validation → metadata → (tunnel, else) download → store"""

    def __init__(
        self,
        resolver: MetadataResolver,
        chain: FormatFallbackChain,
        store: EphemeralFileStore,
        tunnel: TunnelService,
        search: VideoSearchService,
        cookies: CookieJar
    ):
        self.resolver = resolver
        self.chain = chain
        self.store = store
        self.tunnel = tunnel
        self.search = search
        self.cookies = cookies

    @classmethod
    def from_config(
        cls,
        config: Config,
        executor=SubprocessExecutor,
        tunnel_client: Optional[httpx.AsyncClient] = None
    ) -> "MediaService":
        timeout = config.ytdlp.tool_timeout
        cookies = CookieJar(config.ytdlp.cookies_path)
        builder = YTDLPCommandBuilder(config.ytdlp, cookies)
        store = EphemeralFileStore(
            download_dir=config.storage.download_dir,
            temp_dir=config.storage.temp_dir,
            base_url=config.server.public_base_url,
            ttl=config.storage.cleanup_ttl_seconds,
            settle_delay=config.storage.settle_delay_seconds,
        )
        search = VideoSearchService(builder, executor, timeout)
        return cls(
            resolver=MetadataResolver(search, builder, executor, timeout),
            chain=FormatFallbackChain(builder, FFmpegCommandBuilder(config.ytdlp), store.temp_dir, executor, timeout),
            store=store,
            tunnel=TunnelService(config.tunnel, tunnel_client),
            search=search,
            cookies=cookies,
        )

    async def fetch(self, locator: Optional[str], kind: MediaKind, prefer_tunnel: bool = False) -> MediaResult:
        locator = LocatorValidator.require(locator)
        metadata = await self.resolver.resolve(locator)

        if prefer_tunnel:
            tunnel_url = await self.tunnel.request_tunnel(locator, kind, kind.ext)
            if tunnel_url:
                return MediaResult(kind=kind, metadata=metadata, download_url=tunnel_url, source="tunnel")

        job = self.store.stage(kind, locator)
        logger.info("Downloading %s of %s to %s", kind.value, safe_url_for_log(locator), job.filename)
        try:
            await self.chain.fetch(job)
        except Exception:
            # yt-dlp keeps the source stream when conversion fails
            self.store.discard(job.output_path)
            raise
        expires_at = self.store.schedule_cleanup(job.output_path)

        size = await self.store.finalize(job.output_path)
        stored = self.store.describe(job, size, expires_at)
        logger.info("Stored %s (%d bytes, expires at %.0f)", stored.filename, stored.size_bytes, stored.expires_at)

        return MediaResult(
            kind=kind,
            metadata=metadata,
            download_url=self.store.public_url(stored.filename),
            size_bytes=stored.size_bytes,
            filename=stored.filename,
        )
