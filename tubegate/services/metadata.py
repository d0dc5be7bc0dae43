import json
import logging
from typing import List, Optional

from tubegate.core.errors import AuthRequired, InvalidLocator, ResolutionFailed
from tubegate.core.security import extract_video_id
from tubegate.models.internal import SearchRecord, VideoMetadata
from tubegate.services.fallback import CONTINUE_ON_ANY, Attempt, ChainExhausted, Decision, FallbackChain
from tubegate.services.search import VideoSearchService
from tubegate.services.ytdlp import (
    FailureKind,
    SubprocessExecutor,
    ToolError,
    YTDLPCommandBuilder,
    run_tool,
)
from tubegate.utils.locale import safe_url_for_log

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "YouTube Video"

# A sign-in wall on the index will not lift for the next lookup
LOOKUP_POLICY = {**CONTINUE_ON_ANY, FailureKind.AUTH: Decision.ABORT}


class MetadataResolver:
    """
    Resolve title/duration/thumbnail for a locator.

    The fast search index is tried first (by identifier, then by the raw
    locator). Only when both come back empty is the heavyweight yt-dlp
    extraction run; a format error there sends us back to the index once.
    """

    def __init__(
        self,
        search: VideoSearchService,
        builder: YTDLPCommandBuilder,
        executor=SubprocessExecutor,
        timeout: Optional[float] = None
    ):
        self.search = search
        self.builder = builder
        self.executor = executor
        self.timeout = timeout

    def _lookup_chain(self, locator: str, video_id: str) -> FallbackChain[List[SearchRecord]]:
        return FallbackChain("metadata lookup", [
            Attempt(f"index by id {video_id}", lambda: self.search.lookup(video_id, video_id=video_id)),
            Attempt("index by locator", lambda: self.search.lookup(locator, video_id=video_id)),
        ], LOOKUP_POLICY)

    @staticmethod
    def _from_record(record: SearchRecord) -> VideoMetadata:
        return VideoMetadata(
            title=record.title or DEFAULT_TITLE,
            duration_seconds=max(record.duration_seconds or 0, 0),
            thumbnail_url=record.thumbnail,
            description=record.description or "",
        )

    @staticmethod
    def _from_info(info: dict) -> VideoMetadata:
        return VideoMetadata(
            title=info.get("title") or DEFAULT_TITLE,
            duration_seconds=max(int(info.get("duration") or 0), 0),
            thumbnail_url=info.get("thumbnail"),
            description=info.get("description") or "",
        )

    async def _extract_info(self, locator: str) -> VideoMetadata:
        cmd = self.builder.build_info_command(locator)
        result = await run_tool(cmd, self.executor, self.timeout)
        try:
            info = json.loads(result.stdout.decode())
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ToolError("yt-dlp", "could not parse metadata output")
        return self._from_info(info)

    async def resolve(self, locator: str) -> VideoMetadata:
        video_id = extract_video_id(locator)
        if not video_id:
            raise InvalidLocator()

        safe_url = safe_url_for_log(locator)

        try:
            records = await self._lookup_chain(locator, video_id).run()
            return self._from_record(records[0])
        except ChainExhausted:
            logger.info("Search index had nothing for %s, falling back to yt-dlp", safe_url)

        try:
            metadata = await self._extract_info(locator)
            logger.info("Got video info with yt-dlp for %s", safe_url)
            return metadata
        except ToolError as e:
            logger.error("yt-dlp metadata extraction failed for %s: %s", safe_url, e.reason[:200])
            error = e

        if error.kind is FailureKind.FORMAT_UNAVAILABLE:
            logger.info("Format error detected, retrying the search index for %s", safe_url)
            try:
                records = await self._lookup_chain(locator, video_id).run()
                return self._from_record(records[0])
            except ChainExhausted:
                logger.error("Search index fallback also returned nothing for %s", safe_url)

        if error.kind is FailureKind.AUTH:
            raise AuthRequired()

        raise ResolutionFailed(error.reason)
