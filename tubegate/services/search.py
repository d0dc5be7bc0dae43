import json
import logging
from typing import List, Optional

from tubegate.models.internal import SearchRecord
from tubegate.services.ytdlp import (
    FailureKind,
    SubprocessExecutor,
    ToolError,
    YTDLPCommandBuilder,
    run_tool,
)

logger = logging.getLogger(__name__)

SEARCH_MAX_RESULTS = 20
WATCH_URL = "https://www.youtube.com/watch?v={}"


def _thumbnail(info: dict) -> Optional[str]:
    if info.get("thumbnail"):
        return info["thumbnail"]
    thumbnails = info.get("thumbnails") or []
    # yt-dlp orders thumbnails from worst to best
    for thumb in reversed(thumbnails):
        if thumb.get("url"):
            return thumb["url"]
    return None


def parse_record(info: dict) -> Optional[SearchRecord]:
    """Map one yt-dlp JSON entry to a search record; non-video entries yield None"""
    video_id = info.get("id")
    if not video_id or info.get("ie_key") not in (None, "Youtube"):
        return None

    duration = info.get("duration")
    return SearchRecord(
        video_id=video_id,
        title=info.get("title") or "YouTube Video",
        url=info.get("webpage_url") or WATCH_URL.format(video_id),
        thumbnail=_thumbnail(info),
        duration_seconds=int(duration) if duration is not None else None,
        views=info.get("view_count"),
        author_name=info.get("channel") or info.get("uploader"),
        author_url=info.get("channel_url") or info.get("uploader_url"),
        description=info.get("description") or "",
    )


class VideoSearchService:
    """Search index backed by yt-dlp flat extraction"""

    def __init__(
        self,
        builder: YTDLPCommandBuilder,
        executor=SubprocessExecutor,
        timeout: Optional[float] = None
    ):
        self.builder = builder
        self.executor = executor
        self.timeout = timeout

    async def _run(self, term: str, limit: int) -> List[SearchRecord]:
        cmd = self.builder.build_lookup_command(term, limit)
        result = await run_tool(cmd, self.executor, self.timeout)

        records: List[SearchRecord] = []
        for line in result.stdout.decode(errors="ignore").splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                record = parse_record(json.loads(line))
            except json.JSONDecodeError:
                continue
            if record:
                records.append(record)

        return records[:limit]

    async def search(self, query: str, limit: int = SEARCH_MAX_RESULTS) -> List[SearchRecord]:
        """Free-text search, capped at SEARCH_MAX_RESULTS"""
        return await self._run(query, min(limit, SEARCH_MAX_RESULTS))

    async def lookup(self, term: str, video_id: Optional[str] = None, limit: int = 5) -> List[SearchRecord]:
        """
        Structured lookup keyed by an identifier or a full locator.
        Raises ToolError(EMPTY) when nothing matches so lookups chain like any other attempt.
        """
        records = await self._run(term, limit)
        if video_id:
            records = [r for r in records if r.video_id == video_id]
        if not records:
            raise ToolError("search", f"no results for {term!r}", kind=FailureKind.EMPTY)
        return records
