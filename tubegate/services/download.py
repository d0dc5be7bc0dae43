import logging
import os
from contextlib import suppress
from typing import List, Optional

from tubegate.core.errors import AuthRequired, DownloadFailed, GatewayError
from tubegate.models.internal import DownloadJob, MediaKind
from tubegate.services.fallback import Attempt, ChainExhausted, FallbackChain
from tubegate.services.format import FormatDecision
from tubegate.services.ytdlp import (
    FailureKind,
    FFmpegCommandBuilder,
    SubprocessExecutor,
    ToolError,
    YTDLPCommandBuilder,
    run_tool,
)
from tubegate.utils.locale import safe_url_for_log

logger = logging.getLogger(__name__)


def surface_error(primary: Optional[ChainExhausted], alternate: ToolError) -> GatewayError:
    """
    Pick the error reported once every pathway failed.
    An authentication failure anywhere in the primary chain wins, since
    refreshing cookies is the only actionable fix for the caller.
    """
    if primary is not None and primary.has_kind(FailureKind.AUTH):
        return AuthRequired()
    if alternate.kind is FailureKind.AUTH:
        return AuthRequired()
    return DownloadFailed(alternate.reason)


class FormatFallbackChain:
    """Download a job's media, walking format specifiers in priority order"""

    def __init__(
        self,
        builder: YTDLPCommandBuilder,
        ffmpeg: FFmpegCommandBuilder,
        temp_dir: str,
        executor=SubprocessExecutor,
        timeout: Optional[float] = None
    ):
        self.builder = builder
        self.ffmpeg = ffmpeg
        self.temp_dir = temp_dir
        self.executor = executor
        self.timeout = timeout

    async def fetch(self, job: DownloadJob) -> None:
        if job.kind is MediaKind.AUDIO:
            await self._fetch_audio(job)
        else:
            await self._fetch_video(job)

    def _download_attempt(self, job: DownloadJob, format_str: str) -> Attempt[None]:
        cmd = self.builder.build_download_command(
            job.locator,
            format_str,
            job.output_template,
            audio_only=job.kind is MediaKind.AUDIO,
            file_format=job.kind.ext
        )

        async def run() -> None:
            await run_tool(cmd, self.executor, self.timeout)

        return Attempt(format_str, run)

    async def _fetch_audio(self, job: DownloadJob) -> None:
        attempts = [self._download_attempt(job, f) for f in FormatDecision.decide(job.kind)]
        try:
            await FallbackChain("audio formats", attempts).run()
            return
        except ChainExhausted as exhausted:
            primary = exhausted

        logger.error(
            "All %d format options failed for %s, trying raw audio with local transcode",
            len(primary.failures), safe_url_for_log(job.locator)
        )
        try:
            await self._transcode_fallback(job)
        except ToolError as e:
            logger.error("Raw audio fallback failed: %s", e.reason[:200])
            raise surface_error(primary, e)

    async def _fetch_video(self, job: DownloadJob) -> None:
        (format_str,) = FormatDecision.decide(job.kind)
        try:
            await self._download_attempt(job, format_str).run()
        except ToolError as e:
            logger.error("Video download failed for %s: %s", safe_url_for_log(job.locator), e.reason[:200])
            raise surface_error(None, e)

    def _leftovers(self, prefix: str) -> List[str]:
        if not os.path.isdir(self.temp_dir):
            return []
        return [
            os.path.join(self.temp_dir, f)
            for f in sorted(os.listdir(self.temp_dir))
            if f.startswith(prefix)
        ]

    async def _transcode_fallback(self, job: DownloadJob) -> None:
        """Fetch the best raw audio stream and transcode it locally"""
        stem, _ = os.path.splitext(job.filename)
        prefix = f"{stem}.source"
        template = os.path.join(self.temp_dir, f"{prefix}.%(ext)s")

        try:
            await run_tool(self.builder.build_raw_audio_command(job.locator, template), self.executor, self.timeout)

            # yt-dlp picks the extension, so find what it wrote
            found = self._leftovers(prefix)
            if not found:
                raise ToolError("yt-dlp", "raw audio file not found after download")

            await run_tool(self.ffmpeg.build_transcode_command(found[0], job.output_path), self.executor, self.timeout)
            logger.info("Transcoded raw audio to %s", job.filename)
        finally:
            for leftover in self._leftovers(prefix):
                with suppress(OSError):
                    os.remove(leftover)
