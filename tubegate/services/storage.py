import asyncio
import glob
import logging
import os
import time
from contextlib import suppress
from typing import Dict, Optional

from tubegate.core.errors import MissingFile
from tubegate.models.internal import DownloadJob, MediaKind, StoredFile

logger = logging.getLogger(__name__)


class EphemeralFileStore:
    """
    Staging directory for downloaded artifacts.

    Every file lives for a fixed TTL after it is staged. Deletion is done by
    a per-file timer and, as a safety net, by a periodic sweep; whichever
    gets there first wins and the other is a no-op.
    """

    def __init__(
        self,
        download_dir: str,
        temp_dir: str,
        base_url: str,
        ttl: float = 30.0,
        settle_delay: float = 1.0
    ):
        self.download_dir = download_dir
        self.temp_dir = temp_dir
        self.base_url = base_url.rstrip("/")
        self.ttl = ttl
        self.settle_delay = settle_delay
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    def ensure_dirs(self) -> None:
        for directory in (self.download_dir, self.temp_dir):
            try:
                os.makedirs(directory, exist_ok=True)
            except OSError as e:
                logger.error("Error creating directory %s: %s", directory, e)

    def stage(self, kind: MediaKind, locator: str) -> DownloadJob:
        # Millisecond timestamps; collisions are accepted as negligible
        filename = f"{kind.value}_{int(time.time() * 1000)}.{kind.ext}"
        return DownloadJob(
            kind=kind,
            locator=locator,
            filename=filename,
            output_path=os.path.join(self.download_dir, filename),
        )

    async def finalize(self, output_path: str) -> int:
        """Wait for the tool's last flush, then report the file size"""
        if self.settle_delay:
            await asyncio.sleep(self.settle_delay)

        try:
            return os.path.getsize(output_path)
        except OSError:
            raise MissingFile()

    def describe(self, job: DownloadJob, size_bytes: int, expires_at: float) -> StoredFile:
        return StoredFile(filename=job.filename, size_bytes=size_bytes, expires_at=expires_at)

    def public_url(self, filename: str) -> str:
        return f"{self.base_url}/download/{filename}"

    def schedule_cleanup(self, output_path: str, ttl: Optional[float] = None) -> float:
        """
        Delete the file and its intermediates after ttl, whether or not it was
        ever served. Returns the wall-clock expiry time.
        """
        delay = self.ttl if ttl is None else ttl
        loop = asyncio.get_running_loop()

        previous = self._timers.pop(output_path, None)
        if previous:
            previous.cancel()

        self._timers[output_path] = loop.call_later(delay, self._expire, output_path)
        return time.time() + delay

    def _expire(self, path: str) -> None:
        self._timers.pop(path, None)
        self.discard(path)

    def discard(self, output_path: str) -> int:
        """Remove a job's file along with anything else yt-dlp wrote under its stem"""
        stem, _ = os.path.splitext(output_path)
        removed = 0
        for path in [output_path] + sorted(glob.glob(glob.escape(stem) + ".*")):
            if self.remove(path):
                removed += 1
                logger.info("Cleaned up %s", os.path.basename(path))
        return removed

    def remove(self, path: str) -> bool:
        """Best-effort delete; a file that is already gone is not an error"""
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("Error deleting %s: %s", os.path.basename(path), e)
            return False

    def sweep(self, now: Optional[float] = None) -> int:
        """Delete every file older than the TTL; returns the number removed"""
        now = time.time() if now is None else now
        removed = 0

        try:
            names = os.listdir(self.download_dir)
        except FileNotFoundError:
            return 0
        except OSError as e:
            logger.error("Error during cleanup of %s: %s", self.download_dir, e)
            return 0

        for name in names:
            path = os.path.join(self.download_dir, name)
            try:
                if not os.path.isfile(path) or now - os.path.getmtime(path) <= self.ttl:
                    continue
            except OSError:
                # Raced with a timer or manual deletion
                continue
            if self.remove(path):
                removed += 1
                logger.info("Cleaned up old file: %s", name)

        return removed

    def resolve_download(self, filename: str) -> Optional[str]:
        """Path of a servable file, or None for unknown or unsafe names"""
        if not filename or os.path.basename(filename) != filename or filename.startswith("."):
            return None
        path = os.path.join(self.download_dir, filename)
        return path if os.path.isfile(path) else None

    def shutdown(self) -> None:
        """Cancel pending timers and delete their files right away"""
        for path, handle in list(self._timers.items()):
            handle.cancel()
            self.discard(path)
        self._timers.clear()


class Sweeper:
    """Periodic full-directory sweep, standing-server mode only"""

    def __init__(self, store: EphemeralFileStore, interval: float):
        self.store = store
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            removed = self.store.sweep()
            if removed:
                logger.info("Sweep removed %d expired file(s)", removed)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None
