import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class MediaKind(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"

    @property
    def ext(self) -> str:
        return "mp3" if self is MediaKind.AUDIO else "mp4"

    @property
    def media_type(self) -> str:
        return "audio/mpeg" if self is MediaKind.AUDIO else "video/mp4"


@dataclass(frozen=True)
class VideoMetadata:
    """Metadata of a single video, discarded once the response is built"""
    title: str
    duration_seconds: int = 0
    thumbnail_url: Optional[str] = None
    description: str = ""


@dataclass(frozen=True)
class SearchRecord:
    """Candidate returned by the search index"""
    video_id: str
    title: str
    url: str
    thumbnail: Optional[str] = None
    duration_seconds: Optional[int] = None
    views: Optional[int] = None
    author_name: Optional[str] = None
    author_url: Optional[str] = None
    description: str = ""


@dataclass
class DownloadJob:
    """Per-request download target inside the store"""
    kind: MediaKind
    locator: str
    filename: str
    output_path: str
    created_at: float = field(default_factory=time.time)

    @property
    def output_template(self) -> str:
        """yt-dlp output template that lands on output_path after conversion"""
        root, _ = self.output_path.rsplit(".", 1)
        return f"{root}.%(ext)s"


@dataclass(frozen=True)
class StoredFile:
    filename: str
    size_bytes: int
    expires_at: float


@dataclass(frozen=True)
class MediaResult:
    """Outcome of one media request, normalized into either response shape"""
    kind: MediaKind
    metadata: VideoMetadata
    download_url: str
    size_bytes: Optional[int] = None
    filename: Optional[str] = None
    source: str = "local"
