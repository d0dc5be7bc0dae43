from .internal import DownloadJob, MediaKind, MediaResult, SearchRecord, StoredFile, VideoMetadata
from .response import FlatMediaResponse, NestedMediaResponse, SearchResponse

__all__ = [
    "DownloadJob",
    "FlatMediaResponse",
    "MediaKind",
    "MediaResult",
    "NestedMediaResponse",
    "SearchRecord",
    "SearchResponse",
    "StoredFile",
    "VideoMetadata",
]
