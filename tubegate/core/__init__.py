from .auth import check_api_key
from .security import LocatorValidator, extract_video_id

__all__ = ["check_api_key", "LocatorValidator", "extract_video_id"]
