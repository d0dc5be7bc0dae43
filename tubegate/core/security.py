import re
from enum import Enum, auto
from typing import Optional
from urllib.parse import urlparse

from tubegate.core.errors import InvalidLocator, MissingLocator

ALLOWED_HOSTS = frozenset({
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
    "youtu.be",
    "www.youtu.be",
})

VIDEO_ID_PATTERNS = (
    re.compile(r"(?:youtu\.be/|[?&]v=)([a-zA-Z0-9_-]{11})"),
    re.compile(r"/(?:shorts|embed|live|v)/([a-zA-Z0-9_-]{11})"),
)


class UrlValidationResult(Enum):
    """URL validation result without throwing exceptions"""
    OK = auto()
    MISSING = auto()
    INVALID = auto()


class LocatorValidator:
    """
    Validate media locators against the recognized host patterns.
    Runs before any external tool is invoked.
    """

    @staticmethod
    def validate_url(url: Optional[str]) -> UrlValidationResult:
        if not url or not url.strip():
            return UrlValidationResult.MISSING

        candidate = normalize_url(url)

        try:
            parsed = urlparse(candidate)
            hostname = (parsed.hostname or "").lower()
        except ValueError:
            return UrlValidationResult.INVALID

        if parsed.scheme not in ("http", "https") or hostname not in ALLOWED_HOSTS:
            return UrlValidationResult.INVALID
        return UrlValidationResult.OK

    @staticmethod
    def require(url: Optional[str]) -> str:
        """Return the locator as an absolute https URL or raise the matching client error"""
        result = LocatorValidator.validate_url(url)
        if result == UrlValidationResult.MISSING:
            raise MissingLocator()
        if result == UrlValidationResult.INVALID:
            raise InvalidLocator()
        return normalize_url(url)


def normalize_url(url: str) -> str:
    candidate = url.strip()
    if "://" not in candidate:
        candidate = f"https://{candidate}"
    return candidate


def extract_video_id(url: str) -> Optional[str]:
    """Extract the canonical 11-character video identifier"""
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None
