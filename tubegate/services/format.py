from typing import Tuple

from tubegate.models.internal import MediaKind

# Most constrained first: bounded bitrate and preferred container, then looser
AUDIO_FORMATS: Tuple[str, ...] = (
    'bestaudio[abr<=128]/bestaudio[abr<=128k]/bestaudio[ext=m4a][abr<=128]',
    'bestaudio[ext=m4a][abr<=128]/bestaudio[ext=webm][abr<=128]',
    'bestaudio[ext=m4a]/bestaudio[ext=webm]/bestaudio/best',
    'bestaudio/best',
    'best[ext=m4a]/best',
    'best',
)

VIDEO_FORMAT = 'best[ext=mp4]/best'


class FormatDecision:
    """Make format decisions"""

    @staticmethod
    def decide(kind: MediaKind) -> Tuple[str, ...]:
        """Ordered format specifiers to try for a media kind"""
        if kind is MediaKind.AUDIO:
            return AUDIO_FORMATS
        return (VIDEO_FORMAT,)

    @staticmethod
    def quality_label(kind: MediaKind) -> str:
        return "128kbps" if kind is MediaKind.AUDIO else "720p"
