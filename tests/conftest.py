import json
import os
from typing import Callable, List, Optional

import pytest

from tubegate.config.settings import Config, ServerConfig, StorageConfig, YtDlpConfig
from tubegate.services.ytdlp import CompletedProcess

VIDEO_ID = "dQw4w9WgXcQ"
VIDEO_URL = f"https://youtu.be/{VIDEO_ID}"
AUTH_STDERR = b"ERROR: [youtube] dQw4w9WgXcQ: Sign in to confirm you're not a bot"
FORMAT_STDERR = b"ERROR: [youtube] dQw4w9WgXcQ: Requested format is not available"


def ok(stdout: bytes = b"") -> CompletedProcess:
    return CompletedProcess(returncode=0, stdout=stdout, stderr=b"")


def fail(stderr: bytes = b"ERROR: unable to download") -> CompletedProcess:
    return CompletedProcess(returncode=1, stdout=b"", stderr=stderr)


def record_json(video_id: str = VIDEO_ID, title: str = "Never Gonna Give You Up", duration: int = 213) -> bytes:
    return json.dumps({
        "id": video_id,
        "ie_key": "Youtube",
        "title": title,
        "url": f"https://www.youtube.com/watch?v={video_id}",
        "duration": duration,
        "view_count": 1000,
        "channel": "Rick Astley",
        "channel_url": "https://www.youtube.com/channel/UCuAXFkgsw1L7xaCfnd5JJOw",
        "thumbnails": [
            {"url": "https://i.ytimg.com/vi/small.jpg"},
            {"url": "https://i.ytimg.com/vi/large.jpg"},
        ],
    }).encode() + b"\n"


def info_json(title: str = "Never Gonna Give You Up", duration: int = 213) -> bytes:
    return json.dumps({
        "id": VIDEO_ID,
        "title": title,
        "duration": duration,
        "thumbnail": "https://i.ytimg.com/vi/maxres.jpg",
        "description": "The official video",
    }).encode()


def option(cmd: List[str], flag: str) -> Optional[str]:
    return cmd[cmd.index(flag) + 1] if flag in cmd else None


def is_lookup(cmd: List[str]) -> bool:
    return "--flat-playlist" in cmd


def is_info(cmd: List[str]) -> bool:
    return "--dump-single-json" in cmd


def is_download(cmd: List[str]) -> bool:
    return "-x" in cmd or "--remux-video" in cmd


def is_raw_audio(cmd: List[str]) -> bool:
    return option(cmd, "-f") == "bestaudio" and not is_download(cmd)


def is_ffmpeg(cmd: List[str]) -> bool:
    return os.path.basename(cmd[0]) == "ffmpeg"


def write_output(cmd: List[str], payload: bytes = b"ID3 fake media") -> CompletedProcess:
    """Behave like a successful yt-dlp/ffmpeg run by creating the output file"""
    if is_ffmpeg(cmd):
        path = cmd[-1]
    else:
        ext = "mp3" if "-x" in cmd else "mp4" if "--remux-video" in cmd else "webm"
        path = option(cmd, "-o").replace("%(ext)s", ext)
    with open(path, "wb") as f:
        f.write(payload)
    return ok()


class FakeExecutor:
    """Scripted stand-in for SubprocessExecutor; records every command"""

    def __init__(self, script: Callable[[List[str]], CompletedProcess]):
        self.script = script
        self.calls: List[List[str]] = []

    async def run(self, cmd, timeout=None, capture_stderr=True) -> CompletedProcess:
        self.calls.append(list(cmd))
        return self.script(list(cmd))

    def matching(self, predicate) -> List[List[str]]:
        return [c for c in self.calls if predicate(c)]


def happy_script(cmd: List[str]) -> CompletedProcess:
    if is_lookup(cmd):
        return ok(record_json())
    if is_download(cmd) or is_ffmpeg(cmd):
        return write_output(cmd)
    return fail()


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture
def test_config(tmp_path) -> Config:
    return Config(
        server=ServerConfig(base_url="http://test"),
        storage=StorageConfig(
            download_dir=str(tmp_path / "downloads"),
            temp_dir=str(tmp_path / "temp"),
            static_dir=str(tmp_path / "public"),
            settle_delay_seconds=0,
        ),
        ytdlp=YtDlpConfig(cookies_path=str(tmp_path / "cookies.txt")),
    )


@pytest.fixture
def dirs(test_config):
    os.makedirs(test_config.storage.download_dir, exist_ok=True)
    os.makedirs(test_config.storage.temp_dir, exist_ok=True)
    return test_config.storage
