import asyncio
import logging
import os
from enum import Enum, auto
from typing import List, NamedTuple, Optional

from tubegate.config.settings import YtDlpConfig

logger = logging.getLogger(__name__)

UA_CHROME = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

AUTH_SIGNALS = ("Sign in to confirm", "authentication")
FORMAT_UNAVAILABLE_SIGNAL = "Requested format is not available"
STDERR_MAX_CHARS = 500


class CompletedProcess(NamedTuple):
    """Subprocess result"""
    returncode: int
    stdout: bytes
    stderr: bytes


class FailureKind(Enum):
    AUTH = auto()
    FORMAT_UNAVAILABLE = auto()
    EMPTY = auto()
    OTHER = auto()


def classify_failure(reason: str) -> FailureKind:
    if any(signal in reason for signal in AUTH_SIGNALS):
        return FailureKind.AUTH
    if FORMAT_UNAVAILABLE_SIGNAL in reason:
        return FailureKind.FORMAT_UNAVAILABLE
    return FailureKind.OTHER


class ToolError(Exception):
    """External tool exited non-zero or could not be started"""

    def __init__(self, tool: str, reason: str, kind: Optional[FailureKind] = None):
        self.tool = tool
        self.reason = reason
        self.kind = kind or classify_failure(reason)
        super().__init__(f"{tool}: {reason}")


class SubprocessExecutor:
    """Execute subprocess with consistent error handling"""

    @staticmethod
    async def run(
        cmd: List[str],
        timeout: Optional[float] = None,
        capture_stderr: bool = True
    ) -> CompletedProcess:
        """
        Run subprocess and collect its output.
        A timeout of None waits for the tool to exit on its own.
        """
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE if capture_stderr else asyncio.subprocess.DEVNULL,
            stdin=asyncio.subprocess.DEVNULL
        )

        try:
            if timeout is None:
                stdout, stderr = await process.communicate()
            else:
                stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)

            return CompletedProcess(
                returncode=process.returncode,
                stdout=stdout,
                stderr=stderr if capture_stderr else b""
            )

        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise
        except Exception:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise


async def run_tool(
    cmd: List[str],
    executor=SubprocessExecutor,
    timeout: Optional[float] = None
) -> CompletedProcess:
    """Run an external tool, raising ToolError on any failure"""
    tool = os.path.basename(cmd[0])
    try:
        result = await executor.run(cmd, timeout=timeout)
    except asyncio.TimeoutError:
        raise ToolError(tool, f"timed out after {timeout}s")
    except OSError as e:
        raise ToolError(tool, str(e))

    if result.returncode != 0:
        reason = result.stderr.decode(errors="ignore").strip()
        raise ToolError(tool, reason[-STDERR_MAX_CHARS:] or f"exit code {result.returncode}")
    return result


class CookieJar:
    """Session cookie file, used only when present and non-empty"""

    def __init__(self, path: Optional[str]):
        self.path = path

    def resolve(self) -> Optional[str]:
        if not self.path:
            return None
        try:
            if os.path.getsize(self.path) > 0:
                return self.path
        except OSError:
            return None
        return None

    def describe(self) -> str:
        if not self.path or not os.path.exists(self.path):
            return "missing"
        return "ready" if self.resolve() else "empty"


class YTDLPCommandBuilder:
    """Build yt-dlp commands"""

    def __init__(self, ytdlp_config: YtDlpConfig, cookies: Optional[CookieJar] = None):
        self.config = ytdlp_config
        self.cookies = cookies or CookieJar(ytdlp_config.cookies_path)

    def _base(self, with_cookies: bool = True) -> List[str]:
        cmd = [
            self.config.binary,
            '--no-playlist',
            '--no-warnings',
            '--socket-timeout', str(self.config.socket_timeout),
            '--retries', str(self.config.retries),
            '--add-header', 'referer:youtube.com',
            '--add-header', f'user-agent:{UA_CHROME}',
        ]

        # Checked per command so a refreshed jar is picked up without restart
        cookie_file = self.cookies.resolve() if with_cookies else None
        if cookie_file:
            cmd.extend(['--cookies', cookie_file])

        return cmd

    def build_info_command(self, url: str) -> List[str]:
        """Metadata only; 'best' avoids spurious format-selection errors"""
        cmd = self._base()
        cmd.extend([
            '--dump-single-json',
            '--skip-download',
            '-f', 'best',
            url,
        ])
        return cmd

    def build_lookup_command(self, term: str, limit: int) -> List[str]:
        """Flat lookup: a URL is looked up directly, anything else is searched"""
        is_url = term.startswith(("http://", "https://"))
        cmd = [
            self.config.binary,
            '--flat-playlist',
            '--dump-json',
            '--no-warnings',
            '--ignore-no-formats-error',
            '--socket-timeout', str(self.config.socket_timeout),
        ]

        if is_url:
            # watch?v=...&list=... would otherwise enumerate the playlist
            cmd.append('--no-playlist')

        cmd.append(term if is_url else f"ytsearch{limit}:{term}")
        return cmd

    def build_download_command(
        self,
        url: str,
        format_str: str,
        output_template: str,
        audio_only: bool,
        file_format: str
    ) -> List[str]:
        """Download to file, converting audio or remuxing video to file_format"""
        cmd = self._base()
        cmd.extend([
            '-f', format_str,
            '-o', output_template,
            '--no-progress',
        ])

        if audio_only:
            cmd.extend(['-x', '--audio-format', file_format])
        else:
            cmd.extend(['--remux-video', file_format])

        cmd.append(url)
        return cmd

    def build_raw_audio_command(self, url: str, output_template: str) -> List[str]:
        """Best raw audio stream, no post-processing"""
        cmd = self._base()
        cmd.extend([
            '-f', 'bestaudio',
            '-o', output_template,
            '--no-progress',
            url,
        ])
        return cmd


class FFmpegCommandBuilder:
    """Build ffmpeg commands"""

    def __init__(self, ytdlp_config: YtDlpConfig):
        self.config = ytdlp_config

    def build_transcode_command(self, source: str, destination: str) -> List[str]:
        return [
            self.config.ffmpeg_binary,
            '-y',
            '-hide_banner',
            '-loglevel', 'error',
            '-i', source,
            '-vn',
            '-acodec', self.config.audio_codec,
            '-b:a', self.config.audio_bitrate,
            destination,
        ]
