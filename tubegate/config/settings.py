import os
import logging
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

SERVERLESS_ROOT = "/tmp"


class EnvSettings(BaseSettings):
    """Raw environment variables recognized by the service"""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    port: int = Field(default=3001, validation_alias=AliasChoices("PORT"))
    base_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("BASE_URL"))
    vercel: Optional[str] = Field(default=None, validation_alias=AliasChoices("VERCEL"))
    vercel_env: Optional[str] = Field(default=None, validation_alias=AliasChoices("VERCEL_ENV"))
    vercel_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("VERCEL_URL"))
    serverless: bool = Field(default=False, validation_alias=AliasChoices("SERVERLESS"))
    api_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("API_NAME", "CREATOR_NAME"))
    api_key: Optional[str] = Field(default=None, validation_alias=AliasChoices("API_KEY", "APIKEY"))
    cobalt_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("COBALT_URL"))
    cobalt_api_key: Optional[str] = Field(default=None, validation_alias=AliasChoices("COBALT_API_KEY"))
    download_dir: Optional[str] = Field(default=None, validation_alias=AliasChoices("DOWNLOAD_DIR"))
    temp_dir: Optional[str] = Field(default=None, validation_alias=AliasChoices("TEMP_DIR"))
    cookies_path: Optional[str] = Field(default=None, validation_alias=AliasChoices("COOKIES_PATH"))
    static_dir: Optional[str] = Field(default=None, validation_alias=AliasChoices("STATIC_DIR"))
    file_cleanup_ttl: Optional[float] = Field(default=None, validation_alias=AliasChoices("FILE_CLEANUP_TTL"))
    sweep_interval: Optional[float] = Field(default=None, validation_alias=AliasChoices("SWEEP_INTERVAL"))
    tool_timeout: Optional[float] = Field(default=None, validation_alias=AliasChoices("TOOL_TIMEOUT"))
    ytdlp_binary: Optional[str] = Field(default=None, validation_alias=AliasChoices("YTDLP_BINARY"))
    ffmpeg_binary: Optional[str] = Field(default=None, validation_alias=AliasChoices("FFMPEG_BINARY"))
    log_level: Optional[str] = Field(default=None, validation_alias=AliasChoices("LOG_LEVEL"))
    redis_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("REDIS_URL"))
    rate_limit_enabled: Optional[bool] = Field(default=None, validation_alias=AliasChoices("RATE_LIMIT_ENABLED"))
    rate_limit_requests: Optional[int] = Field(default=None, validation_alias=AliasChoices("RATE_LIMIT_REQUESTS"))
    rate_limit_window: Optional[int] = Field(default=None, validation_alias=AliasChoices("RATE_LIMIT_WINDOW"))
    default_locale: Optional[str] = Field(default=None, validation_alias=AliasChoices("DEFAULT_LOCALE"))
    cors_origins: Optional[str] = Field(default=None, validation_alias=AliasChoices("CORS_ORIGINS"))

    @property
    def is_serverless(self) -> bool:
        return self.serverless or self.vercel == "1" or bool(self.vercel_env)


class ServerConfig(BaseModel):
    port: int = Field(default=3001, ge=1, le=65535, description="Listen port")
    base_url: Optional[str] = Field(default=None, description="Public base URL for download links")
    serverless: bool = Field(default=False, description="Stateless deployment (no sweep, no static downloads)")

    @property
    def public_base_url(self) -> str:
        if self.base_url:
            return self.base_url.rstrip("/")
        return f"http://localhost:{self.port}"


class ApiConfig(BaseModel):
    title: str = Field(default="YouTube Download API", description="API title and creator name")
    version: str = Field(default="1.0.0", description="API version")
    api_key: Optional[str] = Field(default=None, description="Key required by the gated download route")
    cors_origins: list = Field(default=["*"], description="CORS allowed origins")
    debug: bool = Field(default=False, description="Enable debug mode")


class StorageConfig(BaseModel):
    download_dir: str = Field(default="downloads", description="Directory holding served files")
    temp_dir: str = Field(default="temp", description="Directory for intermediate files")
    static_dir: str = Field(default="public", description="Static web page directory")
    cleanup_ttl_seconds: float = Field(default=30.0, gt=0, description="Lifetime of a downloaded file")
    sweep_interval_seconds: float = Field(default=120.0, gt=0, description="Interval of the directory sweep")
    settle_delay_seconds: float = Field(default=1.0, ge=0, description="Wait before checking a finished download")


class YtDlpConfig(BaseModel):
    binary: str = Field(default="yt-dlp", description="yt-dlp executable")
    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")
    cookies_path: str = Field(default="cookies.txt", description="Netscape cookie jar used when non-empty")
    socket_timeout: int = Field(default=10, ge=1, description="Socket timeout for yt-dlp")
    retries: int = Field(default=3, ge=0, description="Number of retries inside yt-dlp")
    tool_timeout: Optional[float] = Field(default=None, description="Timeout for external tools (None waits forever)")
    audio_bitrate: str = Field(default="128k", description="Bitrate of locally transcoded audio")
    audio_codec: str = Field(default="libmp3lame", description="Codec of locally transcoded audio")


class TunnelConfig(BaseModel):
    url: Optional[str] = Field(default=None, description="Remote tunnel (cobalt) endpoint")
    api_key: Optional[str] = Field(default=None, description="Remote tunnel API key")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Tunnel request timeout")
    video_quality: str = Field(default="720", description="Requested video quality")


class RedisConfig(BaseModel):
    url: Optional[str] = Field(default=None, description="Redis connection URL (rate limiting only)")
    socket_timeout: int = Field(default=5, description="Redis socket timeout in seconds")


class RateLimitConfig(BaseModel):
    enabled: bool = Field(default=True, description="Enable rate limiting when Redis is available")
    max_requests: int = Field(default=10, ge=1, description="Max requests per window")
    window_seconds: int = Field(default=60, ge=1, description="Rate limit window in seconds")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="%(message)s", description="Log format")
    enable_rich: bool = Field(default=True, description="Enable rich console logging")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class I18nConfig(BaseModel):
    default_locale: str = Field(default="en", description="Default locale")
    supported_locales: list = Field(default=["en", "ja"], description="Supported locales")


class Config(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    ytdlp: YtDlpConfig = Field(default_factory=YtDlpConfig)
    tunnel: TunnelConfig = Field(default_factory=TunnelConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    i18n: I18nConfig = Field(default_factory=I18nConfig)

    @property
    def creator(self) -> str:
        return self.api.title

    @classmethod
    def load_from_env(cls, env: Optional[EnvSettings] = None) -> "Config":
        """Build configuration from environment variables"""
        env = env or EnvSettings()
        serverless = env.is_serverless

        # Serverless platforms only allow writes under /tmp
        root = SERVERLESS_ROOT if serverless else os.getcwd()

        server = {"port": env.port, "serverless": serverless}
        if env.vercel_url:
            server["base_url"] = f"https://{env.vercel_url}"
        elif env.base_url:
            server["base_url"] = env.base_url

        api = {}
        if env.api_name:
            api["title"] = env.api_name
        if env.api_key:
            api["api_key"] = env.api_key
        if env.cors_origins:
            api["cors_origins"] = [o.strip() for o in env.cors_origins.split(",") if o.strip()]

        storage = {
            "download_dir": env.download_dir or os.path.join(root, "downloads"),
            "temp_dir": env.temp_dir or os.path.join(root, "temp"),
            "static_dir": env.static_dir or os.path.join(os.getcwd(), "public"),
        }
        if env.file_cleanup_ttl:
            storage["cleanup_ttl_seconds"] = env.file_cleanup_ttl
        if env.sweep_interval:
            storage["sweep_interval_seconds"] = env.sweep_interval

        ytdlp = {"cookies_path": env.cookies_path or os.path.join(root, "cookies.txt")}
        if env.tool_timeout:
            ytdlp["tool_timeout"] = env.tool_timeout
        if env.ytdlp_binary:
            ytdlp["binary"] = env.ytdlp_binary
        if env.ffmpeg_binary:
            ytdlp["ffmpeg_binary"] = env.ffmpeg_binary

        tunnel = {}
        if env.cobalt_url:
            tunnel["url"] = env.cobalt_url
        if env.cobalt_api_key:
            tunnel["api_key"] = env.cobalt_api_key

        rate_limit = {}
        if env.rate_limit_enabled is not None:
            rate_limit["enabled"] = env.rate_limit_enabled
        if env.rate_limit_requests:
            rate_limit["max_requests"] = env.rate_limit_requests
        if env.rate_limit_window:
            rate_limit["window_seconds"] = env.rate_limit_window

        config_data = {
            "server": server,
            "api": api,
            "storage": storage,
            "ytdlp": ytdlp,
            "tunnel": tunnel,
            "redis": {"url": env.redis_url} if env.redis_url else {},
            "rate_limit": rate_limit,
            "logging": {"level": env.log_level} if env.log_level else {},
            "i18n": {"default_locale": env.default_locale} if env.default_locale else {},
        }
        return cls(**config_data)


config = Config.load_from_env()
