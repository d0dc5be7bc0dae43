from fastapi import Request
import logging
from typing import Any

from rich.logging import RichHandler

from tubegate.config.settings import LoggingConfig

logger = logging.getLogger("tubegate")


def setup_logging(logging_config: LoggingConfig) -> None:
    """Install the root handler once; rich console output when enabled"""
    root = logging.getLogger()
    root.setLevel(logging_config.level)
    if any(getattr(h, "_tubegate", False) for h in root.handlers):
        return

    if logging_config.enable_rich:
        handler: logging.Handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter(logging_config.format))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s " + logging_config.format))
    handler._tubegate = True
    root.addHandler(handler)


def log_with_context(
    request: Request,
    level: int,
    message: str,
    **kwargs: Any
) -> None:
    """
    Log with request context.
    Automatically includes request_id for tracing.
    """
    request_id = getattr(request.state, "request_id", "unknown")
    extra = {
        "request_id": request_id,
        **kwargs
    }
    logger.log(level, f"[{request_id}] {message}", extra=extra)


def log_info(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.INFO, message, **kwargs)


def log_error(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.ERROR, message, **kwargs)


def log_warning(request: Request, message: str, **kwargs: Any) -> None:
    log_with_context(request, logging.WARNING, message, **kwargs)
