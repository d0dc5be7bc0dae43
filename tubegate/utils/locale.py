from typing import List, Optional, Tuple
from urllib.parse import urlparse

from tubegate.config.settings import config


def _weighted_languages(accept_language: str) -> List[str]:
    """Primary language tags of an Accept-Language header, highest q first"""
    weighted: List[Tuple[float, int, str]] = []
    for index, item in enumerate(accept_language.split(",")):
        tag, _, params = item.strip().partition(";")
        if not tag:
            continue
        quality = 1.0
        if params.strip().startswith("q="):
            try:
                quality = float(params.strip()[2:])
            except ValueError:
                quality = 0.0
        weighted.append((-quality, index, tag.split("-")[0].lower()))
    return [lang for _, _, lang in sorted(weighted)]


def get_locale(accept_language: Optional[str] = None) -> str:
    """Pick the best supported locale for a request"""
    if accept_language:
        for lang in _weighted_languages(accept_language):
            if lang in config.i18n.supported_locales:
                return lang
    return config.i18n.default_locale


def safe_url_for_log(url: str) -> str:
    """URL without its query string, which is kept only at DEBUG level"""
    try:
        parsed = urlparse(url)
    except ValueError:
        return "invalid_url"

    base_url = f"{parsed.scheme}://{parsed.netloc}{parsed.path}"
    if config.logging.level == "DEBUG" and parsed.query:
        return f"{base_url}?{parsed.query}"
    return base_url
