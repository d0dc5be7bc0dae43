from .duration import format_duration
from .locale import get_locale, safe_url_for_log

__all__ = ["format_duration", "get_locale", "safe_url_for_log"]
