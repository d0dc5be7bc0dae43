import json
import logging
import os
from typing import Any, Dict, Iterator, Optional

from tubegate.config.settings import config

logger = logging.getLogger(__name__)

LOCALES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "locales")
FALLBACK_LOCALE = "en"


class I18n:
    """Message catalog keyed by dotted paths ("error.invalid_url")"""

    def __init__(self, locales_dir: str = LOCALES_DIR, default_locale: Optional[str] = None):
        self.catalogs: Dict[str, Dict[str, Any]] = {}
        self.default_locale = default_locale or config.i18n.default_locale
        self.load_locales(locales_dir)

    def load_locales(self, locales_dir: str) -> None:
        """Load every <locale>.json catalog found in locales_dir"""
        if not os.path.isdir(locales_dir):
            logger.warning("Locales directory not found at %s", locales_dir)
            return

        for filename in sorted(os.listdir(locales_dir)):
            code, ext = os.path.splitext(filename)
            if ext != ".json":
                continue
            try:
                with open(os.path.join(locales_dir, filename), "r", encoding="utf-8") as f:
                    self.catalogs[code] = json.load(f)
            except (OSError, ValueError) as e:
                logger.error("Error loading locale %s: %s", code, e)

    def _candidates(self, locale: Optional[str]) -> Iterator[str]:
        seen = set()
        for code in (locale, self.default_locale, FALLBACK_LOCALE):
            if code and code in self.catalogs and code not in seen:
                seen.add(code)
                yield code

    def _lookup(self, catalog: Dict[str, Any], key: str) -> Optional[Any]:
        node: Any = catalog
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def get(self, key: str, locale: Optional[str] = None, **kwargs) -> str:
        """Translated message, falling back to the default locale and then the key itself"""
        for code in self._candidates(locale):
            message = self._lookup(self.catalogs[code], key)
            if message is None:
                continue
            if not isinstance(message, str):
                return str(message)
            try:
                return message.format(**kwargs)
            except KeyError:
                return message
        return key


i18n = I18n()
