from typing import Optional

from tubegate.config.settings import Config
from tubegate.core.errors import Unauthorized


def check_api_key(config: Config, provided: Optional[str]) -> None:
    """
    Validate the `apikey` query parameter of the gated route.
    Open when no key is configured.
    """
    expected = config.api.api_key
    if not expected:
        return
    if provided != expected:
        raise Unauthorized()
