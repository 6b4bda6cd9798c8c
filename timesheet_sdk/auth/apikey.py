"""Static API key authentication."""

import re
from collections.abc import MutableMapping

from ..exceptions import ConfigurationError
from .base import Authentication

# API key format: ts_{prefix}.{secret}
_API_KEY_PATTERN = re.compile(r"ts_[a-zA-Z0-9]+\.[a-zA-Z0-9]+")


def is_valid_api_key_format(api_key: str) -> bool:
    """Check that a key looks like ``ts_<prefix>.<secret>``."""
    return _API_KEY_PATTERN.fullmatch(api_key) is not None


class ApiKeyAuth(Authentication):
    """API key authentication using the ``ApiKey`` scheme.

    Sends ``Authorization: ApiKey <key>`` on every request. Keys never
    expire client-side, so there is nothing to refresh.
    """

    def __init__(self, api_key: str) -> None:
        if api_key is None:
            raise ConfigurationError("API key cannot be None")
        if not isinstance(api_key, str):
            raise ConfigurationError("API key must be a string")
        if not api_key:
            raise ConfigurationError("API key cannot be empty")
        if not api_key.strip():
            raise ConfigurationError("API key cannot be empty or whitespace")
        if not is_valid_api_key_format(api_key):
            raise ConfigurationError("Invalid API key format, expected ts_<prefix>.<secret>")

        self._api_key = api_key

    def __repr__(self) -> str:
        prefix = self._api_key.split(".", 1)[0]
        return f"ApiKeyAuth(prefix={prefix!r})"

    def apply_auth(self, headers: MutableMapping[str, str]) -> None:
        headers["Authorization"] = f"ApiKey {self._api_key}"

    def needs_refresh(self) -> bool:
        return False

    async def refresh(self) -> None:
        raise ConfigurationError("API keys cannot be refreshed")

    async def get_auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"ApiKey {self._api_key}"}

    def is_valid(self) -> bool:
        """Check that the stored key still has the expected format."""
        return bool(self._api_key.strip()) and is_valid_api_key_format(self._api_key)
