"""The capability contract every authentication scheme implements."""

from abc import ABC, abstractmethod
from collections.abc import MutableMapping


class Authentication(ABC):
    """Interface for authentication mechanisms.

    Implementations own their credentials and refresh mechanics; the
    :class:`~timesheet_sdk.http.ApiClient` only ever asks for headers.
    This class carries no state of its own.
    """

    @abstractmethod
    def apply_auth(self, headers: MutableMapping[str, str]) -> None:
        """Set the Authorization header on an outgoing request's headers."""

    @abstractmethod
    def needs_refresh(self) -> bool:
        """Check if credentials must be refreshed before the next request."""

    @abstractmethod
    async def refresh(self) -> None:
        """Refresh the credentials."""

    @abstractmethod
    async def get_auth_headers(self) -> dict[str, str]:
        """Get the headers to send, refreshing credentials first if needed."""
