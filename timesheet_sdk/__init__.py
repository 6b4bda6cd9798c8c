"""Timesheet SDK - An async Python client for the Timesheet time-tracking API."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("timesheet-sdk")
except PackageNotFoundError:
    __version__ = "1.0.0"  # Fallback for development

__all__ = [
    "__version__",
    # Client
    "TimesheetClient",
    "ApiClient",
    # Configuration
    "ClientConfig",
    "RetryConfig",
    "Settings",
    "load_settings",
    # Authentication
    "Authentication",
    "ApiKeyAuth",
    "OAuth2Auth",
    "OAuth21Auth",
    "OAuthDiscovery",
    # Errors
    "TimesheetError",
    "TimesheetApiError",
    "TimesheetAuthError",
    "TimesheetRateLimitError",
    "ConfigurationError",
    "DiscoveryError",
    # Pagination
    "NavigablePage",
]

_EXCEPTIONS = (
    "TimesheetError",
    "TimesheetApiError",
    "TimesheetAuthError",
    "TimesheetRateLimitError",
    "ConfigurationError",
    "DiscoveryError",
)
_AUTH = ("Authentication", "ApiKeyAuth", "OAuth2Auth", "OAuth21Auth", "OAuthDiscovery")


# Lazy imports so ``import timesheet_sdk`` stays cheap
def __getattr__(name: str) -> object:
    """Lazy import module components."""
    if name == "TimesheetClient":
        from .client import TimesheetClient
        return TimesheetClient
    elif name == "ApiClient":
        from .http import ApiClient
        return ApiClient
    elif name in ("ClientConfig", "RetryConfig", "Settings", "load_settings"):
        from . import config
        return getattr(config, name)
    elif name in _AUTH:
        from . import auth
        return getattr(auth, name)
    elif name in _EXCEPTIONS:
        from . import exceptions
        return getattr(exceptions, name)
    elif name == "NavigablePage":
        from .page import NavigablePage
        return NavigablePage
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
