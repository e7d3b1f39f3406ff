# =============================================================================
# jsolar_core/errors/__init__.py
# Centralized Error Handling for JSolar Field Service
# =============================================================================

from .exceptions import (
    JSolarError,
    RemoteServiceError,
    LocalCacheError,
    OrderTransitionError,
    OrderValidationError,
    OrderBusyError,
    AuthenticationError,
    ConfigurationError,
)

from .handlers import (
    handle_error,
    ErrorContext,
    error_boundary,
)

__all__ = [
    # Exceptions
    "JSolarError",
    "RemoteServiceError",
    "LocalCacheError",
    "OrderTransitionError",
    "OrderValidationError",
    "OrderBusyError",
    "AuthenticationError",
    "ConfigurationError",
    # Handlers
    "handle_error",
    "ErrorContext",
    "error_boundary",
]
