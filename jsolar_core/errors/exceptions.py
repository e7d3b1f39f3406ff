# =============================================================================
# jsolar_core/errors/exceptions.py
# Custom Exception Hierarchy for JSolar Field Service
# =============================================================================

from typing import Optional, Dict, Any


class JSolarError(Exception):
    """
    Base exception for all JSolar errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "ORDER_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "JS_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# DATA LAYER EXCEPTIONS
# =============================================================================

class RemoteServiceError(JSolarError):
    """Raised when a Supabase request fails (transport or backend rejection)"""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="REMOTE_001",
            details=details,
            **kwargs,
        )


class LocalCacheError(JSolarError):
    """Raised when the local offline store cannot be opened or initialized"""

    def __init__(
        self,
        message: str,
        db_path: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if db_path:
            details["db_path"] = db_path

        super().__init__(
            message=message,
            code="CACHE_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


# =============================================================================
# SERVICE ORDER EXCEPTIONS
# =============================================================================

class OrderTransitionError(JSolarError):
    """Raised when an order is not in the status a transition requires"""

    def __init__(
        self,
        message: str,
        order_id: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if order_id:
            details["order_id"] = order_id
        if expected:
            details["expected"] = expected
        if actual:
            details["actual"] = actual

        super().__init__(
            message=message,
            code="ORDER_001",
            details=details,
            **kwargs,
        )


class OrderValidationError(JSolarError):
    """Raised when an edit payload names unknown or immutable fields"""

    def __init__(
        self,
        message: str,
        order_id: Optional[str] = None,
        fields: Optional[list] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if order_id:
            details["order_id"] = order_id
        if fields:
            details["fields"] = fields

        super().__init__(
            message=message,
            code="ORDER_002",
            details=details,
            **kwargs,
        )


class OrderBusyError(JSolarError):
    """Raised when another transition for the same order has not settled yet"""

    def __init__(
        self,
        message: str,
        order_id: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if order_id:
            details["order_id"] = order_id

        super().__init__(
            message=message,
            code="ORDER_003",
            details=details,
            **kwargs,
        )


# =============================================================================
# AUTH / CONFIGURATION EXCEPTIONS
# =============================================================================

class AuthenticationError(JSolarError):
    """Raised when Supabase Auth rejects a sign-in"""

    def __init__(
        self,
        message: str,
        email: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if email:
            details["email"] = email

        super().__init__(
            message=message,
            code="AUTH_001",
            details=details,
            **kwargs,
        )


class ConfigurationError(JSolarError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
