# =============================================================================
# jsolar_core/services/base_service.py
# Base Service Class with Common Functionality
# =============================================================================

from __future__ import annotations
from abc import ABC
from typing import Optional, Dict, Any
from dataclasses import dataclass

from jsolar_core.logging import get_logger, LogContext
from jsolar_core.errors import JSolarError


@dataclass
class ServiceResult:
    """
    Standard result container for service operations.

    Truthy when the operation was accepted, falsy when it was rejected,
    so callers can keep treating it as the boolean the UI expects.
    """
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, data: Any = None, metadata: Dict[str, Any] = None) -> ServiceResult:
        """Create a successful result"""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(
        cls,
        error: str,
        error_code: str = "UNKNOWN",
        metadata: Dict[str, Any] = None
    ) -> ServiceResult:
        """Create a failed result"""
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            metadata=metadata,
        )

    @classmethod
    def from_exception(cls, e: Exception) -> ServiceResult:
        """Create a failed result from an exception"""
        if isinstance(e, JSolarError):
            return cls(
                success=False,
                error=e.message,
                error_code=e.code,
                metadata=e.details,
            )
        return cls(
            success=False,
            error=str(e),
            error_code="EXCEPTION",
        )

    @property
    def queued(self) -> bool:
        """True when the intent was accepted but deferred to the sync queue."""
        return bool(self.metadata and self.metadata.get("queued"))


class BaseService(ABC):
    """
    Abstract base class for all services.

    Provides a per-class logger and timed operation logging.

    Usage:
        class MyService(BaseService):
            def refresh(self) -> ServiceResult:
                with self.log_operation("Refreshing"):
                    return ServiceResult.ok(...)
    """

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def log_operation(self, operation: str) -> LogContext:
        """
        Create a logging context for an operation.

        Usage:
            with self.log_operation("Fetching service orders"):
                rows = repository.fetch_orders()
        """
        return LogContext(self.logger, operation)
