# =============================================================================
# jsolar_core/errors/handlers.py
# Streamlit-facing Error Handling for JSolar Field Service
# =============================================================================

from __future__ import annotations
import functools
import traceback
from typing import Optional, Callable, TypeVar
import streamlit as st

from jsolar_core.logging import get_logger
from .exceptions import JSolarError

logger = get_logger(__name__)

T = TypeVar("T")


def handle_error(error: Exception, user_message: Optional[str] = None) -> None:
    """
    Log an error and show it on the page.

    JSolarError carries its own code and recoverability; anything else is
    logged with its traceback under code UNKNOWN and shown as recoverable.

    Args:
        error: The exception to report
        user_message: Text to show instead of the error's own message
    """
    if isinstance(error, JSolarError):
        message = user_message or error.message
        code, details, recoverable = error.code, error.details, error.recoverable
    else:
        message = user_message or str(error)
        code, details, recoverable = "UNKNOWN", {"traceback": traceback.format_exc()}, True

    logger.error(f"[{code}] {message}", extra={"details": details}, exc_info=True)

    if recoverable:
        st.error(f"Error: {message}")
    else:
        st.error(f"Critical Error: {message}. Please contact support.")


class ErrorContext:
    """
    Report any exception raised inside the block, then swallow it unless
    the context was opened with recoverable=False.

    Usage:
        with ErrorContext("Connecting to Supabase"):
            client = get_cached_supabase_client()
    """

    def __init__(self, operation: str, recoverable: bool = True):
        self.operation = operation
        self.recoverable = recoverable

    def __enter__(self) -> ErrorContext:
        logger.info(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            logger.info(f"Completed: {self.operation}")
            return False

        if isinstance(exc_val, JSolarError):
            handle_error(exc_val)
        else:
            handle_error(exc_val, user_message=f"Error during: {self.operation}")
        return self.recoverable


def error_boundary(error_message: str):
    """
    Keep one failing page section from taking down the rest of the page.

    The wrapped render function returns None after logging the exception
    and showing error_message.

    Usage:
        @error_boundary(error_message="Could not render the order list")
        def render_orders(coordinator):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., Optional[T]]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Optional[T]:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in {func.__name__}: {e}", exc_info=True)
                st.error(error_message)
                return None

        return wrapper

    return decorator
