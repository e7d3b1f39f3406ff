# =============================================================================
# jsolar_core/ui/notifications.py
# User Notifications for Sync Outcomes
# =============================================================================

from __future__ import annotations
from typing import Protocol
import logging

import streamlit as st

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Sink for user-facing, non-blocking messages."""

    def success(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Notifier used outside the UI: writes messages to the log."""

    def success(self, message: str) -> None:
        logger.info(message)

    def info(self, message: str) -> None:
        logger.info(message)

    def warning(self, message: str) -> None:
        logger.warning(message)

    def error(self, message: str) -> None:
        logger.error(message)


class StreamlitNotifier:
    """Shows messages as Streamlit toasts."""

    def success(self, message: str) -> None:
        st.toast(message, icon="✅")

    def info(self, message: str) -> None:
        st.toast(message, icon="ℹ️")

    def warning(self, message: str) -> None:
        st.toast(message, icon="⚠️")

    def error(self, message: str) -> None:
        st.toast(message, icon="❌")
