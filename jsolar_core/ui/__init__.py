# =============================================================================
# jsolar_core/ui/__init__.py
# Streamlit Components for JSolar Field Service
# =============================================================================

from .notifications import LoggingNotifier, Notifier, StreamlitNotifier
from .offline_indicator import format_last_sync, render_offline_indicator
from .order_table import orders_to_dataframe

__all__ = [
    "LoggingNotifier",
    "Notifier",
    "StreamlitNotifier",
    "format_last_sync",
    "render_offline_indicator",
    "orders_to_dataframe",
]
