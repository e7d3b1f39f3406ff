# =============================================================================
# jsolar_core/ui/offline_indicator.py
# Connectivity / Sync Status Indicator
# =============================================================================
"""
Small status strip: Online/Offline chip, pending badge, last sync time and a
manual "Sync now" button.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

import streamlit as st


def format_last_sync(last_sync: Optional[datetime]) -> str:
    """Format the last sync time as dd/mm HH:MM, or a dash if never synced."""
    if last_sync is None:
        return "—"
    return last_sync.strftime("%d/%m %H:%M")


def render_offline_indicator(coordinator) -> None:
    """
    Render the sync status strip for a SyncCoordinator.

    Args:
        coordinator: The session's SyncCoordinator
    """
    status = coordinator.get_status_display()
    is_online = status["is_online"]
    is_syncing = status["is_syncing"]
    pending = status["pending_count"]

    chip_col, badge_col, sync_col, button_col = st.columns([1, 1, 2, 1])

    with chip_col:
        if is_online:
            st.markdown("🟢 **Online**")
        else:
            st.markdown("🔴 **Offline**")

    with badge_col:
        if is_syncing:
            st.markdown("🔄 Syncing...")
        elif pending > 0:
            st.markdown(f"⏳ **{pending}** pending")
        else:
            st.markdown("✓ Up to date")

    with sync_col:
        st.caption(f"Last sync: {format_last_sync(coordinator.last_sync)}")

    with button_col:
        if st.button(
            "Sync now",
            key="jsolar_sync_now",
            disabled=not is_online or pending == 0 or is_syncing,
            use_container_width=True,
        ):
            coordinator.sync_pending_actions()
            st.rerun()
