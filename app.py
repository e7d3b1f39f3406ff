from __future__ import annotations
from datetime import datetime
from typing import Optional

import streamlit as st

from jsolar_core.auth import check_authentication, get_current_email, get_current_user_id, sign_in, sign_out
from jsolar_core.config import Settings, load_settings
from jsolar_core.data import ServiceOrder, ServiceOrderStatus, StartOrderData
from jsolar_core.data.supabase_client import ServiceOrderRepository, get_cached_supabase_client
from jsolar_core.errors import AuthenticationError, ErrorContext, JSolarError, LocalCacheError, error_boundary, handle_error
from jsolar_core.logging import setup_logging, get_logger
from jsolar_core.offline import ConnectionManager, SyncCoordinator, get_local_cache
from jsolar_core.ui import StreamlitNotifier, orders_to_dataframe, render_offline_indicator

# ============================================================================
# PAGE CONFIGURATION
# ============================================================================
st.set_page_config(
    page_title="JSolar - Service Orders",
    page_icon="☀️",
    layout="wide",
)

setup_logging()
logger = get_logger(__name__)

settings = load_settings()


# ============================================================================
# SESSION WIRING
# ============================================================================

def get_supabase_client(settings: Settings):
    """Shared Supabase client, or None when running cache-only."""
    if not settings.has_supabase:
        return None

    with ErrorContext("Connecting to Supabase"):
        return get_cached_supabase_client()
    return None


def get_connection(settings: Settings) -> ConnectionManager:
    """Per-session connection monitor, checked from the script thread."""
    if "jsolar_connection" not in st.session_state:
        connection = ConnectionManager(
            supabase_url=settings.supabase_url or "",
            check_interval_online=settings.check_interval_online,
            check_interval_offline=settings.check_interval_offline,
            connection_timeout=settings.connection_timeout,
        )
        connection.initialize(start_monitoring=False)
        st.session_state.jsolar_connection = connection
    return st.session_state.jsolar_connection


def refresh_connection(connection: ConnectionManager) -> None:
    """Re-probe connectivity once the current check interval has elapsed."""
    last_check = connection.state.last_check
    interval = connection.check_interval_online if connection.is_online else connection.check_interval_offline
    if last_check is None or (datetime.now() - last_check).total_seconds() >= interval:
        connection.check_connection()


def get_coordinator(settings: Settings, client, connection: ConnectionManager) -> SyncCoordinator:
    """Build the session's SyncCoordinator on first use."""
    if "jsolar_coordinator" not in st.session_state:
        repository = ServiceOrderRepository(client) if client is not None else None
        coordinator = SyncCoordinator(
            repository,
            get_local_cache(settings.local_db_path),
            connection,
            notifier=StreamlitNotifier(),
            user_provider=get_current_user_id,
        )
        coordinator.attach()
        coordinator.fetch_orders()
        st.session_state.jsolar_coordinator = coordinator
    return st.session_state.jsolar_coordinator


# ============================================================================
# SIGN IN
# ============================================================================

def render_sign_in(client) -> None:
    st.title("☀️ JSolar Field Service")
    st.caption("Sign in to see your service orders.")

    with st.form("sign_in"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary")

    if submitted:
        try:
            sign_in(client, email, password)
        except AuthenticationError as e:
            handle_error(e, user_message="Invalid email or password")
        else:
            st.rerun()


# ============================================================================
# ORDERS
# ============================================================================

STATUS_TABS = [
    ("Pending", ServiceOrderStatus.PENDING),
    ("In progress", ServiceOrderStatus.IN_PROGRESS),
    ("Completed", ServiceOrderStatus.COMPLETED),
]


def render_start_form(coordinator: SyncCoordinator, order: ServiceOrder) -> None:
    with st.form(key=f"start_{order.id}"):
        vehicle_id = st.text_input("Vehicle", value=order.vehicle_id or "")
        mileage = st.number_input("Start mileage", min_value=0.0, step=1.0)
        auxiliary_id = st.text_input("Auxiliary (optional)", value=order.auxiliary_id or "")
        notes = st.text_area("Notes", key=f"start_notes_{order.id}")
        submitted = st.form_submit_button("▶ Start", type="primary")

    if submitted:
        if not vehicle_id.strip():
            st.warning("Select a vehicle before starting.")
            return
        start_data = StartOrderData(
            vehicle_id=vehicle_id.strip(),
            mileage=mileage,
            auxiliary_id=auxiliary_id.strip() or None,
        )
        if coordinator.start_order(order.id, notes or None, start_data):
            st.rerun()


def render_finish_form(coordinator: SyncCoordinator, order: ServiceOrder) -> None:
    with st.form(key=f"finish_{order.id}"):
        notes = st.text_area("Notes", key=f"finish_notes_{order.id}")
        submitted = st.form_submit_button("✓ Finish", type="primary")

    if submitted and coordinator.finish_order(order.id, notes or None):
        st.rerun()


def render_order(coordinator: SyncCoordinator, order: ServiceOrder) -> None:
    title = f"{order.order_number} · {order.client_name}"
    with st.expander(title):
        st.markdown(f"**Address:** {order.client_address or '—'}")
        st.markdown(f"**Service:** {order.service_type or '—'}")
        st.markdown(f"**Scheduled:** {order.scheduled_date or '—'} {order.scheduled_time or ''}")
        if order.notes:
            st.caption(order.notes)

        if order.status == ServiceOrderStatus.PENDING:
            render_start_form(coordinator, order)
        elif order.status == ServiceOrderStatus.IN_PROGRESS:
            render_finish_form(coordinator, order)


@error_boundary(error_message="Could not render the order list")
def render_orders(coordinator: SyncCoordinator) -> None:
    today = coordinator.get_today_orders()
    labels = [f"Today ({len(today)})"] + [
        f"{label} ({len(coordinator.get_orders_by_status(status))})"
        for label, status in STATUS_TABS
    ] + ["All"]
    tabs = st.tabs(labels)

    with tabs[0]:
        if not today:
            st.info("No orders scheduled for today.")
        for order in today:
            render_order(coordinator, order)

    for tab, (_, status) in zip(tabs[1:-1], STATUS_TABS):
        with tab:
            orders = coordinator.get_orders_by_status(status)
            if not orders:
                st.info("No orders here.")
            for order in orders:
                render_order(coordinator, order)

    with tabs[-1]:
        st.dataframe(orders_to_dataframe(coordinator.orders), use_container_width=True)


def render_sidebar(coordinator: SyncCoordinator, client) -> None:
    with st.sidebar:
        email: Optional[str] = get_current_email()
        if email:
            st.markdown(f"Signed in as **{email}**")

        if st.button("🔄 Refresh", use_container_width=True):
            coordinator.refetch()
            st.rerun()

        if client is not None and st.button("Sign out", use_container_width=True):
            sign_out(client)
            for key in ("jsolar_coordinator", "jsolar_connection"):
                st.session_state.pop(key, None)
            st.rerun()


# ============================================================================
# MAIN
# ============================================================================

def main() -> None:
    client = get_supabase_client(settings)

    if client is None:
        st.warning("Supabase is not configured. Showing cached orders only.")
    elif not check_authentication():
        render_sign_in(client)
        return

    connection = get_connection(settings)

    try:
        coordinator = get_coordinator(settings, client, connection)
    except LocalCacheError as e:
        handle_error(e)
        st.stop()

    refresh_connection(connection)
    coordinator.handle_reconnection()

    st.title("☀️ Service Orders")
    render_offline_indicator(coordinator)
    st.divider()

    render_orders(coordinator)
    render_sidebar(coordinator, client)


try:
    main()
except JSolarError as e:
    handle_error(e)
