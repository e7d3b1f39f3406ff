# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import threading
import pytest
from typing import Dict, List, Optional
from unittest.mock import MagicMock

from jsolar_core.data.models import ServiceOrder, ServiceOrderStatus
from jsolar_core.errors import RemoteServiceError
from jsolar_core.offline.connection_manager import ConnectionManager
from jsolar_core.offline.local_database import LocalCacheStore
from jsolar_core.offline.sync_coordinator import SyncCoordinator


TODAY = "2024-03-15"
TECHNICIAN_ID = "tech-1"


# =============================================================================
# TEST DOUBLES
# =============================================================================

class FakeOrderService:
    """
    In-memory stand-in for ServiceOrderRepository.

    Records every call; individual orders can be made to fail, and a
    per-order Event can hold an update in flight.
    """

    def __init__(self, orders: Optional[List[ServiceOrder]] = None):
        self.orders: Dict[str, ServiceOrder] = {o.id: o for o in orders or []}
        self.fail_order_ids = set()
        self.fail_all = False
        self.fail_fetch = False
        self.fail_audit = False
        self.block_on: Dict[str, threading.Event] = {}
        self.entered = threading.Event()

        self.fetch_calls = 0
        self.updates = []
        self.audits = []

    def fetch_orders(self) -> List[ServiceOrder]:
        self.fetch_calls += 1
        if self.fail_fetch or self.fail_all:
            raise RemoteServiceError("fetch failed", table="service_orders", operation="select")
        return sorted(self.orders.values(), key=lambda o: o.created_at or "", reverse=True)

    def update_order(self, order_id: str, data: Dict) -> Optional[ServiceOrder]:
        if order_id in self.block_on:
            self.entered.set()
            self.block_on[order_id].wait(timeout=5)

        if self.fail_all or order_id in self.fail_order_ids:
            raise RemoteServiceError(f"update {order_id} failed", table="service_orders", operation="update")

        self.updates.append((order_id, dict(data)))
        if order_id not in self.orders:
            return None
        self.orders[order_id] = self.orders[order_id].apply(data)
        return self.orders[order_id]

    def insert_audit(self, entry) -> None:
        if self.fail_audit or self.fail_all:
            raise RemoteServiceError("audit failed", table="service_order_audit", operation="insert")
        self.audits.append(entry)

    @property
    def updated_order_ids(self) -> List[str]:
        return [order_id for order_id, _ in self.updates]


class RecordingNotifier:
    """Collects (level, message) pairs."""

    def __init__(self):
        self.messages = []

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def warning(self, message: str) -> None:
        self.messages.append(("warning", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def levels(self) -> List[str]:
        return [level for level, _ in self.messages]


class SessionState(dict):
    """dict with attribute access, like st.session_state."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError as e:
            raise AttributeError(name) from e

    def __setattr__(self, name, value):
        self[name] = value

    def __delattr__(self, name):
        del self[name]


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

def make_order(order_id: str, status=ServiceOrderStatus.PENDING, **kwargs) -> ServiceOrder:
    defaults = dict(
        order_number=order_id,
        client_name=f"Client {order_id}",
        client_address="Rua do Sol, 100",
        service_type="installation",
        scheduled_date=TODAY,
        scheduled_time="09:00",
        team_lead_id="lead-1",
        created_by="admin-1",
        created_at="2024-03-01T08:00:00+00:00",
    )
    defaults.update(kwargs)
    return ServiceOrder(id=order_id, status=status, **defaults)


@pytest.fixture
def sample_orders() -> List[ServiceOrder]:
    """Four orders covering pending, inProgress and completed"""
    return [
        make_order("OS-2024-001", created_at="2024-03-04T08:00:00+00:00"),
        make_order("OS-2024-002", ServiceOrderStatus.IN_PROGRESS, vehicle_id="V2",
                   start_mileage=500.0, created_at="2024-03-03T08:00:00+00:00"),
        make_order("OS-2024-003", ServiceOrderStatus.COMPLETED,
                   scheduled_date="2024-03-10", created_at="2024-03-02T08:00:00+00:00"),
        make_order("OS-2024-004", auxiliary_id="aux-1",
                   scheduled_date="2024-03-16", created_at="2024-03-01T08:00:00+00:00"),
    ]


# =============================================================================
# COMPONENT FIXTURES
# =============================================================================

@pytest.fixture
def local_cache(tmp_path):
    """LocalCacheStore on a temp file"""
    cache = LocalCacheStore(tmp_path / "jsolar_offline.db")
    cache.initialize()
    yield cache
    cache.close()


@pytest.fixture
def connection():
    """ConnectionManager without network probes, starting online"""
    manager = ConnectionManager(supabase_url="")
    manager.force_online()
    return manager


@pytest.fixture
def order_service(sample_orders):
    return FakeOrderService(sample_orders)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def coordinator(order_service, local_cache, connection, notifier):
    """Attached coordinator with orders loaded while online"""
    coord = SyncCoordinator(
        order_service,
        local_cache,
        connection,
        notifier=notifier,
        user_provider=lambda: TECHNICIAN_ID,
    )
    coord.attach()
    coord.fetch_orders()
    order_service.fetch_calls = 0
    notifier.messages.clear()
    yield coord
    coord.detach()


# =============================================================================
# MOCK FIXTURES
# =============================================================================

STREAMLIT_MODULES = [
    "jsolar_core.auth.authentication",
    "jsolar_core.config",
    "jsolar_core.errors.handlers",
    "jsolar_core.ui.notifications",
    "jsolar_core.ui.offline_indicator",
]


@pytest.fixture
def mock_streamlit(monkeypatch):
    """Mock Streamlit in every module that renders or reads session state"""
    import importlib

    mock_st = MagicMock()
    mock_st.session_state = SessionState()
    mock_st.secrets = {}

    for name in STREAMLIT_MODULES:
        module = importlib.import_module(name)
        monkeypatch.setattr(module, "st", mock_st)

    yield mock_st


@pytest.fixture
def mock_supabase():
    """Mock Supabase client"""
    mock_client = MagicMock()
    orders_query = mock_client.table.return_value
    orders_query.select.return_value.order.return_value.execute.return_value.data = []
    orders_query.update.return_value.eq.return_value.execute.return_value.data = []
    orders_query.insert.return_value.execute.return_value = MagicMock()
    return mock_client


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def status_of(orders: List[ServiceOrder], order_id: str) -> ServiceOrderStatus:
    """Status of one order in a list"""
    return next(o.status for o in orders if o.id == order_id)
