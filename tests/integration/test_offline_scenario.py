# =============================================================================
# tests/integration/test_offline_scenario.py
# End-to-end offline field work against a real SQLite cache
# =============================================================================

import pytest

from jsolar_core.data.models import ServiceOrderStatus, StartOrderData
from jsolar_core.offline.connection_manager import ConnectionManager
from jsolar_core.offline.local_database import LocalCacheStore
from jsolar_core.offline.pending_actions import ActionKind
from jsolar_core.offline.sync_coordinator import SyncCoordinator

from conftest import FakeOrderService, RecordingNotifier, TECHNICIAN_ID, make_order


pytestmark = pytest.mark.integration


@pytest.fixture
def field_day(tmp_path):
    """One pending order cached from a previous session, device now offline"""
    order = make_order("OS-2024-001")
    service = FakeOrderService([order])

    cache = LocalCacheStore(tmp_path / "jsolar_offline.db")
    cache.initialize()
    cache.cache_orders([order])

    connection = ConnectionManager(supabase_url="")
    connection.force_offline()

    notifier = RecordingNotifier()
    coordinator = SyncCoordinator(
        service, cache, connection, notifier=notifier, user_provider=lambda: TECHNICIAN_ID
    )
    coordinator.attach()
    coordinator.fetch_orders()

    yield coordinator, service, cache, connection, notifier

    coordinator.detach()
    cache.close()


class TestOfflineFieldDay:
    """Start an order offline, reconnect, and reconcile"""

    def test_start_offline_then_sync_on_reconnect(self, field_day):
        coordinator, service, cache, connection, notifier = field_day

        assert service.fetch_calls == 0
        assert [o.id for o in coordinator.orders] == ["OS-2024-001"]

        # Offline start
        result = coordinator.start_order(
            "OS-2024-001", "started in field", StartOrderData(vehicle_id="V1", mileage=1000)
        )

        assert result
        assert result.queued
        assert cache.get_cached_order("OS-2024-001").status == ServiceOrderStatus.IN_PROGRESS

        actions = cache.get_pending_actions()
        assert [(a.kind, a.order_id) for a in actions] == [(ActionKind.START, "OS-2024-001")]
        assert service.updates == []

        # Connection returns
        connection.force_online()

        assert len(service.updates) == 1
        assert service.updates[0] == (
            "OS-2024-001",
            {"status": "inProgress", "vehicle_id": "V1", "start_mileage": 1000},
        )
        assert len(service.audits) == 1
        assert service.audits[0].action == "started"
        assert service.audits[0].notes == "started in field"
        assert service.audits[0].user_id == TECHNICIAN_ID

        assert cache.get_pending_actions_count() == 0
        assert coordinator.pending_count == 0
        assert service.fetch_calls == 1
        assert not connection.was_offline

        # Reconciled view matches the backend
        assert service.orders["OS-2024-001"].status == ServiceOrderStatus.IN_PROGRESS
        assert coordinator.get_order("OS-2024-001").status == ServiceOrderStatus.IN_PROGRESS
        assert ("success", "1 action(s) synced!") in notifier.messages

    def test_full_lifecycle_offline(self, field_day):
        """Start and finish offline, both replayed in order"""
        coordinator, service, cache, connection, _ = field_day

        coordinator.start_order("OS-2024-001", start_data=StartOrderData(vehicle_id="V1", mileage=10))
        coordinator.finish_order("OS-2024-001", "inverter replaced")
        assert coordinator.pending_count == 2

        connection.force_online()

        assert [data["status"] for _, data in service.updates] == ["inProgress", "completed"]
        assert [a.action for a in service.audits] == ["started", "finished"]
        assert service.orders["OS-2024-001"].status == ServiceOrderStatus.COMPLETED
        assert cache.get_pending_actions_count() == 0

    def test_queue_survives_restart(self, field_day, tmp_path):
        """Queued work persists when the app restarts before reconnecting"""
        coordinator, service, cache, _, _ = field_day
        coordinator.start_order("OS-2024-001")
        coordinator.detach()
        cache.close()

        reopened = LocalCacheStore(tmp_path / "jsolar_offline.db")
        reopened.initialize()
        connection = ConnectionManager(supabase_url="")
        connection.force_offline()
        restarted = SyncCoordinator(
            service, reopened, connection, user_provider=lambda: TECHNICIAN_ID
        )
        restarted.attach()
        restarted.fetch_orders()

        assert restarted.pending_count == 1
        assert restarted.get_order("OS-2024-001").status == ServiceOrderStatus.IN_PROGRESS

        connection.force_online()

        assert service.updated_order_ids == ["OS-2024-001"]
        assert reopened.get_pending_actions_count() == 0
        restarted.detach()
        reopened.close()

    def test_failed_replay_waits_for_next_reconnection(self, field_day):
        coordinator, service, cache, connection, _ = field_day
        coordinator.start_order("OS-2024-001")
        service.fail_all = True

        connection.force_online()

        assert cache.get_pending_actions_count() == 1
        assert not connection.was_offline

        service.fail_all = False
        connection.force_offline()
        connection.force_online()

        assert cache.get_pending_actions_count() == 0
        assert service.updated_order_ids == ["OS-2024-001"]
