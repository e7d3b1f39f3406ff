# =============================================================================
# tests/unit/test_local_database.py
# Unit Tests for LocalCacheStore
# =============================================================================

import sqlite3
import pytest
from datetime import datetime

from jsolar_core.data.models import ServiceOrderStatus
from jsolar_core.errors import LocalCacheError
from jsolar_core.offline.local_database import LocalCacheStore
from jsolar_core.offline.pending_actions import (
    ActionKind,
    FinishPayload,
    StartPayload,
    UpdatePayload,
)

from conftest import make_order


class TestOrderSnapshot:
    """Test cached order snapshot"""

    def test_empty_cache_returns_empty_list(self, local_cache):
        """No snapshot yet means no orders and no sync time"""
        assert local_cache.get_cached_orders() == []
        assert local_cache.get_last_sync_time() is None

    def test_cache_orders_replaces_snapshot(self, local_cache, sample_orders):
        """cache_orders is a wholesale replace, not a merge"""
        local_cache.cache_orders(sample_orders)
        local_cache.cache_orders([make_order("OS-2024-999")])

        cached = local_cache.get_cached_orders()
        assert [o.id for o in cached] == ["OS-2024-999"]

    def test_cache_orders_stamps_last_sync(self, local_cache, sample_orders):
        """Caching a snapshot records the sync time"""
        before = datetime.now()
        local_cache.cache_orders(sample_orders)

        last_sync = local_cache.get_last_sync_time()
        assert last_sync is not None
        assert last_sync >= before.replace(microsecond=0)

    def test_cached_orders_newest_first(self, local_cache, sample_orders):
        """Snapshot is returned ordered by created_at descending"""
        local_cache.cache_orders(list(reversed(sample_orders)))

        ids = [o.id for o in local_cache.get_cached_orders()]
        assert ids == ["OS-2024-001", "OS-2024-002", "OS-2024-003", "OS-2024-004"]

    def test_cached_order_keeps_fields(self, local_cache, sample_orders):
        """Orders survive the JSON round trip with typed status"""
        local_cache.cache_orders(sample_orders)

        order = local_cache.get_cached_order("OS-2024-002")
        assert order.status == ServiceOrderStatus.IN_PROGRESS
        assert order.vehicle_id == "V2"
        assert order.start_mileage == 500.0

    def test_update_cached_order_upserts(self, local_cache, sample_orders):
        """update_cached_order replaces one row and inserts unknown ids"""
        local_cache.cache_orders(sample_orders)

        started = sample_orders[0].apply({"status": "inProgress"})
        local_cache.update_cached_order(started)
        local_cache.update_cached_order(make_order("OS-2024-005", created_at="2024-03-05T08:00:00+00:00"))

        assert local_cache.get_cached_order("OS-2024-001").status == ServiceOrderStatus.IN_PROGRESS
        assert len(local_cache.get_cached_orders()) == 5

    def test_snapshot_survives_reopen(self, tmp_path, sample_orders):
        """Data persists across store instances on the same file"""
        db_path = tmp_path / "cache.db"
        first = LocalCacheStore(db_path)
        first.initialize()
        first.cache_orders(sample_orders)
        first.add_pending_action(ActionKind.FINISH, "OS-2024-002")
        first.close()

        second = LocalCacheStore(db_path)
        second.initialize()
        assert len(second.get_cached_orders()) == 4
        assert second.get_pending_actions_count() == 1
        second.close()


class TestPendingActionQueue:
    """Test pending action queue"""

    def test_add_assigns_id_and_timestamp(self, local_cache):
        """Each queued action gets a fresh id and creation time"""
        first = local_cache.add_pending_action(ActionKind.FINISH, "OS-2024-002")
        second = local_cache.add_pending_action(ActionKind.FINISH, "OS-2024-002")

        assert first.id != second.id
        assert isinstance(first.created_at, datetime)

    def test_queue_is_fifo(self, local_cache):
        """Actions come back in insertion order"""
        ids = [
            local_cache.add_pending_action(ActionKind.FINISH, order_id).id
            for order_id in ["C", "A", "B"]
        ]

        actions = local_cache.get_pending_actions()
        assert [a.id for a in actions] == ids
        assert [a.order_id for a in actions] == ["C", "A", "B"]

    def test_payloads_round_trip_by_kind(self, local_cache):
        """Stored payloads come back as the matching variant"""
        local_cache.add_pending_action(
            ActionKind.START, "A", StartPayload(vehicle_id="V1", mileage=1000.0), notes="on site"
        )
        local_cache.add_pending_action(ActionKind.FINISH, "B")
        local_cache.add_pending_action(ActionKind.UPDATE, "C", UpdatePayload(fields={"notes": "gate code 12"}))

        start, finish, update = local_cache.get_pending_actions()

        assert start.payload == StartPayload(vehicle_id="V1", mileage=1000.0)
        assert start.notes == "on site"
        assert isinstance(finish.payload, FinishPayload)
        assert update.payload.fields == {"notes": "gate code 12"}

    def test_mismatched_payload_rejected(self, local_cache):
        """A payload for another kind is a programming error"""
        with pytest.raises(ValueError):
            local_cache.add_pending_action(ActionKind.FINISH, "A", StartPayload())

    def test_remove_is_idempotent(self, local_cache):
        """Removing twice, or an unknown id, is a no-op"""
        action = local_cache.add_pending_action(ActionKind.FINISH, "A")

        local_cache.remove_pending_action(action.id)
        local_cache.remove_pending_action(action.id)
        local_cache.remove_pending_action("does-not-exist")

        assert local_cache.get_pending_actions_count() == 0

    def test_count_tracks_queue(self, local_cache):
        for order_id in ["A", "B", "C"]:
            local_cache.add_pending_action(ActionKind.FINISH, order_id)

        assert local_cache.get_pending_actions_count() == 3


class TestBestEffortPersistence:
    """Storage failures are swallowed"""

    def test_failed_write_keeps_previous_snapshot(self, local_cache, sample_orders, monkeypatch):
        """A failing cache_orders leaves the old snapshot intact"""
        local_cache.cache_orders(sample_orders)

        def broken_params(order):
            raise sqlite3.OperationalError("disk full")

        monkeypatch.setattr(local_cache, "_order_params", broken_params)
        local_cache.cache_orders([make_order("OS-2024-999")])
        monkeypatch.undo()

        assert len(local_cache.get_cached_orders()) == 4

    def test_add_pending_action_failure_returns_none(self, local_cache):
        """Queueing into a closed store does not raise"""
        local_cache.close()
        local_cache._local.connection = sqlite3.connect(":memory:")

        assert local_cache.add_pending_action(ActionKind.FINISH, "A") is None
        assert local_cache.get_pending_actions() == []

    def test_unreadable_action_skipped(self, local_cache):
        """One corrupt queue row does not hide the rest"""
        bad = local_cache.add_pending_action(ActionKind.FINISH, "A")
        good = local_cache.add_pending_action(ActionKind.FINISH, "B")
        with local_cache.transaction() as conn:
            conn.execute("UPDATE pending_actions SET payload_json = ? WHERE id = ?", ["{bad", bad.id])

        assert [a.id for a in local_cache.get_pending_actions()] == [good.id]
        assert local_cache.get_pending_actions_count() == 2

    def test_unreadable_cached_order_skipped(self, local_cache, sample_orders):
        local_cache.cache_orders(sample_orders)
        with local_cache.transaction() as conn:
            conn.execute(
                "UPDATE service_orders SET data_json = ? WHERE id = ?",
                ['{"id": "OS-2024-001", "status": "scheduled"}', "OS-2024-001"],
            )

        assert len(local_cache.get_cached_orders()) == 3
        assert local_cache.get_cached_order("OS-2024-001") is None

    def test_initialize_failure_raises_local_cache_error(self, tmp_path):
        """A database path that cannot be created is fatal"""
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x")

        store = LocalCacheStore(blocker / "cache.db")
        with pytest.raises(LocalCacheError):
            store.initialize()

    def test_clear_drops_everything(self, local_cache, sample_orders):
        local_cache.cache_orders(sample_orders)
        local_cache.add_pending_action(ActionKind.FINISH, "A")

        local_cache.clear()

        assert local_cache.get_cached_orders() == []
        assert local_cache.get_pending_actions_count() == 0
        assert local_cache.get_last_sync_time() is None
