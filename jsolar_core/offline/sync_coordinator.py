# =============================================================================
# jsolar_core/offline/sync_coordinator.py
# Offline-Aware Service Order Synchronization
# =============================================================================
"""
SyncCoordinator - decides, for every order mutation, whether to write through
to Supabase or queue it locally, and drains the queue on reconnection.

Flow for a mutation:
    1. check the precondition against the last known order state
    2. apply the change optimistically (memory + local cache)
    3. online  -> write through; on failure roll back and queue
       offline -> queue
    4. queued actions are replayed FIFO the next time the connection returns

One coordinator is built per user session:

    coordinator = SyncCoordinator(repository, cache, connection,
                                  notifier=StreamlitNotifier(),
                                  user_provider=get_current_user_id)
    coordinator.attach()
    coordinator.fetch_orders()
    coordinator.start_order(order_id, "on site", StartOrderData("V1", 1000))
"""

from __future__ import annotations
import json
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

from jsolar_core.data.models import (
    AuditEntry,
    ServiceOrder,
    ServiceOrderStatus,
    StartOrderData,
)
from jsolar_core.errors import (
    OrderBusyError,
    OrderTransitionError,
    OrderValidationError,
    RemoteServiceError,
)
from jsolar_core.offline.connection_manager import ConnectionManager, ConnectionState
from jsolar_core.offline.local_database import LocalCacheStore
from jsolar_core.offline.pending_actions import (
    ActionPayload,
    FinishPayload,
    PendingAction,
    StartPayload,
    UpdatePayload,
)
from jsolar_core.services.base_service import BaseService, ServiceResult
from jsolar_core.ui.notifications import LoggingNotifier, Notifier

AuditBuilder = Callable[[ServiceOrder, ServiceOrder], Optional[AuditEntry]]


@dataclass
class SyncState:
    """Session-scoped sync state (not persisted)."""
    is_syncing: bool = False
    loading: bool = False
    pending_count: int = 0
    last_sync: Optional[datetime] = None
    last_success_count: int = 0
    last_failure_count: int = 0


class SyncCoordinator(BaseService):
    """
    Owner of the in-memory order list and the single authority over
    write-through vs. queueing for service-order mutations.
    """

    def __init__(
        self,
        repository,
        cache: LocalCacheStore,
        connection: ConnectionManager,
        notifier: Optional[Notifier] = None,
        user_provider: Optional[Callable[[], Optional[str]]] = None,
    ):
        """
        Args:
            repository: Remote order service (ServiceOrderRepository or
                compatible); None runs cache-only
            cache: Local cache store
            connection: Connectivity monitor
            notifier: Sink for user-facing messages
            user_provider: Returns the authenticated user id, or None
        """
        super().__init__()
        self._repository = repository
        self._cache = cache
        self._connection = connection
        self._notifier = notifier or LoggingNotifier()
        self._user_provider = user_provider or (lambda: None)

        self._state = SyncState()
        self._orders: List[ServiceOrder] = []
        self._orders_lock = threading.RLock()
        self._in_flight: Set[str] = set()
        self._in_flight_lock = threading.Lock()
        self._attached = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def attach(self) -> None:
        """Subscribe to connection changes so reconnection drains the queue."""
        if not self._attached:
            self._connection.register_callback(self._on_connection_change)
            self._attached = True

    def detach(self) -> None:
        """Stop listening to connection changes."""
        if self._attached:
            self._connection.unregister_callback(self._on_connection_change)
            self._attached = False

    def _on_connection_change(self, state: ConnectionState) -> None:
        self.handle_reconnection()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def orders(self) -> List[ServiceOrder]:
        with self._orders_lock:
            return list(self._orders)

    @property
    def is_online(self) -> bool:
        return self._repository is not None and self._connection.is_online

    @property
    def is_syncing(self) -> bool:
        return self._state.is_syncing

    @property
    def pending_count(self) -> int:
        return self._state.pending_count

    @property
    def last_sync(self) -> Optional[datetime]:
        return self._state.last_sync

    def get_order(self, order_id: str) -> Optional[ServiceOrder]:
        with self._orders_lock:
            return next((o for o in self._orders if o.id == order_id), None)

    def get_orders_by_status(self, status: ServiceOrderStatus) -> List[ServiceOrder]:
        status = ServiceOrderStatus(status)
        return [o for o in self.orders if o.status == status]

    def get_today_orders(self, today: Optional[date] = None) -> List[ServiceOrder]:
        day = (today or datetime.now(timezone.utc).date()).isoformat()
        return [o for o in self.orders if o.scheduled_date == day]

    def get_status_display(self) -> Dict[str, Any]:
        """Get sync status for UI display."""
        return {
            "is_online": self.is_online,
            "is_syncing": self._state.is_syncing,
            "pending_count": self._state.pending_count,
            "last_sync": self._state.last_sync.isoformat() if self._state.last_sync else None,
            "loading": self._state.loading,
        }

    def _refresh_pending_count(self) -> int:
        self._state.pending_count = self._cache.get_pending_actions_count()
        return self._state.pending_count

    def _store_order(self, order: ServiceOrder) -> None:
        """Replace an order in memory and in the local cache."""
        with self._orders_lock:
            self._orders = [order if o.id == order.id else o for o in self._orders]
        self._cache.update_cached_order(order)

    # =========================================================================
    # READ PATH
    # =========================================================================

    def fetch_orders(self) -> List[ServiceOrder]:
        """
        Load orders from Supabase when online (refreshing the cache),
        otherwise from the local cache.

        Returns:
            The order list now held in memory
        """
        self._state.loading = True
        try:
            if self.is_online:
                try:
                    with self.log_operation("Fetching service orders"):
                        orders = self._repository.fetch_orders()
                except RemoteServiceError:
                    orders = self._cache.get_cached_orders()
                    self._notifier.error("Failed to load orders. Using cached data.")
                else:
                    self._cache.cache_orders(orders)
                    self._state.last_sync = datetime.now()
            else:
                orders = self._cache.get_cached_orders()
                sync_time = self._cache.get_last_sync_time()
                if sync_time:
                    self._state.last_sync = sync_time

            with self._orders_lock:
                self._orders = list(orders)

            self._refresh_pending_count()
        finally:
            self._state.loading = False

        return list(orders)

    refetch = fetch_orders

    # =========================================================================
    # WRITE PATH
    # =========================================================================

    def start_order(
        self,
        order_id: str,
        notes: Optional[str] = None,
        start_data: Optional[StartOrderData] = None,
    ) -> ServiceResult:
        """
        Move a pending order to inProgress.

        Returns:
            Truthy result if accepted (written or queued), falsy if rejected
        """
        if start_data:
            payload = StartPayload(
                vehicle_id=start_data.vehicle_id,
                mileage=start_data.mileage,
                auxiliary_id=start_data.auxiliary_id,
            )
        else:
            payload = StartPayload()

        return self._submit(
            order_id,
            payload,
            notes,
            expected_status=ServiceOrderStatus.PENDING,
            rejection="This order cannot be started",
            success_message="Service order started!",
        )

    def finish_order(self, order_id: str, notes: Optional[str] = None) -> ServiceResult:
        """Move an inProgress order to completed."""
        return self._submit(
            order_id,
            FinishPayload(),
            notes,
            expected_status=ServiceOrderStatus.IN_PROGRESS,
            rejection="This order cannot be finished",
            success_message="Service order finished!",
        )

    def update_order(
        self,
        order_id: str,
        fields: Dict[str, Any],
        notes: Optional[str] = None,
    ) -> ServiceResult:
        """
        Apply a partial edit to an order.

        An audit entry is written on a live write only when the status changes.
        """
        valid_names = set(ServiceOrder.field_names()) - set(ServiceOrder.IMMUTABLE_FIELDS)
        invalid = sorted(name for name in fields if name not in valid_names)

        fields = dict(fields)
        if "status" in fields and "status" not in invalid:
            try:
                fields["status"] = ServiceOrderStatus(fields["status"]).value
            except ValueError:
                invalid.append("status")

        if invalid or not fields:
            error = OrderValidationError(
                "Cannot update fields: " + (", ".join(invalid) or "(none given)"),
                order_id=order_id,
                fields=invalid,
            )
            self._notifier.error(error.message)
            return ServiceResult.from_exception(error)

        def status_audit(before: ServiceOrder, after: ServiceOrder) -> Optional[AuditEntry]:
            if before.status == after.status:
                return None
            return AuditEntry(
                service_order_id=order_id,
                action="updated",
                old_status=before.status,
                new_status=after.status,
                notes=notes,
            )

        return self._submit(
            order_id,
            UpdatePayload(fields=fields),
            notes,
            rejection="This order cannot be updated",
            success_message="Service order updated!",
            audit_builder=status_audit,
        )

    def reassign_order(
        self,
        order_id: str,
        team_lead_id: Optional[str] = None,
        auxiliary_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ServiceResult:
        """Change the team lead and/or auxiliary; None keeps the current one."""
        current = self.get_order(order_id)
        fields = {
            "team_lead_id": team_lead_id if team_lead_id is not None else (current.team_lead_id if current else None),
            "auxiliary_id": auxiliary_id if auxiliary_id is not None else (current.auxiliary_id if current else None),
        }

        def reassign_audit(before: ServiceOrder, after: ServiceOrder) -> AuditEntry:
            note = {
                "type": "reassign",
                "prev": {"team_lead_id": before.team_lead_id, "auxiliary_id": before.auxiliary_id},
                "next": {"team_lead_id": after.team_lead_id, "auxiliary_id": after.auxiliary_id},
                "reason": notes,
            }
            return AuditEntry(
                service_order_id=order_id,
                action="reassigned",
                notes=json.dumps(note),
            )

        return self._submit(
            order_id,
            UpdatePayload(fields=fields),
            notes,
            rejection="This order cannot be reassigned",
            success_message="Service order reassigned!",
            audit_builder=reassign_audit,
        )

    @contextmanager
    def _claim(self, order_id: str) -> Iterator[bool]:
        """Mark an order as having a mutation in flight; yields False if already marked."""
        with self._in_flight_lock:
            claimed = order_id not in self._in_flight
            if claimed:
                self._in_flight.add(order_id)
        try:
            yield claimed
        finally:
            if claimed:
                with self._in_flight_lock:
                    self._in_flight.discard(order_id)

    def _submit(
        self,
        order_id: str,
        payload: ActionPayload,
        notes: Optional[str],
        rejection: str,
        success_message: str,
        expected_status: Optional[ServiceOrderStatus] = None,
        audit_builder: Optional[AuditBuilder] = None,
    ) -> ServiceResult:
        with self._claim(order_id) as claimed:
            if not claimed:
                error = OrderBusyError(
                    "This order is still being updated. Try again in a moment.",
                    order_id=order_id,
                )
                self.logger.warning(f"Rejected concurrent {payload.kind.value} on order {order_id}")
                self._notifier.warning(error.message)
                return ServiceResult.from_exception(error)

            current = self.get_order(order_id)
            if current is None or (expected_status is not None and current.status != expected_status):
                error = OrderTransitionError(
                    rejection,
                    order_id=order_id,
                    expected=expected_status.value if expected_status else None,
                    actual=current.status.value if current else None,
                )
                self.logger.info(str(error))
                self._notifier.error(rejection)
                return ServiceResult.from_exception(error)

            update = payload.to_update()
            updated = current.apply(update)
            self._store_order(updated)

            if not self.is_online:
                self._enqueue(order_id, payload, notes)
                self._notifier.info("Saved offline. Will sync automatically.")
                return ServiceResult.ok(updated, metadata={"queued": True})

            try:
                confirmed = self._repository.update_order(order_id, update)
            except RemoteServiceError as e:
                self.logger.warning(f"Write-through failed for order {order_id}, queueing: {e}")
                self._store_order(current)
                self._enqueue(order_id, payload, notes)
                self._notifier.warning("Saved offline. Will sync when the connection returns.")
                return ServiceResult.ok(current, metadata={"queued": True})

            if confirmed is not None:
                self._store_order(confirmed)
                updated = confirmed

            if audit_builder is not None:
                audit = audit_builder(current, updated)
            else:
                audit = self._transition_audit(order_id, payload, notes)
            if audit is not None:
                self._record_audit(audit)

            self._notifier.success(success_message)
            return ServiceResult.ok(updated, metadata={"queued": False})

    def _enqueue(self, order_id: str, payload: ActionPayload, notes: Optional[str]) -> None:
        self._cache.add_pending_action(payload.kind, order_id, payload, notes)
        self._refresh_pending_count()

    @staticmethod
    def _transition_audit(
        order_id: str,
        payload: ActionPayload,
        notes: Optional[str],
    ) -> Optional[AuditEntry]:
        if payload.transition is None:
            return None
        action, old_status, new_status = payload.transition
        return AuditEntry(
            service_order_id=order_id,
            action=action,
            old_status=old_status,
            new_status=new_status,
            notes=notes,
        )

    def _record_audit(self, entry: AuditEntry) -> None:
        """Append an audit row; skipped without a user, never fails the caller."""
        user_id = self._user_provider()
        if not user_id:
            self.logger.debug(f"No authenticated user; audit '{entry.action}' skipped")
            return

        entry.user_id = user_id
        try:
            self._repository.insert_audit(entry)
        except RemoteServiceError as e:
            self.logger.warning(f"Audit '{entry.action}' for order {entry.service_order_id} not recorded: {e}")

    # =========================================================================
    # DRAIN PATH
    # =========================================================================

    def sync_pending_actions(self) -> bool:
        """
        Replay queued actions in FIFO order, then reload from Supabase.

        Returns:
            True if every action replayed; False if any failed, or if
            offline / no authenticated user
        """
        if not self.is_online or not self._user_provider():
            self.logger.debug("Cannot sync: offline or no authenticated user")
            return False

        self._state.is_syncing = True
        try:
            queued = self._cache.get_pending_actions_count()
            actions = self._cache.get_pending_actions()
            if not actions and not queued:
                return True

            success_count = 0
            # rows the cache could not decode stay queued and count as failed
            failure_count = max(queued - len(actions), 0)

            with self.log_operation(f"Syncing {len(actions)} pending actions"):
                for action in actions:
                    try:
                        self._replay(action)
                    except RemoteServiceError as e:
                        self.logger.error(
                            f"Error syncing {action.kind.value} action {action.id} "
                            f"for order {action.order_id}: {e}"
                        )
                        failure_count += 1
                        continue

                    self._cache.remove_pending_action(action.id)
                    success_count += 1

            self._state.last_success_count = success_count
            self._state.last_failure_count = failure_count
            self._refresh_pending_count()
            self.logger.info(f"Sync complete: {success_count} success, {failure_count} failed")
        finally:
            self._state.is_syncing = False

        if success_count > 0:
            self._notifier.success(f"{success_count} action(s) synced!")
        if failure_count > 0:
            self._notifier.error(f"{failure_count} action(s) failed to sync.")

        self.fetch_orders()

        return failure_count == 0

    def _replay(self, action: PendingAction) -> None:
        """Write one queued action through; raises RemoteServiceError on failure."""
        self._repository.update_order(action.order_id, action.payload.to_update())

        audit = self._transition_audit(action.order_id, action.payload, action.notes)
        if audit is not None:
            self._record_audit(audit)

    # =========================================================================
    # RECONNECTION
    # =========================================================================

    def handle_reconnection(self) -> bool:
        """
        Drain the queue once after an offline -> online transition.

        Safe to call repeatedly (e.g. on every UI rerun): it only acts while
        the connection's was_offline flag is set, and clears it afterwards.

        Returns:
            True if a reconnection was handled
        """
        if not (self._connection.was_offline and self._connection.is_online):
            return False

        self.logger.info("Connection restored, syncing pending actions")
        try:
            had_pending = self._cache.get_pending_actions_count() > 0
            self.sync_pending_actions()
            if not had_pending:
                # an empty drain skips its reload
                self.fetch_orders()
        finally:
            self._connection.clear_was_offline()

        return True

    def clear_offline_cache(self) -> None:
        """Drop the local snapshot, queue and sync marker."""
        self._cache.clear()
        self._refresh_pending_count()
