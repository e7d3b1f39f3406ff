# =============================================================================
# jsolar_core/offline/__init__.py
# Offline-First Service Orders for JSolar Field Service
# =============================================================================
"""
Offline-First Service Order Module

Technicians keep working when the network drops: reads fall back to a local
SQLite snapshot and writes are queued, then replayed when the connection
returns.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                      OFFLINE SERVICE ORDERS                      │
├─────────────────────────────────────────────────────────────────┤
│                                                                  │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │                  SyncCoordinator                          │  │
│   │   (start / finish / update / reassign, drain on return)   │  │
│   └──────────────────────────────────────────────────────────┘  │
│              │                  │                  │             │
│              ▼                  ▼                  ▼             │
│   ┌──────────────────┐ ┌──────────────────┐ ┌──────────────┐    │
│   │  ConnectionMgr   │ │ LocalCacheStore  │ │  Repository  │    │
│   │ (Online/Offline) │ │ (Snapshot+Queue) │ │  (Supabase)  │    │
│   └──────────────────┘ └──────────────────┘ └──────────────┘    │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from jsolar_core.offline import ConnectionManager, SyncCoordinator, get_local_cache

connection = ConnectionManager(supabase_url=settings.supabase_url)
connection.initialize(start_monitoring=False)
coordinator = SyncCoordinator(repository, get_local_cache(), connection)
coordinator.attach()
coordinator.fetch_orders()

print(coordinator.is_online)       # True/False
print(coordinator.pending_count)   # Number of queued actions
"""

from jsolar_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
)

from jsolar_core.offline.local_database import (
    LocalCacheStore,
    get_local_cache,
)

from jsolar_core.offline.pending_actions import (
    ActionKind,
    FinishPayload,
    PendingAction,
    StartPayload,
    UpdatePayload,
    payload_from_dict,
)

from jsolar_core.offline.sync_coordinator import (
    SyncCoordinator,
    SyncState,
)

__all__ = [
    # Connection Management
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    # Local Cache
    "LocalCacheStore",
    "get_local_cache",
    # Pending Actions
    "ActionKind",
    "FinishPayload",
    "PendingAction",
    "StartPayload",
    "UpdatePayload",
    "payload_from_dict",
    # Sync Coordinator (Main API)
    "SyncCoordinator",
    "SyncState",
]
