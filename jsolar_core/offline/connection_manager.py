# =============================================================================
# jsolar_core/offline/connection_manager.py
# Connection Status Detection and Management
# =============================================================================
"""
ConnectionManager - Detects and monitors internet/Supabase connectivity.

Features:
- Connection detection by TCP probe
- Optional periodic health checks on a background thread
- One-shot "was offline" flag for reconnection handling
- Event callbacks for status changes
"""

from __future__ import annotations
import os
import socket
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
from urllib.parse import urlparse
import logging

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"           # Full connectivity (Internet + Supabase)
    OFFLINE = "offline"         # No connectivity
    DEGRADED = "degraded"       # Internet OK but Supabase unavailable
    UNKNOWN = "unknown"         # Initial state


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    internet_available: bool = False
    supabase_available: bool = False
    was_offline: bool = False
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None


class ConnectionManager:
    """
    Manager for connection status detection.

    Usage:
        manager = ConnectionManager(supabase_url=settings.supabase_url)
        manager.initialize(start_monitoring=False)
        if manager.is_online:
            # Write through to Supabase
        else:
            # Queue locally

        if manager.was_offline and manager.is_online:
            # Drain the queue once, then:
            manager.clear_was_offline()
    """

    # Configuration
    CHECK_INTERVAL_ONLINE = 30      # Seconds between checks when online
    CHECK_INTERVAL_OFFLINE = 10     # Seconds between checks when offline
    CONNECTION_TIMEOUT = 5          # Timeout for connection tests

    # Statuses after which reaching ONLINE counts as a reconnection
    _DISCONNECTED = (ConnectionStatus.OFFLINE, ConnectionStatus.DEGRADED)

    def __init__(
        self,
        supabase_url: Optional[str] = None,
        check_interval_online: Optional[int] = None,
        check_interval_offline: Optional[int] = None,
        connection_timeout: Optional[int] = None,
    ):
        """Initialize connection manager."""
        self.supabase_url = supabase_url if supabase_url is not None else os.getenv("SUPABASE_URL", "")
        self.check_interval_online = check_interval_online or self.CHECK_INTERVAL_ONLINE
        self.check_interval_offline = check_interval_offline or self.CHECK_INTERVAL_OFFLINE
        self.connection_timeout = connection_timeout or self.CONNECTION_TIMEOUT

        self._state = ConnectionState()
        self._state_lock = threading.RLock()
        self._callbacks: List[Callable[[ConnectionState], None]] = []
        self._monitor_thread: Optional[threading.Thread] = None
        self._stop_monitoring = threading.Event()
        self._initialized = False

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        """Get current status."""
        return self._state.status

    @property
    def is_online(self) -> bool:
        """Check if we have full connectivity."""
        return self._state.status == ConnectionStatus.ONLINE

    @property
    def is_offline(self) -> bool:
        """Check if we're completely offline."""
        return self._state.status == ConnectionStatus.OFFLINE

    @property
    def was_offline(self) -> bool:
        """True once an offline -> online transition has been seen and not yet handled."""
        return self._state.was_offline

    def clear_was_offline(self) -> None:
        """Acknowledge the reconnection so it is not handled twice."""
        self._state.was_offline = False

    def initialize(self, start_monitoring: bool = True) -> None:
        """
        Initialize the connection manager.

        Args:
            start_monitoring: Whether to start background monitoring
        """
        if self._initialized:
            return

        self.check_connection()

        if start_monitoring:
            self.start_monitoring()

        self._initialized = True
        logger.info(f"ConnectionManager initialized. Status: {self._state.status.value}")

    def check_connection(self) -> ConnectionState:
        """
        Perform a connection check and update state.

        Returns:
            Updated ConnectionState
        """
        self._state.last_check = datetime.now()

        internet_ok = self._check_internet()
        supabase_ok = self._check_supabase() if internet_ok else False

        if internet_ok and supabase_ok:
            new_status = ConnectionStatus.ONLINE
        elif internet_ok:
            new_status = ConnectionStatus.DEGRADED
        else:
            new_status = ConnectionStatus.OFFLINE

        self._set_status(new_status, internet_ok, supabase_ok)
        return self._state

    def _set_status(
        self,
        new_status: ConnectionStatus,
        internet_ok: bool,
        supabase_ok: bool,
    ) -> None:
        """Record a status, raise was_offline on reconnection, and notify on change."""
        with self._state_lock:
            old_status = self._state.status
            self._state.internet_available = internet_ok
            self._state.supabase_available = supabase_ok

            if new_status == ConnectionStatus.ONLINE:
                self._state.last_online = datetime.now()
                self._state.consecutive_failures = 0
                self._state.error_message = None
                if old_status in self._DISCONNECTED:
                    self._state.was_offline = True
            else:
                self._state.consecutive_failures += 1

            self._state.status = new_status

        if old_status != new_status:
            logger.info(f"Connection status changed: {old_status.value} -> {new_status.value}")
            self._notify_callbacks()

    def _check_internet(self) -> bool:
        """
        Check internet connectivity by attempting to reach well-known hosts.

        Returns:
            True if internet is available
        """
        hosts = [
            ("8.8.8.8", 53),      # Google DNS
            ("1.1.1.1", 53),      # Cloudflare DNS
            ("208.67.222.222", 53), # OpenDNS
        ]

        for host, port in hosts:
            if self._probe(host, port):
                return True

        return False

    def _check_supabase(self) -> bool:
        """
        Check Supabase connectivity.

        Returns:
            True if Supabase is reachable
        """
        if not self.supabase_url:
            # No Supabase configured - treat as available (local-only mode)
            return True

        parsed = urlparse(self.supabase_url)
        host = parsed.hostname
        if not host:
            self._state.error_message = f"Invalid Supabase URL: {self.supabase_url}"
            return False

        port = parsed.port or (443 if parsed.scheme != "http" else 80)
        return self._probe(host, port)

    def _probe(self, host: str, port: int) -> bool:
        """Open and close a TCP connection; True when it succeeds."""
        try:
            with socket.create_connection((host, port), timeout=self.connection_timeout):
                return True
        except OSError as e:
            logger.debug(f"Probe to {host}:{port} failed: {e}")
            return False

    def start_monitoring(self) -> None:
        """Start background connection monitoring."""
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return

        self._stop_monitoring.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitoring_loop,
            daemon=True,
            name="ConnectionMonitor"
        )
        self._monitor_thread.start()
        logger.debug("Connection monitoring started")

    def stop_monitoring(self) -> None:
        """Stop background connection monitoring."""
        self._stop_monitoring.set()
        if self._monitor_thread:
            self._monitor_thread.join(timeout=5)
        logger.debug("Connection monitoring stopped")

    def _monitoring_loop(self) -> None:
        """Background monitoring loop."""
        while not self._stop_monitoring.is_set():
            interval = (
                self.check_interval_online
                if self.is_online
                else self.check_interval_offline
            )

            if self._stop_monitoring.wait(timeout=interval):
                break

            try:
                self.check_connection()
            except Exception as e:
                logger.error(f"Error in connection check: {e}")

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """
        Register a callback for connection status changes.

        Args:
            callback: Function called with ConnectionState when status changes
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        """Notify all registered callbacks of status change."""
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}", exc_info=True)

    def force_offline(self) -> None:
        """Force offline mode (for testing or user preference)."""
        self._set_status(ConnectionStatus.OFFLINE, False, False)
        logger.info("Forced offline mode")

    def force_online(self) -> None:
        """Force online mode (for testing or after a manual retry)."""
        self._set_status(ConnectionStatus.ONLINE, True, True)
        logger.info("Forced online mode")

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "was_offline": self._state.was_offline,
            "internet": self._state.internet_available,
            "supabase": self._state.supabase_available,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }

