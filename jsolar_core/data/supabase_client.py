# =============================================================================
# jsolar_core/data/supabase_client.py
# Supabase Client Configuration for JSolar Field Service
# Handles the client connection and service-order table operations
# =============================================================================

from __future__ import annotations
from typing import Optional, Dict, Any, List
import logging

import streamlit as st
from supabase import create_client, Client

from jsolar_core.config import Settings, load_settings
from jsolar_core.data.models import AuditEntry, ServiceOrder
from jsolar_core.errors import ConfigurationError, RemoteServiceError

logger = logging.getLogger(__name__)


def create_supabase_client(settings: Settings) -> Client:
    """
    Create a Supabase client from resolved settings.

    Raises:
        ConfigurationError: if URL or key is missing
    """
    if not settings.supabase_url:
        raise ConfigurationError("Supabase URL is not configured", config_key="supabase.url")
    if not settings.supabase_key:
        raise ConfigurationError("Supabase key is not configured", config_key="supabase.key")

    return create_client(settings.supabase_url, settings.supabase_key)


@st.cache_resource(ttl=3600)  # Cache for 1 hour, then refresh
def get_cached_supabase_client() -> Client:
    """
    Get cached Supabase client (reused across sessions).

    Uses TTL to periodically refresh the connection and prevent stale connections.
    """
    return create_supabase_client(load_settings())


class ServiceOrderRepository:
    """
    Remote order service backed by the `service_orders` and
    `service_order_audit` tables.

    Every failure, whether the transport raised or PostgREST rejected the
    request, surfaces as RemoteServiceError.
    """

    ORDERS_TABLE = "service_orders"
    AUDIT_TABLE = "service_order_audit"

    def __init__(self, client: Client):
        self.client = client

    def fetch_orders(self) -> List[ServiceOrder]:
        """
        Fetch every service order, newest first.

        Returns:
            List of ServiceOrder
        """
        try:
            response = (
                self.client.table(self.ORDERS_TABLE)
                .select("*")
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            raise RemoteServiceError(
                f"Error fetching data from {self.ORDERS_TABLE}: {e}",
                table=self.ORDERS_TABLE,
                operation="select",
            ) from e

        try:
            return [ServiceOrder.from_row(row) for row in (response.data or [])]
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteServiceError(
                f"Unreadable row in {self.ORDERS_TABLE}: {e}",
                table=self.ORDERS_TABLE,
                operation="select",
            ) from e

    def update_order(self, order_id: str, data: Dict[str, Any]) -> Optional[ServiceOrder]:
        """
        Apply a partial update to one order.

        Args:
            order_id: Order identifier
            data: Dictionary of column:value pairs

        Returns:
            The updated order, or None if the backend returned no row
        """
        try:
            response = (
                self.client.table(self.ORDERS_TABLE)
                .update(data)
                .eq("id", order_id)
                .execute()
            )
        except Exception as e:
            raise RemoteServiceError(
                f"Error updating order {order_id}: {e}",
                table=self.ORDERS_TABLE,
                operation="update",
                details={"order_id": order_id},
            ) from e

        if not response.data:
            return None
        try:
            return ServiceOrder.from_row(response.data[0])
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteServiceError(
                f"Unreadable row returned for order {order_id}: {e}",
                table=self.ORDERS_TABLE,
                operation="update",
                details={"order_id": order_id},
            ) from e

    def insert_audit(self, entry: AuditEntry) -> None:
        """Append one audit-log row."""
        try:
            self.client.table(self.AUDIT_TABLE).insert(entry.to_row()).execute()
        except Exception as e:
            raise RemoteServiceError(
                f"Error inserting audit entry: {e}",
                table=self.AUDIT_TABLE,
                operation="insert",
                details={"order_id": entry.service_order_id},
            ) from e
