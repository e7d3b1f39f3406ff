# =============================================================================
# jsolar_core/ui/order_table.py
# Tabular View of Service Orders
# =============================================================================

from __future__ import annotations
from typing import List

import pandas as pd

from jsolar_core.data.models import ServiceOrder, ServiceOrderStatus

STATUS_LABELS = {
    ServiceOrderStatus.PENDING: "Pending",
    ServiceOrderStatus.IN_PROGRESS: "In progress",
    ServiceOrderStatus.COMPLETED: "Completed",
    ServiceOrderStatus.CANCELLED: "Cancelled",
}

DISPLAY_COLUMNS = {
    "order_number": "Order",
    "client_name": "Client",
    "client_address": "Address",
    "service_type": "Service",
    "status": "Status",
    "scheduled_date": "Date",
    "scheduled_time": "Time",
}


def orders_to_dataframe(orders: List[ServiceOrder]) -> pd.DataFrame:
    """
    Convert orders into a display DataFrame for st.dataframe.

    The order id is kept as the index so rows can be matched back.
    """
    if not orders:
        return pd.DataFrame(columns=list(DISPLAY_COLUMNS.values()))

    df = pd.DataFrame([order.to_row() for order in orders]).set_index("id")
    df["status"] = df["status"].map(lambda s: STATUS_LABELS[ServiceOrderStatus(s)])
    df = df[list(DISPLAY_COLUMNS)].rename(columns=DISPLAY_COLUMNS)
    return df
