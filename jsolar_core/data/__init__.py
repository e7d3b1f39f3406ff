# =============================================================================
# jsolar_core/data/__init__.py
# Data Model and Remote Order Service
# =============================================================================

from .models import AuditEntry, ServiceOrder, ServiceOrderStatus, StartOrderData

__all__ = [
    "AuditEntry",
    "ServiceOrder",
    "ServiceOrderStatus",
    "StartOrderData",
]
