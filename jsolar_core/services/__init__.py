# =============================================================================
# jsolar_core/services/__init__.py
# Service Layer for JSolar Field Service
# =============================================================================
"""
Service layer shared by the offline sync coordinator and the UI.

Usage Example:
-------------
    from jsolar_core.services import ServiceResult

    result = coordinator.start_order(order_id)
    if not result:
        print(result.error)
    elif result.queued:
        print("Saved offline")
"""

from .base_service import BaseService, ServiceResult

__all__ = ["BaseService", "ServiceResult"]
