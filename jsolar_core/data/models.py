# =============================================================================
# jsolar_core/data/models.py
# Service Order Data Model
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ServiceOrderStatus(str, Enum):
    """Service order lifecycle states (values match the backend enum)."""
    PENDING = "pending"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class ServiceOrder:
    """One unit of field work, as stored in the `service_orders` table."""
    id: str
    order_number: str = ""
    client_name: str = ""
    client_address: str = ""
    service_type: str = ""
    status: ServiceOrderStatus = ServiceOrderStatus.PENDING
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None
    team_lead_id: Optional[str] = None
    auxiliary_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    notes: Optional[str] = None
    start_mileage: Optional[float] = None
    end_mileage: Optional[float] = None
    checklist_template_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    # Columns an edit may never touch
    IMMUTABLE_FIELDS = ("id", "created_at", "created_by")

    def __post_init__(self):
        if not isinstance(self.status, ServiceOrderStatus):
            self.status = ServiceOrderStatus(self.status)

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> ServiceOrder:
        """Build from a backend or cache row; unknown columns are ignored."""
        known = set(cls.field_names())
        return cls(**{k: v for k, v in row.items() if k in known})

    def to_row(self) -> Dict[str, Any]:
        row = {name: getattr(self, name) for name in self.field_names()}
        row["status"] = self.status.value
        return row

    def apply(self, updates: Dict[str, Any]) -> ServiceOrder:
        """Return a copy with the partial column updates applied."""
        known = set(self.field_names())
        changes = {k: v for k, v in updates.items() if k in known}
        if "status" in changes:
            changes["status"] = ServiceOrderStatus(changes["status"])
        return replace(self, **changes)


@dataclass
class StartOrderData:
    """Extra data captured when a technician starts an order."""
    vehicle_id: str
    mileage: float
    auxiliary_id: Optional[str] = None


@dataclass
class AuditEntry:
    """Append-only row for the `service_order_audit` table."""
    service_order_id: str
    action: str
    old_status: Optional[ServiceOrderStatus] = None
    new_status: Optional[ServiceOrderStatus] = None
    notes: Optional[str] = None
    user_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> Dict[str, Any]:
        return {
            "service_order_id": self.service_order_id,
            "user_id": self.user_id,
            "action": self.action,
            "old_status": self.old_status.value if self.old_status else None,
            "new_status": self.new_status.value if self.new_status else None,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
        }
