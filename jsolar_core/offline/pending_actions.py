# =============================================================================
# jsolar_core/offline/pending_actions.py
# Queued Service-Order Mutations
# =============================================================================
"""
Typed payloads for mutations deferred while offline.

Each payload knows the column update it replays and, for status
transitions, the audit record that goes with it.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from jsolar_core.data.models import ServiceOrderStatus


class ActionKind(str, Enum):
    """Kinds of queued actions."""
    START = "start"
    FINISH = "finish"
    UPDATE = "update"


# (audit action, old status, new status)
Transition = Tuple[str, ServiceOrderStatus, ServiceOrderStatus]


@dataclass(frozen=True)
class StartPayload:
    vehicle_id: Optional[str] = None
    mileage: Optional[float] = None
    auxiliary_id: Optional[str] = None

    kind: ClassVar[ActionKind] = ActionKind.START
    transition: ClassVar[Optional[Transition]] = (
        "started", ServiceOrderStatus.PENDING, ServiceOrderStatus.IN_PROGRESS
    )

    def to_update(self) -> Dict[str, Any]:
        update: Dict[str, Any] = {"status": ServiceOrderStatus.IN_PROGRESS.value}
        if self.vehicle_id is not None:
            update["vehicle_id"] = self.vehicle_id
        if self.mileage is not None:
            update["start_mileage"] = self.mileage
        if self.auxiliary_id:
            update["auxiliary_id"] = self.auxiliary_id
        return update

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "mileage": self.mileage,
            "auxiliary_id": self.auxiliary_id,
        }


@dataclass(frozen=True)
class FinishPayload:
    kind: ClassVar[ActionKind] = ActionKind.FINISH
    transition: ClassVar[Optional[Transition]] = (
        "finished", ServiceOrderStatus.IN_PROGRESS, ServiceOrderStatus.COMPLETED
    )

    def to_update(self) -> Dict[str, Any]:
        return {"status": ServiceOrderStatus.COMPLETED.value}

    def to_dict(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class UpdatePayload:
    fields: Dict[str, Any] = field(default_factory=dict)

    kind: ClassVar[ActionKind] = ActionKind.UPDATE
    transition: ClassVar[Optional[Transition]] = None

    def to_update(self) -> Dict[str, Any]:
        return dict(self.fields)

    def to_dict(self) -> Dict[str, Any]:
        return {"fields": dict(self.fields)}


ActionPayload = Union[StartPayload, FinishPayload, UpdatePayload]


def payload_from_dict(kind: Union[ActionKind, str], data: Optional[Dict[str, Any]]) -> ActionPayload:
    """Rebuild a payload from its stored JSON form."""
    kind = ActionKind(kind)
    data = data or {}

    if kind is ActionKind.START:
        return StartPayload(
            vehicle_id=data.get("vehicle_id"),
            mileage=data.get("mileage"),
            auxiliary_id=data.get("auxiliary_id"),
        )
    if kind is ActionKind.FINISH:
        return FinishPayload()
    if kind is ActionKind.UPDATE:
        return UpdatePayload(fields=dict(data.get("fields") or {}))

    raise ValueError(f"Unknown action kind: {kind}")


@dataclass(frozen=True)
class PendingAction:
    """A deferred mutation awaiting replay. Never mutated after creation."""
    id: str
    order_id: str
    payload: ActionPayload
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def kind(self) -> ActionKind:
        return self.payload.kind
