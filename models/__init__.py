"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.order import (
    Order,
    LineKey,
    PackingStatus,
    CLOSED_ORDER_STATES,
)
from models.planning import (
    OutfeedStatus,
    Outfeed,
    QueueEntry,
    PlanningSnapshot,
    PlanningBoardState,
    ReconcileSummary,
    ReconcileResponse,
    PlanOrderResponse,
    OperationResponse,
    PlanOrderRequest,
    UnplanOrderRequest,
    UpdateQueueOrderRequest,
    OutfeedStatusUpdate,
    LoadUpdate,
    LoadUpdateRequest,
    LineAssignmentUpdate,
)

__all__ = [
    # Base
    "BaseSchema",

    # Orders
    "Order",
    "LineKey",
    "PackingStatus",
    "CLOSED_ORDER_STATES",

    # Planning board
    "OutfeedStatus",
    "Outfeed",
    "QueueEntry",
    "PlanningSnapshot",
    "PlanningBoardState",
    "ReconcileSummary",
    "ReconcileResponse",
    "PlanOrderResponse",
    "OperationResponse",
    "PlanOrderRequest",
    "UnplanOrderRequest",
    "UpdateQueueOrderRequest",
    "OutfeedStatusUpdate",
    "LoadUpdate",
    "LoadUpdateRequest",
    "LineAssignmentUpdate",
]
