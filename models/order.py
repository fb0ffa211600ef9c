"""
Order models.

Orders come from the external active orders feed and are never written by
this service. Field names on the wire are the feed's own (Spanish) column
names; the model exposes English attribute names.
"""

from typing import Any, Optional
from enum import Enum
from pydantic import AliasChoices, ConfigDict, Field, field_validator

from models.base import BaseSchema


# Lifecycle values the feed uses for a closed order
CLOSED_ORDER_STATES = {"closed", "cerrada", "cerrado"}


class PackingStatus(str, Enum):
    """Derived packing status of one order line."""
    PENDING = "pending"
    PARTIALLY = "partially"
    BEING_PACKED = "being_packed"
    DONE = "done"
    SHIPPED = "shipped"


class LineKey(BaseSchema):
    """Identifies one order line: (order_id, standard_id)."""

    model_config = ConfigDict(frozen=True)

    order_id: int
    standard_id: str

    def as_key(self) -> str:
        """Board key used by the UI: '<order_id>-<standard_id>'."""
        return f"{self.order_id}-{self.standard_id}"


def _to_number(value: Any) -> float:
    """Coerce feed quantities to float; absent or non-numeric means 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return number


class Order(BaseSchema):
    """One row of the active orders feed (one order line)."""

    order_id: int = Field(
        ...,
        validation_alias=AliasChoices("id_marketer_order", "order_id"),
        description="Sales order id"
    )
    standard_id: str = Field(
        ...,
        validation_alias=AliasChoices("codigo_producto", "standard_id"),
        description="Product code / standard"
    )
    requested_qty: float = Field(
        0.0,
        validation_alias=AliasChoices("cantidad_solicitada", "requested_qty")
    )
    assigned_qty: float = Field(
        0.0,
        validation_alias=AliasChoices("cantidad_asignada", "assigned_qty")
    )
    shipped_qty: float = Field(
        0.0,
        validation_alias=AliasChoices("cantidad_despachada", "shipped_qty")
    )
    boxes_per_pallet: float = Field(
        0.0,
        validation_alias=AliasChoices("cajas_por_pallet", "boxes_per_pallet")
    )
    state: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("estado_marketer_order", "state"),
        description="Order lifecycle state (open/closed)"
    )
    order_number: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("order_number"),
        description="Parent order group number"
    )

    @field_validator(
        "requested_qty", "assigned_qty", "shipped_qty", "boxes_per_pallet",
        mode="before"
    )
    @classmethod
    def coerce_quantity(cls, v: Any) -> float:
        """Absent or non-numeric quantities count as 0."""
        return _to_number(v)

    @field_validator("standard_id", "order_number", mode="before")
    @classmethod
    def coerce_code(cls, v: Any) -> Optional[str]:
        """Feed sometimes sends numeric codes."""
        if v is None:
            return None
        return str(v)

    @property
    def line(self) -> LineKey:
        return LineKey(order_id=self.order_id, standard_id=self.standard_id)

    @property
    def is_closed(self) -> bool:
        return (self.state or "").strip().lower() in CLOSED_ORDER_STATES
