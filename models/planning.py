"""
Planning board schemas.

Persisted collections (loads, line assignments, load priorities, outfeeds
and their queues), the in-memory snapshot the services work on, and the
request/response bodies of the planning endpoints.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from pydantic import Field, field_validator

from models.base import BaseSchema
from models.order import LineKey


class OutfeedStatus(str, Enum):
    """Outfeed run status."""
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"


# ===================
# PERSISTED ROWS
# ===================

class Outfeed(BaseSchema):
    """Physical packing output channel."""

    id: int = Field(..., description="Outfeed id")
    name: Optional[str] = Field(None, description="Display name")
    status: OutfeedStatus = Field(OutfeedStatus.PAUSED, description="RUNNING or PAUSED")

    @field_validator("status", mode="before")
    @classmethod
    def default_paused(cls, v):
        """Unset status means PAUSED."""
        return v or OutfeedStatus.PAUSED


class QueueEntry(BaseSchema):
    """One tag queued on one outfeed."""

    outfeed_id: int
    tag: str = Field(..., min_length=1, description="Load name + zero padded number, e.g. A007")
    order_id: int
    standard_id: str
    sequence: int = Field(..., ge=1, description="1-based position in the outfeed queue")

    @property
    def line(self) -> LineKey:
        return LineKey(order_id=self.order_id, standard_id=self.standard_id)


@dataclass
class PlanningSnapshot:
    """
    Full copy of the board as read from the store.

    Services mutate a working copy; the store diffs it against the
    original on commit.
    """

    loads: dict[int, str] = field(default_factory=dict)
    lines: dict[LineKey, list[str]] = field(default_factory=dict)
    priorities: dict[str, int] = field(default_factory=dict)
    outfeeds: dict[int, Outfeed] = field(default_factory=dict)
    queues: dict[int, list[QueueEntry]] = field(default_factory=dict)
    revision: int = 0

    def copy(self) -> "PlanningSnapshot":
        return copy.deepcopy(self)

    def queue(self, outfeed_id: int) -> list[QueueEntry]:
        """Entries of one outfeed ordered by sequence (creates empty queue)."""
        entries = self.queues.setdefault(outfeed_id, [])
        entries.sort(key=lambda e: e.sequence)
        return entries

    def used_load_names(self) -> set[str]:
        return set(self.loads.values())


# ===================
# RESPONSES
# ===================

class PlanningBoardState(BaseSchema):
    """Everything the planning board UI needs in one payload."""

    loads: dict[int, str] = Field(default_factory=dict, description="order_id -> load name")
    lines: dict[str, list[str]] = Field(default_factory=dict, description="'<order_id>-<standard_id>' -> line names")
    priorities: dict[str, int] = Field(default_factory=dict, description="load name -> rank (1 = first)")
    queues: dict[int, list[QueueEntry]] = Field(default_factory=dict, description="outfeed_id -> queue")
    outfeeds: list[Outfeed] = Field(default_factory=list)

    @classmethod
    def from_snapshot(cls, snapshot: PlanningSnapshot) -> "PlanningBoardState":
        return cls(
            loads=dict(snapshot.loads),
            lines={key.as_key(): list(names) for key, names in snapshot.lines.items()},
            priorities=dict(snapshot.priorities),
            queues={
                outfeed_id: sorted(entries, key=lambda e: e.sequence)
                for outfeed_id, entries in snapshot.queues.items()
                if entries
            },
            outfeeds=sorted(snapshot.outfeeds.values(), key=lambda o: o.id),
        )


class ReconcileSummary(BaseSchema):
    """What one reconciliation run changed."""

    orders_seen: int = 0
    retired_tags: list[str] = Field(default_factory=list)
    released_loads: list[str] = Field(default_factory=list, description="Loads deleted entirely")
    released_priorities: list[str] = Field(default_factory=list, description="Loads that kept their letter but lost their rank")
    removed_line_assignments: int = 0
    orphan_loads_removed: int = 0
    orphan_line_assignments_removed: int = 0
    orphan_queue_tags: list[str] = Field(default_factory=list)


class ReconcileResponse(BaseSchema):
    """Reconcile result plus the recomputed board."""

    success: bool = True
    message: str = "Reconciliation completed"
    summary: ReconcileSummary
    state: PlanningBoardState


class PlanOrderResponse(BaseSchema):
    """Tag used for the planned line plus the recomputed board."""

    tag: str
    state: PlanningBoardState


class OperationResponse(BaseSchema):
    """Generic write acknowledgement carrying the recomputed board."""

    success: bool = True
    message: str
    state: PlanningBoardState


# ===================
# REQUESTS
# ===================

class PlanOrderRequest(BaseSchema):
    """Queue an order line on one or more outfeeds."""

    order_id: int
    standard_id: str = Field(..., min_length=1)
    outfeed_ids: list[int] = Field(..., min_length=1)
    high_priority: bool = False


class UnplanOrderRequest(BaseSchema):
    """Remove a tag from one outfeed, or from every outfeed when omitted."""

    tag: str = Field(..., min_length=1)
    outfeed_id: Optional[int] = None


class UpdateQueueOrderRequest(BaseSchema):
    """Rewrite an outfeed's order, optionally moving a tag from another outfeed."""

    from_outfeed_id: Optional[int] = None
    to_outfeed_id: int
    moved_tag: str = Field(..., min_length=1)
    ordered_tags: list[str] = Field(..., min_length=1)


class OutfeedStatusUpdate(BaseSchema):
    """New outfeed status. Validated by the service so bad values raise InvalidStatusError."""

    status: str


class LoadUpdate(BaseSchema):
    """Assign an order to a load; empty load removes the assignment."""

    order_id: int
    load: Optional[str] = None


class LoadUpdateRequest(BaseSchema):
    """Batch of load assignments."""

    updates: list[LoadUpdate]


class LineAssignmentUpdate(BaseSchema):
    """Replace the physical lines serving one order line."""

    order_id: int
    standard_id: str = Field(..., min_length=1)
    lines: list[str] = Field(default_factory=list)
