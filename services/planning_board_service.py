"""
Planning board service.

Entry point for every board operation. Each public method runs inside one
store transaction: it either commits completely or leaves the board as it
was. The store and the order source are handed in at construction.
"""

from typing import Optional
import structlog

from models.order import LineKey
from models.planning import (
    OutfeedStatus,
    PlanningBoardState,
    PlanningSnapshot,
    PlanOrderResponse,
    ReconcileResponse,
    LoadUpdate,
)
from services import queue_service
from services.completion_service import CompletionPolicy
from services.planning_store import PlanningStore
from services.reconcile_service import reconcile_snapshot, repack_priorities
from integrations.order_feed import OrderSource
from exceptions import (
    ValidationError,
    NoLoadAssignedError,
    InvalidStatusError,
    OutfeedNotFoundError,
)

logger = structlog.get_logger(__name__)


class PlanningBoardService:
    """
    Planning board business logic.

    Handles:
    - Reconciliation against the active orders feed
    - Planning/unplanning order lines on outfeed queues
    - Queue reordering and outfeed status
    - Load, line and priority assignments
    """

    def __init__(
        self,
        store: PlanningStore,
        order_source: OrderSource,
        completion_policy: CompletionPolicy = CompletionPolicy.RATIO
    ):
        self.store = store
        self.order_source = order_source
        self.completion_policy = CompletionPolicy(completion_policy)

    # ===================
    # READS
    # ===================

    def get_state(self) -> PlanningBoardState:
        """Full board: loads, lines, priorities, queues, outfeeds."""
        snapshot = self.store.load_snapshot()
        return PlanningBoardState.from_snapshot(snapshot)

    def get_orders(self) -> list[dict]:
        """Live feed rows, unmodified."""
        return self.order_source.fetch_raw()

    # ===================
    # RECONCILIATION
    # ===================

    def reconcile(self) -> ReconcileResponse:
        """
        Re-derive the board from a fresh feed snapshot.

        The feed is fetched before the transaction opens, so a feed
        failure never touches the store.

        Raises:
            FeedUnavailableError: Feed unreachable
            FeedFormatError: Feed payload malformed
            StoreError: Read or commit failed (nothing written)
        """
        logger.info("reconcile_started", policy=self.completion_policy.value)

        orders = self.order_source.fetch()

        with self.store.transaction("reconcile") as board:
            summary = reconcile_snapshot(board, orders, self.completion_policy)

        logger.info(
            "reconcile_completed",
            revision=board.revision,
            retired_tags=len(summary.retired_tags),
            released_loads=len(summary.released_loads),
            released_priorities=len(summary.released_priorities)
        )
        return ReconcileResponse(
            summary=summary,
            state=PlanningBoardState.from_snapshot(board)
        )

    # ===================
    # QUEUES
    # ===================

    def plan_order(
        self,
        order_id: int,
        standard_id: str,
        outfeed_ids: list[int],
        high_priority: bool = False
    ) -> PlanOrderResponse:
        """
        Queue an order line on one or more outfeeds.

        The line keeps one tag across every outfeed. Planning it again on
        an outfeed that already carries the tag does nothing there.

        Args:
            order_id: Sales order id
            standard_id: Product code
            outfeed_ids: Target outfeeds
            high_priority: Insert at the head instead of the tail

        Returns:
            Tag used and the updated board

        Raises:
            ValidationError: No outfeeds given
            NoLoadAssignedError: Order has no load
            OutfeedNotFoundError: Unknown outfeed id
        """
        if not outfeed_ids:
            raise ValidationError("At least one outfeed is required", details={"outfeed_ids": outfeed_ids})

        line = LineKey(order_id=order_id, standard_id=standard_id)
        logger.info(
            "planning_order",
            line=line.as_key(),
            outfeed_ids=outfeed_ids,
            high_priority=high_priority
        )

        with self.store.transaction("plan_order") as board:
            load_name = board.loads.get(order_id)
            if not load_name:
                raise NoLoadAssignedError(order_id)
            self._require_outfeeds(board, outfeed_ids)

            tag = queue_service.resolve_tag(board, line, load_name)
            for outfeed_id in dict.fromkeys(outfeed_ids):
                if queue_service.has_tag(board, outfeed_id, tag):
                    logger.debug("plan_skipped_already_queued", outfeed_id=outfeed_id, tag=tag)
                    continue
                if high_priority:
                    queue_service.prepend(board, outfeed_id, tag, line)
                else:
                    queue_service.append(board, outfeed_id, tag, line)

        logger.info("order_planned", line=line.as_key(), tag=tag)
        return PlanOrderResponse(tag=tag, state=PlanningBoardState.from_snapshot(board))

    def unplan_order(self, tag: str, outfeed_id: Optional[int] = None) -> PlanningBoardState:
        """Remove a tag from one outfeed, or from all of them."""
        with self.store.transaction("unplan_order") as board:
            if outfeed_id is not None:
                self._require_outfeeds(board, [outfeed_id])
            affected = queue_service.remove(board, tag, outfeed_id)

        logger.info("order_unplanned", tag=tag, outfeed_ids=affected)
        return PlanningBoardState.from_snapshot(board)

    def update_queue_order(
        self,
        from_outfeed_id: Optional[int],
        to_outfeed_id: int,
        moved_tag: str,
        ordered_tags: list[str]
    ) -> PlanningBoardState:
        """
        Reorder an outfeed queue, optionally moving a tag in from another.

        Raises:
            OutfeedNotFoundError: Unknown outfeed id
            ValidationError: Bad tag list
        """
        with self.store.transaction("update_queue_order") as board:
            ids = [to_outfeed_id] + ([from_outfeed_id] if from_outfeed_id is not None else [])
            self._require_outfeeds(board, ids)
            queue_service.reorder_and_move(
                board, from_outfeed_id, to_outfeed_id, moved_tag, ordered_tags
            )

        logger.info(
            "queue_order_updated",
            from_outfeed_id=from_outfeed_id,
            to_outfeed_id=to_outfeed_id,
            moved_tag=moved_tag
        )
        return PlanningBoardState.from_snapshot(board)

    def set_outfeed_status(self, outfeed_id: int, status: str) -> PlanningBoardState:
        """
        Set an outfeed RUNNING or PAUSED.

        Raises:
            InvalidStatusError: Any other value
            OutfeedNotFoundError: Unknown outfeed id
        """
        allowed = [s.value for s in OutfeedStatus]
        if status not in allowed:
            raise InvalidStatusError(status, allowed)

        with self.store.transaction("set_outfeed_status") as board:
            self._require_outfeeds(board, [outfeed_id])
            board.outfeeds[outfeed_id].status = OutfeedStatus(status)

        logger.info("outfeed_status_set", outfeed_id=outfeed_id, status=status)
        return PlanningBoardState.from_snapshot(board)

    # ===================
    # ASSIGNMENTS
    # ===================

    def update_loads(self, updates: list[LoadUpdate]) -> PlanningBoardState:
        """
        Assign orders to loads in one batch; an empty load unassigns.

        Priorities of loads left without orders are dropped and the rest
        re-packed.
        """
        with self.store.transaction("update_loads") as board:
            for update in updates:
                load_name = (update.load or "").strip()
                if load_name:
                    board.loads[update.order_id] = load_name
                else:
                    board.loads.pop(update.order_id, None)
            board.priorities = repack_priorities(board.priorities, board.used_load_names())

        logger.info("loads_updated", count=len(updates))
        return PlanningBoardState.from_snapshot(board)

    def update_line_assignment(
        self,
        order_id: int,
        standard_id: str,
        lines: list[str]
    ) -> PlanningBoardState:
        """Replace the physical lines of one order line (empty clears)."""
        line = LineKey(order_id=order_id, standard_id=standard_id)
        names = list(dict.fromkeys(name.strip() for name in lines if name and name.strip()))

        with self.store.transaction("update_line_assignment") as board:
            if names:
                board.lines[line] = names
            else:
                board.lines.pop(line, None)

        logger.info("line_assignment_updated", line=line.as_key(), lines=names)
        return PlanningBoardState.from_snapshot(board)

    def set_priorities(self, priorities: dict[str, int]) -> PlanningBoardState:
        """
        Replace the load priority order wholesale.

        Loads not in use are dropped; ranks are re-packed to 1..N in the
        given order (tied loads keep the order they were sent in).
        """
        with self.store.transaction("set_priorities") as board:
            board.priorities = repack_priorities(priorities, board.used_load_names())

        logger.info("priorities_set", count=len(board.priorities))
        return PlanningBoardState.from_snapshot(board)

    # ===================
    # HELPERS
    # ===================

    def _require_outfeeds(self, board: PlanningSnapshot, outfeed_ids: list[int]) -> None:
        for outfeed_id in outfeed_ids:
            if outfeed_id not in board.outfeeds:
                raise OutfeedNotFoundError(outfeed_id)

    def close(self) -> None:
        """Close the store and the order source."""
        self.store.close()
        close_source = getattr(self.order_source, "close", None)
        if close_source is not None:
            close_source()
