"""
Planning board API routes.

Thin layer over PlanningBoardService: parse the body, call the service,
return the recomputed board.
"""

from fastapi import APIRouter, Depends
import structlog

from models.planning import (
    LineAssignmentUpdate,
    LoadUpdateRequest,
    OperationResponse,
    PlanningBoardState,
    PlanOrderRequest,
    PlanOrderResponse,
    ReconcileResponse,
    UnplanOrderRequest,
    UpdateQueueOrderRequest,
)
from routes.dependencies import get_planning_board, handle_error
from services.planning_board_service import PlanningBoardService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Planning"])


# ===================
# READS
# ===================

@router.get("/orders")
async def list_orders(board: PlanningBoardService = Depends(get_planning_board)):
    """
    Active orders, straight from the external feed.
    """
    try:
        return board.get_orders()
    except Exception as e:
        logger.error("list_orders_failed", error=str(e))
        return handle_error(e)


@router.get("/state", response_model=PlanningBoardState)
async def get_state(board: PlanningBoardService = Depends(get_planning_board)):
    """
    Full board state: loads, line assignments, priorities, queues, outfeeds.
    """
    try:
        return board.get_state()
    except Exception as e:
        logger.error("get_state_failed", error=str(e))
        return handle_error(e)


# ===================
# ASSIGNMENTS
# ===================

@router.post("/loads", response_model=OperationResponse)
async def update_loads(
    data: LoadUpdateRequest,
    board: PlanningBoardService = Depends(get_planning_board)
):
    """
    Assign orders to loads. A null or empty load removes the assignment.
    """
    try:
        state = board.update_loads(data.updates)
        return OperationResponse(message=f"{len(data.updates)} loads updated", state=state)
    except Exception as e:
        return handle_error(e)


@router.post("/lines", response_model=OperationResponse)
async def update_lines(
    data: LineAssignmentUpdate,
    board: PlanningBoardService = Depends(get_planning_board)
):
    """
    Replace the physical lines serving one order line.
    """
    try:
        state = board.update_line_assignment(data.order_id, data.standard_id, data.lines)
        return OperationResponse(message="Line assignment updated", state=state)
    except Exception as e:
        return handle_error(e)


@router.post("/priorities", response_model=OperationResponse)
async def set_priorities(
    priorities: dict[str, int],
    board: PlanningBoardService = Depends(get_planning_board)
):
    """
    Replace load priorities. Body: {"<load name>": <rank>, ...}.
    """
    try:
        state = board.set_priorities(priorities)
        return OperationResponse(message="Priorities updated", state=state)
    except Exception as e:
        return handle_error(e)


# ===================
# RECONCILIATION & QUEUES
# ===================

@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile(board: PlanningBoardService = Depends(get_planning_board)):
    """
    Reconcile the board against the live order feed.

    All-or-nothing: on any failure the board is left untouched.
    """
    try:
        return board.reconcile()
    except Exception as e:
        logger.error("reconcile_failed", error=str(e), error_type=type(e).__name__)
        return handle_error(e)


@router.post("/plan-order", response_model=PlanOrderResponse)
async def plan_order(
    data: PlanOrderRequest,
    board: PlanningBoardService = Depends(get_planning_board)
):
    """
    Queue an order line on outfeeds, at the head when high_priority.
    """
    try:
        return board.plan_order(
            data.order_id,
            data.standard_id,
            data.outfeed_ids,
            data.high_priority
        )
    except Exception as e:
        return handle_error(e)


@router.post("/unplan-order", response_model=PlanningBoardState)
async def unplan_order(
    data: UnplanOrderRequest,
    board: PlanningBoardService = Depends(get_planning_board)
):
    """
    Remove a tag from one outfeed, or from all outfeeds.
    """
    try:
        return board.unplan_order(data.tag, data.outfeed_id)
    except Exception as e:
        return handle_error(e)


@router.post("/update-queue-order", response_model=PlanningBoardState)
async def update_queue_order(
    data: UpdateQueueOrderRequest,
    board: PlanningBoardService = Depends(get_planning_board)
):
    """
    Rewrite an outfeed queue order, moving a tag between outfeeds if needed.
    """
    try:
        return board.update_queue_order(
            data.from_outfeed_id,
            data.to_outfeed_id,
            data.moved_tag,
            data.ordered_tags
        )
    except Exception as e:
        return handle_error(e)
