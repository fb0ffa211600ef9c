"""
Outfeed API routes.

Outfeeds are created in the catalog table; only their status changes here.
"""

from fastapi import APIRouter, Depends
import structlog

from models.planning import Outfeed, OutfeedStatusUpdate, PlanningBoardState
from routes.dependencies import get_planning_board, handle_error
from services.planning_board_service import PlanningBoardService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/outfeeds", tags=["Outfeeds"])


@router.get("", response_model=list[Outfeed])
async def list_outfeeds(board: PlanningBoardService = Depends(get_planning_board)):
    """
    Get all outfeeds with their status.
    """
    try:
        return board.get_state().outfeeds
    except Exception as e:
        logger.error("list_outfeeds_failed", error=str(e))
        return handle_error(e)


@router.patch("/{outfeed_id}/status", response_model=PlanningBoardState)
async def set_outfeed_status(
    outfeed_id: int,
    data: OutfeedStatusUpdate,
    board: PlanningBoardService = Depends(get_planning_board)
):
    """
    Set an outfeed RUNNING or PAUSED.

    Raises:
        404: Outfeed not found
        422: Invalid status
    """
    try:
        return board.set_outfeed_status(outfeed_id, data.status)
    except Exception as e:
        return handle_error(e)
