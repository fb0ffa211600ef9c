"""
Shared route dependencies and error conversion.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
import structlog

from services.planning_board_service import PlanningBoardService
from exceptions import AppError

logger = structlog.get_logger(__name__)


def get_planning_board(request: Request) -> PlanningBoardService:
    """Planning board service built in the application lifespan."""
    return request.app.state.planning_board


def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )
