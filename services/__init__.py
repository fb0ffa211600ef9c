"""
Business logic services.

Each service handles one concern of the planning board.
"""

from services.completion_service import CompletionPolicy, classify, classify_all
from services.planning_store import PlanningStore, SupabasePlanningStore
from services.reconcile_service import reconcile_snapshot, repack_priorities
from services.planning_board_service import PlanningBoardService

__all__ = [
    "CompletionPolicy",
    "classify",
    "classify_all",
    "PlanningStore",
    "SupabasePlanningStore",
    "reconcile_snapshot",
    "repack_priorities",
    "PlanningBoardService",
]
