"""
Planning Board: Main Application

FastAPI application entry point.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import structlog
from datetime import datetime

from config import get_settings, get_supabase_client, check_connection
from exceptions import AppError
from integrations.order_feed import OrderFeedClient
from services.completion_service import CompletionPolicy
from services.planning_board_service import PlanningBoardService
from services.planning_store import SupabasePlanningStore

settings = get_settings()

logging.basicConfig(format="%(message)s", level=settings.log_level)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.is_production
            else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


def build_planning_board() -> PlanningBoardService:
    """Wire the store and the order feed into the planning board service."""
    return PlanningBoardService(
        store=SupabasePlanningStore(get_supabase_client()),
        order_source=OrderFeedClient(
            settings.orders_feed_url,
            timeout=settings.orders_feed_timeout_seconds
        ),
        completion_policy=CompletionPolicy(settings.completion_policy),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup: Open the planning store and the order feed client
    Shutdown: Close them
    """
    logger.info(
        "application_starting",
        environment=settings.environment,
        debug=settings.debug,
        completion_policy=settings.completion_policy
    )

    if not getattr(app.state, "planning_board", None):
        app.state.planning_board = build_planning_board()

    yield

    logger.info("application_shutting_down")
    app.state.planning_board.close()


# Create FastAPI app
app = FastAPI(
    title="Planning Board",
    description="Load, outfeed queue and priority planning reconciled against the active orders feed",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        Basic health status and database connection state
    """
    board = request.app.state.planning_board
    db_status = check_connection(board.store.db) if hasattr(board.store, "db") else {"status": "unknown"}

    return {
        "status": "healthy" if db_status["status"] == "healthy" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
        "database": db_status
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Application errors raised outside a route's own handling."""
    logger.warning(
        "app_error",
        path=request.url.path,
        code=exc.code,
        message=exc.message
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler.

    Catches unhandled exceptions and returns standard error format.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


# ===================
# INCLUDE ROUTERS
# ===================
from routes import planning_router, outfeeds_router

app.include_router(planning_router)  # Prefix already in router
app.include_router(outfeeds_router)  # Prefix already in router


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
