"""
Database connection management.

Builds the Supabase client the planning store talks to. The client is
created once at application start and handed to the store explicitly.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import get_settings
from exceptions import StoreError

logger = structlog.get_logger(__name__)


class ConnectionError(StoreError):
    """Failed to connect to database."""

    def __init__(self, message: str):
        super().__init__(operation="connect", message=message)


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Uses lru_cache to ensure only one client is created.
    Call get_supabase_client.cache_clear() to reconnect.

    Returns:
        Client: Supabase client

    Raises:
        ConnectionError: If connection fails
    """
    settings = get_settings()
    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "..."  # Log partial URL only
        )

        client = create_client(
            settings.supabase_url,
            settings.supabase_key
        )

        # Test connection with simple query
        client.table("outfeeds").select("id").limit(1).execute()

        logger.info(
            "supabase_connected",
            status="success"
        )

        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise ConnectionError(f"Failed to connect to Supabase: {e}") from e


# ===================
# HELPER FUNCTIONS
# ===================

def check_connection(client: Client) -> dict:
    """
    Check database connection health.

    Args:
        client: Supabase client to probe

    Returns:
        dict: Connection status with details
    """
    try:
        outfeeds = client.table("outfeeds").select("id", count="exact").execute()
        loads = client.table("loads").select("order_id", count="exact").execute()

        return {
            "status": "healthy",
            "outfeeds_count": outfeeds.count,
            "loads_count": loads.count
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }

