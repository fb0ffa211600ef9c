"""
Configuration module.

Exports:
    get_settings: Function to get settings (for dependency injection)
    Settings: Settings model
    get_supabase_client: Cached Supabase client factory
    check_connection: Health check function
"""

from config.settings import get_settings, Settings
from config.database import (
    get_supabase_client,
    check_connection,
)

__all__ = [
    # Settings
    "get_settings",
    "Settings",

    # Database
    "get_supabase_client",
    "check_connection",
]
