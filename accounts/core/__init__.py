"""Core configuration, persistence, security and mail."""

from accounts.core.config import Settings, get_settings
from accounts.core.database import Database, get_database

__all__ = ["Database", "Settings", "get_database", "get_settings"]
