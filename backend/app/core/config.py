"""
Settings access point used across the app.

    from app.core.config import settings
"""
from app.core.settings import Settings, get_settings

settings: Settings = get_settings()

__all__ = ["Settings", "get_settings", "settings"]
