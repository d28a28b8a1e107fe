"""
Configuration for Pedaru.
"""

from .settings import (
    ViewerSettings,
    USER_SETTINGS_KEYS,
    DEFAULT_SEARCH_DELTAS,
    get_default_settings_path,
    invalidate_settings_cache,
)

__all__ = [
    'ViewerSettings',
    'USER_SETTINGS_KEYS',
    'DEFAULT_SEARCH_DELTAS',
    'get_default_settings_path',
    'invalidate_settings_cache',
]
