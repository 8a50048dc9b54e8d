from __future__ import annotations

from .settings import AppConfig, RuntimeConfig, Settings, load_config
from .supabase import SupabaseConfig
from .sync import SyncConfig

__all__ = [
    "AppConfig",
    "RuntimeConfig",
    "Settings",
    "SupabaseConfig",
    "SyncConfig",
    "load_config",
]
