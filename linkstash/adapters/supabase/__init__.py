from __future__ import annotations

from linkstash.adapters.supabase.repository import SupabaseBookmarkRepository

__all__ = ["SupabaseBookmarkRepository"]
