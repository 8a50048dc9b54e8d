"""Adapters for external systems: Supabase REST persistence and in-memory fakes."""
