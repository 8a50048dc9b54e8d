"""In-process persistence and push-channel adapters.

Used by tests and local runs without a backend. The repository echoes every
write to the channel so the engine sees the same insert/delete events it
would receive from a real backend.
"""

from __future__ import annotations

from linkstash.adapters.memory.channel import InMemoryRealtimeChannel
from linkstash.adapters.memory.repository import InMemoryBookmarkRepository

__all__ = ["InMemoryBookmarkRepository", "InMemoryRealtimeChannel"]
