"""Pydantic models for the Supabase (PostgREST) bookmarks table."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from linkstash.infrastructure.messaging.channel_messages import BookmarkRowPayload


class CreateBookmarkRow(BaseModel):
    """Insert body; ``id`` and ``created_at`` are assigned by the database."""

    model_config = ConfigDict(populate_by_name=True)

    owner_id: str = Field(serialization_alias="user_id")
    title: str
    url: str


# Rows returned by the REST API have the same shape as change-event rows.
BookmarkRow = BookmarkRowPayload
