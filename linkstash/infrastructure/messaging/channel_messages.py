"""Wire-level messages delivered by a push channel.

A channel stream yields two kinds of messages: subscription status updates
and row change events. Change payloads are raw mappings as the backend emits
them (``user_id``/``created_at`` column names) and are validated here before
anything reaches the collection store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from linkstash.domain.models.bookmark import BookmarkRecord


class SubscriptionStatus(str, Enum):
    """Status transitions reported by the channel for one subscription."""

    CONNECTING = "connecting"
    ACTIVE = "active"
    FAILED = "failed"
    CLOSED = "closed"
    TIMED_OUT = "timed_out"


class ChangeEventKind(str, Enum):
    INSERT = "insert"
    DELETE = "delete"


@dataclass(frozen=True)
class StatusMessage:
    status: SubscriptionStatus
    reason: str | None = None


@dataclass(frozen=True)
class ChangeMessage:
    kind: ChangeEventKind
    payload: dict[str, Any] = field(default_factory=dict)


ChannelMessage = StatusMessage | ChangeMessage


class BookmarkRowPayload(BaseModel):
    """A full bookmark row, as carried by insert events and list responses."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str
    owner_id: str = Field(alias="user_id")
    title: str
    url: str
    created_at: datetime

    def to_record(self) -> BookmarkRecord:
        return BookmarkRecord(
            id=self.id,
            owner_id=self.owner_id,
            title=self.title,
            url=self.url,
            created_at=self.created_at,
        )


class DeletedRowPayload(BaseModel):
    """The old row of a delete event; often only the primary key is present."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str
    owner_id: str | None = Field(default=None, alias="user_id")
