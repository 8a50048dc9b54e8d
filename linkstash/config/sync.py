from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class SyncConfig(BaseModel):
    """Collection sync and submission behaviour."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    topic_prefix: str = Field(default="bookmarks", validation_alias="SYNC_TOPIC_PREFIX")
    tombstone_ttl_seconds: float = Field(
        default=30.0,
        validation_alias="SYNC_TOMBSTONE_TTL_SECONDS",
        description="How long a deleted id suppresses late insert events",
    )
    max_tombstones: int = Field(default=1024, validation_alias="SYNC_MAX_TOMBSTONES")
    success_flash_seconds: float = Field(
        default=3.0,
        validation_alias="SUBMISSION_SUCCESS_FLASH_SECONDS",
        description="Lifetime of the transient 'saved' signal after a submission",
    )

    @field_validator("topic_prefix", mode="before")
    @classmethod
    def _validate_topic_prefix(cls, value: Any) -> str:
        prefix = str(value if value not in (None, "") else "bookmarks").strip()
        if not prefix or ":" in prefix:
            msg = "Sync topic prefix must be non-empty and must not contain ':'"
            raise ValueError(msg)
        return prefix

    @field_validator("tombstone_ttl_seconds", "success_flash_seconds", mode="before")
    @classmethod
    def _validate_seconds(cls, value: Any, info: ValidationInfo) -> float:
        default = cls.model_fields[info.field_name].default
        try:
            parsed = float(str(value if value not in (None, "") else default))
        except ValueError as exc:
            msg = f"{info.field_name.replace('_', ' ')} must be a valid number"
            raise ValueError(msg) from exc
        if parsed <= 0 or parsed > 3600:
            msg = f"{info.field_name.replace('_', ' ').capitalize()} must be between 0 and 3600"
            raise ValueError(msg)
        return parsed

    @field_validator("max_tombstones", mode="before")
    @classmethod
    def _validate_max_tombstones(cls, value: Any) -> int:
        try:
            parsed = int(str(value if value not in (None, "") else 1024))
        except ValueError as exc:
            msg = "Max tombstones must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 1 or parsed > 100000:
            msg = "Max tombstones must be between 1 and 100000"
            raise ValueError(msg)
        return parsed
