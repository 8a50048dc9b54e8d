from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SupabaseConfig(BaseModel):
    """Supabase REST backend used as the persistence collaborator."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str | None = Field(default=None, validation_alias="SUPABASE_URL")
    anon_key: str | None = Field(default=None, validation_alias="SUPABASE_ANON_KEY")
    table: str = Field(default="bookmarks", validation_alias="SUPABASE_TABLE")
    timeout_sec: float | None = Field(
        default=None,
        validation_alias="SUPABASE_TIMEOUT_SEC",
        description="Request timeout; unset means calls wait until the server answers",
    )

    @field_validator("url", mode="before")
    @classmethod
    def _validate_url(cls, value: Any) -> str | None:
        if value in (None, ""):
            return None
        url = str(value).strip().rstrip("/")
        if not url.startswith(("http://", "https://")):
            msg = "SUPABASE_URL must start with http:// or https://"
            raise ValueError(msg)
        return url

    @field_validator("anon_key", mode="before")
    @classmethod
    def _validate_anon_key(cls, value: Any) -> str | None:
        if value in (None, ""):
            return None
        return str(value).strip()

    @field_validator("timeout_sec", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> float | None:
        if value in (None, ""):
            return None
        try:
            timeout = float(str(value))
        except ValueError as exc:
            msg = "Supabase timeout must be a valid number"
            raise ValueError(msg) from exc
        if timeout <= 0:
            msg = "Supabase timeout must be positive"
            raise ValueError(msg)
        return timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)
