"""Supabase REST persistence adapter.

Talks to the PostgREST endpoint of a Supabase project. Row-level security on
the table is expected to enforce ownership; every query is additionally
scoped by ``user_id``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import TypeAdapter, ValidationError

from linkstash.adapters.supabase.models import BookmarkRow, CreateBookmarkRow
from linkstash.domain.exceptions.domain_exceptions import PersistenceError

if TYPE_CHECKING:
    from typing import Self

    from linkstash.config.supabase import SupabaseConfig
    from linkstash.domain.models.bookmark import BookmarkRecord

logger = logging.getLogger(__name__)

_ROWS = TypeAdapter(list[BookmarkRow])


class SupabaseBookmarkRepository:
    """``BookmarkRepository`` backed by the Supabase REST API.

    Use as an async context manager so the HTTP client is closed:

        ```python
        async with SupabaseBookmarkRepository.from_config(cfg, access_token) as repo:
            records = await repo.list(owner_id)
        ```

    Failed calls are not retried; every transport, HTTP status or payload
    error surfaces as ``PersistenceError``.
    """

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        *,
        access_token: str | None = None,
        table: str = "bookmarks",
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            base_url: Project URL, e.g. ``https://xyz.supabase.co``
            anon_key: Public anon key sent as ``apikey``
            access_token: Signed-in user's JWT; the anon key is used when omitted
            table: Bookmarks table name
            timeout: Request timeout in seconds; ``None`` waits indefinitely
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)

        """
        if not base_url or not anon_key:
            msg = "base_url and anon_key are required"
            raise ValueError(msg)
        self.base_url = base_url.rstrip("/")
        self.table = table
        self.timeout = timeout
        self._headers = {
            "apikey": anon_key,
            "Authorization": f"Bearer {access_token or anon_key}",
            "Content-Type": "application/json",
        }
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls,
        config: SupabaseConfig,
        access_token: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> SupabaseBookmarkRepository:
        if not config.is_configured:
            msg = "Supabase is not configured (SUPABASE_URL and SUPABASE_ANON_KEY)"
            raise ValueError(msg)
        return cls(
            str(config.url),
            str(config.anon_key),
            access_token=access_token,
            table=config.table,
            timeout=config.timeout_sec,
            transport=transport,
        )

    async def __aenter__(self) -> Self:
        """Enter async context."""
        self._client = self._build_client()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context."""
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it on first use."""
        if self._client is None:
            self._client = self._build_client()
        return self._client

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1",
            headers=self._headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    @property
    def _path(self) -> str:
        return f"/{self.table}"

    async def create(self, owner_id: str, title: str, url: str) -> BookmarkRecord:
        body = CreateBookmarkRow(owner_id=owner_id, title=title, url=url)
        records = await self._request(
            "create",
            "POST",
            json=body.model_dump(by_alias=True),
            headers={"Prefer": "return=representation"},
        )
        if not records:
            msg = "Create returned no row"
            raise PersistenceError(msg, operation="create")
        record = records[0]
        logger.info("supabase_bookmark_created", extra={"record_id": record.id})
        return record

    async def list(self, owner_id: str) -> list[BookmarkRecord]:
        records = await self._request(
            "list",
            "GET",
            params={
                "select": "*",
                "user_id": f"eq.{owner_id}",
                "order": "created_at.desc",
            },
        )
        logger.debug("supabase_bookmarks_listed", extra={"count": len(records)})
        return records

    async def delete(self, record_id: str, owner_id: str) -> None:
        await self._request(
            "delete",
            "DELETE",
            params={"id": f"eq.{record_id}", "user_id": f"eq.{owner_id}"},
        )
        logger.info("supabase_bookmark_deleted", extra={"record_id": record_id})

    async def _request(
        self,
        operation: str,
        method: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> list[BookmarkRecord]:
        try:
            response = await self.client.request(
                method, self._path, params=params, json=json, headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning(
                "supabase_request_rejected",
                extra={"operation": operation, "status": status, "body": exc.response.text[:500]},
            )
            msg = f"Supabase {operation} failed with HTTP {status}"
            raise PersistenceError(msg, operation=operation, details={"status": status}) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "supabase_request_failed",
                extra={"operation": operation, "error": str(exc), "error_type": type(exc).__name__},
            )
            msg = f"Supabase {operation} failed: {exc}"
            raise PersistenceError(msg, operation=operation) from exc

        if not response.content:
            return []
        try:
            return [row.to_record() for row in _ROWS.validate_python(response.json())]
        except (ValidationError, ValueError) as exc:
            logger.warning(
                "supabase_response_invalid", extra={"operation": operation, "error": str(exc)}
            )
            msg = f"Supabase {operation} returned an unexpected payload"
            raise PersistenceError(msg, operation=operation) from exc
