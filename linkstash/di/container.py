"""Dependency injection container for wiring components.

This container provides a centralized place to configure and wire the
persistence adapter, the push channel, the event bus and the collection
session from an ``AppConfig``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from linkstash.adapters.memory import InMemoryBookmarkRepository, InMemoryRealtimeChannel
from linkstash.adapters.supabase import SupabaseBookmarkRepository
from linkstash.application.use_cases.sync_collection import CollectionSession
from linkstash.core.logging_utils import setup_json_logging
from linkstash.infrastructure.messaging.channel_subscriber import ChannelSubscriber
from linkstash.infrastructure.messaging.event_bus import EventBus

if TYPE_CHECKING:
    from linkstash.config import AppConfig
    from linkstash.protocols import BookmarkRepository, RealtimeChannel

logger = logging.getLogger(__name__)


class Container:
    """Dependency injection container.

    Components are created lazily on first access and reused afterwards.

    Example:
        ```python
        container = Container(load_config(), access_token=jwt, channel=realtime)
        session = container.collection_session()
        await session.open(owner_id)
        ...
        await container.aclose()
        ```

    """

    def __init__(
        self,
        config: AppConfig,
        *,
        repository: BookmarkRepository | None = None,
        channel: RealtimeChannel | None = None,
        access_token: str | None = None,
    ) -> None:
        """Initialize the container.

        Args:
            config: Loaded application configuration.
            repository: Optional persistence adapter overriding the configured one.
            channel: Optional push channel; an in-memory channel is used when omitted.
            access_token: Signed-in user's JWT for the Supabase adapter.

        """
        self._config = config
        self._repository = repository
        self._channel = channel
        self._access_token = access_token

        # Lazy-initialized components
        self._event_bus: EventBus | None = None
        self._subscriber: ChannelSubscriber | None = None
        self._session: CollectionSession | None = None

    @property
    def config(self) -> AppConfig:
        return self._config

    def configure_logging(self) -> None:
        runtime = self._config.runtime
        setup_json_logging(runtime.log_level, runtime.log_file)

    def event_bus(self) -> EventBus:
        """Get or create the event bus.

        Returns:
            Singleton EventBus instance.

        """
        if self._event_bus is None:
            self._event_bus = EventBus()
        return self._event_bus

    def channel(self) -> RealtimeChannel:
        if self._channel is None:
            if self._config.supabase.is_configured:
                msg = "A RealtimeChannel must be supplied when using the Supabase repository"
                raise ValueError(msg)
            self._channel = InMemoryRealtimeChannel()
            logger.info("container_using_memory_channel")
        return self._channel

    def repository(self) -> BookmarkRepository:
        """Get or create the persistence adapter.

        Returns:
            The Supabase adapter when configured, otherwise an in-memory
            repository echoing writes to the in-memory channel.

        """
        if self._repository is None:
            if self._config.supabase.is_configured:
                self._repository = SupabaseBookmarkRepository.from_config(
                    self._config.supabase, self._access_token
                )
                logger.info("container_using_supabase_repository")
            else:
                channel = self.channel()
                echo = channel if isinstance(channel, InMemoryRealtimeChannel) else None
                self._repository = InMemoryBookmarkRepository(echo)
                logger.info("container_using_memory_repository")
        return self._repository

    def channel_subscriber(self) -> ChannelSubscriber:
        if self._subscriber is None:
            self._subscriber = ChannelSubscriber(
                self.channel(),
                topic_prefix=self._config.sync.topic_prefix,
                event_bus=self.event_bus(),
            )
        return self._subscriber

    def collection_session(self) -> CollectionSession:
        """Get or create the collection session.

        Returns:
            CollectionSession wired with the repository, subscriber and event bus.

        """
        if self._session is None:
            sync = self._config.sync
            self._session = CollectionSession(
                self.repository(),
                self.channel_subscriber(),
                event_bus=self.event_bus(),
                tombstone_ttl_seconds=sync.tombstone_ttl_seconds,
                max_tombstones=sync.max_tombstones,
                success_flash_seconds=sync.success_flash_seconds,
            )
        return self._session

    async def aclose(self) -> None:
        """Shut down the session and release network clients."""
        if self._session is not None:
            await self._session.shutdown()
        if self._subscriber is not None:
            await self._subscriber.stop_all()
        if isinstance(self._repository, SupabaseBookmarkRepository):
            await self._repository.aclose()
