"""In-memory event bus for bookmark domain events.

Lets the presentation layer react to submissions, collection changes,
failed deletions and connection state without the engine knowing who listens.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TypeVar

from linkstash.domain.events.bookmark_events import DomainEvent

logger = logging.getLogger(__name__)

TEvent = TypeVar("TEvent", bound=DomainEvent)

# Event handler type - async function that takes an event and returns None
EventHandler = Callable[[TEvent], Awaitable[None]]


def _handler_name(handler: Callable[..., object]) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class EventBus:
    """In-memory event bus for domain events.

    Handlers are awaited in subscription order. A failing handler is logged
    and does not prevent the remaining handlers from running.

    Example:
        ```python
        event_bus = EventBus()

        async def on_deletion_failed(event: BookmarkDeletionFailed) -> None:
            toast(f"Could not remove bookmark: {event.error_message}")

        unsubscribe = event_bus.subscribe(BookmarkDeletionFailed, on_deletion_failed)
        ```

    """

    def __init__(self) -> None:
        """Initialize the event bus."""
        self._handlers: dict[type, list[EventHandler]] = defaultdict(list)

    def subscribe(
        self,
        event_type: type[TEvent],
        handler: EventHandler[TEvent],
    ) -> Callable[[], None]:
        """Subscribe a handler to a specific event type.

        Args:
            event_type: The type of event to subscribe to (e.g., BookmarkSubmitted).
            handler: Async function to call when event is published.

        Returns:
            A function that removes this subscription.

        """
        self._handlers[event_type].append(handler)
        logger.debug(
            "event_handler_subscribed",
            extra={
                "event_type": event_type.__name__,
                "handler": _handler_name(handler),
                "total_handlers": len(self._handlers[event_type]),
            },
        )

        def _unsubscribe() -> None:
            self.unsubscribe(event_type, handler)

        return _unsubscribe

    def unsubscribe(
        self,
        event_type: type[TEvent],
        handler: EventHandler[TEvent],
    ) -> None:
        """Unsubscribe a handler from an event type.

        Unknown handlers are ignored with a warning, so calling this twice is safe.
        """
        handlers = self._handlers.get(event_type)
        if not handlers or handler not in handlers:
            logger.warning(
                "event_handler_not_found",
                extra={"event_type": event_type.__name__, "handler": _handler_name(handler)},
            )
            return
        handlers.remove(handler)
        logger.debug(
            "event_handler_unsubscribed",
            extra={"event_type": event_type.__name__, "handler": _handler_name(handler)},
        )

    async def publish(self, event: DomainEvent) -> int:
        """Publish a domain event to all subscribed handlers.

        Args:
            event: The domain event to publish.

        Returns:
            Number of handlers that failed.

        """
        event_type = type(event)
        handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            logger.debug(
                "event_published_no_handlers",
                extra={"event_type": event_type.__name__, "event_id": event.aggregate_id},
            )
            return 0

        logger.debug(
            "event_published",
            extra={
                "event_type": event_type.__name__,
                "event_id": event.aggregate_id,
                "handler_count": len(handlers),
            },
        )

        failures = 0
        for handler in handlers:
            try:
                await handler(event)
            except Exception as exc:
                failures += 1
                logger.exception(
                    "event_handler_failed",
                    extra={
                        "event_type": event_type.__name__,
                        "handler": _handler_name(handler),
                        "error": str(exc),
                    },
                )
        return failures

    def clear_handlers(self, event_type: type[TEvent] | None = None) -> None:
        """Clear handlers for a specific event type or all handlers."""
        if event_type is not None:
            self._handlers.pop(event_type, None)
        else:
            self._handlers.clear()

    def get_handler_count(self, event_type: type[TEvent]) -> int:
        """Get the number of handlers subscribed to an event type."""
        return len(self._handlers.get(event_type, []))
