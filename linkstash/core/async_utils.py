"""Async helper utilities."""

from __future__ import annotations

import inspect
from typing import Any


async def maybe_await(result: Any) -> Any:
    """Await ``result`` if a callback returned an awaitable, otherwise pass it through."""
    if inspect.isawaitable(result):
        return await result
    return result
