"""Push-channel connection state as seen by the presentation layer."""

from enum import Enum


class ConnectionState(str, Enum):
    """Lifecycle of one channel subscription; says nothing about data correctness."""

    CONNECTING = "connecting"
    LIVE = "live"
    ERROR = "error"
