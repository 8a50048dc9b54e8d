"""URL and title validation for submitted bookmarks.

Turns raw user input into an accepted absolute URL or a classified
``BookmarkValidationError``. Pure and deterministic: no network access.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from linkstash.domain.exceptions.domain_exceptions import (
    BookmarkValidationError,
    ValidationCode,
)

logger = logging.getLogger(__name__)

_SCHEME_PREFIX = re.compile(r"^https?://", re.IGNORECASE | re.ASCII)
_DOTTED_QUAD = re.compile(r"^\d+\.\d+\.\d+\.\d+$")
_FORBIDDEN_HOST_CHARS = frozenset(" \t\r\n<>\"'\\^|{}%")

_LOCAL_HOSTNAMES: frozenset[str] = frozenset(["localhost"])


@dataclass(frozen=True)
class UrlCheck:
    """Non-raising outcome of :func:`check_bookmark_url` for form layers."""

    valid: bool
    formatted: str = ""
    error: BookmarkValidationError | None = None


def _parse_hostname(formatted: str) -> str | None:
    """Return the lowercased hostname of an absolute URL, or None if it does not parse."""
    try:
        parts = urlsplit(formatted)
        # Accessing .port validates it; a non-numeric port raises ValueError.
        _ = parts.port
    except ValueError:
        return None
    hostname = parts.hostname
    if not hostname or any(char in _FORBIDDEN_HOST_CHARS for char in hostname):
        return None
    return hostname


def _is_private_host(hostname: str) -> bool:
    return hostname in _LOCAL_HOSTNAMES or bool(_DOTTED_QUAD.match(hostname))


def normalize_bookmark_url(raw: str) -> str:
    """Normalize a user-submitted URL.

    - Trim whitespace
    - Require at least one dot in the host part
    - Prepend ``https://`` when no http(s) scheme is given
    - Require a parseable hostname with a top-level label of 2+ characters
    - Reject ``localhost`` and dotted-quad IPv4 literals

    Local and IP hosts are classified as ``NOT_PUBLIC_HOST`` even when they would
    also fail the shape checks, so ``"localhost"`` is reported as non-public
    rather than malformed.

    Args:
        raw: URL as typed by the user.

    Returns:
        The accepted URL, e.g. ``"https://google.com"`` for ``"google.com"``.

    Raises:
        BookmarkValidationError: With code MISSING_URL, INVALID_FORMAT or NOT_PUBLIC_HOST.

    """
    value = (raw or "").strip()
    if not value:
        raise BookmarkValidationError(ValidationCode.MISSING_URL, field="url")

    formatted = value if _SCHEME_PREFIX.match(value) else f"https://{value}"
    hostname = _parse_hostname(formatted)

    if hostname is not None and _is_private_host(hostname):
        logger.debug("bookmark_url_private_host", extra={"hostname": hostname})
        raise BookmarkValidationError(
            ValidationCode.NOT_PUBLIC_HOST, field="url", details={"hostname": hostname}
        )

    if "." not in _SCHEME_PREFIX.sub("", value, count=1):
        raise BookmarkValidationError(ValidationCode.INVALID_FORMAT, field="url")

    if hostname is None:
        logger.debug("bookmark_url_unparsable", extra={"url": formatted[:100]})
        raise BookmarkValidationError(ValidationCode.INVALID_FORMAT, field="url")

    labels = hostname.split(".")
    if len(labels) < 2 or len(labels[-1]) < 2:
        raise BookmarkValidationError(
            ValidationCode.INVALID_FORMAT, field="url", details={"hostname": hostname}
        )

    return formatted


def check_bookmark_url(raw: str) -> UrlCheck:
    """Validate ``raw`` without raising."""
    try:
        return UrlCheck(valid=True, formatted=normalize_bookmark_url(raw))
    except BookmarkValidationError as exc:
        return UrlCheck(valid=False, error=exc)


def validate_title(raw: str) -> str:
    """Return the trimmed title.

    Raises:
        BookmarkValidationError: With code MISSING_TITLE if nothing remains after trimming.

    """
    title = (raw or "").strip()
    if not title:
        raise BookmarkValidationError(ValidationCode.MISSING_TITLE, field="title")
    return title
