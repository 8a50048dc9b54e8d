"""Property-based tests for bookmark URL validation."""

from __future__ import annotations

import pytest

hypothesis = pytest.importorskip("hypothesis")
from hypothesis import given, settings, strategies as st

from linkstash.core.url_utils import normalize_bookmark_url
from linkstash.domain.exceptions.domain_exceptions import (
    BookmarkValidationError,
    ValidationCode,
)

_label = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789", min_size=1, max_size=12)
_tld = st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=2, max_size=6)


class TestUrlValidationProperties:
    @given(raw=st.text(max_size=80))
    @settings(max_examples=500, deadline=None)
    def test_only_classified_errors_escape(self, raw: str) -> None:
        try:
            result = normalize_bookmark_url(raw)
        except BookmarkValidationError as exc:
            assert isinstance(exc.code, ValidationCode)
        else:
            assert result.lower().startswith(("http://", "https://"))
            assert result == result.strip()

    @given(name=_label, tld=_tld)
    @settings(max_examples=200, deadline=None)
    def test_bare_domains_get_https(self, name: str, tld: str) -> None:
        host = f"{name}.{tld}"
        assert normalize_bookmark_url(host) == f"https://{host}"

    @given(name=_label, tld=_tld)
    @settings(max_examples=200, deadline=None)
    def test_normalization_is_idempotent(self, name: str, tld: str) -> None:
        once = normalize_bookmark_url(f"  {name}.{tld}/path ")
        assert normalize_bookmark_url(once) == once

    @given(octets=st.lists(st.integers(0, 255), min_size=4, max_size=4))
    @settings(max_examples=100, deadline=None)
    def test_ipv4_literals_are_not_public(self, octets: list[int]) -> None:
        with pytest.raises(BookmarkValidationError) as exc_info:
            normalize_bookmark_url(".".join(map(str, octets)))
        assert exc_info.value.code is ValidationCode.NOT_PUBLIC_HOST
