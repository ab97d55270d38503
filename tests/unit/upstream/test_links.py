"""Unit tests for upstream/links.py — share link normalization."""

import pytest

from ctfile_relay.errors import MissingParameter
from ctfile_relay.upstream.links import SHARE_LINK_PREFIX, normalize_share_link, require_param


class TestNormalizeShareLink:
    def test_prepends_prefix_to_bare_link(self) -> None:
        assert normalize_share_link("abc123") == "ctfile://abc123"

    def test_leaves_prefixed_link_unchanged(self) -> None:
        assert normalize_share_link("ctfile://abc123") == "ctfile://abc123"

    @pytest.mark.parametrize(
        "raw",
        ["abc123", "ctfile://abc123", "ctfile:/", "c", "https://url.ctfile.com/d/123", "ctfile://"],
    )
    def test_is_idempotent_and_always_prefixed(self, raw: str) -> None:
        once = normalize_share_link(raw)
        assert normalize_share_link(once) == once
        assert once.startswith(SHARE_LINK_PREFIX)


class TestRequireParam:
    def test_returns_present_value(self) -> None:
        assert require_param("abc", "xtlink") == "abc"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_rejects_absent_or_blank_value(self, value: str | None) -> None:
        with pytest.raises(MissingParameter, match='Missing "xtlink" parameter'):
            require_param(value, "xtlink")
