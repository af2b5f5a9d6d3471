"""Property-based tests for plugin name validation."""

from __future__ import annotations

import pytest
from hypothesis import given, settings, strategies as st

from noderun.core.validation import InvalidInvocationError, validate_plugin_name

ALLOWED = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_.:-"
FORBIDDEN = " \t\n;|$`&<>/\\'\"*?()"


@given(st.text(alphabet=ALLOWED, min_size=1, max_size=64))
@settings(max_examples=200, deadline=None)
def test_allowed_characters_are_accepted(name: str) -> None:
    assert validate_plugin_name(name) == name


@given(
    st.text(alphabet=ALLOWED, max_size=16),
    st.sampled_from(FORBIDDEN),
    st.text(alphabet=ALLOWED, max_size=16),
)
@settings(max_examples=200, deadline=None)
def test_any_forbidden_character_is_rejected(prefix: str, bad: str, suffix: str) -> None:
    with pytest.raises(InvalidInvocationError):
        validate_plugin_name(prefix + bad + suffix)
