"""Unit tests for identity-key handling."""

from __future__ import annotations

import pytest

from polystore.identity import extract_identity, swap_keys
from polystore.ports import FetchedRecord


class TestSwapKeys:
    def test_swaps_both_keys(self) -> None:
        assert swap_keys("id", "_id", {"id": 1, "_id": 2, "x": 3}) == {
            "_id": 1,
            "id": 2,
            "x": 3,
        }

    def test_renames_the_present_key_only(self) -> None:
        assert swap_keys("id", "_id", {"id": "abc"}) == {"_id": "abc"}
        assert swap_keys("id", "_id", {"_id": "abc"}) == {"id": "abc"}

    def test_absent_keys_stay_absent(self) -> None:
        assert swap_keys("id", "_id", {"x": 1}) == {"x": 1}

    def test_none_values_are_kept(self) -> None:
        assert swap_keys("id", "_id", {"id": None}) == {"_id": None}

    def test_is_an_involution(self) -> None:
        obj = {"id": 1, "x": {"id": 2}}
        assert swap_keys("id", "_id", swap_keys("id", "_id", obj)) == obj

    def test_returns_a_copy(self) -> None:
        obj = {"id": 1}
        swap_keys("id", "_id", obj)
        assert obj == {"id": 1}


def test_extract_identity_pops_native_key_and_stringifies() -> None:
    raw = {"_id": 42, "a": 1}
    assert extract_identity(raw, "_id") == FetchedRecord("42", {"a": 1})
    assert raw == {"_id": 42, "a": 1}


def test_extract_identity_requires_native_key() -> None:
    with pytest.raises(KeyError):
        extract_identity({"a": 1}, "_id")
