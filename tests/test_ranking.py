"""Tests for feed.ranking: in-zone ordering."""

from __future__ import annotations

from core.store import Order
from feed.ranking import compare, rank, store_order


def _ids(rows):
    return [r["ca"] for r in rows]


class TestRank:
    def test_higher_score_first(self):
        rows = [{"ca": "a", "banana_score": 10}, {"ca": "b", "banana_score": 90}, {"ca": "c", "banana_score": 50}]
        assert _ids(rank(rows)) == ["b", "c", "a"]

    def test_equal_score_later_created_first(self):
        b = {"ca": "b", "banana_score": 100, "created_at": "2024-05-01T10:00:00+00:00"}
        a = {"ca": "a", "banana_score": 100, "created_at": "2024-05-01T11:00:00+00:00"}
        assert _ids(rank([b, a])) == ["a", "b"]

    def test_first_passed_at_breaks_created_tie(self):
        common = {"banana_score": 5, "created_at": "2024-05-01T10:00:00Z"}
        x = {"ca": "x", **common, "first_passed_at": "2024-05-01T10:05:00Z"}
        y = {"ca": "y", **common, "first_passed_at": "2024-05-01T10:30:00Z"}
        assert _ids(rank([x, y])) == ["y", "x"]

    def test_identity_is_final_tiebreak(self):
        rows = [{"ca": "c", "banana_score": 1}, {"ca": "a", "banana_score": 1}, {"ca": "b", "banana_score": 1}]
        assert _ids(rank(rows)) == ["a", "b", "c"]
        assert _ids(rank(list(reversed(rows)))) == ["a", "b", "c"]

    def test_nulls_sort_last_on_each_key(self):
        rows = [
            {"ca": "none", "banana_score": None, "created_at": "2030-01-01T00:00:00Z"},
            {"ca": "low", "banana_score": 1},
            {"ca": "old", "banana_score": 50, "created_at": "2020-01-01T00:00:00Z"},
            {"ca": "nodate", "banana_score": 50},
        ]
        assert _ids(rank(rows)) == ["old", "nodate", "low", "none"]

    def test_non_numeric_score_is_treated_as_null(self):
        rows = [{"ca": "bad", "banana_score": "n/a"}, {"ca": "ok", "banana_score": "3.5"}]
        assert _ids(rank(rows)) == ["ok", "bad"]

    def test_mixed_timestamp_offsets_compare_by_instant(self):
        utc = {"ca": "utc", "banana_score": 1, "created_at": "2024-05-01T10:00:00+00:00"}
        plus2 = {"ca": "plus2", "banana_score": 1, "created_at": "2024-05-01T11:00:00+02:00"}
        assert _ids(rank([plus2, utc])) == ["utc", "plus2"]

    def test_compare_is_antisymmetric(self):
        a = {"ca": "a", "banana_score": 2}
        b = {"ca": "b", "banana_score": 1}
        assert compare(a, b) == -1
        assert compare(b, a) == 1
        assert compare(a, dict(a)) == 0


class TestStoreOrder:
    def test_full_projection(self):
        order = store_order(["ca", "banana_score", "created_at", "first_passed_at"])
        assert [o.encode() for o in order] == [
            "banana_score.desc.nullslast",
            "created_at.desc.nullslast",
            "first_passed_at.desc.nullslast",
            "ca.asc",
        ]

    def test_only_projected_columns(self):
        assert store_order(["ca", "banana_score"]) == [Order("banana_score"), Order("ca", descending=False)]
