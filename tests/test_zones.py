"""Tests for feed.zones: confirmation values and zone classification."""

from __future__ import annotations

import itertools

import pytest

from feed.zones import (
    ABSENT,
    Flag,
    Timestamp,
    Zone,
    ZonePolicy,
    attribute_confirmed,
    classify,
    from_raw,
    is_confirmed,
)

TS = "2024-05-01T12:00:00+00:00"


class TestFromRaw:
    def test_bool(self):
        assert from_raw(True) == Flag(True)
        assert from_raw(False) == Flag(False)

    def test_numeric_only_one_is_true(self):
        assert from_raw(1) == Flag(True)
        assert from_raw(1.0) == Flag(True)
        assert from_raw(0) == Flag(False)
        assert from_raw(2) == Flag(False)

    def test_string_is_timestamp(self):
        assert from_raw(TS) == Timestamp(TS)
        assert from_raw("") == Timestamp("")

    def test_none_and_other_types_are_absent(self):
        assert from_raw(None) is ABSENT
        assert from_raw({"at": TS}) is ABSENT
        assert from_raw([TS]) is ABSENT


class TestIsConfirmed:
    @pytest.mark.parametrize("value", [Flag(True), Timestamp(TS), Timestamp("true"), Timestamp("1"), Timestamp("yes")])
    def test_confirmed(self, value):
        assert is_confirmed(value) is True

    @pytest.mark.parametrize(
        "value",
        [
            Flag(False),
            Timestamp(None),
            Timestamp(""),
            Timestamp("   "),
            Timestamp("false"),
            Timestamp(" FALSE "),
            Timestamp("0"),
            ABSENT,
        ],
    )
    def test_not_confirmed(self, value):
        assert is_confirmed(value) is False

    def test_attribute_uses_flag_or_timestamp(self):
        assert attribute_confirmed({"core_confirmed": True}, "core_confirmed")
        assert attribute_confirmed({"core_confirmed_at": TS}, "core_confirmed")
        assert attribute_confirmed({"core_confirmed": False, "core_confirmed_at": TS}, "core_confirmed")
        assert not attribute_confirmed({"core_confirmed": False, "core_confirmed_at": None}, "core_confirmed")
        assert not attribute_confirmed({}, "core_confirmed")


class TestClassify:
    def test_core_and_stable_both_set_is_core(self):
        assert classify({"core_confirmed": True, "stable_confirmed": True}) is Zone.CORE

    def test_stable_only(self):
        assert classify({"stable_confirmed": True, "core_confirmed": False}) is Zone.STABLE

    def test_no_confirmation_is_early(self):
        assert classify({"ca": "x", "status": "passed"}) is Zone.EARLY

    def test_forming_only_is_early(self):
        assert classify({"forming_confirmed": True}) is Zone.EARLY

    @pytest.mark.parametrize("attribute, zone", [("core_confirmed", Zone.CORE), ("stable_confirmed", Zone.STABLE)])
    def test_flag_and_timestamp_are_equivalent(self, attribute, zone):
        assert classify({attribute: True}) is zone
        assert classify({f"{attribute}_at": TS}) is zone
        assert classify({attribute: 1}) is zone

    def test_false_string_timestamp_does_not_confirm(self):
        assert classify({"core_confirmed_at": "false", "stable_confirmed_at": "0"}) is Zone.EARLY

    def test_early_requires_forming_policy(self):
        strict = ZonePolicy(early_requires_forming=True)
        assert classify({}, strict) is None
        assert classify({"forming_confirmed_at": TS}, strict) is Zone.EARLY
        assert classify({"stable_confirmed": True}, strict) is Zone.STABLE

    def test_totality_and_exclusivity(self):
        representations = [None, True, False, 1, 0, TS, "", "false"]
        for core, core_at, stable, stable_at in itertools.product(representations, repeat=4):
            record = {
                "core_confirmed": core,
                "core_confirmed_at": core_at,
                "stable_confirmed": stable,
                "stable_confirmed_at": stable_at,
            }
            zone = classify(record)
            assert zone in (Zone.CORE, Zone.STABLE, Zone.EARLY)
            core_ok = attribute_confirmed(record, "core_confirmed")
            stable_ok = attribute_confirmed(record, "stable_confirmed")
            if zone is Zone.CORE:
                assert core_ok
            elif zone is Zone.STABLE:
                assert stable_ok and not core_ok
            else:
                assert not core_ok and not stable_ok
