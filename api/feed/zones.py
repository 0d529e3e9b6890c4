"""
Zone classification.

A confirmation attribute (forming / stable / core) may be stored as a boolean
flag (`core_confirmed`) or as a milestone timestamp (`core_confirmed_at`),
depending on which schema revision the table is on. Both are read into a
`Confirmation` value and tested with `is_confirmed`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Union


class Zone(str, Enum):
    CORE = "core"
    STABLE = "stable"
    EARLY = "early"


# Priority order: dedup keeps the first zone a record appears in.
ZONE_ORDER: tuple[Zone, ...] = (Zone.CORE, Zone.STABLE, Zone.EARLY)

FORMING = "forming_confirmed"
STABLE = "stable_confirmed"
CORE = "core_confirmed"

FALSE_STRINGS = {"false", "0"}


@dataclass(frozen=True)
class Flag:
    value: bool


@dataclass(frozen=True)
class Timestamp:
    value: str | None


@dataclass(frozen=True)
class Absent:
    pass


Confirmation = Union[Flag, Timestamp, Absent]

ABSENT = Absent()


def from_raw(value: Any) -> Confirmation:
    # bool is checked first: it is also an int.
    if isinstance(value, bool):
        return Flag(value)
    if isinstance(value, (int, float)):
        return Flag(value == 1)
    if isinstance(value, str):
        return Timestamp(value)
    return ABSENT


def is_confirmed(confirmation: Confirmation) -> bool:
    if isinstance(confirmation, Flag):
        return confirmation.value
    if isinstance(confirmation, Timestamp):
        text = (confirmation.value or "").strip().lower()
        return bool(text) and text not in FALSE_STRINGS
    return False


def attribute_confirmed(record: Mapping[str, Any], attribute: str) -> bool:
    """
    True when either the flag column or its `_at` timestamp column confirms.
    """
    return is_confirmed(from_raw(record.get(attribute))) or is_confirmed(
        from_raw(record.get(f"{attribute}_at"))
    )


@dataclass(frozen=True)
class ZonePolicy:
    # Stricter variant: EARLY needs a forming confirmation, otherwise the
    # record is left out of the feed.
    early_requires_forming: bool = False


DEFAULT_POLICY = ZonePolicy()


def classify(record: Mapping[str, Any], policy: ZonePolicy = DEFAULT_POLICY) -> Zone | None:
    """
    Assign a record to exactly one zone. CORE wins over STABLE.

    Returns None only under `early_requires_forming` for records with no
    confirmation at all.
    """
    if attribute_confirmed(record, CORE):
        return Zone.CORE
    if attribute_confirmed(record, STABLE):
        return Zone.STABLE
    if policy.early_requires_forming and not attribute_confirmed(record, FORMING):
        return None
    return Zone.EARLY
