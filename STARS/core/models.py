"""
STARS/core/models.py

Record types exchanged between the stores, the aggregation engine and the
outer surfaces (REST app, CLIs).

This module provides:
- Rater: stable rater identity with a display label
- Criterion: weighted rating dimension (soft-deleted through ``active``)
- State: immutable reference entry of the 50-state catalog
- Rating: one rater's 1..10 value for one (state, criterion) pair

License: MIT
"""
from __future__ import annotations
from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, Optional, Tuple

RATING_MIN = 1
RATING_MAX = 10

RatingKey = Tuple[str, str, str]  # (rater_id, state_code, criterion_id)


@dataclass(frozen=True)
class Rater:
    id: str
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __str__(self) -> str:
        return f"{self.label} ({self.id})"


@dataclass(frozen=True)
class Criterion:
    id: str
    name: str
    weight: float
    color: str
    active: bool = True

    def with_changes(self, **fields: Any) -> "Criterion":
        return replace(self, **fields)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __str__(self) -> str:
        flag = "" if self.active else ", inactive"
        return f"{self.name!r} (w={self.weight}{flag})"


@dataclass(frozen=True)
class State:
    code: str
    name: str
    abbreviation: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __str__(self) -> str:
        return f"{self.name} [{self.code}]"


@dataclass(frozen=True)
class Rating:
    """
    A single rating row.

    Frozen so that a snapshot handed to readers can never be changed behind
    their back; the store swaps whole rows on upsert.
    """
    id: str
    rater_id: str
    state_code: str
    criterion_id: str
    value: int
    notes: Optional[str] = None

    @property
    def key(self) -> RatingKey:
        return (self.rater_id, self.state_code, self.criterion_id)

    def with_changes(self, **fields: Any) -> "Rating":
        return replace(self, **fields)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __str__(self) -> str:
        return f"Rating[{self.id}] {self.rater_id}/{self.state_code}/{self.criterion_id}={self.value}"
