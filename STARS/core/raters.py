"""
STARS/core/raters.py

Roster of rater identities. The reference deployment has two raters
("primary", "secondary"); any small set of stable ids is accepted.

License: MIT
"""
from __future__ import annotations
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Union

from .errors import NotFoundError, ValidationError
from .models import Rater

DEFAULT_RATERS = (
    Rater(id="primary", label="Primary"),
    Rater(id="secondary", label="Secondary"),
)

RaterEntry = Union[Rater, Mapping[str, str]]


class RaterRoster:
    def __init__(self, raters: Optional[Iterable[RaterEntry]] = None):
        self._raters: Dict[str, Rater] = {}
        for entry in (DEFAULT_RATERS if raters is None else raters):
            self.add(entry)

    def add(self, entry: RaterEntry) -> Rater:
        if isinstance(entry, Rater):
            rater = entry
        else:
            rid = str(entry.get("id") or "").strip()
            rater = Rater(id=rid, label=str(entry.get("label") or rid).strip())
        if not rater.id:
            raise ValidationError("rater id cannot be empty")
        if rater.id in self._raters:
            raise ValidationError(f"duplicate rater id: {rater.id}")
        self._raters[rater.id] = rater
        return rater

    def get(self, rater_id: str) -> Rater:
        try:
            return self._raters[rater_id]
        except KeyError:
            raise NotFoundError("rater", rater_id) from None

    def ids(self) -> List[str]:
        return list(self._raters)

    def list_raters(self) -> List[Rater]:
        return list(self._raters.values())

    def __contains__(self, rater_id: object) -> bool:
        return rater_id in self._raters

    def __iter__(self) -> Iterator[Rater]:
        return iter(self._raters.values())

    def __len__(self) -> int:
        return len(self._raters)

    def __repr__(self) -> str:
        return f"RaterRoster({self.ids()!r})"
