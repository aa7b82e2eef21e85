"""
STARS/core/ratings.py

Rating Store: owns the rating collection and enforces the central rule of at
most one rating per (rater, state, criterion) triple.

``upsert`` validates first, then runs its lookup-then-write under a lock
scoped to the triple, so two concurrent writers on the same key end up with
one row (last writer wins) and writers on different keys do not contend.

License: MIT
"""
from __future__ import annotations
import logging
import threading
import uuid
from numbers import Integral
from typing import Any, Dict, List, Optional

from .backends import StorageBackend
from .criteria import CriterionRegistry
from .errors import NotFoundError, ValidationError
from .models import RATING_MAX, RATING_MIN, Rating, RatingKey
from .raters import RaterRoster
from .states import StateCatalog, normalize_code

logger = logging.getLogger(__name__)


def validate_value(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise ValidationError(f"rating must be an integer, got {value!r}")
    if not RATING_MIN <= value <= RATING_MAX:
        raise ValidationError(f"rating must be between {RATING_MIN} and {RATING_MAX}, got {value}")
    return int(value)


def validate_notes(notes: Any) -> Optional[str]:
    if notes is not None and not isinstance(notes, str):
        raise ValidationError("notes must be a string")
    return notes


class RatingStore:
    def __init__(self,
                 backend: StorageBackend,
                 criteria: CriterionRegistry,
                 raters: RaterRoster,
                 states: StateCatalog):
        self.backend = backend
        self.criteria = criteria
        self.raters = raters
        self.states = states
        self._guard = threading.Lock()
        self._locks: Dict[RatingKey, threading.Lock] = {}

    def _lock_for(self, key: RatingKey) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    def _validated_key(self, rater_id: str, state_code: str, criterion_id: str) -> RatingKey:
        if rater_id not in self.raters:
            raise ValidationError(f"unknown rater: {rater_id!r}")
        code = normalize_code(state_code)
        if code not in self.states:
            raise ValidationError(f"unknown state code: {state_code!r}")
        crit = self.backend.get_criterion(criterion_id)
        if crit is None:
            raise ValidationError(f"unknown criterion: {criterion_id!r}")
        if not crit.active:
            raise ValidationError(f"criterion {crit.name!r} is inactive")
        return (rater_id, code, criterion_id)

    def upsert(self,
               rater_id: str,
               state_code: str,
               criterion_id: str,
               value: int,
               notes: Optional[str] = None) -> Rating:
        """
        Create or overwrite the rating for (rater, state, criterion).

        An existing row keeps its id; ``notes=None`` keeps the stored notes.

        Raises:
            ValidationError: value outside 1..10, unknown rater/state, unknown
                or inactive criterion. Nothing is written in that case.
        """
        value = validate_value(value)
        notes = validate_notes(notes)
        key = self._validated_key(rater_id, state_code, criterion_id)

        with self._lock_for(key):
            existing = self.backend.find_rating(key)
            if existing is not None:
                rating = existing.with_changes(
                    value=value,
                    notes=existing.notes if notes is None else notes,
                )
                logger.debug(f"Updated {rating}")
            else:
                rating = Rating(id=str(uuid.uuid4()), rater_id=key[0], state_code=key[1],
                                criterion_id=key[2], value=value, notes=notes)
                logger.debug(f"Created {rating}")
            return self.backend.save_rating(rating)

    def update(self, rating_id: str, value: Optional[int] = None, notes: Optional[str] = None) -> Rating:
        """Change value and/or notes of an existing rating by id."""
        if value is not None:
            value = validate_value(value)
        notes = validate_notes(notes)

        current = self.backend.get_rating(rating_id)
        if current is None:
            raise NotFoundError("rating", rating_id)
        with self._lock_for(current.key):
            current = self.backend.get_rating(rating_id)
            if current is None:
                raise NotFoundError("rating", rating_id)
            rating = current.with_changes(
                value=current.value if value is None else value,
                notes=current.notes if notes is None else notes,
            )
            return self.backend.save_rating(rating)

    def get(self, rating_id: str) -> Optional[Rating]:
        return self.backend.get_rating(rating_id)

    def list(self, rater_id: Optional[str] = None, state_code: Optional[str] = None) -> List[Rating]:
        code = normalize_code(state_code) if state_code is not None else None
        return self.backend.list_ratings(rater_id=rater_id, state_code=code)

    def list_by_rater(self, rater_id: str) -> List[Rating]:
        return self.list(rater_id=rater_id)

    def list_by_state(self, state_code: str) -> List[Rating]:
        return self.list(state_code=state_code)

    def list_all(self) -> List[Rating]:
        return self.backend.list_ratings()

    def delete(self, rating_id: str) -> bool:
        current = self.backend.get_rating(rating_id)
        if current is None:
            return False
        with self._lock_for(current.key):
            removed = self.backend.delete_rating(rating_id)
        if removed:
            logger.debug(f"Deleted rating {rating_id}")
        return removed

    def count(self) -> int:
        return self.backend.count_ratings()

    def __repr__(self) -> str:
        return f"RatingStore(backend={self.backend!r}, n={self.count()})"
