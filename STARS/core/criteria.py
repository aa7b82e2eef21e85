"""
STARS/core/criteria.py

Criterion Registry: the weighted criteria raters score states against.

Criteria are never removed: ``deactivate`` flips ``active`` so ratings that
reference a retired criterion keep a valid target while being ignored by the
aggregation engine.

License: MIT

Examples
--------
>>> from STARS.core.backends import MemoryBackend
>>> reg = CriterionRegistry(MemoryBackend())
>>> cost = reg.create("Cost of Living", 1.0, "#1976D2")
>>> reg.update(cost.id, weight=2.5).weight
2.5
>>> reg.deactivate(cost.id).active
False
"""
from __future__ import annotations
import logging
import math
import threading
import uuid
from numbers import Real
from typing import Any, Dict, List

from .backends import StorageBackend
from .errors import NotFoundError, ValidationError
from .models import Criterion

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#1976D2"
EDITABLE_FIELDS = ("name", "weight", "color", "active")


def validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("criterion name cannot be empty")
    return name.strip()


def validate_weight(weight: Any) -> float:
    # bool is a Real subclass; True must not sneak in as weight 1.0
    if isinstance(weight, bool) or not isinstance(weight, Real):
        raise ValidationError(f"criterion weight must be a number, got {weight!r}")
    w = float(weight)
    if not math.isfinite(w) or w <= 0:
        raise ValidationError(f"criterion weight must be > 0, got {weight!r}")
    return w


class CriterionRegistry:
    def __init__(self, backend: StorageBackend):
        self.backend = backend
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, criterion_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(criterion_id, threading.Lock())

    def list_active(self) -> List[Criterion]:
        return [c for c in self.backend.list_criteria() if c.active]

    def list_all(self) -> List[Criterion]:
        return self.backend.list_criteria()

    def get(self, criterion_id: str) -> Criterion:
        crit = self.backend.get_criterion(criterion_id)
        if crit is None:
            raise NotFoundError("criterion", criterion_id)
        return crit

    def create(self, name: str, weight: float = 1.0, color: str = DEFAULT_COLOR) -> Criterion:
        crit = Criterion(
            id=str(uuid.uuid4()),
            name=validate_name(name),
            weight=validate_weight(weight),
            color=(color or DEFAULT_COLOR).strip(),
            active=True,
        )
        self.backend.save_criterion(crit)
        logger.info(f"Created criterion {crit.id} {crit}")
        return crit

    def update(self, criterion_id: str, **fields: Any) -> Criterion:
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"unknown criterion field(s): {', '.join(sorted(unknown))}")

        changes: Dict[str, Any] = {}
        if "name" in fields:
            changes["name"] = validate_name(fields["name"])
        if "weight" in fields:
            changes["weight"] = validate_weight(fields["weight"])
        if "color" in fields:
            changes["color"] = (fields["color"] or DEFAULT_COLOR).strip()
        if "active" in fields:
            if not isinstance(fields["active"], bool):
                raise ValidationError("criterion 'active' must be a boolean")
            changes["active"] = fields["active"]

        with self._lock_for(criterion_id):
            crit = self.get(criterion_id).with_changes(**changes)
            self.backend.save_criterion(crit)
        if changes.get("active") is False:
            logger.info(f"Deactivated criterion {criterion_id}")
        return crit

    def deactivate(self, criterion_id: str) -> Criterion:
        return self.update(criterion_id, active=False)

    def __repr__(self) -> str:
        return f"CriterionRegistry(backend={self.backend!r})"
