"""
STARS/core/errors.py

Error taxonomy shared by the registry, the rating store and the service.

- ValidationError: bad input (out-of-range rating, non-positive weight, empty field)
- NotFoundError: an operation referenced an unknown id or state code
- ConflictError: a write would give a second row the key another row holds

Callers (REST binding, CLIs) map these kinds to transport-level outcomes.

License: MIT
"""
from __future__ import annotations


class StarsError(Exception):
    """Base class for all STARS errors."""


class ValidationError(StarsError, ValueError):
    """Input rejected before any mutation took place."""


class NotFoundError(StarsError, LookupError):
    """Referenced entity does not exist."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class ConflictError(StarsError):
    """A row write collided with the (rater, state, criterion) key of another row."""
