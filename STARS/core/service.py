"""
STARS/core/service.py

StarsService: the synchronous API consumed by the REST binding and the CLIs.

One service owns one storage backend and hands the same handle to the
criterion registry, the rating store, the aggregation engine and the
agreement analyzer. There is no module-level instance: build one with
create_service() at startup and close() it on shutdown (or use it as a
context manager in tests).

License: MIT

Examples
--------
>>> with create_service(backend="memory") as svc:
...     crit = svc.list_criteria()[0]
...     svc.upsert_rating("primary", "TX", crit.id, 5).value
5
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from .agreement import AgreementAnalyzer, AgreementSummary
from .aggregation import ALL_CRITERIA, COMBINED, ScoreAggregator, StateRow, StateScore
from .backends import StorageBackend, open_backend
from .config import StarsConfig, load_config
from .criteria import CriterionRegistry
from .errors import NotFoundError, ValidationError
from .models import Criterion, Rater, Rating, State
from .raters import RaterRoster
from .ratings import RatingStore
from .states import StateCatalog

logger = logging.getLogger(__name__)

DEFAULT_CRITERIA = (
    ("Cost of Living", 1.0, "#1976D2"),
    ("Climate", 1.5, "#DC004E"),
    ("Job Market", 2.0, "#388E3C"),
    ("Culture & Entertainment", 1.0, "#F57C00"),
)


class StarsService:
    def __init__(self,
                 backend: StorageBackend,
                 raters: Optional[RaterRoster] = None,
                 states: Optional[StateCatalog] = None,
                 agreement_tolerance: int = 2):
        self.backend = backend
        self.raters = raters if raters is not None else RaterRoster()
        self.states = states if states is not None else StateCatalog.default()
        self.criteria = CriterionRegistry(backend)
        self.ratings = RatingStore(backend, self.criteria, self.raters, self.states)
        self.aggregator = ScoreAggregator(self.ratings, self.criteria, self.states, self.raters)
        self.agreement = AgreementAnalyzer(self.ratings, self.aggregator, tolerance=agreement_tolerance)
        self._closed = False

    # --- lifecycle ---

    def seed_default_criteria(self) -> List[Criterion]:
        """Create the default criteria when the registry is empty."""
        if self.criteria.list_all():
            return []
        created = [self.criteria.create(name, weight, color) for name, weight, color in DEFAULT_CRITERIA]
        logger.info(f"Seeded {len(created)} default criteria")
        return created

    def close(self) -> None:
        if not self._closed:
            self.backend.close()
            self._closed = True

    def __enter__(self) -> "StarsService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # --- reference data ---

    def list_states(self) -> List[State]:
        return self.states.list_states()

    def get_state(self, code: str) -> State:
        return self.states.get(code)

    def list_raters(self) -> List[Rater]:
        return self.raters.list_raters()

    # --- criteria ---

    def list_criteria(self, include_inactive: bool = False) -> List[Criterion]:
        return self.criteria.list_all() if include_inactive else self.criteria.list_active()

    def get_criterion(self, criterion_id: str) -> Criterion:
        return self.criteria.get(criterion_id)

    def create_criterion(self, name: str, weight: float = 1.0, color: str = "#1976D2") -> Criterion:
        return self.criteria.create(name, weight, color)

    def update_criterion(self, criterion_id: str, **fields: Any) -> Criterion:
        return self.criteria.update(criterion_id, **fields)

    def deactivate_criterion(self, criterion_id: str) -> Criterion:
        return self.criteria.deactivate(criterion_id)

    # --- ratings ---

    def upsert_rating(self, rater_id: str, state_code: str, criterion_id: str,
                      value: int, notes: Optional[str] = None) -> Rating:
        return self.ratings.upsert(rater_id, state_code, criterion_id, value, notes)

    def update_rating(self, rating_id: str, value: Optional[int] = None,
                      notes: Optional[str] = None) -> Rating:
        return self.ratings.update(rating_id, value=value, notes=notes)

    def get_rating(self, rating_id: str) -> Rating:
        rating = self.ratings.get(rating_id)
        if rating is None:
            raise NotFoundError("rating", rating_id)
        return rating

    def delete_rating(self, rating_id: str) -> bool:
        return self.ratings.delete(rating_id)

    def list_ratings(self, rater_id: Optional[str] = None,
                     state_code: Optional[str] = None) -> List[Rating]:
        return self.ratings.list(rater_id=rater_id, state_code=state_code)

    # --- derived views ---

    def compute_state_scores(self, view: str = COMBINED,
                             criterion_filter: Optional[str] = ALL_CRITERIA) -> List[StateScore]:
        return self.aggregator.compute_state_scores(view, criterion_filter)

    def state_table(self, criterion_filter: Optional[str] = ALL_CRITERIA,
                    sort_by: str = "rating", order: str = "desc") -> List[StateRow]:
        return self.aggregator.state_table(criterion_filter, sort_by=sort_by, order=order)

    def state_breakdown(self, state_code: str, view: str = COMBINED):
        return self.aggregator.state_breakdown(state_code, view)

    def top_state(self, view: str = COMBINED,
                  criterion_filter: Optional[str] = ALL_CRITERIA) -> Optional[StateScore]:
        return self.aggregator.top_state(view, criterion_filter)

    def compute_agreement(self, rater_a: Optional[str] = None,
                          rater_b: Optional[str] = None) -> AgreementSummary:
        """
        Agreement between two raters (default: the first two of the roster).

        Raises:
            ValidationError: unknown rater ids, the same rater twice, or a
                roster with fewer than two raters when defaults are needed.
        """
        ids = self.raters.ids()
        if rater_a is None or rater_b is None:
            if len(ids) < 2:
                raise ValidationError("agreement needs two raters")
            rater_a = ids[0] if rater_a is None else rater_a
            rater_b = ids[1] if rater_b is None else rater_b
        for rid in (rater_a, rater_b):
            if rid not in self.raters:
                raise ValidationError(f"unknown rater: {rid!r}")
        if rater_a == rater_b:
            raise ValidationError("agreement needs two distinct raters")
        return self.agreement.compute(rater_a, rater_b)

    def __repr__(self) -> str:
        return f"StarsService(backend={self.backend!r}, raters={self.raters.ids()!r})"


def create_service(config: Optional[StarsConfig] = None, **overrides: Any) -> StarsService:
    """
    Build a service from configuration.

    Args:
        config: Resolved configuration (load_config() is called when None)
        **overrides: Explicit options forwarded to load_config()

    Returns:
        StarsService with the configured backend, seeded when requested
    """
    if config is None:
        config = load_config(**overrides)
    elif overrides:
        raise ValueError("pass either a config or keyword overrides, not both")

    backend = open_backend(config.backend, config.db_path)
    service = StarsService(backend,
                           raters=RaterRoster(config.raters),
                           agreement_tolerance=config.agreement_tolerance)
    if config.seed_criteria:
        service.seed_default_criteria()
    logger.info(f"STARS service ready ({backend.name} backend, {len(service.raters)} raters)")
    return service
