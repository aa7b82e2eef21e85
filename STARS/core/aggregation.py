"""
STARS/core/aggregation.py

Weighted per-state scoring from per-rater, per-criterion ratings.

This module provides:
- StateScore: score of one state under a view mode and criterion filter
- StateRow / RaterAverage: list-view rows with independent per-rater averages
- CriterionBreakdown: per-criterion detail for a single state
- ScoreAggregator: pull-based engine recomputing everything on read

Scoring is two-stage. Ratings of a state are grouped by active criterion and
each group is averaged across the raters who rated it (every rater counts
once). The state score is then the weight-normalized mean of those
per-criterion averages, so a criterion rated by a single rater still carries
its full weight. A state with no rated criterion reports ``has_ratings=False``
and a score of 0.0; callers must check the flag.

License: MIT

Examples
--------
>>> from STARS.core.service import create_service
>>> svc = create_service(seed_criteria=False)
>>> cost = svc.create_criterion("Cost", 1.0, "#1976D2")
>>> _ = svc.upsert_rating("primary", "CA", cost.id, 8)
>>> _ = svc.upsert_rating("secondary", "CA", cost.id, 6)
>>> [s.score for s in svc.compute_state_scores() if s.has_ratings]
[7.0]
"""
# STARS/core/aggregation.py
from __future__ import annotations
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np

from .criteria import CriterionRegistry
from .errors import ValidationError
from .models import RATING_MAX, Criterion, Rating, State
from .raters import RaterRoster
from .ratings import RatingStore
from .states import StateCatalog, normalize_code

COMBINED = "combined"
ALL_CRITERIA = "all"
SORT_KEYS = ("name", "rating")


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round like a display would (2.5 -> 3), unlike Python's banker's rounding."""
    q = 10 ** ndigits
    return math.floor(value * q + 0.5) / q


def star_value(score: float) -> int:
    """Integer 0..10 for discrete star display."""
    return int(max(0, min(RATING_MAX, round_half_up(score))))


def display_value(score: float) -> float:
    """Numeric summary with one decimal."""
    return round_half_up(score, 1)


@dataclass
class StateScore:
    state_code: str
    score: float = 0.0
    has_ratings: bool = False
    criteria_rated: int = 0
    ratings_used: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state_code": self.state_code,
            "score": self.score,
            "display": display_value(self.score),
            "stars": star_value(self.score),
            "has_ratings": self.has_ratings,
            "criteria_rated": self.criteria_rated,
            "ratings_used": self.ratings_used,
        }

    def __str__(self) -> str:
        if not self.has_ratings:
            return f"{self.state_code}: not rated"
        return f"{self.state_code}: {display_value(self.score):.1f} ({self.criteria_rated} criteria)"


@dataclass
class RaterAverage:
    average: float = 0.0
    has_ratings: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"average": self.average, "display": display_value(self.average),
                "has_ratings": self.has_ratings}


@dataclass
class StateRow:
    state: State
    combined: float = 0.0
    combined_has_ratings: bool = False
    rater_averages: Dict[str, RaterAverage] = field(default_factory=dict)

    def value_for(self, sort_by: str) -> Any:
        if sort_by == "name":
            return self.state.name
        if sort_by == "rating":
            return self.combined if self.combined_has_ratings else 0.0
        avg = self.rater_averages.get(sort_by)
        return avg.average if avg and avg.has_ratings else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.to_dict(),
            "combined": self.combined,
            "combined_display": display_value(self.combined),
            "has_ratings": self.combined_has_ratings,
            "raters": {rid: avg.to_dict() for rid, avg in self.rater_averages.items()},
        }


@dataclass
class CriterionBreakdown:
    criterion: Criterion
    values: Dict[str, Optional[int]]
    average: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {"criterion": self.criterion.to_dict(), "values": dict(self.values),
                "average": self.average}


def weighted_score(averages: Sequence[float], weights: Sequence[float]) -> Optional[float]:
    """Weight-normalized mean, or None when there is nothing to weigh."""
    if not averages:
        return None
    w = np.asarray(weights, dtype=float)
    total = float(w.sum())
    if total <= 0:
        return None
    return float(np.dot(np.asarray(averages, dtype=float), w) / total)


class ScoreAggregator:
    """
    Read-only scoring engine over a RatingStore snapshot.

    - view: "combined" (every rater) or a rater id (that rater only)
    - criterion_filter: "all"/None, or one criterion id

    Nothing is cached: each call reads the current ratings and active
    criteria. Unknown raters or filters yield unrated states, never errors.
    """

    def __init__(self,
                 ratings: RatingStore,
                 criteria: CriterionRegistry,
                 states: StateCatalog,
                 raters: RaterRoster):
        self.ratings = ratings
        self.criteria = criteria
        self.states = states
        self.raters = raters

    # --- selection ---

    def _weights(self, criterion_filter: Optional[str]) -> Dict[str, float]:
        active = {c.id: c.weight for c in self.criteria.list_active()}
        if criterion_filter in (None, ALL_CRITERIA):
            return active
        return {criterion_filter: active[criterion_filter]} if criterion_filter in active else {}

    @staticmethod
    def _select(rows: Iterable[Rating], weights: Dict[str, float], view: str) -> List[Rating]:
        return [r for r in rows
                if r.criterion_id in weights and (view == COMBINED or r.rater_id == view)]

    @staticmethod
    def _by_state(rows: Iterable[Rating]) -> Dict[str, List[Rating]]:
        grouped: Dict[str, List[Rating]] = defaultdict(list)
        for r in rows:
            grouped[r.state_code].append(r)
        return grouped

    # --- scoring ---

    @staticmethod
    def criterion_averages(rows: Iterable[Rating]) -> Dict[str, float]:
        """Per-criterion mean across raters, in first-seen criterion order."""
        groups: Dict[str, List[int]] = defaultdict(list)
        for r in rows:
            groups[r.criterion_id].append(r.value)
        return {cid: float(np.mean(vals)) for cid, vals in groups.items()}

    def _score(self, code: str, rows: List[Rating], weights: Dict[str, float]) -> StateScore:
        averages = self.criterion_averages(rows)
        score = weighted_score(list(averages.values()), [weights[c] for c in averages])
        if score is None:
            return StateScore(state_code=code)
        return StateScore(state_code=code, score=score, has_ratings=True,
                          criteria_rated=len(averages), ratings_used=len(rows))

    def compute_state_scores(self,
                             view: str = COMBINED,
                             criterion_filter: Optional[str] = ALL_CRITERIA) -> List[StateScore]:
        """One StateScore per catalog state, in catalog order."""
        weights = self._weights(criterion_filter)
        grouped = self._by_state(self._select(self.ratings.list_all(), weights, view))
        return [self._score(st.code, grouped.get(st.code, []), weights) for st in self.states]

    def score_for(self, state_code: str,
                  view: str = COMBINED,
                  criterion_filter: Optional[str] = ALL_CRITERIA) -> StateScore:
        st = self.states.get(state_code)
        weights = self._weights(criterion_filter)
        rows = self._select(self.ratings.list_by_state(st.code), weights, view)
        return self._score(st.code, rows, weights)

    def rated_count(self, view: str = COMBINED, criterion_filter: Optional[str] = ALL_CRITERIA) -> int:
        return sum(1 for s in self.compute_state_scores(view, criterion_filter) if s.has_ratings)

    def top_state(self, view: str = COMBINED,
                  criterion_filter: Optional[str] = ALL_CRITERIA) -> Optional[StateScore]:
        """Highest-scoring rated state; ties go to the earlier catalog entry."""
        best: Optional[StateScore] = None
        for s in self.compute_state_scores(view, criterion_filter):
            if s.has_ratings and (best is None or s.score > best.score):
                best = s
        return best

    # --- list view ---

    def state_table(self,
                    criterion_filter: Optional[str] = ALL_CRITERIA,
                    sort_by: str = "rating",
                    order: str = "desc") -> List[StateRow]:
        """
        Rows for the sortable list view.

        ``combined`` is the weighted score; each rater average is the plain
        mean of that rater's (filtered, active) ratings for the state.
        Unrated values sort as 0; ties keep catalog order.
        """
        if sort_by not in SORT_KEYS and sort_by not in self.raters:
            raise ValidationError(f"sort_by must be one of {SORT_KEYS} or a rater id, got {sort_by!r}")
        if order not in ("asc", "desc"):
            raise ValidationError(f"order must be 'asc' or 'desc', got {order!r}")

        weights = self._weights(criterion_filter)
        grouped = self._by_state(self._select(self.ratings.list_all(), weights, COMBINED))

        rows: List[StateRow] = []
        for st in self.states:
            state_rows = grouped.get(st.code, [])
            score = self._score(st.code, state_rows, weights)
            averages: Dict[str, RaterAverage] = {}
            for rid in self.raters.ids():
                vals = [r.value for r in state_rows if r.rater_id == rid]
                averages[rid] = (RaterAverage(float(np.mean(vals)), True) if vals
                                 else RaterAverage())
            rows.append(StateRow(state=st, combined=score.score,
                                 combined_has_ratings=score.has_ratings,
                                 rater_averages=averages))

        if sort_by == "name":
            rows.sort(key=lambda r: r.state.name.lower(), reverse=(order == "desc"))
        else:
            # stable sort: negate instead of reverse=True so ties keep catalog order
            sign = -1.0 if order == "desc" else 1.0
            rows.sort(key=lambda r: sign * r.value_for(sort_by))
        return rows

    # --- single state ---

    def state_breakdown(self, state_code: str, view: str = COMBINED) -> Dict[str, Any]:
        """
        Per-criterion detail for one state: each active criterion with every
        rater's value (None when unrated) and the cross-rater average.

        Raises:
            NotFoundError: unknown state code.
        """
        st = self.states.get(normalize_code(state_code))
        active = self.criteria.list_active()
        weights = {c.id: c.weight for c in active}
        rows = self._select(self.ratings.list_by_state(st.code), weights, view)

        rater_ids = self.raters.ids() if view == COMBINED else [view]
        detail: List[CriterionBreakdown] = []
        for crit in active:
            mine = {r.rater_id: r.value for r in rows if r.criterion_id == crit.id}
            values = {rid: mine.get(rid) for rid in rater_ids}
            rated = list(mine.values())
            detail.append(CriterionBreakdown(
                criterion=crit,
                values=values,
                average=float(np.mean(rated)) if rated else None,
            ))

        score = self._score(st.code, rows, weights)
        return {
            "state": st,
            "view": view,
            "criteria": detail,
            "score": score,
        }

    def __repr__(self) -> str:
        return f"ScoreAggregator(states={len(self.states)}, raters={self.raters.ids()!r})"
