"""
STARS/core/agreement.py

Cross-rater agreement statistics for the sidebar summary.

For every (state, criterion) pair rated by both raters one comparison is
counted; it is an agreement when the two values differ by at most the
tolerance (2 by default). The top state is taken from the aggregation engine's
combined scores, not from rating iteration order.

License: MIT
"""
# STARS/core/agreement.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .aggregation import COMBINED, ScoreAggregator, display_value, round_half_up
from .errors import ValidationError
from .ratings import RatingStore

DEFAULT_TOLERANCE = 2


@dataclass
class AgreementSummary:
    rater_a: str
    rater_b: str
    comparisons: int = 0
    agreements: int = 0
    rated_state_count: int = 0
    top_state: Optional[str] = None
    top_score: Optional[float] = None
    tolerance: int = DEFAULT_TOLERANCE

    @property
    def agreement_rate_pct(self) -> int:
        if self.comparisons == 0:
            return 0
        return int(round_half_up(self.agreements / self.comparisons * 100))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rater_a": self.rater_a,
            "rater_b": self.rater_b,
            "agreement_rate_pct": self.agreement_rate_pct,
            "comparisons": self.comparisons,
            "agreements": self.agreements,
            "rated_state_count": self.rated_state_count,
            "top_state": self.top_state,
            "top_score": None if self.top_score is None else display_value(self.top_score),
            "tolerance": self.tolerance,
        }

    def __str__(self) -> str:
        return (f"Agreement {self.rater_a}/{self.rater_b}: {self.agreement_rate_pct}% "
                f"({self.agreements}/{self.comparisons}), states rated={self.rated_state_count}, "
                f"top={self.top_state or 'N/A'}")


class AgreementAnalyzer:
    """
    Read-only analyzer over the full rating set.

    Every stored rating of the two raters takes part, including ratings of
    criteria that were deactivated later.
    """

    def __init__(self,
                 ratings: RatingStore,
                 aggregator: Optional[ScoreAggregator] = None,
                 tolerance: int = DEFAULT_TOLERANCE):
        if tolerance < 0:
            raise ValidationError(f"tolerance must be >= 0, got {tolerance}")
        self.ratings = ratings
        self.aggregator = aggregator
        self.tolerance = tolerance

    def compute(self, rater_a: str, rater_b: str) -> AgreementSummary:
        summary = AgreementSummary(rater_a=rater_a, rater_b=rater_b, tolerance=self.tolerance)

        values_a: Dict[Tuple[str, str], int] = {}
        values_b: Dict[Tuple[str, str], int] = {}
        states = set()
        for r in self.ratings.list_all():
            if r.rater_id == rater_a:
                values_a[(r.state_code, r.criterion_id)] = r.value
            elif r.rater_id == rater_b:
                values_b[(r.state_code, r.criterion_id)] = r.value
            else:
                continue
            states.add(r.state_code)

        for pair, a in values_a.items():
            b = values_b.get(pair)
            if b is None:
                continue
            summary.comparisons += 1
            if abs(a - b) <= self.tolerance:
                summary.agreements += 1

        summary.rated_state_count = len(states)

        if self.aggregator is not None:
            top = self.aggregator.top_state(COMBINED)
            if top is not None:
                summary.top_state = top.state_code
                summary.top_score = top.score
        return summary

    def __repr__(self) -> str:
        return f"AgreementAnalyzer(tolerance={self.tolerance})"
