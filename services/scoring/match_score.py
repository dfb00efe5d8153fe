"""
Match Score Engine
Scores how well one professional fits one project on a 0-10 scale.

Six independent factors are summed and clamped:
- Trade Match:   3.0
- Experience:    2.0
- Budget Fit:    1.5
- Rating:        2.0
- Availability:  1.0
- Location:      0.5

Total: 10.0
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from services.scoring.errors import InvalidRangeError, ScoringError
from services.scoring.primitives import (
    at_least, clamp, first_match, require_non_negative, require_range, round_half_up
)

logger = logging.getLogger(__name__)

TRADE_MATCH_MAX = 3.0
EXPERIENCE_MAX = 2.0
BUDGET_FIT_MAX = 1.5
RATING_MAX = 2.0
AVAILABILITY_MAX = 1.0
LOCATION_MAX = 0.5

FACTOR_MAXIMA = (
    ('Trade Match', TRADE_MATCH_MAX),
    ('Experience', EXPERIENCE_MAX),
    ('Budget Fit', BUDGET_FIT_MAX),
    ('Rating', RATING_MAX),
    ('Availability', AVAILABILITY_MAX),
    ('Location', LOCATION_MAX),
)

# Factor maxima must sum to 10.0
_MAXIMA_SUM = sum(maximum for _, maximum in FACTOR_MAXIMA)
if abs(_MAXIMA_SUM - 10.0) > 1e-9:
    raise RuntimeError(f"Match factor maxima must sum to 10.0, got {_MAXIMA_SUM}")

EXPERIENCE_RULES = (
    at_least(10, 2.0),
    at_least(5, 1.5),
    at_least(2, 1.0),
)
EXPERIENCE_FLOOR = 0.5

# Under-experienced professionals on hard jobs get half credit
COMPLEX_PROJECT_THRESHOLD = 7
SENIOR_YEARS = 5
JUNIOR_ON_COMPLEX_MULTIPLIER = 0.5

# (rate, avg_budget) -> score; a rate within budget/20 leaves room for 20+ hours
BUDGET_FIT_RULES = (
    (lambda rate, budget: rate <= budget / 20, 1.5),
    (lambda rate, budget: rate <= budget / 10, 1.0),
)
BUDGET_FIT_FLOOR = 0.5

AVAILABILITY_SCORES = {
    'Available': 1.0,
    'Busy': 0.5,
    'Unavailable': 0.0,
}

RECOMMENDATION_RULES = (
    at_least(8, 'Excellent Match'),
    at_least(6.5, 'Good Match'),
    at_least(5, 'Fair Match'),
)
LOW_MATCH = 'Low Match'

DEFAULT_PROJECT_COMPLEXITY = 5.0


@dataclass(frozen=True)
class ProfessionalMatchProfile:
    trade: str
    specialties: Tuple[str, ...] = ()
    years_experience: float = 0.0
    hourly_rate_min: float = 0.0
    hourly_rate_max: float = 0.0
    rating: Optional[float] = None
    availability: str = 'Available'
    city: Optional[str] = None


@dataclass(frozen=True)
class ProjectMatchProfile:
    trade_types: Tuple[str, ...]
    budget_min: float
    budget_max: float
    complexity_score: Optional[float] = None
    city: Optional[str] = None


@dataclass(frozen=True)
class MatchFactor:
    name: str
    score: float
    max: float

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'score': self.score, 'max': self.max}


@dataclass(frozen=True)
class MatchResult:
    score: float
    percentage: int
    factors: Tuple[MatchFactor, ...]
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'percentage': self.percentage,
            'factors': [f.to_dict() for f in self.factors],
            'recommendation': self.recommendation
        }


@dataclass
class RankedMatch:
    item: Any
    result: MatchResult


@dataclass
class MatchFailure:
    item: Any
    error: str


@dataclass
class BatchMatchResult:
    """Successful matches sorted by score (descending, stable) plus per-item failures"""
    matches: List[RankedMatch] = field(default_factory=list)
    errors: List[MatchFailure] = field(default_factory=list)


def recommendation_for(score: float) -> str:
    return first_match(RECOMMENDATION_RULES, score, default=LOW_MATCH)


class MatchScoreEngine:
    """Stateless: one instance can serve any number of concurrent requests"""

    def calculate(self, professional: ProfessionalMatchProfile, project: ProjectMatchProfile) -> MatchResult:
        budget_min = require_non_negative('budget.min', project.budget_min)
        budget_max = require_non_negative('budget.max', project.budget_max)
        if budget_max < budget_min:
            raise InvalidRangeError(
                'budget', (budget_min, budget_max),
                message=f"budget.max ({budget_max}) is lower than budget.min ({budget_min})"
            )

        rate_min = require_non_negative('hourly_rate.min', professional.hourly_rate_min)
        rate_max = require_non_negative('hourly_rate.max', professional.hourly_rate_max)
        if rate_max < rate_min:
            raise InvalidRangeError(
                'hourly_rate', (rate_min, rate_max),
                message=f"hourly_rate.max ({rate_max}) is lower than hourly_rate.min ({rate_min})"
            )

        years = require_non_negative('years_experience', professional.years_experience)
        complexity = project.complexity_score
        if complexity is None:
            complexity = DEFAULT_PROJECT_COMPLEXITY
        complexity = require_range('complexity_score', complexity, 0, 10)

        avg_budget = (budget_min + budget_max) / 2
        avg_rate = (rate_min + rate_max) / 2

        factors = (
            MatchFactor('Trade Match', self.trade_match(professional, project), TRADE_MATCH_MAX),
            MatchFactor('Experience', self.experience(years, complexity), EXPERIENCE_MAX),
            MatchFactor('Budget Fit', self.budget_fit(avg_rate, avg_budget), BUDGET_FIT_MAX),
            MatchFactor('Rating', self.rating(professional.rating), RATING_MAX),
            MatchFactor('Availability', self.availability(professional.availability), AVAILABILITY_MAX),
            MatchFactor('Location', self.location(professional.city, project.city), LOCATION_MAX),
        )

        score = round_half_up(clamp(sum(f.score for f in factors), 0, 10), 1)
        return MatchResult(
            score=score,
            percentage=int(round_half_up(score / 10 * 100, 0)),
            factors=factors,
            recommendation=recommendation_for(score)
        )

    @staticmethod
    def trade_match(professional: ProfessionalMatchProfile, project: ProjectMatchProfile) -> float:
        if not project.trade_types:
            logger.debug("Project has no trade types; trade match scored as 0")
            return 0.0
        offered = {professional.trade, *professional.specialties}
        return TRADE_MATCH_MAX if offered.intersection(project.trade_types) else 0.0

    @staticmethod
    def experience(years: float, complexity: float) -> float:
        score = first_match(EXPERIENCE_RULES, years, default=EXPERIENCE_FLOOR)
        if complexity >= COMPLEX_PROJECT_THRESHOLD and years < SENIOR_YEARS:
            score *= JUNIOR_ON_COMPLEX_MULTIPLIER
        return score

    @staticmethod
    def budget_fit(avg_rate: float, avg_budget: float) -> float:
        if avg_rate == 0:
            return BUDGET_FIT_FLOOR
        return first_match(BUDGET_FIT_RULES, avg_rate, avg_budget, default=BUDGET_FIT_FLOOR)

    @staticmethod
    def rating(rating: Optional[float]) -> float:
        # Unrated professionals (no reviews yet) earn nothing here
        if rating is None or rating == 0:
            return 0.0
        value = require_range('rating', rating, 1, 5)
        return value / 5 * RATING_MAX

    @staticmethod
    def availability(availability: Optional[str]) -> float:
        return AVAILABILITY_SCORES.get(availability, 0.0)

    @staticmethod
    def location(professional_city: Optional[str], project_city: Optional[str]) -> float:
        if not professional_city or not project_city:
            return 0.0
        if professional_city.strip().lower() == project_city.strip().lower():
            return LOCATION_MAX
        return 0.0

    def _rank(self, items: Sequence[Any], score_item: Callable[[Any], MatchResult]) -> BatchMatchResult:
        batch = BatchMatchResult()
        for item in items:
            try:
                batch.matches.append(RankedMatch(item=item, result=score_item(item)))
            except ScoringError as e:
                logger.warning(f"Skipping match for {item!r}: {str(e)}")
                batch.errors.append(MatchFailure(item=item, error=str(e)))

        # sorted() is stable, reverse=True included
        batch.matches = sorted(batch.matches, key=lambda m: m.result.score, reverse=True)
        return batch

    def rank_projects(self, professional: ProfessionalMatchProfile,
                      projects: Sequence[Tuple[Any, ProjectMatchProfile]]) -> BatchMatchResult:
        """Rank (item, project profile) pairs for one professional"""
        result = self._rank(projects, lambda pair: self.calculate(professional, pair[1]))
        return self._unwrap(result)

    def rank_professionals(self, project: ProjectMatchProfile,
                           professionals: Sequence[Tuple[Any, ProfessionalMatchProfile]]) -> BatchMatchResult:
        """Rank (item, professional profile) pairs for one project"""
        result = self._rank(professionals, lambda pair: self.calculate(pair[1], project))
        return self._unwrap(result)

    @staticmethod
    def _unwrap(batch: BatchMatchResult) -> BatchMatchResult:
        """Replace (item, profile) pairs with the caller's item"""
        return BatchMatchResult(
            matches=[RankedMatch(item=m.item[0], result=m.result) for m in batch.matches],
            errors=[MatchFailure(item=f.item[0], error=f.error) for f in batch.errors]
        )
