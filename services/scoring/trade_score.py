import logging
from dataclasses import dataclass
from typing import Dict, Optional

from services.scoring.errors import WeightTableError
from services.scoring.primitives import clamp, require_non_negative, require_range, weighted_sum

logger = logging.getLogger(__name__)

SUB_SCORES = ('skill_verification', 'reliability', 'quality', 'safety')
WEIGHT_COMPONENTS = SUB_SCORES + ('growth',)


@dataclass
class ProfessionalScoreProfile:
    """Inputs of the AI Trade Score (0-10 scale)"""
    skill_verification: float = 5.0
    reliability: float = 5.0
    quality: float = 5.0
    safety: float = 5.0
    certifications_count: int = 0
    years_experience: float = 0.0
    total: Optional[float] = None


def validate_weights(weights: Dict[str, float]) -> Dict[str, float]:
    """Check a trade score weight table: all five components, summing to 1.0"""
    missing = [name for name in WEIGHT_COMPONENTS if name not in weights]
    if missing:
        raise WeightTableError(f"Missing trade score weights: {', '.join(missing)}")

    unknown = [name for name in weights if name not in WEIGHT_COMPONENTS]
    if unknown:
        raise WeightTableError(f"Unknown trade score weights: {', '.join(unknown)}")

    total = sum(weights.values())
    if abs(total - 1.0) > 1e-9:
        raise WeightTableError(f"Trade score weights must sum to 1.0, got {total:.6f}")

    return dict(weights)


class TradeScoreEngine:
    """Computes the composite AI Trade Score of a professional"""

    def __init__(self, weights: Dict[str, float] = None,
                 points_per_certification: float = None,
                 points_per_year: float = None):
        from config import Config

        self.weights = validate_weights(weights if weights is not None else Config.TRADE_SCORE_WEIGHTS)
        self.points_per_certification = (
            points_per_certification if points_per_certification is not None
            else Config.GROWTH_POINTS_PER_CERTIFICATION
        )
        self.points_per_year = (
            points_per_year if points_per_year is not None else Config.GROWTH_POINTS_PER_YEAR
        )

    def growth_score(self, certifications_count: int, years_experience: float) -> float:
        certifications = require_non_negative('certifications_count', certifications_count)
        years = require_non_negative('years_experience', years_experience)
        return clamp(certifications * self.points_per_certification + years * self.points_per_year, 0, 10)

    def compute_total(self, profile: ProfessionalScoreProfile) -> float:
        """Weighted 0-10 total, rounded to one decimal.

        Pure: the profile is not modified. Persisting the result is up to the caller.
        """
        values = {name: require_range(name, getattr(profile, name), 0, 10) for name in SUB_SCORES}
        values['growth'] = self.growth_score(profile.certifications_count, profile.years_experience)

        total = weighted_sum(
            ((values[name], self.weights[name]) for name in WEIGHT_COMPONENTS),
            places=1,
        )
        total = clamp(total, 0, 10)

        logger.debug(f"Trade score components {values} -> {total:.1f}")
        return total

    @staticmethod
    def update_reliability(current_reliability: float, timeliness: float) -> float:
        """Blend the current reliability 50/50 with a new 1-5 timeliness rating"""
        current = require_range('reliability', current_reliability, 0, 10)
        rating = require_range('timeliness', timeliness, 1, 5)
        return clamp((current + rating * 2) / 2, 0, 10)

    @staticmethod
    def quality_from_rating(average_rating: float) -> float:
        """Quality sub-score from the 1-5 average review rating"""
        rating = require_range('rating', average_rating, 1, 5)
        return min(10.0, rating * 2)
