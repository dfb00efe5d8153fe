"""
Project Complexity Analyzer
Derives complexity, risk, timeline and skill suggestions from a project's
free-text description and budget. Rule based and deterministic: the same
input always yields the same analysis.
"""

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from services.scoring.config_manager import AnalysisVocabulary
from services.scoring.errors import InvalidRangeError
from services.scoring.primitives import at_least, clamp, first_match, require_non_negative, round_half_up

logger = logging.getLogger(__name__)

BASE_COMPLEXITY = 5.0
SUMMARY_EXCERPT_LENGTH = 150
MAX_RECOMMENDED_SKILLS = 8

# Budget adjustment on the average of the budget range
BUDGET_RULES = (
    (lambda avg: avg > 10000, 1.5),
    (lambda avg: avg > 5000, 0.5),
    (lambda avg: avg < 1000, -1.0),
)

# Verbosity adjustment on description word count
VERBOSITY_RULES = (
    (lambda words: words > 100, 1.0),
    (lambda words: words < 30, -0.5),
)

# Either signal alone escalates the risk
RISK_RULES = (
    (lambda score, avg: score >= 7 or avg > 15000, 'high'),
    (lambda score, avg: score >= 4 or avg > 3000, 'medium'),
)

TIMELINE_RULES = (
    at_least(8, '2-3 months'),
    at_least(6, '3-6 weeks'),
    at_least(4, '2-4 weeks'),
)

URGENT_TIMELINE = '1-2 weeks'
DEFAULT_TIMELINE = '1-2 weeks'

HIGH_RISK_CHALLENGES = ['Complex scope', 'Requires expert coordination']


@dataclass(frozen=True)
class ProjectInput:
    title: str
    description: str
    budget_min: float
    budget_max: float
    trade_types: Sequence[str] = ()
    city: Optional[str] = None
    state: Optional[str] = None


@dataclass
class ProjectAnalysis:
    complexity_score: float
    risk_level: str
    estimated_timeline: str
    recommended_skills: List[str]
    cleaned_description: str
    summary: str
    budget_range: str
    materials: List[str] = field(default_factory=list)
    challenges: List[str] = field(default_factory=list)
    recommendations: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def format_amount(value: float) -> str:
    """Thousands-separated amount, dropping a zero fraction (2500.0 -> '2,500')"""
    value = float(value)
    if value.is_integer():
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip('0').rstrip('.')


def validate_budget(budget_min: Any, budget_max: Any) -> tuple:
    low = require_non_negative('budget.min', budget_min)
    high = require_non_negative('budget.max', budget_max)
    if high < low:
        raise InvalidRangeError(
            'budget', (budget_min, budget_max),
            message=f"budget.max ({budget_max}) is lower than budget.min ({budget_min})"
        )
    return low, high


class ProjectComplexityAnalyzer:
    """Heuristic analysis of a project description and budget"""

    def __init__(self, vocabulary: AnalysisVocabulary = None):
        self.vocabulary = vocabulary or AnalysisVocabulary.default()

    def analyze(self, project: ProjectInput) -> ProjectAnalysis:
        budget_min, budget_max = validate_budget(project.budget_min, project.budget_max)
        avg_budget = (budget_min + budget_max) / 2
        description = project.description or ''
        trade_types = list(project.trade_types or [])

        complexity = self.complexity_score(description, avg_budget)
        risk = self.risk_level(complexity, avg_budget)

        analysis = ProjectAnalysis(
            complexity_score=complexity,
            risk_level=risk,
            estimated_timeline=self.estimated_timeline(complexity, description),
            recommended_skills=self.recommended_skills(description, trade_types),
            cleaned_description=self.clean_description(description),
            summary=self.summary(project.title or '', description, budget_min, budget_max, trade_types),
            budget_range=f"${format_amount(budget_min)}-${format_amount(budget_max)}",
            materials=[],
            challenges=list(HIGH_RISK_CHALLENGES) if risk == 'high' else [],
            recommendations=(
                f"Consider hiring {' and '.join(trade_types)} professionals with "
                f"{'5+' if complexity >= 6 else '2+'} years of experience."
            )
        )

        logger.debug(f"Analysed project '{project.title}': complexity={complexity}, risk={risk}")
        return analysis

    def keyword_adjustment(self, description: str) -> float:
        """Sum of keyword weights; repeated occurrences are each counted"""
        text = description.lower()
        adjustment = 0.0
        for keywords, weight in self.vocabulary.keyword_groups():
            for keyword in keywords:
                hits = text.count(keyword)
                if hits:
                    adjustment += hits * weight
        return adjustment

    def complexity_score(self, description: str, avg_budget: float) -> float:
        score = BASE_COMPLEXITY
        score += self.keyword_adjustment(description)
        score += first_match(BUDGET_RULES, avg_budget, default=0.0)
        score += first_match(VERBOSITY_RULES, len(description.split()), default=0.0)
        return round_half_up(clamp(score, 1, 10), 1)

    @staticmethod
    def risk_level(complexity_score: float, avg_budget: float) -> str:
        return first_match(RISK_RULES, complexity_score, avg_budget, default='low')

    def is_urgent(self, description: str) -> bool:
        text = description.lower()
        return any(keyword in text for keyword in self.vocabulary.urgency_keywords)

    def estimated_timeline(self, complexity_score: float, description: str) -> str:
        # Urgency wins over the complexity bands
        if self.is_urgent(description):
            return URGENT_TIMELINE
        return first_match(TIMELINE_RULES, complexity_score, default=DEFAULT_TIMELINE)

    def recommended_skills(self, description: str, trade_types: Sequence[str]) -> List[str]:
        skills: Dict[str, None] = {}

        for trade in trade_types:
            for skill in self.vocabulary.trade_skills.get(trade, ()):
                skills.setdefault(skill, None)

        text = description.lower()
        for keyword in self.vocabulary.action_keywords:
            if keyword in text:
                skills.setdefault(keyword[:1].upper() + keyword[1:], None)

        return list(skills)[:MAX_RECOMMENDED_SKILLS]

    @staticmethod
    def clean_description(description: str) -> str:
        cleaned = re.sub(r'\s+', ' ', description).strip()
        cleaned = cleaned[:1].upper() + cleaned[1:]
        if not cleaned.endswith('.'):
            cleaned += '.'
        return cleaned

    @staticmethod
    def summary(title: str, description: str, budget_min: float, budget_max: float,
                trade_types: Sequence[str]) -> str:
        avg_budget = (budget_min + budget_max) / 2
        return (
            f"This project involves {' and '.join(trade_types)} work for {title.lower()}. "
            f"The estimated budget range is ${format_amount(budget_min)}-${format_amount(budget_max)}, "
            f"with an average of ${format_amount(avg_budget)}. "
            f"{description[:SUMMARY_EXCERPT_LENGTH]}..."
        )
