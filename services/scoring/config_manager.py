import copy
import hashlib
import json
import logging
import os
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SCORING_RULES: Dict[str, Any] = {
    'complexity_keywords': {
        'high': ['commercial', 'industrial', 'large scale', 'multi-story', 'custom design',
                 'renovation', 'structural', 'complex'],
        'medium': ['residential', 'remodel', 'upgrade', 'installation', 'repair', 'addition'],
        'low': ['simple', 'basic', 'small', 'minor', 'patch', 'touch-up', 'maintenance']
    },
    'keyword_weights': {
        'high': 0.8,
        'medium': 0.3,
        'low': -0.5
    },
    'trade_skills': {
        'Electrician': ['Electrical wiring', 'Circuit breaker installation', 'Lighting systems',
                        'Electrical code compliance', 'Safety protocols'],
        'Plumber': ['Pipe installation', 'Leak detection', 'Drain cleaning', 'Water heater repair',
                    'Plumbing code compliance'],
        'HVAC': ['Air conditioning repair', 'Heating systems', 'Duct work', 'Climate control',
                 'Energy efficiency'],
        'Carpenter': ['Framing', 'Finish carpentry', 'Cabinet installation', 'Deck building',
                      'Custom woodwork'],
        'Painter': ['Interior painting', 'Exterior painting', 'Surface preparation',
                    'Color consultation', 'Finish work'],
        'Mason': ['Brickwork', 'Stone masonry', 'Concrete work', 'Mortar mixing', 'Foundation repair'],
        'Roofer': ['Roof installation', 'Roof repair', 'Shingle work', 'Waterproofing',
                   'Gutter installation'],
        'General Contractor': ['Project management', 'Multi-trade coordination', 'Permitting',
                               'Budget management', 'Quality control']
    },
    'action_keywords': ['installation', 'repair', 'replacement', 'upgrade', 'maintenance',
                        'design', 'planning', 'inspection', 'testing', 'consultation'],
    'urgency_keywords': ['urgent', 'asap']
}


@dataclass(frozen=True)
class AnalysisVocabulary:
    """Immutable keyword and skill tables used by the complexity analyzer"""
    high_keywords: Tuple[str, ...]
    medium_keywords: Tuple[str, ...]
    low_keywords: Tuple[str, ...]
    keyword_weights: Mapping[str, float]
    trade_skills: Mapping[str, Tuple[str, ...]]
    action_keywords: Tuple[str, ...]
    urgency_keywords: Tuple[str, ...]

    @classmethod
    def from_rules(cls, rules: Dict[str, Any]) -> 'AnalysisVocabulary':
        keywords = rules['complexity_keywords']
        return cls(
            high_keywords=tuple(k.lower() for k in keywords.get('high', [])),
            medium_keywords=tuple(k.lower() for k in keywords.get('medium', [])),
            low_keywords=tuple(k.lower() for k in keywords.get('low', [])),
            keyword_weights=MappingProxyType({k: float(v) for k, v in rules['keyword_weights'].items()}),
            trade_skills=MappingProxyType({
                trade: tuple(skills) for trade, skills in rules['trade_skills'].items()
            }),
            action_keywords=tuple(k.lower() for k in rules['action_keywords']),
            urgency_keywords=tuple(k.lower() for k in rules['urgency_keywords'])
        )

    @classmethod
    def default(cls) -> 'AnalysisVocabulary':
        return cls.from_rules(DEFAULT_SCORING_RULES)

    def keyword_groups(self):
        """(keywords, weight) pairs in high, medium, low order"""
        return (
            (self.high_keywords, self.keyword_weights.get('high', 0.0)),
            (self.medium_keywords, self.keyword_weights.get('medium', 0.0)),
            (self.low_keywords, self.keyword_weights.get('low', 0.0)),
        )

    def fingerprint(self) -> str:
        """Stable hash of every table, used to key cached analyses"""
        payload = {
            'keywords': [list(self.high_keywords), list(self.medium_keywords), list(self.low_keywords)],
            'keyword_weights': dict(self.keyword_weights),
            'trade_skills': {trade: list(skills) for trade, skills in self.trade_skills.items()},
            'action_keywords': list(self.action_keywords),
            'urgency_keywords': list(self.urgency_keywords)
        }
        raw = json.dumps(payload, sort_keys=True)
        return hashlib.md5(raw.encode()).hexdigest()


class ScoringConfigManager:
    """Loads analysis vocabularies from a YAML rules file, falling back to defaults"""

    def __init__(self, rules_path: Optional[str] = None):
        if rules_path is None:
            from config import Config
            rules_path = Config.SCORING_RULES_PATH
        self.rules_path = rules_path
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load scoring rules from file; keys missing from the file keep their defaults"""
        rules = copy.deepcopy(DEFAULT_SCORING_RULES)

        if not self.rules_path or not os.path.exists(self.rules_path):
            return rules

        try:
            with open(self.rules_path, 'r', encoding='utf-8') as f:
                overrides = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read scoring rules from {self.rules_path}: {str(e)}")
            return rules

        if not isinstance(overrides, dict):
            logger.warning(f"Ignoring scoring rules file {self.rules_path}: expected a mapping")
            return rules

        for key, value in overrides.items():
            if key not in rules:
                logger.warning(f"Ignoring unknown scoring rules key: {key}")
                continue
            if isinstance(rules[key], dict) and isinstance(value, dict):
                rules[key].update(value)
            else:
                rules[key] = value

        logger.info(f"Loaded scoring rules from {self.rules_path}")
        return rules

    def get_vocabulary(self) -> AnalysisVocabulary:
        return AnalysisVocabulary.from_rules(self.config)
