import hashlib
import json
import logging
from dataclasses import asdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from app import db
from models import Professional, Project, Review
from services.scoring.complexity_analyzer import ProjectAnalysis, ProjectComplexityAnalyzer, ProjectInput
from services.scoring.config_manager import ScoringConfigManager
from services.scoring.errors import ScoringError
from services.scoring.match_score import BatchMatchResult, MatchResult, MatchScoreEngine
from services.scoring.stores import ProfessionalStore, ProjectStore
from services.scoring.trade_score import TradeScoreEngine
from utils.cache import cache

logger = logging.getLogger(__name__)


class ScoringService:
    """Main scoring service - coordinates the scoring engines and their stores"""

    def __init__(self, professional_store: ProfessionalStore = None, project_store: ProjectStore = None,
                 trade_engine: TradeScoreEngine = None, analyzer: ProjectComplexityAnalyzer = None,
                 match_engine: MatchScoreEngine = None):
        self.professional_store = professional_store or ProfessionalStore()
        self.project_store = project_store or ProjectStore()
        self.trade_engine = trade_engine or TradeScoreEngine()
        self.analyzer = analyzer or ProjectComplexityAnalyzer(ScoringConfigManager().get_vocabulary())
        self.match_engine = match_engine or MatchScoreEngine()
        self.vocabulary_key = self.analyzer.vocabulary.fingerprint()

    # AI Trade Score

    def calculate_total(self, professional: Professional) -> float:
        """AI Trade Score for a professional record; does not write anything"""
        return self.trade_engine.compute_total(professional.to_score_profile())

    def rescore_professional(self, professional_id: int, commit: bool = True) -> float:
        """Recompute and persist the AI Trade Score of one professional"""
        professional = self._get_professional(professional_id)
        previous = professional.score_total

        total = self.calculate_total(professional)
        self.professional_store.update(professional_id, {
            'score_total': total,
            'score_updated_at': datetime.utcnow()
        }, commit=commit)

        logger.info(f"Rescored professional {professional_id}: {previous} -> {total:.1f}")
        return total

    def record_review(self, professional_id: int, timeliness_rating: Optional[int] = None,
                      commit: bool = True) -> float:
        """Fold a newly stored review into the professional's stats and scores.

        Order matters: rating stats and quality first, then reliability, then the total.
        """
        professional = self._get_professional(professional_id)

        average, count = db.session.query(
            db.func.avg(Review.rating),
            db.func.count(Review.id)
        ).filter(Review.professional_id == professional_id).one()

        patch = {'review_count': count}
        if count:
            average = float(average)
            patch['rating'] = average
            patch['score_quality'] = self.trade_engine.quality_from_rating(average)

        if timeliness_rating is not None:
            patch['score_reliability'] = self.trade_engine.update_reliability(
                professional.score_reliability, timeliness_rating
            )

        self.professional_store.update(professional_id, patch, commit=False)
        return self.rescore_professional(professional_id, commit=commit)

    def batch_rescore(self, professionals: List[Professional], batch_size: int = None) -> Tuple[int, int]:
        """Rescore many professionals, committing per batch. Returns (processed, failed)"""
        if batch_size is None:
            from config import Config
            batch_size = Config.RESCORE_BATCH_SIZE

        total_processed = 0
        failed_count = 0

        for i in range(0, len(professionals), batch_size):
            batch = professionals[i:i + batch_size]
            processed_in_batch = 0

            for professional in batch:
                try:
                    professional.score_total = self.calculate_total(professional)
                    professional.score_updated_at = datetime.utcnow()
                    processed_in_batch += 1
                except ScoringError as e:
                    logger.error(f"Failed to score professional {professional.id} in batch: {str(e)}")
                    failed_count += 1

            try:
                db.session.commit()
                total_processed += processed_in_batch
                logger.info(f"Committed batch {i // batch_size + 1}: {len(batch)} professionals processed")
            except Exception as e:
                logger.error(f"Failed to commit batch {i // batch_size + 1}: {str(e)}")
                db.session.rollback()
                failed_count += processed_in_batch

        logger.info(f"Batch rescoring completed: {total_processed} successful, {failed_count} failed")
        return total_processed, failed_count

    # Project analysis

    def analyze(self, project_input: ProjectInput) -> ProjectAnalysis:
        """Run the complexity analyzer, memoised on the vocabulary and input fingerprints"""
        cache_key = f"analysis:{self.vocabulary_key}:{self._fingerprint(project_input)}"

        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Analysis cache hit for {cache_key}")
            return ProjectAnalysis(**cached)

        analysis = self.analyzer.analyze(project_input)

        from config import Config
        cache.set(cache_key, analysis.to_dict(), timeout=Config.ANALYSIS_CACHE_TIMEOUT)
        return analysis

    def analyze_project(self, project_id: int, commit: bool = True) -> ProjectAnalysis:
        """Analyse a stored project and attach the result to it"""
        project = self.project_store.get(project_id)
        if project is None:
            raise LookupError(f"Project {project_id} not found")

        analysis = self.analyze(project.to_project_input())
        self.project_store.attach_analysis(project_id, analysis, commit=commit)
        return analysis

    # Match scores

    def match(self, professional: Professional, project: Project) -> MatchResult:
        return self.match_engine.calculate(professional.to_match_profile(), project.to_match_profile())

    def rank_projects_for_professional(self, professional: Professional,
                                       projects: Iterable[Project]) -> BatchMatchResult:
        return self.match_engine.rank_projects(
            professional.to_match_profile(),
            [(project, project.to_match_profile()) for project in projects]
        )

    def rank_professionals_for_project(self, project: Project,
                                       professionals: Iterable[Professional]) -> BatchMatchResult:
        return self.match_engine.rank_professionals(
            project.to_match_profile(),
            [(professional, professional.to_match_profile()) for professional in professionals]
        )

    def _get_professional(self, professional_id: int) -> Professional:
        professional = self.professional_store.get(professional_id)
        if professional is None:
            raise LookupError(f"Professional {professional_id} not found")
        return professional

    @staticmethod
    def _fingerprint(project_input: ProjectInput) -> str:
        payload: Dict = asdict(project_input)
        payload['trade_types'] = list(payload['trade_types'])
        raw = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.md5(raw.encode()).hexdigest()


def get_scoring_service() -> ScoringService:
    """Scoring service bound to the current app; the vocabulary file is read once per app"""
    from flask import current_app

    service = current_app.extensions.get('scoring_service')
    if service is None:
        rules_path = current_app.config.get('SCORING_RULES_PATH')
        vocabulary = ScoringConfigManager(rules_path).get_vocabulary()
        service = ScoringService(analyzer=ProjectComplexityAnalyzer(vocabulary))
        current_app.extensions['scoring_service'] = service
    return service
