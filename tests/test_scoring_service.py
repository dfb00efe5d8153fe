"""
Tests for scoring service functionality.
"""

import copy
import pytest
from unittest.mock import patch
from decimal import Decimal
from app import create_app, db
from models import Professional, Certification, Project, Review
from services.scoring.complexity_analyzer import ProjectAnalysis, ProjectComplexityAnalyzer, ProjectInput
from services.scoring.config_manager import DEFAULT_SCORING_RULES, AnalysisVocabulary
from services.scoring.errors import InvalidRangeError
from services.scoring.scoring_service import ScoringService, get_scoring_service
from services.scoring.stores import ProfessionalStore, ProjectStore
from tests import setup_test_environment


@pytest.fixture
def app():
    """Create test Flask application"""
    setup_test_environment()
    app = create_app(testing=True)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def scoring_service(app):
    """Create ScoringService instance"""
    return ScoringService()


@pytest.fixture
def test_professional(app):
    """Create the reference professional: 9/9/8.5/9.5, 2 certifications, 15 years"""
    professional = Professional(
        name='Riley Volt',
        trade='Electrician',
        years_experience=15,
        hourly_rate_min=Decimal('80'),
        hourly_rate_max=Decimal('120'),
        city='Austin',
        state='TX',
        score_skill_verification=9,
        score_reliability=9,
        score_quality=8.5,
        score_safety=9.5
    )
    professional.certifications.append(Certification(name='Master Electrician'))
    professional.certifications.append(Certification(name='OSHA 30'))
    db.session.add(professional)
    db.session.commit()
    return professional


@pytest.fixture
def test_project(app):
    project = Project(
        client_id='client-1',
        title='Rewire Kitchen',
        description='Repair and upgrade the kitchen wiring',
        city='Austin',
        state='TX',
        budget_min=Decimal('2000'),
        budget_max=Decimal('4000'),
        trade_types=['Electrician']
    )
    db.session.add(project)
    db.session.commit()
    return project


def add_review(project, professional, rating, client_id, timeliness=None):
    review = Review(project_id=project.id, professional_id=professional.id, client_id=client_id,
                    rating=rating, timeliness_rating=timeliness, comment='Review')
    db.session.add(review)
    db.session.flush()
    return review


class TestTradeScoring:
    """Test cases for trade score persistence"""

    def test_calculate_total_does_not_write(self, scoring_service, test_professional):
        assert scoring_service.calculate_total(test_professional) == 8.5
        assert test_professional.score_total == 5.0
        assert test_professional.score_updated_at is None

    def test_rescore_persists_total(self, scoring_service, test_professional):
        total = scoring_service.rescore_professional(test_professional.id)

        db.session.expire_all()
        stored = db.session.get(Professional, test_professional.id)
        assert total == 8.5
        assert stored.score_total == 8.5
        assert stored.score_updated_at is not None

    def test_rescore_unknown_professional(self, scoring_service):
        with pytest.raises(LookupError):
            scoring_service.rescore_professional(999)

    def test_invalid_stored_sub_score_is_not_clamped(self, scoring_service, test_professional):
        test_professional.score_quality = 11
        db.session.commit()

        with pytest.raises(InvalidRangeError):
            scoring_service.rescore_professional(test_professional.id)

    def test_batch_rescore_reports_failures(self, scoring_service, test_professional):
        broken = Professional(name='Broken', trade='Painter', score_safety=-3)
        db.session.add(broken)
        db.session.commit()

        processed, failed = scoring_service.batch_rescore([test_professional, broken], batch_size=1)

        assert processed == 1
        assert failed == 1
        assert db.session.get(Professional, test_professional.id).score_total == 8.5


class TestReviewIntake:
    """Test cases for folding reviews into scores"""

    def test_first_review_sets_stats_quality_and_reliability(self, scoring_service,
                                                             test_professional, test_project):
        add_review(test_project, test_professional, rating=4, client_id='client-1', timeliness=5)

        total = scoring_service.record_review(test_professional.id, timeliness_rating=5)

        professional = db.session.get(Professional, test_professional.id)
        assert professional.review_count == 1
        assert professional.rating == 4.0
        assert professional.score_quality == 8.0
        assert professional.score_reliability == 9.5  # (9 + 5*2) / 2
        # 9*.3 + 9.5*.25 + 8*.25 + 9.5*.1 + 5*.1
        assert total == 8.5
        assert professional.score_total == total

    def test_rating_is_averaged_over_all_reviews(self, scoring_service, test_professional, test_project):
        add_review(test_project, test_professional, rating=5, client_id='client-1')
        add_review(test_project, test_professional, rating=4, client_id='client-2')

        scoring_service.record_review(test_professional.id)

        professional = db.session.get(Professional, test_professional.id)
        assert professional.rating == 4.5
        assert professional.review_count == 2
        assert professional.score_quality == 9.0
        assert professional.score_reliability == 9.0  # no timeliness given

    def test_bad_timeliness_is_rejected(self, scoring_service, test_professional, test_project):
        add_review(test_project, test_professional, rating=4, client_id='client-1')

        with pytest.raises(InvalidRangeError):
            scoring_service.record_review(test_professional.id, timeliness_rating=7)


class TestProjectAnalysis:
    """Test cases for analysing stored projects"""

    def test_analyze_project_attaches_result(self, scoring_service, test_project):
        analysis = scoring_service.analyze_project(test_project.id)

        project = db.session.get(Project, test_project.id)
        assert project.ai_analysis == analysis.to_dict()
        assert project.analyzed_at is not None
        assert project.complexity_score == analysis.complexity_score

    def test_analyze_unknown_project(self, scoring_service):
        with pytest.raises(LookupError):
            scoring_service.analyze_project(404)

    def test_analysis_is_cached_by_input(self, scoring_service):
        project_input = ProjectInput('Deck', 'Build a small deck', 1000, 2000, ('Carpenter',))

        with patch.object(ProjectComplexityAnalyzer, 'analyze',
                          wraps=scoring_service.analyzer.analyze) as mock_analyze:
            first = scoring_service.analyze(project_input)
            second = scoring_service.analyze(project_input)

        assert first == second
        assert isinstance(second, ProjectAnalysis)
        assert mock_analyze.call_count == 1

    def test_fingerprint_changes_with_input(self, scoring_service):
        a = ProjectInput('Deck', 'Build a small deck', 1000, 2000, ('Carpenter',))
        b = ProjectInput('Deck', 'Build a small deck', 1000, 2500, ('Carpenter',))

        assert scoring_service._fingerprint(a) != scoring_service._fingerprint(b)
        assert scoring_service._fingerprint(a) == scoring_service._fingerprint(
            ProjectInput('Deck', 'Build a small deck', 1000, 2000, ['Carpenter'])
        )

    def test_analysis_cache_is_keyed_by_vocabulary(self, scoring_service):
        rules = copy.deepcopy(DEFAULT_SCORING_RULES)
        rules['complexity_keywords']['high'].append('fence')
        custom_service = ScoringService(analyzer=ProjectComplexityAnalyzer(AnalysisVocabulary.from_rules(rules)))
        project_input = ProjectInput('Fence', 'Fix the fence', 2000, 4000, ('Carpenter',))

        assert scoring_service.analyze(project_input).complexity_score == 4.5
        assert custom_service.analyze(project_input).complexity_score == 5.3
        assert scoring_service.vocabulary_key != custom_service.vocabulary_key
        assert AnalysisVocabulary.default().fingerprint() == scoring_service.vocabulary_key


class TestMatching:

    def test_match_uses_stored_analysis(self, scoring_service, test_professional, test_project):
        test_project.ai_analysis = {'complexity_score': 8.0}
        test_professional.years_experience = 3
        db.session.commit()

        result = scoring_service.match(test_professional, test_project)

        factors = {f.name: f.score for f in result.factors}
        assert factors['Experience'] == 0.5

    def test_rank_professionals_for_project(self, scoring_service, test_professional, test_project):
        painter = Professional(name='Pat Paint', trade='Painter', years_experience=1, city='Dallas')
        db.session.add(painter)
        db.session.commit()

        batch = scoring_service.rank_professionals_for_project(test_project, [painter, test_professional])

        assert [m.item.id for m in batch.matches] == [test_professional.id, painter.id]


class TestStores:

    def test_update_rejects_unknown_field(self, app, test_professional):
        with pytest.raises(AttributeError):
            ProfessionalStore().update(test_professional.id, {'not_a_field': 1})

    def test_update_missing_professional(self, app):
        with pytest.raises(LookupError):
            ProfessionalStore().update(12345, {'score_total': 1.0})

    def test_attach_analysis_missing_project(self, app):
        analysis = ProjectComplexityAnalyzer().analyze(ProjectInput('T', 'Fix a door', 100, 200))
        with pytest.raises(LookupError):
            ProjectStore().attach_analysis(999, analysis)


def test_app_bound_service_is_reused(app):
    assert get_scoring_service() is get_scoring_service()
