"""
Tests for project, matching and quote API routes.
"""

import pytest
import json
from decimal import Decimal
from app import create_app, db
from models import Professional, Project, Quote
from utils.auth import rate_limit_storage
from tests import setup_test_environment


@pytest.fixture
def app():
    """Create test Flask application"""
    setup_test_environment()
    rate_limit_storage.clear()
    app = create_app(testing=True)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture
def project_payload():
    return {
        'title': 'Panel Upgrade',
        'description': 'Upgrade the main electrical panel and add two circuits',
        'client_id': 'client-1',
        'location': {'address': '1 Main St', 'city': 'Austin', 'state': 'TX', 'zip_code': '78701'},
        'budget': {'min': 2000, 'max': 4000},
        'trade_types': ['Electrician']
    }


@pytest.fixture
def test_professionals(app):
    """Electrician in Austin, plumber in Dallas, unavailable electrician"""
    professionals = [
        Professional(name='Alex Amp', trade='Electrician', years_experience=12, city='Austin',
                     hourly_rate_min=Decimal('80'), hourly_rate_max=Decimal('120')),
        Professional(name='Blake Pipe', trade='Plumber', years_experience=3, city='Dallas',
                     hourly_rate_min=Decimal('40'), hourly_rate_max=Decimal('60'), availability='Busy'),
        Professional(name='Casey Current', trade='Electrician', years_experience=20, city='Austin',
                     hourly_rate_min=Decimal('50'), hourly_rate_max=Decimal('70'), availability='Unavailable'),
    ]
    db.session.add_all(professionals)
    db.session.commit()
    return [p.id for p in professionals]


def create_project(client, payload):
    response = client.post('/api/projects', json=payload)
    assert response.status_code == 201
    return json.loads(response.data)['project']


class TestProjectCrud:
    """Test cases for project endpoints"""

    def test_create_project_attaches_analysis(self, client, project_payload):
        project = create_project(client, project_payload)

        analysis = project['ai_analysis']
        # 5 + 0.3 (upgrade) - 0.5 (short description)
        assert analysis['complexity_score'] == 4.8
        assert analysis['risk_level'] == 'medium'
        assert analysis['estimated_timeline'] == '2-4 weeks'
        assert analysis['recommended_skills'][-1] == 'Upgrade'
        assert analysis['budget_range'] == '$2,000-$4,000'
        assert project['analyzed_at'] is not None
        assert project['status'] == 'new'

    def test_create_project_rejects_inverted_budget(self, client, project_payload):
        project_payload['budget'] = {'min': 5000, 'max': 1000}

        response = client.post('/api/projects', json=project_payload)

        assert response.status_code == 400
        assert Project.query.count() == 0

    def test_create_project_requires_location(self, client, project_payload):
        del project_payload['location']
        response = client.post('/api/projects', json=project_payload)
        assert response.status_code == 400

    def test_get_project(self, client, project_payload):
        project = create_project(client, project_payload)

        response = client.get(f"/api/projects/{project['id']}")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['project']['title'] == 'Panel Upgrade'
        assert data['project']['quotes'] == []

    def test_get_project_not_found(self, client):
        response = client.get('/api/projects/424242')
        assert response.status_code == 404

    def test_update_reanalyses_when_inputs_change(self, client, project_payload):
        project = create_project(client, project_payload)

        response = client.put(f"/api/projects/{project['id']}",
                              json={'budget': {'min': 20000, 'max': 30000}})

        assert response.status_code == 200
        analysis = json.loads(response.data)['project']['ai_analysis']
        assert analysis['complexity_score'] == 6.3
        assert analysis['risk_level'] == 'high'

    def test_status_update_keeps_analysis(self, client, project_payload):
        project = create_project(client, project_payload)

        response = client.put(f"/api/projects/{project['id']}", json={'status': 'in_progress', 'progress': 40})

        assert response.status_code == 200
        updated = json.loads(response.data)['project']
        assert updated['status'] == 'in_progress'
        assert updated['progress'] == 40
        assert updated['analyzed_at'] == project['analyzed_at']

    def test_update_rejects_unknown_status(self, client, project_payload):
        project = create_project(client, project_payload)
        response = client.put(f"/api/projects/{project['id']}", json={'status': 'paused'})
        assert response.status_code == 400

    def test_reanalysis_endpoint(self, client, project_payload):
        project = create_project(client, project_payload)

        response = client.post(f"/api/projects/{project['id']}/analysis")

        assert response.status_code == 200
        assert json.loads(response.data)['analysis'] == project['ai_analysis']
        assert client.post('/api/projects/999/analysis').status_code == 404

    def test_list_projects_filters(self, client, project_payload):
        create_project(client, project_payload)
        create_project(client, dict(project_payload, title='Repaint Bedroom', trade_types=['Painter'],
                                    location={'city': 'Dallas', 'state': 'TX'}))

        data = json.loads(client.get('/api/projects').data)
        assert data['count'] == 2

        data = json.loads(client.get('/api/projects?trade_type=Painter').data)
        assert [p['title'] for p in data['projects']] == ['Repaint Bedroom']

        data = json.loads(client.get('/api/projects?city=austin').data)
        assert [p['title'] for p in data['projects']] == ['Panel Upgrade']

        data = json.loads(client.get('/api/projects?status=completed').data)
        assert data['count'] == 0


class TestAnalysisPreview:

    def test_preview_does_not_store(self, client):
        response = client.post('/api/projects/analyze', json={
            'title': 'Touch-up',
            'description': 'Simple touch-up painting job for a small room',
            'budget': {'min': 200, 'max': 400},
            'trade_types': ['Painter']
        })

        assert response.status_code == 200
        analysis = json.loads(response.data)['analysis']
        assert analysis['complexity_score'] == 2.0
        assert analysis['risk_level'] == 'low'
        assert analysis['estimated_timeline'] == '1-2 weeks'
        assert Project.query.count() == 0

    def test_preview_rejects_bad_budget(self, client):
        response = client.post('/api/projects/analyze', json={
            'description': 'Fix the roof',
            'budget': {'min': -10, 'max': 400}
        })
        assert response.status_code == 400


class TestMatching:
    """Test cases for match score endpoints"""

    def test_project_matches_are_ranked(self, client, project_payload, test_professionals):
        project = create_project(client, project_payload)

        response = client.get(f"/api/projects/{project['id']}/matches")

        assert response.status_code == 200
        data = json.loads(response.data)
        names = [m['professional']['name'] for m in data['matches']]
        assert names == ['Alex Amp', 'Blake Pipe']  # unavailable professionals are skipped
        assert data['matches'][0]['match']['score'] == 8.0
        assert data['matches'][0]['match']['recommendation'] == 'Excellent Match'
        assert data['matches'][1]['match']['score'] == 3.0
        assert data['errors'] == []

    def test_matches_can_include_unavailable(self, client, project_payload, test_professionals):
        project = create_project(client, project_payload)

        data = json.loads(client.get(
            f"/api/projects/{project['id']}/matches?include_unavailable=true&limit=2"
        ).data)

        assert data['count'] == 2
        # Casey scores 7.0: no availability credit
        assert [m['professional']['name'] for m in data['matches']] == ['Alex Amp', 'Casey Current']

    def test_projects_sorted_by_match(self, client, project_payload, test_professionals):
        panel = create_project(client, project_payload)
        paint = create_project(client, dict(project_payload, title='Repaint Bedroom', trade_types=['Painter'],
                                            budget={'min': 200, 'max': 400},
                                            location={'city': 'Dallas', 'state': 'TX'}))

        response = client.get(f'/api/projects?professional_id={test_professionals[0]}&sort_by_match=true')

        assert response.status_code == 200
        projects = json.loads(response.data)['projects']
        assert [p['id'] for p in projects] == [panel['id'], paint['id']]
        assert projects[0]['match']['score'] == 8.0
        assert projects[1]['match']['score'] == 3.5

    def test_include_match_score_without_sorting(self, client, project_payload, test_professionals):
        create_project(client, project_payload)

        data = json.loads(client.get(
            f'/api/projects?professional_id={test_professionals[1]}&include_match_score=true'
        ).data)

        assert data['projects'][0]['match']['recommendation'] == 'Low Match'

    def test_match_for_unknown_professional(self, client, project_payload):
        create_project(client, project_payload)
        response = client.get('/api/projects?professional_id=999&include_match_score=true')
        assert response.status_code == 404

    def test_sorted_listing_keeps_unscorable_projects(self, client, project_payload, test_professionals):
        panel = create_project(client, project_payload)
        # Stored before budget validation existed
        broken = Project(client_id='client-2', title='Legacy Job', description='Old import',
                         city='Austin', state='TX', budget_min=Decimal('5000'), budget_max=Decimal('1000'),
                         trade_types=['Electrician'])
        db.session.add(broken)
        db.session.commit()

        for flag in ('sort_by_match', 'include_match_score'):
            data = json.loads(client.get(
                f'/api/projects?professional_id={test_professionals[0]}&{flag}=true'
            ).data)

            assert sorted(p['id'] for p in data['projects']) == sorted([panel['id'], broken.id])
            assert [e['project_id'] for e in data['match_errors']] == [broken.id]

        data = json.loads(client.get(
            f'/api/projects?professional_id={test_professionals[0]}&sort_by_match=true'
        ).data)
        assert [p['id'] for p in data['projects']] == [panel['id'], broken.id]
        assert data['projects'][1]['match'] is None

    def test_matches_limit_is_validated(self, client, project_payload, test_professionals):
        project = create_project(client, project_payload)

        for limit in ('-1', '0', '101', 'ten'):
            response = client.get(f"/api/projects/{project['id']}/matches?limit={limit}")
            assert response.status_code == 400

        data = json.loads(client.get(f"/api/projects/{project['id']}/matches?limit=1").data)
        assert data['count'] == 1
        assert len(data['matches']) == 1


class TestQuotes:
    """Test cases for quote submission and acceptance"""

    def test_quote_lifecycle(self, client, project_payload, test_professionals):
        project = create_project(client, project_payload)
        alex, blake = test_professionals[0], test_professionals[1]

        response = client.post(f"/api/projects/{project['id']}/quotes",
                               json={'professional_id': alex, 'amount': 3200, 'timeline': '2 weeks'})
        assert response.status_code == 201
        alex_quote = json.loads(response.data)
        assert alex_quote['match']['score'] == 8.0

        response = client.post(f"/api/projects/{project['id']}/quotes",
                               json={'professional_id': blake, 'amount': 2500})
        assert response.status_code == 201
        blake_quote_id = json.loads(response.data)['quote']['id']

        response = client.put(f"/api/projects/{project['id']}/quotes/{alex_quote['quote']['id']}/accept")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['project']['status'] == 'active'
        assert data['project']['assigned_professional_id'] == alex
        assert data['quote']['status'] == 'accepted'
        assert db.session.get(Quote, blake_quote_id).status == 'rejected'
        assert db.session.get(Quote, blake_quote_id).rejection_reason == 'Another quote was accepted'
        assert db.session.get(Professional, alex).projects_completed == 1

    def test_duplicate_quote_is_rejected(self, client, project_payload, test_professionals):
        project = create_project(client, project_payload)
        payload = {'professional_id': test_professionals[0], 'amount': 3000}

        assert client.post(f"/api/projects/{project['id']}/quotes", json=payload).status_code == 201
        response = client.post(f"/api/projects/{project['id']}/quotes", json=payload)

        assert response.status_code == 400
        assert Quote.query.count() == 1

    def test_assigned_project_rejects_new_quotes(self, client, project_payload, test_professionals):
        project = create_project(client, project_payload)
        created = json.loads(client.post(f"/api/projects/{project['id']}/quotes",
                                         json={'professional_id': test_professionals[0], 'amount': 3000}).data)
        client.put(f"/api/projects/{project['id']}/quotes/{created['quote']['id']}/accept")

        response = client.post(f"/api/projects/{project['id']}/quotes",
                               json={'professional_id': test_professionals[1], 'amount': 2000})
        assert response.status_code == 400

        response = client.put(f"/api/projects/{project['id']}/quotes/{created['quote']['id']}/accept")
        assert response.status_code == 400

    def test_quote_validation(self, client, project_payload, test_professionals):
        project = create_project(client, project_payload)

        response = client.post(f"/api/projects/{project['id']}/quotes",
                               json={'professional_id': test_professionals[0], 'amount': -1})
        assert response.status_code == 400

        response = client.post(f"/api/projects/{project['id']}/quotes",
                               json={'professional_id': 999, 'amount': 100})
        assert response.status_code == 404

    def test_accept_quote_from_other_project(self, client, project_payload, test_professionals):
        first = create_project(client, project_payload)
        second = create_project(client, project_payload)
        created = json.loads(client.post(f"/api/projects/{first['id']}/quotes",
                                         json={'professional_id': test_professionals[0], 'amount': 3000}).data)

        response = client.put(f"/api/projects/{second['id']}/quotes/{created['quote']['id']}/accept")
        assert response.status_code == 404

    def test_reject_quote_with_reason(self, client, project_payload, test_professionals):
        project = create_project(client, project_payload)
        created = json.loads(client.post(f"/api/projects/{project['id']}/quotes",
                                         json={'professional_id': test_professionals[0], 'amount': 3000}).data)
        url = f"/api/projects/{project['id']}/quotes/{created['quote']['id']}/reject"

        response = client.put(url, json={'reason': 'Over budget'})

        assert response.status_code == 200
        quote = json.loads(response.data)['quote']
        assert quote['status'] == 'rejected'
        assert quote['rejection_reason'] == 'Over budget'
        assert quote['responded_at'] is not None

        # rejected quotes still count towards the project
        data = json.loads(client.get(f"/api/projects/{project['id']}").data)
        assert data['project']['quote_count'] == 1

        response = client.put(url, json={'reason': 'Again'})
        assert response.status_code == 400

    def test_reject_quote_without_body(self, client, project_payload, test_professionals):
        project = create_project(client, project_payload)
        created = json.loads(client.post(f"/api/projects/{project['id']}/quotes",
                                         json={'professional_id': test_professionals[0], 'amount': 3000}).data)

        response = client.put(f"/api/projects/{project['id']}/quotes/{created['quote']['id']}/reject")

        assert response.status_code == 200
        assert json.loads(response.data)['quote']['rejection_reason'] is None

    def test_reject_quote_reason_too_long(self, client, project_payload, test_professionals):
        project = create_project(client, project_payload)
        created = json.loads(client.post(f"/api/projects/{project['id']}/quotes",
                                         json={'professional_id': test_professionals[0], 'amount': 3000}).data)

        response = client.put(f"/api/projects/{project['id']}/quotes/{created['quote']['id']}/reject",
                              json={'reason': 'x' * 501})

        assert response.status_code == 400
        assert db.session.get(Quote, created['quote']['id']).status == 'pending'

    def test_withdraw_quote(self, client, project_payload, test_professionals):
        project = create_project(client, project_payload)
        alex, blake = test_professionals[0], test_professionals[1]
        alex_quote = json.loads(client.post(f"/api/projects/{project['id']}/quotes",
                                            json={'professional_id': alex, 'amount': 3000}).data)['quote']
        blake_quote = json.loads(client.post(f"/api/projects/{project['id']}/quotes",
                                             json={'professional_id': blake, 'amount': 2500}).data)['quote']
        url = f"/api/projects/{project['id']}/quotes/{blake_quote['id']}/withdraw"

        response = client.put(url)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['quote']['status'] == 'withdrawn'
        assert data['quote_count'] == 1
        assert client.put(url).status_code == 400

        # accepting another quote leaves the withdrawn one alone
        client.put(f"/api/projects/{project['id']}/quotes/{alex_quote['id']}/accept")
        assert db.session.get(Quote, blake_quote['id']).status == 'withdrawn'

    def test_withdraw_accepted_quote(self, client, project_payload, test_professionals):
        project = create_project(client, project_payload)
        created = json.loads(client.post(f"/api/projects/{project['id']}/quotes",
                                         json={'professional_id': test_professionals[0], 'amount': 3000}).data)
        client.put(f"/api/projects/{project['id']}/quotes/{created['quote']['id']}/accept")

        response = client.put(f"/api/projects/{project['id']}/quotes/{created['quote']['id']}/withdraw")

        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'Only pending quotes can be withdrawn'

    def test_reject_or_withdraw_unknown_quote(self, client, project_payload):
        project = create_project(client, project_payload)

        assert client.put(f"/api/projects/{project['id']}/quotes/999/reject").status_code == 404
        assert client.put(f"/api/projects/{project['id']}/quotes/999/withdraw").status_code == 404
