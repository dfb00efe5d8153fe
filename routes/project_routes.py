import logging
from datetime import datetime
from flask import Blueprint, jsonify, request
from sqlalchemy.exc import IntegrityError
from models import Professional, Project, Quote
from app import db
from services.scoring.complexity_analyzer import ProjectInput
from services.scoring.errors import ScoringError
from services.scoring.scoring_service import get_scoring_service
from utils.auth import rate_limit
from utils.validators import (
    get_json_payload,
    validate_project_create, validate_project_update, validate_project_filters,
    validate_project_analysis_request, validate_match_filters,
    validate_quote_create, validate_quote_reject
)

logger = logging.getLogger(__name__)

project_bp = Blueprint('projects', __name__)

# Fields whose change invalidates the stored analysis
ANALYSIS_INPUTS = ('title', 'description', 'budget', 'trade_types')
OPEN_STATUSES = ('new', 'active')
ANOTHER_QUOTE_ACCEPTED = 'Another quote was accepted'


def _apply_project_fields(project, data):
    """Copy validated project fields onto the model"""
    for key in ('title', 'description', 'client_id', 'trade_types', 'start_date', 'deadline',
                'urgency', 'status', 'progress'):
        if key in data:
            setattr(project, key, data[key])

    if 'budget' in data:
        project.budget_min = data['budget']['min']
        project.budget_max = data['budget']['max']
        project.currency = data['budget'].get('currency', 'USD')

    if 'location' in data:
        location = data['location']
        project.address = location.get('address')
        project.city = location['city']
        project.state = location['state']
        project.zip_code = location.get('zip_code')


def _get_project_quote(project_id, quote_id):
    """Project and quote, with quote None unless it belongs to that project"""
    project = db.session.get(Project, project_id)
    quote = db.session.get(Quote, quote_id)
    if not project or not quote or quote.project_id != project_id:
        return project, None
    return project, quote


@project_bp.route('/projects')
def get_projects():
    """Get projects with optional filtering; with a professional_id, each project carries its match score"""
    try:
        filters = validate_project_filters(request.args.to_dict())

        query = Project.query
        if filters.get('status'):
            query = query.filter(Project.status == filters['status'])
        if filters.get('city'):
            query = query.filter(Project.city.ilike(filters['city']))
        if filters.get('client_id'):
            query = query.filter(Project.client_id == filters['client_id'])

        projects = query.order_by(Project.created_at.desc(), Project.id.desc()).all()

        # Trade types live in a JSON column, filter in Python to stay database-agnostic
        if filters.get('trade_type'):
            projects = [p for p in projects if filters['trade_type'] in (p.trade_types or [])]

        professional_id = filters.get('professional_id')
        if not professional_id or not (filters['include_match_score'] or filters['sort_by_match']):
            return jsonify({
                "success": True,
                "count": len(projects),
                "projects": [p.to_dict() for p in projects]
            })

        professional = db.session.get(Professional, professional_id)
        if not professional:
            return jsonify({"success": False, "error": "Professional not found"}), 404

        batch = get_scoring_service().rank_projects_for_professional(professional, projects)
        results = {match.item.id: match.result for match in batch.matches}
        if filters['sort_by_match']:
            # Projects that failed to score follow the ranked ones
            projects = [match.item for match in batch.matches] + [failure.item for failure in batch.errors]

        projects_data = []
        for project in projects:
            project_data = project.to_dict()
            result = results.get(project.id)
            project_data['match'] = result.to_dict() if result else None
            projects_data.append(project_data)

        return jsonify({
            "success": True,
            "count": len(projects_data),
            "projects": projects_data,
            "match_errors": [{"project_id": f.item.id, "error": f.error} for f in batch.errors]
        })

    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        logger.error(f"Failed to get projects: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@project_bp.route('/projects/<int:project_id>')
def get_project(project_id):
    """Get a project with its quotes"""
    try:
        project = db.session.get(Project, project_id)

        if not project:
            return jsonify({
                "success": False,
                "error": "Project not found"
            }), 404

        project_data = project.to_dict()
        project_data['quotes'] = [quote.to_dict() for quote in project.quotes]

        return jsonify({
            "success": True,
            "project": project_data
        })

    except Exception as e:
        logger.error(f"Failed to get project {project_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@project_bp.route('/projects', methods=['POST'])
def create_project():
    """Create a project and attach its complexity analysis"""
    try:
        data = validate_project_create(get_json_payload())

        project = Project(status='new', progress=0)
        _apply_project_fields(project, data)
        db.session.add(project)
        db.session.flush()

        get_scoring_service().analyze_project(project.id, commit=False)
        db.session.commit()

        logger.info(f"Created project {project.id}: {project.title[:50]}")
        return jsonify({
            "success": True,
            "project": project.to_dict()
        }), 201

    except (ValueError, ScoringError) as e:
        db.session.rollback()
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to create project: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@project_bp.route('/projects/<int:project_id>', methods=['PUT'])
def update_project(project_id):
    """Update a project; the analysis is re-run when its inputs change"""
    try:
        project = db.session.get(Project, project_id)
        if not project:
            return jsonify({"success": False, "error": "Project not found"}), 404

        data = validate_project_update(get_json_payload())
        _apply_project_fields(project, data)

        if any(key in data for key in ANALYSIS_INPUTS):
            get_scoring_service().analyze_project(project_id, commit=False)
        db.session.commit()

        return jsonify({
            "success": True,
            "project": project.to_dict()
        })

    except (ValueError, ScoringError) as e:
        db.session.rollback()
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to update project {project_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@project_bp.route('/projects/<int:project_id>/analysis', methods=['POST'])
@rate_limit(max_requests=10, window_seconds=60)  # Protect from abuse
def reanalyze_project(project_id):
    """Re-run the complexity analysis of a stored project"""
    try:
        if not db.session.get(Project, project_id):
            return jsonify({"success": False, "error": "Project not found"}), 404

        analysis = get_scoring_service().analyze_project(project_id)

        return jsonify({
            "success": True,
            "analysis": analysis.to_dict()
        })

    except ScoringError as e:
        db.session.rollback()
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.error(f"Analysis failed for project {project_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@project_bp.route('/projects/analyze', methods=['POST'])
@rate_limit(max_requests=30, window_seconds=60)
def preview_analysis():
    """Analyse a project description without storing anything"""
    try:
        data = validate_project_analysis_request(get_json_payload())
        location = data.get('location') or {}

        analysis = get_scoring_service().analyze(ProjectInput(
            title=data['title'],
            description=data['description'],
            budget_min=data['budget']['min'],
            budget_max=data['budget']['max'],
            trade_types=tuple(data['trade_types']),
            city=location.get('city'),
            state=location.get('state')
        ))

        return jsonify({
            "success": True,
            "analysis": analysis.to_dict()
        })

    except (ValueError, ScoringError) as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        logger.error(f"Analysis preview failed: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@project_bp.route('/projects/<int:project_id>/matches')
def get_project_matches(project_id):
    """Rank professionals for a project, best match first"""
    try:
        project = db.session.get(Project, project_id)
        if not project:
            return jsonify({"success": False, "error": "Project not found"}), 404

        filters = validate_match_filters(request.args.to_dict())
        limit = filters['limit']

        query = Professional.query
        if not filters['include_unavailable']:
            query = query.filter(Professional.availability != 'Unavailable')
        professionals = query.order_by(Professional.id).all()

        batch = get_scoring_service().rank_professionals_for_project(project, professionals)

        return jsonify({
            "success": True,
            "count": min(len(batch.matches), limit),
            "matches": [
                {
                    "professional": match.item.to_dict(include_certifications=False),
                    "match": match.result.to_dict()
                }
                for match in batch.matches[:limit]
            ],
            "errors": [{"professional_id": f.item.id, "error": f.error} for f in batch.errors]
        })

    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        logger.error(f"Failed to rank professionals for project {project_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@project_bp.route('/projects/<int:project_id>/quotes', methods=['POST'])
def submit_quote(project_id):
    """Submit a professional's quote on an open project"""
    try:
        project = db.session.get(Project, project_id)
        if not project:
            return jsonify({"success": False, "error": "Project not found"}), 404

        data = validate_quote_create(get_json_payload())

        professional = db.session.get(Professional, data['professional_id'])
        if not professional:
            return jsonify({"success": False, "error": "Professional not found"}), 404

        if project.status not in OPEN_STATUSES or project.assigned_professional_id:
            return jsonify({
                "success": False,
                "error": f"Project is not accepting quotes (status: {project.status})"
            }), 400

        if Quote.query.filter_by(project_id=project_id, professional_id=professional.id).first():
            return jsonify({
                "success": False,
                "error": "Professional has already submitted a quote for this project"
            }), 400

        quote = Quote(project_id=project_id, status='pending', **data)
        db.session.add(quote)
        db.session.commit()

        match = get_scoring_service().match(professional, project)
        logger.info(f"Quote {quote.id} submitted by professional {professional.id} on project {project_id}")

        return jsonify({
            "success": True,
            "quote": quote.to_dict(),
            "match": match.to_dict()
        }), 201

    except IntegrityError:
        db.session.rollback()
        return jsonify({"success": False, "error": "Professional has already submitted a quote for this project"}), 400
    except (ValueError, ScoringError) as e:
        db.session.rollback()
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to submit quote for project {project_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@project_bp.route('/projects/<int:project_id>/quotes/<int:quote_id>/accept', methods=['PUT'])
def accept_quote(project_id, quote_id):
    """Accept one quote: the others are rejected and the professional is assigned"""
    try:
        project, quote = _get_project_quote(project_id, quote_id)
        if not quote:
            return jsonify({"success": False, "error": "Quote not found"}), 404

        if quote.status != 'pending':
            return jsonify({
                "success": False,
                "error": f"Quote is already {quote.status}"
            }), 400

        now = datetime.utcnow()
        quote.status = 'accepted'
        quote.responded_at = now
        for other in project.quotes:
            if other.id != quote.id and other.status == 'pending':
                other.status = 'rejected'
                other.responded_at = now
                other.rejection_reason = ANOTHER_QUOTE_ACCEPTED

        project.assigned_professional_id = quote.professional_id
        project.status = 'active'

        professional = db.session.get(Professional, quote.professional_id)
        professional.projects_completed = (professional.projects_completed or 0) + 1

        db.session.commit()
        logger.info(f"Quote {quote_id} accepted: professional {quote.professional_id} assigned to project {project_id}")

        return jsonify({
            "success": True,
            "project": project.to_dict(),
            "quote": quote.to_dict()
        })

    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to accept quote {quote_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@project_bp.route('/projects/<int:project_id>/quotes/<int:quote_id>/reject', methods=['PUT'])
def reject_quote(project_id, quote_id):
    """Reject a pending quote, optionally with a reason"""
    try:
        _, quote = _get_project_quote(project_id, quote_id)
        if not quote:
            return jsonify({"success": False, "error": "Quote not found"}), 404

        data = validate_quote_reject(request.get_json(silent=True) or {})

        if quote.status != 'pending':
            return jsonify({
                "success": False,
                "error": "This quote has already been responded to"
            }), 400

        quote.status = 'rejected'
        quote.responded_at = datetime.utcnow()
        quote.rejection_reason = data.get('reason')
        db.session.commit()
        logger.info(f"Quote {quote_id} on project {project_id} rejected")

        return jsonify({
            "success": True,
            "quote": quote.to_dict()
        })

    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to reject quote {quote_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@project_bp.route('/projects/<int:project_id>/quotes/<int:quote_id>/withdraw', methods=['PUT'])
def withdraw_quote(project_id, quote_id):
    """Withdraw a pending quote; withdrawn quotes no longer count towards the project"""
    try:
        project, quote = _get_project_quote(project_id, quote_id)
        if not quote:
            return jsonify({"success": False, "error": "Quote not found"}), 404

        if quote.status != 'pending':
            return jsonify({
                "success": False,
                "error": "Only pending quotes can be withdrawn"
            }), 400

        quote.status = 'withdrawn'
        db.session.commit()
        logger.info(f"Quote {quote_id} on project {project_id} withdrawn by professional {quote.professional_id}")

        return jsonify({
            "success": True,
            "quote": quote.to_dict(),
            "quote_count": project.to_dict()['quote_count']
        })

    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to withdraw quote {quote_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500
