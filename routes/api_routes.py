import logging
from datetime import datetime
from flask import Blueprint, jsonify, request
from sqlalchemy.exc import IntegrityError
from models import Professional, Certification, Project, Review
from app import db
from services.scoring.errors import ScoringError
from services.scoring.scoring_service import get_scoring_service
from utils.auth import admin_required, rate_limit
from utils.cache import get_cache_stats
from utils.validators import (
    get_json_payload,
    validate_professional_create, validate_professional_update, validate_professional_filters,
    validate_certification, validate_review_create, validate_review_filters, validate_review_response
)

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__)

SCORE_FIELDS = {
    'skill_verification': 'score_skill_verification',
    'reliability': 'score_reliability',
    'quality': 'score_quality',
    'safety': 'score_safety',
}


def _apply_professional_fields(professional, data):
    """Copy validated professional fields onto the model"""
    for key in ('name', 'email', 'user_id', 'trade', 'specialties', 'years_experience',
                'availability', 'bio', 'verified'):
        if key in data:
            setattr(professional, key, data[key])

    if 'hourly_rate' in data:
        professional.hourly_rate_min = data['hourly_rate']['min']
        professional.hourly_rate_max = data['hourly_rate']['max']

    if 'location' in data:
        location = data['location'] or {}
        if 'city' in location:
            professional.city = location['city']
        if 'state' in location:
            professional.state = location['state']

    for key, value in (data.get('ai_score') or {}).items():
        setattr(professional, SCORE_FIELDS[key], value)


@api_bp.route('/healthz')
def health_check():
    """API health check"""
    return jsonify({"ok": True, "cache": get_cache_stats()})

@api_bp.route('/professionals')
def get_professionals():
    """Get professionals with optional filtering, best AI Trade Score first"""
    try:
        filters = validate_professional_filters(request.args.to_dict())

        query = Professional.query

        if filters.get('trade'):
            query = query.filter(Professional.trade == filters['trade'])
        if filters.get('availability'):
            query = query.filter(Professional.availability == filters['availability'])
        if filters.get('min_score') is not None:
            query = query.filter(Professional.score_total >= filters['min_score'])
        if filters.get('min_rating') is not None:
            query = query.filter(Professional.rating >= filters['min_rating'])
        if filters.get('verified') is not None:
            query = query.filter(Professional.verified == filters['verified'])

        query = query.order_by(Professional.score_total.desc(), Professional.id.asc())
        professionals = query.all()

        # Specialties live in a JSON column, filter in Python to stay database-agnostic
        if filters.get('specialty'):
            specialty = filters['specialty'].lower()
            professionals = [
                p for p in professionals
                if any(specialty in (s or '').lower() for s in (p.specialties or []))
            ]

        page = filters['page']
        limit = filters['limit']
        total = len(professionals)
        page_items = professionals[(page - 1) * limit:page * limit]

        return jsonify({
            "success": True,
            "count": len(page_items),
            "professionals": [p.to_dict(include_certifications=False) for p in page_items],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit
            }
        })

    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        logger.error(f"Failed to get professionals: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@api_bp.route('/professionals/<int:professional_id>')
def get_professional(professional_id):
    """Get a professional profile with certifications"""
    try:
        professional = db.session.get(Professional, professional_id)

        if not professional:
            return jsonify({
                "success": False,
                "error": "Professional not found"
            }), 404

        return jsonify({
            "success": True,
            "professional": professional.to_dict()
        })

    except Exception as e:
        logger.error(f"Failed to get professional {professional_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@api_bp.route('/professionals', methods=['POST'])
def create_professional():
    """Create a professional profile and compute its first AI Trade Score"""
    try:
        data = validate_professional_create(get_json_payload())

        professional = Professional()
        _apply_professional_fields(professional, data)
        db.session.add(professional)
        db.session.flush()

        get_scoring_service().rescore_professional(professional.id, commit=False)
        db.session.commit()

        logger.info(f"Created professional {professional.id}: {professional.name} ({professional.trade})")
        return jsonify({
            "success": True,
            "professional": professional.to_dict()
        }), 201

    except (ValueError, ScoringError) as e:
        db.session.rollback()
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to create professional: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@api_bp.route('/professionals/<int:professional_id>', methods=['PUT'])
def update_professional(professional_id):
    """Update a professional profile; the AI Trade Score is recomputed from the new inputs"""
    try:
        professional = db.session.get(Professional, professional_id)
        if not professional:
            return jsonify({"success": False, "error": "Professional not found"}), 404

        data = validate_professional_update(get_json_payload())
        _apply_professional_fields(professional, data)

        get_scoring_service().rescore_professional(professional_id, commit=False)
        db.session.commit()

        return jsonify({
            "success": True,
            "professional": professional.to_dict()
        })

    except (ValueError, ScoringError) as e:
        db.session.rollback()
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to update professional {professional_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@api_bp.route('/professionals/<int:professional_id>/certifications', methods=['POST'])
def add_certification(professional_id):
    """Add a certification; growth and therefore the total change"""
    try:
        professional = db.session.get(Professional, professional_id)
        if not professional:
            return jsonify({"success": False, "error": "Professional not found"}), 404

        data = validate_certification(get_json_payload())
        certification = Certification(**data)
        professional.certifications.append(certification)

        total = get_scoring_service().rescore_professional(professional_id, commit=False)
        db.session.commit()

        return jsonify({
            "success": True,
            "certification": certification.to_dict(),
            "score_total": total
        }), 201

    except (ValueError, ScoringError) as e:
        db.session.rollback()
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to add certification for professional {professional_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@api_bp.route('/professionals/<int:professional_id>/certifications/<int:certification_id>', methods=['DELETE'])
def remove_certification(professional_id, certification_id):
    """Remove a certification and rescore"""
    try:
        professional = db.session.get(Professional, professional_id)
        certification = db.session.get(Certification, certification_id)
        if not professional or not certification or certification.professional_id != professional_id:
            return jsonify({"success": False, "error": "Certification not found"}), 404

        professional.certifications.remove(certification)
        db.session.flush()

        total = get_scoring_service().rescore_professional(professional_id, commit=False)
        db.session.commit()

        return jsonify({
            "success": True,
            "score_total": total
        })

    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to remove certification {certification_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@api_bp.route('/professionals/<int:professional_id>/stats')
def get_professional_stats(professional_id):
    """Get review statistics and score breakdown for a professional"""
    try:
        professional = db.session.get(Professional, professional_id)
        if not professional:
            return jsonify({"success": False, "error": "Professional not found"}), 404

        breakdown_rows = db.session.query(
            Review.rating,
            db.func.count(Review.id)
        ).filter(Review.professional_id == professional_id).group_by(Review.rating).all()

        rating_breakdown = {str(stars): 0 for stars in range(1, 6)}
        for stars, count in breakdown_rows:
            rating_breakdown[str(stars)] = count

        detailed = db.session.query(
            db.func.avg(Review.quality_rating),
            db.func.avg(Review.communication_rating),
            db.func.avg(Review.timeliness_rating),
            db.func.avg(Review.professionalism_rating)
        ).filter(Review.professional_id == professional_id).one()

        recommend_count = Review.query.filter_by(professional_id=professional_id, would_recommend=True).count()
        active_projects = Project.query.filter(
            Project.assigned_professional_id == professional_id,
            Project.status.in_(['active', 'in_progress'])
        ).count()

        return jsonify({
            "success": True,
            "stats": {
                "rating": professional.rating,
                "review_count": professional.review_count or 0,
                "projects_completed": professional.projects_completed or 0,
                "active_projects": active_projects,
                "rating_breakdown": rating_breakdown,
                "detailed_ratings": {
                    name: round(float(value), 2) if value is not None else None
                    for name, value in zip(('quality', 'communication', 'timeliness', 'professionalism'), detailed)
                },
                "would_recommend": recommend_count,
                "ai_score": professional.to_dict(include_certifications=False)['ai_score']
            }
        })

    except Exception as e:
        logger.error(f"Failed to get stats for professional {professional_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@api_bp.route('/professionals/rescore', methods=['POST'])
@admin_required
@rate_limit(max_requests=2, window_seconds=300)  # 2 requests per 5 minutes
def rescore_all_professionals():
    """Recompute the AI Trade Score of every professional"""
    try:
        professionals = Professional.query.order_by(Professional.id).all()
        processed, failed = get_scoring_service().batch_rescore(professionals)

        return jsonify({
            "success": True,
            "message": f"Rescored {processed} out of {len(professionals)} professionals",
            "processed": processed,
            "failed": failed
        })

    except Exception as e:
        logger.error(f"Batch rescoring failed: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@api_bp.route('/reviews')
def get_reviews():
    """Get reviews, newest first"""
    try:
        filters = validate_review_filters(request.args.to_dict())

        query = Review.query
        for key in ('professional_id', 'client_id', 'project_id'):
            if filters.get(key) is not None:
                query = query.filter(getattr(Review, key) == filters[key])

        reviews = query.order_by(Review.created_at.desc(), Review.id.desc()).all()

        return jsonify({
            "success": True,
            "count": len(reviews),
            "reviews": [review.to_dict() for review in reviews]
        })

    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        logger.error(f"Failed to get reviews: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@api_bp.route('/reviews', methods=['POST'])
def create_review():
    """Store a review and fold it into the professional's stats and AI Trade Score"""
    try:
        data = validate_review_create(get_json_payload())

        project = db.session.get(Project, data['project_id'])
        if not project:
            return jsonify({"success": False, "error": "Project not found"}), 404
        if not db.session.get(Professional, data['professional_id']):
            return jsonify({"success": False, "error": "Professional not found"}), 404

        existing = Review.query.filter_by(project_id=data['project_id'], client_id=data['client_id']).first()
        if existing:
            return jsonify({
                "success": False,
                "error": "You have already reviewed this project"
            }), 400

        detailed = data.get('detailed_ratings') or {}
        review = Review(
            project_id=data['project_id'],
            professional_id=data['professional_id'],
            client_id=data['client_id'],
            rating=data['rating'],
            quality_rating=detailed.get('quality'),
            communication_rating=detailed.get('communication'),
            timeliness_rating=detailed.get('timeliness'),
            professionalism_rating=detailed.get('professionalism'),
            title=data.get('title'),
            comment=data['comment'],
            would_recommend=data['would_recommend']
        )
        db.session.add(review)
        db.session.flush()

        total = get_scoring_service().record_review(
            data['professional_id'],
            timeliness_rating=detailed.get('timeliness'),
            commit=False
        )
        db.session.commit()

        logger.info(f"Review {review.id} recorded for professional {review.professional_id}, new score {total}")
        return jsonify({
            "success": True,
            "review": review.to_dict(),
            "score_total": total
        }), 201

    except IntegrityError:
        db.session.rollback()
        return jsonify({"success": False, "error": "You have already reviewed this project"}), 400
    except (ValueError, ScoringError) as e:
        db.session.rollback()
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to create review: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@api_bp.route('/reviews/<int:review_id>/response', methods=['PUT'])
def respond_to_review(review_id):
    """Attach the professional's public response to a review"""
    try:
        review = db.session.get(Review, review_id)
        if not review:
            return jsonify({"success": False, "error": "Review not found"}), 404

        data = validate_review_response(get_json_payload())
        review.response_text = data['text']
        review.responded_at = datetime.utcnow()
        db.session.commit()

        return jsonify({
            "success": True,
            "review": review.to_dict()
        })

    except ValueError as e:
        db.session.rollback()
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to respond to review {review_id}: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500

@api_bp.route('/reviews/<int:review_id>/helpful', methods=['PUT'])
def mark_review_helpful(review_id):
    """Increment the helpful counter of a review"""
    try:
        review = db.session.get(Review, review_id)
        if not review:
            return jsonify({"success": False, "error": "Review not found"}), 404

        review.helpful = (review.helpful or 0) + 1
        db.session.commit()

        return jsonify({
            "success": True,
            "helpful": review.helpful
        })

    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to mark review {review_id} helpful: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500
