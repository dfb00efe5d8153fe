from datetime import datetime
from app import db
from sqlalchemy import CheckConstraint
from sqlalchemy.types import JSON

from config import Config
from services.scoring.match_score import ProfessionalMatchProfile, ProjectMatchProfile
from services.scoring.trade_score import ProfessionalScoreProfile
from services.scoring.complexity_analyzer import ProjectInput


def _float(value):
    return float(value) if value is not None else None


class Professional(db.Model):
    __tablename__ = 'professionals'
    __table_args__ = (
        db.Index('ix_professionals_trade', 'trade'),
        db.Index('ix_professionals_city', 'city'),
        db.Index('ix_professionals_score_total', 'score_total'),
        CheckConstraint("availability IN ('Available', 'Busy', 'Unavailable')",
                        name='ck_professionals_availability'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64))  # Account id in the auth service
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255))
    trade = db.Column(db.String(50), nullable=False)
    specialties = db.Column(JSON)  # list of trade names / specialties
    years_experience = db.Column(db.Float, nullable=False, default=0)
    hourly_rate_min = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    hourly_rate_max = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    availability = db.Column(db.String(20), default='Available')
    city = db.Column(db.String(255))
    state = db.Column(db.String(100))
    bio = db.Column(db.String(500))
    verified = db.Column(db.Boolean, default=False)

    # AI Trade Score components (0-10 scale)
    score_total = db.Column(db.Float, default=Config.DEFAULT_SUB_SCORE)
    score_skill_verification = db.Column(db.Float, default=Config.DEFAULT_SUB_SCORE)
    score_reliability = db.Column(db.Float, default=Config.DEFAULT_SUB_SCORE)
    score_quality = db.Column(db.Float, default=Config.DEFAULT_SUB_SCORE)
    score_safety = db.Column(db.Float, default=Config.DEFAULT_SUB_SCORE)
    score_updated_at = db.Column(db.DateTime)

    # Statistics
    rating = db.Column(db.Float)  # Average review rating (1-5), None until first review
    review_count = db.Column(db.Integer, default=0)
    projects_completed = db.Column(db.Integer, default=0)

    certifications = db.relationship('Certification', backref='professional', lazy=True,
                                     cascade='all, delete-orphan', order_by='Certification.id')

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Professional {self.id}: {self.name} ({self.trade})>'

    def to_score_profile(self) -> ProfessionalScoreProfile:
        """Snapshot of the inputs of the AI Trade Score"""
        default = Config.DEFAULT_SUB_SCORE
        return ProfessionalScoreProfile(
            skill_verification=self.score_skill_verification if self.score_skill_verification is not None else default,
            reliability=self.score_reliability if self.score_reliability is not None else default,
            quality=self.score_quality if self.score_quality is not None else default,
            safety=self.score_safety if self.score_safety is not None else default,
            certifications_count=len(self.certifications),
            years_experience=self.years_experience or 0,
            total=self.score_total
        )

    def to_match_profile(self) -> ProfessionalMatchProfile:
        return ProfessionalMatchProfile(
            trade=self.trade,
            specialties=tuple(self.specialties or ()),
            years_experience=self.years_experience or 0,
            hourly_rate_min=_float(self.hourly_rate_min) or 0.0,
            hourly_rate_max=_float(self.hourly_rate_max) or 0.0,
            rating=self.rating,
            availability=self.availability or 'Available',
            city=self.city
        )

    def to_dict(self, include_certifications: bool = True):
        """Convert professional to dictionary for API responses"""
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'email': self.email,
            'trade': self.trade,
            'specialties': self.specialties or [],
            'years_experience': self.years_experience,
            'hourly_rate': {
                'min': _float(self.hourly_rate_min),
                'max': _float(self.hourly_rate_max)
            },
            'availability': self.availability,
            'location': {'city': self.city, 'state': self.state},
            'bio': self.bio,
            'verified': self.verified or False,
            'ai_score': {
                'total': self.score_total,
                'skill_verification': self.score_skill_verification,
                'reliability': self.score_reliability,
                'quality': self.score_quality,
                'safety': self.score_safety,
                'updated_at': self.score_updated_at.isoformat() if self.score_updated_at else None
            },
            'stats': {
                'rating': self.rating,
                'review_count': self.review_count or 0,
                'projects_completed': self.projects_completed or 0
            },
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
        if include_certifications:
            data['certifications'] = [c.to_dict() for c in self.certifications]
        return data


class Certification(db.Model):
    __tablename__ = 'certifications'

    id = db.Column(db.Integer, primary_key=True)
    professional_id = db.Column(db.Integer, db.ForeignKey('professionals.id'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    issuer = db.Column(db.String(255))
    date_obtained = db.Column(db.Date)
    expiry_date = db.Column(db.Date)
    verification_url = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Certification {self.id}: {self.name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'issuer': self.issuer,
            'date_obtained': self.date_obtained.isoformat() if self.date_obtained else None,
            'expiry_date': self.expiry_date.isoformat() if self.expiry_date else None,
            'verification_url': self.verification_url
        }


class Project(db.Model):
    __tablename__ = 'projects'
    __table_args__ = (
        db.Index('ix_projects_status_created', 'status', 'created_at'),
        db.Index('ix_projects_city_state', 'city', 'state'),
        CheckConstraint("status IN ('new', 'active', 'in_progress', 'completed', 'cancelled')",
                        name='ck_projects_status'),
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.String(64), nullable=False)  # Account id in the auth service
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)

    address = db.Column(db.Text)
    city = db.Column(db.String(255), nullable=False)
    state = db.Column(db.String(100), nullable=False)
    zip_code = db.Column(db.String(20))

    budget_min = db.Column(db.Numeric(12, 2), nullable=False)
    budget_max = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), default='USD')
    trade_types = db.Column(JSON)  # list of trade names

    start_date = db.Column(db.Date)
    deadline = db.Column(db.Date)
    urgency = db.Column(db.String(20))

    status = db.Column(db.String(20), default='new')
    progress = db.Column(db.Integer, default=0)
    assigned_professional_id = db.Column(db.Integer, db.ForeignKey('professionals.id'))
    assigned_professional = db.relationship('Professional', foreign_keys=[assigned_professional_id])

    ai_analysis = db.Column(JSON)  # ProjectAnalysis.to_dict()
    analyzed_at = db.Column(db.DateTime)

    quotes = db.relationship('Quote', backref='project', lazy=True,
                             cascade='all, delete-orphan', order_by='Quote.id')

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Project {self.id}: {(self.title or "")[:50]}>'

    @property
    def complexity_score(self):
        analysis = self.ai_analysis if isinstance(self.ai_analysis, dict) else {}
        return analysis.get('complexity_score')

    def to_project_input(self) -> ProjectInput:
        return ProjectInput(
            title=self.title,
            description=self.description,
            budget_min=_float(self.budget_min),
            budget_max=_float(self.budget_max),
            trade_types=tuple(self.trade_types or ()),
            city=self.city,
            state=self.state
        )

    def to_match_profile(self) -> ProjectMatchProfile:
        return ProjectMatchProfile(
            trade_types=tuple(self.trade_types or ()),
            budget_min=_float(self.budget_min),
            budget_max=_float(self.budget_max),
            complexity_score=self.complexity_score,
            city=self.city
        )

    def to_dict(self):
        """Convert project to dictionary for API responses"""
        return {
            'id': self.id,
            'client_id': self.client_id,
            'title': self.title,
            'description': self.description,
            'location': {
                'address': self.address,
                'city': self.city,
                'state': self.state,
                'zip_code': self.zip_code
            },
            'budget': {
                'min': _float(self.budget_min),
                'max': _float(self.budget_max),
                'currency': self.currency or 'USD'
            },
            'trade_types': self.trade_types or [],
            'timeline': {
                'start_date': self.start_date.isoformat() if self.start_date else None,
                'deadline': self.deadline.isoformat() if self.deadline else None
            },
            'urgency': self.urgency,
            'status': self.status or 'new',
            'progress': self.progress or 0,
            'assigned_professional_id': self.assigned_professional_id,
            'ai_analysis': self.ai_analysis,
            'analyzed_at': self.analyzed_at.isoformat() if self.analyzed_at else None,
            'quote_count': len([q for q in self.quotes if q.status != 'withdrawn']),
            'created_at': self.created_at.isoformat() if self.created_at else None
        }


class Quote(db.Model):
    """A professional's priced offer on a project"""
    __tablename__ = 'quotes'
    __table_args__ = (
        db.UniqueConstraint('project_id', 'professional_id', name='uq_quote_project_professional'),
        CheckConstraint("status IN ('pending', 'accepted', 'rejected', 'withdrawn')", name='ck_quotes_status'),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey('projects.id'), nullable=False, index=True)
    professional_id = db.Column(db.Integer, db.ForeignKey('professionals.id'), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    timeline = db.Column(db.String(100))
    materials = db.Column(JSON)
    notes = db.Column(db.Text)
    status = db.Column(db.String(20), default='pending')
    submitted_at = db.Column(db.DateTime, default=datetime.utcnow)
    responded_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.String(500))

    def __repr__(self):
        return f'<Quote {self.id}: project={self.project_id} professional={self.professional_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'professional_id': self.professional_id,
            'amount': _float(self.amount),
            'timeline': self.timeline,
            'materials': self.materials or [],
            'notes': self.notes,
            'status': self.status,
            'submitted_at': self.submitted_at.isoformat() if self.submitted_at else None,
            'responded_at': self.responded_at.isoformat() if self.responded_at else None,
            'rejection_reason': self.rejection_reason
        }


class Review(db.Model):
    __tablename__ = 'reviews'
    __table_args__ = (
        db.UniqueConstraint('project_id', 'client_id', name='uq_review_project_client'),
        CheckConstraint('rating BETWEEN 1 AND 5', name='ck_reviews_rating'),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey('projects.id'), nullable=False)
    professional_id = db.Column(db.Integer, db.ForeignKey('professionals.id'), nullable=False, index=True)
    client_id = db.Column(db.String(64), nullable=False)

    rating = db.Column(db.Integer, nullable=False)
    # Detailed ratings (1-5)
    quality_rating = db.Column(db.Integer)
    communication_rating = db.Column(db.Integer)
    timeliness_rating = db.Column(db.Integer)
    professionalism_rating = db.Column(db.Integer)

    title = db.Column(db.String(255))
    comment = db.Column(db.String(1000), nullable=False)
    would_recommend = db.Column(db.Boolean, default=True)
    response_text = db.Column(db.Text)
    responded_at = db.Column(db.DateTime)
    helpful = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Review {self.id}: professional={self.professional_id} rating={self.rating}>'

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'professional_id': self.professional_id,
            'client_id': self.client_id,
            'rating': self.rating,
            'detailed_ratings': {
                'quality': self.quality_rating,
                'communication': self.communication_rating,
                'timeliness': self.timeliness_rating,
                'professionalism': self.professionalism_rating
            },
            'title': self.title,
            'comment': self.comment,
            'would_recommend': self.would_recommend,
            'response': {
                'text': self.response_text,
                'responded_at': self.responded_at.isoformat() if self.responded_at else None
            } if self.response_text else None,
            'helpful': self.helpful or 0,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
