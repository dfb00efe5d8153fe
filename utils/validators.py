from marshmallow import EXCLUDE, Schema, fields, validate, validates_schema, ValidationError
from typing import Dict, Any

from config import Config


class RangeBoundsSchema(Schema):
    """A {min, max} pair where max may not be lower than min"""
    min = fields.Float(required=True, validate=validate.Range(min=0))
    max = fields.Float(required=True, validate=validate.Range(min=0))

    @validates_schema
    def validate_bounds(self, data, **kwargs):
        if data.get('min') is not None and data.get('max') is not None and data['max'] < data['min']:
            raise ValidationError('max cannot be lower than min', field_name='max')


class BudgetSchema(RangeBoundsSchema):
    currency = fields.Str(load_default='USD', validate=validate.Length(equal=3))


class ProjectLocationSchema(Schema):
    address = fields.Str(allow_none=True, validate=validate.Length(max=500))
    city = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    state = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    zip_code = fields.Str(allow_none=True, validate=validate.Length(max=20))


class ProfessionalLocationSchema(Schema):
    city = fields.Str(allow_none=True, validate=validate.Length(max=255))
    state = fields.Str(allow_none=True, validate=validate.Length(max=100))


class ProjectCreateSchema(Schema):
    """Schema for validating new projects"""
    title = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    description = fields.Str(required=True, validate=validate.Length(min=1, max=10000))
    client_id = fields.Str(required=True, validate=validate.Length(min=1, max=64))
    location = fields.Nested(ProjectLocationSchema, required=True)
    budget = fields.Nested(BudgetSchema, required=True)
    trade_types = fields.List(fields.Str(validate=validate.OneOf(Config.TRADES)), load_default=list)
    start_date = fields.Date(allow_none=True)
    deadline = fields.Date(allow_none=True)
    urgency = fields.Str(allow_none=True, validate=validate.OneOf(['low', 'normal', 'high', 'emergency']))


class ProjectUpdateSchema(Schema):
    """Schema for validating project updates"""
    title = fields.Str(validate=validate.Length(min=1, max=255))
    description = fields.Str(validate=validate.Length(min=1, max=10000))
    location = fields.Nested(ProjectLocationSchema)
    budget = fields.Nested(BudgetSchema)
    trade_types = fields.List(fields.Str(validate=validate.OneOf(Config.TRADES)))
    start_date = fields.Date(allow_none=True)
    deadline = fields.Date(allow_none=True)
    urgency = fields.Str(allow_none=True, validate=validate.OneOf(['low', 'normal', 'high', 'emergency']))
    status = fields.Str(validate=validate.OneOf(Config.PROJECT_STATUSES))
    progress = fields.Int(validate=validate.Range(min=0, max=100))


class ProjectAnalyzeSchema(Schema):
    """Schema for previewing an analysis without storing a project"""
    title = fields.Str(load_default='', validate=validate.Length(max=255))
    description = fields.Str(required=True, validate=validate.Length(min=1, max=10000))
    budget = fields.Nested(BudgetSchema, required=True)
    trade_types = fields.List(fields.Str(validate=validate.OneOf(Config.TRADES)), load_default=list)
    location = fields.Nested(ProfessionalLocationSchema, allow_none=True)


class ProjectFilterSchema(Schema):
    """Schema for validating project list parameters"""
    class Meta:
        unknown = EXCLUDE

    status = fields.Str(allow_none=True, validate=validate.OneOf(Config.PROJECT_STATUSES))
    trade_type = fields.Str(allow_none=True, validate=validate.Length(max=50))
    city = fields.Str(allow_none=True, validate=validate.Length(max=255))
    client_id = fields.Str(allow_none=True, validate=validate.Length(max=64))
    professional_id = fields.Int(allow_none=True, validate=validate.Range(min=1))
    include_match_score = fields.Bool(load_default=False)
    sort_by_match = fields.Bool(load_default=False)


class MatchFilterSchema(Schema):
    """Schema for validating project match parameters"""
    class Meta:
        unknown = EXCLUDE

    limit = fields.Int(load_default=10, validate=validate.Range(min=1, max=100))
    include_unavailable = fields.Bool(load_default=False)


class SubScoresSchema(Schema):
    """Manually edited AI Trade Score components; the total is always derived"""
    skill_verification = fields.Float(validate=validate.Range(min=0, max=10))
    reliability = fields.Float(validate=validate.Range(min=0, max=10))
    quality = fields.Float(validate=validate.Range(min=0, max=10))
    safety = fields.Float(validate=validate.Range(min=0, max=10))


class ProfessionalCreateSchema(Schema):
    """Schema for validating new professional profiles"""
    name = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    email = fields.Email(allow_none=True)
    user_id = fields.Str(allow_none=True, validate=validate.Length(max=64))
    trade = fields.Str(required=True, validate=validate.OneOf(Config.TRADES))
    specialties = fields.List(fields.Str(validate=validate.Length(max=100)), load_default=list)
    years_experience = fields.Float(required=True, validate=validate.Range(min=0, max=80))
    hourly_rate = fields.Nested(RangeBoundsSchema, required=True)
    availability = fields.Str(load_default='Available', validate=validate.OneOf(Config.AVAILABILITY_STATES))
    location = fields.Nested(ProfessionalLocationSchema, load_default=dict)
    bio = fields.Str(allow_none=True, validate=validate.Length(max=500))
    ai_score = fields.Nested(SubScoresSchema)


class ProfessionalUpdateSchema(Schema):
    """Schema for validating professional profile updates"""
    name = fields.Str(validate=validate.Length(min=1, max=255))
    email = fields.Email(allow_none=True)
    trade = fields.Str(validate=validate.OneOf(Config.TRADES))
    specialties = fields.List(fields.Str(validate=validate.Length(max=100)))
    years_experience = fields.Float(validate=validate.Range(min=0, max=80))
    hourly_rate = fields.Nested(RangeBoundsSchema)
    availability = fields.Str(validate=validate.OneOf(Config.AVAILABILITY_STATES))
    location = fields.Nested(ProfessionalLocationSchema)
    bio = fields.Str(allow_none=True, validate=validate.Length(max=500))
    verified = fields.Bool()
    ai_score = fields.Nested(SubScoresSchema)


class ProfessionalFilterSchema(Schema):
    """Schema for validating professional list parameters"""
    class Meta:
        unknown = EXCLUDE

    trade = fields.Str(allow_none=True, validate=validate.Length(max=50))
    availability = fields.Str(allow_none=True, validate=validate.OneOf(Config.AVAILABILITY_STATES))
    min_score = fields.Float(allow_none=True, validate=validate.Range(min=0, max=10))
    min_rating = fields.Float(allow_none=True, validate=validate.Range(min=0, max=5))
    specialty = fields.Str(allow_none=True, validate=validate.Length(max=100))
    verified = fields.Bool(allow_none=True)
    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(load_default=20, validate=validate.Range(min=1, max=100))


class CertificationSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    issuer = fields.Str(allow_none=True, validate=validate.Length(max=255))
    date_obtained = fields.Date(allow_none=True)
    expiry_date = fields.Date(allow_none=True)
    verification_url = fields.Url(allow_none=True)


class DetailedRatingsSchema(Schema):
    quality = fields.Int(allow_none=True, validate=validate.Range(min=1, max=5))
    communication = fields.Int(allow_none=True, validate=validate.Range(min=1, max=5))
    timeliness = fields.Int(allow_none=True, validate=validate.Range(min=1, max=5))
    professionalism = fields.Int(allow_none=True, validate=validate.Range(min=1, max=5))


class ReviewCreateSchema(Schema):
    """Schema for validating submitted reviews"""
    project_id = fields.Int(required=True, validate=validate.Range(min=1))
    professional_id = fields.Int(required=True, validate=validate.Range(min=1))
    client_id = fields.Str(required=True, validate=validate.Length(min=1, max=64))
    rating = fields.Int(required=True, validate=validate.Range(min=1, max=5))
    detailed_ratings = fields.Nested(DetailedRatingsSchema, load_default=dict)
    title = fields.Str(allow_none=True, validate=validate.Length(max=255))
    comment = fields.Str(required=True, validate=validate.Length(min=1, max=1000))
    would_recommend = fields.Bool(load_default=True)


class ReviewFilterSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    professional_id = fields.Int(allow_none=True)
    client_id = fields.Str(allow_none=True)
    project_id = fields.Int(allow_none=True)


class ReviewResponseSchema(Schema):
    text = fields.Str(required=True, validate=validate.Length(min=1, max=1000))


class QuoteCreateSchema(Schema):
    """Schema for validating quotes submitted on a project"""
    professional_id = fields.Int(required=True, validate=validate.Range(min=1))
    amount = fields.Float(required=True, validate=validate.Range(min=0))
    timeline = fields.Str(allow_none=True, validate=validate.Length(max=100))
    materials = fields.List(fields.Str(validate=validate.Length(max=255)), load_default=list)
    notes = fields.Str(allow_none=True, validate=validate.Length(max=2000))


class QuoteRejectSchema(Schema):
    reason = fields.Str(allow_none=True, validate=validate.Length(max=500))


def _load(schema: Schema, data: Dict[str, Any], label: str) -> Dict[str, Any]:
    try:
        result = schema.load(data or {})
        return dict(result)  # Ensure Dict type
    except ValidationError as err:
        raise ValueError(f"Invalid {label}: {err.messages}")

def _clean_query(data: Dict[str, Any]) -> Dict[str, Any]:
    """Remove empty strings and None values from query parameters"""
    return {k: v for k, v in data.items() if v not in [None, '', 'None']}

def validate_project_create(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(ProjectCreateSchema(), data, 'project data')

def validate_project_update(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(ProjectUpdateSchema(), data, 'project data')

def validate_project_analysis_request(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(ProjectAnalyzeSchema(), data, 'analysis request')

def validate_project_filters(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(ProjectFilterSchema(), _clean_query(data), 'filters')

def validate_match_filters(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(MatchFilterSchema(), _clean_query(data), 'filters')

def validate_professional_create(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(ProfessionalCreateSchema(), data, 'professional data')

def validate_professional_update(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(ProfessionalUpdateSchema(), data, 'professional data')

def validate_professional_filters(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(ProfessionalFilterSchema(), _clean_query(data), 'filters')

def validate_certification(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(CertificationSchema(), data, 'certification')

def validate_review_create(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(ReviewCreateSchema(), data, 'review')

def validate_review_filters(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(ReviewFilterSchema(), _clean_query(data), 'filters')

def validate_review_response(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(ReviewResponseSchema(), data, 'review response')

def validate_quote_create(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(QuoteCreateSchema(), data, 'quote')

def validate_quote_reject(data: Dict[str, Any]) -> Dict[str, Any]:
    return _load(QuoteRejectSchema(), data, 'quote rejection')

def get_json_payload() -> Dict[str, Any]:
    """Request JSON body; a missing or malformed body is a ValueError like any invalid input"""
    from flask import request
    from werkzeug.exceptions import BadRequest

    try:
        data = request.get_json()
    except BadRequest:
        raise ValueError("Invalid JSON payload")
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data
