import os

class Config:
    # Database - Required
    DATABASE_URL = os.environ.get("DATABASE_URL")

    # App settings - Required
    SECRET_KEY = os.environ.get("SECRET_KEY")
    SESSION_SECRET = os.environ.get("SESSION_SECRET")

    # Caching (optional Redis backend, in-memory otherwise)
    REDIS_URL = os.environ.get("REDIS_URL")
    ANALYSIS_CACHE_TIMEOUT = int(os.environ.get("ANALYSIS_CACHE_TIMEOUT") or "3600")

    # Keyword / skill vocabularies for project analysis (YAML, optional)
    SCORING_RULES_PATH = os.environ.get("SCORING_RULES_PATH") or os.path.join('config', 'scoring_rules.yml')

    # Admin batch operations
    RESCORE_BATCH_SIZE = int(os.environ.get("RESCORE_BATCH_SIZE") or "50")

    # Neutral prior for every sub-score of a newly created professional (0-10 scale)
    DEFAULT_SUB_SCORE = 5.0

    # AI Trade Score weights
    # Total must equal 1.0 (100%)
    TRADE_SCORE_WEIGHTS = {
        'skill_verification': 0.30,   # Verified skills and licences
        'reliability': 0.25,          # Timeliness reported by clients
        'quality': 0.25,              # Derived from average review rating
        'safety': 0.10,               # Safety record
        'growth': 0.10                # Certifications and years of experience
    }

    # Growth score multipliers (points per certification / per year of experience)
    GROWTH_POINTS_PER_CERTIFICATION = 1.0
    GROWTH_POINTS_PER_YEAR = 0.2

    # Allowed enumerations
    TRADES = ['Electrician', 'Plumber', 'HVAC', 'Carpenter', 'Painter', 'Landscaper',
              'Roofer', 'Mason', 'General Contractor', 'Other']
    AVAILABILITY_STATES = ['Available', 'Busy', 'Unavailable']
    PROJECT_STATUSES = ['new', 'active', 'in_progress', 'completed', 'cancelled']
