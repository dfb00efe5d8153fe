"""
Security utilities for secret validation at startup
"""
import os
import logging
from typing import List, Dict, Tuple

logger = logging.getLogger(__name__)

class SecurityValidator:
    """Centralized security validation for the application"""

    # Required secrets for basic application functionality
    REQUIRED_SECRETS = {
        'SESSION_SECRET': 'Flask session security',
        'DATABASE_URL': 'Database connection'
    }

    # Optional secrets for enhanced functionality (warn if missing)
    OPTIONAL_SECRETS = {
        'ADMIN_API_TOKEN': 'Protection of admin endpoints (batch rescoring)',
        'REDIS_URL': 'Shared Redis cache for project analyses'
    }

    @classmethod
    def validate_required_secrets(cls) -> Tuple[bool, List[str]]:
        """
        Validate that all required secrets are present
        Returns: (is_valid, missing_secrets)
        """
        missing_secrets = []

        for secret_key, description in cls.REQUIRED_SECRETS.items():
            if not os.environ.get(secret_key):
                missing_secrets.append(f"{secret_key} ({description})")
                logger.error(f"Missing required secret: {secret_key}")

        return len(missing_secrets) == 0, missing_secrets

    @classmethod
    def check_optional_secrets(cls) -> Dict[str, bool]:
        """
        Check availability of optional secrets
        Returns: dict mapping secret name to availability
        """
        availability = {}

        for secret_key, description in cls.OPTIONAL_SECRETS.items():
            is_available = bool(os.environ.get(secret_key))
            availability[secret_key] = is_available

            if not is_available:
                logger.warning(f"Optional secret missing: {secret_key} ({description})")

        return availability

    @classmethod
    def validate_all_secrets(cls, raise_on_missing_required: bool = True) -> Dict:
        """
        Comprehensive secret validation
        Args:
            raise_on_missing_required: Raise ValueError if required secrets missing
        Returns:
            dict with validation results
        """
        is_valid, missing_required = cls.validate_required_secrets()

        if not is_valid and raise_on_missing_required:
            raise ValueError(f"Missing required secrets: {', '.join(missing_required)}")

        optional_availability = cls.check_optional_secrets()

        return {
            'required_valid': is_valid,
            'missing_required': missing_required,
            'optional_availability': optional_availability,
            'total_required': len(cls.REQUIRED_SECRETS),
            'total_optional': len(cls.OPTIONAL_SECRETS),
            'optional_available_count': sum(optional_availability.values())
        }
