"""
Test package for the trade shop scoring backend.
"""

import os
import sys
import logging
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set up test logging
logging.basicConfig(
    level=logging.WARNING,  # Reduce noise in tests
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Test configuration
TEST_DATABASE_URL = "sqlite:///:memory:"

def setup_test_environment():
    """Set up test environment variables"""
    os.environ.update({
        'DATABASE_URL': TEST_DATABASE_URL,
        'SECRET_KEY': 'test-secret-key',
        'SESSION_SECRET': 'test-session-secret',
        'AUTO_CREATE_DB': 'false'
    })
    for key in ('REDIS_URL', 'ADMIN_API_TOKEN', 'SCORING_RULES_PATH'):
        os.environ.pop(key, None)
