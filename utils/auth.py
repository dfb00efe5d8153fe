"""Admin authentication and rate limiting for API endpoints"""
import os
import hmac
import time
from functools import wraps
from flask import request, jsonify
import logging

logger = logging.getLogger(__name__)

# Simple in-memory rate limiting
rate_limit_storage = {}

def check_admin_auth():
    """Check if the request has valid admin authentication"""
    admin_token = os.environ.get('ADMIN_API_TOKEN')

    # No token configured: admin endpoints stay open (local development)
    if not admin_token:
        logger.warning("ADMIN_API_TOKEN not configured - admin endpoints are unprotected!")
        return True

    auth_header = request.headers.get('Authorization')
    if not auth_header:
        return False

    # Support both Bearer token and API-Key formats
    if auth_header.startswith('Bearer '):
        provided_token = auth_header[7:]
    elif auth_header.startswith('API-Key '):
        provided_token = auth_header[8:]
    else:
        provided_token = auth_header

    return hmac.compare_digest(provided_token, admin_token)

def admin_required(f):
    """Decorator to require admin authentication for endpoints"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not check_admin_auth():
            logger.warning(f"Unauthorized access attempt to {request.endpoint} from {request.remote_addr}")
            return jsonify({
                "success": False,
                "error": "Unauthorized. Admin authentication required."
            }), 401
        return f(*args, **kwargs)
    return decorated_function

def rate_limit(max_requests=10, window_seconds=60):
    """Rate limiting decorator

    Args:
        max_requests: Maximum number of requests allowed
        window_seconds: Time window in seconds
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            client_id = request.remote_addr
            key = f"{client_id}:{request.endpoint}"
            current_time = time.time()

            # Drop timestamps outside the window
            timestamps = [
                timestamp for timestamp in rate_limit_storage.get(key, [])
                if current_time - timestamp < window_seconds
            ]

            if len(timestamps) >= max_requests:
                logger.warning(f"Rate limit exceeded for {client_id} on {request.endpoint}")
                rate_limit_storage[key] = timestamps
                return jsonify({
                    "success": False,
                    "error": f"Rate limit exceeded. Maximum {max_requests} requests per {window_seconds} seconds."
                }), 429

            timestamps.append(current_time)
            rate_limit_storage[key] = timestamps

            return f(*args, **kwargs)
        return decorated_function
    return decorator
