"""Caching utilities for the application"""
import logging
from flask import current_app
from flask_caching import Cache

logger = logging.getLogger(__name__)

cache = Cache()

def init_cache(app):
    """Initialize caching with appropriate backend"""
    redis_url = app.config.get('REDIS_URL')

    if redis_url and not app.config.get('TESTING', False):
        # Use Redis if available
        cache_config = {
            'CACHE_TYPE': 'RedisCache',
            'CACHE_REDIS_URL': redis_url,
            'CACHE_DEFAULT_TIMEOUT': 300  # 5 minutes default
        }
        logger.info("Using Redis for caching")
    else:
        # Fall back to simple in-memory cache
        cache_config = {
            'CACHE_TYPE': 'SimpleCache',
            'CACHE_DEFAULT_TIMEOUT': 300
        }
        logger.info("Using in-memory caching (Redis not configured)")

    app.config.update(cache_config)
    cache.init_app(app)
    return cache

def get_cache_stats():
    """Get cache statistics"""
    stats = {
        'backend': current_app.config.get('CACHE_TYPE', 'unknown'),
        'available': True
    }

    if stats['backend'] == 'RedisCache':
        try:
            if hasattr(cache.cache, '_write_client'):
                client = cache.cache._write_client
                info = client.info()
                stats.update({
                    'used_memory': info.get('used_memory_human', 'N/A'),
                    'connected_clients': info.get('connected_clients', 0)
                })
        except Exception as e:
            logger.error(f"Failed to get Redis stats: {e}")
            stats['error'] = str(e)

    return stats
