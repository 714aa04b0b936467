"""
Cache utilities for Four Sigma
Provides caching decorators and helper functions for read-heavy endpoints
"""

import functools

from flask import current_app, request

from foursigma import cache

LEADERBOARD_KEY_PREFIX = "leaderboard"


def make_cache_key(*args, **kwargs):
    """Generate a cache key from request path, query string and arguments"""
    path = request.path
    query_str = "_".join(f"{k}_{v}" for k, v in sorted(request.args.items()))
    args_str = "_".join(str(arg) for arg in args)
    kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
    return f"{path}_{query_str}_{args_str}_{kwargs_str}".replace("/", "_")


def cached_route(timeout=None, key_prefix="view"):
    """
    Decorator for caching route responses

    Args:
        timeout: Cache timeout in seconds, or the name of a config key holding it
        key_prefix: Prefix for cache key
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            cache_key = f"{key_prefix}_{make_cache_key(*args, **kwargs)}"

            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Cache hit for key: {cache_key}")
                return result

            result = f(*args, **kwargs)
            ttl = timeout
            if isinstance(ttl, str):
                ttl = current_app.config.get(ttl)
            cache.set(cache_key, result, timeout=ttl)
            current_app.logger.debug(f"Cache set for key: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate_cache_pattern(pattern):
    """
    Invalidate cache keys matching a pattern

    Args:
        pattern: Pattern to match cache keys
    """
    try:
        # SimpleCache and friends can't delete by pattern, so clear everything
        cache.clear()
        current_app.logger.debug(f"Cache cleared for pattern: {pattern}")
    except Exception as e:
        current_app.logger.error(f"Failed to clear cache: {e}")


def invalidate_leaderboard_cache():
    """Drop cached leaderboards after new responses land"""
    invalidate_cache_pattern(f"{LEADERBOARD_KEY_PREFIX}*")
