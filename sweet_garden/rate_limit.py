"""
In-memory fixed window rate limiting for Flask routes.

Single process deployment, so counters live in this process only and reset on restart.
"""
from functools import wraps
from threading import Lock
import logging
import math
import time

from flask import current_app, jsonify, request

logger = logging.getLogger(__name__)


class RateLimiter:

    def __init__(self, max_requests: int, window_seconds: int, message: str, clock=time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self._clock = clock
        # Format: {key: {'count': int, 'reset_time': float}}
        self._cache: dict[str, dict] = {}
        self._lock = Lock()

    def hit(self, key: str) -> tuple[bool, int, float]:
        """
        Counts one request for key.

        Returns: (allowed, remaining, seconds until the window resets)
        """
        now = self._clock()
        with self._lock:
            entry = self._cache.get(key)
            if entry is None or entry['reset_time'] <= now:
                entry = {'count': 0, 'reset_time': now + self.window_seconds}
                self._cache[key] = entry
            entry['count'] += 1
            remaining = max(self.max_requests - entry['count'], 0)
            reset_in = entry['reset_time'] - now
            allowed = entry['count'] <= self.max_requests
            self._cleanup(now)
        return allowed, remaining, reset_in

    def _cleanup(self, now: float):
        expired = [key for key, entry in self._cache.items() if entry['reset_time'] <= now]
        for key in expired:
            del self._cache[key]

    def reset(self):
        with self._lock:
            self._cache.clear()


def rate_limited(limiter_name: str):
    """
    Route decorator. The limiter itself is looked up on the current app so each app instance counts separately.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            limiter = current_app.extensions['rate_limiters'][limiter_name]
            key = request.remote_addr or 'unknown'
            allowed, remaining, reset_in = limiter.hit(key)
            if not allowed:
                logger.warning("Rate limit exceeded for %s on %s", key, request.path)
                reset = str(math.ceil(reset_in))
                return jsonify({"error": limiter.message}), 429, {
                    'RateLimit-Limit': str(limiter.max_requests),
                    'RateLimit-Remaining': str(remaining),
                    'RateLimit-Reset': reset,
                    'Retry-After': reset,
                }
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def booking_limiter() -> RateLimiter:
    return RateLimiter(
        max_requests=5,
        window_seconds=15 * 60,  # 15 minutes
        message='Demasiadas solicitudes. Intenta de nuevo en 15 minutos.',
    )
