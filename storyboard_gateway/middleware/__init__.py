"""
Middleware Package

Contains application middleware components.
"""

from storyboard_gateway.middleware.rate_limit import FixedWindowRateLimiter, RateLimitMiddleware

__all__ = ["FixedWindowRateLimiter", "RateLimitMiddleware"]
