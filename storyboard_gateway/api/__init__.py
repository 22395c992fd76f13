"""
API Router Module Initialization
"""

from storyboard_gateway.api.ai import router as ai_router
from storyboard_gateway.api.deps import get_caller_api_key, get_db

__all__ = [
    "ai_router",
    "get_caller_api_key",
    "get_db",
]
