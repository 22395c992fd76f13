"""
Provider Client Module Initialization
"""

from storyboard_gateway.providers.base import GenerativeClient, ProviderResponse
from storyboard_gateway.providers.gemini_client import GeminiClient
from storyboard_gateway.providers.factory import (
    GeminiClientProvider,
    ProviderClientCache,
    get_client_provider,
)

__all__ = [
    "GenerativeClient",
    "ProviderResponse",
    "GeminiClient",
    "GeminiClientProvider",
    "ProviderClientCache",
    "get_client_provider",
]
