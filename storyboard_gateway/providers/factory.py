"""
Provider Client Factory Module

Resolves which credential a provider call uses and hands out clients.

Priority: explicit key, then the caller key of the active request context,
then the server GEMINI_API_KEY. Caller keys always get a fresh client that
is never cached; the server key's client is kept in a capacity-1 cache and
replaced when the key changes.
"""

import logging
from typing import Callable, Optional

from storyboard_gateway.common.errors import CredentialMissingError
from storyboard_gateway.common.request_context import get_user_api_key
from storyboard_gateway.common.sanitizer import mask_credential
from storyboard_gateway.config import get_settings
from storyboard_gateway.providers.base import GenerativeClient
from storyboard_gateway.providers.gemini_client import GeminiClient

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], GenerativeClient]


class ProviderClientCache:
    """Holds at most one client, keyed by the credential it was built with"""

    def __init__(self, factory: ClientFactory):
        self._factory = factory
        self._api_key: Optional[str] = None
        self._client: Optional[GenerativeClient] = None

    def get(self, api_key: str) -> GenerativeClient:
        if self._client is None or self._api_key != api_key:
            logger.info("Creating provider client for server key %s", mask_credential(api_key))
            self._client = self._factory(api_key)
            self._api_key = api_key
        return self._client

    def clear(self) -> None:
        self._client = None
        self._api_key = None


def _server_api_key() -> Optional[str]:
    return get_settings().gemini_api_key


class GeminiClientProvider:
    """
    Credential resolution and client construction

    Long-lived; owns the cache for the server credential.
    """

    def __init__(
        self,
        client_factory: ClientFactory = GeminiClient,
        server_key_source: Callable[[], Optional[str]] = _server_api_key,
    ):
        self._client_factory = client_factory
        self._server_key_source = server_key_source
        self._cache = ProviderClientCache(client_factory)

    def has_server_key(self) -> bool:
        return bool((self._server_key_source() or "").strip())

    def get_client(self, api_key: Optional[str] = None) -> GenerativeClient:
        """
        Get a client for the current call

        Args:
            api_key: Explicit key, takes precedence over every other source

        Raises:
            CredentialMissingError: No caller key and no server key configured
        """
        caller_key = (api_key or "").strip() or (get_user_api_key() or "").strip()
        if caller_key:
            return self._client_factory(caller_key)

        server_key = (self._server_key_source() or "").strip()
        if not server_key:
            raise CredentialMissingError()
        return self._cache.get(server_key)


_client_provider: Optional[GeminiClientProvider] = None


def get_client_provider() -> GeminiClientProvider:
    """Get the process-wide client provider"""
    global _client_provider
    if _client_provider is None:
        _client_provider = GeminiClientProvider()
    return _client_provider
