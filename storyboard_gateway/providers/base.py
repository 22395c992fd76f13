"""
Generative Provider Client Base Class

Defines the abstract interface of the generative AI provider and the
response envelope every call returns.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Optional


@dataclass
class ProviderResponse:
    """
    Provider Response Data Class

    Encapsulates response information from the upstream provider. Transport
    failures are reported here too (504 timeout, 502 network error) instead
    of being raised.
    """

    # HTTP status code
    status_code: int
    # Response headers
    headers: dict[str, str] = field(default_factory=dict)
    # Response body (parsed JSON, text, or bytes for downloads)
    body: Any = None
    # Time to first byte (ms)
    first_byte_delay_ms: Optional[int] = None
    # Total time (ms)
    total_time_ms: Optional[int] = None
    # Error message
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        """Whether the response is successful"""
        return 200 <= self.status_code < 400 and self.error is None

    @property
    def is_server_error(self) -> bool:
        """Whether it is a server error (status code >= 500)"""
        return self.status_code >= 500

    @property
    def is_retryable(self) -> bool:
        return self.status_code >= 500 or self.status_code == 429


class GenerativeClient(ABC):
    """
    Generative Provider Client Abstract Base Class

    One instance is bound to one credential. Model names are plain ids such
    as ``gemini-2.5-flash``; operation names are the provider's opaque handles.
    """

    @abstractmethod
    async def generate_content(self, model: str, body: dict[str, Any]) -> ProviderResponse:
        """
        Single-shot text/image generation

        Args:
            model: Model id
            body: generateContent request body

        Returns:
            ProviderResponse: Response with the parsed JSON body
        """

    @abstractmethod
    def stream_generate_content(
        self, model: str, body: dict[str, Any]
    ) -> AsyncGenerator[tuple[Optional[dict[str, Any]], ProviderResponse], None]:
        """
        Streaming generation

        Yields:
            tuple: (parsed chunk, response info). A failed stream yields a single
            (None, response) pair whose response carries the error.
        """

    @abstractmethod
    async def predict(self, model: str, body: dict[str, Any]) -> ProviderResponse:
        """Imagen style prediction call"""

    @abstractmethod
    async def predict_long_running(self, model: str, body: dict[str, Any]) -> ProviderResponse:
        """Submit a long-running job; the body carries the operation ``name``"""

    @abstractmethod
    async def get_operation(self, operation_name: str) -> ProviderResponse:
        """Fetch the current state of a long-running job"""

    @abstractmethod
    async def download(self, uri: str) -> ProviderResponse:
        """Fetch a generated file; the body holds raw bytes"""
