"""
Base provider adapter abstraction.
All adapters implement this interface so the router can treat them uniformly:
canonical conversation in, GenerationResult out, typed ProviderError on failure.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from deepsite.providers.registry import ProviderConfig

logger = logging.getLogger(__name__)

GENERATION_TIMEOUT = 120
TEST_CONNECTION_TIMEOUT = 15


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ProviderError(Exception):
    """Any recoverable failure of a single provider call."""

    def __init__(self, message: str, provider: str = "", status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code


class AuthError(ProviderError):
    """Missing or rejected credential."""


class ProviderHTTPError(ProviderError):
    """Provider answered with a non-2xx status."""

    def __init__(self, message: str, provider: str = "", status_code: int = 500):
        super().__init__(message, provider, status_code)


class EmptyResponseError(ProviderError):
    """Call succeeded but produced no usable text."""


class NetworkError(ProviderError):
    """Timeout or connection failure."""


class MalformedResponseError(ProviderError):
    """Response did not have the expected shape."""


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass
class GenerationOptions:
    max_tokens: int = 8000
    temperature: float = 0.7
    timeout: float = GENERATION_TIMEOUT


@dataclass
class GenerationResult:
    """Standardized result from any adapter."""
    text: str
    tokens_used: int = 0


class BaseAdapter(abc.ABC):
    """
    Abstract base for provider adapters.
    Each adapter knows how to translate a canonical conversation into its
    provider's wire format, make the call, and translate the answer back.
    """

    def __init__(self, config: "ProviderConfig", api_key: str, site_url: str = ""):
        self.config = config
        self.api_key = api_key
        self.site_url = site_url

    @property
    def name(self) -> str:
        return self.config.name

    def require_key(self) -> None:
        if not self.api_key:
            raise AuthError(f"{self.config.name} API key not configured", self.config.name)

    @abc.abstractmethod
    async def generate(
        self,
        model: str,
        conversation: list[dict],
        options: GenerationOptions,
    ) -> GenerationResult:
        """
        Run one chat completion.
        Conversation is a list of {"role", "content"} dicts with roles
        system/user/assistant.
        """
        ...

    @abc.abstractmethod
    async def test_connection(self, model: str) -> str:
        """Send a tiny prompt with the short connectivity timeout; return the reply text."""
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} provider={self.config.id!r}>"
