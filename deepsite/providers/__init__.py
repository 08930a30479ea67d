"""
LLM provider support for deepsite.
A static registry of providers plus one adapter per wire protocol.
"""
from deepsite.providers.base import (
    AuthError,
    BaseAdapter,
    EmptyResponseError,
    GenerationOptions,
    GenerationResult,
    MalformedResponseError,
    NetworkError,
    ProviderError,
    ProviderHTTPError,
)
from deepsite.providers.gemini import GeminiAdapter
from deepsite.providers.openai_compat import OpenAICompatibleAdapter
from deepsite.providers.registry import PROVIDERS, ProviderConfig, ProviderRegistry

__all__ = [
    "AuthError",
    "BaseAdapter",
    "EmptyResponseError",
    "GenerationOptions",
    "GenerationResult",
    "MalformedResponseError",
    "NetworkError",
    "ProviderError",
    "ProviderHTTPError",
    "GeminiAdapter",
    "OpenAICompatibleAdapter",
    "PROVIDERS",
    "ProviderConfig",
    "ProviderRegistry",
]
