"""
The static catalog of LLM providers.

Declaration order is the fallback order. Credentials and per-provider model
overrides come from the environment ({PROVIDER}_API_KEY / {PROVIDER}_MODEL)
and are snapshotted when the registry is built.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Mapping

from deepsite.providers.base import BaseAdapter
from deepsite.providers.gemini import GeminiAdapter
from deepsite.providers.openai_compat import OpenAICompatibleAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderConfig:
    id: str
    name: str
    api_key_env: str
    model_env: str
    default_model: str
    base_url: str | None = None
    models: tuple[str, ...] = ()
    max_tokens: int = 0
    supports_streaming: bool = False
    description: str = ""
    adapter: str = "openai_compat"
    model_display_names: Mapping[str, str] = field(default_factory=dict)
    extra_headers: Mapping[str, str] = field(default_factory=dict)
    extra_body: Mapping[str, object] = field(default_factory=dict)


PROVIDERS: tuple[ProviderConfig, ...] = (
    ProviderConfig(
        id="openai",
        name="OpenAI",
        api_key_env="OPENAI_API_KEY",
        model_env="OPENAI_MODEL",
        base_url="https://api.openai.com/v1",
        default_model="gpt-4o",
        models=("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-4", "gpt-3.5-turbo"),
        max_tokens=128000,
        supports_streaming=True,
        description="OpenAI's GPT models",
    ),
    ProviderConfig(
        id="openrouter",
        name="OpenRouter",
        api_key_env="OPENROUTER_API_KEY",
        model_env="OPENROUTER_MODEL",
        base_url="https://openrouter.ai/api/v1",
        default_model="deepseek/deepseek-chat-v3.1",
        models=(
            "qwen/qwen3-235b-a22b-thinking-2507",
            "deepseek/deepseek-chat-v3.1",
            "openai/gpt-oss-120b",
            "x-ai/grok-code-fast-1",
            "mistralai/codestral-2508",
            "anthropic/claude-3-5-haiku",
            "anthropic/claude-3-5-sonnet",
            "meta-llama/llama-3.3-70b-instruct",
            "google/gemini-2.0-flash-exp",
            "nvidia/llama-3.1-nemotron-70b-instruct",
        ),
        max_tokens=200000,
        supports_streaming=True,
        description="Access multiple AI models through OpenRouter",
        model_display_names=MappingProxyType({
            "qwen/qwen3-235b-a22b-thinking-2507": "Qwen 3 235B Thinking",
            "deepseek/deepseek-chat-v3.1": "DeepSeek Chat V3.1",
            "openai/gpt-oss-120b": "GPT OSS 120B",
            "x-ai/grok-code-fast-1": "Grok Code Fast",
            "mistralai/codestral-2508": "Codestral 25.08",
        }),
        extra_headers=MappingProxyType({
            "HTTP-Referer": "https://localhost:3000",
            "X-Title": "DeepSite 2.0",
        }),
        extra_body=MappingProxyType({
            "top_p": 1,
            "frequency_penalty": 0,
            "presence_penalty": 0,
        }),
    ),
    ProviderConfig(
        id="xai",
        name="XAI (Grok)",
        api_key_env="XAI_API_KEY",
        model_env="XAI_MODEL",
        base_url="https://api.x.ai/v1",
        default_model="grok-4",
        models=("grok-4", "grok-beta", "grok-vision-beta"),
        max_tokens=131072,
        supports_streaming=True,
        description="XAI's Grok models with real-time information access",
    ),
    ProviderConfig(
        id="groq",
        name="Groq",
        api_key_env="GROQ_API_KEY",
        model_env="GROQ_MODEL",
        base_url="https://api.groq.com/openai/v1",
        default_model="llama-3.3-70b-versatile",
        models=(
            "llama-3.3-70b-versatile",
            "llama-3.1-70b-versatile",
            "llama-3.1-8b-instant",
            "mixtral-8x7b-32768",
            "gemma2-9b-it",
            "llama-3.2-90b-vision-preview",
            "llama-3.2-11b-vision-preview",
        ),
        max_tokens=32768,
        supports_streaming=True,
        description="Ultra-fast AI inference with Groq's hardware",
    ),
    ProviderConfig(
        id="perplexity",
        name="Perplexity",
        api_key_env="PERPLEXITY_API_KEY",
        model_env="PERPLEXITY_MODEL",
        base_url="https://api.perplexity.ai",
        default_model="llama-3.1-sonar-large-128k-online",
        models=(
            "llama-3.1-sonar-large-128k-online",
            "llama-3.1-sonar-small-128k-online",
            "llama-3.1-sonar-large-128k-chat",
            "llama-3.1-sonar-small-128k-chat",
            "llama-3.1-8b-instruct",
            "llama-3.1-70b-instruct",
        ),
        max_tokens=131072,
        supports_streaming=True,
        description="AI with real-time web search capabilities",
    ),
    ProviderConfig(
        id="gemini",
        name="Google Gemini",
        api_key_env="GEMINI_API_KEY",
        model_env="GEMINI_MODEL",
        default_model="gemini-1.5-pro",
        models=("gemini-1.5-pro", "gemini-1.5-flash", "gemini-2.0-flash-exp"),
        max_tokens=30000,
        supports_streaming=False,
        description="Google's latest AI models",
        adapter="gemini",
    ),
)

# Adapter kind → adapter class
ADAPTERS: dict[str, Callable[..., BaseAdapter]] = {
    "openai_compat": OpenAICompatibleAdapter,
    "gemini": GeminiAdapter,
}


def _check_catalog(providers: tuple[ProviderConfig, ...]) -> None:
    seen: set[str] = set()
    for p in providers:
        if p.id in seen:
            raise ValueError(f"Duplicate provider id: {p.id}")
        seen.add(p.id)
        if p.models and p.default_model not in p.models:
            raise ValueError(f"Default model {p.default_model!r} not in models of {p.id}")


_check_catalog(PROVIDERS)


def get_model_display_name(provider: ProviderConfig | None, model_id: str) -> str:
    """Human-friendly model name: explicit mapping first, else cleaned-up id."""
    if provider is None:
        return model_id
    if model_id in provider.model_display_names:
        return provider.model_display_names[model_id]

    name = re.sub(r"^[^/]+/", "", model_id)
    name = re.sub(r":free$", "", name)
    name = re.sub(r"-\d{8}$", "", name)
    name = re.sub(r"-\d{4}-\d{2}-\d{2}$", "", name)
    return " ".join(word[:1].upper() + word[1:] for word in name.split("-"))


class ProviderRegistry:
    """
    Read-only view of the catalog plus the environment it runs in.
    Adapters are built on demand from the adapter table.
    """

    def __init__(
        self,
        providers: tuple[ProviderConfig, ...] = PROVIDERS,
        env: Mapping[str, str] | None = None,
        adapter_classes: Mapping[str, Callable[..., BaseAdapter]] | None = None,
        site_url: str = "",
    ):
        _check_catalog(tuple(providers))
        self.providers = tuple(providers)
        self._by_id = {p.id: p for p in self.providers}
        self.env = dict(os.environ if env is None else env)
        self.adapter_classes = dict(ADAPTERS if adapter_classes is None else adapter_classes)
        self.site_url = site_url

    @classmethod
    def from_env(cls, site_url: str = "") -> "ProviderRegistry":
        return cls(site_url=site_url)

    def __iter__(self):
        return iter(self.providers)

    def __len__(self) -> int:
        return len(self.providers)

    def lookup(self, provider_id: str | None) -> ProviderConfig | None:
        """Find a provider by id. Unknown ids return None."""
        if not provider_id or not isinstance(provider_id, str):
            return None
        return self._by_id.get(provider_id)

    def api_key(self, config: ProviderConfig) -> str:
        return self.env.get(config.api_key_env, "") or ""

    def configured_model(self, config: ProviderConfig) -> str:
        return self.env.get(config.model_env, "") or ""

    def is_configured(self, config: ProviderConfig) -> bool:
        return bool(self.api_key(config))

    def list_configured(self) -> list[ProviderConfig]:
        """Providers with a credential present, in declaration order."""
        return [p for p in self.providers if self.is_configured(p)]

    def resolve_model(self, config: ProviderConfig, requested: str | None = None) -> str:
        """Explicit request → env-configured model → declared default."""
        return requested or self.configured_model(config) or config.default_model

    def adapter_for(self, config: ProviderConfig) -> BaseAdapter:
        cls = self.adapter_classes.get(config.adapter)
        if cls is None:
            raise KeyError(f"No adapter registered for kind '{config.adapter}'")
        return cls(config, self.api_key(config), site_url=self.site_url)

    def validate(self, provider_id: str, model_id: str | None = None) -> tuple[bool, str]:
        config = self.lookup(provider_id)
        if config is None:
            return False, f"Unknown provider: {provider_id}"
        if not self.is_configured(config):
            return False, f"API key not configured for {config.name}"
        if model_id and model_id not in config.models:
            return False, f"Model {model_id} not available for {config.name}"
        return True, ""

    # ── Reporting ───────────────────────────────────────────────────────

    def env_status(self) -> dict:
        """Per-provider credential/model status for /api/check-env."""
        return {
            p.id: {
                "name": p.name,
                "apiKeyConfigured": self.is_configured(p),
                "modelConfigured": bool(self.configured_model(p)),
                "baseUrl": p.base_url,
                "defaultModel": p.default_model,
                "model": self.resolve_model(p),
            }
            for p in self.providers
        }

    def configured_summary(self) -> list[dict]:
        return [
            {
                "id": p.id,
                "name": p.name,
                "description": p.description,
                "models": list(p.models),
                "defaultModel": p.default_model,
            }
            for p in self.list_configured()
        ]

    def all_available_models(self) -> list[dict]:
        return [
            {
                "providerId": p.id,
                "providerName": p.name,
                "modelId": model_id,
                "displayName": get_model_display_name(p, model_id),
                "maxTokens": p.max_tokens,
                "supportsStreaming": p.supports_streaming,
            }
            for p in self.providers
            for model_id in p.models
        ]
