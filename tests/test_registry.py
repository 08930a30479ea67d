"""
Tests for the provider registry.
Run with: pytest tests/test_registry.py
"""

import pytest

from deepsite.providers.gemini import GeminiAdapter
from deepsite.providers.openai_compat import OpenAICompatibleAdapter
from deepsite.providers.registry import (
    PROVIDERS,
    ProviderConfig,
    ProviderRegistry,
    get_model_display_name,
)


def test_declaration_order_is_fallback_order():
    """Catalog order matches the documented fallback order."""
    assert [p.id for p in PROVIDERS] == [
        "openai", "openrouter", "xai", "groq", "perplexity", "gemini",
    ]


def test_default_model_in_models():
    """Every provider's default model is one of its declared models."""
    for p in PROVIDERS:
        assert p.default_model in p.models, p.id


def test_only_gemini_has_no_base_url():
    for p in PROVIDERS:
        if p.id == "gemini":
            assert p.base_url is None
            assert p.adapter == "gemini"
        else:
            assert p.base_url.startswith("https://")
            assert p.adapter == "openai_compat"


def test_duplicate_ids_rejected():
    dup = ProviderConfig(
        id="openai", name="Other", api_key_env="X", model_env="Y",
        default_model="m", models=("m",),
    )
    with pytest.raises(ValueError):
        ProviderRegistry(providers=PROVIDERS + (dup,), env={})


def test_default_model_outside_models_rejected():
    bad = ProviderConfig(
        id="odd", name="Odd", api_key_env="X", model_env="Y",
        default_model="missing", models=("m",),
    )
    with pytest.raises(ValueError):
        ProviderRegistry(providers=(bad,), env={})


def test_list_configured_needs_key():
    """Only providers with a key present are configured, in declaration order."""
    reg = ProviderRegistry(env={"GROQ_API_KEY": "g", "OPENAI_API_KEY": "o"})
    assert [p.id for p in reg.list_configured()] == ["openai", "groq"]


def test_blank_key_is_not_configured():
    reg = ProviderRegistry(env={"OPENAI_API_KEY": ""})
    assert reg.list_configured() == []


def test_lookup_unknown_returns_none():
    reg = ProviderRegistry(env={})
    assert reg.lookup("nope") is None
    assert reg.lookup(None) is None
    assert reg.lookup("xai").name == "XAI (Grok)"


def test_resolve_model_precedence():
    """Explicit request wins, then the *_MODEL env var, then the default."""
    reg = ProviderRegistry(env={"GROQ_MODEL": "llama-3.1-8b-instant"})
    groq = reg.lookup("groq")
    assert reg.resolve_model(groq, "gemma2-9b-it") == "gemma2-9b-it"
    assert reg.resolve_model(groq) == "llama-3.1-8b-instant"
    assert reg.resolve_model(reg.lookup("openai")) == "gpt-4o"


def test_env_is_snapshotted(monkeypatch):
    """Changing the environment after construction has no effect."""
    monkeypatch.setenv("XAI_API_KEY", "x")
    reg = ProviderRegistry()
    monkeypatch.delenv("XAI_API_KEY")
    assert [p.id for p in reg.list_configured()] == ["xai"]


def test_adapter_for_picks_class_by_kind():
    reg = ProviderRegistry(
        env={"OPENROUTER_API_KEY": "or", "GEMINI_API_KEY": "gm"},
        site_url="https://example.test",
    )
    a = reg.adapter_for(reg.lookup("openrouter"))
    assert isinstance(a, OpenAICompatibleAdapter)
    assert a.api_key == "or"
    assert a.site_url == "https://example.test"

    g = reg.adapter_for(reg.lookup("gemini"))
    assert isinstance(g, GeminiAdapter)
    assert g.api_key == "gm"


def test_adapter_for_unknown_kind():
    reg = ProviderRegistry(env={}, adapter_classes={})
    with pytest.raises(KeyError):
        reg.adapter_for(reg.lookup("openai"))


def test_validate():
    reg = ProviderRegistry(env={"OPENAI_API_KEY": "k"})
    assert reg.validate("openai", "gpt-4o") == (True, "")
    ok, err = reg.validate("openai", "not-a-model")
    assert not ok and "not available" in err
    ok, err = reg.validate("groq")
    assert not ok and "API key not configured" in err
    ok, err = reg.validate("nope")
    assert not ok and "Unknown provider" in err


def test_env_status_never_echoes_keys():
    reg = ProviderRegistry(env={"OPENAI_API_KEY": "sk-secret-value"})
    status = reg.env_status()
    assert set(status) == {p.id for p in PROVIDERS}
    assert status["openai"]["apiKeyConfigured"] is True
    assert status["gemini"]["apiKeyConfigured"] is False
    assert "sk-secret-value" not in repr(status)


def test_all_available_models_covers_catalog():
    reg = ProviderRegistry(env={})
    models = reg.all_available_models()
    assert len(models) == sum(len(p.models) for p in PROVIDERS)
    first = models[0]
    assert first["providerId"] == "openai"
    assert first["modelId"] == "gpt-4o"


def test_display_names():
    openrouter = next(p for p in PROVIDERS if p.id == "openrouter")
    assert get_model_display_name(openrouter, "x-ai/grok-code-fast-1") == "Grok Code Fast"
    assert get_model_display_name(openrouter, "meta-llama/llama-3.3-70b-instruct") == "Llama 3.3 70b Instruct"
    assert get_model_display_name(None, "raw-id") == "raw-id"
