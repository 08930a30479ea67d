"""
Fallback router — priority-ordered provider routing with fallback.

Per request:
  validate → pick candidate providers → compose the conversation
  (system prompt + stored history + new user turn) → try each candidate
  until one answers → persist the turn pair → return.

Adapter failures are never surfaced one by one; they feed the fallback
loop. Only total exhaustion, an empty candidate list, bad input or a
caller cancellation reach the client.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from deepsite.errors import (
    AllProvidersFailedError,
    ConnectionTestFailed,
    NoProviderConfiguredError,
    RequestCancelled,
    ValidationError,
)
from deepsite.providers.base import (
    GENERATION_TIMEOUT,
    GenerationOptions,
    ProviderError,
)
from deepsite.providers.registry import ProviderConfig, ProviderRegistry
from deepsite.storage.models import ChatTurn
from deepsite.storage.sqlite_store import HISTORY_LIMIT
from deepsite.templates import TemplateCatalog

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 8000
DEFAULT_TEMPERATURE = 0.7


@dataclass
class AskRequest:
    prompt: str
    provider: str | None = None
    model: str | None = None
    session_id: str | None = None
    template_id: str | None = None
    stack: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None

    @classmethod
    def from_payload(cls, body: dict) -> "AskRequest":
        """Build from the camelCase JSON body of /api/ask-ai."""
        prompt = body.get("prompt")
        return cls(
            prompt=prompt if isinstance(prompt, str) else "",
            provider=_as_str(body.get("provider")),
            model=_as_str(body.get("model")),
            session_id=_as_str(body.get("sessionId")),
            template_id=_as_str(body.get("templateId")),
            stack=_as_str(body.get("stack")),
            max_tokens=_as_int(body.get("maxTokens")),
            temperature=_as_float(body.get("temperature")),
        )


def _as_str(value) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _as_int(value) -> int | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("maxTokens must be an integer")


def _as_float(value) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError("temperature must be a number")


@dataclass
class ProviderAttemptResult:
    """Outcome of one provider attempt. Transient, never persisted."""
    provider_id: str
    provider_name: str
    model: str
    ok: bool
    text: str = ""
    tokens_used: int = 0
    error: str = ""
    latency_ms: float = 0.0


@dataclass
class AskResult:
    text: str
    model_used: str
    provider_used: str
    provider_id: str
    tokens_used: int = 0
    attempts: list[ProviderAttemptResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "response": self.text,
            "modelUsed": self.model_used,
            "providerUsed": self.provider_used,
            "tokensUsed": self.tokens_used,
        }


class FallbackRouter:
    """
    Routes a generation request across providers in priority order.
    Stateless across requests; the store (if any) is the only side effect.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        store=None,
        templates: TemplateCatalog | None = None,
        default_max_tokens: int = DEFAULT_MAX_TOKENS,
        default_temperature: float = DEFAULT_TEMPERATURE,
        generation_timeout: float = GENERATION_TIMEOUT,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.registry = registry
        self.store = store
        self.templates = templates or TemplateCatalog()
        self.default_max_tokens = default_max_tokens
        self.default_temperature = default_temperature
        self.generation_timeout = generation_timeout
        self.history_limit = min(history_limit, HISTORY_LIMIT)

        names = [p.id for p in registry.list_configured()]
        logger.info(
            "Fallback router initialized: %s",
            " → ".join(names) if names else "no providers configured",
        )

    # ── Planning ────────────────────────────────────────────────────────

    def candidate_order(self, requested: str | None = None) -> list[ProviderConfig]:
        """
        Requested provider first (when known and configured), then every other
        configured provider in declaration order.
        """
        candidates: list[ProviderConfig] = []
        preferred = self.registry.lookup(requested)
        if preferred is not None:
            if self.registry.is_configured(preferred):
                candidates.append(preferred)
            else:
                logger.info(
                    "Requested provider '%s' has no API key; using fallbacks",
                    preferred.id,
                )
        elif requested:
            logger.info("Requested provider '%s' is unknown; using fallbacks", requested)

        for config in self.registry.list_configured():
            if config.id not in {c.id for c in candidates}:
                candidates.append(config)
        return candidates

    def generation_options(self, request: AskRequest) -> GenerationOptions:
        return GenerationOptions(
            max_tokens=request.max_tokens or self.default_max_tokens,
            temperature=(
                request.temperature
                if request.temperature is not None
                else self.default_temperature
            ),
            timeout=self.generation_timeout,
        )

    async def load_history(self, session_id: str | None) -> list[ChatTurn]:
        """Stored turns for the session; [] when there is no store or it fails."""
        if not session_id or self.store is None:
            return []
        try:
            return await asyncio.to_thread(self.store.history, session_id, self.history_limit)
        except Exception as e:
            logger.warning("Chat history unavailable for session %s: %s", session_id, e)
            return []

    async def compose_conversation(self, request: AskRequest) -> list[dict]:
        history = await self.load_history(request.session_id)
        system_prompt = self.templates.compose_system_prompt(request.template_id, request.stack)
        conversation = [{"role": "system", "content": system_prompt}]
        conversation.extend(turn.to_message() for turn in history)
        conversation.append({"role": "user", "content": request.prompt})
        return conversation

    # ── Execution ───────────────────────────────────────────────────────

    async def ask(
        self,
        request: AskRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> AskResult:
        if not request.prompt or not request.prompt.strip():
            raise ValidationError("Missing or empty prompt")

        candidates = self.candidate_order(request.provider)
        if not candidates:
            raise NoProviderConfiguredError()

        conversation = await self.compose_conversation(request)
        options = self.generation_options(request)

        attempts: list[ProviderAttemptResult] = []
        last_error: str | None = None

        for config in candidates:
            if cancel_event is not None and cancel_event.is_set():
                raise RequestCancelled()

            model = self.registry.resolve_model(config, request.model)
            logger.info("Trying %s with model %s", config.name, model)

            t0 = time.monotonic()
            try:
                adapter = self.registry.adapter_for(config)
                result = await self._invoke(adapter, model, conversation, options, cancel_event)
            except RequestCancelled:
                logger.info("Request cancelled while waiting on %s", config.name)
                raise
            except ProviderError as e:
                last_error = f"{config.name}: {e.message}"
            except Exception:
                logger.exception("Unexpected error from %s", config.name)
                last_error = f"{config.name}: Unexpected provider error"
            else:
                latency = (time.monotonic() - t0) * 1000
                attempts.append(ProviderAttemptResult(
                    provider_id=config.id,
                    provider_name=config.name,
                    model=model,
                    ok=True,
                    text=result.text,
                    tokens_used=result.tokens_used,
                    latency_ms=latency,
                ))
                logger.info(
                    "%s served model '%s' in %.0fms (%d tokens)",
                    config.name, model, latency, result.tokens_used,
                )
                await self._persist_turns(request, config, model, result.text, result.tokens_used)
                return AskResult(
                    text=result.text,
                    model_used=model,
                    provider_used=config.name,
                    provider_id=config.id,
                    tokens_used=result.tokens_used,
                    attempts=attempts,
                )

            # Failed, try next
            attempts.append(ProviderAttemptResult(
                provider_id=config.id,
                provider_name=config.name,
                model=model,
                ok=False,
                error=last_error,
                latency_ms=(time.monotonic() - t0) * 1000,
            ))
            logger.warning("Failed with %s: %s", config.name, last_error)

        providers_attempted = [c.name for c in candidates]
        logger.error(
            "All providers exhausted (%s). Last error: %s",
            ", ".join(providers_attempted), last_error,
        )
        raise AllProvidersFailedError(providers_attempted, last_error)

    async def _invoke(self, adapter, model, conversation, options, cancel_event):
        """Run one adapter call, abandoning it if the caller cancels."""
        if cancel_event is None:
            return await adapter.generate(model, conversation, options)

        call = asyncio.ensure_future(adapter.generate(model, conversation, options))
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            waiter.cancel()
            raise

        if waiter.done():
            call.cancel()
            raise RequestCancelled()
        waiter.cancel()
        return call.result()

    async def _persist_turns(
        self,
        request: AskRequest,
        config: ProviderConfig,
        model: str,
        text: str,
        tokens_used: int,
    ) -> None:
        """
        Best-effort side effect: store the user and assistant turns as one write.
        Either both land or neither does. Failures are logged and dropped;
        they never fail the response.
        """
        if not request.session_id or self.store is None:
            return
        turns = [
            ChatTurn(session_id=request.session_id, role="user", content=request.prompt),
            ChatTurn(
                session_id=request.session_id,
                role="assistant",
                content=text,
                model=model,
                provider=config.id,
                token_count=tokens_used,
            ),
        ]
        try:
            await asyncio.to_thread(self.store.append_many, turns)
        except Exception as e:
            logger.error("Failed to store turns for session %s: %s", request.session_id, e)

    # ── Connectivity test ───────────────────────────────────────────────

    async def test_connection(self, provider_id: str | None, model: str | None = None) -> dict:
        config = self.registry.lookup(provider_id)
        if config is None:
            raise ValidationError("Invalid or missing provider")
        if not self.registry.is_configured(config):
            raise ValidationError(f"{config.name} API key not configured")

        test_model = self.registry.resolve_model(config, model)
        adapter = self.registry.adapter_for(config)
        try:
            text = await adapter.test_connection(test_model)
        except ProviderError as e:
            raise ConnectionTestFailed(
                e.message or "Connection test failed",
                config.name,
                status_code=e.status_code or 500,
            )

        logger.info("Connection test to %s (%s) succeeded", config.name, test_model)
        return {
            "ok": True,
            "message": "Connection successful",
            "provider": config.name,
            "model": test_model,
            "response": text,
        }
