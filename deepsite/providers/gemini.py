"""
Gemini adapter. Google models through the google-genai SDK.

Gemini's wire protocol differs from the OpenAI shape: the system prompt goes
in a separate system_instruction field, "assistant" turns are called "model",
and generation parameters have their own names. Sampling and safety settings
below are fixed.
"""

from __future__ import annotations

import asyncio
import logging

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

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
    TEST_CONNECTION_TIMEOUT,
)

logger = logging.getLogger(__name__)

TOP_P = 0.95
TOP_K = 40

SAFETY_CATEGORIES = (
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
)


def safety_settings() -> list[types.SafetySetting]:
    return [
        types.SafetySetting(
            category=category,
            threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
        )
        for category in SAFETY_CATEGORIES
    ]


class GeminiAdapter(BaseAdapter):
    """Adapter for Google Gemini via the SDK (no raw bearer-token HTTP)."""

    def translate_request(
        self, model: str, conversation: list[dict], options: GenerationOptions
    ) -> dict:
        """Split a canonical conversation into Gemini contents + config."""
        system_parts = [m["content"] for m in conversation if m["role"] == "system"]
        contents = [
            types.Content(
                role="model" if m["role"] == "assistant" else "user",
                parts=[types.Part(text=m["content"])],
            )
            for m in conversation
            if m["role"] != "system"
        ]
        if not contents:
            raise ProviderError("Conversation has no user turn", self.name)

        config = types.GenerateContentConfig(
            system_instruction=system_parts[0] if system_parts else None,
            temperature=options.temperature,
            max_output_tokens=options.max_tokens,
            top_p=TOP_P,
            top_k=TOP_K,
            safety_settings=safety_settings(),
        )
        return {"model": model, "contents": contents, "config": config}

    def translate_response(self, response) -> GenerationResult:
        try:
            text = response.text
        except (AttributeError, ValueError) as e:
            raise MalformedResponseError(f"Unexpected Gemini response: {e}", self.name)
        if not text or not text.strip():
            raise EmptyResponseError("Empty response received", self.name)
        usage = getattr(response, "usage_metadata", None)
        tokens = getattr(usage, "total_token_count", None) or 0
        return GenerationResult(text=text, tokens_used=int(tokens))

    async def _call(self, request: dict, timeout: float):
        self.require_key()
        client = genai.Client(
            api_key=self.api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )
        try:
            return await asyncio.wait_for(
                client.aio.models.generate_content(**request),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Gemini call timed out after %ss", timeout)
            raise NetworkError(f"Timeout after {timeout}s", self.name)
        except httpx.TimeoutException:
            logger.warning("Gemini call timed out after %ss", timeout)
            raise NetworkError(f"Timeout after {timeout}s", self.name)
        except httpx.HTTPError as e:
            logger.warning("Gemini transport error: %s", e)
            raise NetworkError(str(e) or e.__class__.__name__, self.name)
        except genai_errors.APIError as e:
            message = e.message or str(e)
            if e.code in (401, 403):
                raise AuthError(message, self.name, status_code=e.code)
            raise ProviderHTTPError(message, self.name, status_code=e.code or 500)
        finally:
            await client.aio.aclose()

    async def generate(
        self,
        model: str,
        conversation: list[dict],
        options: GenerationOptions,
    ) -> GenerationResult:
        request = self.translate_request(model, conversation, options)
        response = await self._call(request, options.timeout)
        return self.translate_response(response)

    async def test_connection(self, model: str) -> str:
        options = GenerationOptions(max_tokens=10, temperature=0.7, timeout=TEST_CONNECTION_TIMEOUT)
        request = self.translate_request(model, [{"role": "user", "content": "Ping"}], options)
        response = await self._call(request, options.timeout)
        return self.translate_response(response).text
