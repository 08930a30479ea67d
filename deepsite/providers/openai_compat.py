"""
Generic OpenAI-compatible adapter.

Supports any provider that speaks the /chat/completions format:
- OpenAI
- OpenRouter
- xAI (Grok)
- Groq
- Perplexity
"""

from __future__ import annotations

import logging
import time

import httpx

from deepsite.providers.base import (
    AuthError,
    BaseAdapter,
    EmptyResponseError,
    GenerationOptions,
    GenerationResult,
    MalformedResponseError,
    NetworkError,
    ProviderHTTPError,
    TEST_CONNECTION_TIMEOUT,
)

logger = logging.getLogger(__name__)


class OpenAICompatibleAdapter(BaseAdapter):
    """
    Adapter for OpenAI-compatible chat completion endpoints.

    The system message stays inline as a "system" role entry; those APIs
    accept it as-is.
    """

    def __init__(self, config, api_key: str, site_url: str = ""):
        super().__init__(config, api_key, site_url)
        self.url = (config.base_url or "").rstrip("/")

    def _headers(self) -> dict:
        """Build request headers with auth and any provider extras."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        for key, value in self.config.extra_headers.items():
            if key == "HTTP-Referer" and self.site_url:
                value = self.site_url
            headers[key] = value
        return headers

    def translate_request(
        self, model: str, conversation: list[dict], options: GenerationOptions
    ) -> dict:
        body = {
            "model": model,
            "messages": [
                {"role": m["role"], "content": m["content"]} for m in conversation
            ],
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        body.update(self.config.extra_body)
        return body

    def translate_response(self, data) -> GenerationResult:
        if not isinstance(data, dict) or not isinstance(data.get("choices"), list):
            raise MalformedResponseError(
                f"{self.name}: unexpected response shape", self.name
            )
        choices = data["choices"]
        text = ""
        if choices:
            message = choices[0].get("message") or {}
            text = message.get("content") or ""
        if not isinstance(text, str) or not text.strip():
            raise EmptyResponseError("Empty response received", self.name)
        usage = data.get("usage") or {}
        return GenerationResult(text=text, tokens_used=int(usage.get("total_tokens") or 0))

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        """Prefer the provider's own error.message, else the status line."""
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if isinstance(data, dict):
            err = data.get("error")
            if isinstance(err, dict) and err.get("message"):
                return str(err["message"])
            if isinstance(err, str) and err:
                return err
        return f"API error: {resp.status_code} {resp.reason_phrase}".strip()

    async def _post(self, body: dict, timeout: float) -> dict:
        self.require_key()
        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(
                    f"{self.url}/chat/completions",
                    headers=self._headers(),
                    json=body,
                )
        except httpx.TimeoutException:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("Provider '%s' timed out after %.0fms", self.name, latency)
            raise NetworkError(f"Timeout after {timeout}s", self.name)
        except httpx.HTTPError as e:
            logger.warning("Provider '%s' request failed: %s", self.name, e)
            raise NetworkError(str(e) or e.__class__.__name__, self.name)

        latency = (time.monotonic() - t0) * 1000
        if resp.status_code in (401, 403):
            raise AuthError(self._error_message(resp), self.name, status_code=resp.status_code)
        if resp.status_code >= 400:
            raise ProviderHTTPError(
                self._error_message(resp), self.name, status_code=resp.status_code
            )

        try:
            data = resp.json()
        except ValueError:
            raise MalformedResponseError(f"{self.name}: response was not JSON", self.name)
        logger.debug("Provider '%s' answered in %.0fms", self.name, latency)
        return data

    async def generate(
        self,
        model: str,
        conversation: list[dict],
        options: GenerationOptions,
    ) -> GenerationResult:
        body = self.translate_request(model, conversation, options)
        data = await self._post(body, options.timeout)
        return self.translate_response(data)

    async def test_connection(self, model: str) -> str:
        options = GenerationOptions(max_tokens=50, temperature=0, timeout=TEST_CONNECTION_TIMEOUT)
        body = self.translate_request(
            model,
            [{"role": "user", "content": "Hello, respond with 'Connection successful'"}],
            options,
        )
        # Connectivity checks skip the generation-only extras.
        for key in self.config.extra_body:
            body.pop(key, None)
        data = await self._post(body, options.timeout)
        try:
            return self.translate_response(data).text
        except EmptyResponseError:
            return "No response"
