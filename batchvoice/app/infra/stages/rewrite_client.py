from __future__ import annotations

import logging

import httpx

from batchvoice.app.domain.models import RewriteResult
from batchvoice.app.infra.stages.base import RewriteBackend
from batchvoice.services.errors import (
    InvalidCredentialError,
    NetworkTimeoutError,
    RateLimitedError,
    RewriteConfigurationError,
    RewriteServiceError,
)

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are a helpful assistant that processes and rewrites text according to user "
    "instructions. Return only the processed text without any additional commentary."
)


def build_user_turn(prompt: str, text: str) -> str:
    return f"{prompt}\n\nText to process:\n{text}"


class ChatCompletionsRewriteClient(RewriteBackend):
    def __init__(
        self,
        http: httpx.AsyncClient,
        url: str,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> None:
        self._http = http
        self.url = url
        self.max_tokens = max_tokens
        self.temperature = temperature

    def _build_payload(self, text: str, prompt: str, model: str) -> dict:
        return {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_INSTRUCTION},
                {"role": "user", "content": build_user_turn(prompt, text)},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    def _raise_for_status(self, response: httpx.Response) -> None:
        status_code = response.status_code
        if status_code in (401, 403):
            raise InvalidCredentialError(
                f"Language model rejected the API key (status {status_code})."
            )
        if status_code == 429:
            raise RateLimitedError("Language model quota or rate limit reached. Try again later.")
        if status_code >= 400:
            raise RewriteServiceError(f"HTTP error! status: {status_code}")

    async def rewrite(
        self,
        text: str,
        prompt: str,
        api_key: str,
        model: str,
        prompt_type: str | None = None,
    ) -> RewriteResult:
        if not api_key:
            raise RewriteConfigurationError("Missing OpenAI API key.")

        headers = {"Authorization": f"Bearer {api_key}"}
        logger.info("Rewriting %d chars with model=%s", len(text), model)
        try:
            response = await self._http.post(
                self.url,
                json=self._build_payload(text, prompt, model),
                headers=headers,
            )
        except httpx.TimeoutException as error:
            raise NetworkTimeoutError(self.url, self._http.timeout.read) from error
        except httpx.HTTPError as error:
            raise RewriteServiceError(f"Rewrite request failed: {error}") from error

        self._raise_for_status(response)

        try:
            completion = response.json()
        except ValueError as error:
            raise RewriteServiceError("Rewrite response was not valid JSON") from error

        if not isinstance(completion, dict):
            raise RewriteServiceError("Rewrite response had an unexpected shape")

        choices = completion.get("choices") or [{}]
        message = choices[0].get("message") or {}
        usage = completion.get("usage") or {}

        return RewriteResult(
            processed_text=message.get("content") or "",
            original_text=text,
            prompt_used=prompt,
            model=completion.get("model") or model,
            tokens_used=int(usage.get("total_tokens") or 0),
            prompt_type=prompt_type,
        )
