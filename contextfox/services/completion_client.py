"""
Completion Client - OpenRouter Chat Completions
OpenRouter is OpenAI-compatible, so requests go through the openai SDK. SDK and
HTTP failures surface as TransportError, content-policy signals as
RefusalError.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
import openai
from openai import AsyncOpenAI

from ..config import OpenRouterConfig, SamplingConfig
from ..core.errors import RefusalError, TransportError

logger = logging.getLogger(__name__)


@dataclass
class CompletionResponse:
    """Normalized first choice of a chat completion."""
    content: str
    model: str
    finish_reason: str = "stop"
    refusal: Optional[str] = None
    usage: Dict[str, int] = field(default_factory=dict)

    @property
    def truncated(self) -> bool:
        return self.finish_reason == "length"


class CompletionClient(ABC):
    """Abstract completion collaborator used by every task executor."""

    @abstractmethod
    async def complete(
        self,
        model: str,
        system_prompt: str,
        user_content: str,
        sampling: Optional[SamplingConfig] = None,
    ) -> CompletionResponse:
        """Run one system+user completion that is expected to return JSON."""
        pass

    async def close(self) -> None:
        pass


def build_request(
    model: str,
    system_prompt: str,
    user_content: str,
    sampling: SamplingConfig,
) -> Dict[str, Any]:
    """Keyword arguments for ``chat.completions.create``."""
    kwargs: Dict[str, Any] = {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ],
        "response_format": {"type": "json_object"},
        "max_tokens": sampling.max_tokens,
    }
    for name in ("temperature", "top_p", "frequency_penalty", "presence_penalty"):
        value = getattr(sampling, name)
        if value is not None:
            kwargs[name] = value

    # OpenRouter-only fields are not part of the OpenAI schema
    extra_body: Dict[str, Any] = {}
    if sampling.top_k is not None:
        extra_body["top_k"] = sampling.top_k
    if sampling.reasoning_effort:
        extra_body["reasoning"] = {"effort": sampling.reasoning_effort}
    if extra_body:
        kwargs["extra_body"] = extra_body
    return kwargs


class OpenRouterClient(CompletionClient):
    """Completion client for OpenRouter (OpenAI-compatible)."""

    def __init__(self, config: OpenRouterConfig, sampling: Optional[SamplingConfig] = None):
        self.config = config
        self.sampling = sampling or SamplingConfig()
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            headers = {"X-Title": self.config.app_name}
            if self.config.site_url:
                headers["HTTP-Referer"] = self.config.site_url
            self._client = AsyncOpenAI(
                api_key=self.config.api_key.get_secret_value(),
                base_url=self.config.base_url,
                default_headers=headers,
                max_retries=0,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def complete(
        self,
        model: str,
        system_prompt: str,
        user_content: str,
        sampling: Optional[SamplingConfig] = None,
    ) -> CompletionResponse:
        client = self._get_client()
        kwargs = build_request(model, system_prompt, user_content, sampling or self.sampling)
        logger.debug(f"[OpenRouterClient.complete] Model: '{model}', prompt: {len(system_prompt)} chars, content: {len(user_content)} chars")

        try:
            response = await client.chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            raise TransportError(f"OpenRouter returned {e.status_code}: {e.message}", status_code=e.status_code) from e
        except openai.APIError as e:
            raise TransportError(f"OpenRouter request failed: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error: {e}") from e

        # OpenRouter reports some upstream failures in the body with a 200
        error = getattr(response, "error", None)
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise TransportError(message or "Unknown OpenRouter error")
        if not response.choices:
            raise TransportError("Response contained no choices")

        choice = response.choices[0]
        finish_reason = choice.finish_reason or "stop"
        refusal = getattr(choice.message, "refusal", None)

        if finish_reason == "length":
            logger.warning(f"[OpenRouterClient.complete] Response from '{model}' was TRUNCATED (finish_reason=length)")
        if finish_reason == "content_filter" or refusal:
            raise RefusalError(refusal or "Content filtered")

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens or 0,
                "completion_tokens": response.usage.completion_tokens or 0,
                "total_tokens": response.usage.total_tokens or 0,
            }
        return CompletionResponse(
            content=choice.message.content or "",
            model=model,
            finish_reason=finish_reason,
            refusal=refusal,
            usage=usage,
        )
