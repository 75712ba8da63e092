"""Upstream text-generation backends.

The pipeline only needs ``generate(prompt, max_tokens) -> str``. Backends
report network problems as TransportError and unusable payloads as
MalformedResponseError; anything else they raise is treated as a transport
failure by the retry loop.
"""

from __future__ import annotations

from types import TracebackType
from typing import Any, Protocol, runtime_checkable

import httpx
import logfire
from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from core.config import UpstreamSettings
from core.exceptions import MalformedResponseError, TransportError


@runtime_checkable
class TextGenerator(Protocol):
    """Opaque upstream generation capability."""

    async def generate(self, prompt: str, max_tokens: int) -> str:
        """Return generated text for ``prompt``."""
        ...


def extract_message_content(data: Any) -> str:
    """Pull ``choices[0].message.content`` out of a chat-completions payload."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedResponseError(f"Unexpected response shape: {e!r}") from e
    if not isinstance(content, str) or not content.strip():
        raise MalformedResponseError()
    return content


class ChatCompletionsGenerator:
    """httpx client for an OpenAI-compatible ``/chat/completions`` endpoint."""

    service_name = "chat_completions"

    def __init__(
        self,
        settings: UpstreamSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or UpstreamSettings()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.request_timeout_seconds)
        )

    async def __aenter__(self) -> ChatCompletionsGenerator:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    @property
    def endpoint(self) -> str:
        return f"{self.settings.base_url.rstrip('/')}/chat/completions"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.api_key is not None:
            headers["Authorization"] = f"Bearer {self.settings.api_key.get_secret_value()}"
        return headers

    def _payload(self, prompt: str, max_tokens: int) -> dict[str, Any]:
        return {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": self.settings.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": self.settings.temperature,
        }

    async def generate(self, prompt: str, max_tokens: int) -> str:
        logfire.debug(
            "Calling upstream",
            endpoint=self.endpoint,
            model=self.settings.model,
            max_tokens=max_tokens,
        )
        try:
            response = await self.client.post(
                self.endpoint, json=self._payload(prompt, max_tokens), headers=self._headers()
            )
        except httpx.TimeoutException as e:
            raise TransportError(
                "request timed out", service=self.service_name, original_error=e
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(str(e), service=self.service_name, original_error=e) from e

        if response.is_error:
            raise TransportError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                service=self.service_name,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError("Upstream returned a non-JSON body") from e
        return extract_message_content(data)


class PydanticAIGenerator:
    """Generation through a pydantic-ai Agent, for any model pydantic-ai supports."""

    def __init__(
        self,
        model: str | Model,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.2,
    ):
        self.model = model
        self.temperature = temperature
        self.agent: Agent[None, str] = Agent(
            model=model,
            output_type=str,
            system_prompt=system_prompt or UpstreamSettings.model_fields["system_prompt"].default,
        )

    async def generate(self, prompt: str, max_tokens: int) -> str:
        result = await self.agent.run(
            prompt,
            model_settings=ModelSettings(max_tokens=max_tokens, temperature=self.temperature),
        )
        output = result.output
        if not isinstance(output, str) or not output.strip():
            raise MalformedResponseError()
        return output
