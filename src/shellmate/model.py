"""Chat model backends used to generate command proposals.

Every backend receives the full conversation and returns the raw text of the
top response; parsing lives in :mod:`shellmate.parser`.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional, Sequence

import httpx

Message = Dict[str, str]


class ModelError(RuntimeError):
    """Raised when the model backend cannot produce a reply."""


class ModelClient:
    """Base interface all model backends must implement."""

    model: Optional[str] = None

    def complete(self, messages: Sequence[Message], include_explanation: bool = False) -> str:
        raise NotImplementedError


class MockModelClient(ModelClient):
    """Offline backend that never proposes an executable command."""

    model = "mock"

    def complete(self, messages: Sequence[Message], include_explanation: bool = False) -> str:
        intent = next((m["content"] for m in messages if m.get("role") == "user"), "")
        payload: Dict[str, Any] = {
            "command": f"Mock backend received: {intent}",
            "executable": False,
        }
        if include_explanation:
            payload["explanation"] = "The mock backend does not generate commands."
        return json.dumps(payload)


class _HTTPChatClient(ModelClient):
    default_base_url = ""

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.model = model
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.timeout = self._resolve_timeout(timeout)
        self.http_client = http_client

    def _post(self, url: str, body: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        try:
            if self.http_client is not None:
                response = self.http_client.post(url, json=body, headers=headers, timeout=self.timeout)
            else:
                response = httpx.post(url, json=body, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise ModelError(f"Failed to contact model backend at {url}: {exc}") from exc

        if response.status_code != 200:
            raise ModelError(f"Model backend returned status {response.status_code}: {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ModelError(f"Invalid JSON response from model backend: {response.text[:200]}") from exc
        if not isinstance(payload, dict):
            raise ModelError("Model backend returned an unexpected response envelope")
        return payload

    @staticmethod
    def _resolve_timeout(provided: Optional[float]) -> float:
        if provided is not None:
            return provided
        env_timeout = os.getenv("SHELLMATE_TIMEOUT")
        if env_timeout:
            try:
                return float(env_timeout)
            except ValueError:
                pass
        return 60.0


class OpenAIChatClient(_HTTPChatClient):
    """OpenAI-compatible ``/chat/completions`` backend."""

    default_base_url = "https://api.openai.com/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: float = 0.1,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(model=model or "gpt-4o", base_url=base_url, timeout=timeout, http_client=http_client)
        if not api_key:
            raise ModelError("An API key is required for the openai backend")
        self.api_key = api_key
        self.temperature = temperature

    def complete(self, messages: Sequence[Message], include_explanation: bool = False) -> str:
        body = {
            "model": self.model,
            "messages": list(messages),
            "temperature": self.temperature,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = self._post(f"{self.base_url}/chat/completions", body, headers)

        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ModelError("No choices returned from model backend")
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content:
            raise ModelError("No message content in model response")
        return content


class OllamaChatClient(_HTTPChatClient):
    """Local Ollama ``/api/chat`` backend."""

    default_base_url = "http://localhost:11434"

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(
            model=model or os.getenv("OLLAMA_MODEL", "llama3.1"),
            base_url=base_url or os.getenv("OLLAMA_API_URL"),
            timeout=timeout,
            http_client=http_client,
        )

    def complete(self, messages: Sequence[Message], include_explanation: bool = False) -> str:
        body = {
            "model": self.model,
            "messages": list(messages),
            "stream": False,
            "options": {"temperature": 0.1},
        }
        payload = self._post(f"{self.base_url}/api/chat", body)
        message = payload.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content:
            raise ModelError("Ollama response missing textual content")
        return content


def create_client(name: Optional[str] = None, **kwargs: Any) -> ModelClient:
    """Factory for model backends, parametrized via config/CLI."""

    selected = (name or "openai").lower()
    if selected == "mock":
        return MockModelClient()
    if selected == "openai":
        return OpenAIChatClient(**kwargs)
    if selected == "ollama":
        return OllamaChatClient(**kwargs)
    raise ModelError(f"Unknown model backend: {selected}")


def available_backends() -> List[str]:
    return ["openai", "ollama", "mock"]
