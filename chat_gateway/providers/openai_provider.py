from typing import Any, Dict, List, Optional

from chat_gateway.providers.base import (
    ChatMessage,
    Content,
    GenerationConfig,
    Provider,
    UnifiedEvent,
    Usage,
    upstream_error,
)
from chat_gateway.services.registry import ModelSpec


class OpenAICompatibleProvider(Provider):
    """Chat Completions wire format, shared by OpenAI and DeepSeek."""

    # name of the output-token limit field in the request body
    max_tokens_field: str = "max_tokens"
    default_temperature: Optional[float] = None
    default_max_tokens: Optional[int] = None

    def build_url(self, spec: ModelSpec) -> str:
        return f"{self.base_url}/chat/completions"

    def build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    def _to_upstream_messages(self, messages: List[ChatMessage]) -> List[Dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in messages]

    def build_payload(
        self, messages: List[ChatMessage], config: GenerationConfig, spec: ModelSpec
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": spec.upstream_model,
            "messages": self._to_upstream_messages(messages),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        temperature = spec.coerce_temperature(config.temperature)
        if temperature is None:
            temperature = self.default_temperature
        if temperature is not None:
            body["temperature"] = temperature
        max_tokens = spec.coerce_max_tokens(config.max_tokens) or self.default_max_tokens
        if max_tokens is not None:
            body[self.max_tokens_field] = max_tokens
        if config.top_p is not None:
            body["top_p"] = config.top_p
        if config.stop_sequences:
            body["stop"] = list(config.stop_sequences)
        return body

    def decode_payload(self, payload: Dict[str, Any]) -> List[UnifiedEvent]:
        error = upstream_error(payload)
        if error is not None:
            return [error]
        events: List[UnifiedEvent] = []
        choices = payload.get("choices") or []
        if choices and isinstance(choices[0], dict):
            delta = choices[0].get("delta") or {}
            content = delta.get("content") if isinstance(delta, dict) else None
            if isinstance(content, str) and content:
                events.append(Content(text=content))
        usage = payload.get("usage")
        if isinstance(usage, dict):
            events.append(Usage(usage=usage))
        return events


class OpenAIProvider(OpenAICompatibleProvider):
    name = "OpenAI"
    max_tokens_field = "max_completion_tokens"
