from typing import Any, Dict, List

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

# usageMetadata field -> Chat Completions usage field
_USAGE_FIELDS = {
    "promptTokenCount": "prompt_tokens",
    "candidatesTokenCount": "completion_tokens",
    "totalTokenCount": "total_tokens",
}


class GeminiProvider(Provider):
    """Google Gemini ``streamGenerateContent`` in SSE mode.

    The body simply ends after the last candidate chunk; there is no sentinel
    frame, so a clean end of body completes the stream.
    """

    name = "Google AI"
    sentinel = None

    def build_url(self, spec: ModelSpec) -> str:
        return f"{self.base_url}/models/{spec.upstream_model}:streamGenerateContent?alt=sse"

    def build_headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    def build_payload(
        self, messages: List[ChatMessage], config: GenerationConfig, spec: ModelSpec
    ) -> Dict[str, Any]:
        system = [m.content for m in messages if m.role == "system"]
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in messages
            if m.role != "system"
        ]
        generation: Dict[str, Any] = {}
        temperature = spec.coerce_temperature(config.temperature)
        if temperature is not None:
            generation["temperature"] = temperature
        max_tokens = spec.coerce_max_tokens(config.max_tokens)
        if max_tokens is not None:
            generation["maxOutputTokens"] = max_tokens
        if config.top_p is not None:
            generation["topP"] = config.top_p
        if config.top_k is not None:
            generation["topK"] = config.top_k
        if config.stop_sequences:
            generation["stopSequences"] = list(config.stop_sequences)

        body: Dict[str, Any] = {"contents": contents}
        if system:
            body["systemInstruction"] = {"parts": [{"text": "\n\n".join(system)}]}
        if generation:
            body["generationConfig"] = generation
        return body

    def decode_payload(self, payload: Dict[str, Any]) -> List[UnifiedEvent]:
        error = upstream_error(payload)
        if error is not None:
            return [error]
        events: List[UnifiedEvent] = []
        candidates = payload.get("candidates") or []
        if candidates and isinstance(candidates[0], dict):
            parts = (candidates[0].get("content") or {}).get("parts") or []
            text = "".join(
                p["text"]
                for p in parts
                if isinstance(p, dict) and isinstance(p.get("text"), str) and not p.get("thought")
            )
            if text:
                events.append(Content(text=text))
        metadata = payload.get("usageMetadata")
        if isinstance(metadata, dict):
            # always the full shape; counts the upstream omitted are 0
            usage = {out: metadata.get(src) or 0 for src, out in _USAGE_FIELDS.items()}
            events.append(Usage(usage=usage))
        return events
