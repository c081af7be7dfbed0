"""Gateway dispatcher: one normalized request in, one SSE stream out.

Per request state: validating -> resolving -> streaming -> one of
completed / failed_before_stream / failed_during_stream (or cancelled when
the caller goes away). Only failed_before_stream may change the HTTP status;
it surfaces as a ``GatewayError`` raised from ``ChatGateway.open``.
"""

import json
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, Optional

import httpx
import structlog

from chat_gateway.errors import GatewayError, InvalidRequest
from chat_gateway.observability import STREAM_EVENTS, STREAM_OUTCOMES
from chat_gateway.providers.base import (
    STREAM_FAILED,
    ChatMessage,
    Content,
    Done,
    Error,
    GenerationConfig,
    Provider,
    TERMINAL_EVENTS,
    UnifiedEvent,
    UpstreamStream,
    Usage,
)
from chat_gateway.schemas import ChatRequest
from chat_gateway.services.registry import ModelSpec
from chat_gateway.services.router import resolve_provider

logger = structlog.get_logger()


def sse_format(event: UnifiedEvent) -> str:
    data: Dict[str, Any]
    if isinstance(event, Content):
        data = {"content": event.text}
    elif isinstance(event, Usage):
        data = {"usage": event.usage}
    elif isinstance(event, Done):
        data = {"done": True}
    else:
        data = {"error": event.message, "details": event.details, "isError": True}
    return f"data: {json.dumps(data, ensure_ascii=False)}\n\n"


class ChatStream:
    """An accepted upstream stream, re-framed for the caller."""

    def __init__(
        self,
        provider: Provider,
        spec: ModelSpec,
        upstream: UpstreamStream,
        request_id: Optional[str] = None,
    ) -> None:
        self.provider = provider
        self.spec = spec
        self.upstream = upstream
        self.request_id = request_id
        self.outcome: Optional[str] = None

    async def frames(self) -> AsyncIterator[str]:
        log = logger.bind(request_id=self.request_id, model=self.spec.id, provider=self.spec.provider)
        outcome = "cancelled"
        try:
            async with aclosing(self.provider.events(self.upstream)) as events:
                async for event in events:
                    STREAM_EVENTS.labels(self.spec.provider, event.kind).inc()
                    yield sse_format(event)
                    if isinstance(event, TERMINAL_EVENTS):
                        outcome = "completed" if isinstance(event, Done) else "failed_during_stream"
                        return
            outcome = "failed_during_stream"
            yield sse_format(Error(message=STREAM_FAILED, details="stream ended without a terminal event"))
        finally:
            self.outcome = outcome
            await self.upstream.aclose()
            STREAM_OUTCOMES.labels(self.spec.provider, outcome).inc()
            log.info("chat_request_finished", state=outcome)

    async def aclose(self) -> None:
        await self.upstream.aclose()


class ChatGateway:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    async def open(self, payload: ChatRequest, request_id: Optional[str] = None) -> ChatStream:
        """Run every pre-stream step and return the stream ready to relay.

        Raises ``GatewayError`` for anything detected before the first byte.
        """
        log = logger.bind(request_id=request_id, model=payload.config.model)
        provider_name = "unknown"
        try:
            log.debug("chat_request_state", state="validating")
            if not payload.messages:
                raise InvalidRequest("Messages are required")

            log.debug("chat_request_state", state="resolving")
            provider, spec = resolve_provider(payload.config.model, self._transport)
            provider_name = spec.provider

            messages = [ChatMessage(role=m.role, content=m.content) for m in payload.messages]
            if payload.config.system_prompt:
                messages.insert(0, ChatMessage(role="system", content=payload.config.system_prompt))
            config = GenerationConfig(
                model=spec.id,
                temperature=payload.config.temperature,
                max_tokens=payload.config.max_tokens,
                top_p=payload.config.top_p,
                top_k=payload.config.top_k,
                stop_sequences=payload.config.stop_sequences,
            )
            upstream = await provider.open(messages, config, spec)
        except GatewayError as e:
            STREAM_OUTCOMES.labels(provider_name, "failed_before_stream").inc()
            log.warning(
                "chat_request_finished",
                state="failed_before_stream",
                error=e.message,
                status=e.status_code,
            )
            raise

        log.info("chat_request_state", state="streaming", provider=spec.provider, upstream_model=spec.upstream_model)
        return ChatStream(provider, spec, upstream, request_id=request_id)
