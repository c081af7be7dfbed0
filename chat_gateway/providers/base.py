import json
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Union

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from chat_gateway.core.config import settings
from chat_gateway.errors import CredentialMissing, MalformedFrame, UpstreamRejected, UpstreamStreamFailure
from chat_gateway.services.registry import ModelSpec
from chat_gateway.utils.sse import LineBuffer, frame_data

logger = structlog.get_logger()


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class GenerationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None  # sampling pool size; only Gemini accepts it
    stop_sequences: List[str] = Field(default_factory=list)


# Unified events: every adapter decodes into these, the dispatcher serializes them
class Content(BaseModel):
    kind: Literal["content"] = "content"
    text: str


class Usage(BaseModel):
    kind: Literal["usage"] = "usage"
    usage: Dict[str, Any]  # passed through as the upstream reported it


class Done(BaseModel):
    kind: Literal["done"] = "done"


class Error(BaseModel):
    kind: Literal["error"] = "error"
    message: str
    details: str = ""


UnifiedEvent = Union[Content, Usage, Done, Error]
TERMINAL_EVENTS = (Done, Error)

STREAM_FAILED = "Failed to generate response"


def parse_payload(data: str) -> Dict[str, Any]:
    try:
        payload = json.loads(data)
    except ValueError as e:
        raise MalformedFrame(data) from e
    if not isinstance(payload, dict):
        raise MalformedFrame(data)
    return payload


def upstream_error(payload: Dict[str, Any]) -> Optional[Error]:
    """In-band ``{"error": ...}`` payload sent by the upstream mid-stream, if any."""
    error = payload.get("error")
    if not error:
        return None
    if isinstance(error, dict):
        details = error.get("message") or json.dumps(error)
    else:
        details = str(error)
    return Error(message=STREAM_FAILED, details=details)


class UpstreamStream:
    """An upstream response whose status was accepted but whose body is unread.

    Owns the HTTP client and response; ``aclose`` releases both and may be
    called any number of times.
    """

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response) -> None:
        self.client = client
        self.response = response
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.response.aclose()
        finally:
            await self.client.aclose()


class Provider:
    """One upstream streaming chat API.

    ``open`` covers everything that can still fail before the caller sees a
    byte; ``events`` decodes the body and never raises.
    """

    name: str = "Provider"
    # literal data payload that ends the stream; None means end of body does
    sentinel: Optional[str] = "[DONE]"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    def build_url(self, spec: ModelSpec) -> str:
        raise NotImplementedError

    def build_headers(self) -> Dict[str, str]:
        raise NotImplementedError

    def build_payload(
        self, messages: List[ChatMessage], config: GenerationConfig, spec: ModelSpec
    ) -> Dict[str, Any]:
        raise NotImplementedError

    def decode_payload(self, payload: Dict[str, Any]) -> List[UnifiedEvent]:
        raise NotImplementedError

    def _decode(self, payload: Dict[str, Any]) -> List[UnifiedEvent]:
        # valid JSON with an unexpected shape is as undecodable as invalid JSON
        try:
            return self.decode_payload(payload)
        except (KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
            raise MalformedFrame(str(e)) from e

    def _build_client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(None, connect=settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS)
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    @retry(
        wait=wait_exponential_jitter(initial=0.5, max=4),
        stop=stop_after_attempt(settings.UPSTREAM_CONNECT_ATTEMPTS),
        retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
        reraise=True,
    )
    async def _send(self, client: httpx.AsyncClient, request: httpx.Request) -> httpx.Response:
        return await client.send(request, stream=True)

    async def open(
        self, messages: List[ChatMessage], config: GenerationConfig, spec: ModelSpec
    ) -> UpstreamStream:
        if not self.api_key:
            logger.error("provider_credential_missing", provider=self.name)
            raise CredentialMissing(self.name)

        client = self._build_client()
        try:
            request = client.build_request(
                "POST",
                self.build_url(spec),
                json=self.build_payload(messages, config, spec),
                headers=self.build_headers(),
            )
            try:
                response = await self._send(client, request)
            except httpx.TransportError as e:
                logger.error("upstream_unreachable", provider=self.name, error=str(e))
                raise UpstreamRejected(self.name, 502, str(e) or type(e).__name__) from e

            if not response.is_success:
                body = (await response.aread()).decode("utf-8", errors="replace")
                await response.aclose()
                logger.error(
                    "upstream_rejected",
                    provider=self.name,
                    status=response.status_code,
                    body=body,
                    model=spec.upstream_model,
                )
                raise UpstreamRejected(self.name, response.status_code, body)
        except BaseException:
            await client.aclose()
            raise

        logger.info("upstream_stream_opened", provider=self.name, model=spec.upstream_model)
        return UpstreamStream(client, response)

    async def events(self, upstream: UpstreamStream) -> AsyncIterator[UnifiedEvent]:
        buffer = LineBuffer()
        try:
            async for chunk in upstream.response.aiter_bytes():
                for line in buffer.feed(chunk):
                    data = frame_data(line)
                    if data is None:
                        continue
                    if self.sentinel is not None and data.strip() == self.sentinel:
                        yield Done()
                        return
                    try:
                        decoded = self._decode(parse_payload(data))
                    except MalformedFrame:
                        continue
                    for event in decoded:
                        yield event
                        if isinstance(event, Error):
                            return
            buffer.close()
            if self.sentinel is not None:
                raise UpstreamStreamFailure(STREAM_FAILED, f"{self.name} stream ended before completion")
            yield Done()
        except UpstreamStreamFailure as e:
            logger.error("upstream_stream_failed", provider=self.name, details=e.details)
            yield Error(message=e.message, details=e.details)
        except Exception as e:
            logger.error("upstream_stream_failed", provider=self.name, error=str(e))
            yield Error(message=STREAM_FAILED, details=str(e) or type(e).__name__)
        finally:
            await upstream.aclose()

    async def stream(
        self, messages: List[ChatMessage], config: GenerationConfig, spec: ModelSpec
    ) -> AsyncIterator[UnifiedEvent]:
        upstream = await self.open(messages, config, spec)
        async for event in self.events(upstream):
            yield event
