import httpx
import pytest
from tenacity import wait_none

from chat_gateway.core.config import settings
from chat_gateway.errors import CredentialMissing, UpstreamRejected
from chat_gateway.providers.base import (
    ChatMessage,
    Content,
    Done,
    Error,
    GenerationConfig,
    Provider,
    Usage,
)
from chat_gateway.providers.openai_provider import OpenAIProvider
from chat_gateway.services import registry
from chat_gateway.tests.utils.upstream import StubUpstream, openai_delta, split_every, sse_body

HI = [ChatMessage(role="user", content="Hi")]


def _provider(upstream: StubUpstream, api_key: str = "sk-test") -> OpenAIProvider:
    return OpenAIProvider(api_key, "https://api.openai.test/v1", transport=upstream.transport)


async def _collect(provider: OpenAIProvider, model_id: str = "gpt-4.1", **config):
    spec = registry.resolve(model_id)
    return [e async for e in provider.stream(HI, GenerationConfig(model=model_id, **config), spec)]


async def test_streams_content_then_done() -> None:
    upstream = StubUpstream([sse_body(openai_delta("Hel"), openai_delta("lo"), "[DONE]")])

    events = await _collect(_provider(upstream))

    assert events == [Content(text="Hel"), Content(text="lo"), Done()]


async def test_request_shape() -> None:
    upstream = StubUpstream([sse_body("[DONE]")])

    await _collect(_provider(upstream), temperature=0.2, max_tokens=256, top_p=0.9)

    request = upstream.requests[0]
    assert str(request.url) == "https://api.openai.test/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer sk-test"
    body = upstream.last_json
    assert body == {
        "model": "gpt-4.1",
        "messages": [{"role": "user", "content": "Hi"}],
        "stream": True,
        "stream_options": {"include_usage": True},
        "temperature": 0.2,
        "max_completion_tokens": 256,
        "top_p": 0.9,
    }


async def test_stop_sequences_forwarded_only_when_present() -> None:
    upstream = StubUpstream([sse_body("[DONE]")])
    await _collect(_provider(upstream), stop_sequences=["\n\n", "END"])
    assert upstream.last_json["stop"] == ["\n\n", "END"]


async def test_fixed_temperature_model_ignores_requested_value() -> None:
    upstream = StubUpstream([sse_body("[DONE]")])
    await _collect(_provider(upstream), model_id="gpt-5", temperature=0.2)
    assert upstream.last_json["temperature"] == 1.0


async def test_usage_forwarded_verbatim() -> None:
    usage = {"prompt_tokens": 10, "completion_tokens": 5}
    final = {"id": "chatcmpl-1", "choices": [], "usage": usage}
    upstream = StubUpstream([sse_body(openai_delta("ok"), final, "[DONE]")])

    events = await _collect(_provider(upstream))

    assert events == [Content(text="ok"), Usage(usage=usage), Done()]


async def test_every_usage_occurrence_is_forwarded() -> None:
    first = {"choices": [], "usage": {"prompt_tokens": 1}}
    second = {"choices": [], "usage": {"prompt_tokens": 1, "completion_tokens": 2}}
    upstream = StubUpstream([sse_body(first, second, "[DONE]")])

    events = await _collect(_provider(upstream))

    assert [e for e in events if isinstance(e, Usage)] == [Usage(usage=first["usage"]), Usage(usage=second["usage"])]


async def test_malformed_frame_is_skipped() -> None:
    upstream = StubUpstream([
        sse_body(openai_delta("a"), "{not json", "", "42", openai_delta("b"), "[DONE]")
    ])

    events = await _collect(_provider(upstream))

    assert events == [Content(text="a"), Content(text="b"), Done()]


async def test_comments_and_empty_deltas_ignored() -> None:
    role_only = {"choices": [{"index": 0, "delta": {"role": "assistant"}}]}
    body = b": keep-alive\n\n" + sse_body(role_only, openai_delta(""), openai_delta("x"), "[DONE]")
    upstream = StubUpstream([body])

    assert await _collect(_provider(upstream)) == [Content(text="x"), Done()]


@pytest.mark.parametrize("size", [1, 2, 3, 7, 16, 64])
async def test_rechunking_does_not_change_content(size: int) -> None:
    body = sse_body(openai_delta("Hel"), openai_delta("lo, "), openai_delta("wörld ✓"), "[DONE]")
    whole = await _collect(_provider(StubUpstream([body])))

    chunked = await _collect(_provider(StubUpstream(split_every(body, size))))

    assert chunked == whole
    assert "".join(e.text for e in chunked if isinstance(e, Content)) == "Hello, wörld ✓"


async def test_nothing_after_sentinel() -> None:
    upstream = StubUpstream([sse_body(openai_delta("a"), "[DONE]", openai_delta("late"))])
    assert await _collect(_provider(upstream)) == [Content(text="a"), Done()]


async def test_mid_stream_read_failure_yields_single_error() -> None:
    upstream = StubUpstream(
        [sse_body(openai_delta("one")), sse_body(openai_delta("two"))],
        fail_after=httpx.ReadError("connection reset"),
    )

    events = await _collect(_provider(upstream))

    assert events[:2] == [Content(text="one"), Content(text="two")]
    assert len(events) == 3
    assert isinstance(events[2], Error)
    assert events[2].message == "Failed to generate response"
    assert "connection reset" in events[2].details


async def test_body_ending_without_sentinel_is_an_error() -> None:
    upstream = StubUpstream([sse_body(openai_delta("a")), b"data: {\"choices\""])

    events = await _collect(_provider(upstream))

    assert events[0] == Content(text="a")
    assert isinstance(events[-1], Error)
    assert "ended before completion" in events[-1].details


async def test_missing_credential_fails_before_any_request() -> None:
    upstream = StubUpstream([sse_body("[DONE]")])

    with pytest.raises(CredentialMissing) as exc_info:
        await _collect(_provider(upstream, api_key=""))

    assert exc_info.value.message == "OpenAI API key not configured"
    assert exc_info.value.status_code == 500
    assert upstream.requests == []


async def test_upstream_rejection_raised_before_streaming() -> None:
    upstream = StubUpstream(status_code=429, error_body='{"error": "rate limited"}')

    with pytest.raises(UpstreamRejected) as exc_info:
        await _collect(_provider(upstream))

    assert exc_info.value.status == 429
    assert exc_info.value.status_code == 429
    assert "rate limited" in exc_info.value.body


async def test_upstream_auth_failure_reported_as_bad_gateway() -> None:
    upstream = StubUpstream(status_code=401, error_body="invalid api key")

    with pytest.raises(UpstreamRejected) as exc_info:
        await _collect(_provider(upstream))

    assert exc_info.value.status == 401
    assert exc_info.value.status_code == 502


async def test_connect_errors_retried_then_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(Provider._send.retry, "wait", wait_none())
    upstream = StubUpstream(connect_error=httpx.ConnectError("refused"))

    with pytest.raises(UpstreamRejected) as exc_info:
        await _collect(_provider(upstream))

    assert exc_info.value.status_code == 502
    assert len(upstream.requests) == settings.UPSTREAM_CONNECT_ATTEMPTS


async def test_events_release_upstream_when_consumer_stops_early() -> None:
    upstream = StubUpstream([sse_body(openai_delta("a"), openai_delta("b"), "[DONE]")])
    provider = _provider(upstream)
    spec = registry.resolve("gpt-4.1")

    opened = await provider.open(HI, GenerationConfig(model="gpt-4.1"), spec)
    events = provider.events(opened)
    assert await events.__anext__() == Content(text="a")
    await events.aclose()

    assert opened.closed


@pytest.mark.parametrize(
    "wrong_shape",
    [
        {"choices": {"0": 1}},
        {"choices": [{"delta": {"content": ["not", "text"]}}]},
        {"choices": "x", "usage": 5},
    ],
)
async def test_wrong_shape_frame_is_skipped(wrong_shape) -> None:
    upstream = StubUpstream([sse_body(openai_delta("a"), wrong_shape, openai_delta("b"), "[DONE]")])

    events = await _collect(_provider(upstream))

    assert events == [Content(text="a"), Content(text="b"), Done()]


async def test_upstream_error_payload_ends_stream() -> None:
    failure = {"error": {"message": "The server had an error", "type": "server_error"}}
    upstream = StubUpstream([sse_body(openai_delta("a"), failure, openai_delta("late"), "[DONE]")])

    events = await _collect(_provider(upstream))

    assert events == [
        Content(text="a"),
        Error(message="Failed to generate response", details="The server had an error"),
    ]


async def test_top_k_not_sent_to_chat_completions() -> None:
    upstream = StubUpstream([sse_body("[DONE]")])
    await _collect(_provider(upstream), top_k=40)
    assert "top_k" not in upstream.last_json
    assert "topK" not in upstream.last_json
