from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from chat_gateway.api.deps import TransportDep
from chat_gateway.schemas import ChatRequest
from chat_gateway.services.dispatcher import ChatGateway

router = APIRouter(prefix="/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


@router.post("")
async def chat(payload: ChatRequest, request: Request, transport: TransportDep):
    """
    Stream a reply from whichever provider serves `config.model`.

    Pre-stream failures are plain JSON errors; once streaming has started,
    failures arrive as an in-band `{"error": ..., "isError": true}` frame.
    """
    request_id = getattr(request.state, "request_id", None)
    stream = await ChatGateway(transport).open(payload, request_id=request_id)
    return StreamingResponse(
        stream.frames(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        # releases the upstream even if the body was never iterated
        background=BackgroundTask(stream.aclose),
    )
