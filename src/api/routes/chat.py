"""
Chat Streaming Endpoint

One chat turn streamed as server-sent events.
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger

from src.api.dependencies import get_token_generator
from src.errors import ValidationError
from src.streaming.providers import TokenGenerator
from src.streaming.server import parse_chat_request, sse_stream

router = APIRouter(prefix="/api", tags=["Chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("/chat")
async def chat(
    request: Request,
    generator: TokenGenerator = Depends(get_token_generator),
):
    """
    Stream a reply to the given conversation.

    Request: {version: 1, messages: [{role, content}]}
    Response: text/event-stream of text frames followed by exactly one
    `end` or `error` event.

    Returns 500 {error} for a version mismatch or an empty message list.
    """
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Request body must be valid JSON"})

    try:
        chat_request = parse_chat_request(payload)
    except ValidationError as e:
        logger.warning(f"Rejected chat request: {e.message}")
        return JSONResponse(status_code=e.status_code, content={"error": e.message})

    return StreamingResponse(
        sse_stream(generator, chat_request.messages),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
