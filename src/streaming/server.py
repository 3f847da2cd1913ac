"""
Streaming Chat Server Side
Turns a token generator into an ordered, terminated sequence of chunks and frames.
"""
from contextlib import aclosing
from typing import Any, AsyncIterator, List

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from src.config import get_settings
from src.errors import ValidationError
from src.models.chat import (
    ChatChunk,
    ChatMessage,
    ChatRequest,
    ChunkType,
    DoneData,
    ErrorData,
    TextData,
    ToolData,
    ToolError,
    ToolResult,
)
from src.streaming.frames import encode_chunk
from src.streaming.providers import TokenGenerator
from src.utils.metrics import Timer, metrics


def parse_chat_request(payload: Any) -> ChatRequest:
    """
    Validate a raw chat request body.

    Raises:
        ValidationError: 500 for a version mismatch or missing messages, 400 otherwise
    """
    settings = get_settings()

    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    if payload.get("version") != 1:
        raise ValidationError("Unsupported version", status_code=500)
    if not payload.get("messages"):
        raise ValidationError("Messages are required", status_code=500)

    try:
        request = ChatRequest.model_validate(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"Invalid field {location}: {first['msg']}") from e

    if len(request.messages) > settings.chat_max_messages:
        raise ValidationError(f"Too many messages (max {settings.chat_max_messages})")
    if any(len(message.content) > settings.chat_max_content_length for message in request.messages):
        raise ValidationError(f"Message content too long (max {settings.chat_max_content_length} characters)")

    return request


async def chat_chunks(generator: TokenGenerator, messages: List[ChatMessage]) -> AsyncIterator[ChatChunk]:
    """
    Map generator output to chunks.

    Text units become `text` chunks and ToolResults become `tool` chunks, in
    production order with incrementing ids. The turn always ends with exactly
    one terminal chunk: `done` after normal exhaustion, `error` if the
    generator raised.
    """
    sequence = 0

    def next_id() -> str:
        nonlocal sequence
        sequence += 1
        return str(sequence)

    try:
        async with aclosing(generator.generate(messages)) as units:
            async for unit in units:
                if isinstance(unit, ToolResult):
                    if unit.error:
                        data = ToolError(name=unit.name, error=unit.error)
                    else:
                        data = ToolData(name=unit.name, result=unit.result)
                    yield ChatChunk(id=next_id(), type=ChunkType.TOOL, data=data)
                elif unit:
                    yield ChatChunk(id=next_id(), type=ChunkType.TEXT, data=TextData(text=unit))
    except Exception as e:
        logger.error(f"❌ Token generation failed after {sequence} chunks: {e}")
        yield ChatChunk(id=next_id(), type=ChunkType.ERROR, data=ErrorData(error=str(e) or type(e).__name__))
        return

    yield ChatChunk(id="done", type=ChunkType.DONE, data=DoneData())


async def sse_stream(generator: TokenGenerator, messages: List[ChatMessage]) -> AsyncIterator[bytes]:
    """Encoded frames for one chat turn, ready for a StreamingResponse."""
    with Timer(metrics.stream_duration):
        async with aclosing(chat_chunks(generator, messages)) as chunks:
            async for chunk in chunks:
                metrics.stream_frames.inc(type=chunk.type.value)
                yield encode_chunk(chunk)
