"""
Streaming Chat Transport

Ordered, cancellable delivery of one chat turn as server-sent events.
"""
from src.streaming.client import ChatStreamClient, MessageBuffer
from src.streaming.frames import Frame, FrameDecoder, encode_chunk, frame_to_chunk
from src.streaming.providers import (
    AgentTokenGenerator,
    EchoTokenGenerator,
    TokenGenerator,
    build_token_generator,
)
from src.streaming.server import chat_chunks, parse_chat_request, sse_stream

__all__ = [
    "ChatStreamClient",
    "MessageBuffer",
    "Frame",
    "FrameDecoder",
    "encode_chunk",
    "frame_to_chunk",
    "AgentTokenGenerator",
    "EchoTokenGenerator",
    "TokenGenerator",
    "build_token_generator",
    "chat_chunks",
    "parse_chat_request",
    "sse_stream",
]
