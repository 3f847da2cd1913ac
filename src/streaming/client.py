"""
Streaming Chat Client
Consumes a chat turn over SSE and assembles it into a message buffer.

One sequential reader per turn applies frames in the order they were
produced. Starting a new turn for a conversation cancels the previous one,
and nothing received after a cancellation is applied.
"""
import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx
from loguru import logger

from src.models.chat import ChatChunk, ChatMessage, ChunkType, TextData, ToolData, ToolError, ErrorData
from src.streaming.frames import Frame, FrameDecoder, frame_to_chunk


@dataclass
class MessageBuffer:
    """The assistant message being assembled for one turn."""
    message_id: str
    text: str = ""
    tool_results: List[Dict[str, Any]] = field(default_factory=list)
    done: bool = False
    error: Optional[str] = None
    aborted: bool = False
    chunks_applied: int = 0

    @property
    def finished(self) -> bool:
        return self.done or self.error is not None or self.aborted


@dataclass
class _Turn:
    buffer: MessageBuffer
    task: Optional[asyncio.Task] = None
    aborted_at: Optional[float] = None


class ChatStreamClient:
    """
    Client for the /api/chat endpoint.

    Usage:
        async with httpx.AsyncClient(base_url="http://localhost:8000") as http:
            client = ChatStreamClient(http)
            buffer = await client.send("conv-1", [ChatMessage(role="user", content="Hi")])
            print(buffer.text)
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        path: str = "/api/chat",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.http = http
        self.path = path
        self._clock = clock
        # Only turns still running; a finished buffer belongs to the caller
        self._turns: Dict[str, _Turn] = {}

    async def send(
        self,
        conversation_id: str,
        messages: List[ChatMessage],
        message_id: Optional[str] = None,
        on_chunk: Optional[Callable[[MessageBuffer, ChatChunk], None]] = None,
    ) -> MessageBuffer:
        """
        Start a turn and wait for it to finish or be cancelled.

        Any turn still running for the same conversation is cancelled first.

        Args:
            conversation_id: Conversation the turn belongs to
            messages: Full message list sent to the server
            message_id: Id of the assistant message to assemble (generated if None)
            on_chunk: Called after each applied chunk

        Returns:
            The message buffer (aborted=True if the turn was cancelled)

        Raises:
            httpx.HTTPError: Transport failures
        """
        await self.cancel(conversation_id)

        buffer = MessageBuffer(message_id=message_id or f"msg-{uuid.uuid4().hex[:12]}")
        turn = _Turn(buffer=buffer)
        self._turns[conversation_id] = turn

        payload = {
            "version": 1,
            "messages": [message.model_dump(mode="json", exclude_none=True) for message in messages],
        }
        turn.task = asyncio.create_task(self._read(turn, buffer, payload, on_chunk))

        try:
            await asyncio.wait({turn.task})
        except asyncio.CancelledError:
            turn.task.cancel()
            raise
        finally:
            if self._turns.get(conversation_id) is turn:
                del self._turns[conversation_id]

        if turn.task.cancelled():
            buffer.aborted = True
            logger.debug(f"Turn {buffer.message_id} aborted after {buffer.chunks_applied} chunks")
            return buffer

        turn.task.result()
        return buffer

    async def cancel(self, conversation_id: str) -> bool:
        """
        Abort the running turn for a conversation.

        Returns:
            True if a turn was running
        """
        turn = self._turns.get(conversation_id)
        if turn is None or turn.task is None or turn.task.done():
            return False

        turn.aborted_at = self._clock()
        turn.task.cancel()
        await asyncio.wait({turn.task})
        turn.buffer.aborted = True
        return True

    async def _read(
        self,
        turn: _Turn,
        buffer: MessageBuffer,
        payload: Dict[str, Any],
        on_chunk: Optional[Callable[[MessageBuffer, ChatChunk], None]],
    ) -> None:
        decoder = FrameDecoder()
        sequence = 0

        async with self.http.stream("POST", self.path, json=payload) as response:
            if response.status_code != 200:
                body = await response.aread()
                buffer.error = f"HTTP {response.status_code}: {body.decode('utf-8', 'replace')[:200]}"
                return

            async for raw in response.aiter_bytes():
                received_at = self._clock()
                for frame in decoder.feed(raw):
                    sequence += 1
                    if not self._apply(turn, buffer, frame, str(sequence), received_at, on_chunk):
                        return

        # Body closed before an end or error frame
        buffer.error = "Stream ended without a terminal frame"
        logger.warning(f"Turn {buffer.message_id} ended after {buffer.chunks_applied} chunks without a terminal frame")

    def _apply(
        self,
        turn: _Turn,
        buffer: MessageBuffer,
        frame: Frame,
        chunk_id: str,
        received_at: float,
        on_chunk: Optional[Callable[[MessageBuffer, ChatChunk], None]],
    ) -> bool:
        """Apply one frame. Returns False once the turn must stop reading."""
        if turn.aborted_at is not None and received_at >= turn.aborted_at:
            return False

        try:
            chunk = frame_to_chunk(frame, chunk_id)
        except ValueError as e:
            buffer.error = f"Malformed frame: {e}"
            return False

        match chunk.data:
            case TextData(text=text):
                buffer.text += text
            case ToolData(name=name, result=result):
                buffer.tool_results.append({"name": name, "result": result})
            case ToolError(name=name, error=error):
                buffer.tool_results.append({"name": name, "error": error})
            case ErrorData(error=error):
                buffer.error = error
            case _:
                buffer.done = True

        buffer.chunks_applied += 1
        if on_chunk is not None:
            on_chunk(buffer, chunk)
        return chunk.type not in (ChunkType.DONE, ChunkType.ERROR)
