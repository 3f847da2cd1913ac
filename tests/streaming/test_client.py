"""
Tests for ChatStreamClient
Verifies ordered assembly, error handling and cancellation of a turn.
"""
import asyncio
import json

import httpx
import pytest

from src.models.chat import ChatChunk, ChatMessage, ChunkType, TextData
from src.streaming.client import ChatStreamClient
from src.streaming.frames import encode_chunk
from src.streaming.server import sse_stream


MESSAGES = [ChatMessage(role="user", content="Hi")]


class ListGenerator:
    def __init__(self, units, error=None):
        self.units = units
        self.error = error

    async def generate(self, messages):
        for unit in self.units:
            yield unit
        if self.error is not None:
            raise self.error


def text_frame(text, chunk_id):
    return encode_chunk(ChatChunk(id=chunk_id, type=ChunkType.TEXT, data=TextData(text=text)))


def make_client(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return http, ChatStreamClient(http)


pytestmark = pytest.mark.asyncio


class TestChatStreamClient:
    """Test turn assembly against a mocked server."""

    async def test_hello_world(self):
        """Fragments concatenate in order and the turn ends with done"""
        received = {}

        async def handler(request):
            received["payload"] = json.loads(request.content)
            return httpx.Response(200, content=sse_stream(ListGenerator(["Hel", "lo", " world"]), MESSAGES))

        http, client = make_client(handler)
        async with http:
            observed = []
            buffer = await client.send(
                "conv-1",
                MESSAGES,
                message_id="msg-1",
                on_chunk=lambda buf, chunk: observed.append(chunk.type),
            )

        assert buffer.text == "Hello world"
        assert buffer.done is True
        assert buffer.error is None
        assert observed == [ChunkType.TEXT, ChunkType.TEXT, ChunkType.TEXT, ChunkType.DONE]
        assert received["payload"] == {"version": 1, "messages": [{"role": "user", "content": "Hi"}]}
        assert buffer.message_id == "msg-1"

    async def test_error_frame(self):
        async def handler(request):
            generator = ListGenerator(["partial "], error=RuntimeError("provider dropped"))
            return httpx.Response(200, content=sse_stream(generator, MESSAGES))

        http, client = make_client(handler)
        async with http:
            buffer = await client.send("conv-1", MESSAGES)

        assert buffer.text == "partial "
        assert buffer.error == "provider dropped"
        assert buffer.done is False
        assert buffer.finished is True

    async def test_http_error(self):
        async def handler(request):
            return httpx.Response(500, json={"error": "Unsupported version"})

        http, client = make_client(handler)
        async with http:
            buffer = await client.send("conv-1", MESSAGES)

        assert buffer.error.startswith("HTTP 500")
        assert buffer.chunks_applied == 0

    async def test_tool_results(self):
        async def handler(request):
            body = b'event: tool\ndata: {"name": "search", "result": 3}\n\nevent: end\ndata: {}\n\n'
            return httpx.Response(200, content=body)

        http, client = make_client(handler)
        async with http:
            buffer = await client.send("conv-1", MESSAGES)

        assert buffer.tool_results == [{"name": "search", "result": 3}]
        assert buffer.done is True

    async def test_cancel_stops_applying_frames(self):
        """After cancel, frames the server still sends are never applied"""
        release = asyncio.Event()
        two_applied = asyncio.Event()

        async def body():
            for index, token in enumerate(["one ", "two ", "three ", "four ", "five"]):
                if index == 2:
                    await release.wait()
                yield text_frame(token, str(index + 1))
            yield b"event: end\ndata: {}\n\n"

        async def handler(request):
            return httpx.Response(200, content=body())

        def on_chunk(buffer, chunk):
            if buffer.chunks_applied == 2:
                two_applied.set()

        http, client = make_client(handler)
        async with http:
            turn = asyncio.create_task(client.send("conv-1", MESSAGES, on_chunk=on_chunk))
            await two_applied.wait()

            assert await client.cancel("conv-1") is True
            release.set()
            buffer = await turn

        assert buffer.aborted is True
        assert buffer.text == "one two "
        assert buffer.done is False
        assert buffer.chunks_applied == 2

    async def test_new_turn_cancels_previous(self):
        release = asyncio.Event()
        first_started = asyncio.Event()

        async def slow_body():
            yield text_frame("old", "1")
            await release.wait()
            yield b"event: end\ndata: {}\n\n"

        async def handler(request):
            if json.loads(request.content)["messages"][-1]["content"] == "first":
                return httpx.Response(200, content=slow_body())
            return httpx.Response(200, content=text_frame("new", "1") + b"event: end\ndata: {}\n\n")

        http, client = make_client(handler)
        async with http:
            first = asyncio.create_task(client.send(
                "conv-1",
                [ChatMessage(role="user", content="first")],
                on_chunk=lambda buffer, chunk: first_started.set(),
            ))
            await first_started.wait()

            second = await client.send("conv-1", [ChatMessage(role="user", content="second")])
            release.set()
            first_buffer = await first

        assert first_buffer.aborted is True
        assert first_buffer.text == "old"
        assert second.text == "new"
        assert second.done is True

    async def test_cancel_without_turn(self):
        async def handler(request):
            return httpx.Response(200, content=b"")

        http, client = make_client(handler)
        async with http:
            assert await client.cancel("conv-1") is False

    async def test_body_without_terminal_frame_is_an_error(self):
        """A dropped connection ends the turn with an error, not an open buffer"""
        async def handler(request):
            return httpx.Response(200, content=b'data: "Hel"\n\ndata: "lo"\n\n')

        http, client = make_client(handler)
        async with http:
            buffer = await client.send("conv-1", MESSAGES)

        assert buffer.text == "Hello"
        assert buffer.done is False
        assert buffer.error == "Stream ended without a terminal frame"
        assert buffer.finished is True

    async def test_finished_turns_are_not_retained(self):
        async def handler(request):
            return httpx.Response(200, content=text_frame("hi", "1") + b"event: end\ndata: {}\n\n")

        http, client = make_client(handler)
        async with http:
            for index in range(5):
                buffer = await client.send(f"conv-{index % 2}", MESSAGES)
                assert buffer.done is True

        assert client._turns == {}
