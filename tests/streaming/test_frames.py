"""
Tests for SSE frame encoding and incremental decoding.
"""
import pytest

from src.models.chat import ChatChunk, ChunkType, DoneData, ErrorData, TextData, ToolData, ToolError
from src.streaming.frames import FrameDecoder, encode_chunk, frame_to_chunk, parse_frame


def text_chunk(text, chunk_id="1"):
    return ChatChunk(id=chunk_id, type=ChunkType.TEXT, data=TextData(text=text))


class TestEncodeChunk:
    """Wire format of each chunk type."""

    def test_text(self):
        assert encode_chunk(text_chunk("Hel")) == b'data: "Hel"\n\n'

    def test_text_with_newlines_stays_one_line(self):
        assert encode_chunk(text_chunk("a\nb")) == b'data: "a\\nb"\n\n'

    def test_done(self):
        chunk = ChatChunk(id="done", type=ChunkType.DONE, data=DoneData())
        assert encode_chunk(chunk) == b"event: end\ndata: {}\n\n"

    def test_error(self):
        chunk = ChatChunk(id="3", type=ChunkType.ERROR, data=ErrorData(error="boom"))
        assert encode_chunk(chunk) == b'event: error\ndata: {"error": "boom"}\n\n'

    def test_tool(self):
        chunk = ChatChunk(id="2", type=ChunkType.TOOL, data=ToolData(name="search", result={"hits": 1}))
        assert encode_chunk(chunk) == b'event: tool\ndata: {"name": "search", "result": {"hits": 1}}\n\n'


class TestParseFrame:

    def test_default_event(self):
        frame = parse_frame('data: "hi"')
        assert frame.event == "message"
        assert frame.data == '"hi"'

    def test_comment_only(self):
        assert parse_frame(": keep-alive") is None

    def test_multiline_data(self):
        assert parse_frame("data: a\ndata: b").data == "a\nb"


class TestFrameDecoder:
    """Reassembly across arbitrary byte boundaries."""

    def test_split_across_feeds(self):
        decoder = FrameDecoder()
        stream = b'data: "Hel"\n\ndata: "lo"\n\nevent: end\ndata: {}\n\n'

        frames = []
        for i in range(len(stream)):
            frames.extend(decoder.feed(stream[i:i + 1]))

        assert [frame.data for frame in frames] == ['"Hel"', '"lo"', "{}"]
        assert frames[-1].event == "end"
        assert decoder.pending == ""

    def test_split_inside_multibyte_character(self):
        decoder = FrameDecoder()
        encoded = encode_chunk(text_chunk("café"))
        cut = encoded.index("é".encode("utf-8")) + 1

        assert decoder.feed(encoded[:cut]) == []
        frames = decoder.feed(encoded[cut:])

        assert frame_to_chunk(frames[0], "1").data.text == "café"

    def test_crlf_separators(self):
        frames = FrameDecoder().feed(b'data: "x"\r\n\r\n')
        assert frames[0].data == '"x"'

    def test_incomplete_frame_is_pending(self):
        decoder = FrameDecoder()
        assert decoder.feed(b'data: "x"\n') == []
        assert decoder.pending == 'data: "x"\n'


class TestFrameToChunk:
    """Round trip from wire frames back to typed chunks."""

    def test_each_type(self):
        chunks = [
            text_chunk("Hel"),
            ChatChunk(id="2", type=ChunkType.TOOL, data=ToolData(name="search", result=[1, 2])),
            ChatChunk(id="3", type=ChunkType.TOOL, data=ToolError(name="search", error="timeout")),
            ChatChunk(id="4", type=ChunkType.ERROR, data=ErrorData(error="boom")),
            ChatChunk(id="done", type=ChunkType.DONE, data=DoneData()),
        ]
        stream = b"".join(encode_chunk(chunk) for chunk in chunks)

        frames = FrameDecoder().feed(stream)
        decoded = [frame_to_chunk(frame, chunk.id) for frame, chunk in zip(frames, chunks)]

        assert decoded == chunks

    def test_non_string_text_rejected(self):
        frame = parse_frame("data: {}")
        with pytest.raises(ValueError):
            frame_to_chunk(frame, "1")
