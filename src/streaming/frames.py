"""
Server-Sent Event Frames

Wire format for one chat turn:

    text   ->  data: "<json string>"\n\n
    tool   ->  event: tool\ndata: {"name": ..., "result": ...}\n\n
    done   ->  event: end\ndata: {}\n\n
    error  ->  event: error\ndata: {"error": "..."}\n\n
"""
import codecs
import json
from dataclasses import dataclass
from typing import List, Optional

from src.models.chat import (
    ChatChunk,
    ChunkType,
    DoneData,
    ErrorData,
    TextData,
    ToolData,
    ToolError,
)

FRAME_SEPARATOR = "\n\n"

END_EVENT = "end"
ERROR_EVENT = "error"
TOOL_EVENT = "tool"
MESSAGE_EVENT = "message"


def _dumps(value) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def encode_chunk(chunk: ChatChunk) -> bytes:
    """Serialize one chunk as an SSE frame."""
    data = chunk.data

    if isinstance(data, TextData):
        frame = f"data: {_dumps(data.text)}{FRAME_SEPARATOR}"
    elif isinstance(data, ToolData):
        frame = f"event: {TOOL_EVENT}\ndata: {_dumps({'name': data.name, 'result': data.result})}{FRAME_SEPARATOR}"
    elif isinstance(data, ToolError):
        frame = f"event: {TOOL_EVENT}\ndata: {_dumps({'name': data.name, 'error': data.error})}{FRAME_SEPARATOR}"
    elif isinstance(data, DoneData):
        frame = f"event: {END_EVENT}\ndata: {{}}{FRAME_SEPARATOR}"
    else:
        frame = f"event: {ERROR_EVENT}\ndata: {_dumps({'error': data.error})}{FRAME_SEPARATOR}"

    return frame.encode("utf-8")


@dataclass
class Frame:
    """One parsed SSE frame."""
    event: str = MESSAGE_EVENT
    data: str = ""


def parse_frame(raw: str) -> Optional[Frame]:
    """Parse the text between two separators. Comment-only frames return None."""
    frame = Frame()
    data_lines: List[str] = []
    for line in raw.split("\n"):
        if not line or line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if name == "event":
            frame.event = value
        elif name == "data":
            data_lines.append(value)

    if not data_lines and frame.event == MESSAGE_EVENT:
        return None
    frame.data = "\n".join(data_lines)
    return frame


class FrameDecoder:
    """
    Incremental SSE decoder.

    Bytes may arrive split anywhere, including inside a multi-byte character
    or between the two newlines of a separator; frames come out only once
    their separator has fully arrived.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""

    def feed(self, data: bytes) -> List[Frame]:
        self._buffer += self._decoder.decode(data)
        self._buffer = self._buffer.replace("\r\n", "\n")

        frames = []
        while FRAME_SEPARATOR in self._buffer:
            raw, self._buffer = self._buffer.split(FRAME_SEPARATOR, 1)
            frame = parse_frame(raw)
            if frame is not None:
                frames.append(frame)
        return frames

    @property
    def pending(self) -> str:
        """Text received after the last complete frame."""
        return self._buffer


def frame_to_chunk(frame: Frame, chunk_id: str) -> ChatChunk:
    """
    Rebuild a typed chunk from a parsed frame.

    Raises:
        ValueError: If the frame payload is not valid JSON for its event
    """
    if frame.event == END_EVENT:
        return ChatChunk(id="done", type=ChunkType.DONE, data=DoneData())

    payload = json.loads(frame.data) if frame.data else {}

    if frame.event == ERROR_EVENT:
        error = payload.get("error") if isinstance(payload, dict) else str(payload)
        return ChatChunk(id=chunk_id, type=ChunkType.ERROR, data=ErrorData(error=error or "Unknown error"))

    if frame.event == TOOL_EVENT:
        if "error" in payload:
            return ChatChunk(id=chunk_id, type=ChunkType.TOOL, data=ToolError(name=payload.get("name"), error=payload["error"]))
        return ChatChunk(id=chunk_id, type=ChunkType.TOOL, data=ToolData(name=payload.get("name", "tool"), result=payload.get("result")))

    if not isinstance(payload, str):
        raise ValueError(f"Text frame carries non-string data: {frame.data[:50]}")
    return ChatChunk(id=chunk_id, type=ChunkType.TEXT, data=TextData(text=payload))
