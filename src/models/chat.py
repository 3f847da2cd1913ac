from enum import StrEnum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field


class ChatRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    id: Optional[str] = None
    role: ChatRole
    content: str = Field(..., min_length=1)
    meta: Optional[Dict[str, Any]] = None


class ChatRequest(BaseModel):
    """The formal input contract for a streamed chat turn."""
    version: Literal[1]
    messages: List[ChatMessage] = Field(..., min_length=1)


class ChunkType(StrEnum):
    TEXT = "text"
    TOOL = "tool"
    DONE = "done"
    ERROR = "error"


# ============================================
# CHUNK PAYLOADS (tagged by `kind`)
# ============================================

class TextData(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class ToolData(BaseModel):
    kind: Literal["tool"] = "tool"
    name: str
    result: Any = None


class ToolError(BaseModel):
    kind: Literal["tool_error"] = "tool_error"
    name: Optional[str] = None
    error: str


class DoneData(BaseModel):
    kind: Literal["done"] = "done"


class ErrorData(BaseModel):
    kind: Literal["error"] = "error"
    error: str


ChunkData = Annotated[
    Union[TextData, ToolData, ToolError, DoneData, ErrorData],
    Field(discriminator="kind"),
]


class ChatChunk(BaseModel):
    """
    One unit of a streamed turn.
    Chunks of a turn are totally ordered; DONE and ERROR are terminal.
    """
    id: str
    type: ChunkType
    data: ChunkData

    @property
    def is_terminal(self) -> bool:
        return self.type in (ChunkType.DONE, ChunkType.ERROR)


class ToolResult(BaseModel):
    """A non-text unit emitted by a token generator (e.g. a tool call result)."""
    name: str
    result: Any = None
    error: Optional[str] = None
