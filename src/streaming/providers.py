"""
Token Generators
Async sources of text fragments (and tool results) for one chat turn.
"""
import asyncio
import re
from typing import AsyncIterator, List, Protocol, Union

from loguru import logger
from pydantic_ai import Agent

from src.config import get_settings
from src.errors import StreamGenerationError
from src.models.chat import ChatMessage, ChatRole, ToolResult
from src.utils.circuit_breaker import get_circuit
from src.utils.llm_client import categorize_llm_error

StreamUnit = Union[str, ToolResult]

_WORD_WITH_SPACE = re.compile(r"\S+\s*")


class TokenGenerator(Protocol):
    def generate(self, messages: List[ChatMessage]) -> AsyncIterator[StreamUnit]: ...


def _last_user_message(messages: List[ChatMessage]) -> str:
    for message in reversed(messages):
        if message.role == ChatRole.USER:
            return message.content
    return messages[-1].content if messages else ""


class EchoTokenGenerator:
    """
    Development generator: streams the last user message back word by word.
    Needs no model credentials.
    """

    def __init__(self, delay: float | None = None, prefix: str = ""):
        self.delay = get_settings().echo_token_delay_seconds if delay is None else delay
        self.prefix = prefix

    async def generate(self, messages: List[ChatMessage]) -> AsyncIterator[StreamUnit]:
        text = self.prefix + _last_user_message(messages)
        for index, token in enumerate(_WORD_WITH_SPACE.findall(text)):
            if index and self.delay:
                await asyncio.sleep(self.delay)
            yield token


class AgentTokenGenerator:
    """
    Streams text deltas from a PydanticAI agent.
    Guarded by the "chat" circuit: while it is open the turn fails fast
    with an error frame.
    """

    def __init__(self, model_override: str | None = None, agent: Agent | None = None):
        model_name = model_override or get_settings().chat_model

        self.agent: Agent[None, str] = agent or Agent(
            model_name,
            instructions=(
                "You are a concise, friendly business consultant helping a prospect "
                "understand how AI automation could help their company. Ask one question "
                "at a time and keep answers short."
            )
        )
        logger.info(f"AgentTokenGenerator initialized with model: {model_name}")

    def _prompt(self, messages: List[ChatMessage]) -> str:
        history_str = ""
        for msg in messages[:-1]:
            history_str += f"{msg.role.upper()}: {msg.content}\n"

        return f"""
        CONVERSATION SO FAR:
        {history_str}

        LATEST MESSAGE:
        {messages[-1].content}
        """

    async def generate(self, messages: List[ChatMessage]) -> AsyncIterator[StreamUnit]:
        circuit = get_circuit("chat")
        await circuit.acquire()

        try:
            async with self.agent.run_stream(self._prompt(messages)) as result:
                async for delta in result.stream_text(delta=True):
                    yield delta
        except Exception as e:
            await circuit.record_failure(e)
            raise StreamGenerationError(str(categorize_llm_error(e))) from e
        except BaseException:
            # Consumer closed the stream early or the turn was cancelled
            circuit.release()
            raise

        await circuit.record_success()


def build_token_generator(kind: str | None = None) -> TokenGenerator:
    """Generator selected by the `chat_provider` setting."""
    kind = kind or get_settings().chat_provider
    if kind == "agent":
        return AgentTokenGenerator()
    return EchoTokenGenerator()
