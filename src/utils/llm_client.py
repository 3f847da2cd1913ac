"""
LLM Client with Error Categorization
Single-attempt agent execution behind a circuit breaker.

Failed calls are not retried here: the enrichment path degrades to a
fallback result and the session carries on without research.
"""
from typing import Any, Callable, Optional, TypeVar
from loguru import logger
from pydantic_ai import Agent
from src.utils.circuit_breaker import get_circuit

# Type variable for generic agent output
T = TypeVar('T')


class LLMError(Exception):
    """Recoverable LLM errors (rate limits, timeouts, provider outages)."""

    def __init__(self, message: str, error_type: str = "unknown"):
        super().__init__(message)
        self.error_type = error_type


class LLMCriticalError(Exception):
    """Non-recoverable errors (auth failure, invalid prompt, etc.)."""
    pass


def categorize_llm_error(error: Exception) -> Exception:
    """
    Map a raw provider exception onto LLMError or LLMCriticalError.

    Args:
        error: Whatever the model client raised

    Returns:
        The categorized exception (to be raised from the original)
    """
    error_msg = str(error).lower()

    if "authentication" in error_msg or "api key" in error_msg or "401" in error_msg:
        logger.error(f"🚨 Authentication failure: {error}")
        return LLMCriticalError(f"Authentication failed: {error}")

    if "invalid" in error_msg and "request" in error_msg:
        logger.error(f"🚨 Invalid request: {error}")
        return LLMCriticalError(f"Invalid request: {error}")

    if "rate" in error_msg and "limit" in error_msg:
        error_type = "rate_limit"
    elif "timeout" in error_msg or "timed out" in error_msg:
        error_type = "timeout"
    elif any(code in error_msg for code in ["500", "502", "503", "504"]):
        error_type = "server_error"
    else:
        error_type = "unknown"

    logger.warning(f"⚠️ LLM call failed ({error_type}): {error}")
    return LLMError(f"LLM call failed: {error}", error_type=error_type)


async def run_agent(agent: Agent, prompt: str, deps: Any = None) -> T:
    """
    Execute an agent once.

    Args:
        agent: The PydanticAI agent to run
        prompt: The prompt to send to the agent
        deps: Optional dependencies for the agent

    Returns:
        The agent's output (typed based on agent's output_type)

    Raises:
        LLMCriticalError: For non-recoverable failures
        LLMError: For everything else
    """
    try:
        if deps is not None:
            result = await agent.run(prompt, deps=deps)
        else:
            result = await agent.run(prompt)
    except Exception as e:
        raise categorize_llm_error(e) from e

    return result.output


async def run_agent_with_circuit_breaker(
    agent: Agent,
    prompt: str,
    fallback_factory: Callable[[], T],
    deps: Any = None,
    circuit_name: str = "research",
) -> T:
    """
    Execute an agent with circuit breaker protection.

    When the provider is failing, the circuit opens and fallback responses
    are returned immediately without wasting API calls.

    Example:
        >>> result = await run_agent_with_circuit_breaker(
        ...     agent, prompt, lambda: domain_report(email)
        ... )
    """
    circuit = get_circuit(circuit_name)

    async def execute():
        return await run_agent(agent, prompt, deps=deps)

    return await circuit.call_with_fallback(execute, fallback_factory)
