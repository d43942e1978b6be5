"""Shared LLM client factory.

Every module that needs an OpenAI chat model should import from here
instead of constructing its own client, ensuring consistent model
selection, temperature, and timeout configuration.
"""

from __future__ import annotations

from langchain_openai import ChatOpenAI

from studylab import settings

# Thematic coding responses are short JSON objects.
MAX_TOKENS: int = 1024


def get_chat_llm(
    *,
    temperature: float = 0.0,
    json_mode: bool = True,
) -> ChatOpenAI:
    """Return a configured ChatOpenAI instance."""
    kwargs = {}
    if json_mode:
        kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}
    return ChatOpenAI(
        model=settings.LLM_MODEL_NAME,
        temperature=temperature,
        max_tokens=MAX_TOKENS,
        request_timeout=settings.REQUEST_TIMEOUT,
        **kwargs,
    )
