"""Streaming wrapper around the OpenAI Responses API.

Handles:
- Issuing a streaming ``responses.create`` call with the file-search tool
- Translating raw stream events into typed events for the turn processor
- Closing the upstream HTTP stream when the consumer stops early
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Stream event types
# ---------------------------------------------------------------------------


@dataclass
class TextDeltaEvent:
    """An incremental chunk of the model's output text."""

    delta: str


@dataclass
class CompletedEvent:
    """The model finished; ``output_text`` is the complete answer."""

    output_text: str


@dataclass
class FailedEvent:
    """The provider reported a failure for this response."""

    message: str


ProviderEvent = Union[TextDeltaEvent, CompletedEvent, FailedEvent]

DEFAULT_FAILURE_MESSAGE = "An error occurred during streaming."


def _completed_text(response: Any) -> str:
    """Extract the full output text from a completed Response object."""
    text = getattr(response, "output_text", None)
    if text:
        return text
    # Fall back to the first message content item
    for item in getattr(response, "output", None) or []:
        for content in getattr(item, "content", None) or []:
            if getattr(content, "text", None):
                return content.text
    return ""


def _failure_message(event: Any) -> str:
    if event.type == "error":
        return getattr(event, "message", None) or DEFAULT_FAILURE_MESSAGE
    error = getattr(getattr(event, "response", None), "error", None)
    return getattr(error, "message", None) or DEFAULT_FAILURE_MESSAGE


# ---------------------------------------------------------------------------
# Main stream
# ---------------------------------------------------------------------------


async def stream_response(
    client: Any,
    *,
    model: str,
    input: List[Dict[str, Any]],
    instructions: str,
    vector_store_ids: Optional[List[str]] = None,
) -> AsyncGenerator[ProviderEvent, None]:
    """Stream one model response as :data:`ProviderEvent` instances.

    Events are yielded in the order the provider sends them.  The generator
    stops after the first :class:`CompletedEvent` or :class:`FailedEvent`.
    Whatever the reason the generator ends (completion, failure, consumer
    cancellation), the upstream stream is closed.

    Args:
        client: An ``openai.AsyncOpenAI`` client.
        model: Model name.
        input: Responses API ``input`` items.
        instructions: System instructions.
        vector_store_ids: Knowledge-base vector stores for the file-search
            tool; the tool is omitted when empty.

    Yields:
        :class:`TextDeltaEvent` for each ``response.output_text.delta``,
        then one :class:`CompletedEvent` or :class:`FailedEvent`.
    """
    api_kwargs: Dict[str, Any] = {}
    if vector_store_ids:
        api_kwargs["tools"] = [
            {"type": "file_search", "vector_store_ids": list(vector_store_ids)}
        ]

    stream = await client.responses.create(
        model=model,
        input=input,
        instructions=instructions,
        stream=True,
        **api_kwargs,
    )
    try:
        async for event in stream:
            event_type = getattr(event, "type", None)
            if event_type == "response.output_text.delta":
                if event.delta:
                    yield TextDeltaEvent(delta=event.delta)
            elif event_type == "response.completed":
                yield CompletedEvent(output_text=_completed_text(event.response))
                return
            elif event_type in ("response.failed", "error"):
                message = _failure_message(event)
                logger.error(f"Provider stream failed: {message}")
                yield FailedEvent(message=message)
                return
    finally:
        await stream.close()
